from flask import Blueprint, jsonify, request, current_app
from flask_login import current_user

from dietracker.services.matches import session
from dietracker.services.matches.errors import MatchError, ValidationError
from dietracker.services.matches.game_state import classify, team_scores
from dietracker.services.matches.rating import player_report
from dietracker.services.matches.stats import MatchSetup, Play


matches = Blueprint('matches', __name__)


@matches.errorhandler(MatchError)
def handle_match_error(exc):
    return jsonify({'error': exc.message}), exc.status_code


def _user_id():
    return current_user.id if current_user.is_authenticated else None


def _setup_defaults():
    cfg = current_app.config
    return {
        'game_score_limit': cfg.get('DEFAULT_GAME_SCORE_LIMIT', 11),
        'sink_points': cfg.get('DEFAULT_SINK_POINTS', 3),
        'win_by_two': cfg.get('DEFAULT_WIN_BY_TWO', True),
    }


def _state_payload(match):
    payload = match.to_dict()
    setup = session.load_setup(match)
    team1, team2 = team_scores(session.load_stats(match), match.team_penalties)
    payload['team_scores'] = {'1': team1, '2': team2}
    payload['game_state'] = classify(team1, team2, setup.game_score_limit, setup.win_by_two).value
    return payload


@matches.route('/create', methods=['POST'])
def create_match():
    data = request.get_json(silent=True) or {}
    setup = MatchSetup.from_dict(data.get('match_setup') or data, defaults=_setup_defaults())
    match = session.create_match(setup, _user_id())
    return jsonify(_state_payload(match)), 201


@matches.route('/<string:room_code>/state', methods=['GET'])
def get_match_state(room_code):
    match = session.get_match(room_code)
    return jsonify(_state_payload(match))


@matches.route('/<string:room_code>/join', methods=['POST'])
def join_match(room_code):
    data = request.get_json(silent=True) or {}
    if data.get('player_slot') is None:
        raise ValidationError('player_slot is required')
    match = session.get_match(room_code)
    session.join_slot(match, data.get('player_slot'), current_user)
    return jsonify(_state_payload(match))


@matches.route('/<string:room_code>/spectate', methods=['POST'])
def spectate_match(room_code):
    match = session.get_match(room_code)
    session.spectate(match, current_user)
    return jsonify(_state_payload(match))


@matches.route('/<string:room_code>/plays', methods=['POST'])
def submit_play(room_code):
    data = request.get_json(silent=True) or {}
    play = Play.from_dict(data)
    match = session.get_match(room_code)
    result = session.submit_play(match, play, expected_version=data.get('expected_version'))
    payload = _state_payload(match)
    payload['notice'] = result.notice
    return jsonify(payload)


@matches.route('/<string:room_code>/sync', methods=['PUT'])
def sync_match(room_code):
    data = request.get_json(silent=True) or {}
    if not data.get('player_stats') or data.get('team_penalties') is None:
        raise ValidationError('player_stats and team_penalties are required')
    match = session.get_match(room_code)
    session.sync_play(
        match,
        data['player_stats'],
        data['team_penalties'],
        user_slot_map=data.get('user_slot_map'),
        expected_version=data.get('expected_version'),
    )
    return jsonify(_state_payload(match))


@matches.route('/<string:room_code>/finish', methods=['POST'])
def finish_match(room_code):
    match = session.get_match(room_code)
    if match.status != 'finished':
        session.finish(match)
    return jsonify(_state_payload(match))


@matches.route('/<string:room_code>/save', methods=['POST'])
def save_match(room_code):
    match = session.get_match(room_code)
    saved = session.save(match, _user_id())
    payload = saved.to_dict()
    payload['saved_as_guest'] = _user_id() is None
    return jsonify(payload), 201


@matches.route('/<string:room_code>', methods=['DELETE'])
def delete_match(room_code):
    match = session.get_match(room_code)
    session.delete_match(match)
    return jsonify({'message': 'Match deleted'})


@matches.route('/<string:room_code>/ratings', methods=['GET'])
def match_ratings(room_code):
    match = session.get_match(room_code)
    cfg = current_app.config
    report = player_report(
        session.load_stats(match),
        aura_threshold=cfg.get('AURA_AWARD_THRESHOLD', 8),
        leking=cfg.get('LEKING_AWARD_ENABLED', True),
    )
    return jsonify({str(slot): row for slot, row in report.items()})
