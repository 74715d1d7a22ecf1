"""Live match sessions: the only code path that writes match rows.

Every write sends the full row to the Socket.IO room ``match:<ROOM_CODE>`` on
``/ws`` and to any in-process subscribers. Writes overwrite the whole state, so
the last writer wins unless the caller passes ``expected_version``.
"""
from collections import defaultdict
from datetime import datetime, timedelta, timezone
import json

from flask import current_app
from sqlalchemy.exc import SQLAlchemyError

from dietracker import db, socketio
from dietracker.models import LiveMatch, SavedMatch, generate_room_code
from .errors import (
    AlreadyInMatch, MatchNotFound, NotAuthenticated, SlotTaken, StaleMatchState,
    StoreWriteFailure, ValidationError,
)
from .game_state import team_scores, winning_team
from .scoring import submit_play as score_play
from .replica import MatchReplica
from .stats import (
    SLOTS, MatchSetup, initial_player_stats, parse_int, parse_stats_row, stats_from_rows, stats_to_rows,
)

_listeners = defaultdict(list)  # match id -> callbacks receiving the full row dict
_replicas = {}  # match id -> MatchReplica holding the submit latch


def room_for(room_code: str) -> str:
    return f"match:{room_code.upper()}"


def _now():
    return datetime.now(timezone.utc)


def _aware(value):
    # sqlite hands back naive datetimes
    if value is not None and value.tzinfo is None:
        return value.replace(tzinfo=timezone.utc)
    return value


class Subscription:
    def __init__(self, match_id, callback):
        self.match_id = match_id
        self.callback = callback

    @property
    def active(self):
        return self.callback in _listeners.get(self.match_id, [])

    def unsubscribe(self):
        callbacks = _listeners.get(self.match_id)
        if callbacks and self.callback in callbacks:
            callbacks.remove(self.callback)
            if not callbacks:
                _listeners.pop(self.match_id, None)


def subscribe(match_id: int, on_update) -> Subscription:
    """Call ``on_update(row_dict)`` after every write to the match."""
    _listeners[match_id].append(on_update)
    return Subscription(match_id, on_update)


def _release_listeners(match_id):
    _listeners.pop(match_id, None)
    _replicas.pop(match_id, None)


def replica_for(match: LiveMatch) -> MatchReplica:
    """The server's mirror of a live match, following every write to it."""
    replica = _replicas.get(match.id)
    if replica is None:
        candidate = MatchReplica(match.to_dict())
        replica = _replicas.setdefault(match.id, candidate)
        if replica is candidate:
            subscribe(match.id, replica)
    return replica


def _broadcast(match: LiveMatch, event='match_update', payload=None):
    payload = payload if payload is not None else match.to_dict()
    socketio.emit(event, payload, to=room_for(match.room_code), namespace='/ws')
    if event != 'match_update':
        return
    for callback in list(_listeners.get(match.id, [])):
        try:
            callback(payload)
        except Exception:
            current_app.logger.exception(f"[notify] match={match.id} subscriber failed")


def _commit(tag: str) -> None:
    try:
        db.session.commit()
    except SQLAlchemyError as exc:
        db.session.rollback()
        current_app.logger.error(f"[{tag}] store write failed: {exc}")
        raise StoreWriteFailure() from exc


def _touch(match: LiveMatch) -> None:
    match.version = (match.version or 0) + 1
    match.updated_at = _now()
    db.session.add(match)


def load_setup(match: LiveMatch) -> MatchSetup:
    return MatchSetup(**match.match_setup)


def load_stats(match: LiveMatch) -> dict:
    return stats_from_rows(match.player_stats)


def create_match(setup: MatchSetup, host_user_id=None) -> LiveMatch:
    length = int(current_app.config.get('ROOM_CODE_LENGTH', 6))
    match = LiveMatch(
        room_code=generate_room_code(length),
        host_id=host_user_id,
        status='active',
        match_start_time=_now(),
        winner_team=None,
        version=1,
    )
    match.match_setup = setup.to_dict()
    match.participants = [host_user_id] if host_user_id is not None else []
    match.user_slot_map = {slot: None for slot in SLOTS}
    match.player_stats = stats_to_rows(initial_player_stats(setup))
    match.team_penalties = {1: 0, 2: 0}
    db.session.add(match)
    _commit('create')
    current_app.logger.info(f"[create] match={match.id} room={match.room_code} host={host_user_id}")
    _broadcast(match)
    return match


def get_match(room_code: str) -> LiveMatch:
    match = LiveMatch.query.filter_by(room_code=(room_code or '').upper()).first()
    if not match:
        raise MatchNotFound()
    return match


def _require_user(user):
    if user is None or not getattr(user, 'is_authenticated', False):
        raise NotAuthenticated('Please login to join the match.')


def _require_open(match: LiveMatch):
    if match.status == 'finished':
        raise ValidationError('Match is finished. Start a new game to continue.')


def join_slot(match: LiveMatch, slot, user) -> LiveMatch:
    """Claim a player slot for ``user`` and rename the slot after them."""
    _require_user(user)
    _require_open(match)
    try:
        slot = int(slot)
    except (TypeError, ValueError):
        raise ValidationError('player_slot must be 1-4')
    if slot not in SLOTS:
        raise ValidationError('player_slot must be 1-4')

    slot_map = match.user_slot_map
    occupant = slot_map.get(slot)
    if occupant is not None and occupant != user.id:
        raise SlotTaken(f'Player slot {slot} is already taken by another user.')
    existing = next((s for s, uid in slot_map.items() if uid == user.id), None)
    if existing is not None and existing != slot:
        raise AlreadyInMatch(
            f'You are already assigned to Player slot {existing}. You can only join one slot per match.'
        )
    if occupant == user.id:
        return match

    nickname = getattr(user, 'display_name', None) or f'Player {slot}'
    slot_map[slot] = user.id
    match.user_slot_map = slot_map
    participants = match.participants
    if user.id not in participants:
        participants.append(user.id)
        match.participants = participants
    setup = match.match_setup
    setup['player_names'][slot - 1] = nickname
    match.match_setup = setup
    rows = match.player_stats
    if slot in rows:
        rows[slot]['name'] = nickname
        match.player_stats = rows
    _touch(match)
    _commit('join')
    current_app.logger.info(f"[join] match={match.id} slot={slot} user={user.id}")
    _broadcast(match)
    return match


def spectate(match: LiveMatch, user) -> LiveMatch:
    _require_user(user)
    participants = match.participants
    if user.id in participants:
        return match
    participants.append(user.id)
    match.participants = participants
    _touch(match)
    _commit('spectate')
    current_app.logger.info(f"[spectate] match={match.id} user={user.id}")
    _broadcast(match)
    return match


def sync_play(match: LiveMatch, player_stats: dict, team_penalties: dict,
              user_slot_map=None, expected_version=None) -> LiveMatch:
    """Overwrite the match's statistics, penalties and slot map.

    Callers must send the complete current state. With ``expected_version``
    the write is rejected if someone else wrote first.
    """
    if expected_version is not None and parse_int(expected_version, 'expected_version') != match.version:
        raise StaleMatchState(
            f'Match is at version {match.version}, you sent changes for version {expected_version}.'
        )
    if not isinstance(player_stats, dict) or not isinstance(team_penalties, dict):
        raise ValidationError('player_stats and team_penalties must be objects')
    stats = {}
    for slot, row in player_stats.items():
        slot = parse_int(slot, 'player slot')
        stats[slot] = parse_stats_row(row, slot)
    if set(stats) != set(SLOTS):
        raise ValidationError('Statistics for all four player slots are required')
    penalties = {parse_int(team, 'team'): parse_int(value, 'team penalty')
                 for team, value in team_penalties.items()}
    if set(penalties) != {1, 2}:
        raise ValidationError('Penalties for both teams are required')
    slot_map = None
    if user_slot_map is not None:
        if not isinstance(user_slot_map, dict):
            raise ValidationError('user_slot_map must be an object')
        slot_map = {parse_int(slot, 'player slot'): None if uid is None else parse_int(uid, 'user id')
                    for slot, uid in user_slot_map.items()}
        if set(slot_map) != set(SLOTS):
            raise ValidationError('user_slot_map must cover all four player slots')
        claimed = [uid for uid in slot_map.values() if uid is not None]
        if len(claimed) != len(set(claimed)):
            raise ValidationError('A user can only occupy one player slot')
    match.player_stats = stats_to_rows(stats)
    match.team_penalties = penalties
    if slot_map is not None:
        match.user_slot_map = slot_map
    _touch(match)
    _commit('sync')
    current_app.logger.info(f"[sync] match={match.id} version={match.version}")
    _broadcast(match)
    return match


def submit_play(match: LiveMatch, play, expected_version=None):
    """Score ``play`` against the stored state and persist the result.

    Returns the engine's PlayResult. A team reaching the win condition
    finishes the match. Only one play per match is recorded at a time; a
    second submission while one is in flight gets SubmitInProgress.
    """
    _require_open(match)
    replica = replica_for(match)
    replica.begin_submit()
    try:
        return _record_play(match, play, expected_version)
    finally:
        replica.end_submit()


def _record_play(match: LiveMatch, play, expected_version):
    if not match.match_start_time:
        raise ValidationError('Match has not started yet')
    setup = load_setup(match)
    result = score_play(load_stats(match), match.team_penalties, setup, play)
    if result.notice:
        current_app.logger.info(f"[self-sink] match={match.id} slot={play.throwing_player}")
        _broadcast(match, 'self_sink', {'room_code': match.room_code, 'message': result.notice})
        return result

    sync_play(match, result.player_stats, result.team_penalties, expected_version=expected_version)
    current_app.logger.info(
        f"[play] match={match.id} thrower={play.throwing_player} result={play.throw_result.value} phase={result.game_state.value}"
    )
    team1, team2 = team_scores(result.player_stats, result.team_penalties)
    if winning_team(team1, team2, setup.game_score_limit, setup.win_by_two) is not None:
        finish(match)
    return result


def finish(match: LiveMatch):
    """Close the match; the higher team score wins and a draw has no winner."""
    team1, team2 = team_scores(load_stats(match), match.team_penalties)
    winner = None
    if team1 > team2:
        winner = 1
    elif team2 > team1:
        winner = 2
    match.status = 'finished'
    match.winner_team = winner
    _touch(match)
    _commit('finish')
    current_app.logger.info(f"[finish] match={match.id} score={team1}-{team2} winner={winner}")
    _broadcast(match)
    _broadcast(match, 'match_finished', {'room_code': match.room_code, 'winner_team': winner,
                                         'team_scores': {'1': team1, '2': team2}})
    _release_listeners(match.id)
    return winner


def _saving_user(match: LiveMatch, saving_user_id):
    if saving_user_id is not None:
        return saving_user_id
    for slot in SLOTS:
        uid = match.user_slot_map.get(slot)
        if uid is not None:
            return uid
    participants = match.participants
    return participants[0] if participants else None


def save(match: LiveMatch, saving_user_id=None) -> SavedMatch:
    """Archive the match and remove the live session.

    Guest scorekeepers save to the first signed-in player in the match.
    """
    owner_id = _saving_user(match, saving_user_id)
    if owner_id is None:
        raise NotAuthenticated(
            'An authenticated user must join the match to save statistics. '
            'Please have a player join or sign in to save.'
        )
    started = _aware(match.match_start_time)
    duration = int((_now() - started).total_seconds()) if started else 0
    saved = SavedMatch(
        user_id=owner_id,
        room_code=match.room_code,
        match_setup=json.dumps(match.match_setup),
        player_stats=match.player_stats_json or '{}',
        team_penalties=match.team_penalties_json or '{}',
        user_slot_map=match.user_slot_map_json,
        match_start_time=match.match_start_time,
        winner_team=match.winner_team,
        match_duration=max(0, duration),
    )
    match_id, room_code = match.id, match.room_code
    db.session.add(saved)
    db.session.delete(match)
    _commit('save')
    current_app.logger.info(f"[save] match={match_id} room={room_code} saved={saved.id} owner={owner_id}")
    socketio.emit('session_ended', {'room_code': room_code, 'saved_match_id': saved.id},
                  to=room_for(room_code), namespace='/ws')
    _release_listeners(match_id)
    return saved


def delete_match(match: LiveMatch) -> None:
    match_id, room_code = match.id, match.room_code
    db.session.delete(match)
    _commit('delete')
    current_app.logger.info(f"[delete] match={match_id} room={room_code}")
    socketio.emit('session_ended', {'room_code': room_code}, to=room_for(room_code), namespace='/ws')
    _release_listeners(match_id)


def purge_stale_matches(max_age_hours: int) -> int:
    cutoff = _now() - timedelta(hours=max_age_hours)
    stale = LiveMatch.query.filter(LiveMatch.updated_at < cutoff).all()
    for match in stale:
        delete_match(match)
    current_app.logger.info(f"[purge] removed={len(stale)} older_than={max_age_hours}h")
    return len(stale)


def list_saved_matches(user_id: int) -> list:
    return SavedMatch.query.filter_by(user_id=user_id).order_by(SavedMatch.created_at.desc(), SavedMatch.id.desc()).all()


def get_saved_match(user_id: int, saved_id: int) -> SavedMatch:
    saved = SavedMatch.query.filter_by(id=saved_id, user_id=user_id).first()
    if not saved:
        raise MatchNotFound('Saved match not found')
    return saved
