from flask import Blueprint, jsonify
from flask_login import current_user, login_required

from dietracker.services.matches import session
from dietracker.services.matches.errors import MatchError

history = Blueprint('history', __name__)


@history.errorhandler(MatchError)
def handle_match_error(exc):
    return jsonify({'error': exc.message}), exc.status_code


@history.route('/', methods=['GET'])
@login_required
def list_saved_matches():
    """Saved matches owned by the signed-in user, newest first."""
    return jsonify([m.to_dict() for m in session.list_saved_matches(current_user.id)])


@history.route('/<int:saved_id>', methods=['GET'])
@login_required
def get_saved_match(saved_id):
    return jsonify(session.get_saved_match(current_user.id, saved_id).to_dict())
