from flask import current_app, request
from flask_socketio import join_room, leave_room, emit
from dietracker.models import LiveMatch
from dietracker.services.matches.session import room_for
from typing import Dict, Set


# sid -> room codes the socket is watching
_sid_rooms: Dict[str, Set[str]] = {}


def _get_sid() -> str:
    return request.sid  # type: ignore


def handle_connect(auth=None):
    emit('connected', {'message': 'Connected to /ws'})


def handle_disconnect(*args):
    rooms_watched = _sid_rooms.pop(_get_sid(), set())
    if rooms_watched:
        current_app.logger.info(f"[ws-disconnect] sid={_get_sid()} rooms={sorted(rooms_watched)}")


def handle_join_match(data):
    """Subscribe this socket to live updates for a match.

    The current row is sent straight back so a client that just mounted (or
    reconnected) starts from the stored state.
    """
    room_code = ((data or {}).get('room_code') or '').upper()
    if not room_code:
        emit('error', {'message': 'room_code is required'})
        return
    match = LiveMatch.query.filter_by(room_code=room_code).first()
    if not match:
        emit('error', {'message': 'Match not found or has ended'})
        return
    room = room_for(room_code)
    join_room(room)
    _sid_rooms.setdefault(_get_sid(), set()).add(room_code)
    emit('joined', {'room': room})
    emit('match_update', match.to_dict())


def handle_leave_match(data):
    room_code = ((data or {}).get('room_code') or '').upper()
    if not room_code:
        emit('error', {'message': 'room_code is required'})
        return
    room = room_for(room_code)
    leave_room(room)
    _sid_rooms.get(_get_sid(), set()).discard(room_code)
    emit('left', {'room': room})


def handle_ping(data):
    emit('pong', data or {})


def register_socketio_handlers(testing: bool = False) -> None:
    """Register Socket.IO event handlers.

    Always register on namespace '/ws'. When testing is True, also mirror
    handlers on the default namespace '/' to accommodate the test harness.
    """
    from dietracker import socketio

    namespaces = ['/ws', '/'] if testing else ['/ws']
    for namespace in namespaces:
        socketio.on_event('connect', handle_connect, namespace=namespace)
        socketio.on_event('disconnect', handle_disconnect, namespace=namespace)
        socketio.on_event('join_match', handle_join_match, namespace=namespace)
        socketio.on_event('leave_match', handle_leave_match, namespace=namespace)
        socketio.on_event('ping', handle_ping, namespace=namespace)
