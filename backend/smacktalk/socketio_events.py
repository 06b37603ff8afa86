from typing import Dict

from flask import current_app, request
from flask_socketio import join_room, leave_room, emit

from smacktalk import socketio
from smacktalk.models import Game

# sid -> room code, for logging on disconnect
_sid_to_game: Dict[str, str] = {}


def _get_sid() -> str:
    return request.sid  # type: ignore


def handle_connect(auth=None):
    emit('connected', {'message': 'Connected to /ws'})


def handle_disconnect(reason=None):
    game_code = _sid_to_game.pop(_get_sid(), None)
    if game_code:
        current_app.logger.info(f"[ws] socket left game={game_code} on disconnect")


def handle_join_game(data):
    game_code = ((data or {}).get('game_code') or '').strip().upper()
    if not game_code:
        emit('error', {'message': 'game_code is required'})
        return
    game = Game.query.filter_by(room_code=game_code).first()
    if not game:
        emit('error', {'message': 'Room not found'})
        return
    room = f"game:{game_code}"
    join_room(room)
    _sid_to_game[_get_sid()] = game_code
    emit('joined', {'room': room, 'status': game.status})


def handle_leave_game(data):
    game_code = ((data or {}).get('game_code') or '').strip().upper()
    if not game_code:
        emit('error', {'message': 'game_code is required'})
        return
    room = f"game:{game_code}"
    leave_room(room)
    _sid_to_game.pop(_get_sid(), None)
    emit('left', {'room': room})


def handle_ping(data):
    emit('pong', data or {})


def register_socketio_handlers(testing: bool = False) -> None:
    """Register Socket.IO event handlers.

    Always register on namespace '/ws'. When testing is True, also mirror
    handlers on the default namespace '/' to accommodate the test harness.
    """
    handlers = {
        'connect': handle_connect,
        'disconnect': handle_disconnect,
        'join_game': handle_join_game,
        'leave_game': handle_leave_game,
        'ping': handle_ping,
    }
    namespaces = ['/ws', '/'] if testing else ['/ws']
    for namespace in namespaces:
        for event, handler in handlers.items():
            socketio.on_event(event, handler, namespace=namespace)
