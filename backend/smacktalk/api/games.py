from flask import Blueprint, jsonify, request, current_app

from smacktalk import db
from smacktalk.services.games import actions, lobby, resolver, rounds
from smacktalk.services.games.auth import require_vip
from smacktalk.services.games.errors import GameError, InvalidActionError
from smacktalk.services.games.scheduler import dispatch_follow_ups, emit_state_update


games = Blueprint('games', __name__)


@games.errorhandler(GameError)
def handle_game_error(exc):
    db.session.rollback()
    current_app.logger.info(f"[api] {request.method} {request.path} -> {exc.status_code} {exc.message}")
    return jsonify(exc.to_dict()), exc.status_code


def _payload():
    return request.get_json(silent=True) or {}


def _credential(data):
    return data.get('session_token') or request.headers.get('X-Session-Token')


def _after(game, follow_ups=None):
    emit_state_update(game)
    if follow_ups:
        dispatch_follow_ups(current_app._get_current_object(), follow_ups)
        # Follow-ups run inline under TESTING and commit in their own session
        db.session.expire_all()


@games.route('/create', methods=['POST'])
def create_game():
    data = _payload()
    new_game = lobby.create_game(data.get('ruleset'))
    return jsonify({
        'message': 'New game created!',
        'game_code': new_game.room_code,
        'game_id': new_game.id,
        'ruleset': new_game.ruleset,
    }), 201


@games.route('/join', methods=['POST'])
def join_game():
    data = _payload()
    game_code = data.get('game_code')
    name = data.get('name')
    if not all([game_code, name]):
        raise InvalidActionError('Game code and player name are required')

    player, token = lobby.join_game(game_code, name)
    emit_state_update(player.game)
    body = player.to_dict()
    body['session_token'] = token
    return jsonify(body), 201


@games.route('/<string:game_code>/state', methods=['GET'])
def get_game_state(game_code):
    game = lobby.get_game_by_code(game_code)
    return jsonify(game.to_dict())


@games.route('/<string:game_code>/start', methods=['POST'])
def start_game(game_code):
    data = _payload()
    game = lobby.get_game_by_code(game_code)
    require_vip(game, data.get('player_id'), _credential(data))
    game, follow_ups = rounds.start_round_1(game.id)
    _after(game, follow_ups)
    return jsonify(game.to_dict())


@games.route('/<string:game_code>/answers', methods=['POST'])
def submit_answer(game_code):
    data = _payload()
    game = lobby.get_game_by_code(game_code)
    submission, follow_ups = actions.submit_answer(
        game.id, data.get('player_id'), _credential(data),
        data.get('prompt_id'), data.get('text'), data.get('attack_type'),
    )
    _after(game, follow_ups)
    return jsonify({'message': 'Answer submitted', 'submission_id': submission.id}), 201


@games.route('/<string:game_code>/answers/bot', methods=['POST'])
def submit_answer_for_bot(game_code):
    data = _payload()
    game = lobby.get_game_by_code(game_code)
    submission, follow_ups = actions.submit_answer_for_bot(
        game.id, data.get('player_id'), _credential(data),
        data.get('prompt_id'), data.get('text'), data.get('attack_type'),
    )
    _after(game, follow_ups)
    return jsonify({'message': 'Answer submitted', 'submission_id': submission.id}), 201


@games.route('/<string:game_code>/votes', methods=['POST'])
def submit_vote(game_code):
    data = _payload()
    game = lobby.get_game_by_code(game_code)
    vote = actions.submit_vote(
        game.id, data.get('player_id'), _credential(data),
        data.get('prompt_id'), data.get('submission_id'),
    )
    _after(game)
    return jsonify({'message': 'Vote recorded', 'vote_id': vote.id, 'round_status': game.round_status}), 201


@games.route('/<string:game_code>/suggestions', methods=['POST'])
def submit_suggestion(game_code):
    data = _payload()
    game = lobby.get_game_by_code(game_code)
    suggestion = actions.submit_suggestion(
        game.id, data.get('player_id'), _credential(data),
        data.get('prompt_id'), data.get('text'),
    )
    _after(game)
    return jsonify(suggestion.to_dict()), 201


@games.route('/<string:game_code>/next-battle', methods=['POST'])
def next_battle(game_code):
    data = _payload()
    game = lobby.get_game_by_code(game_code)
    game, follow_ups = resolver.next_battle(game.id, data.get('player_id'), _credential(data))
    _after(game, follow_ups)
    return jsonify(game.to_dict())


@games.route('/<string:game_code>/next-round', methods=['POST'])
def next_round(game_code):
    data = _payload()
    game = lobby.get_game_by_code(game_code)
    game, follow_ups = rounds.next_round(game.id, data.get('player_id'), _credential(data))
    _after(game, follow_ups)
    return jsonify(game.to_dict())
