import time

from flask import current_app

from smacktalk import db, socketio
from smacktalk.models import Game, Player, Prompt, Submission, Vote, Suggestion


def purge_prompt_rows(game: Game) -> int:
    """Delete every prompt of ``game`` with its submissions, votes and suggestions.

    Clears ``current_prompt_id`` first. Returns the number of prompts removed.
    """
    game.current_prompt_id = None
    db.session.flush()

    prompt_ids = [pid for (pid,) in db.session.query(Prompt.id).filter_by(game_id=game.id).all()]
    if prompt_ids:
        Vote.query.filter(Vote.prompt_id.in_(prompt_ids)).delete(synchronize_session='fetch')
        Submission.query.filter(Submission.prompt_id.in_(prompt_ids)).delete(synchronize_session='fetch')
    Suggestion.query.filter_by(game_id=game.id).delete(synchronize_session='fetch')
    Prompt.query.filter_by(game_id=game.id).delete(synchronize_session='fetch')
    db.session.flush()
    return len(prompt_ids)


def delete_game(game_id: int) -> list:
    game = Game.query.filter_by(id=game_id).first()
    if not game:
        current_app.logger.info(f"[cleanup] game={game_id} already gone")
        return []

    room_code = game.room_code
    purge_prompt_rows(game)
    Player.query.filter_by(game_id=game.id).update({'team_id': None}, synchronize_session=False)
    Player.query.filter_by(game_id=game.id).delete(synchronize_session=False)
    db.session.delete(game)
    db.session.commit()

    current_app.logger.info(f"[cleanup] deleted game={game_id} code={room_code}")
    socketio.emit('session_ended', {'game_code': room_code}, to=f"game:{room_code}", namespace='/ws')
    return []


def sweep_idle_games(max_age_sec: int) -> list:
    """Delete games untouched for ``max_age_sec``; returns their room codes."""
    cutoff = time.time() - max_age_sec
    stale = Game.query.filter(Game.last_activity < cutoff).all()
    removed = []
    for game in stale:
        removed.append(game.room_code)
        delete_game(game.id)
    return removed
