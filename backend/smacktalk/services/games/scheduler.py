import random
import time
from dataclasses import dataclass, field
from typing import Iterable, Optional

from smacktalk import db, socketio
from smacktalk.models import Game
from .errors import GameError

AUTO_ANSWER = 'auto_answer'
CAST_VOTES = 'cast_votes'
SEND_SUGGESTIONS = 'send_suggestions'
DELETE_GAME = 'delete_game'


@dataclass(frozen=True)
class FollowUp:
    """Deferred work an engine operation wants done after it commits."""
    op: str
    delay_ms: int = 0
    args: dict = field(default_factory=dict)


def _operations():
    from . import bots, cleanup
    return {
        AUTO_ANSWER: bots.auto_answer,
        CAST_VOTES: bots.cast_votes,
        SEND_SUGGESTIONS: bots.send_suggestions,
        DELETE_GAME: cleanup.delete_game,
    }


def bot_delay(app, bot_only: bool = False) -> int:
    """Bot "thinking time" in ms; bot-only battles resolve almost instantly."""
    if bot_only:
        return int(app.config.get('BOT_ONLY_VOTE_DELAY_MS', 50))
    base = int(app.config.get('BOT_DELAY_MIN_MS', 200))
    jitter = int(app.config.get('BOT_DELAY_JITTER_MS', 300))
    return base + random.randint(0, max(0, jitter))


def emit_state_update(game: Optional[Game]) -> None:
    if not game:
        return
    socketio.emit(
        'state_update',
        {'game_code': game.room_code, 'status': game.status},
        to=f"game:{game.room_code}",
        namespace='/ws',
    )


def dispatch_follow_ups(app, follow_ups: Iterable[FollowUp]) -> None:
    """Run each follow-up after its delay on a background task.

    - No-ops in TESTING mode unless ENABLE_SCHEDULER_IN_TESTS is set
    - Under TESTING the work runs inline and the delay is skipped, except
      delayed cleanup, which is dropped so the game outlives the request
    - Follow-ups returned by an operation are dispatched in turn
    """
    follow_ups = list(follow_ups or [])
    if not follow_ups:
        return
    testing = app.config.get('TESTING')
    if testing and not app.config.get('ENABLE_SCHEDULER_IN_TESTS'):
        return

    for follow_up in follow_ups:
        if testing and follow_up.op == DELETE_GAME and follow_up.delay_ms > 0:
            app.logger.info(f"[follow-up-skip] op={follow_up.op} delay={follow_up.delay_ms}ms args={follow_up.args}")
            continue
        app.logger.info(f"[follow-up-set] op={follow_up.op} delay={follow_up.delay_ms}ms args={follow_up.args}")
        if testing:
            _worker(app, follow_up, sleep=False)
        else:
            socketio.start_background_task(_worker, app, follow_up)


def _worker(app, follow_up: FollowUp, sleep: bool = True) -> None:
    if sleep and follow_up.delay_ms > 0:
        time.sleep(follow_up.delay_ms / 1000.0)

    with app.app_context():
        handler = _operations().get(follow_up.op)
        if handler is None:
            app.logger.warning(f"[follow-up-abort] unknown op={follow_up.op}")
            return

        app.logger.info(f"[follow-up-fire] op={follow_up.op} args={follow_up.args}")
        try:
            produced = handler(**follow_up.args) or []
        except GameError as exc:
            # The game moved on while this was waiting
            db.session.rollback()
            app.logger.info(f"[follow-up-abort] op={follow_up.op} reason={exc.message}")
            return

        game_id = follow_up.args.get('game_id')
        if game_id is not None:
            emit_state_update(Game.query.filter_by(id=game_id).first())

    dispatch_follow_ups(app, produced)
