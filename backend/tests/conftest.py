import os
import sys
import pytest

# Ensure the backend root (containing the `smacktalk` package) is on sys.path
CURRENT_DIR = os.path.dirname(__file__)
BACKEND_ROOT = os.path.abspath(os.path.join(CURRENT_DIR, '..'))
if BACKEND_ROOT not in sys.path:
    sys.path.insert(0, BACKEND_ROOT)

from smacktalk import create_app, db, socketio
from smacktalk.models import (
    Game, Player, Prompt, Submission, Vote, LOBBY, CORNER_MAN,
)
from smacktalk.services.games.rules import get_ruleset


class TestConfig:
    TESTING = True
    SECRET_KEY = os.environ.get('SECRET_KEY', 'test-secret')
    SQLALCHEMY_DATABASE_URI = 'sqlite://'
    SQLALCHEMY_TRACK_MODIFICATIONS = False
    BCRYPT_LOG_ROUNDS = 4
    DEFAULT_RULESET = 'classic'
    MIN_PLAYERS = 6
    MAX_ANSWER_LENGTH = 280
    MAX_PLAYER_NAME_LENGTH = 20
    BOT_DELAY_MIN_MS = 200
    BOT_DELAY_JITTER_MS = 300
    BOT_ONLY_VOTE_DELAY_MS = 50
    GAME_CLEANUP_DELAY_SEC = 3600
    IDLE_GAME_TTL_SEC = 86400


@pytest.fixture()
def flask_app():
    application = create_app(TestConfig)
    with application.app_context():
        # Ensure models are imported so tables are created
        import smacktalk.models  # noqa: F401
        db.create_all()
        yield application
        db.session.remove()
        db.drop_all()


@pytest.fixture()
def client(flask_app):
    return flask_app.test_client()


@pytest.fixture()
def sio_client(flask_app):
    test_client = socketio.test_client(
        flask_app,
        flask_test_client=flask_app.test_client(),
        namespace='/ws'
    )
    yield test_client
    if test_client.is_connected('/ws'):
        test_client.disconnect(namespace='/ws')


@pytest.fixture()
def make_game(flask_app):
    def _make(ruleset='classic', status=LOBBY, current_round=1, **kwargs):
        game = Game(
            ruleset=ruleset,
            status=status,
            current_round=current_round,
            max_rounds=get_ruleset(ruleset).max_rounds,
            **kwargs
        )
        db.session.add(game)
        db.session.commit()
        return game
    return _make


@pytest.fixture()
def make_player(flask_app):
    counter = {'n': 0}

    def _make(game, name=None, token=None, captain=None, **kwargs):
        counter['n'] += 1
        player = Player(game_id=game.id, name=name or f"Player{counter['n']}", **kwargs)
        if captain is not None:
            player.role = CORNER_MAN
            player.team_id = captain.id
        if token:
            player.set_session_token(token)
        db.session.add(player)
        db.session.commit()
        return player
    return _make


@pytest.fixture()
def make_prompt(flask_app):
    def _make(game, players, text='A prompt', prompt_type=None):
        prompt = Prompt(game_id=game.id, text=text, prompt_type=prompt_type)
        prompt.assigned_ids = [p.id for p in players]
        db.session.add(prompt)
        db.session.commit()
        return prompt
    return _make


@pytest.fixture()
def answer(flask_app):
    def _answer(prompt, player, text='An answer', submitted_at=None, attack_type=None):
        submission = Submission(
            prompt_id=prompt.id,
            player_id=player.id,
            text=text,
            submitted_at=submitted_at,
            attack_type=attack_type,
        )
        db.session.add(submission)
        db.session.commit()
        return submission
    return _answer


@pytest.fixture()
def vote(flask_app):
    def _vote(prompt, voter, submission):
        row = Vote(prompt_id=prompt.id, player_id=voter.id, submission_id=submission.id)
        db.session.add(row)
        db.session.commit()
        return row
    return _vote


@pytest.fixture()
def fighter_state():
    """Reload a player and return the fields combat touches."""
    def _state(player):
        db.session.refresh(player)
        return {
            'hp': player.hp,
            'knocked_out': player.knocked_out,
            'role': player.role,
            'team_id': player.team_id,
            'win_streak': player.win_streak,
        }
    return _state
