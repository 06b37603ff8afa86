import random
from typing import List, Optional, Tuple

from flask import current_app

from smacktalk import db
from smacktalk.models import Game, Player, LOBBY, DEFAULT_HP
from .auth import generate_session_token, validate_player_name
from .errors import InvalidActionError, NotFoundError
from .rules import RULESETS

BOT_NAMES = ["Robot", "Cyborg", "Android", "Mecha", "Drone", "Golem", "Automaton", "Synth"]


def game_query(game_id, lock=False):
    """Query for one game. With ``lock`` the row is taken FOR UPDATE until the
    transaction ends and any copy already in the session is reloaded.
    """
    query = Game.query.filter_by(id=game_id)
    if lock:
        query = query.with_for_update().populate_existing()
    return query


def find_game(game_id, lock=False) -> Optional[Game]:
    if game_id is None:
        return None
    return game_query(game_id, lock=lock).first()


def get_game(game_id, lock=False) -> Game:
    game = find_game(game_id, lock=lock)
    if not game:
        raise NotFoundError("Game not found")
    return game


def get_game_by_code(room_code) -> Game:
    game = None
    if room_code:
        game = Game.query.filter_by(room_code=room_code.strip().upper()).first()
    if not game:
        raise NotFoundError("Room not found")
    return game


def game_players(game) -> List[Player]:
    return Player.query.filter_by(game_id=game.id).order_by(Player.id).all()


def create_game(ruleset=None) -> Game:
    name = ruleset or current_app.config.get('DEFAULT_RULESET', 'classic')
    if name not in RULESETS:
        raise InvalidActionError(f"Unknown ruleset: {name}")
    game = Game(ruleset=name, status=LOBBY, current_round=1, max_rounds=RULESETS[name].max_rounds)
    db.session.add(game)
    db.session.commit()
    current_app.logger.info(f"[lobby] created game={game.id} code={game.room_code} ruleset={name}")
    return game


def join_game(room_code, name) -> Tuple[Player, str]:
    """Add a human player to a lobby; the first one in becomes VIP.

    Returns the player and the plain session token. Only a bcrypt hash of the
    token is stored.
    """
    game = get_game_by_code(room_code)
    if game.status != LOBBY:
        raise InvalidActionError("This game is not in the lobby")

    validated = validate_player_name(name)
    existing = game_players(game)
    if any(p.name.lower() == validated.lower() for p in existing):
        raise InvalidActionError("Name taken")

    token = generate_session_token()
    player = Player(
        game_id=game.id,
        name=validated,
        is_vip=not existing,
        hp=DEFAULT_HP,
        max_hp=DEFAULT_HP,
    )
    player.set_session_token(token)
    db.session.add(player)
    game.touch()
    db.session.commit()
    current_app.logger.info(f"[lobby] game={game.id} player={player.id} joined vip={player.is_vip}")
    return player, token


def fill_bots(game, players) -> List[Player]:
    """Top the lobby up with bots to MIN_PLAYERS, rounded up to an even count."""
    min_players = int(current_app.config.get('MIN_PLAYERS', 6))
    target = max(len(players), min_players)
    if target % 2:
        target += 1

    taken = {p.name.lower() for p in players}
    bots = []
    for i in range(target - len(players)):
        name = f"{BOT_NAMES[i % len(BOT_NAMES)]}-{random.randint(0, 999)}"
        while name.lower() in taken:
            name = f"{BOT_NAMES[i % len(BOT_NAMES)]}-{random.randint(0, 999)}"
        taken.add(name.lower())
        bot = Player(game_id=game.id, name=name, is_bot=True, hp=DEFAULT_HP, max_hp=DEFAULT_HP)
        db.session.add(bot)
        bots.append(bot)
    if bots:
        db.session.flush()
        current_app.logger.info(f"[lobby] game={game.id} added {len(bots)} bot(s)")
    return bots
