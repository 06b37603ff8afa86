import re
import secrets

from flask import current_app

from smacktalk.models import Player
from .errors import AuthorizationError, InvalidActionError, NotFoundError

MAX_SUGGESTION_LENGTH = 280
_NAME_PATTERN = re.compile(r"^[\w\s\-']+$")


def generate_session_token() -> str:
    return secrets.token_urlsafe(24)


def require_player(game, player_id, credential) -> Player:
    """Return the player if ``credential`` is their session token for ``game``."""
    player = None
    if player_id is not None:
        player = Player.query.filter_by(id=player_id, game_id=game.id).first()
    if not player:
        raise NotFoundError("Player not found")
    if not player.check_session_token(credential):
        current_app.logger.warning(f"[auth] game={game.id} player={player.id} bad session token")
        raise AuthorizationError("Invalid session token")
    return player


def require_vip(game, player_id, credential) -> Player:
    player = require_player(game, player_id, credential)
    if not player.is_vip:
        raise AuthorizationError("Only VIP can perform this action")
    return player


def validate_text_input(text, max_length: int, field_name: str) -> str:
    if not text or not isinstance(text, str):
        raise InvalidActionError(f"{field_name} is required")
    trimmed = text.strip()
    if not trimmed:
        raise InvalidActionError(f"{field_name} cannot be empty")
    if len(trimmed) > max_length:
        raise InvalidActionError(f"{field_name} must be {max_length} characters or less")
    return trimmed


def validate_player_name(name) -> str:
    max_length = int(current_app.config.get('MAX_PLAYER_NAME_LENGTH', 20))
    validated = validate_text_input(name, max_length, "Player name")
    if not _NAME_PATTERN.match(validated):
        raise InvalidActionError(
            "Player name can only contain letters, numbers, spaces, hyphens, and apostrophes"
        )
    return validated
