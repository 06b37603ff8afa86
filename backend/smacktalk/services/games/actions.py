import time

from flask import current_app
from sqlalchemy.exc import IntegrityError

from smacktalk import db
from smacktalk.models import (
    Player, Prompt, Submission, Suggestion, Vote,
    PROMPTS, VOTING, ROUND_VOTING, ROUND_REVEAL, CORNER_MAN,
)
from . import rules
from .auth import MAX_SUGGESTION_LENGTH, require_player, validate_text_input
from .errors import AuthorizationError, InvalidActionError, InvalidTransitionError, NotFoundError
from .lobby import game_players, get_game
from .rounds import maybe_begin_voting


def _get_prompt(game, prompt_id) -> Prompt:
    prompt = Prompt.query.filter_by(id=prompt_id, game_id=game.id).first() if prompt_id is not None else None
    if not prompt:
        raise NotFoundError("Prompt not found")
    return prompt


def eligible_voters(prompt, players) -> list:
    """Everyone except the combatants and their corner men."""
    combatants = set(prompt.assigned_ids)
    return [p for p in players if p.id not in combatants and not (p.team_id and p.team_id in combatants)]


def expected_votes(prompt, players) -> int:
    return max(1, len(eligible_voters(prompt, players)))


def update_reveal(game, prompt, players=None) -> bool:
    """Flip the round status to REVEAL once every eligible voter has voted."""
    players = players if players is not None else game_players(game)
    cast = Vote.query.filter_by(prompt_id=prompt.id).count()
    voters = eligible_voters(prompt, players)
    expected = max(1, len(voters))
    current_app.logger.info(f"[vote] game={game.id} prompt={prompt.id} votes {cast}/{expected}")
    if not voters:
        current_app.logger.info(f"[vote] game={game.id} prompt={prompt.id} nobody is eligible to vote")
    if (cast >= expected or not voters) and game.round_status == ROUND_VOTING:
        game.round_status = ROUND_REVEAL
        game.touch()
        return True
    return False


def _record_answer(game, fighter, prompt_id, text, attack_type):
    if game.status != PROMPTS:
        raise InvalidTransitionError("Cannot submit answers at this time")
    prompt = _get_prompt(game, prompt_id)
    if prompt.is_bye:
        raise InvalidActionError("A bye does not take answers")
    if fighter.id not in prompt.assigned_ids:
        raise InvalidActionError(f"{fighter.name} is not assigned to this prompt")
    if Submission.query.filter_by(prompt_id=prompt.id, player_id=fighter.id).first():
        raise InvalidActionError("Already submitted for this prompt")

    max_length = int(current_app.config.get('MAX_ANSWER_LENGTH', 280))
    validated = validate_text_input(text, max_length, "Answer")
    if prompt.prompt_type == rules.JAB and len(validated.split()) > 1:
        raise InvalidActionError("Jab answers must be a single word!")

    kept_attack = None
    if attack_type and rules.round_rules_for(game).attack_types:
        if attack_type not in rules.ATTACK_TYPES:
            raise InvalidActionError(f"Unknown attack type: {attack_type}")
        kept_attack = attack_type

    submission = Submission(
        prompt_id=prompt.id,
        player_id=fighter.id,
        text=validated,
        submitted_at=time.time(),
        attack_type=kept_attack,
    )
    db.session.add(submission)
    try:
        db.session.flush()
    except IntegrityError:
        db.session.rollback()
        raise InvalidActionError("Already submitted for this prompt")

    current_app.logger.info(
        f"[answer] game={game.id} player={fighter.id} prompt={prompt.id}"
        + (f" attack={kept_attack}" if kept_attack else "")
    )
    game.touch()
    follow_ups = maybe_begin_voting(game)
    db.session.commit()
    return submission, follow_ups


def submit_answer(game_id, player_id, credential, prompt_id, text, attack_type=None):
    game = get_game(game_id, lock=True)
    player = require_player(game, player_id, credential)
    return _record_answer(game, player, prompt_id, text, attack_type)


def submit_answer_for_bot(game_id, player_id, credential, prompt_id, text, attack_type=None):
    """A corner man writes the answer for their bot captain."""
    game = get_game(game_id, lock=True)
    corner_man = require_player(game, player_id, credential)
    if corner_man.role != CORNER_MAN:
        raise AuthorizationError("Only Corner Men can submit for bots")
    if not corner_man.team_id:
        raise InvalidActionError("No team assigned")
    captain = Player.query.filter_by(id=corner_man.team_id, game_id=game.id).first()
    if not captain:
        raise NotFoundError("Captain not found")
    if not captain.is_bot:
        raise InvalidActionError("Can only submit for bot captains")
    return _record_answer(game, captain, prompt_id, text, attack_type)


def submit_vote(game_id, player_id, credential, prompt_id, submission_id):
    game = get_game(game_id, lock=True)
    voter = require_player(game, player_id, credential)
    if game.status != VOTING or game.round_status != ROUND_VOTING:
        raise InvalidTransitionError("Cannot vote at this time")
    prompt = _get_prompt(game, prompt_id)
    if game.current_prompt_id != prompt.id:
        raise InvalidActionError("This battle is not on stage")

    submission = Submission.query.filter_by(id=submission_id).first() if submission_id is not None else None
    if not submission or submission.prompt_id != prompt.id:
        raise InvalidActionError("Invalid submission")
    if Vote.query.filter_by(prompt_id=prompt.id, player_id=voter.id).first():
        current_app.logger.warning(f"[vote] game={game.id} duplicate vote blocked for player={voter.id}")
        raise InvalidActionError("Already voted")

    combatants = set(prompt.assigned_ids)
    if voter.id in combatants:
        raise InvalidActionError("You cannot vote in your own battle")
    if voter.team_id and voter.team_id in combatants:
        raise InvalidActionError("You cannot vote for your own team")

    vote = Vote(prompt_id=prompt.id, player_id=voter.id, submission_id=submission.id)
    db.session.add(vote)
    try:
        db.session.flush()
    except IntegrityError:
        db.session.rollback()
        raise InvalidActionError("Already voted")

    update_reveal(game, prompt)
    db.session.commit()
    return vote


def submit_suggestion(game_id, player_id, credential, prompt_id, text):
    game = get_game(game_id, lock=True)
    player = require_player(game, player_id, credential)
    if player.role != CORNER_MAN:
        raise AuthorizationError("Only Corner Men can suggest")
    if not player.team_id:
        raise InvalidActionError("No team assigned")
    if game.status != PROMPTS:
        raise InvalidTransitionError("Suggestions are only taken while answers are being written")
    captain = Player.query.filter_by(id=player.team_id, game_id=game.id).first()
    if not captain:
        raise NotFoundError("Captain not found")
    prompt = _get_prompt(game, prompt_id)
    if captain.id not in prompt.assigned_ids:
        raise InvalidActionError("Your captain is not assigned to this prompt")

    validated = validate_text_input(text, MAX_SUGGESTION_LENGTH, "Suggestion")
    suggestion = Suggestion(
        game_id=game.id,
        prompt_id=prompt.id,
        sender_id=player.id,
        target_id=captain.id,
        text=validated,
    )
    db.session.add(suggestion)
    game.touch()
    db.session.commit()
    return suggestion
