from collections import Counter
from typing import List, Optional

from flask import current_app

from smacktalk import db
from smacktalk.models import Prompt, Player, Submission, Vote, VOTING, ROUND_VOTING
from . import rules
from .auth import require_vip
from .damage import Combatant, CombatResult, NO_VOTES, calculate_battle
from .errors import InvalidTransitionError
from .lobby import game_players, get_game
from .pairing import active_fighters
from .rounds import (
    assign_corner_man, close_out_round, end_of_round, finish_game,
    next_playable_prompt, round_prompts, set_status, vote_follow_up,
)
from .scheduler import FollowUp


def _combatant(player, submission, votes_for) -> Combatant:
    return Combatant(
        player_id=player.id,
        hp=player.hp,
        votes=votes_for.get(submission.id, 0) if submission else 0,
        win_streak=player.win_streak or 0,
        special_bar=player.special_bar or 0.0,
        knocked_out=player.knocked_out,
        submitted_at=submission.submitted_at if submission else None,
        attack_type=submission.attack_type if submission else None,
    )


def resolve_battle(game, prompt) -> Optional[CombatResult]:
    """Score ``prompt`` and write the outcome to both combatants.

    Returns None when nothing was fought: a missing prompt, a bye, or a
    bragging round where one side is already out.
    """
    if prompt is None:
        current_app.logger.warning(f"[battle] game={game.id} no prompt to resolve")
        return None
    ids = prompt.assigned_ids
    if len(ids) < 2:
        return None

    players = {p.id: p for p in Player.query.filter(Player.id.in_(ids)).all()}
    if len(players) < 2:
        current_app.logger.warning(f"[battle] game={game.id} prompt={prompt.id} combatant missing")
        return None
    left, right = players[ids[0]], players[ids[1]]
    if not (left.is_active_fighter and right.is_active_fighter):
        current_app.logger.info(f"[battle] game={game.id} prompt={prompt.id} bragging round, no damage")
        return None

    submissions = {s.player_id: s for s in Submission.query.filter_by(prompt_id=prompt.id).all()}
    votes_for = Counter(v.submission_id for v in Vote.query.filter_by(prompt_id=prompt.id).all())
    round_rules = rules.round_rules_for(game)
    ruleset = rules.get_ruleset(game.ruleset)

    result = calculate_battle(
        _combatant(left, submissions.get(left.id), votes_for),
        _combatant(right, submissions.get(right.id), votes_for),
        round_rules,
        combo_streaks=ruleset.combo_streaks,
    )
    if result.outcome == NO_VOTES:
        current_app.logger.warning(f"[battle] game={game.id} prompt={prompt.id} no votes cast, nothing changes")
        return result
    if result.total_votes == 0:
        current_app.logger.info(f"[battle] game={game.id} prompt={prompt.id} no votes in sudden death, scored as a tie")

    apply_result(game, result, round_rules, players)
    return result


def apply_result(game, result: CombatResult, round_rules, players) -> None:
    for side in result.sides:
        player = players[side.player_id]
        current_app.logger.info(
            f"[battle] game={game.id} {player.name}: {player.hp} -> {side.hp} HP "
            f"streak={side.win_streak} bar={side.special_bar} ko={side.knocked_out}"
        )
        player.hp = side.hp
        player.knocked_out = side.knocked_out
        player.win_streak = side.win_streak
        player.special_bar = side.special_bar

    if result.instant_ko:
        current_app.logger.info(f"[battle] game={game.id} instant KO ({result.instant_ko}) by player={result.winner_id}")

    loser = players.get(result.loser_id) if result.loser_id else None
    if round_rules.forms_teams and loser is not None and loser.knocked_out:
        assign_corner_man(loser, players[result.winner_id], game_players(game), warn_if_taken=True)
    db.session.flush()


def advance_battle(game) -> List[FollowUp]:
    """Resolve the prompt on stage and move to whatever comes next."""
    if game.current_prompt_id:
        prompt = Prompt.query.filter_by(id=game.current_prompt_id, game_id=game.id).first()
        resolve_battle(game, prompt)

    players = game_players(game)
    round_rules = rules.round_rules_for(game)
    survivors = active_fighters(players)

    if len(survivors) <= 1:
        if survivors:
            current_app.logger.info(f"[battle] game={game.id} {survivors[0].name} is the last fighter standing")
        else:
            current_app.logger.info(f"[battle] game={game.id} no fighters remain, draw")
        return finish_game(game)

    if round_rules.early_exit_survivors and len(survivors) <= round_rules.early_exit_survivors:
        current_app.logger.info(f"[battle] game={game.id} {len(survivors)} survivors, ending round early")
        return close_out_round(game)

    nxt = next_playable_prompt(game, round_prompts(game), players, after_id=game.current_prompt_id)
    if nxt is not None:
        set_status(game, VOTING, prompt_id=nxt.id, round_status=ROUND_VOTING)
        return [vote_follow_up(game, nxt, players)]
    return end_of_round(game, players)


def next_battle(game_id, vip_id, credential):
    game = get_game(game_id, lock=True)
    require_vip(game, vip_id, credential)
    if game.status != VOTING:
        raise InvalidTransitionError("No battle is in progress")
    current_app.logger.info(f"[battle] game={game.id} next battle, round={game.current_round} prompt={game.current_prompt_id}")
    follow_ups = advance_battle(game)
    db.session.commit()
    return game, follow_ups
