"""Round and phase state machine.

Status changes go through :func:`set_status`, which checks them against
``TRANSITIONS``. Moving between rounds is two-phase: :func:`close_round`
settles the finished round (executions, The Cut) and is committed before
:func:`open_round` purges it and builds the next bracket.

Every operation that schedules work returns a list of
:class:`~.scheduler.FollowUp` values instead of starting tasks itself.
"""
import random
import time
from collections import defaultdict
from typing import List, Optional

from flask import current_app

from smacktalk import db
from smacktalk.models import (
    Prompt, Submission,
    LOBBY, PROMPTS, VOTING, ROUND_RESULTS, RESULTS, ROUND_VOTING,
    FIGHTER, CORNER_MAN,
)
from . import rules
from .auth import require_vip
from .cleanup import purge_prompt_rows
from .errors import InvalidActionError, InvalidTransitionError
from .lobby import fill_bots, game_players, get_game
from .pairing import (
    Matchup, active_fighters, battle_count, create_round_prompts,
    generate_pairings, pick_finalists,
)
from .scheduler import (
    FollowUp, AUTO_ANSWER, CAST_VOTES, SEND_SUGGESTIONS, DELETE_GAME, bot_delay,
)

TRANSITIONS = {
    LOBBY: {PROMPTS, VOTING, ROUND_RESULTS, RESULTS},
    PROMPTS: {VOTING, ROUND_RESULTS, RESULTS},
    # VOTING -> PROMPTS is a fresh sudden-death prompt
    VOTING: {PROMPTS, ROUND_RESULTS, RESULTS},
    ROUND_RESULTS: {PROMPTS, VOTING, RESULTS},
    RESULTS: set(),
}


def can_transition(current: str, target: str) -> bool:
    return current == target or target in TRANSITIONS.get(current, set())


def set_status(game, status: str, prompt_id: Optional[int] = None, round_status: Optional[str] = None) -> None:
    if not can_transition(game.status, status):
        raise InvalidTransitionError(f"Cannot move from {game.status} to {status}")
    game.status = status
    game.current_prompt_id = prompt_id
    game.round_status = round_status
    if status == RESULTS and not game.finished_at:
        game.finished_at = time.time()
    game.touch()


def round_prompts(game) -> List[Prompt]:
    return Prompt.query.filter_by(game_id=game.id).order_by(Prompt.id).all()


def has_human_corner_man(captain_id, players) -> bool:
    return any(p.role == CORNER_MAN and p.team_id == captain_id and not p.is_bot for p in players)


def corner_men_of(captain_id, players) -> list:
    return [p for p in players if p.role == CORNER_MAN and p.team_id == captain_id]


def assign_corner_man(loser, captain, players, warn_if_taken: bool = False) -> None:
    """Make ``loser`` a corner man for ``captain``; the loser's own corner men follow."""
    if warn_if_taken:
        existing = [p for p in corner_men_of(captain.id, players) if p.id != loser.id]
        if existing:
            current_app.logger.warning(
                f"[round] {loser.name} lost to {captain.name} who already has {len(existing)} "
                f"corner man/men; assigning as an extra corner man"
            )
    for follower in corner_men_of(loser.id, players):
        follower.team_id = captain.id
    loser.role = CORNER_MAN
    loser.team_id = captain.id
    loser.win_streak = 0
    current_app.logger.info(f"[round] corner man {loser.name} -> supporting {captain.name}")


def vote_follow_up(game, prompt, players) -> FollowUp:
    by_id = {p.id: p for p in players}
    bot_only = all(by_id[pid].is_bot for pid in prompt.assigned_ids if pid in by_id)
    return FollowUp(
        CAST_VOTES,
        bot_delay(current_app, bot_only),
        {'game_id': game.id, 'prompt_id': prompt.id},
    )


def answer_follow_ups(game, prompts, players) -> List[FollowUp]:
    by_id = {p.id: p for p in players}
    follow_ups = []
    for prompt in prompts:
        if prompt.is_bye:
            continue
        for pid in prompt.assigned_ids:
            player = by_id.get(pid)
            if player and player.is_bot and not has_human_corner_man(pid, players):
                follow_ups.append(FollowUp(
                    AUTO_ANSWER,
                    bot_delay(current_app),
                    {'game_id': game.id, 'player_id': pid, 'prompt_id': prompt.id},
                ))
    return follow_ups


def suggestion_follow_up(game) -> FollowUp:
    return FollowUp(SEND_SUGGESTIONS, bot_delay(current_app), {'game_id': game.id})


def finish_game(game) -> List[FollowUp]:
    set_status(game, RESULTS)
    delay_sec = int(current_app.config.get('GAME_CLEANUP_DELAY_SEC', 3600))
    current_app.logger.info(f"[round] game={game.id} finished; cleanup in {delay_sec}s")
    return [FollowUp(DELETE_GAME, delay_sec * 1000, {'game_id': game.id})]


def close_out_round(game) -> List[FollowUp]:
    """ROUND_RESULTS, or RESULTS when this was the last round."""
    if int(game.current_round) < int(game.max_rounds or 0):
        set_status(game, ROUND_RESULTS)
        return []
    return finish_game(game)


def next_playable_prompt(game, prompts, players, after_id=None) -> Optional[Prompt]:
    """The next two-player prompt (id order) whose combatants are both standing.

    A prompt at the round's bragging index is still played after its matchup
    has been decided. Byes are never played.
    """
    round_rules = rules.round_rules_for(game)
    knocked_out = {p.id for p in players if p.knocked_out or p.role != FIGHTER}
    positions = defaultdict(int)
    started = after_id is None
    for prompt in prompts:
        key = tuple(prompt.assigned_ids)
        position = positions[key]
        positions[key] += 1
        if not started:
            started = prompt.id == after_id
            continue
        if prompt.is_bye:
            continue
        if not any(pid in knocked_out for pid in prompt.assigned_ids):
            return prompt
        if round_rules.bragging_prompt_index is not None and position == round_rules.bragging_prompt_index:
            current_app.logger.info(f"[round] game={game.id} prompt={prompt.id} played as bragging round")
            return prompt
        current_app.logger.info(f"[round] game={game.id} skipping prompt={prompt.id}, a combatant is out")
    return None


def expected_submissions(prompts) -> int:
    return 2 * sum(1 for p in prompts if not p.is_bye)


def maybe_begin_voting(game) -> List[FollowUp]:
    """Move PROMPTS -> VOTING once every two-player prompt has both answers."""
    if game.status != PROMPTS:
        return []
    prompts = round_prompts(game)
    battle_ids = [p.id for p in prompts if not p.is_bye]
    if not battle_ids:
        return []
    received = Submission.query.filter(Submission.prompt_id.in_(battle_ids)).count()
    expected = expected_submissions(prompts)
    if received < expected:
        return []

    players = game_players(game)
    first = next_playable_prompt(game, prompts, players)
    if first is None:
        return end_of_round(game, players)
    set_status(game, VOTING, prompt_id=first.id, round_status=ROUND_VOTING)
    current_app.logger.info(f"[round] game={game.id} all {received}/{expected} answers in; voting on prompt={first.id}")
    return [vote_follow_up(game, first, players)]


def create_sudden_death_prompt(game, finalists, players) -> List[FollowUp]:
    """Purge the previous exchange and put one fresh prompt to the two finalists."""
    purge_prompt_rows(game)
    round_rules = rules.round_rules_for(game)
    prompts = create_round_prompts(game, [Matchup((finalists[0].id, finalists[1].id))], round_rules)
    set_status(game, PROMPTS, prompt_id=prompts[0].id)
    current_app.logger.info(
        f"[round] game={game.id} sudden death: {finalists[0].name} vs {finalists[1].name} prompt={prompts[0].id}"
    )
    return answer_follow_ups(game, prompts, players) + [suggestion_follow_up(game)]


def end_of_round(game, players) -> List[FollowUp]:
    """No playable prompt remains in the current round."""
    round_rules = rules.round_rules_for(game)
    survivors = active_fighters(players)
    if round_rules.sudden_death and len(survivors) == 2:
        return create_sudden_death_prompt(game, survivors, players)
    return close_out_round(game)


def _execute_lower_hp(game, players, prompts) -> None:
    by_id = {p.id: p for p in players}
    seen = set()
    for prompt in prompts:
        ids = prompt.assigned_ids
        if len(ids) != 2 or tuple(ids) in seen:
            continue
        seen.add(tuple(ids))
        a, b = by_id.get(ids[0]), by_id.get(ids[1])
        if not (a and b and a.is_active_fighter and b.is_active_fighter):
            continue
        if a.hp < b.hp:
            loser, winner = a, b
        elif b.hp < a.hp:
            loser, winner = b, a
        else:
            loser = random.choice([a, b])
            winner = b if loser is a else a
        current_app.logger.info(f"[round] game={game.id} executing {loser.name} ({loser.hp} HP) vs {winner.name} ({winner.hp} HP)")
        loser.hp = 0
        loser.knocked_out = True
        assign_corner_man(loser, winner, players)


def _least_loaded(candidates, players):
    return min(candidates, key=lambda p: (len(corner_men_of(p.id, players)), -p.hp, p.id))


def _the_cut(game, players, prompts, cut_size) -> None:
    ranked = sorted(active_fighters(players), key=lambda p: (-p.hp, p.id))
    keep, cut = ranked[:cut_size], ranked[cut_size:]
    if not keep:
        return
    keep_ids = {p.id for p in keep}
    by_id = {p.id: p for p in players}

    opponents = {}
    for prompt in prompts:
        ids = prompt.assigned_ids
        if len(ids) == 2:
            opponents.setdefault(ids[0], ids[1])
            opponents.setdefault(ids[1], ids[0])

    for player in cut:
        opponent_id = opponents.get(player.id)
        if opponent_id in keep_ids:
            captain = by_id[opponent_id]
        else:
            captain = _least_loaded(keep, players)
        assign_corner_man(player, captain, players)
    current_app.logger.info(
        f"[round] game={game.id} the cut: {', '.join(p.name for p in keep)} advance; {len(cut)} cut"
    )


def close_round(game) -> None:
    """Run the finished round's closing action. Does not purge anything."""
    round_rules = rules.round_rules_for(game)
    if not round_rules.closing_action:
        return
    players = game_players(game)
    prompts = round_prompts(game)
    if round_rules.closing_action == rules.EXECUTE_LOWER_HP:
        _execute_lower_hp(game, players, prompts)
    elif round_rules.closing_action == rules.THE_CUT:
        _the_cut(game, players, prompts, round_rules.cut_size)
    db.session.flush()


def _seat_finalists(game, players, round_rules) -> None:
    finalists = pick_finalists(players)
    finalist_ids = {p.id for p in finalists}
    for player in active_fighters(players):
        if player.id not in finalist_ids and finalists:
            assign_corner_man(player, _least_loaded(finalists, players), players)
    if round_rules.reset_hp:
        for player in finalists:
            player.hp = round_rules.reset_hp
            player.max_hp = round_rules.reset_hp


def open_round(game, number: int) -> List[FollowUp]:
    ruleset = rules.get_ruleset(game.ruleset)
    round_rules = ruleset.round(number)
    purge_prompt_rows(game)
    game.current_round = number

    players = game_players(game)
    for player in players:
        player.win_streak = 0
        if round_rules.reset_special_bar:
            player.special_bar = 0.0
    if round_rules.pairing == rules.FINAL:
        _seat_finalists(game, players, round_rules)
    elif round_rules.reset_hp:
        for player in active_fighters(players):
            player.hp = round_rules.reset_hp
            player.max_hp = round_rules.reset_hp

    matchups = generate_pairings(players, round_rules)
    if battle_count(matchups) == 0:
        current_app.logger.info(f"[round] game={game.id} round {number} has no battles")
        set_status(game, ROUND_RESULTS)
        return []

    prompts = create_round_prompts(game, matchups, round_rules)
    set_status(game, PROMPTS)
    current_app.logger.info(
        f"[round] game={game.id} round {number} ({round_rules.name}): "
        f"{battle_count(matchups)} matchup(s), {len(prompts)} prompt(s)"
    )

    follow_ups = answer_follow_ups(game, prompts, players)
    follow_ups += maybe_begin_voting(game)
    if game.status == PROMPTS:
        follow_ups.append(suggestion_follow_up(game))
    return follow_ups


def start_round_1(game_id):
    game = get_game(game_id, lock=True)
    if game.status != LOBBY:
        raise InvalidTransitionError("Game has already started")
    players = game_players(game)
    if not players:
        raise InvalidActionError("No players in game")

    fill_bots(game, players)
    follow_ups = open_round(game, 1)
    db.session.commit()
    return game, follow_ups


def next_round(game_id, vip_id, credential):
    game = get_game(game_id, lock=True)
    require_vip(game, vip_id, credential)
    if game.status != ROUND_RESULTS:
        raise InvalidTransitionError("The current round is not finished")

    finished = int(game.current_round)
    close_round(game)
    db.session.commit()

    players = game_players(game)
    if len(active_fighters(players)) < 2 or finished >= int(game.max_rounds or 0):
        follow_ups = finish_game(game)
    else:
        follow_ups = open_round(game, finished + 1)
    db.session.commit()
    current_app.logger.info(f"[round] game={game.id} round {finished} -> status={game.status} round={game.current_round}")
    return game, follow_ups
