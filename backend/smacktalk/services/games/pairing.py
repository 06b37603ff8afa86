"""Bracket pairing for each round.

``generate_pairings`` is pure: it takes player rows (or anything with
``id``, ``role``, ``knocked_out``, ``hp`` and ``team_id``) and returns
matchups. ``create_round_prompts`` turns those matchups into Prompt rows.
"""
import random
from dataclasses import dataclass
from typing import List, Sequence, Tuple

from smacktalk import db
from smacktalk.models import Prompt, FIGHTER, CORNER_MAN
from . import rules
from .prompt_pool import PromptPool

BYE_TEXT = "Bye - advances without a battle"


@dataclass(frozen=True)
class Matchup:
    player_ids: Tuple[int, ...]

    @property
    def is_bye(self) -> bool:
        return len(self.player_ids) < 2


def active_fighters(players) -> list:
    return [p for p in players if p.role == FIGHTER and not p.knocked_out]


def captain_ids(players) -> set:
    return {p.team_id for p in players if p.role == CORNER_MAN and p.team_id}


def _pair_in_order(ordered) -> List[Matchup]:
    matchups = []
    for i in range(0, len(ordered), 2):
        if i + 1 >= len(ordered):
            matchups.append(Matchup((ordered[i].id,)))
        else:
            matchups.append(Matchup((ordered[i].id, ordered[i + 1].id)))
    return matchups


def _sequential(players, rng) -> List[Matchup]:
    eligible = active_fighters(players)
    rng.shuffle(eligible)
    return _pair_in_order(eligible)


def _cull(players, rng) -> List[Matchup]:
    captains = captain_ids(players)
    fighters = active_fighters(players)
    byes = [Matchup((p.id,)) for p in fighters if p.id in captains]
    # Predatory pairing: lowest HP meets lowest HP
    contenders = sorted((p for p in fighters if p.id not in captains), key=lambda p: (p.hp, p.id))
    return _pair_in_order(contenders) + byes


def _gauntlet(players, rng, slots) -> List[Matchup]:
    fighters = active_fighters(players)
    matchups = []
    for _ in range(slots):
        shuffled = list(fighters)
        rng.shuffle(shuffled)
        matchups.extend(_pair_in_order(shuffled))
    return matchups


def _seeded(players, rng) -> List[Matchup]:
    ranked = sorted(active_fighters(players), key=lambda p: (-p.hp, p.id))
    matchups = []
    lo, hi = 0, len(ranked) - 1
    while lo < hi:
        matchups.append(Matchup((ranked[lo].id, ranked[hi].id)))
        lo += 1
        hi -= 1
    if lo == hi:
        matchups.append(Matchup((ranked[lo].id,)))
    return matchups


def pick_finalists(players, count=2) -> list:
    return sorted(active_fighters(players), key=lambda p: (-p.hp, p.id))[:count]


def _final(players, rng) -> List[Matchup]:
    finalists = pick_finalists(players)
    if len(finalists) < 2:
        return [Matchup((p.id,)) for p in finalists]
    return [Matchup((finalists[0].id, finalists[1].id))]


def generate_pairings(players: Sequence, round_rules: rules.RoundRules, rng=None) -> List[Matchup]:
    rng = rng or random
    mode = round_rules.pairing
    if mode == rules.SEQUENTIAL:
        return _sequential(players, rng)
    if mode == rules.CULL:
        return _cull(players, rng)
    if mode == rules.GAUNTLET:
        return _gauntlet(players, rng, round_rules.slots)
    if mode == rules.SEEDED:
        return _seeded(players, rng)
    if mode == rules.FINAL:
        return _final(players, rng)
    raise ValueError(f"Unknown pairing mode: {mode}")


def battle_count(matchups) -> int:
    return sum(1 for m in matchups if not m.is_bye)


def create_round_prompts(game, matchups, round_rules, rng=None) -> List[Prompt]:
    """Insert Prompt rows for ``matchups`` in bracket order.

    Pairs get ``prompts_per_matchup`` prompts each; a bye gets a single
    one-assignee prompt. Updates ``game.used_indices``; does not commit.
    """
    pool = PromptPool(game.used_indices, rng=rng)
    created = []
    for matchup in matchups:
        if matchup.is_bye:
            prompt = Prompt(game_id=game.id, text=BYE_TEXT)
            prompt.assigned_ids = matchup.player_ids
            db.session.add(prompt)
            created.append(prompt)
            continue
        for index, text in enumerate(pool.pick(round_rules.prompts_per_matchup)):
            prompt = Prompt(game_id=game.id, text=text, prompt_type=round_rules.prompt_type_for(index))
            prompt.assigned_ids = matchup.player_ids
            db.session.add(prompt)
            created.append(prompt)
    game.used_indices = pool.used_indices
    db.session.flush()
    return created
