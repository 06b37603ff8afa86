"""Battle damage calculation.

Everything in here is pure: :func:`calculate_battle` reads two
:class:`Combatant` snapshots and returns a :class:`CombatResult`. Nothing is
written to the database; the resolver applies the result.
"""
import math
from dataclasses import dataclass
from typing import Optional, Tuple

from .rules import (
    COMBO_BONUS_DAMAGE,
    DAMAGE_CAP,
    SPECIAL_BAR_MAX,
    SPECIAL_BAR_STEP,
    RoundRules,
    attack_type,
)

NO_VOTES = 'no_votes'
WIN = 'win'
TIE = 'tie'
SINGLE_KO_TIE = 'single_ko_tie'
DOUBLE_KO_TIE = 'double_ko_tie'

COMBO_KO = 'combo'
SPECIAL_KO = 'special'


@dataclass(frozen=True)
class Combatant:
    player_id: int
    hp: int
    votes: int = 0
    win_streak: int = 0
    special_bar: float = 0.0
    knocked_out: bool = False
    submitted_at: Optional[float] = None
    attack_type: Optional[str] = None


@dataclass(frozen=True)
class CombatantResult:
    player_id: int
    hp: int
    knocked_out: bool
    win_streak: int
    special_bar: float
    # computed damage, floored; the full HP for an instant KO
    damage: int = 0


@dataclass(frozen=True)
class CombatResult:
    outcome: str
    left: CombatantResult
    right: CombatantResult
    total_votes: int
    winner_id: Optional[int] = None
    loser_id: Optional[int] = None
    instant_ko: Optional[str] = None

    @property
    def sides(self) -> Tuple[CombatantResult, CombatantResult]:
        return self.left, self.right

    @property
    def knocked_out_ids(self) -> set:
        return {side.player_id for side in self.sides if side.knocked_out}

    def for_player(self, player_id) -> Optional[CombatantResult]:
        for side in self.sides:
            if side.player_id == player_id:
                return side
        return None


def damage_after(hp: int, damage: float, hp_floor: int = 0) -> int:
    """HP left after ``damage``; ``hp_floor`` keeps a living fighter standing."""
    new_hp = max(0, math.floor(hp - damage))
    if hp_floor:
        new_hp = max(new_hp, min(hp, hp_floor))
    return new_hp


def _unchanged(c: Combatant) -> CombatantResult:
    return CombatantResult(c.player_id, c.hp, c.knocked_out, c.win_streak, c.special_bar)


def _submitted_first(a: Combatant, b: Combatant) -> bool:
    if a.submitted_at is None and b.submitted_at is None:
        return True
    if a.submitted_at is None:
        return False
    if b.submitted_at is None:
        return True
    return a.submitted_at < b.submitted_at


def _ordered(left, right, first_id):
    return (left, right) if left.player_id == first_id else (right, left)


def _resolve_win(winner: Combatant, loser: Combatant, total: int, rr: RoundRules, combo_streaks: bool):
    votes_against = total - loser.votes
    damage = (votes_against / total) * DAMAGE_CAP * rr.multiplier
    if rr.attack_types:
        damage = max(damage * attack_type(winner.attack_type).dealt,
                     damage * attack_type(loser.attack_type).received)

    instant_ko = None
    if combo_streaks:
        # Streak bonuses are evaluated before damage lands
        if winner.win_streak == 2:
            instant_ko = COMBO_KO
        elif winner.win_streak == 1:
            damage += COMBO_BONUS_DAMAGE

    bar = winner.special_bar
    if rr.special_bar:
        bar = min(SPECIAL_BAR_MAX, bar + SPECIAL_BAR_STEP)
        if bar >= SPECIAL_BAR_MAX:
            instant_ko = instant_ko or SPECIAL_KO
            bar = 0.0

    if instant_ko:
        new_hp = 0
        dealt = loser.hp
    else:
        new_hp = damage_after(loser.hp, damage, rr.hp_floor)
        dealt = math.floor(damage)

    winner_result = CombatantResult(winner.player_id, winner.hp, False, winner.win_streak + 1, bar)
    loser_result = CombatantResult(loser.player_id, new_hp, new_hp == 0, 0, loser.special_bar, dealt)
    return winner_result, loser_result, instant_ko


def _resolve_tie(left: Combatant, right: Combatant, rr: RoundRules):
    tie_damage = 0.5 * DAMAGE_CAP * rr.multiplier
    left_damage = right_damage = tie_damage
    if rr.attack_types:
        left_damage = max(tie_damage * attack_type(right.attack_type).dealt,
                          tie_damage * attack_type(left.attack_type).received)
        right_damage = max(tie_damage * attack_type(left.attack_type).dealt,
                           tie_damage * attack_type(right.attack_type).received)

    left_hp = damage_after(left.hp, left_damage, rr.hp_floor)
    right_hp = damage_after(right.hp, right_damage, rr.hp_floor)
    left_ko, right_ko = left_hp == 0, right_hp == 0

    if left_ko and right_ko:
        survivor, fallen = (left, right) if _submitted_first(left, right) else (right, left)
        fallen_damage = left_damage if fallen is left else right_damage
        survivor_damage = left_damage if survivor is left else right_damage
        return (
            DOUBLE_KO_TIE,
            CombatantResult(survivor.player_id, 1, False, survivor.win_streak + 1, survivor.special_bar,
                            math.floor(survivor_damage)),
            CombatantResult(fallen.player_id, 0, True, 0, fallen.special_bar, math.floor(fallen_damage)),
        )

    if left_ko or right_ko:
        survivor, fallen = (right, left) if left_ko else (left, right)
        survivor_hp = right_hp if left_ko else left_hp
        survivor_damage = right_damage if left_ko else left_damage
        fallen_damage = left_damage if left_ko else right_damage
        return (
            SINGLE_KO_TIE,
            CombatantResult(survivor.player_id, survivor_hp, False, survivor.win_streak + 1,
                            survivor.special_bar, math.floor(survivor_damage)),
            CombatantResult(fallen.player_id, 0, True, 0, fallen.special_bar, math.floor(fallen_damage)),
        )

    return (
        TIE,
        CombatantResult(left.player_id, left_hp, False, 0, left.special_bar, math.floor(left_damage)),
        CombatantResult(right.player_id, right_hp, False, 0, right.special_bar, math.floor(right_damage)),
    )


def calculate_battle(left: Combatant, right: Combatant, round_rules: RoundRules,
                     combo_streaks: bool = True) -> CombatResult:
    """Turn a vote tally into HP, knockout and streak changes for both sides.

    A battle nobody voted on changes nothing, except in a sudden-death round
    where 0-0 is scored as a tie so the final always runs down.
    """
    total = left.votes + right.votes
    if total == 0 and not round_rules.sudden_death:
        return CombatResult(NO_VOTES, _unchanged(left), _unchanged(right), 0)

    if left.votes == right.votes:
        outcome, first, second = _resolve_tie(left, right, round_rules)
        winner_id = loser_id = None
        if outcome != TIE:
            winner_id, loser_id = first.player_id, second.player_id
        left_result, right_result = _ordered(first, second, left.player_id)
        return CombatResult(outcome, left_result, right_result, total, winner_id, loser_id)

    winner, loser = (left, right) if left.votes > right.votes else (right, left)
    winner_result, loser_result, instant_ko = _resolve_win(winner, loser, total, round_rules, combo_streaks)
    left_result, right_result = _ordered(winner_result, loser_result, left.player_id)
    return CombatResult(WIN, left_result, right_result, total,
                        winner.player_id, loser.player_id, instant_ko)
