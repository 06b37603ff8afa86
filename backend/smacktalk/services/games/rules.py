"""Ruleset tables.

A game picks one ruleset at creation time. Every round of a ruleset is
described by a :class:`RoundRules` entry; the pairing generator, damage
calculator, resolver and round state machine read their knobs from it
instead of branching on round numbers.
"""
from dataclasses import dataclass, field
from typing import Dict, Optional, Tuple

DAMAGE_CAP = 35
COMBO_BONUS_DAMAGE = 15
SPECIAL_BAR_MAX = 3.0
SPECIAL_BAR_STEP = 1.0

# Pairing modes
SEQUENTIAL = 'sequential'
CULL = 'cull'
GAUNTLET = 'gauntlet'
SEEDED = 'seeded'
FINAL = 'final'

# Closing actions run by close_round before the next round opens
EXECUTE_LOWER_HP = 'execute_lower_hp'
THE_CUT = 'the_cut'

JAB = 'jab'
HAYMAKER = 'haymaker'
FLYING_KICK = 'flying_kick'


@dataclass(frozen=True)
class AttackType:
    name: str
    dealt: float
    received: float


ATTACK_TYPES: Dict[str, AttackType] = {
    JAB: AttackType(JAB, dealt=1.0, received=1.0),
    HAYMAKER: AttackType(HAYMAKER, dealt=2.0, received=2.0),
    FLYING_KICK: AttackType(FLYING_KICK, dealt=3.0, received=4.0),
}


def attack_type(name: Optional[str]) -> AttackType:
    return ATTACK_TYPES.get(name or JAB, ATTACK_TYPES[JAB])


@dataclass(frozen=True)
class RoundRules:
    number: int
    name: str
    multiplier: float
    pairing: str
    prompts_per_matchup: int = 1
    # gauntlet: number of independent pairing passes
    slots: int = 1
    forms_teams: bool = False
    # 1 means ordinary damage cannot knock out; only instant-KO mechanics can
    hp_floor: int = 0
    special_bar: bool = False
    attack_types: bool = False
    prompt_types: Tuple[str, ...] = ()
    # jump to ROUND_RESULTS once active fighters drop to this many (0 = never)
    early_exit_survivors: int = 0
    sudden_death: bool = False
    # HP (and max HP) given to fighters entering the round
    reset_hp: Optional[int] = None
    reset_special_bar: bool = False
    # prompt index within a matchup still played after the matchup is decided
    bragging_prompt_index: Optional[int] = None
    closing_action: Optional[str] = None
    # fighters kept by THE_CUT
    cut_size: int = 4

    def prompt_type_for(self, index: int) -> Optional[str]:
        if index < len(self.prompt_types):
            return self.prompt_types[index]
        return None


@dataclass(frozen=True)
class Ruleset:
    name: str
    rounds: Tuple[RoundRules, ...] = field(default_factory=tuple)
    combo_streaks: bool = True

    @property
    def max_rounds(self) -> int:
        return len(self.rounds)

    def round(self, number: int) -> RoundRules:
        if number < 1:
            number = 1
        if number > len(self.rounds):
            number = len(self.rounds)
        return self.rounds[number - 1]


CLASSIC = Ruleset(
    name='classic',
    combo_streaks=True,
    rounds=(
        RoundRules(1, 'Opening', 1.0, SEQUENTIAL, prompts_per_matchup=3, forms_teams=True),
        RoundRules(2, 'The Cull', 1.3, CULL, prompts_per_matchup=3, forms_teams=True,
                   closing_action=EXECUTE_LOWER_HP),
        RoundRules(3, 'Gauntlet', 1.0, GAUNTLET, slots=3, early_exit_survivors=2),
        RoundRules(4, 'Showdown', 1.5, FINAL, sudden_death=True, reset_hp=100),
    ),
)

SHOWDOWN = Ruleset(
    name='showdown',
    combo_streaks=False,
    rounds=(
        RoundRules(1, 'Main Round', 1.0, SEQUENTIAL, prompts_per_matchup=5, forms_teams=True,
                   hp_floor=1, special_bar=True, closing_action=THE_CUT),
        RoundRules(2, 'Semi-Finals', 1.3, SEEDED, prompts_per_matchup=4, forms_teams=True,
                   prompt_types=(JAB, JAB, JAB, HAYMAKER), bragging_prompt_index=3,
                   reset_special_bar=True),
        RoundRules(3, 'Final', 1.0, FINAL, sudden_death=True, reset_hp=200, attack_types=True,
                   reset_special_bar=True),
    ),
)

RULESETS: Dict[str, Ruleset] = {r.name: r for r in (CLASSIC, SHOWDOWN)}


def get_ruleset(name: Optional[str]) -> Ruleset:
    return RULESETS.get(name or CLASSIC.name, CLASSIC)


def round_rules_for(game) -> RoundRules:
    return get_ruleset(game.ruleset).round(int(game.current_round or 1))
