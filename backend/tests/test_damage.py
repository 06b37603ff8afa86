import dataclasses

import pytest

from smacktalk.services.games.damage import (
    Combatant, calculate_battle, damage_after,
    NO_VOTES, WIN, TIE, SINGLE_KO_TIE, DOUBLE_KO_TIE, COMBO_KO, SPECIAL_KO,
)
from smacktalk.services.games.rules import CLASSIC, SHOWDOWN, DAMAGE_CAP

OPENING = CLASSIC.round(1)
CULL = CLASSIC.round(2)
CLASSIC_FINAL = CLASSIC.round(4)
MAIN_ROUND = SHOWDOWN.round(1)
SEMI_FINALS = SHOWDOWN.round(2)
SHOWDOWN_FINAL = SHOWDOWN.round(3)


def test_no_votes_changes_nothing():
    left = Combatant(1, hp=40, win_streak=2, special_bar=1.0)
    right = Combatant(2, hp=70, win_streak=1)
    result = calculate_battle(left, right, OPENING)
    assert result.outcome == NO_VOTES
    assert (result.left.hp, result.left.win_streak, result.left.special_bar) == (40, 2, 1.0)
    assert (result.right.hp, result.right.win_streak) == (70, 1)
    assert result.winner_id is None and result.loser_id is None


def test_three_to_one_in_opening_round():
    result = calculate_battle(Combatant(1, hp=100, votes=3), Combatant(2, hp=100, votes=1), OPENING)
    assert result.outcome == WIN
    assert result.winner_id == 1 and result.loser_id == 2
    # 0.75 * 35 = 26.25 damage; HP is floored after subtracting
    assert result.right.damage == 26
    assert result.right.hp == 73
    assert result.right.win_streak == 0
    assert result.left.hp == 100
    assert result.left.win_streak == 1


def test_round_multiplier_scales_damage():
    result = calculate_battle(Combatant(1, hp=100, votes=0), Combatant(2, hp=100, votes=4), CLASSIC_FINAL)
    # 35 * 1.5 = 52.5
    assert result.left.hp == 47
    assert result.winner_id == 2


def test_unanimous_loss_is_capped():
    result = calculate_battle(Combatant(1, hp=100, votes=5), Combatant(2, hp=100, votes=0), OPENING)
    assert result.right.hp == 100 - DAMAGE_CAP


def test_second_consecutive_win_adds_combo_bonus():
    result = calculate_battle(Combatant(1, hp=100, votes=2, win_streak=1), Combatant(2, hp=100), OPENING)
    assert result.right.hp == 100 - 35 - 15
    assert result.left.win_streak == 2
    assert result.instant_ko is None


def test_third_consecutive_win_is_instant_ko():
    result = calculate_battle(Combatant(1, hp=100, votes=3), Combatant(2, hp=100, votes=4, win_streak=2), OPENING)
    assert result.instant_ko == COMBO_KO
    assert result.left.hp == 0
    assert result.left.knocked_out
    assert result.left.damage == 100
    assert result.right.win_streak == 3


def test_combo_streaks_off_in_showdown():
    result = calculate_battle(
        Combatant(1, hp=100, votes=1, win_streak=2), Combatant(2, hp=100), SEMI_FINALS,
        combo_streaks=SHOWDOWN.combo_streaks,
    )
    assert result.instant_ko is None
    # 35 * 1.3 = 45.5
    assert result.right.hp == 54
    assert result.left.win_streak == 3


def test_true_tie_resets_both_streaks():
    result = calculate_battle(
        Combatant(1, hp=100, votes=2, win_streak=1), Combatant(2, hp=100, votes=2, win_streak=2), OPENING
    )
    assert result.outcome == TIE
    assert result.left.hp == 82 and result.right.hp == 82
    assert result.left.win_streak == 0 and result.right.win_streak == 0
    assert result.winner_id is None


def test_double_ko_tie_goes_to_faster_submitter():
    left = Combatant(1, hp=10, votes=1, submitted_at=5.0)
    right = Combatant(2, hp=10, votes=1, win_streak=1, submitted_at=3.0)
    result = calculate_battle(left, right, OPENING)
    assert result.outcome == DOUBLE_KO_TIE
    assert result.winner_id == 2 and result.loser_id == 1
    assert result.right.hp == 1 and not result.right.knocked_out
    assert result.right.win_streak == 2
    assert result.left.hp == 0 and result.left.knocked_out
    assert result.left.win_streak == 0


def test_double_ko_tie_without_timestamps_keeps_left():
    result = calculate_battle(Combatant(1, hp=5, votes=2), Combatant(2, hp=5, votes=2), OPENING)
    assert result.winner_id == 1
    assert result.left.hp == 1


def test_double_ko_tie_on_equal_timestamps_goes_to_second_submission():
    result = calculate_battle(
        Combatant(1, hp=10, votes=1, submitted_at=4.0), Combatant(2, hp=10, votes=1, submitted_at=4.0), OPENING
    )
    assert result.outcome == DOUBLE_KO_TIE
    assert result.winner_id == 2
    assert result.right.hp == 1 and result.left.knocked_out


def test_double_ko_tie_missing_answer_loses():
    result = calculate_battle(Combatant(1, hp=5), Combatant(2, hp=5, submitted_at=9.0), OPENING)
    # no votes at all is not a tie
    assert result.outcome == NO_VOTES
    result = calculate_battle(Combatant(1, hp=5, votes=1), Combatant(2, hp=5, votes=1, submitted_at=9.0), OPENING)
    assert result.winner_id == 2


def test_no_votes_in_sudden_death_is_a_tie():
    result = calculate_battle(Combatant(1, hp=100), Combatant(2, hp=100), CLASSIC_FINAL)
    assert result.outcome == TIE
    assert result.total_votes == 0
    # 0.5 * 35 * 1.5 = 26.25
    assert result.left.hp == 73 and result.right.hp == 73

    result = calculate_battle(Combatant(1, hp=200), Combatant(2, hp=200), SHOWDOWN_FINAL, combo_streaks=False)
    assert result.outcome == TIE
    assert result.left.hp == 182 and result.right.hp == 182


def test_no_votes_in_sudden_death_can_double_ko():
    left = Combatant(1, hp=20, submitted_at=2.0)
    right = Combatant(2, hp=20, submitted_at=1.0)
    result = calculate_battle(left, right, CLASSIC_FINAL)
    assert result.outcome == DOUBLE_KO_TIE
    assert result.winner_id == 2 and result.loser_id == 1
    assert result.knocked_out_ids == {1}


def test_single_ko_tie_credits_survivor():
    result = calculate_battle(Combatant(1, hp=10, votes=1), Combatant(2, hp=100, votes=1), OPENING)
    assert result.outcome == SINGLE_KO_TIE
    assert result.left.knocked_out and result.left.hp == 0
    assert result.right.hp == 82
    assert result.right.win_streak == 1
    assert result.knocked_out_ids == {1}


def test_main_round_hp_floor_keeps_loser_standing():
    result = calculate_battle(Combatant(1, hp=20), Combatant(2, hp=100, votes=3), MAIN_ROUND,
                              combo_streaks=False)
    assert result.left.hp == 1
    assert not result.left.knocked_out
    assert result.right.special_bar == 1.0


def test_full_special_bar_knocks_out_through_floor():
    result = calculate_battle(Combatant(1, hp=90, votes=1), Combatant(2, hp=100, votes=2, special_bar=2.0),
                              MAIN_ROUND, combo_streaks=False)
    assert result.instant_ko == SPECIAL_KO
    assert result.left.hp == 0 and result.left.knocked_out
    # the meter is spent
    assert result.right.special_bar == 0.0


def test_special_bar_ignored_outside_main_round():
    result = calculate_battle(Combatant(1, hp=90, votes=1), Combatant(2, hp=100, votes=2, special_bar=2.0),
                              SEMI_FINALS, combo_streaks=False)
    assert result.instant_ko is None
    assert result.right.special_bar == 2.0


@pytest.mark.parametrize('winner_attack, loser_attack, expected_hp', [
    ('jab', 'jab', 165),
    ('haymaker', 'jab', 130),
    ('jab', 'flying_kick', 60),
    ('flying_kick', 'haymaker', 95),
])
def test_attack_types_in_final(winner_attack, loser_attack, expected_hp):
    result = calculate_battle(
        Combatant(1, hp=200, votes=1, attack_type=winner_attack),
        Combatant(2, hp=200, votes=0, attack_type=loser_attack),
        SHOWDOWN_FINAL, combo_streaks=False,
    )
    assert result.right.hp == expected_hp


def test_attack_types_ignored_outside_final():
    result = calculate_battle(
        Combatant(1, hp=100, votes=1, attack_type='flying_kick'),
        Combatant(2, hp=100, votes=0, attack_type='flying_kick'),
        OPENING,
    )
    assert result.right.hp == 65


def test_tie_damage_uses_opponent_attack():
    result = calculate_battle(
        Combatant(1, hp=200, votes=1, attack_type='flying_kick'),
        Combatant(2, hp=200, votes=1, attack_type='jab'),
        SHOWDOWN_FINAL, combo_streaks=False,
    )
    # left receives 17.5 * 4, right receives 17.5 * 3
    assert result.left.hp == 130
    assert result.right.hp == 147


def test_result_is_immutable():
    result = calculate_battle(Combatant(1, hp=100, votes=1), Combatant(2, hp=100), OPENING)
    with pytest.raises(dataclasses.FrozenInstanceError):
        result.left.hp = 5
    assert result.for_player(2).hp == 65
    assert result.for_player(99) is None


def test_damage_after_floor():
    assert damage_after(10, 50) == 0
    assert damage_after(10, 50, hp_floor=1) == 1
    assert damage_after(10, 2.5) == 7
