import pytest
from sqlalchemy.dialects import postgresql

from smacktalk import db
from smacktalk.models import (
    Game, Submission, Suggestion, Vote, PROMPTS, VOTING, ROUND_VOTING, ROUND_REVEAL, CORNER_MAN,
)
from smacktalk.services.games import actions, lobby
from smacktalk.services.games.errors import (
    AuthorizationError, InvalidActionError, InvalidTransitionError, NotFoundError,
)
from smacktalk.services.games.scheduler import CAST_VOTES

TOKEN = 'player-token'


@pytest.fixture()
def duel(make_game, make_player, make_prompt):
    """A game in PROMPTS with one open battle between two humans."""
    def _duel(ruleset='classic', current_round=1, prompt_type=None):
        game = make_game(ruleset=ruleset, status=PROMPTS, current_round=current_round)
        a = make_player(game, name='Ann', token=TOKEN)
        b = make_player(game, name='Bob', token=TOKEN)
        prompt = make_prompt(game, [a, b], prompt_type=prompt_type)
        return game, a, b, prompt
    return _duel


def test_answers_open_voting_when_complete(duel):
    game, a, b, prompt = duel()

    submission, follow_ups = actions.submit_answer(game.id, a.id, TOKEN, prompt.id, '  A sharp retort ')
    assert submission.text == 'A sharp retort'
    assert follow_ups == []
    assert game.status == PROMPTS

    _, follow_ups = actions.submit_answer(game.id, b.id, TOKEN, prompt.id, 'Comeback')
    db.session.refresh(game)
    assert game.status == VOTING
    assert game.round_status == ROUND_VOTING
    assert game.current_prompt_id == prompt.id
    assert [f.op for f in follow_ups] == [CAST_VOTES]


def test_answer_guards(duel, make_player, make_prompt):
    game, a, b, prompt = duel()
    outsider = make_player(game, token=TOKEN)
    bye = make_prompt(game, [outsider], text='Bye')

    with pytest.raises(AuthorizationError):
        actions.submit_answer(game.id, a.id, 'wrong', prompt.id, 'hi')
    with pytest.raises(NotFoundError):
        actions.submit_answer(game.id, 9999, TOKEN, prompt.id, 'hi')
    with pytest.raises(NotFoundError):
        actions.submit_answer(game.id, a.id, TOKEN, 9999, 'hi')
    with pytest.raises(InvalidActionError, match='not assigned'):
        actions.submit_answer(game.id, outsider.id, TOKEN, prompt.id, 'hi')
    with pytest.raises(InvalidActionError, match='bye'):
        actions.submit_answer(game.id, outsider.id, TOKEN, bye.id, 'hi')
    with pytest.raises(InvalidActionError, match='cannot be empty'):
        actions.submit_answer(game.id, a.id, TOKEN, prompt.id, '   ')
    with pytest.raises(InvalidActionError, match='characters or less'):
        actions.submit_answer(game.id, a.id, TOKEN, prompt.id, 'x' * 281)

    actions.submit_answer(game.id, a.id, TOKEN, prompt.id, 'first')
    with pytest.raises(InvalidActionError, match='Already submitted'):
        actions.submit_answer(game.id, a.id, TOKEN, prompt.id, 'second')
    assert Submission.query.filter_by(prompt_id=prompt.id).count() == 1


def test_answers_rejected_outside_prompts(duel):
    game, a, b, prompt = duel()
    game.status = VOTING
    db.session.commit()
    with pytest.raises(InvalidTransitionError):
        actions.submit_answer(game.id, a.id, TOKEN, prompt.id, 'late')


def test_jab_takes_one_word(duel):
    game, a, b, prompt = duel(ruleset='showdown', current_round=2, prompt_type='jab')
    with pytest.raises(InvalidActionError, match='single word'):
        actions.submit_answer(game.id, a.id, TOKEN, prompt.id, 'two words')
    submission, _ = actions.submit_answer(game.id, a.id, TOKEN, prompt.id, 'pow')
    assert submission.text == 'pow'


def test_attack_type_only_kept_in_final(duel):
    game, a, b, prompt = duel(ruleset='showdown', current_round=3)
    with pytest.raises(InvalidActionError, match='Unknown attack type'):
        actions.submit_answer(game.id, a.id, TOKEN, prompt.id, 'boom', attack_type='uppercut')
    submission, _ = actions.submit_answer(game.id, a.id, TOKEN, prompt.id, 'boom', attack_type='flying_kick')
    assert submission.attack_type == 'flying_kick'

    game, a, b, prompt = duel()
    submission, _ = actions.submit_answer(game.id, a.id, TOKEN, prompt.id, 'boom', attack_type='flying_kick')
    assert submission.attack_type is None


def test_corner_man_answers_for_bot_captain(make_game, make_player, make_prompt):
    game = make_game(status=PROMPTS)
    bot = make_player(game, is_bot=True)
    rival = make_player(game, token=TOKEN)
    helper = make_player(game, token=TOKEN, captain=bot)
    prompt = make_prompt(game, [bot, rival])

    submission, _ = actions.submit_answer_for_bot(game.id, helper.id, TOKEN, prompt.id, 'For the team')
    assert submission.player_id == bot.id

    with pytest.raises(AuthorizationError):
        actions.submit_answer_for_bot(game.id, rival.id, TOKEN, prompt.id, 'nope')


def test_corner_man_cannot_answer_for_human_captain(make_game, make_player, make_prompt):
    game = make_game(status=PROMPTS)
    captain = make_player(game, token=TOKEN)
    rival = make_player(game, token=TOKEN)
    helper = make_player(game, token=TOKEN, captain=captain)
    prompt = make_prompt(game, [captain, rival])
    with pytest.raises(InvalidActionError, match='bot captains'):
        actions.submit_answer_for_bot(game.id, helper.id, TOKEN, prompt.id, 'nope')


@pytest.fixture()
def voting_game(make_game, make_player, make_prompt, answer):
    game = make_game(status=VOTING)
    a = make_player(game, token=TOKEN)
    b = make_player(game, token=TOKEN)
    helper = make_player(game, token=TOKEN, captain=a)
    voters = [make_player(game, token=TOKEN), make_player(game, token=TOKEN)]
    prompt = make_prompt(game, [a, b])
    left, right = answer(prompt, a), answer(prompt, b)
    game.current_prompt_id = prompt.id
    game.round_status = ROUND_VOTING
    db.session.commit()
    return game, a, b, helper, voters, prompt, left, right


def test_vote_eligibility(voting_game):
    game, a, b, helper, voters, prompt, left, right = voting_game

    with pytest.raises(InvalidActionError, match='own battle'):
        actions.submit_vote(game.id, a.id, TOKEN, prompt.id, right.id)
    with pytest.raises(InvalidActionError, match='own team'):
        actions.submit_vote(game.id, helper.id, TOKEN, prompt.id, left.id)
    with pytest.raises(InvalidActionError, match='Invalid submission'):
        actions.submit_vote(game.id, voters[0].id, TOKEN, prompt.id, 9999)
    assert Vote.query.count() == 0


def test_duplicate_vote_is_rejected(voting_game):
    game, a, b, helper, voters, prompt, left, right = voting_game

    actions.submit_vote(game.id, voters[0].id, TOKEN, prompt.id, left.id)
    with pytest.raises(InvalidActionError, match='Already voted'):
        actions.submit_vote(game.id, voters[0].id, TOKEN, prompt.id, right.id)
    assert Vote.query.filter_by(prompt_id=prompt.id).count() == 1


def test_reveal_after_every_eligible_vote(voting_game):
    game, a, b, helper, voters, prompt, left, right = voting_game

    actions.submit_vote(game.id, voters[0].id, TOKEN, prompt.id, left.id)
    db.session.refresh(game)
    assert game.round_status == ROUND_VOTING

    actions.submit_vote(game.id, voters[1].id, TOKEN, prompt.id, right.id)
    db.session.refresh(game)
    assert game.round_status == ROUND_REVEAL
    with pytest.raises(InvalidTransitionError):
        actions.submit_vote(game.id, helper.id, TOKEN, prompt.id, left.id)


def test_vote_only_for_prompt_on_stage(voting_game, make_prompt):
    game, a, b, helper, voters, prompt, left, right = voting_game
    other = make_prompt(game, [a, b])
    with pytest.raises(InvalidActionError, match='not on stage'):
        actions.submit_vote(game.id, voters[0].id, TOKEN, other.id, left.id)


def test_expected_votes_never_zero(make_game, make_player, make_prompt):
    game = make_game()
    a, b = make_player(game), make_player(game)
    prompt = make_prompt(game, [a, b])
    assert actions.expected_votes(prompt, [a, b]) == 1


def test_nobody_eligible_reveals_at_once(make_game, make_player, make_prompt):
    game = make_game(status=VOTING, current_round=4)
    a, b = make_player(game), make_player(game)
    make_player(game, captain=a)
    make_player(game, captain=b)
    prompt = make_prompt(game, [a, b])
    game.current_prompt_id = prompt.id
    game.round_status = ROUND_VOTING
    db.session.commit()

    assert actions.eligible_voters(prompt, lobby.game_players(game)) == []
    assert actions.update_reveal(game, prompt)
    assert game.round_status == ROUND_REVEAL


def test_mutating_lookups_lock_the_game_row(make_game):
    game = make_game()
    locked = str(lobby.game_query(game.id, lock=True).statement.compile(dialect=postgresql.dialect()))
    plain = str(lobby.game_query(game.id).statement.compile(dialect=postgresql.dialect()))
    assert locked.rstrip().endswith('FOR UPDATE')
    assert 'FOR UPDATE' not in plain


def test_locked_lookup_reloads_a_stale_game(make_game):
    game = make_game(status=PROMPTS)
    assert game.status == PROMPTS
    # another transaction moved the game on
    Game.query.filter_by(id=game.id).update({'status': VOTING}, synchronize_session=False)

    assert lobby.get_game(game.id).status == PROMPTS
    assert lobby.get_game(game.id, lock=True).status == VOTING
    assert lobby.find_game(None, lock=True) is None


def test_suggestions(make_game, make_player, make_prompt):
    game = make_game(status=PROMPTS)
    captain = make_player(game, token=TOKEN)
    rival = make_player(game, token=TOKEN)
    helper = make_player(game, token=TOKEN, captain=captain)
    prompt = make_prompt(game, [captain, rival])
    elsewhere = make_prompt(game, [rival, make_player(game)])

    suggestion = actions.submit_suggestion(game.id, helper.id, TOKEN, prompt.id, ' say banana ')
    assert suggestion.text == 'say banana'
    assert suggestion.target_id == captain.id
    assert Suggestion.query.count() == 1

    with pytest.raises(AuthorizationError):
        actions.submit_suggestion(game.id, rival.id, TOKEN, prompt.id, 'hi')
    with pytest.raises(InvalidActionError, match='captain is not assigned'):
        actions.submit_suggestion(game.id, helper.id, TOKEN, elsewhere.id, 'hi')
    with pytest.raises(InvalidActionError):
        actions.submit_suggestion(game.id, helper.id, TOKEN, prompt.id, 'x' * 281)

    game.status = VOTING
    db.session.commit()
    with pytest.raises(InvalidTransitionError):
        actions.submit_suggestion(game.id, helper.id, TOKEN, prompt.id, 'too late')
    assert helper.role == CORNER_MAN


def test_answers_take_the_game_lock(duel, monkeypatch):
    game, a, b, prompt = duel()
    seen = []
    real_get_game = actions.get_game

    def tracking_get_game(game_id, lock=False):
        seen.append(lock)
        return real_get_game(game_id, lock=lock)

    monkeypatch.setattr(actions, 'get_game', tracking_get_game)
    actions.submit_answer(game.id, a.id, TOKEN, prompt.id, 'Zinger')
    assert seen == [True]
