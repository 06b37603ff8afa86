"""Bot players.

Each entry point runs as a scheduled follow-up, so it re-reads the game and
quietly does nothing when the state it was scheduled for has moved on.
"""
import random
import time

from flask import current_app

from smacktalk import db
from smacktalk.models import (
    Player, Prompt, Submission, Suggestion, Vote,
    PROMPTS, VOTING, ROUND_VOTING, CORNER_MAN,
)
from . import rules
from .actions import update_reveal
from .lobby import find_game, game_players
from .rounds import has_human_corner_man, maybe_begin_voting, round_prompts

BOT_WORDS = [
    "banana", "explosion", "grandma", "lasagna", "disco", "llama", "taxes",
    "spaghetti", "unicorn", "sweatpants", "volcano", "karaoke", "pickle",
    "moustache", "trampoline", "burrito", "zombie", "accordion", "glitter", "waffles",
]


def auto_answer(game_id, player_id, prompt_id) -> list:
    game = find_game(game_id, lock=True)
    if not game or game.status != PROMPTS:
        current_app.logger.info(f"[bots] auto-answer skipped, game={game_id} not taking answers")
        return []
    player = Player.query.filter_by(id=player_id, game_id=game.id).first()
    prompt = Prompt.query.filter_by(id=prompt_id, game_id=game.id).first()
    if not player or not player.is_bot or not prompt or player.id not in prompt.assigned_ids:
        current_app.logger.info(f"[bots] auto-answer skipped, stale player={player_id} prompt={prompt_id}")
        return []
    if has_human_corner_man(player.id, game_players(game)):
        current_app.logger.info(f"[bots] skipping auto-answer for {player.name}, a human corner man is writing")
        return []
    if Submission.query.filter_by(prompt_id=prompt.id, player_id=player.id).first():
        return []

    if prompt.prompt_type == rules.JAB:
        text = random.choice(BOT_WORDS)
    else:
        text = f"{player.name} {random.choice(BOT_WORDS)}"
    attack = None
    if rules.round_rules_for(game).attack_types:
        attack = random.choice(list(rules.ATTACK_TYPES))

    db.session.add(Submission(
        prompt_id=prompt.id,
        player_id=player.id,
        text=text,
        submitted_at=time.time(),
        attack_type=attack,
    ))
    db.session.flush()
    follow_ups = maybe_begin_voting(game)
    db.session.commit()
    return follow_ups


def cast_votes(game_id, prompt_id) -> list:
    prompt = Prompt.query.filter_by(id=prompt_id).first()
    if not prompt:
        current_app.logger.warning(f"[bots] prompt={prompt_id} no longer exists, skipping vote")
        return []
    game = find_game(game_id, lock=True)
    if not game:
        current_app.logger.warning(f"[bots] game={game_id} no longer exists, skipping vote")
        return []
    if game.current_prompt_id != prompt.id or game.status != VOTING or game.round_status != ROUND_VOTING:
        current_app.logger.warning(
            f"[bots] prompt={prompt_id} is not on stage (current={game.current_prompt_id}), skipping vote"
        )
        return []

    submissions = Submission.query.filter_by(prompt_id=prompt.id).order_by(Submission.id).all()
    if not submissions:
        current_app.logger.warning(f"[bots] no submissions for prompt={prompt_id}, skipping vote")
        return []

    players = game_players(game)
    combatants = set(prompt.assigned_ids)
    voted = {v.player_id for v in Vote.query.filter_by(prompt_id=prompt.id).all()}
    cast = 0
    for bot in players:
        if not bot.is_bot or bot.id in combatants or bot.id in voted:
            continue
        if bot.team_id and bot.team_id in combatants:
            continue
        db.session.add(Vote(prompt_id=prompt.id, player_id=bot.id, submission_id=random.choice(submissions).id))
        cast += 1
    db.session.flush()

    current_app.logger.info(f"[bots] game={game.id} prompt={prompt.id} cast {cast} bot vote(s)")
    update_reveal(game, prompt, players)
    db.session.commit()
    return []


def send_suggestions(game_id) -> list:
    """Bot corner men send two or three ideas per open prompt to a human captain."""
    game = find_game(game_id, lock=True)
    if not game or game.status != PROMPTS:
        return []

    players = game_players(game)
    by_id = {p.id: p for p in players}
    prompts = round_prompts(game)
    sent = 0
    for bot in players:
        if not (bot.is_bot and bot.role == CORNER_MAN and bot.team_id):
            continue
        captain = by_id.get(bot.team_id)
        if not captain or captain.is_bot:
            continue
        for prompt in prompts:
            if prompt.is_bye or captain.id not in prompt.assigned_ids:
                continue
            if Submission.query.filter_by(prompt_id=prompt.id, player_id=captain.id).first():
                continue
            for _ in range(random.randint(2, 3)):
                text = f"{random.choice(BOT_WORDS)} {random.choice(BOT_WORDS)}"
                duplicate = Suggestion.query.filter_by(prompt_id=prompt.id, sender_id=bot.id, text=text).first()
                if duplicate:
                    continue
                db.session.add(Suggestion(
                    game_id=game.id,
                    prompt_id=prompt.id,
                    sender_id=bot.id,
                    target_id=captain.id,
                    text=text,
                ))
                db.session.flush()
                sent += 1
    db.session.commit()
    current_app.logger.info(f"[bots] game={game.id} sent {sent} suggestion(s)")
    return []
