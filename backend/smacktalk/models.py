from smacktalk import db, bcrypt
import json
import string
import random
import time

# Game.status
LOBBY = 'LOBBY'
PROMPTS = 'PROMPTS'
VOTING = 'VOTING'
ROUND_RESULTS = 'ROUND_RESULTS'
RESULTS = 'RESULTS'

# Game.round_status (only meaningful while status == VOTING)
ROUND_VOTING = 'VOTING'
ROUND_REVEAL = 'REVEAL'

# Player.role
FIGHTER = 'FIGHTER'
CORNER_MAN = 'CORNER_MAN'

DEFAULT_HP = 100


def generate_room_code(length=4):
    """Generate a unique, short room code."""
    while True:
        code = ''.join(random.choices(string.ascii_uppercase + string.digits, k=length))
        if not Game.query.filter_by(room_code=code).first():
            return code


class Game(db.Model):
    __tablename__ = 'game'
    id = db.Column(db.Integer, primary_key=True)
    room_code = db.Column(db.String(4), unique=True, index=True)
    ruleset = db.Column(db.String(32), nullable=False, default='classic')
    status = db.Column(db.String(32), nullable=False, default=LOBBY)
    current_round = db.Column(db.Integer, nullable=False, default=1)
    max_rounds = db.Column(db.Integer, nullable=True)
    current_prompt_id = db.Column(db.Integer, db.ForeignKey('prompt.id', name='fk_game_current_prompt_id', use_alter=True), nullable=True)
    round_status = db.Column(db.String(16), nullable=True)
    used_prompt_indices = db.Column(db.Text, nullable=True)  # JSON-encoded list of catalog indices
    created_at = db.Column(db.Float, nullable=False, default=time.time)
    last_activity = db.Column(db.Float, nullable=False, default=time.time)
    finished_at = db.Column(db.Float, nullable=True)
    players = db.relationship('Player', back_populates='game', order_by='Player.id')

    def __init__(self, **kwargs):
        super(Game, self).__init__(**kwargs)
        if not self.room_code:
            self.room_code = generate_room_code()

    @property
    def used_indices(self):
        try:
            return json.loads(self.used_prompt_indices) if self.used_prompt_indices else []
        except ValueError:
            return []

    @used_indices.setter
    def used_indices(self, indices):
        self.used_prompt_indices = json.dumps(sorted(set(indices)))

    def touch(self):
        self.last_activity = time.time()

    def to_dict(self):
        prompts = Prompt.query.filter_by(game_id=self.id).order_by(Prompt.id).all()
        prompt_ids = [p.id for p in prompts]
        # Answers stay hidden while players are still writing; during voting
        # only the prompt on stage is revealed.
        show_all = self.status in (ROUND_RESULTS, RESULTS)
        submissions = []
        if prompt_ids and (show_all or (self.status == VOTING and self.current_prompt_id)):
            query = Submission.query.filter(Submission.prompt_id.in_(prompt_ids))
            if not show_all:
                query = query.filter_by(prompt_id=self.current_prompt_id)
            submissions = [s.to_dict() for s in query.order_by(Submission.id).all()]
        votes = []
        if prompt_ids:
            votes = [v.to_dict() for v in Vote.query.filter(Vote.prompt_id.in_(prompt_ids)).order_by(Vote.id).all()]

        return {
            'id': self.id,
            'room_code': self.room_code,
            'ruleset': self.ruleset,
            'status': self.status,
            'current_round': self.current_round,
            'max_rounds': self.max_rounds,
            'current_prompt_id': self.current_prompt_id,
            'round_status': self.round_status,
            'players': [p.to_dict() for p in self.players],
            'prompts': [p.to_dict() for p in prompts],
            'submissions': submissions,
            'votes': votes,
        }


class Player(db.Model):
    __tablename__ = 'player'
    id = db.Column(db.Integer, primary_key=True)
    game_id = db.Column(db.Integer, db.ForeignKey('game.id'), nullable=False, index=True)
    name = db.Column(db.String(64), nullable=False)
    is_vip = db.Column(db.Boolean, default=False, nullable=False)
    is_bot = db.Column(db.Boolean, default=False, nullable=False)
    session_token_hash = db.Column(db.String(128), nullable=True)
    hp = db.Column(db.Integer, default=DEFAULT_HP, nullable=False)
    max_hp = db.Column(db.Integer, default=DEFAULT_HP, nullable=False)
    knocked_out = db.Column(db.Boolean, default=False, nullable=False)
    role = db.Column(db.String(16), default=FIGHTER, nullable=False)
    team_id = db.Column(db.Integer, db.ForeignKey('player.id'), nullable=True)  # captain, when CORNER_MAN
    win_streak = db.Column(db.Integer, default=0, nullable=False)
    special_bar = db.Column(db.Float, default=0.0, nullable=False)
    joined_at = db.Column(db.Float, nullable=False, default=time.time)
    game = db.relationship('Game', back_populates='players')

    def set_session_token(self, token):
        self.session_token_hash = bcrypt.generate_password_hash(token).decode('utf-8')

    def check_session_token(self, token):
        if not self.session_token_hash or not token:
            return False
        return bcrypt.check_password_hash(self.session_token_hash, token)

    @property
    def is_active_fighter(self):
        return self.role == FIGHTER and not self.knocked_out

    def to_dict(self):
        return {
            'id': self.id,
            'game_id': self.game_id,
            'name': self.name,
            'is_vip': self.is_vip,
            'is_bot': self.is_bot,
            'hp': self.hp,
            'max_hp': self.max_hp,
            'knocked_out': self.knocked_out,
            'role': self.role,
            'team_id': self.team_id,
            'win_streak': self.win_streak,
            'special_bar': self.special_bar,
        }


class Prompt(db.Model):
    __tablename__ = 'prompt'
    id = db.Column(db.Integer, primary_key=True)
    game_id = db.Column(db.Integer, db.ForeignKey('game.id'), nullable=False, index=True)
    text = db.Column(db.Text, nullable=False)
    assigned_to = db.Column(db.Text, nullable=False, default='[]')  # JSON-encoded list of 1 or 2 player ids
    prompt_type = db.Column(db.String(16), nullable=True)  # jab | haymaker

    @property
    def assigned_ids(self):
        try:
            return json.loads(self.assigned_to or '[]')
        except ValueError:
            return []

    @assigned_ids.setter
    def assigned_ids(self, ids):
        self.assigned_to = json.dumps(list(ids))

    @property
    def is_bye(self):
        return len(self.assigned_ids) < 2

    def to_dict(self):
        return {
            'id': self.id,
            'game_id': self.game_id,
            'text': self.text,
            'assigned_to': self.assigned_ids,
            'prompt_type': self.prompt_type,
        }


class Submission(db.Model):
    __tablename__ = 'submission'
    __table_args__ = (db.UniqueConstraint('prompt_id', 'player_id', name='uq_submission_prompt_player'),)
    id = db.Column(db.Integer, primary_key=True)
    prompt_id = db.Column(db.Integer, db.ForeignKey('prompt.id'), nullable=False, index=True)
    player_id = db.Column(db.Integer, db.ForeignKey('player.id'), nullable=False)
    text = db.Column(db.Text, nullable=False)
    submitted_at = db.Column(db.Float, nullable=True)
    attack_type = db.Column(db.String(16), nullable=True)

    def to_dict(self):
        return {
            'id': self.id,
            'prompt_id': self.prompt_id,
            'player_id': self.player_id,
            'text': self.text,
            'submitted_at': self.submitted_at,
            'attack_type': self.attack_type,
        }


class Vote(db.Model):
    __tablename__ = 'vote'
    __table_args__ = (db.UniqueConstraint('prompt_id', 'player_id', name='uq_vote_prompt_player'),)
    id = db.Column(db.Integer, primary_key=True)
    prompt_id = db.Column(db.Integer, db.ForeignKey('prompt.id'), nullable=False, index=True)
    player_id = db.Column(db.Integer, db.ForeignKey('player.id'), nullable=False)
    submission_id = db.Column(db.Integer, db.ForeignKey('submission.id'), nullable=False)

    def to_dict(self):
        return {
            'id': self.id,
            'prompt_id': self.prompt_id,
            'player_id': self.player_id,
            'submission_id': self.submission_id,
        }


class Suggestion(db.Model):
    __tablename__ = 'suggestion'
    id = db.Column(db.Integer, primary_key=True)
    game_id = db.Column(db.Integer, db.ForeignKey('game.id'), nullable=False, index=True)
    prompt_id = db.Column(db.Integer, db.ForeignKey('prompt.id'), nullable=False)
    sender_id = db.Column(db.Integer, db.ForeignKey('player.id'), nullable=False)
    target_id = db.Column(db.Integer, db.ForeignKey('player.id'), nullable=False)
    text = db.Column(db.Text, nullable=False)

    def to_dict(self):
        return {
            'id': self.id,
            'prompt_id': self.prompt_id,
            'sender_id': self.sender_id,
            'target_id': self.target_id,
            'text': self.text,
        }
