from .app import db
from flask_login import UserMixin
from datetime import datetime
from sqlalchemy import UniqueConstraint
import hashlib
import json
import os

from .state import load_state

DEFAULT_PLAYER_NAME = 'Invocador'
DEFAULT_PLAYER_COLOR = '#1f2937'


class User(db.Model, UserMixin):
    id = db.Column(db.Integer, primary_key=True)
    email = db.Column(db.String(255), unique=True, nullable=False)
    name = db.Column(db.String(120), nullable=False)
    password_hash = db.Column(db.Text, nullable=True)
    salt = db.Column(db.String(32), nullable=True)
    is_admin = db.Column(db.Boolean, default=False)
    created_at = db.Column(db.DateTime, default=datetime.utcnow)

    def set_password(self, pw):
        self.salt = os.urandom(16).hex()
        self.password_hash = hashlib.sha256((self.salt + pw).encode()).hexdigest()

    def check_password(self, pw):
        if not self.password_hash or not self.salt:
            return False
        return self.password_hash == hashlib.sha256((self.salt + pw).encode()).hexdigest()


class Player(db.Model):
    id = db.Column(db.Integer, primary_key=True)
    name = db.Column(db.String(256), unique=True)
    background_color = db.Column(db.String(256), nullable=False, default=DEFAULT_PLAYER_COLOR)
    created_at = db.Column(db.DateTime, default=datetime.utcnow)
    updated_at = db.Column(db.DateTime, default=datetime.utcnow, onupdate=datetime.utcnow)

    def as_dict(self):
        return {
            'id': self.id,
            'name': self.name or DEFAULT_PLAYER_NAME,
            'backgroundColor': self.background_color or DEFAULT_PLAYER_COLOR,
        }


class Tournament(db.Model):
    id = db.Column(db.Integer, primary_key=True)
    name = db.Column(db.String(256), nullable=False)
    # Full schedule state serialized as JSON, see league.state
    state = db.Column(db.Text, nullable=False, default='{}')
    finished = db.Column(db.Boolean, nullable=False, default=False)
    # Bumped on every state write; writers compare-and-set against it
    version = db.Column(db.Integer, nullable=False, default=1)
    created_at = db.Column(db.DateTime, default=datetime.utcnow)

    def schedule_state(self):
        return load_state(self.state)

    def planned_matches(self):
        """Number of scheduled fixtures, 0 when the blob cannot be read."""
        try:
            parsed = json.loads(self.state or '{}')
        except ValueError:
            return 0
        fixtures = parsed.get('fixtures') if isinstance(parsed, dict) else None
        return len(fixtures) if isinstance(fixtures, list) else 0


class Match(db.Model):
    id = db.Column(db.Integer, primary_key=True)
    starting_hp = db.Column(db.Integer, nullable=False, default=40)
    tournament_id = db.Column(db.Integer, db.ForeignKey('tournament.id'), nullable=True)
    created_at = db.Column(db.DateTime, default=datetime.utcnow)
    updated_at = db.Column(db.DateTime, default=datetime.utcnow, onupdate=datetime.utcnow)


class MatchPlayer(db.Model):
    player_id = db.Column(db.Integer, db.ForeignKey('player.id'), primary_key=True)
    match_id = db.Column(db.Integer, db.ForeignKey('match.id'), primary_key=True)
    placement = db.Column(db.Integer, nullable=False)

    match = db.relationship(
        'Match',
        backref=db.backref('placements', cascade='all, delete-orphan',
                           order_by='MatchPlayer.placement')
    )
    player = db.relationship('Player')

    __table_args__ = (UniqueConstraint('match_id', 'placement', name='uq_match_placement'),)


class SiteLog(db.Model):
    __bind_key__ = 'logs'
    id = db.Column(db.Integer, primary_key=True)
    action = db.Column(db.String(200), nullable=False)
    result = db.Column(db.String(200), nullable=False)
    error = db.Column(db.Text, nullable=True)
    timestamp = db.Column(db.DateTime, default=datetime.utcnow)
    user_id = db.Column(db.Integer, nullable=True)
    # relationship loaded manually to avoid cross-db foreign key


class TournamentLog(db.Model):
    __bind_key__ = 'logs'
    id = db.Column(db.Integer, primary_key=True)
    tournament_id = db.Column(db.Integer, nullable=False)
    action = db.Column(db.String(200), nullable=False)
    result = db.Column(db.String(200), nullable=False)
    error = db.Column(db.Text, nullable=True)
    timestamp = db.Column(db.DateTime, default=datetime.utcnow)
    user_id = db.Column(db.Integer, nullable=True)
