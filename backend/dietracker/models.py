from dietracker import db, bcrypt
from flask_login import UserMixin
from datetime import datetime, timezone
import json
import string
import random


def _utcnow():
    return datetime.now(timezone.utc)


def _iso(value):
    if value is None:
        return None
    if value.tzinfo is None:
        value = value.replace(tzinfo=timezone.utc)
    return value.isoformat()


def _load(raw, default):
    if not raw:
        return default
    return json.loads(raw)


class User(UserMixin, db.Model):
    __tablename__ = 'user'
    id = db.Column(db.Integer, primary_key=True)
    username = db.Column(db.String(64), unique=True, nullable=False, index=True)
    nickname = db.Column(db.String(64), nullable=True)
    password_hash = db.Column(db.String(256), nullable=False)

    def set_password(self, password):
        self.password_hash = bcrypt.generate_password_hash(password).decode('utf-8')

    def check_password(self, password):
        return bcrypt.check_password_hash(self.password_hash, password)

    @property
    def display_name(self):
        return self.nickname or self.username

    def to_dict(self):
        return {
            'id': self.id,
            'username': self.username,
            'nickname': self.nickname,
        }


def generate_room_code(length=6):
    """Generate a room code not used by any live match."""
    while True:
        code = ''.join(random.choices(string.ascii_uppercase + string.digits, k=length))
        if not LiveMatch.query.filter_by(room_code=code).first():
            return code


class LiveMatch(db.Model):
    """A match being scored right now, shared by every device in the room.

    Nested structures (setup, per-slot statistics, penalties, slot map) are
    stored as JSON text and always written back whole.
    """
    __tablename__ = 'live_match'
    id = db.Column(db.Integer, primary_key=True)
    room_code = db.Column(db.String(16), unique=True, index=True, nullable=False)
    host_id = db.Column(db.Integer, db.ForeignKey('user.id'), nullable=True)
    status = db.Column(db.String(16), default='active', nullable=False)  # waiting, active, finished
    match_setup_json = db.Column('match_setup', db.Text, nullable=False)
    participants_json = db.Column('participants', db.Text, nullable=True)
    user_slot_map_json = db.Column('user_slot_map', db.Text, nullable=True)
    player_stats_json = db.Column('player_stats', db.Text, nullable=True)
    team_penalties_json = db.Column('team_penalties', db.Text, nullable=True)
    match_start_time = db.Column(db.DateTime(timezone=True), nullable=True)
    winner_team = db.Column(db.Integer, nullable=True)
    created_at = db.Column(db.DateTime(timezone=True), default=_utcnow, nullable=False)
    updated_at = db.Column(db.DateTime(timezone=True), default=_utcnow, onupdate=_utcnow, nullable=False)
    # Bumped on every write; lets a client detect that it is behind
    version = db.Column(db.Integer, default=0, nullable=False)

    @property
    def match_setup(self):
        return _load(self.match_setup_json, {})

    @match_setup.setter
    def match_setup(self, value):
        self.match_setup_json = json.dumps(value)

    @property
    def participants(self):
        return _load(self.participants_json, [])

    @participants.setter
    def participants(self, value):
        self.participants_json = json.dumps(list(value))

    @property
    def user_slot_map(self):
        # JSON object keys are strings; slots are ints everywhere else
        raw = _load(self.user_slot_map_json, {})
        return {int(slot): user_id for slot, user_id in raw.items()}

    @user_slot_map.setter
    def user_slot_map(self, value):
        self.user_slot_map_json = json.dumps({str(slot): user_id for slot, user_id in value.items()})

    @property
    def player_stats(self):
        raw = _load(self.player_stats_json, {})
        return {int(slot): stats for slot, stats in raw.items()}

    @player_stats.setter
    def player_stats(self, value):
        self.player_stats_json = json.dumps({str(slot): stats for slot, stats in value.items()})

    @property
    def team_penalties(self):
        raw = _load(self.team_penalties_json, {'1': 0, '2': 0})
        return {int(team): penalty for team, penalty in raw.items()}

    @team_penalties.setter
    def team_penalties(self, value):
        self.team_penalties_json = json.dumps({str(team): penalty for team, penalty in value.items()})

    def to_dict(self):
        return {
            'id': self.id,
            'room_code': self.room_code,
            'host_id': self.host_id,
            'status': self.status,
            'match_setup': self.match_setup,
            'participants': self.participants,
            'user_slot_map': {str(k): v for k, v in self.user_slot_map.items()},
            'player_stats': {str(k): v for k, v in self.player_stats.items()},
            'team_penalties': {str(k): v for k, v in self.team_penalties.items()},
            'match_start_time': _iso(self.match_start_time),
            'winner_team': self.winner_team,
            'created_at': _iso(self.created_at),
            'version': self.version,
        }


class SavedMatch(db.Model):
    """Archived, read-only copy of a live match."""
    __tablename__ = 'saved_match'
    id = db.Column(db.Integer, primary_key=True)
    user_id = db.Column(db.Integer, db.ForeignKey('user.id'), nullable=False, index=True)
    room_code = db.Column(db.String(16), nullable=True)
    match_setup = db.Column(db.Text, nullable=False)
    player_stats = db.Column(db.Text, nullable=False)
    team_penalties = db.Column(db.Text, nullable=False)
    user_slot_map = db.Column(db.Text, nullable=True)
    match_start_time = db.Column(db.DateTime(timezone=True), nullable=True)
    winner_team = db.Column(db.Integer, nullable=True)
    match_duration = db.Column(db.Integer, default=0, nullable=False)  # seconds
    created_at = db.Column(db.DateTime(timezone=True), default=_utcnow, nullable=False)

    def to_dict(self):
        return {
            'id': self.id,
            'user_id': self.user_id,
            'room_code': self.room_code,
            'match_setup': _load(self.match_setup, {}),
            'player_stats': _load(self.player_stats, {}),
            'team_penalties': _load(self.team_penalties, {}),
            'user_slot_map': _load(self.user_slot_map, {}),
            'match_start_time': _iso(self.match_start_time),
            'winner_team': self.winner_team,
            'match_duration': self.match_duration,
            'created_at': _iso(self.created_at),
        }
