"""Match data: outcome tags, per-player statistics, setup and plays."""
import re
from dataclasses import dataclass, field, fields, asdict
from enum import Enum
from typing import Optional, Union

from .errors import ValidationError

SLOTS = (1, 2, 3, 4)
TEAM_SLOTS = {1: (1, 2), 2: (3, 4)}
TEAM = 'team'
ON_FIRE_STREAK = 3

_CAMEL = re.compile(r'(?<!^)(?=[A-Z])')


class _Tag(str, Enum):
    """Accepts the mobile client's camelCase spellings (``tableDie``)."""

    @classmethod
    def _missing_(cls, value):
        if isinstance(value, str):
            snake = _CAMEL.sub('_', value).lower()
            for member in cls:
                if member.value == snake:
                    return member
        return None


class ThrowOutcome(_Tag):
    TABLE_DIE = 'table_die'
    LINE = 'line'
    HIT = 'hit'
    KNICKER = 'knicker'
    GOAL = 'goal'
    DINK = 'dink'
    SINK = 'sink'
    SHORT = 'short'
    LONG = 'long'
    SIDE = 'side'
    HEIGHT = 'height'
    SELF_SINK = 'self_sink'


class DefenseOutcome(_Tag):
    CATCH = 'catch'
    CATCH_PLUS_AURA = 'catch_plus_aura'
    DROP = 'drop'
    MISS = 'miss'
    TWO_HANDS = 'two_hands'
    BODY = 'body'


class FifaAction(_Tag):
    GOOD_KICK = 'good_kick'
    BAD_KICK = 'bad_kick'


class RedemptionAction(_Tag):
    SUCCESS = 'success'
    FAILED = 'failed'


HIT_OUTCOMES = frozenset({ThrowOutcome.HIT, ThrowOutcome.KNICKER, ThrowOutcome.GOAL,
                          ThrowOutcome.DINK, ThrowOutcome.SINK})
SPECIAL_OUTCOMES = frozenset({ThrowOutcome.KNICKER, ThrowOutcome.DINK, ThrowOutcome.SINK})
BAD_THROW_OUTCOMES = frozenset({ThrowOutcome.SHORT, ThrowOutcome.LONG,
                                ThrowOutcome.SIDE, ThrowOutcome.HEIGHT})
CATCH_OUTCOMES = frozenset({DefenseOutcome.CATCH, DefenseOutcome.CATCH_PLUS_AURA})

# Outcome tag -> tally counter on PlayerStatistics
THROW_COUNTERS = {
    ThrowOutcome.TABLE_DIE: 'table_die',
    ThrowOutcome.LINE: 'line',
    ThrowOutcome.HIT: 'hit',
    ThrowOutcome.KNICKER: 'knicker',
    ThrowOutcome.GOAL: 'goal',
    ThrowOutcome.DINK: 'dink',
    ThrowOutcome.SINK: 'sink',
    ThrowOutcome.SHORT: 'short',
    ThrowOutcome.LONG: 'long',
    ThrowOutcome.SIDE: 'side',
    ThrowOutcome.HEIGHT: 'height',
}
DEFENSE_COUNTERS = {
    DefenseOutcome.CATCH_PLUS_AURA: 'catch_plus_aura',
    DefenseOutcome.DROP: 'drop',
    DefenseOutcome.MISS: 'miss',
    DefenseOutcome.TWO_HANDS: 'two_hands',
    DefenseOutcome.BODY: 'body',
}
FIFA_COUNTERS = {
    FifaAction.GOOD_KICK: 'good_kick',
    FifaAction.BAD_KICK: 'bad_kick',
}


def team_of(slot: int) -> int:
    return 1 if slot in TEAM_SLOTS[1] else 2


def opponent_of(team: int) -> int:
    return 2 if team == 1 else 1


@dataclass
class PlayerStatistics:
    name: str = ''
    throws: int = 0
    hits: int = 0
    blunders: int = 0
    catches: int = 0
    score: int = 0
    aura: int = 0
    fifa_attempts: int = 0
    fifa_success: int = 0
    hit_streak: int = 0
    special_throws: int = 0
    line_throws: int = 0
    goals: int = 0
    on_fire_count: int = 0
    currently_on_fire: bool = False
    # Throw outcomes
    table_die: int = 0
    line: int = 0
    hit: int = 0
    knicker: int = 0
    goal: int = 0
    dink: int = 0
    sink: int = 0
    short: int = 0
    long: int = 0
    side: int = 0
    height: int = 0
    # Defense outcomes
    catch_plus_aura: int = 0
    drop: int = 0
    miss: int = 0
    two_hands: int = 0
    body: int = 0
    # FIFA outcomes
    good_kick: int = 0
    bad_kick: int = 0

    def bump(self, counter: str, amount: int = 1) -> None:
        setattr(self, counter, getattr(self, counter) + amount)

    @property
    def defensive_plays(self) -> int:
        return self.catches + self.blunders

    def to_dict(self) -> dict:
        return asdict(self)

    @classmethod
    def from_dict(cls, data: dict) -> 'PlayerStatistics':
        """Build from a stored row; unknown keys are ignored, missing ones default."""
        known = {f.name for f in fields(cls)}
        return cls(**{k: v for k, v in (data or {}).items() if k in known})


@dataclass
class MatchSetup:
    title: str = 'Finals'
    arena: str = 'The Grand Dome'
    player_names: list = field(default_factory=lambda: ['Player1', 'Player2', 'Player3', 'Player4'])
    team_names: list = field(default_factory=lambda: ['Team 1', 'Team 2'])
    game_score_limit: int = 11
    sink_points: int = 3
    win_by_two: bool = True

    def to_dict(self) -> dict:
        return asdict(self)

    @classmethod
    def from_dict(cls, data: Optional[dict], defaults: Optional[dict] = None) -> 'MatchSetup':
        """Validate client input. ``defaults`` fills keys the client left out."""
        merged = dict(defaults or {})
        merged.update({k: v for k, v in (data or {}).items() if v is not None})
        setup = cls()
        if 'title' in merged:
            setup.title = sanitize_text(merged['title'])
        if 'arena' in merged:
            setup.arena = sanitize_text(merged['arena'])
        if 'player_names' in merged:
            names = list(merged['player_names'])
            if len(names) != len(SLOTS):
                raise ValidationError('Exactly four player names are required')
            setup.player_names = [sanitize_text(n) or f'Player{i}' for i, n in enumerate(names, start=1)]
        if 'team_names' in merged:
            names = list(merged['team_names'])
            if len(names) != 2:
                raise ValidationError('Exactly two team names are required')
            setup.team_names = [sanitize_text(n) or f'Team {i}' for i, n in enumerate(names, start=1)]
        try:
            setup.game_score_limit = int(merged.get('game_score_limit', setup.game_score_limit))
            setup.sink_points = int(merged.get('sink_points', setup.sink_points))
        except (TypeError, ValueError):
            raise ValidationError('Score limit and sink points must be whole numbers')
        if setup.game_score_limit < 1:
            raise ValidationError('Game score limit must be at least 1')
        setup.win_by_two = parse_flag(merged.get('win_by_two', setup.win_by_two))
        return setup


def sanitize_text(value) -> str:
    return re.sub(r'[^a-zA-Z0-9 \-_.,!]', '', str(value or ''))


@dataclass
class Play:
    """One scorekeeper submission: a throw plus optional defense, kick and redemption."""
    throwing_player: Optional[int] = None
    throw_result: Optional[ThrowOutcome] = None
    defending_player: Union[int, str, None] = None
    defense_result: Optional[DefenseOutcome] = None
    fifa_kicker: Optional[int] = None
    fifa_action: Optional[FifaAction] = None
    redemption_action: Optional[RedemptionAction] = None

    @classmethod
    def from_dict(cls, data: dict) -> 'Play':
        data = data or {}
        return cls(
            throwing_player=_slot(data.get('throwing_player'), 'throwing_player'),
            throw_result=_tag(ThrowOutcome, data.get('throw_result'), 'throw_result'),
            defending_player=_defender(data.get('defending_player')),
            defense_result=_tag(DefenseOutcome, data.get('defense_result'), 'defense_result'),
            fifa_kicker=_slot(data.get('fifa_kicker'), 'fifa_kicker'),
            fifa_action=_tag(FifaAction, data.get('fifa_action'), 'fifa_action'),
            redemption_action=_tag(RedemptionAction, data.get('redemption_action'), 'redemption_action'),
        )


def _slot(value, label):
    if value in (None, ''):
        return None
    try:
        slot = int(value)
    except (TypeError, ValueError):
        raise ValidationError(f'{label} must be a player slot 1-4')
    if slot not in SLOTS:
        raise ValidationError(f'{label} must be a player slot 1-4')
    return slot


def _defender(value):
    # -1 is the mobile client's marker for a team defense
    if isinstance(value, str) and value.lower() == TEAM or value == -1:
        return TEAM
    return _slot(value, 'defending_player')


def _tag(enum_cls, value, label):
    if value in (None, ''):
        return None
    try:
        return enum_cls(value)
    except ValueError:
        raise ValidationError(f'Unknown {label}: {value}')


def initial_player_stats(setup: MatchSetup) -> dict:
    return {slot: PlayerStatistics(name=setup.player_names[slot - 1]) for slot in SLOTS}


def stats_from_rows(rows: dict) -> dict:
    return {int(slot): PlayerStatistics.from_dict(row) for slot, row in (rows or {}).items()}


def stats_to_rows(stats: dict) -> dict:
    return {slot: s.to_dict() for slot, s in stats.items()}


def parse_flag(value) -> bool:
    """Form and query values arrive as strings; "false" and "0" mean False."""
    if isinstance(value, str):
        return value.strip().lower() not in ('', '0', 'false', 'no', 'off')
    return bool(value)


def parse_int(value, label) -> int:
    if isinstance(value, bool):
        raise ValidationError(f'{label} must be a whole number')
    try:
        return int(value)
    except (TypeError, ValueError):
        raise ValidationError(f'{label} must be a whole number')


def parse_stats_row(row, slot) -> PlayerStatistics:
    """Check a statistics row before it replaces the stored one.

    Counters are non-negative integers (score may go below zero through
    penalties), a player cannot hit more often than they threw, and the
    on-fire flag must agree with the hit streak.
    """
    if isinstance(row, PlayerStatistics):
        row = row.to_dict()
    if not isinstance(row, dict):
        raise ValidationError(f'Statistics for player {slot} must be an object')
    stats = PlayerStatistics.from_dict(row)
    for f in fields(PlayerStatistics):
        value = getattr(stats, f.name)
        if f.name == 'name':
            if not isinstance(value, str):
                raise ValidationError(f'Player {slot} name must be text')
        elif f.name == 'currently_on_fire':
            if not isinstance(value, bool):
                raise ValidationError(f'Player {slot} currently_on_fire must be true or false')
        elif isinstance(value, bool) or not isinstance(value, int):
            raise ValidationError(f'Player {slot} {f.name} must be a whole number')
        elif value < 0 and f.name != 'score':
            raise ValidationError(f'Player {slot} {f.name} cannot be negative')
    if stats.hits > stats.throws:
        raise ValidationError(f'Player {slot} has more hits than throws')
    if stats.currently_on_fire != (stats.hit_streak >= ON_FIRE_STREAK):
        raise ValidationError(f'Player {slot} on-fire flag does not match the hit streak')
    return stats
