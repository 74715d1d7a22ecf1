from enum import Enum
from typing import Optional

from .stats import PlayerStatistics

HIT_WEIGHT = 0.85
FIFA_WEIGHT = 0.10
DEFAULT_AURA_THRESHOLD = 8


class Award(str, Enum):
    LEKING = 'LeKing'
    INCINEROAR = 'Incineroar'
    WAYNE_GRETZKY = 'Wayne Gretzky'
    ISAAC_NEWTON = 'Isaac Newton'
    SPECIAL_THROWER = 'Yusuf Dikeç'
    RONALDO = 'Ronaldo'
    IRON_DOME = 'Iron Dome'
    BORDER_PATROL = 'Border Patrol'
    DENNIS_RODMAN = 'Dennis Rodman'


def _ratio(numerator, denominator):
    return numerator / denominator if denominator > 0 else 0


def hit_rate(stats: PlayerStatistics) -> float:
    return _ratio(stats.hits, stats.throws)


def catch_rate(stats: PlayerStatistics) -> float:
    # blunders here covers failed defense plus 'height' throws
    return _ratio(stats.catches, stats.defensive_plays)


def fifa_rate(stats: PlayerStatistics) -> float:
    return _ratio(stats.fifa_success, stats.fifa_attempts)


def raw_rating(stats: PlayerStatistics) -> float:
    """Base rating in [0, 100] before award bonuses."""
    average_rate = (hit_rate(stats) + catch_rate(stats)) / 2
    return (HIT_WEIGHT * average_rate + FIFA_WEIGHT * fifa_rate(stats)) / (HIT_WEIGHT + FIFA_WEIGHT) * 100


def awards(stats: PlayerStatistics, all_stats: Optional[dict] = None,
           aura_threshold: float = DEFAULT_AURA_THRESHOLD, leking: bool = True) -> list:
    """Awards unlocked by ``stats``.

    LeKing needs the other players to compare against, so it is only
    considered when ``all_stats`` (slot -> PlayerStatistics) is given.
    """
    unlocked = []
    if leking and all_stats:
        ratings = [raw_rating(other) for other in all_stats.values()]
        best = max(ratings)
        if raw_rating(stats) == best and ratings.count(best) == 1:
            unlocked.append(Award.LEKING)
    if stats.throws > 0 and stats.on_fire_count / stats.throws > 0.70:
        unlocked.append(Award.INCINEROAR)
    if stats.goals >= 2:
        unlocked.append(Award.WAYNE_GRETZKY)
    if stats.throws > 0 and hit_rate(stats) >= 0.80:
        unlocked.append(Award.ISAAC_NEWTON)
    if stats.throws > 0 and stats.special_throws / stats.throws > 0.15:
        unlocked.append(Award.SPECIAL_THROWER)
    if stats.fifa_attempts > 0 and fifa_rate(stats) >= 0.70:
        unlocked.append(Award.RONALDO)
    if stats.defensive_plays > 0 and catch_rate(stats) >= 0.80:
        unlocked.append(Award.IRON_DOME)
    if stats.throws > 0 and stats.line_throws / stats.throws > 0.15:
        unlocked.append(Award.BORDER_PATROL)
    if stats.aura >= aura_threshold:
        unlocked.append(Award.DENNIS_RODMAN)
    return unlocked


def rate(stats: PlayerStatistics, all_stats: Optional[dict] = None,
         aura_threshold: float = DEFAULT_AURA_THRESHOLD, leking: bool = True) -> float:
    """Final rating: base plus one point per award, capped at 100."""
    bonus = len(awards(stats, all_stats, aura_threshold=aura_threshold, leking=leking))
    return min(100.0, raw_rating(stats) + bonus)


def player_report(all_stats: dict, aura_threshold: float = DEFAULT_AURA_THRESHOLD, leking: bool = True) -> dict:
    report = {}
    for slot, stats in sorted(all_stats.items()):
        unlocked = awards(stats, all_stats, aura_threshold=aura_threshold, leking=leking)
        report[slot] = {
            'name': stats.name,
            'raw_rating': round(raw_rating(stats), 1),
            'rating': round(min(100.0, raw_rating(stats) + len(unlocked)), 1),
            'awards': [a.value for a in unlocked],
            'hit_rate': round(hit_rate(stats), 3),
            'catch_rate': round(catch_rate(stats), 3),
            'fifa_rate': round(fifa_rate(stats), 3),
        }
    return report
