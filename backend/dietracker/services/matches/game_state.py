"""Match phase classification and team scoring."""
from enum import Enum
from typing import Optional

from .stats import TEAM_SLOTS


class GameState(str, Enum):
    STANDARD = 'standard'
    MATCH_POINT = 'matchPoint'
    ADVANTAGE = 'advantage'
    OVERTIME = 'overtime'


def classify(team1_score: int, team2_score: int, game_score_limit: int, win_by_two: bool) -> GameState:
    """Derive the match phase from the two team scores.

    Without win-by-two every play is standard. Overtime is checked before
    advantage, and advantage before match point.
    """
    limit = game_score_limit
    if not win_by_two:
        return GameState.STANDARD
    if team1_score >= limit and team2_score >= limit:
        return GameState.OVERTIME
    if (team1_score >= limit and team2_score == team1_score - 1) or \
            (team2_score >= limit and team1_score == team2_score - 1):
        return GameState.ADVANTAGE
    if (team1_score == limit - 1 and team2_score < limit - 1) or \
            (team2_score == limit - 1 and team1_score < limit - 1):
        return GameState.MATCH_POINT
    return GameState.STANDARD


def winning_team(team1_score: int, team2_score: int, game_score_limit: int, win_by_two: bool) -> Optional[int]:
    if win_by_two:
        if team1_score >= game_score_limit and team1_score - team2_score >= 2:
            return 1
        if team2_score >= game_score_limit and team2_score - team1_score >= 2:
            return 2
        return None
    if team1_score >= game_score_limit:
        return 1
    if team2_score >= game_score_limit:
        return 2
    return None


def team_score(player_stats: dict, team_penalties: dict, team: int) -> int:
    """Sum of the team's player scores minus the team penalty."""
    total = sum(player_stats[slot].score for slot in TEAM_SLOTS[team] if slot in player_stats)
    return total - int(team_penalties.get(team, 0) or 0)


def team_scores(player_stats: dict, team_penalties: dict) -> tuple:
    return team_score(player_stats, team_penalties, 1), team_score(player_stats, team_penalties, 2)
