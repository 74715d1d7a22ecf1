import copy
from dataclasses import dataclass
from typing import Optional

from .errors import ValidationError
from .game_state import GameState, classify, team_score
from .stats import (
    BAD_THROW_OUTCOMES, CATCH_OUTCOMES, DEFENSE_COUNTERS, FIFA_COUNTERS, HIT_OUTCOMES,
    ON_FIRE_STREAK, SPECIAL_OUTCOMES, TEAM, TEAM_SLOTS, THROW_COUNTERS,
    DefenseOutcome, FifaAction, MatchSetup, Play, RedemptionAction, ThrowOutcome,
    opponent_of, team_of,
)

BASE_POINTS = {
    ThrowOutcome.HIT: 1,
    ThrowOutcome.KNICKER: 1,
    ThrowOutcome.GOAL: 2,
    ThrowOutcome.DINK: 2,
}


@dataclass
class PlayResult:
    player_stats: dict
    team_penalties: dict
    game_state: GameState
    notice: Optional[str] = None


def points_for(outcome: ThrowOutcome, sink_points: int) -> int:
    if outcome == ThrowOutcome.SINK:
        return sink_points
    return BASE_POINTS.get(outcome, 0)


def validate_play(play: Play) -> None:
    if not play.throwing_player or not play.throw_result:
        raise ValidationError('Please select a throwing player and result')
    if (play.defending_player is None) != (play.defense_result is None):
        raise ValidationError('Please select both a defending player and a defense result')
    if (play.fifa_kicker is None) != (play.fifa_action is None):
        raise ValidationError('Please select both a FIFA kicker and a kick result')


def self_sink_notice(name: str) -> str:
    return (f'Uh Oh! {name} just sunk it in their own cup! '
            f'{name} must run a naked lap or forfeit the match!!!')


def submit_play(player_stats: dict, team_penalties: dict, setup: MatchSetup, play: Play) -> PlayResult:
    """Apply one play and return the new statistics and penalties.

    ``player_stats`` maps slot -> PlayerStatistics and ``team_penalties`` maps
    team -> int. Neither argument is modified; everything is computed on copies
    and handed back together so callers commit all of it or none of it.
    """
    validate_play(play)

    stats = copy.deepcopy(player_stats)
    penalties = {1: int(team_penalties.get(1, 0)), 2: int(team_penalties.get(2, 0))}
    # Phase and FIFA gates use the scores as they stood before this play
    start_scores = {team: team_score(stats, penalties, team) for team in (1, 2)}
    phase = classify(start_scores[1], start_scores[2], setup.game_score_limit, setup.win_by_two)

    thrower_slot = play.throwing_player
    thrower = stats[thrower_slot]
    outcome = play.throw_result

    if outcome == ThrowOutcome.SELF_SINK:
        name = thrower.name or setup.player_names[thrower_slot - 1]
        return PlayResult(stats, penalties, phase, notice=self_sink_notice(name))

    was_on_fire = thrower.currently_on_fire
    thrower.throws += 1
    thrower.bump(THROW_COUNTERS[outcome])

    if outcome in HIT_OUTCOMES:
        thrower.hits += 1
        thrower.hit_streak += 1
        if outcome in SPECIAL_OUTCOMES:
            thrower.special_throws += 1
        if outcome == ThrowOutcome.GOAL:
            thrower.goals += 1
    else:
        thrower.hit_streak = 0
        if outcome == ThrowOutcome.HEIGHT:
            thrower.blunders += 1

    if outcome == ThrowOutcome.LINE:
        thrower.line_throws += 1

    thrower.currently_on_fire = thrower.hit_streak >= ON_FIRE_STREAK
    # Counts throws made while already on fire, not activations
    if was_on_fire:
        thrower.on_fire_count += 1

    points_to_add = points_for(outcome, setup.sink_points)
    prevent_scoring = False

    throwing_team = team_of(thrower_slot)
    defending_team = opponent_of(throwing_team)
    defenders = _defenders(play.defending_player, defending_team)
    caught = play.defense_result in CATCH_OUTCOMES
    for slot in defenders:
        defender = stats[slot]
        if caught:
            defender.catches += 1
            if play.defense_result == DefenseOutcome.CATCH_PLUS_AURA:
                defender.catch_plus_aura += 1
                defender.aura += 1
            prevent_scoring = True
        else:
            defender.blunders += 1
            defender.bump(DEFENSE_COUNTERS[play.defense_result])

    if play.redemption_action == RedemptionAction.SUCCESS:
        penalties[defending_team] -= 1
        prevent_scoring = True

    if not prevent_scoring and points_to_add:
        thrower.score += points_to_add

    if play.fifa_kicker is not None:
        _apply_fifa(stats, penalties, play, defenders, caught, phase, start_scores)

    return PlayResult(stats, penalties, phase)


def _defenders(defending_player, defending_team):
    if defending_player is None:
        return ()
    if defending_player == TEAM:
        return TEAM_SLOTS[defending_team]
    return (defending_player,)


def _apply_fifa(stats, penalties, play, defenders, caught, phase, start_scores):
    kicker = stats[play.fifa_kicker]
    kicker.fifa_attempts += 1
    kicking_team = team_of(play.fifa_kicker)
    opposing_team = opponent_of(kicking_team)
    not_ahead = start_scores[kicking_team] <= start_scores[opposing_team]
    good_kick = play.fifa_action == FifaAction.GOOD_KICK

    if good_kick:
        kicker.fifa_success += 1
    kicker.bump(FIFA_COUNTERS[play.fifa_action])

    if good_kick and caught and play.throw_result in BAD_THROW_OUTCOMES:
        # FIFA save: the catching defenders are rewarded directly
        for slot in defenders:
            stats[slot].score += 1
        return

    if good_kick and phase in (GameState.MATCH_POINT, GameState.ADVANTAGE):
        penalties[opposing_team] += 1
    elif phase == GameState.OVERTIME:
        if not_ahead:
            kicker.score += 1
    else:
        kicker.score += 1
