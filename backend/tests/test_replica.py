import pytest

from dietracker.services.matches.errors import SubmitInProgress
from dietracker.services.matches.replica import MatchReplica


def snapshot(version, score=0, status='active'):
    return {
        'version': version,
        'status': status,
        'player_stats': {str(slot): {'name': f'P{slot}', 'score': score if slot == 1 else 0} for slot in (1, 2, 3, 4)},
        'team_penalties': {'1': 0, '2': 1},
    }


def test_newer_snapshots_replace_local_state():
    replica = MatchReplica(snapshot(1))
    assert replica.apply(snapshot(2, score=3))
    assert replica.player_stats()[1].score == 3
    assert replica.team_penalties() == {1: 0, 2: 1}


def test_echo_of_same_version_is_harmless_and_older_is_ignored():
    replica = MatchReplica(snapshot(3, score=5))
    assert replica.apply(snapshot(3, score=5))
    assert not replica.apply(snapshot(2, score=1))
    assert replica.player_stats()[1].score == 5


def test_replica_is_a_subscriber_callable():
    replica = MatchReplica()
    replica(snapshot(1, status='finished'))
    assert replica.finished


def test_submit_latch_blocks_duplicates():
    replica = MatchReplica()
    replica.begin_submit()
    assert replica.submitting
    with pytest.raises(SubmitInProgress):
        replica.begin_submit()
    replica.end_submit()
    assert not replica.submitting
    replica.begin_submit()
