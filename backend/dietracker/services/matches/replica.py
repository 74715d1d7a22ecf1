import threading

from .errors import SubmitInProgress
from .stats import stats_from_rows


class MatchReplica:
    """Local copy of a live match kept in step with ``match_update`` pushes.

    Every pushed row replaces the local state outright unless it is older than
    what we already hold, so an echo of our own write is harmless. The submit
    latch stops a second play going out while one is in flight.
    """

    def __init__(self, snapshot=None):
        self.snapshot = None
        self._submit_lock = threading.Lock()
        if snapshot:
            self.apply(snapshot)

    def __call__(self, snapshot):
        self.apply(snapshot)

    @property
    def version(self):
        return self.snapshot['version'] if self.snapshot else -1

    @property
    def finished(self):
        return bool(self.snapshot) and self.snapshot.get('status') == 'finished'

    @property
    def submitting(self):
        return self._submit_lock.locked()

    def apply(self, snapshot) -> bool:
        """Adopt ``snapshot``; returns False if it was older than ours."""
        if snapshot.get('version', 0) < self.version:
            return False
        self.snapshot = snapshot
        return True

    def player_stats(self) -> dict:
        return stats_from_rows(self.snapshot['player_stats']) if self.snapshot else {}

    def team_penalties(self) -> dict:
        if not self.snapshot:
            return {1: 0, 2: 0}
        return {int(team): value for team, value in self.snapshot['team_penalties'].items()}

    def begin_submit(self) -> None:
        if not self._submit_lock.acquire(blocking=False):
            raise SubmitInProgress()

    def end_submit(self) -> None:
        if self._submit_lock.locked():
            self._submit_lock.release()
