class MatchError(Exception):
    """Base class for errors surfaced to the player who triggered them."""
    status_code = 400

    def __init__(self, message=None):
        super().__init__(message or self.__doc__)
        self.message = message or self.__doc__


class ValidationError(MatchError):
    """The play or setup is missing a required selection."""
    status_code = 400


class NotAuthenticated(MatchError):
    """Sign in required."""
    status_code = 401


class MatchNotFound(MatchError):
    """Match not found or has ended."""
    status_code = 404


class SlotTaken(MatchError):
    """That player slot is already taken by another user."""
    status_code = 409


class AlreadyInMatch(MatchError):
    """You are already assigned to another player slot in this match."""
    status_code = 409


class StaleMatchState(MatchError):
    """The match changed since you last loaded it."""
    status_code = 409


class StoreWriteFailure(MatchError):
    """Failed to save match data. Please try again."""
    status_code = 503


class SubmitInProgress(MatchError):
    """Another play for this match is still being recorded."""
    status_code = 409
