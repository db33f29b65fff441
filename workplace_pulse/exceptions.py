"""Project-wide custom exception types."""


class SessionNotFoundError(LookupError):
    """Raised when no session matches the requested id, slug or code."""


class SessionInactiveError(RuntimeError):
    """Raised when a participant tries to join or answer in an ended session."""


class ParticipantNotFoundError(LookupError):
    """Raised when a participant id is unknown within its session."""


class ParticipantAlreadyCompletedError(RuntimeError):
    """Raised when a participant who already finished the quiz completes again."""

    def __init__(self, message: str) -> None:  # noqa: D401 – simple constructor
        super().__init__(message)
