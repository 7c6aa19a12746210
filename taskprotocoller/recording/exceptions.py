"""Errors raised by the recording runtime and its collaborators."""


class RecordingError(Exception):
    """Base class for recording runtime errors."""


class InvalidTransitionError(RecordingError):
    """Raised when an action is not allowed in the session's current status."""

    def __init__(self, action: str, status) -> None:
        self.action = action
        self.status = status
        super().__init__(f"Cannot {action} while {getattr(status, 'value', status)}")


class PermissionDeniedError(RecordingError):
    """Raised by a media capture collaborator when microphone access is denied or unavailable."""


class SubmissionError(RecordingError):
    """Raised by a result sink that rejects an attempt result."""
