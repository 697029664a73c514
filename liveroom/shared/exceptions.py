"""Error taxonomy shared by every domain.

Validation and transition errors reach the caller synchronously. Conflicts and
transient write failures are absorbed by the vote ledger and only exist here so the
ledger can name what it absorbed.
"""


class LiveRoomError(Exception):
    """Base exception for live room errors"""

    status_code = 400

    def __init__(self, message: str, status_code: int = None):
        self.message = message
        if status_code is not None:
            self.status_code = status_code
        super().__init__(message)


class ContentValidationError(LiveRoomError):
    """Activation content does not meet the minimum requirements for going live"""

    status_code = 422


class InvalidTransitionError(LiveRoomError):
    """Poll state change requested out of order"""

    status_code = 409


class VotingWindowError(LiveRoomError):
    """Vote submitted while the poll is not accepting votes"""

    status_code = 409


class NotFoundError(LiveRoomError):
    status_code = 404


class PermissionDeniedError(LiveRoomError):
    status_code = 403


class RoomInactiveError(LiveRoomError):
    status_code = 409


class ConflictError(LiveRoomError):
    """Duplicate vote or session; resolved by returning the existing record"""

    status_code = 409


class TransientWriteError(LiveRoomError):
    """Datastore temporarily unavailable during a write"""

    status_code = 503
