"""
Domain error taxonomy for the session lifecycle engine.

NotFound and InvalidState are always surfaced to the caller. UpstreamFailure is raised by
the notification and meeting-link collaborators; callers decide whether it is fatal.
PersistenceFailure wraps storage errors on a primary mutation.
"""


class TutorlyError(Exception):
    """Base class for session lifecycle errors"""

    code = "TUTORLY_ERROR"

    def __init__(self, message: str, details=None):
        super().__init__(message)
        self.message = message
        self.details = details


class NotFound(TutorlyError):
    """
    The id does not resolve, belongs to another owner, or is in the wrong status.

    Ownership-guarded lookups raise this for all three cases on purpose, so a caller
    cannot discover which sessions exist or who owns them.
    """

    code = "SESSION_NOT_FOUND"


class InvalidState(TutorlyError):
    """The entity exists and is owned by the caller but its status forbids the transition"""

    code = "INVALID_STATE"


class UpstreamFailure(TutorlyError):
    """The notification or video-conferencing provider failed"""

    code = "UPSTREAM_FAILURE"


class PersistenceFailure(TutorlyError):
    """The storage layer failed on a read or write"""

    code = "PERSISTENCE_FAILURE"
