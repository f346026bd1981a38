"""Error taxonomy for the state and synchronization engine."""


class EngineError(Exception):
    """Base class for engine errors."""


class ValidationError(EngineError):
    """Malformed or unknown action, or a reference to missing content.

    Raised before any mutation; the snapshot is left untouched.
    """


class PersistenceError(EngineError):
    """Storage read/write failure on a persistence backend."""


class SyncError(EngineError):
    """Remote sync failure. The operation stays queued.

    Args:
        message: Human readable reason.
        permanent: True when the remote judged the operation inapplicable,
            so resending it can never succeed.
    """

    def __init__(self, message: str, permanent: bool = False):
        super().__init__(message)
        self.permanent = permanent


class ContentError(EngineError):
    """Content collaborator could not supply word banks or patterns."""
