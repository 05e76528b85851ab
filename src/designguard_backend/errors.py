"""Error taxonomy shared by the REST handlers and the chat relay.

Every error carries a stable, user-visible message and the HTTP status the
REST layer answers with. The relay sends the same message in its ``error``
event.
"""


class DesignGuardError(Exception):
    status_code = 500
    default_message = "Server Error"

    def __init__(self, message: str = None):
        self.message = message or self.default_message
        super().__init__(self.message)


class AuthenticationError(DesignGuardError):
    status_code = 401
    default_message = "Authentication error"


class AuthorizationError(DesignGuardError):
    status_code = 403
    default_message = "Access denied"


class ValidationError(DesignGuardError):
    status_code = 400
    default_message = "Invalid payload format"


class NotFoundError(DesignGuardError):
    status_code = 404
    default_message = "Not found"


class ConflictError(DesignGuardError):
    status_code = 409
    default_message = "Already exists"


class PersistenceError(DesignGuardError):
    status_code = 500
    default_message = "Server Error"


class UpstreamServiceError(DesignGuardError):
    """Media store or email provider failed or timed out."""
    status_code = 502
    default_message = "Upstream service error"


class BestEffortFailure(DesignGuardError):
    """Logged by the caller, never surfaced to a client."""
    default_message = "Best-effort delivery failed"


class RecipientOffline(BestEffortFailure):
    default_message = "Recipient has no live connection"
