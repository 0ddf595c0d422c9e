"""
Error taxonomy shared by the voting service components.

Every error carries the HTTP status the boundary should answer with and a
message that is safe to show to the client. Storage detail never goes into
``message``; it is logged where the fault is translated.
"""


class VotingError(Exception):
    """Base class for all expected voting service errors."""

    status_code = 500
    default_message = "An unexpected error occurred."

    def __init__(self, message: str = None):
        self.message = message or self.default_message
        super().__init__(self.message)


class ValidationError(VotingError):
    """Missing or malformed input. The client must correct it and resend."""

    status_code = 400
    default_message = "Invalid request."


class UnknownVoterError(ValidationError):
    """A vote was cast with a handle that matches no registered voter."""

    default_message = "Unknown voter."


class UnknownCandidateError(ValidationError):
    """The candidate policy rejected the selection."""

    default_message = "Unknown candidate."


class AuthenticationError(VotingError):
    """Invalid credentials.

    The same message is used whether the identity is unknown or the secret
    is wrong, so callers cannot enumerate registered identities.
    """

    status_code = 401
    default_message = "Invalid National ID or password."


class ConflictError(VotingError):
    """An expected conflict: the write was already done once."""

    status_code = 409
    default_message = "Conflict."


class IdentityAlreadyExists(ConflictError):
    default_message = "National ID already registered."


class AlreadyVoted(ConflictError):
    default_message = "You have already voted."


class StorageFault(VotingError):
    """Connectivity, timeout or driver failure in the storage layer.

    Safe to retry: a fault never stands for a committed write.
    """

    status_code = 500
    default_message = "Storage is temporarily unavailable."

    def __init__(self, message: str = None, operation: str = None):
        super().__init__(message)
        self.operation = operation


class CredentialError(Exception):
    """Internal credential check outcome, never shown to clients."""


class NotFound(CredentialError):
    pass


class SecretMismatch(CredentialError):
    pass
