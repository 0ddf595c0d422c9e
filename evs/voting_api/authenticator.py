"""Authenticator: turns credentials into a voter handle."""
import logging

from ..shared.errors import AuthenticationError, CredentialError, ValidationError
from ..shared.models import AuthResult, is_blank, mask_identity
from .credentials import MISSING_CREDENTIALS_MESSAGE, CredentialStore
from .ledger import VoteLedger

logger = logging.getLogger(__name__)


class Authenticator:
    """Verifies credentials and reports whether the voter already voted.

    Unknown identity and wrong secret are indistinguishable to the caller.
    """

    def __init__(self, credentials: CredentialStore, ledger: VoteLedger):
        self.credentials = credentials
        self.ledger = ledger

    async def authenticate(self, identity: str, secret: str) -> AuthResult:
        """
        Authenticate a voter.

        Args:
            identity: Voter identity
            secret: Plaintext secret

        Returns:
            AuthResult with the voter handle and the advisory already_voted flag

        Raises:
            ValidationError: A field is missing
            AuthenticationError: Unknown identity or wrong secret
            StorageFault: The storage backend failed
        """
        if is_blank(identity) or not isinstance(secret, str) or not secret:
            raise ValidationError(MISSING_CREDENTIALS_MESSAGE)

        try:
            handle = await self.credentials.verify(identity, secret)
        except CredentialError as e:
            logger.info(
                f"Login rejected for {mask_identity(identity)}: {type(e).__name__}"
            )
            raise AuthenticationError() from None

        already_voted = await self.ledger.has_voted(handle)
        logger.info(f"Login succeeded: {mask_identity(identity)}, already_voted={already_voted}")

        return AuthResult(handle=handle, already_voted=already_voted)
