"""Credential store: voter registration and secret verification."""
import asyncio
import logging
from typing import Optional

import bcrypt

from ..shared.errors import (
    IdentityAlreadyExists,
    NotFound,
    SecretMismatch,
    ValidationError,
)
from ..shared.models import (
    MAX_IDENTITY_LENGTH,
    MAX_SECRET_BYTES,
    is_blank,
    mask_identity,
    validate_identity_format,
    validate_secret_format,
)
from .storage import Storage

logger = logging.getLogger(__name__)

DEFAULT_BCRYPT_ROUNDS = 10

MISSING_CREDENTIALS_MESSAGE = "National ID and password are required."


def hash_secret(secret: str, rounds: int = DEFAULT_BCRYPT_ROUNDS) -> str:
    """Hash a secret with a fresh bcrypt salt."""
    return bcrypt.hashpw(secret.encode("utf-8"), bcrypt.gensalt(rounds=rounds)).decode("utf-8")


def check_secret(secret: str, secret_hash: str) -> bool:
    """Verify a secret against a stored bcrypt hash."""
    return bcrypt.checkpw(secret.encode("utf-8"), secret_hash.encode("utf-8"))


def require_credentials(identity: str, secret: str):
    """
    Validate registration or login input.

    Raises:
        ValidationError: If a field is missing or out of bounds
    """
    if is_blank(identity) or not isinstance(secret, str) or not secret:
        raise ValidationError(MISSING_CREDENTIALS_MESSAGE)
    if not validate_identity_format(identity):
        raise ValidationError(f"National ID must be at most {MAX_IDENTITY_LENGTH} characters.")
    if not validate_secret_format(secret):
        raise ValidationError(f"Password must be at most {MAX_SECRET_BYTES} bytes.")


class CredentialStore:
    """Stores one salted bcrypt hash per voter identity.

    The plaintext secret is never stored or logged. bcrypt runs in a worker
    thread so hashing does not stall the event loop.
    """

    def __init__(self, storage: Storage, rounds: int = DEFAULT_BCRYPT_ROUNDS):
        self.storage = storage
        self.rounds = rounds
        self._dummy_hash: Optional[str] = None

    async def register(self, identity: str, secret: str) -> str:
        """
        Register a new voter.

        The pre-check only avoids hashing for identities that are obviously
        taken; the insert decides the race between concurrent registrations.

        Args:
            identity: Voter identity
            secret: Plaintext secret

        Returns:
            str: The registered identity

        Raises:
            ValidationError: Missing or malformed input
            IdentityAlreadyExists: The identity is already registered
            StorageFault: The storage backend failed
        """
        require_credentials(identity, secret)

        if await self.storage.voter_exists(identity):
            logger.info(f"Registration rejected, identity exists: {mask_identity(identity)}")
            raise IdentityAlreadyExists()

        secret_hash = await asyncio.to_thread(hash_secret, secret, self.rounds)

        if not await self.storage.insert_voter(identity, secret_hash):
            logger.info(f"Registration lost insert race: {mask_identity(identity)}")
            raise IdentityAlreadyExists()

        logger.info(f"Voter registered: {mask_identity(identity)}")
        return identity

    async def verify(self, identity: str, secret: str) -> str:
        """
        Verify a voter's secret.

        Returns:
            str: The voter handle (the identity itself)

        Raises:
            NotFound: No voter with this identity
            SecretMismatch: The secret does not match
            StorageFault: The storage backend failed
        """
        if not validate_secret_format(secret):
            raise SecretMismatch()

        secret_hash = await self.storage.get_secret_hash(identity)

        if secret_hash is None:
            # Spend the same bcrypt work as a real check
            await asyncio.to_thread(check_secret, secret, await self._get_dummy_hash())
            raise NotFound()

        try:
            matched = await asyncio.to_thread(check_secret, secret, secret_hash)
        except ValueError as e:
            logger.error(f"Stored hash for {mask_identity(identity)} is unreadable: {e}")
            raise SecretMismatch() from e

        if not matched:
            raise SecretMismatch()

        return identity

    async def _get_dummy_hash(self) -> str:
        if self._dummy_hash is None:
            self._dummy_hash = await asyncio.to_thread(
                hash_secret, "evs-dummy-secret", self.rounds
            )
        return self._dummy_hash
