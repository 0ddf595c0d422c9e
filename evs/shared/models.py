"""
Shared data models and utilities for the voting service.

This module contains:
- Voter, Vote, Tally: records handed between the components
- VoteOutcome / RegistrationOutcome / LoginOutcome: labels used for logs and metrics
- Input validation helpers for identities, secrets and candidates
- Redis key helpers for the voted cache
"""

from dataclasses import dataclass, field
from datetime import datetime, timezone
from enum import Enum
from typing import Dict, List, Optional

# Limits on client supplied values
MAX_IDENTITY_LENGTH = 128
MAX_CANDIDATE_LENGTH = 200
# bcrypt only reads the first 72 bytes of its input
MAX_SECRET_BYTES = 72


class VoteOutcome(str, Enum):
    """Result of a vote admission attempt."""
    ACCEPTED = "accepted"
    ALREADY_VOTED = "already_voted"
    INVALID = "invalid"
    STORAGE_FAULT = "storage_fault"


class RegistrationOutcome(str, Enum):
    """Result of a registration attempt."""
    CREATED = "created"
    CONFLICT = "conflict"
    INVALID = "invalid"
    STORAGE_FAULT = "storage_fault"


class LoginOutcome(str, Enum):
    """Result of an authentication attempt."""
    SUCCESS = "success"
    REJECTED = "rejected"
    INVALID = "invalid"
    STORAGE_FAULT = "storage_fault"


@dataclass(frozen=True)
class Voter:
    """
    A registered voter.

    Attributes:
        identity: Externally issued identifier (e.g. national ID), opaque string
        secret_hash: bcrypt hash of the voter's secret; the cost factor is
            embedded in the hash string
        created_at: When the record was inserted
    """
    identity: str
    secret_hash: str
    created_at: Optional[datetime] = None

    def __repr__(self) -> str:
        return f"Voter(identity={self.identity!r})"


@dataclass(frozen=True)
class Vote:
    """
    A single admitted vote. Keyed by the voter identity; never updated.

    Attributes:
        voter_id: Identity of the voter who cast it
        candidate: Opaque candidate label
        cast_at: Server assigned timestamp
    """
    voter_id: str
    candidate: str
    cast_at: datetime


@dataclass(frozen=True)
class AuthResult:
    """Outcome of a successful authentication.

    ``already_voted`` is advisory; admission still performs its own atomic check.
    """
    handle: str
    already_voted: bool


@dataclass(frozen=True)
class TallyEntry:
    candidate: str
    votes: int


@dataclass(frozen=True)
class Tally:
    """Ordered per-candidate counts."""
    entries: List[TallyEntry] = field(default_factory=list)

    @property
    def total_votes(self) -> int:
        return sum(entry.votes for entry in self.entries)

    def as_pairs(self) -> List[tuple]:
        return [(entry.candidate, entry.votes) for entry in self.entries]


def order_tally(counts: Dict[str, int]) -> List[TallyEntry]:
    """
    Order candidate counts by votes descending, then label ascending.

    Labels compare by code point so the ordering does not depend on locale.

    Args:
        counts: Mapping of candidate label to vote count

    Returns:
        list: Ordered tally entries
    """
    ordered = sorted(counts.items(), key=lambda item: (-item[1], item[0]))
    return [TallyEntry(candidate=candidate, votes=votes) for candidate, votes in ordered]


def is_blank(value: Optional[str]) -> bool:
    """True for None, non-strings and strings holding only whitespace."""
    return not isinstance(value, str) or not value.strip()


def validate_identity_format(identity: str) -> bool:
    """
    Validate a voter identity.

    Identities are opaque: any non-blank string up to MAX_IDENTITY_LENGTH
    characters is accepted as-is.

    Args:
        identity: Identity to validate

    Returns:
        bool: True if valid format
    """
    return not is_blank(identity) and len(identity) <= MAX_IDENTITY_LENGTH


def validate_secret_format(secret: str) -> bool:
    """
    Validate a secret before hashing.

    Args:
        secret: Plaintext secret

    Returns:
        bool: True if the secret is non-empty and fits bcrypt's input limit
    """
    if not isinstance(secret, str) or not secret:
        return False
    return len(secret.encode('utf-8')) <= MAX_SECRET_BYTES


def validate_candidate_format(candidate: str) -> bool:
    """
    Validate a candidate selection.

    Args:
        candidate: Candidate label

    Returns:
        bool: True if valid format
    """
    return not is_blank(candidate) and len(candidate) <= MAX_CANDIDATE_LENGTH


def get_current_timestamp() -> datetime:
    """
    Get current UTC time.

    Returns:
        datetime: Timezone aware UTC timestamp
    """
    return datetime.now(timezone.utc)


# Redis keys for the voted cache
REDIS_KEYS = {
    'voted_voters': 'evs:voted_voters',    # SET of identities with a committed vote
}


def get_redis_key(key_type: str, *args) -> str:
    """
    Get formatted Redis key.

    Args:
        key_type: Type of key from REDIS_KEYS
        *args: Arguments to format into key

    Returns:
        str: Formatted Redis key
    """
    key_template = REDIS_KEYS.get(key_type)
    if key_template and '{}' in key_template:
        return key_template.format(*args)
    return key_template


def mask_identity(identity: str) -> str:
    """
    Mask an identity for log output, keeping only the last four characters.

    Args:
        identity: Voter identity

    Returns:
        str: Masked identity such as ``*****6789``
    """
    if not isinstance(identity, str):
        return "<invalid>"
    if len(identity) <= 4:
        return "*" * len(identity)
    return "*" * (len(identity) - 4) + identity[-4:]
