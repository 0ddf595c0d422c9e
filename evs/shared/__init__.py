"""
Shared utilities and models for the voting service.

This package contains code used by every component:
- Data models (Voter, Vote, Tally, AuthResult, outcome enums)
- Input validation functions
- The error taxonomy
- Redis key constants
"""

from .errors import (
    VotingError,
    ValidationError,
    UnknownVoterError,
    UnknownCandidateError,
    AuthenticationError,
    ConflictError,
    IdentityAlreadyExists,
    AlreadyVoted,
    StorageFault,
    CredentialError,
    NotFound,
    SecretMismatch,
)
from .models import (
    Voter,
    Vote,
    AuthResult,
    Tally,
    TallyEntry,
    VoteOutcome,
    RegistrationOutcome,
    LoginOutcome,
    order_tally,
    is_blank,
    validate_identity_format,
    validate_secret_format,
    validate_candidate_format,
    get_current_timestamp,
    get_redis_key,
    mask_identity,
    REDIS_KEYS,
    MAX_IDENTITY_LENGTH,
    MAX_CANDIDATE_LENGTH,
    MAX_SECRET_BYTES,
)

__all__ = [
    'VotingError',
    'ValidationError',
    'UnknownVoterError',
    'UnknownCandidateError',
    'AuthenticationError',
    'ConflictError',
    'IdentityAlreadyExists',
    'AlreadyVoted',
    'StorageFault',
    'CredentialError',
    'NotFound',
    'SecretMismatch',
    'Voter',
    'Vote',
    'AuthResult',
    'Tally',
    'TallyEntry',
    'VoteOutcome',
    'RegistrationOutcome',
    'LoginOutcome',
    'order_tally',
    'is_blank',
    'validate_identity_format',
    'validate_secret_format',
    'validate_candidate_format',
    'get_current_timestamp',
    'get_redis_key',
    'mask_identity',
    'REDIS_KEYS',
    'MAX_IDENTITY_LENGTH',
    'MAX_CANDIDATE_LENGTH',
    'MAX_SECRET_BYTES',
]
