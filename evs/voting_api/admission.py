"""
Vote admission: the exactly-once write path.

A vote is admitted by a single insert-if-absent keyed by the voter identity.
Under any number of concurrent or retried submissions for one voter, exactly
one insert succeeds and every other attempt ends in AlreadyVoted.

The optional voted cache only ever short-circuits to AlreadyVoted; it can
never admit a vote.
"""
import logging
from typing import Optional

from ..shared.errors import AlreadyVoted, ValidationError
from ..shared.models import (
    MAX_CANDIDATE_LENGTH,
    Vote,
    is_blank,
    mask_identity,
    validate_candidate_format,
)
from .ledger import VoteLedger
from .policies import AcceptAnyCandidate, CandidatePolicy
from .redis_client import VotedCache

logger = logging.getLogger(__name__)

MISSING_VOTE_FIELDS_MESSAGE = "User ID (National ID) and candidate are required."


class VoteAdmission:
    """Admits at most one vote per voter handle."""

    def __init__(
        self,
        ledger: VoteLedger,
        policy: Optional[CandidatePolicy] = None,
        cache: Optional[VotedCache] = None,
    ):
        self.ledger = ledger
        self.policy = policy or AcceptAnyCandidate()
        self.cache = cache

    async def cast_vote(self, handle: str, candidate: str) -> Vote:
        """
        Cast a vote for ``candidate`` on behalf of ``handle``.

        Args:
            handle: Voter handle returned by authentication
            candidate: Candidate label

        Returns:
            Vote: The admitted vote with its server assigned timestamp

        Raises:
            ValidationError: Missing fields, unknown voter or rejected candidate
            AlreadyVoted: A vote for this voter was already admitted
            StorageFault: The storage backend failed; safe to retry
        """
        if is_blank(handle) or is_blank(candidate):
            raise ValidationError(MISSING_VOTE_FIELDS_MESSAGE)
        if not validate_candidate_format(candidate):
            raise ValidationError(f"Candidate must be at most {MAX_CANDIDATE_LENGTH} characters.")

        self.policy.check(candidate)

        if self.cache is not None and await self.cache.is_marked(handle):
            logger.info(f"Vote rejected from cache, already voted: {mask_identity(handle)}")
            raise AlreadyVoted()

        try:
            vote = await self.ledger.admit(handle, candidate)
        except AlreadyVoted:
            logger.info(f"Vote rejected, already voted: {mask_identity(handle)}")
            await self._mark_voted(handle)
            raise

        logger.info(f"Vote admitted: voter={mask_identity(handle)}, candidate={candidate}")
        await self._mark_voted(handle)
        return vote

    async def _mark_voted(self, handle: str):
        if self.cache is not None:
            await self.cache.mark(handle)
