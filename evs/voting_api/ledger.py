"""Vote ledger: the single source of truth for who has voted."""
import logging
from typing import List

from ..shared.errors import AlreadyVoted
from ..shared.models import TallyEntry, Vote
from .storage import Storage

logger = logging.getLogger(__name__)


class VoteLedger:
    """Write-once record of votes keyed by voter identity.

    There is no update or delete path. ``admit`` maps to one atomic
    insert-if-absent in the backend.
    """

    def __init__(self, storage: Storage):
        self.storage = storage

    async def admit(self, identity: str, candidate: str) -> Vote:
        """
        Record a vote unless the voter already has one.

        Raises:
            AlreadyVoted: A vote for this identity exists
            UnknownVoterError: No voter is registered under ``identity``
            StorageFault: The storage backend failed
        """
        vote = await self.storage.insert_vote_if_absent(identity, candidate)
        if vote is None:
            raise AlreadyVoted()
        return vote

    async def has_voted(self, identity: str) -> bool:
        return await self.storage.has_voted(identity)

    async def counts(self) -> List[TallyEntry]:
        return await self.storage.count_votes_by_candidate()
