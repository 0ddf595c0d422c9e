"""In-process storage with the same contract as PostgresStorage.

Used for local runs (STORAGE_BACKEND=memory) and the unit tests. State lives
only as long as the object, so it is not suitable for replicated deployments.
"""
import asyncio
import logging
from collections import Counter
from typing import Dict, List, Optional

from ..shared.errors import UnknownVoterError
from ..shared.models import TallyEntry, Vote, Voter, get_current_timestamp, order_tally

logger = logging.getLogger(__name__)


class MemoryStorage:
    """Dictionary backed voter and vote tables.

    Inserts go through ``dict.setdefault`` so the insert itself decides which
    writer wins, mirroring the primary key constraints of the SQL schema.
    """

    name = "memory"

    def __init__(self):
        self._voters: Dict[str, Voter] = {}
        self._votes: Dict[str, Vote] = {}

    async def initialize(self):
        logger.info("In-memory storage initialized")

    async def voter_exists(self, identity: str) -> bool:
        await asyncio.sleep(0)
        return identity in self._voters

    async def insert_voter(self, identity: str, secret_hash: str) -> bool:
        await asyncio.sleep(0)
        record = Voter(
            identity=identity,
            secret_hash=secret_hash,
            created_at=get_current_timestamp()
        )
        return self._voters.setdefault(identity, record) is record

    async def get_secret_hash(self, identity: str) -> Optional[str]:
        await asyncio.sleep(0)
        voter = self._voters.get(identity)
        return voter.secret_hash if voter else None

    async def insert_vote_if_absent(self, identity: str, candidate: str) -> Optional[Vote]:
        await asyncio.sleep(0)
        if identity not in self._voters:
            raise UnknownVoterError()

        vote = Vote(voter_id=identity, candidate=candidate, cast_at=get_current_timestamp())
        if self._votes.setdefault(identity, vote) is not vote:
            return None
        return vote

    async def has_voted(self, identity: str) -> bool:
        await asyncio.sleep(0)
        return identity in self._votes

    async def count_votes_by_candidate(self) -> List[TallyEntry]:
        await asyncio.sleep(0)
        counts = Counter(vote.candidate for vote in list(self._votes.values()))
        return order_tally(counts)

    async def check_health(self) -> bool:
        return True

    async def close(self):
        logger.info("In-memory storage closed")
