"""Storage contract shared by the PostgreSQL and in-memory backends."""
from typing import List, Optional, Protocol

from ..shared.models import TallyEntry, Vote
from .config import Settings


class Storage(Protocol):
    """Operations the credential store and vote ledger need from a backend.

    Implementations must make ``insert_voter`` and ``insert_vote_if_absent``
    atomic per key and report infrastructure failures as StorageFault.
    """

    name: str

    async def initialize(self) -> None: ...

    async def voter_exists(self, identity: str) -> bool: ...

    async def insert_voter(self, identity: str, secret_hash: str) -> bool: ...

    async def get_secret_hash(self, identity: str) -> Optional[str]: ...

    async def insert_vote_if_absent(self, identity: str, candidate: str) -> Optional[Vote]: ...

    async def has_voted(self, identity: str) -> bool: ...

    async def count_votes_by_candidate(self) -> List[TallyEntry]: ...

    async def check_health(self) -> bool: ...

    async def close(self) -> None: ...


def create_storage(settings: Settings) -> Storage:
    """Build the backend selected by STORAGE_BACKEND."""
    if settings.STORAGE_BACKEND == "memory":
        from .memory_storage import MemoryStorage
        return MemoryStorage()

    from .database import PostgresStorage
    return PostgresStorage(settings)
