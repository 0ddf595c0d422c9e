"""Wiring of the voting components over one storage backend."""
from dataclasses import dataclass
from typing import Optional

from .admission import VoteAdmission
from .authenticator import Authenticator
from .config import Settings
from .credentials import CredentialStore
from .ledger import VoteLedger
from .policies import policy_from_candidates
from .redis_client import VotedCache
from .storage import Storage
from .tally import TallyAggregator


@dataclass
class VotingCore:
    storage: Storage
    credentials: CredentialStore
    ledger: VoteLedger
    authenticator: Authenticator
    admission: VoteAdmission
    tally: TallyAggregator
    cache: Optional[VotedCache] = None


def build_core(
    settings: Settings,
    storage: Storage,
    cache: Optional[VotedCache] = None,
) -> VotingCore:
    """Build the components for one process. Holds no state besides the backend."""
    credentials = CredentialStore(storage, rounds=settings.BCRYPT_ROUNDS)
    ledger = VoteLedger(storage)
    return VotingCore(
        storage=storage,
        credentials=credentials,
        ledger=ledger,
        authenticator=Authenticator(credentials, ledger),
        admission=VoteAdmission(
            ledger,
            policy=policy_from_candidates(settings.CANDIDATES),
            cache=cache,
        ),
        tally=TallyAggregator(ledger),
        cache=cache,
    )
