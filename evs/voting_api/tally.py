"""Tally aggregator: read-only counts over the vote ledger."""
import logging

from ..shared.models import Tally
from .ledger import VoteLedger

logger = logging.getLogger(__name__)


class TallyAggregator:
    """Recomputes per-candidate counts on every call.

    Entries are ordered by votes descending; ties are broken by candidate
    label in ascending code point order. The read sees every vote committed
    before it started and never blocks writers.
    """

    def __init__(self, ledger: VoteLedger):
        self.ledger = ledger

    async def tally(self) -> Tally:
        entries = await self.ledger.counts()
        result = Tally(entries=list(entries))
        logger.debug(f"Tally computed: {len(result.entries)} candidates, {result.total_votes} votes")
        return result
