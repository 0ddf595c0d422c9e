"""Tests for vote admission: the exactly-once write path.

Concurrent submissions are issued with asyncio.gather. MemoryStorage yields
to the event loop before every operation, so submissions interleave the way
independent requests do.
"""

import asyncio

import pytest

from evs.shared.errors import (
    AlreadyVoted,
    ConflictError,
    StorageFault,
    UnknownCandidateError,
    UnknownVoterError,
    ValidationError,
)
from evs.voting_api.admission import VoteAdmission
from evs.voting_api.ledger import VoteLedger
from evs.voting_api.memory_storage import MemoryStorage
from evs.voting_api.policies import AllowListCandidatePolicy
from evs.voting_api.redis_client import VotedCache
from evs.voting_api.service import build_core


async def _register(core, *identities):
    for identity in identities:
        await core.credentials.register(identity, "secret")


@pytest.mark.asyncio
class TestCastVote:
    """Tests for VoteAdmission.cast_vote."""

    async def test_first_vote_admitted(self, core):
        await _register(core, "123456789")

        vote = await core.admission.cast_vote("123456789", "Alice")

        assert vote.voter_id == "123456789"
        assert vote.candidate == "Alice"
        assert vote.cast_at is not None
        assert await core.ledger.has_voted("123456789")

    async def test_second_vote_rejected_and_first_kept(self, core):
        await _register(core, "123456789")
        await core.admission.cast_vote("123456789", "Alice")

        with pytest.raises(AlreadyVoted) as exc_info:
            await core.admission.cast_vote("123456789", "Bob")

        assert isinstance(exc_info.value, ConflictError)
        assert exc_info.value.message == "You have already voted."
        assert (await core.tally.tally()).as_pairs() == [("Alice", 1)]

    async def test_retry_of_identical_request_does_not_double_count(self, core):
        """A resend after a lost response resolves to a conflict, never a second record."""
        await _register(core, "123456789")
        await core.admission.cast_vote("123456789", "Alice")

        with pytest.raises(AlreadyVoted):
            await core.admission.cast_vote("123456789", "Alice")

        tally = await core.tally.tally()
        assert tally.as_pairs() == [("Alice", 1)]

    @pytest.mark.parametrize("attempts", [2, 10, 50])
    async def test_concurrent_votes_exactly_once(self, core, attempts):
        """N concurrent casts for one voter: one success, N-1 conflicts, one record."""
        await _register(core, "123456789")

        results = await asyncio.gather(
            *[core.admission.cast_vote("123456789", f"candidate-{i % 3}") for i in range(attempts)],
            return_exceptions=True
        )

        successes = [r for r in results if not isinstance(r, BaseException)]
        conflicts = [r for r in results if isinstance(r, AlreadyVoted)]
        assert len(successes) == 1
        assert len(conflicts) == attempts - 1

        tally = await core.tally.tally()
        assert tally.total_votes == 1
        assert tally.entries[0].candidate == successes[0].candidate

    async def test_concurrent_votes_from_different_voters_all_admitted(self, core):
        voters = [f"voter-{i}" for i in range(20)]
        await _register(core, *voters)

        results = await asyncio.gather(
            *[core.admission.cast_vote(voter, "A") for voter in voters]
        )

        assert len(results) == 20
        assert (await core.tally.tally()).as_pairs() == [("A", 20)]

    async def test_check_then_act_race_is_caught_by_the_insert(self, storage, core):
        """Even if a has_voted read is stale, the insert rejects the second vote."""
        await _register(core, "123456789")
        ledger = VoteLedger(storage)

        async def stale_has_voted(identity):
            return False

        storage.has_voted = stale_has_voted
        admission = VoteAdmission(ledger)

        await admission.cast_vote("123456789", "A")
        with pytest.raises(AlreadyVoted):
            await admission.cast_vote("123456789", "B")

    async def test_unknown_voter_rejected(self, core):
        with pytest.raises(UnknownVoterError) as exc_info:
            await core.admission.cast_vote("never-registered", "A")

        assert isinstance(exc_info.value, ValidationError)
        assert (await core.tally.tally()).total_votes == 0

    @pytest.mark.parametrize("handle,candidate", [
        ("", "A"),
        ("123456789", ""),
        ("123456789", "   "),
        (None, "A"),
        ("123456789", None),
    ])
    async def test_missing_fields(self, core, handle, candidate):
        await _register(core, "123456789")

        with pytest.raises(ValidationError) as exc_info:
            await core.admission.cast_vote(handle, candidate)

        assert exc_info.value.message == "User ID (National ID) and candidate are required."

    async def test_oversized_candidate_rejected(self, core):
        await _register(core, "123456789")
        with pytest.raises(ValidationError):
            await core.admission.cast_vote("123456789", "c" * 201)

    async def test_candidate_stored_verbatim(self, core):
        await _register(core, "123456789")
        vote = await core.admission.cast_vote("123456789", "  Alice Example ")
        assert vote.candidate == "  Alice Example "

    async def test_storage_fault_is_distinct_and_retryable(self, test_settings, faulty_storage_factory):
        """A fault is neither success nor AlreadyVoted, and a retry can still succeed."""
        storage = faulty_storage_factory()
        core = build_core(test_settings, storage)
        await core.credentials.register("123", "secret")

        storage.failing.add("insert_vote")
        with pytest.raises(StorageFault) as exc_info:
            await core.admission.cast_vote("123", "A")
        assert not isinstance(exc_info.value, ConflictError)
        assert not await storage.has_voted("123")

        storage.failing.clear()
        vote = await core.admission.cast_vote("123", "A")
        assert vote.candidate == "A"


@pytest.mark.asyncio
class TestCandidatePolicy:
    """Admission with an allow-list of candidates."""

    async def test_allow_list_rejects_unknown_candidate(self, test_settings, storage):
        test_settings.CANDIDATES = ["Alice", "Bob"]
        core = build_core(test_settings, storage)
        await _register(core, "123")

        with pytest.raises(UnknownCandidateError):
            await core.admission.cast_vote("123", "Mallory")
        assert not await core.ledger.has_voted("123")

        vote = await core.admission.cast_vote("123", "Bob")
        assert vote.candidate == "Bob"

    async def test_allow_list_matching_is_exact(self, storage):
        admission = VoteAdmission(VoteLedger(storage), policy=AllowListCandidatePolicy(["Alice"]))
        with pytest.raises(UnknownCandidateError):
            await admission.cast_vote("123", "alice")


@pytest.mark.asyncio
class TestVotedCache:
    """Admission with the Redis voted cache in front of the ledger."""

    async def test_admission_marks_cache(self, core, fake_redis):
        await _register(core, "123")
        cache = VotedCache(fake_redis)
        admission = VoteAdmission(core.ledger, cache=cache)

        await admission.cast_vote("123", "A")

        assert await cache.is_marked("123")

    async def test_cache_hit_short_circuits(self, fake_redis):
        storage = MemoryStorage()
        cache = VotedCache(fake_redis)
        await cache.mark("123")

        calls = []

        async def tracking_insert(identity, candidate):
            calls.append(identity)
            return None

        storage.insert_vote_if_absent = tracking_insert
        admission = VoteAdmission(VoteLedger(storage), cache=cache)

        with pytest.raises(AlreadyVoted):
            await admission.cast_vote("123", "A")
        assert calls == []

    async def test_conflict_from_ledger_marks_cache(self, core, fake_redis):
        await _register(core, "123")
        await core.admission.cast_vote("123", "A")

        cache = VotedCache(fake_redis)
        admission = VoteAdmission(core.ledger, cache=cache)

        with pytest.raises(AlreadyVoted):
            await admission.cast_vote("123", "B")
        assert await cache.is_marked("123")

    async def test_cache_failure_does_not_change_outcome(self, core, failing_redis):
        await _register(core, "123")
        admission = VoteAdmission(core.ledger, cache=VotedCache(failing_redis))

        vote = await admission.cast_vote("123", "A")
        assert vote.candidate == "A"

        with pytest.raises(AlreadyVoted):
            await admission.cast_vote("123", "A")

    async def test_concurrent_votes_with_cache_exactly_once(self, core, fake_redis):
        await _register(core, "123")
        admission = VoteAdmission(core.ledger, cache=VotedCache(fake_redis))

        results = await asyncio.gather(
            *[admission.cast_vote("123", "A") for _ in range(10)],
            return_exceptions=True
        )

        assert sum(1 for r in results if not isinstance(r, BaseException)) == 1
        assert sum(1 for r in results if isinstance(r, AlreadyVoted)) == 9
