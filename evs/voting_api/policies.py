"""Candidate selection policies.

The service accepts any non-blank label unless an allow-list is configured.
"""
from typing import Iterable, Protocol

from ..shared.errors import UnknownCandidateError


class CandidatePolicy(Protocol):
    def check(self, candidate: str) -> None:
        """Raise UnknownCandidateError if ``candidate`` is not acceptable."""
        ...


class AcceptAnyCandidate:
    """Permissive policy: every non-blank label is a valid candidate."""

    def check(self, candidate: str) -> None:
        return None

    def __repr__(self) -> str:
        return "AcceptAnyCandidate()"


class AllowListCandidatePolicy:
    """Only labels in a fixed candidate set are accepted. Matching is exact."""

    def __init__(self, candidates: Iterable[str]):
        self.candidates = frozenset(candidates)
        if not self.candidates:
            raise ValueError("Allow-list policy needs at least one candidate")

    def check(self, candidate: str) -> None:
        if candidate not in self.candidates:
            raise UnknownCandidateError()

    def __repr__(self) -> str:
        return f"AllowListCandidatePolicy({sorted(self.candidates)!r})"


def policy_from_candidates(candidates: Iterable[str]) -> CandidatePolicy:
    """Pick the allow-list policy when candidates are configured."""
    candidates = list(candidates or [])
    if candidates:
        return AllowListCandidatePolicy(candidates)
    return AcceptAnyCandidate()
