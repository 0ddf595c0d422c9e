"""Pydantic models for request/response validation.

Field names on the wire are camelCase (``nationalId``, ``userId``) so that
existing clients keep working. Presence and content checks are done by the
service components, which answer with the same messages for every client.
"""
from datetime import datetime, timezone
from typing import List, Literal, Optional

from pydantic import BaseModel, ConfigDict, Field


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


class CredentialsRequest(BaseModel):
    """Registration and login request model."""

    model_config = ConfigDict(
        populate_by_name=True,
        json_schema_extra={
            "example": {
                "nationalId": "19850412-1234",
                "password": "correct horse battery staple"
            }
        }
    )

    national_id: Optional[str] = Field(default=None, alias="nationalId", description="National identity number")
    password: Optional[str] = Field(default=None, description="Voter password")


class VoteRequest(BaseModel):
    """Vote submission request model."""

    model_config = ConfigDict(
        populate_by_name=True,
        json_schema_extra={
            "example": {
                "userId": "19850412-1234",
                "candidate": "Alice Example"
            }
        }
    )

    user_id: Optional[str] = Field(default=None, alias="userId", description="Voter handle returned by login")
    candidate: Optional[str] = Field(default=None, description="Candidate label")


class MessageResponse(BaseModel):
    """Plain success response."""

    success: bool = Field(default=True, description="Whether the operation succeeded")
    message: str = Field(..., description="Human readable outcome")


class LoginResponse(MessageResponse):
    """Login response model."""

    model_config = ConfigDict(populate_by_name=True)

    user_id: str = Field(..., alias="userId", description="Voter handle to use when voting")
    already_voted: bool = Field(..., alias="alreadyVoted", description="Whether a vote is already recorded")


class VoteResponse(MessageResponse):
    """Vote submission response model."""

    model_config = ConfigDict(populate_by_name=True)

    candidate: str = Field(..., description="Candidate the vote was recorded for")
    cast_at: datetime = Field(..., alias="castAt", description="Server assigned cast timestamp")


class CandidateResult(BaseModel):
    candidate: str
    votes: int


class ResultsResponse(MessageResponse):
    """Tally response model, ordered by votes then candidate label."""

    model_config = ConfigDict(
        populate_by_name=True,
        json_schema_extra={
            "example": {
                "success": True,
                "message": "Results retrieved successfully.",
                "results": [
                    {"candidate": "A", "votes": 3},
                    {"candidate": "B", "votes": 1},
                    {"candidate": "C", "votes": 1}
                ],
                "totalVotes": 5
            }
        }
    )

    results: List[CandidateResult] = Field(default_factory=list)
    total_votes: int = Field(..., alias="totalVotes")


class HealthResponse(BaseModel):
    """Health check response model."""

    status: Literal["healthy", "unhealthy"] = Field(..., description="Overall health status")
    services: dict = Field(..., description="Status of individual services")
    timestamp: datetime = Field(default_factory=_utcnow, description="Health check timestamp")


class ErrorResponse(BaseModel):
    """Error response model."""

    success: bool = Field(default=False)
    message: str = Field(..., description="Human readable reason")
