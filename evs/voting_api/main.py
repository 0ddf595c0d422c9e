"""
FastAPI application for the election voting API.

Routes (under /api/{API_VERSION}):
- POST /register: create a voter credential
- POST /login: authenticate and learn whether a vote is already recorded
- POST /vote: cast the voter's single vote
- GET /results: ordered tally
- GET /health: storage and cache status
"""
import logging
import time
from contextlib import asynccontextmanager
from typing import Optional

from fastapi import APIRouter, FastAPI, Request, status
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse, Response
from prometheus_client import CONTENT_TYPE_LATEST, Counter, Histogram, generate_latest
from slowapi import Limiter, _rate_limit_exceeded_handler
from slowapi.errors import RateLimitExceeded
from slowapi.util import get_remote_address

from ..shared.errors import (
    ConflictError,
    StorageFault,
    ValidationError,
    VotingError,
    AuthenticationError,
)
from ..shared.models import (
    LoginOutcome,
    RegistrationOutcome,
    VoteOutcome,
    get_current_timestamp,
)
from .admission import MISSING_VOTE_FIELDS_MESSAGE
from .config import Settings, settings
from .credentials import MISSING_CREDENTIALS_MESSAGE
from .models import (
    CandidateResult,
    CredentialsRequest,
    ErrorResponse,
    HealthResponse,
    LoginResponse,
    MessageResponse,
    ResultsResponse,
    VoteRequest,
    VoteResponse,
)
from .redis_client import VotedCache
from .service import VotingCore, build_core
from .storage import Storage, create_storage

# Configure logging
logging.basicConfig(
    level=logging.DEBUG if settings.DEBUG else getattr(logging, settings.LOG_LEVEL.upper(), logging.INFO),
    format="%(asctime)s - %(name)s - %(levelname)s - %(message)s"
)
logger = logging.getLogger(__name__)

# Prometheus metrics
registrations_total = Counter(
    "voter_registrations_total",
    "Total number of registration attempts",
    ["outcome"]
)
logins_total = Counter(
    "voter_logins_total",
    "Total number of login attempts",
    ["outcome"]
)
votes_cast_total = Counter(
    "votes_cast_total",
    "Total number of vote submissions",
    ["outcome"]
)
request_duration = Histogram(
    "http_request_duration_seconds",
    "HTTP request duration in seconds",
    ["method", "endpoint", "status"]
)

# Client facing messages for storage faults, per operation
REGISTER_FAULT_MESSAGE = "An error occurred during registration."
LOGIN_FAULT_MESSAGE = "An error occurred during login."
VOTE_FAULT_MESSAGE = "An error occurred while submitting your vote."
RESULTS_FAULT_MESSAGE = "An error occurred while computing results."

# 400 messages for bodies that do not parse, keyed by the last path segment
REQUEST_VALIDATION_MESSAGES = {
    "register": MISSING_CREDENTIALS_MESSAGE,
    "login": MISSING_CREDENTIALS_MESSAGE,
    "vote": MISSING_VOTE_FIELDS_MESSAGE,
}

ERROR_RESPONSES = {
    400: {"model": ErrorResponse, "description": "Missing or invalid fields"},
    500: {"model": ErrorResponse, "description": "Storage fault"},
}


def get_core(request: Request) -> VotingCore:
    return request.app.state.core


@asynccontextmanager
async def lifespan(app: FastAPI):
    """Lifespan context manager for startup and shutdown events."""
    app_settings: Settings = app.state.settings
    logger.info(f"Starting {app_settings.SERVICE_NAME} service...")

    storage: Storage = app.state.storage or create_storage(app_settings)
    cache: Optional[VotedCache] = None

    try:
        await storage.initialize()

        if app_settings.REDIS_ENABLED:
            cache = VotedCache.from_url(app_settings.redis_url)
            await cache.initialize()

        app.state.core = build_core(app_settings, storage, cache)
        logger.info(
            f"{app_settings.SERVICE_NAME} started successfully "
            f"(storage={storage.name}, policy={app.state.core.admission.policy!r})"
        )

    except Exception as e:
        logger.error(f"Failed to start {app_settings.SERVICE_NAME}: {e}")
        if cache is not None:
            await cache.close()
        await storage.close()
        raise

    yield

    logger.info(f"Shutting down {app_settings.SERVICE_NAME} service...")

    if cache is not None:
        await cache.close()
    await storage.close()
    logger.info(f"{app_settings.SERVICE_NAME} shut down successfully")


async def prometheus_middleware(request: Request, call_next):
    """Middleware to track request duration."""
    start_time = time.perf_counter()
    response = await call_next(request)

    route = request.scope.get("route")
    endpoint = route.path if route is not None else request.url.path
    request_duration.labels(
        method=request.method,
        endpoint=endpoint,
        status=response.status_code
    ).observe(time.perf_counter() - start_time)

    return response


async def voting_error_handler(request: Request, exc: VotingError) -> JSONResponse:
    """Render a service error as {success: false, message}."""
    return JSONResponse(
        status_code=exc.status_code,
        content=ErrorResponse(message=exc.message).model_dump()
    )


async def request_validation_handler(request: Request, exc: RequestValidationError) -> JSONResponse:
    """Answer unparseable or mistyped bodies with 400 instead of 422."""
    segment = request.url.path.rstrip("/").rsplit("/", 1)[-1]
    message = REQUEST_VALIDATION_MESSAGES.get(segment, "Invalid request.")
    logger.debug(f"Request validation failed on {request.url.path}: {exc.errors()}")
    return JSONResponse(
        status_code=status.HTTP_400_BAD_REQUEST,
        content=ErrorResponse(message=message).model_dump()
    )


async def register(request: Request, body: CredentialsRequest) -> MessageResponse:
    """
    Register a voter.

    - **nationalId**: National identity number, treated as an opaque string
    - **password**: Password; only a bcrypt hash is stored
    """
    core = get_core(request)

    try:
        await core.credentials.register(body.national_id, body.password)

    except ValidationError:
        registrations_total.labels(outcome=RegistrationOutcome.INVALID.value).inc()
        raise
    except ConflictError:
        registrations_total.labels(outcome=RegistrationOutcome.CONFLICT.value).inc()
        raise
    except StorageFault as e:
        registrations_total.labels(outcome=RegistrationOutcome.STORAGE_FAULT.value).inc()
        raise StorageFault(REGISTER_FAULT_MESSAGE, operation=e.operation) from e
    except Exception as e:
        registrations_total.labels(outcome=RegistrationOutcome.STORAGE_FAULT.value).inc()
        logger.error(f"Error during registration: {e}")
        raise VotingError(REGISTER_FAULT_MESSAGE) from e

    registrations_total.labels(outcome=RegistrationOutcome.CREATED.value).inc()
    return MessageResponse(message="Registration successful!")


async def login(request: Request, body: CredentialsRequest) -> LoginResponse:
    """
    Authenticate a voter.

    Returns the voter handle (``userId``) to send with the vote, and whether
    a vote is already recorded for this voter.
    """
    core = get_core(request)

    try:
        result = await core.authenticator.authenticate(body.national_id, body.password)

    except ValidationError:
        logins_total.labels(outcome=LoginOutcome.INVALID.value).inc()
        raise
    except AuthenticationError:
        logins_total.labels(outcome=LoginOutcome.REJECTED.value).inc()
        raise
    except StorageFault as e:
        logins_total.labels(outcome=LoginOutcome.STORAGE_FAULT.value).inc()
        raise StorageFault(LOGIN_FAULT_MESSAGE, operation=e.operation) from e
    except Exception as e:
        logins_total.labels(outcome=LoginOutcome.STORAGE_FAULT.value).inc()
        logger.error(f"Error during login: {e}")
        raise VotingError(LOGIN_FAULT_MESSAGE) from e

    logins_total.labels(outcome=LoginOutcome.SUCCESS.value).inc()
    return LoginResponse(
        message="Login successful!",
        user_id=result.handle,
        already_voted=result.already_voted
    )


async def cast_vote(request: Request, body: VoteRequest) -> VoteResponse:
    """
    Cast the voter's single vote.

    - **userId**: Voter handle returned by login
    - **candidate**: Candidate label

    A second submission for the same voter, concurrent or not, gets 409.
    """
    core = get_core(request)

    try:
        vote = await core.admission.cast_vote(body.user_id, body.candidate)

    except ValidationError:
        votes_cast_total.labels(outcome=VoteOutcome.INVALID.value).inc()
        raise
    except ConflictError:
        votes_cast_total.labels(outcome=VoteOutcome.ALREADY_VOTED.value).inc()
        raise
    except StorageFault as e:
        votes_cast_total.labels(outcome=VoteOutcome.STORAGE_FAULT.value).inc()
        raise StorageFault(VOTE_FAULT_MESSAGE, operation=e.operation) from e
    except Exception as e:
        votes_cast_total.labels(outcome=VoteOutcome.STORAGE_FAULT.value).inc()
        logger.error(f"Error submitting vote: {e}")
        raise VotingError(VOTE_FAULT_MESSAGE) from e

    votes_cast_total.labels(outcome=VoteOutcome.ACCEPTED.value).inc()
    return VoteResponse(
        message=f"Vote for {vote.candidate} submitted successfully!",
        candidate=vote.candidate,
        cast_at=vote.cast_at
    )


async def get_results(request: Request) -> ResultsResponse:
    """
    Get the tally.

    Candidates are ordered by votes descending, ties by candidate label.
    """
    core = get_core(request)

    try:
        tally = await core.tally.tally()
    except StorageFault as e:
        raise StorageFault(RESULTS_FAULT_MESSAGE, operation=e.operation) from e
    except Exception as e:
        logger.error(f"Error computing results: {e}")
        raise VotingError(RESULTS_FAULT_MESSAGE) from e

    return ResultsResponse(
        message="Results retrieved successfully.",
        results=[
            CandidateResult(candidate=candidate, votes=votes)
            for candidate, votes in tally.as_pairs()
        ],
        total_votes=tally.total_votes
    )


async def health_check(request: Request):
    """
    Check health of the service and its dependencies.

    Verifies the storage backend and, when enabled, Redis.
    """
    core = get_core(request)
    services = {}

    try:
        storage_healthy = await core.storage.check_health()
        services[core.storage.name] = "connected" if storage_healthy else "disconnected"
    except Exception as e:
        logger.error(f"Storage health check error: {e}")
        services[core.storage.name] = "error"

    if core.cache is not None:
        redis_healthy = await core.cache.check_health()
        services["redis"] = "connected" if redis_healthy else "disconnected"

    all_healthy = all(state == "connected" for state in services.values())

    response = HealthResponse(
        status="healthy" if all_healthy else "unhealthy",
        services=services,
        timestamp=get_current_timestamp()
    )

    return JSONResponse(
        status_code=status.HTTP_200_OK if all_healthy else status.HTTP_503_SERVICE_UNAVAILABLE,
        content=response.model_dump(mode="json")
    )


def build_router(limiter: Limiter, rate_limit: str) -> APIRouter:
    """
    Build the API routes, with the write and auth routes rate limited.

    Args:
        limiter: The application's limiter
        rate_limit: Limit string such as "100/second"
    """
    router = APIRouter()

    router.add_api_route(
        "/register",
        limiter.limit(rate_limit)(register),
        methods=["POST"],
        response_model=MessageResponse,
        status_code=status.HTTP_201_CREATED,
        responses={
            **ERROR_RESPONSES,
            409: {"model": ErrorResponse, "description": "National ID already registered"},
        }
    )
    router.add_api_route(
        "/login",
        limiter.limit(rate_limit)(login),
        methods=["POST"],
        response_model=LoginResponse,
        responses={
            **ERROR_RESPONSES,
            401: {"model": ErrorResponse, "description": "Invalid credentials"},
        }
    )
    router.add_api_route(
        "/vote",
        limiter.limit(rate_limit)(cast_vote),
        methods=["POST"],
        response_model=VoteResponse,
        responses={
            **ERROR_RESPONSES,
            409: {"model": ErrorResponse, "description": "Already voted"},
        }
    )
    router.add_api_route(
        "/results",
        get_results,
        methods=["GET"],
        response_model=ResultsResponse,
        responses={500: ERROR_RESPONSES[500]}
    )
    router.add_api_route(
        "/health",
        health_check,
        methods=["GET"],
        response_model=HealthResponse,
        responses={
            503: {"model": HealthResponse, "description": "Service unhealthy"}
        }
    )

    return router


def create_app(app_settings: Optional[Settings] = None, storage: Optional[Storage] = None) -> FastAPI:
    """
    Create the FastAPI application.

    Args:
        app_settings: Settings to use; defaults to the environment settings
        storage: Pre-built storage backend; defaults to STORAGE_BACKEND

    Returns:
        FastAPI: Configured application
    """
    app_settings = app_settings or settings

    app = FastAPI(
        title="Election Voting API",
        description="Voter registration, authentication, single vote admission and tally",
        version=app_settings.API_VERSION,
        lifespan=lifespan
    )
    app.state.settings = app_settings
    app.state.storage = storage

    app.add_middleware(
        CORSMiddleware,
        allow_origins=app_settings.CORS_ORIGINS,
        allow_credentials=app_settings.CORS_ALLOW_CREDENTIALS,
        allow_methods=app_settings.CORS_ALLOW_METHODS,
        allow_headers=app_settings.CORS_ALLOW_HEADERS,
    )
    app.middleware("http")(prometheus_middleware)

    limiter = Limiter(key_func=get_remote_address, enabled=app_settings.RATE_LIMIT_ENABLED)
    app.state.limiter = limiter
    app.add_exception_handler(RateLimitExceeded, _rate_limit_exceeded_handler)
    app.add_exception_handler(VotingError, voting_error_handler)
    app.add_exception_handler(RequestValidationError, request_validation_handler)

    app.include_router(
        build_router(limiter, app_settings.RATE_LIMIT),
        prefix=app_settings.api_prefix
    )

    @app.get("/metrics")
    async def metrics():
        """Prometheus metrics endpoint."""
        return Response(
            content=generate_latest(),
            media_type=CONTENT_TYPE_LATEST
        )

    @app.get("/")
    async def root():
        """Root endpoint with API information."""
        prefix = app_settings.api_prefix
        return {
            "service": app_settings.SERVICE_NAME,
            "version": app_settings.API_VERSION,
            "status": "running",
            "endpoints": {
                "register": f"{prefix}/register",
                "login": f"{prefix}/login",
                "vote": f"{prefix}/vote",
                "results": f"{prefix}/results",
                "health": f"{prefix}/health",
                "metrics": "/metrics"
            }
        }

    return app


app = create_app()

