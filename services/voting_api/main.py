"""
FastAPI application for the meme war voting API.

Every response is shaped {"ok": bool, "data"?: any, "error"?: str}.
"""
import logging
import time
from contextlib import asynccontextmanager
from contextvars import ContextVar
from datetime import datetime
from typing import Callable, Optional

from fastapi import APIRouter, FastAPI, Request, status
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse, Response
from prometheus_client import CONTENT_TYPE_LATEST, generate_latest
from slowapi import Limiter
from slowapi.errors import RateLimitExceeded
from slowapi.util import get_remote_address
from starlette.exceptions import HTTPException as StarletteHTTPException

from ..shared.database import PostgresStore
from ..shared.memory_store import MemoryStore
from ..shared.models import client_address, utcnow
from ..shared.store import VoteStore
from .admin import AdminService
from .cache import VoterCache, build_cache
from .competition import CompetitionService
from .config import Settings, settings as default_settings
from .errors import InternalError, ServiceError
from .metrics import request_duration
from .models import AdminRequest, AdminStartRequest, Envelope, RegisterTeamRequest, VoteRequest
from .registry import TeamRegistry
from .voting import RequestMetadata, VotingService

# Configure logging
logging.basicConfig(
    level=logging.INFO if not default_settings.DEBUG else logging.DEBUG,
    format="%(asctime)s - %(name)s - %(levelname)s - %(message)s"
)
logger = logging.getLogger(__name__)


def client_key(request: Request) -> str:
    """Rate limit key: the proxied client address when there is one."""
    return client_address(request.headers.get("x-forwarded-for"), get_remote_address(request))


def request_metadata(request: Request) -> RequestMetadata:
    return RequestMetadata(
        address=client_key(request),
        user_agent=request.headers.get("user-agent", "")
    )


# Settings of the app serving the current request, bound by its middleware
active_settings: ContextVar[Settings] = ContextVar("active_settings", default=default_settings)


def rate_limit() -> str:
    """Per-client limit, evaluated on every request."""
    return active_settings.get().RATE_LIMIT


# Rate limiter
limiter = Limiter(key_func=client_key)

router = APIRouter()


def ok(data=None) -> dict:
    return {"ok": True, "data": data}


def error_response(status_code: int, message: str) -> JSONResponse:
    return JSONResponse(status_code=status_code, content={"ok": False, "error": message})


def admin_secret(request: Request, body: Optional[AdminRequest]) -> Optional[str]:
    return request.headers.get("x-admin-secret") or (body.secret if body else None)


def build_store(config: Settings) -> VoteStore:
    if config.STORE_BACKEND == "memory":
        logger.warning("Using in-memory store; data is lost on restart")
        return MemoryStore()
    return PostgresStore(
        config.postgres_dsn,
        min_size=config.POSTGRES_POOL_MIN_SIZE,
        max_size=config.POSTGRES_POOL_MAX_SIZE
    )


@router.get("/teams")
async def get_teams(request: Request):
    """All teams, most votes first."""
    try:
        teams = await request.app.state.registry.list_teams()
        return ok([team.to_dict() for team in teams])
    except ServiceError:
        raise
    except Exception as e:
        logger.error(f"Error fetching teams: {e}", exc_info=True)
        raise InternalError("Failed to fetch teams")


@router.get("/stats")
async def get_stats(request: Request):
    """Counts, top-10 leaderboard, competition status and time remaining."""
    try:
        return ok(await request.app.state.registry.compute_stats())
    except ServiceError:
        raise
    except Exception as e:
        logger.error(f"Error fetching stats: {e}", exc_info=True)
        raise InternalError("Failed to fetch stats")


@router.post("/registerTeam")
@limiter.limit(rate_limit)
async def register_team(request: Request, registration: RegisterTeamRequest):
    """
    Register a team.

    Returns the team id and the repository the team is expected to push to.
    """
    try:
        created = await request.app.state.registry.create_team(
            team_name=registration.teamName,
            department=registration.department,
            faculty=registration.faculty,
            github_username=registration.githubUsername,
            members=[member.model_dump() for member in registration.members]
        )
        return ok(created)
    except ServiceError:
        raise
    except Exception as e:
        logger.error(f"Error registering team: {e}", exc_info=True)
        raise InternalError("Registration failed")


@router.post(
    "/vote",
    response_model=Envelope,
    response_model_exclude_none=True,
    responses={
        400: {"model": Envelope, "description": "teamId missing"},
        403: {"model": Envelope, "description": "Voting not active or period ended"},
        404: {"model": Envelope, "description": "Team not found"},
        429: {"model": Envelope, "description": "Already voted or rate limit exceeded"},
        500: {"model": Envelope, "description": "Server not configured or internal error"}
    }
)
@limiter.limit(rate_limit)
async def cast_vote(request: Request, vote: Optional[VoteRequest] = None):
    """
    Cast a vote for a team.

    One vote per voter fingerprint (keyed hash of address and user agent)
    until the next reset.
    """
    team_id = vote.teamId if vote else None
    if isinstance(team_id, int):
        team_id = str(team_id)

    try:
        result = await request.app.state.voting.cast_vote(team_id, request_metadata(request))
        return ok(result)
    except ServiceError:
        raise
    except Exception as e:
        logger.error(f"Error casting vote: {e}", exc_info=True)
        raise InternalError("Voting failed")


@router.post("/admin/start")
async def admin_start(request: Request, body: Optional[AdminStartRequest] = None):
    """Open voting for durationMinutes (default 60) from now."""
    duration = body.durationMinutes if body else None
    if duration is None:
        duration = request.app.state.settings.DEFAULT_DURATION_MINUTES
    try:
        return ok(await request.app.state.admin.start(admin_secret(request, body), duration))
    except ServiceError:
        raise
    except Exception as e:
        logger.error(f"Admin action start failed: {e}", exc_info=True)
        raise InternalError("Admin action failed")


@router.post("/admin/pause")
async def admin_pause(request: Request, body: Optional[AdminRequest] = None):
    try:
        return ok(await request.app.state.admin.pause(admin_secret(request, body)))
    except ServiceError:
        raise
    except Exception as e:
        logger.error(f"Admin action pause failed: {e}", exc_info=True)
        raise InternalError("Admin action failed")


@router.post("/admin/end")
async def admin_end(request: Request, body: Optional[AdminRequest] = None):
    try:
        return ok(await request.app.state.admin.end(admin_secret(request, body)))
    except ServiceError:
        raise
    except Exception as e:
        logger.error(f"Admin action end failed: {e}", exc_info=True)
        raise InternalError("Admin action failed")


@router.post("/admin/resetVotes")
async def admin_reset_votes(request: Request, body: Optional[AdminRequest] = None):
    """Zero every vote counter and clear the ledger. The phase is unchanged."""
    try:
        return ok(await request.app.state.admin.reset_votes(admin_secret(request, body)))
    except ServiceError:
        raise
    except Exception as e:
        logger.error(f"Admin action resetVotes failed: {e}", exc_info=True)
        raise InternalError("Admin action failed")


@router.get("/health")
async def health_check(request: Request):
    """
    Check health of the service and its dependencies.

    Returns overall health status and individual service statuses.
    """
    state = request.app.state
    services = {}

    try:
        healthy = await state.store.check_health()
        services["store"] = "connected" if healthy else "disconnected"
    except Exception as e:
        logger.error(f"Store health check error: {e}")
        services["store"] = "error"

    if state.cache is not None:
        healthy = await state.cache.check_health()
        services["redis"] = "connected" if healthy else "disconnected"

    services["hash_salt"] = "configured" if state.settings.HASH_SALT else "missing"

    all_healthy = services["store"] == "connected" \
        and services.get("redis", "connected") == "connected" \
        and services["hash_salt"] == "configured"

    return JSONResponse(
        status_code=status.HTTP_200_OK if all_healthy else status.HTTP_503_SERVICE_UNAVAILABLE,
        content={
            "ok": all_healthy,
            "data": {
                "status": "healthy" if all_healthy else "unhealthy",
                "services": services,
            },
        }
    )


@router.get("/metrics")
async def metrics():
    """Prometheus metrics endpoint."""
    return Response(
        content=generate_latest(),
        media_type=CONTENT_TYPE_LATEST
    )


@router.get("/")
async def root(request: Request):
    """Root endpoint with API information."""
    config = request.app.state.settings
    return ok({
        "service": config.SERVICE_NAME,
        "version": config.API_VERSION,
        "endpoints": {
            "teams": "/teams",
            "stats": "/stats",
            "register_team": "/registerTeam",
            "vote": "/vote",
            "admin": "/admin/{start,pause,end,resetVotes}",
            "health": "/health",
            "metrics": "/metrics"
        }
    })


def create_app(
    config: Optional[Settings] = None,
    store: Optional[VoteStore] = None,
    cache: Optional[VoterCache] = None,
    clock: Callable[[], datetime] = utcnow
) -> FastAPI:
    """
    Build the application with its services wired explicitly.

    Secrets, store, cache and clock are handed to each service here, and the
    request middleware binds config for the rate limiter.
    """
    config = config or default_settings
    store = store or build_store(config)
    if cache is None:
        cache = build_cache(config.REDIS_ENABLED, config.redis_url)

    @asynccontextmanager
    async def lifespan(app: FastAPI):
        """Lifespan context manager for startup and shutdown events."""
        logger.info(f"Starting {config.SERVICE_NAME} service...")

        try:
            await store.initialize()
            if cache is not None:
                await cache.initialize()

            if not config.HASH_SALT:
                logger.critical("HASH_SALT secret is not set. Voting is disabled until it is configured.")
            if not config.ADMIN_SECRET:
                logger.error("ADMIN_SECRET secret is not set. Admin actions will be rejected.")

            logger.info(f"{config.SERVICE_NAME} started successfully")

        except Exception as e:
            logger.error(f"Failed to start {config.SERVICE_NAME}: {e}")
            raise

        yield

        logger.info(f"Shutting down {config.SERVICE_NAME} service...")
        try:
            if cache is not None:
                await cache.close()
            await store.close()
            logger.info(f"{config.SERVICE_NAME} shut down successfully")
        except Exception as e:
            logger.error(f"Error during shutdown: {e}")

    app = FastAPI(
        title="Meme War Voting API",
        description="Team registration, single-vote enforcement and competition control",
        version=config.API_VERSION,
        lifespan=lifespan
    )

    competition = CompetitionService(store, clock=clock)
    app.state.settings = config
    app.state.store = store
    app.state.cache = cache
    app.state.competition = competition
    app.state.registry = TeamRegistry(
        store,
        clock=clock,
        repo_suffix=config.REPO_SUFFIX,
        leaderboard_size=config.LEADERBOARD_SIZE
    )
    app.state.voting = VotingService(store, salt=config.HASH_SALT, cache=cache, clock=clock)
    app.state.admin = AdminService(
        store,
        competition,
        admin_secret=config.ADMIN_SECRET,
        cache=cache,
        reset_batch_size=config.RESET_BATCH_SIZE
    )

    # Add CORS middleware
    app.add_middleware(
        CORSMiddleware,
        allow_origins=config.CORS_ORIGINS,
        allow_credentials=config.CORS_ALLOW_CREDENTIALS,
        allow_methods=config.CORS_ALLOW_METHODS,
        allow_headers=config.CORS_ALLOW_HEADERS,
    )

    app.state.limiter = limiter

    @app.middleware("http")
    async def prometheus_middleware(request: Request, call_next):
        """Bind this app's settings for the request and track its duration."""
        active_settings.set(config)
        started = time.perf_counter()
        response = await call_next(request)
        request_duration.labels(
            method=request.method,
            endpoint=request.url.path,
            status=response.status_code
        ).observe(time.perf_counter() - started)
        return response

    @app.exception_handler(ServiceError)
    async def service_error_handler(request: Request, exc: ServiceError):
        return error_response(exc.status_code, exc.message)

    @app.exception_handler(RequestValidationError)
    async def validation_error_handler(request: Request, exc: RequestValidationError):
        logger.info(f"Rejected malformed request to {request.url.path}: {exc.errors()}")
        return error_response(status.HTTP_400_BAD_REQUEST, "Invalid request body")

    @app.exception_handler(RateLimitExceeded)
    async def rate_limit_handler(request: Request, exc: RateLimitExceeded):
        return error_response(status.HTTP_429_TOO_MANY_REQUESTS, "Too many requests")

    @app.exception_handler(StarletteHTTPException)
    async def http_error_handler(request: Request, exc: StarletteHTTPException):
        return error_response(exc.status_code, str(exc.detail))

    app.include_router(router)
    return app


app = create_app()


if __name__ == "__main__":
    import uvicorn

    uvicorn.run(
        "services.voting_api.main:app",
        host=default_settings.HOST,
        port=default_settings.PORT,
        reload=default_settings.DEBUG,
        log_level="info"
    )
