"""FastAPI application entry point."""
import logging
from contextlib import asynccontextmanager

from fastapi import FastAPI, Request
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from sqlalchemy import text

from wecarry.auth import AuthProviderError
from wecarry.core.config import settings
from wecarry.core.errors import AuthorizationError, NotFoundError, ValidationError
from wecarry.core.structured_logging import build_log_context
from wecarry.db.session import engine
from wecarry.events.listeners import build_default_dispatcher
from wecarry.events.outbox import get_dispatcher, set_dispatcher

logger = logging.getLogger(__name__)

# ============================================================================
# Sentry Integration (optional, for production error tracking)
# ============================================================================

if settings.SENTRY_DSN and settings.ENV != "dev":
    import sentry_sdk
    from sentry_sdk.integrations.fastapi import FastApiIntegration
    from sentry_sdk.integrations.sqlalchemy import SqlalchemyIntegration

    sentry_sdk.init(
        dsn=settings.SENTRY_DSN,
        environment=settings.ENV,
        integrations=[
            FastApiIntegration(transaction_style="endpoint"),
            SqlalchemyIntegration(),
        ],
        traces_sample_rate=0.1,
        send_default_pii=False,
    )
    logger.info("Sentry initialized for error tracking")

# ============================================================================
# Rate Limiting
# ============================================================================

from slowapi import _rate_limit_exceeded_handler
from slowapi.errors import RateLimitExceeded
from wecarry.core.rate_limit import limiter


@asynccontextmanager
async def lifespan(app: FastAPI):
    # Tests install their own dispatcher before the app starts
    if get_dispatcher() is None:
        set_dispatcher(build_default_dispatcher())
    yield


# ============================================================================
# FastAPI App
# ============================================================================

app = FastAPI(
    title="WeCarry API",
    description="Requests and offers to carry items between members of trusted organizations",
    version=settings.VERSION,
    docs_url="/docs" if settings.ENV == "dev" else None,
    redoc_url="/redoc" if settings.ENV == "dev" else None,
    lifespan=lifespan,
)

app.state.limiter = limiter
app.add_exception_handler(RateLimitExceeded, _rate_limit_exceeded_handler)

app.add_middleware(
    CORSMiddleware,
    allow_origins=settings.cors_origins_list,
    allow_credentials=True,
    allow_methods=["GET", "POST", "PUT", "PATCH", "DELETE", "OPTIONS"],
    allow_headers=["Content-Type", "Authorization"],
)

# ============================================================================
# Domain error mapping
# ============================================================================

@app.exception_handler(ValidationError)
async def validation_error_handler(request: Request, exc: ValidationError):
    return JSONResponse(
        status_code=422, content={"detail": "validation failed", "errors": exc.errors}
    )


@app.exception_handler(AuthorizationError)
async def authorization_error_handler(request: Request, exc: AuthorizationError):
    # The reason is for the logs only
    logger.warning(
        "Authorization denied on %s %s: %s",
        request.method,
        request.url.path,
        exc,
        extra=build_log_context(route=request.url.path, method=request.method),
    )
    return JSONResponse(status_code=403, content={"detail": "not authorized"})


@app.exception_handler(NotFoundError)
async def not_found_error_handler(request: Request, exc: NotFoundError):
    return JSONResponse(status_code=404, content={"detail": f"{exc.resource} not found"})


@app.exception_handler(AuthProviderError)
async def auth_provider_error_handler(request: Request, exc: AuthProviderError):
    logger.warning("Identity provider error: %s", exc)
    return JSONResponse(status_code=400, content={"detail": "login is not available"})


# ============================================================================
# Routers
# ============================================================================

from wecarry.routers import auth, me, meetings, organizations, posts, threads, upload, watches

app.include_router(auth.router, prefix="/auth", tags=["auth"])
app.include_router(posts.router, prefix="/posts", tags=["posts"])
app.include_router(threads.router, prefix="/threads", tags=["threads"])
app.include_router(organizations.router, prefix="/organizations", tags=["organizations"])
app.include_router(meetings.router, prefix="/meetings", tags=["meetings"])
app.include_router(upload.router, prefix="/upload", tags=["upload"])
app.include_router(me.router, prefix="/me", tags=["me"])
app.include_router(watches.router, prefix="/watches", tags=["watches"])


# ============================================================================
# Health Check
# ============================================================================

@app.get("/health")
def health():
    """
    Health check endpoint.

    Verifies database connectivity and returns environment info.
    """
    with engine.connect() as conn:
        conn.execute(text("SELECT 1"))
    return {"status": "ok", "env": settings.ENV, "version": settings.VERSION}
