"""
Stockroom Backend: multi-tenant inventory API.

ARCHITECTURE:
- FastAPI Backend: catalog, identity and the inventory ledger
- SQL database (SQLite by default): source of truth for all state
- Web frontend: talks to this API through its own proxy routes

Stock only changes through the inventory ledger; every change leaves an
immutable transaction record committed together with the new quantity.
"""
import logging
from contextlib import asynccontextmanager

from fastapi import FastAPI, Request
from fastapi.middleware.cors import CORSMiddleware
from fastapi.middleware.trustedhost import TrustedHostMiddleware
from fastapi.responses import JSONResponse

from stockroom import __version__
from stockroom.api.routes import auth, organizations, catalog, inventory
from stockroom.core.config import settings
from stockroom.core.exceptions import BusinessError, StockroomError
from stockroom.core.rate_limiter import RateLimitMiddleware
from stockroom.db.init_db import init_db

logger = logging.getLogger(__name__)


@asynccontextmanager
async def lifespan(app: FastAPI):
    """Create tables on startup; a failure here aborts the boot."""
    logger.info("Initializing database...")
    init_db()
    logger.info("Database initialized")
    yield


app = FastAPI(
    title="Stockroom API",
    description="Organizations, catalog and an append-only inventory ledger.",
    version=__version__,
    lifespan=lifespan,
)

# SECURITY: Trust only specific hosts
app.add_middleware(TrustedHostMiddleware, allowed_hosts=settings.ALLOWED_HOSTS)

# SECURITY: Restrict CORS to specific methods and headers (not wildcards)
app.add_middleware(
    CORSMiddleware,
    allow_origins=settings.CORS_ORIGINS,
    allow_credentials=True,
    allow_methods=["GET", "POST", "PUT", "PATCH", "DELETE", "OPTIONS"],
    allow_headers=[
        "Content-Type",
        "Authorization",
        "Accept",
        "Origin",
    ],
    max_age=600,  # Cache preflight for 10 minutes
    expose_headers=["Content-Type"],
)

app.add_middleware(RateLimitMiddleware)


@app.middleware("http")
async def add_security_headers(request, call_next):
    response = await call_next(request)
    response.headers["X-Content-Type-Options"] = "nosniff"
    response.headers["X-Frame-Options"] = "DENY"
    response.headers["Strict-Transport-Security"] = "max-age=31536000; includeSubDomains"
    response.headers["Referrer-Policy"] = "strict-origin-when-cross-origin"
    return response


@app.exception_handler(StockroomError)
async def stockroom_error_handler(request: Request, exc: StockroomError):
    http_exc = BusinessError.from_domain(exc)
    return JSONResponse(
        status_code=http_exc.status_code,
        content={"detail": http_exc.detail},
        headers=getattr(http_exc, "headers", None),
    )


app.include_router(auth.router, prefix="/auth", tags=["auth"])
app.include_router(organizations.router, prefix="/organizations", tags=["organizations"])
app.include_router(catalog.router, prefix="/catalog", tags=["catalog"])
app.include_router(inventory.router, prefix="/inventory", tags=["inventory"])


@app.get("/health")
def health():
    return {"status": "ok", "version": __version__}
