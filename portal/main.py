"""
DRA Compliance Portal

Main application entry point.

Tracks work locations, the permits and registrations attached to them,
compliance obligations and the reminders that fall out of their dates.
"""

import os
from contextlib import asynccontextmanager

from fastapi import FastAPI, Request
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from starlette.exceptions import HTTPException as StarletteHTTPException

from portal.db.store import StoreUnavailableError
from portal.observability import (
    setup_logging,
    get_logger,
    RequestContextMiddleware,
    check_health,
    get_metrics,
)
from portal.web.shared_store import get_document_store, seed_demo_data

# Before anything logs
setup_logging()
logger = get_logger(__name__)

API_VERSION = "1.0.0"

DEFAULT_CORS_ORIGINS = [
    "http://localhost:5173",  # Vite dev server
    "http://127.0.0.1:5173",
    "http://localhost:3000",
    "http://127.0.0.1:3000",
]


def _cors_origins() -> list[str]:
    raw = os.environ.get("PORTAL_CORS_ORIGINS", "")
    origins = [o.strip() for o in raw.split(",") if o.strip()]
    return origins or DEFAULT_CORS_ORIGINS


@asynccontextmanager
async def lifespan(app: FastAPI):
    """Bind the shared store to app.state (tests swap it out) and optionally seed it."""
    app.state.store = get_document_store()
    seed_demo_data(app.state.store)

    logger.info("Portal started", store_type=type(app.state.store).__name__)
    yield
    logger.info("Portal stopped")


app = FastAPI(
    title="DRA Compliance Portal",
    description="""
## Regulatory compliance tracking

Work locations, the initiatives (permits, licenses, registrations) tied to
them, and compliance obligations with their requirements.

### Expiry notifications

Reminders are derived on every request from initiative dates:

- **Registration validity**: registered initiatives whose validity ends
  within 30 days (or has passed)
- **Initiative deadline**: open initiatives whose end date is within 30
  days (or has passed)

### Response envelope

Every JSON endpoint answers `{"success": true, "data": ...}` or
`{"success": false, "error": "..."}`.

### Storage Backends

- **InMemoryDocumentStore**: Development/testing (default)
- **PostgresDocumentStore**: Production with full durability

Set `DATABASE_URL` or `DATABASE_HOST` environment variables to use PostgreSQL.
    """,
    version=API_VERSION,
    docs_url="/docs",
    redoc_url="/redoc",
    lifespan=lifespan,
)

app.add_middleware(RequestContextMiddleware)

app.add_middleware(
    CORSMiddleware,
    allow_origins=_cors_origins(),
    allow_credentials=True,  # session cookie
    allow_methods=["GET", "POST", "PUT", "DELETE"],
    allow_headers=["*"],
)


# ============================================================
# Error envelope
# ============================================================

@app.exception_handler(StarletteHTTPException)
async def http_exception_handler(request: Request, exc: StarletteHTTPException):
    return JSONResponse(
        status_code=exc.status_code,
        content={"success": False, "error": str(exc.detail)},
        headers=getattr(exc, "headers", None),
    )


@app.exception_handler(RequestValidationError)
async def validation_exception_handler(request: Request, exc: RequestValidationError):
    messages = []
    for err in exc.errors():
        loc = ".".join(str(p) for p in err.get("loc", ()) if p != "body")
        messages.append(f"{loc}: {err.get('msg')}" if loc else str(err.get("msg")))
    return JSONResponse(
        status_code=422,
        content={"success": False, "error": "; ".join(messages) or "Invalid request"},
    )


@app.exception_handler(StoreUnavailableError)
async def store_unavailable_handler(request: Request, exc: StoreUnavailableError):
    logger.error("Document store unavailable", error=str(exc))
    return JSONResponse(
        status_code=503,
        content={"success": False, "error": "Storage is temporarily unavailable"},
    )


@app.exception_handler(Exception)
async def unhandled_exception_handler(request: Request, exc: Exception):
    return JSONResponse(
        status_code=500,
        content={"success": False, "error": "Something went wrong!"},
    )


# ============================================================
# Routers
# ============================================================

from portal.api.routes_locations import router as locations_router
from portal.api.routes_initiatives import router as initiatives_router
from portal.api.routes_compliance import router as compliance_router
from portal.api.routes_users import router as users_router
from portal.api.routes_dashboard import router as dashboard_router
from portal.api.routes_notifications import router as notifications_router
from portal.api.routes_export import router as export_router

app.include_router(locations_router)
app.include_router(initiatives_router)
app.include_router(compliance_router)
app.include_router(users_router)
app.include_router(dashboard_router)
app.include_router(notifications_router)
app.include_router(export_router)


# ============================================================
# System
# ============================================================

@app.get("/health", tags=["System"])
async def health():
    """Liveness only; see /health/detailed for the store."""
    return {"status": "healthy", "service": "dra-portal"}


@app.get("/health/detailed", tags=["System"])
async def health_detailed(request: Request):
    """Liveness plus a store ping and document counts. 503 when the store is down."""
    status = check_health(store=request.app.state.store)
    return JSONResponse(
        status_code=200 if status.healthy else 503,
        content={
            "status": "healthy" if status.healthy else "unhealthy",
            "checks": status.checks,
            "duration_ms": status.duration_ms,
        },
    )


@app.get("/metrics", tags=["System"])
async def metrics():
    """Process-local counters and latency percentiles."""
    return get_metrics().get_summary()


@app.get("/api", tags=["System"])
async def api_info(request: Request):
    """API info for the React frontend."""
    return {
        "name": "DRA Compliance Portal API",
        "version": API_VERSION,
        "storage_backend": type(request.app.state.store).__name__,
        "endpoints": {
            "locations": "/api/locations",
            "initiatives": "/api/initiatives",
            "compliance": "/api/compliance",
            "compliance_stats": "/api/compliance/stats/overview",
            "compliance_expiring": "/api/compliance/expiring/{days}",
            "users": "/api/users",
            "login": "/api/users/login",
            "me": "/api/users/me",
            "dashboard": "/api/dashboard/stats",
            "notifications": "/api/notifications",
            "export": "/api/export/{resource}.csv",
        },
    }
