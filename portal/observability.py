"""
Observability - logging, request context, metrics and health.

Provides:
- One-line JSON or text log records carrying the request id and session uid
- Middleware that tags each request and times it
- In-process counters for requests, writes, sign-ins, exports and notifications
- A store health probe

Environment:
- PORTAL_LOG_LEVEL: DEBUG, INFO, WARNING, ERROR (default: INFO)
- PORTAL_LOG_FORMAT: json or text (default: json when PORTAL_PRODUCTION is set)
- PORTAL_PRODUCTION: production mode

Usage:
    from portal.observability import get_logger

    logger = get_logger(__name__)
    logger.info("Initiative created", initiative_id=doc["id"])
"""

import json
import logging
import math
import os
import sys
import time
import uuid
from collections import Counter, deque
from contextvars import ContextVar
from dataclasses import dataclass, field
from datetime import datetime, timezone
from typing import Any, Deque, Dict, Optional

from fastapi import Request, Response
from starlette.middleware.base import BaseHTTPMiddleware, RequestResponseEndpoint

request_id_var: ContextVar[str] = ContextVar("request_id", default="")
user_id_var: ContextVar[str] = ContextVar("user_id", default="")

REQUEST_ID_HEADER = "X-Request-ID"

# Attributes every LogRecord has; anything else came in through ``extra``
_BUILTIN_ATTRS = frozenset(vars(logging.LogRecord("", 0, "", 0, "", (), None))) | {
    "message", "asctime", "request_tag",
}

# kwargs that logging itself understands
_LOGGING_KWARGS = frozenset({"exc_info", "stack_info", "stacklevel", "extra"})


# ============================================================
# CONFIGURATION
# ============================================================

def is_production() -> bool:
    return os.environ.get("PORTAL_PRODUCTION", "").lower() in ("1", "true", "yes")


def _log_level() -> int:
    level = logging.getLevelName(os.environ.get("PORTAL_LOG_LEVEL", "INFO").upper())
    return level if isinstance(level, int) else logging.INFO


def _log_format() -> str:
    fmt = os.environ.get("PORTAL_LOG_FORMAT", "").lower()
    if fmt in ("json", "text"):
        return fmt
    return "json" if is_production() else "text"


def _context_fields() -> Dict[str, str]:
    fields = {}
    if request_id_var.get():
        fields["request_id"] = request_id_var.get()
    if user_id_var.get():
        fields["user_id"] = user_id_var.get()
    return fields


def _extra_fields(record: logging.LogRecord) -> Dict[str, Any]:
    return {
        k: v for k, v in vars(record).items()
        if k not in _BUILTIN_ATTRS and not k.startswith("_")
    }


# ============================================================
# FORMATTERS
# ============================================================

class StructuredFormatter(logging.Formatter):
    """
    One JSON object per line:

        {"timestamp": "...", "level": "INFO", "logger": "portal.core.service",
         "message": "Location created: ...", "request_id": "1f2e3d4c",
         "user_id": "firebase-uid", ...extra fields...}
    """

    def format(self, record: logging.LogRecord) -> str:
        entry = {
            "timestamp": datetime.fromtimestamp(record.created, timezone.utc).isoformat(),
            "level": record.levelname,
            "logger": record.name,
            "message": record.getMessage(),
            **_context_fields(),
            **_extra_fields(record),
        }
        if record.exc_info:
            entry["exception"] = self.formatException(record.exc_info)
        return json.dumps(entry, default=str)


class TextFormatter(logging.Formatter):
    """Readable single-line records for local development; extras trail as key=value."""

    def __init__(self):
        super().__init__(
            fmt="%(asctime)s %(levelname)-8s %(request_tag)s%(name)s: %(message)s",
            datefmt="%H:%M:%S",
        )

    def format(self, record: logging.LogRecord) -> str:
        extras = _extra_fields(record)
        request_id = request_id_var.get()
        record.request_tag = f"[{request_id}] " if request_id else ""

        line = super().format(record)
        if extras:
            line += "  " + " ".join(f"{k}={v}" for k, v in extras.items())
        return line


class ContextLogger(logging.LoggerAdapter):
    """
    Adapter that turns keyword arguments into ``extra`` fields:

        logger.warning("Location delete refused", location_id=location_id)
    """

    def process(self, msg: str, kwargs: Dict[str, Any]) -> tuple:
        fields = {k: kwargs.pop(k) for k in list(kwargs) if k not in _LOGGING_KWARGS}
        kwargs["extra"] = {**self.extra, **kwargs.get("extra", {}), **fields}
        return msg, kwargs


def get_logger(name: str) -> ContextLogger:
    return ContextLogger(logging.getLogger(name), {})


def setup_logging() -> None:
    """Install the stdout handler on the root logger. Safe to call again."""
    handler = logging.StreamHandler(sys.stdout)
    handler.setFormatter(StructuredFormatter() if _log_format() == "json" else TextFormatter())
    logging.basicConfig(level=_log_level(), handlers=[handler], force=True)

    for noisy in ("uvicorn.access", "httpx"):
        logging.getLogger(noisy).setLevel(logging.WARNING)


# ============================================================
# REQUEST CONTEXT MIDDLEWARE
# ============================================================

def _session_uid(request: Request) -> str:
    from portal.web.auth import SESSION_COOKIE, read_session_cookie

    session = read_session_cookie(request.cookies.get(SESSION_COOKIE))
    return session.uid if session else ""


class RequestContextMiddleware(BaseHTTPMiddleware):
    """
    Tags every request with an id (the caller's X-Request-ID when sent)
    and the session uid, logs the outcome with its latency and feeds
    the request counters. The id is echoed back in the response header.
    """

    async def dispatch(
        self,
        request: Request,
        call_next: RequestResponseEndpoint,
    ) -> Response:
        request_id = request.headers.get(REQUEST_ID_HEADER) or uuid.uuid4().hex[:8]
        id_token = request_id_var.set(request_id)
        uid_token = user_id_var.set(_session_uid(request))

        logger = get_logger("portal.request")
        route = f"{request.method} {request.url.path}"
        started = time.perf_counter()

        try:
            response = await call_next(request)
            elapsed = (time.perf_counter() - started) * 1000
            get_metrics().record_request(elapsed, status_code=response.status_code)
            logger.log(
                logging.WARNING if response.status_code >= 400 else logging.INFO,
                "%s -> %s", route, response.status_code,
                status_code=response.status_code,
                duration_ms=round(elapsed, 2),
            )
            response.headers[REQUEST_ID_HEADER] = request_id
            return response
        except Exception as e:
            elapsed = (time.perf_counter() - started) * 1000
            get_metrics().record_request(elapsed, status_code=500)
            logger.exception("%s failed", route, duration_ms=round(elapsed, 2), error=str(e))
            raise
        finally:
            user_id_var.reset(uid_token)
            request_id_var.reset(id_token)


# ============================================================
# METRICS
# ============================================================

# Latency samples kept for the percentiles
LATENCY_WINDOW = 1000


def _nearest_rank(samples, fraction: float) -> Optional[float]:
    if not samples:
        return None
    ordered = sorted(samples)
    rank = max(math.ceil(fraction * len(ordered)), 1)
    return round(ordered[rank - 1], 2)


@dataclass
class MetricsCollector:
    """
    Process-local counters behind GET /metrics.
    Reset on restart and not shared between workers.
    """

    requests_total: int = 0
    requests_failed: int = 0
    documents_written: int = 0
    notifications_derived: int = 0
    logins: int = 0
    exports: int = 0

    responses_by_class: Counter = field(default_factory=Counter)
    exports_by_resource: Counter = field(default_factory=Counter)
    latencies_ms: Deque[float] = field(default_factory=lambda: deque(maxlen=LATENCY_WINDOW))

    def record_request(self, latency_ms: float, status_code: int) -> None:
        self.requests_total += 1
        if status_code >= 500:
            self.requests_failed += 1
        self.responses_by_class[f"{status_code // 100}xx"] += 1
        self.latencies_ms.append(latency_ms)

    def record_write(self, count: int = 1) -> None:
        self.documents_written += count

    def record_notifications(self, count: int) -> None:
        self.notifications_derived += count

    def record_login(self) -> None:
        self.logins += 1

    def record_export(self, resource: str) -> None:
        self.exports += 1
        self.exports_by_resource[resource] += 1

    def get_summary(self) -> Dict[str, Any]:
        return {
            "requests_total": self.requests_total,
            "requests_failed": self.requests_failed,
            "responses": dict(self.responses_by_class),
            "documents_written": self.documents_written,
            "notifications_derived": self.notifications_derived,
            "logins": self.logins,
            "exports": self.exports,
            "exports_by_resource": dict(self.exports_by_resource),
            "latency_ms": {
                "p50": _nearest_rank(self.latencies_ms, 0.50),
                "p95": _nearest_rank(self.latencies_ms, 0.95),
                "p99": _nearest_rank(self.latencies_ms, 0.99),
            },
        }


_metrics = MetricsCollector()


def get_metrics() -> MetricsCollector:
    return _metrics


# ============================================================
# HEALTH CHECKS
# ============================================================

@dataclass
class HealthStatus:
    healthy: bool
    checks: Dict[str, Dict[str, Any]]
    duration_ms: float


def _probe_store(store) -> Dict[str, Any]:
    from portal.db.store import COLLECTIONS

    backend = type(store).__name__
    try:
        if not store.ping():
            return {"status": "unhealthy", "backend": backend, "error": "no answer to ping"}
        counts = {name: store.count(name) for name in COLLECTIONS}
    except Exception as e:
        return {"status": "unhealthy", "backend": backend, "error": str(e)}
    return {"status": "healthy", "backend": backend, "documents": counts}


def check_health(store=None) -> HealthStatus:
    """
    Liveness plus, when a store is given, a ping and per-collection counts.
    Unhealthy if any check is.
    """
    started = time.perf_counter()
    checks = {"liveness": {"status": "healthy"}}
    if store is not None:
        checks["document_store"] = _probe_store(store)

    return HealthStatus(
        healthy=all(c["status"] == "healthy" for c in checks.values()),
        checks=checks,
        duration_ms=round((time.perf_counter() - started) * 1000, 2),
    )
