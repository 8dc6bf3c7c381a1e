"""
Request hardening for the PB Portal API.

- Per-IP rate limiting with slowapi (login and registration are stricter)
- Security headers and an ``X-Request-ID`` on every response
- JSON error bodies that carry the request id and never leak internals
  in production
- ``log_security_event`` for the audit trail of failed logins, role
  denials and registration conflicts

Settings come from ``pbportal.config``: RATE_LIMIT_PER_MINUTE,
RATE_LIMIT_ENABLED, TRUSTED_PROXY_COUNT and ENVIRONMENT.
"""

import ipaddress
import logging
import uuid
from datetime import datetime, timezone
from typing import Optional

from fastapi import FastAPI, HTTPException, Request, Response
from fastapi.responses import JSONResponse
from slowapi import Limiter
from slowapi.errors import RateLimitExceeded
from slowapi.middleware import SlowAPIMiddleware
from starlette.middleware.base import BaseHTTPMiddleware, RequestResponseEndpoint

from pbportal import config

logger = logging.getLogger(__name__)

DEFAULT_RATE_LIMIT = f"{config.RATE_LIMIT_PER_MINUTE}/minute"
AUTH_RATE_LIMIT = "5/minute"
RATE_LIMIT_RETRY_SECONDS = 60


# =============================================================================
# Rate limiting
# =============================================================================

def _is_valid_ip(value: str) -> bool:
    try:
        ipaddress.ip_address(value)
    except ValueError:
        return False
    return True


def get_client_ip(request: Request) -> str:
    """Client address used as the rate-limit key.

    Only the hop appended by the outermost trusted proxy is believed;
    anything further left in ``X-Forwarded-For`` is client-controlled.
    """
    forwarded = [
        ip.strip()
        for ip in request.headers.get("X-Forwarded-For", "").split(",")
        if ip.strip()
    ]
    if forwarded:
        candidate = forwarded[max(len(forwarded) - config.TRUSTED_PROXY_COUNT - 1, 0)]
        if _is_valid_ip(candidate):
            return candidate
        logger.warning("Ignoring malformed X-Forwarded-For entry: %r", candidate[:50])

    direct_ip = request.client.host if request.client else None
    return direct_ip if direct_ip and _is_valid_ip(direct_ip) else "unknown"


limiter = Limiter(
    key_func=get_client_ip,
    default_limits=[DEFAULT_RATE_LIMIT],
    storage_uri="memory://",
    strategy="fixed-window",
    enabled=config.RATE_LIMIT_ENABLED,
)


def rate_limit_auth():
    """Stricter limit for login and registration."""
    return limiter.limit(AUTH_RATE_LIMIT)


# =============================================================================
# Middleware
# =============================================================================

class SecurityHeadersMiddleware(BaseHTTPMiddleware):
    async def dispatch(
        self, request: Request, call_next: RequestResponseEndpoint
    ) -> Response:
        request_id = str(uuid.uuid4())
        request.state.request_id = request_id

        response = await call_next(request)

        response.headers["X-Request-ID"] = request_id
        response.headers["X-Frame-Options"] = "DENY"
        response.headers["X-Content-Type-Options"] = "nosniff"
        response.headers["Referrer-Policy"] = "strict-origin-when-cross-origin"
        # profiles and scores must not be cached by shared proxies
        response.headers.setdefault("Cache-Control", "no-store, private")
        if config.IS_PRODUCTION:
            response.headers["Strict-Transport-Security"] = "max-age=31536000; includeSubDomains"
        return response


# =============================================================================
# Exception handlers
# =============================================================================

def _request_id(request: Request) -> str:
    return getattr(request.state, "request_id", None) or str(uuid.uuid4())


def _error_response(
    request: Request,
    allowed_origins: list[str],
    status_code: int,
    content: dict,
    headers: Optional[dict] = None,
) -> JSONResponse:
    """JSON error body tagged with the request id.

    Handlers run outside CORSMiddleware's response path, so the CORS
    headers are added here for allowed origins.
    """
    request_id = _request_id(request)
    response_headers = {"X-Request-ID": request_id, **(headers or {})}
    origin = request.headers.get("origin", "")
    if origin in allowed_origins:
        response_headers["Access-Control-Allow-Origin"] = origin
        response_headers["Access-Control-Allow-Credentials"] = "true"
    return JSONResponse(
        status_code=status_code,
        content={**content, "request_id": request_id},
        headers=response_headers,
    )


def setup_security(app: FastAPI, allowed_origins: list[str]) -> None:
    """Install the rate limiter, security headers and exception handlers."""
    app.state.limiter = limiter
    app.add_middleware(SlowAPIMiddleware)
    app.add_middleware(SecurityHeadersMiddleware)

    async def on_rate_limited(request: Request, exc: RateLimitExceeded) -> JSONResponse:
        log_security_event("rate_limited", request)
        return _error_response(
            request,
            allowed_origins,
            429,
            {"detail": "Too many requests. Please slow down."},
            {"Retry-After": str(RATE_LIMIT_RETRY_SECONDS)},
        )

    async def on_http_exception(request: Request, exc: HTTPException) -> JSONResponse:
        return _error_response(
            request, allowed_origins, exc.status_code, {"detail": exc.detail}, exc.headers
        )

    async def on_unhandled(request: Request, exc: Exception) -> JSONResponse:
        logger.error(
            "Unhandled %s on %s %s (request_id=%s)",
            type(exc).__name__,
            request.method,
            request.url.path,
            _request_id(request),
            exc_info=exc,
        )
        detail = "An internal server error occurred." if config.IS_PRODUCTION else str(exc)
        return _error_response(request, allowed_origins, 500, {"detail": detail})

    app.add_exception_handler(RateLimitExceeded, on_rate_limited)
    app.add_exception_handler(HTTPException, on_http_exception)
    app.add_exception_handler(Exception, on_unhandled)

    logger.info(
        "Security configured: rate_limit=%s enabled=%s environment=%s",
        DEFAULT_RATE_LIMIT,
        config.RATE_LIMIT_ENABLED,
        config.ENVIRONMENT,
    )


# =============================================================================
# Audit logging
# =============================================================================

def log_security_event(
    event_type: str,
    request: Request,
    details: Optional[dict] = None,
) -> None:
    """Log an audit event (failed login, role denial ...) with request context."""
    log_data = {
        "event_type": event_type,
        "request_id": getattr(request.state, "request_id", "unknown"),
        "client_ip": get_client_ip(request),
        "path": request.url.path,
        "method": request.method,
        "timestamp": datetime.now(timezone.utc).isoformat(),
    }
    if details:
        log_data |= details
    logger.warning("SECURITY_EVENT: %s", log_data)
