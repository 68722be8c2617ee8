"""Logging middleware and configuration."""

import logging
import sys
import time
import uuid
from collections.abc import Callable

import structlog
from fastapi import Request, Response
from starlette.middleware.base import BaseHTTPMiddleware

from app.config import settings

# Polled by load balancers and Prometheus; logged at debug only
QUIET_PATHS = frozenset({"/metrics", f"{settings.api_v1_prefix}/ping", f"{settings.api_v1_prefix}/health"})

# Query parameters that carry secrets (cron and stats endpoints)
REDACTED_PARAMS = frozenset({"key", "token"})

NOISY_LOGGERS = ("httpx", "httpcore", "uvicorn.access", "asyncio")


def add_app_context(logger, method_name: str, event_dict: dict) -> dict:
    """Stamp every log line with the service name and environment."""
    event_dict.setdefault("service", settings.app_name)
    event_dict.setdefault("environment", settings.environment)
    return event_dict


def configure_logging() -> None:
    """Configure structlog on top of stdlib logging."""
    processors = [
        structlog.contextvars.merge_contextvars,
        add_app_context,
        structlog.stdlib.add_logger_name,
        structlog.stdlib.add_log_level,
        structlog.stdlib.PositionalArgumentsFormatter(),
        structlog.processors.TimeStamper(fmt="iso", utc=True),
        structlog.processors.StackInfoRenderer(),
        structlog.processors.format_exc_info,
        structlog.processors.UnicodeDecoder(),
    ]
    if settings.log_format == "json":
        processors.append(structlog.processors.JSONRenderer())
    else:
        processors.append(structlog.dev.ConsoleRenderer(colors=settings.is_development))

    structlog.configure(
        processors=processors,
        wrapper_class=structlog.stdlib.BoundLogger,
        context_class=dict,
        logger_factory=structlog.stdlib.LoggerFactory(),
        cache_logger_on_first_use=True,
    )

    level = getattr(logging, settings.log_level.upper(), logging.INFO)
    logging.basicConfig(format="%(message)s", stream=sys.stdout, level=level)
    for name in NOISY_LOGGERS:
        logging.getLogger(name).setLevel(max(level, logging.WARNING))


def redacted_query(request: Request) -> str | None:
    """Query string with secret-bearing parameters masked, or None when empty."""
    if not request.query_params:
        return None
    return "&".join(
        f"{name}={'***' if name in REDACTED_PARAMS else value}"
        for name, value in request.query_params.multi_items()
    )


class LoggingMiddleware(BaseHTTPMiddleware):
    """Log every request and tag its log lines with a request id."""

    async def dispatch(self, request: Request, call_next: Callable) -> Response:
        """
        Log one line when the request finishes (or fails).

        The request id is taken from `X-Request-ID` when the caller sends one and
        is echoed back on the response.
        """
        logger = structlog.get_logger("clinicdesk.http")
        request_id = request.headers.get("X-Request-ID") or uuid.uuid4().hex

        structlog.contextvars.clear_contextvars()
        structlog.contextvars.bind_contextvars(request_id=request_id)

        path = request.url.path
        request_fields = {
            "method": request.method,
            "path": path,
            "query": redacted_query(request),
            "client": request.client.host if request.client else None,
        }

        start_time = time.perf_counter()
        try:
            response = await call_next(request)
        except Exception as e:
            logger.exception(
                "request_failed",
                **request_fields,
                error=str(e),
                duration_ms=round((time.perf_counter() - start_time) * 1000, 2),
            )
            raise

        duration_ms = round((time.perf_counter() - start_time) * 1000, 2)
        log = logger.debug if path in QUIET_PATHS else logger.info
        if response.status_code >= 500:
            log = logger.warning
        log(
            "request_completed",
            **request_fields,
            status_code=response.status_code,
            duration_ms=duration_ms,
        )

        response.headers["X-Process-Time"] = f"{duration_ms}ms"
        response.headers["X-Request-ID"] = request_id
        return response
