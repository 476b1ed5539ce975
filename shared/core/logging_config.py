"""
Structured JSON logging for the storefront services.

Every record is emitted as a single JSON line carrying the service identity,
the request/correlation ids of the HTTP request being served, and any
``extra={'extra_fields': {...}}`` the caller attached. Webhook signatures,
tokens and API secrets are redacted before they reach a handler.
"""

import logging
import logging.handlers
import re
import sys
import json
import time
import traceback
import uuid
from contextvars import ContextVar
from datetime import datetime, timezone
from typing import Any, Dict, Optional
from fastapi import Request
from starlette.middleware.base import BaseHTTPMiddleware
from starlette.responses import Response

# Context variables for request tracking
request_id_var: ContextVar[Optional[str]] = ContextVar('request_id', default=None)
correlation_id_var: ContextVar[Optional[str]] = ContextVar('correlation_id', default=None)
order_id_var: ContextVar[Optional[str]] = ContextVar('order_id', default=None)

_service_info: Dict[str, str] = {
    "service": "unknown-service",
    "environment": "development",
    "version": "1.0.0",
}


class StructuredFormatter(logging.Formatter):
    """One JSON object per record, shaped for ELK / CloudWatch ingestion."""

    def format(self, record: logging.LogRecord) -> str:
        log_obj: Dict[str, Any] = {
            "@timestamp": datetime.now(timezone.utc).isoformat().replace("+00:00", "Z"),
            "level": record.levelname,
            "logger": record.name,
            "message": record.getMessage(),
            **_service_info,
        }

        trace_context = _trace_context()
        if trace_context:
            log_obj["trace"] = trace_context

        log_obj["location"] = {
            "file": record.pathname,
            "line": record.lineno,
            "function": record.funcName,
        }

        if record.exc_info and record.exc_info[0] is not None:
            log_obj["error"] = {
                "type": record.exc_info[0].__name__,
                "message": str(record.exc_info[1]),
                "stacktrace": traceback.format_exception(*record.exc_info),
            }

        extra_fields = getattr(record, 'extra_fields', None)
        if extra_fields:
            log_obj["custom"] = extra_fields

        return json.dumps(log_obj, default=str)


def _trace_context() -> Optional[Dict[str, str]]:
    context = {
        "request_id": request_id_var.get(),
        "correlation_id": correlation_id_var.get(),
        "order_id": order_id_var.get(),
    }
    context = {k: v for k, v in context.items() if v}
    return context or None


class SecretRedactionFilter(logging.Filter):
    """Masks ``key=value`` / ``"key": "value"`` pairs for sensitive keys."""

    SENSITIVE_KEYS = (
        'password', 'token', 'api_key', 'secret', 'signature',
        'authorization', 'x-api-key', 'key_secret',
    )
    _pattern = re.compile(
        r'(?P<key>["\']?(?:%s)["\']?\s*[:=]\s*)(?P<quote>["\']?)[^"\'\s,}]+'
        % '|'.join(re.escape(k) for k in SENSITIVE_KEYS),
        re.IGNORECASE,
    )

    def filter(self, record: logging.LogRecord) -> bool:
        message = record.getMessage()
        redacted = self._pattern.sub(r'\g<key>\g<quote>***REDACTED***', message)
        if redacted != message:
            record.msg = redacted
            record.args = None

        extra_fields = getattr(record, 'extra_fields', None)
        if isinstance(extra_fields, dict):
            record.extra_fields = {
                k: ('***REDACTED***' if any(s in k.lower() for s in self.SENSITIVE_KEYS) else v)
                for k, v in extra_fields.items()
            }
        return True


def setup_logging(
    service_name: str,
    level: str = "INFO",
    version: str = "1.0.0",
    environment: str = "development",
    log_file: Optional[str] = None,
) -> None:
    """
    Install the JSON formatter on the root logger.

    Args:
        service_name: Name stamped on every record
        level: Log level (DEBUG, INFO, WARNING, ERROR, CRITICAL)
        version: Service version stamped on every record
        environment: Deployment environment (development/staging/production)
        log_file: Optional path for an additional rotating file handler
    """
    _service_info.update(service=service_name, environment=environment, version=version)

    root_logger = logging.getLogger()
    root_logger.setLevel(getattr(logging, level.upper(), logging.INFO))
    root_logger.handlers = []

    formatter = StructuredFormatter()
    handlers: list[logging.Handler] = [logging.StreamHandler(sys.stdout)]
    if log_file:
        handlers.append(logging.handlers.RotatingFileHandler(
            log_file,
            maxBytes=10485760,  # 10MB
            backupCount=5,
        ))
    for handler in handlers:
        handler.setFormatter(formatter)
        handler.addFilter(SecretRedactionFilter())
        root_logger.addHandler(handler)

    logging.getLogger('uvicorn.access').setLevel(logging.WARNING)
    logging.getLogger('sqlalchemy.engine').setLevel(logging.WARNING)
    logging.getLogger('httpx').setLevel(logging.WARNING)

    root_logger.info(
        "Logging initialized",
        extra={'extra_fields': {'service': service_name, 'level': level, 'file': bool(log_file)}},
    )


class LoggerAdapter(logging.LoggerAdapter):
    """Copies the current request context into each record's ``extra``."""

    def process(self, msg, kwargs):
        extra = dict(kwargs.get('extra') or {})
        for key, var in (
            ('request_id', request_id_var),
            ('correlation_id', correlation_id_var),
            ('order_id', order_id_var),
        ):
            value = var.get()
            if value:
                extra[key] = value
        kwargs['extra'] = extra
        return msg, kwargs


def get_logger(name: str) -> LoggerAdapter:
    return LoggerAdapter(logging.getLogger(name), {})


def set_request_context(
    request_id: Optional[str] = None,
    correlation_id: Optional[str] = None,
    order_id: Optional[str] = None,
) -> None:
    if request_id:
        request_id_var.set(request_id)
    if correlation_id:
        correlation_id_var.set(correlation_id)
    if order_id:
        order_id_var.set(order_id)


def generate_request_id() -> str:
    return str(uuid.uuid4())


class RequestLoggingMiddleware(BaseHTTPMiddleware):
    """
    Logs start/end of every request with its duration and echoes the
    request id back in ``X-Request-ID``.
    """

    async def dispatch(self, request: Request, call_next) -> Response:
        request_id = request.headers.get('X-Request-ID') or generate_request_id()
        set_request_context(
            request_id=request_id,
            correlation_id=request.headers.get('X-Correlation-ID'),
        )
        logger = get_logger(__name__)
        fields = {'method': request.method, 'path': request.url.path}
        logger.info(
            f"Request started: {request.method} {request.url.path}",
            extra={'extra_fields': {**fields, 'client_host': request.client.host if request.client else None}},
        )

        start_time = time.perf_counter()
        try:
            response = await call_next(request)
        except Exception:
            logger.error(
                f"Request failed: {request.method} {request.url.path}",
                exc_info=True,
                extra={'extra_fields': {**fields, 'duration_ms': (time.perf_counter() - start_time) * 1000}},
            )
            raise

        logger.info(
            f"Request completed: {request.method} {request.url.path}",
            extra={'extra_fields': {
                **fields,
                'status_code': response.status_code,
                'duration_ms': (time.perf_counter() - start_time) * 1000,
            }},
        )
        response.headers['X-Request-ID'] = request_id
        return response
