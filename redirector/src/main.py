from __future__ import annotations

import hashlib
import json
import logging
import os
import re
import time

from fastapi import FastAPI, Request, Response
from fastapi.responses import JSONResponse, PlainTextResponse, RedirectResponse
from prometheus_client import Counter, Gauge, Histogram, generate_latest
from starlette.middleware.base import BaseHTTPMiddleware, RequestResponseEndpoint

from redirector.src.config import AppConfig, load_config
from redirector.src.loader import load_sources
from redirector.src.metrics import METRICS
from redirector.src.resolvers import ResolverChain, build_chain
from redirector.src.store import MappingStore, StoreError

APP_VERSION = "0.1.0"
_REDACTION_RULES: tuple[tuple[re.Pattern[str], str], ...] = (
    (
        re.compile(r"(?i)(bearer\s+)([A-Za-z0-9._~+/=-]+)"),
        r"\1[REDACTED]",
    ),
    (
        re.compile(
            r"(?i)(\b(?:authorization|token|password|passwd|secret|api[_-]?key)\b\s*[:=]\s*)([^\s,;]+)"
        ),
        r"\1[REDACTED]",
    ),
    (
        re.compile(r"(?i)([?&](?:token|access_token|api_key|password)=)([^&\s]+)"),
        r"\1[REDACTED]",
    ),
)
_ERROR_BODY = {"error": "internal_server_error", "detail": "An unexpected error occurred."}


def redact_sensitive_text(value: str) -> str:
    redacted = value
    for pattern, replacement in _REDACTION_RULES:
        redacted = pattern.sub(replacement, redacted)
    return redacted


class JSONFormatter(logging.Formatter):
    """Emit logs as single-line JSON objects for structured log aggregation."""

    def format(self, record: logging.LogRecord) -> str:
        log_entry = {
            "ts": self.formatTime(record, self.datefmt),
            "level": record.levelname,
            "logger": record.name,
            "msg": redact_sensitive_text(record.getMessage()),
        }
        if record.exc_info and record.exc_info[0] is not None:
            log_entry["error"] = redact_sensitive_text(self.formatException(record.exc_info))
        return json.dumps(log_entry)


def configure_logging() -> None:
    """Configure structured JSON logging with a level from ``LOG_LEVEL`` env var."""
    log_level = os.getenv("LOG_LEVEL", "INFO").upper()
    handler = logging.StreamHandler()
    handler.setFormatter(JSONFormatter())
    logging.root.handlers.clear()
    logging.root.addHandler(handler)
    logging.root.setLevel(getattr(logging, log_level, logging.INFO))

REQUEST_COUNT = Counter(
    "http_requests_total",
    "Total HTTP requests",
    ["method", "path", "status"],
)
REQUEST_DURATION = Histogram(
    "http_request_duration_seconds",
    "HTTP request duration in seconds",
    ["method", "path"],
)
REQUEST_IN_FLIGHT = Gauge(
    "http_in_flight_requests",
    "Current number of HTTP requests being processed",
)
CONFIG_LOADED_TIMESTAMP = Gauge(
    "app_config_loaded_timestamp_seconds",
    "Unix timestamp when the path mappings were loaded at startup",
)
CONFIG_LOADED_INFO = Gauge(
    "app_config_loaded_info",
    "Startup mapping metadata",
    ["namespace", "mappings_fingerprint", "app_version"],
)
KNOWN_METRIC_PATHS = {"/healthz", "/readyz", "/metrics"}
REDIRECT_METHODS = ["GET", "HEAD", "POST", "PUT", "PATCH", "DELETE", "OPTIONS"]


class MetricsMiddleware(BaseHTTPMiddleware):
    """ASGI middleware that records per-request Prometheus counters and histograms.

    Skips the ``/metrics`` endpoint itself to avoid self-referential inflation.
    Redirected paths are user data, so everything outside the operational
    endpoints is labelled ``other``.
    """

    async def dispatch(self, request: Request, call_next: RequestResponseEndpoint) -> Response:
        if request.url.path == "/metrics":
            return await call_next(request)
        REQUEST_IN_FLIGHT.inc()
        start = time.monotonic()
        status_code = 500
        try:
            response = await call_next(request)
            status_code = response.status_code
        finally:
            duration = time.monotonic() - start
            metric_path = self._normalize_metric_path(request)
            REQUEST_COUNT.labels(method=request.method, path=metric_path, status=status_code).inc()
            REQUEST_DURATION.labels(method=request.method, path=metric_path).observe(duration)
            REQUEST_IN_FLIGHT.dec()
        return response

    @staticmethod
    def _normalize_metric_path(request: Request) -> str:
        if request.url.path in KNOWN_METRIC_PATHS:
            return request.url.path
        return "other"


def _mappings_fingerprint(counts: dict[str, int], config: AppConfig) -> str:
    payload = f"{config.yaml_file}:{counts.get('yaml', 0)}|{config.json_file}:{counts.get('json', 0)}"
    return hashlib.sha256(payload.encode("utf-8")).hexdigest()[:12]


def redirect_to(url: str) -> RedirectResponse:
    """Return a ``302 Found`` pointing at *url*, passed through unvalidated."""
    return RedirectResponse(url, status_code=302)


def create_app(config: AppConfig | None = None, store: MappingStore | None = None) -> FastAPI:
    """Create and configure the redirector FastAPI application.

    When *store* is omitted, the store at ``config.db_path`` is opened and
    both config sources are loaded into it before the app is returned, so a
    malformed or unreadable source fails here rather than at request time.
    A store passed in is used as-is; the caller owns loading and closing it.

    Endpoints:
        ``GET /healthz``  Liveness check (always ``200 ok``).
        ``GET /readyz``   Readiness check with namespace and mapping count.
        ``GET /metrics``  Prometheus metrics in text exposition format.
        ``* /{path}``     Redirect (``302``) when a resolver knows the path,
                          otherwise the plain-text greeting.
    """
    config = config if config is not None else load_config()
    logger = logging.getLogger(__name__)

    if store is None:
        store = MappingStore.open(config.db_path)
        try:
            counts = load_sources(store, config)
        except Exception:
            store.close()
            raise
    else:
        counts = {}

    chain: ResolverChain = build_chain(store, config.namespace, config.static_paths)
    logger.info(
        "Starting redirector (namespace=%s, resolvers=%s)",
        config.namespace,
        ",".join(resolver.name for resolver in chain.resolvers),
    )

    # Every path other than the operational endpoints belongs to the mapping table.
    app = FastAPI(
        title="redirector",
        version=APP_VERSION,
        docs_url=None,
        redoc_url=None,
        openapi_url=None,
    )
    CONFIG_LOADED_TIMESTAMP.set_to_current_time()
    CONFIG_LOADED_INFO.clear()
    CONFIG_LOADED_INFO.labels(
        namespace=config.namespace,
        mappings_fingerprint=_mappings_fingerprint(counts, config),
        app_version=app.version,
    ).set(1)
    app.state.config = config
    app.state.store = store
    app.state.chain = chain
    app.add_middleware(MetricsMiddleware)

    @app.exception_handler(StoreError)
    async def store_error_handler(request: Request, exc: StoreError) -> JSONResponse:
        """Turn a failed lookup into a generic 500 without exposing store details."""
        METRICS.store_errors_total.labels(operation=exc.operation).inc()
        logger.error(
            "Mapping store failure for %s %s", request.method, request.url.path, exc_info=exc
        )
        return JSONResponse(status_code=500, content=_ERROR_BODY)

    @app.exception_handler(Exception)
    async def global_exception_handler(request: Request, exc: Exception) -> JSONResponse:
        """Return a standardized JSON error body for unhandled exceptions."""
        logger.exception("Unhandled error for %s %s", request.method, request.url.path)
        return JSONResponse(status_code=500, content=_ERROR_BODY)

    @app.get("/healthz", response_class=PlainTextResponse)
    def healthz() -> str:
        return "ok"

    @app.get("/readyz", response_class=PlainTextResponse)
    def readyz() -> str:
        return f"ok namespace={config.namespace} mappings={store.count(config.namespace)}"

    @app.get("/metrics", response_class=PlainTextResponse)
    def metrics() -> bytes:
        return generate_latest()

    @app.api_route("/{path:path}", methods=REDIRECT_METHODS, response_model=None)
    def redirect(request: Request) -> Response:
        path = request.url.path
        resolution = chain.resolve(path)
        if resolution is None:
            METRICS.fallthrough_total.inc()
            return PlainTextResponse(f"{config.greeting}\n")
        METRICS.redirects_total.labels(resolver=resolution.resolver).inc()
        return redirect_to(resolution.url)

    return app
