from dataclasses import asdict, dataclass
import datetime
import logging
import time
from typing import Any, Callable, Dict, List, Mapping, Optional
import uuid

from flask import Flask, g, has_request_context, jsonify, make_response, request, Response
from prometheus_client import CONTENT_TYPE_LATEST, generate_latest
from werkzeug.exceptions import HTTPException

from krail_bff.config import (
    AppConfig,
    ConfigSources,
    UpstreamConfig,
    load_app_config,
    load_upstream_config,
)
from krail_bff.errors import GatewayError
from krail_bff.journeys import map_journeys
from krail_bff.models import Journey
from krail_bff.rate_limit import TokenBucket
from krail_bff.trip_request import normalize_trip_params
from krail_bff.upstream import UpstreamExecutor
from krail_bff.wire import CONTENT_TYPE as PROTOBUF_CONTENT_TYPE, encode_journey_list

log = logging.getLogger(__name__)

LOG_FORMAT = "%(asctime)s %(levelname)s [%(correlation_id)s] %(name)s: %(message)s%(mobile)s"

REQUEST_ID_HEADER = "X-Request-Id"
MOBILE_HEADERS = {
    "device_id": "X-Device-Id",
    "device_model": "X-Device-Model",
    "os_name": "X-OS-Name",
    "os_version": "X-OS-Version",
    "app_version": "X-App-Version",
    "client_region": "X-Client-Region",
    "network_type": "X-Network-Type",
}
UNLIMITED_PATHS = {"/health", "/ready"}


@dataclass(frozen=True)
class MobileContext:
    device_id: Optional[str] = None
    device_model: Optional[str] = None
    os_name: Optional[str] = None
    os_version: Optional[str] = None
    app_version: Optional[str] = None
    client_region: Optional[str] = None
    network_type: Optional[str] = None

    @classmethod
    def from_headers(cls, headers: Mapping[str, str]) -> "MobileContext":
        return cls(**{field: headers.get(header) for field, header in MOBILE_HEADERS.items()})

    def present(self) -> Dict[str, str]:
        return {key: value for key, value in asdict(self).items() if value is not None}


def current_correlation_id() -> Optional[str]:
    if not has_request_context():
        return None
    return g.get("correlation_id")


def current_mobile_context() -> Optional[MobileContext]:
    if not has_request_context():
        return None
    return g.get("mobile_context")


class RequestContextFilter(logging.Filter):
    """Stamps the correlation id and any mobile client fields onto each record."""

    def filter(self, record: logging.LogRecord) -> bool:
        record.correlation_id = current_correlation_id() or "-"
        context = current_mobile_context()
        mobile = context.present() if context is not None else {}
        for name in MOBILE_HEADERS:
            setattr(record, name, mobile.get(name, "-"))
        record.mobile = "".join(f" {key}={value}" for key, value in mobile.items())
        return True


def configure_logging(level: str) -> None:
    handler = logging.StreamHandler()
    handler.setFormatter(logging.Formatter(LOG_FORMAT))
    handler.addFilter(RequestContextFilter())
    logging.basicConfig(level=level, handlers=[handler])


def error_response(
    status: int,
    code: str,
    message: str,
    *,
    details: Optional[Dict[str, str]] = None,
    retry_after: Optional[int] = None,
) -> Response:
    error: Dict[str, Any] = {"code": code, "message": message}
    if details:
        error["details"] = details
    payload: Dict[str, Any] = {
        "success": False,
        "error": error,
        "correlationId": current_correlation_id(),
    }
    resp = jsonify(payload)
    resp.status_code = status
    resp.headers["Cache-Control"] = "no-store"
    if retry_after is not None:
        resp.headers["Retry-After"] = str(retry_after)
    return resp


def utc_now() -> datetime.datetime:
    return datetime.datetime.now(datetime.timezone.utc)


def create_app(
    app_config: Optional[AppConfig] = None,
    upstream_config: Optional[UpstreamConfig] = None,
    executor: Optional[UpstreamExecutor] = None,
    clock: Callable[[], float] = time.monotonic,
    now: Callable[[], datetime.datetime] = utc_now,
) -> Flask:
    if app_config is None or (executor is None and upstream_config is None):
        sources = ConfigSources.load()
        app_config = app_config or load_app_config(sources)
        upstream_config = upstream_config or load_upstream_config(sources)
    if executor is None:
        executor = UpstreamExecutor(upstream_config)

    limiter = TokenBucket(app_config.rate_limit_burst, app_config.rate_limit_rps, clock=clock)

    app = Flask(__name__)
    app.extensions["upstream_executor"] = executor
    app.extensions["rate_limiter"] = limiter

    @app.before_request
    def capture_request_context() -> None:
        incoming = (request.headers.get(REQUEST_ID_HEADER) or "").strip()
        g.correlation_id = incoming or str(uuid.uuid4())
        g.mobile_context = MobileContext.from_headers(request.headers)
        mobile = g.mobile_context.present()
        if mobile:
            log.debug("Mobile client %s", mobile)

    @app.before_request
    def apply_rate_limit() -> Optional[Response]:
        if request.path in UNLIMITED_PATHS:
            return None
        if request.method == "OPTIONS":
            return make_response("", 204)
        if not limiter.allow():
            return error_response(429, "rate_limited", "Too Many Requests", retry_after=1)
        return None

    @app.after_request
    def add_common_headers(resp: Response) -> Response:
        correlation_id = current_correlation_id()
        if correlation_id:
            resp.headers[REQUEST_ID_HEADER] = correlation_id

        origin = request.headers.get("Origin")
        if origin and origin in app_config.cors_allowed_origins:
            resp.headers["Access-Control-Allow-Origin"] = origin
            resp.headers["Vary"] = "Origin"
            resp.headers["Access-Control-Allow-Methods"] = "GET, OPTIONS"
            resp.headers["Access-Control-Allow-Headers"] = (
                "Accept, Authorization, Content-Type, " + REQUEST_ID_HEADER
            )
            resp.headers["Access-Control-Expose-Headers"] = (
                "Content-Type, Retry-After, " + REQUEST_ID_HEADER
            )
            resp.headers["Access-Control-Max-Age"] = "3600"

        resp.headers.setdefault("X-Content-Type-Options", "nosniff")
        resp.headers.setdefault("Referrer-Policy", "no-referrer")
        resp.headers.setdefault("X-Frame-Options", "DENY")
        log.info("%s %s -> %s", request.method, request.path, resp.status_code)
        return resp

    @app.errorhandler(GatewayError)
    def handle_gateway_error(exc: GatewayError) -> Response:
        if exc.http_status >= 500:
            log.warning("Trip request failed: %s", exc)
        return error_response(
            exc.http_status,
            exc.code,
            exc.public_message or exc.message,
            details=exc.details,
        )

    @app.errorhandler(HTTPException)
    def handle_http_error(exc: HTTPException) -> Response:
        status = exc.code or 500
        if status == 404:
            return error_response(404, "not_found", "Resource not found")
        code = (exc.name or "error").lower().replace(" ", "_")
        return error_response(status, code, exc.description or exc.name)

    @app.errorhandler(Exception)
    def handle_unexpected(exc: Exception) -> Response:
        log.exception("Unhandled exception for %s", request.path)
        return error_response(500, "internal_error", "Internal server error")

    def plan_journeys() -> List[Journey]:
        trip = normalize_trip_params(request.args)
        trip_response = executor.fetch_trip(trip)
        return map_journeys(trip_response, now())

    def trip_proto() -> Response:
        journeys = plan_journeys()
        return Response(encode_journey_list(journeys), mimetype=PROTOBUF_CONTENT_TYPE)

    # Legacy Android endpoint and its newer alias both answer in protobuf.
    app.add_url_rule("/v1/tp/trip", "legacy_trip", trip_proto, methods=["GET", "OPTIONS"])
    app.add_url_rule(
        "/api/v1/trip/plan-proto", "trip_plan_proto", trip_proto, methods=["GET", "OPTIONS"]
    )

    @app.route("/api/v1/trip/plan", methods=["GET", "OPTIONS"])
    def trip_plan() -> Response:
        journeys = plan_journeys()
        return jsonify({"journeys": [journey.to_dict() for journey in journeys]})

    @app.route("/health", methods=["GET"])
    def health() -> Response:
        return jsonify({"status": "up"})

    @app.route("/ready", methods=["GET"])
    def ready() -> Response:
        if executor.probe():
            return jsonify({"status": "ready", "nsw": "up"})
        resp = jsonify({"status": "degraded", "nsw": "down"})
        resp.status_code = 503
        return resp

    @app.route("/metrics", methods=["GET"])
    def metrics() -> Response:
        body = generate_latest(executor.metrics.registry)
        return Response(body, content_type=CONTENT_TYPE_LATEST)

    return app
