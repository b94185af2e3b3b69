import logging
import random
import time
from typing import Any, Callable, Dict, FrozenSet, List, Optional, Tuple

import requests

from krail_bff.breaker import (
    RESULT_SKIPPED,
    RESULT_SUCCESS,
    CircuitBreaker,
    classify_failure,
)
from krail_bff.config import UpstreamConfig
from krail_bff.errors import BreakerOpenError, TransportError, UpstreamError
from krail_bff.metrics import OPERATION_HEALTH, OPERATION_TRIP, UpstreamMetrics
from krail_bff.trip_request import TripRequest
from krail_bff.trip_response import RawTripResponse, decode_trip_response

log = logging.getLogger(__name__)

TRIP_FIXED_PARAMS: List[Tuple[str, str]] = [
    ("type_destination", "any"),
    ("calcNumberOfTrips", "6"),
    ("type_origin", "any"),
    ("TfNSWTR", "true"),
    ("version", "10.2.1.42"),
    ("coordOutputFormat", "EPSG:4326"),
    ("itOptionsActive", "1"),
    ("computeMonomodalTripBicycle", "false"),
    ("cycleSpeed", "16"),
    ("useElevationData", "1"),
    ("outputFormat", "rapidJSON"),
]

MODE_TRAIN = 1
MODE_METRO = 2
MODE_LIGHT_RAIL = 4
MODE_BUS = 5
MODE_COACH = 7
MODE_FERRY = 9
MODE_SCHOOL_BUS = 11

# Bus and school bus share one upstream switch; excluding either excludes both.
COUPLED_MODES = (MODE_BUS, MODE_SCHOOL_BUS)
SINGLE_MODES = (MODE_TRAIN, MODE_METRO, MODE_LIGHT_RAIL, MODE_COACH, MODE_FERRY)


def exclusion_params(excluded_modes: FrozenSet[int]) -> List[Tuple[str, str]]:
    if not excluded_modes:
        return []
    params = [("excludedMeans", "checkbox")]
    for mode in SINGLE_MODES:
        if mode in excluded_modes:
            params.append((f"exclMOT_{mode}", str(mode)))
    if any(mode in excluded_modes for mode in COUPLED_MODES):
        for mode in COUPLED_MODES:
            params.append((f"exclMOT_{mode}", str(mode)))
    return params


def build_trip_params(trip: TripRequest) -> List[Tuple[str, str]]:
    params = [
        ("name_origin", trip.origin),
        ("name_destination", trip.destination),
        ("depArrMacro", trip.dep_arr),
    ]
    if trip.date is not None:
        params.append(("itdDate", trip.date))
    if trip.time is not None:
        params.append(("itdTime", trip.time))
    params.extend(TRIP_FIXED_PARAMS)
    params.extend(exclusion_params(trip.excluded_modes))
    return params


def compute_backoff(attempt: int, base: float, maximum: float) -> float:
    delay = min(maximum, base * (2**attempt))
    return delay * (0.7 + random.random() * 0.6)


class UpstreamExecutor:
    """Calls the NSW Transport API under one shared breaker.

    Retries cover 5xx responses and transport failures within a single call;
    the breaker sees one outcome per call, after retries are spent.
    """

    def __init__(
        self,
        config: UpstreamConfig,
        session: Optional[requests.Session] = None,
        metrics: Optional[UpstreamMetrics] = None,
        breaker: Optional[CircuitBreaker] = None,
        sleep: Callable[[float], None] = time.sleep,
    ) -> None:
        self.config = config
        self.session = session if session is not None else requests.Session()
        self.metrics = metrics if metrics is not None else UpstreamMetrics()
        self.breaker = breaker if breaker is not None else CircuitBreaker(
            config.breaker_failure_threshold,
            config.breaker_reset_timeout_ms / 1000.0,
        )
        self._sleep = sleep

    def _headers(self) -> Dict[str, str]:
        headers = {"Accept": "application/json"}
        if self.config.api_key:
            headers["Authorization"] = f"apikey {self.config.api_key}"
        return headers

    def _on_failure(self, operation: str, status: Optional[int]) -> None:
        self.metrics.record(operation, classify_failure(status))
        self.breaker.record_failure()

    def _on_success(self, operation: str) -> None:
        self.metrics.record(operation, RESULT_SUCCESS)
        self.breaker.record_success()

    def probe(self) -> bool:
        if not self.breaker.allow():
            self.metrics.record(OPERATION_HEALTH, RESULT_SKIPPED)
            return False

        with self.metrics.timer(OPERATION_HEALTH):
            try:
                resp = self.session.get(
                    self.config.root_url,
                    timeout=self.config.timeout,
                    headers=self._headers(),
                )
            except Exception as exc:
                log.warning("NSW health probe failed: %s", exc)
                self._on_failure(OPERATION_HEALTH, None)
                return False

        if 200 <= resp.status_code <= 299:
            self._on_success(OPERATION_HEALTH)
            return True
        log.warning("NSW health probe returned HTTP %s", resp.status_code)
        self._on_failure(OPERATION_HEALTH, resp.status_code)
        return False

    def fetch_trip(self, trip: TripRequest) -> RawTripResponse:
        if not self.breaker.allow():
            self.metrics.record(OPERATION_TRIP, RESULT_SKIPPED)
            raise BreakerOpenError()

        with self.metrics.timer(OPERATION_TRIP):
            try:
                data = self._get_json(self.config.trip_url, build_trip_params(trip))
                trip_response = decode_trip_response(data)
            except UpstreamError as exc:
                self._on_failure(OPERATION_TRIP, exc.status)
                raise
            except TransportError:
                self._on_failure(OPERATION_TRIP, None)
                raise

        self._on_success(OPERATION_TRIP)
        return trip_response

    def _backoff(self, attempt: int, reason: str) -> None:
        delay = compute_backoff(
            attempt,
            self.config.retry_backoff_ms / 1000.0,
            self.config.retry_backoff_max_ms / 1000.0,
        )
        log.warning(
            "NSW trip request %s, retry %d/%d in %.2fs",
            reason,
            attempt + 1,
            self.config.retry_max_attempts,
            delay,
        )
        self.metrics.record_retry(OPERATION_TRIP)
        self._sleep(delay)

    def _get_json(self, url: str, params: List[Tuple[str, str]]) -> Any:
        max_retries = self.config.retry_max_attempts
        attempt = 0
        while True:
            try:
                resp = self.session.get(
                    url,
                    params=params,
                    timeout=self.config.timeout,
                    headers=self._headers(),
                )
            except requests.RequestException as exc:
                if attempt >= max_retries:
                    raise TransportError(f"NSW Transport API request failed: {exc}") from exc
                self._backoff(attempt, f"failed ({exc.__class__.__name__})")
                attempt += 1
                continue

            if 500 <= resp.status_code <= 599:
                if attempt >= max_retries:
                    raise UpstreamError(resp.status_code, resp.text)
                self._backoff(attempt, f"returned HTTP {resp.status_code}")
                attempt += 1
                continue

            if not 200 <= resp.status_code <= 299:
                raise UpstreamError(resp.status_code, resp.text)

            try:
                return resp.json()
            except ValueError as exc:
                raise TransportError("NSW Transport API returned invalid JSON") from exc
