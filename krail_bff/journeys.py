"""Flatten the upstream trip response into display-ready journey cards.

Every step is best-effort: a leg that is missing what it needs is left out of
its journey, and a journey missing its times or stops is left out of the
list. Nothing here raises on bad upstream data.
"""

from dataclasses import dataclass
import datetime
import logging
import re
from typing import Any, Dict, List, Optional, Sequence, Set, Tuple, Union

from krail_bff import trip_response as raw
from krail_bff.formatting import (
    format_duration,
    format_time,
    format_time_until,
    parse_instant,
    to_utc_iso,
)
from krail_bff.models import (
    DepartureDeviation,
    Journey,
    Leg,
    ServiceAlert,
    Stop,
    TransportLeg,
    TransportModeLine,
    WalkingLeg,
    WalkInterchange,
    WalkPosition,
)

log = logging.getLogger(__name__)

WALK_PRODUCT_CLASSES = frozenset({99, 100})
# Train and Metro legs read "towards <destination>" instead of the line description.
TOWARDS_PRODUCT_CLASSES = frozenset({1, 2})

PLATFORM_TEXT_RE = re.compile(r"(Platform|Stand|Wharf|Side)\s*(\d+|[A-Z])", re.IGNORECASE)
PLATFORM_NUMBER_RE = re.compile(r"(Platform|Stand|Wharf)\s*(\d+|[A-Z])", re.IGNORECASE)


@dataclass(frozen=True)
class Walking:
    leg: raw.Leg


@dataclass(frozen=True)
class Transport:
    leg: raw.Leg
    transportation: raw.Transportation


ClassifiedLeg = Union[Walking, Transport]


def as_int(value: Any) -> Optional[int]:
    if value is None or isinstance(value, bool):
        return None
    try:
        return int(value)
    except (TypeError, ValueError):
        return None


def as_str(value: Any) -> Optional[str]:
    return value if isinstance(value, str) and value else None


def as_dict(value: Any) -> Dict[str, Any]:
    return value if isinstance(value, dict) else {}


def dict_items(value: Any) -> List[Dict[str, Any]]:
    """The dict entries of an upstream array; anything else yields nothing."""
    if not isinstance(value, list):
        return []
    return [item for item in value if isinstance(item, dict)]


def product_class(transportation: Optional[raw.Transportation]) -> Optional[int]:
    product = as_dict(as_dict(transportation).get("product"))
    return as_int(product.get("class"))


def line_name(transportation: raw.Transportation) -> Optional[str]:
    return as_str(transportation.get("disassembledName")) or as_str(transportation.get("name"))


def classify_leg(leg: raw.Leg) -> Optional[ClassifiedLeg]:
    transportation = leg.get("transportation")
    if not isinstance(transportation, dict):
        return None
    if product_class(transportation) in WALK_PRODUCT_CLASSES:
        return Walking(leg)
    return Transport(leg, transportation)


def is_redundant(leg: raw.Leg) -> bool:
    return leg.get("footPathInfoRedundant") is True


def departure_time(leg: raw.Leg) -> Optional[str]:
    origin = as_dict(leg.get("origin"))
    return as_str(origin.get("departureTimeEstimated")) or as_str(
        origin.get("departureTimePlanned")
    )


def arrival_time(leg: raw.Leg) -> Optional[str]:
    destination = as_dict(leg.get("destination"))
    return as_str(destination.get("arrivalTimeEstimated")) or as_str(
        destination.get("arrivalTimePlanned")
    )


def origin_name(leg: raw.Leg) -> Optional[str]:
    return as_str(as_dict(leg.get("origin")).get("disassembledName"))


def platform_text(leg: raw.Leg) -> Optional[str]:
    name = origin_name(leg)
    if not name:
        return None
    matches = [match.group(0) for match in PLATFORM_TEXT_RE.finditer(name)]
    return ", ".join(matches) if matches else None


def platform_number(leg: raw.Leg) -> Optional[str]:
    name = origin_name(leg)
    if not name:
        return None
    match = PLATFORM_NUMBER_RE.search(name)
    return match.group(2) if match else None


def departure_deviation(leg: raw.Leg) -> Optional[DepartureDeviation]:
    origin = as_dict(leg.get("origin"))
    estimated = parse_instant(origin.get("departureTimeEstimated"))
    planned = parse_instant(origin.get("departureTimePlanned"))
    if estimated is None or planned is None:
        return None

    seconds = (estimated - planned).total_seconds()
    minutes = int(abs(seconds) // 60)
    if minutes == 0:
        return DepartureDeviation(on_time=True)
    unit = "min" if minutes == 1 else "mins"
    if seconds > 0:
        return DepartureDeviation(late=f"{minutes} {unit} late")
    return DepartureDeviation(early=f"{minutes} {unit} early")


def map_stop(stop: raw.StopEvent) -> Optional[Stop]:
    name = as_str(stop.get("disassembledName")) or as_str(stop.get("name"))
    if not name:
        return None
    time = (
        as_str(stop.get("departureTimeEstimated"))
        or as_str(stop.get("departureTimePlanned"))
        or as_str(stop.get("arrivalTimeEstimated"))
        or as_str(stop.get("arrivalTimePlanned"))
    )
    if not time:
        return None
    properties = as_dict(stop.get("properties"))
    wheelchair = properties.get("WheelchairAccess") or properties.get("wheelchairAccess")
    return Stop(
        name=name,
        time=format_time(time),
        is_wheelchair_accessible=str(wheelchair).lower() == "true",
    )


def map_walk_position(position: Any) -> WalkPosition:
    try:
        return WalkPosition((as_str(position) or "").upper())
    except ValueError:
        return WalkPosition.UNSPECIFIED


def map_walk_interchange(leg: raw.Leg) -> Optional[WalkInterchange]:
    foot_paths = dict_items(leg.get("footPathInfo"))
    if not foot_paths:
        return None
    first = foot_paths[0]
    duration = as_int(first.get("duration"))
    if duration is None:
        return None
    return WalkInterchange(
        duration=format_duration(duration),
        position=map_walk_position(first.get("position")),
    )


def map_service_alerts(infos: Any) -> Tuple[ServiceAlert, ...]:
    seen: Set[str] = set()
    alerts: List[ServiceAlert] = []
    for info in dict_items(infos):
        alert_id = as_str(info.get("id")) or ""
        if alert_id in seen:
            continue
        seen.add(alert_id)
        alerts.append(
            ServiceAlert(
                id=alert_id,
                subtitle=as_str(info.get("subtitle")) or "",
                content=as_str(info.get("content")) or "",
                priority=as_str(info.get("priority")) or "normal",
                url=as_str(info.get("url")),
            )
        )
    return tuple(alerts)


def trip_id(transportation: raw.Transportation) -> Optional[str]:
    properties = as_dict(transportation.get("properties"))
    realtime_id = (
        as_str(properties.get("RealtimeTripId")) or as_str(properties.get("realtimeTripId")) or ""
    )
    combined = (as_str(transportation.get("id")) or "") + realtime_id
    return combined or None


def display_text(transportation: raw.Transportation, mode: int) -> Optional[str]:
    if mode in TOWARDS_PRODUCT_CLASSES:
        destination = as_str(as_dict(transportation.get("destination")).get("name"))
        if destination:
            return f"towards {destination}"
    return as_str(transportation.get("description"))


def map_walking_leg(leg: raw.Leg) -> Optional[WalkingLeg]:
    if is_redundant(leg):
        return None
    duration = as_int(leg.get("duration"))
    if duration is None:
        return None
    return WalkingLeg(duration=format_duration(duration))


def map_transport_leg(leg: raw.Leg, transportation: raw.Transportation) -> Optional[TransportLeg]:
    mode = product_class(transportation)
    if mode is None:
        return None
    name = line_name(transportation)
    if not name:
        return None
    duration = as_int(leg.get("duration"))
    if duration is None:
        return None
    stop_sequence = leg.get("stopSequence")
    if not isinstance(stop_sequence, list):
        return None

    mapped_stops = (map_stop(s) for s in dict_items(stop_sequence))
    stops = tuple(stop for stop in mapped_stops if stop is not None)
    return TransportLeg(
        transport_mode_line=TransportModeLine(line_name=name, transport_mode_type=mode),
        display_text=display_text(transportation, mode),
        total_duration=format_duration(duration),
        stops=stops,
        walk_interchange=map_walk_interchange(leg),
        service_alerts=map_service_alerts(leg.get("infos")),
        trip_id=trip_id(transportation),
    )


def map_leg(classified: ClassifiedLeg) -> Optional[Leg]:
    if isinstance(classified, Walking):
        return map_walking_leg(classified.leg)
    return map_transport_leg(classified.leg, classified.transportation)


def transport_mode_lines(legs: Sequence[ClassifiedLeg]) -> Tuple[TransportModeLine, ...]:
    lines: List[TransportModeLine] = []
    for classified in legs:
        transportation = as_dict(classified.leg.get("transportation"))
        mode = product_class(transportation)
        if mode is None:
            continue
        name = line_name(transportation)
        if not name:
            continue
        line = TransportModeLine(line_name=name, transport_mode_type=mode)
        if line not in lines:
            lines.append(line)
    return tuple(lines)


def total_walking_seconds(legs: Sequence[ClassifiedLeg]) -> int:
    return sum(
        as_int(classified.leg.get("duration")) or 0
        for classified in legs
        if isinstance(classified, Walking) and not is_redundant(classified.leg)
    )


def stop_count(leg: raw.Leg) -> int:
    stop_sequence = leg.get("stopSequence")
    return len(stop_sequence) if isinstance(stop_sequence, list) else 0


def unique_alert_count(legs: Sequence[ClassifiedLeg]) -> int:
    return len({as_str(info.get("id")) for c in legs for info in dict_items(c.leg.get("infos"))})


def map_journey(journey: raw.Journey, now: datetime.datetime) -> Optional[Journey]:
    raw_legs = dict_items(journey.get("legs"))
    legs = [c for c in (classify_leg(leg) for leg in raw_legs) if c is not None]
    if not legs:
        return None

    transport = [c for c in legs if isinstance(c, Transport)]
    if not transport:
        return None
    first, last = transport[0], transport[-1]

    origin_time = departure_time(first.leg)
    destination_time = arrival_time(last.leg)
    origin = parse_instant(origin_time)
    destination = parse_instant(destination_time)
    if origin_time is None or destination_time is None or origin is None or destination is None:
        return None

    if sum(stop_count(c.leg) for c in legs) == 0:
        return None

    walking_seconds = total_walking_seconds(legs)
    mapped_legs = tuple(leg for leg in (map_leg(c) for c in legs) if leg is not None)

    return Journey(
        time_text=format_time_until(origin_time, now),
        platform_text=platform_text(first.leg),
        platform_number=platform_number(first.leg),
        origin_time=format_time(origin_time),
        origin_utc_date_time=to_utc_iso(origin),
        destination_time=format_time(destination_time),
        destination_utc_date_time=to_utc_iso(destination),
        travel_time=format_duration(int((destination - origin).total_seconds())),
        total_walk_time=format_duration(walking_seconds) if walking_seconds > 0 else None,
        transport_mode_lines=transport_mode_lines(legs),
        legs=mapped_legs,
        total_unique_service_alerts=unique_alert_count(legs),
        departure_deviation=departure_deviation(first.leg),
    )


def map_journeys(
    trip_response: raw.RawTripResponse, now: Optional[datetime.datetime] = None
) -> List[Journey]:
    if now is None:
        now = datetime.datetime.now(datetime.timezone.utc)
    elif now.tzinfo is None:
        now = now.replace(tzinfo=datetime.timezone.utc)

    raw_journeys = dict_items(trip_response.get("journeys"))
    journeys = [j for j in (map_journey(rj, now) for rj in raw_journeys) if j is not None]
    log.debug("Mapped %d of %d upstream journeys", len(journeys), len(raw_journeys))
    return journeys
