from dataclasses import asdict, dataclass
from enum import Enum
from typing import Any, Dict, Optional, Tuple, Union

JsonDict = Dict[str, Any]


class WalkPosition(str, Enum):
    UNSPECIFIED = "WALK_POSITION_UNSPECIFIED"
    BEFORE = "BEFORE"
    AFTER = "AFTER"
    IDEST = "IDEST"


@dataclass(frozen=True)
class TransportModeLine:
    line_name: str
    transport_mode_type: int


@dataclass(frozen=True)
class Stop:
    name: str
    time: str
    is_wheelchair_accessible: bool


@dataclass(frozen=True)
class WalkInterchange:
    duration: str
    position: WalkPosition = WalkPosition.UNSPECIFIED


@dataclass(frozen=True)
class ServiceAlert:
    id: str
    subtitle: str
    content: str
    priority: str = "normal"
    url: Optional[str] = None


@dataclass(frozen=True)
class DepartureDeviation:
    on_time: bool = False
    late: Optional[str] = None
    early: Optional[str] = None

    def to_dict(self) -> JsonDict:
        if self.late is not None:
            return {"late": self.late}
        if self.early is not None:
            return {"early": self.early}
        return {"onTime": self.on_time}


@dataclass(frozen=True)
class WalkingLeg:
    duration: str

    def to_dict(self) -> JsonDict:
        return {"walkingLeg": {"duration": self.duration}}


@dataclass(frozen=True)
class TransportLeg:
    transport_mode_line: TransportModeLine
    display_text: Optional[str]
    total_duration: str
    stops: Tuple[Stop, ...]
    walk_interchange: Optional[WalkInterchange] = None
    service_alerts: Tuple[ServiceAlert, ...] = ()
    trip_id: Optional[str] = None

    def to_dict(self) -> JsonDict:
        interchange = None
        if self.walk_interchange is not None:
            interchange = {
                "duration": self.walk_interchange.duration,
                "position": self.walk_interchange.position.value,
            }
        return {
            "transportLeg": {
                "transportModeLine": {
                    "lineName": self.transport_mode_line.line_name,
                    "transportModeType": self.transport_mode_line.transport_mode_type,
                },
                "displayText": self.display_text,
                "totalDuration": self.total_duration,
                "stops": [
                    {
                        "name": stop.name,
                        "time": stop.time,
                        "isWheelchairAccessible": stop.is_wheelchair_accessible,
                    }
                    for stop in self.stops
                ],
                "walkInterchange": interchange,
                "serviceAlerts": [asdict(alert) for alert in self.service_alerts],
                "tripId": self.trip_id,
            }
        }


Leg = Union[WalkingLeg, TransportLeg]


@dataclass(frozen=True)
class Journey:
    time_text: str
    platform_text: Optional[str]
    platform_number: Optional[str]
    origin_time: str
    origin_utc_date_time: str
    destination_time: str
    destination_utc_date_time: str
    travel_time: str
    total_walk_time: Optional[str]
    transport_mode_lines: Tuple[TransportModeLine, ...]
    legs: Tuple[Leg, ...]
    total_unique_service_alerts: int
    departure_deviation: Optional[DepartureDeviation] = None

    def to_dict(self) -> JsonDict:
        return {
            "timeText": self.time_text,
            "platformText": self.platform_text,
            "platformNumber": self.platform_number,
            "originTime": self.origin_time,
            "originUtcDateTime": self.origin_utc_date_time,
            "destinationTime": self.destination_time,
            "destinationUtcDateTime": self.destination_utc_date_time,
            "travelTime": self.travel_time,
            "totalWalkTime": self.total_walk_time,
            "transportModeLines": [
                {"lineName": line.line_name, "transportModeType": line.transport_mode_type}
                for line in self.transport_mode_lines
            ],
            "legs": [leg.to_dict() for leg in self.legs],
            "totalUniqueServiceAlerts": self.total_unique_service_alerts,
            "departureDeviation": (
                self.departure_deviation.to_dict() if self.departure_deviation else None
            ),
        }
