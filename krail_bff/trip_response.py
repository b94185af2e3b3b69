"""Shapes of the upstream rapidJSON trip response.

Only the fields the journey mapper reads are declared; everything else the
upstream sends is ignored.
"""

from typing import Any, List, TypedDict, cast

from krail_bff.errors import TransportError

Product = TypedDict("Product", {"class": int, "name": str, "iconId": int}, total=False)


class TransportDestination(TypedDict, total=False):
    id: str
    name: str


class TransportProperties(TypedDict, total=False):
    RealtimeTripId: str
    realtimeTripId: str


class Transportation(TypedDict, total=False):
    id: str
    name: str
    disassembledName: str
    description: str
    product: Product
    destination: TransportDestination
    properties: TransportProperties


class StopProperties(TypedDict, total=False):
    WheelchairAccess: str
    wheelchairAccess: str


class StopEvent(TypedDict, total=False):
    id: str
    name: str
    disassembledName: str
    departureTimePlanned: str
    departureTimeEstimated: str
    arrivalTimePlanned: str
    arrivalTimeEstimated: str
    properties: StopProperties


class FootPathInfo(TypedDict, total=False):
    duration: int
    position: str


class Info(TypedDict, total=False):
    id: str
    subtitle: str
    content: str
    priority: str
    url: str


class Leg(TypedDict, total=False):
    duration: int
    origin: StopEvent
    destination: StopEvent
    transportation: Transportation
    stopSequence: List[StopEvent]
    footPathInfo: List[FootPathInfo]
    footPathInfoRedundant: bool
    infos: List[Info]


class Journey(TypedDict, total=False):
    legs: List[Leg]


class RawTripResponse(TypedDict, total=False):
    version: str
    journeys: List[Journey]


def decode_trip_response(data: Any) -> RawTripResponse:
    if not isinstance(data, dict):
        raise TransportError("NSW Transport API returned a malformed trip response")
    journeys = data.get("journeys")
    if journeys is not None and not isinstance(journeys, list):
        raise TransportError("NSW Transport API returned a malformed journey list")
    return cast(RawTripResponse, data)
