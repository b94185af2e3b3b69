"""Protocol Buffers encoding of the journey list served to the mobile app.

The message schema is declared here as a descriptor and registered in a
private pool, so no generated ``_pb2`` module is needed.
"""

from typing import List, Optional, Sequence, Tuple, Type

from google.protobuf import descriptor_pb2, descriptor_pool, message_factory
from google.protobuf.message import Message

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

CONTENT_TYPE = "application/protobuf"
PACKAGE = "krail.bff"

_Field = descriptor_pb2.FieldDescriptorProto
STRING = _Field.TYPE_STRING
INT32 = _Field.TYPE_INT32
BOOL = _Field.TYPE_BOOL
MESSAGE = _Field.TYPE_MESSAGE
ENUM = _Field.TYPE_ENUM

# name, type, referenced type, repeated, oneof
FieldSpec = Tuple[str, int, Optional[str], bool, Optional[str]]


def field(name: str, kind: int, ref: Optional[str] = None, repeated: bool = False,
          oneof: Optional[str] = None) -> FieldSpec:
    return (name, kind, ref, repeated, oneof)


SCHEMA: List[Tuple[str, List[FieldSpec]]] = [
    ("TransportModeLine", [
        field("line_name", STRING),
        field("transport_mode_type", INT32),
    ]),
    ("Stop", [
        field("name", STRING),
        field("time", STRING),
        field("is_wheelchair_accessible", BOOL),
    ]),
    ("WalkInterchange", [
        field("duration", STRING),
        field("position", ENUM, "WalkPosition"),
    ]),
    ("ServiceAlert", [
        field("id", STRING),
        field("subtitle", STRING),
        field("content", STRING),
        field("priority", STRING),
        field("url", STRING),
    ]),
    ("WalkingLeg", [
        field("duration", STRING),
    ]),
    ("TransportLeg", [
        field("transport_mode_line", MESSAGE, "TransportModeLine"),
        field("display_text", STRING),
        field("total_duration", STRING),
        field("stops", MESSAGE, "Stop", repeated=True),
        field("walk_interchange", MESSAGE, "WalkInterchange"),
        field("service_alert_list", MESSAGE, "ServiceAlert", repeated=True),
        field("trip_id", STRING),
    ]),
    ("Leg", [
        field("walking_leg", MESSAGE, "WalkingLeg", oneof="leg_type"),
        field("transport_leg", MESSAGE, "TransportLeg", oneof="leg_type"),
    ]),
    ("DepartureDeviation", [
        field("on_time", BOOL, oneof="deviation"),
        field("late", STRING, oneof="deviation"),
        field("early", STRING, oneof="deviation"),
    ]),
    ("JourneyCardInfo", [
        field("time_text", STRING),
        field("platform_text", STRING),
        field("platform_number", STRING),
        field("origin_time", STRING),
        field("origin_utc_date_time", STRING),
        field("destination_time", STRING),
        field("destination_utc_date_time", STRING),
        field("travel_time", STRING),
        field("total_walk_time", STRING),
        field("transport_mode_lines", MESSAGE, "TransportModeLine", repeated=True),
        field("legs", MESSAGE, "Leg", repeated=True),
        field("total_unique_service_alerts", INT32),
        field("departure_deviation", MESSAGE, "DepartureDeviation"),
    ]),
    ("JourneyList", [
        field("journeys", MESSAGE, "JourneyCardInfo", repeated=True),
    ]),
]


def build_file_descriptor() -> descriptor_pb2.FileDescriptorProto:
    file_proto = descriptor_pb2.FileDescriptorProto(
        name="krail/bff/journey_list.proto", package=PACKAGE, syntax="proto3"
    )
    walk_position = file_proto.enum_type.add(name="WalkPosition")
    for number, position in enumerate(WalkPosition):
        walk_position.value.add(name=position.value, number=number)

    for message_name, fields in SCHEMA:
        message = file_proto.message_type.add(name=message_name)
        oneofs: List[str] = []
        for number, (name, kind, ref, repeated, oneof) in enumerate(fields, start=1):
            proto_field = message.field.add(
                name=name,
                number=number,
                type=kind,
                label=_Field.LABEL_REPEATED if repeated else _Field.LABEL_OPTIONAL,
            )
            if ref is not None:
                proto_field.type_name = f".{PACKAGE}.{ref}"
            if oneof is not None:
                if oneof not in oneofs:
                    oneofs.append(oneof)
                    message.oneof_decl.add(name=oneof)
                proto_field.oneof_index = oneofs.index(oneof)
    return file_proto


_pool = descriptor_pool.DescriptorPool()
_pool.AddSerializedFile(build_file_descriptor().SerializeToString())
_walk_position_enum = _pool.FindEnumTypeByName(f"{PACKAGE}.WalkPosition")


def message_class(name: str) -> Type[Message]:
    return message_factory.GetMessageClass(_pool.FindMessageTypeByName(f"{PACKAGE}.{name}"))


JourneyListMessage = message_class("JourneyList")


def _fill_transport_leg(message: Message, leg: TransportLeg) -> None:
    message.transport_mode_line.line_name = leg.transport_mode_line.line_name
    message.transport_mode_line.transport_mode_type = leg.transport_mode_line.transport_mode_type
    if leg.display_text is not None:
        message.display_text = leg.display_text
    message.total_duration = leg.total_duration
    for stop in leg.stops:
        message.stops.add(
            name=stop.name,
            time=stop.time,
            is_wheelchair_accessible=stop.is_wheelchair_accessible,
        )
    if leg.walk_interchange is not None:
        message.walk_interchange.duration = leg.walk_interchange.duration
        message.walk_interchange.position = _walk_position_enum.values_by_name[
            leg.walk_interchange.position.value
        ].number
    for alert in leg.service_alerts:
        entry = message.service_alert_list.add(
            id=alert.id, subtitle=alert.subtitle, content=alert.content, priority=alert.priority
        )
        if alert.url is not None:
            entry.url = alert.url
    if leg.trip_id is not None:
        message.trip_id = leg.trip_id


def _fill_journey(message: Message, journey: Journey) -> None:
    message.time_text = journey.time_text
    if journey.platform_text is not None:
        message.platform_text = journey.platform_text
    if journey.platform_number is not None:
        message.platform_number = journey.platform_number
    message.origin_time = journey.origin_time
    message.origin_utc_date_time = journey.origin_utc_date_time
    message.destination_time = journey.destination_time
    message.destination_utc_date_time = journey.destination_utc_date_time
    message.travel_time = journey.travel_time
    if journey.total_walk_time is not None:
        message.total_walk_time = journey.total_walk_time
    for line in journey.transport_mode_lines:
        message.transport_mode_lines.add(
            line_name=line.line_name, transport_mode_type=line.transport_mode_type
        )
    for leg in journey.legs:
        leg_message = message.legs.add()
        if isinstance(leg, WalkingLeg):
            leg_message.walking_leg.duration = leg.duration
        else:
            _fill_transport_leg(leg_message.transport_leg, leg)
    message.total_unique_service_alerts = journey.total_unique_service_alerts

    deviation = journey.departure_deviation
    if deviation is not None:
        if deviation.late is not None:
            message.departure_deviation.late = deviation.late
        elif deviation.early is not None:
            message.departure_deviation.early = deviation.early
        else:
            message.departure_deviation.on_time = deviation.on_time


def encode_journey_list(journeys: Sequence[Journey]) -> bytes:
    message = JourneyListMessage()
    for journey in journeys:
        _fill_journey(message.journeys.add(), journey)
    return message.SerializeToString()


def _optional(value: str) -> Optional[str]:
    return value or None


def _read_transport_leg(message: Message) -> TransportLeg:
    interchange = None
    if message.HasField("walk_interchange"):
        interchange = WalkInterchange(
            duration=message.walk_interchange.duration,
            position=WalkPosition(
                _walk_position_enum.values_by_number[message.walk_interchange.position].name
            ),
        )
    return TransportLeg(
        transport_mode_line=TransportModeLine(
            line_name=message.transport_mode_line.line_name,
            transport_mode_type=message.transport_mode_line.transport_mode_type,
        ),
        display_text=_optional(message.display_text),
        total_duration=message.total_duration,
        stops=tuple(
            Stop(name=s.name, time=s.time, is_wheelchair_accessible=s.is_wheelchair_accessible)
            for s in message.stops
        ),
        walk_interchange=interchange,
        service_alerts=tuple(
            ServiceAlert(
                id=a.id, subtitle=a.subtitle, content=a.content,
                priority=a.priority, url=_optional(a.url),
            )
            for a in message.service_alert_list
        ),
        trip_id=_optional(message.trip_id),
    )


def _read_leg(message: Message) -> Optional[Leg]:
    kind = message.WhichOneof("leg_type")
    if kind == "walking_leg":
        return WalkingLeg(duration=message.walking_leg.duration)
    if kind == "transport_leg":
        return _read_transport_leg(message.transport_leg)
    return None


def _read_deviation(message: Message) -> Optional[DepartureDeviation]:
    kind = message.WhichOneof("deviation")
    if kind == "late":
        return DepartureDeviation(late=message.late)
    if kind == "early":
        return DepartureDeviation(early=message.early)
    if kind == "on_time":
        return DepartureDeviation(on_time=message.on_time)
    return None


def decode_journey_list(data: bytes) -> List[Journey]:
    message = JourneyListMessage.FromString(data)
    journeys: List[Journey] = []
    for card in message.journeys:
        legs = tuple(leg for leg in (_read_leg(m) for m in card.legs) if leg is not None)
        journeys.append(
            Journey(
                time_text=card.time_text,
                platform_text=_optional(card.platform_text),
                platform_number=_optional(card.platform_number),
                origin_time=card.origin_time,
                origin_utc_date_time=card.origin_utc_date_time,
                destination_time=card.destination_time,
                destination_utc_date_time=card.destination_utc_date_time,
                travel_time=card.travel_time,
                total_walk_time=_optional(card.total_walk_time),
                transport_mode_lines=tuple(
                    TransportModeLine(
                        line_name=line.line_name, transport_mode_type=line.transport_mode_type
                    )
                    for line in card.transport_mode_lines
                ),
                legs=legs,
                total_unique_service_alerts=card.total_unique_service_alerts,
                departure_deviation=(
                    _read_deviation(card.departure_deviation)
                    if card.HasField("departure_deviation")
                    else None
                ),
            )
        )
    return journeys
