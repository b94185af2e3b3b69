import copy
import datetime

import pytest

from krail_bff.journeys import (
    Transport,
    Walking,
    classify_leg,
    departure_deviation,
    map_journeys,
    platform_number,
    platform_text,
)
from krail_bff.models import (
    DepartureDeviation,
    TransportLeg,
    TransportModeLine,
    WalkingLeg,
    WalkPosition,
)

NOW = datetime.datetime(2024, 5, 1, 7, 0, tzinfo=datetime.timezone.utc)


def stop(name, time, wheelchair="true"):
    return {
        "disassembledName": name,
        "departureTimePlanned": time,
        "properties": {"WheelchairAccess": wheelchair},
    }


def walk(duration, redundant=False):
    return {
        "duration": duration,
        "transportation": {"product": {"class": 100, "name": "footpath"}},
        "footPathInfoRedundant": redundant,
        "stopSequence": [
            stop("Street", "2024-05-01T07:05:00Z"),
            stop("Central Station", "2024-05-01T07:10:00Z"),
        ],
    }


def train_leg():
    return {
        "duration": 1200,
        "origin": {
            "disassembledName": "Central Station, Platform 4",
            "departureTimePlanned": "2024-05-01T07:10:00Z",
            "departureTimeEstimated": "2024-05-01T07:13:00Z",
        },
        "destination": {
            "disassembledName": "Town Hall",
            "arrivalTimePlanned": "2024-05-01T07:33:00Z",
        },
        "transportation": {
            "id": "nsw:020T1",
            "name": "Sydney Trains Network T1 North Shore Line",
            "disassembledName": "T1",
            "description": "Berowra via Gordon",
            "product": {"class": 1, "name": "Sydney Trains Network"},
            "destination": {"name": "Hornsby"},
            "properties": {"RealtimeTripId": "123.456"},
        },
        "stopSequence": [
            stop("Central Station", "2024-05-01T07:13:00Z"),
            stop("Town Hall", "2024-05-01T07:16:00Z", wheelchair="false"),
            {"name": "Wynyard"},
        ],
        "footPathInfo": [{"duration": 120, "position": "after"}],
        "infos": [
            {"id": "a1", "subtitle": "Lift outage", "content": "Lift out", "priority": "high"},
            {"id": "a1", "subtitle": "Lift outage", "content": "Lift out", "priority": "high"},
            {"id": "a2", "subtitle": "Trackwork", "url": "https://transportnsw.info/a2"},
        ],
    }


def bus_leg():
    return {
        "duration": 900,
        "origin": {
            "disassembledName": "Town Hall, Stand E",
            "departureTimePlanned": "2024-05-01T07:40:00Z",
        },
        "destination": {
            "disassembledName": "Bondi Beach",
            "arrivalTimePlanned": "2024-05-01T07:58:00Z",
            "arrivalTimeEstimated": "2024-05-01T08:00:00Z",
        },
        "transportation": {
            "name": "Sydney Buses Network 333",
            "disassembledName": "333",
            "description": "Bondi Beach via Oxford St",
            "product": {"class": 5, "name": "Sydney Buses Network"},
        },
        "stopSequence": [
            stop("Town Hall", "2024-05-01T07:40:00Z"),
            stop("Bondi Beach", "2024-05-01T08:00:00Z"),
        ],
        "infos": [{"id": "a2"}, {"id": "a3"}],
    }


def full_journey():
    return {"legs": [walk(300), train_leg(), bus_leg(), walk(60, redundant=True)]}


def test_maps_full_journey():
    [journey] = map_journeys({"journeys": [full_journey()]}, NOW)

    assert journey.time_text == "in 13 mins"
    assert journey.platform_text == "Platform 4"
    assert journey.platform_number == "4"
    assert journey.origin_time == "5:13pm"
    assert journey.origin_utc_date_time == "2024-05-01T07:13:00Z"
    assert journey.destination_time == "6:00pm"
    assert journey.destination_utc_date_time == "2024-05-01T08:00:00Z"
    assert journey.travel_time == "47 mins"
    assert journey.total_walk_time == "5 mins"
    assert journey.transport_mode_lines == (
        TransportModeLine("T1", 1),
        TransportModeLine("333", 5),
    )
    assert journey.total_unique_service_alerts == 3
    assert journey.departure_deviation == DepartureDeviation(late="3 mins late")
    assert len(journey.legs) == 3
    assert journey.legs[0] == WalkingLeg(duration="5 mins")


def test_maps_transport_leg_details():
    [journey] = map_journeys({"journeys": [full_journey()]}, NOW)
    train, bus = journey.legs[1], journey.legs[2]

    assert isinstance(train, TransportLeg)
    assert train.display_text == "towards Hornsby"
    assert train.total_duration == "20 mins"
    assert [s.name for s in train.stops] == ["Central Station", "Town Hall"]
    assert train.stops[0].time == "5:13pm"
    assert train.stops[0].is_wheelchair_accessible is True
    assert train.stops[1].is_wheelchair_accessible is False
    assert train.walk_interchange.duration == "2 mins"
    assert train.walk_interchange.position is WalkPosition.AFTER
    assert [a.id for a in train.service_alerts] == ["a1", "a2"]
    assert train.service_alerts[1].priority == "normal"
    assert train.service_alerts[1].url == "https://transportnsw.info/a2"
    assert train.trip_id == "nsw:020T1123.456"

    assert bus.display_text == "Bondi Beach via Oxford St"
    assert bus.walk_interchange is None
    assert bus.trip_id is None


def test_journey_of_redundant_walks_is_dropped():
    journey = {"legs": [walk(60, redundant=True), walk(120, redundant=True)]}
    assert map_journeys({"journeys": [journey]}, NOW) == []


def test_journey_without_stops_is_dropped():
    leg = train_leg()
    leg["stopSequence"] = []
    assert map_journeys({"journeys": [{"legs": [leg]}]}, NOW) == []


def test_journey_without_times_is_dropped():
    leg = train_leg()
    leg["origin"] = {"disassembledName": "Central Station"}
    assert map_journeys({"journeys": [{"legs": [leg]}]}, NOW) == []


def test_journey_with_unparseable_time_is_dropped():
    leg = train_leg()
    leg["destination"]["arrivalTimePlanned"] = "half past seven"
    assert map_journeys({"journeys": [{"legs": [leg]}]}, NOW) == []


def test_legs_without_transportation_are_ignored():
    journey = full_journey()
    journey["legs"].insert(0, {"duration": 30, "stopSequence": [stop("X", "2024-05-01T07:00:00Z")]})
    [mapped] = map_journeys({"journeys": [journey]}, NOW)
    assert len(mapped.legs) == 3


def test_incomplete_transport_leg_is_dropped_but_journey_kept():
    journey = full_journey()
    del journey["legs"][2]["duration"]
    [mapped] = map_journeys({"journeys": [journey]}, NOW)

    assert len(mapped.legs) == 2
    assert mapped.transport_mode_lines[-1] == TransportModeLine("333", 5)
    assert mapped.destination_time == "6:00pm"


def test_mode_lines_are_distinct():
    journey = full_journey()
    journey["legs"].insert(3, copy.deepcopy(journey["legs"][2]))
    [mapped] = map_journeys({"journeys": [journey]}, NOW)
    assert mapped.transport_mode_lines == (TransportModeLine("T1", 1), TransportModeLine("333", 5))


def test_walk_time_omitted_without_walking():
    [mapped] = map_journeys({"journeys": [{"legs": [train_leg()]}]}, NOW)
    assert mapped.total_walk_time is None


def test_missing_journeys_maps_to_empty_list():
    assert map_journeys({}, NOW) == []
    assert map_journeys({"journeys": None}, NOW) == []


def test_classify_leg():
    assert isinstance(classify_leg(walk(60)), Walking)
    assert isinstance(classify_leg(train_leg()), Transport)
    assert classify_leg({"duration": 10}) is None


def test_platform_extraction():
    leg = {"origin": {"disassembledName": "Central Station, Platform 4"}}
    assert platform_text(leg) == "Platform 4"
    assert platform_number(leg) == "4"


def test_platform_extraction_multiple_matches():
    leg = {"origin": {"disassembledName": "Circular Quay, Wharf 2, Side A"}}
    assert platform_text(leg) == "Wharf 2, Side A"
    assert platform_number(leg) == "2"


def test_platform_extraction_side_only_has_no_number():
    leg = {"origin": {"disassembledName": "Manly, side b"}}
    assert platform_text(leg) == "side b"
    assert platform_number(leg) is None


def test_platform_extraction_without_match():
    leg = {"origin": {"disassembledName": "Bondi Junction Station"}}
    assert platform_text(leg) is None
    assert platform_number(leg) is None


def deviation_for(planned, estimated):
    return departure_deviation(
        {"origin": {"departureTimePlanned": planned, "departureTimeEstimated": estimated}}
    )


@pytest.mark.parametrize(
    "estimated, expected",
    [
        ("2024-05-01T10:03:00Z", DepartureDeviation(late="3 mins late")),
        ("2024-05-01T10:01:59Z", DepartureDeviation(late="1 min late")),
        ("2024-05-01T10:00:00Z", DepartureDeviation(on_time=True)),
        ("2024-05-01T10:00:50Z", DepartureDeviation(on_time=True)),
        ("2024-05-01T09:58:30Z", DepartureDeviation(early="1 min early")),
        ("2024-05-01T09:55:00Z", DepartureDeviation(early="5 mins early")),
    ],
)
def test_departure_deviation(estimated, expected):
    assert deviation_for("2024-05-01T10:00:00Z", estimated) == expected


def test_departure_deviation_absent_without_estimate():
    assert deviation_for("2024-05-01T10:00:00Z", None) is None
    assert deviation_for("garbage", "2024-05-01T10:00:00Z") is None


def test_null_alert_entries_are_skipped():
    journey = full_journey()
    journey["legs"][1]["infos"].append(None)
    [mapped] = map_journeys({"journeys": [journey]}, NOW)

    assert [a.id for a in mapped.legs[1].service_alerts] == ["a1", "a2"]
    assert mapped.total_unique_service_alerts == 3


def test_null_stop_entries_are_skipped():
    journey = full_journey()
    journey["legs"][2]["stopSequence"].insert(0, None)
    [mapped] = map_journeys({"journeys": [journey]}, NOW)

    assert [s.name for s in mapped.legs[2].stops] == ["Town Hall", "Bondi Beach"]


def test_malformed_nested_values_do_not_raise():
    leg = train_leg()
    leg["footPathInfo"] = [None]
    leg["infos"] = "lift outage"
    leg["transportation"]["properties"] = None
    leg["transportation"]["destination"] = ["Hornsby"]
    leg["stopSequence"][0]["properties"] = "yes"
    [mapped] = map_journeys({"journeys": [{"legs": [leg, None, {"transportation": None}]}]}, NOW)
    [train] = mapped.legs

    assert train.walk_interchange is None
    assert train.service_alerts == ()
    assert train.trip_id == "nsw:020T1"
    assert train.display_text == "Berowra via Gordon"
    assert train.stops[0].is_wheelchair_accessible is False
    assert mapped.total_unique_service_alerts == 0


def test_journey_with_null_origin_is_dropped():
    leg = train_leg()
    leg["origin"] = None
    assert map_journeys({"journeys": [{"legs": [leg]}]}, NOW) == []


def test_non_string_transport_id_is_ignored():
    leg = train_leg()
    leg["transportation"]["id"] = 42
    [mapped] = map_journeys({"journeys": [{"legs": [leg]}]}, NOW)
    assert mapped.legs[0].trip_id == "123.456"


def test_transport_leg_without_stop_sequence_is_dropped_but_journey_kept():
    journey = full_journey()
    journey["legs"][2]["stopSequence"] = None
    [mapped] = map_journeys({"journeys": [journey]}, NOW)

    assert len(mapped.legs) == 2
    assert isinstance(mapped.legs[1], TransportLeg)
    assert mapped.legs[1].transport_mode_line == TransportModeLine("T1", 1)
    assert mapped.destination_time == "6:00pm"


def test_metro_leg_reads_towards_destination():
    leg = train_leg()
    leg["transportation"]["product"] = {"class": 2, "name": "Sydney Metro Network"}
    leg["transportation"]["destination"] = {"name": "Tallawong"}
    [mapped] = map_journeys({"journeys": [{"legs": [leg]}]}, NOW)
    assert mapped.legs[0].display_text == "towards Tallawong"


def test_foot_path_without_duration_gives_no_interchange():
    leg = train_leg()
    leg["footPathInfo"] = [{"position": "before"}, {"duration": 60, "position": "after"}]
    [mapped] = map_journeys({"journeys": [{"legs": [leg]}]}, NOW)
    assert mapped.legs[0].walk_interchange is None


def test_empty_realtime_trip_id_gives_transport_id():
    leg = train_leg()
    leg["transportation"]["properties"] = {"RealtimeTripId": ""}
    [mapped] = map_journeys({"journeys": [{"legs": [leg]}]}, NOW)
    assert mapped.legs[0].trip_id == "nsw:020T1"
