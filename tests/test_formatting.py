import datetime

import pytest

from krail_bff.formatting import format_duration, format_time, format_time_until, parse_instant

NOW = datetime.datetime(2024, 5, 1, 7, 0, tzinfo=datetime.timezone.utc)


@pytest.mark.parametrize(
    "seconds, expected",
    [
        (0, "< 1 min"),
        (59, "< 1 min"),
        (65, "1 min"),
        (600, "10 mins"),
        (3599, "59 mins"),
        (3600, "1 hr"),
        (3661, "1 hr 1 min"),
        (9000, "2 hr 30 min"),
    ],
)
def test_format_duration(seconds, expected):
    assert format_duration(seconds) == expected


@pytest.mark.parametrize(
    "offset_seconds, expected",
    [
        (-300, "now"),
        (30, "now"),
        (90, "in 1 min"),
        (15 * 60, "in 15 mins"),
        (3600, "in 1 hr"),
        (3600 + 25 * 60, "in 1 hr 25 min"),
    ],
)
def test_format_time_until(offset_seconds, expected):
    origin = NOW + datetime.timedelta(seconds=offset_seconds)
    assert format_time_until(origin.isoformat().replace("+00:00", "Z"), NOW) == expected


def test_format_time_until_unparseable_is_now():
    assert format_time_until("not-a-time", NOW) == "now"


def test_format_time_uses_sydney_wall_clock():
    # AEST (UTC+10) in May.
    assert format_time("2024-05-01T07:30:00Z") == "5:30pm"
    assert format_time("2024-05-01T14:05:00Z") == "12:05am"
    # AEDT (UTC+11) in January.
    assert format_time("2024-01-15T01:00:00Z") == "12:00pm"


def test_format_time_returns_input_when_unparseable():
    assert format_time("soon") == "soon"


def test_parse_instant_assumes_utc_for_naive_values():
    parsed = parse_instant("2024-05-01T10:00:00")
    assert parsed == datetime.datetime(2024, 5, 1, 10, tzinfo=datetime.timezone.utc)
    assert parse_instant(None) is None
    assert parse_instant("") is None
