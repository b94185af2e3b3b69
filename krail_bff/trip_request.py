from dataclasses import dataclass, field
from typing import FrozenSet, Mapping, Optional

from krail_bff.errors import ValidationError

DEFAULT_DEP_ARR = "dep"
CHECKBOX_PLACEHOLDER = "checkbox"

# (new name, legacy mobile-app name)
ORIGIN_PARAMS = ("origin", "name_origin")
DESTINATION_PARAMS = ("destination", "name_destination")
DEP_ARR_PARAMS = ("depArr", "depArrMacro")
DATE_PARAMS = ("date", "itdDate")
TIME_PARAMS = ("time", "itdTime")
EXCLUDED_MODES_PARAMS = ("excludedModes", "excludedMeans")


@dataclass(frozen=True)
class TripRequest:
    origin: str
    destination: str
    dep_arr: str = DEFAULT_DEP_ARR
    date: Optional[str] = None
    time: Optional[str] = None
    excluded_modes: FrozenSet[int] = field(default_factory=frozenset)

    def __post_init__(self) -> None:
        if not self.origin:
            raise ValidationError("origin", "Missing 'origin' or 'name_origin' parameter")
        if not self.destination:
            raise ValidationError(
                "destination", "Missing 'destination' or 'name_destination' parameter"
            )


def first_present(params: Mapping[str, str], names: tuple) -> Optional[str]:
    for name in names:
        value = params.get(name)
        if value is not None:
            return value
    return None


def parse_excluded_modes(value: Optional[str]) -> FrozenSet[int]:
    if value is None or value == CHECKBOX_PLACEHOLDER:
        return frozenset()
    modes = set()
    for token in value.split(","):
        token = token.strip()
        try:
            modes.add(int(token))
        except ValueError:
            continue
    return frozenset(modes)


def normalize_trip_params(params: Mapping[str, str]) -> TripRequest:
    return TripRequest(
        origin=first_present(params, ORIGIN_PARAMS) or "",
        destination=first_present(params, DESTINATION_PARAMS) or "",
        dep_arr=first_present(params, DEP_ARR_PARAMS) or DEFAULT_DEP_ARR,
        date=first_present(params, DATE_PARAMS),
        time=first_present(params, TIME_PARAMS),
        excluded_modes=parse_excluded_modes(first_present(params, EXCLUDED_MODES_PARAMS)),
    )
