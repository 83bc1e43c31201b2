"""Proxy location registry for scrape jobs."""

from dataclasses import dataclass


@dataclass(frozen=True)
class Location:
    """A selectable scrape location."""

    id: int
    code: str
    name: str


_REGIONS: dict[int, str] = {
    1: "US",
    2: "UK",
    3: "CA",
    4: "AU",
    5: "DE",
    6: "FR",
    7: "JP",
    8: "BR",
    9: "IN",
    10: "SG",
}

_REGION_NAMES: dict[str, str] = {
    "US": "United States",
    "UK": "United Kingdom",
    "CA": "Canada",
    "AU": "Australia",
    "DE": "Germany",
    "FR": "France",
    "JP": "Japan",
    "BR": "Brazil",
    "IN": "India",
    "SG": "Singapore",
}


def display_name(region: str) -> str:
    """Return a friendly name for a region, falling back to the region itself."""
    return _REGION_NAMES.get(region, region)


def resolve_location(code: int) -> Location | None:
    """Return the location registered for a code, if any."""
    region = _REGIONS.get(code)
    if region is None:
        return None
    return Location(id=code, code=region, name=display_name(region))


def list_locations() -> list[Location]:
    """Return all registered locations ordered by code."""
    return [
        Location(id=code, code=region, name=display_name(region))
        for code, region in sorted(_REGIONS.items())
    ]
