"""
Location Helpers
=================
Locations are hierarchical "STATE/City" paths; "*" is nationwide.
"""

from typing import List

from .constants import NATIONWIDE, LOCATION_SEPARATOR


def normalize_location(location) -> str:
    """Strip whitespace and empty path parts; empty input means nationwide."""
    if location is None:
        return NATIONWIDE
    parts = [p.strip() for p in str(location).split(LOCATION_SEPARATOR) if p.strip()]
    if not parts or parts == [NATIONWIDE]:
        return NATIONWIDE
    return LOCATION_SEPARATOR.join(parts)


def location_lineage(location) -> List[str]:
    """
    Most specific first: "MH/Mumbai" -> ["MH/Mumbai", "MH", "*"].
    """
    location = normalize_location(location)
    if location == NATIONWIDE:
        return [NATIONWIDE]
    parts = location.split(LOCATION_SEPARATOR)
    lineage = [LOCATION_SEPARATOR.join(parts[:i]) for i in range(len(parts), 0, -1)]
    lineage.append(NATIONWIDE)
    return lineage


def location_level(location) -> str:
    """'national', 'state' or 'city' depending on path depth."""
    depth = len(location_lineage(location)) - 1
    if depth == 0:
        return 'national'
    if depth == 1:
        return 'state'
    return 'city'
