"""
Hotspot service - groups report locations into density cells for the map.

Points are bucketed by coordinates rounded to 5 decimals (about 1 m).
Each cell gets a heat weight relative to the busiest cell and a marker
radius that grows logarithmically with its count.
"""

import math
from typing import Dict, Iterable, List, Tuple

from civic_console.models.report import Coordinates, HotspotCell, Report

MIN_HEAT_WEIGHT = 0.2
MIN_MARKER_RADIUS = 6
MAX_MARKER_RADIUS = 14


def _cell_key(point: Coordinates) -> Tuple[str, str]:
    return (f"{point.lat:.5f}", f"{point.lng:.5f}")


def group_points(points: Iterable[Coordinates]) -> List[HotspotCell]:
    """
    Group points into cells, in first-seen order.

    Returns:
        List of HotspotCell with count, heat weight and marker radius
    """
    cells: Dict[Tuple[str, str], Dict] = {}
    for point in points:
        key = _cell_key(point)
        if key in cells:
            cells[key]["count"] += 1
        else:
            cells[key] = {"lat": point.lat, "lng": point.lng, "count": 1}

    if not cells:
        return []

    max_count = max(max(cell["count"] for cell in cells.values()), 1)
    return [
        HotspotCell(
            lat=cell["lat"],
            lng=cell["lng"],
            count=cell["count"],
            weight=max(MIN_HEAT_WEIGHT, cell["count"] / max_count),
            radius=min(MAX_MARKER_RADIUS, MIN_MARKER_RADIUS + math.log2(cell["count"] + 1)),
        )
        for cell in cells.values()
    ]


def report_hotspots(reports: Iterable[Report]) -> List[HotspotCell]:
    """Hotspot cells for every report that has parseable coordinates."""
    return group_points(r.coordinates for r in reports if r.coordinates is not None)
