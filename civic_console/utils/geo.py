"""
Coordinate and timestamp parsing helpers.

Report documents store location in whatever shape the citizen app wrote:
a "lat,lng" string, a JSON blob, a mapping, or a Firestore GeoPoint.
"""

import json
import math
from datetime import datetime, timezone
from typing import Any, Optional

from civic_console.models.report import Coordinates

EARTH_RADIUS_KM = 6371.0


def _coordinates(lat: Any, lng: Any) -> Optional[Coordinates]:
    try:
        lat_f = float(lat)
        lng_f = float(lng)
    except (TypeError, ValueError):
        return None
    if math.isnan(lat_f) or math.isnan(lng_f):
        return None
    if not (-90 <= lat_f <= 90 and -180 <= lng_f <= 180):
        return None
    return Coordinates(lat=lat_f, lng=lng_f)


def parse_coords(value: Any) -> Optional[Coordinates]:
    """
    Parse a stored location into coordinates.

    Tries, in order: GeoPoint-like objects, mappings with lat/lng
    (or latitude/longitude), "lat,lng" strings, then JSON strings.

    Returns:
        Coordinates, or None when the value carries no usable position
    """
    if value is None:
        return None

    if hasattr(value, "latitude") and hasattr(value, "longitude"):
        return _coordinates(value.latitude, value.longitude)

    if isinstance(value, dict):
        lat = value.get("lat", value.get("latitude"))
        lng = value.get("lng", value.get("longitude"))
        if lat is None or lng is None or isinstance(lat, bool) or isinstance(lng, bool):
            return None
        return _coordinates(lat, lng)

    if not isinstance(value, str):
        return None

    text = value.strip()
    if not text:
        return None

    if "," in text and not text.startswith("{"):
        lat_str, _, lng_str = text.partition(",")
        parsed = _coordinates(lat_str.strip(), lng_str.strip())
        if parsed is not None:
            return parsed

    try:
        obj = json.loads(text)
    except (ValueError, TypeError):
        return None
    if isinstance(obj, dict):
        lat, lng = obj.get("lat"), obj.get("lng")
        if isinstance(lat, (int, float)) and isinstance(lng, (int, float)) \
                and not isinstance(lat, bool) and not isinstance(lng, bool):
            return _coordinates(lat, lng)
    return None


def haversine_km(lat1: float, lon1: float, lat2: float, lon2: float) -> float:
    phi1 = math.radians(lat1)
    phi2 = math.radians(lat2)
    dphi = math.radians(lat2 - lat1)
    dlambda = math.radians(lon2 - lon1)
    a = math.sin(dphi / 2) ** 2 + math.cos(phi1) * math.cos(phi2) * math.sin(dlambda / 2) ** 2
    c = 2 * math.atan2(math.sqrt(a), math.sqrt(1 - a))
    return EARTH_RADIUS_KM * c


def parse_timestamp(value) -> Optional[datetime]:
    """
    Parse various timestamp formats to timezone-aware datetime (UTC).

    All datetimes must be timezone-aware so comparisons never mix naive and
    aware values.
    """
    if value is None:
        return None
    if isinstance(value, datetime):
        if value.tzinfo is None:
            return value.replace(tzinfo=timezone.utc)
        return value.astimezone(timezone.utc)
    if isinstance(value, str):
        try:
            dt = datetime.fromisoformat(value.strip().replace("Z", "+00:00"))
        except ValueError:
            return None
        if dt.tzinfo is None:
            dt = dt.replace(tzinfo=timezone.utc)
        return dt.astimezone(timezone.utc)
    if isinstance(value, dict) and "seconds" in value:
        # {seconds, nanoseconds} as serialized by the web SDK
        try:
            return datetime.fromtimestamp(float(value["seconds"]), tz=timezone.utc)
        except (TypeError, ValueError):
            return None
    if hasattr(value, "timestamp"):
        try:
            return datetime.fromtimestamp(value.timestamp(), tz=timezone.utc)
        except (TypeError, ValueError, OSError):
            return None
    return None
