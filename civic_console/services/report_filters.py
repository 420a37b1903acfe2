"""
Report list filters used by the console dashboards and the admin listing.

All filters keep the relative order of the input list.
"""

from datetime import date, datetime, time, timezone
from typing import Iterable, List, Optional, Union

from civic_console.models.report import Coordinates, Report, ReportStatus, parse_status
from civic_console.utils.geo import haversine_km, parse_coords, parse_timestamp

DateLike = Union[date, datetime, str, None]


def status_filter_value(value) -> Optional[ReportStatus]:
    """
    Status to filter on, in any spelling; None (or "all") means no filter.

    Raises:
        ValueError: the value names no status
    """
    if value is None or isinstance(value, ReportStatus):
        return value
    text = str(value).strip()
    if not text or text.lower() == "all":
        return None
    status = parse_status(text)
    if status is None:
        raise ValueError(f"Unknown status: {text!r}")
    return status


def _day_bound(value: DateLike, end_of_day: bool) -> Optional[datetime]:
    if value is None or value == "":
        return None
    if isinstance(value, datetime):
        return parse_timestamp(value)
    if isinstance(value, str):
        parsed = parse_timestamp(value) if "T" in value else None
        if parsed is not None:
            return parsed
        value = date.fromisoformat(value.strip())
    bound = time.max if end_of_day else time.min
    return datetime.combine(value, bound, tzinfo=timezone.utc)


def filter_by_status(reports: Iterable[Report], status) -> List[Report]:
    wanted = status_filter_value(status)
    return [r for r in reports if wanted is None or r.status == wanted]


def filter_by_text(reports: Iterable[Report], search: Optional[str]) -> List[Report]:
    """Case-insensitive substring match on title or description."""
    needle = (search or "").strip().lower()
    if not needle:
        return list(reports)
    return [
        r for r in reports
        if needle in (r.title or "").lower() or needle in (r.description or "").lower()
    ]


def filter_by_date_range(reports: Iterable[Report], start_date: DateLike = None,
                         end_date: DateLike = None) -> List[Report]:
    """
    Keep reports created inside [start_date, end_date].

    A bare end date covers the whole day. Reports without a creation time
    are kept.
    """
    start = _day_bound(start_date, end_of_day=False)
    end = _day_bound(end_date, end_of_day=True)
    if start is None and end is None:
        return list(reports)

    kept = []
    for report in reports:
        created = parse_timestamp(report.created_at)
        if created is None:
            kept.append(report)
            continue
        if start is not None and created < start:
            continue
        if end is not None and created > end:
            continue
        kept.append(report)
    return kept


def filter_by_radius(reports: Iterable[Report], center: Union[Coordinates, str, None],
                     radius_km: Optional[float]) -> List[Report]:
    """
    Keep reports within `radius_km` of `center` (haversine distance).

    Inactive unless the center parses and the radius is positive; when
    active, reports without coordinates are dropped.
    """
    origin = center if isinstance(center, Coordinates) else parse_coords(center)
    if origin is None or not radius_km or radius_km <= 0:
        return list(reports)

    kept = []
    for report in reports:
        coords = report.coordinates
        if coords is None:
            continue
        if haversine_km(origin.lat, origin.lng, coords.lat, coords.lng) <= radius_km:
            kept.append(report)
    return kept


def filter_reports(
    reports: Iterable[Report],
    status=None,
    search: Optional[str] = None,
    start_date: DateLike = None,
    end_date: DateLike = None,
    center: Union[Coordinates, str, None] = None,
    radius_km: Optional[float] = None
) -> List[Report]:
    """Apply every filter in turn: status, text, date range, radius."""
    filtered = filter_by_status(reports, status)
    filtered = filter_by_text(filtered, search)
    filtered = filter_by_date_range(filtered, start_date, end_date)
    return filter_by_radius(filtered, center, radius_km)
