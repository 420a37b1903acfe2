from datetime import date, datetime, timezone

import pytest

from civic_console.models.report import Coordinates, Report, ReportStatus
from civic_console.services.hotspot_service import group_points, report_hotspots
from civic_console.services.report_filters import (
    filter_by_date_range,
    filter_by_radius,
    filter_by_status,
    filter_by_text,
    filter_reports,
)
from civic_console.utils.geo import haversine_km, parse_coords, parse_timestamp

CENTER = Coordinates(lat=12.9716, lng=77.5946)
# ~5 km due north of CENTER
FIVE_KM_NORTH = Coordinates(lat=12.9716 + 5 / 111.195, lng=77.5946)


def report(report_id, status=ReportStatus.PENDING, location=None, created_at=None, **fields):
    return Report(id=report_id, status=status, location=location, created_at=created_at, **fields)


class TestGeo:

    def test_same_point_inside_1km(self):
        assert filter_by_radius([report("here", location=CENTER)], CENTER, 1) != []

    def test_five_km_away_outside_tiny_radius(self):
        assert filter_by_radius([report("far", location=FIVE_KM_NORTH)], CENTER, 0.001) == []

    def test_haversine_distance(self):
        assert haversine_km(CENTER.lat, CENTER.lng, FIVE_KM_NORTH.lat, FIVE_KM_NORTH.lng) == pytest.approx(5, abs=0.01)

    def test_center_as_text(self):
        kept = filter_by_radius([report("here", location=CENTER)], "12.9716, 77.5946", 1)
        assert [r.id for r in kept] == ["here"]

    def test_reports_without_coordinates_dropped_when_active(self):
        reports = [report("text", location="MG Road"), report("here", location=CENTER)]
        assert [r.id for r in filter_by_radius(reports, CENTER, 1)] == ["here"]

    def test_inactive_without_radius(self):
        reports = [report("text", location="MG Road")]
        assert filter_by_radius(reports, CENTER, None) == reports

    @pytest.mark.parametrize("raw,expected", [
        ("12.5,77.1", Coordinates(lat=12.5, lng=77.1)),
        ('{"lat": 1.5, "lng": 2.5}', Coordinates(lat=1.5, lng=2.5)),
        ({"latitude": 3, "longitude": 4}, Coordinates(lat=3, lng=4)),
        ("200,10", None),
        ("somewhere", None),
        ({"lat": True, "lng": 1}, None),
        (None, None),
    ])
    def test_parse_coords(self, raw, expected):
        assert parse_coords(raw) == expected

    def test_parse_timestamp_shapes(self):
        expected = datetime(2024, 1, 15, 10, 30, tzinfo=timezone.utc)
        assert parse_timestamp("2024-01-15T10:30:00Z") == expected
        assert parse_timestamp({"seconds": expected.timestamp(), "nanoseconds": 0}) == expected
        assert parse_timestamp(datetime(2024, 1, 15, 10, 30)) == expected
        assert parse_timestamp("yesterday") is None


class TestStatusAndText:

    def test_resolved_filter_keeps_order(self):
        reports = [
            report("p1"),
            report("r1", ReportStatus.RESOLVED),
            report("p2"),
            report("r2", ReportStatus.RESOLVED),
            report("p3"),
        ]
        assert [r.id for r in filter_by_status(reports, "Resolved")] == ["r1", "r2"]

    @pytest.mark.parametrize("status", [None, "", "all", "ALL"])
    def test_all_means_no_filter(self, status):
        reports = [report("p1"), report("r1", ReportStatus.RESOLVED)]
        assert filter_by_status(reports, status) == reports

    @pytest.mark.parametrize("status", ["In Progress", "InProgress", "IN_PROGRESS", "in progress", "in-progress"])
    def test_status_spellings(self, status):
        reports = [report("p1"), report("w1", ReportStatus.IN_PROGRESS)]
        assert [r.id for r in filter_reports(reports, status=status)] == ["w1"]

    def test_unknown_status(self):
        with pytest.raises(ValueError):
            filter_by_status([report("p1")], "Done")

    def test_text_matches_title_or_description(self):
        reports = [
            report("a", title="Pothole on MG Road"),
            report("b", title="Street light", description="near the POTHOLE"),
            report("c", title="Garbage"),
        ]
        assert [r.id for r in filter_by_text(reports, "pothole")] == ["a", "b"]


class TestDateRange:

    def test_end_date_covers_whole_day(self):
        late = report("late", created_at=datetime(2024, 1, 15, 23, 59, tzinfo=timezone.utc))
        next_day = report("next", created_at=datetime(2024, 1, 16, 0, 1, tzinfo=timezone.utc))
        kept = filter_by_date_range([late, next_day], end_date=date(2024, 1, 15))
        assert [r.id for r in kept] == ["late"]

    def test_start_date_and_undated_reports(self):
        early = report("early", created_at=datetime(2024, 1, 1, tzinfo=timezone.utc))
        undated = report("undated")
        kept = filter_by_date_range([early, undated], start_date="2024-01-10")
        assert [r.id for r in kept] == ["undated"]


def test_filters_combine():
    reports = [
        report("a", ReportStatus.PENDING, CENTER, title="Pothole"),
        report("b", ReportStatus.RESOLVED, CENTER, title="Pothole"),
        report("c", ReportStatus.PENDING, FIVE_KM_NORTH, title="Pothole"),
        report("d", ReportStatus.PENDING, CENTER, title="Garbage"),
    ]
    kept = filter_reports(reports, status="Pending", search="pot", center=CENTER, radius_km=1)
    assert [r.id for r in kept] == ["a"]


class TestHotspots:

    def test_groups_identical_points(self):
        cells = group_points([CENTER, CENTER, CENTER, FIVE_KM_NORTH])
        assert [c.count for c in cells] == [3, 1]
        busiest, quiet = cells
        assert busiest.weight == 1.0
        assert quiet.weight == pytest.approx(1 / 3)
        assert busiest.radius == pytest.approx(8.0)

    def test_weight_and_radius_bounds(self):
        cells = group_points([CENTER] * 1000 + [FIVE_KM_NORTH])
        assert cells[0].radius == 14
        assert cells[1].weight == 0.2

    def test_reports_without_coordinates_skipped(self):
        cells = report_hotspots([report("a", location="MG Road"), report("b", location=CENTER)])
        assert len(cells) == 1

    def test_empty(self):
        assert group_points([]) == []
