"""
Console dashboards - the in-memory report list and the actions on it.

Every action follows the same rules:
1. Validate inputs locally; a ValidationFailed never reaches the network
2. Refuse a second action on a report whose first action is still running
3. Apply the optimistic change, then replace it with the record the API
   returns
4. On any API failure, show an error toast and refetch the list, which
   discards the optimistic state
"""

from collections import namedtuple
from typing import Callable, Dict, List, Optional
import logging

from civic_console.console.api_client import ApiClient
from civic_console.core.errors import ConsoleError, NotFound, UploadError, ValidationFailed
from civic_console.core.settings import settings
from civic_console.models.report import CompleteReportResponse, Evidence, HotspotCell, Report, ReportStatus
from civic_console.services.classifier import describe_class
from civic_console.services.hotspot_service import report_hotspots
from civic_console.services.report_filters import filter_reports, status_filter_value
from civic_console.services.status_workflow import StatusWorkflowEngine

logger = logging.getLogger(__name__)

Toast = namedtuple("Toast", ["level", "message"])

FILTER_KEYS = ("status", "search", "start_date", "end_date", "center", "radius_km")


class BaseDashboard:
    """Shared list state, filters, toasts and the optimistic-update cycle."""

    def __init__(self, api: ApiClient):
        self.api = api
        self.reports: List[Report] = []
        self.toasts: List[Toast] = []
        self.loading = False
        self.filters: Dict = {}
        self._in_flight = set()

    def _fetch(self) -> List[Report]:
        raise NotImplementedError

    def refresh(self) -> List[Report]:
        """Reload the authoritative list. A failure keeps the old list and shows a toast."""
        self.loading = True
        try:
            self.reports = self._fetch()
            logger.info(f"[{type(self).__name__}] Reports fetched count {len(self.reports)}")
        except ConsoleError as e:
            logger.error(f"[{type(self).__name__}] Failed to fetch reports: {e.message}")
            self.toast("error", "Failed to load reports")
        finally:
            self.loading = False
        return self.reports

    # Filters

    def set_filters(self, **filters) -> None:
        """Bad filter values are rejected here, so reading visible_reports never raises for them."""
        unknown = set(filters) - set(FILTER_KEYS)
        if unknown:
            raise ValueError(f"Unknown filters: {sorted(unknown)}")
        if "status" in filters:
            filters["status"] = status_filter_value(filters["status"])
        self.filters.update(filters)

    def clear_filters(self) -> None:
        self.filters = {}

    @property
    def visible_reports(self) -> List[Report]:
        return filter_reports(self.reports, **self.filters)

    # Toasts and in-flight tracking

    def toast(self, level: str, message: str) -> None:
        self.toasts.append(Toast(level, message))

    def is_busy(self, report_id: str) -> bool:
        return report_id in self._in_flight

    def _find(self, report_id: str) -> Report:
        for report in self.reports:
            if report.id == report_id:
                return report
        raise NotFound(f"Report {report_id} is not in this list")

    def _replace(self, updated: Report) -> None:
        self.reports = [updated if r.id == updated.id else r for r in self.reports]

    def _remove(self, report_id: str) -> None:
        self.reports = [r for r in self.reports if r.id != report_id]

    def _validate(self, check: Callable, *args):
        """Run a local precondition check; its ValidationFailed becomes a toast and is re-raised."""
        try:
            return check(*args)
        except ValidationFailed as e:
            self.toast("error", e.message)
            raise

    def _run_action(
        self,
        report_id: str,
        call: Callable,
        failure_message: str,
        optimistic: Optional[Dict] = None
    ):
        """
        Run one API action for a report.

        Returns:
            The API result, or None when the action failed (list refetched)
        """
        if report_id in self._in_flight:
            message = "An action is already running for this report"
            self.toast("error", message)
            raise ValidationFailed(message, detail={"report_id": report_id})

        self._in_flight.add(report_id)
        try:
            if optimistic:
                current = self._find(report_id)
                self._replace(current.model_copy(update=optimistic))
            return call()
        except ConsoleError as e:
            logger.error(f"[{type(self).__name__}] {failure_message} for {report_id}: {e.message}")
            self.toast("error", f"{failure_message}: {e.message}")
            self.refresh()
            return None
        finally:
            self._in_flight.discard(report_id)

    def _check_photo(self, data: bytes, content_type: Optional[str]) -> None:
        self._validate(
            StatusWorkflowEngine.validate_photo_upload,
            content_type, len(data or b""), settings.MAX_UPLOAD_BYTES,
        )


class ReportsDashboard(BaseDashboard):
    """
    Plain report listing: every report for an admin, otherwise only the
    caller's own reports.
    """

    def __init__(self, api: ApiClient, own_only: bool = True):
        super().__init__(api)
        self.own_only = own_only

    def _fetch(self) -> List[Report]:
        return self.api.my_reports() if self.own_only else self.api.list_admin_reports()


class AdminDashboard(BaseDashboard):

    def __init__(self, api: ApiClient, ml_gated: Optional[bool] = None):
        super().__init__(api)
        self.ml_gated = settings.ML_GATED_RESOLUTION if ml_gated is None else ml_gated

    def _fetch(self) -> List[Report]:
        return self.api.list_admin_reports()

    def start_work(self, report_id: str, estimated_time: Optional[str]) -> Optional[Report]:
        """Pending → In Progress with an estimate."""
        estimate = self._validate(StatusWorkflowEngine.validate_estimated_time, estimated_time)
        self._find(report_id)

        updated = self._run_action(
            report_id,
            lambda: self.api.start_work(report_id, estimate),
            "Failed to start work",
            optimistic={"status": ReportStatus.IN_PROGRESS, "estimated_time": estimate},
        )
        if updated is not None:
            self._replace(updated)
            self.toast("success", "Work started successfully")
        return updated

    def resolve(self, report_id: str, image_url: Optional[str], resolved_class: Optional[str] = None) -> Optional[Report]:
        """In Progress → Resolved with an already uploaded (and, if gated, classified) photo."""
        evidence = Evidence(photo_url=image_url, resolved_class=resolved_class)
        self._validate(StatusWorkflowEngine.validate_evidence, evidence, self.ml_gated)
        self._find(report_id)

        updated = self._run_action(
            report_id,
            lambda: self.api.resolve_report(report_id, image_url, resolved_class),
            "Failed to resolve report",
            optimistic={
                "status": ReportStatus.RESOLVED,
                "resolved_photo_url": image_url,
                "resolved_image_url": image_url,
                "resolved_class": resolved_class,
            },
        )
        if updated is not None:
            self._replace(updated)
            self.toast("success", "Report status updated to Resolved successfully!")
        return updated

    def resolve_with_photo(self, report_id: str, filename: str, data: bytes,
                           content_type: Optional[str]) -> Optional[Report]:
        """
        Upload and classify an evidence photo, then resolve when the
        classifier confirms the issue is gone.
        """
        self._check_photo(data, content_type)
        self._find(report_id)

        result = self._run_action(
            report_id,
            lambda: self.api.classify_evidence(report_id, filename, data, content_type),
            "Failed to analyse photo",
        )
        if result is None:
            return None

        predicted = result.get("predicted_class")
        if self.ml_gated and not result.get("is_resolved"):
            self.toast("warning", f"Issue still detected ({describe_class(predicted)}); report not resolved")
            return None
        return self.resolve(report_id, result.get("image_url"), predicted if self.ml_gated else None)

    def hotspots(self) -> List[HotspotCell]:
        return report_hotspots(self.reports)


class SupervisorDashboard(BaseDashboard):

    def _fetch(self) -> List[Report]:
        reports = self.api.list_supervisor_reports()
        return [r for r in reports if r.status != ReportStatus.RESOLVED]

    def assign_worker(self, report_id: str, worker_name: Optional[str]) -> Optional[Report]:
        name = self._validate(StatusWorkflowEngine.validate_worker_name, worker_name)
        self._find(report_id)

        updated = self._run_action(
            report_id,
            lambda: self.api.assign_worker(report_id, name),
            "Failed to assign worker",
            optimistic={"worker_name": name},
        )
        if updated is not None:
            self._replace(updated)
            self.toast("success", f"Worker {name} assigned successfully")
        return updated

    def complete(self, report_id: str, filename: str, data: bytes,
                 content_type: Optional[str]) -> Optional[CompleteReportResponse]:
        """
        Upload the completion photo and complete the report.

        - Resolved: report leaves the queue
        - Manual review: report stays, back in Pending, with the review flag
        """
        self._check_photo(data, content_type)
        self._find(report_id)

        def upload_and_complete() -> CompleteReportResponse:
            image_url = self.api.upload_evidence(report_id, filename, data, content_type)
            if not image_url or not image_url.startswith("http"):
                raise UploadError(f"Image upload failed - invalid public URL: {image_url!r}")
            return self.api.complete_report(report_id, image_url)

        response = self._run_action(report_id, upload_and_complete, "Failed to complete report")
        if response is None:
            return None

        if response.status == ReportStatus.RESOLVED:
            self._remove(report_id)
            self.toast("success", "Report completed successfully")
        elif response.requires_manual_review:
            self._replace(response.report)
            self.toast("warning", "Report requires manual review")
        else:
            self._replace(response.report)
            self.toast("success", "Report updated")
        return response
