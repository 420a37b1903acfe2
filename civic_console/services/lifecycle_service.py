"""
Lifecycle service - runs report transitions end to end.

Flow for every transition:
1. Validate inputs (no backend call on failure)
2. Load the stored report and check the transition table
3. Classify evidence when resolution is ML-gated
4. Persist through the report store, get back the authoritative record
5. Write the status log (best-effort)
6. Notify the submitter on resolution (best-effort, after the response)
"""

from typing import Callable, Optional
import logging

from civic_console.core.errors import RoleUndetermined, ValidationFailed
from civic_console.core.settings import settings
from civic_console.models.report import CompleteReportResponse, Evidence, Report, ReportStatus
from civic_console.models.user import ConsoleUser, UserRole
from civic_console.services.classifier import ImageClassifier, get_classifier
from civic_console.services.notification_service import NotificationService, get_notification_service
from civic_console.services.report_store import ReportStore, get_report_store
from civic_console.services.status_workflow import Actor, StatusWorkflowEngine

logger = logging.getLogger(__name__)

# Callable that defers a function call, e.g. BackgroundTasks.add_task
Scheduler = Callable[..., None]


class LifecycleService:

    def __init__(
        self,
        store: Optional[ReportStore] = None,
        classifier: Optional[ImageClassifier] = None,
        notifier: Optional[NotificationService] = None,
        ml_gated: Optional[bool] = None
    ):
        self.store = store or get_report_store()
        self._classifier = classifier
        self._notifier = notifier
        self.ml_gated = settings.ML_GATED_RESOLUTION if ml_gated is None else ml_gated
        self.workflow = StatusWorkflowEngine

    @property
    def classifier(self) -> ImageClassifier:
        if self._classifier is None:
            self._classifier = get_classifier()
        return self._classifier

    @property
    def notifier(self) -> NotificationService:
        if self._notifier is None:
            self._notifier = get_notification_service()
        return self._notifier

    @staticmethod
    def _require_role(actor: ConsoleUser, *roles: UserRole) -> None:
        if actor.role not in roles:
            allowed = " or ".join(role.value.lower() for role in roles)
            raise RoleUndetermined(f"Only a {allowed} can do this")

    def _log(self, report_id: str, from_status: ReportStatus, to_status: ReportStatus,
             actor: ConsoleUser, actor_role, note: Optional[str] = None) -> None:
        entry = self.workflow.create_status_history_entry(
            report_id=report_id,
            from_status=from_status.value,
            to_status=to_status.value,
            changed_by=actor.id,
            actor=actor_role,
            note=note,
        )
        self.store.log_status_change(entry)

    def _notify_resolved(self, report: Report, schedule: Optional[Scheduler]) -> None:
        if schedule is not None:
            schedule(self.notifier.notify_resolved, report)
        else:
            self.notifier.notify_resolved(report)

    def start_work(self, report_id: str, estimated_time: Optional[str], actor: ConsoleUser) -> Report:
        """Admin moves a report from Pending to In Progress with an estimate."""
        self._require_role(actor, UserRole.ADMIN)
        estimate = self.workflow.validate_estimated_time(estimated_time)

        report = self.store.get_report(report_id)
        self.workflow.check_start_work(report, estimate)

        updated = self.store.update_status(
            report_id,
            ReportStatus.IN_PROGRESS,
            actor=Actor.ADMIN,
            changes={"estimated_time": estimate},
        )
        self._log(report_id, report.status, updated.status, actor, Actor.ADMIN, note=f"Estimated time: {estimate}")
        logger.info(f"✅ Work started on report {report_id} by {actor.id} (estimate: {estimate})")
        return updated

    def assign_worker(self, report_id: str, worker_name: Optional[str], actor: ConsoleUser) -> Report:
        """Supervisor assigns a worker. Status does not change."""
        self._require_role(actor, UserRole.SUPERVISOR)
        name = self.workflow.validate_worker_name(worker_name)

        report = self.store.get_report(report_id)
        self.workflow.check_assign_worker(report, name)

        updated = self.store.update_fields(report_id, {"worker_name": name, "supervisor_id": actor.id})
        self._log(report_id, report.status, updated.status, actor, Actor.SUPERVISOR, note=f"Assigned worker {name}")
        logger.info(f"✅ Worker {name} assigned to report {report_id} by {actor.id}")
        return updated

    def upload_evidence(
        self,
        report_id: str,
        data: bytes,
        filename: str,
        content_type: Optional[str],
        actor: ConsoleUser
    ) -> str:
        """Check and store an evidence photo for a report that is being worked on."""
        self._require_role(actor, UserRole.ADMIN, UserRole.SUPERVISOR)
        self.workflow.validate_photo_upload(content_type, len(data or b""), settings.MAX_UPLOAD_BYTES)

        report = self.store.get_report(report_id)
        self.workflow.ensure_transition(report, ReportStatus.RESOLVED, actor.role)
        return self.store.upload_evidence_photo(report_id, data, filename, content_type)

    def classify_evidence(
        self,
        report_id: str,
        data: bytes,
        filename: str,
        content_type: Optional[str],
        actor: ConsoleUser
    ) -> dict:
        """
        Upload an evidence photo and classify it, without changing the report.

        Returns:
            Dict with image_url, predicted_class, confidence, description, is_resolved
        """
        image_url = self.upload_evidence(report_id, data, filename, content_type, actor)
        prediction = self.classifier.predict(data, filename=filename, content_type=content_type)
        result = prediction.to_dict()
        result.update({"image_url": image_url, "is_resolved": prediction.is_resolved})
        return result

    def complete_report(
        self,
        report_id: str,
        image_url: Optional[str],
        actor: ConsoleUser,
        schedule: Optional[Scheduler] = None
    ) -> CompleteReportResponse:
        """
        Supervisor completes a report with an evidence photo.

        With ML gating on, the photo is classified first:
        - resolved label → Resolved, label recorded as resolved_class
        - any other label → back to Pending, flagged for manual review

        Raises:
            ValidationFailed: no photo URL
            Conflict: report is not In Progress
            ClassificationError: classifier unreachable or malformed answer
        """
        self._require_role(actor, UserRole.SUPERVISOR)
        if not image_url or not image_url.strip():
            raise ValidationFailed("An evidence photo is required to complete a report")
        image_url = image_url.strip()

        report = self.store.get_report(report_id)
        self.workflow.ensure_transition(report, ReportStatus.RESOLVED, Actor.SUPERVISOR)

        evidence = Evidence(photo_url=image_url)
        if self.ml_gated:
            prediction = self.classifier.predict_url(image_url)
            if not prediction.is_resolved:
                return self._flag_for_manual_review(report, actor, prediction.predicted_class)
            evidence = Evidence(
                photo_url=image_url,
                resolved_class=prediction.predicted_class,
                confidence=prediction.confidence,
            )

        updated = self._resolve(report, evidence, actor, Actor.SUPERVISOR, schedule)
        return CompleteReportResponse(status=updated.status, requires_manual_review=False, report=updated)

    def _flag_for_manual_review(self, report: Report, actor: ConsoleUser, predicted_class: str) -> CompleteReportResponse:
        updated = self.store.update_status(
            report.id,
            ReportStatus.PENDING,
            actor=Actor.SYSTEM,
            changes=self.workflow.manual_review_changes(),
        )
        self._log(
            report.id, report.status, updated.status, actor, Actor.SYSTEM,
            note=f"Classifier returned {predicted_class}; manual review required",
        )
        logger.warning(f"⚠️ Report {report.id} needs manual review (classifier: {predicted_class})")
        return CompleteReportResponse(status=updated.status, requires_manual_review=True, report=updated)

    def resolve_report(
        self,
        report_id: str,
        evidence: Optional[Evidence],
        actor: ConsoleUser,
        schedule: Optional[Scheduler] = None
    ) -> Report:
        """
        Resolve with evidence the caller already holds (photo URL and, when
        ML-gated, the classifier label obtained beforehand).

        With ML gating on, the label sent by the caller is not trusted: the
        photo is classified again here and the server's label is recorded.

        Raises:
            ValidationFailed: evidence missing, or the photo does not show a resolved issue
            Conflict: report is not In Progress
            ClassificationError: classifier unreachable or malformed answer
        """
        self._require_role(actor, UserRole.ADMIN, UserRole.SUPERVISOR)
        evidence = self.workflow.validate_evidence(evidence, self.ml_gated)

        report = self.store.get_report(report_id)
        self.workflow.check_resolution(report, evidence, actor.role, self.ml_gated)
        if self.ml_gated:
            evidence = self._confirm_resolved(report_id, evidence)
        return self._resolve(report, evidence, actor, actor.role, schedule)

    def _confirm_resolved(self, report_id: str, evidence: Evidence) -> Evidence:
        prediction = self.classifier.predict_url(evidence.photo_url)
        if not prediction.is_resolved:
            logger.warning(
                f"⚠️ Resolution of {report_id} refused: classifier returned {prediction.predicted_class}, "
                f"caller claimed {evidence.resolved_class}"
            )
            raise ValidationFailed(
                f"Classifier result '{prediction.predicted_class}' does not show the issue as resolved",
                detail={"report_id": report_id, "predicted_class": prediction.predicted_class},
            )
        return Evidence(
            photo_url=evidence.photo_url,
            resolved_class=prediction.predicted_class,
            confidence=prediction.confidence,
        )

    def _resolve(self, report: Report, evidence: Evidence, actor: ConsoleUser, actor_role,
                 schedule: Optional[Scheduler]) -> Report:
        updated = self.store.update_status(report.id, ReportStatus.RESOLVED, evidence=evidence, actor=actor_role)
        note = f"Resolved with evidence photo ({evidence.resolved_class})" if evidence.resolved_class \
            else "Resolved with evidence photo"
        self._log(report.id, report.status, updated.status, actor, actor_role, note=note)
        self._notify_resolved(updated, schedule)
        logger.info(f"✅ Report {report.id} resolved by {actor.id}")
        return updated


_lifecycle_service: Optional[LifecycleService] = None


def get_lifecycle_service() -> LifecycleService:
    global _lifecycle_service
    if _lifecycle_service is None:
        _lifecycle_service = LifecycleService()
    return _lifecycle_service
