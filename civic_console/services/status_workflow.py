"""
Status Workflow Engine - report lifecycle state machine.

DESIGN PRINCIPLES:
- No skipping states
- Every transition names the actor allowed to make it
- Missing inputs are rejected before anything touches the backend
- The only backward move is the system's manual-review rollback
"""

from enum import Enum
from datetime import datetime, timezone
from typing import Dict, List, Optional, Tuple, Union
import logging

from civic_console.core.errors import Conflict, ValidationFailed
from civic_console.models.report import Evidence, Report, ReportStatus
from civic_console.models.user import UserRole
from civic_console.services.classifier import is_resolved_class

logger = logging.getLogger(__name__)


class Actor(str, Enum):
    """Who is asking for a transition."""
    ADMIN = "ADMIN"
    SUPERVISOR = "SUPERVISOR"
    SYSTEM = "SYSTEM"


ActorLike = Union[Actor, UserRole, str]


def _actor(actor: ActorLike) -> Actor:
    value = actor.value if isinstance(actor, Enum) else str(actor)
    return Actor(value.upper())


def _status(status: Union[ReportStatus, str]) -> ReportStatus:
    return status if isinstance(status, ReportStatus) else ReportStatus(status)


class StatusWorkflowEngine:
    """
    Strict state machine for report status transitions.

    Rules:
    - Pending → In Progress (admin, with an estimated time)
    - In Progress → Resolved (supervisor or admin, with evidence)
    - In Progress → Pending (system only, classifier could not confirm)
    - Resolved and Rejected are terminal
    - Worker assignment happens inside In Progress and does not move status
    """

    # {from_status: {to_status: (actors...)}}
    ALLOWED_TRANSITIONS: Dict[ReportStatus, Dict[ReportStatus, Tuple[Actor, ...]]] = {
        ReportStatus.PENDING: {
            ReportStatus.IN_PROGRESS: (Actor.ADMIN,),
        },
        ReportStatus.IN_PROGRESS: {
            ReportStatus.RESOLVED: (Actor.SUPERVISOR, Actor.ADMIN),
            ReportStatus.PENDING: (Actor.SYSTEM,),
        },
        ReportStatus.RESOLVED: {},
        ReportStatus.REJECTED: {},
    }

    @classmethod
    def is_valid_transition(
        cls,
        from_status: Union[ReportStatus, str],
        to_status: Union[ReportStatus, str],
        actor: Optional[ActorLike] = None
    ) -> bool:
        """
        Check if a status transition is valid.

        Args:
            from_status: Current status
            to_status: Desired new status
            actor: Who asks; None checks the transition for any actor

        Returns:
            True if transition is allowed, False otherwise
        """
        try:
            from_enum = _status(from_status)
            to_enum = _status(to_status)
            actor_enum = _actor(actor) if actor is not None else None
        except ValueError:
            return False

        allowed_actors = cls.ALLOWED_TRANSITIONS.get(from_enum, {}).get(to_enum)
        if allowed_actors is None:
            return False
        return actor_enum is None or actor_enum in allowed_actors

    @classmethod
    def get_allowed_transitions(
        cls,
        current_status: Union[ReportStatus, str],
        actor: Optional[ActorLike] = None
    ) -> List[str]:
        """
        Get list of allowed next statuses from current status.

        Args:
            current_status: Current status string
            actor: Restrict to transitions this actor may make

        Returns:
            List of allowed next status strings
        """
        try:
            current_enum = _status(current_status)
            actor_enum = _actor(actor) if actor is not None else None
        except ValueError:
            return []
        return [
            to_status.value
            for to_status, actors in cls.ALLOWED_TRANSITIONS.get(current_enum, {}).items()
            if actor_enum is None or actor_enum in actors
        ]

    @classmethod
    def ensure_transition(
        cls,
        report: Report,
        to_status: Union[ReportStatus, str],
        actor: ActorLike
    ) -> None:
        """Raise Conflict when the stored status does not allow the move."""
        if not cls.is_valid_transition(report.status, to_status, actor):
            allowed = cls.get_allowed_transitions(report.status, actor)
            raise Conflict(
                f"Invalid status transition: {report.status.value} → {_status(to_status).value}. "
                f"Allowed transitions from {report.status.value}: {allowed}",
                detail={"report_id": report.id, "status": report.status.value},
            )

    # Preconditions per operation

    @staticmethod
    def validate_estimated_time(estimated_time: Optional[str]) -> str:
        if not estimated_time or not estimated_time.strip():
            raise ValidationFailed("Please enter an estimated time before starting work")
        return estimated_time.strip()

    @staticmethod
    def validate_worker_name(worker_name: Optional[str]) -> str:
        if not worker_name or not worker_name.strip():
            raise ValidationFailed("Please select a worker to assign")
        return worker_name.strip()

    @staticmethod
    def validate_evidence(evidence: Optional[Evidence], ml_gated: bool) -> Evidence:
        """
        Check a resolution request carries what it needs.

        A photo is always required. When resolution is ML-gated the
        classifier must already have run and returned a resolved label.
        """
        if evidence is None or not (evidence.photo_url or "").strip():
            raise ValidationFailed("An evidence photo is required to resolve a report")
        if ml_gated:
            if not evidence.resolved_class:
                raise ValidationFailed("Run the image classifier on the evidence photo before resolving")
            if not is_resolved_class(evidence.resolved_class):
                raise ValidationFailed(
                    f"Classifier result '{evidence.resolved_class}' does not show the issue as resolved"
                )
        return evidence

    @staticmethod
    def validate_photo_upload(content_type: Optional[str], size: int, max_bytes: int) -> None:
        """Evidence photos must be non-empty images within the size limit."""
        if not content_type or not content_type.lower().startswith("image/"):
            raise ValidationFailed("Please select an image file")
        if size <= 0:
            raise ValidationFailed("Please select or capture an image")
        if size > max_bytes:
            raise ValidationFailed(f"File size must be less than {max_bytes // (1024 * 1024)}MB")

    @classmethod
    def check_start_work(cls, report: Report, estimated_time: Optional[str]) -> str:
        estimate = cls.validate_estimated_time(estimated_time)
        cls.ensure_transition(report, ReportStatus.IN_PROGRESS, Actor.ADMIN)
        return estimate

    @classmethod
    def check_assign_worker(cls, report: Report, worker_name: Optional[str]) -> str:
        """
        Workers are assigned once, by a supervisor, while work is in progress.
        Re-assignment is rejected rather than silently ignored.
        """
        name = cls.validate_worker_name(worker_name)
        if report.status != ReportStatus.IN_PROGRESS:
            raise Conflict(
                f"Workers can only be assigned to reports in progress (report is {report.status.value})",
                detail={"report_id": report.id},
            )
        if report.worker_name:
            raise Conflict(
                f"Report already assigned to {report.worker_name}",
                detail={"report_id": report.id, "worker_name": report.worker_name},
            )
        return name

    @classmethod
    def check_resolution(
        cls,
        report: Report,
        evidence: Optional[Evidence],
        actor: ActorLike,
        ml_gated: bool
    ) -> Evidence:
        evidence = cls.validate_evidence(evidence, ml_gated)
        cls.ensure_transition(report, ReportStatus.RESOLVED, actor)
        return evidence

    # Side effects per transition

    @staticmethod
    def resolution_changes(evidence: Evidence, now: Optional[datetime] = None) -> Dict:
        now = now or datetime.now(timezone.utc)
        changes = {
            "resolved_photo": evidence.photo_url,
            "resolved_image_url": evidence.photo_url,
            "resolved_at": now,
            "requires_manual_review": False,
        }
        if evidence.resolved_class:
            changes["resolved_class"] = evidence.resolved_class
        return changes

    @staticmethod
    def manual_review_changes() -> Dict:
        return {"requires_manual_review": True}

    @classmethod
    def create_status_history_entry(
        cls,
        report_id: str,
        from_status: str,
        to_status: str,
        changed_by: str,
        actor: ActorLike,
        note: Optional[str] = None
    ) -> Dict:
        """
        Create a status log entry for the audit trail.

        Args:
            report_id: Report the change applies to
            from_status: Previous status
            to_status: New status
            changed_by: UID of the acting user, or "system"
            actor: Role the change was made under
            note: Optional note explaining the change

        Returns:
            Status log entry dict
        """
        return {
            "report_id": report_id,
            "from_status": from_status,
            "new_status": to_status,
            "actor_id": changed_by,
            "actor_role": _actor(actor).value,
            "note": note or "",
            "created_at": datetime.now(timezone.utc),
        }
