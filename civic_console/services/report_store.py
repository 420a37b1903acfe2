"""
Report store - Firestore/Storage persistence boundary for reports.

DESIGN NOTE:
- This is the ONLY module that reads or writes the `reports` collection
- Stored documents mix camelCase and snake_case field names; reads fold
  both into one Report, writes always use snake_case
- Every mutating call returns the record re-read from Firestore, never a
  locally patched copy
- Status logs are best-effort and never fail a transition
"""

import re
import time
from datetime import datetime, timezone
from typing import Dict, Iterable, List, Optional, Union
import logging

from civic_console.config.firebase import get_bucket, get_db
from civic_console.core.errors import Conflict, NotFound, UploadError
from civic_console.core.settings import settings
from civic_console.models.report import Evidence, Report, ReportStatus, parse_status
from civic_console.services.status_workflow import ActorLike, StatusWorkflowEngine
from civic_console.utils.firestore_helpers import document_to_dict, first_present, where_filter
from civic_console.utils.geo import parse_coords, parse_timestamp

logger = logging.getLogger(__name__)

REPORTS_COLLECTION = "reports"
STATUS_LOGS_COLLECTION = "report_status_logs"

# normalized field -> stored names, preferred first
FIELD_ALIASES: Dict[str, tuple] = {
    "user_id": ("user_id", "userId"),
    "supervisor_id": ("supervisor_id", "supervisorId"),
    "photo_url": ("image_url", "photoUrl", "photo_url"),
    "worker_name": ("worker_name", "workerName"),
    "estimated_time": ("estimated_time", "estimatedTime"),
    "resolved_photo_url": ("resolved_photo", "resolvedPhotoUrl"),
    "resolved_image_url": ("resolved_image_url", "resolvedImageUrl"),
    "resolved_class": ("resolved_class", "resolvedClass"),
    "resolved_at": ("resolved_at", "resolvedAt"),
    "requires_manual_review": ("requires_manual_review", "requiresManualReview"),
    "created_at": ("created_at", "createdAt", "timestamp"),
    "updated_at": ("updated_at", "updatedAt"),
}

def normalize_status(value) -> ReportStatus:
    """Stored status in any spelling; unknown or missing reads as Pending."""
    return parse_status(value) or ReportStatus.PENDING


def _location(data: Dict):
    """One canonical location per report: coordinates if any field parses, else the text."""
    for key in ("coords", "location"):
        coords = parse_coords(data.get(key))
        if coords is not None:
            return coords
    text = data.get("location")
    if isinstance(text, str) and text.strip():
        return text.strip()
    return None


def normalize_report(data: Dict) -> Report:
    """Build a Report from a stored document dict (which must carry "id")."""
    values = {key: first_present(data, aliases) for key, aliases in FIELD_ALIASES.items()}
    for ts_field in ("created_at", "updated_at", "resolved_at"):
        values[ts_field] = parse_timestamp(values[ts_field])
    values["requires_manual_review"] = bool(values["requires_manual_review"])

    return Report(
        id=str(data["id"]),
        title=data.get("title"),
        description=data.get("description"),
        location=_location(data),
        status=normalize_status(data.get("status")),
        **values,
    )


def _sort_key(report: Report) -> float:
    return report.created_at.timestamp() if report.created_at else float("-inf")


class ReportScope:
    """Which reports a caller may list."""

    def __init__(self, owner_id: Optional[str] = None):
        self.owner_id = owner_id

    @classmethod
    def all(cls) -> "ReportScope":
        return cls()

    @classmethod
    def owned_by(cls, user_id: str) -> "ReportScope":
        if not user_id:
            raise ValueError("owned_by scope needs a user id")
        return cls(owner_id=user_id)

    @property
    def is_all(self) -> bool:
        return self.owner_id is None

    def __repr__(self) -> str:
        return "ReportScope(all)" if self.is_all else f"ReportScope(owned_by={self.owner_id!r})"


class ReportStore:
    """
    Service for report persistence in Firestore and Firebase Storage.
    """

    def __init__(self, db=None, bucket=None):
        self._db = db
        self._bucket = bucket

    @property
    def db(self):
        if self._db is None:
            self._db = get_db()
        return self._db

    @property
    def bucket(self):
        if self._bucket is None:
            self._bucket = get_bucket()
        return self._bucket

    def _doc_ref(self, report_id: str):
        return self.db.collection(REPORTS_COLLECTION).document(report_id)

    def list_reports(
        self,
        scope: Optional[ReportScope] = None,
        exclude_statuses: Iterable[ReportStatus] = ()
    ) -> List[Report]:
        """
        List reports, newest created first.

        Sorting happens after normalization: legacy documents keep their
        creation time under `createdAt`, which a Firestore order_by on
        `created_at` would silently drop. For the same reason an owned scope
        queries every stored owner field name and merges the results by id.

        Args:
            scope: ReportScope.all() or ReportScope.owned_by(uid)
            exclude_statuses: Statuses to leave out (supervisor queue hides Resolved)

        Returns:
            List[Report]
        """
        scope = scope or ReportScope.all()
        collection = self.db.collection(REPORTS_COLLECTION)
        if scope.is_all:
            queries = [collection]
        else:
            queries = [
                where_filter(collection, field, "==", scope.owner_id)
                for field in FIELD_ALIASES["user_id"]
            ]

        excluded = set(exclude_statuses)
        seen = set()
        reports = []
        for doc in (doc for query in queries for doc in query.stream()):
            if doc.id in seen:
                continue
            seen.add(doc.id)
            data = document_to_dict(doc)
            if data is None:
                continue
            try:
                report = normalize_report(data)
            except Exception as e:
                logger.warning(f"Skipping malformed report {doc.id}: {e}")
                continue
            if report.status in excluded:
                continue
            reports.append(report)

        reports.sort(key=_sort_key, reverse=True)
        logger.info(f"Fetched {len(reports)} reports for {scope}")
        return reports

    def get_report(self, report_id: str) -> Report:
        data = document_to_dict(self._doc_ref(report_id).get())
        if data is None:
            raise NotFound(f"Report {report_id} not found", detail={"report_id": report_id})
        return normalize_report(data)

    def update_status(
        self,
        report_id: str,
        new_status: Union[ReportStatus, str],
        evidence: Optional[Evidence] = None,
        actor: Optional[ActorLike] = None,
        changes: Optional[Dict] = None
    ) -> Report:
        """
        Persist a status change and return the authoritative record.

        Args:
            report_id: Firestore document ID
            new_status: Target status
            evidence: Resolution evidence, written only when moving to Resolved
            actor: Role making the change; None accepts any actor the table allows
            changes: Extra fields written in the same update

        Raises:
            NotFound: unknown report
            Conflict: stored status does not allow the transition
        """
        new_status = new_status if isinstance(new_status, ReportStatus) else normalize_status(new_status)
        current = self.get_report(report_id)

        if actor is not None:
            StatusWorkflowEngine.ensure_transition(current, new_status, actor)
        elif not StatusWorkflowEngine.is_valid_transition(current.status, new_status):
            raise Conflict(
                f"Invalid status transition: {current.status.value} → {new_status.value}",
                detail={"report_id": report_id, "status": current.status.value},
            )

        now = datetime.now(timezone.utc)
        update_data = {"status": new_status.value, "updated_at": now}
        if new_status == ReportStatus.RESOLVED and evidence is not None:
            update_data.update(StatusWorkflowEngine.resolution_changes(evidence, now))
        if changes:
            update_data.update(changes)

        self._doc_ref(report_id).update(update_data)
        logger.info(f"Report {report_id} status {current.status.value} → {new_status.value}")
        return self.get_report(report_id)

    def update_fields(self, report_id: str, changes: Dict) -> Report:
        """Write non-status fields (e.g. worker assignment) and return the stored record."""
        self.get_report(report_id)
        update_data = dict(changes)
        update_data["updated_at"] = datetime.now(timezone.utc)
        self._doc_ref(report_id).update(update_data)
        return self.get_report(report_id)

    def upload_evidence_photo(
        self,
        report_id: str,
        data: bytes,
        filename: str,
        content_type: str = "image/jpeg"
    ) -> str:
        """
        Store an evidence photo and return its public URL.

        The object name is qualified by a millisecond timestamp and written
        with if_generation_match=0, so an existing object is never replaced.

        Raises:
            UploadError: Storage rejected the write or produced no public URL
        """
        safe_name = re.sub(r"[^A-Za-z0-9._-]", "_", filename or "photo.jpg")
        path = f"{settings.EVIDENCE_PREFIX}/{report_id}_{int(time.time() * 1000)}_{safe_name}"
        logger.info(f"Uploading evidence photo: report={report_id} path={path} size={len(data)}")

        try:
            blob = self.bucket.blob(path)
            blob.cache_control = "public, max-age=3600"
            blob.upload_from_string(data, content_type=content_type, if_generation_match=0)
            blob.make_public()
            public_url = blob.public_url
        except Exception as e:
            logger.error(f"Evidence upload failed for report {report_id}: {e}", exc_info=True)
            raise UploadError(f"Failed to upload evidence photo: {e}", detail={"path": path})

        if not public_url or not public_url.strip():
            raise UploadError("Failed to get public URL for evidence photo", detail={"path": path})

        logger.info(f"Evidence photo stored at {public_url}")
        return public_url

    def log_status_change(self, entry: Dict) -> bool:
        """Best-effort audit log write. Returns False when it could not be written."""
        try:
            self.db.collection(STATUS_LOGS_COLLECTION).add(entry)
            return True
        except Exception as e:
            logger.warning(f"Skipping status log for report {entry.get('report_id')}: {e}")
            return False


# Global service instance (singleton pattern)
_report_store: Optional[ReportStore] = None


def get_report_store() -> ReportStore:
    """
    Get or create ReportStore singleton instance.

    Returns:
        ReportStore: The global report store instance
    """
    global _report_store
    if _report_store is None:
        _report_store = ReportStore()
    return _report_store
