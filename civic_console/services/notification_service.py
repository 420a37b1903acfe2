"""
Notification emitter - tells the citizen their report was resolved.

Best-effort only: runs after the response is sent, and any failure
(missing collection, permissions, network) is logged and dropped.
"""

from datetime import datetime, timezone
from typing import Optional
import logging

from civic_console.config.firebase import get_db
from civic_console.models.report import Report

logger = logging.getLogger(__name__)

NOTIFICATIONS_COLLECTION = "notifications"


class NotificationService:

    def __init__(self, db=None):
        self._db = db

    @property
    def db(self):
        if self._db is None:
            self._db = get_db()
        return self._db

    def notify(self, user_id: Optional[str], message: str, report_id: Optional[str] = None) -> Optional[str]:
        """
        Write one notification.

        Returns:
            The notification document ID, or None when it was skipped
        """
        if not user_id:
            logger.info(f"No submitter on report {report_id}, skipping notification")
            return None
        payload = {
            "user_id": user_id,
            "report_id": report_id,
            "message": message,
            "read": False,
            "created_at": datetime.now(timezone.utc),
        }
        try:
            _, doc_ref = self.db.collection(NOTIFICATIONS_COLLECTION).add(payload)
            logger.info(f"Notification {doc_ref.id} queued for {user_id}")
            return doc_ref.id
        except Exception as e:
            logger.warning(f"Notifications unavailable, skipping notification for {user_id}: {e}")
            return None

    def notify_resolved(self, report: Report) -> Optional[str]:
        title = report.title or "your report"
        return self.notify(
            report.user_id,
            f"Good news! \"{title}\" has been resolved.",
            report_id=report.id,
        )


_notification_service: Optional[NotificationService] = None


def get_notification_service() -> NotificationService:
    global _notification_service
    if _notification_service is None:
        _notification_service = NotificationService()
    return _notification_service
