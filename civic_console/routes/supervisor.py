"""
Supervisor endpoints - assign workers and complete reports.
"""

from typing import List
import logging

from fastapi import APIRouter, BackgroundTasks, Depends, File, HTTPException, UploadFile, status

from civic_console.core.errors import ConsoleError
from civic_console.models.report import (
    AssignWorkerRequest,
    CompleteReportRequest,
    CompleteReportResponse,
    EvidenceUploadResponse,
    Report,
    ReportStatus,
)
from civic_console.models.user import ConsoleUser, UserRole
from civic_console.routes.dependencies import probe_role, require_role
from civic_console.services.lifecycle_service import LifecycleService, get_lifecycle_service
from civic_console.services.report_store import ReportScope, ReportStore, get_report_store

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/supervisor", tags=["Supervisor"])

require_supervisor = require_role(UserRole.SUPERVISOR)


@router.get("/me", response_model=ConsoleUser)
async def supervisor_me(user: ConsoleUser = Depends(probe_role(UserRole.SUPERVISOR))):
    """Supervisor role probe. 403 when the caller is not a supervisor."""
    return user


@router.get("/reports", response_model=List[Report])
async def list_reports(
    user: ConsoleUser = Depends(require_supervisor),
    store: ReportStore = Depends(get_report_store),
):
    """Open reports (anything not Resolved), newest created first."""
    try:
        return store.list_reports(ReportScope.all(), exclude_statuses=(ReportStatus.RESOLVED,))
    except (HTTPException, ConsoleError):
        raise
    except Exception as e:
        logger.error(f"Failed to list reports for supervisor {user.id}: {e}", exc_info=True)
        raise HTTPException(
            status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
            detail=f"Failed to retrieve reports: {str(e)}"
        )


@router.patch("/report/{report_id}/assign-worker", response_model=Report)
async def assign_worker(
    report_id: str,
    request: AssignWorkerRequest,
    user: ConsoleUser = Depends(require_supervisor),
    lifecycle: LifecycleService = Depends(get_lifecycle_service),
):
    """
    Assign a worker to an in-progress report.

    Raises:
        404: Report not found
        409: Report not In Progress, or a worker is already assigned
        422: Worker name missing
    """
    try:
        return lifecycle.assign_worker(report_id, request.worker_name, user)
    except (HTTPException, ConsoleError):
        raise
    except Exception as e:
        logger.error(f"Failed to assign worker on {report_id}: {e}", exc_info=True)
        raise HTTPException(
            status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
            detail=f"Failed to assign worker: {str(e)}"
        )


@router.post("/report/{report_id}/evidence", response_model=EvidenceUploadResponse)
async def upload_evidence(
    report_id: str,
    image: UploadFile = File(..., description="Completion photo"),
    user: ConsoleUser = Depends(require_supervisor),
    lifecycle: LifecycleService = Depends(get_lifecycle_service),
):
    """Store a completion photo and return its public URL."""
    try:
        data = await image.read()
        image_url = lifecycle.upload_evidence(
            report_id, data, image.filename or "evidence.jpg", image.content_type, user
        )
        return EvidenceUploadResponse(image_url=image_url)
    except (HTTPException, ConsoleError):
        raise
    except Exception as e:
        logger.error(f"Failed to upload evidence for {report_id}: {e}", exc_info=True)
        raise HTTPException(
            status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
            detail=f"Failed to upload evidence: {str(e)}"
        )


@router.patch("/report/{report_id}/complete", response_model=CompleteReportResponse)
def complete_report(
    report_id: str,
    request: CompleteReportRequest,
    background_tasks: BackgroundTasks,
    user: ConsoleUser = Depends(require_supervisor),
    lifecycle: LifecycleService = Depends(get_lifecycle_service),
):
    """
    Complete a report with its evidence photo.

    Returns status Resolved, or Pending with requires_manual_review when the
    classifier could not confirm the fix.
    """
    try:
        return lifecycle.complete_report(report_id, request.image_url, user, schedule=background_tasks.add_task)
    except (HTTPException, ConsoleError):
        raise
    except Exception as e:
        logger.error(f"Failed to complete {report_id}: {e}", exc_info=True)
        raise HTTPException(
            status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
            detail=f"Failed to complete report: {str(e)}"
        )
