"""
Admin endpoints - start work on reports and resolve them.

SCOPE OF ADMIN:
✅ See every report, newest first, with list filters
✅ Start work (Pending → In Progress) with an estimated time
✅ Classify an evidence photo and resolve with a confirmed label
✅ View report hotspots

❌ NOT assign workers (supervisor only)
❌ NOT edit report content
❌ NOT delete reports
"""

from datetime import date
from typing import List, Optional
import logging

from fastapi import APIRouter, BackgroundTasks, Depends, File, HTTPException, Query, UploadFile, status

from civic_console.core.errors import ConsoleError
from civic_console.models.report import (
    Evidence,
    HotspotCell,
    Report,
    ResolveReportRequest,
    StartWorkRequest,
)
from civic_console.models.user import ConsoleUser, UserRole
from civic_console.routes.dependencies import probe_role, require_role
from civic_console.services.hotspot_service import report_hotspots
from civic_console.services.lifecycle_service import LifecycleService, get_lifecycle_service
from civic_console.services.report_filters import filter_reports
from civic_console.services.report_store import ReportScope, ReportStore, get_report_store

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/admin", tags=["Admin"])

require_admin = require_role(UserRole.ADMIN)


@router.get("/me", response_model=ConsoleUser)
async def admin_me(user: ConsoleUser = Depends(probe_role(UserRole.ADMIN))):
    """Admin role probe. 403 when the caller is not an admin."""
    return user


@router.get("/reports", response_model=List[Report])
async def list_reports(
    status_filter: Optional[str] = Query(None, alias="status", description="Pending, In Progress, Resolved, Rejected or all"),
    search: Optional[str] = Query(None, description="Substring of title or description"),
    start_date: Optional[date] = Query(None),
    end_date: Optional[date] = Query(None, description="Inclusive of the whole day"),
    near: Optional[str] = Query(None, description="Center as 'lat,lng'"),
    radius_km: Optional[float] = Query(None, gt=0),
    user: ConsoleUser = Depends(require_admin),
    store: ReportStore = Depends(get_report_store),
):
    """
    All reports, newest created first, optionally filtered.
    """
    try:
        reports = store.list_reports(ReportScope.all())
        return filter_reports(
            reports,
            status=status_filter,
            search=search,
            start_date=start_date,
            end_date=end_date,
            center=near,
            radius_km=radius_km,
        )
    except ValueError as e:
        raise HTTPException(status_code=status.HTTP_422_UNPROCESSABLE_ENTITY, detail=f"Invalid filter: {e}")
    except (HTTPException, ConsoleError):
        raise
    except Exception as e:
        logger.error(f"Failed to list reports for admin {user.id}: {e}", exc_info=True)
        raise HTTPException(
            status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
            detail=f"Failed to retrieve reports: {str(e)}"
        )


@router.patch("/report/{report_id}/start", response_model=Report)
async def start_work(
    report_id: str,
    request: StartWorkRequest,
    user: ConsoleUser = Depends(require_admin),
    lifecycle: LifecycleService = Depends(get_lifecycle_service),
):
    """
    Start work on a report (Pending → In Progress).

    Raises:
        404: Report not found
        409: Report is not Pending
        422: Estimated time missing
    """
    try:
        return lifecycle.start_work(report_id, request.estimated_time, user)
    except (HTTPException, ConsoleError):
        raise
    except Exception as e:
        logger.error(f"Failed to start work on {report_id}: {e}", exc_info=True)
        raise HTTPException(
            status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
            detail=f"Failed to start work: {str(e)}"
        )


@router.post("/report/{report_id}/classify")
def classify_evidence(
    report_id: str,
    image: UploadFile = File(..., description="Evidence photo"),
    user: ConsoleUser = Depends(require_admin),
    lifecycle: LifecycleService = Depends(get_lifecycle_service),
):
    """
    Upload an evidence photo and run the classifier on it.
    The report itself is not changed; resolve with the returned label.
    """
    try:
        data = image.file.read()
        return lifecycle.classify_evidence(
            report_id, data, image.filename or "evidence.jpg", image.content_type, user
        )
    except (HTTPException, ConsoleError):
        raise
    except Exception as e:
        logger.error(f"Failed to classify evidence for {report_id}: {e}", exc_info=True)
        raise HTTPException(
            status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
            detail=f"Failed to classify evidence: {str(e)}"
        )


@router.patch("/report/{report_id}/resolve", response_model=Report)
def resolve_report(
    report_id: str,
    request: ResolveReportRequest,
    background_tasks: BackgroundTasks,
    user: ConsoleUser = Depends(require_admin),
    lifecycle: LifecycleService = Depends(get_lifecycle_service),
):
    """
    Resolve a report (In Progress → Resolved) with evidence.

    When resolution is ML-gated, `resolved_class` must be a resolved label
    from a prior /classify call, and the photo is classified again before
    the report is resolved.
    """
    try:
        evidence = Evidence(photo_url=request.image_url, resolved_class=request.resolved_class)
        return lifecycle.resolve_report(report_id, evidence, user, schedule=background_tasks.add_task)
    except (HTTPException, ConsoleError):
        raise
    except Exception as e:
        logger.error(f"Failed to resolve {report_id}: {e}", exc_info=True)
        raise HTTPException(
            status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
            detail=f"Failed to resolve report: {str(e)}"
        )


@router.get("/hotspots", response_model=List[HotspotCell])
async def hotspots(
    user: ConsoleUser = Depends(require_admin),
    store: ReportStore = Depends(get_report_store),
):
    """Report density cells for the hotspot map."""
    try:
        return report_hotspots(store.list_reports(ReportScope.all()))
    except (HTTPException, ConsoleError):
        raise
    except Exception as e:
        logger.error(f"Failed to build hotspots: {e}", exc_info=True)
        raise HTTPException(
            status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
            detail=f"Failed to build hotspots: {str(e)}"
        )
