"""
Report endpoints for signed-in users without a console role.
"""

from typing import List
import logging

from fastapi import APIRouter, Depends, HTTPException, status

from civic_console.core.errors import ConsoleError
from civic_console.models.report import Report
from civic_console.routes.dependencies import get_token_claims
from civic_console.services.report_store import ReportScope, ReportStore, get_report_store

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/reports", tags=["Reports"])


@router.get("/mine", response_model=List[Report])
async def my_reports(
    claims: dict = Depends(get_token_claims),
    store: ReportStore = Depends(get_report_store),
):
    """Reports submitted by the caller, newest first."""
    try:
        return store.list_reports(ReportScope.owned_by(claims["uid"]))
    except (HTTPException, ConsoleError):
        raise
    except Exception as e:
        logger.error(f"Failed to list reports for {claims.get('uid')}: {e}", exc_info=True)
        raise HTTPException(
            status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
            detail=f"Failed to retrieve reports: {str(e)}",
        )
