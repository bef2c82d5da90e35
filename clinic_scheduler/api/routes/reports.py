from datetime import date

from fastapi import APIRouter, Depends, HTTPException, Query, status
from sqlalchemy.ext.asyncio import AsyncSession

from clinic_scheduler.api.deps import get_session
from clinic_scheduler.api.schemas.report import ReportSummaryResponse
from clinic_scheduler.services.report_service import get_summary

router = APIRouter(prefix="/reports", tags=["reports"])


@router.get("/summary", response_model=ReportSummaryResponse)
async def summary(
    from_date: date = Query(...),
    to_date: date = Query(...),
    session: AsyncSession = Depends(get_session),
) -> ReportSummaryResponse:
    """Appointment counts by status and family, and revenue of completed sessions."""
    if to_date < from_date:
        raise HTTPException(
            status_code=status.HTTP_422_UNPROCESSABLE_ENTITY,
            detail="to_date must not be before from_date",
        )
    report = await get_summary(session, from_date, to_date)
    return ReportSummaryResponse(
        from_date=report.from_date,
        to_date=report.to_date,
        total=report.total,
        by_status=report.by_status,
        by_kind=report.by_kind,
        completed_revenue=report.completed_revenue,
    )
