from datetime import date

from fastapi import APIRouter, Depends, Query
from sqlalchemy.ext.asyncio import AsyncSession

from clinic_scheduler.api.deps import family_param, get_session
from clinic_scheduler.api.schemas.appointment import DayCalendarResponse, DaySlotInfo, SlotGridResponse
from clinic_scheduler.core.config import settings
from clinic_scheduler.services.availability_service import family_day_occupancy, slot_grid
from clinic_scheduler.services.resource_families import ResourceFamily

router = APIRouter(prefix="/slots", tags=["slots"])


@router.get("/grid", response_model=SlotGridResponse)
async def time_grid() -> SlotGridResponse:
    """Time labels offered by the booking forms and calendar rows."""
    return SlotGridResponse(
        step_minutes=settings.slot_step_minutes,
        closing_time=settings.closing_time,
        slots=slot_grid(),
    )


@router.get("/calendar", response_model=DayCalendarResponse)
async def day_calendar(
    date_param: date = Query(..., alias="date"),
    family: ResourceFamily = Depends(family_param),
    session: AsyncSession = Depends(get_session),
) -> DayCalendarResponse:
    """Occupied unit numbers and free count for every slot of the day."""
    cells = await family_day_occupancy(session, family, date_param)
    return DayCalendarResponse(
        date=date_param.isoformat(),
        kind=family.kind,
        slots=[
            DaySlotInfo(
                time=c.time,
                occupied_numbers=c.occupied_numbers,
                free_count=c.free_count,
                capacity=c.capacity,
            )
            for c in cells
        ],
    )
