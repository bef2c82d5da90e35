from fastapi import APIRouter, Depends, HTTPException, status
from sqlalchemy.ext.asyncio import AsyncSession

from clinic_scheduler.api.deps import booking_http_error, get_session
from clinic_scheduler.api.schemas.appointment import (
    AvailabilityCheckRequest,
    AvailabilityResponse,
    UnitAvailabilityInfo,
)
from clinic_scheduler.services.appointment_service import resolve_service_duration
from clinic_scheduler.services.availability_service import AvailabilityResult, check_availability
from clinic_scheduler.services.errors import BookingError
from clinic_scheduler.services.resource_families import get_family

router = APIRouter(prefix="/availability", tags=["availability"])


def _to_response(result: AvailabilityResult) -> AvailabilityResponse:
    return AvailabilityResponse(
        kind=result.kind,
        appointment_date=result.appointment_date,
        start_time=result.start_time,
        end_time=result.end_time,
        duration_minutes=result.duration_minutes,
        closing_time_exceeded=result.closing_time_exceeded,
        professional_available=result.professional_available,
        is_available=result.is_available,
        free_count=result.free_count,
        capacity=result.capacity,
        occupied_numbers=result.occupied_numbers,
        message=result.message,
        resources=[
            UnitAvailabilityInfo(
                resource_id=r.resource_id,
                number=r.number,
                name=r.name,
                is_available=r.is_available,
            )
            for r in result.resources
        ],
    )


@router.post("/check", response_model=AvailabilityResponse)
async def check(
    body: AvailabilityCheckRequest,
    session: AsyncSession = Depends(get_session),
) -> AvailabilityResponse:
    """Advisory check; nothing is held, booking re-checks under lock."""
    duration = body.duration_minutes
    if body.service_id is not None:
        try:
            family, service_duration = await resolve_service_duration(
                session, body.service_id, body.sub_service_id
            )
        except BookingError as e:
            raise booking_http_error(e) from e
        if body.kind is not None and body.kind != family.kind:
            raise HTTPException(
                status_code=status.HTTP_422_UNPROCESSABLE_ENTITY,
                detail=f"Service is booked on {family.kind.value}, not {body.kind.value}",
            )
        if duration is None:
            duration = service_duration
    elif body.kind is not None:
        family = get_family(body.kind)
    else:
        raise HTTPException(
            status_code=status.HTTP_422_UNPROCESSABLE_ENTITY,
            detail="Either kind or service_id is required",
        )
    result = await check_availability(
        session,
        family,
        body.appointment_date,
        body.start_time,
        duration,
        professional_id=body.professional_id,
        exclude_appointment_id=body.exclude_appointment_id,
    )
    return _to_response(result)
