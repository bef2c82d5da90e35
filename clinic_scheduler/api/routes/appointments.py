import logging
from datetime import date

from fastapi import APIRouter, BackgroundTasks, Depends, Query, status
from sqlalchemy.ext.asyncio import AsyncSession

from clinic_scheduler.api.deps import booking_http_error, get_session
from clinic_scheduler.api.schemas.appointment import CancelAppointmentRequest
from clinic_scheduler.models.appointment import (
    Appointment,
    AppointmentCreate,
    AppointmentPublic,
    AppointmentStatus,
    AppointmentUpdate,
)
from clinic_scheduler.models.patient import Patient
from clinic_scheduler.models.resource import Resource, ResourceKind
from clinic_scheduler.models.service import Service
from clinic_scheduler.services.appointment_service import (
    cancel_appointment,
    create_appointment,
    get_appointment,
    list_appointments,
    update_appointment,
)
from clinic_scheduler.services.email_service import send_appointment_confirmation_email
from clinic_scheduler.services.errors import BookingError

logger = logging.getLogger(__name__)
router = APIRouter(prefix="/appointments", tags=["appointments"])


def _to_public(a: Appointment) -> AppointmentPublic:
    return AppointmentPublic.model_validate(a)


async def _queue_confirmation(
    session: AsyncSession, background_tasks: BackgroundTasks, appointment: Appointment
) -> None:
    patient = await session.get(Patient, appointment.patient_id)
    if not patient or not patient.email:
        return
    service = await session.get(Service, appointment.service_id)
    resource = await session.get(Resource, appointment.resource_id) if appointment.resource_id else None
    background_tasks.add_task(
        send_appointment_confirmation_email,
        to_email=patient.email,
        recipient_name=patient.display_name,
        service_name=service.name if service else "clinic",
        resource_name=resource.name if resource else None,
        appointment_date=appointment.appointment_date,
        start_time=appointment.start_time,
        end_time=appointment.end_time,
    )


@router.post("", response_model=AppointmentPublic, status_code=status.HTTP_201_CREATED)
async def book_appointment(
    body: AppointmentCreate,
    background_tasks: BackgroundTasks,
    session: AsyncSession = Depends(get_session),
) -> AppointmentPublic:
    try:
        appointment = await create_appointment(session, body)
    except BookingError as e:
        logger.info("Booking refused: %s", e.message)
        raise booking_http_error(e) from e
    await _queue_confirmation(session, background_tasks, appointment)
    return _to_public(appointment)


@router.get("", response_model=list[AppointmentPublic])
async def list_all(
    date_param: date | None = Query(None, alias="date"),
    kind: ResourceKind | None = Query(None),
    status_param: AppointmentStatus | None = Query(None, alias="status"),
    professional_id: int | None = Query(None),
    session: AsyncSession = Depends(get_session),
) -> list[AppointmentPublic]:
    appointments = await list_appointments(
        session,
        appointment_date=date_param,
        kind=kind,
        status=status_param,
        professional_id=professional_id,
    )
    return [_to_public(a) for a in appointments]


@router.get("/{appointment_id}", response_model=AppointmentPublic)
async def get_one(
    appointment_id: int,
    session: AsyncSession = Depends(get_session),
) -> AppointmentPublic:
    try:
        return _to_public(await get_appointment(session, appointment_id))
    except BookingError as e:
        raise booking_http_error(e) from e


@router.put("/{appointment_id}", response_model=AppointmentPublic)
async def reschedule(
    appointment_id: int,
    body: AppointmentUpdate,
    session: AsyncSession = Depends(get_session),
) -> AppointmentPublic:
    try:
        appointment = await update_appointment(session, appointment_id, body)
    except BookingError as e:
        logger.info("Update of appointment %s refused: %s", appointment_id, e.message)
        raise booking_http_error(e) from e
    return _to_public(appointment)


@router.post("/{appointment_id}/cancel", response_model=AppointmentPublic)
async def cancel(
    appointment_id: int,
    body: CancelAppointmentRequest | None = None,
    session: AsyncSession = Depends(get_session),
) -> AppointmentPublic:
    try:
        appointment = await cancel_appointment(
            session, appointment_id, reason=body.reason if body else None
        )
    except BookingError as e:
        raise booking_http_error(e) from e
    return _to_public(appointment)

