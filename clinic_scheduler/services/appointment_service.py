import logging
from datetime import UTC, date, datetime
from decimal import Decimal

from sqlalchemy import select
from sqlalchemy.exc import IntegrityError
from sqlalchemy.ext.asyncio import AsyncSession

from clinic_scheduler.core.config import settings
from clinic_scheduler.models.appointment import (
    Appointment,
    AppointmentCreate,
    AppointmentStatus,
    AppointmentUpdate,
    PaymentStatus,
)
from clinic_scheduler.models.patient import Patient
from clinic_scheduler.models.professional import Professional
from clinic_scheduler.models.resource import Resource, ResourceKind
from clinic_scheduler.models.service import Service, SubService
from clinic_scheduler.services.availability_service import AvailabilityResult, check_availability
from clinic_scheduler.services.errors import (
    AppointmentNotFoundError,
    BookingValidationError,
    ClosingTimeError,
    NoResourceAvailableError,
    SlotUnavailableError,
)
from clinic_scheduler.services.resource_families import ResourceFamily, get_family

logger = logging.getLogger(__name__)

DEFAULT_CANCELLATION_REASON = "Cancelled by administrator"


def _utc_naive_now() -> datetime:
    """Naive UTC for comparison with TIMESTAMP WITHOUT TIME ZONE."""
    return datetime.now(UTC).replace(tzinfo=None)


async def _load_service(
    session: AsyncSession, service_id: int, sub_service_id: int | None
) -> tuple[Service, SubService | None]:
    service = await session.get(Service, service_id)
    if not service or not service.active:
        raise BookingValidationError("Please select a service")
    if not service.resource_kind:
        raise BookingValidationError(f"Service '{service.name}' is not booked on a room, chamber or station")
    sub_service = None
    if sub_service_id is not None:
        sub_service = await session.get(SubService, sub_service_id)
        if not sub_service or sub_service.service_id != service.id or not sub_service.active:
            raise BookingValidationError("The selected sub-service does not belong to this service")
    return service, sub_service


def _duration_and_amount(service: Service, sub_service: SubService | None) -> tuple[int, Decimal]:
    if sub_service is not None:
        duration = sub_service.duration_minutes or service.duration_minutes
        amount = sub_service.price
    else:
        duration = service.duration_minutes
        amount = service.base_price
    return duration or settings.default_duration_minutes, Decimal(amount or 0)


async def _validate_professional(
    session: AsyncSession, family: ResourceFamily, professional_id: int | None
) -> None:
    if professional_id is None:
        if family.professional_exclusive:
            raise BookingValidationError("Please select a professional")
        return
    professional = await session.get(Professional, professional_id)
    if not professional or not professional.active:
        raise BookingValidationError("The selected professional does not exist or is inactive")


def _assign_unit(
    availability: AvailabilityResult,
    requested_id: int | None,
    fall_back_to_free: bool = False,
) -> int:
    """Pick the unit to book. requested_id=None takes the lowest-numbered free unit."""
    if availability.closing_time_exceeded:
        raise ClosingTimeError(availability.message)
    if availability.professional_available is False:
        raise SlotUnavailableError(availability.message)
    if requested_id is not None:
        unit = next((u for u in availability.resources if u.resource_id == requested_id), None)
        if unit is None:
            raise BookingValidationError(
                f"Resource {requested_id} is not a {availability.label.lower()}"
            )
        if unit.is_available:
            return unit.resource_id
        if not fall_back_to_free:
            raise SlotUnavailableError(f"{unit.name} is not available at this time")
    free = availability.free_resources
    if not free:
        raise NoResourceAvailableError(availability.message)
    return free[0].resource_id


async def _flush_or_conflict(session: AsyncSession) -> None:
    """Flush; an exclusion/unique constraint violation means someone booked the slot first."""
    try:
        await session.flush()
    except IntegrityError as e:
        await session.rollback()
        logger.warning("Booking rejected by database constraint: %s", e.orig)
        raise SlotUnavailableError(
            "The selected slot was just booked by someone else. Please choose another time."
        ) from e


async def create_appointment(session: AsyncSession, data: AppointmentCreate) -> Appointment:
    patient = await session.get(Patient, data.patient_id)
    if not patient:
        raise BookingValidationError("Please select a patient")
    service, sub_service = await _load_service(session, data.service_id, data.sub_service_id)
    family = get_family(service.resource_kind)
    await _validate_professional(session, family, data.professional_id)
    duration, amount = _duration_and_amount(service, sub_service)

    # Re-check under row locks on the family's units so concurrent bookings serialize
    availability = await check_availability(
        session,
        family,
        data.appointment_date,
        data.start_time,
        duration,
        professional_id=data.professional_id,
        lock=True,
    )
    resource_id = _assign_unit(availability, data.resource_id)

    appointment = Appointment(
        patient_id=patient.id,
        professional_id=data.professional_id,
        service_id=service.id,
        sub_service_id=sub_service.id if sub_service else None,
        resource_id=resource_id,
        blocks_professional=family.professional_exclusive,
        appointment_date=data.appointment_date,
        start_time=availability.start_time,
        end_time=availability.end_time,
        duration_minutes=duration,
        status=AppointmentStatus.CONFIRMED.value,
        payment_status=PaymentStatus.PENDING.value,
        total_amount=amount,
        notes=data.notes,
    )
    session.add(appointment)
    await _flush_or_conflict(session)
    await session.refresh(appointment)
    logger.info(
        "Booked appointment %s: %s %s on %s %s-%s",
        appointment.id,
        family.kind.value,
        resource_id,
        appointment.appointment_date,
        appointment.start_time,
        appointment.end_time,
    )
    return appointment


async def get_appointment(session: AsyncSession, appointment_id: int) -> Appointment:
    appointment = await session.get(Appointment, appointment_id)
    if not appointment:
        raise AppointmentNotFoundError(f"Appointment {appointment_id} not found")
    return appointment


# Edits to any of these re-run validation and the availability check
_SCHEDULE_FIELDS = ("appointment_date", "start_time", "sub_service_id", "professional_id", "resource_id")


def _schedule_changes(appointment: Appointment, fields: dict) -> dict:
    changes = {}
    for name in _SCHEDULE_FIELDS:
        if name not in fields:
            continue
        value = fields[name]
        # None means "keep" for the date/time and "any free unit" for the resource
        if value is None and name in ("appointment_date", "start_time", "resource_id"):
            continue
        if value != getattr(appointment, name):
            changes[name] = value
    return changes


async def _reschedule(session: AsyncSession, appointment: Appointment, changes: dict) -> None:
    sub_service_id = changes.get("sub_service_id", appointment.sub_service_id)
    service, sub_service = await _load_service(session, appointment.service_id, sub_service_id)
    family = get_family(service.resource_kind)
    professional_id = changes.get("professional_id", appointment.professional_id)
    await _validate_professional(session, family, professional_id)
    duration, amount = _duration_and_amount(service, sub_service)
    appointment_date = changes.get("appointment_date", appointment.appointment_date)

    availability = await check_availability(
        session,
        family,
        appointment_date,
        changes.get("start_time", appointment.start_time),
        duration,
        professional_id=professional_id,
        exclude_appointment_id=appointment.id,
        lock=True,
    )
    requested = changes.get("resource_id", appointment.resource_id)
    # Keep the current unit when it is still free, otherwise move to the first free one
    resource_id = _assign_unit(
        availability, requested, fall_back_to_free="resource_id" not in changes
    )

    appointment.appointment_date = appointment_date
    appointment.start_time = availability.start_time
    appointment.end_time = availability.end_time
    appointment.duration_minutes = duration
    appointment.sub_service_id = sub_service.id if sub_service else None
    appointment.professional_id = professional_id
    appointment.resource_id = resource_id
    appointment.blocks_professional = family.professional_exclusive
    appointment.total_amount = amount


async def update_appointment(
    session: AsyncSession, appointment_id: int, data: AppointmentUpdate
) -> Appointment:
    """Reschedule or edit; the appointment is excluded from its own conflict check.

    Status and notes edits are written as-is. Only a change of date, time,
    unit, professional or sub-service re-validates against the catalog and
    re-prices the booking.
    """
    appointment = await get_appointment(session, appointment_id)
    if appointment.status == AppointmentStatus.CANCELLED:
        raise BookingValidationError("Cancelled appointments cannot be edited")
    if data.status == AppointmentStatus.CANCELLED:
        return await cancel_appointment(session, appointment_id)

    fields = data.model_dump(exclude_unset=True)
    changes = _schedule_changes(appointment, fields)
    if changes:
        await _reschedule(session, appointment, changes)
    if data.status is not None:
        appointment.status = data.status.value
    if "notes" in fields:
        appointment.notes = data.notes
    appointment.updated_at = _utc_naive_now()
    session.add(appointment)
    await _flush_or_conflict(session)
    await session.refresh(appointment)
    logger.info("Updated appointment %s (%s)", appointment.id, ", ".join(sorted(changes)) or "status/notes")
    return appointment


async def cancel_appointment(
    session: AsyncSession, appointment_id: int, reason: str | None = None
) -> Appointment:
    """Soft delete: the row is kept with status cancelled for reporting."""
    appointment = await get_appointment(session, appointment_id)
    if appointment.status == AppointmentStatus.CANCELLED:
        return appointment
    now = _utc_naive_now()
    appointment.status = AppointmentStatus.CANCELLED.value
    appointment.cancelled_at = now
    appointment.cancellation_reason = reason or DEFAULT_CANCELLATION_REASON
    appointment.updated_at = now
    session.add(appointment)
    await session.flush()
    await session.refresh(appointment)
    logger.info("Cancelled appointment %s: %s", appointment.id, appointment.cancellation_reason)
    return appointment


async def list_appointments(
    session: AsyncSession,
    appointment_date: date | None = None,
    kind: ResourceKind | None = None,
    status: AppointmentStatus | None = None,
    professional_id: int | None = None,
) -> list[Appointment]:
    q = select(Appointment).order_by(Appointment.appointment_date, Appointment.start_time)
    if appointment_date:
        q = q.where(Appointment.appointment_date == appointment_date)
    if kind:
        q = q.join(Resource, Appointment.resource_id == Resource.id).where(Resource.kind == kind.value)
    if status:
        q = q.where(Appointment.status == status.value)
    if professional_id is not None:
        q = q.where(Appointment.professional_id == professional_id)
    result = await session.execute(q)
    return list(result.scalars().all())


async def resolve_service_duration(
    session: AsyncSession, service_id: int, sub_service_id: int | None = None
) -> tuple[ResourceFamily, int]:
    """Family and session length a service (and optional sub-service) books."""
    service, sub_service = await _load_service(session, service_id, sub_service_id)
    duration, _ = _duration_and_amount(service, sub_service)
    return get_family(service.resource_kind), duration
