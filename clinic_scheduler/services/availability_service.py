"""
Availability checks for every resource family.

One routine serves consultation rooms, the hyperbaric chamber and the drips
stations. A candidate interval is free on a unit when no non-cancelled
appointment assigned to that unit overlaps it ([start, end) semantics). For
professional-exclusive families the professional must be free as well.

Checks are read-only. The booking writer re-runs them under row locks.
"""
from dataclasses import dataclass, field
from datetime import date, time

from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from clinic_scheduler.core.config import Settings, settings as default_settings
from clinic_scheduler.models.appointment import Appointment, AppointmentStatus
from clinic_scheduler.models.professional import Professional
from clinic_scheduler.models.resource import ResourceKind, ResourceStatus
from clinic_scheduler.services.resource_families import ResourceFamily, list_family_resources
from clinic_scheduler.services.slot_service import (
    end_time_for,
    exceeds_closing_time,
    find_overlapping,
    format_slot,
    generate_time_slots,
    parse_time,
    slot_occupancy,
)


@dataclass
class UnitAvailability:
    resource_id: int
    number: int
    name: str
    is_available: bool


@dataclass
class AvailabilityResult:
    kind: ResourceKind
    label: str
    appointment_date: date
    start_time: time
    end_time: time
    duration_minutes: int
    closing_time: time
    closing_time_exceeded: bool = False
    professional_available: bool | None = None
    resources: list[UnitAvailability] = field(default_factory=list)

    @property
    def capacity(self) -> int:
        return len(self.resources)

    @property
    def free_resources(self) -> list[UnitAvailability]:
        return [r for r in self.resources if r.is_available]

    @property
    def free_count(self) -> int:
        return len(self.free_resources)

    @property
    def occupied_numbers(self) -> list[int]:
        return [r.number for r in self.resources if not r.is_available]

    @property
    def is_available(self) -> bool:
        if self.closing_time_exceeded or self.professional_available is False:
            return False
        return self.free_count > 0

    @property
    def message(self) -> str:
        if self.closing_time_exceeded:
            return (
                f"The session would end after {format_slot(self.closing_time)}. "
                "Please choose an earlier time."
            )
        if self.professional_available is False:
            return "The professional is not available at this time"
        if self.free_count == 0:
            return f"No {self.label.lower()} available at this time"
        return f"{self.free_count}/{self.capacity} available"


@dataclass
class DaySlot:
    time: str
    occupied_numbers: list[int]
    free_count: int
    capacity: int


def slot_grid(cfg: Settings | None = None) -> list[str]:
    cfg = cfg or default_settings
    return generate_time_slots(
        cfg.opening_hour,
        cfg.last_slot_hour,
        cfg.slot_step_minutes,
        extra_slots=cfg.extra_slots_list,
    )


async def _day_appointments(
    session: AsyncSession,
    appointment_date: date,
    *conditions,
    exclude_appointment_id: int | None = None,
) -> list[Appointment]:
    """Non-cancelled appointments on the date matching the extra conditions."""
    q = select(Appointment).where(
        Appointment.appointment_date == appointment_date,
        Appointment.status != AppointmentStatus.CANCELLED.value,
        *conditions,
    )
    if exclude_appointment_id is not None:
        q = q.where(Appointment.id != exclude_appointment_id)
    result = await session.execute(q.order_by(Appointment.start_time))
    return list(result.scalars().all())


async def lock_professional(session: AsyncSession, professional_id: int) -> None:
    """Row-lock the professional so bookings across families serialize on them."""
    await session.execute(
        select(Professional.id).where(Professional.id == professional_id).with_for_update()
    )


async def is_professional_free(
    session: AsyncSession,
    professional_id: int,
    appointment_date: date,
    start: time,
    end: time,
    exclude_appointment_id: int | None = None,
) -> bool:
    """Sessions that do not block their professional (parallel drips) are ignored."""
    booked = await _day_appointments(
        session,
        appointment_date,
        Appointment.professional_id == professional_id,
        Appointment.blocks_professional == True,  # noqa: E712
        exclude_appointment_id=exclude_appointment_id,
    )
    return not find_overlapping(start, end, booked)


async def check_availability(
    session: AsyncSession,
    family: ResourceFamily,
    appointment_date: date,
    start_time: str | time,
    duration_minutes: int | None = None,
    professional_id: int | None = None,
    exclude_appointment_id: int | None = None,
    lock: bool = False,
    cfg: Settings | None = None,
) -> AvailabilityResult:
    """Report which units of the family (and whether the professional) are free.

    exclude_appointment_id drops that appointment from the data, so an edited
    booking never conflicts with itself.
    """
    cfg = cfg or default_settings
    start = parse_time(start_time)
    duration = cfg.default_duration_minutes if duration_minutes is None else duration_minutes
    closing = parse_time(cfg.closing_time)
    result = AvailabilityResult(
        kind=family.kind,
        label=family.label,
        appointment_date=appointment_date,
        start_time=start,
        end_time=end_time_for(start, duration),
        duration_minutes=duration,
        closing_time=closing,
    )
    if exceeds_closing_time(start, duration, closing):
        result.closing_time_exceeded = True
        return result

    # Lock order: family units, then the professional
    units = await list_family_resources(session, family, lock=lock)

    if professional_id is not None and family.professional_exclusive:
        if lock:
            await lock_professional(session, professional_id)
        result.professional_available = await is_professional_free(
            session,
            professional_id,
            appointment_date,
            result.start_time,
            result.end_time,
            exclude_appointment_id=exclude_appointment_id,
        )

    occupied: set[int] = set()
    if units:
        booked = await _day_appointments(
            session,
            appointment_date,
            Appointment.resource_id.in_([u.id for u in units]),
            exclude_appointment_id=exclude_appointment_id,
        )
        occupied = {b.resource_id for b in find_overlapping(result.start_time, result.end_time, booked)}
    result.resources = [
        UnitAvailability(
            resource_id=u.id,
            number=u.number,
            name=u.name,
            is_available=u.status == ResourceStatus.AVAILABLE.value and u.id not in occupied,
        )
        for u in units
    ]
    return result


async def family_day_occupancy(
    session: AsyncSession,
    family: ResourceFamily,
    appointment_date: date,
    slot_labels: list[str] | None = None,
) -> list[DaySlot]:
    """Calendar cells for one day: occupied unit numbers and free count per slot."""
    labels = slot_labels if slot_labels is not None else slot_grid()
    units = await list_family_resources(session, family)
    if not units:
        return [DaySlot(time=label, occupied_numbers=[], free_count=0, capacity=0) for label in labels]
    number_by_id = {u.id: u.number for u in units}
    in_service = {u.number for u in units if u.status == ResourceStatus.AVAILABLE.value}
    booked = await _day_appointments(
        session,
        appointment_date,
        Appointment.resource_id.in_(list(number_by_id)),
    )
    cells = slot_occupancy(labels, booked)
    out: list[DaySlot] = []
    for label in labels:
        occupied = sorted({number_by_id[b.resource_id] for b in cells[label]})
        out.append(
            DaySlot(
                time=label,
                occupied_numbers=occupied,
                free_count=len(in_service - set(occupied)),
                capacity=len(units),
            )
        )
    return out
