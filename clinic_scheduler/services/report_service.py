from dataclasses import dataclass, field
from datetime import date
from decimal import Decimal

from sqlalchemy import func, select
from sqlalchemy.ext.asyncio import AsyncSession

from clinic_scheduler.models.appointment import Appointment, AppointmentStatus
from clinic_scheduler.models.resource import Resource


@dataclass
class ReportSummary:
    from_date: date
    to_date: date
    total: int = 0
    by_status: dict[str, int] = field(default_factory=dict)
    # Non-cancelled appointments per resource family
    by_kind: dict[str, int] = field(default_factory=dict)
    completed_revenue: Decimal = Decimal("0")


async def get_summary(session: AsyncSession, from_date: date, to_date: date) -> ReportSummary:
    """Counts and revenue for appointments dated within [from_date, to_date]."""
    in_range = (
        Appointment.appointment_date >= from_date,
        Appointment.appointment_date <= to_date,
    )
    summary = ReportSummary(from_date=from_date, to_date=to_date)
    summary.by_status = {s.value: 0 for s in AppointmentStatus}

    result = await session.execute(
        select(Appointment.status, func.count(Appointment.id)).where(*in_range).group_by(Appointment.status)
    )
    for status, count in result.all():
        summary.by_status[status] = count
    summary.total = sum(summary.by_status.values())

    result = await session.execute(
        select(Resource.kind, func.count(Appointment.id))
        .select_from(Appointment)
        .join(Resource, Appointment.resource_id == Resource.id)
        .where(*in_range, Appointment.status != AppointmentStatus.CANCELLED.value)
        .group_by(Resource.kind)
    )
    summary.by_kind = {kind: count for kind, count in result.all()}

    result = await session.execute(
        select(func.coalesce(func.sum(Appointment.total_amount), 0)).where(
            *in_range, Appointment.status == AppointmentStatus.COMPLETED.value
        )
    )
    summary.completed_revenue = Decimal(str(result.scalar_one()))
    return summary
