from datetime import UTC, date, datetime, time
from decimal import Decimal
from enum import Enum

from sqlalchemy import Column, DateTime
from sqlmodel import Field, SQLModel


def _utc_naive_now() -> datetime:
    """Naive UTC for TIMESTAMP WITHOUT TIME ZONE columns."""
    return datetime.now(UTC).replace(tzinfo=None)


class AppointmentStatus(str, Enum):
    CONFIRMED = "confirmed"
    IN_PROGRESS = "in_progress"
    COMPLETED = "completed"
    CANCELLED = "cancelled"


class PaymentStatus(str, Enum):
    PENDING = "pending"
    PAID = "paid"


class Appointment(SQLModel, table=True):
    __tablename__ = "appointments"
    id: int | None = Field(default=None, primary_key=True)
    patient_id: int = Field(foreign_key="patients.id", index=True)
    professional_id: int | None = Field(default=None, foreign_key="professionals.id", index=True)
    service_id: int = Field(foreign_key="services.id", index=True)
    sub_service_id: int | None = Field(default=None, foreign_key="sub_services.id")
    resource_id: int | None = Field(default=None, foreign_key="resources.id", index=True)
    # False for families where one professional supervises parallel units
    blocks_professional: bool = True
    appointment_date: date = Field(index=True)
    start_time: time
    end_time: time
    duration_minutes: int
    # Soft delete: cancelled rows stay for reporting
    status: str = Field(default=AppointmentStatus.CONFIRMED.value, max_length=20, index=True)
    payment_status: str = Field(default=PaymentStatus.PENDING.value, max_length=20)
    total_amount: Decimal = Field(default=Decimal("0"), max_digits=12, decimal_places=2)
    notes: str | None = None
    # Naive UTC, stored as TIMESTAMP WITHOUT TIME ZONE
    cancelled_at: datetime | None = Field(default=None, sa_column=Column(DateTime(), nullable=True))
    cancellation_reason: str | None = None
    created_at: datetime = Field(default_factory=_utc_naive_now, sa_column=Column(DateTime(), nullable=False))
    updated_at: datetime = Field(default_factory=_utc_naive_now, sa_column=Column(DateTime(), nullable=False))


class AppointmentCreate(SQLModel):
    patient_id: int
    service_id: int
    sub_service_id: int | None = None
    professional_id: int | None = None
    resource_id: int | None = None  # None: first free unit is assigned
    appointment_date: date
    start_time: time
    notes: str | None = None


class AppointmentUpdate(SQLModel):
    appointment_date: date | None = None
    start_time: time | None = None
    sub_service_id: int | None = None
    professional_id: int | None = None
    resource_id: int | None = None
    status: AppointmentStatus | None = None
    notes: str | None = None


class AppointmentPublic(SQLModel):
    id: int
    patient_id: int
    professional_id: int | None = None
    service_id: int
    sub_service_id: int | None = None
    resource_id: int | None = None
    appointment_date: date
    start_time: time
    end_time: time
    duration_minutes: int
    status: AppointmentStatus
    payment_status: PaymentStatus
    total_amount: Decimal
    notes: str | None = None
    cancelled_at: datetime | None = None
    cancellation_reason: str | None = None
    created_at: datetime
