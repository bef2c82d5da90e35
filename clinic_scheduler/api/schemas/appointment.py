from datetime import date, time

from pydantic import BaseModel, Field

from clinic_scheduler.models.resource import ResourceKind


class SlotGridResponse(BaseModel):
    step_minutes: int
    closing_time: str  # HH:MM
    slots: list[str]


class DaySlotInfo(BaseModel):
    time: str  # HH:MM
    occupied_numbers: list[int]
    free_count: int
    capacity: int


class DayCalendarResponse(BaseModel):
    date: str  # YYYY-MM-DD
    kind: ResourceKind
    slots: list[DaySlotInfo]


class AvailabilityCheckRequest(BaseModel):
    kind: ResourceKind | None = None  # derived from service_id when omitted
    appointment_date: date
    start_time: time
    service_id: int | None = None
    sub_service_id: int | None = None
    duration_minutes: int | None = Field(default=None, ge=0)  # overrides the service duration
    professional_id: int | None = None
    exclude_appointment_id: int | None = None  # set when editing an existing booking


class UnitAvailabilityInfo(BaseModel):
    resource_id: int
    number: int
    name: str
    is_available: bool


class AvailabilityResponse(BaseModel):
    kind: ResourceKind
    appointment_date: date
    start_time: time
    end_time: time
    duration_minutes: int
    closing_time_exceeded: bool
    professional_available: bool | None = None
    is_available: bool
    free_count: int
    capacity: int
    occupied_numbers: list[int]
    message: str
    resources: list[UnitAvailabilityInfo]


class CancelAppointmentRequest(BaseModel):
    reason: str | None = None
