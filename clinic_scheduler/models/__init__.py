from clinic_scheduler.models.patient import Patient, PatientCreate, PatientPublic
from clinic_scheduler.models.professional import Professional, ProfessionalCreate, ProfessionalPublic
from clinic_scheduler.models.resource import Resource, ResourceKind, ResourcePublic, ResourceStatus
from clinic_scheduler.models.service import (
    Service,
    ServiceCreate,
    ServicePublic,
    SubService,
    SubServiceCreate,
    SubServicePublic,
)
from clinic_scheduler.models.appointment import (
    Appointment,
    AppointmentCreate,
    AppointmentPublic,
    AppointmentStatus,
    AppointmentUpdate,
    PaymentStatus,
)

__all__ = [
    "Patient",
    "PatientCreate",
    "PatientPublic",
    "Professional",
    "ProfessionalCreate",
    "ProfessionalPublic",
    "Resource",
    "ResourceKind",
    "ResourcePublic",
    "ResourceStatus",
    "Service",
    "ServiceCreate",
    "ServicePublic",
    "SubService",
    "SubServiceCreate",
    "SubServicePublic",
    "Appointment",
    "AppointmentCreate",
    "AppointmentPublic",
    "AppointmentStatus",
    "AppointmentUpdate",
    "PaymentStatus",
]
