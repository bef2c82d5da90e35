from datetime import date, time
from decimal import Decimal

import pytest
from sqlalchemy.exc import IntegrityError

from clinic_scheduler.models.appointment import AppointmentCreate, AppointmentStatus, AppointmentUpdate
from clinic_scheduler.models.resource import ResourceKind
from clinic_scheduler.services import appointment_service
from clinic_scheduler.services.appointment_service import (
    DEFAULT_CANCELLATION_REASON,
    cancel_appointment,
    create_appointment,
    get_appointment,
    list_appointments,
    resolve_service_duration,
    update_appointment,
)
from clinic_scheduler.services.errors import (
    AppointmentNotFoundError,
    BookingValidationError,
    ClosingTimeError,
    NoResourceAvailableError,
    SlotUnavailableError,
)
from clinic_scheduler.services.availability_service import check_availability
from clinic_scheduler.services.report_service import get_summary
from clinic_scheduler.services.resource_families import get_family, list_family_resources

DAY = date(2026, 11, 4)


async def _unit_ids(session, kind):
    return [u.id for u in await list_family_resources(session, get_family(kind))]


def _chamber_booking(patient, doctor, service, start="10:00", **extra):
    return AppointmentCreate(
        patient_id=patient.id,
        service_id=service.id,
        professional_id=doctor.id,
        appointment_date=DAY,
        start_time=start,
        **extra,
    )


async def test_books_chamber_with_service_duration_and_price(
    session, resources, patient, doctor, chamber_service
):
    appointment = await create_appointment(session, _chamber_booking(patient, doctor, chamber_service))
    (chamber_id,) = await _unit_ids(session, ResourceKind.HYPERBARIC_CHAMBER)
    assert appointment.id is not None
    assert appointment.resource_id == chamber_id
    assert appointment.start_time == time(10, 0)
    assert appointment.end_time == time(11, 0)
    assert appointment.duration_minutes == 60
    assert appointment.status == AppointmentStatus.CONFIRMED
    assert appointment.total_amount == Decimal("150.00")


async def test_sub_service_sets_duration_and_price(
    session, resources, patient, nurse, drips_service, hydration_drip
):
    appointment = await create_appointment(
        session,
        AppointmentCreate(
            patient_id=patient.id,
            service_id=drips_service.id,
            sub_service_id=hydration_drip.id,
            professional_id=nurse.id,
            appointment_date=DAY,
            start_time="15:00",
        ),
    )
    assert appointment.end_time == time(16, 30)
    assert appointment.duration_minutes == 90
    assert appointment.total_amount == Decimal("95.00")


async def test_closing_time_is_rejected_before_any_write(
    session, resources, patient, doctor, chamber_service
):
    with pytest.raises(ClosingTimeError):
        await create_appointment(session, _chamber_booking(patient, doctor, chamber_service, "18:15"))
    assert await list_appointments(session, appointment_date=DAY) == []


async def test_second_chamber_booking_without_unit_is_a_validation_error(
    session, resources, patient, other_patient, doctor, other_doctor, chamber_service
):
    await create_appointment(session, _chamber_booking(patient, doctor, chamber_service))
    booking = AppointmentCreate(
        patient_id=other_patient.id,
        service_id=chamber_service.id,
        professional_id=other_doctor.id,
        appointment_date=DAY,
        start_time="10:30",
    )
    with pytest.raises(NoResourceAvailableError) as exc:
        await create_appointment(session, booking)
    assert exc.value.message == "No hyperbaric chamber available at this time"


async def test_requested_unit_that_is_taken_is_a_conflict(
    session, resources, patient, doctor, other_doctor, chamber_service
):
    (chamber_id,) = await _unit_ids(session, ResourceKind.HYPERBARIC_CHAMBER)
    await create_appointment(session, _chamber_booking(patient, doctor, chamber_service))
    booking = _chamber_booking(patient, other_doctor, chamber_service, "10:45", resource_id=chamber_id)
    with pytest.raises(SlotUnavailableError):
        await create_appointment(session, booking)


async def test_busy_professional_is_a_conflict(
    session, resources, patient, other_patient, doctor, consultation_service
):
    await create_appointment(
        session,
        AppointmentCreate(
            patient_id=patient.id,
            service_id=consultation_service.id,
            professional_id=doctor.id,
            appointment_date=DAY,
            start_time="09:00",
        ),
    )
    with pytest.raises(SlotUnavailableError):
        await create_appointment(
            session,
            AppointmentCreate(
                patient_id=other_patient.id,
                service_id=consultation_service.id,
                professional_id=doctor.id,
                appointment_date=DAY,
                start_time="09:15",
            ),
        )


async def test_rooms_are_assigned_lowest_number_first(
    session, resources, patient, doctor, other_doctor, nurse, consultation_service
):
    room_ids = await _unit_ids(session, ResourceKind.CONSULTATION_ROOM)
    assigned = []
    for professional in (doctor, other_doctor, nurse):
        appointment = await create_appointment(
            session,
            AppointmentCreate(
                patient_id=patient.id,
                service_id=consultation_service.id,
                professional_id=professional.id,
                appointment_date=DAY,
                start_time="09:00",
            ),
        )
        assigned.append(appointment.resource_id)
    assert assigned == room_ids


async def test_drips_fill_all_five_stations(
    session, resources, patient, nurse, drips_service, vitamin_drip
):
    def booking():
        return AppointmentCreate(
            patient_id=patient.id,
            service_id=drips_service.id,
            sub_service_id=vitamin_drip.id,
            professional_id=nurse.id,
            appointment_date=DAY,
            start_time="14:00",
        )

    station_ids = {(await create_appointment(session, booking())).resource_id for _ in range(5)}
    assert station_ids == set(await _unit_ids(session, ResourceKind.DRIPS_STATION))
    with pytest.raises(NoResourceAvailableError):
        await create_appointment(session, booking())


async def test_drips_do_not_need_a_professional(session, resources, patient, drips_service, vitamin_drip):
    appointment = await create_appointment(
        session,
        AppointmentCreate(
            patient_id=patient.id,
            service_id=drips_service.id,
            sub_service_id=vitamin_drip.id,
            appointment_date=DAY,
            start_time="08:00",
        ),
    )
    assert appointment.professional_id is None


async def test_validation_errors(session, resources, patient, doctor, chamber_service, drips_service, vitamin_drip):
    with pytest.raises(BookingValidationError, match="professional"):
        await create_appointment(
            session,
            AppointmentCreate(
                patient_id=patient.id,
                service_id=chamber_service.id,
                appointment_date=DAY,
                start_time="10:00",
            ),
        )
    with pytest.raises(BookingValidationError, match="patient"):
        await create_appointment(
            session,
            AppointmentCreate(
                patient_id=9999,
                service_id=chamber_service.id,
                professional_id=doctor.id,
                appointment_date=DAY,
                start_time="10:00",
            ),
        )
    with pytest.raises(BookingValidationError, match="sub-service"):
        await create_appointment(
            session,
            _chamber_booking(patient, doctor, chamber_service, sub_service_id=vitamin_drip.id),
        )
    drips_station_id = (await _unit_ids(session, ResourceKind.DRIPS_STATION))[0]
    with pytest.raises(BookingValidationError, match="not a hyperbaric chamber"):
        await create_appointment(
            session,
            _chamber_booking(patient, doctor, chamber_service, resource_id=drips_station_id),
        )


async def test_database_constraint_violation_becomes_conflict(
    session, resources, patient, doctor, chamber_service, monkeypatch
):
    async def failing_flush():
        raise IntegrityError("INSERT INTO appointments", {}, Exception("exclusion violation"))

    monkeypatch.setattr(session, "flush", failing_flush)
    with pytest.raises(SlotUnavailableError, match="just booked"):
        await create_appointment(session, _chamber_booking(patient, doctor, chamber_service))


async def test_reschedule_keeps_unit_and_excludes_itself(
    session, resources, patient, doctor, chamber_service
):
    appointment = await create_appointment(session, _chamber_booking(patient, doctor, chamber_service))
    resource_id = appointment.resource_id

    moved = await update_appointment(session, appointment.id, AppointmentUpdate(start_time=time(10, 30)))
    assert moved.id == appointment.id
    assert moved.resource_id == resource_id
    assert moved.start_time == time(10, 30)
    assert moved.end_time == time(11, 30)


async def test_reschedule_onto_taken_slot_is_refused(
    session, resources, patient, other_patient, doctor, other_doctor, chamber_service
):
    await create_appointment(session, _chamber_booking(patient, doctor, chamber_service, "09:00"))
    later = await create_appointment(
        session, _chamber_booking(other_patient, other_doctor, chamber_service, "11:00")
    )
    with pytest.raises(NoResourceAvailableError):
        await update_appointment(session, later.id, AppointmentUpdate(start_time=time(9, 30)))
    with pytest.raises(ClosingTimeError):
        await update_appointment(session, later.id, AppointmentUpdate(start_time=time(18, 30)))
    unchanged = await get_appointment(session, later.id)
    assert unchanged.start_time == time(11, 0)


async def test_reschedule_moves_to_a_free_room(
    session, resources, patient, other_patient, doctor, other_doctor, consultation_service
):
    first = await create_appointment(
        session,
        AppointmentCreate(
            patient_id=patient.id,
            service_id=consultation_service.id,
            professional_id=doctor.id,
            appointment_date=DAY,
            start_time="09:00",
        ),
    )
    second = await create_appointment(
        session,
        AppointmentCreate(
            patient_id=other_patient.id,
            service_id=consultation_service.id,
            professional_id=other_doctor.id,
            appointment_date=DAY,
            start_time="10:00",
        ),
    )
    assert first.resource_id == second.resource_id

    moved = await update_appointment(session, second.id, AppointmentUpdate(start_time=time(9, 0)))
    assert moved.resource_id != first.resource_id


async def test_cancel_is_a_soft_delete(session, resources, patient, doctor, other_doctor, chamber_service):
    appointment = await create_appointment(session, _chamber_booking(patient, doctor, chamber_service))
    cancelled = await cancel_appointment(session, appointment.id)
    assert cancelled.status == AppointmentStatus.CANCELLED
    assert cancelled.cancelled_at is not None
    assert cancelled.cancellation_reason == DEFAULT_CANCELLATION_REASON
    # The row is kept
    assert (await get_appointment(session, appointment.id)).id == appointment.id

    # And the slot is free again
    rebooked = await create_appointment(
        session, _chamber_booking(patient, other_doctor, chamber_service)
    )
    assert rebooked.resource_id == appointment.resource_id


async def test_cancel_is_idempotent_and_keeps_first_reason(
    session, resources, patient, doctor, chamber_service
):
    appointment = await create_appointment(session, _chamber_booking(patient, doctor, chamber_service))
    await cancel_appointment(session, appointment.id, reason="Patient called in sick")
    again = await cancel_appointment(session, appointment.id, reason="Other")
    assert again.cancellation_reason == "Patient called in sick"
    with pytest.raises(BookingValidationError):
        await update_appointment(session, appointment.id, AppointmentUpdate(start_time=time(12, 0)))


async def test_update_to_cancelled_status_cancels(session, resources, patient, doctor, chamber_service):
    appointment = await create_appointment(session, _chamber_booking(patient, doctor, chamber_service))
    updated = await update_appointment(
        session, appointment.id, AppointmentUpdate(status=AppointmentStatus.CANCELLED)
    )
    assert updated.status == AppointmentStatus.CANCELLED
    assert updated.cancelled_at is not None


async def test_missing_appointment(session):
    with pytest.raises(AppointmentNotFoundError):
        await get_appointment(session, 404)
    with pytest.raises(AppointmentNotFoundError):
        await cancel_appointment(session, 404)


async def test_list_filters(
    session, resources, patient, doctor, nurse, chamber_service, drips_service, vitamin_drip
):
    chamber = await create_appointment(session, _chamber_booking(patient, doctor, chamber_service))
    drip = await create_appointment(
        session,
        AppointmentCreate(
            patient_id=patient.id,
            service_id=drips_service.id,
            sub_service_id=vitamin_drip.id,
            professional_id=nurse.id,
            appointment_date=DAY,
            start_time="09:00",
        ),
    )
    await cancel_appointment(session, chamber.id)

    assert [a.id for a in await list_appointments(session, appointment_date=DAY)] == [drip.id, chamber.id]
    assert [a.id for a in await list_appointments(session, kind=ResourceKind.DRIPS_STATION)] == [drip.id]
    assert [
        a.id for a in await list_appointments(session, status=AppointmentStatus.CANCELLED)
    ] == [chamber.id]
    assert [a.id for a in await list_appointments(session, professional_id=nurse.id)] == [drip.id]
    assert await list_appointments(session, appointment_date=date(2026, 11, 5)) == []


async def test_resolve_service_duration(session, chamber_service, drips_service, vitamin_drip):
    family, duration = await resolve_service_duration(session, chamber_service.id)
    assert family.kind == ResourceKind.HYPERBARIC_CHAMBER
    assert duration == 60
    family, duration = await resolve_service_duration(session, drips_service.id, vitamin_drip.id)
    assert family.kind == ResourceKind.DRIPS_STATION
    assert duration == 45
    # Service without its own duration falls back to the default hour
    _, duration = await resolve_service_duration(session, drips_service.id)
    assert duration == appointment_service.settings.default_duration_minutes


async def test_summary_counts_and_revenue(session, resources, patient, doctor, other_doctor, chamber_service):
    done = await create_appointment(session, _chamber_booking(patient, doctor, chamber_service, "09:00"))
    await update_appointment(session, done.id, AppointmentUpdate(status=AppointmentStatus.COMPLETED))
    dropped = await create_appointment(session, _chamber_booking(patient, other_doctor, chamber_service, "11:00"))
    await cancel_appointment(session, dropped.id)
    await create_appointment(session, _chamber_booking(patient, doctor, chamber_service, "13:00"))

    summary = await get_summary(session, DAY, DAY)
    assert summary.total == 3
    assert summary.by_status[AppointmentStatus.COMPLETED.value] == 1
    assert summary.by_status[AppointmentStatus.CANCELLED.value] == 1
    assert summary.by_status[AppointmentStatus.CONFIRMED.value] == 1
    assert summary.by_status[AppointmentStatus.IN_PROGRESS.value] == 0
    assert summary.by_kind == {ResourceKind.HYPERBARIC_CHAMBER.value: 2}
    assert summary.completed_revenue == Decimal("150")


async def test_drips_supervision_does_not_block_the_nurse(
    session, resources, patient, nurse, drips_service, vitamin_drip, consultation_service
):
    drip = await create_appointment(
        session,
        AppointmentCreate(
            patient_id=patient.id,
            service_id=drips_service.id,
            sub_service_id=vitamin_drip.id,
            professional_id=nurse.id,
            appointment_date=DAY,
            start_time="14:00",
        ),
    )
    assert drip.blocks_professional is False
    consultation = await create_appointment(
        session,
        AppointmentCreate(
            patient_id=patient.id,
            service_id=consultation_service.id,
            professional_id=nurse.id,
            appointment_date=DAY,
            start_time="14:15",
        ),
    )
    assert consultation.blocks_professional is True


async def test_timestamps_are_stored_as_naive_utc(session, resources, patient, doctor, chamber_service):
    appointment = await create_appointment(session, _chamber_booking(patient, doctor, chamber_service))
    appointment_id = appointment.id
    await cancel_appointment(session, appointment_id)
    await session.commit()
    session.expire_all()

    stored = await get_appointment(session, appointment_id)
    assert stored.created_at.tzinfo is None
    assert stored.updated_at.tzinfo is None
    assert stored.cancelled_at.tzinfo is None
    assert stored.cancelled_at >= stored.created_at


async def test_status_edit_survives_a_deactivated_service(
    session, resources, patient, doctor, chamber_service
):
    appointment = await create_appointment(session, _chamber_booking(patient, doctor, chamber_service))
    chamber_service.active = False
    session.add(chamber_service)
    await session.flush()

    updated = await update_appointment(
        session, appointment.id, AppointmentUpdate(status=AppointmentStatus.COMPLETED)
    )
    assert updated.status == AppointmentStatus.COMPLETED
    # Moving it is still refused while the service is inactive
    with pytest.raises(BookingValidationError, match="service"):
        await update_appointment(session, appointment.id, AppointmentUpdate(start_time=time(12, 0)))


async def test_status_edit_survives_a_deactivated_professional(
    session, resources, patient, doctor, chamber_service
):
    appointment = await create_appointment(session, _chamber_booking(patient, doctor, chamber_service))
    doctor.active = False
    session.add(doctor)
    await session.flush()

    updated = await update_appointment(
        session, appointment.id, AppointmentUpdate(status=AppointmentStatus.IN_PROGRESS)
    )
    assert updated.status == AppointmentStatus.IN_PROGRESS


async def test_notes_edit_keeps_price_and_times(session, resources, patient, doctor, chamber_service):
    appointment = await create_appointment(session, _chamber_booking(patient, doctor, chamber_service))
    chamber_service.base_price = Decimal("175.00")
    chamber_service.duration_minutes = 90
    session.add(chamber_service)
    await session.flush()

    updated = await update_appointment(
        session, appointment.id, AppointmentUpdate(notes="Bring previous exams")
    )
    assert updated.notes == "Bring previous exams"
    assert updated.total_amount == Decimal("150.00")
    assert updated.end_time == time(11, 0)
    assert updated.duration_minutes == 60

    # Resending the current start time is not a reschedule either
    same = await update_appointment(session, appointment.id, AppointmentUpdate(start_time=time(10, 0)))
    assert same.total_amount == Decimal("150.00")


async def test_drips_of_different_lengths_share_the_start_time(
    session, resources, patient, nurse, drips_service, vitamin_drip, hydration_drip
):
    drips = get_family(ResourceKind.DRIPS_STATION)
    result = await check_availability(session, drips, DAY, "14:00", 45)
    assert result.message == "5/5 available"

    booked = []
    for sub_service in (vitamin_drip, hydration_drip):
        booked.append(
            await create_appointment(
                session,
                AppointmentCreate(
                    patient_id=patient.id,
                    service_id=drips_service.id,
                    sub_service_id=sub_service.id,
                    professional_id=nurse.id,
                    appointment_date=DAY,
                    start_time="14:00",
                ),
            )
        )
    vitamin, hydration = booked
    assert vitamin.end_time == time(14, 45)
    assert hydration.end_time == time(15, 30)
    assert vitamin.resource_id != hydration.resource_id

    result = await check_availability(session, drips, DAY, "14:00", 45)
    assert result.message == "3/5 available"
    # The shorter drip has finished by 14:45
    result = await check_availability(session, drips, DAY, "14:45", 45)
    assert result.message == "4/5 available"
