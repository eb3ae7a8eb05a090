"""Tests for booking admission, deactivation cascades and insurance verification."""

import pytest
from sqlalchemy.exc import IntegrityError

from clinic_app.domain.appointments.schemas import InsuranceVerificationRequest, PatientBookingRequest
from clinic_app.domain.appointments.service import SLOT_TAKEN_MESSAGE, AppointmentService
from clinic_app.domain.billing.pricing import apply_pricing
from clinic_app.domain.catalog.service import CatalogService
from clinic_app.exceptions import Conflict, InvalidArgument, InvalidFormat, NotFound
from clinic_app.models import (
    STATE_COMPLETED,
    STATE_IN_PROGRESS,
    STATE_NO_SHOW,
    STATE_PAID,
    STATE_UNPAID,
    TIER_PUBLIC_INSURER,
    Appointment,
    AppointmentType,
    Practitioner,
    ScheduleTemplate,
)

from .conftest import MONDAY


@pytest.fixture
def booking_setup(seed):
    practitioner = seed.practitioner()
    patient = seed.patient()
    appointment_type = seed.appointment_type()
    return practitioner, patient, appointment_type


def booking_request(practitioner, patient, appointment_type, **overrides):
    fields = {
        "patientId": patient.id,
        "practitionerId": practitioner.id,
        "date": MONDAY,
        "startTime": "09:00",
        "endTime": "09:30",
        "appointmentTypeId": appointment_type.id,
        "specialty": "cardiology",
    }
    fields.update(overrides)
    return PatientBookingRequest(**fields)


def test_booking_creates_unpaid_appointment(db, booking_setup):
    practitioner, patient, appointment_type = booking_setup

    appointment_id = AppointmentService(db).create_patient_booking(
        booking_request(practitioner, patient, appointment_type)
    )

    appointment = db.get(Appointment, appointment_id)
    assert appointment.state == STATE_UNPAID
    assert appointment.is_active is True
    assert appointment.motive == "cardiology"
    assert appointment.appointment_date == MONDAY
    assert appointment.final_price is None


def test_missing_fields_are_reported(db, booking_setup):
    practitioner, patient, appointment_type = booking_setup

    with pytest.raises(InvalidArgument) as exc_info:
        AppointmentService(db).create_patient_booking(
            booking_request(practitioner, patient, appointment_type, startTime=None, specialty="")
        )

    assert "start time" in exc_info.value.message
    assert "specialty" in exc_info.value.message


def test_time_range_is_validated(db, booking_setup):
    practitioner, patient, appointment_type = booking_setup
    service = AppointmentService(db)

    with pytest.raises(InvalidArgument):
        service.create_patient_booking(
            booking_request(practitioner, patient, appointment_type, startTime="10:00", endTime="09:30")
        )
    with pytest.raises(InvalidFormat):
        service.create_patient_booking(booking_request(practitioner, patient, appointment_type, startTime="9am"))


def test_patient_with_active_appointment_is_rejected(db, seed, booking_setup):
    practitioner, patient, appointment_type = booking_setup
    seed.appointment(practitioner, patient, appointment_type, start="11:00", end="11:30", state=STATE_PAID)

    with pytest.raises(Conflict):
        AppointmentService(db).create_patient_booking(booking_request(practitioner, patient, appointment_type))

    assert db.query(Appointment).count() == 1


def test_in_progress_appointment_also_blocks(db, seed, booking_setup):
    practitioner, patient, appointment_type = booking_setup
    seed.appointment(practitioner, patient, appointment_type, state=STATE_IN_PROGRESS)

    assert AppointmentService(db).has_active_appointment(patient.id) is True
    with pytest.raises(Conflict):
        AppointmentService(db).create_patient_booking(booking_request(practitioner, patient, appointment_type))


@pytest.mark.parametrize("state", [STATE_UNPAID, STATE_COMPLETED, STATE_NO_SHOW])
def test_finished_or_unpaid_appointments_release_the_patient(db, seed, booking_setup, state):
    # completed and no_show release the slot immediately, without a grace period
    practitioner, patient, appointment_type = booking_setup
    seed.appointment(practitioner, patient, appointment_type, start="11:00", end="11:30", state=state)

    appointment_id = AppointmentService(db).create_patient_booking(
        booking_request(practitioner, patient, appointment_type)
    )

    assert appointment_id is not None


@pytest.mark.parametrize("state", [STATE_PAID, STATE_IN_PROGRESS])
def test_practitioner_slot_taken_by_another_patient_is_rejected(db, seed, booking_setup, state):
    practitioner, patient, appointment_type = booking_setup
    other_patient = seed.patient(email="other@example.com")
    seed.appointment(practitioner, other_patient, appointment_type, start="09:15", end="09:45", state=state)

    with pytest.raises(Conflict) as exc_info:
        AppointmentService(db).create_patient_booking(booking_request(practitioner, patient, appointment_type))

    assert exc_info.value.message == SLOT_TAKEN_MESSAGE
    assert db.query(Appointment).filter(Appointment.patient_id == patient.id).count() == 0


def test_adjacent_or_unpaid_bookings_leave_the_slot_open(db, seed, booking_setup):
    practitioner, patient, appointment_type = booking_setup
    other_patient = seed.patient(email="other@example.com")
    third_patient = seed.patient(email="third@example.com")
    colleague = seed.practitioner(first_name="Luis")
    seed.appointment(practitioner, other_patient, appointment_type, start="08:30", end="09:00", state=STATE_PAID)
    seed.appointment(practitioner, third_patient, appointment_type, state=STATE_UNPAID)
    seed.appointment(colleague, seed.patient(email="fourth@example.com"), appointment_type, state=STATE_PAID)

    appointment_id = AppointmentService(db).create_patient_booking(
        booking_request(practitioner, patient, appointment_type)
    )

    assert db.get(Appointment, appointment_id).state == STATE_UNPAID


def test_soft_deleted_paid_appointment_does_not_block(db, seed, booking_setup):
    practitioner, patient, appointment_type = booking_setup
    seed.appointment(practitioner, patient, appointment_type, state=STATE_PAID, is_active=False)

    assert AppointmentService(db).has_active_appointment(patient.id) is False


def test_unknown_references(db, seed, booking_setup):
    practitioner, patient, appointment_type = booking_setup
    inactive = seed.practitioner(first_name="Luis", is_active=False)
    service = AppointmentService(db)

    with pytest.raises(NotFound):
        service.create_patient_booking(booking_request(practitioner, patient, appointment_type, patientId=999))
    with pytest.raises(NotFound):
        service.create_patient_booking(booking_request(inactive, patient, appointment_type))
    with pytest.raises(NotFound):
        service.create_patient_booking(
            booking_request(practitioner, patient, appointment_type, appointmentTypeId=999)
        )


def test_store_rejects_second_active_appointment(db, seed, booking_setup):
    practitioner, patient, appointment_type = booking_setup
    seed.appointment(practitioner, patient, appointment_type, state=STATE_PAID)

    with pytest.raises(IntegrityError):
        seed.appointment(practitioner, patient, appointment_type, start="10:00", end="10:30", state=STATE_IN_PROGRESS)
    db.rollback()

    # Inactive rows are outside the unique index
    seed.appointment(practitioner, patient, appointment_type, state=STATE_PAID, is_active=False)


def test_get_appointment(db, seed, booking_setup):
    practitioner, patient, appointment_type = booking_setup
    appointment = seed.appointment(practitioner, patient, appointment_type)

    loaded = AppointmentService(db).get_appointment(appointment.id)

    assert loaded.patient.id == patient.id
    assert loaded.invoice is None
    with pytest.raises(NotFound):
        AppointmentService(db).get_appointment(999)


def test_practitioner_deactivation_cascade(db, seed, booking_setup):
    practitioner, patient, appointment_type = booking_setup
    other_patient = seed.patient(email="other@example.com")
    colleague = seed.practitioner(first_name="Luis")
    seed.template(practitioner, weekday=1)
    seed.template(practitioner, weekday=3)
    seed.template(colleague, weekday=1)

    released = [
        seed.appointment(practitioner, patient, appointment_type, state=state, start=start, end=end)
        for state, start, end in [
            (STATE_COMPLETED, "09:00", "09:30"),
            (STATE_UNPAID, "09:30", "10:00"),
            (STATE_NO_SHOW, "10:00", "10:30"),
        ]
    ]
    kept_paid = seed.appointment(practitioner, patient, appointment_type, state=STATE_PAID, start="11:00", end="11:30")
    kept_in_progress = seed.appointment(
        practitioner, other_patient, appointment_type, state=STATE_IN_PROGRESS, start="11:30", end="12:00"
    )
    colleague_unpaid = seed.appointment(colleague, patient, appointment_type, state=STATE_UNPAID)

    result = CatalogService(db).deactivate_practitioner(practitioner.id)

    db.expire_all()
    assert result["releasedAppointments"] == 3
    assert result["removedTemplates"] == 2
    assert db.get(Practitioner, practitioner.id).is_active is False
    assert all(db.get(Appointment, a.id).is_active is False for a in released)
    assert db.get(Appointment, kept_paid.id).is_active is True
    assert db.get(Appointment, kept_in_progress.id).is_active is True
    assert db.get(Appointment, colleague_unpaid.id).is_active is True
    assert db.query(ScheduleTemplate).filter(ScheduleTemplate.practitioner_id == practitioner.id).count() == 0
    assert db.query(ScheduleTemplate).count() == 1


def test_appointment_type_deactivation_cascades_to_specialty(db, seed, booking_setup):
    practitioner, patient, appointment_type = booking_setup
    colleague = seed.practitioner(first_name="Luis")
    dermatologist = seed.practitioner(first_name="Marta", specialty="dermatology")
    seed.template(practitioner)
    seed.template(colleague)
    seed.template(dermatologist)
    unpaid = seed.appointment(colleague, patient, appointment_type, state=STATE_UNPAID)

    result = CatalogService(db).deactivate_appointment_type(appointment_type.id)

    db.expire_all()
    assert sorted(result["practitionerIds"]) == sorted([practitioner.id, colleague.id])
    assert db.get(AppointmentType, appointment_type.id).is_active is False
    assert db.get(Practitioner, practitioner.id).is_active is False
    assert db.get(Practitioner, colleague.id).is_active is False
    assert db.get(Practitioner, dermatologist.id).is_active is True
    assert db.get(Appointment, unpaid.id).is_active is False
    assert db.query(ScheduleTemplate).count() == 1


def test_deactivate_unknown_entries(db):
    with pytest.raises(NotFound):
        CatalogService(db).deactivate_practitioner(999)
    with pytest.raises(NotFound):
        CatalogService(db).deactivate_appointment_type(999)


@pytest.fixture
def insured_paid_appointment(db, seed):
    practitioner = seed.practitioner()
    patient = seed.patient(insurance_tier=TIER_PUBLIC_INSURER)
    appointment_type = seed.appointment_type(price=10000)
    appointment = seed.appointment(practitioner, patient, appointment_type)
    apply_pricing(appointment, appointment_type, patient)
    appointment.state = STATE_PAID
    db.commit()
    return appointment


def test_insurance_documents_presented(db, insured_paid_appointment):
    appointment = insured_paid_appointment
    assert appointment.requires_insurance_verification is True

    verified = AppointmentService(db).verify_insurance(
        appointment.id, InsuranceVerificationRequest(documentsPresented=True, notes="card checked")
    )

    assert verified.insurance_verified is True
    assert verified.patient.insurance_verified is True
    assert verified.cash_difference_paid == 0
    assert verified.verification_notes == "card checked"


def test_insurance_documents_missing_records_cash_difference(db, insured_paid_appointment):
    appointment = insured_paid_appointment

    verified = AppointmentService(db).verify_insurance(
        appointment.id, InsuranceVerificationRequest(documentsPresented=False)
    )

    assert verified.insurance_verified is False
    assert verified.patient.insurance_verified is False
    assert verified.cash_difference_paid == 3000


def test_insurance_verification_preconditions(db, seed, insured_paid_appointment):
    service = AppointmentService(db)
    service.verify_insurance(insured_paid_appointment.id, InsuranceVerificationRequest(documentsPresented=True))

    # Already verified
    with pytest.raises(Conflict):
        service.verify_insurance(insured_paid_appointment.id, InsuranceVerificationRequest(documentsPresented=True))

    practitioner = seed.practitioner(first_name="Luis")
    unpaid = seed.appointment(practitioner, seed.patient(email="x@example.com"), requires_insurance_verification=True)
    with pytest.raises(Conflict):
        service.verify_insurance(unpaid.id, InsuranceVerificationRequest(documentsPresented=True))
    with pytest.raises(NotFound):
        service.verify_insurance(999, InsuranceVerificationRequest(documentsPresented=True))
