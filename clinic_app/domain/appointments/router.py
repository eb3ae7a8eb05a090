"""Appointment router - FastAPI endpoints for patient bookings"""

import logging

from fastapi import APIRouter, Depends
from sqlalchemy.orm import Session

from ...database import get_db
from ...models import Appointment
from .schemas import (
    ActiveAppointmentResponse,
    AppointmentResponse,
    BookingResponse,
    InsuranceVerificationRequest,
    InvoiceSummary,
    PatientBookingRequest,
)
from .service import AppointmentService

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/appointments", tags=["Appointments"])


def get_appointment_service(db: Session = Depends(get_db)) -> AppointmentService:
    """Dependency injection for AppointmentService"""
    return AppointmentService(db)


def to_response(appointment: Appointment) -> AppointmentResponse:
    invoice = None
    if appointment.invoice is not None:
        invoice = InvoiceSummary(
            id=appointment.invoice.id,
            publicId=appointment.invoice.public_id,
            paymentId=appointment.invoice.payment_id,
            paymentMethod=appointment.invoice.payment_method,
            transactionAmount=appointment.invoice.transaction_amount,
            paidAmount=appointment.invoice.paid_amount,
            status=appointment.invoice.status,
            paidAt=appointment.invoice.paid_at,
        )

    return AppointmentResponse(
        id=appointment.id,
        patientId=appointment.patient_id,
        patientName=appointment.patient.display_name if appointment.patient else None,
        practitionerId=appointment.practitioner_id,
        practitionerName=appointment.practitioner.display_name if appointment.practitioner else None,
        appointmentTypeId=appointment.appointment_type_id,
        motive=appointment.motive,
        date=appointment.appointment_date.isoformat(),
        startTime=appointment.start_time,
        endTime=appointment.end_time,
        state=appointment.state,
        isActive=appointment.is_active,
        originalPrice=appointment.original_price,
        finalPrice=appointment.final_price,
        discountAmount=appointment.discount_amount,
        discountPercent=appointment.discount_percent,
        insuranceTierApplied=appointment.insurance_tier_applied,
        requiresInsuranceVerification=appointment.requires_insurance_verification,
        insuranceVerified=appointment.insurance_verified,
        cashDifferencePaid=appointment.cash_difference_paid,
        verificationNotes=appointment.verification_notes,
        invoice=invoice,
    )


@router.post("/patient", response_model=BookingResponse, status_code=201)
async def create_patient_booking(
    data: PatientBookingRequest,
    service: AppointmentService = Depends(get_appointment_service),
):
    """Book a slot for a patient; the appointment starts unpaid"""
    appointment_id = service.create_patient_booking(data)
    return BookingResponse(appointmentId=appointment_id)


@router.get("/patient/{patient_id}/active", response_model=ActiveAppointmentResponse)
async def get_patient_active_appointment(
    patient_id: int,
    service: AppointmentService = Depends(get_appointment_service),
):
    return ActiveAppointmentResponse(
        patientId=patient_id, hasActiveAppointment=service.has_active_appointment(patient_id)
    )


@router.get("/{appointment_id}", response_model=AppointmentResponse)
async def get_appointment(
    appointment_id: int,
    service: AppointmentService = Depends(get_appointment_service),
):
    """Appointment with its pricing snapshot and invoice"""
    return to_response(service.get_appointment(appointment_id))


@router.post("/{appointment_id}/insurance-verification", response_model=AppointmentResponse)
async def verify_insurance(
    appointment_id: int,
    data: InsuranceVerificationRequest,
    service: AppointmentService = Depends(get_appointment_service),
):
    """Record the in-person insurance document check (reception)"""
    return to_response(service.verify_insurance(appointment_id, data))
