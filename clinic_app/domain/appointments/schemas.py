"""Appointment domain schemas - Pydantic models for validation"""

from datetime import date, datetime
from typing import Optional

from pydantic import BaseModel, ConfigDict, Field


class PatientBookingRequest(BaseModel):
    """
    Schema for a patient booking a slot.

    Every field is required; presence is checked by the service so that a
    missing field is reported as a 400 with a readable message.
    """

    model_config = ConfigDict(populate_by_name=True)

    patientId: Optional[int] = None
    practitionerId: Optional[int] = None
    appointmentDate: Optional[date] = Field(None, alias="date")
    startTime: Optional[str] = None
    endTime: Optional[str] = None
    appointmentTypeId: Optional[int] = None
    specialty: Optional[str] = None


class BookingResponse(BaseModel):
    appointmentId: int


class ActiveAppointmentResponse(BaseModel):
    patientId: int
    hasActiveAppointment: bool


class InsuranceVerificationRequest(BaseModel):
    """Outcome of the in-person insurance document check"""

    documentsPresented: bool
    notes: Optional[str] = None


class InvoiceSummary(BaseModel):
    id: int
    publicId: str
    paymentId: Optional[str] = None
    paymentMethod: Optional[str] = None
    transactionAmount: float
    paidAmount: float
    status: Optional[str] = None
    paidAt: Optional[datetime] = None


class AppointmentResponse(BaseModel):
    id: int
    patientId: int
    patientName: Optional[str] = None
    practitionerId: int
    practitionerName: Optional[str] = None
    appointmentTypeId: Optional[int] = None
    motive: str
    date: str
    startTime: str
    endTime: str
    state: str
    isActive: bool
    originalPrice: Optional[float] = None
    finalPrice: Optional[float] = None
    discountAmount: Optional[float] = None
    discountPercent: Optional[float] = None
    insuranceTierApplied: Optional[str] = None
    requiresInsuranceVerification: bool
    insuranceVerified: bool
    cashDifferencePaid: Optional[float] = None
    verificationNotes: Optional[str] = None
    invoice: Optional[InvoiceSummary] = None
