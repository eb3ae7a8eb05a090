from sqlalchemy import (
    Boolean,
    CheckConstraint,
    Column,
    Date,
    DateTime,
    Float,
    ForeignKey,
    Index,
    Integer,
    String,
    Text,
    text,
)
from sqlalchemy.orm import relationship
from sqlalchemy.sql import func

from .database import Base

# Appointment lifecycle: unpaid -> paid -> {in_progress -> completed | no_show} | cancelled
STATE_UNPAID = "unpaid"
STATE_PAID = "paid"
STATE_IN_PROGRESS = "in_progress"
STATE_COMPLETED = "completed"
STATE_NO_SHOW = "no_show"
STATE_CANCELLED = "cancelled"

APPOINTMENT_STATES = (
    STATE_UNPAID,
    STATE_PAID,
    STATE_IN_PROGRESS,
    STATE_COMPLETED,
    STATE_NO_SHOW,
    STATE_CANCELLED,
)
# A patient may hold at most one appointment in these states
ACTIVE_STATES = (STATE_PAID, STATE_IN_PROGRESS)
# Bookings in these states do not occupy a practitioner's slot
NON_BLOCKING_STATES = (STATE_CANCELLED, STATE_UNPAID)
# Released (soft-deleted) when the practitioner is deactivated
RELEASABLE_STATES = (STATE_COMPLETED, STATE_UNPAID, STATE_NO_SHOW)

# Insurance tiers
TIER_PUBLIC_INSURER = "public-insurer"
TIER_PRIVATE_INSURER = "private-insurer"
TIER_SELF_PAY = "self-pay"
INSURANCE_TIERS = (TIER_PUBLIC_INSURER, TIER_PRIVATE_INSURER, TIER_SELF_PAY)


class Practitioner(Base):
    """Read-only projection of a clinician; profile fields live elsewhere"""

    __tablename__ = "practitioners"

    id = Column(Integer, primary_key=True, index=True)
    first_name = Column(String(100), nullable=False)
    last_name = Column(String(100), nullable=False)
    email = Column(String(255), nullable=True)
    specialty = Column(String(100), nullable=False, index=True)
    is_active = Column(Boolean, default=True, nullable=False)
    created_at = Column(DateTime, server_default=func.now())
    updated_at = Column(DateTime, server_default=func.now(), onupdate=func.now())

    schedules = relationship("ScheduleTemplate", back_populates="practitioner")
    appointments = relationship("Appointment", back_populates="practitioner")

    @property
    def display_name(self) -> str:
        return f"{self.first_name} {self.last_name}"


class Patient(Base):
    __tablename__ = "patients"

    id = Column(Integer, primary_key=True, index=True)
    first_name = Column(String(100), nullable=False)
    last_name = Column(String(100), nullable=False)
    email = Column(String(255), nullable=True)
    insurance_tier = Column(String(20), nullable=True)  # public-insurer, private-insurer, self-pay
    # Set once the patient has shown insurance documents in person
    insurance_verified = Column(Boolean, default=False, nullable=False)
    created_at = Column(DateTime, server_default=func.now())

    appointments = relationship("Appointment", back_populates="patient")

    @property
    def display_name(self) -> str:
        return f"{self.first_name} {self.last_name}"


class AppointmentType(Base):
    __tablename__ = "appointment_types"

    id = Column(Integer, primary_key=True, index=True)
    name = Column(String(255), nullable=True)
    specialty = Column(String(100), nullable=False, index=True)
    duration_minutes = Column(Integer, nullable=False)
    price = Column(Float, nullable=False)  # Base price
    # Tier-specific overrides; fall back to a percentage of the base price
    public_insurer_price = Column(Float, nullable=True)
    private_insurer_price = Column(Float, nullable=True)
    self_pay_price = Column(Float, nullable=True)
    is_active = Column(Boolean, default=True, nullable=False)
    created_at = Column(DateTime, server_default=func.now())


class ScheduleTemplate(Base):
    """Weekly availability window of a practitioner"""

    __tablename__ = "schedule_templates"
    __table_args__ = (
        CheckConstraint("weekday BETWEEN 0 AND 6", name="ck_schedule_templates_weekday"),
        CheckConstraint("start_time < end_time", name="ck_schedule_templates_range"),
        Index("ix_schedule_templates_practitioner_weekday", "practitioner_id", "weekday"),
    )

    id = Column(Integer, primary_key=True, index=True)
    practitioner_id = Column(Integer, ForeignKey("practitioners.id"), nullable=False)
    weekday = Column(Integer, nullable=False)  # 0 = Sunday
    start_time = Column(String(5), nullable=False)  # HH:MM
    end_time = Column(String(5), nullable=False)
    break_start = Column(String(5), nullable=True)
    break_end = Column(String(5), nullable=True)
    created_at = Column(DateTime, server_default=func.now())
    updated_at = Column(DateTime, server_default=func.now(), onupdate=func.now())

    practitioner = relationship("Practitioner", back_populates="schedules")


class Appointment(Base):
    __tablename__ = "appointments"
    __table_args__ = (
        CheckConstraint("start_time < end_time", name="ck_appointments_range"),
        Index(
            "uq_appointments_patient_active",
            "patient_id",
            unique=True,
            postgresql_where=text("state IN ('paid', 'in_progress') AND is_active"),
            sqlite_where=text("state IN ('paid', 'in_progress') AND is_active"),
        ),
        Index("ix_appointments_practitioner_date", "practitioner_id", "appointment_date"),
    )

    id = Column(Integer, primary_key=True, index=True)
    practitioner_id = Column(Integer, ForeignKey("practitioners.id"), nullable=False)
    patient_id = Column(Integer, ForeignKey("patients.id"), nullable=False, index=True)
    appointment_type_id = Column(Integer, ForeignKey("appointment_types.id"), nullable=True)
    motive = Column(String(255), nullable=False)
    description = Column(Text, nullable=True)

    appointment_date = Column(Date, nullable=False)
    start_time = Column(String(5), nullable=False)  # HH:MM
    end_time = Column(String(5), nullable=False)

    state = Column(String(20), default=STATE_UNPAID, nullable=False)
    # Soft-delete marker, independent of the lifecycle state
    is_active = Column(Boolean, default=True, nullable=False)

    # Pricing snapshot, written when the payment order is created
    original_price = Column(Float, nullable=True)
    final_price = Column(Float, nullable=True)
    discount_amount = Column(Float, default=0)
    discount_percent = Column(Float, default=0)
    insurance_tier_applied = Column(String(20), nullable=True)

    # In-person insurance verification
    requires_insurance_verification = Column(Boolean, default=False, nullable=False)
    insurance_verified = Column(Boolean, default=False, nullable=False)
    cash_difference_paid = Column(Float, default=0)
    verification_notes = Column(Text, nullable=True)

    created_at = Column(DateTime, server_default=func.now())
    updated_at = Column(DateTime, server_default=func.now(), onupdate=func.now())

    practitioner = relationship("Practitioner", back_populates="appointments")
    patient = relationship("Patient", back_populates="appointments")
    appointment_type = relationship("AppointmentType")
    invoice = relationship("Invoice", back_populates="appointment", uselist=False)
