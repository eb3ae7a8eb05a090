"""
Invoice model for settled appointments
"""

import uuid

from sqlalchemy import Boolean, Column, DateTime, Float, ForeignKey, Integer, String
from sqlalchemy.orm import relationship
from sqlalchemy.sql import func

from .database import Base


def generate_public_id():
    """Generate a unique public ID for secure public access"""
    return str(uuid.uuid4())


class Invoice(Base):
    """One invoice per paid appointment; never updated after creation except soft-delete"""

    __tablename__ = "invoices"

    id = Column(Integer, primary_key=True, index=True)
    public_id = Column(String(36), unique=True, nullable=False, index=True, default=generate_public_id)
    # Unique: a second settlement of the same appointment must fail
    appointment_id = Column(Integer, ForeignKey("appointments.id"), unique=True, nullable=False)

    payment_id = Column(String(64), nullable=True, index=True)  # Gateway payment ID
    payment_method = Column(String(50), default="mercado_pago")
    transaction_amount = Column(Float, nullable=False)  # Expected price
    paid_amount = Column(Float, nullable=False)  # Amount reported by the gateway
    payment_status = Column(String(50), default="approved")  # Gateway status
    status = Column(String(50), default="paid")
    paid_at = Column(DateTime, nullable=True)
    is_active = Column(Boolean, default=True, nullable=False)

    created_at = Column(DateTime, server_default=func.now())

    appointment = relationship("Appointment", back_populates="invoice")
