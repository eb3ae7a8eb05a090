"""
Pricing resolver

Computes the charge of an appointment type for a patient's insurance tier and
writes the pricing snapshot onto the appointment. The snapshot is what the
settlement amount check compares against.
"""

import logging
from decimal import ROUND_HALF_UP, Decimal
from typing import Optional

from ...models import (
    INSURANCE_TIERS,
    TIER_PRIVATE_INSURER,
    TIER_PUBLIC_INSURER,
    TIER_SELF_PAY,
    Appointment,
    AppointmentType,
    Patient,
)

logger = logging.getLogger(__name__)

CENT = Decimal("0.01")

# Fallback share of the base price when a type has no tier-specific price
TIER_PRICE_FACTORS = {
    TIER_PUBLIC_INSURER: Decimal("0.70"),
    TIER_PRIVATE_INSURER: Decimal("0.84"),
}
TIER_DISCOUNT_PERCENT = {
    TIER_PUBLIC_INSURER: 30,
    TIER_PRIVATE_INSURER: 16,
    TIER_SELF_PAY: 0,
}


def to_money(value) -> Decimal:
    """Decimal rounded to cents; floats go through str() to avoid binary noise"""
    return Decimal(str(value)).quantize(CENT, rounding=ROUND_HALF_UP)


def normalize_tier(tier: Optional[str]) -> str:
    if not tier:
        return TIER_SELF_PAY
    if tier not in INSURANCE_TIERS:
        logger.warning(f"⚠️ Unknown insurance tier '{tier}', pricing as self-pay")
        return TIER_SELF_PAY
    return tier


def _tier_override(appointment_type: AppointmentType, tier: str) -> Optional[float]:
    if tier == TIER_PUBLIC_INSURER:
        return appointment_type.public_insurer_price
    if tier == TIER_PRIVATE_INSURER:
        return appointment_type.private_insurer_price
    return appointment_type.self_pay_price


def resolve_price(appointment_type: AppointmentType, tier: Optional[str]) -> dict:
    """
    Price an appointment type for an insurance tier.

    Returns:
        Dict with tier, originalPrice, finalPrice, discountAmount and
        discountPercent (amounts as Decimal)
    """
    tier = normalize_tier(tier)
    base = to_money(appointment_type.price)
    if appointment_type.self_pay_price is not None:
        original = to_money(appointment_type.self_pay_price)
    else:
        original = base

    # A configured price of 0 is a free tier, not a missing price
    override = _tier_override(appointment_type, tier)
    if override is not None:
        final = to_money(override)
    elif tier == TIER_SELF_PAY:
        final = original
    else:
        final = (base * TIER_PRICE_FACTORS[tier]).quantize(CENT, rounding=ROUND_HALF_UP)

    return {
        "tier": tier,
        "originalPrice": original,
        "finalPrice": final,
        "discountAmount": original - final,
        "discountPercent": TIER_DISCOUNT_PERCENT[tier],
    }


def requires_verification(tier: str, patient: Patient) -> bool:
    """Insured patients show their documents once; afterwards every booking skips the check"""
    return tier != TIER_SELF_PAY and not patient.insurance_verified


def apply_pricing(appointment: Appointment, appointment_type: AppointmentType, patient: Patient) -> dict:
    """Write the pricing snapshot and verification flags onto the appointment (no commit)"""
    pricing = resolve_price(appointment_type, patient.insurance_tier)
    needs_check = requires_verification(pricing["tier"], patient)

    appointment.original_price = float(pricing["originalPrice"])
    appointment.final_price = float(pricing["finalPrice"])
    appointment.discount_amount = float(pricing["discountAmount"])
    appointment.discount_percent = pricing["discountPercent"]
    appointment.insurance_tier_applied = pricing["tier"]
    appointment.requires_insurance_verification = needs_check
    # Patients verified on an earlier visit carry the flag over
    appointment.insurance_verified = bool(patient.insurance_verified)

    logger.info(
        f"💰 Appointment {appointment.id} priced for {pricing['tier']}: "
        f"{pricing['originalPrice']} -> {pricing['finalPrice']} ({pricing['discountPercent']}% off), "
        f"verification required: {needs_check}"
    )
    return {**pricing, "requiresVerification": needs_check}


def expected_settlement_amount(appointment: Appointment) -> Decimal:
    """Amount the gateway must report: the snapshot's final price, else the type's base price"""
    if appointment.final_price is not None:
        return to_money(appointment.final_price)
    return to_money(appointment.appointment_type.price)
