"""
Email Service using Resend
Provides email functionality using MJML templates for responsive design
"""

import logging
from typing import Optional, Union

import resend
from mjml import mjml_to_html

from .config import CLINIC_NAME, EMAIL_FROM_ADDRESS, RESEND_API_KEY
from .email_templates import appointment_confirmation_template

logger = logging.getLogger(__name__)

resend.api_key = RESEND_API_KEY


class EmailDeliveryError(Exception):
    """Email could not be compiled or handed to the transport"""


def compile_mjml_to_html(mjml_content: str) -> str:
    """Compile MJML template to production-ready HTML"""
    try:
        result = mjml_to_html(mjml_content)
    except Exception as e:
        logger.error(f"MJML compilation error: {e}")
        raise EmailDeliveryError(f"Failed to compile MJML template: {str(e)}") from e

    # mjml_to_html returns a mapping with 'html' and 'errors' keys
    if isinstance(result, dict):
        if result.get("errors"):
            logger.warning(f"MJML compilation warnings: {result['errors']}")
        return result.get("html", "")
    if getattr(result, "errors", None):
        logger.warning(f"MJML compilation warnings: {result.errors}")
    return getattr(result, "html", None) or str(result)


async def send_email(
    to: Union[str, list[str]],
    subject: str,
    mjml_content: str,
    from_address: Optional[str] = None,
) -> dict:
    """
    Send an email through Resend

    Args:
        to: Recipient email(s)
        subject: Email subject line
        mjml_content: MJML template content (will be compiled to HTML)
        from_address: Optional custom from address

    Returns:
        Send response dict
    """
    if not RESEND_API_KEY:
        logger.error("❌ No email service configured - RESEND_API_KEY missing")
        raise EmailDeliveryError("Email service not configured")

    html_content = compile_mjml_to_html(mjml_content)
    recipients = [to] if isinstance(to, str) else to

    try:
        logger.info(f"📧 Sending email via Resend to: {to}")
        response = resend.Emails.send(
            {
                "from": from_address or EMAIL_FROM_ADDRESS,
                "to": recipients,
                "subject": subject,
                "html": html_content,
            }
        )
        logger.info(f"✅ Email sent successfully via Resend: {response}")
        return response
    except Exception as e:
        logger.error(f"❌ Email send error to {recipients}: {e}")
        raise EmailDeliveryError(f"Failed to send email: {str(e)}") from e


async def send_appointment_confirmation(to: str, details: dict) -> dict:
    """Send the paid-appointment confirmation to the patient"""
    mjml_content = appointment_confirmation_template(
        patient_name=details["patientName"],
        appointment_date=details["date"],
        start_time=details["startTime"],
        practitioner_name=details["practitionerName"],
        specialty=details["specialty"],
        insurance_tier=details["insuranceTier"],
        original_price=details.get("originalPrice"),
        final_price=details.get("finalPrice"),
        discount_amount=details.get("discountAmount") or 0,
        requires_verification=details.get("requiresVerification", False),
    )
    return await send_email(
        to=to,
        subject=f"Appointment confirmed - {CLINIC_NAME}",
        mjml_content=mjml_content,
    )
