"""
MJML Email Templates
Patient-facing email templates using MJML for responsive, cross-client compatibility
"""

from html import escape
from typing import Optional

from .config import CLINIC_NAME, FRONTEND_URL

# Clinic theme colors - Blue/Slate color scheme
THEME = {
    "primary": "#2563eb",
    "primary_dark": "#1d4ed8",
    "primary_light": "#dbeafe",
    "background": "#f8fafc",
    "card_bg": "#ffffff",
    "text_primary": "#0f172a",
    "text_secondary": "#334155",
    "text_muted": "#64748b",
    "border": "#e2e8f0",
    "success": "#16a34a",
    "warning": "#f59e0b",
    "danger": "#ef4444",
}

TIER_LABELS = {
    "public-insurer": "Public insurer",
    "private-insurer": "Private insurer",
    "self-pay": "Self-pay",
}


def format_amount(amount: Optional[float]) -> str:
    """Format a price without decimals and with thousands separators (e.g. $7.000)"""
    if amount is None:
        return "-"
    return "$" + f"{round(amount):,}".replace(",", ".")


def get_base_template(
    title: str,
    preview_text: str,
    content_sections: str,
    cta_url: Optional[str] = None,
    cta_label: Optional[str] = None,
) -> str:
    """Base MJML template wrapper for all emails"""

    cta_section = ""
    if cta_url and cta_label:
        cta_section = f"""
        <mj-section padding="20px 0">
          <mj-column>
            <mj-button
              href="{cta_url}"
              background-color="{THEME['primary']}"
              color="#ffffff"
              font-weight="600"
              border-radius="8px"
              padding="18px 40px"
              font-size="16px">
              {cta_label}
            </mj-button>
          </mj-column>
        </mj-section>
        """

    return f"""
    <mjml>
      <mj-head>
        <mj-title>{title}</mj-title>
        <mj-preview>{preview_text}</mj-preview>
        <mj-attributes>
          <mj-all font-family="-apple-system, BlinkMacSystemFont, 'Segoe UI', 'Helvetica Neue', Arial, sans-serif" />
          <mj-text font-size="16px" line-height="1.6" color="{THEME['text_secondary']}" />
        </mj-attributes>
      </mj-head>
      <mj-body background-color="{THEME['background']}">
        <!-- Header -->
        <mj-section background-color="#ffffff" padding="32px 20px">
          <mj-column>
            <mj-text font-size="20px" font-weight="700" color="{THEME['primary_dark']}" align="center">
              {escape(CLINIC_NAME)}
            </mj-text>
          </mj-column>
        </mj-section>

        <!-- Main Content -->
        <mj-section background-color="#ffffff" padding="0 40px 48px 40px">
          <mj-column>
            <mj-text font-size="24px" font-weight="600" color="{THEME['text_primary']}" line-height="1.3" padding="0 0 16px 0">
              {title}
            </mj-text>

            {content_sections}
          </mj-column>
        </mj-section>

        {cta_section}

        <!-- Footer -->
        <mj-section padding="32px 20px">
          <mj-column>
            <mj-text align="center" font-size="13px" color="#94a3b8" padding="0">
              You're receiving this because you booked an appointment with {escape(CLINIC_NAME)}.
            </mj-text>
          </mj-column>
        </mj-section>
      </mj-body>
    </mjml>
    """


def appointment_confirmation_template(
    patient_name: str,
    appointment_date: str,
    start_time: str,
    practitioner_name: str,
    specialty: str,
    insurance_tier: str,
    original_price: Optional[float],
    final_price: Optional[float],
    discount_amount: Optional[float] = 0,
    requires_verification: bool = False,
) -> str:
    """Payment received and appointment confirmed"""
    discount_row = ""
    if discount_amount:
        discount_row = f"""
        <tr>
          <td style="padding: 6px 0; color: {THEME['text_muted']};">Discount</td>
          <td style="padding: 6px 0; text-align: right; color: {THEME['success']};">-{format_amount(discount_amount)}</td>
        </tr>
        """

    verification_notice = ""
    if requires_verification:
        verification_notice = f"""
    <mj-text background-color="{THEME['primary_light']}" color="{THEME['text_primary']}" padding="16px" font-size="14px">
      <strong>Bring your insurance documents.</strong> Your discounted price will be confirmed at reception.
      If the documents cannot be presented, the price difference is charged at the clinic.
    </mj-text>
    """

    content = f"""
    <mj-text color="{THEME['text_muted']}" padding="0 0 24px 0">
      Your payment was received and your appointment is confirmed.
    </mj-text>

    <mj-text>
      Hi {escape(patient_name)},
    </mj-text>

    <mj-table font-size="15px" padding="8px 0 24px 0">
      <tr>
        <td style="padding: 6px 0; color: {THEME['text_muted']};">Date</td>
        <td style="padding: 6px 0; text-align: right;">{appointment_date}</td>
      </tr>
      <tr>
        <td style="padding: 6px 0; color: {THEME['text_muted']};">Time</td>
        <td style="padding: 6px 0; text-align: right;">{start_time}</td>
      </tr>
      <tr>
        <td style="padding: 6px 0; color: {THEME['text_muted']};">Practitioner</td>
        <td style="padding: 6px 0; text-align: right;">{escape(practitioner_name)}</td>
      </tr>
      <tr>
        <td style="padding: 6px 0; color: {THEME['text_muted']};">Specialty</td>
        <td style="padding: 6px 0; text-align: right;">{escape(specialty)}</td>
      </tr>
      <tr>
        <td style="padding: 6px 0; color: {THEME['text_muted']};">Coverage</td>
        <td style="padding: 6px 0; text-align: right;">{TIER_LABELS.get(insurance_tier, insurance_tier)}</td>
      </tr>
      <tr>
        <td style="padding: 6px 0; color: {THEME['text_muted']};">Price</td>
        <td style="padding: 6px 0; text-align: right;">{format_amount(original_price)}</td>
      </tr>
      {discount_row}
      <tr>
        <td style="padding: 6px 0; font-weight: 600;">Paid</td>
        <td style="padding: 6px 0; text-align: right; font-weight: 600;">{format_amount(final_price)}</td>
      </tr>
    </mj-table>

    {verification_notice}

    <mj-text font-size="14px" color="{THEME['text_muted']}">
      Please arrive 10 minutes before your appointment.
    </mj-text>
    """

    return get_base_template(
        title="Appointment confirmed",
        preview_text=f"{appointment_date} at {start_time} with {practitioner_name}",
        content_sections=content,
        cta_url=FRONTEND_URL,
        cta_label="View my appointments",
    )
