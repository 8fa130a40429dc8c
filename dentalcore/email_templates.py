"""
MJML Email Templates
Patient-facing emails, compiled to HTML by email_service
"""

from typing import Optional

# Practice theme colors
THEME = {
    "primary": "#0ea5e9",
    "primary_dark": "#0284c7",
    "background": "#f8fafc",
    "card_bg": "#ffffff",
    "text_primary": "#0f172a",
    "text_secondary": "#334155",
    "text_muted": "#64748b",
    "border": "#e2e8f0",
}


def format_amount(amount_cents: int, currency: str = "EUR") -> str:
    """Render minor units for display, e.g. 1000 EUR -> 'EUR 10.00'"""
    return f"{currency} {amount_cents / 100:,.2f}"


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
        <mj-section background-color="#ffffff" padding="40px 40px 48px 40px">
          <mj-column>
            <mj-text font-size="24px" font-weight="600" color="{THEME['text_primary']}" line-height="1.3" padding="0 0 16px 0">
              {title}
            </mj-text>

            {content_sections}
          </mj-column>
        </mj-section>

        {cta_section}

        <mj-section padding="32px 20px">
          <mj-column>
            <mj-text align="center" font-size="12px" color="#94a3b8" padding="0">
              You're receiving this because you were treated at our practice.
            </mj-text>
          </mj-column>
        </mj-section>
      </mj-body>
    </mjml>
    """


def invoice_ready_template(
    patient_name: str,
    practice_name: str,
    invoice_number: str,
    patient_amount_cents: int,
    mutuality_amount_cents: int,
    currency: str = "EUR",
    due_date: str = "",
    payment_url: str = "",
) -> str:
    """
    Invoice ready notification for the patient.

    Shows the patient share as the amount to pay and the part billed to
    the mutuality as information only.
    """
    due_date_section = f"<br/>Due Date: {due_date}" if due_date else ""

    mutuality_info = ""
    if mutuality_amount_cents:
        mutuality_info = f"""
    <mj-text font-size="14px" color="{THEME['text_muted']}" padding="10px 0">
      Billed directly to your mutuality: {format_amount(mutuality_amount_cents, currency)}
    </mj-text>
        """

    if patient_amount_cents:
        amount_line = format_amount(patient_amount_cents, currency)
    else:
        amount_line = "Nothing to pay"

    content = f"""
    <mj-text>
      Hi {patient_name},
    </mj-text>

    <mj-text>
      Your invoice from <strong>{practice_name}</strong> is ready.
    </mj-text>

    <mj-text align="center" font-size="32px" font-weight="700" color="{THEME['text_primary']}" padding="20px 0">
      {amount_line}
    </mj-text>

    <mj-text font-size="14px" color="{THEME['text_muted']}">
      Invoice: {invoice_number}{due_date_section}
    </mj-text>

    {mutuality_info}
    """

    return get_base_template(
        title="Invoice Ready",
        preview_text=f"Invoice Ready - {invoice_number}",
        content_sections=content,
        cta_url=payment_url if payment_url else None,
        cta_label="Pay Invoice" if payment_url else None,
    )


__all__ = [
    "THEME",
    "format_amount",
    "get_base_template",
    "invoice_ready_template",
]
