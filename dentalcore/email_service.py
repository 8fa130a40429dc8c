"""
Email service using Resend
Templates are MJML, compiled to HTML before sending
"""

import io
import logging
from typing import Optional, Union

import resend
from mjml import mjml_to_html

from .config import EMAIL_FROM_ADDRESS, RESEND_API_KEY
from .email_templates import invoice_ready_template

logger = logging.getLogger(__name__)

resend.api_key = RESEND_API_KEY


def compile_mjml_to_html(mjml_content: str) -> str:
    """Compile MJML template to production-ready HTML"""
    try:
        result = mjml_to_html(io.StringIO(mjml_content))
        # mjml_to_html returns a dict with 'html' and 'errors' keys
        if isinstance(result, dict):
            if result.get("errors"):
                logger.warning(f"MJML compilation warnings: {result['errors']}")
            return result.get("html", "")
        return str(result)
    except Exception as e:
        logger.error(f"MJML compilation error: {e}")
        raise Exception(f"Failed to compile MJML template: {str(e)}") from e


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
        raise Exception("Email service not configured")

    html_content = compile_mjml_to_html(mjml_content)
    recipients = [to] if isinstance(to, str) else to

    try:
        logger.info(f"📧 Sending email via Resend to: {recipients}")
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
        raise Exception(f"Failed to send email: {str(e)}") from e


async def send_invoice_payment_request_email(
    to: str,
    patient_name: str,
    practice_name: str,
    invoice_number: str,
    patient_amount_cents: int,
    mutuality_amount_cents: int,
    currency: str = "EUR",
    due_date: Optional[str] = None,
    payment_link: Optional[str] = None,
) -> dict:
    """Send an issued invoice, with its payment link when the patient owes something"""
    mjml_content = invoice_ready_template(
        patient_name=patient_name,
        practice_name=practice_name,
        invoice_number=invoice_number,
        patient_amount_cents=patient_amount_cents,
        mutuality_amount_cents=mutuality_amount_cents,
        currency=currency,
        due_date=due_date or "",
        payment_url=payment_link or "",
    )

    return await send_email(
        to=to,
        subject=f"Invoice Ready: {invoice_number} - {practice_name}",
        mjml_content=mjml_content,
    )
