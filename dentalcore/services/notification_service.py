"""
Patient Notification Service
Hands billing events to the mail provider and reports what happened
"""

import logging
from typing import Optional

from ..email_service import send_invoice_payment_request_email

logger = logging.getLogger(__name__)


async def send_notification(
    patient_email: Optional[str],
    patient_name: str,
    notification_type: str,
    email_func,
    email_kwargs: dict,
) -> dict:
    """
    Send one patient notification

    Args:
        patient_email: Patient email address
        patient_name: Patient name for logging
        notification_type: Type of notification (for logging)
        email_func: Email function to call
        email_kwargs: Kwargs for email function

    Returns:
        Dict with email_sent status and email_error
    """
    result = {"email_sent": False, "email_error": None}

    if not patient_email:
        logger.warning(f"⚠️ No email address for {notification_type} notification to {patient_name}")
        return result

    try:
        logger.info(f"📧 Sending {notification_type} email to {patient_email}")
        await email_func(to=patient_email, **email_kwargs)
        result["email_sent"] = True
        logger.info(f"✅ {notification_type} email sent successfully to {patient_email}")
    except Exception as e:
        result["email_error"] = str(e)
        logger.error(f"❌ Failed to send {notification_type} email to {patient_email}: {e}")

    return result


async def notify_invoice_issued(patient, invoice, practice_name: str) -> dict:
    """Payment request for an issued invoice"""
    return await send_notification(
        patient_email=patient.email,
        patient_name=patient.display_name,
        notification_type="invoice issued",
        email_func=send_invoice_payment_request_email,
        email_kwargs={
            "patient_name": patient.display_name,
            "practice_name": practice_name,
            "invoice_number": invoice.invoice_number,
            "patient_amount_cents": invoice.patient_amount_cents,
            "mutuality_amount_cents": invoice.mutuality_amount_cents,
            "currency": invoice.currency,
            "due_date": invoice.due_date.strftime("%Y-%m-%d") if invoice.due_date else None,
            "payment_link": invoice.payment_link,
        },
    )
