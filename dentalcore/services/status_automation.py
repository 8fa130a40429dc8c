"""
Status transition rules for appointments and invoices
Appointment statuses: scheduled ↔ confirmed → completed/cancelled
Invoice statuses: draft → issued → paid, draft/issued → void
Claim statuses: to_be_submitted → submitted → settled
"""

APPOINTMENT_TRANSITIONS = {
    "scheduled": ["confirmed", "completed", "cancelled"],
    "confirmed": ["scheduled", "completed", "cancelled"],
    "completed": [],  # Terminal state
    "cancelled": [],  # Terminal state, un-cancelling could reintroduce an overlap
}

INVOICE_TRANSITIONS = {
    "draft": ["issued", "paid", "void"],  # draft → paid covers payment captured at the chair
    "issued": ["paid", "void"],
    "paid": [],  # Immutable; refunds are a separate document
    "void": [],
}

CLAIM_TRANSITIONS = {
    "to_be_submitted": ["submitted"],
    "submitted": ["settled"],
    "settled": [],
}


def _is_allowed(transitions: dict, current_status: str, new_status: str) -> bool:
    # Allow same status (no-op)
    if current_status == new_status:
        return True
    return new_status in transitions.get(current_status, [])


def validate_appointment_transition(current_status: str, new_status: str) -> bool:
    """
    Validate if an appointment status transition is allowed

    Args:
        current_status: Current appointment status
        new_status: Desired new status

    Returns:
        bool: True if transition is valid, False otherwise
    """
    return _is_allowed(APPOINTMENT_TRANSITIONS, current_status, new_status)


def validate_invoice_transition(current_status: str, new_status: str) -> bool:
    """Validate if an invoice status transition is allowed"""
    return _is_allowed(INVOICE_TRANSITIONS, current_status, new_status)


def validate_claim_transition(current_status: str, new_status: str) -> bool:
    """Validate if an insurance claim status transition is allowed (forward only)"""
    return _is_allowed(CLAIM_TRANSITIONS, current_status, new_status)
