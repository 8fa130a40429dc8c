"""Domain exceptions shared by the scheduling and billing domains.

Each exception carries the HTTP status the API answers with; ``main.py`` renders
them through a single exception handler so services never import FastAPI.
"""

from typing import Optional


class DentalCoreError(Exception):
    """Base class for errors raised by the scheduling/billing core"""

    status_code = 500
    code = "internal_error"

    def __init__(self, detail: str, **context):
        super().__init__(detail)
        self.detail = detail
        self.context = context

    def to_dict(self) -> dict:
        payload = {"detail": self.detail, "error": self.code}
        payload.update({k: v for k, v in self.context.items() if v is not None})
        return payload


class ValidationError(DentalCoreError):
    """Missing or malformed input"""

    status_code = 400
    code = "validation_error"


class NotFoundError(DentalCoreError):
    """Unknown professional, service, patient, appointment, tariff or invoice"""

    status_code = 404
    code = "not_found"


class ConflictError(DentalCoreError):
    """Overlapping booking or illegal state transition"""

    status_code = 409
    code = "conflict"


class AlreadyClaimedError(ConflictError):
    """Another appointment already holds the ledger slot"""

    code = "already_claimed"


class AlreadyCompleted(DentalCoreError):
    """Idempotency short-circuit: the appointment was already completed/paid.

    Not a failure. The API answers 200 and echoes the existing invoice.
    """

    status_code = 200
    code = "already_completed"

    def __init__(self, detail: str, invoice_id: Optional[str] = None, appointment_id: Optional[str] = None):
        super().__init__(detail, invoice_id=invoice_id, appointment_id=appointment_id)
        self.invoice_id = invoice_id
        self.appointment_id = appointment_id

    def to_dict(self) -> dict:
        payload = super().to_dict()
        payload["status"] = "already_completed"
        return payload


class DependencyFailure(DentalCoreError):
    """Datastore, payment processor or mail provider failed; the caller decides whether to retry"""

    status_code = 500
    code = "dependency_failure"
