"""
Typed Exception Hierarchy for the Booking Kernel.

===============================================================================
WHY TYPED EXCEPTIONS
===============================================================================

Every status transition in this kernel touches several records (contract
rows, per-date rows, bookings, the availability ledger).  Callers must be
able to tell "the musician sent garbage" apart from "the contract was already
signed" apart from "the availability side effect failed" without parsing
message strings.

Every exception here:
  1. Has a TYPED class (catch by type, not message)
  2. Has a CODE class attribute (machine-readable, API-safe)
  3. Carries structured DATA as attributes
  4. Maps to an HTTP status via ``http_status`` for the thin HTTP surface

Example:
    try:
        service.respond(token, RespondAction.SIGN)
    except ContractAlreadyRespondedError as e:
        api_response(status=e.http_status, code=e.code, status_value=e.current_status)

===============================================================================
EXCEPTION HIERARCHY
===============================================================================

    BookingKernelError (base)
    |
    +-- ValidationError                  (400, aborts the call)
    |   +-- DuplicateRecordError
    |   +-- MissingSignatureError
    |
    +-- NotFoundError                    (404, aborts the call)
    |   +-- RecordNotFoundError
    |   +-- ContractNotFoundError
    |   +-- TokenNotFoundError
    |   +-- InvoiceNotFoundError
    |
    +-- InvalidStateError                (400, aborts the call)
    |   +-- InvalidTransitionError
    |   +-- ContractAlreadyRespondedError
    |   +-- ContractExpiredError
    |   +-- InvoiceTransitionError
    |
    +-- DownstreamError                  (caught and logged, never aborts)
        +-- AvailabilityUpdateError
        +-- EmailDispatchError
        +-- ActivityLogError
        +-- SagaStepError

===============================================================================
HANDLING PATTERNS
===============================================================================

ValidationError, NotFoundError and InvalidStateError propagate to the caller
and abort the originating operation.

DownstreamError is raised by side-effect collaborators and caught by the
saga runner (or the email path).  The primary transition stands; the failure
is logged and, for saga steps, dead-lettered for replay.
"""


class BookingKernelError(Exception):
    """
    Base exception for all booking kernel errors.

    All subclasses must have a `code` class attribute for machine-readable
    error identification.
    """

    code: str = "BOOKING_KERNEL_ERROR"
    http_status: int = 500


# Validation


class ValidationError(BookingKernelError):
    """Malformed or missing input."""

    code: str = "VALIDATION_ERROR"
    http_status: int = 400

    def __init__(self, message: str, field: str | None = None):
        self.field = field
        super().__init__(message)


class DuplicateRecordError(ValidationError):
    """A unique key (token, invoice key, availability date) already exists."""

    code: str = "DUPLICATE_RECORD"

    def __init__(self, record_type: str, key: dict):
        self.record_type = record_type
        self.key = key
        super().__init__(f"Duplicate {record_type} for key {key}")


class MissingSignatureError(ValidationError):
    """Signing a single-event contract requires a signature value."""

    code: str = "MISSING_SIGNATURE"

    def __init__(self):
        super().__init__("Signature is required to accept the contract", field="signature")


# Not found


class NotFoundError(BookingKernelError):
    """Unknown id or token."""

    code: str = "NOT_FOUND"
    http_status: int = 404

    def __init__(self, entity_type: str, entity_id: str):
        self.entity_type = entity_type
        self.entity_id = str(entity_id)
        super().__init__(f"{entity_type} not found: {entity_id}")


class RecordNotFoundError(NotFoundError):
    """Generic storage lookup miss."""

    code: str = "RECORD_NOT_FOUND"


class ContractNotFoundError(NotFoundError):
    """Monthly contract, contract-musician or contract link not found."""

    code: str = "CONTRACT_NOT_FOUND"


class TokenNotFoundError(NotFoundError):
    """No contract is bound to the given signing token."""

    code: str = "TOKEN_NOT_FOUND"

    def __init__(self, token: str):
        # Never echo the full bearer token back into messages or logs.
        super().__init__("contract token", f"{token[:6]}...")


class InvoiceNotFoundError(NotFoundError):
    """Monthly invoice not found."""

    code: str = "INVOICE_NOT_FOUND"

    def __init__(self, invoice_id: str):
        super().__init__("MonthlyInvoice", invoice_id)


# Invalid state


class InvalidStateError(BookingKernelError):
    """Illegal transition for the record's current status."""

    code: str = "INVALID_STATE"
    http_status: int = 400

    def __init__(
        self,
        message: str,
        entity_type: str | None = None,
        entity_id: str | None = None,
        current_status: str | None = None,
    ):
        self.entity_type = entity_type
        self.entity_id = str(entity_id) if entity_id is not None else None
        self.current_status = current_status
        super().__init__(message)


class InvalidTransitionError(InvalidStateError):
    """No transition exists for (current status, action)."""

    code: str = "INVALID_TRANSITION"

    def __init__(
        self, entity_type: str, entity_id: str, current_status: str, action: str,
    ):
        self.action = action
        super().__init__(
            f"Cannot {action} {entity_type} {entity_id} in status '{current_status}'",
            entity_type=entity_type,
            entity_id=entity_id,
            current_status=current_status,
        )


class ContractAlreadyRespondedError(InvalidStateError):
    """A decided contract cannot be responded to again."""

    code: str = "CONTRACT_ALREADY_RESPONDED"

    def __init__(self, entity_type: str, entity_id: str, current_status: str):
        super().__init__(
            f"This contract has already been responded to (status '{current_status}')",
            entity_type=entity_type,
            entity_id=entity_id,
            current_status=current_status,
        )


class ContractExpiredError(InvalidStateError):
    """Single-event contract link past its expiry."""

    code: str = "CONTRACT_EXPIRED"

    def __init__(self, entity_id: str, expires_at: str):
        self.expires_at = expires_at
        super().__init__(
            "This contract link has expired",
            entity_type="ContractLink",
            entity_id=entity_id,
        )


class InvoiceTransitionError(InvalidStateError):
    """Invoice transitions are strictly draft -> finalized -> paid."""

    code: str = "INVOICE_TRANSITION"

    def __init__(self, invoice_id: str, current_status: str, target_status: str):
        self.target_status = target_status
        super().__init__(
            f"Invoice {invoice_id} cannot move from '{current_status}' to '{target_status}'",
            entity_type="MonthlyInvoice",
            entity_id=invoice_id,
            current_status=current_status,
        )


# Downstream side effects


class DownstreamError(BookingKernelError):
    """A side effect (email, availability, activity log) failed."""

    code: str = "DOWNSTREAM_ERROR"

    def __init__(self, operation: str, reason: str):
        self.operation = operation
        self.reason = reason
        super().__init__(f"{operation} failed: {reason}")


class AvailabilityUpdateError(DownstreamError):
    code: str = "AVAILABILITY_UPDATE_FAILED"


class EmailDispatchError(DownstreamError):
    code: str = "EMAIL_DISPATCH_FAILED"


class ActivityLogError(DownstreamError):
    code: str = "ACTIVITY_LOG_FAILED"


class SagaStepError(DownstreamError):
    """A saga step exhausted its retries and was dead-lettered."""

    code: str = "SAGA_STEP_FAILED"

    def __init__(self, saga_name: str, step_name: str, attempts: int, reason: str):
        self.saga_name = saga_name
        self.step_name = step_name
        self.attempts = attempts
        super().__init__(f"{saga_name}.{step_name}", f"{reason} (after {attempts} attempts)")
