"""
Typed exception hierarchy for the invoice kernel.

Every error carries a machine-readable ``code`` class attribute and keeps
its context as structured attributes, so callers catch by type and read
fields instead of parsing messages.

    InvoiceKernelError (base)
    |
    +-- ValidationError
    |
    +-- CurrencyError
    |   +-- UnknownCurrencyError
    |
    +-- FingerprintError
    |   +-- HashUnavailableError
    |
    +-- HistoryError
    |   +-- HistoryIndexError
    |   +-- DeserializationError
    |
    +-- SessionError
        +-- SessionBusyError

Category        | Code                            | When Raised
----------------|---------------------------------|------------------------------------
Validation      | VALIDATION_FAILED               | Line item candidate rejected
Currency        | UNKNOWN_CURRENCY                | Code not in the configured set
Fingerprint     | HASH_UNAVAILABLE                | SHA-256 primitive missing or broken
History         | HISTORY_INDEX_OUT_OF_RANGE      | get/delete with a bad index
                | HISTORY_DESERIALIZATION_FAILED  | Persisted history is corrupted
Session         | SESSION_BUSY                    | Mutation while a finalize runs

Handling patterns:

    try:
        session.add_item(name, quantity, price)
    except ValidationError as e:
        for field_error in e.field_errors:
            show_inline(field_error["field"], field_error["message"])

    try:
        finalized = session.finalize(tax_rate, currency)
    except HashUnavailableError:
        # nothing was committed; items, counter and history are untouched
        offer_retry()
"""


class InvoiceKernelError(Exception):
    """
    Base exception for all invoice kernel errors.

    All subclasses must define a ``code`` class attribute.
    """

    code: str = "INVOICE_KERNEL_ERROR"


# Validation


class ValidationError(InvoiceKernelError):
    """
    Entered values failed validation (line item fields or the invoice
    header fields).

    ``field_errors`` lists every failing field, not just the first one.
    Each entry is ``{"field": ..., "message": ..., "value": ...}``.
    """

    code: str = "VALIDATION_FAILED"

    def __init__(self, field_errors: list[dict]):
        self.field_errors = field_errors
        fields = ", ".join(e["field"] for e in field_errors)
        super().__init__(
            f"Validation failed: {len(field_errors)} error(s) ({fields})"
        )

    @property
    def fields(self) -> tuple[str, ...]:
        """Names of the fields that failed, in report order."""
        return tuple(e["field"] for e in self.field_errors)


# Currency


class CurrencyError(InvoiceKernelError):
    """Base exception for currency-related errors."""

    code: str = "CURRENCY_ERROR"


class UnknownCurrencyError(CurrencyError):
    """Currency code is not part of the configured set."""

    code: str = "UNKNOWN_CURRENCY"

    def __init__(self, currency: str, known: tuple[str, ...] = ()):
        self.currency = currency
        self.known = known
        super().__init__(f"Unknown currency code: {currency!r}")


# Fingerprint


class FingerprintError(InvoiceKernelError):
    """Base exception for fingerprinting errors."""

    code: str = "FINGERPRINT_ERROR"


class HashUnavailableError(FingerprintError):
    """
    The SHA-256 hashing primitive could not be obtained or failed.

    An invoice must never be finalized without a fingerprint, so the
    finalize transition aborts when this is raised.
    """

    code: str = "HASH_UNAVAILABLE"

    def __init__(self, algorithm: str, reason: str):
        self.algorithm = algorithm
        self.reason = reason
        super().__init__(f"Hash algorithm {algorithm} unavailable: {reason}")


# History


class HistoryError(InvoiceKernelError):
    """Base exception for history ledger errors."""

    code: str = "HISTORY_ERROR"


class HistoryIndexError(HistoryError, IndexError):
    """Index does not address a record in the history ledger."""

    code: str = "HISTORY_INDEX_OUT_OF_RANGE"

    def __init__(self, index: int, size: int):
        self.index = index
        self.size = size
        super().__init__(
            f"History index {index} out of range for ledger of size {size}"
        )


class DeserializationError(HistoryError):
    """Persisted history could not be decoded into records."""

    code: str = "HISTORY_DESERIALIZATION_FAILED"

    def __init__(self, reason: str):
        self.reason = reason
        super().__init__(f"Cannot load invoice history: {reason}")


# Session


class SessionError(InvoiceKernelError):
    """Base exception for invoice session errors."""

    code: str = "SESSION_ERROR"


class SessionBusyError(SessionError):
    """A mutation was attempted while a finalize transition is in flight."""

    code: str = "SESSION_BUSY"

    def __init__(self, operation: str):
        self.operation = operation
        super().__init__(
            f"Cannot {operation}: invoice finalization is in progress"
        )
