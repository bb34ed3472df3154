"""Kernel services."""

from invoice_kernel.services.invoice_session import (
    FinalizedInvoice,
    InvoicePreview,
    InvoiceSession,
    SessionSettings,
    SessionState,
)

__all__ = [
    "FinalizedInvoice",
    "InvoicePreview",
    "InvoiceSession",
    "SessionSettings",
    "SessionState",
]
