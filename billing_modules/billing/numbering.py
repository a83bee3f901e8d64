"""
Invoice and credit-note number generators.

Allocate a value from the per-organization sequence and format it as
``{PREFIX}-{YYYYMM}-{NNNNNN}``.  No locking happens here; atomicity is the
sequence provider's job.
"""

from __future__ import annotations

from uuid import UUID

from billing_engines.numbering import (
    DEFAULT_PREFIXES,
    DocumentType,
    format_document_number,
    resolve_prefix,
)
from billing_kernel.domain.clock import Clock, SystemClock
from billing_kernel.logging_config import get_logger
from billing_modules.billing.ports import NumberSequenceProvider

logger = get_logger("modules.billing.numbering")


class DocumentNumberGenerator:
    """Numbers for one document type."""

    document_type: DocumentType

    def __init__(
        self,
        sequences: NumberSequenceProvider,
        clock: Clock | None = None,
        default_prefix: str | None = None,
    ):
        self._sequences = sequences
        self._clock = clock or SystemClock()
        self._default_prefix = resolve_prefix(self.document_type, default_prefix)

    @property
    def default_prefix(self) -> str:
        return self._default_prefix

    def generate_next(self, org_id: UUID, prefix: str | None = None) -> str:
        """Next number for ``org_id``; a blank ``prefix`` uses the default."""
        resolved = resolve_prefix(
            self.document_type, prefix, {self.document_type: self._default_prefix},
        )
        sequence = self._sequences.next_value(org_id, self.document_type.value)
        number = format_document_number(resolved, self._clock.now_utc(), sequence)
        logger.debug(
            "document_number_generated",
            extra={
                "org_id": str(org_id),
                "document_type": self.document_type.value,
                "document_number": number,
            },
        )
        return number


class InvoiceNumberGenerator(DocumentNumberGenerator):
    document_type = DocumentType.INVOICE


class CreditNoteNumberGenerator(DocumentNumberGenerator):
    document_type = DocumentType.CREDIT_NOTE


__all__ = [
    "DEFAULT_PREFIXES",
    "CreditNoteNumberGenerator",
    "DocumentNumberGenerator",
    "InvoiceNumberGenerator",
]
