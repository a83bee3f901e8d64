"""
Module: billing_engines.numbering
Responsibility:
    Format document numbers as ``{PREFIX}-{YYYYMM}-{NNNNNN}`` from an
    already-allocated sequence value.  Sequence allocation itself happens
    in the persistence layer (see billing_kernel.services.sequence_service).

Architecture position:
    Engines -- pure calculation layer, zero I/O.  The timestamp is passed
    in; this module never reads the clock.
"""

from __future__ import annotations

from datetime import datetime, timezone
from enum import Enum
from types import MappingProxyType
from typing import Mapping


class DocumentType(str, Enum):
    """Numbered document types. Values double as sequence-type keys."""

    INVOICE = "Invoice"
    CREDIT_NOTE = "CreditNote"


DEFAULT_PREFIXES: Mapping[DocumentType, str] = MappingProxyType({
    DocumentType.INVOICE: "INV",
    DocumentType.CREDIT_NOTE: "CN",
})

SEQUENCE_WIDTH = 6


def resolve_prefix(
    document_type: DocumentType,
    prefix: str | None,
    defaults: Mapping[DocumentType, str] = DEFAULT_PREFIXES,
) -> str:
    """``prefix`` stripped, or the document type's default if blank."""
    if prefix is None or not prefix.strip():
        return defaults[document_type]
    return prefix.strip()


def format_document_number(prefix: str, issued_at: datetime, sequence: int) -> str:
    """
    ``INV-202401-000042``.

    The year/month are taken from ``issued_at`` in UTC.
    """
    if sequence <= 0:
        raise ValueError("Sequence value must be positive")
    stamp = issued_at.astimezone(timezone.utc) if issued_at.tzinfo else issued_at
    return f"{prefix}-{stamp:%Y%m}-{sequence:0{SEQUENCE_WIDTH}d}"
