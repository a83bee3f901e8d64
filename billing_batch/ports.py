"""Repository port for invoice runs; the SQL adapter is ``billing_batch.models.run``."""

from __future__ import annotations

from typing import Protocol, runtime_checkable

from billing_batch.domain.types import InvoiceRun


@runtime_checkable
class InvoiceRunStore(Protocol):
    def add(self, run: InvoiceRun) -> InvoiceRun:
        """Single write at run completion, items included."""
        ...
