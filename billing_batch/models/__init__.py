"""Invoice-run ORM models and the SQL run store."""

from billing_batch.models.run import InvoiceRunItemModel, InvoiceRunModel, SqlInvoiceRunStore

__all__ = ["InvoiceRunItemModel", "InvoiceRunModel", "SqlInvoiceRunStore"]
