"""
billing_batch -- Invoice runs.

Generates invoices for every active lease of an organization in one run,
isolating per-lease failures and recording a run with one item per lease.

Architecture:
    billing_batch/ is a top-level package.  Nothing in kernel/, engines/
    or modules/ imports from billing_batch.
"""
