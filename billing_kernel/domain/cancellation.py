"""
CancellationToken -- cooperative cancellation for long-running operations.

Responsibility:
    Carries a cancel request from a caller (scheduler, API shutdown hook)
    into invoice generation and invoice runs.  Services call
    ``raise_if_cancelled()`` before each repository call; nothing is
    interrupted mid-write.

Architecture position:
    Kernel > Domain.  Backed by ``threading.Event`` so a token can be
    signalled from another thread than the one doing the work.
"""

import threading

from billing_kernel.exceptions import OperationCancelledError


class CancellationToken:
    """Thread-safe, one-way cancel flag."""

    def __init__(self) -> None:
        self._event = threading.Event()

    def cancel(self) -> None:
        self._event.set()

    @property
    def is_cancelled(self) -> bool:
        return self._event.is_set()

    def raise_if_cancelled(self, operation: str) -> None:
        """Raise OperationCancelledError once ``cancel()`` has been called."""
        if self._event.is_set():
            raise OperationCancelledError(operation)


def check_cancelled(token: CancellationToken | None, operation: str) -> None:
    """``raise_if_cancelled`` that tolerates a missing token."""
    if token is not None:
        token.raise_if_cancelled(operation)
