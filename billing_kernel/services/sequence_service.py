"""
SequenceService -- per-organization document sequences via locked counter rows.

Responsibility:
    Provides strictly increasing sequence numbers for invoice and credit-note
    numbering, one counter per (organization, sequence type).  Uses a
    dedicated counter table with row-level locking (``SELECT ... FOR UPDATE``)
    so concurrent invoice generation never hands out the same number twice.

Architecture position:
    Kernel > Services -- imperative shell infrastructure.
    Implements the ``NumberSequenceProvider`` port consumed by the invoice
    and credit-note number generators.

Invariants enforced:
    - Monotonicity: the locked counter row is the sole source of truth for
      the next value.  MAX(number)+1 over the documents table is never used.
    - Transactional: an increment is only visible after the caller's
      transaction commits.  Rollback returns the value.

Failure modes:
    - IntegrityError: concurrent counter creation race (handled via
      savepoint rollback and retry).
"""

from uuid import UUID

from sqlalchemy import BigInteger, String, UniqueConstraint, select
from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Mapped, Session, mapped_column

from billing_kernel.db.base import Base, UUIDString
from billing_kernel.logging_config import get_logger

logger = get_logger("services.sequence")


class SequenceCounter(Base):
    """
    Sequence counter table.

    One row per organization and sequence type, holding the last value
    handed out.
    """

    __tablename__ = "number_sequences"

    __table_args__ = (
        UniqueConstraint("org_id", "sequence_type", name="uq_number_sequence_org_type"),
    )

    org_id: Mapped[UUID] = mapped_column(UUIDString(), nullable=False)

    # "Invoice", "CreditNote"
    sequence_type: Mapped[str] = mapped_column(String(50), nullable=False)

    current_value: Mapped[int] = mapped_column(
        BigInteger,
        nullable=False,
        default=0,
    )


class SequenceService:
    """
    Service for generating transactional document sequence numbers.

    Contract:
        ``next_value(org_id, sequence_type)`` returns the next strictly
        increasing integer for that organization and document type.

    Non-goals:
        - Does NOT call ``session.commit()`` -- caller controls boundaries.
        - Does NOT format document numbers (see billing_engines.numbering).

    Usage:
        with session_scope() as session:
            seq = SequenceService(session).next_value(org_id, SequenceService.INVOICE)
    """

    INVOICE = "Invoice"
    CREDIT_NOTE = "CreditNote"

    def __init__(self, session: Session):
        self._session = session

    def _locked_counter(self, org_id: UUID, sequence_type: str) -> SequenceCounter | None:
        return self._session.execute(
            select(SequenceCounter)
            .where(
                SequenceCounter.org_id == org_id,
                SequenceCounter.sequence_type == sequence_type,
            )
            .with_for_update()
            .execution_options(populate_existing=True)
        ).scalar_one_or_none()

    def next_value(self, org_id: UUID, sequence_type: str) -> int:
        """
        Lock (or create) the counter row, increment it and return the new value.

        Postconditions:
            - Returns an integer > 0, strictly greater than any value
              previously returned for this organization and sequence type.
            - The counter row stays locked until the transaction completes.
        """
        counter = self._locked_counter(org_id, sequence_type)

        if counter is None:
            # First use of this sequence. Savepoint keeps a lost creation
            # race from rolling back the caller's other work.
            savepoint = self._session.begin_nested()
            try:
                counter = SequenceCounter(
                    org_id=org_id, sequence_type=sequence_type, current_value=1,
                )
                self._session.add(counter)
                self._session.flush()
                savepoint.commit()
                logger.debug(
                    "sequence_allocated",
                    extra={"sequence_type": sequence_type, "org_id": str(org_id), "value": 1},
                )
                return 1
            except IntegrityError:
                logger.debug(
                    "sequence_counter_race_retry",
                    extra={"sequence_type": sequence_type, "org_id": str(org_id)},
                )
                savepoint.rollback()
                self._session.expire_all()
                counter = self._locked_counter(org_id, sequence_type)
                if counter is None:
                    raise

        counter.current_value += 1
        self._session.flush()
        logger.debug(
            "sequence_allocated",
            extra={
                "sequence_type": sequence_type,
                "org_id": str(org_id),
                "value": counter.current_value,
            },
        )
        return counter.current_value

    def current_value(self, org_id: UUID, sequence_type: str) -> int | None:
        """Current value without incrementing, or None if never used."""
        counter = self._session.execute(
            select(SequenceCounter).where(
                SequenceCounter.org_id == org_id,
                SequenceCounter.sequence_type == sequence_type,
            )
        ).scalar_one_or_none()

        return counter.current_value if counter else None
