"""
SequenceService -- monotonic sequence allocation via locked counter rows.

Responsibility:
    Provides strictly increasing sequence numbers and formats them into the
    human-readable document numbers used for orders (``PED-YYMM-NNNNNN``)
    and budgets (``BUD-YYMM-NNNNNN``).  A dedicated counter table with
    row-level locking (``SELECT ... FOR UPDATE``) guarantees uniqueness
    under concurrent access.

Architecture position:
    Kernel > Services -- imperative shell infrastructure.  Called by the
    budget and order services when a document is created.

Invariants enforced:
    - The locked counter row is the sole source of truth for the next value;
      MAX(number)+1 is never used.
    - The increment is only visible after the caller's transaction commits.
    - The counter is global (it does not restart each month); YYMM is a
      display prefix taken from the injected clock.

Failure modes:
    - IntegrityError on concurrent counter creation: handled via savepoint
      rollback and retry.
    - Any other database error while allocating a document number falls
      back to a random six-digit suffix (logged at WARNING) so document
      creation is never blocked by the numbering mechanism.
"""

import secrets

from sqlalchemy import BigInteger, String, select
from sqlalchemy.exc import IntegrityError, SQLAlchemyError
from sqlalchemy.orm import Mapped, Session, mapped_column

from backoffice_kernel.db.base import Base
from backoffice_kernel.domain.clock import Clock, SystemClock
from backoffice_kernel.logging_config import get_logger

logger = get_logger("services.sequence")


class SequenceCounter(Base):
    """
    Sequence counter table.

    Each row represents a named sequence with its current value.
    """

    __tablename__ = "sequence_counters"

    name: Mapped[str] = mapped_column(
        String(50),
        nullable=False,
        unique=True,
    )

    current_value: Mapped[int] = mapped_column(
        BigInteger,
        nullable=False,
        default=0,
    )


class SequenceService:
    """
    Service for generating transactional sequence numbers.

    Contract:
        Accepts a sequence name and returns the next strictly-monotonic
        integer value.

    Non-goals:
        - Does NOT call ``session.commit()`` -- caller controls boundaries.
    """

    ORDER_NUMBER = "order_number"
    BUDGET_NUMBER = "budget_number"

    ORDER_PREFIX = "PED"
    BUDGET_PREFIX = "BUD"

    def __init__(self, session: Session, clock: Clock | None = None):
        self._session = session
        self._clock = clock or SystemClock()

    def next_value(self, sequence_name: str) -> int:
        """
        Get the next value for a named sequence.

        Locks the counter row (creating it on first use), increments it and
        returns the new value.  If the transaction rolls back, the value is
        not consumed.
        """
        counter = self._session.execute(
            select(SequenceCounter)
            .where(SequenceCounter.name == sequence_name)
            .with_for_update()
            .execution_options(populate_existing=True)
        ).scalar_one_or_none()

        if counter is None:
            # Savepoint so a creation race does not roll back the caller's work
            savepoint = self._session.begin_nested()
            try:
                counter = SequenceCounter(name=sequence_name, current_value=1)
                self._session.add(counter)
                self._session.flush()
                savepoint.commit()
                logger.debug(
                    "sequence_allocated",
                    extra={"sequence_name": sequence_name, "value": 1},
                )
                return 1
            except IntegrityError:
                logger.debug(
                    "sequence_counter_race_retry",
                    extra={"sequence_name": sequence_name},
                )
                savepoint.rollback()
                counter = self._session.execute(
                    select(SequenceCounter)
                    .where(SequenceCounter.name == sequence_name)
                    .with_for_update()
                    .execution_options(populate_existing=True)
                ).scalar_one()

        counter.current_value += 1
        self._session.flush()
        logger.debug(
            "sequence_allocated",
            extra={"sequence_name": sequence_name, "value": counter.current_value},
        )
        return counter.current_value

    def current_value(self, sequence_name: str) -> int | None:
        """Current value of a sequence without incrementing, or None."""
        counter = self._session.execute(
            select(SequenceCounter)
            .where(SequenceCounter.name == sequence_name)
        ).scalar_one_or_none()

        return counter.current_value if counter else None

    # -------------------------------------------------------------------------
    # Document numbers
    # -------------------------------------------------------------------------

    def next_order_number(self) -> str:
        return self._next_document_number(self.ORDER_NUMBER, self.ORDER_PREFIX)

    def next_budget_number(self) -> str:
        return self._next_document_number(self.BUDGET_NUMBER, self.BUDGET_PREFIX)

    def _next_document_number(self, sequence_name: str, prefix: str) -> str:
        now = self._clock.now()
        yymm = f"{now.year % 100:02d}{now.month:02d}"
        savepoint = self._session.begin_nested()
        try:
            value = self.next_value(sequence_name)
            savepoint.commit()
        except SQLAlchemyError:
            savepoint.rollback()
            value = secrets.randbelow(1_000_000)
            logger.warning(
                "sequence_unavailable_random_fallback",
                extra={"sequence_name": sequence_name, "value": value},
                exc_info=True,
            )
        return format_document_number(prefix, yymm, value)


def format_document_number(prefix: str, yymm: str, value: int) -> str:
    """``PED``, ``2401``, 7 -> ``PED-2401-000007``."""
    return f"{prefix}-{yymm}-{value:06d}"
