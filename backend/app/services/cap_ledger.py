"""
Hard-cap ledger.

The running total of confirmed amounts lives in a single cap_ledger row. A
reservation is one conditional UPDATE:

    UPDATE cap_ledger
       SET total_confirmed = total_confirmed + :amount
     WHERE id = 1 AND total_confirmed <= :hard_cap - :amount

The database evaluates the check and the increment together, so racing
reservations can never push the total past the cap. A reservation whose
investment is not persisted must be handed back with release().
"""

import logging
from typing import Optional

from tortoise.expressions import F

from app.core.constants import CAP_LEDGER_ID
from app.core.config import settings
from app.core.errors import CapExceededError, ConfigurationMissing, ValidationError
from app.models.presale import RaisedTotal
from app.services.stores import InvestmentStore, call_store

logger = logging.getLogger(__name__)


class CapLedger:
    def __init__(self, timeout: Optional[float] = None):
        self._timeout = settings.store_timeout_seconds if timeout is None else timeout

    async def ensure(self) -> None:
        """Create the ledger row if this is a fresh database."""
        _, created = await call_store(
            RaisedTotal.get_or_create(id=CAP_LEDGER_ID, defaults={"total_confirmed": 0}),
            "initialising cap ledger",
            self._timeout,
        )
        if created:
            logger.info("Initialised cap ledger")

    async def total(self) -> int:
        row = await call_store(
            RaisedTotal.get_or_none(id=CAP_LEDGER_ID),
            "reading cap ledger",
            self._timeout,
        )
        if row is None:
            raise ConfigurationMissing("Cap ledger not initialised")
        return row.total_confirmed

    async def try_reserve(self, amount: int, hard_cap: int) -> None:
        """Atomically add amount to the total if it stays within hard_cap.

        Once the UPDATE has applied nothing else is read, so the only way out
        of a successful call is a held reservation.
        """
        if amount <= 0:
            raise ValidationError("Reservation amount must be positive")

        updated = await call_store(
            RaisedTotal.filter(
                id=CAP_LEDGER_ID, total_confirmed__lte=hard_cap - amount
            ).update(total_confirmed=F("total_confirmed") + amount),
            "reserving hard cap capacity",
        )
        if not updated:
            current = await self.total()
            logger.warning(
                f"Hard cap reservation refused: total={current} amount={amount} cap={hard_cap}"
            )
            raise CapExceededError(
                "Investment would exceed hard cap",
                details={"remaining": max(0, hard_cap - current)},
            )

    async def release(self, amount: int) -> None:
        """Compensating decrement for a reservation that was not persisted."""
        try:
            await call_store(
                RaisedTotal.filter(id=CAP_LEDGER_ID).update(
                    total_confirmed=F("total_confirmed") - amount
                ),
                "releasing hard cap reservation",
            )
        except Exception:
            logger.error(
                f"Failed to release reservation of {amount}; ledger overstates the total "
                "until it is reconciled"
            )
            raise

    async def reconcile(self, investments: InvestmentStore) -> int:
        """Recompute the total from confirmed investments.

        Run while admissions are paused: reservations in flight are overwritten.
        """
        await self.ensure()
        total = await investments.sum_confirmed_amount()
        await call_store(
            RaisedTotal.filter(id=CAP_LEDGER_ID).update(total_confirmed=total),
            "reconciling cap ledger",
        )
        logger.info(f"Cap ledger reconciled to {total}")
        return total
