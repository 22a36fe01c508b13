"""
Investment admission.

InvestmentAdmitter accepts or rejects one investment attempt. Checks run in a
fixed order so callers always get the most precise rejection:

    1. input format
    2. duplicate transaction id
    3. presale phase (not started / ended)
    4. per-investment bounds
    5. whitelist tier vs phase
    6. hard cap reservation
    7. persistence (reservation released on failure)

validate() runs the same phase and tier logic without touching any state.
"""

import asyncio
import logging
from dataclasses import dataclass
from datetime import datetime, timezone
from typing import Callable, Optional

from app.core.amounts import TokenAllocation, compute_allocation
from app.core.eligibility import EligibilityReason, Tier, evaluate
from app.core.errors import (
    AmountOutOfBoundsError,
    DuplicateTransactionError,
    IneligibleError,
    PresaleEndedError,
    PresaleNotStartedError,
    StorageFailure,
    ValidationError,
)
from app.core.identifiers import normalize_transaction_id, normalize_wallet_address
from app.core.phase_clock import Phase, PhaseStatus, current_phase, phase_status
from app.models.presale import Investment, InvestmentStatus
from app.services.cap_ledger import CapLedger
from app.services.stores import ConfigStore, InvestmentStore, WhitelistStore

logger = logging.getLogger(__name__)

Clock = Callable[[], datetime]


def utc_now() -> datetime:
    return datetime.now(timezone.utc)


@dataclass(frozen=True)
class AdmissionResult:
    investment: Investment
    # False when an identical earlier submission was returned instead
    created: bool


@dataclass(frozen=True)
class ValidationResult:
    wallet_address: str
    phase: Phase
    tier: Tier
    is_whitelisted: bool
    eligible: bool
    reason: EligibilityReason
    message: str
    current_investment: int
    min_investment: int
    max_investment: int
    rate: int


class InvestmentAdmitter:
    def __init__(
        self,
        config_store: ConfigStore,
        whitelist_store: WhitelistStore,
        investment_store: InvestmentStore,
        ledger: CapLedger,
        clock: Clock = utc_now,
    ):
        self._config = config_store
        self._whitelist = whitelist_store
        self._investments = investment_store
        self._ledger = ledger
        self._clock = clock

    async def current_phase(self) -> PhaseStatus:
        config = await self._config.get()
        return phase_status(config.windows(), self._clock())

    async def resolve_tier(self, wallet_address: str) -> tuple[Tier, bool]:
        """Return (tier, is_whitelisted). Inactive entries count as unlisted."""
        entry = await self._whitelist.lookup(wallet_address)
        if entry is None or not entry.is_active:
            return Tier.NONE, False
        return entry.tier, True

    async def validate(self, wallet_address: str) -> ValidationResult:
        """Read-only eligibility check for status pages. Never mutates state."""
        address = normalize_wallet_address(wallet_address)
        config = await self._config.get()
        phase = current_phase(config.windows(), self._clock())
        tier, is_whitelisted = await self.resolve_tier(address)
        decision = evaluate(tier, phase)
        invested = await self._investments.sum_confirmed_amount(wallet_address=address)
        return ValidationResult(
            wallet_address=address,
            phase=phase,
            tier=tier,
            is_whitelisted=is_whitelisted,
            eligible=decision.eligible,
            reason=decision.reason,
            message=decision.message,
            current_investment=invested,
            min_investment=config.min_investment,
            max_investment=config.max_investment,
            rate=config.rate,
        )

    async def admit(
        self,
        wallet_address: str,
        transaction_id: str,
        amount: int,
        allocation: Optional[TokenAllocation] = None,
    ) -> AdmissionResult:
        """Admit one investment of `amount` USDC micro-units, or raise a PresaleError."""
        address = normalize_wallet_address(wallet_address)
        tx_id = normalize_transaction_id(transaction_id)
        if not isinstance(amount, int) or isinstance(amount, bool) or amount <= 0:
            raise ValidationError("Investment amount must be a positive integer of micro-units")
        if allocation is not None:
            allocation.check()

        existing = await self._investments.find_by_transaction_id(tx_id)
        if existing is not None:
            return self._replay(existing, address, amount)

        config = await self._config.get()
        phase = current_phase(config.windows(), self._clock())
        if phase == Phase.UPCOMING:
            self._reject(address, tx_id, "presale not started")
            raise PresaleNotStartedError(
                "Presale has not started yet", reason=EligibilityReason.NOT_STARTED.value
            )
        if phase == Phase.ENDED:
            self._reject(address, tx_id, "presale ended")
            raise PresaleEndedError("Presale has ended", reason=EligibilityReason.ENDED.value)

        if not config.min_investment <= amount <= config.max_investment:
            self._reject(address, tx_id, f"amount {amount} out of bounds")
            raise AmountOutOfBoundsError(
                "Investment amount is outside the allowed bounds",
                details={
                    "min_investment": config.min_investment,
                    "max_investment": config.max_investment,
                },
            )

        tier, _ = await self.resolve_tier(address)
        if phase != Phase.PUBLIC:
            decision = evaluate(tier, phase)
            if not decision.eligible:
                self._reject(address, tx_id, f"{tier.value} tier in {phase.value} phase")
                raise IneligibleError(
                    decision.message,
                    reason=decision.reason.value,
                    details={"phase": phase.value, "tier": tier.value},
                )

        if allocation is None:
            allocation = compute_allocation(amount, config.rate, config.airdrop_percentage)

        await self._ledger.try_reserve(amount, config.hard_cap)
        try:
            investment = await self._investments.insert(
                wallet_address=address,
                transaction_id=tx_id,
                amount=amount,
                tokens_allocated=allocation.allocated,
                tokens_airdrop=allocation.airdrop,
                tokens_staking=allocation.staking,
                phase=phase,
                whitelist_tier=tier,
                status=InvestmentStatus.CONFIRMED,
            )
        except DuplicateTransactionError:
            # Lost a race against a concurrent attempt with the same id
            await self._ledger.release(amount)
            winner = await self._investments.find_by_transaction_id(tx_id)
            if winner is None:
                raise StorageFailure("Transaction id conflict could not be resolved")
            return self._replay(winner, address, amount)
        except BaseException:
            # Settlement runs to completion even if this task is cancelled again
            await asyncio.shield(self._settle_failed_insert(tx_id, amount))
            raise

        logger.info(
            f"Investment admitted: wallet={address} tx={tx_id} amount={amount} "
            f"phase={phase.value} tier={tier.value}"
        )
        return AdmissionResult(investment=investment, created=True)

    async def _settle_failed_insert(self, tx_id: str, amount: int) -> None:
        """Release the reservation of a failed insert unless the row committed anyway.

        A fault or cancellation may arrive after the database committed. If the
        row cannot be looked up, the reservation is kept and the ledger
        overstates the total until reconciled.
        """
        try:
            committed = await self._investments.find_by_transaction_id(tx_id)
        except Exception as e:
            logger.error(
                f"Could not settle reservation of {amount} for tx={tx_id}: {e}; "
                "keeping it until the ledger is reconciled"
            )
            return
        if committed is not None:
            logger.warning(f"Insert for tx={tx_id} committed before failing; keeping reservation")
            return
        await self._ledger.release(amount)

    def _replay(self, existing: Investment, address: str, amount: int) -> AdmissionResult:
        if existing.wallet_address == address and existing.amount == amount:
            logger.info(f"Replayed investment for tx={existing.transaction_id}")
            return AdmissionResult(investment=existing, created=False)
        self._reject(address, existing.transaction_id, "transaction id reused")
        raise DuplicateTransactionError(
            "Transaction already recorded",
            details={"transaction_id": existing.transaction_id},
        )

    @staticmethod
    def _reject(address: str, tx_id: str, why: str) -> None:
        logger.warning(f"Investment rejected: wallet={address} tx={tx_id}: {why}")
