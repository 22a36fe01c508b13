"""
Storage collaborators of the admission engine.

ConfigStore, WhitelistStore and InvestmentStore wrap the Tortoise models behind
small async interfaces so the engine can be handed any implementation (tests
pass the same classes over an in-memory SQLite database).

Lookups are bounded by settings.store_timeout_seconds. A timeout or a database
connection fault becomes StorageFailure; nothing is retried here.
"""

import asyncio
import logging
from dataclasses import dataclass, field
from datetime import datetime
from typing import Any, Awaitable, Iterable, Optional, TypeVar

from tortoise.exceptions import DBConnectionError, IntegrityError, OperationalError
from tortoise.expressions import Q
from tortoise.functions import Count, Sum

from app.core import constants
from app.core.amounts import usdc_to_units
from app.core.config import settings
from app.core.eligibility import Tier
from app.core.errors import (
    ConfigurationInvalid,
    ConfigurationMissing,
    DuplicateTransactionError,
    StorageFailure,
    ValidationError,
)
from app.core.phase_clock import Phase, validate_windows
from app.models.presale import (
    Investment,
    InvestmentStatus,
    PresaleConfig,
    PresaleStatus,
    WhitelistEntry,
)

logger = logging.getLogger(__name__)

T = TypeVar("T")

WHITELIST_TIERS = (Tier.GUARANTEED, Tier.WAITLIST)

CONFIG_UPDATABLE_FIELDS = {
    "name",
    "status",
    "rate",
    "hard_cap",
    "soft_cap",
    "min_investment",
    "max_investment",
    "airdrop_percentage",
    "staking_percentage",
    "guaranteed_start",
    "guaranteed_end",
    "waitlist_start",
    "waitlist_end",
    "public_start",
    "public_end",
}


async def call_store(awaitable: Awaitable[T], action: str, timeout: Optional[float] = None) -> T:
    """Await a storage call, mapping timeouts and connection faults to StorageFailure."""
    try:
        if timeout is None:
            return await awaitable
        return await asyncio.wait_for(awaitable, timeout=timeout)
    except asyncio.TimeoutError:
        logger.error(f"Storage timeout while {action}")
        raise StorageFailure(f"Timed out while {action}")
    except IntegrityError:
        raise
    except (DBConnectionError, OperationalError) as e:
        logger.error(f"Storage failure while {action}: {e}")
        raise StorageFailure(f"Storage failure while {action}")


def check_presale_config(config: PresaleConfig) -> None:
    """Raise ConfigurationInvalid unless the config satisfies every presale invariant."""
    if config.rate < 1:
        raise ConfigurationInvalid("rate must be at least 1")
    if not 0 < config.soft_cap <= config.hard_cap:
        raise ConfigurationInvalid("caps must satisfy 0 < soft_cap <= hard_cap")
    if not 0 < config.min_investment <= config.max_investment:
        raise ConfigurationInvalid("bounds must satisfy 0 < min_investment <= max_investment")
    for label, pct in (("airdrop_percentage", config.airdrop_percentage),
                       ("staking_percentage", config.staking_percentage)):
        if not 0 <= pct <= 100:
            raise ConfigurationInvalid(f"{label} must be between 0 and 100")
    if config.airdrop_percentage + config.staking_percentage != 100:
        raise ConfigurationInvalid("airdrop_percentage + staking_percentage must equal 100")
    validate_windows(config.windows())


def default_config_values() -> dict[str, Any]:
    return {
        "name": constants.DEFAULT_PRESALE_NAME,
        "status": PresaleStatus.ACTIVE,
        "rate": constants.DEFAULT_PRESALE_RATE,
        "hard_cap": usdc_to_units(constants.DEFAULT_HARD_CAP_USDC),
        "soft_cap": usdc_to_units(constants.DEFAULT_SOFT_CAP_USDC),
        "min_investment": usdc_to_units(constants.DEFAULT_MIN_INVESTMENT_USDC),
        "max_investment": usdc_to_units(constants.DEFAULT_MAX_INVESTMENT_USDC),
        "airdrop_percentage": constants.DEFAULT_AIRDROP_PERCENTAGE,
        "staking_percentage": constants.DEFAULT_STAKING_PERCENTAGE,
        "guaranteed_start": datetime.fromisoformat(constants.DEFAULT_GUARANTEED_START),
        "guaranteed_end": datetime.fromisoformat(constants.DEFAULT_WAITLIST_START),
        "waitlist_start": datetime.fromisoformat(constants.DEFAULT_WAITLIST_START),
        "waitlist_end": datetime.fromisoformat(constants.DEFAULT_PUBLIC_START),
        "public_start": datetime.fromisoformat(constants.DEFAULT_PUBLIC_START),
        "public_end": datetime.fromisoformat(constants.DEFAULT_PUBLIC_END),
    }


class ConfigStore:
    """Access to the PresaleConfig singleton."""

    def __init__(self, timeout: Optional[float] = None):
        self._timeout = settings.store_timeout_seconds if timeout is None else timeout

    async def get(self) -> PresaleConfig:
        """Load and validate the config. A missing row is a deployment error."""
        config = await call_store(
            PresaleConfig.get_or_none(id=constants.PRESALE_CONFIG_ID),
            "loading presale config",
            self._timeout,
        )
        if config is None:
            logger.error("Presale configuration row is missing")
            raise ConfigurationMissing("Presale configuration not found")
        check_presale_config(config)
        return config

    async def ensure_default(self) -> PresaleConfig:
        config, created = await call_store(
            PresaleConfig.get_or_create(
                id=constants.PRESALE_CONFIG_ID, defaults=default_config_values()
            ),
            "creating default presale config",
            self._timeout,
        )
        if created:
            logger.info("Created default presale configuration")
        return config

    async def update(self, patch: dict[str, Any]) -> PresaleConfig:
        """Apply an admin patch. The result must still satisfy every config invariant."""
        unknown = set(patch) - CONFIG_UPDATABLE_FIELDS
        if unknown:
            raise ValidationError(
                "Unknown configuration fields", details={"fields": sorted(unknown)}
            )

        config = await call_store(
            PresaleConfig.get_or_none(id=constants.PRESALE_CONFIG_ID),
            "loading presale config",
            self._timeout,
        )
        if config is None:
            raise ConfigurationMissing("Presale configuration not found")

        for key, value in patch.items():
            setattr(config, key, value)

        try:
            check_presale_config(config)
        except ConfigurationInvalid as e:
            raise ValidationError(e.message, details=e.details)

        await call_store(config.save(), "saving presale config")
        logger.info(f"Presale configuration updated: {sorted(patch)}")
        return config


@dataclass
class ImportReport:
    imported: int = 0
    updated: int = 0
    errors: list[dict[str, str]] = field(default_factory=list)


@dataclass(frozen=True)
class WhitelistRecord:
    wallet_address: str
    tier: Tier
    notes: Optional[str] = None
    is_active: Optional[bool] = None


class WhitelistStore:
    """Durable mapping wallet -> tier."""

    def __init__(self, timeout: Optional[float] = None):
        self._timeout = settings.store_timeout_seconds if timeout is None else timeout

    async def lookup(self, wallet_address: str) -> Optional[WhitelistEntry]:
        return await call_store(
            WhitelistEntry.get_or_none(wallet_address=wallet_address),
            "looking up whitelist entry",
            self._timeout,
        )

    async def upsert(
        self,
        wallet_address: str,
        tier: Tier,
        notes: Optional[str] = None,
        is_active: Optional[bool] = None,
        added_by: Optional[str] = None,
    ) -> tuple[WhitelistEntry, bool]:
        """Create or update the entry for wallet_address. Returns (entry, created)."""
        if tier not in WHITELIST_TIERS:
            raise ValidationError("Whitelist tier must be guaranteed or waitlist")

        entry = await self.lookup(wallet_address)
        if entry is None:
            try:
                entry = await call_store(
                    WhitelistEntry.create(
                        wallet_address=wallet_address,
                        tier=tier,
                        notes=notes,
                        is_active=True if is_active is None else is_active,
                        added_by=added_by,
                    ),
                    "creating whitelist entry",
                )
                return entry, True
            except IntegrityError:
                # Created concurrently; fall through to update
                entry = await self.lookup(wallet_address)
                if entry is None:
                    raise StorageFailure("Whitelist entry vanished during upsert")

        entry.tier = tier
        if notes is not None:
            entry.notes = notes
        if is_active is not None:
            entry.is_active = is_active
        if added_by is not None:
            entry.added_by = added_by
        await call_store(entry.save(), "updating whitelist entry")
        return entry, False

    async def bulk_upsert(
        self, records: Iterable[WhitelistRecord], added_by: Optional[str] = None
    ) -> ImportReport:
        report = ImportReport()
        for record in records:
            try:
                _, created = await self.upsert(
                    record.wallet_address,
                    record.tier,
                    notes=record.notes,
                    is_active=record.is_active,
                    added_by=added_by,
                )
            except (ValidationError, StorageFailure) as e:
                report.errors.append({"wallet_address": record.wallet_address, "error": e.message})
                continue
            if created:
                report.imported += 1
            else:
                report.updated += 1
        logger.info(
            f"Whitelist import: imported={report.imported} updated={report.updated} "
            f"errors={len(report.errors)}"
        )
        return report

    async def delete(self, wallet_address: str) -> bool:
        deleted = await call_store(
            WhitelistEntry.filter(wallet_address=wallet_address).delete(),
            "deleting whitelist entry",
        )
        return deleted > 0

    async def list_entries(
        self,
        tier: Optional[Tier] = None,
        is_active: Optional[bool] = None,
        search: Optional[str] = None,
        offset: int = 0,
        limit: int = 20,
    ) -> tuple[list[WhitelistEntry], int]:
        query = WhitelistEntry.all()
        if tier is not None:
            query = query.filter(tier=tier)
        if is_active is not None:
            query = query.filter(is_active=is_active)
        if search:
            query = query.filter(
                Q(wallet_address__icontains=search) | Q(notes__icontains=search)
            )
        total = await call_store(query.count(), "counting whitelist entries")
        entries = await call_store(
            query.order_by("-created_at").offset(offset).limit(limit),
            "listing whitelist entries",
        )
        return list(entries), total

    async def stats(self) -> dict[str, dict[str, int]]:
        """Entry counts per tier, with the active subset."""
        rows = await call_store(
            WhitelistEntry.all().values_list("tier", "is_active"),
            "aggregating whitelist entries",
        )
        result = {t.value: {"count": 0, "active": 0} for t in WHITELIST_TIERS}
        result["total"] = {"count": 0, "active": 0}
        for tier, active in rows:
            key = tier.value if isinstance(tier, Tier) else str(tier)
            bucket = result.setdefault(key, {"count": 0, "active": 0})
            for target in (bucket, result["total"]):
                target["count"] += 1
                if active:
                    target["active"] += 1
        return result


@dataclass
class InvestmentTotals:
    amount: int = 0
    tokens: int = 0
    count: int = 0
    unique_investors: int = 0


class InvestmentStore:
    """Durable record of investments, unique per transaction id."""

    def __init__(self, timeout: Optional[float] = None):
        self._timeout = settings.store_timeout_seconds if timeout is None else timeout

    async def find_by_transaction_id(self, transaction_id: str) -> Optional[Investment]:
        return await call_store(
            Investment.get_or_none(transaction_id=transaction_id),
            "looking up transaction",
            self._timeout,
        )

    async def insert(self, **values: Any) -> Investment:
        """Insert one investment. A reused transaction id raises DuplicateTransactionError."""
        try:
            return await call_store(Investment.create(**values), "recording investment")
        except IntegrityError:
            raise DuplicateTransactionError(
                "Transaction already recorded",
                details={"transaction_id": values.get("transaction_id")},
            )

    async def sum_confirmed_amount(
        self, wallet_address: Optional[str] = None, phase: Optional[Phase] = None
    ) -> int:
        query = Investment.filter(status=InvestmentStatus.CONFIRMED)
        if wallet_address is not None:
            query = query.filter(wallet_address=wallet_address)
        if phase is not None:
            query = query.filter(phase=phase)
        rows = await call_store(
            query.annotate(total=Sum("amount")).values("total"),
            "summing confirmed investments",
            self._timeout,
        )
        if not rows or rows[0]["total"] is None:
            return 0
        return int(rows[0]["total"])

    async def list_for_wallet(self, wallet_address: str) -> list[Investment]:
        investments = await call_store(
            Investment.filter(
                wallet_address=wallet_address, status=InvestmentStatus.CONFIRMED
            ).order_by("-created_at"),
            "listing wallet investments",
            self._timeout,
        )
        return list(investments)

    async def recent(self, limit: int = 10) -> list[Investment]:
        investments = await call_store(
            Investment.filter(status=InvestmentStatus.CONFIRMED)
            .order_by("-created_at")
            .limit(limit),
            "listing recent investments",
            self._timeout,
        )
        return list(investments)

    async def totals_by_phase(self) -> dict[str, InvestmentTotals]:
        """Confirmed totals per admission phase, plus an overall "all" bucket."""
        rows = await call_store(
            Investment.filter(status=InvestmentStatus.CONFIRMED)
            .annotate(amount_sum=Sum("amount"), tokens_sum=Sum("tokens_allocated"), n=Count("id"))
            .group_by("phase")
            .values("phase", "amount_sum", "tokens_sum", "n"),
            "aggregating investments",
            self._timeout,
        )
        wallets = await call_store(
            Investment.filter(status=InvestmentStatus.CONFIRMED).values_list(
                "phase", "wallet_address"
            ),
            "aggregating investors",
            self._timeout,
        )

        per_phase_wallets: dict[str, set[str]] = {}
        for phase, wallet in wallets:
            key = phase.value if isinstance(phase, Phase) else str(phase)
            per_phase_wallets.setdefault(key, set()).add(wallet)

        result: dict[str, InvestmentTotals] = {}
        overall = InvestmentTotals()
        for row in rows:
            phase = row["phase"]
            key = phase.value if isinstance(phase, Phase) else str(phase)
            totals = InvestmentTotals(
                amount=int(row["amount_sum"] or 0),
                tokens=int(row["tokens_sum"] or 0),
                count=int(row["n"] or 0),
                unique_investors=len(per_phase_wallets.get(key, ())),
            )
            result[key] = totals
            overall.amount += totals.amount
            overall.tokens += totals.tokens
            overall.count += totals.count
        overall.unique_investors = len({w for _, w in wallets})
        result["all"] = overall
        return result
