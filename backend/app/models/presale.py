"""
Tortoise ORM models for the presale system.

These models track:
- The presale configuration singleton (caps, bounds, phase windows, split)
- Whitelisted wallets and their tier
- Confirmed investments, one per transaction id
- The running hard-cap ledger

All money columns hold USDC micro-units and all token columns hold token
smallest units, as BigInt. Nothing monetary is stored as a float.
"""

from datetime import datetime, timezone
from enum import Enum

from tortoise import fields, models

from app.core.eligibility import Tier
from app.core.phase_clock import Phase, PhaseWindow, PhaseWindows


class PresaleStatus(str, Enum):
    """Operator-facing presale status (informational, the phase is time-derived)."""
    UPCOMING = "upcoming"
    ACTIVE = "active"
    PAUSED = "paused"
    ENDED = "ended"


class InvestmentStatus(str, Enum):
    PENDING = "pending"
    CONFIRMED = "confirmed"
    FAILED = "failed"


class AirdropStatus(str, Enum):
    PENDING = "pending"
    PROCESSED = "processed"


class StakingStatus(str, Enum):
    PENDING = "pending"
    STAKED = "staked"


def as_utc(moment: datetime) -> datetime:
    """Normalise a datetime read back from the database to an aware UTC value."""
    if moment.tzinfo is None:
        return moment.replace(tzinfo=timezone.utc)
    return moment.astimezone(timezone.utc)


class PresaleConfig(models.Model):
    """
    Singleton presale configuration (id=1).

    Created with defaults when absent, updated in place by admins, never deleted.
    """
    id = fields.IntField(pk=True)
    name = fields.CharField(max_length=100)
    status = fields.CharEnumField(PresaleStatus, max_length=20, default=PresaleStatus.ACTIVE)

    # Token units per whole USDC
    rate = fields.IntField()

    # Caps and per-investment bounds (USDC micro-units)
    hard_cap = fields.BigIntField()
    soft_cap = fields.BigIntField()
    min_investment = fields.BigIntField()
    max_investment = fields.BigIntField()

    # Phase windows, each [start, end)
    guaranteed_start = fields.DatetimeField()
    guaranteed_end = fields.DatetimeField()
    waitlist_start = fields.DatetimeField()
    waitlist_end = fields.DatetimeField()
    public_start = fields.DatetimeField()
    public_end = fields.DatetimeField()

    # Token split (percent)
    airdrop_percentage = fields.IntField()
    staking_percentage = fields.IntField()

    created_at = fields.DatetimeField(auto_now_add=True)
    updated_at = fields.DatetimeField(auto_now=True)

    class Meta:
        table = "presale_config"

    def windows(self) -> PhaseWindows:
        return PhaseWindows(
            guaranteed=PhaseWindow(as_utc(self.guaranteed_start), as_utc(self.guaranteed_end)),
            waitlist=PhaseWindow(as_utc(self.waitlist_start), as_utc(self.waitlist_end)),
            public=PhaseWindow(as_utc(self.public_start), as_utc(self.public_end)),
        )


class WhitelistEntry(models.Model):
    """A whitelisted wallet. Keyed on the lowercase wallet address."""
    id = fields.IntField(pk=True)
    wallet_address = fields.CharField(max_length=64, unique=True)
    tier = fields.CharEnumField(Tier, max_length=20)
    is_active = fields.BooleanField(default=True)
    notes = fields.TextField(null=True)
    added_by = fields.CharField(max_length=128, null=True)

    created_at = fields.DatetimeField(auto_now_add=True)
    updated_at = fields.DatetimeField(auto_now=True)

    class Meta:
        table = "whitelist_entries"
        indexes = [("tier", "is_active")]


class Investment(models.Model):
    """
    A confirmed investment.

    transaction_id is the idempotency key: the unique index is the last line of
    defence against recording the same transaction twice.
    """
    id = fields.UUIDField(pk=True)

    wallet_address = fields.CharField(max_length=64, index=True)
    transaction_id = fields.CharField(max_length=128, unique=True)

    # USDC micro-units
    amount = fields.BigIntField()

    # Token smallest units; allocated = airdrop + staking
    tokens_allocated = fields.BigIntField()
    tokens_airdrop = fields.BigIntField()
    tokens_staking = fields.BigIntField()

    phase = fields.CharEnumField(Phase, max_length=20, index=True)
    whitelist_tier = fields.CharEnumField(Tier, max_length=20, default=Tier.NONE)

    status = fields.CharEnumField(InvestmentStatus, max_length=20, default=InvestmentStatus.CONFIRMED)
    airdrop_status = fields.CharEnumField(AirdropStatus, max_length=20, default=AirdropStatus.PENDING)
    staking_status = fields.CharEnumField(StakingStatus, max_length=20, default=StakingStatus.PENDING)

    notes = fields.TextField(null=True)
    created_at = fields.DatetimeField(auto_now_add=True, index=True)

    class Meta:
        table = "investments"
        indexes = [("wallet_address", "status")]


class RaisedTotal(models.Model):
    """
    Running total of confirmed investment amounts (singleton, id=1).

    Only ever changed through single-statement conditional updates; see
    app.services.cap_ledger.
    """
    id = fields.IntField(pk=True)
    total_confirmed = fields.BigIntField(default=0)
    updated_at = fields.DatetimeField(auto_now=True)

    class Meta:
        table = "cap_ledger"
