"""
Shared pytest fixtures.

Environment variables are set before any app module is imported so Settings
picks them up. Every test that needs storage gets a fresh in-memory SQLite
database with the real Tortoise models.
"""

import os

os.environ.setdefault("DATABASE_URL", "sqlite://:memory:")
os.environ.setdefault("ADMIN_API_KEY", "test-admin-key")
os.environ.setdefault("LOG_LEVEL", "WARNING")

from datetime import datetime, timedelta, timezone

import pytest
from httpx import ASGITransport, AsyncClient
from tortoise import Tortoise, connections

from app.core.amounts import usdc_to_units
from app.core.eligibility import Tier
from app.core.phase_clock import Phase
from app.models.presale import PresaleConfig, PresaleStatus, RaisedTotal, WhitelistEntry
from app.services.admission import InvestmentAdmitter
from app.services.cap_ledger import CapLedger
from app.services.stores import ConfigStore, InvestmentStore, WhitelistStore

ADMIN_KEY = os.environ["ADMIN_API_KEY"]

# Guaranteed window start relative to "now", chosen so that now falls in the phase
PHASE_OFFSETS = {
    Phase.UPCOMING: timedelta(hours=1),
    Phase.GUARANTEED: -timedelta(minutes=30),
    Phase.WAITLIST: -timedelta(hours=2),
    Phase.PUBLIC: -timedelta(days=2),
    Phase.ENDED: -timedelta(days=30),
}


def window_values(anchor: datetime) -> dict:
    """Contiguous windows: guaranteed 1h, waitlist 24h, public 7 days."""
    return {
        "guaranteed_start": anchor,
        "guaranteed_end": anchor + timedelta(hours=1),
        "waitlist_start": anchor + timedelta(hours=1),
        "waitlist_end": anchor + timedelta(hours=25),
        "public_start": anchor + timedelta(hours=25),
        "public_end": anchor + timedelta(hours=25) + timedelta(days=7),
    }


@pytest.fixture
async def db():
    await Tortoise.init(
        db_url="sqlite://:memory:",
        modules={"models": ["app.models.presale"]},
        use_tz=True,
        timezone="UTC",
    )
    await Tortoise.generate_schemas()
    yield
    await connections.close_all()


@pytest.fixture
def now() -> datetime:
    return datetime.now(timezone.utc).replace(microsecond=0)


@pytest.fixture
def seed_presale(db, now):
    """Create the config row and cap ledger so that `now` falls in the requested phase."""

    async def _seed(phase: Phase = Phase.GUARANTEED, **overrides) -> PresaleConfig:
        values = {
            "name": "Test Presale",
            "status": PresaleStatus.ACTIVE,
            "rate": 250,
            "hard_cap": usdc_to_units(100_000),
            "soft_cap": usdc_to_units(15_000),
            "min_investment": usdc_to_units(50),
            "max_investment": usdc_to_units(3_500),
            "airdrop_percentage": 25,
            "staking_percentage": 75,
        }
        values.update(window_values(now + PHASE_OFFSETS[phase]))
        values.update(overrides)
        config = await PresaleConfig.create(id=1, **values)
        await RaisedTotal.get_or_create(id=1, defaults={"total_confirmed": 0})
        return config

    return _seed


@pytest.fixture
def whitelist(db):
    async def _add(address: str, tier: Tier, is_active: bool = True) -> WhitelistEntry:
        return await WhitelistEntry.create(
            wallet_address=address, tier=tier, is_active=is_active
        )

    return _add


@pytest.fixture
def make_admitter(db, now):
    """Build an admitter over the real stores with the clock frozen at `at`."""

    def _make(at: datetime = None) -> InvestmentAdmitter:
        frozen = at or now
        return InvestmentAdmitter(
            config_store=ConfigStore(),
            whitelist_store=WhitelistStore(),
            investment_store=InvestmentStore(),
            ledger=CapLedger(),
            clock=lambda: frozen,
        )

    return _make


@pytest.fixture
async def client(db):
    from app.main import app

    async with AsyncClient(transport=ASGITransport(app=app), base_url="http://test") as ac:
        yield ac


@pytest.fixture
def admin_headers() -> dict:
    return {"X-Admin-Key": ADMIN_KEY}
