import hmac
from typing import Optional

from fastapi import Header

from app.core.amounts import units_to_tokens, units_to_usdc
from app.core.config import settings
from app.core.errors import AuthenticationError
from app.core.phase_clock import Phase, PhaseWindows
from app.models.presale import Investment, PresaleConfig, WhitelistEntry
from app.schemas.presale import (
    InvestmentResponse,
    PhaseWindowResponse,
    PresaleConfigResponse,
    WhitelistEntryResponse,
)
from app.services.admission import InvestmentAdmitter
from app.services.cap_ledger import CapLedger
from app.services.stores import ConfigStore, InvestmentStore, WhitelistStore


def get_config_store() -> ConfigStore:
    return ConfigStore()


def get_whitelist_store() -> WhitelistStore:
    return WhitelistStore()


def get_investment_store() -> InvestmentStore:
    return InvestmentStore()


def get_cap_ledger() -> CapLedger:
    return CapLedger()


def get_admitter() -> InvestmentAdmitter:
    return InvestmentAdmitter(
        config_store=get_config_store(),
        whitelist_store=get_whitelist_store(),
        investment_store=get_investment_store(),
        ledger=get_cap_ledger(),
    )


async def require_admin(x_admin_key: Optional[str] = Header(None)) -> str:
    """Admin guard: X-Admin-Key must match settings.admin_api_key."""
    expected = settings.admin_api_key
    if not expected or not x_admin_key:
        raise AuthenticationError("Admin credentials required")
    if not hmac.compare_digest(x_admin_key.encode(), expected.encode()):
        raise AuthenticationError("Invalid admin credentials")
    return "admin"


def investment_to_response(inv: Investment) -> InvestmentResponse:
    return InvestmentResponse(
        id=str(inv.id),
        wallet_address=inv.wallet_address,
        transaction_id=inv.transaction_id,
        usdc_amount=units_to_usdc(inv.amount),
        tokens_allocated=units_to_tokens(inv.tokens_allocated),
        tokens_airdrop=units_to_tokens(inv.tokens_airdrop),
        tokens_staking=units_to_tokens(inv.tokens_staking),
        phase=inv.phase,
        whitelist_tier=inv.whitelist_tier,
        status=inv.status.value,
        airdrop_status=inv.airdrop_status.value,
        staking_status=inv.staking_status.value,
        created_at=inv.created_at,
    )


def whitelist_entry_to_response(entry: WhitelistEntry) -> WhitelistEntryResponse:
    return WhitelistEntryResponse(
        wallet_address=entry.wallet_address,
        type=entry.tier,
        is_active=entry.is_active,
        notes=entry.notes,
        added_by=entry.added_by,
        created_at=entry.created_at,
        updated_at=entry.updated_at,
    )


def windows_to_response(windows: PhaseWindows, phase: Phase) -> dict[str, PhaseWindowResponse]:
    return {
        name.value: PhaseWindowResponse(
            start_time=windows.window(name).start,
            end_time=windows.window(name).end,
            active=phase == name,
        )
        for name in (Phase.GUARANTEED, Phase.WAITLIST, Phase.PUBLIC)
    }


def config_to_response(config: PresaleConfig, phase: Phase) -> PresaleConfigResponse:
    return PresaleConfigResponse(
        name=config.name,
        status=config.status,
        current_phase=phase,
        presale_rate=config.rate,
        hard_cap_usdc=units_to_usdc(config.hard_cap),
        soft_cap_usdc=units_to_usdc(config.soft_cap),
        min_investment_usdc=units_to_usdc(config.min_investment),
        max_investment_usdc=units_to_usdc(config.max_investment),
        airdrop_percentage=config.airdrop_percentage,
        staking_percentage=config.staking_percentage,
        phases=windows_to_response(config.windows(), phase),
    )
