import logging
from typing import Any

from fastapi import APIRouter, Depends

from app.core.amounts import units_to_usdc, usdc_to_units
from app.core.errors import ValidationError
from app.core.phase_clock import Phase, current_phase
from app.schemas.presale import (
    ConfigUpdateRequest,
    LedgerReconcileResponse,
    PresaleConfigResponse,
)
from app.services.admission import utc_now
from app.services.cap_ledger import CapLedger
from app.services.stores import ConfigStore, InvestmentStore

from .common import (
    config_to_response,
    get_cap_ledger,
    get_config_store,
    get_investment_store,
    require_admin,
)

logger = logging.getLogger(__name__)
router = APIRouter()

WINDOW_NAMES = {p.value for p in (Phase.GUARANTEED, Phase.WAITLIST, Phase.PUBLIC)}


def _patch_from_request(request: ConfigUpdateRequest) -> dict[str, Any]:
    """Translate the API payload into ConfigStore field names and stored units."""
    patch: dict[str, Any] = {}
    if request.name is not None:
        patch["name"] = request.name
    if request.status is not None:
        patch["status"] = request.status
    if request.presale_rate is not None:
        patch["rate"] = request.presale_rate
    for api_field, column in (
        ("hard_cap_usdc", "hard_cap"),
        ("soft_cap_usdc", "soft_cap"),
        ("min_investment_usdc", "min_investment"),
        ("max_investment_usdc", "max_investment"),
    ):
        value = getattr(request, api_field)
        if value is not None:
            patch[column] = usdc_to_units(value)
    if request.airdrop_percentage is not None:
        patch["airdrop_percentage"] = request.airdrop_percentage
    if request.staking_percentage is not None:
        patch["staking_percentage"] = request.staking_percentage

    for name, window in (request.phases or {}).items():
        if name not in WINDOW_NAMES:
            raise ValidationError(f"Unknown phase window: {name}")
        if window.start_time is not None:
            patch[f"{name}_start"] = window.start_time
        if window.end_time is not None:
            patch[f"{name}_end"] = window.end_time
    return patch


@router.put(
    "/config",
    response_model=PresaleConfigResponse,
    summary="Update presale configuration",
)
async def update_config(
    request: ConfigUpdateRequest,
    config_store: ConfigStore = Depends(get_config_store),
    _admin: str = Depends(require_admin),
) -> PresaleConfigResponse:
    config = await config_store.update(_patch_from_request(request))
    return config_to_response(config, current_phase(config.windows(), utc_now()))


@router.post(
    "/ledger/reconcile",
    response_model=LedgerReconcileResponse,
    summary="Recompute the raised total from recorded investments",
)
async def reconcile_ledger(
    ledger: CapLedger = Depends(get_cap_ledger),
    investment_store: InvestmentStore = Depends(get_investment_store),
    _admin: str = Depends(require_admin),
) -> LedgerReconcileResponse:
    total = await ledger.reconcile(investment_store)
    return LedgerReconcileResponse(raised_usdc=units_to_usdc(total))
