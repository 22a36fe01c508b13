from decimal import Decimal

from fastapi import APIRouter, Depends

from app.core.amounts import units_to_tokens, units_to_usdc
from app.core.phase_clock import current_phase
from app.schemas.presale import (
    PhaseInfoResponse,
    PhaseTotalsResponse,
    PresaleStatsResponse,
)
from app.services.admission import InvestmentAdmitter, utc_now
from app.services.cap_ledger import CapLedger
from app.services.stores import ConfigStore, InvestmentStore, InvestmentTotals

from .common import (
    config_to_response,
    get_admitter,
    get_cap_ledger,
    get_config_store,
    get_investment_store,
    windows_to_response,
)

router = APIRouter()


def _totals_to_response(totals: InvestmentTotals) -> PhaseTotalsResponse:
    return PhaseTotalsResponse(
        total_usdc=units_to_usdc(totals.amount),
        total_tokens=units_to_tokens(totals.tokens),
        total_investments=totals.count,
        unique_investors=totals.unique_investors,
    )


@router.get(
    "/phase",
    response_model=PhaseInfoResponse,
    summary="Get current phase information",
)
async def get_phase(
    admitter: InvestmentAdmitter = Depends(get_admitter),
    config_store: ConfigStore = Depends(get_config_store),
) -> PhaseInfoResponse:
    """Current phase, the next phase and how long until it starts."""
    config = await config_store.get()
    phase_info = await admitter.current_phase()
    remaining_ms = None
    if phase_info.time_remaining is not None:
        remaining_ms = int(phase_info.time_remaining.total_seconds() * 1000)

    return PhaseInfoResponse(
        current_phase=phase_info.phase,
        next_phase=phase_info.next_phase,
        next_phase_time=phase_info.next_phase_time,
        time_remaining_ms=remaining_ms,
        phases=windows_to_response(config.windows(), phase_info.phase),
        current_time=utc_now(),
    )


@router.get(
    "/stats",
    response_model=PresaleStatsResponse,
    summary="Get presale statistics",
)
async def get_presale_stats(
    config_store: ConfigStore = Depends(get_config_store),
    investment_store: InvestmentStore = Depends(get_investment_store),
    ledger: CapLedger = Depends(get_cap_ledger),
) -> PresaleStatsResponse:
    """Aggregate raised amounts, overall and per phase."""
    config = await config_store.get()
    phase = current_phase(config.windows(), utc_now())
    by_phase = await investment_store.totals_by_phase()
    overall = by_phase.pop("all")
    raised = await ledger.total()

    progress = Decimal(overall.amount * 100) / Decimal(config.hard_cap)
    progress = min(progress, Decimal(100)).quantize(Decimal("0.01"))

    return PresaleStatsResponse(
        stats=_totals_to_response(overall),
        progress_percentage=progress,
        raised_in_ledger_usdc=units_to_usdc(raised),
        phase_stats={key: _totals_to_response(t) for key, t in by_phase.items()},
        config=config_to_response(config, phase),
    )
