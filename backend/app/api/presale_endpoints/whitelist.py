import logging
import math
from typing import Optional

from fastapi import APIRouter, Depends

from app.core.amounts import units_to_usdc
from app.core.eligibility import Tier, evaluate
from app.core.errors import NotFoundError, ValidationError
from app.core.identifiers import normalize_wallet_address
from app.core.phase_clock import current_phase
from app.schemas.presale import (
    BulkImportRequest,
    BulkImportResponse,
    WhitelistCheckResponse,
    WhitelistEntryRequest,
    WhitelistEntryResponse,
    WhitelistListResponse,
)
from app.services.admission import InvestmentAdmitter, utc_now
from app.services.stores import (
    ConfigStore,
    InvestmentStore,
    WhitelistRecord,
    WhitelistStore,
)

from .common import (
    get_admitter,
    get_config_store,
    get_investment_store,
    get_whitelist_store,
    require_admin,
    whitelist_entry_to_response,
)

logger = logging.getLogger(__name__)
router = APIRouter()


@router.get(
    "/check/{wallet_address}",
    response_model=WhitelistCheckResponse,
    summary="Check wallet whitelist status and eligibility",
)
async def check_whitelist(
    wallet_address: str,
    admitter: InvestmentAdmitter = Depends(get_admitter),
    config_store: ConfigStore = Depends(get_config_store),
    investment_store: InvestmentStore = Depends(get_investment_store),
) -> WhitelistCheckResponse:
    address = normalize_wallet_address(wallet_address)
    config = await config_store.get()
    phase = current_phase(config.windows(), utc_now())
    tier, is_whitelisted = await admitter.resolve_tier(address)
    decision = evaluate(tier, phase)
    investments = await investment_store.list_for_wallet(address)

    return WhitelistCheckResponse(
        wallet_address=address,
        eligible=decision.eligible,
        reason=decision.reason,
        whitelist_type=tier,
        current_phase=phase,
        current_investment=units_to_usdc(sum(i.amount for i in investments)),
        total_investments=len(investments),
        is_whitelisted=is_whitelisted,
    )


@router.get(
    "",
    response_model=WhitelistListResponse,
    summary="List whitelist entries",
)
async def list_whitelist(
    page: int = 1,
    limit: int = 20,
    type: Optional[Tier] = None,
    is_active: Optional[bool] = None,
    search: Optional[str] = None,
    store: WhitelistStore = Depends(get_whitelist_store),
    _admin: str = Depends(require_admin),
) -> WhitelistListResponse:
    page = max(1, page)
    limit = max(1, min(limit, 200))
    entries, total = await store.list_entries(
        tier=type,
        is_active=is_active,
        search=search,
        offset=(page - 1) * limit,
        limit=limit,
    )
    stats = await store.stats()
    return WhitelistListResponse(
        whitelist=[whitelist_entry_to_response(e) for e in entries],
        stats=stats,
        page=page,
        pages=math.ceil(total / limit),
        total=total,
    )


@router.post(
    "/add",
    response_model=WhitelistEntryResponse,
    summary="Add or update a whitelist entry",
)
async def add_whitelist_entry(
    request: WhitelistEntryRequest,
    store: WhitelistStore = Depends(get_whitelist_store),
    admin: str = Depends(require_admin),
) -> WhitelistEntryResponse:
    address = normalize_wallet_address(request.wallet_address)
    entry, created = await store.upsert(
        address,
        request.type,
        notes=request.notes,
        is_active=True if request.is_active is None else request.is_active,
        added_by=admin,
    )
    logger.info(f"Whitelist {'added' if created else 'updated'}: {address} ({entry.tier.value})")
    return whitelist_entry_to_response(entry)


@router.post(
    "/bulk-import",
    response_model=BulkImportResponse,
    summary="Bulk import whitelist entries",
)
async def bulk_import_whitelist(
    request: BulkImportRequest,
    store: WhitelistStore = Depends(get_whitelist_store),
    admin: str = Depends(require_admin),
) -> BulkImportResponse:
    records = []
    invalid = []
    for item in request.whitelist:
        try:
            address = normalize_wallet_address(item.wallet_address)
        except ValidationError as e:
            invalid.append({"wallet_address": item.wallet_address, "error": e.message})
            continue
        records.append(
            WhitelistRecord(
                wallet_address=address,
                tier=item.type,
                notes=item.notes,
                is_active=item.is_active,
            )
        )

    report = await store.bulk_upsert(records, added_by=admin)
    return BulkImportResponse(
        imported=report.imported,
        updated=report.updated,
        errors=invalid + report.errors,
    )


@router.delete(
    "/{wallet_address}",
    summary="Delete a whitelist entry",
)
async def delete_whitelist_entry(
    wallet_address: str,
    store: WhitelistStore = Depends(get_whitelist_store),
    _admin: str = Depends(require_admin),
) -> dict[str, str]:
    address = normalize_wallet_address(wallet_address)
    if not await store.delete(address):
        raise NotFoundError("Whitelist entry not found")
    logger.info(f"Whitelist entry deleted: {address}")
    return {"status": "success", "message": "Whitelist entry deleted successfully"}
