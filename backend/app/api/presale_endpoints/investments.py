import logging
from typing import Optional

from fastapi import APIRouter, Depends, Response, status

from app.core.amounts import TokenAllocation, tokens_to_units, units_to_tokens, units_to_usdc, usdc_to_units
from app.core.errors import ValidationError
from app.core.identifiers import normalize_wallet_address
from app.schemas.presale import (
    CreateInvestmentRequest,
    CreateInvestmentResponse,
    InvestmentResponse,
    ValidateInvestmentResponse,
    WalletInvestmentsResponse,
)
from app.services.admission import InvestmentAdmitter
from app.services.stores import InvestmentStore

from .common import get_admitter, get_investment_store, investment_to_response

logger = logging.getLogger(__name__)
router = APIRouter()


def _allocation_from_request(request: CreateInvestmentRequest) -> Optional[TokenAllocation]:
    supplied = (request.calculated_tokens, request.estimated_airdrop, request.estimated_staking)
    if all(v is None for v in supplied):
        return None
    if any(v is None for v in supplied):
        raise ValidationError(
            "calculated_tokens, estimated_airdrop and estimated_staking must be sent together"
        )
    return TokenAllocation(
        allocated=tokens_to_units(request.calculated_tokens),
        airdrop=tokens_to_units(request.estimated_airdrop),
        staking=tokens_to_units(request.estimated_staking),
    )


@router.post(
    "/create",
    response_model=CreateInvestmentResponse,
    status_code=status.HTTP_201_CREATED,
    summary="Record an investment",
    description="Admits an investment for the current phase. Re-submitting the same transaction returns the original record with 200.",
)
async def create_investment(
    request: CreateInvestmentRequest,
    response: Response,
    admitter: InvestmentAdmitter = Depends(get_admitter),
) -> CreateInvestmentResponse:
    result = await admitter.admit(
        wallet_address=request.wallet_address,
        transaction_id=request.transaction_id,
        amount=usdc_to_units(request.usdc_amount),
        allocation=_allocation_from_request(request),
    )
    if not result.created:
        response.status_code = status.HTTP_200_OK
    return CreateInvestmentResponse(
        created=result.created,
        investment=investment_to_response(result.investment),
    )


@router.get(
    "/validate/{wallet_address}",
    response_model=ValidateInvestmentResponse,
    summary="Check whether a wallet can invest now",
)
async def validate_investment(
    wallet_address: str,
    admitter: InvestmentAdmitter = Depends(get_admitter),
) -> ValidateInvestmentResponse:
    result = await admitter.validate(wallet_address)
    return ValidateInvestmentResponse(
        wallet_address=result.wallet_address,
        can_invest=result.eligible,
        eligible=result.eligible,
        reason=result.reason,
        message=result.message,
        current_phase=result.phase,
        whitelist_type=result.tier,
        is_whitelisted=result.is_whitelisted,
        current_investment=units_to_usdc(result.current_investment),
        min_investment=units_to_usdc(result.min_investment),
        max_investment=units_to_usdc(result.max_investment),
        presale_rate=result.rate,
    )


@router.get(
    "/user/{wallet_address}",
    response_model=WalletInvestmentsResponse,
    summary="Get investments for a wallet",
)
async def get_wallet_investments(
    wallet_address: str,
    store: InvestmentStore = Depends(get_investment_store),
) -> WalletInvestmentsResponse:
    address = normalize_wallet_address(wallet_address)
    investments = await store.list_for_wallet(address)

    return WalletInvestmentsResponse(
        wallet_address=address,
        total_investments=len(investments),
        total_usdc=units_to_usdc(sum(i.amount for i in investments)),
        total_tokens=units_to_tokens(sum(i.tokens_allocated for i in investments)),
        total_airdrop_tokens=units_to_tokens(sum(i.tokens_airdrop for i in investments)),
        total_staking_tokens=units_to_tokens(sum(i.tokens_staking for i in investments)),
        investments=[investment_to_response(i) for i in investments],
    )


@router.get(
    "/recent",
    response_model=list[InvestmentResponse],
    summary="Get recent investments",
)
async def get_recent_investments(
    limit: int = 10,
    store: InvestmentStore = Depends(get_investment_store),
) -> list[InvestmentResponse]:
    limit = max(1, min(limit, 100))
    investments = await store.recent(limit)
    return [investment_to_response(i) for i in investments]
