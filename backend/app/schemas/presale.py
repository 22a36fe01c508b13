from datetime import datetime
from decimal import Decimal
from typing import Any, Dict, List, Optional

from pydantic import BaseModel, Field

from app.core.eligibility import EligibilityReason, Tier
from app.core.phase_clock import Phase
from app.models.presale import PresaleStatus


# --- Investments ---

class CreateInvestmentRequest(BaseModel):
    """Record an investment whose on-chain transfer has already happened."""
    wallet_address: str = Field(..., description="Investor EVM wallet address")
    transaction_id: str = Field(..., description="Transfer transaction hash (idempotency key)")
    usdc_amount: Decimal = Field(..., gt=0, description="Invested USDC amount")
    calculated_tokens: Optional[Decimal] = Field(None, ge=0, description="Client-computed token allocation")
    estimated_airdrop: Optional[Decimal] = Field(None, ge=0)
    estimated_staking: Optional[Decimal] = Field(None, ge=0)


class InvestmentResponse(BaseModel):
    id: str
    wallet_address: str
    transaction_id: str
    usdc_amount: Decimal
    tokens_allocated: Decimal
    tokens_airdrop: Decimal
    tokens_staking: Decimal
    phase: Phase
    whitelist_tier: Tier
    status: str
    airdrop_status: str
    staking_status: str
    created_at: datetime


class CreateInvestmentResponse(BaseModel):
    status: str = "success"
    created: bool
    investment: InvestmentResponse


class ValidateInvestmentResponse(BaseModel):
    wallet_address: str
    can_invest: bool
    eligible: bool
    reason: EligibilityReason
    message: str
    current_phase: Phase
    whitelist_type: Tier
    is_whitelisted: bool
    current_investment: Decimal
    min_investment: Decimal
    max_investment: Decimal
    presale_rate: int


class WalletInvestmentsResponse(BaseModel):
    wallet_address: str
    total_investments: int
    total_usdc: Decimal
    total_tokens: Decimal
    total_airdrop_tokens: Decimal
    total_staking_tokens: Decimal
    investments: List[InvestmentResponse]


# --- Phase / stats ---

class PhaseWindowResponse(BaseModel):
    start_time: datetime
    end_time: datetime
    active: bool


class PhaseInfoResponse(BaseModel):
    current_phase: Phase
    next_phase: Optional[Phase] = None
    next_phase_time: Optional[datetime] = None
    time_remaining_ms: Optional[int] = Field(None, description="Milliseconds until the next phase")
    phases: Dict[str, PhaseWindowResponse]
    current_time: datetime


class PhaseTotalsResponse(BaseModel):
    total_usdc: Decimal
    total_tokens: Decimal
    total_investments: int
    unique_investors: int


class PresaleConfigResponse(BaseModel):
    name: str
    status: PresaleStatus
    current_phase: Phase
    presale_rate: int
    hard_cap_usdc: Decimal
    soft_cap_usdc: Decimal
    min_investment_usdc: Decimal
    max_investment_usdc: Decimal
    airdrop_percentage: int
    staking_percentage: int
    phases: Dict[str, PhaseWindowResponse]


class PresaleStatsResponse(BaseModel):
    stats: PhaseTotalsResponse
    progress_percentage: Decimal
    raised_in_ledger_usdc: Decimal
    phase_stats: Dict[str, PhaseTotalsResponse]
    config: PresaleConfigResponse


# --- Whitelist ---

class WhitelistEntryRequest(BaseModel):
    wallet_address: str
    type: Tier = Field(..., description="guaranteed or waitlist")
    notes: Optional[str] = None
    is_active: Optional[bool] = None


class BulkImportRequest(BaseModel):
    whitelist: List[WhitelistEntryRequest]


class BulkImportResponse(BaseModel):
    imported: int
    updated: int
    errors: List[Dict[str, str]]


class WhitelistEntryResponse(BaseModel):
    wallet_address: str
    type: Tier
    is_active: bool
    notes: Optional[str] = None
    added_by: Optional[str] = None
    created_at: datetime
    updated_at: datetime


class WhitelistListResponse(BaseModel):
    whitelist: List[WhitelistEntryResponse]
    stats: Dict[str, Dict[str, int]]
    page: int
    pages: int
    total: int


class WhitelistCheckResponse(BaseModel):
    wallet_address: str
    eligible: bool
    reason: EligibilityReason
    whitelist_type: Tier
    current_phase: Phase
    current_investment: Decimal
    total_investments: int
    is_whitelisted: bool


# --- Admin ---

class PhaseWindowPatch(BaseModel):
    start_time: Optional[datetime] = None
    end_time: Optional[datetime] = None


class ConfigUpdateRequest(BaseModel):
    name: Optional[str] = None
    status: Optional[PresaleStatus] = None
    presale_rate: Optional[int] = Field(None, ge=1)
    hard_cap_usdc: Optional[Decimal] = Field(None, gt=0)
    soft_cap_usdc: Optional[Decimal] = Field(None, gt=0)
    min_investment_usdc: Optional[Decimal] = Field(None, gt=0)
    max_investment_usdc: Optional[Decimal] = Field(None, gt=0)
    airdrop_percentage: Optional[int] = Field(None, ge=0, le=100)
    staking_percentage: Optional[int] = Field(None, ge=0, le=100)
    phases: Optional[Dict[str, PhaseWindowPatch]] = None


class LedgerReconcileResponse(BaseModel):
    raised_usdc: Decimal


class ErrorResponse(BaseModel):
    """Standard error response."""
    status: str = "error"
    code: str
    message: str
    details: Optional[Dict[str, Any]] = None
