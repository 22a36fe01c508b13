"""
Fixed-point conversions between API decimals and stored integers.

USDC amounts are stored in micro-units (10^6) and token amounts in token
smallest units (10^6). Only Decimal and int are used, so summing any number of
investments cannot drift.
"""

from dataclasses import dataclass
from decimal import (
    Context,
    Decimal,
    DecimalException,
    DivisionByZero,
    Inexact,
    InvalidOperation,
    Overflow,
    localcontext,
)
from typing import Union

from app.core.constants import TOKEN_DECIMALS, USDC_DECIMALS
from app.core.errors import ValidationError

Number = Union[Decimal, int, str]

# Amount columns are signed 64-bit integers
MAX_UNITS = 2**63 - 1

# Scaling must be exact: any rounding or overflow is a signal, never a silent result
_EXACT = Context(prec=60, traps=[Inexact, Overflow, InvalidOperation, DivisionByZero])


@dataclass(frozen=True, slots=True)
class TokenAllocation:
    allocated: int
    airdrop: int
    staking: int

    def check(self) -> None:
        if min(self.allocated, self.airdrop, self.staking) < 0:
            raise ValidationError("Token allocation cannot be negative")
        if self.allocated != self.airdrop + self.staking:
            raise ValidationError(
                "Token allocation must equal airdrop plus staking",
                details={
                    "allocated": self.allocated,
                    "airdrop": self.airdrop,
                    "staking": self.staking,
                },
            )


def _to_units(value: Number, precision: int, label: str) -> int:
    try:
        amount = Decimal(str(value))
    except InvalidOperation:
        raise ValidationError(f"{label} is not a valid number")
    if not amount.is_finite():
        raise ValidationError(f"{label} is not a valid number")
    try:
        with localcontext(_EXACT):
            scaled = amount * precision
            integral = scaled.to_integral_value()
    except DecimalException:
        raise ValidationError(f"{label} is out of range")
    if scaled != integral:
        raise ValidationError(f"{label} has too many decimal places")
    units = int(integral)
    if abs(units) > MAX_UNITS:
        raise ValidationError(f"{label} is out of range")
    return units


def usdc_to_units(value: Number) -> int:
    """Convert a USDC amount (e.g. Decimal("100.5")) to micro-units."""
    return _to_units(value, USDC_DECIMALS, "USDC amount")


def _from_units(units: int, precision: int) -> Decimal:
    # Fixed exponent so 100 USDC renders as 100.000000, not 1E+2
    return (Decimal(units) / precision).quantize(Decimal(1) / precision)


def units_to_usdc(units: int) -> Decimal:
    return _from_units(units, USDC_DECIMALS)


def tokens_to_units(value: Number) -> int:
    return _to_units(value, TOKEN_DECIMALS, "Token amount")


def units_to_tokens(units: int) -> Decimal:
    return _from_units(units, TOKEN_DECIMALS)


def compute_allocation(amount_units: int, rate: int, airdrop_percentage: int) -> TokenAllocation:
    """Split the tokens bought for amount_units at rate into airdrop and staking parts."""
    allocated = amount_units * rate * TOKEN_DECIMALS // USDC_DECIMALS
    airdrop = allocated * airdrop_percentage // 100
    return TokenAllocation(allocated=allocated, airdrop=airdrop, staking=allocated - airdrop)
