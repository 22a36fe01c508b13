"""
CSV whitelist parsing for bulk imports.

Accepts the header spellings operators have historically used for the address
column and falls back to the first column when none of them is present.
"""

import csv
import io
import logging
from dataclasses import dataclass, field
from typing import Optional

from app.core.eligibility import Tier
from app.core.errors import ValidationError
from app.core.identifiers import normalize_wallet_address
from app.services.stores import WhitelistRecord

logger = logging.getLogger(__name__)

ADDRESS_COLUMNS = (
    "address",
    "wallet_address",
    "Address",
    "WALLET_ADDRESS",
    "walletAddress",
    "Wallet Address",
)


@dataclass
class ParsedWhitelist:
    records: list[WhitelistRecord] = field(default_factory=list)
    rejected: list[dict[str, str]] = field(default_factory=list)


def _address_from_row(row: dict[str, Optional[str]]) -> str:
    for column in ADDRESS_COLUMNS:
        value = row.get(column)
        if value:
            return value
    values = list(row.values())
    return (values[0] or "") if values else ""


def parse_whitelist_csv(text: str, tier: Tier) -> ParsedWhitelist:
    """Parse CSV text into whitelist records of the given tier.

    Duplicate addresses are kept once; invalid lines are reported, not raised.
    """
    parsed = ParsedWhitelist()
    seen: set[str] = set()
    reader = csv.DictReader(io.StringIO(text))
    # Header is line 1
    for line_number, row in enumerate(reader, start=2):
        raw = _address_from_row(row).strip()
        if not raw:
            logger.warning(f"Line {line_number}: empty or missing address")
            parsed.rejected.append({"line": str(line_number), "error": "missing address"})
            continue
        try:
            address = normalize_wallet_address(raw)
        except ValidationError:
            logger.warning(f"Line {line_number}: invalid address format: {raw}")
            parsed.rejected.append(
                {"line": str(line_number), "error": f"invalid address {raw}"}
            )
            continue
        if address in seen:
            continue
        seen.add(address)
        notes = (row.get("notes") or row.get("note") or "").strip() or None
        parsed.records.append(WhitelistRecord(wallet_address=address, tier=tier, notes=notes, is_active=True))
    return parsed
