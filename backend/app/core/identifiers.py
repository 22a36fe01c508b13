import re

from app.core.constants import MAX_TRANSACTION_ID_LENGTH
from app.core.errors import ValidationError


EVM_ADDRESS_REGEX = re.compile(r"^0x[a-f0-9]{40}$")


def normalize_wallet_address(wallet_address: str) -> str:
    """Lowercase and validate an EVM wallet address."""
    address = (wallet_address or "").strip().lower()
    if not address:
        raise ValidationError("wallet_address is required")
    if not EVM_ADDRESS_REGEX.fullmatch(address):
        raise ValidationError(
            "Unsupported wallet_address format. Expected an EVM address.",
            details={"wallet_address": wallet_address},
        )
    return address


def normalize_transaction_id(transaction_id: str) -> str:
    """Trim and lowercase a transaction identifier (hex hashes are case-insensitive)."""
    tx_id = (transaction_id or "").strip().lower()
    if not tx_id:
        raise ValidationError("transaction_id is required")
    if len(tx_id) > MAX_TRANSACTION_ID_LENGTH:
        raise ValidationError(
            f"transaction_id must be at most {MAX_TRANSACTION_ID_LENGTH} characters"
        )
    return tx_id
