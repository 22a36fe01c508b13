# Fixed-point precision for the quote currency (USDC) and the sale token.
USDC_DECIMALS = 10**6
TOKEN_DECIMALS = 10**6

# Singleton row ids
PRESALE_CONFIG_ID = 1
CAP_LEDGER_ID = 1

# Presale defaults, applied when no configuration row exists yet
DEFAULT_PRESALE_NAME = "Victory Token Presale"
DEFAULT_PRESALE_RATE = 250  # 1 USDC = 250 VICTORY
DEFAULT_HARD_CAP_USDC = 100_000
DEFAULT_SOFT_CAP_USDC = 15_000
DEFAULT_MIN_INVESTMENT_USDC = 50
DEFAULT_MAX_INVESTMENT_USDC = 3_500
DEFAULT_AIRDROP_PERCENTAGE = 25
DEFAULT_STAKING_PERCENTAGE = 75

# Default phase windows (UTC, ISO format)
DEFAULT_GUARANTEED_START = "2025-06-12T14:00:00+00:00"
DEFAULT_WAITLIST_START = "2025-06-12T15:00:00+00:00"
DEFAULT_PUBLIC_START = "2025-06-13T14:00:00+00:00"
DEFAULT_PUBLIC_END = "2025-06-20T14:00:00+00:00"

MAX_TRANSACTION_ID_LENGTH = 128
