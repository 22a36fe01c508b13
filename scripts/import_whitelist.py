#!/usr/bin/env python3
"""
import_whitelist.py: bulk import whitelist addresses from a CSV file.

Each row becomes (or updates) a whitelist entry of the given tier. The address
column may be named address, wallet_address, walletAddress, "Wallet Address"
(any case variant seen in exports); otherwise the first column is used.

Usage:
    python scripts/import_whitelist.py <csv_file> --tier {guaranteed,waitlist}

Examples:
    python scripts/import_whitelist.py data/guaranteed_addresses.csv --tier guaranteed
    python scripts/import_whitelist.py data/waitlist_addresses.csv --tier waitlist --dry-run
"""

import argparse
import asyncio
import sys
from pathlib import Path

from dotenv import load_dotenv

# ── Paths ──────────────────────────────────────────────────────
SCRIPT_DIR = Path(__file__).resolve().parent
PROJECT_ROOT = SCRIPT_DIR.parent

# ── Colors ─────────────────────────────────────────────────────
GREEN = "\033[0;32m"
YELLOW = "\033[1;33m"
RED = "\033[0;31m"
CYAN = "\033[0;36m"
NC = "\033[0m"


def log(msg: str) -> None:
    print(f"{CYAN}[whitelist]{NC} {msg}")


def ok(msg: str) -> None:
    print(f"{GREEN}[  ok  ]{NC} {msg}")


def warn(msg: str) -> None:
    print(f"{YELLOW}[ warn ]{NC} {msg}")


def err(msg: str) -> None:
    print(f"{RED}[error ]{NC} {msg}", file=sys.stderr)


def load_env() -> None:
    """Load .env from project root or backend."""
    for env_path in (PROJECT_ROOT / ".env", PROJECT_ROOT / "backend" / ".env"):
        if env_path.exists():
            load_dotenv(env_path)
            log(f"Loaded env from {env_path}")
            return


async def run_import(csv_path: Path, tier_name: str, dry_run: bool, added_by: str) -> int:
    # Imported late so settings pick up the .env loaded above
    from tortoise import Tortoise, connections

    from app.core.config import settings
    from app.core.eligibility import Tier
    from app.services.stores import WhitelistStore
    from app.services.whitelist_import import parse_whitelist_csv

    parsed = parse_whitelist_csv(csv_path.read_text(encoding="utf-8-sig"), Tier(tier_name))
    for rejected in parsed.rejected:
        warn(f"line {rejected['line']}: {rejected['error']}")
    log(f"Parsed {len(parsed.records)} {tier_name} addresses ({len(parsed.rejected)} rejected)")

    if not parsed.records:
        warn("No valid addresses found to import")
        return 0
    if dry_run:
        ok("Dry run, nothing written")
        return 0

    await Tortoise.init(config=settings.tortoise_config)
    try:
        report = await WhitelistStore().bulk_upsert(parsed.records, added_by=added_by)
    finally:
        await connections.close_all()

    ok(f"Imported: {report.imported}, updated: {report.updated}")
    for failure in report.errors:
        err(f"{failure['wallet_address']}: {failure['error']}")
    return 1 if report.errors else 0


def main() -> int:
    parser = argparse.ArgumentParser(description="Bulk import whitelist addresses from CSV")
    parser.add_argument("csv_file", type=Path, help="CSV file with one address per row")
    parser.add_argument("--tier", choices=["guaranteed", "waitlist"], required=True)
    parser.add_argument("--added-by", default="import_whitelist.py", help="Audit reference stored on entries")
    parser.add_argument("--dry-run", action="store_true", help="Parse and report without writing")
    args = parser.parse_args()

    if not args.csv_file.exists():
        err(f"CSV file not found: {args.csv_file}")
        log("Expected structure:")
        log("address")
        log("0x1234567890123456789012345678901234567890")
        return 1

    load_env()
    return asyncio.run(run_import(args.csv_file, args.tier, args.dry_run, args.added_by))


if __name__ == "__main__":
    sys.exit(main())
