"""
HTTP tests for admin routes.

Covers:
  - X-Admin-Key guard on whitelist management and config routes
  - whitelist add / bulk-import / list / delete
  - config updates validated against the config invariants
  - ledger reconciliation
  - health and readiness probes
"""

from datetime import timedelta
from decimal import Decimal

from app.core.eligibility import Tier
from app.core.phase_clock import Phase
from app.models.presale import RaisedTotal

API = "/api/v1"
WALLET_1 = "0x" + "1" * 40
WALLET_2 = "0x" + "2" * 40


# ─── auth ──────────────────────────────────────────────────────────


async def test_admin_routes_require_key(client, seed_presale):
    await seed_presale(Phase.PUBLIC)

    missing = await client.get(f"{API}/whitelist")
    wrong = await client.put(
        f"{API}/admin/config", json={"presale_rate": 300}, headers={"X-Admin-Key": "nope"}
    )

    assert missing.status_code == 401
    assert missing.json()["code"] == "UNAUTHORIZED"
    assert wrong.status_code == 401


# ─── whitelist ─────────────────────────────────────────────────────


async def test_whitelist_add_and_list(client, db, admin_headers):
    resp = await client.post(
        f"{API}/whitelist/add",
        json={"wallet_address": WALLET_1.upper().replace("0X", "0x"), "type": "guaranteed", "notes": "team"},
        headers=admin_headers,
    )
    assert resp.status_code == 200
    assert resp.json()["wallet_address"] == WALLET_1
    assert resp.json()["added_by"] == "admin"

    listing = (await client.get(f"{API}/whitelist", headers=admin_headers)).json()
    assert listing["total"] == 1
    assert listing["pages"] == 1
    assert listing["stats"]["guaranteed"]["count"] == 1


async def test_whitelist_add_rejects_none_tier(client, db, admin_headers):
    resp = await client.post(
        f"{API}/whitelist/add",
        json={"wallet_address": WALLET_1, "type": "none"},
        headers=admin_headers,
    )
    assert resp.status_code == 400


async def test_whitelist_bulk_import(client, db, admin_headers, whitelist):
    await whitelist(WALLET_1, Tier.WAITLIST)

    resp = await client.post(
        f"{API}/whitelist/bulk-import",
        json={
            "whitelist": [
                {"wallet_address": WALLET_1, "type": "guaranteed"},
                {"wallet_address": WALLET_2, "type": "waitlist"},
                {"wallet_address": "garbage", "type": "waitlist"},
            ]
        },
        headers=admin_headers,
    )

    assert resp.status_code == 200
    body = resp.json()
    assert body["imported"] == 1
    assert body["updated"] == 1
    assert [e["wallet_address"] for e in body["errors"]] == ["garbage"]


async def test_whitelist_delete(client, db, admin_headers, whitelist):
    await whitelist(WALLET_1, Tier.GUARANTEED)

    first = await client.delete(f"{API}/whitelist/{WALLET_1}", headers=admin_headers)
    second = await client.delete(f"{API}/whitelist/{WALLET_1}", headers=admin_headers)

    assert first.status_code == 200
    assert second.status_code == 404
    assert second.json()["code"] == "NOT_FOUND"


# ─── config ────────────────────────────────────────────────────────


async def test_config_update(client, seed_presale, admin_headers):
    await seed_presale(Phase.PUBLIC)

    resp = await client.put(
        f"{API}/admin/config",
        json={"presale_rate": 300, "max_investment_usdc": "5000"},
        headers=admin_headers,
    )

    assert resp.status_code == 200
    body = resp.json()
    assert body["presale_rate"] == 300
    assert Decimal(body["max_investment_usdc"]) == Decimal("5000")
    assert body["current_phase"] == "public"


async def test_config_update_rejects_broken_invariants(client, seed_presale, admin_headers):
    await seed_presale(Phase.PUBLIC)

    bounds = await client.put(
        f"{API}/admin/config", json={"min_investment_usdc": "9000"}, headers=admin_headers
    )
    split = await client.put(
        f"{API}/admin/config",
        json={"airdrop_percentage": 40, "staking_percentage": 40},
        headers=admin_headers,
    )

    assert bounds.status_code == 400
    assert bounds.json()["code"] == "VALIDATION_ERROR"
    assert split.status_code == 400


async def test_config_update_rejects_window_gap(client, seed_presale, admin_headers):
    config = await seed_presale(Phase.PUBLIC)
    shifted = (config.guaranteed_end + timedelta(minutes=30)).isoformat()

    resp = await client.put(
        f"{API}/admin/config",
        json={"phases": {"guaranteed": {"end_time": shifted}}},
        headers=admin_headers,
    )
    assert resp.status_code == 400


async def test_config_update_rejects_unknown_window(client, seed_presale, admin_headers):
    await seed_presale(Phase.PUBLIC)
    resp = await client.put(
        f"{API}/admin/config",
        json={"phases": {"presale": {"end_time": "2030-01-01T00:00:00+00:00"}}},
        headers=admin_headers,
    )
    assert resp.status_code == 400


# ─── ledger ────────────────────────────────────────────────────────


async def test_reconcile_ledger(client, seed_presale, admin_headers):
    await seed_presale(Phase.PUBLIC)
    await client.post(
        f"{API}/investment/create",
        json={"wallet_address": WALLET_1, "transaction_id": "0xtx1", "usdc_amount": "100"},
    )
    await RaisedTotal.filter(id=1).update(total_confirmed=7)

    resp = await client.post(f"{API}/admin/ledger/reconcile", headers=admin_headers)

    assert resp.status_code == 200
    assert Decimal(resp.json()["raised_usdc"]) == Decimal("100")
    assert (await RaisedTotal.get(id=1)).total_confirmed == 100 * 10**6


# ─── probes ────────────────────────────────────────────────────────


async def test_health_and_ready(client, db):
    health = await client.get("/health")
    ready = await client.get("/ready")

    assert health.json()["status"] == "healthy"
    assert ready.json()["status"] == "ready"
    assert ready.json()["checks"]["database"] is True
