"""Integration tests for plan, subscription and entitlement endpoints."""

from datetime import datetime, timedelta, timezone

from gaius_engine.common.exceptions import LedgerUnavailableError
from gaius_engine.ledger.client import ConfirmedTransaction
from gaius_engine.subscriptions.store import SubscriptionRow


async def _subscribe(wallet, plan="basic", days=30, tx_id="TX1"):
    from gaius_engine.deps import get_store

    now = datetime.now(timezone.utc)
    await get_store().upsert_subscription(SubscriptionRow(
        wallet_address=wallet,
        plan=plan,
        activated_at=now,
        expiry_date=now + timedelta(days=days),
        tx_id=tx_id,
    ))


class TestHealthEndpoint:
    async def test_health(self, client):
        resp = await client.get("/health")
        assert resp.status_code == 200
        data = resp.json()
        assert data["status"] == "ok"
        assert data["service"] == "gaius-engine"
        assert data["network"] == "testnet"


class TestPlanEndpoints:
    async def test_list_plans(self, client):
        resp = await client.get("/plans")
        assert resp.status_code == 200
        plans = resp.json()
        assert [p["id"] for p in plans] == ["basic", "pro", "enterprise"]
        assert plans[0]["price_micro_algos"] == 5_000_000
        assert plans[1]["recommended"] is True
        assert plans[2]["program_limit"] == "unlimited"


class TestSubscriptionEndpoints:
    async def test_no_subscription(self, client, wallet):
        resp = await client.get(f"/subscriptions/{wallet}")
        assert resp.status_code == 404

    async def test_invalid_address(self, client):
        resp = await client.get("/subscriptions/not-a-wallet")
        assert resp.status_code == 400

    async def test_active_subscription(self, client, wallet):
        await _subscribe(wallet, plan="pro", days=10)
        resp = await client.get(f"/subscriptions/{wallet}")
        assert resp.status_code == 200
        data = resp.json()
        assert data["plan"] == "pro"
        assert data["is_active"] is True
        assert data["days_remaining"] == 10
        assert data["tx_id"] == "TX1"

    async def test_expired_subscription(self, client, wallet):
        await _subscribe(wallet, days=-1)
        data = (await client.get(f"/subscriptions/{wallet}")).json()
        assert data["is_active"] is False
        assert data["days_remaining"] == 0


class TestEntitlementEndpoints:
    async def test_denied_without_subscription(self, client, wallet):
        resp = await client.get(f"/entitlements/{wallet}/programs")
        assert resp.status_code == 200
        data = resp.json()
        assert data["allowed"] is False
        assert data["remaining"] == 0
        assert data["reason"] == "NoActiveSubscription"

    async def test_allowed_with_room(self, client, ledger, wallet):
        await _subscribe(wallet, plan="basic")
        ledger.give_programs(wallet, 3)
        data = (await client.get(f"/entitlements/{wallet}/programs")).json()
        assert data["allowed"] is True
        assert data["remaining"] == 37
        assert data["limit"] == 40
        assert data["program_count"] == 3
        assert data["plan"] == "basic"

    async def test_unlimited(self, client, ledger, wallet):
        await _subscribe(wallet, plan="enterprise")
        ledger.give_programs(wallet, 100)
        data = (await client.get(f"/entitlements/{wallet}/programs")).json()
        assert data["allowed"] is True
        assert data["remaining"] == "unlimited"

    async def test_ledger_down_fails_closed(self, client, ledger, wallet):
        await _subscribe(wallet, plan="enterprise")
        ledger.account_error = LedgerUnavailableError("node down")
        data = (await client.get(f"/entitlements/{wallet}/programs")).json()
        assert data["allowed"] is False
        assert data["reason"] == "ResolverUnavailable"

    async def test_invalid_address(self, client):
        data = (await client.get("/entitlements/nope/programs")).json()
        assert data["allowed"] is False
        assert data["reason"] == "InvalidAddress"


class TestReconcileEndpoint:
    async def test_requires_api_key(self, client, wallet):
        resp = await client.post(
            f"/subscriptions/{wallet}/reconcile",
            json={"tx_id": "PAID1", "plan": "basic"},
            headers={"X-Gaius-Api-Key": "wrong"},
        )
        assert resp.status_code == 403

    async def test_reconcile(self, client, ledger, wallet, receiver, admin_headers):
        ledger.transactions["PAID1"] = ConfirmedTransaction(
            tx_id="PAID1", confirmed_round=900, sender=wallet, receiver=receiver, amount=5_000_000,
        )
        resp = await client.post(
            f"/subscriptions/{wallet}/reconcile",
            json={"tx_id": "PAID1", "plan": "basic"},
            headers=admin_headers,
        )
        assert resp.status_code == 200
        data = resp.json()
        assert data["success"] is True
        assert data["stage"] == "Done"
        assert data["tx_id"] == "PAID1"
        assert data["expiry_date"]

        sub = (await client.get(f"/subscriptions/{wallet}")).json()
        assert sub["plan"] == "basic"
        assert sub["is_active"] is True

    async def test_reconcile_unconfirmed(self, client, wallet, admin_headers):
        resp = await client.post(
            f"/subscriptions/{wallet}/reconcile",
            json={"tx_id": "MISSING", "plan": "basic"},
            headers=admin_headers,
        )
        assert resp.status_code == 200
        data = resp.json()
        assert data["success"] is False
        assert data["reason"] == "ConfirmationTimeout"
