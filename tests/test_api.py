"""Tests for the HTTP API and chat webhooks."""

import asyncio
import base64
import hashlib
import hmac
import json
from datetime import date, datetime

import pytest
from fastapi.testclient import TestClient

from finance_tracker.api import create_app
from finance_tracker.api.scheduler import DAILY_SUBSCRIPTIONS, MONTHLY_NETWORTH, due_jobs, run_job
from finance_tracker.config import SchedulerSettings
from finance_tracker.models.audit import AuditEventType
from finance_tracker.services.storage import InMemoryLedgerStorage, StorageError


def sign(body: bytes, secret: str = "test-secret") -> str:
    return base64.b64encode(hmac.new(secret.encode(), body, hashlib.sha256).digest()).decode()


def events_of(audit_storage, event_type):
    return asyncio.run(audit_storage.get_events_by_type(event_type))


class TestLedgerRoutes:
    """Tests for create / list / report routes."""

    def test_health(self, client):
        response = client.get("/health")
        assert response.status_code == 200
        body = response.json()
        assert body["status"] == "OK"
        assert body["storage"] == "memory"

    def test_create_and_list_account(self, client):
        response = client.post("/accounts", json={"name": "Savings", "currency": "thb"})
        assert response.status_code == 200
        body = response.json()
        assert body["success"] is True
        assert body["result"]["currency"] == "THB"
        assert body["result"]["id"]

        listed = client.get("/accounts").json()
        assert [a["name"] for a in listed] == ["Savings"]

    def test_create_category(self, client):
        body = client.post("/categories", json={"name": "Food"}).json()
        assert body["result"]["name"] == "Food"
        assert len(client.get("/categories").json()) == 1

    def test_create_transaction(self, client):
        response = client.post("/transactions", json={
            "date": "2024-01-15",
            "account": "Cash",
            "category": "Food",
            "amount": -120.5,
        })
        assert response.status_code == 200
        result = response.json()["result"]
        assert result["monthSheet"] == "Transactions-2024-01"
        assert result["amount"] == -120.5

    def test_transaction_validation_error(self, client):
        response = client.post("/transactions", json={"date": "2024-01-15", "account": "Cash"})
        assert response.status_code == 400
        assert "error" in response.json()

    def test_transactions_newest_first_and_range(self, client):
        for day in ["2024-01-01", "2024-03-01", "2024-02-01"]:
            client.post("/transactions", json={
                "date": day, "account": "Cash", "category": "Food", "amount": 1,
            })

        listed = client.get("/transactions").json()
        assert [t["date"] for t in listed] == ["2024-03-01", "2024-02-01", "2024-01-01"]

        ranged = client.get("/transactions", params={"start": "2024-01-15", "end": "2024-02-15"}).json()
        assert [t["date"] for t in ranged] == ["2024-02-01"]

    def test_summary(self, client):
        client.post("/transactions", json={
            "date": "2024-01-01", "account": "Cash", "category": "Salary", "amount": 1000,
        })
        client.post("/transactions", json={
            "date": "2024-01-02", "account": "Cash", "category": "Food", "amount": -300, "currency": "usd",
        })

        body = client.get("/summary").json()
        assert body["inflow"] == 1000
        assert body["outflow"] == -300
        assert body["net"] == 700
        assert body["byCcy"]["THB"]["inflow"] == 1000
        assert body["byCcy"]["USD"]["outflow"] == -300

        ranged = client.get("/summary", params={"start": "2024-01-02"}).json()
        assert ranged["inflow"] == 0

    def test_summary_bad_date(self, client):
        response = client.get("/summary", params={"start": "yesterday"})
        assert response.status_code == 400

    def test_breakdown(self, client):
        client.post("/transactions", json={
            "date": "2024-01-05", "account": "Visa Credit", "category": "Food", "amount": -100,
        })
        client.post("/transactions", json={
            "date": "2024-02-05", "account": "Visa Credit", "category": "Food", "amount": -999,
        })

        body = client.get("/breakdown/2024-01").json()
        assert body["creditCards"] == {"Visa Credit": -100}
        assert body["categories"] == {"Food": -100}
        assert body["sheetData"][0] == ["Credit Cards", ""]

    def test_breakdown_bad_month(self, client):
        response = client.get("/breakdown/2024-13")
        assert response.status_code == 400
        assert "YYYY-MM" in response.json()["error"]

    def test_networth(self, client):
        response = client.post("/networth", json={"assets": 250000, "liabilities": -15000})
        assert response.json()["result"]["netWorth"] == 235000
        client.post("/networth", json={"date": "2020-01-01", "assets": 1, "liabilities": 0})

        listed = client.get("/networth").json()
        assert len(listed) == 2
        assert listed[-1]["date"] == "2020-01-01"


class TestSubscriptionRoutes:
    def test_create_and_post(self, client):
        response = client.post("/subscriptions", json={
            "name": "Netflix", "account": "Visa Credit", "amount": -419,
        })
        assert response.json()["result"]["amount"] == 419
        assert response.json()["result"]["frequency"] == "monthly"

        posted = client.post("/subscriptions/post").json()
        assert posted["posted"] == ["Netflix"]

        again = client.post("/subscriptions/post").json()
        assert again["posted"] == []

        [tx] = client.get("/transactions").json()
        assert tx["amount"] == -419
        assert tx["category"] == "Subscription"

        [sub] = client.get("/subscriptions").json()
        assert sub["lastPosted"] == date.today().isoformat()


class TestWebhooks:
    """Tests for inbound PAID replies."""

    def _subscribe(self, client, **fields):
        body = {"name": "Netflix", "account": "Card", "amount": 419}
        body.update(fields)
        client.post("/subscriptions", json=body)

    def _acks(self, audit_storage):
        return events_of(audit_storage, AuditEventType.PAYMENT_ACKNOWLEDGED)

    def test_twilio_paid(self, client, audit_storage):
        self._subscribe(client, channel="whatsapp", contact="+66812345678")

        response = client.post("/webhooks/twilio", data={
            "From": "whatsapp:+66812345678",
            "Body": "paid netflix",
        })

        assert response.status_code == 200
        assert response.content == b""
        acks = self._acks(audit_storage)
        assert len(acks) == 1
        assert acks[0].details["subscription_name"] == "Netflix"

    def test_twilio_ignores_other_text(self, client, audit_storage):
        self._subscribe(client, channel="whatsapp", contact="+66812345678")
        response = client.post("/webhooks/twilio", data={"From": "whatsapp:+66812345678", "Body": "hi"})
        assert response.status_code == 200
        assert self._acks(audit_storage) == []

    def test_ack_does_not_touch_last_posted(self, client):
        self._subscribe(client, channel="whatsapp", contact="+66812345678")
        client.post("/webhooks/twilio", data={"From": "whatsapp:+66812345678", "Body": "PAID"})
        [sub] = client.get("/subscriptions").json()
        assert sub["lastPosted"] is None
        assert client.post("/subscriptions/post").json()["posted"] == ["Netflix"]

    def test_line_bad_signature(self, client, audit_storage):
        body = json.dumps({"events": []}).encode()
        response = client.post(
            "/webhooks/line",
            content=body,
            headers={"x-line-signature": "nope", "content-type": "application/json"},
        )
        assert response.status_code == 401
        assert response.text == "Bad signature"
        rejected = events_of(audit_storage, AuditEventType.WEBHOOK_SIGNATURE_REJECTED)
        assert len(rejected) == 1

    def test_line_paid(self, client, audit_storage):
        self._subscribe(client, channel="line", contact="U123")
        body = json.dumps({
            "events": [{
                "type": "message",
                "message": {"type": "text", "text": "PAID net"},
                "source": {"userId": "U123"},
            }]
        }).encode()

        response = client.post(
            "/webhooks/line",
            content=body,
            headers={"x-line-signature": sign(body), "content-type": "application/json"},
        )

        assert response.status_code == 200
        acks = self._acks(audit_storage)
        assert len(acks) == 1
        assert acks[0].details["contact"] == "U123"

    @pytest.mark.parametrize("payload", [
        {"events": "x"},
        {"events": [{"type": "message", "message": {"type": "text", "text": ["PAID"]}, "source": {"userId": "U123"}}]},
    ])
    def test_line_malformed_payload_ignored(self, client, audit_storage, payload):
        self._subscribe(client, channel="line", contact="U123")
        body = json.dumps(payload).encode()

        response = client.post(
            "/webhooks/line",
            content=body,
            headers={"x-line-signature": sign(body), "content-type": "application/json"},
        )

        assert response.status_code == 200
        assert self._acks(audit_storage) == []


class TestMaintenance:
    def test_reset(self, client):
        client.post("/accounts", json={"name": "Savings", "currency": "THB"})
        response = client.post("/reset")
        assert response.status_code == 200
        assert response.json()["success"] is True
        assert client.get("/accounts").json() == []

    def test_reset_refused_in_production(self, client, monkeypatch):
        client.post("/accounts", json={"name": "Savings", "currency": "THB"})
        monkeypatch.setenv("APP_ENVIRONMENT", "production")

        response = client.post("/reset")

        assert response.status_code == 404
        assert len(client.get("/accounts").json()) == 1


class TestErrorHandling:
    def test_storage_error_is_500(self, service):
        class BrokenStorage(InMemoryLedgerStorage):
            async def list_accounts(self):
                raise StorageError("sheet unavailable")

        service._storage = BrokenStorage()
        with TestClient(create_app(service=service)) as client:
            response = client.get("/accounts")
        assert response.status_code == 500
        assert response.json() == {"error": "sheet unavailable"}

    def test_unknown_error_is_500(self, service):
        class BrokenStorage(InMemoryLedgerStorage):
            async def list_categories(self):
                raise RuntimeError("boom")

        service._storage = BrokenStorage()
        with TestClient(create_app(service=service), raise_server_exceptions=False) as client:
            response = client.get("/categories")
        assert response.status_code == 500
        assert response.json() == {"error": "Unknown error"}


class TestScheduler:
    """Tests for scheduled job selection and execution."""

    settings = SchedulerSettings(daily_subscriptions_hour=9, monthly_networth_day=1, monthly_networth_hour=10)

    def test_before_trigger_hour(self):
        assert due_jobs(datetime(2024, 2, 5, 8, 59), self.settings, {}) == []

    def test_daily_runs_once_per_day(self):
        now = datetime(2024, 2, 5, 9, 0)
        assert due_jobs(now, self.settings, {}) == [DAILY_SUBSCRIPTIONS]
        assert due_jobs(now, self.settings, {DAILY_SUBSCRIPTIONS: "2024-02-05"}) == []

    def test_monthly_on_first(self):
        now = datetime(2024, 3, 1, 10, 30)
        assert due_jobs(now, self.settings, {DAILY_SUBSCRIPTIONS: "2024-03-01"}) == [MONTHLY_NETWORTH]
        assert due_jobs(now, self.settings, {
            DAILY_SUBSCRIPTIONS: "2024-03-01",
            MONTHLY_NETWORTH: "2024-03",
        }) == []

    async def test_monthly_snapshot_values(self, service):
        await run_job(service, MONTHLY_NETWORTH, datetime(2024, 3, 1, 10, 0))
        [snapshot] = await service.list_networth_snapshots()
        assert snapshot.date == date(2024, 3, 1)
        assert snapshot.net_worth == 235000
        assert snapshot.accounts["Credit Card"] == -15000

    async def test_unknown_job(self, service):
        with pytest.raises(ValueError):
            await run_job(service, "weekly", datetime(2024, 3, 1))
