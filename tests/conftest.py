"""Shared fixtures: in-memory storage, a ledger service and an API client."""

from datetime import date
from decimal import Decimal

import pytest
from fastapi.testclient import TestClient

from finance_tracker.api import create_app
from finance_tracker.audit import AuditLogger
from finance_tracker.config import Settings
from finance_tracker.models.ledger import Channel, Subscription, Transaction
from finance_tracker.orchestrator import LedgerService
from finance_tracker.services.messaging import ChannelRegistry
from finance_tracker.services.storage import InMemoryAuditStorage, InMemoryLedgerStorage


@pytest.fixture(autouse=True)
def clean_env(monkeypatch):
    """Keep developer environment variables out of the tests."""
    for var in (
        "APP_ENVIRONMENT",
        "STORAGE_BACKEND",
        "SCHEDULER_ENABLED",
        "TWILIO_ACCOUNT_SID",
        "TWILIO_AUTH_TOKEN",
        "TWILIO_WA_FROM",
        "LINE_CHANNEL_ACCESS_TOKEN",
        "LINE_CHANNEL_SECRET",
        "DEFAULT_CURRENCY",
    ):
        monkeypatch.delenv(var, raising=False)


@pytest.fixture
def storage():
    return InMemoryLedgerStorage()


@pytest.fixture
def audit_storage():
    return InMemoryAuditStorage()


@pytest.fixture
def audit_logger(audit_storage):
    return AuditLogger(audit_storage)


@pytest.fixture
def settings():
    return Settings()


@pytest.fixture
def service(storage, audit_logger, settings):
    return LedgerService(
        storage=storage,
        audit_logger=audit_logger,
        registry=ChannelRegistry(),
        settings=settings,
    )


@pytest.fixture
def client(service):
    with TestClient(create_app(service=service)) as test_client:
        yield test_client


def make_transaction(day: str, amount: str, account: str = "Cash", category: str = "Food",
                     currency=None) -> Transaction:
    return Transaction(
        date=date.fromisoformat(day),
        account=account,
        category=category,
        amount=Decimal(amount),
        currency=currency,
    )


def make_subscription(name: str = "Netflix", amount: str = "419", frequency: str = "monthly",
                      last_posted=None, channel=None, contact=None, active: bool = True,
                      currency=None) -> Subscription:
    return Subscription(
        name=name,
        account="Credit Card",
        amount=Decimal(amount),
        frequency=frequency,
        last_posted=date.fromisoformat(last_posted) if last_posted else None,
        channel=Channel(channel) if channel else None,
        contact=contact,
        active=active,
        currency=currency,
    )
