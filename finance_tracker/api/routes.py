"""
Ledger HTTP routes

Create routes answer {"success": true, "result": {...}}; list and report
routes answer the bare JSON document. Bodies and responses use the
camelCase wire format of the models.
"""

from datetime import datetime, timezone
from typing import Any, Optional

from fastapi import APIRouter, Depends, Request
from fastapi.responses import JSONResponse
from pydantic import BaseModel

from finance_tracker import __version__
from finance_tracker.config import validate_all_settings
from finance_tracker.models.ledger import (
    NewAccount,
    NewCategory,
    NewNetWorthSnapshot,
    NewSubscription,
    NewTransaction,
)
from finance_tracker.orchestrator import LedgerService


router = APIRouter()


def get_service(request: Request) -> LedgerService:
    return request.app.state.service


def dump(value: Any) -> Any:
    """Serialize models (or lists of them) to their JSON wire form."""
    if isinstance(value, BaseModel):
        return value.model_dump(mode="json", by_alias=True)
    if isinstance(value, list):
        return [dump(v) for v in value]
    return value


def created(value: Any) -> dict:
    return {"success": True, "result": dump(value)}


# =============================================================================
# ACCOUNTS & CATEGORIES
# =============================================================================

@router.post("/accounts")
async def add_account(body: NewAccount, service: LedgerService = Depends(get_service)):
    return created(await service.add_account(body))


@router.get("/accounts")
async def list_accounts(service: LedgerService = Depends(get_service)):
    return dump(await service.list_accounts())


@router.post("/categories")
async def add_category(body: NewCategory, service: LedgerService = Depends(get_service)):
    return created(await service.add_category(body))


@router.get("/categories")
async def list_categories(service: LedgerService = Depends(get_service)):
    return dump(await service.list_categories())


# =============================================================================
# TRANSACTIONS & REPORTS
# =============================================================================

@router.post("/transactions")
async def add_transaction(body: NewTransaction, service: LedgerService = Depends(get_service)):
    return created(await service.add_transaction(body))


@router.get("/transactions")
async def list_transactions(
    start: Optional[str] = None,
    end: Optional[str] = None,
    service: LedgerService = Depends(get_service),
):
    return dump(await service.list_transactions(start, end))


@router.get("/summary")
async def summary(
    start: Optional[str] = None,
    end: Optional[str] = None,
    service: LedgerService = Depends(get_service),
):
    return dump(await service.summary(start, end))


@router.get("/breakdown/{month}")
async def breakdown(month: str, service: LedgerService = Depends(get_service)):
    return dump(await service.breakdown(month))


# =============================================================================
# SUBSCRIPTIONS
# =============================================================================

@router.post("/subscriptions")
async def add_subscription(body: NewSubscription, service: LedgerService = Depends(get_service)):
    return created(await service.add_subscription(body))


@router.get("/subscriptions")
async def list_subscriptions(service: LedgerService = Depends(get_service)):
    return dump(await service.list_subscriptions())


@router.post("/subscriptions/post")
async def post_subscriptions(service: LedgerService = Depends(get_service)):
    result = await service.post_subscriptions()
    return dump(result)


@router.post("/subscriptions/reminders")
async def send_reminders(service: LedgerService = Depends(get_service)):
    return await service.send_reminders()


# =============================================================================
# NET WORTH
# =============================================================================

@router.post("/networth")
async def add_networth(body: NewNetWorthSnapshot, service: LedgerService = Depends(get_service)):
    return created(await service.add_networth_snapshot(body))


@router.get("/networth")
async def list_networth(service: LedgerService = Depends(get_service)):
    return dump(await service.list_networth_snapshots())


# =============================================================================
# MAINTENANCE
# =============================================================================

@router.get("/health")
async def health(service: LedgerService = Depends(get_service)):
    settings = service.settings
    return {
        "status": "OK",
        "timestamp": datetime.now(timezone.utc).isoformat(),
        "version": __version__,
        "environment": settings.app.app_environment,
        "storage": settings.storage.backend,
        "channels": service.registry.configured(),
        "settings": validate_all_settings(settings),
    }


@router.post("/reset")
async def reset(service: LedgerService = Depends(get_service)):
    if service.settings.app.is_production:
        return JSONResponse(status_code=404, content={"error": "Not found"})
    await service.reset()
    return {"success": True, "message": "All data reset to zero"}
