"""
Subscription Due-Date Engine

Decides when a recurring subscription is next due and turns due
subscriptions into ledger transactions.

DESIGN DECISION: Calendar arithmetic rolls day overflow into the next
month instead of clamping. Jan 31 + 1 month is therefore Mar 2 in a leap
year (Feb has no 31st, the two surplus days carry over). Existing
ledgers were built with this behaviour, so due dates stay stable.

DESIGN DECISION: Posting is idempotent per (subscription, day). The posted
transaction id is derived from both, and the store rejects a duplicate id.
A second run on the same day (a restart, a manual trigger racing the
scheduler) cannot double-post.
"""

from datetime import date, timedelta
from typing import Optional

import structlog

from finance_tracker.audit.logger import AuditLogger, create_correlation_id
from finance_tracker.models.ledger import (
    SUBSCRIPTION_CATEGORY,
    PostingResult,
    Subscription,
    SubscriptionFrequency,
    Transaction,
)
from finance_tracker.services.storage import DuplicateError, LedgerStorageInterface


logger = structlog.get_logger(__name__)

FALLBACK_PERIOD = timedelta(days=30)


def _add_months(day: date, months: int) -> date:
    """Add calendar months, carrying day overflow into the following month."""
    month_index = day.month - 1 + months
    first = date(day.year + month_index // 12, month_index % 12 + 1, 1)
    return first + timedelta(days=day.day - 1)


def next_due_date(
    frequency: str,
    last_posted: Optional[date] = None,
    today: Optional[date] = None,
) -> date:
    """
    Compute the date a subscription is next due.

    Args:
        frequency: 'monthly', 'yearly' or any other free text
        last_posted: Date the subscription was last posted, if ever
        today: Reference date (defaults to the current date)

    Returns:
        today when never posted, otherwise last_posted advanced by one
        period. Unknown frequencies advance by 30 days.
    """
    if last_posted is None:
        return today or date.today()

    freq = (frequency or "").strip().lower()
    if freq == SubscriptionFrequency.MONTHLY.value:
        return _add_months(last_posted, 1)
    if freq == SubscriptionFrequency.YEARLY.value:
        return _add_months(last_posted, 12)
    return last_posted + FALLBACK_PERIOD


def is_due(subscription: Subscription, today: date) -> bool:
    """True when an active subscription's next due date is on or before today."""
    if not subscription.active:
        return False
    return next_due_date(subscription.frequency, subscription.last_posted, today) <= today


def posting_id(subscription_id: str, today: date) -> str:
    """Idempotency key of the transaction posted for a subscription on a day."""
    return f"sub-{subscription_id}-{today.isoformat()}"


def build_posting(subscription: Subscription, today: date, default_currency: str) -> Transaction:
    """The outflow transaction that records one subscription payment."""
    return Transaction(
        id=posting_id(subscription.id, today),
        date=today,
        account=subscription.account,
        category=SUBSCRIPTION_CATEGORY,
        amount=-abs(subscription.amount),
        currency=subscription.currency or default_currency,
        description=subscription.name,
    )


async def post_due_subscriptions(
    storage: LedgerStorageInterface,
    today: Optional[date] = None,
    default_currency: str = "THB",
    audit_logger: Optional[AuditLogger] = None,
) -> PostingResult:
    """
    Post every due subscription as a transaction.

    Each subscription is handled on its own: a failure is logged and
    reported in `failed`, and the run carries on with the next one.
    A subscription already posted today is skipped.

    Returns:
        PostingResult with the names of posted and failed subscriptions
    """
    today = today or date.today()
    correlation_id = create_correlation_id()
    result = PostingResult()

    subscriptions = await storage.list_subscriptions()
    due = [sub for sub in subscriptions if is_due(sub, today)]
    logger.info(
        "posting_due_subscriptions",
        today=today.isoformat(),
        total=len(subscriptions),
        due=len(due),
        correlation_id=str(correlation_id),
    )

    for sub in due:
        tx = build_posting(sub, today, default_currency)
        try:
            await storage.add_transaction(tx)
        except DuplicateError:
            logger.info("subscription_already_posted", subscription_id=sub.id, transaction_id=tx.id)
            if audit_logger:
                await audit_logger.log_subscription_already_posted(
                    subscription_id=sub.id,
                    name=sub.name,
                    transaction_id=tx.id,
                    correlation_id=correlation_id,
                )
            continue
        except Exception as e:
            logger.error("subscription_post_failed", subscription_id=sub.id, error=str(e))
            result.failed.append(sub.name)
            if audit_logger:
                await audit_logger.log_subscription_post_failed(
                    subscription_id=sub.id,
                    name=sub.name,
                    error_message=str(e),
                    correlation_id=correlation_id,
                )
            continue

        try:
            await storage.update_last_posted(sub.id, today)
        except Exception as e:
            # Transaction is stored; today's id blocks a repeat post
            logger.error("last_posted_update_failed", subscription_id=sub.id, error=str(e))
            result.failed.append(sub.name)
            if audit_logger:
                await audit_logger.log_subscription_post_failed(
                    subscription_id=sub.id,
                    name=sub.name,
                    error_message=str(e),
                    correlation_id=correlation_id,
                )
            continue

        result.posted.append(sub.name)
        if audit_logger:
            await audit_logger.log_subscription_posted(
                subscription_id=sub.id,
                name=sub.name,
                transaction_id=tx.id,
                amount=str(tx.amount),
                correlation_id=correlation_id,
            )

    logger.info(
        "posting_complete",
        posted=len(result.posted),
        failed=len(result.failed),
        correlation_id=str(correlation_id),
    )
    return result
