"""
Subscription Reminders

Builds the reminder texts and decides who gets which reminder today.

Three kinds of reminder exist:
- pre:     the due date is a few days ahead
- due:     the subscription is due today
- overdue: the due date has passed without a posting
"""

from datetime import date, timedelta
from decimal import Decimal
from typing import Iterable, Optional, Union

import structlog
from pydantic import Field

from finance_tracker.audit.logger import AuditLogger
from finance_tracker.models.ledger import (
    Channel,
    LedgerModel,
    Money,
    ReminderKind,
    Subscription,
)
from finance_tracker.services.messaging import ChannelRegistry
from finance_tracker.subscriptions.engine import next_due_date


logger = structlog.get_logger(__name__)


REMINDER_TEMPLATES = {
    ReminderKind.PRE: (
        'Heads-up: {name} ({currency} {amount}) is due on {due_date}. '
        'Reply "PAID {name}" when you\'ve paid.'
    ),
    ReminderKind.DUE: (
        'Due today: {name} ({currency} {amount}). '
        'Reply "PAID {name}" when paid.'
    ),
    ReminderKind.OVERDUE: (
        'Overdue: {name} since {due_date}. Please settle. '
        'Reply "PAID {name}" after you pay.'
    ),
}


def _format_amount(amount: Union[Decimal, int, float, str]) -> str:
    value = Decimal(str(amount))
    if value == value.to_integral_value():
        return f"{value.quantize(Decimal(1)):f}"
    return f"{value.normalize():f}"


def format_reminder(
    kind: Union[ReminderKind, str],
    name: str,
    amount: Union[Decimal, int, float, str],
    currency: str,
    due_date: Union[date, str],
) -> str:
    """
    Render the reminder text for one subscription.

    Raises:
        ValueError: If kind is not pre, due or overdue
    """
    try:
        template = REMINDER_TEMPLATES[ReminderKind(kind)]
    except ValueError:
        raise ValueError(f"Unknown reminder kind: {kind}")

    if isinstance(due_date, date):
        due_date = due_date.isoformat()
    return template.format(
        name=name,
        currency=currency,
        amount=_format_amount(amount),
        due_date=due_date,
    )


class ReminderJob(LedgerModel):
    """One reminder to deliver."""

    subscription_id: str
    name: str
    amount: Money
    currency: str
    due_date: date
    kind: ReminderKind
    channel: Channel
    contact: str = Field(..., min_length=1)

    def render(self) -> str:
        return format_reminder(self.kind, self.name, self.amount, self.currency, self.due_date)


def reminder_kind_for(due: date, today: date, lead_days: int) -> Optional[ReminderKind]:
    if due < today:
        return ReminderKind.OVERDUE
    if due == today:
        return ReminderKind.DUE
    if due <= today + timedelta(days=lead_days):
        return ReminderKind.PRE
    return None


def plan_reminders(
    subscriptions: Iterable[Subscription],
    today: date,
    lead_days: int = 3,
    default_currency: str = "THB",
) -> list[ReminderJob]:
    """
    Pick the reminders to send today.

    Only active subscriptions with both a channel and a contact are
    considered. Subscriptions due more than lead_days ahead get nothing.
    """
    jobs = []
    for sub in subscriptions:
        if not (sub.active and sub.channel and sub.contact):
            continue

        due = next_due_date(sub.frequency, sub.last_posted, today)
        kind = reminder_kind_for(due, today, lead_days)
        if kind is None:
            continue

        jobs.append(ReminderJob(
            subscription_id=sub.id,
            name=sub.name,
            amount=sub.amount,
            currency=sub.currency or default_currency,
            due_date=due,
            kind=kind,
            channel=sub.channel,
            contact=sub.contact,
        ))
    return jobs


class ReminderDispatcher:
    """Formats reminder jobs and hands them to the right channel."""

    def __init__(self, registry: ChannelRegistry, audit_logger: Optional[AuditLogger] = None):
        self.registry = registry
        self.audit_logger = audit_logger

    async def send(self, job: ReminderJob) -> dict:
        """
        Deliver a single reminder.

        Raises:
            MessagingError: Any channel lookup or transport failure, after logging
        """
        text = job.render()
        try:
            channel = self.registry.get(job.channel)
            receipt = await channel.send(job.contact, text)
        except Exception as e:
            logger.error(
                "reminder_send_failed",
                subscription_id=job.subscription_id,
                kind=job.kind.value,
                channel=job.channel.value,
                error=str(e),
            )
            if self.audit_logger:
                await self.audit_logger.log_reminder_failed(
                    subscription_id=job.subscription_id,
                    kind=job.kind.value,
                    channel=job.channel.value,
                    error_message=str(e),
                )
            raise

        logger.info(
            "reminder_sent",
            subscription_id=job.subscription_id,
            kind=job.kind.value,
            channel=job.channel.value,
        )
        if self.audit_logger:
            await self.audit_logger.log_reminder_sent(
                subscription_id=job.subscription_id,
                kind=job.kind.value,
                channel=job.channel.value,
            )
        return receipt

    async def send_all(self, jobs: Iterable[ReminderJob]) -> dict[str, list[str]]:
        """Send every job; one failure does not stop the rest."""
        sent: list[str] = []
        failed: list[str] = []
        for job in jobs:
            try:
                await self.send(job)
            except Exception:
                failed.append(job.name)
                continue
            sent.append(job.name)
        return {"sent": sent, "failed": failed}
