"""Subscription scheduling, reminders and PAID replies."""

from finance_tracker.subscriptions.acknowledgements import (
    build_acknowledgement,
    extract_line_messages,
    match_subscription,
    parse_paid_command,
    validate_line_signature,
)
from finance_tracker.subscriptions.engine import (
    is_due,
    next_due_date,
    post_due_subscriptions,
    posting_id,
)
from finance_tracker.subscriptions.reminders import (
    ReminderDispatcher,
    ReminderJob,
    format_reminder,
    plan_reminders,
)

__all__ = [
    "ReminderDispatcher",
    "ReminderJob",
    "build_acknowledgement",
    "extract_line_messages",
    "format_reminder",
    "is_due",
    "match_subscription",
    "next_due_date",
    "parse_paid_command",
    "plan_reminders",
    "post_due_subscriptions",
    "posting_id",
]
