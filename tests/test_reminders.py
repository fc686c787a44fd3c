"""Tests for reminder texts, planning and dispatch."""

import pytest
from datetime import date
from decimal import Decimal

from conftest import make_subscription
from finance_tracker.models.audit import AuditEventType
from finance_tracker.models.ledger import Channel, ReminderKind
from finance_tracker.services.messaging import (
    ChannelRegistry,
    MessageDeliveryError,
    MessagingChannel,
    UnsupportedChannelError,
)
from finance_tracker.subscriptions import ReminderDispatcher, format_reminder, plan_reminders


class RecordingChannel(MessagingChannel):
    """Channel double that records what it was asked to send."""

    def __init__(self, channel: Channel, fail: bool = False):
        self.channel = channel
        self.fail = fail
        self.sent: list[tuple[str, str]] = []

    @property
    def is_configured(self) -> bool:
        return True

    async def send(self, contact: str, text: str) -> dict:
        if self.fail:
            raise MessageDeliveryError(self.channel.value, 500, "boom")
        self.sent.append((contact, text))
        return {"ok": True}


class TestFormatReminder:
    """Tests for reminder templates."""

    def test_pre(self):
        text = format_reminder("pre", "Netflix", Decimal("419"), "THB", date(2024, 2, 15))
        assert text == (
            'Heads-up: Netflix (THB 419) is due on 2024-02-15. '
            'Reply "PAID Netflix" when you\'ve paid.'
        )

    def test_due(self):
        text = format_reminder(ReminderKind.DUE, "Spotify", 149, "THB", "2024-02-15")
        assert text == 'Due today: Spotify (THB 149). Reply "PAID Spotify" when paid.'

    def test_overdue(self):
        text = format_reminder("overdue", "Gym", "900.50", "THB", "2024-02-01")
        assert text == (
            'Overdue: Gym since 2024-02-01. Please settle. '
            'Reply "PAID Gym" after you pay.'
        )

    def test_decimal_amount_kept(self):
        text = format_reminder("due", "Cloud", Decimal("9.99"), "USD", "2024-02-15")
        assert "(USD 9.99)" in text

    def test_unknown_kind_fails_fast(self):
        with pytest.raises(ValueError):
            format_reminder("later", "Netflix", 1, "THB", "2024-02-15")


class TestPlanReminders:
    """Tests for picking pre / due / overdue reminders."""

    today = date(2024, 2, 15)

    def test_kinds(self):
        subscriptions = [
            make_subscription(name="Due", last_posted="2024-01-15", channel="line", contact="U1"),
            make_subscription(name="Soon", last_posted="2024-01-17", channel="line", contact="U1"),
            make_subscription(name="Late", last_posted="2024-01-10", channel="whatsapp", contact="+66800000000"),
            make_subscription(name="Far", last_posted="2024-02-10", channel="line", contact="U1"),
        ]
        jobs = {job.name: job for job in plan_reminders(subscriptions, self.today, lead_days=3)}

        assert jobs["Due"].kind == ReminderKind.DUE
        assert jobs["Soon"].kind == ReminderKind.PRE
        assert jobs["Soon"].due_date == date(2024, 2, 17)
        assert jobs["Late"].kind == ReminderKind.OVERDUE
        assert "Far" not in jobs

    def test_lead_days_boundary(self):
        sub = make_subscription(last_posted="2024-01-18", channel="line", contact="U1")
        assert [j.kind for j in plan_reminders([sub], self.today, lead_days=3)] == [ReminderKind.PRE]
        assert plan_reminders([sub], self.today, lead_days=2) == []

    def test_requires_channel_and_contact(self):
        subscriptions = [
            make_subscription(name="NoChannel", contact="U1"),
            make_subscription(name="NoContact", channel="line"),
            make_subscription(name="Inactive", channel="line", contact="U1", active=False),
        ]
        assert plan_reminders(subscriptions, self.today) == []

    def test_default_currency_applied(self):
        sub = make_subscription(channel="line", contact="U1")
        [job] = plan_reminders([sub], self.today, default_currency="USD")
        assert job.currency == "USD"
        assert "(USD 419)" in job.render()


class TestReminderDispatcher:
    """Tests for sending reminders through the registry."""

    async def test_send_routes_to_channel(self, audit_logger, audit_storage):
        line = RecordingChannel(Channel.LINE)
        dispatcher = ReminderDispatcher(ChannelRegistry([line]), audit_logger)
        [job] = plan_reminders(
            [make_subscription(channel="line", contact="U1")],
            date(2024, 2, 15),
        )

        receipt = await dispatcher.send(job)

        assert receipt == {"ok": True}
        assert line.sent == [("U1", job.render())]
        events = await audit_storage.get_events_by_type(AuditEventType.REMINDER_SENT)
        assert len(events) == 1

    async def test_send_reraises_transport_error(self, audit_logger, audit_storage):
        dispatcher = ReminderDispatcher(
            ChannelRegistry([RecordingChannel(Channel.LINE, fail=True)]),
            audit_logger,
        )
        [job] = plan_reminders([make_subscription(channel="line", contact="U1")], date(2024, 2, 15))

        with pytest.raises(MessageDeliveryError):
            await dispatcher.send(job)
        events = await audit_storage.get_events_by_type(AuditEventType.REMINDER_FAILED)
        assert len(events) == 1

    async def test_unregistered_channel(self):
        dispatcher = ReminderDispatcher(ChannelRegistry())
        [job] = plan_reminders([make_subscription(channel="whatsapp", contact="+66")], date(2024, 2, 15))
        with pytest.raises(UnsupportedChannelError):
            await dispatcher.send(job)

    async def test_send_all_isolates_failures(self):
        line = RecordingChannel(Channel.LINE)
        registry = ChannelRegistry([line, RecordingChannel(Channel.WHATSAPP, fail=True)])
        jobs = plan_reminders(
            [
                make_subscription(name="A", channel="whatsapp", contact="+66"),
                make_subscription(name="B", channel="line", contact="U1"),
            ],
            date(2024, 2, 15),
        )

        outcome = await ReminderDispatcher(registry).send_all(jobs)

        assert outcome == {"sent": ["B"], "failed": ["A"]}
        assert len(line.sent) == 1
