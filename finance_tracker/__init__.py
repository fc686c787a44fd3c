"""
Finance Tracker - Source Package

A small personal-finance tracker: accounts, categories, transactions,
recurring subscriptions and net-worth snapshots, with WhatsApp and LINE
reminders for subscription payments.

DESIGN PRINCIPLES:
1. Aggregations are pure functions over plain records
2. Storage layer is swappable
3. Configuration is built once and passed down
4. Every posting and acknowledgement is auditable
"""

__version__ = "1.0.0"
__author__ = "Finance Tracker Team"
