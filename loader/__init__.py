"""Fixture load orchestration: transactions, integrity bracketing and change detection."""
