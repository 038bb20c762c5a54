"""Wallet back-office services: transaction building, broadcasting, block scanning and notification."""

__version__ = "0.1.0"

__all__ = [
    "records",
    "channel_bank",
    "notify_client",
    "account_client",
    "fees",
    "business",
    "notifier",
    "workers",
    "synchronizer",
]