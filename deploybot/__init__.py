"""Relay CI/CD job lifecycle webhooks into Telegram chats."""

__version__ = "0.1.0"
