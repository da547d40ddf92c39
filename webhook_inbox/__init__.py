"""Webhook Inbox - capture, inspect and purge inbound webhook payloads."""

SERVICE_NAME = "webhook-inbox"
__version__ = "0.1.0"
