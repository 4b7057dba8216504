"""Delivery -- channel formatting, sending, and delivery log entries."""

from src.enablement.delivery.channels import DeliveryChannel, PmmNotifier, SlackChannel, TelegramChannel

__all__ = ["DeliveryChannel", "PmmNotifier", "SlackChannel", "TelegramChannel"]
