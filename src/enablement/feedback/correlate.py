"""Links feedback and outcome events back to the delivery they concern.

Feedback carries a delivery id (button value, callback data, or a
synthesized thread/message id) and is matched exactly. Outcome webhooks
carry no delivery id, so they are matched by deal name; when a deal was
enabled more than once, the earliest delivery is used.
"""

from __future__ import annotations

from collections.abc import Sequence

from src.enablement.feedback.schemas import DeliveryEntry, FeedbackEntry


def find_delivery(feedback: FeedbackEntry, deliveries: Sequence[DeliveryEntry]) -> DeliveryEntry | None:
    if not feedback.delivery_id:
        return None
    return next((d for d in deliveries if d.delivery_id == feedback.delivery_id), None)


def find_deliveries_for_deal(deal_name: str, deliveries: Sequence[DeliveryEntry]) -> list[DeliveryEntry]:
    return [d for d in deliveries if d.deal_name == deal_name]


def find_outcome_delivery(deal_name: str, deliveries: Sequence[DeliveryEntry]) -> DeliveryEntry | None:
    matches = find_deliveries_for_deal(deal_name, deliveries)
    return matches[0] if matches else None
