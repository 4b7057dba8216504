"""PMM notification texts.

The PMM hears about two things: enabled deals that close (won or lost) and
field signals (rep replies and call intel) that may reveal gaps in the
knowledge base. Texts use Slack mrkdwn emphasis, which Telegram shows as
plain asterisks.
"""

from __future__ import annotations

from src.enablement.deals.stages import CLOSED_WON_STAGE
from src.enablement.feedback.schemas import (
    DeliveryEntry,
    FeedbackEntry,
    FeedbackSource,
    NotificationType,
    PmmNotification,
)
from src.enablement.knowledge.template import format_size

UNKNOWN_DEAL = "Unknown deal"
UNKNOWN_REP = "Unknown rep"


def build_outcome_notification(
    deal_name: str,
    outcome: str,
    company_name: str,
    industry: str,
    deal_size: float,
    delivery: DeliveryEntry | None = None,
) -> PmmNotification:
    """Alert for a closed deal, with the enablement it received."""
    won = outcome == CLOSED_WON_STAGE
    emoji = "🎉" if won else "📉"
    size = f" (${format_size(deal_size)})" if deal_size > 0 else ""

    lines = [
        f"{emoji} *Deal Outcome: {outcome}*",
        "",
        f"*Deal:* {deal_name}{size}",
        f"*Company:* {company_name}",
        f"*Industry:* {industry}",
        "",
    ]

    if delivery is not None:
        lines.append(f"This deal received enablement at {delivery.deal_stage} on {delivery.timestamp}.")
        if delivery.case_studies_surfaced:
            lines.append(f"Case studies used: {', '.join(delivery.case_studies_surfaced)}")
        if delivery.competitors_surfaced:
            lines.append(f"Competitor positioning used: {', '.join(delivery.competitors_surfaced)}")
        lines.append("")

    if won:
        lines.append("_Check your feedback summary to see if enablement content contributed to this win._")
    else:
        lines.append("_Review field signals and feedback to identify what could improve for similar deals._")

    return PmmNotification(text="\n".join(lines), deal_name=deal_name, type=NotificationType.outcome)


def describe_deal(feedback: FeedbackEntry, delivery: DeliveryEntry | None) -> str:
    if feedback.deal_name:
        return feedback.deal_name
    if delivery is not None:
        return f"{delivery.deal_name} ({delivery.deal_stage}, {delivery.industry})"
    return UNKNOWN_DEAL


def build_field_signal_notification(
    feedback: FeedbackEntry,
    delivery: DeliveryEntry | None = None,
) -> PmmNotification:
    """Alert for a rep reply or call summary."""
    if feedback.source == FeedbackSource.call_intel:
        emoji, label = "📞", "Call intel"
    else:
        emoji, label = "💬", "Rep reply"

    text = (
        f"{emoji} *{label}* on {describe_deal(feedback, delivery)}\n\n"
        f'"{feedback.raw_text or feedback.value}"\n'
        f"- {feedback.rep_id or UNKNOWN_REP}, {feedback.timestamp}\n\n"
        "_Check if your knowledge base covers this. Update if needed._"
    )
    deal_name = feedback.deal_name or (delivery.deal_name if delivery is not None else "")
    return PmmNotification(text=text, deal_name=deal_name, type=NotificationType.field_signal)
