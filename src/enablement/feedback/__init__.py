"""Feedback loop -- reactions, field signals, and deal outcomes.

Components:
- schemas: DeliveryEntry, FeedbackEntry, FeedbackLog, PmmNotification
- parse: parse_feedback, the multi-shape webhook normalizer
- correlate: delivery lookup by id or deal name
- notify: PMM notification texts
- repository: FeedbackRepository, the append-only log
- analytics: summaries, outcomes and field signals for curation tools
"""
