"""Pipelines run as detached continuations after a webhook is acknowledged.

- enablement: CRM stage change -> package delivery, or outcome tracking
- feedback: reactions and field signals -> log + PMM notification
- tasks: run_detached, the error boundary for background work
"""
