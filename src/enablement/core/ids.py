"""Identifier generation for knowledge entries, deliveries, and feedback.

Knowledge entries get sequential, zero-padded ids (``cs-001``, ``cp-002``,
``ob-003``). Deliveries and feedback events get time-ordered ids built from
the current millisecond timestamp and a process-wide counter, both base36.
"""

from __future__ import annotations

import itertools
import re
import time
from collections.abc import Iterable
from datetime import datetime, timezone

_BASE36_DIGITS = "0123456789abcdefghijklmnopqrstuvwxyz"

_counter = itertools.count()


def _base36(value: int) -> str:
    if value == 0:
        return "0"
    digits: list[str] = []
    while value:
        value, rem = divmod(value, 36)
        digits.append(_BASE36_DIGITS[rem])
    return "".join(reversed(digits))


def id_number(prefix: str, entry_id: str) -> int | None:
    """Sequence number of ``entry_id`` if it has the form ``<prefix>-<digits>``."""
    match = re.match(rf"^{re.escape(prefix)}-(\d+)$", entry_id)
    return int(match.group(1)) if match else None


def generate_id(prefix: str, existing_ids: Iterable[str], issued: int = 0) -> str:
    """Return the next sequential id for ``prefix``.

    The sequence number is one more than the larger of ``issued`` (the
    highest number ever handed out for the prefix) and the highest existing
    number. Ids that do not match ``<prefix>-<digits>`` are ignored. Passing
    the recorded high-water mark keeps ids of removed entries from being
    reissued.
    """
    highest = issued
    for existing in existing_ids:
        number = id_number(prefix, existing)
        if number is not None:
            highest = max(highest, number)
    return f"{prefix}-{highest + 1:03d}"


def _time_ordered(prefix: str) -> str:
    millis = int(time.time() * 1000)
    return f"{prefix}-{_base36(millis)}-{_base36(next(_counter))}"


def utc_now_iso() -> str:
    """Current UTC time as an ISO-8601 string with a Z suffix."""
    return datetime.now(timezone.utc).isoformat(timespec="milliseconds").replace("+00:00", "Z")


def generate_delivery_id() -> str:
    return _time_ordered("del")


def generate_feedback_id() -> str:
    return _time_ordered("fb")
