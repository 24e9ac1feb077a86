from __future__ import annotations

import datetime as dt
from typing import Sequence

from cutterbot.domain import NotificationEvent, describe_interval

# Telegram rejects messages longer than this.
TELEGRAM_MAX_MESSAGE_LENGTH = 4096


def _chunk_lines(lines: Sequence[str], limit: int) -> list[str]:
    chunks: list[str] = []
    current: list[str] = []
    size = 0

    for line in lines:
        line = line[:limit]
        extra = len(line) + (1 if current else 0)
        if current and size + extra > limit:
            chunks.append("\n".join(current))
            current, size = [], 0
            extra = len(line)
        current.append(line)
        size += extra

    if current:
        chunks.append("\n".join(current))

    # Telegram rejects empty messages; separators may end up alone in a chunk.
    chunks = [c.strip("\n") for c in chunks]
    return [c for c in chunks if c.strip()]


def _merge_adjacent(events: Sequence[NotificationEvent]) -> list[tuple[dt.datetime, dt.datetime]]:
    # Display only: back-to-back hourly slots read better as one range.
    ranges: list[tuple[dt.datetime, dt.datetime]] = []
    for e in events:
        if ranges and ranges[-1][1] == e.start:
            ranges[-1] = (ranges[-1][0], e.end)
        else:
            ranges.append((e.start, e.end))
    return ranges


def render_new_slots(
    events: Sequence[NotificationEvent],
    *,
    resource_name: str,
    facility_name: str,
    booking_url: str | None = None,
    limit: int = TELEGRAM_MAX_MESSAGE_LENGTH,
) -> list[str]:
    """Render one batched message covering every new slot once, in the given order.

    Back-to-back slots are shown as one range. Long lists are split at line
    boundaries so each part fits into ``limit``. Returns an empty list when there
    is nothing to announce.
    """
    if not events:
        return []

    lines = [f"New available times: {resource_name} ({facility_name})", ""]
    lines.extend(f"• {describe_interval(start, end)}" for start, end in _merge_adjacent(events))
    if booking_url:
        lines.extend(["", f"Book: {booking_url}"])

    return _chunk_lines(lines, limit)
