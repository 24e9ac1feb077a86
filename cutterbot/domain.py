from __future__ import annotations

import datetime as dt
import enum
import hashlib
from dataclasses import dataclass


class SlotStatus(str, enum.Enum):
    FREE = "free"
    RESERVED = "reserved"


def _utc_iso(value: dt.datetime) -> str:
    if value.tzinfo is None or value.utcoffset() is None:
        raise ValueError(f"Timestamp must be timezone-aware: {value!r}")
    return value.astimezone(dt.timezone.utc).isoformat()


def identity_of(resource_id: str, start: dt.datetime, end: dt.datetime) -> str:
    """Stable key of a reservable interval.

    Timestamps are normalized to UTC first, so the same instant written with
    a different offset still maps to the same identity. The value is persisted
    and compared across runs.
    """
    raw = "|".join([resource_id, _utc_iso(start), _utc_iso(end)])
    return hashlib.sha256(raw.encode("utf-8")).hexdigest()


def _format_duration(delta: dt.timedelta) -> str:
    minutes = int(delta.total_seconds() // 60)
    hours, rest = divmod(minutes, 60)
    if rest == 0:
        return f"{hours} h"
    if hours == 0:
        return f"{rest} min"
    return f"{hours} h {rest} min"


def describe_interval(start: dt.datetime, end: dt.datetime) -> str:
    # e.g. "2023-12-01 10:00 - 11:00 (1 h)"
    if start.date() == end.date():
        end_text = end.strftime("%H:%M")
    else:
        end_text = end.strftime("%Y-%m-%d %H:%M")
    return f"{start.strftime('%Y-%m-%d %H:%M')} - {end_text} ({_format_duration(end - start)})"


@dataclass(frozen=True)
class Slot:
    """One reservable interval of the tracked resource, as reported at fetch time.

    ``start`` is inclusive, ``end`` exclusive. Both keep the resource-local
    offset from the schedule API.
    """

    resource_id: str
    start: dt.datetime
    end: dt.datetime
    status: SlotStatus

    def __post_init__(self) -> None:
        if self.end <= self.start:
            raise ValueError(f"Slot end {self.end} must be after start {self.start}")

    @property
    def identity(self) -> str:
        return identity_of(self.resource_id, self.start, self.end)

    @property
    def is_free(self) -> bool:
        return self.status is SlotStatus.FREE

    def describe(self) -> str:
        return describe_interval(self.start, self.end)


@dataclass(frozen=True)
class NotificationEvent:
    start: dt.datetime
    end: dt.datetime
    identity: str

    @classmethod
    def from_slot(cls, slot: Slot) -> "NotificationEvent":
        return cls(start=slot.start, end=slot.end, identity=slot.identity)

    def describe(self) -> str:
        return describe_interval(self.start, self.end)
