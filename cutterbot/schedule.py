from __future__ import annotations

import datetime as dt
import json
import logging
from typing import Any

import httpx

from cutterbot.domain import Slot, SlotStatus
from cutterbot.errors import FetchNetworkError, HttpStatusError, UnexpectedFormatError

logger = logging.getLogger(__name__)

DEFAULT_BASE_URL = "https://api.hel.fi/respa/v1"
HORIZON = dt.timedelta(days=14)

# Opening hours are cut into steps of this size; each free step is one slot.
_STEP = dt.timedelta(hours=1)


def build_resource_url(base_url: str, resource_id: str) -> str:
    return f"{base_url.rstrip('/')}/resource/{resource_id}/"


def _parse_timestamp(value: Any, field: str) -> dt.datetime:
    if not isinstance(value, str):
        raise UnexpectedFormatError(f"Field {field!r} must be a string, got {value!r}")
    try:
        parsed = dt.datetime.fromisoformat(value.replace("Z", "+00:00"))
    except ValueError as e:
        raise UnexpectedFormatError(f"Field {field!r} is not an ISO timestamp: {value!r}") from e
    if parsed.tzinfo is None:
        raise UnexpectedFormatError(f"Field {field!r} has no UTC offset: {value!r}")
    return parsed


def _require_list(payload: dict, key: str) -> list:
    value = payload.get(key)
    if not isinstance(value, list):
        raise UnexpectedFormatError(f"Response field {key!r} must be a list")
    return value


def _interval(start: dt.datetime, end: dt.datetime, what: str) -> tuple[dt.datetime, dt.datetime]:
    if end <= start:
        raise UnexpectedFormatError(f"{what} ends before it starts: {start.isoformat()} - {end.isoformat()}")
    return start, end


def _free_steps(
    opening: tuple[dt.datetime, dt.datetime],
    reservations: list[tuple[dt.datetime, dt.datetime]],
    window: tuple[dt.datetime, dt.datetime],
) -> list[tuple[dt.datetime, dt.datetime]]:
    """Unreserved steps of one opening day that lie entirely inside ``window``.

    Steps sit on a fixed grid anchored at opening time and are never merged, so a
    step keeps its identity while time advances and earlier reservations drop out
    of the response. Partially covered steps are skipped: their reservations may
    not be in the response.
    """
    opens, closes = opening
    window_start, window_end = window
    result: list[tuple[dt.datetime, dt.datetime]] = []

    current = opens
    while current < closes:
        step_end = min(current + _STEP, closes)
        if current >= window_start and step_end <= window_end:
            reserved = any(r_start < step_end and r_end > current for r_start, r_end in reservations)
            if not reserved:
                result.append((current, step_end))
        current = step_end

    return result


def parse_resource_payload(
    payload: Any,
    *,
    resource_id: str,
    now: dt.datetime,
    horizon: dt.timedelta = HORIZON,
) -> list[Slot]:
    """Turn a Respa resource document into slots ordered by start.

    Every reservation overlapping ``[now, now + horizon)`` becomes a RESERVED
    slot. Each unreserved one-hour step of the opening hours that lies entirely
    inside the window becomes a FREE slot.
    """
    if not isinstance(payload, dict):
        raise UnexpectedFormatError("Response body must be a JSON object")

    window_end = now + horizon

    reservations: list[tuple[dt.datetime, dt.datetime]] = []
    for item in _require_list(payload, "reservations"):
        if not isinstance(item, dict):
            raise UnexpectedFormatError(f"Reservation entry must be an object, got {item!r}")
        reservations.append(
            _interval(_parse_timestamp(item.get("begin"), "begin"), _parse_timestamp(item.get("end"), "end"), "Reservation")
        )

    free: list[tuple[dt.datetime, dt.datetime]] = []
    for item in _require_list(payload, "opening_hours"):
        if not isinstance(item, dict):
            raise UnexpectedFormatError(f"Opening hours entry must be an object, got {item!r}")
        # Closed days come back with null opens/closes.
        if item.get("opens") is None or item.get("closes") is None:
            continue
        opening = _interval(
            _parse_timestamp(item["opens"], "opens"), _parse_timestamp(item["closes"], "closes"), "Opening hours"
        )
        free.extend(_free_steps(opening, reservations, (now, window_end)))

    slots: list[Slot] = []
    seen: set[str] = set()
    reserved = [(s, e) for s, e in reservations if e > now and s < window_end]
    candidates = [(s, e, SlotStatus.RESERVED) for s, e in reserved] + [(s, e, SlotStatus.FREE) for s, e in free]
    for start, end, status in candidates:
        slot = Slot(resource_id=resource_id, start=start, end=end, status=status)
        if slot.identity in seen:
            raise UnexpectedFormatError(f"Interval reported twice: {slot.describe()} ({status.value})")
        seen.add(slot.identity)
        slots.append(slot)

    slots.sort(key=lambda s: (s.start, s.end))
    return slots


def fetch_slots(
    *,
    base_url: str,
    resource_id: str,
    now: dt.datetime,
    horizon: dt.timedelta = HORIZON,
    timeout_seconds: float = 20.0,
    client: httpx.Client | None = None,
) -> list[Slot]:
    """Fetch the resource calendar for ``[now, now + horizon)``.

    No retries and no caching: every call reflects the remote state at call time.
    """
    url = build_resource_url(base_url, resource_id)
    params = {
        "start": now.isoformat(),
        "end": (now + horizon).isoformat(),
        "format": "json",
    }

    owns_client = client is None
    if client is None:
        client = httpx.Client(timeout=timeout_seconds)

    try:
        r = client.get(url, params=params)
    except httpx.HTTPError as e:
        raise FetchNetworkError(f"Schedule request failed ({type(e).__name__}: {e})") from e
    finally:
        if owns_client:
            client.close()

    if r.status_code < 200 or r.status_code >= 300:
        raise HttpStatusError(r.status_code)

    try:
        payload = r.json()
    except (json.JSONDecodeError, UnicodeDecodeError) as e:
        raise UnexpectedFormatError(f"Schedule response is not JSON: {e}") from e

    slots = parse_resource_payload(payload, resource_id=resource_id, now=now, horizon=horizon)
    logger.debug("Parsed %d slots from %s", len(slots), url)
    return slots
