from __future__ import annotations

import datetime as dt

from cutterbot.domain import NotificationEvent
from cutterbot.messages import _chunk_lines, render_new_slots

HEL = dt.timezone(dt.timedelta(hours=2))


def _event(day: int, start_hour: int, end_hour: int) -> NotificationEvent:
    return NotificationEvent(
        start=dt.datetime(2023, 12, day, start_hour, tzinfo=HEL),
        end=dt.datetime(2023, 12, day, end_hour, tzinfo=HEL),
        identity=f"id-{day}-{start_hour}",
    )


def test_render_lists_each_slot_with_resource_and_facility() -> None:
    messages = render_new_slots(
        [_event(1, 10, 11), _event(2, 16, 19)],
        resource_name="Laser cutter",
        facility_name="Oodi",
        booking_url="https://varaamo.example/laser",
    )

    assert len(messages) == 1
    text = messages[0]
    assert "Laser cutter" in text
    assert "Oodi" in text
    assert "2023-12-01 10:00 - 11:00 (1 h)" in text
    assert "2023-12-02 16:00 - 19:00 (3 h)" in text
    assert text.index("2023-12-01") < text.index("2023-12-02")
    assert text.endswith("Book: https://varaamo.example/laser")


def test_render_nothing_for_no_events() -> None:
    assert render_new_slots([], resource_name="Laser cutter", facility_name="Oodi") == []


def test_render_splits_long_lists_without_losing_slots() -> None:
    events = [_event(day, hour, hour + 1) for day in range(1, 29) for hour in range(8, 20, 2)]

    messages = render_new_slots(events, resource_name="Laser cutter", facility_name="Oodi", limit=500)

    assert len(messages) > 1
    assert all(len(m) <= 500 for m in messages)
    joined = "\n".join(messages)
    for e in events:
        assert joined.count(e.describe()) == 1


def test_render_shows_back_to_back_slots_as_one_range() -> None:
    events = [_event(1, 10, 11), _event(1, 11, 12), _event(1, 12, 13), _event(1, 15, 16)]

    (text,) = render_new_slots(events, resource_name="Laser cutter", facility_name="Oodi")

    assert "2023-12-01 10:00 - 13:00 (3 h)" in text
    assert "2023-12-01 15:00 - 16:00 (1 h)" in text
    assert "10:00 - 11:00" not in text


def test_chunks_never_consist_of_blank_lines_only() -> None:
    chunks = _chunk_lines(["a" * 10, "", "b" * 10], limit=10)

    assert chunks == ["a" * 10, "b" * 10]


def test_render_with_long_booking_link_sends_no_empty_message() -> None:
    link = "https://varaamo.example/" + "x" * 40
    line = f"Book: {link}"

    messages = render_new_slots(
        [_event(1, 10, 11)],
        resource_name="Laser cutter",
        facility_name="Oodi",
        booking_url=link,
        limit=len(line),
    )

    assert messages[-1] == line
    assert all(m.strip() for m in messages)
