from __future__ import annotations

from dataclasses import dataclass
from typing import AbstractSet, Iterable

from cutterbot.domain import NotificationEvent, Slot


@dataclass(frozen=True)
class AvailabilityDiff:
    """Transition between the stored availability set and the latest fetch.

    ``next_state`` is the set of currently free identities: the stored set is
    replaced with it wholesale, never patched, so slots that silently fell off
    the horizon are dropped as well.
    """

    new_available: tuple[Slot, ...]
    still_available: frozenset[str]
    newly_unavailable: frozenset[str]
    next_state: frozenset[str]

    def events(self) -> list[NotificationEvent]:
        return [NotificationEvent.from_slot(s) for s in self.new_available]


def compute_diff(previous: AbstractSet[str], current_slots: Iterable[Slot]) -> AvailabilityDiff:
    """Pure function of its inputs; neither argument is mutated.

    With an empty ``previous`` (first run) every free slot counts as new.
    """
    previous = frozenset(previous)

    current_free: dict[str, Slot] = {}
    for slot in current_slots:
        if slot.is_free:
            current_free[slot.identity] = slot

    free_ids = frozenset(current_free)

    new_available = tuple(
        sorted(
            (slot for identity, slot in current_free.items() if identity not in previous),
            key=lambda s: (s.start, s.end, s.identity),
        )
    )

    return AvailabilityDiff(
        new_available=new_available,
        still_available=free_ids & previous,
        newly_unavailable=previous - free_ids,
        next_state=free_ids,
    )
