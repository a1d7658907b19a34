"""
Event log and snapshot store.

The log is an append-only causal chain: every event records the id of the
event appended just before it (unless the caller set a parent explicitly).
Each append stores a deep copy of the World as it was at that moment, keyed
by the event id, which is what makes playback and branching possible:

- ``jump_to(event_id)`` returns a copy of that snapshot; the log is untouched.
- ``branch_from(event_id)`` returns a copy of that snapshot and discards every
  later event and snapshot. This is destructive; ``copy()`` the log first if
  the old timeline must survive.

Snapshots are full copies per event. That is fine for island-sized worlds;
large worlds would want structural sharing or periodic snapshots with delta
replay instead.
"""

from __future__ import annotations

from typing import Dict, Iterator, List, Optional

from .schemas import Event, World


class UnknownEventError(KeyError):
    """Raised when an event id is not present in the log."""

    def __init__(self, event_id: str) -> None:
        self.event_id = event_id
        super().__init__(
            f"Event '{event_id}' is not in the log. It may have been discarded by a branch."
        )


class EventLog:
    """Append-only event chain with a deep World snapshot per event."""

    def __init__(self, *, id_prefix: str = "evt") -> None:
        self.id_prefix = id_prefix
        self._events: List[Event] = []
        self._index: Dict[str, int] = {}
        self._snapshots: Dict[str, World] = {}
        # Ids keep counting after a branch so discarded ids are never reused.
        self._next_number = 1

    # ------------------------------------------------------------------
    # Read access
    # ------------------------------------------------------------------

    def __len__(self) -> int:
        return len(self._events)

    def __iter__(self) -> Iterator[Event]:
        return iter(self._events)

    @property
    def events(self) -> List[Event]:
        return list(self._events)

    @property
    def last(self) -> Optional[Event]:
        return self._events[-1] if self._events else None

    def get(self, event_id: str) -> Event:
        try:
            return self._events[self._index[event_id]]
        except KeyError:
            raise UnknownEventError(event_id) from None

    def __contains__(self, event_id: object) -> bool:
        return event_id in self._index

    def events_at_tick(self, tick: int) -> List[Event]:
        return [event for event in self._events if event.tick == tick]

    # ------------------------------------------------------------------
    # Writing
    # ------------------------------------------------------------------

    def next_event_id(self) -> str:
        number = self._next_number
        self._next_number += 1
        return f"{self.id_prefix}_{number:06d}"

    def log_event(self, event: Event, world: World) -> Event:
        """Append ``event`` and snapshot ``world``.

        The parent defaults to the most recently appended event; the first
        event of an empty log has no parent.
        """
        if event.id in self._index:
            raise ValueError(f"Duplicate event id '{event.id}'")
        if event.parent_event_id is None and self._events:
            event = event.model_copy(update={"parent_event_id": self._events[-1].id})

        self._index[event.id] = len(self._events)
        self._events.append(event)
        self._snapshots[event.id] = world.model_copy(deep=True)
        return event

    # ------------------------------------------------------------------
    # Playback
    # ------------------------------------------------------------------

    def snapshot(self, event_id: str) -> World:
        """Deep copy of the World captured when ``event_id`` was logged."""
        try:
            stored = self._snapshots[event_id]
        except KeyError:
            raise UnknownEventError(event_id) from None
        return stored.model_copy(deep=True)

    def jump_to(self, event_id: str) -> World:
        return self.snapshot(event_id)

    def branch_from(self, event_id: str) -> World:
        """Restore the snapshot for ``event_id`` and drop every later event."""
        world = self.snapshot(event_id)
        cut = self._index[event_id] + 1
        for discarded in self._events[cut:]:
            self._index.pop(discarded.id, None)
            self._snapshots.pop(discarded.id, None)
        del self._events[cut:]
        return world

    def copy(self) -> "EventLog":
        """Independent copy (events are immutable; snapshots are copied)."""
        clone = EventLog(id_prefix=self.id_prefix)
        clone._events = list(self._events)
        clone._index = dict(self._index)
        clone._snapshots = {key: world.model_copy(deep=True) for key, world in self._snapshots.items()}
        clone._next_number = self._next_number
        return clone


__all__ = ["EventLog", "UnknownEventError"]
