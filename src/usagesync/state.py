import dataclasses
from typing import Any, Callable

import structlog

from usagesync.models import SyncState

logger = structlog.get_logger()

Subscriber = Callable[[SyncState], None]


class StateHolder:
    """
    StateHolder owns the published SyncState. Every update swaps in a
    new immutable snapshot and hands it to the subscribers, so readers
    never observe a half-applied change.

    It is not thread-safe: all updates must happen on the event loop
    that owns the controller.
    """

    def __init__(self, initial: "SyncState | None" = None) -> "None":
        self._state: "SyncState" = initial or SyncState()
        self._subscribers: "list[Subscriber]" = []

    @property
    def current(self) -> "SyncState":
        return self._state

    def subscribe(self, callback: "Subscriber") -> "Callable[[], None]":
        """
        registers callback for future changes and returns a function
        that removes it again.
        """
        self._subscribers.append(callback)

        def _unsubscribe() -> "None":
            if callback in self._subscribers:
                self._subscribers.remove(callback)

        return _unsubscribe

    def update(self, **changes: "Any") -> "SyncState":
        """
        applies changes and notifies subscribers if anything differs
        from the current state. Returns the resulting state.
        """
        new_state = dataclasses.replace(self._state, **changes)
        if new_state == self._state:
            return self._state

        self._state = new_state
        # iterate over a copy, callbacks may unsubscribe themselves
        for callback in list(self._subscribers):
            try:
                callback(new_state)
            except Exception:
                logger.exception("state_subscriber_error", subscriber=repr(callback))
        return new_state
