"""
Observable holder for PublicState.

Components never mutate PublicState; they pass an updater
``prev -> new`` to ``update``. Listeners are only notified when the new
state differs from the old one, so updaters that return ``prev`` are free.
"""

from typing import Callable, List, Optional
import logging

from geo_core.proto.public_state import PublicState, create_initial_state

logger = logging.getLogger(__name__)

StateListener = Callable[[PublicState], None]
StateUpdater = Callable[[PublicState], PublicState]


class StateStore:
    """
    Single-owner store for the consumer-visible state.

    Usage:
        store = StateStore()
        unsubscribe = store.subscribe(lambda state: render(state))
        store.update(lambda prev: prev.with_live_signal())
        unsubscribe()
    """

    def __init__(self, initial: Optional[PublicState] = None):
        self._state = initial or create_initial_state()
        self._listeners: List[StateListener] = []

    @property
    def state(self) -> PublicState:
        """Current state (immutable)."""
        return self._state

    def update(self, updater: StateUpdater) -> bool:
        """
        Apply an updater to the current state.

        Args:
            updater: Function mapping the previous state to the new one

        Returns:
            True if the state changed (listeners were notified)
        """
        previous = self._state
        new_state = updater(previous)
        if new_state == previous:
            return False

        self._state = new_state
        self._notify(new_state)
        return True

    def subscribe(self, listener: StateListener) -> Callable[[], None]:
        """
        Register a listener called with every new state.

        Returns:
            Function that removes the listener (safe to call twice)
        """
        self._listeners.append(listener)

        def unsubscribe():
            if listener in self._listeners:
                self._listeners.remove(listener)

        return unsubscribe

    @property
    def listener_count(self) -> int:
        return len(self._listeners)

    def _notify(self, state: PublicState):
        for listener in list(self._listeners):
            try:
                listener(state)
            except Exception:
                # A failing consumer must not break the reading pipeline
                logger.exception("State listener raised; continuing")
