"""
Directory Kernel — Engine v1.0

Top-level orchestrator. Delegates mutation to transitions.py and
validates via invariants.py. The engine holds the one canonical
DirectoryState; every change, local or remote, replaces it in a single
assignment and is then announced to subscribers.
"""

from __future__ import annotations

from typing import Callable, List, Tuple

from .domain_types import DirectoryState, TransitionResult
from .events import BaseEvent
from .invariants import validate_invariants
from .transitions import apply_event as _transition_apply

StateListener = Callable[[DirectoryState], None]


class DirectoryEngine:
    """
    Stateful engine that wraps the pure functional transition layer.

      - dispatch() is the single entry point for local mutations
      - invariants are checked on the touched college before the swap
      - load_state() adopts a remote document without validation
    """

    def __init__(self, state: DirectoryState | None = None) -> None:
        self._state: DirectoryState = state if state is not None else DirectoryState()
        self._listeners: List[StateListener] = []

    # -- State access -------------------------------------------------------

    @property
    def state(self) -> DirectoryState:
        return self._state

    # -- Public API ---------------------------------------------------------

    def load_state(self, state: DirectoryState) -> DirectoryState:
        """Replace the whole directory, e.g. with a store notification."""
        self._state = state
        self._notify()
        return state

    def dispatch(self, event: BaseEvent) -> Tuple[DirectoryState, TransitionResult]:
        """
        Apply a single event:
          1. Delegate to transitions.apply_event (works on a deep copy)
          2. Validate invariants on the college the event touched
          3. Swap the snapshot in and notify subscribers

        No-op results leave the current snapshot in place.
        """
        new_state, result = _transition_apply(self._state, event)
        if result.noop:
            return self._state, result
        validate_invariants(new_state, [result.college_key])
        self._state = new_state
        self._notify()
        return new_state, result

    def subscribe(self, listener: StateListener) -> Callable[[], None]:
        """Register *listener*; returns a callable that removes it."""
        self._listeners.append(listener)

        def _unsubscribe() -> None:
            if listener in self._listeners:
                self._listeners.remove(listener)

        return _unsubscribe

    def _notify(self) -> None:
        for listener in list(self._listeners):
            listener(self._state)
