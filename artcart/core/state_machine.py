from __future__ import annotations
from collections import deque
from dataclasses import dataclass, replace
from datetime import datetime
from typing import Any, Callable, Deque, Dict, List, Optional
import logging

from artcart.errors import CartError

logger = logging.getLogger(__name__)

IDLE = "idle"
LOADING = "loading"

ALLOWED_TRANSITIONS: Dict[str, List[str]] = {
    IDLE: [LOADING],
    LOADING: [IDLE],
}


class InvalidTransition(CartError, ValueError):
    pass


@dataclass(frozen=True)
class EngineState:
    is_open: bool = False
    is_loading: bool = False
    last_updated: Optional[datetime] = None
    version: int = 1

    @property
    def phase(self) -> str:
        return LOADING if self.is_loading else IDLE

    def to_dict(self) -> Dict[str, Any]:
        return {
            "is_open": self.is_open,
            "is_loading": self.is_loading,
            "last_updated": self.last_updated.isoformat() if self.last_updated else None,
            "version": self.version,
        }


ChangeEvent = Dict[str, Any]
Listener = Callable[[ChangeEvent], None]


class EngineStateMachine:
    """
    Holds the transient engine state and broadcasts every change.

      - `is_loading` moves along the allowed transitions map (idle <-> loading)
      - every change bumps `version` and is kept in a short history
      - listeners receive {"old_state": ..., "new_state": ...} dicts

    Usage:
      sm = EngineStateMachine()
      unsubscribe = sm.subscribe(lambda ev: print(ev["new_state"]["is_loading"]))
      sm.update(is_loading=True)
      sm.update(is_loading=False, last_updated=datetime.now(timezone.utc))
    """

    def __init__(self, state: Optional[EngineState] = None,
                 allowed_transitions: Optional[Dict[str, List[str]]] = None,
                 history_limit: int = 50):
        self.state = state or EngineState()
        self.allowed_transitions = allowed_transitions or ALLOWED_TRANSITIONS
        self.history: Deque[ChangeEvent] = deque(maxlen=history_limit)
        self._listeners: List[Listener] = []

    def can_transition(self, to_phase: str) -> bool:
        return to_phase in self.allowed_transitions.get(self.state.phase, [])

    def subscribe(self, fn: Listener) -> Callable[[], None]:
        self._listeners.append(fn)

        def _unsubscribe() -> None:
            if fn in self._listeners:
                self._listeners.remove(fn)

        return _unsubscribe

    def _broadcast(self, event: ChangeEvent) -> None:
        for fn in list(self._listeners):
            try:
                fn(event)
            except Exception:
                # listeners must not break state progression
                logger.exception("Cart state listener %r failed", fn)

    def update(self, **changes: Any) -> EngineState:
        """
        Apply `changes` (is_open / is_loading / last_updated). Raises
        InvalidTransition when `is_loading` would move outside the transitions map.
        """
        unknown = set(changes) - {"is_open", "is_loading", "last_updated"}
        if unknown:
            raise TypeError(f"Unknown engine state fields: {sorted(unknown)}")

        old = self.state
        if "is_loading" in changes:
            to_phase = LOADING if changes["is_loading"] else IDLE
            if to_phase != old.phase and not self.can_transition(to_phase):
                raise InvalidTransition(f"Invalid transition: {old.phase} -> {to_phase}")
            if to_phase == old.phase and to_phase == LOADING:
                raise InvalidTransition("Cart operation already in progress")

        new = replace(old, version=old.version + 1, **changes)
        self.state = new
        event: ChangeEvent = {"old_state": old.to_dict(), "new_state": new.to_dict()}
        self.history.append(event)
        self._broadcast(event)
        return new
