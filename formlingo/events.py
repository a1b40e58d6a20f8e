"""
Synchronous observer lists for tree, model and session notifications.

Handlers run immediately, in subscription order, inside ``fire()``. There is
no queue and no async dispatch.
"""

from __future__ import annotations

from typing import Any, Callable, Optional


class Event:
    """A fired notification; payload keys become attributes."""

    def __init__(self, type: str, **data: Any):
        self.type = type
        self.__dict__.update(data)

    def __repr__(self) -> str:
        fields = ", ".join(f"{k}={v!r}" for k, v in vars(self).items() if k != "type")
        return f"Event({self.type!r}, {fields})"


Handler = Callable[[Event], None]


class Eventful:
    """Mixin giving an object its own subscriber list."""

    def _subscribers(self) -> list[tuple[str, Handler, Any]]:
        subs = self.__dict__.get("_event_subscribers")
        if subs is None:
            subs = self.__dict__["_event_subscribers"] = []
        return subs

    def on(self, type: str, handler: Handler, context: Any = None) -> None:
        """Subscribe ``handler`` to events of ``type``."""
        self._subscribers().append((type, handler, context))

    def off(self, context: Any = None, type: Optional[str] = None) -> None:
        """Remove subscriptions registered with ``context`` (and ``type`` if given)."""
        subs = self._subscribers()
        subs[:] = [
            (t, h, c) for t, h, c in subs
            if not (c is context and (type is None or t == type))
        ]

    def fire(self, type: str, **data: Any) -> Event:
        event = Event(type, **data)
        # copy: a handler may subscribe or unsubscribe while we iterate
        for t, handler, _ in list(self._subscribers()):
            if t == type:
                handler(event)
        return event
