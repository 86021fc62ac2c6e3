"""
Host primitives used by the access layer's default session callbacks.

Navigator stands in for a full-page redirect: it records the surface the
application should show next and notifies listeners. EventBus is a small
local broadcast channel that UI-level code subscribes to (for example to show
a rate-limit countdown).
"""
import logging
from collections import defaultdict
from typing import Any, Callable, Dict, List, Optional

# Configure logger
logger = logging.getLogger(__name__)

RATE_LIMIT_EVENT = "api:rateLimit"

EventHandler = Callable[[Dict[str, Any]], None]
NavigationListener = Callable[[str], None]


class Navigator:
    """Tracks the current surface and redirects to new ones."""

    def __init__(self, location: str = "/"):
        self.location = location
        self.history: List[str] = [location]
        self._listeners: List[NavigationListener] = []

    def on_navigate(self, listener: NavigationListener) -> None:
        self._listeners.append(listener)

    def navigate(self, path: str) -> None:
        logger.info(f"Redirecting to {path}")
        self.location = path
        self.history.append(path)
        for listener in list(self._listeners):
            listener(path)


class EventBus:
    """
    Local publish/subscribe channel.

    Handlers run synchronously, in subscription order, on dispatch.
    """

    def __init__(self):
        self._handlers: Dict[str, List[EventHandler]] = defaultdict(list)

    def subscribe(self, event: str, handler: EventHandler) -> Callable[[], None]:
        """
        Register a handler for an event.

        Returns:
            A callable that removes the handler again
        """
        self._handlers[event].append(handler)

        def unsubscribe() -> None:
            if handler in self._handlers.get(event, []):
                self._handlers[event].remove(handler)

        return unsubscribe

    def dispatch(self, event: str, detail: Optional[Dict[str, Any]] = None) -> int:
        """
        Broadcast an event.

        Returns:
            Number of handlers the event was delivered to
        """
        handlers = list(self._handlers.get(event, []))
        logger.debug(f"Dispatching {event} to {len(handlers)} handler(s)")
        for handler in handlers:
            handler(detail or {})
        return len(handlers)
