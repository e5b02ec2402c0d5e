import logging
from typing import Callable

logger = logging.getLogger(__name__)


class Observable:
    """Explicit subscribe/publish for state-changed events"""

    def __init__(self):
        self._listeners: list[Callable] = []

    def subscribe(self, listener: Callable) -> Callable[[], None]:
        """
        Register a listener called after every state change.

        Returns:
            Callable: Unsubscribes the listener when called
        """
        self._listeners.append(listener)

        def unsubscribe() -> None:
            if listener in self._listeners:
                self._listeners.remove(listener)

        return unsubscribe

    def _publish(self, *args) -> None:
        for listener in list(self._listeners):
            try:
                listener(*args)
            except Exception:
                # listener errors never reach the publisher
                logger.exception("Listener %r failed", listener)
