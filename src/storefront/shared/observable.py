"""Minimal subscription mechanism for the client-side state containers."""

from collections.abc import Callable


class Observable:
    """Base for state containers that notify views after each change.

    Listeners are called synchronously, in subscription order, with whatever
    payload the container passes to ``_notify``.
    """

    def __init__(self) -> None:
        self._listeners: list[Callable] = []

    def subscribe(self, listener: Callable) -> Callable[[], None]:
        """Register ``listener``; returns a function that unsubscribes it."""
        self._listeners.append(listener)

        def unsubscribe() -> None:
            if listener in self._listeners:
                self._listeners.remove(listener)

        return unsubscribe

    def _notify(self, *payload) -> None:
        for listener in list(self._listeners):
            listener(self, *payload)
