from __future__ import annotations

import logging
import threading
from typing import Any, Callable, List

_logger = logging.getLogger(__name__)

Handler = Callable[..., Any]


class Signal:
    """
    Registry of callbacks for one kind of notification.

    Handlers run synchronously on whichever thread calls emit(). A LinkManager
    emits data_received from its reader thread and everything else from the
    caller's thread, so handlers that touch UI state must marshal to their own
    thread themselves.

    A handler that raises is logged and skipped; the remaining handlers still
    run and the exception never reaches the producer.
    """

    def __init__(self, name: str) -> None:
        self.name = name
        self._handlers: List[Handler] = []
        self._lock = threading.Lock()

    def connect(self, handler: Handler) -> Handler:
        """
        Subscribe a handler. Returns it unchanged so this works as a decorator.
        Connecting the same handler twice delivers each notification twice.
        """
        with self._lock:
            self._handlers.append(handler)
        return handler

    def disconnect(self, handler: Handler) -> bool:
        """
        Remove one subscription of handler.
        Returns:
            bool: False if the handler was not connected
        """
        with self._lock:
            try:
                self._handlers.remove(handler)
            except ValueError:
                return False
        return True

    def emit(self, *args: Any) -> None:
        with self._lock:
            handlers = list(self._handlers)
        for handler in handlers:
            try:
                handler(*args)
            except Exception:
                _logger.exception("%s handler %r failed", self.name, handler)

    def __len__(self) -> int:
        with self._lock:
            return len(self._handlers)

    def __repr__(self) -> str:
        return f"Signal({self.name!r}, handlers={len(self)})"
