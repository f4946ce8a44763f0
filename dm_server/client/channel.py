"""Live-channel connection for chat clients.

python-socketio keeps a single handler per event, so LiveChannel installs
one relay per event and fans out to its own listener lists. That makes
`on` / `off` symmetric: each call adds or removes exactly one callback,
and a view that unsubscribes cannot leave a handler behind.
"""
import logging
import threading
from typing import Any, Callable, Dict, List, Optional

import socketio

logger = logging.getLogger(__name__)


class LiveChannel:

    def __init__(self, url: str, token: str, client: Optional[socketio.Client] = None):
        self.url = url
        self.token = token
        self.sio = client or socketio.Client(reconnection=True)
        self._listeners: Dict[str, List[Callable]] = {}
        self._lock = threading.Lock()

    @property
    def connected(self) -> bool:
        return bool(self.sio.connected)

    def connect(self):
        logger.info(f"LIVE_CHANNEL: connecting to {self.url}")
        self.sio.connect(self.url, auth={'token': self.token})

    def disconnect(self):
        self.sio.disconnect()

    def on(self, event: str, callback: Callable):
        with self._lock:
            if event not in self._listeners:
                self._listeners[event] = []
                self.sio.on(event, self._relay_for(event))
            self._listeners[event].append(callback)

    def off(self, event: str, callback: Callable) -> bool:
        """Remove one registration of callback; False if it was not registered."""
        with self._lock:
            listeners = self._listeners.get(event, [])
            try:
                listeners.remove(callback)
            except ValueError:
                return False
            return True

    def listener_count(self, event: str) -> int:
        with self._lock:
            return len(self._listeners.get(event, []))

    def emit(self, event: str, data: Any = None, callback: Optional[Callable] = None):
        self.sio.emit(event, data, callback=callback)

    def _relay_for(self, event: str) -> Callable:
        def relay(*args):
            with self._lock:
                listeners = list(self._listeners.get(event, []))
            for listener in listeners:
                try:
                    listener(*args)
                except Exception:
                    logger.exception(f"LIVE_CHANNEL: listener for '{event}' failed")
        return relay
