"""WebSocket module for real-time communication.

This module provides:
- Presence registry (user -> live session)
- Event dispatcher for per-party fan-out
- The Socket.IO hub with the connection and chat handlers
"""

from dm_server.websocket.presence import PresenceRegistry
from dm_server.websocket.event_emitter import EventDispatcher
from dm_server.websocket.hub import WebSocketHub

__all__ = ['PresenceRegistry', 'EventDispatcher', 'WebSocketHub']
