"""Client side of the direct-message engine.

- ChatApiClient: REST calls (requests)
- LiveChannel: Socket.IO connection with per-listener on/off
- ChatSyncStore: conversation state kept in step with the server
"""

from dm_server.client.api import ChatApiClient
from dm_server.client.channel import LiveChannel
from dm_server.client.sync import ChatSyncStore

__all__ = ['ChatApiClient', 'LiveChannel', 'ChatSyncStore']
