"""Live-channel hub.

Owns the Socket.IO handlers for connection lifecycle and the inbound
chat events. One hub is built per application by the app factory and
holds references to the presence registry, the dispatcher and the
messaging service; nothing here is a module-level global.

Inbound events answer through the Socket.IO acknowledgement:
    {'success': True, ...} or {'success': False, 'code': ..., 'error': ...}
"""
import logging
import threading
from typing import Dict, Optional

from flask import request
from flask_socketio import SocketIO, emit

from dm_server.exception.ConcurrentUpdateError import ConcurrentUpdateError
from dm_server.exception.NotFoundError import NotFoundError
from dm_server.exception.UnauthorizedError import UnauthorizedError
from dm_server.messaging.events import ReactionRequest, StatusBatchRequest
from dm_server.messaging.models import MessageStatus
from dm_server.security.authentication import AuthSecurity, extract_socket_token
from dm_server.utils.helpers import utc_now
from dm_server.websocket.event_emitter import EventDispatcher
from dm_server.websocket.presence import PresenceRegistry
from config import config

logger = logging.getLogger(__name__)


def _ack_error(code: str, message: str) -> Dict[str, object]:
    return {'success': False, 'code': code, 'error': message}


class WebSocketHub:
    """Socket.IO handlers for direct chat."""

    def __init__(self, socketio: SocketIO, presence: PresenceRegistry,
                 dispatcher: EventDispatcher, service):
        self.socketio = socketio
        self.presence = presence
        self.dispatcher = dispatcher
        self.service = service
        # sid -> user_id for every authenticated socket, live or superseded
        self._socket_users: Dict[str, str] = {}
        self._lock = threading.Lock()

    def register_handlers(self):
        """Register WebSocket event handlers."""

        @self.socketio.on_error_default
        def default_error_handler(e):
            logger.error(f"WS error: {e}")

        # =====================================================================
        # Connection Events
        # =====================================================================

        @self.socketio.on('connect')
        def handle_connect(auth=None):
            """Authenticate the socket and make it the user's live session."""
            socket_id = request.sid
            token = extract_socket_token(request, auth)
            try:
                payload = AuthSecurity.decode_token(token)
            except UnauthorizedError as e:
                logger.warning(f"WS auth failed: sid={socket_id}: {e}")
                return False

            user_id = str(payload['user_id'])
            self._bind_socket(socket_id, user_id)
            self.presence.register(user_id, socket_id)
            logger.info(f"WS connected: user={user_id}, sid={socket_id}")

            emit('connected', {'userId': user_id, 'socketId': socket_id})
            self.dispatcher.broadcast_online_users()
            return True

        @self.socketio.on('disconnect')
        def handle_disconnect(reason=None):
            socket_id = request.sid
            user_id = self._release_socket(socket_id)
            if user_id is None:
                return
            logger.info(f"WS disconnected: user={user_id}, sid={socket_id}, reason={reason}")
            if self.presence.unregister(user_id, socket_id):
                self.dispatcher.broadcast_online_users()

        # =====================================================================
        # Chat Events
        # =====================================================================

        @self.socketio.on('messageDelivered')
        def handle_message_delivered(data=None):
            return self._handle_status_batch(data, MessageStatus.DELIVERED)

        @self.socketio.on('messageRead')
        def handle_message_read(data=None):
            return self._handle_status_batch(data, MessageStatus.READ)

        @self.socketio.on('reactToMessage')
        def handle_react(data=None):
            user_id = self._current_user()
            if user_id is None:
                return _ack_error('UNAUTHORIZED', 'Not authenticated')
            try:
                req = ReactionRequest.from_payload(data)
                message = self.service.react(req.message_id, user_id, req.emoji)
            except NotFoundError as e:
                return _ack_error('NOT_FOUND', str(e))
            except ConcurrentUpdateError as e:
                return _ack_error('CONFLICT', str(e))
            except ValueError as e:
                return _ack_error('INVALID_DATA', str(e))
            except Exception:
                logger.exception(f"reactToMessage failed for user={user_id}")
                return _ack_error('SERVER_ERROR', 'Server error')
            return {'success': True, 'message': message.to_dict()}

        # =====================================================================
        # Ping/Pong
        # =====================================================================

        @self.socketio.on('ping')
        def handle_ping(data=None):
            emit('pong', {'timestamp': utc_now().isoformat()})

    def _handle_status_batch(self, data, target: MessageStatus):
        user_id = self._current_user()
        if user_id is None:
            return _ack_error('UNAUTHORIZED', 'Not authenticated')
        try:
            batch = StatusBatchRequest.from_payload(data, config.CHAT_MAX_BATCH_SIZE)
            updated = self.service.update_statuses(user_id, batch.message_ids, target)
        except ValueError as e:
            return _ack_error('INVALID_DATA', str(e))
        except Exception:
            logger.exception(f"{target.value} batch failed for user={user_id}")
            return _ack_error('SERVER_ERROR', 'Server error')
        return {'success': True, 'status': target.value, 'updated': [m.message_id for m in updated]}

    def _current_user(self) -> Optional[str]:
        return self.socket_user(request.sid)

    # =========================================================================
    # sid -> user bookkeeping (handlers run on concurrent threads)
    # =========================================================================

    def _bind_socket(self, socket_id: str, user_id: str):
        with self._lock:
            self._socket_users[socket_id] = user_id

    def _release_socket(self, socket_id: str) -> Optional[str]:
        with self._lock:
            return self._socket_users.pop(socket_id, None)

    def socket_user(self, socket_id: str) -> Optional[str]:
        with self._lock:
            return self._socket_users.get(socket_id)
