import argparse
import logging

from flask import Flask
from flask_cors import CORS
from flask_socketio import SocketIO

from config import config
from dm_server.messaging.service import MessagingService
from dm_server.repository.message_repository import MessageRepository
from dm_server.repository.mongo_helper import ensure_indexes, get_db
from dm_server.repository.user_repository import UserRepository
from dm_server.routes.chat import SERVICE_EXTENSION, chat_bp
from dm_server.security.authentication import AuthSecurity
from dm_server.utils.helpers import respond_success
from dm_server.websocket.event_emitter import EventDispatcher
from dm_server.websocket.hub import WebSocketHub
from dm_server.websocket.presence import PresenceRegistry

logger = logging.getLogger(__name__)


def configure_logging():
    """Apply the logging section of the config to the root logger."""
    logging.basicConfig(
        level=getattr(logging, config.LOG_LEVEL, logging.INFO),
        format=config.LOG_FORMAT,
        datefmt=config.LOG_DATE_FORMAT,
        force=True,
    )


def configure_auth():
    """Configure AuthSecurity from config (security.jwt / JWT_* env vars)."""
    AuthSecurity.configure(
        secret_key=config.JWT_SECRET,
        algorithm=config.JWT_ALGORITHM,
        access_token_expire_minutes=config.ACCESS_TOKEN_EXPIRE_MINUTES,
    )


def _cors_allowed_origins():
    origins = config.CORS_ORIGINS_LIST
    return '*' if origins == ['*'] else origins


def create_app(db=None):
    """Application factory used by server.py and tests.

    Wires the message store, presence registry, dispatcher and messaging
    service, registers the REST blueprint and the Socket.IO handlers.
    Returns (app, socketio).
    """
    configure_auth()

    app = Flask(__name__)
    CORS(app, origins=_cors_allowed_origins())

    if db is None:
        db = get_db()
        ensure_indexes(db)

    socketio = SocketIO(
        app,
        async_mode=config.SOCKET_ASYNC_MODE,
        cors_allowed_origins=_cors_allowed_origins(),
        ping_interval=config.SOCKET_PING_INTERVAL,
        ping_timeout=config.SOCKET_PING_TIMEOUT,
    )

    presence = PresenceRegistry()
    dispatcher = EventDispatcher(socketio, presence)
    service = MessagingService(MessageRepository(db), UserRepository(db), dispatcher)
    hub = WebSocketHub(socketio, presence, dispatcher, service)
    hub.register_handlers()

    app.extensions[SERVICE_EXTENSION] = service
    app.extensions['dm_presence'] = presence
    app.extensions['dm_hub'] = hub

    app.register_blueprint(chat_bp)

    @app.route('/health')
    def health():
        return respond_success({'app': config.APP_NAME, 'version': config.APP_VERSION, 'env': config.ENV})

    return app, socketio


def parse_args():
    """Parse simple CLI arguments for running the server."""
    parser = argparse.ArgumentParser(description='Run the direct-message server')
    parser.add_argument('--port', type=int, default=config.PORT, help='TCP port to bind (default: app.port or PORT env)')
    parser.add_argument('--host', default='0.0.0.0', help='Interface to bind (default: 0.0.0.0)')
    return parser.parse_args()


if __name__ == "__main__":
    args = parse_args()
    configure_logging()
    config.validate_required()
    logger.debug('Config: %s', config.to_dict())
    app, socketio = create_app()
    logger.info('Starting %s with Socket.IO on port %s', config.APP_NAME, args.port)
    socketio.run(app, host=args.host, port=args.port, debug=config.DEBUG, allow_unsafe_werkzeug=True)
