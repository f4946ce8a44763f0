"""Direct-message REST API routes.

REST is the request/response half of the chat: history loading, sending
and reacting. Every mutation is also pushed to the online parties over
the live channel (see dm_server.websocket.hub).

REST API Endpoints:
- GET  /api/messages/users                  - Contacts (everyone but the caller)
- GET  /api/messages/{peer_id}              - Conversation history, oldest first
- POST /api/messages/send/{peer_id}         - Send a message
- POST /api/messages/react/{message_id}     - Add, replace, toggle or remove a reaction
- POST /api/messages/status                 - Batch delivered/read (live-channel fallback)
- POST /api/messages/{message_id}/status    - Advance a single message

Live events pushed as a side effect:
- newMessage              (send, receiver only)
- messageReactionUpdated  (react, both parties)
- messageStatusUpdated    (status, both parties)
"""
import logging

from flask import Blueprint, current_app, request

from config import config
from dm_server.messaging.events import ReactionRequest, StatusBatchRequest
from dm_server.messaging.service import MessagingService
from dm_server.utils.decorators import handle_errors, protected_route, require_auth
from dm_server.utils.helpers import respond_success

logger = logging.getLogger(__name__)

# Blueprint
chat_bp = Blueprint('chat', __name__, url_prefix='/api/messages')

SERVICE_EXTENSION = 'dm_messaging_service'


# =============================================================================
# Helper Functions
# =============================================================================

def get_messaging_service() -> MessagingService:
    return current_app.extensions[SERVICE_EXTENSION]


def _json_body() -> dict:
    data = request.get_json(silent=True)
    if data is None:
        return {}
    if not isinstance(data, dict):
        raise ValueError('Request body must be a JSON object')
    return data


def _user_id(auth_payload) -> str:
    return str(auth_payload.get('user_id'))


# =============================================================================
# Contacts & History
# =============================================================================

@chat_bp.route('/users', methods=['GET'])
@handle_errors
@require_auth
def list_contacts(auth_payload):
    """List every user except the caller, without credentials.

    Response:
        {"success": true, "users": [...], "count": 2}
    """
    users = get_messaging_service().list_contacts(_user_id(auth_payload))
    return respond_success({'users': users, 'count': len(users)})


@chat_bp.route('/<peer_id>', methods=['GET'])
@handle_errors
@require_auth
def get_conversation(peer_id, auth_payload):
    """Messages exchanged with peer_id, oldest first."""
    user_id = _user_id(auth_payload)
    logger.debug(f"GET /api/messages/{peer_id} | user_id={user_id}")
    messages = get_messaging_service().get_conversation(user_id, peer_id)
    return respond_success({
        'messages': [m.to_dict() for m in messages],
        'count': len(messages)
    })


# =============================================================================
# Mutations
# =============================================================================

@chat_bp.route('/send/<peer_id>', methods=['POST'])
@protected_route
def send_message(peer_id, auth_payload):
    """Send a message to peer_id.

    Body:
        {"text": "hi", "image": null}

    At least one of text/image is required. The created message comes back
    with status "sent"; the receiver gets it as newMessage if online.
    """
    data = _json_body()
    message = get_messaging_service().send_message(
        _user_id(auth_payload),
        peer_id,
        text=data.get('text'),
        image=data.get('image')
    )
    return respond_success({'message': message.to_dict()}, status=201)


@chat_bp.route('/react/<message_id>', methods=['POST'])
@protected_route
def react_to_message(message_id, auth_payload):
    """Apply a reaction request.

    Body:
        {"emoji": "❤️"}   add / replace / toggle off
        {"emoji": null}    remove

    Response carries the full updated message, reactions included.
    """
    req = ReactionRequest.from_payload(dict(_json_body(), messageId=message_id))
    message = get_messaging_service().react(req.message_id, _user_id(auth_payload), req.emoji)
    return respond_success({'message': message.to_dict()})


@chat_bp.route('/status', methods=['POST'])
@protected_route
def update_statuses(auth_payload):
    """Batch status advance, same semantics as messageDelivered / messageRead.

    Body:
        {"messageIds": ["..."], "status": "read"}

    Ids that are unknown, foreign or already at/after the target are skipped.
    """
    data = _json_body()
    batch = StatusBatchRequest.from_payload(data, config.CHAT_MAX_BATCH_SIZE)
    updated = get_messaging_service().update_statuses(
        _user_id(auth_payload),
        batch.message_ids,
        data.get('status')
    )
    return respond_success({
        'updated': [m.to_dict() for m in updated],
        'count': len(updated)
    })


@chat_bp.route('/<message_id>/status', methods=['POST'])
@protected_route
def update_status(message_id, auth_payload):
    """Advance one message; 409 for a backwards, repeated or non-receiver move."""
    data = _json_body()
    message = get_messaging_service().update_status(
        _user_id(auth_payload),
        message_id,
        data.get('status')
    )
    return respond_success({'message': message.to_dict()})
