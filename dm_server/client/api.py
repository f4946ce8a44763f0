"""HTTP client for the /api/messages endpoints.

Usage:
    api = ChatApiClient('http://localhost:5001', token)
    contacts = api.list_contacts()
    history = api.get_conversation(peer_id)
    message = api.send_message(peer_id, text='hi')
    message = api.react(message.message_id, '❤️')

Every call raises ChatApiError when the server answers with a failure
envelope or cannot be reached.
"""
import logging
from typing import Any, Dict, List, Optional

import requests

from dm_server.exception.ChatApiError import ChatApiError
from dm_server.messaging.models import Message, MessageStatus

logger = logging.getLogger(__name__)


class ChatApiClient:

    def __init__(self, base_url: str, token: str, session: Optional[requests.Session] = None,
                 timeout: float = 10):
        self.base_url = base_url.rstrip('/')
        self.token = token
        self.timeout = timeout
        self.session = session or requests.Session()
        self.session.headers.update({'Authorization': f'Bearer {token}'})

    def _request(self, method: str, path: str, json: Optional[Dict[str, Any]] = None) -> Dict[str, Any]:
        url = f'{self.base_url}/api/messages{path}'
        try:
            response = self.session.request(method, url, json=json, timeout=self.timeout)
        except requests.RequestException as e:
            logger.warning(f"CHAT_API: {method} {path} failed: {e}")
            raise ChatApiError(f'Could not reach chat server: {e}')

        try:
            body = response.json()
        except ValueError:
            body = {}
        if not response.ok or not body.get('success'):
            error = body.get('error') or f'Request failed with status {response.status_code}'
            logger.debug(f"CHAT_API: {method} {path} -> {response.status_code}: {error}")
            raise ChatApiError(error, status=response.status_code)
        return body

    def list_contacts(self) -> List[Dict[str, Any]]:
        return self._request('GET', '/users').get('users', [])

    def get_conversation(self, peer_id: str) -> List[Message]:
        body = self._request('GET', f'/{peer_id}')
        return [Message.from_dict(m) for m in body.get('messages', [])]

    def send_message(self, peer_id: str, text: Optional[str] = None, image: Optional[str] = None) -> Message:
        body = self._request('POST', f'/send/{peer_id}', json={'text': text, 'image': image})
        return Message.from_dict(body['message'])

    def react(self, message_id: str, emoji: Optional[str]) -> Message:
        body = self._request('POST', f'/react/{message_id}', json={'emoji': emoji})
        return Message.from_dict(body['message'])

    def update_statuses(self, message_ids: List[str], status: MessageStatus) -> List[Message]:
        """REST fallback for messageDelivered / messageRead."""
        body = self._request('POST', '/status', json={
            'messageIds': list(message_ids),
            'status': MessageStatus(status).value
        })
        return [Message.from_dict(m) for m in body.get('updated', [])]
