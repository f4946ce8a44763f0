"""Direct messaging core.

This module provides:
- Message / Reaction models and the status enum
- The reaction reconciler and status progression rules
- Live-channel event payloads
- MessagingService, which ties them to the store and the dispatcher
"""

from dm_server.messaging.models import Message, MessageStatus, Reaction
from dm_server.messaging.reactions import reconcile, validate_emoji
from dm_server.messaging.status import StatusAdvance, advance, parse_status
from dm_server.messaging.service import MessagingService

__all__ = [
    # Models
    'Message', 'MessageStatus', 'Reaction',
    # Rules
    'reconcile', 'validate_emoji', 'StatusAdvance', 'advance', 'parse_status',
    # Service
    'MessagingService',
]
