"""Message status progression: sent -> delivered -> read.

Status never moves backward. `read` may be reached straight from `sent`
(reading implies delivery). Only the receiver's side ever requests a
transition; that rule is enforced by the messaging service, which knows
who is asking.
"""
from typing import NamedTuple, Union

from dm_server.messaging.models import Message, MessageStatus

_ALLOWED_FROM = {
    MessageStatus.DELIVERED: (MessageStatus.SENT,),
    MessageStatus.READ: (MessageStatus.SENT, MessageStatus.DELIVERED),
}


class StatusAdvance(NamedTuple):
    status: MessageStatus
    changed: bool


def parse_status(value) -> MessageStatus:
    """Parse a wire value into a MessageStatus (ValueError if unknown)."""
    try:
        return MessageStatus(value)
    except ValueError:
        raise ValueError(f"Unknown message status: {value!r}")


def is_transition_allowed(current: MessageStatus, target: MessageStatus) -> bool:
    return MessageStatus(current) in _ALLOWED_FROM.get(MessageStatus(target), ())


def advance(message: Union[Message, MessageStatus, str], target) -> StatusAdvance:
    """Decide the outcome of moving `message` to `target`.

    Accepts a Message or a bare status. Nothing is mutated; a rejected
    request returns the current status with changed=False.
    """
    current = MessageStatus(message.status if isinstance(message, Message) else message)
    target = parse_status(target)
    if is_transition_allowed(current, target):
        return StatusAdvance(target, True)
    return StatusAdvance(current, False)
