"""Reaction reconciliation.

A message holds at most one reaction per user. `reconcile` turns a
reaction request into the next reactions list:

- no prior reaction          -> append (user, emoji)
- same emoji again           -> remove (toggle off)
- different emoji            -> replace emoji in place
- emoji is None              -> remove whatever the user had

The server applies it before persisting and the client mirror applies it
to keep its local view in step, so both sides must call this function
rather than re-implementing the rule.
"""
from typing import Iterable, List, Optional

from dm_server.messaging.models import Reaction


def find_reaction(reactions: Iterable[Reaction], user_id: str) -> Optional[Reaction]:
    for reaction in reactions:
        if reaction.user_id == user_id:
            return reaction
    return None


def reconcile(reactions: Iterable[Reaction], user_id: str, emoji: Optional[str]) -> List[Reaction]:
    """Return a new reactions list; the input is never mutated."""
    current = list(reactions)
    existing = find_reaction(current, user_id)

    if emoji is None:
        return [r for r in current if r.user_id != user_id]

    if existing is None:
        return current + [Reaction(user_id, emoji)]

    if existing.emoji == emoji:
        return [r for r in current if r.user_id != user_id]

    return [Reaction(user_id, emoji) if r.user_id == user_id else r for r in current]


def validate_emoji(emoji, max_length: int) -> Optional[str]:
    """Boundary check for a requested emoji; None means explicit removal."""
    if emoji is None:
        return None
    if not isinstance(emoji, str):
        raise ValueError('emoji must be a string or null')
    emoji = emoji.strip()
    if not emoji:
        raise ValueError('emoji must not be empty')
    if len(emoji) > max_length:
        raise ValueError(f'emoji must be at most {max_length} characters')
    return emoji
