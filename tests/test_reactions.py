import pytest

from dm_server.messaging.models import Reaction
from dm_server.messaging.reactions import find_reaction, reconcile, validate_emoji


def _pairs(reactions):
    return [(r.user_id, r.emoji) for r in reactions]


def test_reconcile_appends_first_reaction():
    result = reconcile([], 'u2', '❤️')
    assert _pairs(result) == [('u2', '❤️')]


def test_reconcile_same_emoji_toggles_off():
    current = [Reaction('u2', '❤️')]
    assert reconcile(current, 'u2', '❤️') == []


def test_reconcile_different_emoji_replaces_in_place():
    current = [Reaction('u1', '👍'), Reaction('u2', '❤️'), Reaction('u3', '🔥')]
    result = reconcile(current, 'u2', '😂')
    assert _pairs(result) == [('u1', '👍'), ('u2', '😂'), ('u3', '🔥')]


def test_reconcile_none_removes_whatever_the_user_had():
    current = [Reaction('u1', '👍'), Reaction('u2', '❤️')]
    assert _pairs(reconcile(current, 'u2', None)) == [('u1', '👍')]
    # Nothing to remove is not an error
    assert _pairs(reconcile(current, 'u3', None)) == [('u1', '👍'), ('u2', '❤️')]


def test_reconcile_does_not_mutate_input():
    current = [Reaction('u2', '❤️')]
    reconcile(current, 'u2', '😂')
    reconcile(current, 'u1', '👍')
    assert _pairs(current) == [('u2', '❤️')]


def test_one_reaction_per_user_after_every_call():
    reactions = []
    calls = [
        ('u1', '👍'), ('u2', '❤️'), ('u1', '😂'), ('u3', '🔥'),
        ('u2', '❤️'), ('u2', '😮'), ('u1', None), ('u3', '🔥'), ('u1', '👍'),
    ]
    for user_id, emoji in calls:
        reactions = reconcile(reactions, user_id, emoji)
        user_ids = [r.user_id for r in reactions]
        assert len(user_ids) == len(set(user_ids))


@pytest.mark.parametrize('current', [
    [],
    [Reaction('u1', '👍')],
    [Reaction('u1', '👍'), Reaction('u2', '❤️')],
])
def test_toggle_law_when_user_had_no_reaction_or_the_same_one(current):
    for emoji in ('❤️', '👍'):
        first = reconcile(current, 'u2', emoji)
        second = reconcile(first, 'u2', emoji)
        if find_reaction(current, 'u2') is None or find_reaction(current, 'u2').emoji == emoji:
            assert sorted(_pairs(second)) == sorted(_pairs(current))


def test_second_call_after_replace_removes_the_entry():
    current = [Reaction('u2', '❤️')]
    replaced = reconcile(current, 'u2', '😂')
    assert reconcile(replaced, 'u2', '😂') == []


def test_validate_emoji():
    assert validate_emoji(None, 16) is None
    assert validate_emoji(' ❤️ ', 16) == '❤️'
    with pytest.raises(ValueError):
        validate_emoji('', 16)
    with pytest.raises(ValueError):
        validate_emoji(42, 16)
    with pytest.raises(ValueError):
        validate_emoji('x' * 17, 16)
