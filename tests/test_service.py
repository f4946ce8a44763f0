import pytest

from dm_server.exception.ConcurrentUpdateError import ConcurrentUpdateError
from dm_server.exception.InvalidTransitionError import InvalidTransitionError
from dm_server.exception.NotFoundError import NotFoundError
from dm_server.messaging.models import MessageStatus
from dm_server.messaging.service import MessagingService
from dm_server.repository.message_repository import MessageRepository
from dm_server.repository.user_repository import UserRepository
from dm_server.websocket.event_emitter import EventDispatcher
from dm_server.websocket.presence import PresenceRegistry


class RecordingSocketIO:
    def __init__(self):
        self.emitted = []

    def emit(self, event, payload=None, to=None):
        self.emitted.append((event, payload, to))

    def events_for(self, sid, name=None):
        return [p for e, p, to in self.emitted if to == sid and (name is None or e == name)]


@pytest.fixture
def presence():
    registry = PresenceRegistry()
    registry.register('u1', 'sid-a')
    registry.register('u2', 'sid-b')
    return registry


@pytest.fixture
def socketio():
    return RecordingSocketIO()


@pytest.fixture
def service(fake_db, presence, socketio):
    return MessagingService(
        MessageRepository(fake_db),
        UserRepository(fake_db),
        EventDispatcher(socketio, presence)
    )


# =============================================================================
# Sending
# =============================================================================

def test_send_reaches_connected_receiver_once(service, socketio):
    message = service.send_message('u1', 'u2', text='hi')

    received = socketio.events_for('sid-b', 'newMessage')
    assert len(received) == 1
    assert received[0]['senderId'] == 'u1'
    assert received[0]['status'] == 'sent'
    assert received[0]['messageId'] == message.message_id
    # The sender gets the message from the response, not the live channel
    assert socketio.events_for('sid-a') == []


def test_send_persists_message(service, fake_db):
    message = service.send_message('u1', 'u2', text='  hello  ')
    stored = fake_db['messages'].find_one({'_id': message.message_id})
    assert stored['text'] == 'hello'
    assert stored['status'] == 'sent'
    assert stored['reactions'] == []


def test_send_to_offline_receiver_is_not_an_error(service, presence, socketio):
    presence.unregister('u2', 'sid-b')
    service.send_message('u1', 'u2', text='are you there?')
    assert socketio.emitted == []


@pytest.mark.parametrize('text, image', [(None, None), ('   ', None), ('', '')])
def test_empty_message_is_rejected(service, text, image):
    with pytest.raises(ValueError):
        service.send_message('u1', 'u2', text=text, image=image)


def test_image_only_message(service):
    message = service.send_message('u1', 'u2', image='https://cdn.example.com/cat.png')
    assert message.text is None
    assert message.image == 'https://cdn.example.com/cat.png'


def test_text_too_long(service):
    with pytest.raises(ValueError):
        service.send_message('u1', 'u2', text='x' * 4001)


def test_send_to_unknown_receiver(service):
    with pytest.raises(NotFoundError):
        service.send_message('u1', 'nobody', text='hi')


# =============================================================================
# History & contacts
# =============================================================================

def test_conversation_is_ordered_and_scoped(service):
    first = service.send_message('u1', 'u2', text='one')
    second = service.send_message('u2', 'u1', text='two')
    service.send_message('u1', 'u3', text='elsewhere')

    history = service.get_conversation('u1', 'u2')
    assert [m.message_id for m in history] == [first.message_id, second.message_id]
    assert [m.message_id for m in service.get_conversation('u2', 'u1')] == [first.message_id, second.message_id]


def test_conversation_with_unknown_peer(service):
    with pytest.raises(NotFoundError):
        service.get_conversation('u1', 'nobody')


def test_contacts_exclude_caller_and_password(service):
    contacts = service.list_contacts('u1')
    assert sorted(c['_id'] for c in contacts) == ['u2', 'u3']
    assert all('password' not in c for c in contacts)


# =============================================================================
# Reactions
# =============================================================================

def test_reaction_scenario(service, socketio):
    message = service.send_message('u1', 'u2', text='hi')
    socketio.emitted.clear()

    updated = service.react(message.message_id, 'u2', '❤️')
    assert [r.to_dict() for r in updated.reactions] == [{'userId': 'u2', 'emoji': '❤️'}]
    assert len(socketio.events_for('sid-a', 'messageReactionUpdated')) == 1
    assert len(socketio.events_for('sid-b', 'messageReactionUpdated')) == 1
    assert socketio.events_for('sid-a')[0] == {'messageId': message.message_id, 'emoji': '❤️', 'userId': 'u2'}

    # Same emoji again toggles off
    assert service.react(message.message_id, 'u2', '❤️').reactions == []

    # A different emoji replaces rather than appends
    service.react(message.message_id, 'u2', '❤️')
    replaced = service.react(message.message_id, 'u2', '😂')
    assert [r.to_dict() for r in replaced.reactions] == [{'userId': 'u2', 'emoji': '😂'}]

    stored = service.get_conversation('u1', 'u2')[0]
    assert [r.to_dict() for r in stored.reactions] == [{'userId': 'u2', 'emoji': '😂'}]


def test_reaction_while_sender_disconnected(service, presence, socketio):
    message = service.send_message('u1', 'u2', text='hi')
    presence.unregister('u1', 'sid-a')
    socketio.emitted.clear()

    service.react(message.message_id, 'u2', '👍')

    assert socketio.events_for('sid-a') == []
    assert len(socketio.events_for('sid-b', 'messageReactionUpdated')) == 1
    # A catches up on the next history fetch
    history = service.get_conversation('u1', 'u2')
    assert [r.to_dict() for r in history[0].reactions] == [{'userId': 'u2', 'emoji': '👍'}]


def test_both_parties_keep_one_reaction_each(service):
    message = service.send_message('u1', 'u2', text='hi')
    service.react(message.message_id, 'u1', '👍')
    service.react(message.message_id, 'u2', '❤️')
    updated = service.react(message.message_id, 'u1', '🔥')
    assert sorted((r.user_id, r.emoji) for r in updated.reactions) == [('u1', '🔥'), ('u2', '❤️')]


def test_explicit_remove(service):
    message = service.send_message('u1', 'u2', text='hi')
    service.react(message.message_id, 'u2', '❤️')
    assert service.react(message.message_id, 'u2', None).reactions == []


def test_outsider_cannot_react(service):
    message = service.send_message('u1', 'u2', text='hi')
    with pytest.raises(NotFoundError):
        service.react(message.message_id, 'u3', '❤️')


def test_react_to_missing_message(service):
    with pytest.raises(NotFoundError):
        service.react('0' * 24, 'u2', '❤️')


def test_reaction_retries_after_lost_race(service, fake_db):
    message = service.send_message('u1', 'u2', text='hi')
    fake_db['messages'].fail_next_updates = 1
    updated = service.react(message.message_id, 'u2', '❤️')
    assert [r.emoji for r in updated.reactions] == ['❤️']


def test_reaction_gives_up_after_retries(service, fake_db):
    message = service.send_message('u1', 'u2', text='hi')
    fake_db['messages'].fail_next_updates = 10
    with pytest.raises(ConcurrentUpdateError):
        service.react(message.message_id, 'u2', '❤️')


# =============================================================================
# Status progression
# =============================================================================

def test_receiver_advances_status(service, socketio):
    message = service.send_message('u1', 'u2', text='hi')
    socketio.emitted.clear()

    updated = service.update_status('u2', message.message_id, 'delivered')
    assert updated.status == MessageStatus.DELIVERED
    assert socketio.events_for('sid-a', 'messageStatusUpdated') == [
        {'messageId': message.message_id, 'status': 'delivered'}
    ]
    assert len(socketio.events_for('sid-b', 'messageStatusUpdated')) == 1


def test_sender_cannot_advance_own_message(service):
    message = service.send_message('u1', 'u2', text='hi')
    with pytest.raises(InvalidTransitionError):
        service.update_status('u1', message.message_id, 'read')


def test_backwards_move_is_rejected(service):
    message = service.send_message('u1', 'u2', text='hi')
    service.update_status('u2', message.message_id, 'read')
    with pytest.raises(InvalidTransitionError):
        service.update_status('u2', message.message_id, 'delivered')
    with pytest.raises(InvalidTransitionError):
        service.update_status('u2', message.message_id, 'sent')


def test_batch_skips_invalid_items(service, socketio):
    delivered = service.send_message('u1', 'u2', text='one')
    fresh = service.send_message('u1', 'u2', text='two')
    own = service.send_message('u2', 'u1', text='three')
    service.update_status('u2', delivered.message_id, 'read')
    socketio.emitted.clear()

    updated = service.update_statuses(
        'u2',
        [delivered.message_id, 'missing-id', own.message_id, fresh.message_id],
        'read'
    )

    assert [m.message_id for m in updated] == [fresh.message_id]
    assert len(socketio.events_for('sid-a', 'messageStatusUpdated')) == 1
    statuses = {m.message_id: m.status for m in service.get_conversation('u1', 'u2')}
    assert statuses[own.message_id] == MessageStatus.SENT
    assert statuses[fresh.message_id] == MessageStatus.READ


def test_batch_with_unknown_status(service):
    with pytest.raises(ValueError):
        service.update_statuses('u2', ['m1'], 'seen')
