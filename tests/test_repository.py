from datetime import datetime, timedelta, timezone

import bson

from dm_server.messaging.models import Message, MessageStatus, Reaction
from dm_server.repository.message_repository import MessageRepository
from dm_server.repository.mongo_helper import ensure_indexes
from dm_server.repository.user_repository import UserRepository


BASE_TIME = datetime(2024, 1, 1, tzinfo=timezone.utc)


def _message(message_id, sender='u1', receiver='u2', minute=0):
    return Message(message_id=message_id, sender_id=sender, receiver_id=receiver, text=message_id,
                   created_at=BASE_TIME + timedelta(minutes=minute))


def test_message_round_trip_through_store(fake_db):
    repo = MessageRepository(fake_db)
    repo.create_message(_message('m1'))

    stored = repo.get_message('m1')
    assert stored.sender_id == 'u1'
    assert stored.status == MessageStatus.SENT
    assert stored.version == 1
    assert repo.get_message('missing') is None
    assert repo.get_message(None) is None


def test_conversation_limit_keeps_most_recent(fake_db):
    repo = MessageRepository(fake_db)
    for i in range(5):
        repo.create_message(_message(f'm{i}', minute=i))
    repo.create_message(_message('other', receiver='u3'))

    assert [m.message_id for m in repo.get_conversation('u1', 'u2')] == ['m0', 'm1', 'm2', 'm3', 'm4']
    assert [m.message_id for m in repo.get_conversation('u2', 'u1', limit=2)] == ['m3', 'm4']


def test_save_reactions_is_version_guarded(fake_db):
    repo = MessageRepository(fake_db)
    repo.create_message(_message('m1'))

    assert repo.save_reactions('m1', [Reaction('u2', '❤️')], expected_version=1) is True
    # A writer that read version 1 lost the race
    assert repo.save_reactions('m1', [Reaction('u1', '👍')], expected_version=1) is False

    stored = repo.get_message('m1')
    assert stored.reactions == [Reaction('u2', '❤️')]
    assert stored.version == 2


def test_save_status_is_status_guarded(fake_db):
    repo = MessageRepository(fake_db)
    repo.create_message(_message('m1'))

    assert repo.save_status('m1', MessageStatus.READ, expected_status=MessageStatus.SENT) is True
    assert repo.save_status('m1', MessageStatus.DELIVERED, expected_status=MessageStatus.SENT) is False
    assert repo.get_message('m1').status == MessageStatus.READ


def test_user_lookup_hides_password(fake_db):
    users = UserRepository(fake_db)
    user = users.get_user('u2')
    assert user['full_name'] == 'Bob'
    assert 'password' not in user
    assert users.get_user('ghost') is None
    assert users.get_user('') is None


def test_ensure_indexes(fake_db):
    ensure_indexes(fake_db)
    assert fake_db['messages'].indexes[0][1]['name'] == 'messages_pair_created_at'


def test_timestamps_read_back_in_the_form_they_were_sent():
    message = Message(message_id='m1', sender_id='u1', receiver_id='u2', text='hi')
    stored = Message.from_doc(bson.decode(bson.encode(message.to_db_doc())))

    assert stored.created_at.tzinfo is not None
    assert stored.to_dict()['createdAt'] == message.to_dict()['createdAt']
    assert stored.to_dict()['createdAt'].endswith('+00:00')
