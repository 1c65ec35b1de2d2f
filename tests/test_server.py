"""Test invite server actions.
"""
import asyncio
import json
import os
import tempfile
from unittest import mock

import pytest

from invite.filestore import FileEventStore
from invite.ids import IdGenerator, encode_id
from invite.model import Attendee, Event
from invite.server import InviteServer, attendee_view, event_view, invitation_view
from invite.storeapi import DatabaseError


@pytest.fixture
def server():
    with tempfile.TemporaryDirectory() as tmpdir:
        store = FileEventStore(db_path=os.path.join(tmpdir, 'events.db'), ids=IdGenerator(seed=3))
        yield InviteServer(store=store, hostname='127.0.0.1', port=1122)


def call(server, path, message):
    """Sends a message through the action dispatcher and decodes the reply.
    """
    reply = asyncio.run(server.server._process_req(path, json.dumps(message), None))
    return json.loads(reply)


def test_create_server(server):
    assert server.hostname == '127.0.0.1'
    assert server.port == 1122
    assert server.server.port == 1122
    assert sorted(server.server.actions) == ['/accept', '/add', '/attend', '/manage', '/organize', '/remove',
                                             '/update', '/withdraw']
    assert server.purge_task.period == 24 * 60 * 60
    assert server.purge_task.retry_period == 60


def test_views():
    event = Event(id=62, attendees=[Attendee(id=61, name='Alice', has_accepted=True)])

    view = event_view(event)
    assert view['event'] == '10'
    assert view['event_name'] == 'Untitled Event'
    assert view['attendees'] == [{'id': 'z', 'name': 'Alice', 'custom_html': '<html></html>',
                                  'has_accepted': True}]

    event.name = 'Party'
    invitation = invitation_view(event, event.attendees[0])
    assert invitation == {'event_name': 'Party', 'attendee': attendee_view(event.attendees[0])}


def test_organize_and_manage(server):
    organized = call(server, '/organize', {})

    assert 'event' in organized

    managed = call(server, '/manage', {'event': organized['event']})

    assert managed['event'] == organized['event']
    assert managed['event_name'] == 'Untitled Event'
    assert managed['attendees'] == []


def test_invitation_flow(server):
    ev = call(server, '/organize', {})['event']
    assert call(server, '/add', {'event': ev}) == {'ok': True}
    assert call(server, '/add', {'event': ev}) == {'ok': True}

    attendees = call(server, '/manage', {'event': ev})['attendees']
    assert len(attendees) == 2
    first, second = attendees[0]['id'], attendees[1]['id']

    reply = call(server, '/update', {'event': ev, 'data': {
        'event_name': 'Party',
        'attendee_data': {first: {'name': 'Alice', 'custom_html': '<p>Hi</p>'}},
    }})
    assert reply == {'ok': True}

    invitation = call(server, '/attend', {'attendee': first})
    assert invitation['event_name'] == 'Party'
    assert invitation['attendee']['name'] == 'Alice'
    assert invitation['attendee']['custom_html'] == '<p>Hi</p>'
    assert invitation['attendee']['has_accepted'] is False

    assert call(server, '/accept', {'attendee': first}) == {'ok': True}
    assert call(server, '/attend', {'attendee': first})['attendee']['has_accepted'] is True
    assert call(server, '/attend', {'attendee': second})['attendee']['has_accepted'] is False

    assert call(server, '/withdraw', {'attendee': first}) == {'ok': True}
    assert call(server, '/attend', {'attendee': first})['attendee']['has_accepted'] is False

    assert call(server, '/remove', {'attendee': second}) == {'ok': True}
    assert call(server, '/attend', {'attendee': second})['status'] == 404
    assert len(call(server, '/manage', {'event': ev})['attendees']) == 1


def test_unknown_event(server):
    reply = call(server, '/manage', {'event': encode_id(12345)})

    assert reply['status'] == 404
    assert reply['error'] == 'Event with given ID not found in database'


def test_undecodable_identifier(server):
    reply = call(server, '/manage', {'event': 'not-an-id!'})
    assert reply == {'error': 'Event does not exist', 'status': 404}

    reply = call(server, '/attend', {'attendee': ''})
    assert reply == {'error': 'Attendee does not exist', 'status': 404}


def test_malformed_messages(server):
    assert asyncio.run(server.handle(server.manage, 'not json'))['status'] == 400
    assert asyncio.run(server.handle(server.manage, '[1, 2]'))['status'] == 400
    assert call(server, '/manage', {})['status'] == 400
    assert call(server, '/manage', {'event': 42})['status'] == 400

    ev = call(server, '/organize', {})['event']
    reply = call(server, '/update', {'event': ev, 'data': {'event_name': None}})
    assert reply['status'] == 400

    reply = call(server, '/update', {'event': ev, 'data': {'event_name': 'Party', 'attendee_data': []}})
    assert reply['status'] == 400


def test_permissive_actions_on_unknown_ids(server):
    unknown = encode_id(987654321)

    assert call(server, '/add', {'event': unknown}) == {'ok': True}
    assert call(server, '/remove', {'attendee': unknown}) == {'ok': True}
    assert call(server, '/accept', {'attendee': unknown}) == {'ok': True}
    assert call(server, '/update', {'event': unknown, 'data': {'event_name': 'x'}}) == {'ok': True}


def test_database_error(server):
    server.store = mock.MagicMock()
    server.store.create_event = mock.AsyncMock(side_effect=DatabaseError('Internal database was inaccessible'))

    reply = call(server, '/organize', {})

    assert reply == {'error': 'Internal database was inaccessible', 'status': 500}


def test_serve_until_stopped(server):
    async def scenario():
        with mock.patch.object(server.server, 'start', mock.AsyncMock()) as m_start, \
                mock.patch.object(server.server, 'stop', mock.AsyncMock()) as m_stop:
            serving = asyncio.ensure_future(server.serve())
            await asyncio.sleep(0.05)
            assert server.purge_task.task is not None
            server.stop()
            await serving
            assert m_start.call_count == 1
            assert m_stop.call_count == 1

    asyncio.run(scenario())

    assert server.purge_task.task is None
