import asyncio
import json
from unittest import mock

from websockets.exceptions import ConnectionClosedOK

from invite.comm import Server


def test_on_action_chains_responses():
    server = Server(host='localhost', port=1122)

    async def shout(path, message, websocket, resp):
        return resp.upper()

    server.on_action('/echo', lambda path, message, websocket, resp: '%s:%s' % (path, message))
    server.on_action('/echo', shout)

    assert len(server.actions['/echo']) == 2
    assert asyncio.run(server._process_req('/echo', 'hello', None)) == '/ECHO:HELLO'


def test_unknown_action():
    server = Server()

    reply = json.loads(asyncio.run(server._process_req('/nothing', 'hello', None)))

    assert reply['status'] == 404


def test_failing_action():
    server = Server()

    def fail(path, message, websocket, resp):
        raise Exception('action failed')

    server.on_action('/fail', fail)

    reply = json.loads(asyncio.run(server._process_req('/fail', 'hello', None)))

    assert reply == {'error': 'action failed', 'status': 500}


class FakeConnection:

    def __init__(self, path, messages):
        self.request = mock.MagicMock()
        self.request.path = path
        self.messages = list(messages)
        self.sent = []

    def __aiter__(self):
        return self

    async def __anext__(self):
        if not self.messages:
            raise StopAsyncIteration
        message = self.messages.pop(0)
        if isinstance(message, Exception):
            raise message
        return message

    async def send(self, data):
        self.sent.append(data)


def test_client_connection_replies_per_message():
    server = Server()
    server.on_action('/echo', lambda path, message, websocket, resp: message)
    server.on_action('/silent', lambda path, message, websocket, resp: None)

    echo = FakeConnection('/echo', ['one', 'two'])
    silent = FakeConnection('/silent', ['one'])

    asyncio.run(server._on_client_connection(echo))
    asyncio.run(server._on_client_connection(silent))

    assert echo.sent == ['one', 'two']
    assert silent.sent == []
    assert server.websockets == set()


def test_client_connection_closed():
    server = Server()
    server.on_action('/echo', lambda path, message, websocket, resp: message)

    conn = FakeConnection('/echo', ['one', ConnectionClosedOK(None, None)])

    asyncio.run(server._on_client_connection(conn))

    assert conn.sent == ['one']
    assert server.websockets == set()


def test_stop_without_start():
    server = Server()

    asyncio.run(server.stop())

    assert server.server is None
