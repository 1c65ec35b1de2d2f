"""
-----------
invite.comm
-----------

Invite communication module.

Defines the :class:`Server` that accepts WebSocket connections from clients and dispatches their messages to
actions. The action is selected by the request path of the connection: a client connected on ``/manage`` sends
messages to the actions registered for ``/manage``.

The server runs on the :mod:`asyncio` event loop.
"""

import inspect
import json
from logging import getLogger

from websockets.asyncio.server import serve
from websockets.exceptions import ConnectionClosed


log = getLogger(__name__)


class Server:
    """Listens for and manages multiple client connections.

    Each message received from a client is passed to the actions registered on the request path of the client
    connection. The result of the last action is sent back to the client as the reply to that message.

    :param host: ``str``, the hostname to bind to when listening for incoming connections.
    :param port: ``int``, the port to listen on.
    """
    def __init__(self, host='localhost', port=6433):
        self.host = host
        self.port = port
        self.actions = {}
        self.websockets = set()
        self.server = None

    def on_action(self, path, cb):
        """Register a callback to listen for messages from clients that connected to this specific entrypoint (path).

        If multiple callbacks are registered on the same action, then they are called one by one in the same order as
        registered. The response from the callbacks is chained between the subsequent calls.

        :param path: ``str``, the request path of the incoming websocket connection.
        :param cb: ``function``, the callback to be called when a message is received from the client on this path.
            The callback may be a plain function or a coroutine function and looks like this:

            .. code-block:: python

                async def callback(path, message, websocket, resp):
                    return resp

        where:

        * ``path`` ``str``, the path on which the message was received.
        * ``message`` ``str``, the message received from the websocket connection.
        * ``websocket`` the underlying websocket connection.
        * ``resp`` ``str``, the response from the previous action registered on this same path.

        The callback must return ``str`` response or ``None``. No reply is sent for ``None``.
        """
        actions = self.actions.get(path)
        if not actions:
            actions = self.actions[path] = []
        actions.append(cb)

    async def _on_client_connection(self, websocket):
        path = websocket.request.path
        self.websockets.add(websocket)
        try:
            async for message in websocket:
                resp = await self._process_req(path, message, websocket)
                if resp is not None:
                    await websocket.send(str(resp))
        except ConnectionClosed:
            log.debug('[Server:%s:%d] Closing websocket connection: %s', self.host, self.port, websocket)
        # pylint: disable=broad-except
        # the connection is dropped, the server keeps running
        except Exception as e:
            log.error('[Server:%s:%d] Closing websocket connection because of unknown error: %s',
                      self.host, self.port, websocket)
            log.exception(e)
        finally:
            self.websockets.discard(websocket)

    async def _process_req(self, path, message, websocket):
        actions = self.actions.get(path)
        if not actions:
            return json.dumps({'error': 'Unknown action %s' % path, 'status': 404})
        resp = ''
        try:
            for action in actions:
                resp = action(path, message, websocket, resp)
                if inspect.isawaitable(resp):
                    resp = await resp
        # pylint: disable=broad-except
        # Intended to be broad as it handles generic action
        except Exception as e:
            log.exception(e)
            return json.dumps({'error': str(e), 'status': 500})
        return resp

    async def start(self):
        """Starts listening for connections.

        Returns once the server is bound.
        """
        self.server = await serve(self._on_client_connection, self.host, self.port)
        log.info('Listening on %s:%d', self.host, self.port)

    async def stop(self):
        """Stops the server.

        Closes all client connections then shuts down the server.
        """
        if self.server is None:
            return
        self.server.close()
        await self.server.wait_closed()
        self.server = None
        log.debug('All done. Server stopped.')
