"""
-------------
invite.server
-------------

The invite server.

Exposes the operations of an :class:`invite.storeapi.EventStore` to WebSocket clients and runs the
:class:`invite.purge.PurgeTask` alongside. Every action receives a JSON object and replies with a JSON object.
Identifiers in messages and replies are base62-encoded (see :func:`invite.ids.encode_id`).

Failed actions reply with ``{"error": <message>, "status": <code>}`` where the code follows HTTP: ``400`` for
malformed messages, ``404`` for unknown events and attendees, ``500`` if the database is inaccessible.
"""
import asyncio
import json
from logging import getLogger

from invite.comm import Server
from invite.ids import decode_id, encode_id
from invite.model import EventUpdate
from invite.purge import PURGE_PERIOD, PURGE_RETRY_PERIOD, PurgeTask
from invite.storeapi import DatabaseError, NotFound


log = getLogger(__name__)


UNTITLED_EVENT = 'Untitled Event'


class ActionError(Exception):
    """Raised by an action to reply with an error.

    :param message: ``str``, the error message.
    :param status: ``int``, HTTP-like status code.
    """
    def __init__(self, message, status=400):
        super(ActionError, self).__init__(message)
        self.status = status


def attendee_view(attendee):
    """Converts an attendee to its JSON form.
    """
    return {
        'id': encode_id(attendee.id),
        'name': attendee.name,
        'custom_html': attendee.custom_html,
        'has_accepted': attendee.has_accepted,
    }


def event_view(event):
    """Converts an event to its JSON form, as shown to the organizer.
    """
    return {
        'event': encode_id(event.id),
        'event_name': event.name or UNTITLED_EVENT,
        'created': event.created.isoformat(),
        'attendees': [attendee_view(attendee) for attendee in event.attendees],
    }


def invitation_view(event, attendee):
    """Converts an attendee and its event to the JSON form shown to the attendee.
    """
    return {
        'event_name': event.name or UNTITLED_EVENT,
        'attendee': attendee_view(attendee),
    }


def _request_id(request, key, missing_message):
    value = request.get(key)
    if not isinstance(value, str):
        raise ActionError('Missing "%s" identifier' % key, 400)
    try:
        return decode_id(value)
    except ValueError:
        raise ActionError(missing_message, 404)


class InviteServer:
    """Invite server.

    Serves the store actions over WebSocket and purges the expired events in the background.

    :param store: :class:`invite.storeapi.EventStore`, store instance.
    :param hostname: ``str``, server hostname. Default is 'localhost'.
    :param port: ``int``, server port. Default is 6433.
    :param purge_period: ``numeric``, seconds between purges of expired events.
    :param purge_retry: ``numeric``, seconds to wait before retrying a failed purge.
    """
    def __init__(self, store, hostname='localhost', port=6433, purge_period=PURGE_PERIOD,
                 purge_retry=PURGE_RETRY_PERIOD):
        self.store = store
        self.hostname = hostname
        self.port = port
        self.server = Server(host=hostname, port=port)
        self.purge_task = PurgeTask(store, period=purge_period, retry_period=purge_retry)
        self.stopped = asyncio.Event()
        self._register_actions()

    def _register_actions(self):
        self.server.on_action('/organize', self._action(self.organize))
        self.server.on_action('/manage', self._action(self.manage))
        self.server.on_action('/update', self._action(self.update))
        self.server.on_action('/add', self._action(self.add))
        self.server.on_action('/remove', self._action(self.remove))
        self.server.on_action('/attend', self._action(self.attend))
        self.server.on_action('/accept', self._action(self.accept))
        self.server.on_action('/withdraw', self._action(self.withdraw))

    def _action(self, handler):
        async def run_action(path, message, websocket, resp):
            """Parses the message, runs the handler and serializes its reply.
            """
            return json.dumps(await self.handle(handler, message))
        return run_action

    async def handle(self, handler, message):
        """Runs an action handler on a raw message.

        :param handler: ``function``, coroutine function taking the decoded request ``dict``.
        :param message: ``str``, the message as received from the client.

        Returns the reply ``dict``.
        """
        try:
            try:
                request = json.loads(message) if message else {}
            except ValueError:
                raise ActionError('Message is not valid JSON', 400)
            if not isinstance(request, dict):
                raise ActionError('Message must be a JSON object', 400)
            return await handler(request)
        except ActionError as e:
            return {'error': str(e), 'status': e.status}
        except NotFound as e:
            return {'error': str(e), 'status': 404}
        except DatabaseError as e:
            log.error('%s', e)
            return {'error': str(e), 'status': 500}

    async def organize(self, request):
        ev_id = await self.store.create_event()
        return {'event': encode_id(ev_id)}

    async def manage(self, request):
        ev_id = _request_id(request, 'event', 'Event does not exist')
        return event_view(await self.store.find_event_by_id(ev_id))

    async def update(self, request):
        ev_id = _request_id(request, 'event', 'Event does not exist')
        try:
            update = EventUpdate.from_dict(request.get('data'))
        except ValueError as e:
            raise ActionError(str(e), 400)
        await self.store.update_event(ev_id, update)
        return {'ok': True}

    async def add(self, request):
        ev_id = _request_id(request, 'event', 'Event does not exist')
        await self.store.add_attendee(ev_id)
        return {'ok': True}

    async def remove(self, request):
        at_id = _request_id(request, 'attendee', 'Attendee does not exist')
        await self.store.remove_attendee(at_id)
        return {'ok': True}

    async def attend(self, request):
        at_id = _request_id(request, 'attendee', 'Attendee does not exist')
        event, attendee = await self.store.find_event_by_attendee(at_id)
        return invitation_view(event, attendee)

    async def accept(self, request):
        at_id = _request_id(request, 'attendee', 'Attendee does not exist')
        await self.store.set_accepted(at_id, True)
        return {'ok': True}

    async def withdraw(self, request):
        at_id = _request_id(request, 'attendee', 'Attendee does not exist')
        await self.store.set_accepted(at_id, False)
        return {'ok': True}

    async def serve(self):
        """Runs the server and the purge task until :meth:`InviteServer.stop` is called.
        """
        self.purge_task.start()
        try:
            await self.server.start()
            await self.stopped.wait()
        finally:
            self.purge_task.cancel()
            await self.server.stop()
        log.info('Invite server stopped.')

    def stop(self):
        """Stop the server.

        This operation is non blocking. Must be called from the event loop running the server.
        """
        log.info('Invite server is shutting down.')
        self.stopped.set()
