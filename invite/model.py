"""
------------
invite.model
------------

In-memory model of the event database and its binary encoding.

The whole database is a single :class:`EventDB` holding a list of :class:`Event` objects, each of which holds
its :class:`Attendee` list. The database is encoded as one CBOR document:

.. code-block:: python

    {
        "events": [
            {
                "id": 1234,
                "name": "Party",              # or None until the event is first updated
                "created": datetime(...),     # timezone-aware UTC
                "attendees": [
                    {"id": 5678, "name": "Alice", "custom_html": "<p>Hi</p>", "has_accepted": False},
                ],
            },
        ],
    }

The encoding carries no version number. A document that does not have this shape is rejected by
:class:`StoreParser` with :class:`StoreFormatError`.
"""
from datetime import datetime, timezone
from io import BytesIO

import cbor2


MAX_ID = 2 ** 64 - 1

DEFAULT_ATTENDEE_NAME = 'Unnamed'

DEFAULT_ATTENDEE_HTML = '<html></html>'


def utcnow():
    """Returns the current time as timezone-aware UTC :class:`datetime.datetime`.
    """
    return datetime.now(timezone.utc)


class StoreFormatError(ValueError):
    """Raised when bytes cannot be decoded into an :class:`EventDB`.
    """
    pass


class Attendee:
    """An invitee of an event.

    :param id: ``int``, unsigned 64-bit identifier, unique across the whole database.
    :param name: ``str``, display name of the attendee.
    :param custom_html: ``str``, the body used to render the personalized invitation.
    :param has_accepted: ``bool``, whether the attendee accepted the invitation.
    """
    def __init__(self, id, name=DEFAULT_ATTENDEE_NAME, custom_html=DEFAULT_ATTENDEE_HTML, has_accepted=False):
        self.id = id
        self.name = name
        self.custom_html = custom_html
        self.has_accepted = has_accepted

    def copy(self):
        return Attendee(id=self.id, name=self.name, custom_html=self.custom_html, has_accepted=self.has_accepted)

    def to_dict(self):
        return {
            'id': self.id,
            'name': self.name,
            'custom_html': self.custom_html,
            'has_accepted': self.has_accepted,
        }

    @staticmethod
    def from_dict(data):
        _check_id(data['id'])
        _check_type(data['name'], str, 'attendee name')
        _check_type(data['custom_html'], str, 'attendee custom_html')
        _check_type(data['has_accepted'], bool, 'attendee has_accepted')
        return Attendee(id=data['id'], name=data['name'], custom_html=data['custom_html'],
                        has_accepted=data['has_accepted'])

    def __eq__(self, obj):
        if not isinstance(obj, Attendee):
            return False
        return self.to_dict() == obj.to_dict()

    def __repr__(self):
        return 'Attendee<%d %r accepted=%s>' % (self.id, self.name, self.has_accepted)


class Event:
    """An invitation campaign.

    :param id: ``int``, unsigned 64-bit identifier of the event.
    :param name: ``str``, display name. ``None`` until the organizer names the event.
    :param attendees: ``list`` of :class:`Attendee`.
    :param created: :class:`datetime.datetime`, timezone-aware creation time. Defaults to now.
    """
    def __init__(self, id, name=None, attendees=None, created=None):
        self.id = id
        self.name = name
        self.attendees = attendees or []
        self.created = created or utcnow()

    def copy(self):
        """Returns a deep copy of this event, attendees included.
        """
        return Event(id=self.id, name=self.name, attendees=[at.copy() for at in self.attendees],
                     created=self.created)

    def to_dict(self):
        return {
            'id': self.id,
            'name': self.name,
            'attendees': [at.to_dict() for at in self.attendees],
            'created': self.created,
        }

    @staticmethod
    def from_dict(data):
        _check_id(data['id'])
        if data['name'] is not None:
            _check_type(data['name'], str, 'event name')
        _check_type(data['attendees'], list, 'event attendees')
        _check_type(data['created'], datetime, 'event created')
        if data['created'].tzinfo is None:
            raise StoreFormatError('event created time has no timezone')
        return Event(id=data['id'], name=data['name'],
                     attendees=[Attendee.from_dict(at) for at in data['attendees']],
                     created=data['created'])

    def __eq__(self, obj):
        if not isinstance(obj, Event):
            return False
        return (self.id == obj.id and self.name == obj.name and self.created == obj.created and
                self.attendees == obj.attendees)

    def __repr__(self):
        return 'Event<%d %r @ %s, %d attendees>' % (self.id, self.name, self.created.isoformat(),
                                                   len(self.attendees))


class EventDB:
    """The root of the database. Holds all events in insertion order.

    :param events: ``list`` of :class:`Event`.
    """
    def __init__(self, events=None):
        self.events = events or []

    def find_event(self, ev_id):
        """Returns the first :class:`Event` with the given id or ``None``.
        """
        for event in self.events:
            if event.id == ev_id:
                return event
        return None

    def matching_events(self, ev_id):
        return [event for event in self.events if event.id == ev_id]

    def attendee_index(self):
        """Builds the flat index of all attendees in the database.

        Attendee ids are global: the same lookup is valid regardless of the event that owns the attendee. Nothing
        prevents the same attendee id from being stored more than once, so each id maps to the ``list`` of
        ``(event, attendee)`` pairs holding it, in database order.

        The pairs reference the objects in this database, not copies.
        """
        index = {}
        for event in self.events:
            for attendee in event.attendees:
                index.setdefault(attendee.id, []).append((event, attendee))
        return index

    def to_dict(self):
        return {'events': [event.to_dict() for event in self.events]}

    @staticmethod
    def from_dict(data):
        _check_type(data, dict, 'database')
        _check_type(data['events'], list, 'database events')
        return EventDB(events=[Event.from_dict(ev) for ev in data['events']])

    def __eq__(self, obj):
        if not isinstance(obj, EventDB):
            return False
        return self.events == obj.events

    def __repr__(self):
        return 'EventDB<%d events>' % len(self.events)


class AttendeeUpdate:
    """New values for a single attendee.

    :param name: ``str``, the new display name.
    :param custom_html: ``str``, the new invitation body.
    """
    def __init__(self, name, custom_html):
        self.name = name
        self.custom_html = custom_html


class EventUpdate:
    """Changes to an event submitted by its organizer.

    :param event_name: ``str``, the new name of the event.
    :param attendee_data: ``dict``, maps the base62-encoded attendee id (see :func:`invite.ids.encode_id`) to an
        :class:`AttendeeUpdate`. Keys are not validated here.
    """
    def __init__(self, event_name, attendee_data=None):
        self.event_name = event_name
        self.attendee_data = attendee_data or {}

    @staticmethod
    def from_dict(data):
        """Builds an update from its JSON form:

        .. code-block:: python

            {"event_name": "Party", "attendee_data": {"4Fz1": {"name": "Alice", "custom_html": "<p>Hi</p>"}}}

        Raises ``ValueError`` if the structure or the value types do not match.
        """
        if not isinstance(data, dict):
            raise ValueError('update must be an object')
        event_name = data.get('event_name')
        if not isinstance(event_name, str):
            raise ValueError('event_name must be a string')
        attendee_data = data.get('attendee_data')
        if attendee_data is None:
            attendee_data = {}
        if not isinstance(attendee_data, dict):
            raise ValueError('attendee_data must be an object')
        updates = {}
        for key, value in attendee_data.items():
            if not isinstance(value, dict):
                raise ValueError('invalid update for attendee %s' % key)
            name, custom_html = value.get('name'), value.get('custom_html')
            if not isinstance(name, str) or not isinstance(custom_html, str):
                raise ValueError('attendee %s needs string name and custom_html' % key)
            updates[key] = AttendeeUpdate(name=name, custom_html=custom_html)
        return EventUpdate(event_name=event_name, attendee_data=updates)


def _check_id(value):
    # bool is an int subclass
    if not isinstance(value, int) or isinstance(value, bool) or not 0 <= value <= MAX_ID:
        raise StoreFormatError('invalid identifier: %r' % (value,))


def _check_type(value, expected, what):
    if not isinstance(value, expected):
        raise StoreFormatError('invalid %s: expected %s, got %s' % (what, expected.__name__,
                                                                   type(value).__name__))


class StoreSerializer:
    """Encodes an :class:`EventDB` to CBOR bytes.
    """

    def serialize(self, db):
        """Serializes the whole database.

        :param db: :class:`EventDB`, the database to encode.

        Returns the encoded ``bytes``. Raises :class:`StoreFormatError` if the database holds values that cannot be
        encoded.
        """
        try:
            return cbor2.dumps(db.to_dict())
        except cbor2.CBOREncodeError as e:
            raise StoreFormatError('database cannot be encoded: %s' % e) from e


class StoreParser:
    """Decodes CBOR bytes produced by :class:`StoreSerializer`.
    """

    def parse(self, data):
        """Parses the whole database.

        :param data: ``bytes``, the encoded database.

        Returns the decoded :class:`EventDB`. Raises :class:`StoreFormatError` if the data is not valid CBOR, holds
        anything after the encoded database or does not have the expected structure.
        """
        fp = BytesIO(data)
        try:
            decoded = cbor2.CBORDecoder(fp).decode()
        except (cbor2.CBORDecodeError, ValueError, EOFError) as e:
            raise StoreFormatError('invalid CBOR data: %s' % e) from e
        if fp.tell() != len(data):
            raise StoreFormatError('trailing data after the database (%d bytes)' % (len(data) - fp.tell()))
        try:
            return EventDB.from_dict(decoded)
        except StoreFormatError:
            raise
        except (KeyError, TypeError, AttributeError) as e:
            raise StoreFormatError('invalid database structure: %s' % e) from e
