"""
---------------
invite.storeapi
---------------

Event Store API
^^^^^^^^^^^^^^^

Defines the operations and exceptions of an invite Event Store.

All operations are coroutines. Each operation is atomic with respect to every other operation on the same store:
the store is read, modified and written back while holding the store's lock.
"""
from abc import abstractmethod


class EventStore:
    """EventStore is the interface for interaction with events and their attendees.

    Events and attendees are identified by unsigned 64-bit integers. Attendee identifiers are global - an attendee
    is looked up in the whole store, not within a single event.

    The operations that look up by identifier (:meth:`find_event_by_id`, :meth:`find_event_by_attendee`) raise
    :class:`NotFound` when nothing matches. The mutating operations are permissive: when the identifier matches
    nothing, they do nothing and report success.

    Every object returned by the store is a copy. Changing it does not change the store.
    """

    @abstractmethod
    async def create_event(self):
        """Creates a new, unnamed event with no attendees.

        Returns the ``int`` id of the new event.
        """
        pass

    @abstractmethod
    async def find_event_by_id(self, ev_id):
        """Looks up an event by its id.

        :param ev_id: ``int``, the event id.

        Returns :class:`invite.model.Event`. Raises :class:`EventNotFound` if there is no such event.
        """
        pass

    @abstractmethod
    async def find_event_by_attendee(self, at_id):
        """Looks up an attendee and the event it belongs to.

        :param at_id: ``int``, the attendee id.

        Returns a tuple (:class:`invite.model.Event`, :class:`invite.model.Attendee`). Raises
        :class:`AttendeeNotFound` if no event has an attendee with this id.
        """
        pass

    @abstractmethod
    async def set_accepted(self, at_id, accepted):
        """Sets the acceptance flag of every attendee with the given id.

        :param at_id: ``int``, the attendee id.
        :param accepted: ``bool``, the new value of the flag.
        """
        pass

    @abstractmethod
    async def update_event(self, ev_id, update):
        """Renames an event and updates the names and invitation bodies of its attendees.

        :param ev_id: ``int``, the event id.
        :param update: :class:`invite.model.EventUpdate`, the new values. Attendees are addressed by their
            encoded ids; entries with keys that cannot be decoded are ignored.
        """
        pass

    @abstractmethod
    async def add_attendee(self, ev_id):
        """Adds a new attendee with default name and invitation body to the event.

        :param ev_id: ``int``, the event id.
        """
        pass

    @abstractmethod
    async def remove_attendee(self, at_id):
        """Removes the attendee with the given id from every event.

        :param at_id: ``int``, the attendee id.
        """
        pass

    @abstractmethod
    async def purge_expired(self):
        """Removes the events older than the store's event lifetime.

        Returns the number of purged events.
        """
        pass


class StoreException(Exception):
    """General store error.
    """
    pass


class DatabaseError(StoreException):
    """The underlying database cannot be read or written.
    """
    pass


class NotFound(StoreException):
    """Raised when a lookup by identifier matches nothing.
    """
    pass


class EventNotFound(NotFound):
    """Raised if there is no event with the given id.
    """
    pass


class AttendeeNotFound(NotFound):
    """Raised if no event has an attendee with the given id.
    """
    pass
