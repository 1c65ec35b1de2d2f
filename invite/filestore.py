"""
----------------
invite.filestore
----------------

File-backed implementation of the Event Store.

This module provides an implementation of the :class:`invite.storeapi.EventStore` that keeps the whole database in a
single file.

The store keeps no state between operations. Every operation takes the store lock, reads and decodes the whole file,
works on the decoded copy, then encodes and writes the whole database back before releasing the lock. Lookups take
the same lock, so they always see the latest written data. Every operation is therefore proportional to the size of
the database, which is fine for the small number of events a single server holds.

The file is replaced atomically: the new content is written to a temporary file in the same directory which is then
renamed over the database file.

If the database file does not exist, the store creates a new empty one. If it exists but cannot be decoded (for
example, the model changed), the store logs a warning and **replaces it with an empty database**. There is no
migration.

The store coordinates only the tasks of one process. Two processes must never use the same database file.

Example usage:

.. code-block:: python

    import asyncio
    from invite.filestore import FileEventStore

    async def main():
        store = FileEventStore('events.db')

        ev_id = await store.create_event()
        await store.add_attendee(ev_id)

        event = await store.find_event_by_id(ev_id)
        print(event.name, [at.name for at in event.attendees])

    asyncio.run(main())

would print::

    >> None ['Unnamed']

"""
import asyncio
from contextlib import asynccontextmanager
from logging import getLogger
from os import fsync, remove
from os.path import abspath, basename, dirname
from shutil import move
from tempfile import NamedTemporaryFile

from invite.ids import IdGenerator, decode_id
from invite.model import Attendee, Event, EventDB, StoreFormatError, StoreParser, StoreSerializer, utcnow
from invite.purge import EVENT_LIFETIME, retain_events
from invite.storeapi import AttendeeNotFound, DatabaseError, EventNotFound, EventStore


log = getLogger(__name__)


DEFAULT_DB_PATH = 'events.db'

INACCESSIBLE = 'Internal database was inaccessible'


class DatabaseFile:
    """The file holding the encoded database.

    Reads return the whole file. Writes replace the whole file atomically: the data is first written to a temporary
    file in the same directory, the system buffers are synced, and then the temporary file is renamed as the actual
    file. The file is never left partially written.

    :param file_path: ``str``, path to the database file.
    """
    def __init__(self, file_path):
        self.path = abspath(file_path)
        self.name = basename(self.path)
        self.dir = dirname(self.path)

    def read(self):
        """Reads the whole file.

        Returns ``bytes``. Raises ``OSError`` if the file cannot be read.
        """
        with open(self.path, 'rb') as f:
            return f.read()

    def write(self, data):
        """Replaces the content of the file.

        :param data: ``bytes``, the new content.

        Raises ``OSError`` if the file cannot be written. The original file is left untouched in that case.
        """
        tmpf = NamedTemporaryFile(dir=self.dir, prefix='.%s.' % self.name, delete=False)
        try:
            with tmpf:
                tmpf.write(data)
                tmpf.flush()
                fsync(tmpf.fileno())
            move(tmpf.name, self.path)
        except OSError:
            _remove_quietly(tmpf.name)
            raise


def _remove_quietly(path):
    try:
        remove(path)
    except OSError as e:
        log.debug('Could not remove temporary file %s: %s', path, e)


class FileEventStore(EventStore):
    """An :class:`invite.storeapi.EventStore` that keeps the whole database in one file.

    Instances can be shared between tasks running in the same event loop. All operations on one instance are
    serialized by its lock.

    :param db_path: ``str``, the path to the database file. Created if it does not exist.
    :param ids: :class:`invite.ids.IdGenerator`, source of new event and attendee ids. A new generator seeded from the
        OS entropy source is used if not given.
    :param clock: ``function``, returns the current time as timezone-aware :class:`datetime.datetime`. Defaults to
        UTC now.
    :param lifetime: :class:`datetime.timedelta`, events older than this are purged by :meth:`purge_expired`.
    """
    def __init__(self, db_path=DEFAULT_DB_PATH, ids=None, clock=None, lifetime=EVENT_LIFETIME):
        self.db_file = DatabaseFile(db_path)
        self.ids = ids or IdGenerator()
        self.clock = clock or utcnow
        self.lifetime = lifetime
        self.serializer = StoreSerializer()
        self.parser = StoreParser()
        self.lock = asyncio.Lock()

    async def _run(self, func, *args):
        loop = asyncio.get_running_loop()
        return await loop.run_in_executor(None, func, *args)

    async def load(self):
        """Reads the database from the file.

        If the file cannot be read, this is taken to be the first run: a new empty database is written and returned.
        If the file can be read but not decoded, it is overwritten with an empty database. The old data is lost.

        Must be called while holding the store lock.

        Returns :class:`invite.model.EventDB`. Raises :class:`invite.storeapi.DatabaseError` if the empty database
        cannot be written.
        """
        try:
            data = await self._run(self.db_file.read)
        except OSError as e:
            log.info('Unable to open an existing database (%s). Creating new.', e)
            return await self._recreate()

        try:
            return self.parser.parse(data)
        except StoreFormatError as e:
            log.warning('Database is corrupted (%s). Assuming database structure has changed in the source code. '
                        'Recreating.', e)
            return await self._recreate()

    async def _recreate(self):
        db = EventDB()
        data = self.serializer.serialize(db)
        try:
            await self._run(self.db_file.write, data)
        except OSError as e:
            log.error('Could not create database file %s: %s', self.db_file.path, e)
            raise DatabaseError(INACCESSIBLE) from e
        return db

    async def save(self, db):
        """Writes the whole database back to the file.

        Must be called while holding the store lock.

        :param db: :class:`invite.model.EventDB`, the database to write.

        Raises :class:`invite.storeapi.DatabaseError` if the database cannot be encoded or written.
        """
        try:
            data = self.serializer.serialize(db)
        except StoreFormatError as e:
            log.error('Data could not be serialized: "%s". Should not happen.', e)
            raise DatabaseError(INACCESSIBLE) from e

        try:
            await self._run(self.db_file.write, data)
        except OSError as e:
            log.error('Failed to write back database %s: %s. Data is lost!', self.db_file.path, e)
            raise DatabaseError(INACCESSIBLE) from e

    @asynccontextmanager
    async def _session(self, write=True):
        # the database is saved only if the block completes without error
        async with self.lock:
            db = await self.load()
            yield db
            if write:
                await self.save(db)

    async def _new_id(self, taken):
        while True:
            new_id = await self.ids.next_id()
            if new_id not in taken:
                return new_id
            log.warning('Identifier %d is already in use. Drawing a new one.', new_id)

    async def create_event(self):
        async with self._session() as db:
            ev_id = await self._new_id({event.id for event in db.events})
            db.events.append(Event(id=ev_id, created=self.clock()))
        log.debug('Created event %d', ev_id)
        return ev_id

    async def find_event_by_id(self, ev_id):
        async with self._session(write=False) as db:
            event = db.find_event(ev_id)
            if event is None:
                raise EventNotFound('Event with given ID not found in database')
            return event.copy()

    async def find_event_by_attendee(self, at_id):
        async with self._session(write=False) as db:
            matches = db.attendee_index().get(at_id)
            if not matches:
                raise AttendeeNotFound('Could not find event with the given attendee ID')
            event, attendee = matches[0]
            return event.copy(), attendee.copy()

    async def set_accepted(self, at_id, accepted):
        async with self._session() as db:
            for _, attendee in db.attendee_index().get(at_id, []):
                attendee.has_accepted = accepted

    async def update_event(self, ev_id, update):
        updates = []
        for key, at_update in update.attendee_data.items():
            try:
                updates.append((decode_id(key), at_update))
            except ValueError as e:
                log.debug('Skipping update for attendee %r: %s', key, e)

        async with self._session() as db:
            for event in db.matching_events(ev_id):
                event.name = update.event_name
                for attendee in event.attendees:
                    for at_id, at_update in updates:
                        if at_id == attendee.id:
                            attendee.name = at_update.name
                            attendee.custom_html = at_update.custom_html

    async def add_attendee(self, ev_id):
        async with self._session() as db:
            taken = set(db.attendee_index())
            for event in db.matching_events(ev_id):
                at_id = await self._new_id(taken)
                taken.add(at_id)
                event.attendees.append(Attendee(id=at_id))
                log.debug('Added attendee %d to event %d', at_id, ev_id)

    async def remove_attendee(self, at_id):
        async with self._session() as db:
            for event in db.events:
                event.attendees = [attendee for attendee in event.attendees if attendee.id != at_id]
        log.debug('Removed attendee %d', at_id)

    async def purge_expired(self):
        async with self._session() as db:
            db.events, purged = retain_events(db.events, self.clock(), self.lifetime)
        return len(purged)

    async def dump(self):
        """Returns a copy of the whole database.
        """
        async with self._session(write=False) as db:
            return EventDB(events=[event.copy() for event in db.events])
