"""
------------
invite.purge
------------

Expiry of old events.

Events live for a limited time (:data:`EVENT_LIFETIME`). The :class:`PurgeTask` runs in the background for the whole
life of the server and periodically removes the expired events from the store.
"""
import asyncio
from datetime import timedelta
from logging import getLogger

from invite.storeapi import DatabaseError


log = getLogger(__name__)


EVENT_LIFETIME = timedelta(days=90)
"""Events older than this are purged."""

PURGE_PERIOD = 24 * 60 * 60
"""Seconds between two purges."""

PURGE_RETRY_PERIOD = 60
"""Seconds to wait before retrying a failed purge."""


def retain_events(events, now, lifetime=EVENT_LIFETIME):
    """Splits the events into those still alive and those that expired.

    An event is alive while ``now - created`` is strictly less than ``lifetime``. An event created after ``now`` has
    an invalid creation time (the clock moved backwards) and is treated as expired.

    :param events: ``list`` of :class:`invite.model.Event`.
    :param now: :class:`datetime.datetime`, the current time, timezone-aware.
    :param lifetime: :class:`datetime.timedelta`, the event lifetime.

    Returns a tuple ``(kept, purged)`` of ``list`` of events, both in the original order.
    """
    kept = []
    purged = []
    for event in events:
        age = now - event.created
        if age < timedelta(0):
            log.warning('Purging event "%s" with creation time after current time',
                        event.name or '<Untitled>')
            purged.append(event)
        elif age < lifetime:
            kept.append(event)
        else:
            purged.append(event)
    return kept, purged


class PurgeTask:
    """Background task that purges expired events from the store.

    The task sleeps for ``period`` seconds, then purges the store. If the store cannot be read or written, the purge
    is retried every ``retry_period`` seconds until it succeeds, then the task goes back to sleeping for the full
    ``period``. Failures are never fatal; the task runs until cancelled with :meth:`PurgeTask.cancel`.

    The first purge happens ``period`` seconds after the task is started.

    :param store: :class:`invite.storeapi.EventStore`, the store to purge.
    :param period: ``numeric``, seconds between purges.
    :param retry_period: ``numeric``, seconds to wait before retrying a failed purge.
    """
    def __init__(self, store, period=PURGE_PERIOD, retry_period=PURGE_RETRY_PERIOD):
        self.store = store
        self.period = period
        self.retry_period = retry_period
        self.task = None

    def start(self):
        """Schedules the task on the running event loop.

        Returns the :class:`asyncio.Task`.
        """
        self.task = asyncio.ensure_future(self.run())
        return self.task

    async def run(self):
        """Runs the purge loop. Does not return unless cancelled.
        """
        while True:
            log.info('Next purge in %d secs.', self.period)
            await asyncio.sleep(self.period)
            log.info('Performing scheduled purge of expired events')
            try:
                await self.purge()
            # pylint: disable=broad-except
            # the task keeps running until cancelled
            except Exception as e:
                log.error('Scheduled purge failed: %s. Retrying in %d secs.', e, self.retry_period)
                log.exception(e)
                await asyncio.sleep(self.retry_period)

    async def purge(self):
        """Purges the store, retrying until the purge succeeds.

        Returns the number of purged events.
        """
        while True:
            try:
                purged = await self.store.purge_expired()
                log.info('Purged %d expired events', purged)
                return purged
            except DatabaseError as e:
                log.warning('Purge failed: %s. Retrying in %d secs.', e, self.retry_period)
            await asyncio.sleep(self.retry_period)

    def cancel(self):
        """Cancels the running task.
        """
        if self.task is not None:
            self.task.cancel()
            self.task = None
