"""
----------
invite.ids
----------

Identifiers for events and attendees.

Identifiers are random unsigned 64-bit integers drawn from :class:`IdGenerator`. Outside of the store they travel
as short URL-safe base62 strings, see :func:`encode_id` and :func:`decode_id`.
"""
import asyncio
import random

import base62

from invite.model import MAX_ID


class IdGenerator:
    """Shared source of random 64-bit identifiers.

    The generator owns its own lock, so drawing an identifier never waits on the store lock.

    The generator does not detect collisions. Uniqueness is only probable; the store checks the drawn id against the
    ids it already holds.

    :param seed: optional seed for the pseudo-random source. If not given, the source is seeded from the operating
        system's entropy source.
    """
    def __init__(self, seed=None):
        self.rng = random.Random(seed)
        self.lock = asyncio.Lock()

    async def next_id(self):
        """Draws the next identifier.

        Returns ``int`` in the range [0, 2^64).
        """
        async with self.lock:
            return self.rng.getrandbits(64)


def encode_id(value):
    """Encodes an identifier as a base62 string.

    :param value: ``int``, the identifier.

    Returns ``str``.
    """
    return base62.encode(value)


def decode_id(encoded):
    """Decodes a base62 identifier.

    :param encoded: ``str``, the encoded identifier.

    Returns the ``int`` identifier. Raises ``ValueError`` if the string is empty, contains characters outside of the
    base62 alphabet or does not fit in 64 bits. Oversized identifiers are rejected, not truncated to their low 64
    bits, so no identifier matches an event or attendee other than the one it encodes.
    """
    if not encoded:
        raise ValueError('empty identifier')
    try:
        value = base62.decode(encoded)
    except (TypeError, ValueError) as e:
        raise ValueError('invalid identifier %r: %s' % (encoded, e)) from e
    if value > MAX_ID:
        raise ValueError('identifier %r out of range' % encoded)
    return value
