"""
---------------
invite.cli.dump
---------------

Prints the content of a database file.

The file is only read. Unlike the store, this command never recreates a missing or corrupted database.
"""
import sys

from invite.filestore import DEFAULT_DB_PATH, DatabaseFile
from invite.ids import encode_id
from invite.model import StoreFormatError, StoreParser


def get_parser(subparsers):
    """Configures the subparser for the ``dump`` command.

    :param argparse.ArgumentParser subparser: subparser for commands.

    Returns :class:`argparse.ArgumentParser` configured for the ``dump`` command.
    """
    parser = subparsers.add_parser('dump', help='Print the content of a database file')

    parser.add_argument('-f', '--file', dest='db_file', default=DEFAULT_DB_PATH, help='Database file')

    return parser


def format_db(db):
    """Formats the database for printing.

    :param invite.model.EventDB db: the database.

    Returns the formatted database as ``str``, one line per event and per attendee.
    """
    lines = ['%d events' % len(db.events)]
    for event in db.events:
        lines.append('event %s [%d] %r created %s' % (encode_id(event.id), event.id, event.name,
                                                      event.created.isoformat()))
        for attendee in event.attendees:
            lines.append('  attendee %s [%d] %r accepted=%s html=%r' % (encode_id(attendee.id), attendee.id,
                                                                       attendee.name, attendee.has_accepted,
                                                                       attendee.custom_html))
    return '\n'.join(lines)


def run_dump(args):
    """Reads, decodes and prints the database file.

    Exits with status 1 if the file cannot be read or decoded.

    :param argparse.Namespace args: the parsed arguments passed to the CLI.
    """
    try:
        data = DatabaseFile(args.db_file).read()
    except OSError as e:
        print('Failed to read database file: %s' % e, file=sys.stderr)
        sys.exit(1)

    try:
        db = StoreParser().parse(data)
    except StoreFormatError as e:
        print('Failed to parse database file: %s' % e, file=sys.stderr)
        sys.exit(1)

    print(format_db(db))
