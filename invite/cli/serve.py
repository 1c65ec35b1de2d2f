"""
----------------
invite.cli.serve
----------------

Invite server command line interface script.
"""
import asyncio
import signal
from datetime import timedelta
from logging import getLogger

from invite.filestore import DEFAULT_DB_PATH, FileEventStore
from invite.purge import EVENT_LIFETIME, PURGE_PERIOD, PURGE_RETRY_PERIOD
from invite.server import InviteServer


log = getLogger(__name__)


def get_parser(subparsers):
    """Configures the subparser for the ``serve`` command.

    :param argparse.ArgumentParser subparser: subparser for commands.

    Returns :class:`argparse.ArgumentParser` configured for the ``serve`` command.
    """
    parser = subparsers.add_parser('serve', help='Invite server')

    parser.add_argument('-f', '--file', dest='db_file', default=DEFAULT_DB_PATH,
                        help='Database file. Created if it does not exist.')
    parser.add_argument('--lifetime-days', dest='lifetime_days', type=int, default=EVENT_LIFETIME.days,
                        help='Purge events older than this many days.')
    parser.add_argument('--purge-period', dest='purge_period', type=float, default=PURGE_PERIOD,
                        help='Seconds between purges of expired events.')
    parser.add_argument('--purge-retry', dest='purge_retry', type=float, default=PURGE_RETRY_PERIOD,
                        help='Seconds to wait before retrying a failed purge.')

    return parser


def get_store(args):
    """Creates and configures new :class:`invite.filestore.FileEventStore` based on the arguments passed.

    :param argparse.Namespace args: arguments.
    """
    if not args.db_file:
        raise Exception('No database file specified')

    return FileEventStore(db_path=args.db_file, lifetime=timedelta(days=args.lifetime_days))


def run_serve(args):
    """Runs the invite server.

    This call blocks until the server receives SIGHUP, SIGINT or SIGTERM.

    :param argparse.Namespace args: arguments to configure the :class:`invite.server.InviteServer` instance.
    """
    store = get_store(args)
    log.info('Using database file %s', store.db_file.path)

    server = InviteServer(store=store, hostname=args.server_host, port=args.port,
                          purge_period=args.purge_period, purge_retry=args.purge_retry)

    asyncio.run(_serve(server))


async def _serve(server):
    loop = asyncio.get_running_loop()
    loop.add_signal_handler(signal.SIGHUP, server.stop)
    loop.add_signal_handler(signal.SIGINT, server.stop)
    loop.add_signal_handler(signal.SIGTERM, server.stop)
    await server.serve()
