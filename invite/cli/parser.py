"""
-----------------
invite.cli.parser
-----------------


Invite CLI main :mod:`argparse` parser.
"""
import argparse

from invite.cli import dump, serve


def get_parent_parser(name, desc=''):
    """Creates the main (parent) :class:`argparse.ArgumentParser` for Invite CLI.

    Defines the options shared by all commands: server host and port, verbosity level etc.

    :param str name: the name of the program.
    :param str desc: program description.

    Returns the configured :class:`argparse.ArgumentParser`.
    """
    parser = argparse.ArgumentParser(prog=name, description=desc)

    parser.add_argument('-v', '--version',
                        help='Print program version and exit', action='store_true')
    parser.add_argument('-H', '--host', help='Hostname to bind to',
                        default='localhost', dest='server_host')
    parser.add_argument('-P', '--port', help='Listen on port', default=6433,
                        type=int)

    parser.add_argument('--verbose', dest='verbose', action='store_true',
                        help='Log debug messages.')

    return parser


def get_cli_parser(name='invite'):
    """Creates the parser for the whole CLI, with a subparser for each command.

    :param str name: the name of the program.

    Returns the configured :class:`argparse.ArgumentParser`. The chosen command is stored in ``command``.
    """
    parser = get_parent_parser(name, 'Invite event invitation server')

    subparsers = parser.add_subparsers(dest='command', title='command', help='CLI commands')
    serve.get_parser(subparsers)
    dump.get_parser(subparsers)

    return parser
