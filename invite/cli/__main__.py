import logging

from invite.cli.parser import get_cli_parser
from invite.cli.serve import run_serve
from invite.cli.dump import run_dump

parser = get_cli_parser('invite')

args = parser.parse_args()

if args.version:
    from invite.metadata import version
    from sys import exit
    print('invite', version)
    exit(0)

logging.basicConfig(level=logging.DEBUG if args.verbose else logging.INFO,
                    format='%(asctime)s %(levelname)s %(name)s: %(message)s')

if args.command == 'serve':
    run_serve(args)
elif args.command == 'dump':
    run_dump(args)
else:
    parser.print_help()
