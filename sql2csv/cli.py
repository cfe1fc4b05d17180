# sql2csv/cli.py

import argparse
import logging
import sys
from typing import List, Optional

from . import config
from .database import Database, get_supported_db_types
from .defaults import settings
from .logging_utils import ProgressReporter, setup_logging
from .utils import mask_password, read_query_file
from .writers import ExportConfig, ExportSession, QuoteStyle, open_output

logger = logging.getLogger(__name__)

COMMANDS = ('export', 'generate-key', 'store-key', 'encrypt-password')

EXIT_OK = 0
EXIT_FAILURE = 1


def _add_export_arguments(parser: argparse.ArgumentParser) -> None:
    conn = parser.add_argument_group('connection')
    conn.add_argument('-s', '--server', help='Database server host')
    conn.add_argument('-u', '--username', help='Database user')
    conn.add_argument('-p', '--password', help='Database password')
    conn.add_argument('-d', '--database', help='Database name (file path for sqlite)')
    conn.add_argument('--port', type=int, help='Server port (default: 1433 for sqlserver)')
    conn.add_argument('--type', dest='db_type', choices=sorted(get_supported_db_types()),
                      help=f"Database type (default: {settings.get('default_db_type', 'sqlserver')})")
    conn.add_argument('--driver', help='Driver module to use, e.g. pymssql or pyodbc')
    conn.add_argument('-c', '--connection', help='Named connection from the config file')
    conn.add_argument('--config', help='Config file path')

    source = parser.add_mutually_exclusive_group()
    source.add_argument('-q', '--query', help='SQL query to export')
    source.add_argument('-i', '--input', help='File containing the SQL query to export')

    out = parser.add_argument_group('output')
    out.add_argument('-o', '--output', help='CSV file to write (created or truncated)')
    out.add_argument('--delimiter', help="Field delimiter (default: ',')")
    out.add_argument('--lf', action='store_true', help='End lines with LF instead of CRLF')
    out.add_argument('--headers', action='store_true', default=None,
                     help='Write the column names as the first line')
    out.add_argument('--quoting', choices=QuoteStyle.values(),
                     help="Quote every field ('all', default) or leave numeric columns bare")

    parser.add_argument('--validate', action='store_true',
                        help='Compile the query without running it before the export')
    parser.add_argument('-v', '--verbose', action='store_true',
                        help='Show arguments, columns and live progress')


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(prog='sql2csv',
                                     description='Export the result of a SQL query to a CSV file')
    subparsers = parser.add_subparsers(dest='command', required=True)

    # export
    export_parser = subparsers.add_parser('export', help='Run a query and write the rows as CSV (default)')
    _add_export_arguments(export_parser)

    # generate-key
    subparsers.add_parser('generate-key', help='Generate encryption key')

    # store-key
    key_parser = subparsers.add_parser('store-key',
                                       help='Store encryption key in system keyring (generate if not provided)')
    key_parser.add_argument('key', nargs='?', default=None,
                            help='Encryption key to store. If omitted, a new key is generated and stored.')
    key_parser.add_argument('--force', action='store_true',
                            help='Overwrite existing encryption key in system keyring')

    # encrypt-password
    pwd_parser = subparsers.add_parser('encrypt-password', help='Encrypt a password')
    pwd_parser.add_argument('password', nargs='?', help='Password to encrypt')
    pwd_parser.add_argument('--key', help='Encryption key (default: environment or keyring)')

    return parser


def _default_command(argv: List[str]) -> List[str]:
    """Treat `sql2csv -q ... -o ...` as `sql2csv export -q ... -o ...`."""
    if not argv or argv[0] in COMMANDS or argv[0] in ('-h', '--help'):
        return argv
    return ['export'] + argv


def _log_arguments(args: argparse.Namespace) -> None:
    shown = dict(vars(args))
    if shown.get('password'):
        shown['password'] = mask_password(shown['password'])
    for key, val in shown.items():
        if val is not None:
            logger.debug(f"  {key:<12} {val}")


def _connect(args: argparse.Namespace) -> Database:
    if args.connection:
        return config.connect(args.connection, password=args.password)
    db_type = args.db_type or settings.get('default_db_type', 'sqlserver')
    return Database.create(db_type, driver=args.driver, host=args.server, user=args.username,
                           password=args.password, database=args.database, port=args.port)


def _log_dir() -> str:
    """Log files are written only when the config file names a directory."""
    file_settings = config._get_manager().config.get('settings') or {}
    return (file_settings.get('logging') or {}).get('directory', '')


def export(args: argparse.Namespace, parser: argparse.ArgumentParser) -> int:
    """Run one export from parsed arguments. Returns the process exit status."""
    if not args.query and not args.input:
        parser.error('one of the arguments -q/--query -i/--input is required')
    if not args.output:
        parser.error('the following arguments are required: -o/--output')
    if not args.connection and not args.database:
        parser.error('either -c/--connection or -d/--database is required')

    if args.config:
        config.set_config_file(args.config)
    setup_logging('sql2csv', log_dir=_log_dir(), level='DEBUG' if args.verbose else None)
    if args.verbose:
        _log_arguments(args)

    try:
        export_config = ExportConfig(delimiter=args.delimiter, eol='lf' if args.lf else None,
                                     include_headers=args.headers, quoting=args.quoting)
    except ValueError as e:
        parser.error(str(e))

    if args.input:
        try:
            query = read_query_file(args.input)
        except OSError as e:
            logger.error(f"Error reading query file {args.input}: {e}")
            return EXIT_FAILURE
    else:
        query = args.query
    if not query.strip():
        logger.error("Query is empty")
        return EXIT_FAILURE

    try:
        db = _connect(args)
    except Exception as e:
        logger.error(f"Error connecting to database: {e}")
        return EXIT_FAILURE

    with db:
        try:
            db.ping()
        except Exception as e:
            logger.error(f"Error connecting to database: {e}")
            return EXIT_FAILURE

        if args.validate:
            try:
                if not db.validate_query(query):
                    logger.warning(f"Query validation is not available for {db.server_type}, skipped")
            except Exception as e:
                logger.error(f"Query is not valid: {e}")
                return EXIT_FAILURE

        cursor = db.cursor(debug=args.verbose)
        try:
            cursor.execute(query)
        except Exception as e:
            logger.error(f"Error executing query: {e}")
            cursor.close()
            return EXIT_FAILURE

        try:
            fp = open_output(args.output)
        except OSError as e:
            logger.error(f"Error opening output file {args.output}: {e}")
            cursor.close()
            return EXIT_FAILURE

        progress = ProgressReporter() if args.verbose else None
        with fp, ExportSession(cursor, fp, export_config, progress=progress) as session:
            result = session.run()

    if not result.ok:
        return EXIT_FAILURE
    if result.flush_error is not None:
        return EXIT_FAILURE
    return EXIT_OK


def main(argv: Optional[List[str]] = None) -> int:
    parser = build_parser()
    args = parser.parse_args(_default_command(list(sys.argv[1:] if argv is None else argv)))

    try:
        if args.command == 'export':
            return export(args, parser)
        elif args.command == 'generate-key':
            config.generate_encryption_key()
        elif args.command == 'store-key':
            config.store_key(args.key, force=args.force)
        elif args.command == 'encrypt-password':
            config.encrypt_password(args.password, encryption_key=args.key)
    except (ValueError, OSError) as e:
        print(f"Error: {e}", file=sys.stderr)
        return EXIT_FAILURE
    return EXIT_OK


if __name__ == '__main__':
    sys.exit(main())
