# sql2csv/__init__.py
"""
sql2csv - stream the result of a SQL query to a CSV file

- Uniform connection interface for SQL Server, PostgreSQL, MySQL and SQLite
- Forward-only export with memory bounded by the column count, not the row count
- Every cell sanitized to a single line of valid UTF-8 with quotes escaped
- YAML-based configuration with password encryption
- Tagged export results instead of process exits, so the export can be embedded

Basic usage::

    import sql2csv

    with sql2csv.connect('blog') as db:
        cursor = db.cursor()
        cursor.execute("SELECT id, name, note FROM posts")
        result = sql2csv.to_csv(cursor, 'posts.csv', include_headers=True)
        if not result:
            print(result.error)

Direct connections:
    from sql2csv.database import sqlserver

    db = sqlserver(user='exporter', password='...', database='blog', host='db01')
"""

__version__ = '1.0.0'

from .database import Database
from .config import connect, set_config_file
from .cursors import Cursor
from .exceptions import ExportError, MetadataError, SchemaError, RowScanError, WriteError, FlushError
from .logging_utils import setup_logging, cleanup_old_logs, errors_logged, ProgressReporter
from .writers import ExportConfig, ExportResult, ExportSession, QuoteStyle, sanitize, to_csv
from . import writers

__all__ = [
    'connect',
    'set_config_file',
    'Database',
    'Cursor',
    'ExportConfig',
    'ExportResult',
    'ExportSession',
    'QuoteStyle',
    'sanitize',
    'to_csv',
    'writers',
    'ExportError',
    'MetadataError',
    'SchemaError',
    'RowScanError',
    'WriteError',
    'FlushError',
    'setup_logging',
    'cleanup_old_logs',
    'errors_logged',
    'ProgressReporter',
]
