# sql2csv/cursors.py
"""
Cursor wrapper over a DB-API 2.0 cursor providing the forward-only,
scan-into-buffers interface the export pipeline consumes.
All other attribute access is delegated to the underlying cursor in _cursor.
"""

import datetime as dt
import decimal
import logging
import sys
import uuid
from collections import namedtuple
from typing import Any, List, Optional

from .defaults import settings
from .utils import read_query_file, to_string

logger = logging.getLogger(__name__)
__all__ = ['Cursor', 'ColumnType', 'resolve_type_code']

ColumnType = namedtuple('ColumnType', 'name type_name scan_type')

# Type codes reported as Python types (pyodbc and friends)
PYTHON_TYPE_NAMES = {
    str: 'VARCHAR',
    int: 'INT',
    float: 'FLOAT',
    bool: 'BIT',
    decimal.Decimal: 'DECIMAL',
    dt.datetime: 'DATETIME',
    dt.date: 'DATE',
    dt.time: 'TIME',
    dt.timedelta: 'INTERVAL',
    uuid.UUID: 'UNIQUEIDENTIFIER',
    bytes: 'BINARY',
    bytearray: 'BINARY',
    memoryview: 'BINARY',
}

# PEP 249 type objects, checked in this order, with the Python type they scan into
DBAPI_TYPE_OBJECTS = (
    ('BINARY', 'bytes'),
    ('STRING', 'str'),
    ('NUMBER', ''),
    ('DATETIME', 'datetime'),
    ('ROWID', ''),
)


def _driver_module(connection) -> Optional[Any]:
    """Best guess at the DB-API module a raw connection object came from."""
    package = type(connection).__module__.split('.')[0].lstrip('_')
    return sys.modules.get(package)


def resolve_type_code(type_code: Any, interface: Any = None) -> tuple:
    """
    Translate a cursor.description type code into (type_name, scan_type).

    Args:
        type_code: Second item of a cursor.description entry
        interface: DB-API module of the driver, used for its type objects

    Returns:
        Tuple of (database type name, Python scan type name), either may be ''

    Example:
        >>> resolve_type_code(bytes)
        ('BINARY', 'bytes')
        >>> resolve_type_code('varchar')
        ('VARCHAR', '')
    """
    if type_code is None:
        return '', ''
    if isinstance(type_code, type):
        return PYTHON_TYPE_NAMES.get(type_code, type_code.__name__.upper()), type_code.__name__
    if isinstance(type_code, str):
        return type_code.upper(), ''
    if interface is not None:
        for name, scan_type in DBAPI_TYPE_OBJECTS:
            type_object = getattr(interface, name, None)
            if type_object is None:
                continue
            try:
                if type_code == type_object:
                    return name, scan_type
            except Exception:
                continue
    return str(type_code).upper(), ''


class Cursor:
    """
    Forward-only cursor for streaming exports.

    Wraps a database-specific cursor and adds the three operations the export
    pipeline needs:

    * ``column_types()`` - ordered (name, type_name, scan_type) for the current result set
    * ``next()`` - advance one row, False once the result set is exhausted
    * ``scan(buffers)`` - overwrite caller-owned bytearrays with the current row's cells

    Attributes
    ----------
    connection : Database or DB-API connection
        The connection this cursor belongs to
    interface
        DB-API module of the driver (sqlite3, pymssql, pyodbc...)
    null_string : str
        Text written for NULL cells. Defaults to settings['null_string_csv']

    Note
    ----
    Cursors delegate attribute access to the underlying database-specific cursor,
    so all native cursor functionality (fetchone, description, arraysize...) is available.

    Example
    -------
    ::

        cursor = db.cursor()
        cursor.execute("SELECT id, name FROM posts")
        buffers = [bytearray() for _ in cursor.column_types()]
        while cursor.next():
            cursor.scan(buffers)
    """
    # Attributes that live on this class and are not delegated to the underlying cursor
    _local_attrs = [
        'connection', 'interface', 'debug', 'null_string', '_null_bytes',
        '_cursor', '_row', '_statement'
    ]

    def __init__(self,
                 connection,
                 debug: Optional[bool] = False,
                 null_string: Optional[str] = None,
                 **kwargs):
        """
        Initialize a cursor.

        Parameters
        ----------
        connection : Database or DB-API connection
            Database connection object
        debug : bool, default False
            Log queries at DEBUG level
        null_string : str, optional
            Text for NULL cells
        **kwargs
            Additional arguments passed to the underlying database cursor
        """
        self.connection = connection
        self.debug = debug
        if null_string is None:
            null_string = settings.get('null_string_csv', '')
        self.null_string = null_string
        self._null_bytes = null_string.encode('utf-8')
        self._row = None
        self._statement = None
        try:
            if hasattr(self.connection, '_connection'):
                self._cursor = self.connection._connection.cursor(**kwargs)
            else:
                self._cursor = self.connection.cursor(**kwargs)
        except Exception as e:
            raise TypeError(f'First argument must be a database connection object: {e}')

        interface = getattr(self.connection, 'interface', None)
        self.interface = interface if interface is not None else _driver_module(self.connection)

    def __getattr__(self, key: str) -> Any:
        """Delegate attribute access to underlying cursor."""
        if key == 'statement' and not hasattr(self._cursor, 'statement'):
            return self._statement
        return getattr(self._cursor, key)

    def __setattr__(self, key: str, value: Any) -> None:
        """Set attributes on this cursor or delegate to underlying cursor."""
        if key in self._local_attrs:
            self.__dict__[key] = value
        else:
            setattr(self._cursor, key, value)

    def __dir__(self) -> List[str]:
        """Return available attributes."""
        return list(set(
            dir(self._cursor) +
            dir(self.__class__) +
            self._local_attrs
        ))

    def execute(self, query: str, bind_vars: tuple = ()) -> None:
        """Execute a database query."""
        if self.debug:
            logger.debug(f'Query:\n{query}')
            if bind_vars:
                logger.debug(f'Bind vars:\n{bind_vars}')
        self._row = None
        self._statement = query
        # some adapters return a cursor instead of the Database API specified None
        if bind_vars:
            _ = self._cursor.execute(query, bind_vars)
        else:
            _ = self._cursor.execute(query)

    def execute_file(self, filename: str, bind_vars: tuple = (), encoding: str = 'utf-8-sig') -> None:
        """
        Execute a SQL query read from a file.

        Example:
            cursor.execute_file('queries/posts.sql')
        """
        try:
            query = read_query_file(filename, encoding=encoding)
        except OSError:
            logger.error(f"Error reading SQL file: {filename}")
            raise
        self.execute(query, bind_vars)

    def column_types(self) -> List[ColumnType]:
        """
        Column metadata for the current result set, in ordinal order.

        Raises:
            Exception: If no query has been run or it produced no result set
        """
        description = self._cursor.description
        if description is None:
            raise Exception('Query has not been run or did not return a result set.')
        columns = []
        for col in description:
            type_name, scan_type = resolve_type_code(col[1], self.interface)
            columns.append(ColumnType(col[0] or '', type_name, scan_type))
        return columns

    def next(self) -> bool:
        """Advance to the next row. Returns False when no rows remain."""
        self._row = self._cursor.fetchone()
        return self._row is not None

    def _cell_bytes(self, value: Any):
        if value is None:
            return self._null_bytes
        if hasattr(value, 'read'):
            # LOB locators
            value = value.read()
        if isinstance(value, (bytes, bytearray, memoryview)):
            # drivers without column type codes (sqlite) only reveal binary data here
            raise TypeError('binary data is not supported')
        # surrogatepass keeps lone surrogates as ill-formed bytes for the sanitizer to drop
        return to_string(value).encode('utf-8', 'surrogatepass')

    def scan(self, buffers: List[bytearray]) -> None:
        """
        Copy the current row into caller-owned buffers, one per column.

        Each buffer is overwritten in place; no buffer is created here.

        Raises:
            ValueError: If there is no current row, the field count does not
                match, or a value cannot be converted
        """
        row = self._row
        if row is None:
            raise ValueError('No current row, call next() first')
        if len(row) != len(buffers):
            raise ValueError(f'Row has {len(row)} fields but {len(buffers)} buffers were supplied')
        for i, value in enumerate(row):
            try:
                buffers[i][:] = self._cell_bytes(value)
            except Exception as e:
                raise ValueError(f'field {i + 1}: cannot convert {type(value).__name__} value: {e}') from e

    def close(self) -> None:
        """Close the underlying cursor."""
        self._row = None
        self._cursor.close()

    def __enter__(self):
        return self

    def __exit__(self, exc_type, exc_val, exc_tb):
        self.close()
