# sql2csv/writers/columns.py
"""
Column descriptors for an export, derived once from the cursor's metadata.
"""

import logging
import re
from collections import namedtuple
from typing import List

from ..exceptions import MetadataError, SchemaError

logger = logging.getLogger(__name__)
__all__ = ['ColumnCategory', 'ColumnDescriptor', 'TYPE_CATEGORIES',
           'classify_type', 'extract_columns', 'normalize_type_name']


class ColumnCategory:
    """
    Broad classification of a result column.

    - TEXT: character data, and anything not recognized
    - NUMERIC: integers, decimals, floats, booleans
    - TEMPORAL: dates, times, timestamps, intervals
    - BINARY: raw bytes; cannot be exported

    Example:
        >>> classify_type('NVARCHAR')
        'text'
        >>> classify_type('varbinary(max)')
        'binary'
    """
    TEXT = 'text'
    NUMERIC = 'numeric'
    TEMPORAL = 'temporal'
    BINARY = 'binary'
    DEFAULT = TEXT

    @classmethod
    def values(cls):
        return [getattr(cls, attr) for attr in dir(cls)
                if not attr.startswith('_') and attr.isupper() and attr != 'DEFAULT']


def _categorize(category: str, *names: str) -> dict:
    return {name: category for name in names}


# Recognized database type names. The generic PEP 249 names (STRING, NUMBER,
# DATETIME, BINARY, ROWID) cover drivers that only report type objects.
TYPE_CATEGORIES = {
    **_categorize(ColumnCategory.TEXT,
                  'CHAR', 'VARCHAR', 'NCHAR', 'NVARCHAR', 'TEXT', 'NTEXT', 'STRING',
                  'CHARACTER', 'CHARACTER VARYING', 'BPCHAR', 'NAME', 'CITEXT',
                  'CLOB', 'NCLOB', 'LONGTEXT', 'MEDIUMTEXT', 'TINYTEXT', 'VARCHAR2', 'NVARCHAR2',
                  'UNIQUEIDENTIFIER', 'UUID', 'XML', 'JSON', 'JSONB', 'SYSNAME', 'ENUM', 'SET',
                  'SQL_VARIANT', 'ROWID', 'STR'),
    **_categorize(ColumnCategory.NUMERIC,
                  'BIT', 'TINYINT', 'SMALLINT', 'INT', 'INTEGER', 'BIGINT', 'MEDIUMINT',
                  'INT2', 'INT4', 'INT8', 'SERIAL', 'BIGSERIAL',
                  'DECIMAL', 'NUMERIC', 'NUMBER', 'MONEY', 'SMALLMONEY',
                  'FLOAT', 'REAL', 'DOUBLE', 'DOUBLE PRECISION', 'FLOAT4', 'FLOAT8',
                  'BOOL', 'BOOLEAN'),
    **_categorize(ColumnCategory.TEMPORAL,
                  'DATE', 'TIME', 'DATETIME', 'DATETIME2', 'SMALLDATETIME', 'DATETIMEOFFSET',
                  'TIMESTAMP', 'TIMESTAMPTZ', 'TIMESTAMP WITH TIME ZONE',
                  'TIMESTAMP WITHOUT TIME ZONE', 'TIMETZ', 'INTERVAL', 'YEAR'),
    **_categorize(ColumnCategory.BINARY,
                  'BINARY', 'VARBINARY', 'IMAGE', 'BLOB', 'TINYBLOB', 'MEDIUMBLOB', 'LONGBLOB',
                  'BYTEA', 'RAW', 'LONG RAW', 'ROWVERSION', 'BYTES', 'BYTEARRAY', 'MEMORYVIEW'),
}

# Python scan types that can only hold raw bytes
BINARY_SCAN_TYPES = ('bytes', 'bytearray', 'memoryview')

ColumnDescriptor = namedtuple('ColumnDescriptor', 'ordinal name type_name scan_type category')
ColumnDescriptor.__doc__ = """
One output column. ``ordinal`` is 0-based and stable for the query's lifetime.
"""


def normalize_type_name(type_name: str) -> str:
    """Upper-case a type name and drop any length/precision suffix: 'varchar(50)' -> 'VARCHAR'."""
    if not type_name:
        return ''
    return re.sub(r'\s*\(.*\)\s*$', '', str(type_name)).strip().upper()


def classify_type(type_name: str, scan_type: str = '') -> str:
    """Map a database type name (and optional driver scan type) to a ColumnCategory."""
    if scan_type and scan_type.lower() in BINARY_SCAN_TYPES:
        return ColumnCategory.BINARY
    return TYPE_CATEGORIES.get(normalize_type_name(type_name), ColumnCategory.DEFAULT)


def column_name(name: str, ordinal: int) -> str:
    """Driver-reported column name, or column_<n> when the driver reports none."""
    if name is None or name == '':
        return f'column_{ordinal + 1}'
    return str(name)


def extract_columns(cursor) -> List[ColumnDescriptor]:
    """
    Build the ordered column descriptors for the cursor's current result set.

    Args:
        cursor: Object with ``column_types()`` returning (name, type_name, scan_type)
            entries in ordinal order, e.g. ``sql2csv.cursors.Cursor``

    Returns:
        List of ColumnDescriptor, one per result column

    Raises:
        MetadataError: If the column metadata cannot be read
        SchemaError: If any column holds binary data
    """
    try:
        column_types = list(cursor.column_types())
    except Exception as e:
        raise MetadataError(f"Cannot introspect result schema: {e}") from e
    if not column_types:
        raise MetadataError("Cannot introspect result schema: query returned no columns")

    columns = []
    for ordinal, (name, type_name, scan_type) in enumerate(column_types):
        type_name = normalize_type_name(type_name)
        scan_type = scan_type or ''
        columns.append(ColumnDescriptor(
            ordinal=ordinal,
            name=column_name(name, ordinal),
            type_name=type_name,
            scan_type=scan_type,
            category=classify_type(type_name, scan_type),
        ))

    for col in columns:
        logger.debug(f"  {col.type_name.lower() or '?':<10}\t{col.scan_type or '?':<10}\t{col.name}")

    binary = [col for col in columns if col.category == ColumnCategory.BINARY]
    if binary:
        col = binary[0]
        raise SchemaError(
            f"Unsupported column type: \"{col.name}\" has binary type {col.type_name or col.scan_type}",
            column=col.ordinal + 1
        )
    return columns
