# sql2csv/exceptions.py
"""
Errors raised by the export pipeline.

Every fatal condition of an export is an ``ExportError``. The ``stage``
attribute names the part of the pipeline that failed, ``row`` and ``column``
carry 1-based positions when they are known.
"""

from typing import Optional


class ExportError(Exception):
    """Base class for all export failures."""

    stage = 'export'

    def __init__(self, message: str, row: Optional[int] = None, column: Optional[int] = None):
        super().__init__(message)
        self.message = message
        self.row = row
        self.column = column

    def __str__(self) -> str:
        return f"{self.stage}: {self.message}"


class MetadataError(ExportError):
    """Column metadata could not be read from the cursor."""
    stage = 'schema introspection'


class SchemaError(ExportError):
    """A result column has a type that cannot be exported."""
    stage = 'schema'


class RowScanError(ExportError):
    """The cursor failed to advance or to fill the cell buffers."""
    stage = 'row'


class WriteError(ExportError):
    """Bytes could not be written to the output."""
    stage = 'write'


class FlushError(ExportError):
    """The final flush of the output buffer failed."""
    stage = 'flush'
