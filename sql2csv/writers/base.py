# sql2csv/writers/base.py
"""
Value types shared by the export pipeline: configuration, run statistics,
the per-column cell arena and the tagged export result.
"""

import datetime as dt
import logging
import time
from collections import namedtuple
from typing import Iterator, List, Optional

from ..defaults import settings
from ..exceptions import ExportError

logger = logging.getLogger(__name__)


class QuoteStyle:
    """
    Field quoting modes.

    - ALL: every field is double-quoted [default]
    - NONNUMERIC: fields of numeric columns are written bare, everything else is quoted

    Example:
        >>> config = ExportConfig(quoting=QuoteStyle.NONNUMERIC)
    """
    ALL = 'all'
    NONNUMERIC = 'nonnumeric'
    DEFAULT = ALL

    @classmethod
    def values(cls):
        return [cls.ALL, cls.NONNUMERIC]


class LineEnding:
    """Record terminators. CRLF is what RFC 4180 expects."""
    CRLF = '\r\n'
    LF = '\n'
    DEFAULT = CRLF

    NAMES = {'crlf': CRLF, 'lf': LF}

    @classmethod
    def values(cls):
        return [cls.CRLF, cls.LF]

    @classmethod
    def resolve(cls, eol: str) -> str:
        """Accept 'crlf'/'lf' names as well as the literal sequences."""
        if eol is None:
            return cls.DEFAULT
        eol = cls.NAMES.get(str(eol).lower(), eol)
        if eol not in cls.values():
            raise ValueError(f"Invalid end-of-line {eol!r}. Must be one of: crlf, lf")
        return eol


_ExportConfig = namedtuple('ExportConfig', 'delimiter eol include_headers quoting')


class ExportConfig(_ExportConfig):
    """
    Read-only options for one export.

    Parameters
    ----------
    delimiter : str
        Single field separator character. Defaults to settings['delimiter'] (',')
    eol : str
        '\\r\\n' or '\\n' (or the names 'crlf' / 'lf'). Defaults to settings['eol']
    include_headers : bool
        Write a first record with the quoted column names. Defaults to settings['include_headers']
    quoting : str
        QuoteStyle.ALL or QuoteStyle.NONNUMERIC. Defaults to settings['quoting']

    Example
    -------
    ::

        config = ExportConfig(delimiter=';', eol='lf', include_headers=True)
    """
    __slots__ = ()

    def __new__(cls,
                delimiter: Optional[str] = None,
                eol: Optional[str] = None,
                include_headers: Optional[bool] = None,
                quoting: Optional[str] = None):
        if delimiter is None:
            delimiter = settings.get('delimiter', ',')
        if eol is None:
            eol = settings.get('eol', 'crlf')
        if include_headers is None:
            include_headers = settings.get('include_headers', False)
        if quoting is None:
            quoting = settings.get('quoting', QuoteStyle.DEFAULT)

        if not isinstance(delimiter, str) or len(delimiter) != 1:
            raise ValueError(f"Delimiter must be a single character, got {delimiter!r}")
        if delimiter in ('"', '\r', '\n'):
            raise ValueError(f"Delimiter cannot be a quote or line break character: {delimiter!r}")
        if quoting not in QuoteStyle.values():
            raise ValueError(f"Invalid quoting '{quoting}'. Must be one of: {QuoteStyle.values()}")

        return super().__new__(cls, delimiter, LineEnding.resolve(eol), bool(include_headers), quoting)


class RunStats:
    """Row counter and timing for one export."""

    def __init__(self):
        self.rows = 0
        self.started = dt.datetime.now()
        self._start = time.monotonic()

    @property
    def elapsed(self) -> dt.timedelta:
        """Wall time since the run started."""
        return dt.timedelta(seconds=time.monotonic() - self._start)

    def __repr__(self) -> str:
        return f'RunStats(rows={self.rows}, elapsed={self.elapsed})'


class CellArena:
    """
    Fixed set of per-column byte buffers, reused for every row.

    The cursor overwrites ``cells[i]`` in place on each scan, so memory use
    depends on the column count and the widest cell, never on the row count.
    A buffer's content is only valid until the next scan; copy it if it has to
    outlive the current row.
    """

    __slots__ = ('cells',)

    def __init__(self, column_count: int):
        if column_count < 1:
            raise ValueError(f"column_count must be at least 1, got {column_count}")
        self.cells: List[bytearray] = [bytearray() for _ in range(column_count)]

    def __len__(self) -> int:
        return len(self.cells)

    def __iter__(self) -> Iterator[bytearray]:
        return iter(self.cells)

    def __getitem__(self, ordinal: int) -> bytearray:
        return self.cells[ordinal]


class ExportResult:
    """
    Tagged outcome of an export.

    Attributes
    ----------
    ok : bool
        True when every row was written
    rows : int
        Data rows written (the header is not counted)
    elapsed : datetime.timedelta
        Wall time of the run
    error : ExportError or None
        The failure that ended the run
    flush_error : ExportError or None
        A final-flush failure. It is reported, but does not turn a successful run into a failure.
    columns : list of ColumnDescriptor
        Output columns, empty if the schema could not be read
    """

    def __init__(self, rows: int, elapsed: dt.timedelta,
                 error: Optional[ExportError] = None,
                 flush_error: Optional[ExportError] = None,
                 columns: Optional[list] = None):
        self.rows = rows
        self.elapsed = elapsed
        self.error = error
        self.flush_error = flush_error
        self.columns = columns or []

    @property
    def ok(self) -> bool:
        return self.error is None

    @property
    def stage(self) -> Optional[str]:
        """Pipeline stage that failed, None on success."""
        return self.error.stage if self.error else None

    def __bool__(self) -> bool:
        return self.ok

    def __repr__(self) -> str:
        if self.ok:
            return f'ExportResult(ok, rows={self.rows}, elapsed={self.elapsed})'
        return f'ExportResult(failed, rows={self.rows}, error={self.error})'
