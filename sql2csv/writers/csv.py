# sql2csv/writers/csv.py

import logging
import os
from pathlib import Path
from typing import BinaryIO, List, Optional, Sequence, Union

from .base import ExportConfig, ExportResult, QuoteStyle
from .columns import ColumnCategory, ColumnDescriptor
from ..defaults import settings
from ..exceptions import WriteError

logger = logging.getLogger(__name__)

QUOTE = b'"'


class CSVEncoder:
    """
    Serializes header and data records onto a BufferedSink.

    Fields are written in ordinal order, separated by the configured
    delimiter and wrapped in double quotes; each record ends with the
    configured end-of-line. Data fields must already be sanitized (quotes
    doubled, no line breaks). Header names are quoted as reported.

    Parameters
    ----------
    sink : BufferedSink
        Destination for the encoded bytes
    config : ExportConfig
        Delimiter, end-of-line and quoting options
    columns : list of ColumnDescriptor, optional
        Needed for QuoteStyle.NONNUMERIC to know which columns are numeric

    Example
    -------
    ::

        encoder = CSVEncoder(sink, ExportConfig(eol='lf'))
        encoder.write_record([b'1', b'Ann'])   # "1","Ann"\\n
    """

    def __init__(self, sink, config: Optional[ExportConfig] = None,
                 columns: Optional[List[ColumnDescriptor]] = None):
        self.sink = sink
        self.config = config or ExportConfig()
        self.delimiter = self.config.delimiter.encode('utf-8')
        self.eol = self.config.eol.encode('ascii')
        self._bare = None
        if self.config.quoting == QuoteStyle.NONNUMERIC and columns:
            self._bare = [col.category == ColumnCategory.NUMERIC for col in columns]

    def _quote(self, field: bytes, ordinal: int) -> bytes:
        if self._bare is not None and self._bare[ordinal] \
                and self.delimiter not in field and QUOTE not in field:
            return field
        return QUOTE + field + QUOTE

    def encode_record(self, fields: Sequence[bytes]) -> bytes:
        """Return one complete record, terminator included."""
        return self.delimiter.join(
            [self._quote(field, i) for i, field in enumerate(fields)]
        ) + self.eol

    def write_header(self, columns: Sequence[Union[ColumnDescriptor, str]]) -> None:
        """Write the quoted column names as the first record. Names are not sanitized, only quote-escaped."""
        names = [col.name if isinstance(col, ColumnDescriptor) else str(col) for col in columns]
        record = self.delimiter.join(
            [QUOTE + name.replace('"', '""').encode('utf-8') + QUOTE for name in names]
        ) + self.eol
        try:
            self.sink.write(record)
        except (OSError, ValueError) as e:
            raise WriteError(f"Error writing header to file: {e}") from e

    def write_record(self, fields: Sequence[bytes], row: Optional[int] = None) -> None:
        """
        Write one data record.

        Raises:
            WriteError: If the sink cannot accept the bytes
        """
        try:
            self.sink.write(self.encode_record(fields))
        except (OSError, ValueError) as e:
            where = f"row {row}" if row is not None else "record"
            # the record goes to the sink whole, so no single field is at fault
            raise WriteError(f"Error writing {where} ({len(fields)} fields) to file: {e}", row=row) from e


def open_output(filename: Union[str, Path], mode: Optional[int] = None) -> BinaryIO:
    """
    Open (create or truncate) an output file for writing raw bytes.

    The file is created with permissions settings['output_file_mode'] (0600)
    and opened unbuffered; buffering is the BufferedSink's job.
    """
    if mode is None:
        mode = settings.get('output_file_mode', 0o600)
    fd = os.open(str(filename), os.O_WRONLY | os.O_CREAT | os.O_TRUNC, mode)
    return os.fdopen(fd, 'wb', buffering=0)


def to_csv(cursor,
           file: Union[str, Path, BinaryIO],
           include_headers: Optional[bool] = None,
           delimiter: Optional[str] = None,
           eol: Optional[str] = None,
           quoting: Optional[str] = None,
           progress=None,
           buffer_size: Optional[int] = None) -> ExportResult:
    """
    Export the current result set of a cursor to CSV.

    Args:
        cursor: Executed sql2csv Cursor (or anything with column_types/next/scan)
        file: Output filename (created/truncated) or a writable binary file object
        include_headers: Whether to write the column names first
        delimiter: Field separator (single character)
        eol: 'crlf' or 'lf'
        quoting: 'all' (default) or 'nonnumeric'
        progress: Optional ProgressReporter for live row counts
        buffer_size: Output buffer size in bytes

    Returns:
        ExportResult; check ``result.ok``

    Example:
        # Write to file
        cursor.execute("SELECT id, name FROM posts")
        result = to_csv(cursor, 'posts.csv', include_headers=True)

        # Semicolon separated, unix line endings
        to_csv(cursor, 'posts.csv', delimiter=';', eol='lf')
    """
    from .session import ExportSession

    config = ExportConfig(delimiter=delimiter, eol=eol,
                          include_headers=include_headers, quoting=quoting)
    if isinstance(file, (str, Path)):
        with open_output(file) as fp:
            result = ExportSession(cursor, fp, config, progress=progress, buffer_size=buffer_size).run()
        if result.ok:
            logger.info(f"Wrote {result.rows} rows to {file}")
        return result
    return ExportSession(cursor, file, config, progress=progress, buffer_size=buffer_size).run()
