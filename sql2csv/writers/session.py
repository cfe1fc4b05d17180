# sql2csv/writers/session.py
"""
ExportSession: one cursor, one output, one configuration, one run.
"""

import logging
from typing import BinaryIO, Optional, Union

from .base import CellArena, ExportConfig, ExportResult, RunStats
from .columns import extract_columns
from .csv import CSVEncoder
from .pump import RowPump
from .sink import BufferedSink
from ..exceptions import ExportError, FlushError

logger = logging.getLogger(__name__)


class ExportSession:
    """
    Owns everything one export needs and runs it to a tagged result.

    The session reads the column metadata once, rejects binary columns before
    any row is fetched, writes the optional header, pumps every row through
    the sanitizer and encoder and always flushes the output buffer at the end.
    Failures never escape ``run()`` as exceptions: they come back in
    ``ExportResult.error`` so the caller decides whether to exit, retry or
    report.

    Parameters
    ----------
    cursor
        Executed cursor providing ``column_types()``, ``next()``, ``scan()`` and ``close()``
    file : BinaryIO or BufferedSink
        Open, writable binary destination; the session does not close it
    config : ExportConfig, optional
        Defaults built from settings
    progress : ProgressReporter, optional
        Live progress consumer
    buffer_size : int, optional
        Output buffer size when ``file`` is not already a BufferedSink

    Example
    -------
    ::

        cursor = db.cursor()
        cursor.execute('SELECT id, name FROM posts')
        with open_output('posts.csv') as fp, ExportSession(cursor, fp) as session:
            result = session.run()
        if not result:
            print(result.error)
    """

    def __init__(self, cursor, file: Union[BinaryIO, BufferedSink],
                 config: Optional[ExportConfig] = None,
                 progress=None,
                 buffer_size: Optional[int] = None):
        self.cursor = cursor
        self.sink = file if isinstance(file, BufferedSink) else BufferedSink(file, buffer_size)
        self.config = config or ExportConfig()
        self.progress = progress
        self.stats = RunStats()
        self.columns = []
        self.arena = None

    def run(self) -> ExportResult:
        """
        Run the export. Returns an ExportResult; ExportError is never raised.

        The sink is flushed on every path. Exceptions outside the export error
        hierarchy (a broken progress stream, say) still propagate, after the
        rows already encoded have been handed to the destination.
        """
        self.stats = RunStats()
        error = None
        failed = True
        try:
            self._export()
            failed = False
        except ExportError as e:
            error = e
            logger.error(f"Export failed at {e.stage}: {e.message}")
        finally:
            flush_error = self._flush(failed=failed)
            if self.progress is not None:
                self.progress.finish(self.stats)

        result = ExportResult(self.stats.rows, self.stats.elapsed, error, flush_error, self.columns)
        if result.ok:
            logger.info(f"Done reading {result.rows} rows in {result.elapsed}")
        return result

    def _export(self) -> None:
        self.columns = extract_columns(self.cursor)
        logger.debug(f"Retrieved {len(self.columns)} column definitions")

        encoder = CSVEncoder(self.sink, self.config, self.columns)
        if self.config.include_headers:
            encoder.write_header(self.columns)

        # one buffer per column for the whole run
        self.arena = CellArena(len(self.columns))
        logger.debug("Start reading rows")
        RowPump(self.cursor, encoder, self.stats, self.progress).run(self.arena)

    def _flush(self, failed: bool) -> Optional[FlushError]:
        """Flush the sink. Errors are logged and returned, never raised."""
        try:
            self.sink.flush()
        except (OSError, ValueError) as e:
            flush_error = FlushError(f"Error flushing output: {e}")
            if failed:
                logger.warning(f"Flush after failed export also failed: {e}")
            else:
                logger.error(str(flush_error))
            return flush_error
        return None

    def close(self) -> None:
        """Release the cursor."""
        if self.cursor is not None and hasattr(self.cursor, 'close'):
            try:
                self.cursor.close()
            except Exception as e:
                logger.warning(f"Error closing cursor: {e}")

    def __enter__(self):
        return self

    def __exit__(self, exc_type, exc_val, exc_tb):
        self.close()
