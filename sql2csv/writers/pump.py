# sql2csv/writers/pump.py
"""
Streaming row pump: pulls rows from a cursor one at a time and pushes them
through the sanitizer and encoder.
"""

import logging
from typing import Optional

from .base import CellArena, RunStats
from .csv import CSVEncoder
from .sanitize import sanitize
from ..defaults import settings
from ..exceptions import RowScanError

logger = logging.getLogger(__name__)


class RowPump:
    """
    Drive a forward-only cursor to exhaustion, one row at a time.

    Each row is scanned into the same CellArena buffers, every cell is
    sanitized and the record is handed to the encoder. The first fetch, scan
    or write failure ends the loop; nothing is retried.

    Parameters
    ----------
    cursor
        Object with ``next() -> bool`` and ``scan(buffers)``
    encoder : CSVEncoder
        Record serializer
    stats : RunStats
        Row counter, updated after every written record
    progress : ProgressReporter, optional
        Receives ``update(stats)`` after every record
    errors : str, optional
        How ill-formed UTF-8 is handled, see sanitize(). Defaults to settings['invalid_utf8']
    """

    def __init__(self, cursor, encoder: CSVEncoder, stats: Optional[RunStats] = None,
                 progress=None, errors: Optional[str] = None):
        self.cursor = cursor
        self.encoder = encoder
        self.stats = stats or RunStats()
        self.progress = progress
        self.errors = errors or settings.get('invalid_utf8', 'ignore')

    def run(self, arena: CellArena) -> int:
        """
        Export every remaining row.

        Returns:
            Number of rows written by this call

        Raises:
            RowScanError: If the cursor cannot advance or fill the buffers
            WriteError: If a record cannot be written
        """
        cells = arena.cells
        errors = self.errors
        written = 0
        while True:
            row_num = self.stats.rows + 1
            try:
                if not self.cursor.next():
                    break
                self.cursor.scan(cells)
            except Exception as e:
                raise RowScanError(f"Error reading row {row_num}: {e}", row=row_num) from e

            self.encoder.write_record([sanitize(cell, errors) for cell in cells], row=row_num)
            self.stats.rows = row_num
            written += 1
            if self.progress is not None:
                self.progress.update(self.stats)

        logger.debug(f"Cursor exhausted after {self.stats.rows} rows")
        return written
