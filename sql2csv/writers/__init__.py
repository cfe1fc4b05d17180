# sql2csv/writers/__init__.py
"""
Streaming CSV export of query results.

Pipeline pieces, leaf first:

- columns: column descriptors and type classification, binary columns rejected
- sanitize: byte cell -> single-line, quote-escaped UTF-8 text
- csv: CSVEncoder record serializer and the to_csv() convenience function
- pump: RowPump, one row at a time through a reused CellArena
- sink: BufferedSink, large write buffer over the output file
- session: ExportSession, runs the whole thing to an ExportResult

Example
-------
::
    import sql2csv.writers as writers

    cursor.execute("SELECT id, name FROM posts")
    result = writers.to_csv(cursor, 'posts.csv', include_headers=True, eol='lf')
    if not result:
        print(result.error)
"""

from .base import CellArena, ExportConfig, ExportResult, LineEnding, QuoteStyle, RunStats
from .columns import ColumnCategory, ColumnDescriptor, classify_type, extract_columns
from .csv import CSVEncoder, open_output, to_csv
from .pump import RowPump
from .sanitize import sanitize
from .session import ExportSession
from .sink import BufferedSink

__all__ = ['CellArena', 'ExportConfig', 'ExportResult', 'LineEnding', 'QuoteStyle', 'RunStats',
           'ColumnCategory', 'ColumnDescriptor', 'classify_type', 'extract_columns',
           'CSVEncoder', 'open_output', 'to_csv', 'RowPump', 'sanitize', 'ExportSession',
           'BufferedSink']
