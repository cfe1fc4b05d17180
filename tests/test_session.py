# tests/test_session.py
import io

import pytest

from sql2csv.cursors import ColumnType
from sql2csv.exceptions import FlushError, MetadataError, RowScanError, SchemaError, WriteError
from sql2csv.logging_utils import ProgressReporter
from sql2csv.writers import (BufferedSink, CellArena, CSVEncoder, ExportConfig, ExportSession,
                             RowPump, RunStats)

TEXT_COLUMNS = [ColumnType('id', 'INT', 'int'), ColumnType('name', 'VARCHAR', 'str')]


class RecordingProgress:
    def __init__(self):
        self.updates = []
        self.finished = None

    def update(self, stats):
        self.updates.append(stats.rows)

    def finish(self, stats):
        self.finished = stats.rows


class BrokenProgress(RecordingProgress):
    """Progress consumer whose output stream has gone away."""

    def update(self, stats):
        raise BrokenPipeError(32, 'Broken pipe')


class ClosesAfterFirstWrite(io.RawIOBase):
    """Destination that behaves like a closed file after one write."""

    def __init__(self):
        super().__init__()
        self.data = bytearray()

    def writable(self):
        return True

    def write(self, b):
        if self.data:
            raise ValueError('I/O operation on closed file')
        self.data += bytes(b)
        return len(b)


class TestCellArena:
    """Per-column buffers."""

    def test_one_buffer_per_column(self):
        arena = CellArena(3)
        assert len(arena) == 3
        assert all(isinstance(cell, bytearray) for cell in arena)

    def test_rejects_zero_columns(self):
        with pytest.raises(ValueError):
            CellArena(0)


class TestRowPump:
    """Row streaming."""

    def test_buffers_reused(self, fake_cursor):
        rows = [[b'1', b'a'], [b'2', b'b'], [b'3', b'c']]
        cursor = fake_cursor(TEXT_COLUMNS, rows)
        out = io.BytesIO()
        sink = BufferedSink(out)
        arena = CellArena(2)

        written = RowPump(cursor, CSVEncoder(sink, ExportConfig())).run(arena)
        sink.flush()

        assert written == 3
        assert cursor.scanned_buffers[0] == cursor.scanned_buffers[1] == cursor.scanned_buffers[2]
        assert cursor.scanned_buffers[0] == [id(cell) for cell in arena.cells]
        assert out.getvalue() == b'"1","a"\r\n"2","b"\r\n"3","c"\r\n'

    def test_sanitizes_cells(self, fake_cursor):
        cursor = fake_cursor(TEXT_COLUMNS, [[b' 7 ', b'x\r\ny"z']])
        out = io.BytesIO()
        sink = BufferedSink(out)
        RowPump(cursor, CSVEncoder(sink, ExportConfig(eol='lf'))).run(CellArena(2))
        sink.flush()
        assert out.getvalue() == b'"7","x  y""z"\n'

    def test_scan_failure(self, fake_cursor):
        cursor = fake_cursor(TEXT_COLUMNS, [[b'1', b'a'], [b'2', b'b']], fail_scan_at=2)
        stats = RunStats()
        pump = RowPump(cursor, CSVEncoder(BufferedSink(io.BytesIO()), ExportConfig()), stats)
        with pytest.raises(RowScanError) as exc_info:
            pump.run(CellArena(2))
        assert exc_info.value.row == 2
        assert stats.rows == 1

    def test_next_failure(self, fake_cursor):
        cursor = fake_cursor(TEXT_COLUMNS, [[b'1', b'a']], fail_next_at=1)
        pump = RowPump(cursor, CSVEncoder(BufferedSink(io.BytesIO()), ExportConfig()))
        with pytest.raises(RowScanError, match='connection reset'):
            pump.run(CellArena(2))

    def test_progress_updates(self, fake_cursor):
        cursor = fake_cursor(TEXT_COLUMNS, [[b'1', b'a'], [b'2', b'b']])
        progress = RecordingProgress()
        RowPump(cursor, CSVEncoder(BufferedSink(io.BytesIO()), ExportConfig()),
                progress=progress).run(CellArena(2))
        assert progress.updates == [1, 2]


class TestExportSession:
    """Complete export runs."""

    def test_success(self, fake_cursor):
        cursor = fake_cursor(TEXT_COLUMNS, [[b'1', b'Ann'], [b'2', b'B"ob']])
        out = io.BytesIO()
        progress = RecordingProgress()

        result = ExportSession(cursor, out, ExportConfig(include_headers=True), progress=progress).run()

        assert result.ok
        assert result.error is None
        assert result.stage is None
        assert result.rows == 2
        assert [c.name for c in result.columns] == ['id', 'name']
        assert out.getvalue() == b'"id","name"\r\n"1","Ann"\r\n"2","B""ob"\r\n'
        assert progress.finished == 2

    def test_binary_column_fails_before_rows(self, fake_cursor):
        columns = [ColumnType('id', 'INT', 'int'), ColumnType('photo', 'IMAGE', 'bytes')]
        cursor = fake_cursor(columns, [[b'1', b'\x89PNG']])
        out = io.BytesIO()

        result = ExportSession(cursor, out, ExportConfig(include_headers=True)).run()

        assert not result
        assert isinstance(result.error, SchemaError)
        assert result.rows == 0
        assert cursor.next_calls == 0
        # nothing written, not even the header
        assert out.getvalue() == b''

    def test_metadata_failure(self, fake_cursor):
        cursor = fake_cursor([], metadata_error=RuntimeError('no result set'))
        result = ExportSession(cursor, io.BytesIO()).run()
        assert isinstance(result.error, MetadataError)
        assert result.stage == 'schema introspection'

    def test_row_failure_keeps_written_rows(self, fake_cursor):
        cursor = fake_cursor(TEXT_COLUMNS, [[b'1', b'a'], [b'2', b'b'], [b'3', b'c']], fail_next_at=3)
        out = io.BytesIO()

        result = ExportSession(cursor, out).run()

        assert isinstance(result.error, RowScanError)
        assert result.error.row == 3
        assert result.rows == 2
        # rows written before the failure are flushed
        assert out.getvalue() == b'"1","a"\r\n"2","b"\r\n'

    def test_write_failure(self, fake_cursor, failing_file):
        cursor = fake_cursor(TEXT_COLUMNS, [[b'1', b'a'], [b'2', b'b']])
        sink = BufferedSink(failing_file(fail_after=0), buffer_size=8)

        result = ExportSession(cursor, sink).run()

        assert isinstance(result.error, WriteError)
        assert result.stage == 'write'
        assert result.rows == 0

    def test_flush_failure_after_success(self, fake_cursor, failing_file):
        cursor = fake_cursor(TEXT_COLUMNS, [[b'1', b'a']])
        dest = failing_file(fail_after=10, fail_flush=True)

        result = ExportSession(cursor, dest).run()

        assert result.ok
        assert isinstance(result.flush_error, FlushError)
        assert result.rows == 1

    def test_flush_failure_after_failed_run(self, fake_cursor, failing_file, caplog):
        caplog.set_level('WARNING', logger='sql2csv.writers.session')
        cursor = fake_cursor(TEXT_COLUMNS, [[b'1', b'a'], [b'2', b'b']], fail_next_at=2)

        result = ExportSession(cursor, failing_file(fail_after=0, fail_flush=True)).run()

        assert not result.ok
        assert isinstance(result.error, RowScanError)
        assert isinstance(result.flush_error, FlushError)
        assert result.stage == 'row'
        assert 'also failed' in caplog.text

    def test_binary_type_name_without_scan_type(self, fake_cursor):
        columns = [ColumnType('id', 'INT', 'int'), ColumnType('payload', 'BINARY', '')]
        cursor = fake_cursor(columns, [[b'1', b'\x00\x01']])
        out = io.BytesIO()

        result = ExportSession(cursor, out, ExportConfig(include_headers=True)).run()

        assert isinstance(result.error, SchemaError)
        assert result.rows == 0
        assert cursor.next_calls == 0
        assert out.getvalue() == b''

    def test_progress_failure_still_flushes(self, fake_cursor):
        cursor = fake_cursor(TEXT_COLUMNS, [[b'1', b'a'], [b'2', b'b']])
        out = io.BytesIO()
        progress = BrokenProgress()

        with pytest.raises(BrokenPipeError):
            ExportSession(cursor, out, progress=progress).run()

        assert out.getvalue() == b'"1","a"\r\n'
        assert progress.finished == 1

    def test_closed_destination(self, fake_cursor):
        cursor = fake_cursor(TEXT_COLUMNS, [[b'1', b'a'], [b'2', b'b']])
        dest = ClosesAfterFirstWrite()

        result = ExportSession(cursor, dest, buffer_size=4).run()

        assert not result.ok
        assert isinstance(result.error, WriteError)
        assert result.stage == 'write'
        assert result.rows == 1
        assert isinstance(result.flush_error, FlushError)
        assert bytes(dest.data) == b'"1","a"\r\n'

    def test_close_releases_cursor(self, fake_cursor):
        cursor = fake_cursor(TEXT_COLUMNS)
        with ExportSession(cursor, io.BytesIO()) as session:
            session.run()
        assert cursor.closed

    def test_sqlite_end_to_end(self, posts_db):
        cursor = posts_db.cursor()
        cursor.execute('SELECT id, name, note FROM posts ORDER BY id')
        out = io.BytesIO()

        result = ExportSession(cursor, out, ExportConfig(include_headers=True)).run()

        assert result.rows == 2
        assert out.getvalue() == b'"id","name","note"\r\n"1","Ann","Hi there"\r\n"2","B""ob",""\r\n'


class TestProgressReporter:
    """Live progress line."""

    class TTY(io.StringIO):
        def isatty(self):
            return True

    def test_silent_when_not_a_tty(self):
        stream = io.StringIO()
        progress = ProgressReporter(stream=stream, interval=1)
        stats = RunStats()
        stats.rows = 1
        progress.update(stats)
        progress.finish(stats)
        assert stream.getvalue() == ''

    def test_updates_every_interval(self):
        stream = self.TTY()
        progress = ProgressReporter(stream=stream, interval=50)
        stats = RunStats()
        for n in range(1, 121):
            stats.rows = n
            progress.update(stats)
        progress.finish(stats)
        value = stream.getvalue()
        assert value.count('\r') == 2
        assert 'Read 50 rows' in value
        assert 'Read 100 rows' in value
        assert value.endswith('\n')


def test_buffer_count_independent_of_row_count(fake_cursor):
    """The same buffers are used however many rows are exported."""
    rows = [[str(n).encode(), b'x'] for n in range(1000)]
    cursor = fake_cursor(TEXT_COLUMNS, rows)
    session = ExportSession(cursor, io.BytesIO())

    result = session.run()

    assert result.rows == 1000
    assert len(session.arena) == 2
    assert len({tuple(ids) for ids in cursor.scanned_buffers}) == 1
