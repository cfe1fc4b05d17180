# tests/test_cursors.py
import datetime as dt
import decimal
from unittest.mock import Mock

import pytest

from sql2csv.cursors import Cursor, resolve_type_code


class FakeDriver:
    """Stand-in for a DB-API module exposing PEP 249 type objects."""

    class TypeObject:
        def __init__(self, *codes):
            self.codes = codes

        def __eq__(self, other):
            return other in self.codes

        __hash__ = object.__hash__

    BINARY = TypeObject(17, 'image')
    STRING = TypeObject(1, 25)
    NUMBER = TypeObject(3, 23)
    DATETIME = TypeObject(4, 1114)
    ROWID = TypeObject(26)


class TestResolveTypeCode:
    """Type code translation."""

    def test_none(self):
        assert resolve_type_code(None) == ('', '')

    def test_python_types(self):
        assert resolve_type_code(str) == ('VARCHAR', 'str')
        assert resolve_type_code(int) == ('INT', 'int')
        assert resolve_type_code(bytearray) == ('BINARY', 'bytearray')
        assert resolve_type_code(decimal.Decimal) == ('DECIMAL', 'Decimal')
        assert resolve_type_code(dt.datetime) == ('DATETIME', 'datetime')

    def test_string_codes(self):
        assert resolve_type_code('varchar') == ('VARCHAR', '')

    def test_dbapi_type_objects(self):
        assert resolve_type_code(17, FakeDriver) == ('BINARY', 'bytes')
        assert resolve_type_code(25, FakeDriver) == ('STRING', 'str')
        assert resolve_type_code(23, FakeDriver) == ('NUMBER', '')
        assert resolve_type_code(1114, FakeDriver) == ('DATETIME', 'datetime')

    def test_unknown_code(self):
        assert resolve_type_code(9999, FakeDriver) == ('9999', '')


class TestCursor:
    """Cursor over sqlite3 and mocked drivers."""

    def test_column_types(self, posts_db):
        cursor = posts_db.cursor()
        cursor.execute('SELECT id, name FROM posts')
        assert [c.name for c in cursor.column_types()] == ['id', 'name']

    def test_column_types_before_execute(self, posts_db):
        cursor = posts_db.cursor()
        with pytest.raises(Exception, match='did not return a result set'):
            cursor.column_types()

    def test_next_and_scan(self, posts_db):
        cursor = posts_db.cursor()
        cursor.execute('SELECT id, name, note FROM posts ORDER BY id')
        buffers = [bytearray(), bytearray(), bytearray()]

        assert cursor.next()
        cursor.scan(buffers)
        assert buffers == [b'1', b'Ann', b'Hi\tthere']

        assert cursor.next()
        cursor.scan(buffers)
        assert buffers == [b'2', b'B"ob', b'']

        assert not cursor.next()

    def test_scan_without_row(self, posts_db):
        cursor = posts_db.cursor()
        cursor.execute('SELECT id FROM posts')
        with pytest.raises(ValueError, match='No current row'):
            cursor.scan([bytearray()])

    def test_scan_field_count_mismatch(self, posts_db):
        cursor = posts_db.cursor()
        cursor.execute('SELECT id, name FROM posts')
        cursor.next()
        with pytest.raises(ValueError, match='2 fields'):
            cursor.scan([bytearray()])

    def test_null_string(self, posts_db):
        cursor = posts_db.cursor(null_string='NULL')
        cursor.execute('SELECT note FROM posts WHERE id = 2')
        buffers = [bytearray()]
        cursor.next()
        cursor.scan(buffers)
        assert buffers[0] == b'NULL'

    def test_dates_formatted(self):
        raw = Mock()
        raw.description = [('created', None, None, None, None, None, None),
                           ('seen', None, None, None, None, None, None)]
        raw.fetchone.return_value = (dt.date(2024, 1, 15), dt.datetime(2024, 1, 15, 8, 30))
        connection = Mock(spec=['cursor'])
        connection.cursor.return_value = raw
        cursor = Cursor(connection)
        cursor.execute('SELECT created, seen FROM visits')
        buffers = [bytearray(), bytearray()]
        cursor.next()
        cursor.scan(buffers)
        assert buffers == [b'2024-01-15', b'2024-01-15 08:30:00']

    def test_binary_value_rejected(self, posts_db):
        cursor = posts_db.cursor()
        cursor.execute("SELECT X'00FF'")
        cursor.next()
        with pytest.raises(ValueError, match='field 1'):
            cursor.scan([bytearray()])

    def test_delegates_to_driver_cursor(self, posts_db):
        cursor = posts_db.cursor()
        cursor.arraysize = 5
        assert cursor.arraysize == 5
        assert cursor._cursor.arraysize == 5

    def test_execute_file(self, posts_db, tmp_path):
        sql_file = tmp_path / 'posts.sql'
        sql_file.write_text('SELECT name FROM posts ORDER BY id', encoding='utf-8-sig')
        cursor = posts_db.cursor()
        cursor.execute_file(str(sql_file))
        buffers = [bytearray()]
        cursor.next()
        cursor.scan(buffers)
        assert buffers[0] == b'Ann'
