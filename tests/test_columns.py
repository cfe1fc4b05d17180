# tests/test_columns.py
import pytest

from sql2csv.cursors import ColumnType
from sql2csv.exceptions import MetadataError, SchemaError
from sql2csv.writers.columns import (ColumnCategory, classify_type, column_name, extract_columns,
                                     normalize_type_name)


class TestClassifyType:
    """Type name classification."""

    @pytest.mark.parametrize('type_name, expected', [
        ('VARCHAR', ColumnCategory.TEXT),
        ('nvarchar(max)', ColumnCategory.TEXT),
        ('UNIQUEIDENTIFIER', ColumnCategory.TEXT),
        ('INT', ColumnCategory.NUMERIC),
        ('decimal(18, 2)', ColumnCategory.NUMERIC),
        ('BIT', ColumnCategory.NUMERIC),
        ('DATETIME2', ColumnCategory.TEMPORAL),
        ('timestamp with time zone', ColumnCategory.TEMPORAL),
        ('VARBINARY', ColumnCategory.BINARY),
        ('image', ColumnCategory.BINARY),
        ('BYTEA', ColumnCategory.BINARY),
        ('GEOGRAPHY', ColumnCategory.TEXT),
        ('', ColumnCategory.TEXT),
    ])
    def test_classify(self, type_name, expected):
        assert classify_type(type_name) == expected

    def test_binary_scan_type_wins(self):
        assert classify_type('VARCHAR', 'bytes') == ColumnCategory.BINARY
        assert classify_type('', 'memoryview') == ColumnCategory.BINARY

    def test_normalize(self):
        assert normalize_type_name('varchar(50)') == 'VARCHAR'
        assert normalize_type_name(' numeric (10,2) ') == 'NUMERIC'
        assert normalize_type_name(None) == ''

    def test_values(self):
        assert set(ColumnCategory.values()) == {'text', 'numeric', 'temporal', 'binary'}

    def test_column_name_fallback(self):
        assert column_name('', 0) == 'column_1'
        assert column_name(None, 4) == 'column_5'
        assert column_name('id', 0) == 'id'


class TestExtractColumns:
    """Column descriptor extraction."""

    def test_ordered_descriptors(self, fake_cursor):
        cursor = fake_cursor([
            ColumnType('id', 'INT', 'int'),
            ColumnType('name', 'varchar(30)', 'str'),
            ColumnType('created', 'DATETIME', 'datetime'),
        ])
        columns = extract_columns(cursor)

        assert [c.ordinal for c in columns] == [0, 1, 2]
        assert [c.name for c in columns] == ['id', 'name', 'created']
        assert columns[1].type_name == 'VARCHAR'
        assert [c.category for c in columns] == ['numeric', 'text', 'temporal']

    def test_binary_column_rejected(self, fake_cursor):
        cursor = fake_cursor([
            ColumnType('id', 'INT', 'int'),
            ColumnType('payload', 'VARBINARY', 'bytes'),
        ])
        with pytest.raises(SchemaError) as exc_info:
            extract_columns(cursor)
        assert exc_info.value.column == 2
        assert 'payload' in str(exc_info.value)
        assert exc_info.value.stage == 'schema'

    def test_metadata_failure(self, fake_cursor):
        cursor = fake_cursor([], metadata_error=RuntimeError('driver exploded'))
        with pytest.raises(MetadataError, match='driver exploded'):
            extract_columns(cursor)

    def test_no_columns(self, fake_cursor):
        with pytest.raises(MetadataError):
            extract_columns(fake_cursor([]))

    def test_sqlite_columns(self, posts_db):
        cursor = posts_db.cursor()
        cursor.execute('SELECT id, name FROM posts')
        columns = extract_columns(cursor)
        assert [c.name for c in columns] == ['id', 'name']
        # sqlite does not report column types
        assert all(c.category == ColumnCategory.TEXT for c in columns)
