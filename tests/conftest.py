# tests/conftest.py
"""
Shared test fixtures and configuration for pytest.
"""

import copy
import os
import sqlite3
from pathlib import Path
from unittest.mock import patch

import pytest

from sql2csv import defaults
from sql2csv.utils import reset_format_cache

TEST_KEY = '2YvTXI9DHQPy4d6-ZC9NxcypvLMsJ94OBdmoHyjmwbM='


# Set test config file and encryption key for all tests
@pytest.fixture(autouse=True)
def setup_test_config():
    """Use tests/test.yml and a fixed encryption key; restore global settings afterwards."""
    from sql2csv.config import set_config_file

    saved = copy.deepcopy(defaults.settings)
    test_config = Path(__file__).parent / 'test.yml'
    set_config_file(str(test_config))

    with patch.dict(os.environ, {'SQL2CSV_ENCRYPTION_KEY': TEST_KEY}):
        yield

    defaults.settings.clear()
    defaults.settings.update(saved)
    reset_format_cache()


class FakeCursor:
    """
    Scripted cursor implementing column_types/next/scan/close.

    ``rows`` are lists of bytes-like cells. ``fail_next_at`` / ``fail_scan_at``
    make the given 1-based row fail.
    """

    def __init__(self, columns, rows=(), fail_next_at=None, fail_scan_at=None, metadata_error=None):
        self.columns = list(columns)
        self.rows = [list(r) for r in rows]
        self.fail_next_at = fail_next_at
        self.fail_scan_at = fail_scan_at
        self.metadata_error = metadata_error
        self.position = 0
        self.next_calls = 0
        self.scanned_buffers = []
        self.closed = False

    def column_types(self):
        if self.metadata_error:
            raise self.metadata_error
        return self.columns

    def next(self):
        self.next_calls += 1
        if self.fail_next_at == self.position + 1:
            raise RuntimeError('connection reset')
        if self.position >= len(self.rows):
            return False
        self.position += 1
        return True

    def scan(self, buffers):
        if self.fail_scan_at == self.position:
            raise ValueError('field 2: conversion failed')
        self.scanned_buffers.append([id(b) for b in buffers])
        for buf, cell in zip(buffers, self.rows[self.position - 1]):
            buf[:] = cell

    def close(self):
        self.closed = True


class FailingFile:
    """Binary destination whose writes fail after ``fail_after`` successful calls."""

    def __init__(self, fail_after=0, fail_flush=False):
        self.fail_after = fail_after
        self.fail_flush = fail_flush
        self.data = bytearray()
        self.calls = 0

    def write(self, data):
        self.calls += 1
        if self.calls > self.fail_after:
            raise OSError(28, 'No space left on device')
        self.data += bytes(data)
        return len(data)

    def flush(self):
        if self.fail_flush:
            raise OSError(5, 'Input/output error')


@pytest.fixture
def fake_cursor():
    """Factory for FakeCursor."""
    return FakeCursor


@pytest.fixture
def posts_db():
    """In-memory SQLite database with a small posts table."""
    from sql2csv.database import sqlite

    db = sqlite(':memory:')
    cursor = db._connection.cursor()
    cursor.execute("CREATE TABLE posts (id INTEGER, name TEXT, note TEXT)")
    cursor.executemany("INSERT INTO posts VALUES (?, ?, ?)", [
        (1, 'Ann', 'Hi\tthere'),
        (2, 'B"ob', None),
    ])
    db.commit()
    cursor.close()
    yield db
    db.close()


@pytest.fixture
def posts_file(tmp_path):
    """File-backed SQLite database with the posts table, for CLI runs."""
    path = tmp_path / 'posts.db'
    conn = sqlite3.connect(str(path))
    conn.execute("CREATE TABLE posts (id INTEGER, name TEXT, note TEXT)")
    conn.executemany("INSERT INTO posts VALUES (?, ?, ?)", [
        (1, 'Ann', 'Hi\tthere'),
        (2, 'B"ob', None),
    ])
    conn.commit()
    conn.close()
    return path


@pytest.fixture
def failing_file():
    """Factory for FailingFile."""
    return FailingFile
