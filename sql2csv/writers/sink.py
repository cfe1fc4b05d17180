# sql2csv/writers/sink.py
"""
Buffered byte sink over an already-open output destination.
"""

import logging
from typing import BinaryIO, Optional

from ..defaults import settings

logger = logging.getLogger(__name__)


class BufferedSink:
    """
    Large write buffer in front of a writable binary destination.

    Many small field writes are collected in memory and handed to the
    destination in multi-megabyte chunks. The destination is owned by the
    caller: the sink flushes it but never closes it.

    Parameters
    ----------
    dest : BinaryIO
        Open, writable byte stream (file opened 'wb', socket file, BytesIO...)
    buffer_size : int, optional
        Bytes held before draining to ``dest``. Defaults to
        ``settings['output_buffer_size']`` (10MB).

    Example
    -------
    ::

        with open('out.csv', 'wb', buffering=0) as f:
            sink = BufferedSink(f)
            sink.write(b'"a","b"\\r\\n')
            sink.flush()
    """

    def __init__(self, dest: BinaryIO, buffer_size: Optional[int] = None):
        if buffer_size is None:
            buffer_size = settings.get('output_buffer_size', 10 * 1024 * 1024)
        if buffer_size < 1:
            raise ValueError(f"buffer_size must be positive, got {buffer_size}")
        self.dest = dest
        self.buffer_size = buffer_size
        self._buffer = bytearray()
        self._bytes_written = 0

    @property
    def bytes_written(self) -> int:
        """Bytes accepted by write(), buffered or not."""
        return self._bytes_written

    @property
    def pending(self) -> int:
        """Bytes currently held in the buffer."""
        return len(self._buffer)

    def write(self, data: bytes) -> int:
        """
        Append bytes to the buffer, draining to the destination when full.

        Raises:
            OSError: If the destination fails to accept buffered bytes
        """
        size = len(data)
        if len(self._buffer) + size > self.buffer_size:
            self._drain()
            if size >= self.buffer_size:
                # larger than the whole buffer, write straight through
                self._buffer = bytearray(data)
                self._bytes_written += size
                self._drain()
                return size
        self._buffer += data
        self._bytes_written += size
        return size

    def _write_chunk(self, view: memoryview) -> int:
        written = self.dest.write(view)
        if written is None:
            # buffered wrappers accept everything or raise
            return len(view)
        if written == 0:
            raise OSError(f"Short write: destination accepted 0 of {len(view)} bytes")
        return written

    def _drain(self) -> None:
        """Write the whole buffer to the destination, retrying short writes."""
        if not self._buffer:
            return
        data, self._buffer = self._buffer, bytearray()
        view = memoryview(data)
        offset = 0
        try:
            while offset < len(data):
                offset += self._write_chunk(view[offset:])
        except BaseException:
            # keep whatever the destination did not take
            self._buffer = bytearray(view[offset:])
            raise

    def flush(self) -> None:
        """Hand every buffered byte to the destination and flush it."""
        self._drain()
        if hasattr(self.dest, 'flush'):
            self.dest.flush()

    def __enter__(self):
        return self

    def __exit__(self, exc_type, exc_val, exc_tb):
        try:
            self.flush()
        except OSError as e:
            if exc_type is None:
                raise
            logger.error(f"Error flushing output after failure: {e}")
