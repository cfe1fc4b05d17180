# sql2csv/writers/sanitize.py
"""
Cell sanitizer: turns an arbitrary byte sequence into text that is safe to
place between double quotes on a single CSV line.
"""

from typing import Union

SPACE = ' '


def _graphic_or_space(text: str) -> str:
    """Replace every non-graphic character with a single space."""
    return ''.join(ch if ch.isprintable() else SPACE for ch in text)


def sanitize_text(text: str) -> str:
    """
    Sanitize already-decoded text.

    str.isprintable() is False for control, format, private-use, unassigned
    characters and for every separator except the ASCII space, so tabs,
    newlines, carriage returns and all no-break spaces become spaces here.
    """
    if not text.isprintable():
        text = _graphic_or_space(text)
    if '"' in text:
        text = text.replace('"', '""')
    return text.strip(SPACE)


def sanitize(raw: Union[bytes, bytearray, memoryview], errors: str = 'ignore') -> bytes:
    """
    Map raw cell bytes to a CSV-safe UTF-8 byte string.

    1. Decode as UTF-8. Ill-formed sequences are dropped (``errors='ignore'``)
       or replaced with U+FFFD (``errors='replace'``).
    2. Replace every non-graphic character (controls, all whitespace,
       no-break spaces) with one ASCII space.
    3. Double every ``"``.
    4. Trim leading and trailing ASCII spaces.

    Never raises for any input; empty or fully non-printable input gives b''.

    Example::

        >>> sanitize(b'Hi\\tthere')
        b'Hi there'
        >>> sanitize(b'B"ob')
        b'B""ob'
    """
    if not raw:
        return b''
    if errors not in ('ignore', 'replace'):
        errors = 'ignore'
    text = bytes(raw).decode('utf-8', errors)
    return sanitize_text(text).encode('utf-8')
