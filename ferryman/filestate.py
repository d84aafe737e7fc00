"""Thread-safe record of when files were last read and written."""

from __future__ import annotations

import threading
from dataclasses import dataclass
from datetime import datetime
from typing import Optional


@dataclass
class _FileRecord:
    path: str
    read_time: Optional[datetime] = None
    write_time: Optional[datetime] = None


_records: dict[str, _FileRecord] = {}
_lock = threading.Lock()


def _record(path: str) -> _FileRecord:
    return _records.setdefault(path, _FileRecord(path))


def record_file_read(path: str) -> None:
    """Note that a file has just been read."""
    with _lock:
        _record(path).read_time = datetime.now()


def get_last_read_time(path: str) -> Optional[datetime]:
    """Return when a file was last read, or None if it never was."""
    with _lock:
        record = _records.get(path)
        return record.read_time if record else None


def record_file_write(path: str) -> None:
    """Note that a file has just been written."""
    with _lock:
        _record(path).write_time = datetime.now()