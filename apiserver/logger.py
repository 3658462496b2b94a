"""Log destinations: standard streams, plain files and size-rotated files."""

from __future__ import annotations

import os
import sys
import threading
import time
from contextlib import suppress
from pathlib import Path


class RotatingWriter:
    """Append-only file writer that rotates once a size limit would be passed."""

    def __init__(self, path, max_size, backups):
        self.path = os.fspath(path)
        self.max_size = max_size
        self.backups = backups
        self._file = None
        self._lock = threading.Lock()
        self._open()

    def _open(self):
        self._file = open(self.path, "ab")
        self.written = os.fstat(self._file.fileno()).st_size

    def _rotate(self):
        self._file.close()
        for i in range(self.backups - 1, 0, -1):
            with suppress(OSError):
                os.replace(f"{self.path}.{i}", f"{self.path}.{i + 1}")
        with suppress(OSError):
            os.replace(self.path, f"{self.path}.{time.strftime('%Y%m%d-%H%M%S')}.1")
        if self.backups > 0:
            with suppress(OSError):
                os.remove(f"{self.path}.{self.backups + 1}")
        self._open()

    def write(self, data):
        """Write text or bytes, rotating first if needed; return bytes written."""
        payload = data.encode() if isinstance(data, str) else bytes(data)
        with self._lock:
            if self._file is None:
                self._open()
            if self.max_size > 0 and self.written + len(payload) > self.max_size:
                self._rotate()
            count = self._file.write(payload)
            self._file.flush()
            self.written += count
            return count

    def close(self):
        with self._lock:
            if self._file is not None:
                self._file.close()
                self._file = None

    def __enter__(self):
        return self

    def __exit__(self, *args):
        self.close()


class _Stream:
    """Writer over a stream it does not own; closing only flushes it."""

    def __init__(self, stream):
        self.stream = stream

    def write(self, data):
        if isinstance(data, (bytes, bytearray)):
            data = data.decode("utf-8", "replace")
        count = self.stream.write(data)
        self.stream.flush()
        return count

    def close(self):
        self.stream.flush()


def open_log_writer(path, max_size, backups, fallback=None):
    """Open a log destination.

    Without a path the fallback stream (standard output by default) is used;
    without a positive size limit the file is appended to without rotation.
    """
    if not path:
        return _Stream(fallback if fallback is not None else sys.stdout)
    if max_size <= 0:
        Path(path).parent.mkdir(parents=True, exist_ok=True)
    return RotatingWriter(path, max_size, backups)