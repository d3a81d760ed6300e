"""Exclusive advisory file locks."""

from __future__ import annotations

import fcntl
import os
from abc import ABC, abstractmethod
from pathlib import Path
from typing import IO, Optional


class Lock:
    """An exclusive lock held on an open file until unlocked or discarded."""

    def __init__(self, handle: Optional[IO] = None) -> None:
        self._handle = handle

    @property
    def locked(self) -> bool:
        return self._handle is not None

    def unlock(self) -> None:
        """Release the lock; calling it again does nothing."""
        handle, self._handle = self._handle, None
        if handle is None:
            return
        try:
            fcntl.flock(handle.fileno(), fcntl.LOCK_UN)
        finally:
            handle.close()

    def __enter__(self) -> "Lock":
        return self

    def __exit__(self, *exc_info) -> None:
        self.unlock()

    def __del__(self) -> None:
        if getattr(self, "_handle", None) is not None:
            self.unlock()


def acquire_lock(path: "os.PathLike[str] | str") -> Lock:
    """Create (or truncate) the file at path and block until it is exclusively locked."""
    handle = open(path, "w")
    try:
        fcntl.flock(handle.fileno(), fcntl.LOCK_EX)
    except OSError:
        handle.close()
        raise
    return Lock(handle)


class Lockable(ABC):
    """Something that can be locked through a file at lock_path()."""

    @abstractmethod
    def lock_path(self) -> Path:
        """Path of the file used as the lock."""

    def lock(self) -> Lock:
        return acquire_lock(self.lock_path())