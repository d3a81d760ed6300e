"""Run a child process and stream its stdout and stderr lines as they arrive."""

from __future__ import annotations

import logging
import os
import queue
import subprocess
import threading
from typing import IO, Iterator, Mapping, Optional, Sequence

log = logging.getLogger(__name__)

# Kept small so a slow consumer applies back-pressure to the child.
OUT_CHANNEL_BUFFER_SIZE = 30

NON_UTF8_PLACEHOLDER = "Non-UTF8 data omitted from the log."

_STREAM_DONE = object()


def _decode_line(raw: bytes) -> str:
    if raw.endswith(b"\n"):
        raw = raw[:-1]
        if raw.endswith(b"\r"):
            raw = raw[:-1]
    try:
        return raw.decode("utf-8")
    except UnicodeDecodeError as e:
        log.error("Error reading data from child output: %r", e)
        return NON_UTF8_PLACEHOLDER


def _read_stream(stream: IO[bytes], out: "queue.Queue[object]") -> None:
    try:
        for raw in iter(stream.readline, b""):
            out.put(_decode_line(raw))
    finally:
        stream.close()
        out.put(_STREAM_DONE)


class AsyncCmd:
    """A command whose output is read line by line while it runs."""

    def __init__(
        self,
        args: Sequence["str | bytes | os.PathLike[str]"],
        cwd: "Optional[os.PathLike[str] | str]" = None,
        env: Optional[Mapping[str, str]] = None,
    ) -> None:
        self.args = list(args)
        self.cwd = cwd
        self.env = None if env is None else dict(env)

    def spawn(self) -> "SpawnedAsyncCmd":
        """Start the process with stdin closed and both output streams piped."""
        process = subprocess.Popen(
            self.args,
            cwd=self.cwd,
            env=self.env,
            stdin=subprocess.DEVNULL,
            stdout=subprocess.PIPE,
            stderr=subprocess.PIPE,
        )
        return SpawnedAsyncCmd(process)


class SpawnedAsyncCmd:
    """A running command: iterate its output with lines(), then collect its status with wait()."""

    def __init__(self, process: subprocess.Popen) -> None:
        self._process = process
        self._queue: "queue.Queue[object]" = queue.Queue(maxsize=OUT_CHANNEL_BUFFER_SIZE)
        self._open_streams = 2
        self._status: Optional[int] = None
        self._wait_error: Optional[BaseException] = None

        self._readers = [
            threading.Thread(
                target=_read_stream, args=(process.stderr, self._queue), daemon=True
            ),
            threading.Thread(
                target=_read_stream, args=(process.stdout, self._queue), daemon=True
            ),
        ]
        self._waiter = threading.Thread(target=self._wait_child, daemon=True)
        for reader in self._readers:
            reader.start()
        self._waiter.start()

    def _wait_child(self) -> None:
        try:
            self._status = self._process.wait()
        except BaseException as e:  # handed to the caller of wait()
            self._wait_error = e

    def lines(self) -> Iterator[str]:
        """Yield output lines from stdout and stderr in arrival order until both close."""
        while self._open_streams:
            item = self._queue.get()
            if item is _STREAM_DONE:
                self._open_streams -= 1
                continue
            yield item  # type: ignore[misc]

    def _discard_remaining(self) -> None:
        while self._open_streams:
            try:
                item = self._queue.get(timeout=0.05)
            except queue.Empty:
                continue
            if item is _STREAM_DONE:
                self._open_streams -= 1

    def wait(self) -> int:
        """Wait for the process to exit and return its exit code.

        Output not yet read is discarded.
        """
        self._discard_remaining()
        for reader in self._readers:
            reader.join()
        self._waiter.join()
        if self._wait_error is not None:
            raise OSError("Couldn't wait for the child process.") from self._wait_error
        if self._status is None:
            raise OSError("Thread didn't return an exit status.")
        log.info("Child process exited with %s", self._status)
        return self._status