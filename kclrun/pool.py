"""A bounded pool of worker processes that tasks are run against."""

from __future__ import annotations

import contextlib
import subprocess
import threading
from typing import IO, Any, Callable, Optional

__all__ = ["LimitBuffer", "BufferOverflowError", "Process", "Runtime"]

_STDERR_LIMIT = 10 * 1024


class BufferOverflowError(BufferError):
    """Raised when a write does not fit in a LimitBuffer; the part that fit is kept."""

    def __init__(self, written: int) -> None:
        super().__init__("limitBuffer: overflow")
        self.written = written


class LimitBuffer:
    """A thread-safe byte buffer that holds at most cap bytes."""

    def __init__(self, cap: int) -> None:
        self.cap = cap
        self._buf = bytearray()
        self._lock = threading.Lock()

    def write(self, data: bytes) -> int:
        """Append what fits of data and return its length; raise when some did not fit."""
        with self._lock:
            room = max(self.cap - len(self._buf), 0)
            chunk = bytes(data[:room])
            self._buf += chunk
        if len(chunk) < len(data):
            raise BufferOverflowError(len(chunk))
        return len(chunk)

    def read(self, size: int = -1) -> bytes:
        """Remove and return up to size bytes from the front (all when size < 0)."""
        with self._lock:
            if size < 0:
                size = len(self._buf)
            data = bytes(self._buf[:size])
            del self._buf[:size]
        return data

    def getvalue(self) -> bytes:
        """The unread content."""
        with self._lock:
            return bytes(self._buf)


class Process:
    """A worker process with piped stdin/stdout and captured, bounded stderr."""

    def __init__(self, popen: subprocess.Popen) -> None:
        self._popen = popen
        self._killed = False
        self.busy = False
        self.stderr = LimitBuffer(_STDERR_LIMIT)
        self._reader = threading.Thread(target=self._drain_stderr, daemon=True)
        self._reader.start()

    @classmethod
    def spawn(cls, exe: str, *args: str) -> Process:
        """Start exe with args; raises OSError when it cannot be started."""
        popen = subprocess.Popen(
            [exe, *args],
            stdin=subprocess.PIPE,
            stdout=subprocess.PIPE,
            stderr=subprocess.PIPE,
        )
        return cls(popen)

    @property
    def stdin(self) -> IO[bytes]:
        return self._popen.stdin

    @property
    def stdout(self) -> IO[bytes]:
        return self._popen.stdout

    def _drain_stderr(self) -> None:
        stream = self._popen.stderr
        with contextlib.suppress(OSError, ValueError):
            for chunk in iter(lambda: stream.read1(4096), b""):
                with contextlib.suppress(BufferOverflowError):
                    self.stderr.write(chunk)

    def is_exited(self) -> bool:
        """Whether the process has ended or been killed."""
        return self._killed or self._popen.poll() is not None

    def is_free(self) -> bool:
        """Whether the process is alive and not serving a task."""
        return not self.is_exited() and not self.busy

    def wait(self, timeout: Optional[float] = None) -> int:
        """Wait for the process to end and its stderr to be drained; return the exit code."""
        code = self._popen.wait(timeout)
        self._reader.join(timeout)
        return code

    def kill(self) -> None:
        """Kill the process unless it has already ended."""
        if self.is_exited():
            return
        self._killed = True
        self._popen.kill()
        self._popen.wait()
        for stream in (self._popen.stdin, self._popen.stdout):
            if stream is not None:
                with contextlib.suppress(OSError):
                    stream.close()


class Runtime:
    """Runs tasks against at most max_proc worker processes at a time.

    Each task gets a process of its own; the process is killed once the
    task is done and a fresh one is started for the next task.
    """

    def __init__(self, max_proc: int, exe: str, *args: str) -> None:
        if max_proc < 1:
            raise ValueError(f"max_proc must be positive, got {max_proc}")
        self.max_proc = max_proc
        self.exe = exe
        self.args = args
        self._procs: list[Optional[Process]] = [None] * max_proc
        self._limit = threading.BoundedSemaphore(max_proc)
        self._lock = threading.Lock()
        self._stopped = False
        self._active = 0
        self._idle = threading.Condition()

    def __enter__(self) -> Runtime:
        return self

    def __exit__(self, *exc: Any) -> None:
        self.close()

    def start(self) -> None:
        """Start processes in every empty or ended slot; failures are ignored."""
        with self._lock:
            for i, proc in enumerate(self._procs):
                if proc is None or proc.is_exited():
                    with contextlib.suppress(OSError):
                        self._procs[i] = Process.spawn(self.exe, *self.args)

    def close(self) -> None:
        """Stop taking tasks, kill every process and wait for running tasks."""
        self._stopped = True
        last_error: Optional[BaseException] = None
        try:
            for proc in list(self._procs):
                if proc is None:
                    continue
                try:
                    proc.kill()
                except OSError as exc:
                    last_error = exc
        finally:
            with self._idle:
                self._idle.wait_for(lambda: self._active == 0)
        if last_error is not None:
            raise last_error

    def do_task(self, task: Callable[[Process, LimitBuffer], Any]) -> Any:
        """Run task(process, stderr) on a free process and return its result.

        Returns None without running the task once the runtime is closed.
        """
        if self._stopped:
            return None
        with self._limit:
            proc = self._acquire()
            with self._idle:
                self._active += 1
            try:
                return task(proc, proc.stderr)
            finally:
                self._release(proc)
                with self._idle:
                    self._active -= 1
                    self._idle.notify_all()

    def _acquire(self) -> Process:
        with self._lock:
            for proc in self._procs:
                if proc is not None and proc.is_free():
                    proc.busy = True
                    return proc
            error: Optional[OSError] = None
            for i, proc in enumerate(self._procs):
                if proc is None or proc.is_exited():
                    try:
                        fresh = Process.spawn(self.exe, *self.args)
                    except OSError as exc:
                        error = exc
                        continue
                    self._procs[i] = fresh
                    fresh.busy = True
                    return fresh
            if error is not None:
                raise error
            raise RuntimeError("no free process available")

    def _release(self, proc: Process) -> None:
        with self._lock:
            proc.busy = False
            proc.kill()