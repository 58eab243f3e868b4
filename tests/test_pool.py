import sys
from concurrent.futures import ThreadPoolExecutor

import pytest

from kclrun.pool import BufferOverflowError, LimitBuffer, Process, Runtime

ECHO = (
    "import sys\n"
    "for line in sys.stdin:\n"
    "    sys.stdout.write(line)\n"
    "    sys.stdout.flush()\n"
)


def echo_task(text):
    def task(proc, stderr):
        proc.stdin.write(text.encode() + b"\n")
        proc.stdin.flush()
        return proc.stdout.readline().decode().rstrip("\n")
    return task


def test_limit_buffer_write_and_read():
    buf = LimitBuffer(5)
    assert buf.write(b"abc") == 3
    assert buf.read(2) == b"ab"
    assert buf.getvalue() == b"c"
    assert buf.read() == b"c"
    assert buf.getvalue() == b""


def test_limit_buffer_overflow_keeps_prefix():
    buf = LimitBuffer(5)
    buf.write(b"abc")
    with pytest.raises(BufferOverflowError) as info:
        buf.write(b"defg")
    assert info.value.written == 2
    assert buf.getvalue() == b"abcde"


def test_limit_buffer_full_writes_nothing():
    buf = LimitBuffer(2)
    buf.write(b"ab")
    with pytest.raises(BufferOverflowError) as info:
        buf.write(b"c")
    assert info.value.written == 0
    assert buf.getvalue() == b"ab"


def test_process_echo_and_kill():
    proc = Process.spawn(sys.executable, "-c", ECHO)
    try:
        assert proc.is_free()
        proc.stdin.write(b"ping\n")
        proc.stdin.flush()
        assert proc.stdout.readline() == b"ping\n"
    finally:
        proc.kill()
    assert proc.is_exited()
    assert not proc.is_free()


def test_process_busy_is_not_free():
    proc = Process.spawn(sys.executable, "-c", ECHO)
    try:
        proc.busy = True
        assert not proc.is_free()
    finally:
        proc.kill()


def test_process_captures_stderr():
    proc = Process.spawn(sys.executable, "-c", "import sys; sys.stderr.write('boom')")
    assert proc.wait(timeout=30) == 0
    assert proc.stderr.getvalue() == b"boom"
    assert proc.is_exited()


def test_spawn_missing_executable():
    with pytest.raises(OSError):
        Process.spawn("/nonexistent/kclrun-missing-exe")


def test_runtime_runs_task():
    with Runtime(1, sys.executable, "-c", ECHO) as rt:
        assert rt.do_task(echo_task("hello")) == "hello"


def test_runtime_kills_process_after_task():
    seen = []

    def task(proc, stderr):
        seen.append(proc)
        return proc.is_free()

    with Runtime(1, sys.executable, "-c", ECHO) as rt:
        assert rt.do_task(task) is False
        assert rt.do_task(task) is False
    assert len(seen) == 2
    assert seen[0] is not seen[1]
    assert all(p.is_exited() for p in seen)


def test_runtime_parallel_tasks():
    words = [f"w{i}" for i in range(5)]
    rt = Runtime(2, sys.executable, "-c", ECHO)
    rt.start()
    try:
        with ThreadPoolExecutor(max_workers=5) as executor:
            futures = [executor.submit(rt.do_task, echo_task(w)) for w in words]
            outputs = [f.result(timeout=60) for f in futures]
    finally:
        rt.close()
    assert outputs == words


def test_runtime_closed_skips_tasks():
    rt = Runtime(1, sys.executable, "-c", ECHO)
    rt.close()
    assert rt.do_task(echo_task("x")) is None


def test_runtime_task_error_propagates():
    def task(proc, stderr):
        raise KeyError("failed")

    with Runtime(1, sys.executable, "-c", ECHO) as rt:
        with pytest.raises(KeyError):
            rt.do_task(task)
        assert rt.do_task(echo_task("again")) == "again"


def test_runtime_spawn_failure_raises():
    rt = Runtime(1, "/nonexistent/kclrun-missing-exe")
    with pytest.raises(OSError):
        rt.do_task(echo_task("x"))


def test_runtime_rejects_zero_processes():
    with pytest.raises(ValueError):
        Runtime(0, sys.executable)