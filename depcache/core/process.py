"""Blocking subprocess execution with tracing and interrupt propagation.

The caller blocks until the child exits. If the caller is interrupted
(SIGINT, or SIGTERM while a command runs on the main thread) the child is
terminated, killed after a grace period, and the interruption is
re-raised, so no half-finished output is ever handed back.
"""

from __future__ import annotations

import logging
import shlex
import signal
import subprocess
import threading
from collections.abc import Iterator, Mapping, Sequence
from contextlib import contextmanager
from pathlib import Path

from depcache.core.errors import ExternalProcessError

logger = logging.getLogger(__name__)

TERMINATE_GRACE_SECONDS = 10.0


@contextmanager
def _sigterm_as_interrupt() -> Iterator[None]:
    """Turn SIGTERM into KeyboardInterrupt while a child is running."""
    if threading.current_thread() is not threading.main_thread():
        yield
        return

    def _raise(signum: int, frame: object) -> None:
        raise KeyboardInterrupt(f"received signal {signum}")

    previous = signal.signal(signal.SIGTERM, _raise)
    try:
        yield
    finally:
        signal.signal(signal.SIGTERM, previous)


def _stop(proc: subprocess.Popen[bytes]) -> None:
    proc.terminate()
    try:
        proc.wait(timeout=TERMINATE_GRACE_SECONDS)
    except subprocess.TimeoutExpired:
        logger.warning("Process %d ignored SIGTERM; killing it", proc.pid)
        proc.kill()
        proc.wait()


def run_command(
    argv: Sequence[str],
    *,
    input: bytes | None = None,
    cwd: Path | None = None,
    env: Mapping[str, str] | None = None,
    check: bool = True,
) -> subprocess.CompletedProcess[bytes]:
    """Run *argv* to completion and return its captured output.

    Raises ``ExternalProcessError`` on a non-zero exit when *check* is set.
    """
    logger.debug("+ %s", shlex.join(argv))
    with _sigterm_as_interrupt():
        proc = subprocess.Popen(
            list(argv),
            stdin=subprocess.PIPE if input is not None else subprocess.DEVNULL,
            stdout=subprocess.PIPE,
            stderr=subprocess.PIPE,
            cwd=cwd,
            env=dict(env) if env is not None else None,
        )
        try:
            stdout, stderr = proc.communicate(input)
        except BaseException:
            _stop(proc)
            raise

    if stderr:
        logger.debug("%s stderr:\n%s", argv[0], stderr.decode("utf-8", errors="replace"))
    if check and proc.returncode != 0:
        raise ExternalProcessError(argv, proc.returncode, stderr)
    return subprocess.CompletedProcess(list(argv), proc.returncode, stdout, stderr)
