"""
Local subprocess runtime for sandbox execution.

Lifecycle::

    SPAWNED -> RUNNING -> COMPLETED
                       -> TIMED_OUT -> KILLED
    SPAWNED -> SPAWN_FAILED

Completion is driven by both output pipes closing, not by process exit,
because exit can be observed before buffered output has been delivered.
A deadline timer sends a graceful termination signal and arms a grace
timer; the grace timer escalates to a forceful kill of the whole process
group when output is still pending.
"""

from __future__ import annotations

import asyncio
import os
import signal
import time

from ...core.logging import get_logger
from .base import ProcessOutcome, ProcessState, RuntimeExecutionRequest

logger = get_logger(__name__)

_READ_CHUNK = 64 * 1024


class _OutputBuffer:
    """Accumulates stream bytes, optionally capped."""

    def __init__(self, limit: int | None = None):
        self._chunks: list[bytes] = []
        self._size = 0
        self._limit = limit
        self.truncated = False

    def append(self, chunk: bytes) -> None:
        if self._limit is not None:
            room = self._limit - self._size
            if room <= 0:
                self.truncated = True
                return
            if len(chunk) > room:
                chunk = chunk[:room]
                self.truncated = True
        self._chunks.append(chunk)
        self._size += len(chunk)

    def getvalue(self) -> bytes:
        return b"".join(self._chunks)


async def _drain(stream: asyncio.StreamReader | None, buffer: _OutputBuffer) -> None:
    if stream is None:
        return
    while True:
        chunk = await stream.read(_READ_CHUNK)
        if not chunk:
            return
        buffer.append(chunk)


def _spawn_kwargs() -> dict[str, object]:
    # A fresh session lets signals reach the whole process tree.
    if os.name == "nt":
        return {}
    return {"start_new_session": True}


def _send_signal(proc: asyncio.subprocess.Process, sig: int) -> None:
    try:
        if os.name == "nt":
            if sig == signal.SIGTERM:
                proc.terminate()
            else:
                proc.kill()
        else:
            os.killpg(proc.pid, sig)
    except (ProcessLookupError, PermissionError):
        # Already gone.
        pass


def _kill_signal() -> int:
    return getattr(signal, "SIGKILL", signal.SIGTERM)


class LocalSandboxRuntime:
    """Executes an argv via a local subprocess with graduated timeout handling."""

    name = "local"

    async def execute(self, request: RuntimeExecutionRequest) -> ProcessOutcome:
        outcome = ProcessOutcome()
        outcome.transitions.append(ProcessState.SPAWNED)
        loop = asyncio.get_running_loop()
        started = time.monotonic()

        def transition(state: ProcessState) -> None:
            outcome.state = state
            outcome.transitions.append(state)

        logger.debug(f"Spawning {request.argv!r} in {request.workdir}")
        try:
            proc = await asyncio.create_subprocess_exec(
                *request.argv,
                cwd=str(request.workdir),
                env=request.env,
                stdin=asyncio.subprocess.DEVNULL,
                stdout=asyncio.subprocess.PIPE,
                stderr=asyncio.subprocess.PIPE,
                **_spawn_kwargs(),
            )
        except OSError as exc:
            outcome.spawn_error = exc.strerror or str(exc)
            outcome.duration_ms = int((time.monotonic() - started) * 1000)
            transition(ProcessState.SPAWN_FAILED)
            logger.warning(f"Failed to spawn {request.argv[0]!r}: {outcome.spawn_error}")
            return outcome

        transition(ProcessState.RUNNING)
        stdout_buffer = _OutputBuffer(request.max_output_bytes)
        stderr_buffer = _OutputBuffer(request.max_output_bytes)
        timers: list[asyncio.TimerHandle] = []

        def on_grace_expired() -> None:
            # The pipes are still open here. On POSIX a descendant in the
            # group may hold them after the direct child has exited.
            if proc.returncode is not None and os.name == "nt":
                return
            if proc.returncode is None:
                logger.warning(f"Process {proc.pid} ignored termination; killing")
            else:
                logger.warning(f"Process group {proc.pid} still holds output pipes; killing")
            outcome.killed = True
            transition(ProcessState.KILLED)
            _send_signal(proc, _kill_signal())

        def on_deadline() -> None:
            logger.warning(f"Process {proc.pid} exceeded {request.timeout_ms}ms; terminating")
            outcome.timed_out = True
            transition(ProcessState.TIMED_OUT)
            _send_signal(proc, signal.SIGTERM)
            timers.append(loop.call_later(request.grace_period_seconds, on_grace_expired))

        if request.timeout_ms and request.timeout_ms > 0:
            timers.append(loop.call_later(request.timeout_ms / 1000, on_deadline))

        readers = asyncio.gather(
            _drain(proc.stdout, stdout_buffer),
            _drain(proc.stderr, stderr_buffer),
        )
        try:
            await readers
            outcome.return_code = await proc.wait()
        except BaseException:
            readers.cancel()
            if proc.returncode is None:
                _send_signal(proc, _kill_signal())
            raise
        finally:
            for timer in timers:
                timer.cancel()

        if not outcome.timed_out:
            transition(ProcessState.COMPLETED)

        outcome.stdout = stdout_buffer.getvalue()
        outcome.stderr = stderr_buffer.getvalue()
        outcome.truncated = stdout_buffer.truncated or stderr_buffer.truncated
        outcome.duration_ms = int((time.monotonic() - started) * 1000)
        logger.debug(
            f"Process {proc.pid} finished: state={outcome.state.value} "
            f"code={outcome.return_code} duration={outcome.duration_ms}ms"
        )
        return outcome
