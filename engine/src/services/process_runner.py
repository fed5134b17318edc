"""
Process runner - executes a single step command on the host.

The command runs under /bin/sh in its own session so that a timeout or
cancellation can take down the whole process group, not just the shell.
Output is read incrementally from both pipes and handed to a callback
chunk by chunk while the full text is accumulated for the step record.
"""

import asyncio
import codecs
import logging
import os
import signal
from dataclasses import dataclass
from typing import Callable, List, Optional

from engine.src.config import Settings, get_settings

logger = logging.getLogger(__name__)

# Called with ("stdout" | "stderr", text) for every decoded chunk
OutputCallback = Callable[[str, str], None]

class StepExecutionError(Exception):
    """A step ended without a usable exit code."""

    def __init__(self, message: str, stdout: str = "", stderr: str = ""):
        super().__init__(message)
        self.stdout = stdout
        self.stderr = stderr

class StepTimeoutError(StepExecutionError):
    def __init__(self, command: str, timeout: float, stdout: str = "", stderr: str = ""):
        self.command = command
        self.timeout = timeout
        super().__init__(f"Command timed out after {timeout:g}s: {command}", stdout, stderr)

class SpawnError(StepExecutionError):
    """The command could not be launched at all."""
    pass

class StepCancelledError(StepExecutionError):
    def __init__(self, command: str, stdout: str = "", stderr: str = ""):
        self.command = command
        super().__init__(f"Command was cancelled: {command}", stdout, stderr)

@dataclass
class ProcessResult:
    stdout: str
    stderr: str
    exit_code: int

    @property
    def succeeded(self) -> bool:
        return self.exit_code == 0

async def _pump(
    stream: asyncio.StreamReader,
    name: str,
    chunks: List[str],
    on_output: Optional[OutputCallback],
    chunk_size: int,
):
    decoder = codecs.getincrementaldecoder("utf-8")(errors="replace")
    final = False

    while not final:
        data = await stream.read(chunk_size)
        final = not data
        text = decoder.decode(data, final=final)
        if not text:
            continue

        chunks.append(text)
        if on_output:
            on_output(name, text)

async def _communicate(
    process: asyncio.subprocess.Process,
    stdout_chunks: List[str],
    stderr_chunks: List[str],
    on_output: Optional[OutputCallback],
    chunk_size: int,
) -> int:
    await asyncio.gather(
        _pump(process.stdout, "stdout", stdout_chunks, on_output, chunk_size),
        _pump(process.stderr, "stderr", stderr_chunks, on_output, chunk_size),
    )
    return await process.wait()

def _signal_group(process: asyncio.subprocess.Process, sig: int):
    try:
        os.killpg(process.pid, sig)
    except ProcessLookupError:
        pass

async def terminate_process(process: asyncio.subprocess.Process, grace_period: float):
    """
    Stop a process group: SIGTERM first, SIGKILL if it is still around
    after the grace period. Returns once the shell has been reaped.
    """
    if process.returncode is None:
        _signal_group(process, signal.SIGTERM)
        try:
            await asyncio.wait_for(process.wait(), timeout=grace_period)
        except asyncio.TimeoutError:
            logger.warning(f"Process {process.pid} ignored SIGTERM, killing")
            _signal_group(process, signal.SIGKILL)
            await process.wait()

    # Children that outlived the shell
    _signal_group(process, signal.SIGKILL)

async def _drain(task: asyncio.Future, grace_period: float):
    """Give the output readers a moment to hit EOF, then drop them."""
    await asyncio.wait({task}, timeout=grace_period)
    if not task.done():
        task.cancel()
    await asyncio.gather(task, return_exceptions=True)

async def run_command(
    command: str,
    cwd: str,
    timeout: float,
    on_output: Optional[OutputCallback] = None,
    cancel_event: Optional[asyncio.Event] = None,
    settings: Optional[Settings] = None,
) -> ProcessResult:
    """
    Run a shell command and wait for it to finish, time out or be cancelled.

    Returns a ProcessResult for any process that exited on its own,
    whatever the exit code. Raises StepTimeoutError, StepCancelledError
    or SpawnError otherwise; in the first two cases the process group
    is gone by the time the exception propagates.
    """
    settings = settings or get_settings()

    try:
        process = await asyncio.create_subprocess_shell(
            command,
            cwd=cwd,
            stdin=asyncio.subprocess.DEVNULL,
            stdout=asyncio.subprocess.PIPE,
            stderr=asyncio.subprocess.PIPE,
            start_new_session=True,
        )
    except OSError as e:
        raise SpawnError(f"Failed to start '{command}' in {cwd}: {e}") from e

    logger.debug(f"Started pid {process.pid}: {command}")

    stdout_chunks: List[str] = []
    stderr_chunks: List[str] = []
    completion = asyncio.ensure_future(
        _communicate(process, stdout_chunks, stderr_chunks, on_output, settings.output_chunk_size)
    )

    watchers = {completion}
    cancel_waiter = None
    if cancel_event is not None:
        cancel_waiter = asyncio.ensure_future(cancel_event.wait())
        watchers.add(cancel_waiter)

    try:
        done, _ = await asyncio.wait(
            watchers,
            timeout=timeout,
            return_when=asyncio.FIRST_COMPLETED,
        )
    except asyncio.CancelledError:
        # The surrounding task is being torn down
        await terminate_process(process, settings.kill_grace_period)
        await _drain(completion, 0)
        raise
    finally:
        if cancel_waiter is not None:
            cancel_waiter.cancel()

    if completion in done:
        error = completion.exception()
        if error is not None:
            await terminate_process(process, settings.kill_grace_period)
            raise error

        return ProcessResult(
            stdout="".join(stdout_chunks).strip(),
            stderr="".join(stderr_chunks).strip(),
            exit_code=completion.result(),
        )

    await terminate_process(process, settings.kill_grace_period)
    await _drain(completion, settings.kill_grace_period)

    partial = {
        "stdout": "".join(stdout_chunks).strip(),
        "stderr": "".join(stderr_chunks).strip(),
    }

    if cancel_waiter is not None and cancel_waiter in done:
        logger.info(f"Cancelled pid {process.pid}: {command}")
        raise StepCancelledError(command, **partial)

    logger.warning(f"Timed out after {timeout:g}s, pid {process.pid}: {command}")
    raise StepTimeoutError(command, timeout, **partial)
