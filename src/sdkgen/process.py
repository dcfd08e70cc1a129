"""External process execution for sdkgen.

Runs one command with a hard timeout and returns a structured result. A
non-zero exit is an ordinary result; only failing to start the process at all
raises.

Design follows Function Core / Imperative Shell:
- Internal transport: ProcessInvocation, ProcessResult
- Pure function: format_process_output
- Imperative shell: resolve_executable, run_process, _kill_process_group
"""

from __future__ import annotations

import asyncio
import contextlib
import dataclasses
import logging
import os
import shlex
import shutil
import signal
import subprocess
from pathlib import Path

from sdkgen.errors import SdkgenError

logger = logging.getLogger(__name__)

DEFAULT_TIMEOUT_SECONDS = 600.0

# How long to keep reading pipes once the process group has been killed.
_DRAIN_TIMEOUT_SECONDS = 5.0

_READ_CHUNK_SIZE = 64 * 1024

_IS_WINDOWS = os.name == "nt"


class SpawnError(SdkgenError):
    """The executable could not be found or the OS refused to start it."""


# ---------------------------------------------------------------------------
# Internal transport
# ---------------------------------------------------------------------------


@dataclasses.dataclass(frozen=True)
class ProcessInvocation:
    """A single external command to run."""

    command: str
    args: tuple[str, ...] = ()
    cwd: Path = dataclasses.field(default_factory=Path.cwd)
    timeout_seconds: float = DEFAULT_TIMEOUT_SECONDS
    shell: bool = False


@dataclasses.dataclass(frozen=True)
class ProcessResult:
    """Result of a process invocation. ``exit_code`` is None after a timeout."""

    exit_code: int | None
    stdout: str
    stderr: str
    timed_out: bool = False
    pid: int | None = None

    @property
    def success(self) -> bool:
        return self.exit_code == 0 and not self.timed_out


# ---------------------------------------------------------------------------
# Pure function
# ---------------------------------------------------------------------------


def format_process_output(result: ProcessResult) -> str:
    """Render captured output of a failed process for a human or an agent."""
    parts: list[str] = []
    if result.timed_out:
        parts.append("Process timed out and was killed.")
    elif result.exit_code is not None:
        parts.append(f"Process exited with code {result.exit_code}.")
    if result.stdout:
        parts.append(f"Output:\n{result.stdout}")
    if result.stderr:
        parts.append(f"Errors:\n{result.stderr}")
    return "\n\n".join(parts)


# ---------------------------------------------------------------------------
# Imperative shell
# ---------------------------------------------------------------------------


def resolve_executable(command: str) -> str:
    """Locate *command* on PATH, applying the platform's executable suffixes.

    ``shutil.which`` consults ``PATHEXT`` on Windows, so ``mvn`` resolves to
    ``mvn.cmd`` there. Resolution happens on every call; nothing is cached.

    Raises:
        SpawnError: If no executable matches.
    """
    resolved = shutil.which(command)
    if resolved is None:
        msg = f"Executable not found: {command!r}"
        raise SpawnError(msg)
    return resolved


def _kill_process_group(process: asyncio.subprocess.Process) -> None:
    """Forcibly kill every process in *process*'s group, whether or not it has exited.

    Background children keep the group alive after the leader exits, so the
    leader's own status says nothing about whether the group is empty.
    """
    try:
        if _IS_WINDOWS:
            if process.returncode is None:
                process.kill()
        else:
            os.killpg(process.pid, signal.SIGKILL)
    except (ProcessLookupError, PermissionError):
        pass


async def _spawn(
    executable: str, invocation: ProcessInvocation
) -> asyncio.subprocess.Process:
    kwargs: dict = {
        "stdout": asyncio.subprocess.PIPE,
        "stderr": asyncio.subprocess.PIPE,
        "stdin": asyncio.subprocess.DEVNULL,
        "cwd": str(invocation.cwd),
    }
    if _IS_WINDOWS:
        kwargs["creationflags"] = subprocess.CREATE_NEW_PROCESS_GROUP
    else:
        kwargs["start_new_session"] = True

    try:
        if invocation.shell:
            argv = [executable, *invocation.args]
            cmdline = subprocess.list2cmdline(argv) if _IS_WINDOWS else shlex.join(argv)
            return await asyncio.create_subprocess_shell(cmdline, **kwargs)
        return await asyncio.create_subprocess_exec(executable, *invocation.args, **kwargs)
    except OSError as e:
        msg = f"Failed to start {invocation.command!r} in {invocation.cwd}: {e}"
        raise SpawnError(msg) from e


async def _collect(stream: asyncio.StreamReader | None, buffer: bytearray) -> None:
    """Append everything read from *stream* to *buffer* until EOF."""
    if stream is None:
        return
    while True:
        chunk = await stream.read(_READ_CHUNK_SIZE)
        if not chunk:
            return
        buffer.extend(chunk)


def _decode(buffer: bytearray) -> str:
    return buffer.decode("utf-8", errors="replace").strip()


async def run_process(invocation: ProcessInvocation) -> ProcessResult:
    """Run an external command to completion or until its timeout expires.

    The deadline applies to the command itself. Once it exits, or the
    deadline passes, its whole process group is killed so no background
    child outlives the call, and output is drained for a bounded time.
    Bytes read before the drain ends are kept, even on timeout.

    Raises:
        SpawnError: If the executable is missing or could not be started.
    """
    from sdkgen.tracing import get_tracer, process_attributes, process_result_attributes

    tracer = get_tracer()
    with tracer.start_as_current_span("sdkgen.run_process") as span:
        span.set_attributes(process_attributes(invocation))

        executable = resolve_executable(invocation.command)
        logger.info(
            "Running %s %s (cwd=%s, timeout=%ss)",
            invocation.command,
            " ".join(invocation.args),
            invocation.cwd,
            invocation.timeout_seconds,
        )
        process = await _spawn(executable, invocation)

        stdout = bytearray()
        stderr = bytearray()
        readers = [
            asyncio.ensure_future(_collect(process.stdout, stdout)),
            asyncio.ensure_future(_collect(process.stderr, stderr)),
        ]
        wait_task = asyncio.ensure_future(process.wait())

        timed_out = False
        try:
            done, _ = await asyncio.wait({wait_task}, timeout=invocation.timeout_seconds)
            if not done:
                timed_out = True
                logger.warning(
                    "%s exceeded %ss timeout; killing process group %d",
                    invocation.command,
                    invocation.timeout_seconds,
                    process.pid,
                )
            _kill_process_group(process)
            await wait_task

            _, pending = await asyncio.wait(readers, timeout=_DRAIN_TIMEOUT_SECONDS)
            for task in pending:
                task.cancel()
            with contextlib.suppress(asyncio.CancelledError):
                await asyncio.gather(*pending, return_exceptions=True)
        finally:
            # Also reached when the awaiting task itself is cancelled.
            if process.returncode is None:
                _kill_process_group(process)
                with contextlib.suppress(ProcessLookupError):
                    await process.wait()
            for task in (*readers, wait_task):
                if not task.done():
                    task.cancel()

        result = ProcessResult(
            exit_code=None if timed_out else process.returncode,
            stdout=_decode(stdout),
            stderr=_decode(stderr),
            timed_out=timed_out,
            pid=process.pid,
        )
        span.set_attributes(process_result_attributes(result))

        if result.success:
            logger.info("%s completed successfully", invocation.command)
        else:
            logger.warning(
                "%s failed (exit_code=%s, timed_out=%s)",
                invocation.command,
                result.exit_code,
                result.timed_out,
            )
        return result
