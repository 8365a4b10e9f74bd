"""
Runs external command-line tools with hard timeouts and bounded output.
"""

import asyncio
import logging

from extraction_node.exceptions import (
    ProcessFailedError,
    ProcessOutputTooLargeError,
    ProcessTimeoutError,
)

log = logging.getLogger(__name__)

DEFAULT_MAX_OUTPUT = 10 * 1024 * 1024  # 10 MB
_READ_SIZE = 65536
_STDERR_TAIL = 500


async def _terminate(process: asyncio.subprocess.Process) -> None:
    """Kills a still-running child and reaps it."""
    if process.returncode is None:
        try:
            process.kill()
        except ProcessLookupError:
            pass
    await process.wait()


async def _read_bounded(stream: asyncio.StreamReader, max_output: int) -> bytes:
    buffer = bytearray()
    while chunk := await stream.read(_READ_SIZE):
        buffer.extend(chunk)
        if len(buffer) > max_output:
            raise ProcessOutputTooLargeError(
                f"Process output exceeded {max_output} bytes."
            )
    return bytes(buffer)


async def _communicate(
    process: asyncio.subprocess.Process, max_output: int
) -> tuple[bytes, bytes]:
    stdout, stderr = await asyncio.gather(
        _read_bounded(process.stdout, max_output),
        process.stderr.read(),
    )
    await process.wait()
    return stdout, stderr


async def run_command(
    command: str,
    args: list[str],
    timeout: float,
    max_output: int = DEFAULT_MAX_OUTPUT,
) -> bytes:
    """
    Runs a command and returns its captured standard output.

    Args:
        command: The executable to run.
        args: Arguments passed to the executable.
        timeout: Wall-clock limit in seconds; the child is killed when exceeded.
        max_output: Maximum number of stdout bytes to capture.

    Raises:
        ProcessTimeoutError: If the command does not finish in time.
        ProcessOutputTooLargeError: If stdout grows beyond max_output.
        ProcessFailedError: If the command cannot start or exits non-zero.
    """
    log.debug(f"Running: {command} {' '.join(args)}")
    try:
        process = await asyncio.create_subprocess_exec(
            command,
            *args,
            stdin=asyncio.subprocess.DEVNULL,
            stdout=asyncio.subprocess.PIPE,
            stderr=asyncio.subprocess.PIPE,
        )
    except OSError as e:
        raise ProcessFailedError(f"Could not start '{command}': {e}") from e

    try:
        stdout, stderr = await asyncio.wait_for(
            _communicate(process, max_output), timeout
        )
    except asyncio.TimeoutError:
        await _terminate(process)
        raise ProcessTimeoutError(
            f"'{command}' timed out after {timeout:.0f}s."
        ) from None
    except BaseException:
        await _terminate(process)
        raise

    if process.returncode != 0:
        detail = stderr.decode("utf-8", errors="replace").strip()[-_STDERR_TAIL:]
        raise ProcessFailedError(
            f"'{command}' exited with code {process.returncode}: {detail}"
        )

    return stdout
