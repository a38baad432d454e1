"""External command execution."""

from __future__ import annotations

import asyncio
import contextlib

import structlog

from .models import ProcessResult

logger = structlog.get_logger(__name__)

DEFAULT_PROCESS_TIMEOUT = 10.0


async def run_process(*args: str, timeout: float = DEFAULT_PROCESS_TIMEOUT) -> ProcessResult:
    """Run a command and capture its output.

    Launch failures and timeouts are reported in the result rather than
    raised.

    Args:
        *args: Program followed by its arguments.
        timeout: Seconds to wait before killing the process.

    Returns:
        ProcessResult with exit code, decoded output and any launch error.
    """
    result = ProcessResult(args=list(args))
    try:
        process = await asyncio.create_subprocess_exec(
            *args,
            stdout=asyncio.subprocess.PIPE,
            stderr=asyncio.subprocess.PIPE,
        )
    except OSError as e:
        result.error = f"Failed to launch {args[0]}: {e}"
        logger.debug("process_launch_failed", args=list(args), error=str(e))
        return result

    try:
        stdout, stderr = await asyncio.wait_for(process.communicate(), timeout=timeout)
    except TimeoutError:
        with contextlib.suppress(ProcessLookupError):
            process.kill()
        await process.wait()
        result.error = f"{args[0]} did not exit within {timeout:.0f}s"
        logger.debug("process_timeout", args=list(args), timeout=timeout)
        return result

    result.exit_code = process.returncode
    result.stdout = stdout.decode(errors="replace")
    result.stderr = stderr.decode(errors="replace")
    return result
