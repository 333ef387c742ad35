"""
Shell Capability

Admin-only ``run_command``: runs ``bash -c <command>`` in a subprocess with
a hard wall-clock timeout and truncated output. Independent of the
orchestration loop, so a hung command cannot stall a round forever.
"""

import asyncio
import logging
import os
from time import time
from typing import Any, NamedTuple

from rin.core.tools.base import ToolContext, ToolHandler

logger = logging.getLogger(__name__)

MAX_OUTPUT_CHARS = 3500
DEFAULT_TIMEOUT_SECONDS = 30


class ShellResult(NamedTuple):
    """Result of one shell command."""

    output: str
    exit_code: int | None
    timed_out: bool
    duration_ms: float


def truncate_output(text: str, max_chars: int = MAX_OUTPUT_CHARS) -> str:
    if len(text) <= max_chars:
        return text
    cut = len(text) - max_chars
    return text[:max_chars] + f"\n... [{cut} chars truncated]"


def format_output(stdout: str, stderr: str, exit_code: int | None) -> str:
    parts = []
    if stdout:
        parts.append(stdout)
    if stderr:
        parts.append(f"stderr: {stderr}")
    if exit_code:
        parts.append(f"exit code: {exit_code}")
    return "\n".join(parts) or "(no output)"


async def run_shell(command: str, timeout_seconds: int = DEFAULT_TIMEOUT_SECONDS) -> ShellResult:
    """
    Run a shell command with timeout and output truncation.

    Args:
        command: Command line passed to ``bash -c``
        timeout_seconds: Wall-clock timeout in seconds

    Returns:
        ShellResult; on timeout the process is killed and ``output`` is
        ``"Command timed out after <N>s"``
    """
    start = time()
    try:
        proc = await asyncio.create_subprocess_exec(
            "bash",
            "-c",
            command,
            stdout=asyncio.subprocess.PIPE,
            stderr=asyncio.subprocess.PIPE,
            env={**os.environ, "TERM": "dumb"},
        )
    except OSError as e:
        raise RuntimeError(f"Failed to start shell: {e}") from e

    try:
        stdout_bytes, stderr_bytes = await asyncio.wait_for(
            proc.communicate(), timeout=timeout_seconds
        )
    except TimeoutError:
        logger.warning(
            "Shell command timed out, killing process",
            extra={"timeout_seconds": timeout_seconds},
        )
        try:
            proc.kill()
        except ProcessLookupError:
            pass  # Already exited
        try:
            await asyncio.wait_for(proc.wait(), timeout=5.0)
        except TimeoutError:
            logger.error("Timed-out shell process did not exit after SIGKILL")
        return ShellResult(
            output=f"Command timed out after {timeout_seconds}s",
            exit_code=None,
            timed_out=True,
            duration_ms=(time() - start) * 1000,
        )
    except asyncio.CancelledError:
        # Run cancelled mid-command: don't leave the process behind
        try:
            proc.kill()
        except ProcessLookupError:
            pass
        raise

    stdout = truncate_output(stdout_bytes.decode("utf-8", errors="replace").strip())
    stderr = truncate_output(stderr_bytes.decode("utf-8", errors="replace").strip())
    exit_code = proc.returncode

    return ShellResult(
        output=format_output(stdout, stderr, exit_code),
        exit_code=exit_code,
        timed_out=False,
        duration_ms=(time() - start) * 1000,
    )


async def run_command(args: dict[str, Any], context: ToolContext) -> str:
    result = await run_shell(str(args["command"]), context.shell_timeout_seconds)
    logger.info(
        "Shell command finished",
        extra={
            "caller_id": context.caller_id,
            "exit_code": result.exit_code,
            "timed_out": result.timed_out,
            "duration_ms": round(result.duration_ms, 1),
        },
    )
    return result.output


HANDLERS: dict[str, ToolHandler] = {
    "run_command": run_command,
}
