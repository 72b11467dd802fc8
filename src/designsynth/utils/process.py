"""Async external command execution with timeouts.

Each call owns its child process: on timeout or when the awaiting task is
cancelled, the process is killed and reaped before control returns, so
cancelling one unit never leaves a stray process behind and never touches
sibling units.
"""

import asyncio
import logging
import os
import shutil
from dataclasses import dataclass
from pathlib import Path
from typing import Dict, List, Optional

logger = logging.getLogger(__name__)


@dataclass
class CommandResult:
    """Outcome of an external command."""
    returncode: int
    stdout: str = ''
    stderr: str = ''
    timed_out: bool = False

    @property
    def ok(self) -> bool:
        return self.returncode == 0 and not self.timed_out

    @property
    def output(self) -> str:
        return '\n'.join(part for part in (self.stdout, self.stderr) if part)


async def run_command(
    command: List[str],
    cwd: Optional[Path] = None,
    timeout: float = 60,
    env: Optional[Dict[str, str]] = None,
) -> CommandResult:
    """Run a command and return its result.

    Args:
        command: Command and arguments
        cwd: Working directory
        timeout: Timeout in seconds
        env: Extra environment variables merged over ``os.environ``

    Returns:
        CommandResult; a missing executable yields returncode 127
    """
    if not command:
        return CommandResult(returncode=127, stderr="Empty command")

    if shutil.which(command[0]) is None:
        return CommandResult(returncode=127, stderr=f"Command not found: {command[0]}")

    merged_env = {**os.environ, **(env or {})}
    try:
        proc = await asyncio.create_subprocess_exec(
            *command,
            cwd=str(cwd) if cwd else None,
            env=merged_env,
            stdin=asyncio.subprocess.DEVNULL,
            stdout=asyncio.subprocess.PIPE,
            stderr=asyncio.subprocess.PIPE,
        )
    except OSError as e:
        return CommandResult(returncode=126, stderr=f"Command failed to start: {e}")

    try:
        stdout, stderr = await asyncio.wait_for(proc.communicate(), timeout=timeout)
    except asyncio.TimeoutError:
        await _kill(proc)
        logger.warning(f"Command timed out after {timeout}s: {' '.join(command)}")
        return CommandResult(returncode=-1, stderr=f"Command timed out after {timeout} seconds", timed_out=True)
    except asyncio.CancelledError:
        await _kill(proc)
        raise

    return CommandResult(
        returncode=proc.returncode if proc.returncode is not None else -1,
        stdout=stdout.decode('utf-8', errors='replace'),
        stderr=stderr.decode('utf-8', errors='replace'),
    )


async def _kill(proc: asyncio.subprocess.Process) -> None:
    if proc.returncode is None:
        try:
            proc.kill()
        except ProcessLookupError:
            return
        await proc.wait()
