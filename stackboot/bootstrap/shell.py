"""Local command execution for bootstrap helpers (knife).

Values of password and secret flags are masked wherever a command line is logged.
"""

import asyncio
import logging
import shlex

logger = logging.getLogger(__name__)

SENSITIVE_FLAGS = frozenset({"--winrm-password", "--ssh-password", "--secret"})


def loggable_command(command):
    """Shell-quoted *command* with the value after each sensitive flag replaced by '***'."""
    masked = list(command)
    for i, arg in enumerate(command[:-1]):
        if arg in SENSITIVE_FLAGS:
            masked[i + 1] = "***"
    return shlex.join(masked)


async def run_shell_cmd(command, dry_run=False, timeout=3600):
    """Run a local command and return (returncode, stdout, stderr).

    Args:
        command: list of command arguments
        dry_run: if True, log the (masked) command instead of executing
        timeout: maximum seconds to wait for the command

    Returns:
        (returncode, stdout, stderr) tuple
    """
    if dry_run:
        logger.info(f"[dry-run] {loggable_command(command)}")
        return 0, "", ""

    logger.debug(f"Running: {loggable_command(command)}")
    try:
        proc = await asyncio.create_subprocess_exec(
            *command,
            stdout=asyncio.subprocess.PIPE,
            stderr=asyncio.subprocess.PIPE,
        )
        stdout_bytes, stderr_bytes = await asyncio.wait_for(proc.communicate(), timeout=timeout)
    except TimeoutError:
        logger.error(f"Command timed out after {timeout}s: {loggable_command(command)}")
        proc.kill()
        await proc.wait()
        return 1, "", ""
    except FileNotFoundError:
        logger.error(f"Error: '{command[0]}' not found. Is it installed and on PATH?")
        return 1, "", f"'{command[0]}' not found"

    stdout = stdout_bytes.decode(errors="replace") if stdout_bytes else ""
    stderr = stderr_bytes.decode(errors="replace") if stderr_bytes else ""
    return proc.returncode, stdout, stderr
