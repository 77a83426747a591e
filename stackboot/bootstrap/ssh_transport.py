"""SSH transport: run commands and copy files to a bootstrapped server via ssh/scp.

Password logins go through ``sshpass -e`` with the password in the SSHPASS
environment variable, never on the command line.
"""

import asyncio
import logging
import os
import tempfile
from dataclasses import dataclass

logger = logging.getLogger(__name__)

_KEEPALIVE_OPTS = ["-o", "ServerAliveInterval=60", "-o", "ServerAliveCountMax=5"]


@dataclass
class SSHConnection:
    """Everything needed to reach a server over SSH."""

    host: str
    username: str = "root"
    port: int = 22
    identity_file: str | None = None
    password: str | None = None
    host_key_verify: bool = True

    @property
    def address(self) -> str:
        """SSH address string (user@host)."""
        return f"{self.username}@{self.host}" if self.username else self.host

    def env(self):
        """Subprocess environment, with SSHPASS set for password logins."""
        if self.password is None:
            return None
        return {**os.environ, "SSHPASS": self.password}


def _common_opts(conn):
    opts = []
    if not conn.host_key_verify:
        opts += ["-o", "StrictHostKeyChecking=no", "-o", "UserKnownHostsFile=/dev/null"]
    # BatchMode would disable password prompts that sshpass answers
    opts += ["-o", "BatchMode=no" if conn.password is not None else "BatchMode=yes"]
    opts += _KEEPALIVE_OPTS
    if conn.identity_file:
        opts += ["-i", os.path.expanduser(conn.identity_file)]
    return opts


def _sshpass_prefix(conn):
    return ["sshpass", "-e"] if conn.password is not None else []


def ssh_base_args(conn):
    """Build base SSH arguments, ending with the user@host address."""
    args = [*_sshpass_prefix(conn), "ssh", *_common_opts(conn)]
    if conn.port and conn.port != 22:
        args += ["-p", str(conn.port)]
    args.append(conn.address)
    return args


def scp_base_args(conn):
    args = [*_sshpass_prefix(conn), "scp", *_common_opts(conn)]
    if conn.port and conn.port != 22:
        args += ["-P", str(conn.port)]
    return args


def make_run_cmd(conn, dry_run=False):
    """Create a run_cmd callable for SSH execution."""

    async def run_cmd(command, stream=True, timeout=600, log_output=False):
        if dry_run:
            logger.info(f"[dry-run] ssh {conn.address}: {command}")
            return 0, "", ""

        ssh_args = ssh_base_args(conn)
        ssh_args.append(command)

        try:
            use_pipe = not stream or log_output
            proc = await asyncio.create_subprocess_exec(
                *ssh_args,
                stdout=asyncio.subprocess.PIPE if use_pipe else None,
                stderr=asyncio.subprocess.PIPE if use_pipe else None,
                env=conn.env(),
            )

            if log_output:
                stdout_lines, stderr_lines = [], []

                async def _read_stream(pipe, lines, level):
                    async for raw_line in pipe:
                        line = raw_line.decode(errors="replace").rstrip("\n")
                        logger.log(level, f"{conn.host} {line}")
                        lines.append(line)

                await asyncio.wait_for(
                    asyncio.gather(
                        _read_stream(proc.stdout, stdout_lines, logging.INFO),
                        _read_stream(proc.stderr, stderr_lines, logging.ERROR),
                        proc.wait(),
                    ),
                    timeout=timeout,
                )
                return proc.returncode, "\n".join(stdout_lines), "\n".join(stderr_lines)
            else:
                stdout_bytes, stderr_bytes = await asyncio.wait_for(proc.communicate(), timeout=timeout)
                stdout = "" if stream else (stdout_bytes.decode() if stdout_bytes else "")
                stderr = "" if stream else (stderr_bytes.decode() if stderr_bytes else "")
                return proc.returncode, stdout, stderr
        except TimeoutError:
            logger.error(f"Command timed out after {timeout}s: {command}")
            proc.kill()
            await proc.wait()
            return 1, "", ""
        except FileNotFoundError as e:
            logger.error(f"Error: '{e.filename}' not found. Is it installed and on PATH?")
            return 1, "", ""

    return run_cmd


async def scp_file(local_path, conn, remote_path, timeout=300):
    """Copy a file to the remote server via SCP."""
    scp_args = scp_base_args(conn) + [local_path, f"{conn.address}:{remote_path}"]

    try:
        proc = await asyncio.create_subprocess_exec(
            *scp_args,
            stdout=asyncio.subprocess.PIPE,
            stderr=asyncio.subprocess.PIPE,
            env=conn.env(),
        )
        _, stderr_bytes = await asyncio.wait_for(proc.communicate(), timeout=timeout)
        stderr = stderr_bytes.decode() if stderr_bytes else ""
        return proc.returncode, stderr
    except TimeoutError:
        logger.error(f"SCP timed out after {timeout}s: {local_path} -> {conn.address}:{remote_path}")
        proc.kill()
        await proc.wait()
        return 1, "timeout"


def make_write_file(conn, remote_dir, dry_run=False):
    """Create a write_file callable that SCPs files into *remote_dir*.

    The callable returns True if the copy succeeded.
    """

    async def write_file(path, content):
        remote_path = f"{remote_dir}/{path}"
        if dry_run:
            logger.info(f"[dry-run] scp {path} -> {conn.address}:{remote_path}")
            return True

        # Write to a temp file locally, then SCP
        with tempfile.NamedTemporaryFile(mode="w", suffix=f"_{os.path.basename(path)}", delete=False) as f:
            f.write(content)
            tmp_path = f.name

        try:
            rc, stderr = await scp_file(tmp_path, conn, remote_path)
            if rc != 0:
                logger.error(f"Failed to SCP {path} to {conn.address}:{remote_path}: {stderr}")
            return rc == 0
        finally:
            os.unlink(tmp_path)

    return write_file
