"""
SSH transport - converge a remote host over SSH.
"""

import hashlib
import os
import shlex
from pathlib import Path
from typing import List, Optional, Tuple

import paramiko

from pantry.logging import get_logger
from pantry.transport.base import Transport

logger = get_logger(__name__)


class SSHTransport(Transport):
    """
    Transport backed by a Paramiko SSH client.

    With sudo=True every command is prefixed with ``sudo -n`` and file
    writes go through a temp file in /tmp that is then moved into place,
    since SFTP itself runs unprivileged.

    Example:
        with SSHTransport("web1.example.com", user="admin", sudo=True) as t:
            output, code = t.run_command(["dpkg-query", "-W", "cron"])
    """

    def __init__(
        self,
        host: str,
        port: int = 22,
        user: Optional[str] = None,
        password: Optional[str] = None,
        key_file: Optional[str] = None,
        timeout: int = 30,
        sudo: bool = False,
    ):
        self.host = host
        self.port = port
        self.user = user or os.getenv("USER")
        self.password = password
        self.key_file = key_file
        self.timeout = timeout
        self.sudo = sudo
        self.client: Optional[paramiko.SSHClient] = None

        self._connect()

    def _connect(self) -> None:
        self.client = paramiko.SSHClient()
        self.client.set_missing_host_key_policy(paramiko.AutoAddPolicy())

        connect_kwargs = {
            "hostname": self.host,
            "port": self.port,
            "username": self.user,
            "timeout": self.timeout,
        }
        if self.password:
            connect_kwargs["password"] = self.password
        if self.key_file:
            connect_kwargs["key_filename"] = str(Path(self.key_file).expanduser())

        logger.debug("Connecting to %s@%s:%s", self.user, self.host, self.port)
        self.client.connect(**connect_kwargs)

    def _exec(self, command: str) -> Tuple[str, int]:
        _, stdout, stderr = self.client.exec_command(command)
        # Drain output before waiting, a full channel window blocks the exit
        output = stdout.read().decode() + stderr.read().decode()
        exit_code = stdout.channel.recv_exit_status()
        return output, exit_code

    def run_shell(self, command: str) -> Tuple[str, int]:
        if self.sudo:
            command = f"sudo -n sh -c {shlex.quote(command)}"
        return self._exec(command)

    def run_command(self, args: List[str]) -> Tuple[str, int]:
        command = " ".join(shlex.quote(arg) for arg in args)
        if self.sudo:
            command = f"sudo -n {command}"
        return self._exec(command)

    def write_file(self, path: str, content: bytes) -> None:
        parent = str(Path(path).parent)

        if not self.sudo:
            self.run_command(["mkdir", "-p", parent])
            sftp = self.client.open_sftp()
            try:
                with sftp.open(path, "wb") as f:
                    f.write(content)
            finally:
                sftp.close()
            return

        staging = f"/tmp/pantry-{hashlib.sha256(path.encode()).hexdigest()[:12]}.tmp"
        sftp = self.client.open_sftp()
        try:
            with sftp.open(staging, "wb") as f:
                f.write(content)
        finally:
            sftp.close()

        self.run_command(["mkdir", "-p", parent])
        output, code = self.run_command(["mv", staging, path])
        if code != 0:
            raise PermissionError(f"Cannot move {staging} to {path}: {output.strip()}")

    def read_file(self, path: str) -> bytes:
        if self.sudo:
            # Root-owned files may be unreadable over SFTP
            _, stdout, _ = self.client.exec_command(f"sudo -n cat {shlex.quote(path)}")
            data = stdout.read()
            if stdout.channel.recv_exit_status() != 0:
                raise FileNotFoundError(path)
            return data

        sftp = self.client.open_sftp()
        try:
            with sftp.open(path, "rb") as f:
                return f.read()
        finally:
            sftp.close()

    def file_exists(self, path: str) -> bool:
        _, code = self.run_command(["test", "-e", path])
        return code == 0

    def close(self) -> None:
        if self.client:
            self.client.close()
            self.client = None
