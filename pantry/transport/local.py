"""
Local transport - converge the machine Pantry runs on.
"""

import subprocess
from pathlib import Path
from typing import List, Tuple

from pantry.transport.base import Transport


class LocalTransport(Transport):
    """Runs commands with subprocess and reads/writes files in place."""

    def run_shell(self, command: str) -> Tuple[str, int]:
        result = subprocess.run(
            command,
            shell=True,
            capture_output=True,
            text=True,
        )
        return result.stdout + result.stderr, result.returncode

    def run_command(self, args: List[str]) -> Tuple[str, int]:
        try:
            result = subprocess.run(
                args,
                capture_output=True,
                text=True,
            )
        except FileNotFoundError:
            # Same shape as a shell reporting a missing binary
            return f"{args[0]}: command not found", 127
        return result.stdout + result.stderr, result.returncode

    def write_file(self, path: str, content: bytes) -> None:
        target = Path(path)
        target.parent.mkdir(parents=True, exist_ok=True)
        target.write_bytes(content)

    def read_file(self, path: str) -> bytes:
        return Path(path).read_bytes()

    def file_exists(self, path: str) -> bool:
        return Path(path).exists()

    def close(self) -> None:
        pass
