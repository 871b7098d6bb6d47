"""
Transport interface.

A transport is how the executor reaches a target host: it runs commands
and moves bytes. Resources never touch the filesystem directly.
"""

from abc import ABC, abstractmethod
from typing import List, Tuple


class Transport(ABC):
    """
    Abstract base class for command execution and file access on a target.

    Implementations:
    - LocalTransport: the machine Pantry runs on
    - SSHTransport: a remote host over SSH
    """

    @abstractmethod
    def run_shell(self, command: str) -> Tuple[str, int]:
        """
        Run a shell command string.

        Returns:
            Tuple of (combined output, exit_code)
        """
        pass

    @abstractmethod
    def run_command(self, args: List[str]) -> Tuple[str, int]:
        """
        Run a command given as an argument list (no shell).

        Returns:
            Tuple of (combined output, exit_code)
        """
        pass

    @abstractmethod
    def write_file(self, path: str, content: bytes) -> None:
        """
        Write bytes to a path on the target, replacing it.

        Raises:
            OSError: If the write fails
        """
        pass

    @abstractmethod
    def read_file(self, path: str) -> bytes:
        """
        Read a file from the target.

        Raises:
            FileNotFoundError: If the file doesn't exist
        """
        pass

    @abstractmethod
    def file_exists(self, path: str) -> bool:
        """Check if a path exists on the target."""
        pass

    @abstractmethod
    def close(self) -> None:
        """Release the connection, if any."""
        pass

    def __enter__(self):
        return self

    def __exit__(self, exc_type, exc_val, exc_tb):
        self.close()


class NullTransport(Transport):
    """
    Placeholder transport for resources not yet bound to an executor.

    Every call raises, pointing at the missing Executor.add().
    """

    def _unbound(self, method_name: str):
        raise RuntimeError(
            f"Cannot call {method_name}: resource is not bound to an executor. "
            f"Add it first, e.g. Executor().add(resource) or Executor().load(recipe)"
        )

    def run_shell(self, command: str) -> Tuple[str, int]:
        self._unbound("run_shell()")

    def run_command(self, args: List[str]) -> Tuple[str, int]:
        self._unbound("run_command()")

    def write_file(self, path: str, content: bytes) -> None:
        self._unbound("write_file()")

    def read_file(self, path: str) -> bytes:
        self._unbound("read_file()")

    def file_exists(self, path: str) -> bool:
        self._unbound("file_exists()")

    def close(self) -> None:
        pass
