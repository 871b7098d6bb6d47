"""
Transport layer for local and remote convergence.

SSHTransport lives in pantry.transport.ssh and is imported on demand so
that paramiko is only loaded for remote runs.
"""

from pantry.transport.base import Transport, NullTransport
from pantry.transport.local import LocalTransport

__all__ = ["Transport", "NullTransport", "LocalTransport"]
