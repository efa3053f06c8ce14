"""
Protocols (Interfaces) for Dependency Inversion.

The scheduler only talks to a transport through this interface, so tests and
alternative backends can be injected.
"""
from pathlib import Path
from typing import Protocol, runtime_checkable


@runtime_checkable
class ITransport(Protocol):
    """Interface for remote file storage operations."""

    async def check_exists(self, remote_path: str) -> bool:
        """Return True if a file is present at remote_path. Raises TransportError."""
        ...

    async def put_file(self, local_path: Path, remote_path: str) -> int:
        """Upload local_path to remote_path, return bytes sent. Raises TransportError."""
        ...
