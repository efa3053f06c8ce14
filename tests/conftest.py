"""Shared test doubles."""
import asyncio
from pathlib import Path, PurePosixPath
from typing import Dict, Iterable, List, Optional

import pytest

from sciupload.models import UploadRequest


class FakeTransport:
    """
    In-memory transport.

    put_errors / check_errors map a file name to a list of errors (or None for
    success) consumed one per call; once the list is empty calls succeed.
    """

    def __init__(
        self,
        existing: Iterable[str] = (),
        put_errors: Optional[Dict[str, List]] = None,
        check_errors: Optional[Dict[str, List]] = None,
        delay: float = 0.0,
        size: int = 10,
    ):
        self.existing = set(existing)
        self.put_errors = {k: list(v) for k, v in (put_errors or {}).items()}
        self.check_errors = {k: list(v) for k, v in (check_errors or {}).items()}
        self.delay = delay
        self.size = size
        self.put_calls: List[str] = []
        self.check_calls: List[str] = []
        self.in_flight = 0
        self.max_in_flight = 0

    @staticmethod
    def _name(remote_path: str) -> str:
        return PurePosixPath(remote_path).name

    async def check_exists(self, remote_path: str) -> bool:
        self.check_calls.append(remote_path)
        script = self.check_errors.get(self._name(remote_path))
        if script:
            error = script.pop(0)
            if error is not None:
                raise error
        return self._name(remote_path) in self.existing

    async def put_file(self, local_path: Path, remote_path: str) -> int:
        self.put_calls.append(remote_path)
        self.in_flight += 1
        self.max_in_flight = max(self.max_in_flight, self.in_flight)
        try:
            if self.delay:
                await asyncio.sleep(self.delay)
            script = self.put_errors.get(self._name(remote_path))
            if script:
                error = script.pop(0)
                if error is not None:
                    raise error
            return self.size
        finally:
            self.in_flight -= 1


@pytest.fixture
def fake_transport_cls():
    return FakeTransport


@pytest.fixture
def make_request():
    def _make(files=("a.txt", "b.txt", "c.txt"), **kwargs):
        params = dict(
            endpoint="https://files.example.org/fileservice/api/file",
            token="secret-token",
            dest_path="Storage/alice/persistent",
            files=files,
            concurrency=2,
            retries=3,
            overwrite=False,
        )
        params.update(kwargs)
        return UploadRequest(**params)

    return _make
