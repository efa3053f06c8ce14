"""
Models for sciupload.

UploadRequest and UploadOutcome are immutable; FileTask is the only mutable
record and is owned by a single worker at a time.
"""
from dataclasses import dataclass
from enum import Enum
from pathlib import Path
from typing import Optional, Tuple, Union
import time

import httpx

from .errors import ConfigurationError, ErrorKind, TransportError


DEFAULT_ENDPOINT = "https://apps.sciserver.org/fileservice/api/file"
DEFAULT_CONCURRENCY = 10
DEFAULT_RETRIES = 3


def join_remote(dest_path: str, name: str) -> str:
    """Join a volume path and a file name with a single slash."""
    dest = dest_path.strip("/")
    if not dest:
        return name
    return f"{dest}/{name}"


@dataclass(frozen=True)
class UploadRequest:
    """Immutable input of one upload run."""
    endpoint: str
    token: str
    dest_path: str
    files: Tuple[Path, ...] = ()
    concurrency: int = DEFAULT_CONCURRENCY
    retries: int = DEFAULT_RETRIES
    overwrite: bool = False

    def __post_init__(self):
        # Accept any sequence of str/Path, store a tuple of Path
        object.__setattr__(self, "files", tuple(Path(f) for f in self.files))

    def validate(self) -> "UploadRequest":
        """Raise ConfigurationError if the request cannot be scheduled."""
        if not self.endpoint or not self.endpoint.strip("/"):
            raise ConfigurationError("endpoint must not be empty")
        try:
            scheme = httpx.URL(self.endpoint).scheme
        except httpx.InvalidURL as exc:
            raise ConfigurationError(f"endpoint is not a valid URL: {exc}") from exc
        if scheme not in ("http", "https"):
            raise ConfigurationError(f"endpoint must be an http(s) URL, got {self.endpoint!r}")
        if not self.token:
            raise ConfigurationError("token must not be empty")
        if isinstance(self.concurrency, bool) or not isinstance(self.concurrency, int):
            raise ConfigurationError(f"concurrency must be an integer, got {self.concurrency!r}")
        if self.concurrency < 1:
            raise ConfigurationError(f"concurrency must be at least 1, got {self.concurrency}")
        if isinstance(self.retries, bool) or not isinstance(self.retries, int):
            raise ConfigurationError(f"retries must be an integer, got {self.retries!r}")
        if self.retries < 0:
            raise ConfigurationError(f"retries must not be negative, got {self.retries}")
        return self

    def remote_path_for(self, local_path: Union[str, Path]) -> str:
        return join_remote(self.dest_path, Path(local_path).name)


class TaskState(Enum):
    """Lifecycle of a FileTask."""
    PENDING = "pending"
    SKIPPED = "skipped"
    DISPATCHED = "dispatched"
    SUCCEEDED = "succeeded"
    FAILED = "failed"

    @property
    def terminal(self) -> bool:
        return self in (TaskState.SKIPPED, TaskState.SUCCEEDED, TaskState.FAILED)


_TRANSITIONS = {
    TaskState.PENDING: {TaskState.SKIPPED, TaskState.DISPATCHED, TaskState.FAILED},
    TaskState.DISPATCHED: {TaskState.DISPATCHED, TaskState.SUCCEEDED, TaskState.FAILED, TaskState.SKIPPED},
}


@dataclass
class FileTask:
    """One input file moving through the scheduler."""
    local_path: Path
    remote_path: str
    index: int = 0
    attempts: int = 0
    state: TaskState = TaskState.PENDING
    size: int = 0
    started_at: Optional[float] = None
    elapsed: float = 0.0

    @property
    def name(self) -> str:
        return self.local_path.name

    def move_to(self, state: TaskState) -> None:
        allowed = _TRANSITIONS.get(self.state, set())
        if state not in allowed:
            raise RuntimeError(
                f"invalid transition for {self.local_path}: {self.state.value} -> {state.value}"
            )
        if state == TaskState.DISPATCHED and self.started_at is None:
            self.started_at = time.monotonic()
        if state.terminal and self.started_at is not None:
            self.elapsed = time.monotonic() - self.started_at
        self.state = state


class OutcomeStatus(Enum):
    """Terminal outcome of a FileTask."""
    SUCCEEDED = "succeeded"
    SKIPPED = "skipped"
    FAILED = "failed"


@dataclass(frozen=True)
class UploadOutcome:
    """Immutable result of processing one file."""
    status: OutcomeStatus
    attempts: int = 0
    reason: Optional[str] = None
    error: Optional[TransportError] = None

    @property
    def success(self) -> bool:
        return self.status == OutcomeStatus.SUCCEEDED

    @property
    def retries(self) -> int:
        return max(self.attempts - 1, 0)

    @property
    def error_kind(self) -> Optional[ErrorKind]:
        return self.error.kind if self.error is not None else None

    @classmethod
    def succeeded(cls, attempts: int = 1):
        return cls(status=OutcomeStatus.SUCCEEDED, attempts=attempts)

    @classmethod
    def skipped(cls, reason: str, attempts: int = 0):
        return cls(status=OutcomeStatus.SKIPPED, attempts=attempts, reason=reason)

    @classmethod
    def failed(cls, error: TransportError, attempts: int):
        return cls(status=OutcomeStatus.FAILED, attempts=attempts, reason=str(error), error=error)


@dataclass(frozen=True)
class FailureDetail:
    """User-facing detail of one failed file."""
    local_path: Path
    remote_path: str
    kind: ErrorKind
    message: str
    attempts: int
    status_code: Optional[int] = None
    elapsed: float = 0.0


@dataclass(frozen=True)
class Report:
    """Aggregate over all outcomes of one run."""
    succeeded: Tuple[Tuple[FileTask, UploadOutcome], ...] = ()
    skipped: Tuple[Tuple[FileTask, UploadOutcome], ...] = ()
    failed: Tuple[Tuple[FileTask, UploadOutcome], ...] = ()
    failures: Tuple[FailureDetail, ...] = ()
    bytes_uploaded: int = 0
    elapsed: float = 0.0
    files_retried: int = 0
    total_retries: int = 0

    @property
    def succeeded_count(self) -> int:
        return len(self.succeeded)

    @property
    def skipped_count(self) -> int:
        return len(self.skipped)

    @property
    def failed_count(self) -> int:
        return len(self.failed)

    @property
    def total(self) -> int:
        return self.succeeded_count + self.skipped_count + self.failed_count

    @property
    def success(self) -> bool:
        return self.failed_count == 0

    @property
    def exit_code(self) -> int:
        return 0 if self.success else 1

    def summary_line(self) -> str:
        mbs = self.bytes_uploaded / (1024.0 * 1024.0)
        mbps = mbs / (self.elapsed + 1e-6)
        return (
            f"Uploaded {self.succeeded_count}/{self.total} files, "
            f"{self.skipped_count} skipped, {self.failed_count} errors "
            f"{self.files_retried}|{self.total_retries} retries "
            f"{mbs:.2f} MB in {self.elapsed:.2f} seconds ({mbps:.2f} MB/s)"
        )
