"""Report aggregation and live progress counters."""
from dataclasses import dataclass, field
from typing import Iterable, List, Tuple
import time

from ..errors import ErrorKind
from ..models import FailureDetail, FileTask, OutcomeStatus, Report, UploadOutcome


def aggregate(
    outcomes: Iterable[Tuple[FileTask, UploadOutcome]],
    elapsed: float = 0.0,
) -> Report:
    """
    Partition outcomes into succeeded, skipped and failed.

    Pure function: every pair lands in exactly one category, and failures keep
    local path, remote path, error kind and attempt count for reporting.
    Pairs are sorted by input index so the report order is stable.
    """
    succeeded: List[Tuple[FileTask, UploadOutcome]] = []
    skipped: List[Tuple[FileTask, UploadOutcome]] = []
    failed: List[Tuple[FileTask, UploadOutcome]] = []
    failures: List[FailureDetail] = []
    bytes_uploaded = 0
    files_retried = 0
    total_retries = 0

    for task, outcome in sorted(outcomes, key=lambda pair: pair[0].index):
        if outcome.status == OutcomeStatus.SUCCEEDED:
            succeeded.append((task, outcome))
            bytes_uploaded += task.size
        elif outcome.status == OutcomeStatus.SKIPPED:
            skipped.append((task, outcome))
        else:
            failed.append((task, outcome))
            error = outcome.error
            failures.append(
                FailureDetail(
                    local_path=task.local_path,
                    remote_path=task.remote_path,
                    kind=error.kind if error is not None else ErrorKind.INTERNAL,
                    message=error.message if error is not None else (outcome.reason or "unknown error"),
                    attempts=outcome.attempts,
                    status_code=error.status_code if error is not None else None,
                    elapsed=task.elapsed,
                )
            )

        if outcome.retries > 0:
            files_retried += 1
            total_retries += outcome.retries

    return Report(
        succeeded=tuple(succeeded),
        skipped=tuple(skipped),
        failed=tuple(failed),
        failures=tuple(failures),
        bytes_uploaded=bytes_uploaded,
        elapsed=elapsed,
        files_retried=files_retried,
        total_retries=total_retries,
    )


@dataclass
class UploadProgress:
    """Running counters updated as outcomes arrive."""
    total: int
    success: int = 0
    skipped: int = 0
    error: int = 0
    files_retried: int = 0
    total_retries: int = 0
    bytes: int = 0
    started: float = field(default_factory=time.monotonic)

    @property
    def done(self) -> int:
        return self.success + self.skipped + self.error

    @property
    def elapsed(self) -> float:
        return time.monotonic() - self.started

    def update(self, task: FileTask, outcome: UploadOutcome) -> None:
        if outcome.status == OutcomeStatus.SUCCEEDED:
            self.success += 1
            self.bytes += task.size
        elif outcome.status == OutcomeStatus.SKIPPED:
            self.skipped += 1
        else:
            self.error += 1
        if outcome.retries > 0:
            self.files_retried += 1
            self.total_retries += outcome.retries

    def status_bar(self) -> str:
        elapsed = self.elapsed
        mbs = self.bytes / (1024.0 * 1024.0)
        mbps = mbs / (elapsed + 1e-6)
        return (
            f"Uploaded {self.success}/{self.total} files, {self.skipped} skipped, "
            f"{self.error} errors {self.files_retried}|{self.total_retries} retries "
            f"{mbs:.2f} MB in {elapsed:.2f} seconds ({mbps:.2f} MB/s)"
        )
