from pathlib import Path
from typing import Awaitable, Callable, List, Optional, Tuple
import asyncio
import logging
import time

from ..errors import ErrorKind, TransportError
from ..models import FileTask, Report, TaskState, UploadOutcome, UploadRequest
from ..protocols import ITransport
from ..utils.events import (
    EventEmitter,
    FILE_COMPLETE,
    FILE_FAIL,
    FILE_SKIP,
    FILE_START,
    PROGRESS,
)
from .report import UploadProgress, aggregate
from .retry import DEFAULT_BACKOFF, RetryPolicy
logger = logging.getLogger(__name__)

SKIP_REASON_EXISTS = "already exists"


class UploadScheduler:
    """
    Uploads a list of files with at most N in flight.

    - A fixed pool of min(concurrency, files) workers pulls FileTasks from a
      queue in input order; no task is spawned per file
    - Existence check (when overwrite is off) and upload both run inside the
      worker, each through its own retry budget
    - A failing file never cancels the others; every file records exactly
      one outcome
    """

    def __init__(
        self,
        transport: ITransport,
        events: Optional[EventEmitter] = None,
        backoff: float = DEFAULT_BACKOFF,
        sleep: Callable[[float], Awaitable[None]] = asyncio.sleep,
    ):
        self._transport = transport
        self._events = events or EventEmitter()
        self._backoff = backoff
        self._sleep = sleep

    @property
    def events(self) -> EventEmitter:
        return self._events

    def build_tasks(self, request: UploadRequest) -> List[FileTask]:
        return [
            FileTask(local_path=Path(path), remote_path=request.remote_path_for(path), index=idx)
            for idx, path in enumerate(request.files, 1)
        ]

    async def run(self, request: UploadRequest) -> Report:
        """
        Upload every file in the request and return the aggregated report.

        Raises ConfigurationError before any I/O if the request is invalid.
        """
        request.validate()
        retry = RetryPolicy(request.retries, backoff=self._backoff, sleep=self._sleep)
        tasks = self.build_tasks(request)
        started = time.monotonic()

        if not tasks:
            logger.info("No files to upload")
            return aggregate([], elapsed=0.0)

        logger.info(
            f"Starting upload: {len(tasks)} files to {request.dest_path or '/'} "
            f"(max {request.concurrency} parallel, {request.retries} retries, "
            f"overwrite={'on' if request.overwrite else 'off'})"
        )

        pending: "asyncio.Queue[FileTask]" = asyncio.Queue()
        for task in tasks:
            pending.put_nowait(task)
        finished: "asyncio.Queue[Tuple[FileTask, UploadOutcome]]" = asyncio.Queue()
        progress = UploadProgress(total=len(tasks))

        pool_size = min(request.concurrency, len(tasks))
        workers = [
            asyncio.create_task(
                self._worker(pending, finished, retry, request.overwrite, len(tasks))
            )
            for _ in range(pool_size)
        ]

        outcomes: List[Tuple[FileTask, UploadOutcome]] = []
        try:
            while len(outcomes) < len(tasks):
                task, outcome = await finished.get()
                outcomes.append((task, outcome))
                progress.update(task, outcome)
                await self._events.emit(PROGRESS, progress)
        finally:
            for worker in workers:
                worker.cancel()
            await asyncio.gather(*workers, return_exceptions=True)

        report = aggregate(outcomes, elapsed=time.monotonic() - started)
        logger.info(report.summary_line())
        return report

    async def _worker(
        self,
        pending: "asyncio.Queue[FileTask]",
        finished: "asyncio.Queue[Tuple[FileTask, UploadOutcome]]",
        retry: RetryPolicy,
        overwrite: bool,
        total: int,
    ) -> None:
        # Queue is filled before workers start, so empty means done
        while not pending.empty():
            task = pending.get_nowait()
            finished.put_nowait(await self._process(task, retry, overwrite, total))

    async def _process(
        self,
        task: FileTask,
        retry: RetryPolicy,
        overwrite: bool,
        total: int,
    ) -> Tuple[FileTask, UploadOutcome]:
        label = f"[{task.index}/{total}] {task.name}"
        task.started_at = time.monotonic()
        try:
            outcome = await self._run_task(task, retry, overwrite, label)
        except Exception as e:
            error_msg = str(e) or f"{type(e).__name__}"
            logger.error(f"{label} Unexpected error: {error_msg}")
            error = TransportError(ErrorKind.INTERNAL, error_msg)
            if not task.state.terminal:
                task.move_to(TaskState.FAILED)
            outcome = UploadOutcome.failed(error, task.attempts)
            await self._events.emit(FILE_FAIL, task, outcome)
        return task, outcome

    async def _run_task(
        self,
        task: FileTask,
        retry: RetryPolicy,
        overwrite: bool,
        label: str,
    ) -> UploadOutcome:
        await self._events.emit(FILE_START, task)

        if not overwrite:
            check = await retry.call(
                lambda: self._transport.check_exists(task.remote_path),
                label=f"{label} exists-check",
            )
            if not check.ok:
                task.move_to(TaskState.FAILED)
                outcome = UploadOutcome.failed(check.error, check.attempts)
                logger.error(f"{label} ✗ Existence check failed: {check.error}")
                await self._events.emit(FILE_FAIL, task, outcome)
                return outcome
            if check.value:
                return await self._skip(task, label)

        async def put() -> None:
            task.attempts += 1
            task.move_to(TaskState.DISPATCHED)
            sent = await self._transport.put_file(task.local_path, task.remote_path)
            if isinstance(sent, int):
                task.size = sent

        logger.info(f"{label} Uploading to {task.remote_path}")
        outcome = await retry.attempt(put, label=label)

        if outcome.success:
            task.move_to(TaskState.SUCCEEDED)
            logger.info(f"{label} ✓ Success ({outcome.attempts} attempt(s))")
            await self._events.emit(FILE_COMPLETE, task, outcome)
            return outcome

        # Appeared remotely between the existence check and the upload
        if outcome.error_kind == ErrorKind.ALREADY_EXISTS and not overwrite:
            return await self._skip(task, label, attempts=outcome.attempts)

        task.move_to(TaskState.FAILED)
        logger.error(f"{label} ✗ Failed after {outcome.attempts} attempt(s): {outcome.error}")
        await self._events.emit(FILE_FAIL, task, outcome)
        return outcome

    async def _skip(self, task: FileTask, label: str, attempts: int = 0) -> UploadOutcome:
        task.move_to(TaskState.SKIPPED)
        outcome = UploadOutcome.skipped(SKIP_REASON_EXISTS, attempts=attempts)
        logger.info(f"{label} Skipped: {SKIP_REASON_EXISTS}")
        await self._events.emit(FILE_SKIP, task, outcome)
        return outcome
