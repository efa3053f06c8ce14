"""
sciupload - bounded-concurrency file uploads to the SciServer fileservice.

Usage:
    from sciupload import UploadRequest, upload

    request = UploadRequest(
        endpoint="https://apps.sciserver.org/fileservice/api/file",
        token=token,
        dest_path="Storage/me/persistent/data",
        files=["a.csv", "b.csv"],
        concurrency=4,
        retries=3,
    )
    report = await upload(request)
    print(report.summary_line())

    # Subscribe to per-file events
    async with UploadOrchestrator(request) as orchestrator:
        orchestrator.events.on("file_fail", lambda task, outcome: ...)
        report = await orchestrator.run()
"""
from .errors import ConfigurationError, ErrorKind, SciUploadError, TransportError
from .models import (
    FailureDetail,
    FileTask,
    OutcomeStatus,
    Report,
    TaskState,
    UploadOutcome,
    UploadRequest,
)
from .orchestrator import UploadOrchestrator, UploadScheduler, RetryPolicy, aggregate, upload
from .protocols import ITransport
from .services import HTTPTransport

__version__ = "0.1.0"
__all__ = [
    # Main
    "upload",
    "UploadOrchestrator",
    "UploadScheduler",
    "RetryPolicy",
    "aggregate",
    # Models
    "UploadRequest",
    "FileTask",
    "TaskState",
    "UploadOutcome",
    "OutcomeStatus",
    "Report",
    "FailureDetail",
    # Transport
    "ITransport",
    "HTTPTransport",
    # Errors
    "SciUploadError",
    "ConfigurationError",
    "TransportError",
    "ErrorKind",
]
