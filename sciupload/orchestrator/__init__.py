"""Orchestrator package - schedules, retries and reports uploads."""
from .core import UploadOrchestrator, upload
from .report import UploadProgress, aggregate
from .retry import AttemptResult, RetryPolicy
from .scheduler import UploadScheduler

__all__ = [
    "UploadOrchestrator",
    "upload",
    "UploadScheduler",
    "RetryPolicy",
    "AttemptResult",
    "UploadProgress",
    "aggregate",
]
