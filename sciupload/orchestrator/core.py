"""Core orchestrator - scopes a transport to one upload run."""
from typing import Optional

from ..models import Report, UploadRequest
from ..protocols import ITransport
from ..services.transport import DEFAULT_TIMEOUT, HTTPTransport
from ..utils.events import EventEmitter
from .retry import DEFAULT_BACKOFF
from .scheduler import UploadScheduler


class UploadOrchestrator:
    """
    Runs one UploadRequest against an injected or self-built transport.

    Usage:
        async with UploadOrchestrator(request) as orchestrator:
            orchestrator.events.on("file_fail", on_fail)
            report = await orchestrator.run()

        # With a custom transport (not closed by the orchestrator)
        async with UploadOrchestrator(request, transport=my_transport) as orchestrator:
            report = await orchestrator.run()
    """

    def __init__(
        self,
        request: UploadRequest,
        transport: Optional[ITransport] = None,
        events: Optional[EventEmitter] = None,
        backoff: float = DEFAULT_BACKOFF,
        timeout: float = DEFAULT_TIMEOUT,
    ):
        """
        Initialize orchestrator with dependencies.

        Args:
            request: Validated upload request
            transport: Transport to use; an HTTPTransport is built when omitted
            events: Event emitter shared with the scheduler
            backoff: Base retry delay in seconds
            timeout: HTTP timeout for a self-built transport
        """
        self._request = request
        self._external_transport = transport
        self._events = events or EventEmitter()
        self._backoff = backoff
        self._timeout = timeout
        self._owned_transport: Optional[HTTPTransport] = None
        self._transport: Optional[ITransport] = None

    @property
    def events(self) -> EventEmitter:
        return self._events

    async def __aenter__(self):
        """Validate the request and open the transport."""
        self._request.validate()
        if self._external_transport is not None:
            self._transport = self._external_transport
        else:
            self._owned_transport = HTTPTransport(
                self._request.endpoint,
                self._request.token,
                overwrite=self._request.overwrite,
                timeout=self._timeout,
            )
            await self._owned_transport.__aenter__()
            self._transport = self._owned_transport
        return self

    async def __aexit__(self, *args):
        """Close the transport if this orchestrator built it."""
        if self._owned_transport is not None:
            await self._owned_transport.__aexit__(*args)
            self._owned_transport = None
        self._transport = None

    async def run(self) -> Report:
        if self._transport is None:
            raise RuntimeError("UploadOrchestrator not initialized. Use 'async with' context.")
        scheduler = UploadScheduler(self._transport, events=self._events, backoff=self._backoff)
        return await scheduler.run(self._request)


async def upload(
    request: UploadRequest,
    transport: Optional[ITransport] = None,
    events: Optional[EventEmitter] = None,
    backoff: float = DEFAULT_BACKOFF,
) -> Report:
    """
    Upload every file of the request and return the final report.

    Raises ConfigurationError before any network activity when the request is
    invalid. Per-file failures never raise; they are reported in the result.
    """
    request.validate()
    async with UploadOrchestrator(
        request, transport=transport, events=events, backoff=backoff
    ) as orchestrator:
        return await orchestrator.run()
