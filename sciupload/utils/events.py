from collections import defaultdict
from typing import Callable, Dict, List
import inspect
import logging
logger = logging.getLogger(__name__)

# Events published by UploadScheduler
FILE_START = "file_start"
FILE_SKIP = "file_skip"
FILE_COMPLETE = "file_complete"
FILE_FAIL = "file_fail"
PROGRESS = "progress"


class EventEmitter:
    """
    Publishes scheduler lifecycle events to sync or async listeners.

    Listeners run in registration order on the emitting coroutine. Nothing is
    held across an awaited listener, so one slow listener only delays the
    worker that emitted the event.
    """

    def __init__(self):
        self._listeners: Dict[str, List[Callable]] = defaultdict(list)

    def on(self, event_name: str, callback: Callable) -> None:
        listeners = self._listeners[event_name]
        if callback not in listeners:
            listeners.append(callback)

    def off(self, event_name: str, callback: Callable) -> None:
        listeners = self._listeners.get(event_name)
        if listeners and callback in listeners:
            listeners.remove(callback)

    async def emit(self, event_name: str, *args, **kwargs) -> None:
        """Call every listener of event_name; a failing listener is logged and skipped."""
        for callback in tuple(self._listeners.get(event_name, ())):
            try:
                result = callback(*args, **kwargs)
                if inspect.isawaitable(result):
                    await result
            except Exception as e:
                logger.error(f"Listener {getattr(callback, '__name__', callback)!r} failed on {event_name}: {e}")
