"""
Module for the lifecycle events published by an upload session.
"""
import logging
import threading
from collections import defaultdict
from enum import Enum
from typing import Any, Callable, DefaultDict, Dict, List, Union

logger = logging.getLogger(__name__)


class UploadEvent(str, Enum):
    """Event kinds a handler can subscribe to."""
    PROGRESS = "progress"
    FILE_RETRY = "fileRetry"
    ERROR = "error"
    FINISH = "finish"
    ONLINE = "online"
    OFFLINE = "offline"


# online and offline carry no payload
_NO_PAYLOAD = (UploadEvent.ONLINE, UploadEvent.OFFLINE)

# Kinds whose latest payload is handed to handlers subscribing later
REPLAYED_EVENTS = (UploadEvent.PROGRESS, UploadEvent.FINISH, UploadEvent.ERROR)

EventKind = Union[UploadEvent, str]
Handler = Callable[..., Any]


def as_event(kind: EventKind) -> UploadEvent:
    try:
        return UploadEvent(kind)
    except ValueError:
        raise ValueError(f"Unknown event kind: {kind!r}") from None


class EventEmitter:
    """Dispatches events to subscribed handlers.

    The last payload of each replayed kind is kept, and a handler subscribing
    after it was emitted receives it at once. This way a late subscriber
    still learns how the upload ended and how far it got.
    """

    def __init__(self):
        self._handlers: DefaultDict[UploadEvent, List[Handler]] = defaultdict(list)
        self._last: Dict[UploadEvent, Any] = {}
        self._lock = threading.Lock()

    def subscribe(self, kind: EventKind, handler: Handler) -> None:
        """Register a handler for an event kind.

        Args:
            kind: One of the UploadEvent kinds, or its string value
            handler: Called with the event payload; online/offline handlers
                take no argument
        """
        if not callable(handler):
            raise TypeError("handler must be callable")
        event = as_event(kind)
        with self._lock:
            self._handlers[event].append(handler)
            replay = event in self._last
            payload = self._last.get(event)

        if replay:
            self._call(event, handler, payload)

    def unsubscribe(self, kind: EventKind, handler: Handler) -> None:
        with self._lock:
            handlers = self._handlers[as_event(kind)]
            if handler in handlers:
                handlers.remove(handler)

    def emit(self, kind: UploadEvent, payload: Any = None) -> None:
        """Call every handler of an event kind.

        A failing handler is logged and does not stop the others.
        """
        with self._lock:
            if kind in REPLAYED_EVENTS:
                self._last[kind] = payload
            handlers = list(self._handlers[kind])

        for handler in handlers:
            self._call(kind, handler, payload)

    def _call(self, kind: UploadEvent, handler: Handler, payload: Any) -> None:
        try:
            if kind in _NO_PAYLOAD:
                handler()
            else:
                handler(payload)
        except Exception as e:
            logger.error(f"Error in {kind.value} handler {handler!r}: {e}")
