"""
Module driving a chunked upload: planning, sending, retrying and suspending.
"""
import logging
import queue
import threading
import time
from enum import Enum
from typing import Any, Dict, Mapping, Optional

from .connectivity import ConnectivityMonitor
from .events import EventEmitter, EventKind, Handler, UploadEvent
from .exceptions import ConfigurationError, FatalServerError, TransientTransferError
from .models import FileLike, Outcome, OutcomeKind, UploadConfig, UploadState
from .planner import ChunkPlanner
from .retry import RetryPolicy
from .source import FileChunkSource, generate_file_id
from .transport import RequestsTransport, classify_response

logger = logging.getLogger(__name__)

FILE_ID_HEADER = "uploader-file-id"
CHUNKS_TOTAL_HEADER = "uploader-chunks-total"
CHUNK_NUMBER_HEADER = "uploader-chunk-number"


class _Command(Enum):
    TOGGLE_PAUSE = "toggle_pause"
    OFFLINE = "offline"
    ONLINE = "online"


class ChunkedUploader:
    """Uploads one file as a sequence of POST requests, one chunk at a time.

    The upload starts as soon as the object is built and runs on a worker
    thread that owns all session state. Pause requests and connectivity
    signals are queued for that thread, which applies them before each chunk
    and right after each request completes. Failures after construction are
    only reported through the ``error`` event.
    """

    def __init__(self, endpoint: str, file: FileLike,
                 headers: Optional[Mapping[str, Any]] = None,
                 post_params: Optional[Mapping[str, Any]] = None,
                 chunk_size: float = 10, retries: int = 5,
                 delay_before_retry: float = 5, *,
                 transport=None, source=None,
                 connectivity: Optional[ConnectivityMonitor] = None,
                 listeners: Optional[Mapping[EventKind, Handler]] = None):
        """Validate the options and start uploading.

        Args:
            endpoint: URL receiving the chunks
            file: Path or seekable binary file object to upload
            headers: Extra headers sent with every chunk
            post_params: Form fields sent with the last chunk
            chunk_size: Chunk size in megabytes (10^6 bytes)
            retries: Retries allowed over the whole upload
            delay_before_retry: Seconds to wait before a retry
            transport: Object with send/read_body/release, defaults to
                a RequestsTransport
            source: Object with size/name/read, defaults to a FileChunkSource
            connectivity: Monitor whose signals suspend and resume the upload
            listeners: Handlers subscribed before the upload starts

        Raises:
            ConfigurationError: If an option is invalid
        """
        self.config = UploadConfig(
            endpoint=endpoint,
            file=file,
            headers=headers,
            post_params=post_params,
            chunk_size=chunk_size,
            retries=retries,
            delay_before_retry=delay_before_retry
        )
        self.endpoint = self.config.endpoint
        self.post_params = dict(post_params) if post_params else None

        self.source = source or FileChunkSource(self.config.file)
        try:
            self.file_size = self.source.size
        except OSError as e:
            raise ConfigurationError(f"Cannot determine size of file: {e}") from e

        self._owns_transport = transport is None
        self.transport = transport or RequestsTransport()

        self.planner = ChunkPlanner(self.file_size, self.config.chunk_bytes)
        self.total_chunks = self.planner.total_chunks
        self.file_id = generate_file_id(self.file_size)

        self.headers: Dict[str, str] = {str(k): str(v) for k, v in (headers or {}).items()}
        self.headers[FILE_ID_HEADER] = self.file_id
        self.headers[CHUNKS_TOTAL_HEADER] = str(self.total_chunks)

        self.chunk_index = 0
        self.paused = False
        self.offline = False
        self._phase = UploadState.IDLE

        self._events = EventEmitter()
        for kind, handler in (listeners or {}).items():
            self._events.subscribe(kind, handler)
        self.retry_policy = RetryPolicy(self.config.retries, self.config.delay_before_retry, self._events)

        self._commands: "queue.Queue[_Command]" = queue.Queue()
        self._next_step_at: Optional[float] = None
        self._done = threading.Event()

        self.connectivity = connectivity
        if connectivity is not None:
            connectivity.register_listener(self._on_connectivity)

        logger.info(
            f"Starting upload {self.file_id} of {self.source.name} "
            f"({self.file_size} bytes, {self.total_chunks} chunks) to {self.endpoint}"
        )
        self._worker = threading.Thread(
            target=self._run,
            name=f"upload-{self.file_id}",
            daemon=True
        )
        self._worker.start()

    @classmethod
    def from_config(cls, config: UploadConfig, **collaborators) -> "ChunkedUploader":
        """Start an upload described by an UploadConfig.

        Args:
            config: Validated upload options
            **collaborators: transport, source, connectivity or listeners
        """
        return cls(
            config.endpoint,
            config.file,
            headers=config.headers,
            post_params=config.post_params,
            chunk_size=config.chunk_size,
            retries=config.retries,
            delay_before_retry=config.delay_before_retry,
            **collaborators
        )

    # Public API

    def subscribe(self, kind: EventKind, handler: Handler) -> None:
        """Register a handler for an event kind; several handlers may share a kind."""
        self._events.subscribe(kind, handler)

    on = subscribe

    def toggle_pause(self) -> None:
        """Pause a running upload or resume a paused one.

        Pausing never aborts a request in flight; the upload stops before the
        next chunk. Resuming continues with the current chunk.
        """
        self._commands.put(_Command.TOGGLE_PAUSE)

    def wait(self, timeout: Optional[float] = None) -> bool:
        """Block until the upload finished or failed.

        Returns:
            True if the upload reached a terminal state within the timeout
        """
        return self._done.wait(timeout)

    @property
    def state(self) -> UploadState:
        if self._phase.is_terminal:
            return self._phase
        if self.paused:
            return UploadState.PAUSED
        if self.offline:
            return UploadState.OFFLINE
        return self._phase

    @property
    def retry_count(self) -> int:
        return self.retry_policy.attempts

    def request_headers(self, index: int) -> Dict[str, str]:
        """Headers of the request carrying a chunk."""
        return {**self.headers, CHUNK_NUMBER_HEADER: str(index)}

    # Worker thread

    @property
    def _suspended(self) -> bool:
        return self.paused or self.offline

    def _on_connectivity(self, online: bool) -> None:
        self._commands.put(_Command.ONLINE if online else _Command.OFFLINE)

    def _run(self) -> None:
        self._next_step_at = time.monotonic()
        try:
            while not self._phase.is_terminal:
                self._wait_for_commands()
                if self._next_step_at is not None and time.monotonic() >= self._next_step_at:
                    self._next_step_at = None
                    self._step()
        finally:
            if self.connectivity is not None:
                self.connectivity.unregister_listener(self._on_connectivity)
            if self._owns_transport:
                self.transport.close()
            self._done.set()

    def _wait_for_commands(self) -> None:
        """Sleep until the next step is due or a command arrives."""
        timeout = None
        if self._next_step_at is not None:
            timeout = max(0.0, self._next_step_at - time.monotonic())

        try:
            command = self._commands.get(timeout=timeout)
        except queue.Empty:
            return

        self._handle_command(command)
        self._drain_commands()

    def _drain_commands(self) -> None:
        while True:
            try:
                command = self._commands.get_nowait()
            except queue.Empty:
                return
            self._handle_command(command)

    def _handle_command(self, command: _Command) -> None:
        if command is _Command.TOGGLE_PAUSE:
            self.paused = not self.paused
            logger.info(f"Upload {self.file_id} {'paused' if self.paused else 'resumed'} at chunk {self.chunk_index}")
            self._resume()

        elif command is _Command.OFFLINE:
            self.offline = True
            logger.info(f"Upload {self.file_id} offline at chunk {self.chunk_index}")
            self._events.emit(UploadEvent.OFFLINE)

        elif command is _Command.ONLINE:
            if not self.offline:
                logger.debug(f"Ignoring online signal, upload {self.file_id} is not offline")
                return
            self.offline = False
            logger.info(f"Upload {self.file_id} back online at chunk {self.chunk_index}")
            self._events.emit(UploadEvent.ONLINE)
            self._resume()

    def _resume(self) -> None:
        if not self._suspended and not self._phase.is_terminal:
            self._next_step_at = time.monotonic()

    def _step(self) -> None:
        """Send the current chunk and act on the result."""
        if self._suspended:
            return

        index = self.chunk_index
        self._phase = UploadState.SENDING
        try:
            outcome = self._send_chunk(index)
            self._drain_commands()

            if outcome.kind is OutcomeKind.SUCCESS:
                self._on_success(index, outcome)
            elif self._suspended:
                logger.info(f"Discarding failed attempt of chunk {index}, upload is suspended")
                self._release(outcome)
            elif outcome.kind is OutcomeKind.TRANSIENT:
                self._release(outcome)
                self._on_transient_failure(index, outcome)
            else:
                self._on_fatal_status(index, outcome)

        except Exception as e:
            logger.exception(f"Unexpected error uploading chunk {index}")
            self._fail(e)

    def _send_chunk(self, index: int) -> Outcome:
        start, end = self.planner.byte_range(index)
        chunk = self.source.read(index, start, end)
        post_params = self.post_params if self.planner.is_last(index) else None

        logger.debug(f"Sending chunk {index + 1}/{self.total_chunks} ({chunk.size} bytes)")
        try:
            response = self.transport.send(
                self.endpoint,
                self.request_headers(index),
                chunk,
                post_params,
                filename=self.source.name
            )
        except Exception as e:
            # any failure to deliver the request counts as transient
            logger.warning(f"Transport error on chunk {index}: {e}")
            return Outcome(kind=OutcomeKind.TRANSIENT, error=e)

        return classify_response(response)

    def _on_fatal_status(self, index: int, outcome: Outcome) -> None:
        try:
            body = self.transport.read_body(outcome.response)
        except TransientTransferError as e:
            logger.warning(f"Could not read body of rejected chunk {index}: {e}")
            body = None
        self._fail(FatalServerError(outcome.status_code, index, outcome.response, body=body))

    def _release(self, outcome: Outcome) -> None:
        if outcome.response is not None:
            self.transport.release(outcome.response)

    def _on_success(self, index: int, outcome: Outcome) -> None:
        self.chunk_index = index + 1
        progress = self.planner.progress(self.chunk_index)

        if self.chunk_index < self.total_chunks:
            self._release(outcome)
            self._events.emit(UploadEvent.PROGRESS, progress)
            self._next_step_at = time.monotonic()
            return

        self._events.emit(UploadEvent.PROGRESS, progress)
        body = self.transport.read_body(outcome.response)
        self._phase = UploadState.FINISHED
        logger.info(f"Upload {self.file_id} finished after {self.total_chunks} chunks")
        self._events.emit(UploadEvent.FINISH, body)

    def _on_transient_failure(self, index: int, outcome: Outcome) -> None:
        decision = self.retry_policy.on_failure(index)
        if decision is None:
            self._phase = UploadState.FAILED
            return

        self._phase = UploadState.RETRYING
        self._next_step_at = time.monotonic() + decision.delay

    def _fail(self, error: BaseException) -> None:
        self._phase = UploadState.FAILED
        logger.error(f"Upload {self.file_id} failed at chunk {self.chunk_index}: {error}")
        self._events.emit(UploadEvent.ERROR, error)
