import threading
from collections import deque
from concurrent.futures import Future
from typing import BinaryIO, Callable, Optional

from .byte_sink import ByteSink
from .completion_coordinator import CompletionCoordinator
from .exceptions import SessionClosedError, StateError
from .logger import logger
from .models.destination import Destination
from .models.object_descriptor import ObjectDescriptor
from .models.part_result import PartResult
from .models.session_state import SessionState
from .object_store_client import ObjectStoreClient
from .part_buffer import PartBuffer
from .schemas import S3StreamConfig
from .upload_dispatcher import UploadDispatcher

DEFAULT_PIPE_CHUNK_SIZE = 64 * 1024


class S3WriteStream(ByteSink):
    """
    Writable byte stream that lands in the object store as one object.

    The multipart upload is started on a background thread as soon as the
    stream is created. Bytes written before the upload id is known are
    queued and dispatched once `ready` resolves; `write` signals the
    producer to pause (returns False) while that queue, or the set of
    in-flight part uploads, is full. Once the producer may continue again
    `wait_drained` returns and the `on_drain` callbacks run.

    Callers must not issue concurrent `write` calls. Drain callbacks run on
    upload worker threads and should only signal the producer.
    """

    def __init__(
        self,
        client: ObjectStoreClient,
        destination: Destination,
        config: Optional[S3StreamConfig] = None,
    ) -> None:
        self.client = client
        self.destination = destination
        self.config = config or S3StreamConfig()
        self.bytes_written = 0
        self._buffer = PartBuffer(self.config.part_size)
        self._queued_parts: deque[bytes] = deque()
        self._queued_bytes = 0
        self._dispatch_lock = threading.RLock()
        self._ended = False
        self._drained = threading.Event()
        self._drained.set()
        self._drain_lock = threading.Lock()
        self._drain_listeners: list[Callable[[], None]] = []

        self._dispatcher = UploadDispatcher(client, destination, self.config)
        self._coordinator = CompletionCoordinator(
            client, destination, self._dispatcher, self.config
        )
        self._dispatcher.add_listener(self._on_part_settled)
        self._coordinator.ready.add_done_callback(self._on_ready)
        self._coordinator.result.add_done_callback(self._on_result)

        logger.debug(
            "Opening write stream",
            extra={"bucket": destination.bucket, "key": destination.key},
        )
        self._begin_thread = threading.Thread(
            target=self._coordinator.begin, name="s3-begin-upload", daemon=True
        )
        self._begin_thread.start()

    @property
    def ready(self) -> "Future[str]":
        """Resolves with the upload id once the session is established."""
        return self._coordinator.ready

    @property
    def result(self) -> "Future[ObjectDescriptor]":
        """Resolves exactly once, with the object descriptor or the terminal error."""
        return self._coordinator.result

    @property
    def state(self) -> SessionState:
        return self._coordinator.state

    @property
    def upload_id(self) -> Optional[str]:
        return self._coordinator.session.upload_id

    @property
    def parts(self) -> list[PartResult]:
        return self._coordinator.session.ordered_parts

    @property
    def closed(self) -> bool:
        return self._ended or self._coordinator.is_closed

    @property
    def pending_bytes(self) -> int:
        return len(self._buffer) + self._queued_bytes

    def _check_writable(self) -> None:
        if self._ended:
            raise StateError("Write stream has already been ended")
        if self.state.is_terminal:
            raise StateError(
                f"Write stream is closed, upload is {self.state.value}"
            )
        if self._coordinator.is_closed:
            raise StateError("Write stream is closed, upload is being aborted")

    def _should_pause(self) -> bool:
        # the buffered remainder below part_size only shrinks on further writes
        high_water_mark = self.config.high_water_mark or self.config.part_size
        return (
            self._dispatcher.is_saturated or self._queued_bytes >= high_water_mark
        )

    def write(self, data: bytes | bytearray | memoryview) -> bool:
        if not isinstance(data, (bytes, bytearray, memoryview)):
            raise TypeError(f"Expected a bytes-like object, got {type(data).__name__}")

        with self._dispatch_lock:
            self._check_writable()
            for payload in self._buffer.append(data):
                self._queued_parts.append(payload)
                self._queued_bytes += len(payload)
            self.bytes_written += len(data)
            if self.ready.done() and self.ready.exception() is None:
                self._dispatch_queued()

            with self._drain_lock:
                paused = self._should_pause()
                if paused:
                    self._drained.clear()
        return not paused

    def _dispatch_queued(self) -> None:
        with self._dispatch_lock:
            while self._queued_parts:
                payload = self._queued_parts[0]
                self._dispatcher.submit(payload)
                self._queued_parts.popleft()
                self._queued_bytes -= len(payload)

    def end(self) -> ObjectDescriptor:
        """
        Flush the remaining bytes as the final part and finalize the upload.

        Blocks until the session reaches a terminal state. Returns the object
        descriptor, or raises the error that ended the session.
        """
        with self._dispatch_lock:
            self._check_writable()
            self._ended = True
            final_part = self._buffer.flush()
            if final_part is not None:
                self._queued_parts.append(final_part)
                self._queued_bytes += len(final_part)

        logger.debug(
            "Ending write stream",
            extra={"key": self.destination.key, "bytes_written": self.bytes_written},
        )
        if self.ready.exception() is not None:
            return self.result.result()
        try:
            self._dispatch_queued()
        except SessionClosedError:
            # a part failed meanwhile, the abort already decided the outcome
            return self.result.result()
        return self._coordinator.drain()

    def cancel(self) -> bool:
        """Abort the upload; returns False if it had already reached its outcome."""
        cancelled = self._coordinator.cancel()
        if cancelled:
            with self._dispatch_lock:
                self._queued_parts.clear()
                self._queued_bytes = 0
        return cancelled

    def on_drain(self, listener: Callable[[], None]) -> None:
        self._drain_listeners.append(listener)

    def wait_ready(self, timeout: Optional[float] = None) -> str:
        return self.ready.result(timeout)

    def wait_drained(self, timeout: Optional[float] = None) -> bool:
        """Block until the producer may write again or the upload ended."""
        return self._drained.wait(timeout)

    def pipe_from(
        self, readable: BinaryIO, chunk_size: int = DEFAULT_PIPE_CHUNK_SIZE
    ) -> ObjectDescriptor:
        """Copy `readable` into the stream, honoring backpressure, then end it."""
        try:
            while True:
                chunk = readable.read(chunk_size)
                if not chunk:
                    break
                if not self.write(chunk):
                    self.wait_drained()
            return self.end()
        except StateError:
            if self._coordinator.is_closed:
                # the upload ended underneath the copy, report why
                self.result.result()
            raise

    def _maybe_emit_drain(self) -> None:
        with self._drain_lock:
            if self._drained.is_set() or self._should_pause():
                return
            self._drained.set()
        for listener in list(self._drain_listeners):
            listener()

    def _on_part_settled(self, _future: "Future[PartResult]") -> None:
        self._maybe_emit_drain()

    def _on_ready(self, future: "Future[str]") -> None:
        if future.exception() is not None:
            return
        try:
            self._dispatch_queued()
        except SessionClosedError:
            logger.warning(
                "Session closed before queued parts were dispatched",
                extra={"key": self.destination.key},
            )
            return
        self._maybe_emit_drain()

    def _on_result(self, future: "Future[ObjectDescriptor]") -> None:
        # wake producers blocked in wait_drained, they see the outcome
        self._drained.set()
        if future.exception() is None:
            logger.info(
                "Write stream finished",
                extra={"key": self.destination.key, "bytes_written": self.bytes_written},
            )
        else:
            logger.error(
                "Write stream failed",
                extra={"key": self.destination.key, "error": repr(future.exception())},
            )
