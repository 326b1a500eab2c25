import threading
from concurrent.futures import Future, ThreadPoolExecutor
from typing import Callable, Optional

from .exceptions import SessionClosedError, StateError
from .logger import logger
from .models.destination import Destination
from .models.part_result import PartResult
from .object_store_client import ObjectStoreClient
from .schemas import S3StreamConfig
from .utils import call_with_retry

PartListener = Callable[["Future[PartResult]"], None]


class UploadDispatcher:
    """
    Numbers parts and uploads them on a bounded thread pool.

    The part counter and the in-flight set are only touched under
    `_condition`. `submit` blocks while `max_concurrency` uploads are in
    flight. The first permanent failure puts the dispatcher in the failing
    state, after which every `submit` is rejected.
    """

    def __init__(
        self,
        client: ObjectStoreClient,
        destination: Destination,
        config: S3StreamConfig,
    ) -> None:
        self.client = client
        self.destination = destination
        self.config = config
        self.upload_id: Optional[str] = None
        self._executor = ThreadPoolExecutor(
            max_workers=config.max_concurrency,
            thread_name_prefix="s3-part-upload",
        )
        self._condition = threading.Condition()
        self._closed = threading.Event()
        self._next_part_number = 1
        self._in_flight: set[Future[PartResult]] = set()
        self._results: list[PartResult] = []
        self._failure: Optional[BaseException] = None
        self._listeners: list[PartListener] = []

    def attach(self, upload_id: str) -> None:
        self.upload_id = upload_id

    def add_listener(self, listener: PartListener) -> None:
        """Register a callback run on every settled part, after its slot is freed."""
        self._listeners.append(listener)

    @property
    def in_flight_count(self) -> int:
        with self._condition:
            return len(self._in_flight)

    @property
    def is_saturated(self) -> bool:
        with self._condition:
            return len(self._in_flight) >= self.config.max_concurrency

    @property
    def parts_submitted(self) -> int:
        with self._condition:
            return self._next_part_number - 1

    @property
    def results(self) -> list[PartResult]:
        with self._condition:
            return list(self._results)

    @property
    def failure(self) -> Optional[BaseException]:
        with self._condition:
            return self._failure

    @property
    def is_closed(self) -> bool:
        return self._closed.is_set()

    def _check_open(self) -> None:
        if self._failure is not None:
            raise SessionClosedError(
                "Upload session is failing, no more parts are accepted"
            ) from self._failure
        if self._closed.is_set():
            raise SessionClosedError("Upload session is closed")

    def submit(self, payload: bytes) -> "Future[PartResult]":
        if self.upload_id is None:
            raise StateError("Upload session has not been established yet")

        with self._condition:
            self._check_open()
            while len(self._in_flight) >= self.config.max_concurrency:
                self._condition.wait()
                self._check_open()

            part_number = self._next_part_number
            self._next_part_number += 1
            future = self._executor.submit(self._upload_part, part_number, payload)
            self._in_flight.add(future)

        logger.debug(
            "Part dispatched",
            extra={
                "key": self.destination.key,
                "part_number": part_number,
                "size": len(payload),
            },
        )
        future.add_done_callback(self._on_done)
        return future

    def _upload_part(self, part_number: int, payload: bytes) -> PartResult:
        upload_id = self.upload_id
        if upload_id is None:
            raise StateError("Upload session has not been established yet")

        integrity_tag = call_with_retry(
            lambda: self.client.upload_part(
                self.destination, upload_id, part_number, payload
            ),
            self.config,
            description=f"Upload of part {part_number}",
            extra={
                "key": self.destination.key,
                "upload_id": upload_id,
                "part_number": part_number,
            },
            stop_event=self._closed,
        )
        return PartResult(
            part_number=part_number,
            integrity_tag=integrity_tag,
            size=len(payload),
        )

    def _on_done(self, future: "Future[PartResult]") -> None:
        with self._condition:
            if future not in self._in_flight:
                return
            self._in_flight.discard(future)
            exception = None if future.cancelled() else future.exception()
            if exception is None and not future.cancelled():
                self._results.append(future.result())
            elif (
                exception is not None
                and self._failure is None
                and not self._closed.is_set()
            ):
                logger.error(
                    "Part upload failed permanently",
                    extra={"key": self.destination.key, "error": repr(exception)},
                )
                self._failure = exception
            self._condition.notify_all()

        for listener in list(self._listeners):
            listener(future)

    def close(self) -> None:
        """Reject further submits and wake any producer blocked in `submit`."""
        with self._condition:
            self._closed.set()
            self._condition.notify_all()

    def shutdown(self) -> None:
        self.close()
        # running uploads finish on their own, their results are ignored
        self._executor.shutdown(wait=False)
