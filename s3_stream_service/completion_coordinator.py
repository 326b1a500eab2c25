import dataclasses
import threading
from concurrent.futures import Future
from typing import Union

from .exceptions import (
    AbortFailure,
    CompletionError,
    SessionClosedError,
    StateError,
    UploadCancelledError,
    UploadValidationError,
)
from .logger import logger
from .models.destination import Destination
from .models.object_descriptor import ObjectDescriptor
from .models.part_result import PartResult
from .models.session_state import SessionState
from .models.upload_session import UploadSession
from .object_store_client import ObjectStoreClient
from .schemas import S3StreamConfig
from .upload_dispatcher import UploadDispatcher
from .utils import call_with_retry


class CompletionCoordinator:
    """
    Drives one upload session from begin to finalize or abort.

    The coordinator is the only place where the terminal outcome is decided.
    `_decided` flips exactly once under `_condition`; whoever flips it
    issues the finalize or abort call, so each session sees exactly one of
    them. The outcome lands in `result`, a future resolved exactly once.
    """

    def __init__(
        self,
        client: ObjectStoreClient,
        destination: Destination,
        dispatcher: UploadDispatcher,
        config: S3StreamConfig,
    ) -> None:
        self.client = client
        self.config = config
        self.session = UploadSession(destination=destination)
        self.dispatcher = dispatcher
        self.ready: Future[str] = Future()
        self.result: Future[ObjectDescriptor] = Future()
        self._condition = threading.Condition()
        self._decided = False
        self._cancel_requested = False
        dispatcher.add_listener(self._on_part_settled)

    @property
    def state(self) -> SessionState:
        return self.session.state

    @property
    def is_closed(self) -> bool:
        """True once no further bytes can make it into the object."""
        with self._condition:
            return self._decided or self._cancel_requested

    def _log_extra(self) -> dict[str, str | None]:
        return {
            "bucket": self.session.destination.bucket,
            "key": self.session.destination.key,
            "upload_id": self.session.upload_id,
        }

    def begin(self) -> None:
        destination = self.session.destination
        try:
            upload_id = call_with_retry(
                lambda: self.client.begin_upload(destination),
                self.config,
                description="Upload initiation",
                extra=self._log_extra(),
            )
        except Exception as exception:  # pylint: disable=broad-exception-caught
            logger.exception("Failed to initiate upload", extra=self._log_extra())
            with self._condition:
                self._decided = True
            self.ready.set_exception(exception)
            self._settle(SessionState.ABORTED, exception)
            return

        with self._condition:
            self.session.upload_id = upload_id
            self.dispatcher.attach(upload_id)
            cancelled = self._cancel_requested
            if cancelled:
                self._decided = True
                self.dispatcher.close()

        logger.info("Upload initiated", extra=self._log_extra())
        if cancelled:
            error = UploadCancelledError("Upload cancelled before it was established")
            self.ready.set_exception(error)
            self._abort(error)
            return
        self.ready.set_result(upload_id)

    def _on_part_settled(self, future: "Future[PartResult]") -> None:
        exception = None if future.cancelled() else future.exception()
        if exception is not None and not isinstance(exception, SessionClosedError):
            self.fail(exception)
        with self._condition:
            self._condition.notify_all()

    def fail(self, cause: BaseException) -> None:
        with self._condition:
            if self._decided:
                return
            self._decided = True
            self.dispatcher.close()
            self._condition.notify_all()

        logger.error(
            "Aborting upload after permanent failure",
            extra={**self._log_extra(), "error": repr(cause)},
        )
        self._abort(cause)

    def cancel(self) -> bool:
        """
        Abort a session that has not reached a terminal state.

        Returns False when the outcome was already decided. Cancelling before
        the upload id is known defers the abort to the end of `begin`.
        """
        with self._condition:
            if self._decided or self._cancel_requested:
                return False
            if self.session.upload_id is None:
                self._cancel_requested = True
                logger.info(
                    "Cancellation requested before the upload was established",
                    extra=self._log_extra(),
                )
                return True
            self._decided = True
            self.dispatcher.close()
            self._condition.notify_all()

        logger.info("Cancelling upload", extra=self._log_extra())
        self._abort(UploadCancelledError("Upload cancelled"))
        return True

    def drain(self) -> ObjectDescriptor:
        """
        Wait for every submitted part and finalize the upload.

        Must be called after the final part was submitted. Returns the object
        descriptor or raises the terminal error of the session; once the
        outcome is decided later calls just report it again.
        """
        with self._condition:
            if not self._decided:
                if self.session.state is not SessionState.PENDING:
                    raise StateError(
                        f"Cannot finish upload in state {self.session.state.value}"
                    )
                self.session.state = SessionState.DRAINING
                logger.debug(
                    "Draining in-flight parts",
                    extra={
                        **self._log_extra(),
                        "in_flight": self.dispatcher.in_flight_count,
                    },
                )
            while self.dispatcher.in_flight_count and not self._decided:
                self._condition.wait()
            claimed = not self._decided
            self._decided = True
            if claimed:
                self.dispatcher.close()

        if claimed:
            failure = self.dispatcher.failure
            if failure is not None:
                self._abort(failure)
            else:
                self._complete()
        return self.result.result()

    def _complete(self) -> None:
        parts = sorted(self.dispatcher.results, key=lambda part: part.part_number)
        with self.session.lock:
            self.session.parts = parts

        numbers = [part.part_number for part in parts]
        if not parts or numbers != list(range(1, self.dispatcher.parts_submitted + 1)):
            self._abort(
                UploadValidationError(f"Uploaded part numbers are not contiguous: {numbers}")
            )
            return

        destination = self.session.destination
        upload_id = self.session.upload_id
        if upload_id is None:
            raise StateError("Upload session has not been established yet")
        ordered = [(part.part_number, part.integrity_tag) for part in parts]
        logger.debug(
            "Completing upload in chunks",
            extra={**self._log_extra(), "parts": len(ordered)},
        )
        try:
            descriptor = call_with_retry(
                lambda: self.client.complete_upload(destination, upload_id, ordered),
                self.config,
                description="Upload completion",
                extra=self._log_extra(),
            )
        except Exception as exception:  # pylint: disable=broad-exception-caught
            logger.exception("Failed to complete upload", extra=self._log_extra())
            error = CompletionError(f"Failed to complete upload {upload_id}")
            error.__cause__ = exception
            self._settle(SessionState.FAILED, error)
            return

        descriptor = dataclasses.replace(
            descriptor, size=self.session.size, parts_count=len(parts)
        )
        logger.info(
            "Upload completed in chunks",
            extra={**self._log_extra(), "size": descriptor.size},
        )
        self._settle(SessionState.COMPLETED, descriptor)

    def _abort(self, cause: BaseException) -> None:
        upload_id = self.session.upload_id
        if upload_id is None:
            raise StateError("Upload session has not been established yet")
        try:
            self.client.abort_upload(self.session.destination, upload_id)
        except Exception as exception:  # pylint: disable=broad-exception-caught
            logger.exception("Failed to abort upload", extra=self._log_extra())
            self._settle(SessionState.FAILED, AbortFailure(cause, exception))
            return

        logger.info("Upload aborted", extra=self._log_extra())
        self._settle(SessionState.ABORTED, cause)

    def _settle(
        self, state: SessionState, outcome: Union[ObjectDescriptor, BaseException]
    ) -> None:
        with self._condition:
            self.session.state = state
            self._condition.notify_all()
        self.dispatcher.shutdown()

        if isinstance(outcome, BaseException):
            self.result.set_exception(outcome)
        else:
            self.result.set_result(outcome)
