# pylint: disable=import-error, protected-access
from unittest.mock import MagicMock

import pytest
from faker import Faker
from s3_stream_service.completion_coordinator import CompletionCoordinator  # type: ignore[import-not-found]
from s3_stream_service.exceptions import (  # type: ignore[import-not-found]
    AuthError,
    PermanentError,
    StateError,
    TransientError,
    UploadCancelledError,
)
from s3_stream_service.models.destination import Destination  # type: ignore[import-not-found]
from s3_stream_service.models.object_descriptor import ObjectDescriptor  # type: ignore[import-not-found]
from s3_stream_service.models.session_state import SessionState  # type: ignore[import-not-found]
from s3_stream_service.schemas import S3StreamConfig  # type: ignore[import-not-found]
from s3_stream_service.upload_dispatcher import UploadDispatcher  # type: ignore[import-not-found]

fake = Faker()

TEST_UPLOAD_ID = "test-upload-id"
WAIT_TIMEOUT = 10


@pytest.fixture(name="client")
def fixture_client() -> MagicMock:
    client = MagicMock()
    client.begin_upload.return_value = TEST_UPLOAD_ID
    client.upload_part.side_effect = (
        lambda _destination, _upload_id, part_number, _payload: f"etag-{part_number}"
    )
    client.complete_upload.side_effect = lambda destination, _upload_id, _parts: (
        ObjectDescriptor(bucket=destination.bucket, key=destination.key, etag="final")
    )
    return client


@pytest.fixture(name="destination")
def fixture_destination() -> Destination:
    return Destination(bucket=fake.word(), key=fake.file_name())


@pytest.fixture(name="coordinator")
def fixture_coordinator(
    client: MagicMock, destination: Destination, stream_config: S3StreamConfig
) -> CompletionCoordinator:
    dispatcher = UploadDispatcher(client, destination, stream_config)
    return CompletionCoordinator(client, destination, dispatcher, stream_config)


def test_begin_resolves_ready(coordinator: CompletionCoordinator, client: MagicMock) -> None:
    coordinator.begin()

    assert coordinator.ready.result(timeout=WAIT_TIMEOUT) == TEST_UPLOAD_ID
    assert coordinator.session.upload_id == TEST_UPLOAD_ID
    assert coordinator.dispatcher.upload_id == TEST_UPLOAD_ID
    assert coordinator.state is SessionState.PENDING
    client.begin_upload.assert_called_once_with(coordinator.session.destination)


def test_begin_retries_transient_errors(
    coordinator: CompletionCoordinator, client: MagicMock
) -> None:
    client.begin_upload.side_effect = [TransientError("timeout"), TEST_UPLOAD_ID]

    coordinator.begin()

    assert coordinator.ready.result(timeout=WAIT_TIMEOUT) == TEST_UPLOAD_ID
    assert client.begin_upload.call_count == 2


def test_begin_auth_error_is_not_retried(
    coordinator: CompletionCoordinator, client: MagicMock
) -> None:
    client.begin_upload.side_effect = AuthError("AccessDenied")

    coordinator.begin()

    with pytest.raises(AuthError):
        coordinator.result.result(timeout=WAIT_TIMEOUT)
    client.begin_upload.assert_called_once()
    client.abort_upload.assert_not_called()
    assert coordinator.state is SessionState.ABORTED
    assert coordinator.is_closed


def test_drain_orders_parts_before_finalize(
    coordinator: CompletionCoordinator, client: MagicMock
) -> None:
    coordinator.begin()
    for payload in (b"aaaa", b"bbbb", b"cc"):
        coordinator.dispatcher.submit(payload)

    descriptor = coordinator.drain()

    client.complete_upload.assert_called_once_with(
        coordinator.session.destination,
        TEST_UPLOAD_ID,
        [(1, "etag-1"), (2, "etag-2"), (3, "etag-3")],
    )
    assert descriptor.etag == "final"
    assert descriptor.size == 10
    assert descriptor.parts_count == 3
    assert coordinator.state is SessionState.COMPLETED
    assert [part.part_number for part in coordinator.session.parts] == [1, 2, 3]
    client.abort_upload.assert_not_called()


def test_drain_after_completion_finalizes_once(
    coordinator: CompletionCoordinator, client: MagicMock
) -> None:
    coordinator.begin()
    coordinator.dispatcher.submit(b"data")
    first = coordinator.drain()

    assert coordinator.drain() is first
    client.complete_upload.assert_called_once()


def test_submit_after_drain_is_rejected(coordinator: CompletionCoordinator) -> None:
    coordinator.begin()
    coordinator.dispatcher.submit(b"data")
    coordinator.drain()

    with pytest.raises(StateError):
        coordinator.dispatcher.submit(b"late")


def test_failure_issues_single_abort(
    coordinator: CompletionCoordinator, client: MagicMock
) -> None:
    coordinator.begin()
    error = PermanentError("rejected")

    coordinator.fail(error)
    coordinator.fail(PermanentError("second failure"))

    with pytest.raises(PermanentError) as raised:
        coordinator.result.result(timeout=WAIT_TIMEOUT)
    assert raised.value is error
    client.abort_upload.assert_called_once_with(
        coordinator.session.destination, TEST_UPLOAD_ID
    )
    assert coordinator.cancel() is False
    client.complete_upload.assert_not_called()


def test_cancel_then_drain_surfaces_cancellation(
    coordinator: CompletionCoordinator, client: MagicMock
) -> None:
    coordinator.begin()

    assert coordinator.cancel() is True
    assert coordinator.state is SessionState.ABORTED

    with pytest.raises(UploadCancelledError):
        coordinator.drain()
    client.abort_upload.assert_called_once()
    client.complete_upload.assert_not_called()


def test_complete_transient_errors_are_retried(
    coordinator: CompletionCoordinator, client: MagicMock
) -> None:
    client.complete_upload.side_effect = [
        TransientError("slow down"),
        ObjectDescriptor(bucket="bucket", key="key"),
    ]
    coordinator.begin()
    coordinator.dispatcher.submit(b"data")

    descriptor = coordinator.drain()

    assert descriptor.key == "key"
    assert client.complete_upload.call_count == 2
    assert coordinator.state is SessionState.COMPLETED


def test_abort_before_begin_raises(
    coordinator: CompletionCoordinator, client: MagicMock
) -> None:
    with pytest.raises(StateError):
        coordinator._abort(PermanentError("rejected"))

    client.abort_upload.assert_not_called()
    assert not coordinator.result.done()
