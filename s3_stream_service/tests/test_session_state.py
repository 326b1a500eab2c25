# pylint: disable=import-error
import pytest
from s3_stream_service.models.session_state import SessionState  # type: ignore[import-not-found]


@pytest.mark.parametrize(
    "state, terminal",
    [
        (SessionState.PENDING, False),
        (SessionState.DRAINING, False),
        (SessionState.COMPLETED, True),
        (SessionState.ABORTED, True),
        (SessionState.FAILED, True),
    ],
)
def test_is_terminal(state: SessionState, terminal: bool) -> None:
    assert state.is_terminal is terminal
