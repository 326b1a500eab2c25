from enum import Enum


class SessionState(Enum):
    PENDING = "pending"
    DRAINING = "draining"
    COMPLETED = "completed"
    ABORTED = "aborted"
    FAILED = "failed"

    @property
    def is_terminal(self) -> bool:
        return self in (
            SessionState.COMPLETED,
            SessionState.ABORTED,
            SessionState.FAILED,
        )
