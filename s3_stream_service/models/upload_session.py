from dataclasses import dataclass, field
from threading import RLock
from typing import Optional

from .destination import Destination  # pylint: disable=relative-beyond-top-level
from .part_result import PartResult  # pylint: disable=relative-beyond-top-level
from .session_state import SessionState  # pylint: disable=relative-beyond-top-level


@dataclass
class UploadSession:
    destination: Destination
    upload_id: Optional[str] = None
    state: SessionState = SessionState.PENDING
    parts: list[PartResult] = field(default_factory=list)
    lock: RLock = field(default_factory=RLock)

    @property
    def ordered_parts(self) -> list[PartResult]:
        with self.lock:
            return sorted(self.parts, key=lambda part: part.part_number)

    @property
    def size(self) -> int:
        with self.lock:
            return sum(part.size for part in self.parts)
