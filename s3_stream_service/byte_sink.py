from abc import ABC, abstractmethod
from types import TracebackType
from typing import Any, Optional, Type


class ByteSink(ABC):
    """
    Push-based sink for an unbounded byte stream.

    Used as a context manager the sink is ended on a clean exit and
    cancelled when the block raises.
    """

    @abstractmethod
    def write(self, data: bytes) -> bool:
        """Accept `data`; returns False when the producer should pause."""

    @abstractmethod
    def end(self) -> Any:
        """Signal that no more bytes follow and wait for the terminal outcome."""

    @abstractmethod
    def cancel(self) -> bool:
        """Abandon the stream."""

    @property
    @abstractmethod
    def closed(self) -> bool:
        """True once the sink accepts no more writes."""

    def __enter__(self) -> "ByteSink":
        return self

    def __exit__(
        self,
        exc_type: Optional[Type[BaseException]],
        exc: Optional[BaseException],
        traceback: Optional[TracebackType],
    ) -> None:
        if self.closed:
            return
        if exc_type is None:
            self.end()
        else:
            self.cancel()
