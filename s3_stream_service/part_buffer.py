class PartBuffer:
    """
    Slices an incoming byte stream into parts of exactly `part_size` bytes.

    Only the final part of a session may be shorter. A session that never
    received a byte still yields one empty part on flush, so every upload
    completes with at least one part.
    """

    def __init__(self, part_size: int) -> None:
        if part_size <= 0:
            raise ValueError("part_size must be positive")
        self.part_size = part_size
        self.parts_emitted = 0
        self._buffer = bytearray()

    def __len__(self) -> int:
        return len(self._buffer)

    def append(self, data: bytes | bytearray | memoryview) -> list[bytes]:
        self._buffer.extend(data)

        ready: list[bytes] = []
        while len(self._buffer) >= self.part_size:
            ready.append(bytes(self._buffer[: self.part_size]))
            del self._buffer[: self.part_size]
        self.parts_emitted += len(ready)
        return ready

    def flush(self) -> bytes | None:
        if not self._buffer and self.parts_emitted:
            return None

        payload = bytes(self._buffer)
        self._buffer.clear()
        self.parts_emitted += 1
        return payload
