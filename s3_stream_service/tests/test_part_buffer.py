import pytest
from s3_stream_service.part_buffer import PartBuffer  # type: ignore[import-not-found]

PART_SIZE = 8


@pytest.fixture(name="buffer")
def fixture_buffer() -> PartBuffer:
    return PartBuffer(PART_SIZE)


def test_append_below_threshold(buffer: PartBuffer) -> None:
    assert buffer.append(b"a" * (PART_SIZE - 1)) == []
    assert len(buffer) == PART_SIZE - 1


def test_append_exactly_threshold(buffer: PartBuffer) -> None:
    assert buffer.append(b"a" * PART_SIZE) == [b"a" * PART_SIZE]
    assert len(buffer) == 0


def test_append_one_above_threshold(buffer: PartBuffer) -> None:
    parts = buffer.append(b"a" * PART_SIZE + b"b")

    assert parts == [b"a" * PART_SIZE]
    assert len(buffer) == 1
    assert buffer.flush() == b"b"


def test_append_splits_large_write_in_order(buffer: PartBuffer) -> None:
    data = bytes(range(PART_SIZE * 3 + 5))

    parts = buffer.append(data)

    assert parts == [
        data[0:PART_SIZE],
        data[PART_SIZE : 2 * PART_SIZE],
        data[2 * PART_SIZE : 3 * PART_SIZE],
    ]
    assert buffer.flush() == data[3 * PART_SIZE :]


def test_parts_straddle_writes(buffer: PartBuffer) -> None:
    assert buffer.append(b"12345") == []
    assert buffer.append(b"6789") == [b"12345678"]
    assert buffer.flush() == b"9"


def test_flush_after_exact_parts_emits_nothing(buffer: PartBuffer) -> None:
    buffer.append(b"a" * PART_SIZE * 2)

    assert buffer.flush() is None
    assert buffer.parts_emitted == 2


def test_flush_of_empty_stream_emits_one_empty_part(buffer: PartBuffer) -> None:
    assert buffer.flush() == b""
    assert buffer.parts_emitted == 1


def test_invalid_part_size() -> None:
    with pytest.raises(ValueError):
        PartBuffer(0)
