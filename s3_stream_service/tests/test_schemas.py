import pytest
from pydantic import ValidationError
from s3_stream_service.schemas import MIN_PART_SIZE, S3StreamConfig  # type: ignore[import-not-found]


def test_defaults() -> None:
    config = S3StreamConfig()

    assert config.part_size == MIN_PART_SIZE
    assert config.max_concurrency == 4
    assert config.high_water_mark == MIN_PART_SIZE


def test_explicit_high_water_mark() -> None:
    config = S3StreamConfig(part_size=100, high_water_mark=300)

    assert config.high_water_mark == 300


@pytest.mark.parametrize(
    "kwargs",
    [
        {"part_size": 0},
        {"max_concurrency": 0},
        {"max_attempts": 0},
        {"retry_backoff_sec": -1},
        {"high_water_mark": 0},
    ],
)
def test_invalid_values(kwargs: dict) -> None:
    with pytest.raises(ValidationError):
        S3StreamConfig(**kwargs)
