from pydantic import Field
from pydantic.dataclasses import dataclass

MiB = 1024 * 1024
# smallest part size S3 accepts for every part but the last one
MIN_PART_SIZE = 5 * MiB


@dataclass
class S3StreamConfig:
    # pylint: disable=too-many-instance-attributes
    part_size: int = Field(default=MIN_PART_SIZE, gt=0)
    max_concurrency: int = Field(default=4, ge=1)
    high_water_mark: int | None = Field(default=None, gt=0)
    max_attempts: int = Field(default=3, ge=1)
    retry_backoff_sec: float = Field(default=0.5, ge=0)
    max_retry_backoff_sec: float = Field(default=10.0, ge=0)

    def __post_init__(self) -> None:
        if self.high_water_mark is None:
            self.high_water_mark = self.part_size
