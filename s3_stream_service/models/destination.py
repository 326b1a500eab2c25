from dataclasses import dataclass, field
from typing import Any


@dataclass(frozen=True)
class Destination:
    bucket: str
    key: str
    # forwarded to begin-upload, e.g. ContentType or Metadata
    extra_args: dict[str, Any] = field(default_factory=dict, hash=False, compare=False)

    @property
    def url(self) -> str:
        return f"s3://{self.bucket}/{self.key}"
