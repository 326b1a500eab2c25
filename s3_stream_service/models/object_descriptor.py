from dataclasses import dataclass
from typing import Optional


@dataclass(frozen=True)
class ObjectDescriptor:
    bucket: str
    key: str
    etag: Optional[str] = None
    location: Optional[str] = None
    version_id: Optional[str] = None
    size: Optional[int] = None
    parts_count: Optional[int] = None
