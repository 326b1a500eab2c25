from dataclasses import dataclass


@dataclass(frozen=True)
class PartResult:
    part_number: int
    integrity_tag: str
    size: int
