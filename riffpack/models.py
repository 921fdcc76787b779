from __future__ import annotations

from dataclasses import dataclass, field
from enum import IntEnum
from typing import List


class RiffStatus(IntEnum):
    NONE = 0
    IN_USE = 1
    REJECTED = 2


@dataclass(frozen=True)
class Riff:
    index: int
    note: str
    status: RiffStatus
    data: bytes = field(repr=False)


@dataclass
class Project:
    bpm: int
    riffs: List[Riff] = field(default_factory=list)


@dataclass(frozen=True)
class ManifestEntry:
    id: str
    bpm: int
    index: int
    note: str
    status: RiffStatus


@dataclass
class Manifest:
    riffs: List[ManifestEntry] = field(default_factory=list)

    def ids(self) -> List[str]:
        return [e.id for e in self.riffs]
