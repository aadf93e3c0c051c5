from dataclasses import dataclass, field
from datetime import datetime
from pathlib import Path
from typing import Dict, List, Optional, Tuple

from .exceptions import ScanFailure

RecordingKey = Tuple[str, int]


@dataclass(frozen=True)
class Chapter:
    """
    A single raw media file found on a volume.
    """
    path: Path
    volume: str
    card_dir: str           # e.g. 100GOPRO
    size_bytes: int
    mtime: float
    chapter_index: int
    sequence: int


@dataclass
class Recording:
    """
    A logical capture assembled from one or more chapters.
    Identified by (volume, sequence).
    """
    volume: str
    sequence: int
    card_dir: str
    chapters: List[Chapter] = field(default_factory=list)
    camera: Optional[str] = None
    created_at: Optional[datetime] = None
    duration_sec: float = 0.0

    # Set when identity extraction or a duration probe fails
    failure: Optional[Exception] = None
    _frozen: bool = field(default=False, repr=False)

    @property
    def key(self) -> RecordingKey:
        return (self.volume, self.sequence)

    def add_chapter(self, chapter: Chapter):
        if self._frozen:
            raise RuntimeError(f"Recording {self.volume}/{self.sequence:04d} is frozen")
        self.chapters.append(chapter)

        chapter_dt = datetime.fromtimestamp(chapter.mtime)
        if self.created_at is None or chapter_dt < self.created_at:
            self.created_at = chapter_dt

    def freeze(self):
        self._frozen = True

    def sorted_chapters(self) -> List[Chapter]:
        """Chapters in recording order. Discovery order is not reliable."""
        return sorted(self.chapters, key=lambda c: c.chapter_index)

    @property
    def total_size(self) -> int:
        return sum(c.size_bytes for c in self.chapters)

    @property
    def is_ready(self) -> bool:
        return self.failure is None and self.camera is not None

    @property
    def label(self) -> str:
        ts = self.created_at.strftime("%Y-%m-%d %H:%M:%S") if self.created_at else "unknown date"
        minutes, seconds = divmod(int(self.duration_sec), 60)
        hours, minutes = divmod(minutes, 60)
        return (f"{ts}  {hours}:{minutes:02d}:{seconds:02d}  "
                f"{self.camera or '?'}  #{self.sequence:04d}  ({len(self.chapters)} chapters)")


@dataclass
class ReconciliationJob:
    """
    Ephemeral unit of work bringing one destination file up to date.
    """
    recording: Recording
    destination: Path
    sources: List[Path]
    expected_duration: float
    expected_size: int
    action: Optional[str] = None    # skip/copy/concat
    progress: float = 0.0
    done: bool = False
    error: Optional[Exception] = None

    @property
    def is_multi_chapter(self) -> bool:
        return len(self.sources) > 1


@dataclass
class ScanReport:
    """
    Result of scanning a set of volumes. A volume that failed is listed in
    `failures` instead of being dropped.
    """
    chapters: Dict[str, List[Chapter]] = field(default_factory=dict)
    failures: Dict[str, ScanFailure] = field(default_factory=dict)

    def all_chapters(self) -> List[Chapter]:
        return [c for volume in sorted(self.chapters) for c in self.chapters[volume]]
