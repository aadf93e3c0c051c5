import asyncio
import logging
from pathlib import Path
from typing import Awaitable, Callable, Dict, List, Optional, Tuple

from .. import config
from ..exceptions import ParseFailure
from ..models import Chapter, Recording, RecordingKey


def parse_chapter_name(name: str) -> Tuple[int, int]:
    """
    Recovers (chapter_index, sequence) from a chapter file name.

    GoPro names carry two chapter digits followed by four sequence digits
    (GH010042.MP4 -> (1, 42)). Nikon DSC_0042.MP4 files are never split.
    """
    stem = Path(name).stem

    m = config.SINGLE_CHAPTER_PATTERN.match(stem)
    if m:
        return 1, int(m.group(1))

    m = config.CHAPTER_PATTERN.search(stem)
    if not m:
        raise ParseFailure(f"No chapter/sequence number in {name}")
    return int(m.group(1)), int(m.group(2))


class RecordingIndex:
    """
    Owned state for the grouping phase: volume -> sequence -> Recording.

    Creation is serialized per (volume, sequence) key so that an awaited
    step during creation (identity resolution) cannot let a second chapter
    of the same recording create a duplicate entry.
    """
    def __init__(self):
        self._recordings: Dict[RecordingKey, Recording] = {}
        self._locks: Dict[RecordingKey, asyncio.Lock] = {}

    def _lock_for(self, key: RecordingKey) -> asyncio.Lock:
        # No await between lookup and insert, so this is atomic on the loop
        lock = self._locks.get(key)
        if lock is None:
            lock = asyncio.Lock()
            self._locks[key] = lock
        return lock

    async def find_or_create(self,
                             chapter: Chapter,
                             on_create: Optional[Callable[[Recording], Awaitable[None]]] = None) -> Recording:
        key = (chapter.volume, chapter.sequence)
        async with self._lock_for(key):
            rec = self._recordings.get(key)
            if rec is None:
                rec = Recording(volume=chapter.volume, sequence=chapter.sequence, card_dir=chapter.card_dir)
                # Register before the hook so a failing hook still keeps the recording
                self._recordings[key] = rec
                rec.add_chapter(chapter)
                if on_create is not None:
                    await on_create(rec)
                return rec

            rec.add_chapter(chapter)
            return rec

    def get(self, volume: str, sequence: int) -> Optional[Recording]:
        return self._recordings.get((volume, sequence))

    def recordings(self) -> List[Recording]:
        return [self._recordings[k] for k in sorted(self._recordings)]

    def by_volume(self) -> Dict[str, List[Recording]]:
        grouped: Dict[str, List[Recording]] = {}
        for rec in self.recordings():
            grouped.setdefault(rec.volume, []).append(rec)
        return grouped

    def freeze(self):
        for rec in self._recordings.values():
            rec.freeze()

    def __len__(self) -> int:
        return len(self._recordings)


async def group_chapters(chapters: List[Chapter],
                         index: Optional[RecordingIndex] = None,
                         on_create: Optional[Callable[[Recording], Awaitable[None]]] = None) -> RecordingIndex:
    """Adds every chapter to the index concurrently and returns the index."""
    index = index if index is not None else RecordingIndex()
    await asyncio.gather(*(index.find_or_create(c, on_create) for c in chapters))
    logging.info(f"Grouped {len(chapters)} chapters into {len(index)} recordings.")
    return index
