import asyncio
import logging
from pathlib import Path
from typing import List, Optional

from ..exceptions import ProbeFailure
from ..models import Chapter, Recording
from .probe import MediaProbe


class DurationAggregator:
    """
    Probes every chapter concurrently and sums the results into each
    recording's total duration.
    """
    def __init__(self, probe: Optional[MediaProbe] = None):
        self.media_probe = probe or MediaProbe()

    async def probe(self, chapter_path: Path) -> float:
        return await self.media_probe.duration(chapter_path)

    async def aggregate(self, recordings: List[Recording]):
        await asyncio.gather(*(
            self._probe_chapter(rec, chapter)
            for rec in recordings
            for chapter in rec.chapters
        ))

        failed = sum(1 for r in recordings if isinstance(r.failure, ProbeFailure))
        if failed:
            logging.warning(f"Duration unavailable for {failed} recordings.")

    async def _probe_chapter(self, rec: Recording, chapter: Chapter):
        try:
            seconds = await self.probe(chapter.path)
        except ProbeFailure as e:
            logging.error(f"Failed to probe {chapter.path}: {e}")
            # A recording with an unknown chapter length is not selectable
            if rec.failure is None:
                rec.failure = e
            return
        rec.duration_sec += seconds
