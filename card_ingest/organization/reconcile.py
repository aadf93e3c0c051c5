import asyncio
import logging
from pathlib import Path
from typing import Dict, List, Optional

from ..exceptions import IngestError, ProbeFailure
from ..metadata.probe import MediaProbe
from ..models import Recording, RecordingKey, ReconciliationJob
from ..progress import ProgressAggregator, ProgressObserver, timemark_to_seconds
from .transfer import Concatenator, FileCopier

SKIP = "skip"
COPY = "copy"
CONCAT = "concat"


def build_jobs(recordings: List[Recording], destinations: Dict[RecordingKey, Path]) -> List[ReconciliationJob]:
    jobs = []
    for rec in recordings:
        rec.freeze()
        chapters = rec.sorted_chapters()
        jobs.append(ReconciliationJob(
            recording=rec,
            destination=destinations[rec.key],
            sources=[c.path for c in chapters],
            expected_duration=rec.duration_sec,
            expected_size=rec.total_size,
        ))
    return jobs


class Reconciler:
    """
    Brings each destination file up to date with its source chapters:
    skip when it already matches, copy a single chapter, or merge several.
    """
    def __init__(self,
                 probe: Optional[MediaProbe] = None,
                 copier: Optional[FileCopier] = None,
                 concatenator: Optional[Concatenator] = None,
                 progress: Optional[ProgressAggregator] = None,
                 dry_run: bool = False):
        self.probe = probe or MediaProbe()
        self.copier = copier or FileCopier()
        self.concatenator = concatenator or Concatenator()
        self.progress = progress or ProgressAggregator()
        self.dry_run = dry_run

    async def decide(self, job: ReconciliationJob) -> str:
        work = CONCAT if job.is_multi_chapter else COPY
        dest = job.destination
        if not dest.exists():
            return work

        if not job.is_multi_chapter:
            # A smaller destination is a partial copy
            try:
                dest_size = dest.stat().st_size
            except OSError as e:
                logging.warning(f"Cannot stat existing {dest.name}, redoing copy: {e}")
                return COPY
            if dest_size >= job.expected_size:
                return SKIP
            return COPY

        try:
            dest_duration = await self.probe.duration(dest)
        except ProbeFailure as e:
            logging.warning(f"Cannot probe existing {dest.name}, redoing merge: {e}")
            return CONCAT

        # Compare whole seconds; sub-second drift is container rounding
        if int(dest_duration) == int(job.expected_duration):
            return SKIP
        return CONCAT

    async def reconcile(self, job: ReconciliationJob) -> ReconciliationJob:
        job.action = await self.decide(job)
        name = job.destination.name

        if job.action == SKIP:
            logging.info(f"Already {'concatenated' if job.is_multi_chapter else 'copied'} {name}")
            job.progress = 1.0
            job.done = True
            return job

        if self.dry_run:
            logging.info(f"[DRY RUN] {job.action} {len(job.sources)} chapter(s) -> {name}")
            return job

        verb = "Concatenating" if job.action == CONCAT else "Copying"
        tracker = self.progress.new_tracker(f"{verb} {name}")
        try:
            if job.action == COPY:
                await self._copy(job, tracker)
            else:
                await self._concat(job, tracker)
        except (IngestError, OSError) as e:
            job.error = e
            tracker.on_error(e)
            logging.error(f"Failed to reconcile {name}: {e}")
            return job

        tracker.on_complete()
        job.progress = 1.0
        job.done = True
        return job

    async def reconcile_all(self, jobs: List[ReconciliationJob]) -> List[ReconciliationJob]:
        """Runs every job concurrently; a failed job does not stop the others."""
        return list(await asyncio.gather(*(self.reconcile(j) for j in jobs)))

    async def _copy(self, job: ReconciliationJob, tracker: ProgressObserver):
        def on_progress(written: int, total: int):
            job.progress = written / total if total else 1.0
            tracker.on_progress(job.progress)

        await self.copier.copy(job.sources[0], job.destination, on_progress)

    async def _concat(self, job: ReconciliationJob, tracker: ProgressObserver):
        def on_progress(timemark: str):
            if job.expected_duration <= 0:
                return
            # ffmpeg reports negative out_time before the first packet
            job.progress = max(0.0, min(timemark_to_seconds(timemark) / job.expected_duration, 1.0))
            tracker.on_progress(job.progress)

        await self.concatenator.concat(job.sources, job.destination, on_progress)

