import logging
import time
from pathlib import Path
from typing import Dict, List, Optional

from . import config
from .exceptions import ExtractionFailure, ProbeFailure
from .metadata.duration import DurationAggregator
from .metadata.identity import CameraIdentityResolver
from .metadata.probe import MediaProbe
from .models import Recording
from .organization.reconcile import Reconciler, build_jobs
from .organization.rules import DestinationPlanner
from .reporting import RunReport
from .scanning.filesystem import VolumeScanner, list_volumes
from .scanning.grouping import group_chapters
from .selection import SelectAll, SelectionStrategy


class IngestApp:
    def __init__(self,
                 mount_root: Path = Path(config.MOUNT_ROOT),
                 selection: Optional[SelectionStrategy] = None,
                 scanner: Optional[VolumeScanner] = None,
                 resolver: Optional[CameraIdentityResolver] = None,
                 durations: Optional[DurationAggregator] = None,
                 reconciler: Optional[Reconciler] = None):
        probe = MediaProbe()
        self.mount_root = mount_root
        self.selection = selection or SelectAll()
        self.scanner = scanner or VolumeScanner(mount_root)
        self.resolver = resolver or CameraIdentityResolver(probe=probe)
        self.durations = durations or DurationAggregator(probe=probe)
        self.reconciler = reconciler or Reconciler(probe=probe)

    async def ingest(self,
                     dest_root: Path,
                     session: str,
                     volume_prefix: str = config.VOLUME_PREFIX,
                     dry_run: bool = False) -> RunReport:
        """
        Executes the ingest pipeline.
        1. Scan volumes for chapters
        2. Group chapters into recordings & identify cameras
        3. Probe durations
        4. Select
        5. Reconcile (skip / copy / concatenate)
        """
        report = RunReport()
        t_total = time.monotonic()

        # --- Step 1: Scanning ---
        logging.info("Scanning for videos...")
        volumes = self.selection.select_volumes(list_volumes(self.mount_root, volume_prefix))
        if not volumes:
            logging.warning(f"No volumes named {volume_prefix}* under {self.mount_root}")
            return report

        scan = await self.scanner.scan(volumes)
        report.scan_failures = scan.failures

        # --- Step 2: Grouping & Identity ---
        index = await group_chapters(scan.all_chapters(), on_create=self._identify)
        index.freeze()

        # --- Step 3: Durations ---
        identified = [r for r in index.recordings() if r.failure is None]
        await self.durations.aggregate(identified)

        ready: Dict[str, List[Recording]] = {}
        for rec in index.recordings():
            if rec.is_ready:
                ready.setdefault(rec.volume, []).append(rec)
            else:
                report.failed_recordings.append(rec)
        logging.info(f"Scan time: {time.monotonic() - t_total:.1f}s")

        # --- Step 4: Selection ---
        selected = self.selection.select_recordings(ready)
        if not selected:
            logging.info("No recordings selected.")
            return report

        # --- Step 5: Reconciliation ---
        t_copy = time.monotonic()
        destinations = DestinationPlanner(dest_root, session).plan(selected)
        jobs = build_jobs(selected, destinations)

        if not dry_run:
            logging.info(f"Creating destination folder {dest_root}...")
            dest_root.mkdir(parents=True, exist_ok=True)
        self.reconciler.dry_run = dry_run

        logging.info(f"Copying videos to {dest_root}...")
        report.jobs = await self.reconciler.reconcile_all(jobs)

        logging.info(f"Copy/Concatenate time: {time.monotonic() - t_copy:.1f}s")
        logging.info(f"Total time: {time.monotonic() - t_total:.1f}s")
        return report

    async def _identify(self, rec: Recording):
        try:
            rec.camera = await self.resolver.resolve(rec)
        except (ExtractionFailure, ProbeFailure) as e:
            logging.error(f"Cannot identify camera for {rec.volume}/{rec.sequence:04d}: {e}")
            rec.failure = e
