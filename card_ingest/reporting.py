import csv
import logging
from dataclasses import dataclass, field
from pathlib import Path
from typing import Dict, List

from .exceptions import ScanFailure
from .models import Recording, ReconciliationJob


@dataclass
class RunReport:
    """
    Everything the operator needs to know after a run: volumes that could
    not be scanned, recordings that could not be identified or probed, and
    the outcome of every reconciliation job.
    """
    scan_failures: Dict[str, ScanFailure] = field(default_factory=dict)
    failed_recordings: List[Recording] = field(default_factory=list)
    jobs: List[ReconciliationJob] = field(default_factory=list)

    @property
    def failed_jobs(self) -> List[ReconciliationJob]:
        return [j for j in self.jobs if j.error is not None]

    @property
    def has_failures(self) -> bool:
        return bool(self.scan_failures or self.failed_recordings or self.failed_jobs)

    def log_summary(self):
        for volume, err in sorted(self.scan_failures.items()):
            logging.error(f"Volume not scanned: {err}")
        for rec in self.failed_recordings:
            logging.error(f"Recording {rec.volume}/{rec.sequence:04d} skipped: {rec.failure}")
        for job in self.failed_jobs:
            logging.error(f"{job.destination.name} failed: {job.error}")

        counts: Dict[str, int] = {}
        for job in self.jobs:
            if job.error is None:
                counts[job.action or "pending"] = counts.get(job.action or "pending", 0) + 1
        summary = ", ".join(f"{action}={n}" for action, n in sorted(counts.items())) or "nothing to do"
        logging.info(f"Reconciled {len(self.jobs)} recordings ({summary}), "
                     f"{len(self.failed_jobs)} failed.")

    def write_csv(self, output_csv: Path):
        headers = [
            "Volume",
            "Sequence",
            "Camera",
            "Chapters",
            "Duration",
            "Destination",
            "Action",
            "Status",
            "Notes",
        ]

        with open(output_csv, "w", newline="", encoding="utf-8") as f:
            writer = csv.writer(f)
            writer.writerow(headers)

            for volume, err in sorted(self.scan_failures.items()):
                writer.writerow([volume, "", "", "", "", "", "", "SCAN FAILED", str(err)])

            for rec in self.failed_recordings:
                writer.writerow(self._recording_row(rec) + ["", "", "FAILED", str(rec.failure)])

            for job in self.jobs:
                if job.error is not None:
                    status, notes = "FAILED", str(job.error)
                elif job.done:
                    status, notes = "OK", ""
                else:
                    status, notes = "PENDING", "dry run"
                writer.writerow(
                    self._recording_row(job.recording)
                    + [str(job.destination), job.action or "", status, notes]
                )

        logging.info(f"Report written to {output_csv}")

    def _recording_row(self, rec: Recording) -> List[str]:
        return [
            rec.volume,
            f"{rec.sequence:04d}",
            rec.camera or "",
            str(len(rec.chapters)),
            f"{rec.duration_sec:.2f}",
        ]
