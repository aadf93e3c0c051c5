from collections import Counter
from pathlib import Path
from typing import Dict, List, Set

from .. import config
from ..models import Recording, RecordingKey


class DestinationPlanner:
    def __init__(self, dest_root: Path, session: str):
        self.dest_root = dest_root
        self.session = session
        # Names handed out in this run
        self.used_names: Set[str] = set()

    def plan(self, recordings: List[Recording]) -> Dict[RecordingKey, Path]:
        """
        Destination per recording: <session>-<camera>.MP4, or
        <session>-<camera>-<sequence>.MP4 when the camera has several
        selected recordings in this run.
        """
        per_camera = Counter(rec.camera for rec in recordings)

        planned = {}
        for rec in recordings:
            stem = config.NAME_PATTERN.format(session=self.session, camera=rec.camera)
            if per_camera[rec.camera] > 1:
                stem += config.SEQUENCE_SUFFIX.format(sequence=rec.sequence)
            planned[rec.key] = self._resolve_collision(stem)
        return planned

    def _resolve_collision(self, stem: str) -> Path:
        """Same camera and sequence on two volumes must not share a file."""
        candidate = f"{stem}{config.OUTPUT_EXT}"
        counter = 1
        while candidate in self.used_names:
            candidate = f"{stem}_{counter}{config.OUTPUT_EXT}"
            counter += 1

        self.used_names.add(candidate)
        return self.dest_root / candidate
