import asyncio
import logging
import os
from pathlib import Path
from typing import Iterable, List, Optional, Set

from .. import config
from ..exceptions import ParseFailure, ScanFailure
from ..models import Chapter, ScanReport
from .grouping import parse_chapter_name


async def _list_entries(path: Path) -> List[os.DirEntry]:
    """Lists a directory, yielding to the loop so sibling scans interleave."""
    await asyncio.sleep(0)
    with os.scandir(path) as it:
        entries = list(it)
    # Sort for stable traversal order
    entries.sort(key=lambda e: e.name.lower())
    return entries


def list_volumes(mount_root: Path, prefix: str = config.VOLUME_PREFIX) -> List[str]:
    """Names of mounted volumes following the card naming convention."""
    try:
        names = [e.name for e in os.scandir(mount_root) if e.is_dir() and e.name.startswith(prefix)]
    except OSError as e:
        raise ScanFailure(str(mount_root), f"cannot list mount root: {e}") from e
    return sorted(names)


class VolumeScanner:
    def __init__(self,
                 mount_root: Path = Path(config.MOUNT_ROOT),
                 extensions: Optional[Set[str]] = None):
        self.mount_root = mount_root
        self.extensions = {e.lower() for e in (extensions or config.VIDEO_EXTS)}

    async def scan(self, volumes: Iterable[str]) -> ScanReport:
        """
        Scans every volume concurrently. A volume that cannot be read is
        recorded in the report's failures; the others still complete.
        """
        volumes = list(volumes)
        report = ScanReport()

        results = await asyncio.gather(
            *(self.scan_volume(v) for v in volumes),
            return_exceptions=True,
        )

        for volume, result in zip(volumes, results):
            if isinstance(result, ScanFailure):
                logging.error(f"Failed to scan volume {result}")
                report.failures[volume] = result
            elif isinstance(result, BaseException):
                raise result
            else:
                report.chapters[volume] = result

        found = sum(len(c) for c in report.chapters.values())
        logging.info(f"Scan found {found} chapters on {len(report.chapters)} volumes "
                     f"({len(report.failures)} failed).")
        return report

    async def scan_volume(self, volume: str) -> List[Chapter]:
        dcim = self.mount_root / volume / config.DCIM_DIR
        try:
            entries = await _list_entries(dcim)
        except OSError as e:
            raise ScanFailure(volume, f"cannot read {dcim}: {e}") from e

        card_dirs = [
            Path(e.path) for e in entries
            if e.is_dir(follow_symlinks=False) and e.name.startswith(config.CARD_DIR_PREFIX)
        ]
        if not card_dirs:
            logging.warning(f"No camera-card directories found in {dcim}")

        per_dir = await asyncio.gather(*(self._scan_card_dir(volume, d) for d in card_dirs))
        return [c for chapters in per_dir for c in chapters]

    async def _scan_card_dir(self, volume: str, card_dir: Path) -> List[Chapter]:
        try:
            entries = await _list_entries(card_dir)
        except OSError as e:
            raise ScanFailure(volume, f"cannot read {card_dir}: {e}") from e

        chapters = []
        for e in entries:
            if not e.is_file(follow_symlinks=False):
                continue
            if e.name.startswith("._"):
                continue
            if Path(e.name).suffix.lower() not in self.extensions:
                continue

            chapter = self._build_chapter(volume, card_dir, e)
            if chapter:
                chapters.append(chapter)
        logging.debug(f"{volume}/{card_dir.name}: {len(chapters)} chapters")
        return chapters

    def _build_chapter(self, volume: str, card_dir: Path, entry: os.DirEntry) -> Optional[Chapter]:
        try:
            chapter_index, sequence = parse_chapter_name(entry.name)
        except ParseFailure as e:
            logging.debug(f"Skipping {entry.path}: {e}")
            return None

        try:
            st = entry.stat()
        except OSError as e:
            raise ScanFailure(volume, f"cannot stat {entry.path}: {e}") from e

        return Chapter(
            path=Path(entry.path),
            volume=volume,
            card_dir=card_dir.name,
            size_bytes=st.st_size,
            mtime=st.st_mtime,
            chapter_index=chapter_index,
            sequence=sequence,
        )
