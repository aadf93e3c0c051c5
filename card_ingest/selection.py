"""
Selection strategies: which volumes to scan and which recordings to ingest.
"""
import logging
from typing import Callable, Dict, List, Protocol, Sequence

from .models import Recording


class SelectionStrategy(Protocol):
    def select_volumes(self, volumes: List[str]) -> List[str]: ...

    def select_recordings(self, by_volume: Dict[str, List[Recording]]) -> List[Recording]: ...


class SelectAll:
    """Takes every volume and every ready recording."""
    def select_volumes(self, volumes: List[str]) -> List[str]:
        return list(volumes)

    def select_recordings(self, by_volume: Dict[str, List[Recording]]) -> List[Recording]:
        return [rec for volume in sorted(by_volume) for rec in by_volume[volume]]


def parse_selection(text: str, count: int) -> List[int]:
    """
    Parses '1,3-5' into zero-based indices. Blank input selects everything.
    Raises ValueError on anything out of range.
    """
    text = text.strip()
    if not text:
        return list(range(count))

    picked = set()
    for part in text.split(","):
        part = part.strip()
        if not part:
            continue
        if "-" in part:
            lo, hi = (int(p) for p in part.split("-", 1))
        else:
            lo = hi = int(part)
        if lo < 1 or hi > count or lo > hi:
            raise ValueError(f"{part} is outside 1-{count}")
        picked.update(range(lo - 1, hi))
    return sorted(picked)


class InteractivePrompt:
    """Numbered multi-select on the terminal; pressing enter keeps everything."""
    def __init__(self,
                 input_fn: Callable[[str], str] = input,
                 output_fn: Callable[[str], None] = print):
        self.input_fn = input_fn
        self.output_fn = output_fn

    def _choose(self, title: str, labels: Sequence[str]) -> List[int]:
        self.output_fn(title)
        for i, label in enumerate(labels, 1):
            self.output_fn(f"  {i:>3}) {label}")

        while True:
            answer = self.input_fn("Select (e.g. 1,3-5; blank = all): ")
            try:
                return parse_selection(answer, len(labels))
            except ValueError as e:
                self.output_fn(f"Invalid selection: {e}")

    def select_volumes(self, volumes: List[str]) -> List[str]:
        if not volumes:
            return []
        picked = self._choose("Volumes:", volumes)
        return [volumes[i] for i in picked]

    def select_recordings(self, by_volume: Dict[str, List[Recording]]) -> List[Recording]:
        selected = []
        for volume in sorted(by_volume):
            recordings = by_volume[volume]
            if not recordings:
                continue
            picked = self._choose(f"Recordings on {volume}:", [r.label for r in recordings])
            selected.extend(recordings[i] for i in picked)
        logging.info(f"Selected {len(selected)} recordings.")
        return selected
