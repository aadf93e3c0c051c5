"""
Per-job progress reporting.

Jobs talk to a ProgressObserver; the aggregator hands out one tqdm bar per
in-flight job, each on its own terminal line.
"""
import logging
from typing import Protocol, Union

from tqdm import tqdm

# Bars count in permille so fractional updates stay visible
BAR_TOTAL = 1000


def timemark_to_seconds(timemark: Union[str, float, int]) -> float:
    """
    Converts an ffmpeg time marker to seconds.
    Accepts numbers, fractional seconds ("12.5") and "H:MM:SS(.fff)".
    """
    if isinstance(timemark, (int, float)):
        return float(timemark)

    mark = timemark.strip()
    if ":" not in mark:
        return float(mark)

    parts = mark.split(":")
    secs = float(parts.pop())
    if parts:
        secs += float(parts.pop()) * 60
    if parts:
        secs += float(parts.pop()) * 3600
    return secs


class ProgressObserver(Protocol):
    def on_progress(self, fraction: float) -> None: ...

    def on_complete(self) -> None: ...

    def on_error(self, err: Exception) -> None: ...


class TqdmTracker:
    def __init__(self, label: str, position: int, disable: bool = False):
        self.label = label
        self.position = position
        self.fraction = 0.0
        self.completed = False
        self.bar = tqdm(
            total=BAR_TOTAL,
            desc=label,
            position=position,
            leave=True,
            disable=disable,
            bar_format="{desc} [{bar}] {percentage:3.0f}% {remaining}",
        )

    def on_progress(self, fraction: float):
        if self.completed:
            return
        self.fraction = min(max(fraction, 0.0), 1.0)
        self.bar.n = round(self.fraction * BAR_TOTAL)
        self.bar.refresh()

    def on_complete(self):
        if self.completed:
            return
        # Time-based estimates rarely land on exactly 100%
        self.fraction = 1.0
        self.bar.n = BAR_TOTAL
        self.bar.refresh()
        self.bar.close()
        self.completed = True

    def on_error(self, err: Exception):
        if self.completed:
            return
        self.bar.set_description(f"{self.label} FAILED")
        self.bar.close()
        self.completed = True
        logging.debug(f"{self.label} failed: {err}")


class ProgressAggregator:
    """Allocates one tracker per job, each on the next free bar line."""
    def __init__(self, disable: bool = False):
        self.disable = disable
        self.trackers: list[TqdmTracker] = []

    def new_tracker(self, label: str) -> TqdmTracker:
        tracker = TqdmTracker(label, position=len(self.trackers), disable=self.disable)
        self.trackers.append(tracker)
        return tracker

    @property
    def active(self) -> int:
        return sum(1 for t in self.trackers if not t.completed)
