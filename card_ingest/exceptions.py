"""
Custom exception hierarchy for the card ingest tool.

Each failure kind maps to one stage of the pipeline so callers can decide
how far a failure propagates (a file, a recording, a volume or a job).
"""


class IngestError(Exception):
    """Base exception for all card ingest errors."""
    pass


class ScanFailure(IngestError):
    """Raised when a volume or card directory cannot be read."""

    def __init__(self, volume: str, message: str):
        super().__init__(f"{volume}: {message}")
        self.volume = volume


class ParseFailure(IngestError):
    """Raised when a file name does not follow a chapter naming convention."""
    pass


class ExtractionFailure(IngestError):
    """Raised when the device name cannot be read from the telemetry stream."""
    pass


class ProbeFailure(IngestError):
    """Raised when media duration or stream layout is unavailable."""
    pass


class TransferFailure(IngestError):
    """Raised when a copy or merge process fails."""
    pass
