import asyncio
import logging
import re
from contextlib import aclosing
from pathlib import Path
from typing import Dict, Optional

from .. import config
from ..exceptions import ExtractionFailure
from ..models import Recording, RecordingKey
from .probe import MediaProbe, SubstreamExtractor


def normalize_identity(raw: str) -> str:
    """Camera identities are alphanumeric only ('HERO12 Black' -> 'HERO12Black')."""
    return re.sub(r'[^a-zA-Z0-9]', '', raw)


class DeviceNameScanner:
    """
    Bounded-buffer scan for the device name inside a raw GPMF byte stream.

    GPMF is KLV encoded: the 'DVNM' key is followed by a 4-byte header
    (type, structure size, 16-bit repeat count) and the name itself, which
    ends before the next 'STRM' key. Only the bytes needed to match a
    marker split across chunks are retained while searching.
    """
    def __init__(self,
                 start_marker: bytes = config.DEVICE_NAME_START,
                 end_marker: bytes = config.DEVICE_NAME_END,
                 max_bytes: int = config.GPMF_SCAN_MAX_BYTES,
                 max_token_length: int = config.DEVICE_NAME_MAX_LENGTH):
        self.start_marker = start_marker
        self.end_marker = end_marker
        self.max_bytes = max_bytes
        self.max_token_length = max_token_length

        self.bytes_seen = 0
        self._buf = bytearray()
        self._in_token = False

    def feed(self, chunk: bytes) -> Optional[str]:
        """Returns the raw token once it is complete, otherwise None."""
        self.bytes_seen += len(chunk)
        self._buf += chunk

        if not self._in_token:
            idx = self._buf.find(self.start_marker)
            if idx < 0:
                # Keep a partial marker that may continue in the next chunk
                keep = len(self.start_marker) - 1
                del self._buf[:-keep]
                self._check_budget()
                return None
            del self._buf[:idx + len(self.start_marker)]
            self._in_token = True

        if len(self._buf) < config.KLV_HEADER_SIZE:
            self._check_budget()
            return None

        size = self._buf[1]
        repeat = int.from_bytes(self._buf[2:4], "big")
        declared = size * repeat
        limit = min(declared, self.max_token_length) if declared else self.max_token_length

        body = self._buf[config.KLV_HEADER_SIZE:]
        end = body.find(self.end_marker)
        if end >= 0:
            token = body[:min(end, limit)]
        elif len(body) >= limit:
            token = body[:limit]
        else:
            self._check_budget()
            return None

        return token.rstrip(b"\x00").decode("latin-1")

    def finish(self):
        """Called when the stream ends without a token."""
        raise ExtractionFailure(
            f"Device name marker {self.start_marker!r} not found in {self.bytes_seen} bytes")

    def _check_budget(self):
        if self.bytes_seen > self.max_bytes:
            raise ExtractionFailure(
                f"Device name marker not found within {self.max_bytes} bytes")


class CameraIdentityResolver:
    """
    Determines which physical camera produced a recording.

    Non-GoPro card directories map to a fixed identity. GoPro recordings are
    identified by the device name in their telemetry stream, extracted once
    per (volume, sequence).
    """
    def __init__(self,
                 probe: Optional[MediaProbe] = None,
                 extractor: Optional[SubstreamExtractor] = None,
                 timeout: float = config.GPMF_SCAN_TIMEOUT,
                 max_bytes: int = config.GPMF_SCAN_MAX_BYTES):
        self.probe = probe or MediaProbe()
        self.extractor = extractor or SubstreamExtractor()
        self.timeout = timeout
        self.max_bytes = max_bytes

        self._cache: Dict[RecordingKey, str] = {}
        self._locks: Dict[RecordingKey, asyncio.Lock] = {}

    async def resolve(self, recording: Recording) -> str:
        if config.GOPRO_DIR_MARKER not in recording.card_dir.upper():
            return config.NON_GOPRO_IDENTITY

        key = recording.key
        lock = self._locks.setdefault(key, asyncio.Lock())
        async with lock:
            if key in self._cache:
                return self._cache[key]

            chapter = recording.sorted_chapters()[0]
            logging.info(f"Getting device name for {chapter.path}")
            name = await self.extract_device_name(chapter.path)
            logging.info(f"Found camera name {name} for {chapter.path}")

            self._cache[key] = name
            return name

    async def find_telemetry_stream(self, path: Path) -> int:
        for stream in await self.probe.streams(path):
            if stream.get("codec_tag_string") == config.GPMF_CODEC_TAG:
                return int(stream["index"])

        logging.debug(f"No {config.GPMF_CODEC_TAG} tag in {path}, "
                      f"using stream {config.GPMF_DEFAULT_STREAM_INDEX}")
        return config.GPMF_DEFAULT_STREAM_INDEX

    async def extract_device_name(self, path: Path) -> str:
        stream_index = await self.find_telemetry_stream(path)
        scanner = DeviceNameScanner(max_bytes=self.max_bytes)

        token = None
        try:
            async with asyncio.timeout(self.timeout):
                async with aclosing(self.extractor.stream(path, stream_index)) as chunks:
                    async for chunk in chunks:
                        token = scanner.feed(chunk)
                        if token is not None:
                            # Leaving the block terminates ffmpeg
                            break
        except TimeoutError as e:
            raise ExtractionFailure(
                f"Timed out after {self.timeout}s reading telemetry of {path}") from e

        if token is None:
            scanner.finish()

        name = normalize_identity(token)
        if not name:
            raise ExtractionFailure(f"Empty device name in {path}")
        return name
