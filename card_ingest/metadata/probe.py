import asyncio
import json
import logging
from pathlib import Path
from typing import Any, AsyncIterator, Dict, List, Optional

from pymediainfo import MediaInfo

from .. import config
from ..exceptions import ExtractionFailure, ProbeFailure


class MediaProbe:
    """
    Reads stream layout and container duration from media files.

    Strategies:
      - 'ffprobe' (JSON output) for streams and duration.
      - 'pymediainfo' as a duration fallback when ffprobe reports none.
    """
    def __init__(self, ffprobe_bin: str = config.FFPROBE_BIN):
        self.ffprobe_bin = ffprobe_bin

    async def probe(self, path: Path) -> Dict[str, Any]:
        cmd = [
            self.ffprobe_bin, "-v", "error",
            "-print_format", "json",
            "-show_format", "-show_streams",
            str(path),
        ]
        try:
            proc = await asyncio.create_subprocess_exec(
                *cmd,
                stdout=asyncio.subprocess.PIPE,
                stderr=asyncio.subprocess.PIPE,
            )
        except FileNotFoundError as e:
            raise ProbeFailure(f"{self.ffprobe_bin} not found") from e

        out, err = await proc.communicate()
        if proc.returncode != 0:
            msg = err.decode("utf-8", errors="replace").strip()
            raise ProbeFailure(f"ffprobe failed for {path}: {msg}")

        try:
            return json.loads(out)
        except ValueError as e:
            raise ProbeFailure(f"ffprobe returned invalid JSON for {path}") from e

    async def streams(self, path: Path) -> List[Dict[str, Any]]:
        return (await self.probe(path)).get("streams", [])

    async def duration(self, path: Path) -> float:
        """Container duration in seconds."""
        # Strategy 1: ffprobe
        try:
            data = await self.probe(path)
            raw = data.get("format", {}).get("duration")
            if raw is not None:
                return float(raw)
        except (ProbeFailure, ValueError) as e:
            logging.debug(f"ffprobe duration failed for {path}: {e}")

        # Strategy 2: MediaInfo
        duration = self._mediainfo_duration(path)
        if duration is None:
            raise ProbeFailure(f"Duration unavailable for {path}")
        return duration

    def _mediainfo_duration(self, path: Path) -> Optional[float]:
        try:
            mi = MediaInfo.parse(str(path))
        except Exception as e:
            logging.debug(f"MediaInfo failed for {path}: {e}")
            return None

        for track in mi.tracks:
            if track.track_type == "General" and getattr(track, "duration", None):
                # MediaInfo duration is in milliseconds
                return float(track.duration) / 1000.0
        return None


class SubstreamExtractor:
    """
    Streams the raw bytes of one stream of a media file through ffmpeg.
    Closing the iterator early terminates the ffmpeg process.
    """
    def __init__(self, ffmpeg_bin: str = config.FFMPEG_BIN, chunk_size: int = config.GPMF_READ_CHUNK_SIZE):
        self.ffmpeg_bin = ffmpeg_bin
        self.chunk_size = chunk_size

    def command(self, path: Path, stream_index: int) -> List[str]:
        return [
            self.ffmpeg_bin, "-v", "error", "-y",
            "-i", str(path),
            "-codec", "copy",
            "-map", f"0:{stream_index}",
            "-f", "rawvideo",
            "-",
        ]

    async def stream(self, path: Path, stream_index: int) -> AsyncIterator[bytes]:
        try:
            proc = await asyncio.create_subprocess_exec(
                *self.command(path, stream_index),
                stdout=asyncio.subprocess.PIPE,
                stderr=asyncio.subprocess.DEVNULL,
            )
        except FileNotFoundError as e:
            raise ExtractionFailure(f"{self.ffmpeg_bin} not found") from e

        try:
            while True:
                chunk = await proc.stdout.read(self.chunk_size)
                if not chunk:
                    break
                yield chunk

            await proc.wait()
            if proc.returncode != 0:
                raise ExtractionFailure(
                    f"ffmpeg exited with {proc.returncode} extracting stream {stream_index} of {path}")
        finally:
            if proc.returncode is None:
                logging.debug(f"Terminating extraction of {path}")
                proc.kill()
                await proc.wait()
