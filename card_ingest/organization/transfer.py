import asyncio
import logging
import os
import shlex
import shutil
import tempfile
from pathlib import Path
from typing import Callable, List, Optional

from tqdm import tqdm

from .. import config
from ..exceptions import TransferFailure

CopyProgress = Callable[[int, int], None]
TimemarkProgress = Callable[[str], None]


class FileCopier:
    """Chunked byte copy reporting (written, total) after every chunk."""
    def __init__(self, chunk_size: int = config.COPY_CHUNK_SIZE):
        self.chunk_size = chunk_size

    async def copy(self, src: Path, dest: Path, on_progress: Optional[CopyProgress] = None):
        try:
            total = src.stat().st_size
            written = 0
            dest.parent.mkdir(parents=True, exist_ok=True)

            with open(src, 'rb') as fin, open(dest, 'wb') as fout:
                while chunk := fin.read(self.chunk_size):
                    fout.write(chunk)
                    written += len(chunk)
                    if on_progress:
                        on_progress(written, total)
                    # Let the other jobs run between chunks
                    await asyncio.sleep(0)

            shutil.copystat(src, dest)
        except OSError as e:
            raise TransferFailure(f"Copy {src} -> {dest} failed: {e}") from e


class Concatenator:
    """
    Merges chapters into one file with ffmpeg's concat demuxer, copying
    streams without re-encoding. Progress arrives as elapsed output time.
    """
    def __init__(self, ffmpeg_bin: str = config.FFMPEG_BIN, tmp_dir: Optional[Path] = None):
        self.ffmpeg_bin = ffmpeg_bin
        self.tmp_dir = tmp_dir

    def command(self, list_file: Path, dest: Path) -> List[str]:
        return [
            self.ffmpeg_bin, "-v", "error", "-y",
            "-f", "concat", "-safe", "0",
            "-i", str(list_file),
            "-map", "0:v", "-map", "0:a?",
            "-c", "copy",
            "-progress", "pipe:1", "-nostats",
            str(dest),
        ]

    @staticmethod
    def write_list_file(sources: List[Path], list_file: Path):
        with list_file.open("w", encoding="utf-8") as f:
            for src in sources:
                escaped = str(src).replace("'", "'\\''")
                f.write(f"file '{escaped}'\n")

    async def concat(self, sources: List[Path], dest: Path, on_progress: Optional[TimemarkProgress] = None):
        try:
            dest.parent.mkdir(parents=True, exist_ok=True)

            with tempfile.TemporaryDirectory(dir=self.tmp_dir) as tmp:
                list_file = Path(tmp) / "chapters.txt"
                self.write_list_file(sources, list_file)
                cmd = self.command(list_file, dest)

                if os.environ.get(config.DEBUG_ENV_VAR):
                    tqdm.write(shlex.join(cmd))

                try:
                    proc = await asyncio.create_subprocess_exec(
                        *cmd,
                        stdout=asyncio.subprocess.PIPE,
                        stderr=asyncio.subprocess.PIPE,
                    )
                except FileNotFoundError as e:
                    raise TransferFailure(f"{self.ffmpeg_bin} not found") from e

                _, err = await asyncio.gather(
                    self._read_progress(proc.stdout, on_progress),
                    proc.stderr.read(),
                )
                await proc.wait()
        except OSError as e:
            raise TransferFailure(f"Merge into {dest} failed: {e}") from e

        if proc.returncode != 0:
            msg = err.decode("utf-8", errors="replace").strip()
            raise TransferFailure(f"Merge into {dest} failed ({proc.returncode}): {msg}")

    async def _read_progress(self, stdout: asyncio.StreamReader, on_progress: Optional[TimemarkProgress]):
        async for raw in stdout:
            key, _, value = raw.decode("utf-8", errors="replace").strip().partition("=")
            if key != "out_time" or not value or value == "N/A":
                continue
            if on_progress:
                try:
                    on_progress(value)
                except ValueError:
                    logging.debug(f"Unparseable progress marker {value!r}")
