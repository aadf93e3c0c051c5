import asyncio
import os
import pytest
from pathlib import Path
from card_ingest.exceptions import ProbeFailure, TransferFailure
from card_ingest.models import Chapter


def gpmf_payload(device_name: bytes, lead: bytes = b"", tail: bytes = b"") -> bytes:
    """Minimal GPMF: DEVC container, DVNM string KLV, then the first STRM."""
    padded = device_name + b"\x00" * (-len(device_name) % 4)
    return (
        lead
        + b"DEVC\x00\x01\x00\x40"
        + b"DVNMc\x01" + len(device_name).to_bytes(2, "big") + padded
        + b"STRM\x00\x01\x00\x10"
        + tail
    )


def make_chapter(name: str, volume: str = "Untitled", card_dir: str = "100GOPRO",
                 size: int = 100, mtime: float = 1_700_000_000.0) -> Chapter:
    from card_ingest.scanning.grouping import parse_chapter_name
    index, sequence = parse_chapter_name(name)
    return Chapter(
        path=Path(f"/Volumes/{volume}/DCIM/{card_dir}/{name}"),
        volume=volume,
        card_dir=card_dir,
        size_bytes=size,
        mtime=mtime,
        chapter_index=index,
        sequence=sequence,
    )


class FakeProbe:
    """Durations and stream layouts keyed by file name."""
    def __init__(self, durations=None, streams=None, fail=()):
        self.durations = dict(durations or {})
        self.stream_map = dict(streams or {})
        self.fail = set(fail)
        self.duration_calls = []
        self.stream_calls = []

    async def duration(self, path):
        await asyncio.sleep(0)
        name = Path(path).name
        self.duration_calls.append(name)
        if name in self.fail or name not in self.durations:
            raise ProbeFailure(f"no duration for {name}")
        return self.durations[name]

    async def streams(self, path):
        await asyncio.sleep(0)
        name = Path(path).name
        self.stream_calls.append(name)
        if name in self.fail:
            raise ProbeFailure(f"no streams for {name}")
        return self.stream_map.get(name, [
            {"index": 0, "codec_tag_string": "avc1"},
            {"index": 1, "codec_tag_string": "mp4a"},
            {"index": 2, "codec_tag_string": "tmcd"},
            {"index": 3, "codec_tag_string": "gpmd"},
        ])


class FakeExtractor:
    """Yields a canned payload in small chunks and records how it was closed."""
    def __init__(self, payloads=None, chunk_size=7):
        self.payloads = dict(payloads or {})
        self.chunk_size = chunk_size
        self.calls = []
        self.closed = []
        self.exhausted = []

    async def stream(self, path, stream_index):
        name = Path(path).name
        self.calls.append((name, stream_index))
        data = self.payloads.get(name, b"")
        try:
            for i in range(0, len(data), self.chunk_size):
                await asyncio.sleep(0)
                yield data[i:i + self.chunk_size]
            self.exhausted.append(name)
        finally:
            self.closed.append(name)


class FakeCopier:
    def __init__(self, fail=()):
        self.calls = []
        self.fail = set(fail)

    async def copy(self, src, dest, on_progress=None):
        self.calls.append((Path(src), Path(dest)))
        await asyncio.sleep(0)
        if Path(dest).name in self.fail:
            raise TransferFailure(f"copy to {dest} failed")
        data = Path(src).read_bytes()
        if on_progress:
            on_progress(len(data) // 2, len(data))
        Path(dest).parent.mkdir(parents=True, exist_ok=True)
        Path(dest).write_bytes(data)
        if on_progress:
            on_progress(len(data), len(data))


class FakeConcatenator:
    def __init__(self, fail=(), timemarks=("0:00:10.00",)):
        self.calls = []
        self.fail = set(fail)
        self.timemarks = timemarks

    async def concat(self, sources, dest, on_progress=None):
        self.calls.append((list(sources), Path(dest)))
        await asyncio.sleep(0)
        if Path(dest).name in self.fail:
            raise TransferFailure(f"merge into {dest} failed")
        for mark in self.timemarks:
            if on_progress:
                on_progress(mark)
        Path(dest).parent.mkdir(parents=True, exist_ok=True)
        Path(dest).write_bytes(b"".join(Path(s).read_bytes() for s in sources))


@pytest.fixture
def mount_root(tmp_path):
    """Returns a factory that lays out <mount>/<volume>/DCIM/<card_dir>/<name>."""
    root = tmp_path / "Volumes"
    root.mkdir()

    def add(volume: str, card_dir: str, name: str, data: bytes = b"video", mtime: float = 1_700_000_000.0) -> Path:
        d = root / volume / "DCIM" / card_dir
        d.mkdir(parents=True, exist_ok=True)
        p = d / name
        p.write_bytes(data)
        os.utime(p, (mtime, mtime))
        return p

    add.root = root
    return add
