import pytest
from card_ingest.exceptions import ProbeFailure
from card_ingest.metadata.duration import DurationAggregator
from card_ingest.scanning.grouping import group_chapters
from conftest import FakeProbe, make_chapter


@pytest.mark.asyncio
async def test_durations_are_summed_per_recording():
    index = await group_chapters([
        make_chapter("GH010042.MP4"),
        make_chapter("GH020042.MP4"),
        make_chapter("GH010043.MP4"),
    ])
    probe = FakeProbe({"GH010042.MP4": 530.5, "GH020042.MP4": 120.25, "GH010043.MP4": 12.0})

    await DurationAggregator(probe).aggregate(index.recordings())

    assert index.get("Untitled", 42).duration_sec == pytest.approx(650.75)
    assert index.get("Untitled", 43).duration_sec == pytest.approx(12.0)
    assert sorted(probe.duration_calls) == ["GH010042.MP4", "GH010043.MP4", "GH020042.MP4"]

@pytest.mark.asyncio
async def test_probe_failure_only_affects_its_recording():
    index = await group_chapters([
        make_chapter("GH010042.MP4"),
        make_chapter("GH020042.MP4"),
        make_chapter("GH010043.MP4"),
    ])
    probe = FakeProbe({"GH010042.MP4": 530.5, "GH010043.MP4": 12.0})

    await DurationAggregator(probe).aggregate(index.recordings())

    broken = index.get("Untitled", 42)
    healthy = index.get("Untitled", 43)
    assert isinstance(broken.failure, ProbeFailure)
    assert not broken.is_ready
    assert healthy.failure is None
    assert healthy.duration_sec == pytest.approx(12.0)

@pytest.mark.asyncio
async def test_probe_delegates_to_media_probe():
    aggregator = DurationAggregator(FakeProbe({"GH010042.MP4": 3.5}))
    assert await aggregator.probe(make_chapter("GH010042.MP4").path) == 3.5
