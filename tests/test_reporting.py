import csv
from pathlib import Path
from card_ingest.exceptions import ExtractionFailure, ScanFailure, TransferFailure
from card_ingest.models import Recording, ReconciliationJob
from card_ingest.reporting import RunReport


def job_for(sequence, camera, action, done=True, error=None):
    rec = Recording(volume="Untitled", sequence=sequence, card_dir="100GOPRO", camera=camera, duration_sec=61.5)
    return ReconciliationJob(
        recording=rec,
        destination=Path(f"/dest/s-{camera}.MP4"),
        sources=[Path("/src/a.MP4")],
        expected_duration=61.5,
        expected_size=10,
        action=action,
        done=done,
        error=error,
    )

def test_report_without_failures():
    report = RunReport(jobs=[job_for(1, "GoPro1", "skip"), job_for(2, "GoPro2", "copy")])
    assert not report.has_failures
    report.log_summary()

def test_report_csv_lists_every_outcome(tmp_path):
    broken = Recording(volume="Untitled", sequence=9, card_dir="100GOPRO")
    broken.failure = ExtractionFailure("marker not found")

    report = RunReport(
        scan_failures={"Untitled 2": ScanFailure("Untitled 2", "cannot read DCIM")},
        failed_recordings=[broken],
        jobs=[
            job_for(1, "GoPro1", "concat"),
            job_for(2, "GoPro2", "copy", done=False, error=TransferFailure("disk full")),
        ],
    )
    assert report.has_failures
    assert len(report.failed_jobs) == 1

    out = tmp_path / "report.csv"
    report.write_csv(out)

    with open(out, newline="", encoding="utf-8") as f:
        rows = list(csv.DictReader(f))

    statuses = [(r["Volume"], r["Sequence"], r["Status"]) for r in rows]
    assert statuses == [
        ("Untitled 2", "", "SCAN FAILED"),
        ("Untitled", "0009", "FAILED"),
        ("Untitled", "0001", "OK"),
        ("Untitled", "0002", "FAILED"),
    ]
    assert rows[2]["Action"] == "concat"
    assert rows[2]["Duration"] == "61.50"
    assert "disk full" in rows[3]["Notes"]
