import pytest
from pathlib import Path
from card_ingest.main import main, parse_args

def test_parse_args_defaults():
    args = parse_args(["/dest"])
    assert args.dest == Path("/dest")
    assert args.mount_root == Path("/Volumes")
    assert args.volume_prefix == "Untitled"
    assert not args.all
    assert not args.dry_run

def test_main_without_volumes_exits_cleanly(tmp_path):
    root = tmp_path / "Volumes"
    root.mkdir()

    with pytest.raises(SystemExit) as exc:
        main([str(tmp_path / "dest"), "--session", "s", "--mount-root", str(root), "--all", "--dry-run"])

    assert exc.value.code == 0
    assert (tmp_path / "dest" / "s").is_dir()

def test_main_reports_unreadable_mount_root(tmp_path):
    with pytest.raises(SystemExit) as exc:
        main([str(tmp_path / "dest"), "--session", "s", "--mount-root", str(tmp_path / "missing"), "--all"])

    assert exc.value.code == 1

def test_dry_run_help_mentions_log_folder(capsys):
    with pytest.raises(SystemExit):
        parse_args(["--help"])

    out = " ".join(capsys.readouterr().out.split())
    assert "ingest.log are still created" in out
