import argparse
import asyncio
import logging
import sys
from datetime import date
from pathlib import Path

from . import config
from .core import IngestApp
from .selection import InteractivePrompt, SelectAll

def setup_logging(dest_root: Path, verbose: bool):
    """Sets up logging to both console and a file in the destination."""
    log_level = logging.DEBUG if verbose else logging.INFO

    # Create dest root if it doesn't exist so we can log there
    dest_root.mkdir(parents=True, exist_ok=True)
    log_file = dest_root / config.LOG_FILE_NAME

    logging.basicConfig(
        level=log_level,
        format="%(asctime)s [%(levelname)s] %(message)s",
        handlers=[
            logging.FileHandler(log_file, encoding='utf-8'),
            logging.StreamHandler(sys.stdout)
        ]
    )

    # asyncio logs every subprocess at DEBUG
    logging.getLogger("asyncio").setLevel(logging.WARNING)

def parse_args(argv=None):
    p = argparse.ArgumentParser(description="Card Ingest: merge camera-card chapters into one file per recording")

    p.add_argument("dest", type=Path, help="Destination root")
    p.add_argument("--session", default=None, help="Session name used in output file names (default: <today>-ingest)")

    p.add_argument("--mount-root", type=Path, default=Path(config.MOUNT_ROOT), help="Where card volumes are mounted")
    p.add_argument("--volume-prefix", default=config.VOLUME_PREFIX, help="Only volumes whose name starts with this")
    p.add_argument("--all", action="store_true", help="Ingest every volume and recording without prompting")
    p.add_argument("--dry-run", action="store_true", help="Plan without copying or merging (the session folder and its ingest.log are still created)")
    p.add_argument("--report-csv", type=Path, default=None, help="Write a per-recording report CSV")
    p.add_argument("-v", "--verbose", action="store_true", help="Enable debug logging")

    return p.parse_args(argv)

def main(argv=None):
    args = parse_args(argv)

    # 1. Setup
    session = args.session or f"{date.today().isoformat()}-ingest"
    dest_root = args.dest.resolve() / session

    setup_logging(dest_root, args.verbose)

    logging.info("=== Card Ingest Started ===")
    logging.info(f"Volumes: {args.mount_root}/{args.volume_prefix}*")
    logging.info(f"Dest:    {dest_root}")

    # 2. Config
    selection = SelectAll() if args.all else InteractivePrompt()
    app = IngestApp(mount_root=args.mount_root, selection=selection)

    # 3. Execution
    try:
        report = asyncio.run(app.ingest(
            dest_root=dest_root,
            session=session,
            volume_prefix=args.volume_prefix,
            dry_run=args.dry_run,
        ))
    except KeyboardInterrupt:
        logging.warning("Operation cancelled by user.")
        sys.exit(1)
    except Exception:
        logging.exception("Fatal error during ingest.")
        sys.exit(1)

    report.log_summary()
    if args.report_csv:
        report.write_csv(args.report_csv)

    sys.exit(1 if report.has_failures else 0)

if __name__ == "__main__":
    main()
