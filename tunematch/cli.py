"""Command-line interface for tunematch.

Commands:
    index     - Fingerprint audio files and add them to the catalog
    identify  - Identify a single audio clip
    stats     - Show catalog statistics
    list      - List registered tracks
    remove    - Remove a track and its fingerprints
    clear     - Clear the whole catalog
"""

from __future__ import annotations

import argparse
import logging
import sys
import time
import uuid
from pathlib import Path

from .config import TunematchConfig, load_config
from .database import FingerprintDB
from .errors import TunematchError
from .fingerprint import Fingerprinter
from .logger import setup_logging


def _open_db(args: argparse.Namespace, config: TunematchConfig) -> FingerprintDB:
    store_config = config.store
    if args.db is not None:
        store_config = store_config.model_copy(update={"db_path": args.db})
    return FingerprintDB.from_config(store_config)


def cmd_stats(args: argparse.Namespace, config: TunematchConfig) -> int:
    """Show fingerprint database statistics."""
    db = _open_db(args, config)
    stats = db.get_stats()

    print("tunematch Catalog Statistics")
    print("=" * 40)
    print(f"Registered tracks:          {stats['total_tracks']:,}")
    print(f"Indexed tracks:             {stats['indexed_tracks']:,}")
    print(f"Tracks without prints:      {stats['unindexed_tracks']:,}")
    print(f"Total fingerprints:         {stats['total_fingerprints']:,}")
    print(f"Avg fingerprints/track:     {stats['avg_fingerprints_per_track']:.0f}")

    return 0


def cmd_list(args: argparse.Namespace, config: TunematchConfig) -> int:
    """List registered tracks with their fingerprint counts."""
    db = _open_db(args, config)
    tracks = db.get_all_tracks()

    if not tracks:
        print("No tracks registered.")
        return 0

    for track in tracks:
        print(f"{track['track_id']}  {track['fingerprint_count']:>8,}  {track['display_name']}")
        if args.verbose and track["external_ref"]:
            print(f"    {track['external_ref']}")

    print()
    print(f"{len(tracks)} track(s)")
    return 0


def track_id_for(path: str | Path) -> str:
    """Stable track id for an audio file, derived from its resolved path."""
    return uuid.uuid5(uuid.NAMESPACE_URL, Path(path).resolve().as_uri()).hex


def cmd_index(args: argparse.Namespace, config: TunematchConfig) -> int:
    """Fingerprint audio files into the catalog."""
    from .indexer import Indexer, IndexJob
    from .store import TrackRecord

    missing = [f for f in args.files if not Path(f).exists()]
    if missing:
        for f in missing:
            print(f"Error: File not found: {f}", file=sys.stderr)
        return 1

    db = _open_db(args, config)
    indexer = Indexer(db, Fingerprinter(config.fingerprint))
    sample_rate = config.indexing.sample_rate
    workers = args.workers or config.indexing.workers

    jobs = [
        IndexJob(
            record=TrackRecord(
                track_id=track_id_for(f),
                display_name=Path(f).stem,
                external_ref=str(Path(f).resolve()),
            ),
            sample_rate=sample_rate,
            path=f,
        )
        for f in args.files
    ]

    print(f"Indexing {len(jobs)} tracks...")
    print(f"Using {workers} workers")
    print()

    start_time = time.time()

    def progress(done: int, total: int, result) -> None:
        if args.verbose:
            if result.ok:
                print(f"  {result.track_id}: {result.fingerprint_count} fingerprints")
            else:
                print(f"  {result.track_id}: ERROR - {result.error}")
        print(f"Progress: {done}/{total}", end="\r")

    results = indexer.index_tracks(jobs, max_workers=workers, progress_callback=progress)

    indexed = sum(1 for r in results if r.ok)
    errors = len(results) - indexed
    elapsed = time.time() - start_time

    print()
    print(f"Completed in {elapsed:.1f} seconds")
    print(f"  Indexed: {indexed}")
    print(f"  Errors: {errors}")

    return 0 if errors == 0 else 1


def cmd_identify(args: argparse.Namespace, config: TunematchConfig) -> int:
    """Identify a single audio clip."""
    from .audio import load_audio
    from .matcher import Matcher

    if not Path(args.file).exists():
        print(f"Error: File not found: {args.file}", file=sys.stderr)
        return 1

    db = _open_db(args, config)
    fingerprinter = Fingerprinter(config.fingerprint)
    matcher = Matcher(db, fingerprinter, config.matching)

    print(f"Identifying: {args.file}")
    print()

    start = time.time()
    clip = load_audio(args.file, sample_rate=config.indexing.sample_rate)
    candidates = matcher.identify(clip.samples, clip.sample_rate, clip.duration)
    elapsed = time.time() - start

    if not candidates:
        print("No matches found.")
        return 0

    frame_sec = fingerprinter.frame_duration(clip.sample_rate)
    print(f"Found {len(candidates)} candidate(s) in {elapsed:.1f}s:")
    print()

    for i, c in enumerate(candidates[: args.top_n], 1):
        record = db.get_track(c.track_id)
        name = record.display_name if record else c.track_id
        marker = "" if c.is_confident else " (below threshold)"

        print(f"{i}. {name}{marker}")
        print(f"   Votes: {c.vote_count} ({c.confidence:.1%} of query)")
        print(f"   Position in track: {c.offset_delta * frame_sec:.1f}s")
        print()

    return 0


def cmd_remove(args: argparse.Namespace, config: TunematchConfig) -> int:
    """Remove one track."""
    db = _open_db(args, config)
    if not db.delete_track(args.track_id):
        print(f"Error: Unknown track: {args.track_id}", file=sys.stderr)
        return 1
    print(f"Removed track {args.track_id}.")
    return 0


def cmd_clear(args: argparse.Namespace, config: TunematchConfig) -> int:
    """Clear all tracks and fingerprints."""
    if not args.force:
        confirm = input("This will delete ALL tracks and fingerprints. Are you sure? [y/N] ")
        if confirm.lower() != "y":
            print("Aborted.")
            return 1

    db = _open_db(args, config)
    db.clear()
    print("Catalog cleared.")
    return 0


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="tunematch",
        description="Audio fingerprinting and song recognition",
    )
    parser.add_argument(
        "--config", "-c",
        type=Path,
        help="Path to YAML config file",
    )
    parser.add_argument(
        "--db",
        type=Path,
        help="Path to database (overrides config)",
    )
    parser.add_argument(
        "--verbose", "-v",
        action="store_true",
        help="Show detailed progress",
    )

    subparsers = parser.add_subparsers(dest="command", required=True)

    # stats command
    stats_parser = subparsers.add_parser("stats", help="Show catalog statistics")
    stats_parser.set_defaults(func=cmd_stats)

    # list command
    list_parser = subparsers.add_parser("list", help="List registered tracks")
    list_parser.set_defaults(func=cmd_list)

    # index command
    index_parser = subparsers.add_parser("index", help="Add audio files to the catalog")
    index_parser.add_argument("files", nargs="+", help="Audio files to index")
    index_parser.add_argument(
        "--workers", "-w",
        type=int,
        help="Number of parallel workers (default: from config)",
    )
    index_parser.set_defaults(func=cmd_index)

    # identify command
    identify_parser = subparsers.add_parser("identify", help="Identify an audio clip")
    identify_parser.add_argument("file", help="Audio clip to identify")
    identify_parser.add_argument(
        "--top-n", "-n",
        type=int,
        default=5,
        help="Show top N candidates (default: 5)",
    )
    identify_parser.set_defaults(func=cmd_identify)

    # remove command
    remove_parser = subparsers.add_parser("remove", help="Remove a track")
    remove_parser.add_argument("track_id", help="Track ID to remove")
    remove_parser.set_defaults(func=cmd_remove)

    # clear command
    clear_parser = subparsers.add_parser("clear", help="Clear the catalog")
    clear_parser.add_argument(
        "--force", "-f",
        action="store_true",
        help="Skip confirmation",
    )
    clear_parser.set_defaults(func=cmd_clear)

    return parser


def main(argv: list[str] | None = None) -> int:
    """Main CLI entry point."""
    args = build_parser().parse_args(argv)

    try:
        config = load_config(args.config)
    except (FileNotFoundError, ValueError) as e:
        print(f"Error: {e}", file=sys.stderr)
        return 1

    if args.verbose:
        config.logging.level = "DEBUG"
    setup_logging(config.logging)

    try:
        return args.func(args, config)
    except TunematchError as e:
        logging.getLogger(__name__).error("%s failed: %s", args.command, e)
        print(f"Error: {e}", file=sys.stderr)
        return 1


if __name__ == "__main__":
    sys.exit(main())
