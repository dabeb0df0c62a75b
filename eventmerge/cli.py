import argparse
import logging
import sys
from pathlib import Path

from eventmerge import __version__
import eventmerge.config as cfg_module
import eventmerge.db as db_module
from eventmerge.dedup import find_duplicates
from eventmerge.errors import EventMergeError
from eventmerge.feeds import load_candidates
from eventmerge.ingest import process_events_with_deduplication, update_popularity_scores


def _dedup(args, cfg):
    try:
        events = load_candidates(args.feed)
    except EventMergeError as exc:
        print(f"Error: {exc}", file=sys.stderr)
        sys.exit(1)

    by_id = {e.id: e for e in events}
    matches = find_duplicates(events, cfg_module.get_dedup_config(cfg))
    for m in sorted(matches, key=lambda m: m.confidence, reverse=True):
        e1, e2 = by_id[m.event1_id], by_id[m.event2_id]
        print(f"{m.reason}  [{e1.source}] {e1.title}  <->  [{e2.source}] {e2.title}")
    print(f"{len(matches)} duplicate pairs among {len(events)} events.")


def _ingest(args, cfg):
    feeds = cfg_module.get_feeds(cfg)

    if args.feed:
        if not args.source:
            print("Error: --source is required when a feed location is given.", file=sys.stderr)
            sys.exit(1)
        targets = {args.source: args.feed}
    elif args.source:
        if args.source not in feeds:
            print(f"Error: no enabled feed configured for source '{args.source}'.", file=sys.stderr)
            print(f"Configured feeds: {', '.join(sorted(feeds)) or '(none)'}", file=sys.stderr)
            sys.exit(1)
        targets = {args.source: feeds[args.source].get("url", "")}
    else:
        targets = {key: f.get("url", "") for key, f in feeds.items()}

    if not targets:
        print("No enabled feeds found. Check your config.toml [feeds] section.")
        return

    conn = db_module.connect(cfg_module.get_database_path(cfg))
    for source, location in targets.items():
        print(f"Ingesting {source} ...", end=" ", flush=True)
        try:
            events = load_candidates(location)
            stats = process_events_with_deduplication(conn, events, source, cfg)
            print(
                f"{stats.inserted} inserted, {stats.updated} updated, "
                f"{stats.merged} merged, {stats.skipped} skipped."
            )
        except EventMergeError as exc:
            print(f"FAILED ({exc})")


def _popularity(args, cfg):
    conn = db_module.connect(cfg_module.get_database_path(cfg))
    count = update_popularity_scores(conn, cfg)
    print(f"Updated popularity for {count} events.")


def _archive(args, cfg):
    conn = db_module.connect(cfg_module.get_database_path(cfg))
    archived = db_module.archive_past_events(conn)
    print(f"Archived {archived} past events.")


def main(argv=None):
    parser = argparse.ArgumentParser(
        prog="em",
        description="Cross-source event deduplication, merging and popularity scoring",
    )
    parser.add_argument("--version", action="version", version=f"%(prog)s {__version__}")
    parser.add_argument(
        "--config", default="config.toml", metavar="PATH",
        help="Path to config.toml (default: config.toml)",
    )
    parser.add_argument("-v", "--verbose", action="store_true", help="Enable debug logging")

    subparsers = parser.add_subparsers(dest="command", required=True)

    # dedup
    sp_dedup = subparsers.add_parser("dedup", help="Report duplicate pairs within a candidate feed")
    sp_dedup.add_argument("feed", metavar="FEED", help="Path or URL of a JSON candidate feed")

    # ingest
    sp_ingest = subparsers.add_parser("ingest", help="Reconcile candidate feeds into the database")
    sp_ingest.add_argument(
        "--source", metavar="KEY",
        help="Only ingest this source (by its key in config.toml)",
    )
    sp_ingest.add_argument("feed", nargs="?", metavar="FEED", help="Ingest this feed instead of the configured ones")

    # popularity
    subparsers.add_parser("popularity", help="Recompute popularity scores and category percentiles")

    # archive
    subparsers.add_parser("archive", help="Archive events that have already finished")

    args = parser.parse_args(argv)

    logging.basicConfig(
        level=logging.DEBUG if args.verbose else logging.WARNING,
        format="%(asctime)s [%(levelname)s] %(message)s",
        datefmt="%Y-%m-%d %H:%M:%S",
    )

    try:
        cfg = cfg_module.load(Path(args.config))
        # Validate tuning sections up front
        cfg_module.get_dedup_config(cfg)
        cfg_module.get_popularity_config(cfg)
    except EventMergeError as exc:
        print(f"Error: {exc}", file=sys.stderr)
        sys.exit(1)

    if args.command == "dedup":
        _dedup(args, cfg)
    elif args.command == "ingest":
        _ingest(args, cfg)
    elif args.command == "popularity":
        _popularity(args, cfg)
    elif args.command == "archive":
        _archive(args, cfg)


if __name__ == "__main__":
    main()
