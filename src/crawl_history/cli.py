"""
Inspect persisted crawl history.

Usage:
    crawl-history stats [--provider file]
    crawl-history failures SPIDER [--provider mgo]
"""

import argparse
import logging

from crawl_history.core.config import HistoryConfig
from crawl_history.history import HistoryTracker


def _build_parser(config: HistoryConfig) -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(description="Inspect crawl history")
    parser.add_argument(
        "--provider",
        default=config.provider,
        help="History backend (mgo, mysql, postgres, sqlite, file)",
    )
    parser.add_argument(
        "--cache-dir", default=config.cache_dir, help="Directory of flat-file history"
    )
    parser.add_argument(
        "--file-name",
        default=config.base_file_name,
        help="Base name of history files/tables",
    )

    sub = parser.add_subparsers(dest="command", required=True)
    sub.add_parser("stats", help="Show success and failure counts")
    failures = sub.add_parser("failures", help="List requests that failed for a spider")
    failures.add_argument("spider", help="Spider name")
    return parser


def main(argv: list[str] | None = None) -> int:
    logging.basicConfig(level=logging.INFO)

    config = HistoryConfig.from_settings()
    args = _build_parser(config).parse_args(argv)
    config.provider = args.provider
    config.cache_dir = args.cache_dir
    config.base_file_name = args.file_name

    tracker = HistoryTracker(config)
    try:
        if args.command == "stats":
            tracker.read_success(args.provider, inherit=True)
            tracker.read_failure(args.provider, inherit=True)
            stats = tracker.stats()
            print(f"Provider: {stats['provider']}")
            print(f"Success records: {stats['success']['baseline']}")
            if not stats["failure"]:
                print("Failure records: 0")
            for spider, counts in stats["failure"].items():
                print(f"Failure records [{spider}]: {counts['baseline']}")
        else:
            tracker.read_failure(args.provider, inherit=True)
            requests = tracker.pull_failure(args.spider)
            for request in requests:
                print(f"{request.method} {request.url}")
            print(f"{len(requests)} failed requests for {args.spider}")
    finally:
        tracker.close()
    return 0


if __name__ == "__main__":
    raise SystemExit(main())
