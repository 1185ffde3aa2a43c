"""CLI entry point for discovery-engine."""

import argparse
import json
import logging
import os
import sys
from pathlib import Path

from .cache import DuckDBCache
from .config import build_engine, load_config
from .exceptions import ApplyError, CacheError, ConfigError, NotFoundError
from .models import Location
from .scanner import StructureScanner

log = logging.getLogger(__name__)


def _load(args: argparse.Namespace, use_cache: bool = True):
    config = load_config(args.path, args.config)
    if getattr(args, "workers", None):
        config.workers = args.workers
    return config, build_engine(config, use_cache=use_cache)


def cmd_run(args: argparse.Namespace) -> int:
    _config, engine = _load(args, use_cache=not args.no_cache)
    only = args.discovery or None
    try:
        if args.clear_cache:
            engine.clear_cache()
        report = engine.discover(only)
        if not args.discover_only:
            report.applied = engine.apply(only)
    except ApplyError as e:
        print(f"apply failed for discovery '{e.identifier}': {e.original_exception}", file=sys.stderr)
        return 1
    finally:
        engine.cache.close()

    if args.verbose:
        for err in report.unreadable_locations:
            print(f"warning: {err}", file=sys.stderr)
        for err in report.scan_errors:
            print(f"warning: {err}", file=sys.stderr)

    if args.json:
        print(json.dumps(report.to_dict(), indent=2))
        return 0

    print(f"Fingerprint: {report.fingerprint[:16]}")
    print(f"  files parsed: {report.files_scanned}")
    for identifier, stats in report.discoveries.items():
        source = "cache" if stats.cache_hit else "scan"
        applied = "applied" if identifier in report.applied else "not applied"
        print(f"  {identifier:<20} {stats.items:>5} items  ({source}, {applied})")
    if report.scan_errors:
        print(f"  scan errors:  {len(report.scan_errors)}", file=sys.stderr)
    return 0


def cmd_list(args: argparse.Namespace) -> int:
    _config, engine = _load(args, use_cache=False)
    if not len(engine.registry):
        print("No discoveries registered (is 'bootstrap' configured?)")
        return 0
    for position, (identifier, discovery) in enumerate(engine.registry, 1):
        print(f"  {position:2}. {identifier:<20} {type(discovery).__name__}  v{discovery.version}")
    return 0


def cmd_inspect(args: argparse.Namespace) -> int:
    path = Path(args.file).resolve()
    if not path.is_file():
        print(f"Not a file: {path}", file=sys.stderr)
        return 1
    # the file's directory stands in for the location root
    location = Location(namespace=args.namespace or "", path=str(path.parent))
    scanner = StructureScanner(memoize=False)
    structures = scanner.scan_file(location, path)
    if structures is None:
        for err in scanner.errors:
            print(f"error: {err}", file=sys.stderr)
        return 1
    print(json.dumps([s.to_dict() for s in structures], indent=2))
    return 0


def cmd_status(args: argparse.Namespace) -> int:
    config, engine = _load(args)
    try:
        print(f"Project:     {config.project_root}")
        print(f"Fingerprint: {engine.fingerprint()}")
        print(f"Cache:       {engine.cache.description}")
        if isinstance(engine.cache, DuckDBCache) and Path(engine.cache.db_path).exists():
            try:
                stats = engine.cache.stats()
                print(f"  entries: {stats['entries']}  items: {stats['items']}  "
                      f"fingerprints: {stats['fingerprints']}")
            except CacheError as e:
                print(f"  unavailable: {e}", file=sys.stderr)
        print(f"Locations ({len(engine.locations)}):")
        for loc in engine.locations:
            ok = os.path.isdir(loc.path) and os.access(loc.path, os.R_OK)
            print(f"  {'ok ' if ok else '!! '} {loc.namespace or '<root>':<24} {loc.path}")
        print(f"Discoveries: {', '.join(engine.registry.identifiers()) or '(none)'}")
    finally:
        engine.cache.close()
    return 0


def cmd_cache_clear(args: argparse.Namespace) -> int:
    _config, engine = _load(args)
    try:
        engine.cache.flush()
    except CacheError as e:
        print(f"Could not clear cache: {e}", file=sys.stderr)
        return 1
    finally:
        engine.cache.close()
    print(f"Cleared {engine.cache.description}")
    return 0


def main(argv: list[str] | None = None) -> int:
    logging.basicConfig(
        level=logging.WARNING,
        format="%(levelname)s %(name)s: %(message)s",
        stream=sys.stderr,
    )

    parser = argparse.ArgumentParser(
        prog="discovery-engine",
        description="Static component discovery for Python applications",
    )
    parser.add_argument("-v", "--verbose", action="store_true", help="Verbose logging")
    sub = parser.add_subparsers(dest="command", required=True)

    def _project_args(p: argparse.ArgumentParser) -> None:
        p.add_argument("--path", default=".", help="Project root (default: .)")
        p.add_argument("--config", help="Config file (default: <project>/pyproject.toml)")

    # run
    p = sub.add_parser("run", help="Discover and apply")
    _project_args(p)
    p.add_argument("--discovery", action="append", metavar="ID",
                   help="Restrict to one discovery (repeatable)")
    p.add_argument("--clear-cache", action="store_true", help="Flush the cache before running")
    p.add_argument("--no-cache", action="store_true", help="Scan without reading or writing the cache")
    p.add_argument("--discover-only", action="store_true", help="Skip the apply phase")
    p.add_argument("--workers", type=int, help="Scan locations in parallel")
    p.add_argument("--json", action="store_true", help="Print the run report as JSON")

    # list
    p = sub.add_parser("list", help="List registered discoveries in apply order")
    _project_args(p)

    # inspect
    p = sub.add_parser("inspect", help="Print the structures scanned from one file")
    p.add_argument("file", help="Python source file")
    p.add_argument("--namespace", help="Dotted package the file's directory maps to")

    # status
    p = sub.add_parser("status", help="Show locations, fingerprint and cache state")
    _project_args(p)

    # cache-clear
    p = sub.add_parser("cache-clear", help="Flush the discovery cache")
    _project_args(p)

    args = parser.parse_args(argv)

    # scan warnings are only shown with -v
    logging.getLogger("discovery_engine").setLevel(logging.DEBUG if args.verbose else logging.ERROR)

    handlers = {
        "run": cmd_run,
        "list": cmd_list,
        "inspect": cmd_inspect,
        "status": cmd_status,
        "cache-clear": cmd_cache_clear,
    }

    try:
        return handlers[args.command](args)
    except (ConfigError, NotFoundError) as e:
        print(f"error: {e}", file=sys.stderr)
        return 2


if __name__ == "__main__":
    sys.exit(main())
