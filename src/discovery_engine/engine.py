"""
Discovery pipeline: wires locations → scanner → discoveries → cache → apply.

    engine = DiscoveryEngine(cache=DuckDBCache(".discovery-cache.duckdb"))
    engine.add_location("app", "src/app")
    engine.add_discovery("hooks", HookDiscovery(registrar))
    engine.run()

discover() fills every discovery's ItemCollection, from the cache when the
location fingerprint (and the discovery's version) match, otherwise by
scanning each location in registration order. apply() then calls each
discovery's apply() once, in registration order, and stops at the first
failure.
"""

import logging
from concurrent.futures import ThreadPoolExecutor
from dataclasses import dataclass, field
from typing import Iterable

from .cache import NullCache, ResultCache, fingerprint
from .discovery import Discovery, ItemCollection
from .exceptions import ApplyError, CacheError, LocationUnreadableError, ScanError
from .hierarchy import TypeHierarchy
from .locations import LocationRegistry
from .models import Location
from .registry import DiscoveryRegistry
from .scanner import StructureScanner

log = logging.getLogger(__name__)


@dataclass
class DiscoveryStats:
    identifier: str
    items: int = 0
    cache_hit: bool = False
    structures: int = 0     # structures fed to discover()
    errors: int = 0         # discover() calls that raised


@dataclass
class DiscoveryReport:
    fingerprint: str
    discoveries: dict[str, DiscoveryStats] = field(default_factory=dict)
    files_scanned: int = 0
    scan_errors: list[ScanError] = field(default_factory=list)
    unreadable_locations: list[LocationUnreadableError] = field(default_factory=list)
    applied: list[str] = field(default_factory=list)

    @property
    def total_items(self) -> int:
        return sum(s.items for s in self.discoveries.values())

    @property
    def cache_hits(self) -> int:
        return sum(1 for s in self.discoveries.values() if s.cache_hit)

    def to_dict(self) -> dict:
        return {
            "fingerprint": self.fingerprint,
            "files_scanned": self.files_scanned,
            "scan_errors": [str(e) for e in self.scan_errors],
            "unreadable_locations": [str(e) for e in self.unreadable_locations],
            "applied": list(self.applied),
            "discoveries": {
                ident: {
                    "items": s.items,
                    "cache_hit": s.cache_hit,
                    "structures": s.structures,
                    "errors": s.errors,
                }
                for ident, s in self.discoveries.items()
            },
        }


class DiscoveryEngine:
    def __init__(
        self,
        registry: DiscoveryRegistry | None = None,
        locations: LocationRegistry | None = None,
        scanner: StructureScanner | None = None,
        cache: ResultCache | None = None,
        cache_ttl: float | None = None,
        workers: int = 1,
    ) -> None:
        # empty registries and caches are falsy
        self.registry = registry if registry is not None else DiscoveryRegistry()
        self.locations = locations if locations is not None else LocationRegistry()
        self.scanner = scanner if scanner is not None else StructureScanner()
        self.cache = cache if cache is not None else NullCache()
        self.cache_ttl = cache_ttl
        self.workers = max(1, workers)
        self._hierarchy: TypeHierarchy | None = None

    # ── bootstrap ────────────────────────────────────────────────────────────

    def add_location(self, namespace: str, path) -> Location:
        return self.locations.add_location(namespace, path)

    def add_discovery(self, identifier: str, discovery: Discovery) -> Discovery:
        return self.registry.register(identifier, discovery)

    def get_discovery(self, identifier: str) -> Discovery:
        return self.registry.get(identifier)

    def fingerprint(self) -> str:
        return fingerprint(self.locations.get_locations())

    def _selected(self, only: Iterable[str] | None) -> list[tuple[str, Discovery]]:
        if only is None:
            return list(self.registry)
        wanted = set(only)
        for identifier in wanted:
            self.registry.get(identifier)  # NotFoundError for unknown identifiers
        return [(i, d) for i, d in self.registry if i in wanted]

    # ── cache access (a failing cache is a miss) ────────────────────────────

    def _cache_restore(self, fp: str, identifier: str, discovery: Discovery) -> ItemCollection | None:
        try:
            payload = self.cache.get(fp, identifier, discovery.version)
        except CacheError as e:
            log.warning("Cache unavailable for %s, scanning instead: %s", identifier, e)
            return None
        if payload is None:
            return None
        try:
            return ItemCollection.from_payload(payload)
        except (KeyError, TypeError, ValueError) as e:
            log.warning("Ignoring malformed cache entry for %s: %s", identifier, e)
            return None

    def _cache_store(self, fp: str, identifier: str, discovery: Discovery) -> None:
        try:
            self.cache.put(
                fp, identifier, discovery.items.to_payload(),
                ttl=self.cache_ttl, version=discovery.version,
            )
        except CacheError as e:
            log.warning("Could not cache items for %s: %s", identifier, e)

    def clear_cache(self) -> None:
        try:
            self.cache.flush()
        except CacheError as e:
            log.warning("Could not flush cache: %s", e)

    # ── discover phase ───────────────────────────────────────────────────────

    def _type_hierarchy(self, locations: tuple[Location, ...]) -> TypeHierarchy:
        """Index every structure of the run once, so inherited interfaces are visible to criteria."""
        if self._hierarchy is None:
            hierarchy = TypeHierarchy()
            for location in locations:
                try:
                    for structure in self.scanner.scan(location):
                        hierarchy.add(structure)
                except LocationUnreadableError:
                    continue  # reported by the scan that feeds the discovery
            log.debug("Indexed %d types for inheritance", len(hierarchy))
            self._hierarchy = hierarchy
        return self._hierarchy

    def _scan_location(
        self,
        identifier: str,
        discovery: Discovery,
        location: Location,
        hierarchy: TypeHierarchy,
    ) -> tuple[int, int, LocationUnreadableError | None]:
        """Feed every structure of one location to discovery. Returns (structures, errors, unreadable)."""
        structures = 0
        errors = 0
        try:
            for structure in self.scanner.scan(location):
                structures += 1
                try:
                    discovery.discover(location, hierarchy.close(structure))
                except Exception as e:
                    errors += 1
                    log.warning(
                        "%s failed on %s (%s): %s",
                        identifier, structure.qualified_name, structure.source_path, e,
                        exc_info=True,
                    )
        except LocationUnreadableError as e:
            return structures, errors, e
        return structures, errors, None

    def _discover_one(
        self,
        identifier: str,
        discovery: Discovery,
        locations: tuple[Location, ...],
        fp: str,
        report: DiscoveryReport,
    ) -> None:
        stats = DiscoveryStats(identifier=identifier)
        report.discoveries[identifier] = stats
        discovery.reset()

        cached = self._cache_restore(fp, identifier, discovery)
        if cached is not None:
            discovery.restore(cached)
            stats.cache_hit = True
            stats.items = len(cached)
            log.info("Restored %d items for %s from cache", stats.items, identifier)
            return

        hierarchy = self._type_hierarchy(locations)
        if self.workers > 1 and len(locations) > 1:
            with ThreadPoolExecutor(max_workers=self.workers) as pool:
                futures = [
                    pool.submit(self._scan_location, identifier, discovery, loc, hierarchy)
                    for loc in locations
                ]
                results = [f.result() for f in futures]
            discovery.items.reorder(locations)
        else:
            results = [self._scan_location(identifier, discovery, loc, hierarchy) for loc in locations]

        for structures, errors, unreadable in results:
            stats.structures += structures
            stats.errors += errors
            if unreadable is not None and not any(
                u.location == unreadable.location for u in report.unreadable_locations
            ):
                log.warning("Skipping %s", unreadable)
                report.unreadable_locations.append(unreadable)

        stats.items = len(discovery.items)
        log.info(
            "Discovered %d items for %s from %d structures (%d errors)",
            stats.items, identifier, stats.structures, stats.errors,
        )
        self._cache_store(fp, identifier, discovery)

    def discover(self, only: Iterable[str] | None = None) -> DiscoveryReport:
        """
        Run the collect phase for every (or the selected) discovery.

        Per-structure failures and unreadable locations are logged and
        reported, never raised.
        """
        locations = self.locations.get_locations()
        fp = fingerprint(locations)
        report = DiscoveryReport(fingerprint=fp)
        self.scanner.clear_memo()
        self._hierarchy = None

        for identifier, discovery in self._selected(only):
            self._discover_one(identifier, discovery, locations, fp, report)

        report.files_scanned = self.scanner.files_scanned
        # walk errors repeat once per pass over a location
        report.scan_errors = list({(e.path, e.reason): e for e in self.scanner.errors}.values())
        self.scanner.clear_memo()
        self._hierarchy = None

        log.info(
            "Discovery finished: %d discoveries, %d items, %d from cache, %d files parsed",
            len(report.discoveries), report.total_items, report.cache_hits, report.files_scanned,
        )
        return report

    # ── apply phase ──────────────────────────────────────────────────────────

    def apply(self, only: Iterable[str] | None = None) -> list[str]:
        """
        Call apply() on each discovery in registration order.

        Raises:
            ApplyError: The first failing discovery; later ones are not applied.
        """
        applied: list[str] = []
        for identifier, discovery in self._selected(only):
            log.debug("Applying %s (%d items)", identifier, len(discovery.items))
            try:
                discovery.apply()
            except ApplyError:
                raise
            except Exception as e:
                log.error("Apply failed for %s: %s", identifier, e)
                raise ApplyError(identifier, e) from e
            applied.append(identifier)
        return applied

    def run(self, only: Iterable[str] | None = None) -> DiscoveryReport:
        report = self.discover(only)
        report.applied = self.apply(only)
        return report
