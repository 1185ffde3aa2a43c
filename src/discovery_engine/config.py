"""
Configuration: EngineConfig and the [tool.discovery-engine] table.

    [tool.discovery-engine]
    locations = [
        { namespace = "app", path = "src/app" },
        { namespace = "plugins.shop", path = "plugins/shop" },
    ]
    cache = ".discovery-cache.duckdb"     # false disables the cache
    cache_ttl = 86400                     # seconds; omit to keep until flushed
    workers = 1
    respect_gitignore = true
    bootstrap = "app.boot:register_discoveries"

The bootstrap callable receives the engine and registers discoveries (with
their ports) on it. Relative paths are relative to the project root.
"""

import logging
import pkgutil
import sys
import tomllib
from dataclasses import dataclass, field
from pathlib import Path

from .cache import DuckDBCache, NullCache, ResultCache
from .engine import DiscoveryEngine
from .exceptions import ConfigError
from .files import DEFAULT_EXCLUDE_DIRS
from .scanner import StructureScanner

log = logging.getLogger(__name__)

TOOL_KEY = "discovery-engine"
DEFAULT_CACHE_FILE = ".discovery-cache.duckdb"


@dataclass
class EngineConfig:
    project_root: str
    locations: list[tuple[str, str]] = field(default_factory=list)   # (namespace, absolute path)
    cache_path: str | None = None       # None → NullCache
    cache_ttl: float | None = None
    workers: int = 1
    exclude_dirs: list[str] = field(default_factory=lambda: list(DEFAULT_EXCLUDE_DIRS))
    respect_gitignore: bool = True
    bootstrap: str | None = None        # "module:callable"


def _read_table(path: Path) -> dict:
    try:
        with open(path, "rb") as f:
            data = tomllib.load(f)
    except OSError as e:
        raise ConfigError(f"Cannot read {path}: {e}") from e
    except tomllib.TOMLDecodeError as e:
        raise ConfigError(f"Invalid TOML in {path}: {e}") from e
    if "tool" in data:
        return data["tool"].get(TOOL_KEY, {})
    return data


def _resolve(root: Path, value: str) -> str:
    path = Path(value).expanduser()
    return str(path if path.is_absolute() else (root / path).resolve())


def config_from_table(root: Path, table: dict) -> EngineConfig:
    config = EngineConfig(project_root=str(root), cache_path=str(root / DEFAULT_CACHE_FILE))

    locations = table.get("locations", [])
    if not isinstance(locations, list):
        raise ConfigError("locations must be an array of {namespace, path} tables")
    for i, entry in enumerate(locations):
        if not isinstance(entry, dict) or "path" not in entry:
            raise ConfigError(f"locations[{i}] needs a 'path'")
        namespace = entry.get("namespace", "")
        if not isinstance(namespace, str) or not isinstance(entry["path"], str):
            raise ConfigError(f"locations[{i}]: namespace and path must be strings")
        config.locations.append((namespace, _resolve(root, entry["path"])))

    cache = table.get("cache", DEFAULT_CACHE_FILE)
    if cache is False:
        config.cache_path = None
    elif isinstance(cache, str):
        config.cache_path = cache if cache == ":memory:" else _resolve(root, cache)
    else:
        raise ConfigError("cache must be a path or false")

    ttl = table.get("cache_ttl")
    if ttl is not None and (not isinstance(ttl, (int, float)) or ttl <= 0):
        raise ConfigError("cache_ttl must be a positive number of seconds")
    config.cache_ttl = ttl

    workers = table.get("workers", 1)
    if not isinstance(workers, int) or workers < 1:
        raise ConfigError("workers must be a positive integer")
    config.workers = workers

    if "exclude_dirs" in table:
        config.exclude_dirs = list(table["exclude_dirs"])
    config.respect_gitignore = bool(table.get("respect_gitignore", True))

    bootstrap = table.get("bootstrap")
    if bootstrap is not None and (not isinstance(bootstrap, str) or ":" not in bootstrap):
        raise ConfigError("bootstrap must look like 'package.module:function'")
    config.bootstrap = bootstrap
    return config


def load_config(project_root: str, config_file: str | None = None) -> EngineConfig:
    """
    Load configuration for a project.

    Reads config_file when given, else <project_root>/pyproject.toml; a
    project without either gets the defaults.
    """
    root = Path(project_root).resolve()
    path = Path(config_file) if config_file else root / "pyproject.toml"
    if not path.exists():
        if config_file:
            raise ConfigError(f"Config file not found: {path}")
        log.debug("No pyproject.toml under %s, using defaults", root)
        return config_from_table(root, {})
    return config_from_table(root, _read_table(path))


def build_cache(config: EngineConfig) -> ResultCache:
    if config.cache_path is None:
        return NullCache()
    return DuckDBCache(config.cache_path)


def load_bootstrap(config: EngineConfig):
    # the application's own packages usually live under the project root
    if config.project_root not in sys.path:
        sys.path.insert(0, config.project_root)
    try:
        return pkgutil.resolve_name(config.bootstrap)
    except (ImportError, AttributeError, ValueError) as e:
        raise ConfigError(f"Cannot load bootstrap {config.bootstrap!r}: {e}") from e


def build_engine(config: EngineConfig, use_cache: bool = True) -> DiscoveryEngine:
    scanner = StructureScanner(
        exclude_dirs=config.exclude_dirs,
        respect_gitignore=config.respect_gitignore,
    )
    engine = DiscoveryEngine(
        scanner=scanner,
        cache=build_cache(config) if use_cache else NullCache(),
        cache_ttl=config.cache_ttl,
        workers=config.workers,
    )
    for namespace, path in config.locations:
        engine.add_location(namespace, path)

    if config.bootstrap:
        load_bootstrap(config)(engine)
        log.debug("Bootstrap %s registered %d discoveries", config.bootstrap, len(engine.registry))
    return engine
