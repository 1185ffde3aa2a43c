"""
Shared fixtures for discovery-engine tests.

Provides a source-tree builder on tmp_path, recording fakes for the ports
the built-in discoveries call, and small helpers for scanning one snippet.
"""

import textwrap
from pathlib import Path

import pytest

from discovery_engine.cache import MemoryCache
from discovery_engine.engine import DiscoveryEngine
from discovery_engine.models import Location
from discovery_engine.scanner import StructureScanner


@pytest.fixture
def make_tree(tmp_path):
    """Factory: write {relative path: source} under tmp_path/<root> and return the root."""

    def _factory(files: dict[str, str], root: str = "src") -> Path:
        base = tmp_path / root
        base.mkdir(parents=True, exist_ok=True)
        for rel, source in files.items():
            path = base / rel
            path.parent.mkdir(parents=True, exist_ok=True)
            path.write_text(textwrap.dedent(source).lstrip("\n"), encoding="utf-8")
        return base

    return _factory


@pytest.fixture
def scan_source(tmp_path):
    """Scan a single module's source and return its structures keyed by qualified name."""

    def _scan(source: str, module_path: str = "mod.py", namespace: str = "app") -> dict:
        base = tmp_path / "snippet"
        path = base / module_path
        path.parent.mkdir(parents=True, exist_ok=True)
        path.write_text(textwrap.dedent(source).lstrip("\n"), encoding="utf-8")
        location = Location(namespace=namespace, path=str(base))
        structures = StructureScanner(memoize=False).scan_file(location, path)
        assert structures is not None, "snippet failed to parse"
        return {s.qualified_name: s for s in structures}

    return _scan


@pytest.fixture
def memory_cache():
    return MemoryCache()


@pytest.fixture
def engine(memory_cache):
    return DiscoveryEngine(cache=memory_cache)


# ── recording ports ──────────────────────────────────────────────────────────

class RecordingHooks:
    def __init__(self):
        self.calls = []

    def add_hook(self, kind, hook, callback, priority, accepted_args):
        self.calls.append((kind, hook, callback, priority, accepted_args))


class RecordingPostTypes:
    def __init__(self):
        self.calls = []

    def register_post_type(self, slug, args, cls):
        self.calls.append((slug, args, cls))


class RecordingTaxonomies:
    def __init__(self):
        self.calls = []

    def register_taxonomy(self, slug, object_types, args, cls):
        self.calls.append((slug, object_types, args, cls))


class RecordingContainer:
    def __init__(self):
        self.providers = []

    def register_provider(self, provider):
        self.providers.append(provider)


class RecordingCommands:
    def __init__(self):
        self.commands = {}

    def add_command(self, name, command):
        self.commands[name] = command


class RecordingScheduler:
    def __init__(self):
        self.calls = []

    def schedule(self, hook, recurrence, callback):
        self.calls.append((hook, recurrence, callback))


def _stub_method(self, attr):
    def stub(*args):
        return attr
    stub.__name__ = attr
    return stub


class FakeLoader:
    """
    Loader that hands out stand-in classes instead of importing anything.

    Any method looked up on an instance of a stand-in returns a stub named
    after the method. Names listed in `values` resolve to those values.
    """

    def __init__(self):
        self.loaded = []
        self.values = {}
        self._classes = {}

    def __call__(self, name: str):
        self.loaded.append(name)
        if name in self.values:
            return self.values[name]
        if name not in self._classes:
            self._classes[name] = type(name.rsplit(".", 1)[-1], (), {"__getattr__": _stub_method})
        return self._classes[name]


@pytest.fixture
def fake_loader():
    return FakeLoader()
