"""
Exception types raised by discovery-engine.

Scan-time problems (ScanError, LocationUnreadableError) are logged and
skipped by the engine. Registration mistakes (DuplicateIdentifierError,
NotFoundError) surface to the caller immediately. ApplyError aborts the
remaining apply phase. CacheError never leaves the engine: a failing cache
backend is treated as a miss.
"""


class DiscoveryEngineError(Exception):
    """Base class for every error raised by this package."""


class ScanError(DiscoveryEngineError):
    """A single file or directory entry could not be read or parsed."""

    def __init__(self, path: str, reason: str):
        self.path = path
        self.reason = reason
        super().__init__(f"{path}: {reason}")


class LocationUnreadableError(DiscoveryEngineError):
    """The root directory of a location does not exist or is not a directory."""

    def __init__(self, location, reason: str = "not a readable directory"):
        self.location = location
        self.reason = reason
        super().__init__(f"Location {location.namespace or '<root>'} at {location.path}: {reason}")


class DuplicateIdentifierError(DiscoveryEngineError, ValueError):
    def __init__(self, identifier: str):
        self.identifier = identifier
        super().__init__(f"Discovery '{identifier}' is already registered")


class NotFoundError(DiscoveryEngineError, KeyError):
    def __init__(self, identifier: str):
        self.identifier = identifier
        super().__init__(identifier)

    def __str__(self) -> str:
        return f"Discovery '{self.identifier}' is not registered"


class ApplyError(DiscoveryEngineError):
    """
    A discovery's apply() raised.

    Attributes:
        identifier: The discovery whose apply phase failed.
        original_exception: The exception raised by apply().
    """

    def __init__(self, identifier: str, original_exception: BaseException):
        self.identifier = identifier
        self.original_exception = original_exception
        super().__init__(f"apply failed for discovery '{identifier}': {original_exception}")


class CacheError(DiscoveryEngineError):
    """The cache backend is unavailable or returned unreadable data."""


class ConfigError(DiscoveryEngineError):
    """The [tool.discovery-engine] configuration is malformed."""
