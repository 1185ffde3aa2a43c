"""Ordered registry of (namespace, path) locations to scan."""

import logging
import os

from .models import Location

log = logging.getLogger(__name__)


class LocationRegistry:
    """
    Locations in first-registration order.

    Paths are made absolute but never checked here: a missing directory is
    reported when it is scanned, not when it is registered.
    """

    def __init__(self) -> None:
        self._locations: dict[tuple[str, str], Location] = {}

    def add_location(self, namespace: str, path: str | os.PathLike) -> Location:
        location = Location(namespace=namespace.strip("."), path=os.path.abspath(os.fspath(path)))
        if location.as_key() in self._locations:
            log.debug("Location already registered: %s", location)
            return self._locations[location.as_key()]
        self._locations[location.as_key()] = location
        log.debug("Registered location %s → %s", location.namespace or "<root>", location.path)
        return location

    def remove_location(self, namespace: str, path: str | os.PathLike) -> bool:
        key = (namespace.strip("."), os.path.abspath(os.fspath(path)))
        return self._locations.pop(key, None) is not None

    def get_locations(self) -> tuple[Location, ...]:
        return tuple(self._locations.values())

    def __iter__(self):
        return iter(self.get_locations())

    def __len__(self) -> int:
        return len(self._locations)
