"""
Discovery registry.

Maps identifiers to Discovery instances in registration order. The order
is the apply order: register discoveries whose side effects others rely on
(taxonomies before the post types that reference them) first.
"""

import logging

from .discovery import Discovery
from .exceptions import DuplicateIdentifierError, NotFoundError

log = logging.getLogger(__name__)


class DiscoveryRegistry:
    def __init__(self) -> None:
        self._discoveries: dict[str, Discovery] = {}

    def register(self, identifier: str, discovery: Discovery) -> Discovery:
        """
        Register a discovery under identifier.

        Raises:
            DuplicateIdentifierError: If identifier is already registered.
        """
        if identifier in self._discoveries:
            raise DuplicateIdentifierError(identifier)
        if not discovery.identifier:
            discovery.identifier = identifier
        elif discovery.identifier != identifier:
            log.debug(
                "Registering %s under %r (its own identifier is %r)",
                type(discovery).__name__, identifier, discovery.identifier,
            )
        self._discoveries[identifier] = discovery
        return discovery

    def get(self, identifier: str) -> Discovery:
        try:
            return self._discoveries[identifier]
        except KeyError:
            raise NotFoundError(identifier) from None

    def has(self, identifier: str) -> bool:
        return identifier in self._discoveries

    def all(self) -> dict[str, Discovery]:
        return dict(self._discoveries)

    def identifiers(self) -> list[str]:
        return list(self._discoveries)

    def __contains__(self, identifier: object) -> bool:
        return identifier in self._discoveries

    def __iter__(self):
        return iter(list(self._discoveries.items()))

    def __len__(self) -> int:
        return len(self._discoveries)
