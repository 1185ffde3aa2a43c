"""
The Discovery contract and its per-run item accumulator.

A discovery has two phases:

    discover(location, structure)  pure: inspect a scanned structure and, if it
                                   matches, append a JSON-plain payload to
                                   self.items under location
    apply()                        side effects: register whatever self.items
                                   holds, freshly scanned or restored from cache

Only apply() may import application code (through the injected loader).
"""

import logging
import pkgutil
import threading
from abc import ABC, abstractmethod
from typing import Any, Callable, Iterable, Iterator

from .criteria import Criterion, concrete_class
from .models import LateBoundReference, Location, StructureDescriptor

log = logging.getLogger(__name__)

Loader = Callable[[str], Any]


def default_loader(name: str) -> Any:
    """Import "pkg.module.Class" or "pkg.module.Class.method" and return the object."""
    return pkgutil.resolve_name(name)


class ItemCollection:
    """
    Ordered multi-map Location → list of payloads.

    Locations keep first-insertion order; reorder() puts them back in
    registration order after a concurrent scan.
    """

    def __init__(self) -> None:
        self._items: dict[Location, list] = {}
        self._lock = threading.Lock()

    def add(self, location: Location, item: Any) -> None:
        with self._lock:
            self._items.setdefault(location, []).append(item)

    def extend(self, location: Location, items: Iterable[Any]) -> None:
        with self._lock:
            self._items.setdefault(location, []).extend(items)

    def for_location(self, location: Location) -> list:
        return list(self._items.get(location, []))

    def locations(self) -> list[Location]:
        return list(self._items)

    def reorder(self, locations: Iterable[Location]) -> None:
        order = {loc: i for i, loc in enumerate(locations)}
        with self._lock:
            self._items = dict(
                sorted(self._items.items(), key=lambda kv: order.get(kv[0], len(order)))
            )

    def clear(self) -> None:
        with self._lock:
            self._items.clear()

    def __iter__(self) -> Iterator[tuple[Location, Any]]:
        for location, items in list(self._items.items()):
            for item in items:
                yield location, item

    def __len__(self) -> int:
        return sum(len(items) for items in self._items.values())

    def __eq__(self, other: object) -> bool:
        if not isinstance(other, ItemCollection):
            return NotImplemented
        return list(self._items.items()) == list(other._items.items())

    def __repr__(self) -> str:
        return f"ItemCollection({len(self)} items in {len(self._items)} locations)"

    # ── serialization ────────────────────────────────────────────────────────

    def to_payload(self) -> list[dict]:
        return [
            {"namespace": loc.namespace, "path": loc.path, "items": list(items)}
            for loc, items in self._items.items()
        ]

    @classmethod
    def from_payload(cls, payload: list[dict]) -> "ItemCollection":
        collection = cls()
        for entry in payload:
            location = Location(namespace=entry["namespace"], path=entry["path"])
            collection.extend(location, entry["items"])
        return collection


class Discovery(ABC):
    """
    Base class for discoveries.

    Subclasses set `identifier` (stable registry and cache key) and bump
    `version` whenever their matching criteria or payload shape change, so
    that cached items from the old logic are not reused.
    """

    identifier: str = ""
    version: str = "1"

    def __init__(self, identifier: str | None = None) -> None:
        if identifier:
            self.identifier = identifier
        self.items = ItemCollection()

    def get_identifier(self) -> str:
        return self.identifier

    def reset(self) -> None:
        self.items = ItemCollection()

    def restore(self, items: ItemCollection) -> None:
        self.items = items

    @abstractmethod
    def discover(self, location: Location, structure: StructureDescriptor) -> None:
        ...

    @abstractmethod
    def apply(self) -> None:
        ...

    def __repr__(self) -> str:
        return f"{type(self).__name__}({self.identifier!r}, {len(self.items)} items)"


def resolve_argument(value: Any, loader: Loader = default_loader) -> Any:
    """
    Resolve a late-bound decorator argument; plain literals pass through.

    Expression tokens can't be resolved without evaluating source and are
    returned as LateBoundReference objects for the caller to reject or handle.
    """
    ref = LateBoundReference.from_value(value)
    if ref is None:
        return value
    if ref.kind == "expression":
        return ref
    return loader(ref.dotted)


class CriteriaDiscovery(Discovery):
    """
    Collect every concrete class matching a Criterion.

    Payload: {"class": qualified name}. apply() hands each payload to the
    optional callback.
    """

    criterion: Criterion | None = None

    def __init__(
        self,
        identifier: str | None = None,
        criterion: Criterion | None = None,
        callback: Callable[[dict], None] | None = None,
    ) -> None:
        super().__init__(identifier)
        if criterion is not None:
            self.criterion = criterion
        if self.criterion is None:
            raise ValueError(f"{type(self).__name__} needs a criterion")
        self.callback = callback

    def payload(self, structure: StructureDescriptor) -> dict:
        return {"class": structure.qualified_name}

    def discover(self, location: Location, structure: StructureDescriptor) -> None:
        if concrete_class.matches(structure) and self.criterion.matches(structure):
            self.items.add(location, self.payload(structure))

    def apply(self) -> None:
        if self.callback is None:
            log.debug("%s has no callback; %d items not applied", self.identifier, len(self.items))
            return
        for _location, item in self.items:
            self.callback(item)


class ClassAttributeDiscovery(Discovery):
    """
    One payload per class-level usage of an attribute (decorator).

    A class decorated twice with the same attribute yields two payloads, in
    source order: {"class": name, "attribute": AttributeUsage.to_dict()}.
    """

    attribute_type: str = ""

    def __init__(
        self,
        identifier: str | None = None,
        attribute_type: str | None = None,
        callback: Callable[[dict], None] | None = None,
    ) -> None:
        super().__init__(identifier)
        if attribute_type:
            self.attribute_type = attribute_type
        self.callback = callback

    def discover(self, location: Location, structure: StructureDescriptor) -> None:
        if not concrete_class.matches(structure):
            return
        for usage in structure.attributes_of(self.attribute_type):
            self.items.add(location, {
                "class": structure.qualified_name,
                "attribute": usage.to_dict(),
            })

    def apply(self) -> None:
        if self.callback is None:
            log.debug("%s has no callback; %d items not applied", self.identifier, len(self.items))
            return
        for _location, item in self.items:
            self.callback(item)


class MethodAttributeDiscovery(Discovery):
    """
    One payload per method-level usage of any of `attribute_types`.

    Payload: {"class", "method", "attribute"}. Methods in source order, and
    usages on one method in decorator order.
    """

    attribute_types: tuple[str, ...] = ()

    def __init__(
        self,
        identifier: str | None = None,
        attribute_types: Iterable[str] | None = None,
        callback: Callable[[dict], None] | None = None,
    ) -> None:
        super().__init__(identifier)
        if attribute_types is not None:
            self.attribute_types = tuple(attribute_types)
        self.callback = callback

    def discover(self, location: Location, structure: StructureDescriptor) -> None:
        if not concrete_class.matches(structure):
            return
        wanted = set(self.attribute_types)
        for method in structure.methods.values():
            for usage in method.attributes:
                if usage.attribute_type in wanted:
                    self.items.add(location, {
                        "class": structure.qualified_name,
                        "method": method.name,
                        "attribute": usage.to_dict(),
                    })

    def apply(self) -> None:
        if self.callback is None:
            log.debug("%s has no callback; %d items not applied", self.identifier, len(self.items))
            return
        for _location, item in self.items:
            self.callback(item)


class ComponentLoader:
    """
    Import-side helper for apply(): loads discovered classes, resolves
    late-bound arguments and keeps one instance per class.
    """

    def __init__(
        self,
        loader: Loader = default_loader,
        factory: Callable[[type], Any] | None = None,
    ) -> None:
        self.loader = loader
        self.factory = factory or (lambda cls: cls())
        self._instances: dict[str, Any] = {}

    def load_class(self, name: str) -> type:
        return self.loader(name)

    def instance(self, name: str) -> Any:
        if name not in self._instances:
            self._instances[name] = self.factory(self.load_class(name))
        return self._instances[name]

    def argument(self, value: Any) -> Any:
        """
        Resolve a decorator argument for a registrar, including references
        nested in lists and dicts.

        Raises:
            ValueError: The argument holds an expression token such as
                `PREFIX + "init"`, which has no value without running source.
        """
        ref = LateBoundReference.from_value(value)
        if ref is not None:
            if ref.kind == "expression":
                raise ValueError(f"Cannot resolve decorator argument {ref.target!r} without evaluating it")
            return resolve_argument(value, self.loader)
        if isinstance(value, list):
            return [self.argument(v) for v in value]
        if isinstance(value, dict):
            return self.arguments(value)
        return value

    def arguments(self, values: dict[str, Any]) -> dict[str, Any]:
        return {key: self.argument(value) for key, value in values.items()}
