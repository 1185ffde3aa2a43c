"""
Inheritance closure over the structures seen in one engine run.

A single file only shows a class's direct bases. TypeHierarchy indexes
every scanned structure by qualified name, so a class that extends an
abstract base picks up the interfaces that base implements:

    class BaseTag(Taggable, ABC): ...     # app.tags
    class Foo(BaseTag): ...               # app.models

    hierarchy.close(foo).implemented_interfaces
        → {"app.tags.BaseTag", "app.contracts.Taggable"}

Bases that were never scanned (third-party or stdlib types) end the chain.
"""

import dataclasses
from typing import Iterable

from .models import StructureDescriptor


class TypeHierarchy:
    def __init__(self, structures: Iterable[StructureDescriptor] = ()) -> None:
        self._bases: dict[str, frozenset[str]] = {}
        for structure in structures:
            self.add(structure)

    def __len__(self) -> int:
        return len(self._bases)

    def __contains__(self, name: str) -> bool:
        return name in self._bases

    def add(self, structure: StructureDescriptor) -> None:
        # the same name reached through overlapping locations: keep every base
        known = self._bases.get(structure.qualified_name, frozenset())
        self._bases[structure.qualified_name] = known | structure.implemented_interfaces

    def ancestors(self, bases: Iterable[str]) -> frozenset[str]:
        """bases plus every supertype reachable through indexed structures. Cycles end the walk."""
        seen: set[str] = set()
        stack = list(bases)
        while stack:
            name = stack.pop()
            if name in seen:
                continue
            seen.add(name)
            stack.extend(self._bases.get(name, ()))
        return frozenset(seen)

    def close(self, structure: StructureDescriptor) -> StructureDescriptor:
        """structure with implemented_interfaces widened to inherited ones. parent_type stays direct."""
        interfaces = self.ancestors(structure.implemented_interfaces)
        interfaces = interfaces - {structure.qualified_name}
        if interfaces == structure.implemented_interfaces:
            return structure
        return dataclasses.replace(structure, implemented_interfaces=interfaces)
