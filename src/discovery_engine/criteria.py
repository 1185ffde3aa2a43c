"""Composable structural predicates used by discoveries to decide what they collect.

Usage:
    criterion = implements("app.contracts.Taggable") & ~name_startswith("Test")
    if criterion.matches(structure):
        ...
"""

from dataclasses import dataclass
from typing import Callable

from .models import StructureDescriptor, StructureKind


@dataclass(frozen=True)
class Criterion:
    """
    A named predicate over StructureDescriptor.

    Combine with & (all), | (any) and ~ (not). The description is only used
    for logging and repr.
    """

    description: str
    predicate: Callable[[StructureDescriptor], bool]

    def matches(self, structure: StructureDescriptor) -> bool:
        return bool(self.predicate(structure))

    __call__ = matches

    def __and__(self, other: "Criterion") -> "Criterion":
        return all_of(self, other)

    def __or__(self, other: "Criterion") -> "Criterion":
        return any_of(self, other)

    def __invert__(self) -> "Criterion":
        return Criterion(f"not {self.description}", lambda s: not self.matches(s))

    def __repr__(self) -> str:
        return f"Criterion({self.description})"


def all_of(*criteria: Criterion) -> Criterion:
    return Criterion(
        "(" + " and ".join(c.description for c in criteria) + ")",
        lambda s: all(c.matches(s) for c in criteria),
    )


def any_of(*criteria: Criterion) -> Criterion:
    return Criterion(
        "(" + " or ".join(c.description for c in criteria) + ")",
        lambda s: any(c.matches(s) for c in criteria),
    )


def implements(type_name: str) -> Criterion:
    """
    Matches classes that list type_name as a base, directly or through a
    base scanned in the same run. The engine widens implemented_interfaces
    before discoveries see a structure.
    """
    return Criterion(f"implements {type_name}", lambda s: type_name in s.implemented_interfaces)


def extends(type_name: str) -> Criterion:
    """Matches classes whose first direct base is type_name."""
    return Criterion(f"extends {type_name}", lambda s: s.parent_type == type_name)


def has_attribute(attribute_type: str) -> Criterion:
    return Criterion(f"has @{attribute_type}", lambda s: s.has_attribute(attribute_type))


def has_method_attribute(attribute_type: str) -> Criterion:
    return Criterion(
        f"has method @{attribute_type}",
        lambda s: any(True for _ in s.method_attributes(attribute_type)),
    )


def name_endswith(suffix: str) -> Criterion:
    return Criterion(f"name ends with {suffix!r}", lambda s: s.short_name.endswith(suffix))


def name_startswith(prefix: str) -> Criterion:
    return Criterion(f"name starts with {prefix!r}", lambda s: s.short_name.startswith(prefix))


def kind_is(kind: StructureKind) -> Criterion:
    return Criterion(f"is {kind.value}", lambda s: s.kind is kind)


# Abstract classes and non-class kinds can't be registered as components.
concrete_class = Criterion(
    "concrete class",
    lambda s: s.kind is StructureKind.CLASS and not s.is_abstract,
)
