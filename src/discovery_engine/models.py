"""Core data structures for discovery-engine."""

from dataclasses import dataclass, field
from enum import Enum
from pathlib import Path
from typing import Any, Iterator


@dataclass(frozen=True)
class Location:
    namespace: str              # dotted package prefix, e.g. "app" or "" for top-level
    path: str                   # absolute directory the prefix is rooted at

    def module_for(self, file_path: Path) -> str:
        """
        Dotted module name for a file below this location.

        "<path>/hooks/admin.py"    → "<namespace>.hooks.admin"
        "<path>/hooks/__init__.py" → "<namespace>.hooks"
        """
        rel = Path(file_path).relative_to(self.path).with_suffix("")
        parts = list(rel.parts)
        if parts and parts[-1] == "__init__":
            parts.pop()
        if self.namespace:
            parts = self.namespace.split(".") + parts
        return ".".join(parts)

    def as_key(self) -> tuple[str, str]:
        return (self.namespace, self.path)


class StructureKind(str, Enum):
    CLASS = "class"
    INTERFACE = "interface"
    ENUM = "enum"


class Visibility(str, Enum):
    PUBLIC = "public"
    PROTECTED = "protected"
    PRIVATE = "private"

    @classmethod
    def of(cls, name: str) -> "Visibility":
        if name.startswith("__") and not name.endswith("__"):
            return cls.PRIVATE
        if name.startswith("_") and not name.endswith("__"):
            return cls.PROTECTED
        return cls.PUBLIC


_REF_KEY = "$ref"


@dataclass(frozen=True)
class LateBoundReference:
    """
    A decorator argument that can only be resolved by importing code.

    Kept as a token during scanning; owning discoveries resolve it in apply().
    """
    kind: str                   # "class-ref" | "static-method-ref" | "expression"
    target: str                 # qualified type name, or raw source text for expressions
    member: str | None = None   # attribute name for static-method-ref

    def to_value(self) -> dict:
        return {_REF_KEY: self.kind, "target": self.target, "member": self.member}

    @classmethod
    def from_value(cls, value: Any) -> "LateBoundReference | None":
        """Return the reference encoded in value, or None for plain literals."""
        if isinstance(value, dict) and _REF_KEY in value:
            return cls(kind=value[_REF_KEY], target=value["target"], member=value.get("member"))
        return None

    @property
    def dotted(self) -> str:
        return f"{self.target}.{self.member}" if self.member else self.target


@dataclass(frozen=True)
class AttributeUsage:
    """One application of a decorator, with its literal arguments in source order."""
    attribute_type: str
    arguments: tuple[tuple[str | None, Any], ...] = ()

    @property
    def positional(self) -> list[Any]:
        return [value for name, value in self.arguments if name is None]

    @property
    def keywords(self) -> dict[str, Any]:
        return {name: value for name, value in self.arguments if name is not None}

    def argument(self, position: int, name: str, default: Any = None) -> Any:
        """Look an argument up the way a call binds it: by keyword, else by position."""
        keywords = self.keywords
        if name in keywords:
            return keywords[name]
        positional = self.positional
        if position < len(positional):
            return positional[position]
        return default

    def to_dict(self) -> dict:
        return {
            "type": self.attribute_type,
            "arguments": [[name, value] for name, value in self.arguments],
        }

    @classmethod
    def from_dict(cls, data: dict) -> "AttributeUsage":
        return cls(
            attribute_type=data["type"],
            arguments=tuple((name, value) for name, value in data.get("arguments", [])),
        )


@dataclass(frozen=True)
class MethodDescriptor:
    name: str
    attributes: tuple[AttributeUsage, ...] = ()
    visibility: Visibility = Visibility.PUBLIC


@dataclass(frozen=True)
class StructureDescriptor:
    kind: StructureKind
    qualified_name: str             # "app.hooks.admin.AdminHooks"
    source_path: str                # file the structure was parsed from
    parent_type: str | None = None  # first direct base
    implemented_interfaces: frozenset[str] = frozenset()
    is_abstract: bool = False
    class_attributes: tuple[AttributeUsage, ...] = ()
    methods: dict[str, MethodDescriptor] = field(default_factory=dict, hash=False)
    line: int = 0

    @property
    def short_name(self) -> str:
        return self.qualified_name.rsplit(".", 1)[-1]

    @property
    def module(self) -> str:
        return self.qualified_name.rsplit(".", 1)[0] if "." in self.qualified_name else ""

    def attributes_of(self, attribute_type: str) -> list[AttributeUsage]:
        return [a for a in self.class_attributes if a.attribute_type == attribute_type]

    def has_attribute(self, attribute_type: str) -> bool:
        return any(a.attribute_type == attribute_type for a in self.class_attributes)

    def method_attributes(self, attribute_type: str) -> Iterator[tuple[MethodDescriptor, AttributeUsage]]:
        for method in self.methods.values():
            for usage in method.attributes:
                if usage.attribute_type == attribute_type:
                    yield method, usage

    def to_dict(self) -> dict:
        return {
            "kind": self.kind.value,
            "qualified_name": self.qualified_name,
            "source_path": self.source_path,
            "line": self.line,
            "parent_type": self.parent_type,
            "implemented_interfaces": sorted(self.implemented_interfaces),
            "is_abstract": self.is_abstract,
            "class_attributes": [a.to_dict() for a in self.class_attributes],
            "methods": {
                name: {
                    "visibility": m.visibility.value,
                    "attributes": [a.to_dict() for a in m.attributes],
                }
                for name, m in self.methods.items()
            },
        }


@dataclass
class CacheEntry:
    fingerprint: str            # hash of the registered location set
    identifier: str             # Discovery identifier
    version: str                # Discovery version stamp
    items: list                 # ItemCollection.to_payload()
    expires_at: float | None    # unix timestamp, None = until flushed
