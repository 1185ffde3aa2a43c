"""
Structure extraction from tree-sitter ASTs.

Turns one parsed module into StructureDescriptors: classes with their
resolved bases, decorators (as AttributeUsage) and methods. Decorator
arguments are decoded from the syntax tree only: literal leaves go through
ast.literal_eval, names and attribute chains become LateBoundReference
tokens, anything else is kept as an "expression" token with its source text.

Uses tree-walking (child_by_field_name, node.children) rather than the
Query API, which was removed in tree-sitter 0.25.
"""

import ast
import logging
from typing import Any

from tree_sitter import Node, Tree

from .models import (
    AttributeUsage,
    LateBoundReference,
    MethodDescriptor,
    StructureDescriptor,
    StructureKind,
    Visibility,
)
from .parse import STATEMENT_CONTAINERS, text
from .resolve import ImportTable, build_import_table

log = logging.getLogger(__name__)

PROTOCOL_TYPES = frozenset({"typing.Protocol", "typing_extensions.Protocol"})
ENUM_TYPES = frozenset({
    "enum.Enum", "enum.IntEnum", "enum.StrEnum", "enum.Flag", "enum.IntFlag",
})
ABSTRACT_BASES = frozenset({"abc.ABC"})
ABSTRACT_METACLASSES = frozenset({"abc.ABCMeta"})
ABSTRACT_DECORATORS = frozenset({
    "abc.abstractmethod", "abc.abstractproperty",
    "abc.abstractclassmethod", "abc.abstractstaticmethod",
})

_LITERAL_LEAVES = (
    "string", "concatenated_string", "integer", "float",
    "true", "false", "none", "unary_operator",
)
_PLAIN_TYPES = (str, int, float, bool, type(None))


def _named(node: Node) -> list[Node]:
    return [c for c in node.named_children if c.type != "comment"]


def _dotted(node: Node) -> str:
    return "".join(text(node).split())


def _expression_ref(node: Node) -> dict:
    return LateBoundReference(kind="expression", target=text(node)).to_value()


# ── decorator arguments ──────────────────────────────────────────────────────

def literal_value(node: Node, table: ImportTable) -> Any:
    """Decode a decorator argument without evaluating it."""
    if node.type in _LITERAL_LEAVES:
        try:
            value = ast.literal_eval(text(node))
        except (ValueError, SyntaxError, TypeError, MemoryError, RecursionError):
            return _expression_ref(node)
        if isinstance(value, _PLAIN_TYPES):
            return value
        return _expression_ref(node)

    if node.type == "parenthesized_expression":
        inner = _named(node)
        return literal_value(inner[0], table) if len(inner) == 1 else _expression_ref(node)

    if node.type in ("list", "tuple", "set"):
        if any(c.type in ("list_splat", "parenthesized_list_splat") for c in node.named_children):
            return _expression_ref(node)
        return [literal_value(c, table) for c in _named(node)]

    if node.type == "dictionary":
        result: dict[str, Any] = {}
        for pair in _named(node):
            if pair.type != "pair":
                return _expression_ref(node)
            key = literal_value(pair.child_by_field_name("key"), table)
            if LateBoundReference.from_value(key) is not None:
                return _expression_ref(node)
            result[key if isinstance(key, str) else str(key)] = literal_value(
                pair.child_by_field_name("value"), table
            )
        return result

    if node.type == "identifier":
        return LateBoundReference(kind="class-ref", target=table.resolve(text(node))).to_value()

    if node.type == "attribute":
        obj = node.child_by_field_name("object")
        attr = node.child_by_field_name("attribute")
        if obj is not None and obj.type in ("identifier", "attribute") and _is_dotted(obj):
            return LateBoundReference(
                kind="static-method-ref",
                target=table.resolve(_dotted(obj)),
                member=text(attr),
            ).to_value()

    return _expression_ref(node)


def _is_dotted(node: Node) -> bool:
    if node.type == "identifier":
        return True
    if node.type == "attribute":
        obj = node.child_by_field_name("object")
        return obj is not None and _is_dotted(obj)
    return False


def _arguments(args_node: Node | None, table: ImportTable) -> tuple[tuple[str | None, Any], ...]:
    if args_node is None or args_node.type != "argument_list":
        return ()
    arguments: list[tuple[str | None, Any]] = []
    for child in _named(args_node):
        if child.type == "keyword_argument":
            name = text(child.child_by_field_name("name"))
            arguments.append((name, literal_value(child.child_by_field_name("value"), table)))
        elif child.type in ("list_splat", "dictionary_splat"):
            arguments.append((None, _expression_ref(child)))
        else:
            arguments.append((None, literal_value(child, table)))
    return tuple(arguments)


def attribute_usage(decorator: Node, table: ImportTable) -> AttributeUsage | None:
    """One decorator node → AttributeUsage. `@name` and `@name(...)` are both usages."""
    exprs = _named(decorator)
    if not exprs:
        return None
    expr = exprs[0]
    if expr.type == "call":
        func = expr.child_by_field_name("function")
        args = expr.child_by_field_name("arguments")
    else:
        func, args = expr, None
    if func is None:
        return None
    if _is_dotted(func):
        attribute_type = table.resolve(_dotted(func))
    else:
        attribute_type = text(func)
    return AttributeUsage(attribute_type=attribute_type, arguments=_arguments(args, table))


def _decorators(node: Node, table: ImportTable) -> tuple[AttributeUsage, ...]:
    """Decorators of a definition, in source order. node is the decorated_definition, if any."""
    if node.type != "decorated_definition":
        return ()
    usages = []
    for child in node.children:
        if child.type == "decorator":
            usage = attribute_usage(child, table)
            if usage is not None:
                usages.append(usage)
    return tuple(usages)


# ── classes ──────────────────────────────────────────────────────────────────

def _bases(class_node: Node, table: ImportTable) -> tuple[list[str], str | None]:
    """Resolved direct bases in order, and the resolved metaclass keyword if present."""
    bases: list[str] = []
    metaclass: str | None = None
    args_node = class_node.child_by_field_name("superclasses")
    if args_node is None:
        return bases, metaclass
    for child in _named(args_node):
        if child.type == "keyword_argument":
            if text(child.child_by_field_name("name")) == "metaclass":
                value = child.child_by_field_name("value")
                if value is not None and _is_dotted(value):
                    metaclass = table.resolve(_dotted(value))
            continue
        if child.type == "subscript":
            # Generic[T], Base[Model]
            child = child.child_by_field_name("value")
        if child is not None and _is_dotted(child):
            bases.append(table.resolve(_dotted(child)))
    return bases, metaclass


def _class_kind(bases: list[str]) -> StructureKind:
    if any(b in PROTOCOL_TYPES for b in bases):
        return StructureKind.INTERFACE
    if any(b in ENUM_TYPES for b in bases):
        return StructureKind.ENUM
    return StructureKind.CLASS


class _ModuleExtractor:
    def __init__(self, table: ImportTable, source_path: str) -> None:
        self.table = table
        self.source_path = source_path
        self.structures: list[StructureDescriptor] = []

    def visit_scope(self, node: Node, prefix: str) -> None:
        """Find class definitions at module scope (or a class body), skipping function bodies."""
        for child in node.children:
            if child.type == "class_definition":
                self.visit_class(child, child, prefix)
            elif child.type == "decorated_definition":
                definition = child.child_by_field_name("definition")
                if definition is not None and definition.type == "class_definition":
                    self.visit_class(definition, child, prefix)
            elif child.type in STATEMENT_CONTAINERS:
                self.visit_scope(child, prefix)

    def visit_class(self, class_node: Node, outer: Node, prefix: str) -> None:
        name = text(class_node.child_by_field_name("name"))
        if not name:
            return
        qualified = f"{prefix}.{name}" if prefix else self.table.local(name)
        bases, metaclass = _bases(class_node, self.table)
        methods: dict[str, MethodDescriptor] = {}

        body = class_node.child_by_field_name("body")
        if body is not None:
            self._collect_methods(body, methods)

        is_abstract = (
            any(b in ABSTRACT_BASES for b in bases)
            or metaclass in ABSTRACT_METACLASSES
            or any(
                usage.attribute_type in ABSTRACT_DECORATORS
                for method in methods.values()
                for usage in method.attributes
            )
        )

        self.structures.append(StructureDescriptor(
            kind=_class_kind(bases),
            qualified_name=qualified,
            source_path=self.source_path,
            parent_type=bases[0] if bases else None,
            implemented_interfaces=frozenset(bases),
            is_abstract=is_abstract,
            class_attributes=_decorators(outer, self.table),
            methods=methods,
            line=class_node.start_point[0] + 1,
        ))

        if body is not None:
            self.visit_scope(body, qualified)

    def _collect_methods(self, node: Node, methods: dict[str, MethodDescriptor]) -> None:
        for child in node.children:
            if child.type == "function_definition":
                func, outer = child, child
            elif child.type == "decorated_definition":
                func = child.child_by_field_name("definition")
                outer = child
                if func is None or func.type != "function_definition":
                    continue
            else:
                if child.type in STATEMENT_CONTAINERS:
                    self._collect_methods(child, methods)
                continue

            name = text(func.child_by_field_name("name"))
            if not name:
                continue
            attributes = _decorators(outer, self.table)
            if name in methods:
                # property setters/overloads: same name defined again, keep every usage
                attributes = methods[name].attributes + attributes
            methods[name] = MethodDescriptor(
                name=name,
                attributes=attributes,
                visibility=Visibility.of(name),
            )


def extract_structures(
    tree: Tree,
    module: str,
    source_path: str,
    is_package: bool = False,
) -> list[StructureDescriptor]:
    """Every named, module-addressable class in a parsed module, in source order."""
    table = build_import_table(tree.root_node, module, is_package)
    extractor = _ModuleExtractor(table, source_path)
    extractor.visit_scope(tree.root_node, "")
    return extractor.structures
