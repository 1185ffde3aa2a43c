"""
Name resolution for scanned modules.

Builds a per-module binding table from import statements and class
definitions, then resolves the simple or dotted names used in base-class
lists and decorators to fully-qualified names, following Python's import
rules:

    import a.b                → "a" binds module "a"; "a.b.C" stays "a.b.C"
    import a.b as x           → "x.C" → "a.b.C"
    from a.b import C as D    → "D" → "a.b.C"
    from ..core import C      → relative to the importing module's package
    class C: ...              → "C" → "<module>.C"
    object, Exception, ...    → "builtins.object", ...

Names bound by nothing visible (star imports, assignments) are assumed to
live in the current module.
"""

import builtins
import logging

from tree_sitter import Node

from .parse import STATEMENT_CONTAINERS, text

log = logging.getLogger(__name__)

_BUILTINS = frozenset(dir(builtins))

def resolve_relative(package: str, level: int, module: str) -> str:
    """
    Resolve "from <'.' * level><module> import ..." against package.

    resolve_relative("app.hooks", 1, "util") → "app.hooks.util"
    resolve_relative("app.hooks", 2, "")     → "app"
    """
    if level == 0:
        return module
    parts = package.split(".") if package else []
    if level - 1 > len(parts):
        log.debug("Relative import beyond top-level package: %d from %s", level, package)
        parts = []
    elif level > 1:
        parts = parts[: len(parts) - (level - 1)]
    base = ".".join(parts)
    if base and module:
        return f"{base}.{module}"
    return base or module


class ImportTable:
    def __init__(self, module: str, is_package: bool = False) -> None:
        self.module = module
        self.package = module if is_package else module.rpartition(".")[0]
        self._bindings: dict[str, str] = {}
        self.star_imports: list[str] = []

    def bind(self, name: str, qualified: str) -> None:
        self._bindings[name] = qualified

    def bind_import(self, dotted: str, alias: str | None = None) -> None:
        if alias:
            self.bind(alias, dotted)
        else:
            head = dotted.split(".", 1)[0]
            self.bind(head, head)

    def bind_from_import(self, module: str, level: int, name: str, alias: str | None = None) -> None:
        source = resolve_relative(self.package, level, module)
        qualified = f"{source}.{name}" if source else name
        self.bind(alias or name, qualified)

    def local(self, name: str) -> str:
        return f"{self.module}.{name}" if self.module else name

    def resolve(self, name: str) -> str:
        head, dot, rest = name.partition(".")
        if head in self._bindings:
            return self._bindings[head] + dot + rest
        if head in _BUILTINS:
            return f"builtins.{name}"
        return self.local(name)

    def __contains__(self, name: str) -> bool:
        return name in self._bindings


def _dotted(node: Node) -> str:
    return "".join(text(node).split())


def _bind_import_statement(table: ImportTable, node: Node) -> None:
    for name_node in node.children_by_field_name("name"):
        if name_node.type == "aliased_import":
            table.bind_import(
                _dotted(name_node.child_by_field_name("name")),
                text(name_node.child_by_field_name("alias")),
            )
        else:
            table.bind_import(_dotted(name_node))


def _bind_from_import(table: ImportTable, node: Node) -> None:
    module_node = node.child_by_field_name("module_name")
    level = 0
    module = ""
    if module_node is not None and module_node.type == "relative_import":
        for child in module_node.children:
            if child.type == "import_prefix":
                level = text(child).count(".")
            elif child.type == "dotted_name":
                module = _dotted(child)
    elif module_node is not None:
        module = _dotted(module_node)

    if any(child.type == "wildcard_import" for child in node.children):
        table.star_imports.append(resolve_relative(table.package, level, module))
        return

    for name_node in node.children_by_field_name("name"):
        if name_node.type == "aliased_import":
            table.bind_from_import(
                module, level,
                _dotted(name_node.child_by_field_name("name")),
                text(name_node.child_by_field_name("alias")),
            )
        else:
            table.bind_from_import(module, level, _dotted(name_node))


def build_import_table(root: Node, module: str, is_package: bool = False) -> ImportTable:
    """
    Collect module-scope bindings in source order.

    Imports nested in if/try/with blocks count (TYPE_CHECKING guards are
    common); those inside functions and class bodies don't.
    """
    table = ImportTable(module, is_package)

    def _visit(node: Node) -> None:
        for child in node.children:
            if child.type == "import_statement":
                _bind_import_statement(table, child)
            elif child.type == "import_from_statement":
                _bind_from_import(table, child)
            elif child.type == "class_definition":
                name = text(child.child_by_field_name("name"))
                if name:
                    table.bind(name, table.local(name))
            elif child.type == "decorated_definition":
                definition = child.child_by_field_name("definition")
                if definition is not None and definition.type == "class_definition":
                    name = text(definition.child_by_field_name("name"))
                    if name:
                        table.bind(name, table.local(name))
            elif child.type in STATEMENT_CONTAINERS:
                _visit(child)

    _visit(root)
    return table
