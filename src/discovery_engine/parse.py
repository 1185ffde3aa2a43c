"""Tree-sitter parsing of Python sources. Nothing here imports or evaluates the code it reads."""

import logging
import threading

from tree_sitter import Node, Parser, Tree
from tree_sitter_language_pack import get_language

log = logging.getLogger(__name__)

LANGUAGE = "python"

# Nodes that can hold class definitions and imports; scope walks descend
# into these and nothing else.
STATEMENT_CONTAINERS = frozenset({
    "module", "block",
    "if_statement", "elif_clause", "else_clause",
    "try_statement", "except_clause", "except_group_clause", "finally_clause",
    "with_statement", "for_statement", "while_statement",
    "match_statement", "case_clause",
})

# Parser objects are not safe to share between threads.
_local = threading.local()


def _get_parser() -> Parser:
    parser = getattr(_local, "parser", None)
    if parser is None:
        parser = Parser(get_language(LANGUAGE))
        _local.parser = parser
    return parser


def parse_source(source: bytes) -> Tree:
    return _get_parser().parse(source)


def first_error(node: Node) -> Node | None:
    """Return the first ERROR or MISSING node in the subtree, if any."""
    if not node.has_error:
        return None
    for n in walk_tree(node):
        if n.type == "ERROR" or n.is_missing:
            return n
    return node


def walk_tree(node: Node):
    """Depth-first generator over all nodes in a tree, without recursing."""
    stack = [node]
    while stack:
        current = stack.pop()
        yield current
        stack.extend(reversed(current.children))


def text(node: Node | None) -> str:
    if node is None or not node.text:
        return ""
    return node.text.decode("utf-8", errors="replace")
