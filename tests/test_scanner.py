"""
Tests for StructureScanner and the source file walker.
"""

import os
import types

import pytest

from discovery_engine.exceptions import LocationUnreadableError
from discovery_engine.files import iter_source_files
from discovery_engine.models import Location
from discovery_engine.scanner import StructureScanner


@pytest.fixture
def app_tree(make_tree):
    return make_tree({
        "__init__.py": "",
        "hooks/__init__.py": "class HooksPackage:\n    pass\n",
        "hooks/admin.py": """
            class AdminHooks:
                pass

            class AdminMenu:
                pass
        """,
        "models.py": "class Book:\n    pass\n",
        "README.md": "class NotPython: pass\n",
        "__pycache__/models.cpython-312.py": "class Cached:\n    pass\n",
    })


# ============================================================================
# File walking
# ============================================================================


@pytest.mark.unit
def test_walk_is_sorted_and_python_only(app_tree):
    """Should yield .py files depth-first in name order, skipping excluded dirs."""
    files = [p.relative_to(app_tree).as_posix() for p in iter_source_files(app_tree)]
    assert files == ["__init__.py", "hooks/__init__.py", "hooks/admin.py", "models.py"]


@pytest.mark.unit
def test_walk_respects_gitignore(make_tree):
    root = make_tree({
        ".gitignore": "generated/\nlegacy_*.py\n",
        "generated/schema.py": "class Schema: pass\n",
        "legacy_hooks.py": "class Old: pass\n",
        "hooks.py": "class New: pass\n",
    })
    assert [p.name for p in iter_source_files(root)] == ["hooks.py"]
    assert len(list(iter_source_files(root, respect_gitignore=False))) == 3


@pytest.mark.unit
def test_walk_is_lazy(make_tree):
    """Should not list a directory before the consumer reaches it."""
    root = make_tree({"a.py": "", "later/b.py": ""})
    walker = iter_source_files(root)
    assert next(walker).name == "a.py"
    (root / "later" / "c.py").write_text("", encoding="utf-8")
    assert [p.name for p in walker] == ["b.py", "c.py"]


# ============================================================================
# Scanning
# ============================================================================


@pytest.mark.unit
def test_scan_yields_qualified_structures(app_tree):
    location = Location(namespace="app", path=str(app_tree))
    names = [s.qualified_name for s in StructureScanner().scan(location)]
    assert names == [
        "app.hooks.HooksPackage",
        "app.hooks.admin.AdminHooks",
        "app.hooks.admin.AdminMenu",
        "app.models.Book",
    ]


@pytest.mark.unit
def test_scan_is_a_lazy_stream(app_tree):
    location = Location(namespace="app", path=str(app_tree))
    scanner = StructureScanner()
    stream = scanner.scan(location)
    assert isinstance(stream, types.GeneratorType)
    assert scanner.files_scanned == 0
    next(stream)
    assert scanner.files_scanned < 4


@pytest.mark.unit
def test_empty_namespace_uses_path_relative_modules(app_tree):
    location = Location(namespace="", path=str(app_tree))
    names = {s.qualified_name for s in StructureScanner().scan(location)}
    assert "models.Book" in names
    assert "hooks.admin.AdminHooks" in names


@pytest.mark.unit
def test_syntax_error_file_is_skipped_and_reported(make_tree):
    """Should skip an unparseable file while still yielding structures from its siblings."""
    root = make_tree({
        "a_good.py": "class Good:\n    pass\n",
        "b_broken.py": "class Broken(:\n    pass\n",
        "c_good.py": "class AlsoGood:\n    pass\n",
    })
    scanner = StructureScanner()
    names = [s.short_name for s in scanner.scan(Location("app", str(root)))]
    assert names == ["Good", "AlsoGood"]
    assert len(scanner.errors) == 1
    assert scanner.errors[0].path.endswith("b_broken.py")
    assert "syntax error" in scanner.errors[0].reason


@pytest.mark.unit
def test_broken_file_reported_once_per_run(make_tree):
    root = make_tree({"broken.py": "def (:\n"})
    scanner = StructureScanner()
    location = Location("app", str(root))
    list(scanner.scan(location))
    list(scanner.scan(location))
    assert len(scanner.errors) == 1


@pytest.mark.unit
def test_missing_location_raises_unreadable(tmp_path):
    location = Location("app", str(tmp_path / "missing"))
    with pytest.raises(LocationUnreadableError) as exc_info:
        list(StructureScanner().scan(location))
    assert exc_info.value.location == location
    assert exc_info.value.reason == "does not exist"


@pytest.mark.unit
def test_file_location_raises_unreadable(tmp_path):
    path = tmp_path / "module.py"
    path.write_text("class A: pass\n", encoding="utf-8")
    with pytest.raises(LocationUnreadableError, match="not a directory"):
        list(StructureScanner().scan(Location("app", str(path))))


@pytest.mark.unit
@pytest.mark.skipif(os.name != "posix" or os.geteuid() == 0, reason="needs POSIX permissions as non-root")
def test_unreadable_subdirectory_is_skipped(make_tree):
    root = make_tree({"ok.py": "class Ok: pass\n", "locked/hidden.py": "class Hidden: pass\n"})
    locked = root / "locked"
    locked.chmod(0)
    try:
        scanner = StructureScanner()
        names = [s.short_name for s in scanner.scan(Location("app", str(root)))]
    finally:
        locked.chmod(0o755)
    assert names == ["Ok"]
    assert scanner.errors and scanner.errors[0].path.endswith("locked")


# ============================================================================
# Memo
# ============================================================================


@pytest.mark.unit
def test_memo_parses_each_file_once(app_tree):
    location = Location("app", str(app_tree))
    scanner = StructureScanner()
    first = list(scanner.scan(location))
    second = list(scanner.scan(location))
    assert first == second
    assert scanner.files_scanned == 4


@pytest.mark.unit
def test_memo_sees_modified_files(make_tree):
    root = make_tree({"mod.py": "class Before:\n    pass\n"})
    location = Location("app", str(root))
    scanner = StructureScanner()
    assert [s.short_name for s in scanner.scan(location)] == ["Before"]

    path = root / "mod.py"
    path.write_text("class AfterTheChange:\n    pass\n", encoding="utf-8")
    assert [s.short_name for s in scanner.scan(location)] == ["AfterTheChange"]


@pytest.mark.unit
def test_clear_memo_resets_counters(app_tree):
    scanner = StructureScanner()
    list(scanner.scan(Location("app", str(app_tree))))
    scanner.clear_memo()
    assert scanner.files_scanned == 0
    assert scanner.errors == []


@pytest.mark.unit
def test_memo_keeps_names_per_location(make_tree):
    """Should qualify a shared file by the location it is reached through."""
    root = make_tree({"mod.py": "class Foo:\n    pass\n"})
    scanner = StructureScanner()
    names = [
        s.qualified_name
        for namespace in ("x", "y")
        for s in scanner.scan(Location(namespace, str(root)))
    ]
    assert names == ["x.mod.Foo", "y.mod.Foo"]


@pytest.mark.unit
def test_memo_with_nested_locations(make_tree):
    root = make_tree({"app/mod.py": "class Foo:\n    pass\n"})
    scanner = StructureScanner()
    inner = [s.qualified_name for s in scanner.scan(Location("shop", str(root / "app")))]
    outer = [s.qualified_name for s in scanner.scan(Location("", str(root)))]
    assert inner == ["shop.mod.Foo"]
    assert outer == ["app.mod.Foo"]
    assert scanner.files_scanned == 2


# ============================================================================
# Deeply nested sources
# ============================================================================


@pytest.mark.unit
def test_deep_expression_is_not_walked(make_tree):
    """Should extract classes around an expression nested far beyond the recursion limit."""
    sum_expr = " + ".join(["1"] * 3000)
    root = make_tree({
        "deep.py": f"LIMIT = {sum_expr}\n\n\nclass After:\n    SIZE = {sum_expr}\n\n    def run(self):\n        return {sum_expr}\n",
    })
    scanner = StructureScanner()
    structures = list(scanner.scan(Location("app", str(root))))
    assert [s.qualified_name for s in structures] == ["app.deep.After"]
    assert list(structures[0].methods) == ["run"]
    assert scanner.errors == []


@pytest.mark.unit
def test_deep_decorator_argument_is_a_scan_error(make_tree):
    """Should skip a file whose decorator argument nests too deep to decode, and keep going."""
    nested = "[" * 3000 + "]" * 3000
    root = make_tree({
        "a_deep.py": f"@Tag({nested})\nclass Deep:\n    pass\n",
        "b_fine.py": "class Fine:\n    pass\n",
    })
    scanner = StructureScanner()
    names = [s.qualified_name for s in scanner.scan(Location("app", str(root)))]
    assert names == ["app.b_fine.Fine"]
    assert len(scanner.errors) == 1
    assert scanner.errors[0].path.endswith("a_deep.py")
    assert "nesting too deep" in str(scanner.errors[0])
