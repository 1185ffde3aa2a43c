"""
Tests for structure extraction: class kinds, bases, decorators as
AttributeUsage, decorator argument decoding, and the no-execution invariant.
"""

import sys

import pytest

from discovery_engine.models import LateBoundReference, StructureKind, Visibility

POST_TYPE = "discovery_engine.attributes.PostType"
ACTION = "discovery_engine.attributes.Action"
FILTER = "discovery_engine.attributes.Filter"


SAMPLE = '''
from abc import ABC, ABCMeta, abstractmethod
from typing import Generic, Protocol, TypeVar
import enum

from app.contracts import Taggable as TagContract
from .base import BaseHooks
from discovery_engine.attributes import Action, Filter, PostType

T = TypeVar("T")


class Shape(Protocol):
    def area(self) -> float: ...


class Color(enum.Enum):
    RED = 1


@PostType("book", public=True, supports=["title", "editor"], menu_position=-5)
class Book(BaseHooks, TagContract):
    """A book."""

    @Action("init", priority=5)
    @Action("rest_api_init")
    def boot(self):
        pass

    @Filter("the_title", 20, 2)
    def _title(self, title):
        return title

    def __secret(self):
        pass

    def __repr__(self):
        return "Book"


class Bar(TagContract, ABC):
    pass


class Half(TagContract):
    @abstractmethod
    def run(self): ...


class Meta(metaclass=ABCMeta):
    pass


class Repo(Generic[T], Book):
    pass


class Failure(Exception):
    pass
'''


@pytest.fixture
def sample(scan_source):
    return scan_source(SAMPLE)


# ============================================================================
# Kinds, bases, abstractness
# ============================================================================


@pytest.mark.unit
def test_every_named_class_is_extracted_in_source_order(sample):
    """Should produce one descriptor per class, qualified with the module name."""
    assert list(sample) == [
        "app.mod.Shape", "app.mod.Color", "app.mod.Book", "app.mod.Bar",
        "app.mod.Half", "app.mod.Meta", "app.mod.Repo", "app.mod.Failure",
    ]


@pytest.mark.unit
def test_kinds(sample):
    """Should classify Protocol subclasses as interfaces and enum subclasses as enums."""
    assert sample["app.mod.Shape"].kind is StructureKind.INTERFACE
    assert sample["app.mod.Color"].kind is StructureKind.ENUM
    assert sample["app.mod.Book"].kind is StructureKind.CLASS


@pytest.mark.unit
def test_bases_are_resolved_through_imports(sample):
    """Should resolve aliased, relative and local base names to qualified names."""
    book = sample["app.mod.Book"]
    assert book.parent_type == "app.base.BaseHooks"
    assert book.implemented_interfaces == frozenset({"app.base.BaseHooks", "app.contracts.Taggable"})

    repo = sample["app.mod.Repo"]
    assert repo.parent_type == "typing.Generic"
    assert "app.mod.Book" in repo.implemented_interfaces

    assert sample["app.mod.Failure"].parent_type == "builtins.Exception"
    assert sample["app.mod.Meta"].parent_type is None


@pytest.mark.unit
def test_abstract_detection(sample):
    """Should flag ABC bases, ABCMeta metaclasses and abstract methods."""
    assert sample["app.mod.Bar"].is_abstract
    assert sample["app.mod.Half"].is_abstract
    assert sample["app.mod.Meta"].is_abstract
    assert not sample["app.mod.Book"].is_abstract
    assert not sample["app.mod.Repo"].is_abstract


# ============================================================================
# Decorators
# ============================================================================


@pytest.mark.unit
def test_class_decorator_arguments(sample):
    """Should record class decorators with literal arguments in source order."""
    (usage,) = sample["app.mod.Book"].class_attributes
    assert usage.attribute_type == POST_TYPE
    assert usage.arguments == (
        (None, "book"),
        ("public", True),
        ("supports", ["title", "editor"]),
        ("menu_position", -5),
    )
    assert usage.argument(0, "slug") == "book"
    assert usage.keywords["supports"] == ["title", "editor"]


@pytest.mark.unit
def test_repeated_method_decorators_are_separate_usages(sample):
    """Should keep one AttributeUsage per decorator, top to bottom."""
    boot = sample["app.mod.Book"].methods["boot"]
    assert [u.attribute_type for u in boot.attributes] == [ACTION, ACTION]
    assert boot.attributes[0].arguments == ((None, "init"), ("priority", 5))
    assert boot.attributes[1].arguments == ((None, "rest_api_init"),)

    title = sample["app.mod.Book"].methods["_title"]
    assert title.attributes[0].attribute_type == FILTER
    assert title.attributes[0].positional == ["the_title", 20, 2]


@pytest.mark.unit
def test_method_visibility(sample):
    methods = sample["app.mod.Book"].methods
    assert methods["boot"].visibility is Visibility.PUBLIC
    assert methods["_title"].visibility is Visibility.PROTECTED
    assert methods["__secret"].visibility is Visibility.PRIVATE
    assert methods["__repr__"].visibility is Visibility.PUBLIC


@pytest.mark.unit
def test_method_attributes_helper(sample):
    """Should yield (method, usage) pairs for one attribute type."""
    pairs = list(sample["app.mod.Book"].method_attributes(ACTION))
    assert [(m.name, u.positional[0]) for m, u in pairs] == [("boot", "init"), ("boot", "rest_api_init")]


@pytest.mark.unit
def test_bare_decorator_is_a_usage_without_arguments(scan_source):
    structures = scan_source('''
        from dataclasses import dataclass

        @dataclass
        class Point:
            x: int = 0
    ''')
    (usage,) = structures["app.mod.Point"].class_attributes
    assert usage.attribute_type == "dataclasses.dataclass"
    assert usage.arguments == ()


# ============================================================================
# Argument decoding
# ============================================================================


@pytest.mark.unit
def test_literal_arguments(scan_source):
    """Should decode nested literals without evaluating anything."""
    structures = scan_source('''
        @Marker(("a", "b"), {"k": [1, 2.5, None]}, {1: "one"}, "con" "cat", flag=False)
        class Thing:
            pass
    ''')
    (usage,) = structures["app.mod.Thing"].class_attributes
    assert usage.attribute_type == "app.mod.Marker"
    assert usage.arguments == (
        (None, ["a", "b"]),
        (None, {"k": [1, 2.5, None]}),
        (None, {"1": "one"}),
        (None, "concat"),
        ("flag", False),
    )


@pytest.mark.unit
def test_names_become_late_bound_references(scan_source):
    """Should turn names and attribute chains into resolved reference tokens."""
    structures = scan_source('''
        from app.hooks import Hooks
        import app.constants as consts

        class Listener:
            @Action(Hooks.INIT, priority=consts.HIGH)
            def on_init(self):
                pass

        @Schedule(f"every {N}", hook=handler, data=b"raw")
        class Job:
            pass
    ''')
    usage = structures["app.mod.Listener"].methods["on_init"].attributes[0]
    hook = LateBoundReference.from_value(usage.argument(0, "hook"))
    assert hook == LateBoundReference("static-method-ref", "app.hooks.Hooks", "INIT")
    assert hook.dotted == "app.hooks.Hooks.INIT"
    priority = LateBoundReference.from_value(usage.keywords["priority"])
    assert priority == LateBoundReference("static-method-ref", "app.constants", "HIGH")

    (job,) = structures["app.mod.Job"].class_attributes
    recurrence = LateBoundReference.from_value(job.positional[0])
    assert recurrence.kind == "expression"
    assert recurrence.target == 'f"every {N}"'
    assert LateBoundReference.from_value(job.keywords["hook"]) == LateBoundReference(
        "class-ref", "app.mod.handler"
    )
    assert LateBoundReference.from_value(job.keywords["data"]).kind == "expression"


# ============================================================================
# Scoping
# ============================================================================


@pytest.mark.unit
def test_nested_classes_are_qualified_and_local_classes_skipped(scan_source):
    structures = scan_source('''
        def factory():
            class Local:
                pass
            return Local

        class Outer:
            class Inner:
                pass

            def method(self):
                class AlsoLocal:
                    pass
    ''')
    assert set(structures) == {"app.mod.Outer", "app.mod.Outer.Inner"}
    assert structures["app.mod.Outer"].methods.keys() == {"method"}


@pytest.mark.unit
def test_package_init_relative_imports(scan_source):
    """Should treat __init__.py as its package when resolving relative imports."""
    structures = scan_source('''
        from .sub import Base
        from .. import shared

        class Child(Base, shared.Mixin):
            pass
    ''', module_path="pkg/__init__.py")
    child = structures["app.pkg.Child"]
    assert child.parent_type == "app.pkg.sub.Base"
    assert "app.shared.Mixin" in child.implemented_interfaces


@pytest.mark.unit
def test_type_checking_imports_count(scan_source):
    structures = scan_source('''
        from typing import TYPE_CHECKING

        if TYPE_CHECKING:
            from app.contracts import Taggable

        class Foo(Taggable):
            pass
    ''')
    assert structures["app.mod.Foo"].parent_type == "app.contracts.Taggable"


# ============================================================================
# No execution
# ============================================================================


@pytest.mark.unit
def test_scanning_never_executes_the_module(scan_source):
    """Should extract structures from code that would fail at import time."""
    structures = scan_source('''
        import discovery_engine_test_missing_module

        raise RuntimeError("module body must not run")

        class Explosive(discovery_engine_test_missing_module.Base):
            counter = open("/nonexistent/file").read()

            def __init__(self):
                raise RuntimeError("constructor must not run")
    ''')
    assert structures["app.mod.Explosive"].parent_type == "discovery_engine_test_missing_module.Base"
    assert "discovery_engine_test_missing_module" not in sys.modules
