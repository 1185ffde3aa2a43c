"""
Decorators and base classes that application code uses to declare components.

The engine never runs these: it reads them from source. At runtime they only
record their arguments on the decorated object (``__discovery_attributes__``)
and return it unchanged, so decorated code imports and behaves normally.

    class BookHooks:
        @Action("init", priority=5)
        @Action("rest_api_init")
        def boot(self): ...

    @PostType("book", public=True, supports=["title", "editor"])
    class Book: ...
"""

from abc import ABC, abstractmethod
from typing import Any

ATTRIBUTES_KEY = "__discovery_attributes__"


class Attribute:
    """Base for marker decorators. Subclasses define __init__ with their arguments."""

    repeatable = False

    def __init__(self, *args: Any, **kwargs: Any) -> None:
        self.args = args
        self.kwargs = kwargs

    def __call__(self, target):
        existing = list(getattr(target, ATTRIBUTES_KEY, ()))
        if not self.repeatable and any(type(a) is type(self) for a in existing):
            raise TypeError(f"{type(self).__name__} is not repeatable on {target!r}")
        existing.append(self)
        setattr(target, ATTRIBUTES_KEY, tuple(existing))
        return target

    def __repr__(self) -> str:
        parts = [repr(a) for a in self.args] + [f"{k}={v!r}" for k, v in self.kwargs.items()]
        return f"{type(self).__name__}({', '.join(parts)})"


class Action(Attribute):
    repeatable = True

    def __init__(self, hook: str, priority: int = 10, accepted_args: int = 1) -> None:
        super().__init__(hook, priority=priority, accepted_args=accepted_args)


class Filter(Attribute):
    repeatable = True

    def __init__(self, hook: str, priority: int = 10, accepted_args: int = 1) -> None:
        super().__init__(hook, priority=priority, accepted_args=accepted_args)


class PostType(Attribute):
    def __init__(self, slug: str, **args: Any) -> None:
        super().__init__(slug, **args)


class Taxonomy(Attribute):
    def __init__(self, slug: str, object_types: list | None = None, **args: Any) -> None:
        super().__init__(slug, object_types=object_types or [], **args)


class AsCommand(Attribute):
    def __init__(self, name: str, description: str = "") -> None:
        super().__init__(name, description=description)


class Schedule(Attribute):
    repeatable = True

    def __init__(self, recurrence: str, hook: str | None = None, method: str = "handle") -> None:
        super().__init__(recurrence, hook=hook, method=method)


def attributes_of(target) -> tuple[Attribute, ...]:
    return getattr(target, ATTRIBUTES_KEY, ())


# ── contracts ────────────────────────────────────────────────────────────────

class ServiceProvider(ABC):
    """Registers bindings into the application container."""

    @abstractmethod
    def register(self, container) -> None:
        ...

    def boot(self, container) -> None:
        pass


class ConsoleCommand(ABC):
    """Base for CLI commands picked up by the ``commands`` discovery."""

    description: str = ""

    @abstractmethod
    def handle(self, *args: str) -> int:
        ...


def type_name(cls: type) -> str:
    """The fully-qualified name the scanner resolves references to cls to."""
    return f"{cls.__module__}.{cls.__qualname__}"
