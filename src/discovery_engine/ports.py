"""
Collaborators the built-in discoveries register into.

The host application supplies implementations (WordPress hook bus, post
type registry, service container, ...). Discoveries receive them through
their constructors and only call them from apply().
"""

from typing import Any, Callable, Protocol


class HookRegistrar(Protocol):
    def add_hook(
        self,
        kind: str,
        hook: str,
        callback: Callable[..., Any],
        priority: int,
        accepted_args: int,
    ) -> None: ...


class PostTypeRegistrar(Protocol):
    def register_post_type(self, slug: str, args: dict[str, Any], cls: type) -> None: ...


class TaxonomyRegistrar(Protocol):
    def register_taxonomy(
        self,
        slug: str,
        object_types: list[Any],
        args: dict[str, Any],
        cls: type,
    ) -> None: ...


class ServiceContainer(Protocol):
    def register_provider(self, provider: type) -> None: ...


class CommandRegistrar(Protocol):
    def add_command(self, name: str, command: type) -> None: ...


class Scheduler(Protocol):
    def schedule(self, hook: str, recurrence: str, callback: Callable[..., Any]) -> None: ...
