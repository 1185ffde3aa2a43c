"""Hook discovery: methods decorated with @Action / @Filter become hook callbacks."""

import logging

from ..attributes import Action, Filter, type_name
from ..discovery import ComponentLoader, MethodAttributeDiscovery
from ..models import AttributeUsage
from ..ports import HookRegistrar

log = logging.getLogger(__name__)

ACTION = type_name(Action)
FILTER = type_name(Filter)


class HookDiscovery(MethodAttributeDiscovery):
    """
    One registration per decorator: a method carrying two @Action usages is
    added to both hooks, in decorator order. Callbacks are bound methods of a
    single instance per class.
    """

    identifier = "hooks"
    attribute_types = (ACTION, FILTER)

    def __init__(self, registrar: HookRegistrar, components: ComponentLoader | None = None) -> None:
        super().__init__()
        self.registrar = registrar
        self.components = components or ComponentLoader()

    def apply(self) -> None:
        count = 0
        for _location, item in self.items:
            usage = AttributeUsage.from_dict(item["attribute"])
            kind = "filter" if usage.attribute_type == FILTER else "action"
            hook = self.components.argument(usage.argument(0, "hook"))
            priority = self.components.argument(usage.argument(1, "priority", 10))
            accepted_args = self.components.argument(usage.argument(2, "accepted_args", 1))
            callback = getattr(self.components.instance(item["class"]), item["method"])
            self.registrar.add_hook(kind, hook, callback, priority, accepted_args)
            count += 1
        log.info("Registered %d hook callbacks", count)
