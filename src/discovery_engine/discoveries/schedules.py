"""Schedule discovery: classes decorated with one or more @Schedule(...)."""

import logging

from ..attributes import Schedule, type_name
from ..discovery import ClassAttributeDiscovery, ComponentLoader
from ..models import AttributeUsage
from ..ports import Scheduler

log = logging.getLogger(__name__)


def default_hook(class_name: str, method: str) -> str:
    return f"{class_name.replace('.', '_').lower()}_{method}"


class ScheduleDiscovery(ClassAttributeDiscovery):
    identifier = "schedules"
    attribute_type = type_name(Schedule)

    def __init__(self, scheduler: Scheduler, components: ComponentLoader | None = None) -> None:
        super().__init__()
        self.scheduler = scheduler
        self.components = components or ComponentLoader()

    def apply(self) -> None:
        for _location, item in self.items:
            usage = AttributeUsage.from_dict(item["attribute"])
            recurrence = self.components.argument(usage.argument(0, "recurrence"))
            method = self.components.argument(usage.argument(2, "method", "handle"))
            hook = self.components.argument(usage.argument(1, "hook")) or default_hook(item["class"], method)
            callback = getattr(self.components.instance(item["class"]), method)
            log.debug("Scheduling %s (%s) → %s.%s", hook, recurrence, item["class"], method)
            self.scheduler.schedule(hook, recurrence, callback)
