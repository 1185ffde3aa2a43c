"""Service provider discovery: concrete subclasses of ServiceProvider."""

import logging

from ..attributes import ServiceProvider, type_name
from ..criteria import implements
from ..discovery import ComponentLoader, CriteriaDiscovery
from ..ports import ServiceContainer

log = logging.getLogger(__name__)


class ServiceProviderDiscovery(CriteriaDiscovery):
    identifier = "providers"

    def __init__(
        self,
        container: ServiceContainer,
        interface: str = type_name(ServiceProvider),
        components: ComponentLoader | None = None,
    ) -> None:
        super().__init__(criterion=implements(interface))
        self.container = container
        self.components = components or ComponentLoader()

    def apply(self) -> None:
        for _location, item in self.items:
            self.container.register_provider(self.components.load_class(item["class"]))
        log.info("Registered %d service providers", len(self.items))
