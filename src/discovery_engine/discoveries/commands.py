"""Console command discovery: *Command subclasses of ConsoleCommand, or classes decorated @AsCommand."""

import logging
import re

from ..attributes import AsCommand, ConsoleCommand, type_name
from ..criteria import has_attribute, implements, name_endswith
from ..discovery import ComponentLoader, CriteriaDiscovery
from ..models import StructureDescriptor
from ..ports import CommandRegistrar

log = logging.getLogger(__name__)

AS_COMMAND = type_name(AsCommand)

_CAMEL_BOUNDARY = re.compile(r"(?<=[a-z0-9])(?=[A-Z])|(?<=[A-Z])(?=[A-Z][a-z])")


def command_name(class_name: str) -> str:
    """
    Default command name from a class name.

    "ImportBooksCommand" → "import-books"
    "HTTPSyncCommand"    → "http-sync"
    """
    base = class_name[: -len("Command")] if class_name.endswith("Command") else class_name
    return _CAMEL_BOUNDARY.sub("-", base).lower() or class_name.lower()


class CommandDiscovery(CriteriaDiscovery):
    identifier = "commands"

    def __init__(
        self,
        registrar: CommandRegistrar,
        base: str = type_name(ConsoleCommand),
        components: ComponentLoader | None = None,
    ) -> None:
        super().__init__(
            criterion=(name_endswith("Command") & implements(base)) | has_attribute(AS_COMMAND),
        )
        self.registrar = registrar
        self.components = components or ComponentLoader()

    def payload(self, structure: StructureDescriptor) -> dict:
        usages = structure.attributes_of(AS_COMMAND)
        name = usages[0].argument(0, "name") if usages else None
        if not isinstance(name, str):
            name = command_name(structure.short_name)
        return {"class": structure.qualified_name, "name": name}

    def apply(self) -> None:
        for _location, item in self.items:
            self.registrar.add_command(item["name"], self.components.load_class(item["class"]))
        log.info("Registered %d console commands", len(self.items))
