"""Taxonomy discovery: classes decorated with @Taxonomy."""

import logging

from ..attributes import Taxonomy, type_name
from ..discovery import ClassAttributeDiscovery, ComponentLoader
from ..models import AttributeUsage
from ..ports import TaxonomyRegistrar

log = logging.getLogger(__name__)


class TaxonomyDiscovery(ClassAttributeDiscovery):
    """
    object_types may name post type classes directly (@Taxonomy("genre",
    object_types=[Book])); those references are loaded at apply time. Register
    this discovery before the post types that rely on the taxonomy.
    """

    identifier = "taxonomies"
    attribute_type = type_name(Taxonomy)

    def __init__(self, registrar: TaxonomyRegistrar, components: ComponentLoader | None = None) -> None:
        super().__init__()
        self.registrar = registrar
        self.components = components or ComponentLoader()

    def apply(self) -> None:
        for _location, item in self.items:
            usage = AttributeUsage.from_dict(item["attribute"])
            slug = self.components.argument(usage.argument(0, "slug"))
            object_types = usage.argument(1, "object_types", [])
            if not isinstance(object_types, list):
                object_types = [object_types]
            object_types = self.components.argument(object_types)
            args = self.components.arguments(
                {k: v for k, v in usage.keywords.items() if k not in ("slug", "object_types")}
            )
            cls = self.components.load_class(item["class"])
            log.debug("Registering taxonomy %s from %s", slug, item["class"])
            self.registrar.register_taxonomy(slug, object_types, args, cls)
