"""Post type discovery: classes decorated with @PostType."""

import logging

from ..attributes import PostType, type_name
from ..discovery import ClassAttributeDiscovery, ComponentLoader
from ..models import AttributeUsage
from ..ports import PostTypeRegistrar

log = logging.getLogger(__name__)


class PostTypeDiscovery(ClassAttributeDiscovery):
    identifier = "post_types"
    attribute_type = type_name(PostType)

    def __init__(self, registrar: PostTypeRegistrar, components: ComponentLoader | None = None) -> None:
        super().__init__()
        self.registrar = registrar
        self.components = components or ComponentLoader()

    def apply(self) -> None:
        for _location, item in self.items:
            usage = AttributeUsage.from_dict(item["attribute"])
            slug = self.components.argument(usage.argument(0, "slug"))
            args = self.components.arguments(
                {k: v for k, v in usage.keywords.items() if k != "slug"}
            )
            cls = self.components.load_class(item["class"])
            log.debug("Registering post type %s from %s", slug, item["class"])
            self.registrar.register_post_type(slug, args, cls)
