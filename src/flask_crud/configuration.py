"""Per-controller settings for the CRUD actions."""

from __future__ import annotations

import re
from types import MappingProxyType
from typing import Any, Mapping

from .exceptions import ConfigurationError

REQUIRED_FIELDS = ("entity_class", "form_type", "grid_type", "route_prefix")

_CAMEL_BOUNDARY = re.compile(r"(?<=[a-z0-9])(?=[A-Z])|(?<=[A-Z])(?=[A-Z][a-z])")


def tableize(class_name: str) -> str:
    """``ProductCategoryController`` -> ``product_category``."""
    if class_name.endswith("Controller") and class_name != "Controller":
        class_name = class_name[: -len("Controller")]
    return _CAMEL_BOUNDARY.sub("_", class_name).lower()


class Configuration:
    """Settings holder filled by ``CrudController.configure``.

    Frozen once :meth:`validate` succeeds.
    """

    def __init__(self, controller: Any) -> None:
        self._frozen = False
        self.controller = controller
        self.name: str = tableize(type(controller).__name__)
        self.entity_class: type | None = None
        self.form_type: type | None = None
        self.form_options: Mapping[str, Any] = {}
        self.grid_type: Any = None
        self.grid_options: Mapping[str, Any] = {}
        self.route_prefix: str | None = None
        self.default_sort_field: str = "id"
        self.default_sort_order: str = "asc"
        self.per_page: int | None = None

    def __setattr__(self, key: str, value: Any) -> None:
        if getattr(self, "_frozen", False):
            raise ConfigurationError(
                f"Configuration for {self._controller_name()} is frozen, cannot set {key}",
                field=key,
                controller=self.controller,
            )
        super().__setattr__(key, value)

    @property
    def frozen(self) -> bool:
        return self._frozen

    @property
    def data_class(self) -> type | None:
        return self.form_options.get("data_class", self.entity_class)

    def _controller_name(self) -> str:
        klass = type(self.controller)
        return f"{klass.__module__}.{klass.__qualname__}"

    def validate(self) -> None:
        for field in REQUIRED_FIELDS:
            if not getattr(self, field):
                raise ConfigurationError(
                    f"You must set the {field} on the configuration for {self._controller_name()}",
                    field=field,
                    controller=self.controller,
                )
        self.form_options = MappingProxyType(dict(self.form_options))
        self.grid_options = MappingProxyType(dict(self.grid_options))
        self._frozen = True

    def __repr__(self) -> str:
        return f"Configuration(name={self.name!r}, entity_class={self.entity_class!r})"
