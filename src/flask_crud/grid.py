"""Listing grids: column definitions rendered by the index template.

A grid type describes the columns for one entity::

    class ProductGrid(GridType):
        def build_grid(self, builder, options):
            builder.add("name", sortable=True)
            builder.add("price", label="Price (EUR)", sortable=True)
            builder.add("edit", type="action", route="product.edit")

Grids are independent of pagination; the index template iterates the pager
and asks each column view for its value.
"""

from __future__ import annotations

from datetime import date, datetime
from typing import Any, Iterator, Mapping

from flask import url_for

from .exceptions import GridError

COLUMN_TYPES = ("text", "boolean", "datetime", "action")


def _resolve_path(row: Any, path: str) -> Any:
    value = row
    for part in path.split("."):
        if value is None:
            return None
        if isinstance(value, Mapping):
            value = value.get(part)
        else:
            value = getattr(value, part, None)
    return value


class Column:
    """A column definition collected by the builder."""

    def __init__(self, name: str, type: str = "text", **options: Any) -> None:
        if type not in COLUMN_TYPES:
            raise GridError(f"Unknown column type {type!r} for column {name!r}")
        self.name = name
        self.type = type
        self.options: dict[str, Any] = {
            "label": name.replace("_", " ").title(),
            "property_path": name,
            "sortable": False,
            "sort_field": name,
        }
        if type == "action":
            self.options.update(route=None, route_parameters={"id": "id"})
        if type == "datetime":
            self.options["format"] = "%Y-%m-%d %H:%M"
        self.options.update(options)
        if type == "action" and not self.options["route"]:
            raise GridError(f"Action column {name!r} needs a route")


class GridBuilder:
    def __init__(self) -> None:
        self._columns: dict[str, Column] = {}

    def add(self, name: str, type: str = "text", **options: Any) -> "GridBuilder":
        self._columns[name] = Column(name, type, **options)
        return self

    def remove(self, name: str) -> "GridBuilder":
        self._columns.pop(name, None)
        return self

    def has(self, name: str) -> bool:
        return name in self._columns

    def get_grid(self) -> "Grid":
        return Grid(list(self._columns.values()))


class GridType:
    """Base class for grid types; override :meth:`build_grid`."""

    def configure_options(self, options: Mapping[str, Any]) -> dict[str, Any]:
        return dict(options)

    def build_grid(self, builder: GridBuilder, options: Mapping[str, Any]) -> None:
        pass


class ColumnView:
    def __init__(self, column: Column) -> None:
        self.name = column.name
        self.type = column.type
        self.options = dict(column.options)

    @property
    def label(self) -> str:
        return self.options["label"]

    @property
    def sortable(self) -> bool:
        return bool(self.options["sortable"])

    @property
    def sort_field(self) -> str:
        return self.options["sort_field"]

    def value(self, row: Any) -> Any:
        if self.type == "action":
            return self.label
        value = _resolve_path(row, self.options["property_path"])
        if self.type == "boolean":
            return "yes" if value else "no"
        if self.type == "datetime" and isinstance(value, (date, datetime)):
            return value.strftime(self.options["format"])
        return "" if value is None else value

    def url(self, row: Any) -> str | None:
        if self.type != "action":
            return None
        params = {
            param: _resolve_path(row, path)
            for param, path in self.options["route_parameters"].items()
        }
        return url_for(self.options["route"], **params)


class GridView:
    def __init__(self, columns: list[ColumnView]) -> None:
        self.columns = columns

    def __iter__(self) -> Iterator[ColumnView]:
        return iter(self.columns)

    def __len__(self) -> int:
        return len(self.columns)


class Grid:
    def __init__(self, columns: list[Column]) -> None:
        self.columns = columns

    def create_view(self) -> GridView:
        return GridView([ColumnView(column) for column in self.columns])


class GridFactory:
    """Creates grids from a ``GridType`` class, instance or registered name."""

    def __init__(self) -> None:
        self._types: dict[str, GridType] = {}

    def register(self, name: str, grid_type: type[GridType] | GridType) -> None:
        self._types[name] = grid_type() if isinstance(grid_type, type) else grid_type

    def get_type(self, grid_type: str | type[GridType] | GridType) -> GridType:
        if isinstance(grid_type, GridType):
            return grid_type
        if isinstance(grid_type, type) and issubclass(grid_type, GridType):
            return grid_type()
        try:
            return self._types[grid_type]
        except (KeyError, TypeError):
            raise GridError(f"Grid type {grid_type!r} is not registered") from None

    def create_grid(
        self,
        grid_type: str | type[GridType] | GridType,
        options: Mapping[str, Any] | None = None,
    ) -> Grid:
        type_ = self.get_type(grid_type)
        builder = GridBuilder()
        type_.build_grid(builder, type_.configure_options(options or {}))
        return builder.get_grid()


default_grid_factory = GridFactory()
