"""Exceptions raised by the CRUD controller and its collaborators."""

from __future__ import annotations

from typing import Any

from werkzeug.exceptions import NotFound


class ConfigurationError(RuntimeError):
    """A controller configuration is incomplete or was modified after validation."""

    def __init__(self, message: str, *, field: str | None = None, controller: Any = None) -> None:
        super().__init__(message)
        self.field = field
        self.controller = controller


class ObjectNotFound(NotFound):
    """No entity with the requested id exists; rendered as a 404."""

    def __init__(self, entity_class: type, id: Any) -> None:
        self.entity_class = entity_class
        self.id = id
        name = getattr(entity_class, "__name__", str(entity_class))
        super().__init__(f"Object {name}({id}) not found")


class PersistenceError(RuntimeError):
    """Committing the unit of work failed; the session has been rolled back."""


class InvalidSortError(ValueError):
    """The requested sort field or direction cannot be applied to the query."""


class GridError(LookupError):
    """A grid type name is not registered with the factory."""
