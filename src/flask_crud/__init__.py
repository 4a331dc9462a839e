"""Public entry points for the flask_crud package."""

from .configuration import Configuration
from .controller import CrudController
from .exceptions import (
    ConfigurationError,
    GridError,
    InvalidSortError,
    ObjectNotFound,
    PersistenceError,
)
from .forms import FormHandler
from .grid import GridBuilder, GridFactory, GridType
from .pagination import Pager, PaginationResult
from .store import EntityRepository, EntityStore, StoreQuery, StoreRegistry

__all__ = [
    "Configuration",
    "ConfigurationError",
    "CrudController",
    "EntityRepository",
    "EntityStore",
    "FormHandler",
    "GridBuilder",
    "GridError",
    "GridFactory",
    "GridType",
    "InvalidSortError",
    "ObjectNotFound",
    "Pager",
    "PaginationResult",
    "PersistenceError",
    "StoreQuery",
    "StoreRegistry",
]
