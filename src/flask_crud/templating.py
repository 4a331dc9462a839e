"""Template name resolution by controller convention."""

from __future__ import annotations

import logging
from typing import Any, Sequence

from flask import current_app
from jinja2 import TemplateNotFound

from .configuration import tableize

logger = logging.getLogger("CRUD")

DEFAULT_FORMAT = "html"


def _is_crud_controller(klass: type) -> bool:
    # CrudController 及其子类都带有该标记，避免与 controller 模块循环导入
    return getattr(klass, "__crud_controller__", False) is True


def template_folder_for(klass: type) -> str:
    folder = klass.__dict__.get("template_folder_name")
    if folder:
        return folder
    return tableize(klass.__name__)


def guess_template_names(
    controller: Any, action: str, request_format: str = DEFAULT_FORMAT
) -> list[str]:
    """Candidate templates for ``action``, most-derived controller first.

    ``ProductController(CrudController)`` and ``index`` give
    ``["product/index.html", "crud/index.html"]``.
    """
    klass = controller if isinstance(controller, type) else type(controller)
    names: list[str] = []
    for base in klass.__mro__:
        if not _is_crud_controller(base):
            continue
        name = f"{template_folder_for(base)}/{action}.{request_format}"
        if name not in names:
            names.append(name)
    return names


class TemplateGuesser:
    def __init__(self, default_format: str = DEFAULT_FORMAT) -> None:
        self.default_format = default_format

    def guess_template_names(
        self, controller: Any, action: str, request: Any = None
    ) -> Sequence[str]:
        request_format = self.default_format
        if request is not None:
            requested = request.args.get("_format", "")
            if requested.isalnum():
                request_format = requested
        return guess_template_names(controller, action, request_format)


def jinja_template_exists(name: str) -> bool:
    """Whether the current app's Jinja environment can load ``name``."""
    try:
        current_app.jinja_env.get_template(name)
    except TemplateNotFound:
        return False
    return True


def resolve_template(candidates: Sequence[str], exists=jinja_template_exists) -> str:
    """First existing candidate; otherwise the most specific one, so the
    missing template error names the path the controller expects."""
    if not candidates:
        raise ValueError("No template candidates to resolve")
    for name in candidates:
        if exists(name):
            return name
    logger.warning("None of the templates %s exist, using %s", list(candidates), candidates[0])
    return candidates[0]
