"""Binds Flask-WTF forms to entities for the add/edit actions."""

from __future__ import annotations

from typing import Any, Mapping

from flask_wtf import FlaskForm


class FormHandler:
    """A form type, the entity it edits and its bound state.

    ``data`` may be ``None`` for creation; :meth:`get_data` then builds a new
    ``data_class`` instance and copies the submitted fields onto it.
    """

    def __init__(
        self,
        form_type: type[FlaskForm],
        data: Any = None,
        options: Mapping[str, Any] | None = None,
    ) -> None:
        options = dict(options or {})
        self.data_class: type | None = options.pop("data_class", None)
        self.form_type = form_type
        self.data = data
        self.form: FlaskForm = form_type(obj=data, **options)
        self._valid: bool | None = None

    def handle_request(self, request: Any = None) -> bool:
        # FlaskForm reads formdata from the active request
        self._valid = self.form.validate_on_submit()
        return self._valid

    def is_submitted(self) -> bool:
        return self.form.is_submitted()

    def is_valid(self) -> bool:
        if self._valid is None:
            raise RuntimeError("handle_request() must be called before is_valid()")
        return self._valid

    @property
    def errors(self) -> dict:
        return self.form.errors

    def get_data(self) -> Any:
        if self.data is None:
            if self.data_class is None:
                raise RuntimeError(
                    f"{self.form_type.__name__} has no data and no data_class to create one"
                )
            self.data = self.data_class()
        self.form.populate_obj(self.data)
        return self.data

    def create_view(self) -> FlaskForm:
        return self.form
