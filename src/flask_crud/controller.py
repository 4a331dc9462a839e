from __future__ import annotations

import logging
import os
from typing import Any, Generic, Mapping

from flask import Blueprint, current_app, flash, redirect, render_template, request, url_for
from flask.typing import ResponseReturnValue
from flask_wtf import FlaskForm
from werkzeug.datastructures import ImmutableMultiDict
from werkzeug.exceptions import BadRequest

from .configuration import Configuration
from .exceptions import InvalidSortError, ObjectNotFound, PersistenceError
from .forms import FormHandler
from .grid import GridFactory, default_grid_factory
from .pagination import DEFAULT_PER_PAGE, Pager
from .store import EntityRepository, EntityStore, StoreQuery, StoreRegistry, default_registry
from .templating import TemplateGuesser, jinja_template_exists, resolve_template
from .types import FlashSink, ModelTypeVar, TemplateExists, TemplateGuesserLike

logger = logging.getLogger("CRUD")

TEMPLATE_FOLDER = os.path.join(os.path.dirname(os.path.abspath(__file__)), "templates")


class CrudController(Generic[ModelTypeVar]):
    """通用 CRUD 控制器。

    子类通过 configure() 填写 Configuration，即可获得 index/add/edit/delete
    四个动作；new_instance()/configure_list_criteria() 为可选钩子。

    协作对象（存储、表格工厂、模板猜测、flash）均通过构造函数注入，
    未提供时使用包内默认实现。
    """

    __crud_controller__ = True

    def __init__(
        self,
        *,
        stores: StoreRegistry | None = None,
        grid_factory: GridFactory | None = None,
        template_guesser: TemplateGuesserLike | None = None,
        template_exists: TemplateExists | None = None,
        flash: FlashSink | None = None,
    ) -> None:
        self.stores = stores or default_registry
        self.grid_factory = grid_factory or default_grid_factory
        self.template_guesser = template_guesser or TemplateGuesser()
        self.template_exists = template_exists or jinja_template_exists
        self.flash = flash or _flask_flash
        self._configuration: Configuration | None = None

    # --- 动作 -----------------------------------------------------------

    def index_action(self, request: Any) -> ResponseReturnValue:
        """分页、可排序的列表页。"""
        configuration = self.get_configuration()

        sort_field = request.args.get("sort_by") or configuration.default_sort_field
        sort_order = (request.args.get("sort_order") or configuration.default_sort_order).lower()

        # 回写实际生效的排序，保证模板中高亮的排序列与查询一致
        args = request.args.copy()
        args["sort_by"] = sort_field
        args["sort_order"] = sort_order
        request.args = ImmutableMultiDict(args)

        try:
            query = self.get_repository().create_query().sort(sort_field, sort_order)
        except InvalidSortError as exc:
            raise BadRequest(str(exc)) from exc

        query = self.configure_list_criteria(request, query) or query

        pager = Pager(
            query,
            self._per_page(configuration),
            max_per_page=current_app.config.get("CRUD_MAX_PER_PAGE"),
        )
        pager.set_current_page(request.args.get("page", 1))

        grid = self.grid_factory.create_grid(configuration.grid_type, configuration.grid_options)

        return self.render(
            self.get_template(request, "index"),
            config=configuration,
            grid=grid.create_view(),
            pager=pager,
        )

    def add_action(self, request: Any) -> ResponseReturnValue:
        return self._form_action(request, "add", self.new_instance(request))

    def edit_action(self, request: Any, id: Any) -> ResponseReturnValue:
        return self._form_action(request, "edit", self.find_object(id))

    def delete_action(self, request: Any, id: Any) -> ResponseReturnValue:
        configuration = self.get_configuration()
        instance = self.find_object(id)

        manager = self.get_object_manager()
        manager.remove(instance)
        self._commit(manager, "delete")

        return self.redirect_to_route(configuration.route_prefix + "index")

    def _form_action(self, request: Any, action: str, data: Any) -> ResponseReturnValue:
        configuration = self.get_configuration()

        form = self.create_form(configuration.form_type, data, configuration.form_options)
        form.handle_request(request)

        if form.is_valid():
            manager = self.get_object_manager()
            manager.persist(form.get_data())
            self._commit(manager, action)
            return self.redirect_to_route(configuration.route_prefix + "index")

        return self.render(
            self.get_template(request, action),
            config=configuration,
            form=form.create_view(),
        )

    def _commit(self, manager: EntityStore, action: str) -> bool:
        name = self.get_configuration().name
        try:
            manager.commit()
        except PersistenceError:
            self.add_flash("error", f"flash.{name}.{action}.error")
            return False
        self.add_flash("success", f"flash.{name}.{action}.success")
        return True

    # --- 钩子 -----------------------------------------------------------

    def configure(self, config: Configuration) -> None:
        """填写配置；子类覆盖。"""

    def new_instance(self, request: Any) -> ModelTypeVar | None:
        """新增时交给表单的实体；返回 None 时由表单按 data_class 创建。"""
        return None

    def configure_list_criteria(
        self, request: Any, query: StoreQuery[ModelTypeVar, ModelTypeVar]
    ) -> StoreQuery[ModelTypeVar, ModelTypeVar] | None:
        """收窄列表查询；返回新的查询，或 None 表示保持不变。"""
        return None

    # --- 配置与对象访问 -------------------------------------------------

    def get_configuration(self) -> Configuration:
        if self._configuration is None:
            configuration = Configuration(self)
            self.configure(configuration)
            configuration.validate()
            self._configuration = configuration
        return self._configuration

    def find_object(self, id: Any, model: type | None = None) -> ModelTypeVar:
        model = model or self.get_configuration().entity_class
        instance = self.get_repository(model).find(id)
        if instance is None:
            raise ObjectNotFound(model, id)
        return instance

    def get_object_manager(self, model: type | None = None) -> EntityStore:
        return self.stores.get_store(model or self.get_configuration().entity_class)

    def get_repository(self, model: type | None = None) -> EntityRepository[ModelTypeVar]:
        model = model or self.get_configuration().entity_class
        return self.get_object_manager(model).get_repository(model)

    def get_template(self, request: Any, action: str) -> str:
        candidates = self.template_guesser.guess_template_names(self, action, request)
        return resolve_template(candidates, self.template_exists)

    # --- 框架适配 -------------------------------------------------------

    def create_form(
        self,
        form_type: type[FlaskForm],
        data: Any = None,
        options: Mapping[str, Any] | None = None,
    ) -> FormHandler:
        options = dict(options or {})
        options.setdefault("data_class", self.get_configuration().data_class)
        return FormHandler(form_type, data, options)

    def add_flash(self, level: str, message: str) -> None:
        logger.debug("CRUD flash <%s> %s", level, message)
        self.flash(message, level)

    def render(self, template: str, **context: Any) -> ResponseReturnValue:
        return render_template(template, **context)

    def redirect_to_route(self, endpoint: str, **values: Any) -> ResponseReturnValue:
        return redirect(url_for(endpoint, **values))

    def _per_page(self, configuration: Configuration) -> int:
        if configuration.per_page:
            return configuration.per_page
        return int(current_app.config.get("CRUD_PER_PAGE", DEFAULT_PER_PAGE))

    # --- 路由注册 -------------------------------------------------------

    @classmethod
    def as_blueprint(
        cls,
        name: str,
        import_name: str,
        *,
        controller_options: Mapping[str, Any] | None = None,
        **blueprint_options: Any,
    ) -> Blueprint:
        """生成挂载四个动作的 Blueprint；每个请求新建一个控制器实例。

        endpoint 为 ``<name>.index`` 等，因此 route_prefix 通常设为 ``"<name>."``。
        """
        blueprint_options.setdefault("template_folder", TEMPLATE_FOLDER)
        blueprint = Blueprint(name, import_name, **blueprint_options)
        options = dict(controller_options or {})

        def index() -> ResponseReturnValue:
            return cls(**options).index_action(request)

        def add() -> ResponseReturnValue:
            return cls(**options).add_action(request)

        def edit(id: str) -> ResponseReturnValue:
            return cls(**options).edit_action(request, id)

        def delete(id: str) -> ResponseReturnValue:
            return cls(**options).delete_action(request, id)

        blueprint.add_url_rule("/", "index", index, methods=["GET"])
        blueprint.add_url_rule("/add", "add", add, methods=["GET", "POST"])
        blueprint.add_url_rule("/edit/<id>", "edit", edit, methods=["GET", "POST"])
        blueprint.add_url_rule("/delete/<id>", "delete", delete, methods=["GET", "POST"])
        return blueprint


def _flask_flash(message: str, category: str) -> None:
    flash(message, category)
