"""实体存储层：会话管理、仓库查询与提交。

- ``EntityStore`` 负责 persist/remove/commit（对应一个 Session）。
- ``EntityRepository`` 负责按主键查找与构建查询。
- ``StoreRegistry`` 按模型类解析对应的 ``EntityStore``。
"""

from __future__ import annotations

import logging
from functools import wraps
from typing import Any, Generic, Iterator, Optional, cast

from flask import current_app, has_app_context
from flask_sqlalchemy import SQLAlchemy
from sqlalchemy import inspect as sa_inspect
from sqlalchemy.exc import NoInspectionAvailable
from sqlalchemy.orm import Query

from .exceptions import InvalidSortError, PersistenceError
from .pagination import DEFAULT_PER_PAGE, PaginationResult, paginate_query
from .types import ErrorLogger, ModelTypeVar, ResultTypeVar, SessionLike, SessionProvider

_error_logger: ErrorLogger = logging.getLogger("CRUD").error

SORT_ORDERS = ("asc", "desc")


def _model_name(model: Any) -> str:
    return getattr(model, "__name__", str(model))


def _get_session_for_cls(store_cls: type["EntityStore"]) -> SessionLike:
    """根据 EntityStore 类获取当前配置的会话对象。

    优先使用 EntityStore.configure 设置的 session_provider / session；
    都未设置时回退到当前应用注册的 Flask-SQLAlchemy 扩展。
    """
    provider = getattr(store_cls, "session_provider", None)
    if provider is not None:
        return provider()
    session = getattr(store_cls, "default_session", None)
    if session is None and has_app_context():
        extension = current_app.extensions.get("sqlalchemy")
        if isinstance(extension, SQLAlchemy):
            session = extension.session
    if session is None:
        raise RuntimeError(
            "EntityStore session is not configured. "
            "Please call EntityStore.configure(session=...) before using the CRUD controller."
        )
    return cast(SessionLike, session)


class StoreQuery(Generic[ModelTypeVar, ResultTypeVar]):
    """Query 包装器。

    - 保留 SQLAlchemy 原生 Query 功能，链式调用返回新的包装对象。
    - 额外提供 sort()/paginate()，供列表页使用。
    - 通过 __getattr__ 委托未覆盖的方法。
    """

    __slots__ = ("_model", "_query")

    def __init__(self, model: type[ModelTypeVar], query: Query) -> None:
        self._model = model
        self._query = query

    @property
    def model(self) -> type[ModelTypeVar]:
        return self._model

    @property
    def query(self) -> Query:
        """返回底层 SQLAlchemy Query。"""
        return self._query

    def _wrap(self, query: Query) -> "StoreQuery[ModelTypeVar, ResultTypeVar]":
        return StoreQuery(self._model, query)

    def sort(self, field: str, order: str = "asc") -> "StoreQuery[ModelTypeVar, ResultTypeVar]":
        """按映射列排序；未知列或方向抛出 InvalidSortError。"""
        direction = str(order).lower()
        if direction not in SORT_ORDERS:
            raise InvalidSortError(f"Invalid sort order {order!r}, expected one of {SORT_ORDERS}")
        try:
            column_attrs = sa_inspect(self._model).column_attrs
        except NoInspectionAvailable as exc:
            raise InvalidSortError(f"{_model_name(self._model)} is not a mapped class") from exc
        if field not in column_attrs:
            raise InvalidSortError(
                f"{_model_name(self._model)} has no sortable field {field!r}"
            )
        column = getattr(self._model, field)
        clause = column.desc() if direction == "desc" else column.asc()
        return self._wrap(self._query.order_by(clause))

    def join(self, *args, **kwargs) -> "StoreQuery[ModelTypeVar, ResultTypeVar]":
        return self._wrap(self._query.join(*args, **kwargs))

    def outerjoin(self, *args, **kwargs) -> "StoreQuery[ModelTypeVar, ResultTypeVar]":
        return self._wrap(self._query.outerjoin(*args, **kwargs))

    def filter(self, *criterion) -> "StoreQuery[ModelTypeVar, ResultTypeVar]":
        return self._wrap(self._query.filter(*criterion))

    def filter_by(self, **kwargs) -> "StoreQuery[ModelTypeVar, ResultTypeVar]":
        return self._wrap(self._query.filter_by(**kwargs))

    def options(self, *options) -> "StoreQuery[ModelTypeVar, ResultTypeVar]":
        return self._wrap(self._query.options(*options))

    def order_by(self, *clauses) -> "StoreQuery[ModelTypeVar, ResultTypeVar]":
        return self._wrap(self._query.order_by(*clauses))

    def limit(self, limit: int | None) -> "StoreQuery[ModelTypeVar, ResultTypeVar]":
        return self._wrap(self._query.limit(limit))

    def offset(self, offset: int | None) -> "StoreQuery[ModelTypeVar, ResultTypeVar]":
        return self._wrap(self._query.offset(offset))

    def all(self) -> list[ResultTypeVar]:
        return self._query.all()

    def first(self) -> ResultTypeVar | None:
        return self._query.first()

    def one_or_none(self) -> ResultTypeVar | None:
        return self._query.one_or_none()

    def count(self) -> int:
        return self._query.count()

    def paginate(
        self,
        *,
        page: int = 1,
        per_page: int = DEFAULT_PER_PAGE,
        error_out: bool = False,
        max_per_page: int | None = None,
        count: bool = True,
    ) -> PaginationResult[ResultTypeVar]:
        return paginate_query(
            self,
            page=page,
            per_page=per_page,
            error_out=error_out,
            max_per_page=max_per_page,
            count=count,
        )

    def raw(self) -> Query:
        return self._query

    def __iter__(self) -> Iterator[ResultTypeVar]:
        return iter(self._query)

    def __getattr__(self, item):
        attr = getattr(self._query, item)
        if callable(attr):

            @wraps(attr)
            def wrapper(*args, **kwargs):
                result = attr(*args, **kwargs)
                if isinstance(result, Query):
                    return StoreQuery(self._model, result)
                return result

            return wrapper
        return attr

    def __repr__(self) -> str:
        return f"StoreQuery({self._query!r})"


class EntityRepository(Generic[ModelTypeVar]):
    """按模型类读取实体。"""

    def __init__(self, store: "EntityStore", model: type[ModelTypeVar]) -> None:
        self._store = store
        self._model = model

    @property
    def model(self) -> type[ModelTypeVar]:
        return self._model

    def _coerce_identity(self, ident: Any) -> Any:
        """把路由中的字符串 id 转为主键的 Python 类型，失败返回 None。"""
        if not isinstance(ident, str):
            return ident
        primary_key = sa_inspect(self._model).primary_key
        if len(primary_key) != 1:
            return ident
        try:
            python_type = primary_key[0].type.python_type
        except NotImplementedError:
            return ident
        if python_type is str:
            return ident
        try:
            return python_type(ident)
        except (TypeError, ValueError):
            return None

    def find(self, ident: Any) -> Optional[ModelTypeVar]:
        ident = self._coerce_identity(ident)
        if ident is None:
            return None
        return self._store.session.get(self._model, ident)

    def create_query(self) -> StoreQuery[ModelTypeVar, ModelTypeVar]:
        return StoreQuery(self._model, self._store.session.query(self._model))


class EntityStore:
    """实体管理器：登记新增/删除并提交。

    - 会话通过类级 configure 设置，或在构造时显式传入。
    - commit 失败时回滚并抛出 PersistenceError，由调用方决定如何反馈。
    """

    default_session: SessionLike | None = None
    session_provider: SessionProvider | None = None

    @classmethod
    def configure(
        cls,
        *,
        session: SessionLike | None = None,
        session_provider: SessionProvider | None = None,
        error_logger: ErrorLogger | None = None,
    ) -> None:
        """配置 EntityStore 所依赖的会话与日志函数（类级别）。"""
        if session is not None:
            cls.default_session = session
            cls.session_provider = None
        if session_provider is not None:
            cls.session_provider = session_provider
        if error_logger is not None:
            global _error_logger
            _error_logger = error_logger

    def __init__(self, session: SessionLike | None = None) -> None:
        self._session = session

    @property
    def session(self) -> SessionLike:
        if self._session is not None:
            return self._session
        return _get_session_for_cls(type(self))

    def get_repository(self, model: type[ModelTypeVar]) -> EntityRepository[ModelTypeVar]:
        return EntityRepository(self, model)

    def persist(self, instance: Any) -> None:
        self.session.add(instance)

    def remove(self, instance: Any) -> None:
        self.session.delete(instance)

    def commit(self) -> None:
        session = self.session
        try:
            session.commit()
        except Exception as exc:
            # 驱动层异常（如 OverflowError）不一定被 SQLAlchemy 包装
            _error_logger(f"CRUD commit failed: {exc!r}")
            try:
                session.rollback()
            except Exception as rollback_exc:
                _error_logger(f"CRUD rollback failed: {rollback_exc}")
            raise PersistenceError(str(exc)) from exc

    def __repr__(self) -> str:
        return f"EntityStore(session={self._session!r})"



class StoreRegistry:
    """按模型类解析 EntityStore，对应多数据库场景下的 getManagerForClass。"""

    def __init__(self, default: EntityStore | None = None) -> None:
        self._default = default
        self._stores: dict[type, EntityStore] = {}

    def bind(self, model: type, session: SessionLike | EntityStore) -> None:
        store = session if isinstance(session, EntityStore) else EntityStore(session)
        self._stores[model] = store

    def get_store(self, model: type) -> EntityStore:
        for klass in getattr(model, "__mro__", (model,)):
            if klass in self._stores:
                return self._stores[klass]
        if self._default is None:
            self._default = EntityStore()
        return self._default

    def get_repository(self, model: type[ModelTypeVar]) -> EntityRepository[ModelTypeVar]:
        return self.get_store(model).get_repository(model)


default_registry = StoreRegistry()
