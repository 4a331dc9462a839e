"""类型别名、协议与 Session 类型定义。"""

from __future__ import annotations

from collections.abc import Callable, Sequence
from typing import TYPE_CHECKING, Any, Protocol, TypeVar, runtime_checkable

from sqlalchemy.orm import Session as _Session
from sqlalchemy.orm import scoped_session as _ScopedSession

if TYPE_CHECKING:
    from flask import Request


@runtime_checkable
class ORMModel(Protocol):
    """最小模型能力约束，便于与纯 SQLAlchemy/Flask-SQLAlchemy 兼容。"""

    __table__: Any


ModelTypeVar = TypeVar("ModelTypeVar", bound=ORMModel)
ResultTypeVar = TypeVar("ResultTypeVar", covariant=True)

ErrorLogger = Callable[..., None]

# SessionLike 视作 SQLAlchemy ORM Session 或其 scoped_session 包装，
# 兼容 Flask-SQLAlchemy 提供的 db.session。
SessionLike = _Session | _ScopedSession[_Session]

SessionProvider = Callable[[], SessionLike]

# flash(message, category)，默认即 flask.flash
FlashSink = Callable[[str, str], None]

# 模板存在性判断，默认查询当前应用的 Jinja 环境
TemplateExists = Callable[[str], bool]


class TemplateGuesserLike(Protocol):
    def guess_template_names(
        self, controller: Any, action: str, request: "Request | None" = None
    ) -> Sequence[str]: ...
