import os
import pathlib
import sys
from typing import Any, Callable, Generator

import pytest
from flask import Flask, request, template_rendered
from flask.testing import FlaskClient

ROOT_DIR = pathlib.Path(__file__).resolve().parents[1]
SRC_DIR = ROOT_DIR / "src"
if str(SRC_DIR) not in sys.path:
    sys.path.insert(0, str(SRC_DIR))

from flask_crud import store as store_module  # noqa: E402
from flask_crud.store import EntityStore  # noqa: E402
from sample_app import create_app, db  # noqa: E402


def _load_test_db_uri() -> str:
    """Load TEST_DB URI from environment or .env file and normalize driver."""
    uri = os.getenv("TEST_DB")
    if uri is None:
        env_path = ROOT_DIR / ".env"
        if env_path.is_file():
            for line in env_path.read_text(encoding="utf-8").splitlines():
                line = line.strip()
                if line.startswith("TEST_DB="):
                    _, value = line.split("=", 1)
                    uri = value.strip()
                    break
    if not uri:
        return "sqlite://"
    # 如果是 mysql://，优先使用 PyMySQL 驱动
    if uri.startswith("mysql://"):
        uri = "mysql+pymysql://" + uri[len("mysql://") :]
    return uri


@pytest.fixture(autouse=True)
def reset_store_configuration() -> Generator[None, None, None]:
    """EntityStore.configure 是类级配置，每个测试后恢复默认。"""
    error_logger = store_module._error_logger
    yield
    EntityStore.default_session = None
    EntityStore.session_provider = None
    store_module._error_logger = error_logger


@pytest.fixture()
def app(tmp_path: pathlib.Path) -> Generator[Flask, None, None]:
    template_dir = tmp_path / "templates"
    template_dir.mkdir()
    app = create_app(_load_test_db_uri(), template_folder=str(template_dir))
    with app.app_context():
        db.create_all()
    try:
        yield app
    finally:
        with app.app_context():
            db.session.remove()
            db.drop_all()


@pytest.fixture()
def client(app: Flask) -> FlaskClient:
    return app.test_client()


@pytest.fixture()
def rendered(app: Flask) -> Generator[list[dict[str, Any]], None, None]:
    """Templates rendered during the test, with their context and request args."""
    records: list[dict[str, Any]] = []

    def record(sender, template, context, **extra):
        records.append(
            {
                "template": template.name,
                "context": context,
                "args": request.args.to_dict(),
            }
        )

    template_rendered.connect(record, app)
    try:
        yield records
    finally:
        template_rendered.disconnect(record, app)


@pytest.fixture()
def flashes(client: FlaskClient) -> Callable[[], list[tuple[str, str]]]:
    """读取会话中尚未展示的 flash 消息。"""

    def read() -> list[tuple[str, str]]:
        with client.session_transaction() as session:
            return [tuple(item) for item in session.get("_flashes", [])]

    return read
