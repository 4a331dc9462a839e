from typing import Generator

import pytest
from sqlalchemy import Column, Integer, String, create_engine
from sqlalchemy.orm import Session, declarative_base, sessionmaker

from flask_crud import EntityStore, Pager
from flask_crud.pagination import paginate_query

Base = declarative_base()


class SAUser(Base):  # type: ignore[misc]
    __tablename__ = "sa_page_user"
    id = Column(Integer, primary_key=True)
    email = Column(String(255), unique=True, nullable=False)


@pytest.fixture(scope="function")
def users_query(
    request: pytest.FixtureRequest,
) -> Generator:
    engine = create_engine("sqlite:///:memory:", echo=False, future=True)
    Base.metadata.create_all(engine)
    SessionLocal = sessionmaker(bind=engine, class_=Session, expire_on_commit=False)
    session = SessionLocal()
    total = getattr(request, "param", 5)
    session.add_all(SAUser(email=f"page-{idx}@example.com") for idx in range(1, total + 1))
    session.commit()
    try:
        yield EntityStore(session).get_repository(SAUser).create_query().sort("id")
    finally:
        session.close()
        engine.dispose()


def _emails(items) -> list[str]:
    return [u.email for u in items]


def test_paginate_with_count(users_query) -> None:
    page1 = users_query.paginate(page=1, per_page=2)
    assert _emails(page1.items) == ["page-1@example.com", "page-2@example.com"]
    assert page1.total == 5
    assert page1.pages == 3
    assert page1.has_prev is False
    assert page1.has_next is True
    assert page1.prev_num is None
    assert page1.next_num == 2

    page3 = users_query.paginate(page=3, per_page=2)
    assert _emails(page3.items) == ["page-5@example.com"]
    assert page3.has_next is False
    assert page3.prev_num == 2


def test_paginate_without_count(users_query) -> None:
    page2 = users_query.paginate(page=2, per_page=2, count=False)
    assert _emails(page2.items) == ["page-3@example.com", "page-4@example.com"]
    assert page2.total is None
    assert page2.pages == 0
    assert page2.has_next is True
    assert page2.next_num == 3


def test_paginate_out_of_range(users_query) -> None:
    assert paginate_query(users_query, page=0, per_page=2).page == 1
    assert paginate_query(users_query, page=10, per_page=2).items == []
    assert paginate_query(users_query, page=1, per_page=10, max_per_page=4).per_page == 4
    with pytest.raises(ValueError):
        paginate_query(users_query, page=10, per_page=2, error_out=True)


def test_pager_is_lazy_and_clamps_page(users_query) -> None:
    pager = Pager(users_query, per_page=2)
    assert pager._result is None

    pager.set_current_page("3")
    assert _emails(pager) == ["page-5@example.com"]
    assert len(pager) == 1
    assert pager.total == 5

    assert pager.set_current_page("abc").current_page == 1
    assert pager.set_current_page(-4).current_page == 1
    assert pager._result is None


@pytest.mark.parametrize("users_query", [25], indirect=True)
def test_pager_page_range(users_query) -> None:
    pager = Pager(users_query, per_page=2)

    assert pager.pages == 13
    assert list(pager.set_current_page(1).page_range()) == [1, 2, 3, 4, 5]
    assert list(pager.set_current_page(7).page_range()) == [5, 6, 7, 8, 9]
    assert list(pager.set_current_page(13).page_range(3)) == [11, 12, 13]


@pytest.mark.parametrize("users_query", [0], indirect=True)
def test_pager_empty(users_query) -> None:
    pager = Pager(users_query)

    assert list(pager) == []
    assert pager.pages == 0
    assert list(pager.page_range()) == []


def test_paginate_far_past_the_end_skips_row_query(users_query) -> None:
    calls: list[str] = []

    class CountingQuery:
        def count(self) -> int:
            return users_query.count()

        def limit(self, limit):
            calls.append("limit")
            return users_query.limit(limit)

    result = paginate_query(CountingQuery(), page=10**20, per_page=2)

    assert result.items == []
    assert result.total == 5
    assert result.pages == 3
    assert result.has_next is False
    assert calls == []


def test_paginate_without_count_past_any_offset(users_query) -> None:
    result = paginate_query(users_query, page=10**20, per_page=2, count=False)

    assert result.items == []
    assert result.has_next is False
