"""Pagination primitives used by the list action."""

from __future__ import annotations

from dataclasses import dataclass
from typing import Generic, Iterator, Protocol, TypeVar

_T = TypeVar("_T")

DEFAULT_PER_PAGE = 10

# 数据库驱动的 LIMIT/OFFSET 为 64 位有符号整数
MAX_OFFSET = 2**63 - 1


@dataclass(frozen=True, slots=True)
class PaginationResult(Generic[_T]):
    """One page of a query.

    ``total`` is ``None`` when the page was fetched without counting; the
    page count is then unknown and reported as 0.
    """

    items: list[_T]
    page: int
    per_page: int
    total: int | None
    has_next: bool

    @property
    def pages(self) -> int:
        if not self.total:
            return 0
        return -(-self.total // self.per_page)

    @property
    def has_prev(self) -> bool:
        return self.page > 1

    @property
    def prev_num(self) -> int | None:
        return self.page - 1 if self.has_prev else None

    @property
    def next_num(self) -> int | None:
        return self.page + 1 if self.has_next else None


class _PaginationQuery(Protocol[_T]):
    def count(self) -> int: ...

    def limit(self, limit: int | None) -> "_PaginationQuery[_T]": ...

    def offset(self, offset: int | None) -> "_PaginationQuery[_T]": ...

    def all(self) -> list[_T]: ...


def _checked_window(page: int, per_page: int, max_per_page: int | None, error_out: bool) -> tuple[int, int]:
    if max_per_page is not None:
        per_page = min(per_page, max_per_page)
    if per_page < 1:
        if error_out:
            raise ValueError("per_page must be >= 1")
        per_page = DEFAULT_PER_PAGE
    if page < 1:
        if error_out:
            raise ValueError("page must be >= 1")
        page = 1
    return page, per_page


def _fetch(query: _PaginationQuery[_T], page: int, per_page: int, extra: int = 0) -> list[_T]:
    offset = (page - 1) * per_page
    if offset > MAX_OFFSET:
        return []
    return query.limit(per_page + extra).offset(offset).all()


def paginate_query(
    query: _PaginationQuery[_T],
    *,
    page: int = 1,
    per_page: int = DEFAULT_PER_PAGE,
    error_out: bool = False,
    max_per_page: int | None = None,
    count: bool = True,
) -> PaginationResult[_T]:
    """Return page ``page`` of ``query``.

    Pages below 1 are clamped to 1. A page past the end yields no items and
    runs no row query; with ``error_out`` both cases raise ``ValueError``
    instead. ``count=False`` skips the COUNT and fetches one extra row to
    decide ``has_next``.
    """
    page, per_page = _checked_window(page, per_page, max_per_page, error_out)

    if not count:
        rows = _fetch(query, page, per_page, extra=1)
        return PaginationResult(rows[:per_page], page, per_page, None, len(rows) > per_page)

    total = query.count()
    result = PaginationResult([], page, per_page, total, page < -(-total // per_page))
    if page > result.pages:
        if error_out and total:
            raise ValueError("page is out of range")
        return result
    return PaginationResult(_fetch(query, page, per_page), page, per_page, total, result.has_next)


class Pager(Generic[_T]):
    """Lazy pager handed to the index template.

    The query is only executed on first access to the page data, so hooks
    may still narrow it after the pager has been built.
    """

    def __init__(
        self,
        query: _PaginationQuery[_T],
        per_page: int = DEFAULT_PER_PAGE,
        *,
        max_per_page: int | None = None,
    ) -> None:
        self._query = query
        self.per_page = per_page
        self.max_per_page = max_per_page
        self.current_page = 1
        self._result: PaginationResult[_T] | None = None

    def set_current_page(self, page: int | str | None) -> "Pager[_T]":
        try:
            page = int(page) if page is not None else 1
        except (TypeError, ValueError):
            page = 1
        self.current_page = max(page, 1)
        self._result = None
        return self

    @property
    def result(self) -> PaginationResult[_T]:
        if self._result is None:
            self._result = paginate_query(
                self._query,
                page=self.current_page,
                per_page=self.per_page,
                max_per_page=self.max_per_page,
            )
        return self._result

    @property
    def items(self) -> list[_T]:
        return self.result.items

    @property
    def total(self) -> int:
        return self.result.total or 0

    @property
    def pages(self) -> int:
        return self.result.pages

    @property
    def has_prev(self) -> bool:
        return self.result.has_prev

    @property
    def has_next(self) -> bool:
        return self.result.has_next

    @property
    def prev_num(self) -> int | None:
        return self.result.prev_num

    @property
    def next_num(self) -> int | None:
        return self.result.next_num

    def page_range(self, window: int = 5) -> range:
        """Page numbers centred on the current page, at most ``window`` wide."""
        pages = self.pages
        if pages == 0:
            return range(0)
        window = max(window, 1)
        start = max(1, self.current_page - window // 2)
        end = min(pages, start + window - 1)
        start = max(1, end - window + 1)
        return range(start, end + 1)

    def __iter__(self) -> Iterator[_T]:
        return iter(self.items)

    def __len__(self) -> int:
        return len(self.items)

    def __repr__(self) -> str:
        return f"Pager(page={self.current_page}, per_page={self.per_page})"
