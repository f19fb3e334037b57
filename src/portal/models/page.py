from __future__ import annotations

from dataclasses import dataclass, field
from typing import Generic, TypeVar

T = TypeVar("T")


@dataclass(frozen=True)
class PageMeta:
    total: int
    page: int
    per_page: int
    total_pages: int
    has_next: bool
    has_prev: bool

    @classmethod
    def from_dict(cls, d: dict) -> PageMeta:
        page = int(d.get("page", 1))
        per_page = int(d.get("perPage", d.get("limit", 10)))
        total = int(d.get("total", 0))
        total_pages = int(d.get("totalPages", max(1, -(-total // per_page)) if per_page else 1))
        return cls(
            total=total,
            page=page,
            per_page=per_page,
            total_pages=total_pages,
            has_next=bool(d.get("hasNext", page < total_pages)),
            has_prev=bool(d.get("hasPrev", page > 1)),
        )


@dataclass(frozen=True)
class Page(Generic[T]):
    items: list[T] = field(default_factory=list)
    meta: PageMeta = field(default_factory=lambda: PageMeta(0, 1, 10, 1, False, False))
