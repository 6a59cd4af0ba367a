"""Pagination metadata for list endpoints."""
from dataclasses import dataclass, asdict
from typing import Dict


@dataclass
class Meta:
    """
    Page window over a result set.

    page is 1-based; a requested page past the end is clamped to the last
    page, and a non-positive per_page falls back to the configured default.
    """
    page: int
    per_page: int
    page_count: int
    total_count: int

    @classmethod
    def build(cls, page: int, per_page: int, total: int, default_limit: int) -> "Meta":
        if per_page <= 0:
            per_page = default_limit
        if per_page <= 0:
            raise ValueError("paginator limit default must be positive")

        page_count = 0
        if total >= 0:
            page_count = (total + per_page - 1) // per_page
            if page > page_count:
                page = page_count
        if page < 1:
            page = 1

        return cls(page=page, per_page=per_page, page_count=page_count, total_count=total)

    @property
    def offset(self) -> int:
        return (self.page - 1) * self.per_page

    @property
    def limit(self) -> int:
        return self.per_page

    def to_dict(self) -> Dict[str, int]:
        return asdict(self)
