# Overview: Page/limit normalization for listing endpoints.

from __future__ import annotations

import math
from dataclasses import dataclass

from flask import current_app


@dataclass(frozen=True)
class Page:
    page: int
    limit: int

    @property
    def offset(self) -> int:
        return (self.page - 1) * self.limit


def _to_int(value) -> int | None:
    if value is None or isinstance(value, bool):
        return None
    try:
        return int(value)
    except (TypeError, ValueError):
        return None


def normalize_page(page=None, limit=None) -> Page:
    """
    Clamp raw page/limit input.

    Invalid or missing values fall back to page 1 and DEFAULT_PAGE_SIZE;
    limit is capped at MAX_PAGE_SIZE.
    """
    default_limit = current_app.config["DEFAULT_PAGE_SIZE"]
    max_limit = current_app.config["MAX_PAGE_SIZE"]

    page_num = _to_int(page)
    if page_num is None or page_num < 1:
        page_num = 1

    size = _to_int(limit)
    if size is None or size < 1:
        size = default_limit
    size = min(size, max_limit)

    return Page(page=page_num, limit=size)


def pagination_meta(total: int, page: Page) -> dict:
    total_pages = math.ceil(total / page.limit) if page.limit else 0
    return {
        "total": total,
        "page": page.page,
        "limit": page.limit,
        "total_pages": total_pages,
        "has_next": page.page < total_pages,
        "has_prev": page.page > 1,
    }
