"""Page/limit normalisation shared by message and notification listings."""

import math

from app.config import settings
from app.services.errors import InvalidPayloadError


def resolve_page(page: int | None, limit: int | None, default_limit: int) -> tuple[int, int, int]:
    """
    Validate page/limit and return (page, limit, offset).

    Missing values fall back to page 1 and the listing's default limit.
    """
    page = 1 if page is None else page
    limit = default_limit if limit is None else limit

    if page < 1:
        raise InvalidPayloadError("page must be >= 1")
    if limit < 1 or limit > settings.PAGINATION_MAX_LIMIT:
        raise InvalidPayloadError(f"limit must be between 1 and {settings.PAGINATION_MAX_LIMIT}")

    return page, limit, (page - 1) * limit


def total_pages(total: int, limit: int) -> int:
    return math.ceil(total / limit) if limit else 0
