from decimal import Decimal, ROUND_HALF_UP
import math

from cinelog import config
from cinelog.errors import ValidationError


def round1(value):
    """Round half-up to one decimal place (3.65 -> 3.7, not banker's rounding)."""
    return float(Decimal(str(value)).quantize(Decimal("0.1"), rounding=ROUND_HALF_UP))


def check_page(page, limit):
    if page is None:
        page = 1
    if limit is None:
        limit = config.DEFAULT_PAGE_SIZE
    if page < 1:
        raise ValidationError("page must be >= 1")
    if limit < 1 or limit > config.MAX_PAGE_SIZE:
        raise ValidationError(f"limit must be between 1 and {config.MAX_PAGE_SIZE}")
    return page, limit


def total_pages(total, limit):
    return math.ceil(total / limit) if total else 0


def page_envelope(items, total, page, limit):
    pages = total_pages(total, limit)
    return {
        "items": items,
        "total": total,
        "page": page,
        "totalPages": pages,
        "hasNextPage": page < pages,
        "hasPrevPage": page > 1,
    }


def iso(value):
    return value.isoformat() if value else None
