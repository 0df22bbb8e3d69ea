"""
Pagination utilities for the project.

Page-number pagination shared by the chat services.  Page sizes are
clamped centrally here rather than in every caller, and the metadata
block matches what the REST envelope returns to clients.
"""
from django.conf import settings
from django.core.paginator import EmptyPage, Paginator


def clamp_page_size(page_size, default: int) -> int:
    max_size = settings.SUPPORT_CHAT.get("MAX_PAGE_SIZE", 100)
    try:
        page_size = int(page_size)
    except (TypeError, ValueError):
        return default
    return max(1, min(page_size, max_size))


def paginate(queryset, page, page_size: int):
    """Return ``(items, pagination)`` for a 1-based page of ``queryset``.

    Pages past the end yield an empty item list instead of raising, so
    clients scrolling back through history can stop on an empty page.
    """
    try:
        page = max(1, int(page))
    except (TypeError, ValueError):
        page = 1

    paginator = Paginator(queryset, page_size)
    try:
        items = list(paginator.page(page).object_list)
    except EmptyPage:
        items = []

    total_pages = paginator.num_pages if paginator.count else 0
    return items, {
        "current_page": page,
        "total_pages": total_pages,
        "total_items": paginator.count,
        "items_per_page": page_size,
        "has_next_page": page < total_pages,
        "has_prev_page": page > 1,
    }
