"""
Pagination and sorting shared by every listing screen.

Page sizes come from fixed allow-lists and the last size picked for a
listing is remembered in the session. Sort keys are looked up in per-listing
dictionaries of column expressions, so request text never reaches SQL.
"""
import math

from flask import request, session

PEOPLE_PAGE_SIZES = (25, 50, 75, 100)
CATALOG_PAGE_SIZES = (10, 25, 50)


class Page:
    def __init__(self, page, page_size, total):
        self.page_size = page_size
        self.total = total
        self.total_pages = max(1, math.ceil(total / page_size))
        self.page = min(max(1, page), self.total_pages)
        self.offset = (self.page - 1) * page_size

    @property
    def has_prev(self):
        return self.page > 1

    @property
    def has_next(self):
        return self.page < self.total_pages

    @property
    def prev_page(self):
        return self.page - 1 if self.has_prev else None

    @property
    def next_page(self):
        return self.page + 1 if self.has_next else None

    def __repr__(self):
        return f'<Page {self.page}/{self.total_pages} size={self.page_size} total={self.total}>'


def _to_int(value):
    try:
        return int(value)
    except (TypeError, ValueError):
        return None


def paginate(total, page=None, page_size=None, allowed_sizes=PEOPLE_PAGE_SIZES, default_size=None):
    """Clamp a requested page/page size against a total row count."""
    if default_size not in allowed_sizes:
        default_size = allowed_sizes[0]
    page_size = _to_int(page_size)
    if page_size not in allowed_sizes:
        page_size = default_size
    page = _to_int(page)
    if page is None or page < 1:
        page = 1
    return Page(page, page_size, max(0, total or 0))


def remembered_page_size(category, allowed_sizes):
    size = session.get('page_sizes', {}).get(category)
    return size if size in allowed_sizes else None


def remember_page_size(category, page_size):
    sizes = dict(session.get('page_sizes', {}))
    sizes[category] = page_size
    session['page_sizes'] = sizes


def page_request(category, allowed_sizes=PEOPLE_PAGE_SIZES, default_size=None):
    """Return (page, page_size) from the query string for a listing.

    A valid pageSize is remembered for the category; without one the
    remembered size (or default_size) is used.
    """
    requested = _to_int(request.args.get('pageSize'))
    if requested in allowed_sizes:
        remember_page_size(category, requested)
        size = requested
    else:
        size = remembered_page_size(category, allowed_sizes) or default_size or allowed_sizes[0]
    return request.args.get('page'), size


def resolve_sort(key, allowed, default):
    """Map a sort key to an ORDER BY expression from an allow-list.

    A leading '-' sorts descending.
    """
    descending = bool(key) and key.startswith('-')
    name = key[1:] if descending else key
    if name not in allowed:
        name, descending = default, False
    column = allowed[name]
    return (name, descending), (column.desc() if descending else column.asc())


def page_query(query, page):
    return query.offset(page.offset).limit(page.page_size).all()
