import unittest

from flask import Flask, session

from pagination import (
    CATALOG_PAGE_SIZES,
    PEOPLE_PAGE_SIZES,
    page_request,
    paginate,
    resolve_sort,
)


class PaginateTest(unittest.TestCase):

    def test_total_pages_rounds_up(self):
        page = paginate(101, page=1, page_size=50)
        self.assertEqual(page.total_pages, 3)
        self.assertEqual(page.offset, 0)

    def test_page_past_end_is_clamped(self):
        page = paginate(101, page=5, page_size=50)
        self.assertEqual(page.page, 3)
        self.assertEqual(page.offset, 100)
        self.assertFalse(page.has_next)
        self.assertEqual(page.prev_page, 2)

    def test_bad_page_values_become_first_page(self):
        for raw in (None, '', 'abc', '0', '-4'):
            self.assertEqual(paginate(60, page=raw, page_size=25).page, 1)

    def test_empty_listing_still_has_one_page(self):
        page = paginate(0, page=3, page_size=25)
        self.assertEqual(page.total_pages, 1)
        self.assertEqual(page.page, 1)
        self.assertEqual(page.offset, 0)

    def test_page_size_outside_allow_list_uses_default(self):
        self.assertEqual(paginate(10, page_size=30).page_size, PEOPLE_PAGE_SIZES[0])
        self.assertEqual(paginate(10, page_size='75').page_size, 75)
        page = paginate(10, page_size=1000, allowed_sizes=CATALOG_PAGE_SIZES, default_size=25)
        self.assertEqual(page.page_size, 25)


class PageRequestTest(unittest.TestCase):

    def setUp(self):
        self.app = Flask(__name__)
        self.app.secret_key = 'testing'

    def test_valid_size_is_remembered_per_category(self):
        with self.app.test_request_context('/?pageSize=50&page=2'):
            self.assertEqual(page_request('participants'), ('2', 50))
            self.assertEqual(session['page_sizes'], {'participants': 50})

            saved = dict(session)

        with self.app.test_request_context('/'):
            session.update(saved)
            self.assertEqual(page_request('participants'), (None, 50))
            self.assertEqual(page_request('donations'), (None, 25))

    def test_invalid_size_ignored(self):
        with self.app.test_request_context('/?pageSize=7'):
            self.assertEqual(page_request('events', CATALOG_PAGE_SIZES), (None, 10))
            self.assertNotIn('page_sizes', session)


class ResolveSortTest(unittest.TestCase):

    class Column:
        def __init__(self, name):
            self.name = name

        def asc(self):
            return (self.name, 'asc')

        def desc(self):
            return (self.name, 'desc')

    def setUp(self):
        self.allowed = {'name': self.Column('name'), 'date': self.Column('date')}

    def test_known_key(self):
        state, order = resolve_sort('date', self.allowed, 'name')
        self.assertEqual(state, ('date', False))
        self.assertEqual(order, ('date', 'asc'))

    def test_leading_dash_sorts_descending(self):
        state, order = resolve_sort('-date', self.allowed, 'name')
        self.assertEqual(state, ('date', True))
        self.assertEqual(order, ('date', 'desc'))

    def test_unknown_key_falls_back_to_default(self):
        state, order = resolve_sort('name; DROP TABLE users', self.allowed, 'name')
        self.assertEqual(state, ('name', False))
        self.assertEqual(order, ('name', 'asc'))
        self.assertEqual(resolve_sort(None, self.allowed, 'date')[0], ('date', False))
