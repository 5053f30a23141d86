"""Paged access to resource API lists"""
import logging
import math
from urllib.parse import quote

from .errors import UnsupportedOperation

__all__ = [
    "Pager",
    "sort_param",
    "filter_param",
    "MIN_PAGE_SIZE",
    "MAX_PAGE_SIZE",
    "DEFAULT_PAGE_SIZE",
]

logger = logging.getLogger(__name__)

MIN_PAGE_SIZE = 1
MAX_PAGE_SIZE = 2000
DEFAULT_PAGE_SIZE = 100

FIRST = "first"
LAST = "last"


def sort_param(sort):
    """The ``&sort=`` query fragment for one or more sort keys.

    Example
    -------

    >>> sort_param(["name:asc", "id:desc"])
    '&sort=name:asc,id:desc'
    >>> sort_param(None)
    ''
    """
    if not sort:
        return ""
    if not isinstance(sort, str):
        sort = ",".join(sort)
    return "&sort=" + quote(sort, safe=":,")


def filter_param(filter):
    """The ``&filter=`` query fragment for an RSQL expression"""
    if not filter:
        return ""
    return "&filter=" + quote(filter, safe="")


def _check_page_number(page_number):
    if (
        not isinstance(page_number, int)
        or isinstance(page_number, bool)
        or page_number < 0
    ):
        raise ValueError("Page number must be an integer 0 or higher")


class Pager:
    """Walks a server-side paged list, one page per request.

    One request with a page size of 1 is made on construction,
    to learn :attr:`total_count`.

    Parameters
    ----------
    cnx: ~jamfkit.connection.Connection
        the connection to fetch through
    list_path: str
        the resource path of the list, e.g. ``v1/buildings``
    page_size: int
        items per page, from :data:`MIN_PAGE_SIZE` to :data:`MAX_PAGE_SIZE`
    sort: str or ~typing.Sequence[str] or None
        sort keys such as ``"name:asc"``
    filter: str or None
        an RSQL filter expression
    instantiate: ~typing.Callable or None
        called as ``instantiate(item_data, cnx)`` for each item,
        e.g. a record class's ``from_api``

    Raises
    ------
    ValueError
        the page size is out of range

    Note
    ----
    :attr:`total_pages` is computed once, from the total count
    at construction. It is advisory: the list may change on the server
    while the pager is in use. Iteration relies on empty pages instead.
    """

    def __init__(
        self,
        cnx,
        list_path,
        page_size=DEFAULT_PAGE_SIZE,
        sort=None,
        filter=None,
        instantiate=None,
    ):
        if (
            not isinstance(page_size, int)
            or isinstance(page_size, bool)
            or not MIN_PAGE_SIZE <= page_size <= MAX_PAGE_SIZE
        ):
            raise ValueError(
                "page_size must be an integer from {} to {}".format(
                    MIN_PAGE_SIZE, MAX_PAGE_SIZE
                )
            )
        self.cnx = cnx
        self.list_path = list_path.rstrip("/")
        self.page_size = page_size
        self.sort = sort
        self.filter = filter
        self._instantiate = instantiate
        self._sort_param = sort_param(sort)
        self._filter_param = filter_param(filter)
        self.query_path = "{}?page-size={}{}{}".format(
            self.list_path, page_size, self._sort_param, self._filter_param
        )
        self.next_page = 0
        self.last_fetched_page = None

        data = cnx.jp_get(
            "{}?page-size=1&page=0{}".format(
                self.list_path, self._filter_param
            )
        )
        self.total_count = data["totalCount"]
        self.total_pages = (
            None if filter else math.ceil(self.total_count / page_size)
        )

    def __repr__(self):
        return "<Pager: {} (page size {}, next page {})>".format(
            self.list_path, self.page_size, self.next_page
        )

    def page(self, page_number, _advance=False):
        """Fetch one page, without moving the cursor.

        Parameters
        ----------
        page_number: int or str
            zero-based page number, or ``"first"``/``"last"``

        Returns
        -------
        list
            the items; empty beyond the last page

        Raises
        ------
        ~jamfkit.errors.UnsupportedOperation
            ``"last"`` was requested of a filtered list
        ValueError
            the page number is negative or not an integer
        """
        if page_number == FIRST:
            page_number = 0
        elif page_number == LAST:
            if self.filter:
                raise UnsupportedOperation(
                    "Cannot get the last page of a filtered list"
                )
            page_number = max(self.total_pages - 1, 0)
        _check_page_number(page_number)

        data = self.cnx.jp_get(
            "{}&page={}".format(self.query_path, page_number)
        )
        results = data["results"]
        if self._instantiate is not None:
            results = [self._instantiate(item, self.cnx) for item in results]
        if _advance:
            self.last_fetched_page = page_number
            self.next_page = page_number + 1
        logger.debug(
            "fetched page %s of %s (%s items)",
            page_number,
            self.list_path,
            len(results),
        )
        return results

    def fetch_next_page(self):
        """Fetch the page at the cursor and advance the cursor.

        Returns
        -------
        list
            the items; empty once the list is exhausted
        """
        return self.page(self.next_page, _advance=True)

    def reset(self, to_page=0):
        """Move the cursor, by default back to the first page"""
        if to_page == FIRST:
            to_page = 0
        _check_page_number(to_page)
        self.next_page = to_page

    def __iter__(self):
        while True:
            page = self.fetch_next_page()
            if not page:
                return
            yield page

    @staticmethod
    def all_pages(cnx, list_path, sort=None, filter=None, instantiate=None):
        """Fetch a whole list, :data:`MAX_PAGE_SIZE` items per request.

        Returns
        -------
        list
            all items, in one list
        """
        pager = Pager(
            cnx,
            list_path,
            page_size=MAX_PAGE_SIZE,
            sort=sort,
            filter=filter,
            instantiate=instantiate,
        )
        items = []
        for page in pager:
            items.extend(page)
        return items
