"""
The list-view engine shared by every list page.

A page is a ListView over a CollectionStore: the store owns the fetched records and
their load state, a FilterSet narrows them by search text and categorical selections,
paginate() cuts the filtered frame into fixed-size pages, and an optional projector
turns each page into display rows.

Records live in a pandas DataFrame with a fixed column list so that an empty
collection still filters and paginates like a populated one.
"""

import collections
import enum
import logging
import math
import threading

import pandas as pd

import settings

logger = logging.getLogger(__name__)


class LoadState(enum.Enum):
    LOADING = "loading"
    LOADED = "loaded"
    ERROR = "error"


# loaders may return this instead of a bare list to carry page-level extras (summary cards)
LoadResult = collections.namedtuple("LoadResult", ["records", "meta"])


def records_to_frame(records, columns):
    frame = pd.DataFrame(list(records or []))
    for col in columns:
        if col not in frame.columns: frame[col] = None
    return frame[list(columns)].reset_index(drop=True)


# --- COLLECTION STORE ---
class CollectionStore:
    """
    Holds the last successfully fetched collection for one page.

    Each load() is stamped with a generation number. When loads overlap, only the
    most recently started one may replace the collection or change the status; an
    older response that settles later is dropped.
    """

    def __init__(self, loader, columns, notify=None, normalize=None):
        self._loader = loader
        self._columns = list(columns)
        self._notify = notify
        self._normalize = normalize
        self._records = records_to_frame([], self._columns)
        self._meta = {}
        self._status = LoadState.LOADING
        self._error = None
        self._scope = None
        self._generation = 0
        self._lock = threading.Lock()

    @property
    def records(self):
        return self._records

    @property
    def meta(self):
        return dict(self._meta)

    @property
    def columns(self):
        return list(self._columns)

    @property
    def status(self):
        return self._status

    @property
    def error(self):
        return self._error

    @property
    def scope(self):
        return self._scope

    @property
    def is_loading(self):
        return self._status is LoadState.LOADING

    def _begin(self, scope):
        with self._lock:
            self._generation += 1
            self._scope = scope
            self._status = LoadState.LOADING
            return self._generation

    def _is_current(self, ticket):
        return ticket == self._generation

    def load(self, scope=None):
        """
        Fetches the collection for `scope` and replaces the stored one on success.

        Returns:
            bool: True if this call's result was applied (success or error state),
            False if a newer load superseded it.
        """
        ticket = self._begin(scope)
        try:
            raw = self._loader(scope)
            meta = {}
            if isinstance(raw, LoadResult): raw, meta = raw.records, dict(raw.meta or {})
            if self._normalize: raw = [self._normalize(r) for r in raw]
            frame = records_to_frame(raw, self._columns)
        except Exception as e:
            return self._settle_error(ticket, e)
        return self._settle(ticket, frame, meta)

    def _settle(self, ticket, frame, meta=None):
        with self._lock:
            if not self._is_current(ticket):
                logger.debug("Dropping stale load result (generation %s < %s)", ticket, self._generation)
                return False
            self._records = frame
            self._meta = meta or {}
            self._status = LoadState.LOADED
            self._error = None
        return True

    def _settle_error(self, ticket, exc):
        message = getattr(exc, "message", None) or str(exc) or type(exc).__name__
        with self._lock:
            if not self._is_current(ticket):
                logger.debug("Dropping stale load failure (generation %s < %s): %s", ticket, self._generation, message)
                return False
            self._status = LoadState.ERROR
            self._error = message
        logger.error("Load failed (scope=%r): %s", self._scope, message)
        if self._notify: self._notify(message)
        return True


# --- FILTERS ---
class Criteria:
    """Immutable search text plus categorical selections."""

    def __init__(self, search="", selections=None):
        self._search = search or ""
        self._selections = dict(selections or {})

    @property
    def search(self):
        return self._search

    @property
    def selections(self):
        return dict(self._selections)

    def selection(self, field):
        return self._selections.get(field, settings.ALL_OPTION)

    def with_search(self, text):
        return Criteria(text, self._selections)

    def with_selection(self, field, value):
        sel = dict(self._selections)
        sel[field] = value
        return Criteria(self._search, sel)

    def __eq__(self, other):
        if not isinstance(other, Criteria): return NotImplemented
        return self._search == other._search and self._normalized() == other._normalized()

    def _normalized(self):
        return {k: v for k, v in self._selections.items() if v not in (None, settings.ALL_OPTION)}

    def __repr__(self):
        return f"Criteria(search={self._search!r}, selections={self._selections!r})"


class SearchFilter:
    def __init__(self, fields):
        self.fields = list(fields)

    def mask(self, frame, text):
        text = text or ""
        if not text.strip() or not self.fields:
            return pd.Series(True, index=frame.index)
        hit = pd.Series(False, index=frame.index)
        for field in self.fields:
            col = frame[field].fillna("").astype(str)
            hit |= col.str.contains(text, case=False, regex=False)
        return hit


class CategoricalFilter:
    """
    Exact-match filter on one field.

    Options are derived from the loaded records ("All" + sorted distinct values)
    unless `choices` gives a fixed mapping of display label -> stored value.
    """

    def __init__(self, field, label=None, choices=None):
        self.field = field
        self.label = label or field.replace("_", " ").title()
        self.choices = dict(choices) if choices else None

    def options(self, frame):
        if self.choices is not None:
            return [settings.ALL_OPTION] + list(self.choices.keys())
        values = frame[self.field].dropna().astype(str)
        values = sorted(v for v in values.unique() if v.strip())
        return [settings.ALL_OPTION] + values

    def value_for(self, selection):
        if self.choices is not None: return self.choices.get(selection, selection)
        return selection

    def mask(self, frame, selection):
        if selection is None or selection == settings.ALL_OPTION:
            return pd.Series(True, index=frame.index)
        target = str(self.value_for(selection))
        return frame[self.field].fillna("").astype(str) == target


class FilterSet:
    def __init__(self, search=None, categoricals=()):
        self.search = search or SearchFilter([])
        self.categoricals = list(categoricals)

    def field(self, name):
        for f in self.categoricals:
            if f.field == name: return f
        raise KeyError(name)

    def apply(self, frame, criteria):
        """Returns the records matching every active criterion, in input order."""
        keep = pd.Series(True, index=frame.index)
        for f in self.categoricals:
            keep &= f.mask(frame, criteria.selection(f.field))
        keep &= self.search.mask(frame, criteria.search)
        return frame[keep].reset_index(drop=True)


# --- PAGINATOR ---
class Page:
    def __init__(self, items, page, total_pages, total_count, page_size):
        self.items = items
        self.page = page
        self.total_pages = total_pages
        self.total_count = total_count
        self.page_size = page_size

    @property
    def start(self):
        if self.total_count == 0: return 0
        return (self.page - 1) * self.page_size + 1

    @property
    def end(self):
        return min(self.page * self.page_size, self.total_count)

    @property
    def is_empty(self):
        return self.total_count == 0

    @property
    def has_previous(self):
        return self.page > 1

    @property
    def has_next(self):
        return self.page < self.total_pages

    def __repr__(self):
        return f"Page({self.page}/{self.total_pages}, {len(self.items)} of {self.total_count})"


def page_count(total, page_size):
    return max(1, math.ceil(total / page_size))


def paginate(frame, page_size, requested_page=1):
    if page_size <= 0: raise ValueError("page_size must be positive")
    total = len(frame)
    total_pages = page_count(total, page_size)
    page = min(max(1, int(requested_page)), total_pages)
    start = (page - 1) * page_size
    items = frame.iloc[start:start + page_size].reset_index(drop=True)
    return Page(items, page, total_pages, total, page_size)


# --- LIST VIEW ---
class ListView:
    """Filter and page state for one list page over a CollectionStore."""

    def __init__(self, store, filters, page_size=settings.PAGE_SIZE_TABLE, projector=None):
        if page_size <= 0: raise ValueError("page_size must be positive")
        self.store = store
        self.filters = filters
        self.page_size = page_size
        self.projector = projector
        self.criteria = Criteria()
        self.requested_page = 1

    def load(self, scope=None):
        return self.store.load(scope)

    def reload(self):
        return self.store.load(self.store.scope)

    def set_search(self, text):
        new = self.criteria.with_search(text or "")
        if new.search != self.criteria.search:
            self.criteria = new
            self.requested_page = 1

    def set_selection(self, field, value):
        self.filters.field(field)
        if value == self.criteria.selection(field): return
        self.criteria = self.criteria.with_selection(field, value)
        self.requested_page = 1

    def go_to(self, page):
        self.requested_page = max(1, int(page))

    def next_page(self):
        self.go_to(self.current_raw().page + 1)

    def previous_page(self):
        self.go_to(self.current_raw().page - 1)

    def filtered(self):
        return self.filters.apply(self.store.records, self.criteria)

    def current_raw(self):
        page = paginate(self.filtered(), self.page_size, self.requested_page)
        # keep the stored page in range once the filtered set shrinks
        self.requested_page = page.page
        return page

    def current(self):
        page = self.current_raw()
        if self.projector is not None:
            page.items = self.projector(page.items)
        return page

    def options(self, field):
        return self.filters.field(field).options(self.store.records)

    def counts(self, field):
        return self.filtered()[field].fillna("").astype(str).value_counts().to_dict()
