"""
Catalog query state and the query builder.

`QueryState` is the single serializable description of what the catalog view
shows: search text, filters, sort and page. It round-trips through a URL query
string (`to_query_string` / `from_query_string`) so a shared link reproduces
the same result page, and `search_products` turns it into one store query.
"""
from __future__ import annotations

import math
from dataclasses import dataclass, field, replace
from typing import Any, Dict, FrozenSet, Iterable, List, Mapping, Optional, Tuple
from urllib.parse import parse_qs, urlencode

from swatch_catalog.config import settings
from swatch_catalog.database import (
    FileBackedDB,
    ORDER_NUMBER,
    ORDER_TEXT,
    ORDER_TEXT_CI,
)
from swatch_catalog.models.product import Product

PRODUCTS_TABLE = "products"

SORT_NEWEST = "newest"
SORT_OPTIONS = ("newest", "price_asc", "price_desc", "name_asc", "name_desc")

# sort -> (column, comparison kind, descending)
_SORTS: Dict[str, Tuple[str, str, bool]] = {
    "newest": ("created_at", ORDER_TEXT, True),
    "price_asc": ("product_rate_inr", ORDER_NUMBER, False),
    "price_desc": ("product_rate_inr", ORDER_NUMBER, True),
    "name_asc": ("name", ORDER_TEXT_CI, False),
    "name_desc": ("name", ORDER_TEXT_CI, True),
}

SEARCH_COLUMNS = ("name", "design_no", "fabric_name")


def _clean(value: Optional[str]) -> Optional[str]:
    if value is None:
        return None
    value = str(value).strip()
    return value or None


def _split_tags(values: Iterable[str]) -> FrozenSet[str]:
    if isinstance(values, str):
        values = [values]
    out = set()
    for v in values:
        for t in str(v).split(","):
            t = t.strip()
            if t:
                out.add(t)
    return frozenset(out)


def _fmt_number(v: float) -> str:
    return str(int(v)) if float(v).is_integer() else repr(float(v))


@dataclass(frozen=True)
class QueryState:
    q: str = ""
    supplier: Optional[str] = None
    category: Optional[str] = None
    tags: FrozenSet[str] = field(default_factory=frozenset)
    fabric_type: Optional[str] = None
    min_price: Optional[float] = None
    max_price: Optional[float] = None
    sort: str = SORT_NEWEST
    page: int = 1
    page_size: int = settings.DEFAULT_PAGE_SIZE

    def __post_init__(self):
        # normalize so equal searches compare (and serialize) equal
        object.__setattr__(self, "q", (self.q or "").strip())
        object.__setattr__(self, "supplier", _clean(self.supplier))
        object.__setattr__(self, "category", _clean(self.category))
        object.__setattr__(self, "fabric_type", _clean(self.fabric_type))
        object.__setattr__(self, "tags", _split_tags(self.tags or ()))
        if self.sort not in SORT_OPTIONS:
            raise ValueError(f"Unknown sort {self.sort!r}; expected one of {', '.join(SORT_OPTIONS)}")
        if int(self.page) < 1:
            raise ValueError("page must be >= 1")
        if int(self.page_size) < 1:
            raise ValueError("page_size must be >= 1")
        object.__setattr__(self, "page", int(self.page))
        object.__setattr__(self, "page_size", int(self.page_size))
        for name in ("min_price", "max_price"):
            v = getattr(self, name)
            if v is not None:
                v = float(v)
                if v < 0 or math.isnan(v):
                    raise ValueError(f"{name} must be a non-negative number")
                object.__setattr__(self, name, v)

    @property
    def offset(self) -> int:
        return (self.page - 1) * self.page_size

    def with_changes(self, **changes: Any) -> "QueryState":
        """
        Copy with changes applied. Any change other than `page` itself sends
        the view back to page 1.
        """
        if "page" not in changes and any(getattr(self, k) != v for k, v in changes.items()):
            changes["page"] = 1
        return replace(self, **changes)

    # --- URL mirror ---

    def to_params(self) -> List[Tuple[str, str]]:
        """Ordered (name, value) pairs; defaults are left out."""
        params: List[Tuple[str, str]] = []
        if self.q:
            params.append(("q", self.q))
        if self.supplier:
            params.append(("supplier", self.supplier))
        if self.category:
            params.append(("category", self.category))
        for t in sorted(self.tags):
            params.append(("tags", t))
        if self.fabric_type:
            params.append(("fabric_type", self.fabric_type))
        if self.min_price is not None:
            params.append(("min_price", _fmt_number(self.min_price)))
        if self.max_price is not None:
            params.append(("max_price", _fmt_number(self.max_price)))
        if self.sort != SORT_NEWEST:
            params.append(("sort", self.sort))
        if self.page > 1:
            params.append(("page", str(self.page)))
        if self.page_size != settings.DEFAULT_PAGE_SIZE:
            params.append(("page_size", str(self.page_size)))
        return params

    def to_query_string(self) -> str:
        return urlencode(self.to_params())

    @classmethod
    def from_params(cls, params: Mapping[str, List[str]]) -> "QueryState":
        """
        Lenient parse of URL parameters: unknown sort, bad numbers and
        out-of-range pages fall back to defaults instead of failing.
        """
        def first(name: str) -> Optional[str]:
            vals = params.get(name) or []
            return vals[0] if vals else None

        def number(name: str) -> Optional[float]:
            raw = first(name)
            try:
                v = float(raw) if raw not in (None, "") else None
            except ValueError:
                return None
            if v is None or math.isnan(v) or v < 0:
                return None
            return v

        def positive_int(name: str, default: int) -> int:
            raw = first(name)
            try:
                v = int(raw) if raw not in (None, "") else default
            except ValueError:
                return default
            return v if v >= 1 else default

        sort = first("sort") or SORT_NEWEST
        page_size = min(positive_int("page_size", settings.DEFAULT_PAGE_SIZE), settings.MAX_PAGE_SIZE)
        return cls(
            q=first("q") or "",
            supplier=first("supplier"),
            category=first("category"),
            tags=_split_tags(params.get("tags") or []),
            fabric_type=first("fabric_type"),
            min_price=number("min_price"),
            max_price=number("max_price"),
            sort=sort if sort in SORT_OPTIONS else SORT_NEWEST,
            page=positive_int("page", 1),
            page_size=page_size,
        )

    @classmethod
    def from_query_string(cls, query: str) -> "QueryState":
        return cls.from_params(parse_qs((query or "").lstrip("?"), keep_blank_values=False))


@dataclass
class CatalogPage:
    items: List[Product]
    total: int
    state: QueryState

    @property
    def total_pages(self) -> int:
        return max(1, math.ceil(self.total / self.state.page_size))


def build_query(state: QueryState) -> Dict[str, Any]:
    """Keyword arguments for FileBackedDB.query_records describing `state`."""
    column, kind, descending = _SORTS[state.sort]
    kwargs: Dict[str, Any] = {
        "order_by": column,
        "order_as": kind,
        "descending": descending,
        "offset": state.offset,
        "limit": state.page_size,
    }
    if state.q:
        kwargs["search"] = (state.q, SEARCH_COLUMNS)
    equals = {}
    if state.supplier:
        equals["fabric_supplier"] = state.supplier
    if state.category:
        equals["category"] = state.category
    if equals:
        kwargs["equals"] = equals
    if state.fabric_type:
        kwargs["contains"] = {"fabric_name": state.fabric_type}
    if state.tags:
        kwargs["any_of"] = {"tags": state.tags}
    if state.min_price is not None or state.max_price is not None:
        kwargs["ranges"] = {"product_rate_inr": (state.min_price, state.max_price)}
    return kwargs


def search_products(db: FileBackedDB, state: QueryState) -> CatalogPage:
    """
    Run one catalog query. `total` counts every product matching all active
    filters, independent of the page window. Store failures propagate as
    StoreError.
    """
    rows, total = db.query_records(PRODUCTS_TABLE, **build_query(state))
    return CatalogPage(items=[Product.from_dict(r) for r in rows], total=total, state=state)
