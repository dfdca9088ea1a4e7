# tests/test_query.py
import pytest

from swatch_catalog.core.errors import StoreError
from swatch_catalog.core.query import QueryState, search_products


def _names(page):
    return [p.name for p in page.items]


def _acme_catalog(seed_product):
    for name, price in [("Eta", 300), ("Alpha", 500), ("Delta", 100), ("Beta", 400), ("Gamma", 200)]:
        seed_product(name=name, fabric_supplier="Acme", product_rate_inr=price)
    seed_product(name="Aardvark", fabric_supplier="Other Mills", product_rate_inr=50)


def test_supplier_name_asc_first_page(db, seed_product):
    _acme_catalog(seed_product)
    page = search_products(db, QueryState(supplier="Acme", sort="name_asc", page=1, page_size=2))
    assert _names(page) == ["Alpha", "Beta"]
    assert page.total == 5
    assert page.total_pages == 3


def test_text_query_matches_design_no(db, seed_product):
    seed_product(name="Jakit suit", design_no="820")
    seed_product(name="Party wear", design_no="901")
    page = search_products(db, QueryState(q="820"))
    assert [p.design_no for p in page.items] == ["820"]
    assert page.total == 1


def test_text_query_is_case_insensitive_across_fields(db, seed_product):
    seed_product(name="Rayon Kurti", design_no="1")
    seed_product(name="Plain", design_no="2", fabric_name="RAYON slub")
    seed_product(name="Cotton", design_no="3", fabric_name="cotton")
    page = search_products(db, QueryState(q="rayon"))
    assert sorted(p.design_no for p in page.items) == ["1", "2"]


def test_repeated_queries_are_identical(db, seed_product):
    _acme_catalog(seed_product)
    state = QueryState(supplier="Acme", sort="price_desc", page=2, page_size=2)
    first = search_products(db, state)
    second = search_products(db, state)
    assert [p.id for p in first.items] == [p.id for p in second.items]
    assert first.total == second.total


def test_total_does_not_depend_on_pagination(db, seed_product):
    _acme_catalog(seed_product)
    totals = {
        search_products(db, QueryState(supplier="Acme", page=page, page_size=size)).total
        for page, size in [(1, 1), (2, 2), (1, 24), (9, 3)]
    }
    assert totals == {5}


def test_page_past_the_end_is_empty(db, seed_product):
    _acme_catalog(seed_product)
    page = search_products(db, QueryState(page=5, page_size=2))
    assert page.items == []
    assert page.total == 6


def test_price_desc_is_reverse_of_price_asc_with_ties(db, seed_product):
    for i, price in enumerate([200, 100, 200, 300, 100, 200]):
        seed_product(name=f"P{i}", product_rate_inr=price)
    asc = search_products(db, QueryState(sort="price_asc"))
    desc = search_products(db, QueryState(sort="price_desc"))
    assert [p.id for p in reversed(asc.items)] == [p.id for p in desc.items]


def test_newest_first_by_default(db, seed_product):
    seed_product(name="old")
    seed_product(name="middle")
    seed_product(name="new")
    assert _names(search_products(db, QueryState())) == ["new", "middle", "old"]


def test_name_sort_ignores_case(db, seed_product):
    seed_product(name="banana")
    seed_product(name="Apple")
    seed_product(name="cherry")
    assert _names(search_products(db, QueryState(sort="name_asc"))) == ["Apple", "banana", "cherry"]
    assert _names(search_products(db, QueryState(sort="name_desc"))) == ["cherry", "banana", "Apple"]


def test_tags_match_any(db, seed_product):
    seed_product(name="a", tags=["party", "rayon"])
    seed_product(name="b", tags=["cotton"])
    seed_product(name="c", tags=["festive"])
    seed_product(name="d", tags=[])
    page = search_products(db, QueryState(tags={"party", "festive"}, sort="name_asc"))
    assert _names(page) == ["a", "c"]
    assert page.total == 2


def test_category_fabric_type_and_price_range(db, seed_product):
    seed_product(name="a", category="Suits", fabric_name="Rayon", product_rate_inr=100)
    seed_product(name="b", category="Suits", fabric_name="rayon slub", product_rate_inr=250)
    seed_product(name="c", category="Suits", fabric_name="Rayon", product_rate_inr=400)
    seed_product(name="d", category="Sarees", fabric_name="Rayon", product_rate_inr=250)
    seed_product(name="e", category="Suits", fabric_name="Cotton", product_rate_inr=250)
    state = QueryState(category="Suits", fabric_type="RAYON", min_price=100, max_price=250, sort="name_asc")
    page = search_products(db, state)
    # range bounds are inclusive
    assert _names(page) == ["a", "b"]
    assert page.total == 2


def test_total_counts_every_active_filter(db, seed_product):
    for i in range(30):
        seed_product(name=f"n{i}", tags=["party"] if i % 3 == 0 else ["daily"])
    page = search_products(db, QueryState(tags={"party"}, page=1, page_size=4))
    assert len(page.items) == 4
    assert page.total == 10


def test_empty_store_returns_empty_page(db):
    page = search_products(db, QueryState(q="anything"))
    assert page.items == []
    assert page.total == 0
    assert page.total_pages == 1


def test_unreadable_store_raises_store_error(db):
    # a directory where the table file should be cannot be read as CSV
    db._file_path("products").mkdir(parents=True)
    with pytest.raises(StoreError):
        search_products(db, QueryState())
