"""Tests for extractor.py: the per-item search / filter / price state machine.

Runs against the in-memory ``FakePage`` engine from conftest.py; no
browser is started.
"""

from __future__ import annotations

from decimal import Decimal

import pytest

from conftest import FakeElement, FakePage, result_card
from music_pricing import events
from music_pricing.extractor import ExtractionState, PriceExtractor
from music_pricing.models import MusicItem
from music_pricing.parser import build_refined_query, build_search_query

ITEM = MusicItem(artist="Queen", song="Bohemian Rhapsody")
PRODUCT_URL = "https://shop.test/dp/B001"


def _search_url(store, item=ITEM, *, refined=False):
    query = build_refined_query(item) if refined else build_search_query(item)
    return store.search_url(query)


def _product_page(price="$1.29", *, album_price=None, album_title=None, visible=True):
    page = {".price": [FakeElement(price, visible=visible)]}
    if album_price is not None:
        page[".album-price"] = [FakeElement(album_price)]
    if album_title is not None:
        page["#album-title"] = [FakeElement(album_title)]
    return page


def _filler(n):
    return [result_card(f"Unrelated Result {i}", f"/dp/X{i}") for i in range(n)]


def _kinds(recorded):
    return [e.kind for e in recorded]


class TestSuccessPath:

    @pytest.mark.asyncio
    async def test_prices_first_matching_result(self, store, recorded_events):
        page = FakePage({
            _search_url(store): {".result": [
                result_card("Bohemian Rhapsody (Remastered 2011)", "/dp/B001"),
                *_filler(2),
            ]},
            PRODUCT_URL: _product_page(
                "$1.29", album_price="$9.99", album_title="A Night at the Opera",
            ),
        })
        extractor = PriceExtractor(page, storefront=store, on_event=recorded_events.append)

        obs = await extractor.extract(ITEM)

        assert obs.available
        assert obs.track_price == Decimal("1.29")
        assert obs.album_price == Decimal("9.99")
        assert obs.album_name == "A Night at the Opera"
        assert obs.search_query == "Queen Bohemian Rhapsody"
        assert obs.error is None
        assert page.visited == [_search_url(store), PRODUCT_URL]
        assert extractor.last_trace[-1] is ExtractionState.SUCCESS
        assert events.ITEM_SUCCEEDED in _kinds(recorded_events)

    @pytest.mark.asyncio
    async def test_album_fields_are_optional(self, store):
        page = FakePage({
            _search_url(store): {".result": [result_card("Bohemian Rhapsody", "/dp/B001"), *_filler(2)]},
            PRODUCT_URL: _product_page("$0.99"),
        })
        obs = await PriceExtractor(page, storefront=store, on_event=None).extract(ITEM)

        assert obs.available
        assert obs.track_price == Decimal("0.99")
        assert obs.album_price is None
        assert obs.album_name is None

    @pytest.mark.asyncio
    async def test_absolute_link_is_kept(self, store):
        url = "https://cdn.shop.test/dp/ABS"
        page = FakePage({
            _search_url(store): {".result": [result_card("Bohemian Rhapsody", url), *_filler(2)]},
            url: _product_page(),
        })
        obs = await PriceExtractor(page, storefront=store, on_event=None).extract(ITEM)

        assert obs.available
        assert page.visited[-1] == url

    @pytest.mark.asyncio
    async def test_invisible_price_falls_through_to_next_selector(self, store):
        product = _product_page("$5.00", visible=False)
        product[".price-alt"] = [FakeElement("$1.49")]
        page = FakePage({
            _search_url(store): {".result": [result_card("Bohemian Rhapsody", "/dp/B001"), *_filler(2)]},
            PRODUCT_URL: product,
        })
        obs = await PriceExtractor(page, storefront=store, on_event=None).extract(ITEM)

        assert obs.track_price == Decimal("1.49")

    @pytest.mark.asyncio
    async def test_fallback_result_selector(self, store):
        page = FakePage({
            _search_url(store): {".result-alt": [result_card("Bohemian Rhapsody", "/dp/B001"), *_filler(3)]},
            PRODUCT_URL: _product_page(),
        })
        obs = await PriceExtractor(page, storefront=store, on_event=None).extract(ITEM)

        assert obs.available

    @pytest.mark.asyncio
    async def test_card_text_used_when_title_missing(self, store):
        card = FakeElement(
            "Queen - Bohemian Rhapsody [Explicit]",
            children={"a.link": [FakeElement(attrs={"href": "/dp/B001"})]},
        )
        page = FakePage({
            _search_url(store): {".result": [card, *_filler(2)]},
            PRODUCT_URL: _product_page(),
        })
        obs = await PriceExtractor(page, storefront=store, on_event=None).extract(ITEM)

        assert obs.available


class TestCandidateSelection:

    @pytest.mark.asyncio
    async def test_merch_result_is_rejected(self, store, recorded_events):
        page = FakePage({
            _search_url(store): {".result": [
                result_card("Queen Bohemian Rhapsody Poster Wall Art", "/dp/POSTER"),
                result_card("Bohemian Rhapsody", "/dp/B001"),
                *_filler(1),
            ]},
            PRODUCT_URL: _product_page(),
        })
        obs = await PriceExtractor(page, storefront=store, on_event=recorded_events.append).extract(ITEM)

        assert obs.available
        assert "https://shop.test/dp/POSTER" not in page.visited
        rejected = [e for e in recorded_events if e.kind == events.CANDIDATE_REJECTED]
        assert len(rejected) == 1
        assert rejected[0].payload["index"] == 1

    @pytest.mark.asyncio
    async def test_candidate_without_link_is_skipped(self, store, recorded_events):
        page = FakePage({
            _search_url(store): {".result": [
                result_card("Bohemian Rhapsody (no link)"),
                result_card("Bohemian Rhapsody", "/dp/B001"),
                *_filler(1),
            ]},
            PRODUCT_URL: _product_page(),
        })
        obs = await PriceExtractor(page, storefront=store, on_event=recorded_events.append).extract(ITEM)

        assert obs.available
        assert events.CANDIDATE_SKIPPED in _kinds(recorded_events)

    @pytest.mark.asyncio
    async def test_secondary_link_selector(self, store):
        card = result_card("Bohemian Rhapsody", "/dp/B001", link_selector="a.alt-link")
        page = FakePage({
            _search_url(store): {".result": [card, *_filler(2)]},
            PRODUCT_URL: _product_page(),
        })
        obs = await PriceExtractor(page, storefront=store, on_event=None).extract(ITEM)

        assert obs.available

    @pytest.mark.asyncio
    async def test_first_match_policy_never_tries_later_cards(self, store):
        page = FakePage({
            _search_url(store): {".result": [
                result_card("Bohemian Rhapsody", "/dp/B001"),
                result_card("Bohemian Rhapsody (Live)", "/dp/B002"),
                *_filler(1),
            ]},
            PRODUCT_URL: {},
            "https://shop.test/dp/B002": _product_page(),
        })
        obs = await PriceExtractor(page, storefront=store, on_event=None).extract(ITEM)

        assert not obs.available
        assert obs.error_kind == "no_price"
        assert "https://shop.test/dp/B002" not in page.visited

    @pytest.mark.asyncio
    async def test_only_first_five_results_are_scanned(self, store):
        cards = _filler(5) + [result_card("Bohemian Rhapsody", "/dp/B001")]
        page = FakePage({
            _search_url(store): {".result": cards},
            PRODUCT_URL: _product_page(),
        })
        obs = await PriceExtractor(page, storefront=store, on_event=None).extract(ITEM)

        assert not obs.available
        assert obs.error_kind == "no_matching_candidate"
        assert "first 5" in obs.error
        assert page.visited == [_search_url(store)]


class TestRefinement:

    @pytest.mark.asyncio
    async def test_sparse_results_trigger_refined_search(self, store, recorded_events):
        page = FakePage({
            _search_url(store): {".result": [result_card("Something Else", "/dp/X")]},
            _search_url(store, refined=True): {".result": [
                result_card("Bohemian Rhapsody", "/dp/B001"), *_filler(2),
            ]},
            PRODUCT_URL: _product_page(),
        })
        obs = await PriceExtractor(page, storefront=store, on_event=recorded_events.append).extract(ITEM)

        assert obs.available
        assert obs.search_query == 'Queen "Bohemian Rhapsody"'
        assert page.visited == [
            _search_url(store), _search_url(store, refined=True), PRODUCT_URL,
        ]
        assert events.QUERY_REFINED in _kinds(recorded_events)

    @pytest.mark.asyncio
    async def test_empty_refined_search_reloads_broad_query(self, store):
        page = FakePage({
            _search_url(store): {".result": [result_card("Bohemian Rhapsody", "/dp/B001")]},
            PRODUCT_URL: _product_page(),
        })
        obs = await PriceExtractor(page, storefront=store, on_event=None).extract(ITEM)

        assert obs.available
        assert obs.search_query == "Queen Bohemian Rhapsody"
        assert page.visited == [
            _search_url(store),
            _search_url(store, refined=True),
            _search_url(store),
            PRODUCT_URL,
        ]

    @pytest.mark.asyncio
    async def test_refinement_happens_once(self, store):
        page = FakePage({
            _search_url(store): {".result": _filler(1)},
            _search_url(store, refined=True): {".result": _filler(2)},
        })
        obs = await PriceExtractor(page, storefront=store, on_event=None).extract(ITEM)

        assert obs.error_kind == "no_matching_candidate"
        assert page.visited.count(_search_url(store, refined=True)) == 1


class TestFailures:

    @pytest.mark.asyncio
    async def test_no_results_anywhere(self, store, recorded_events):
        page = FakePage({})
        obs = await PriceExtractor(page, storefront=store, on_event=recorded_events.append).extract(ITEM)

        assert not obs.available
        assert obs.track_price == Decimal("0")
        assert obs.error_kind == "no_results"
        assert "No search results" in obs.error
        assert obs.search_query == 'Queen "Bohemian Rhapsody"'
        assert recorded_events[-1].kind == events.ITEM_FAILED
        assert recorded_events[-1].payload["error_kind"] == "no_results"

    @pytest.mark.asyncio
    async def test_failure_without_event_sink(self, store):
        obs = await PriceExtractor(FakePage({}), storefront=store, on_event=None).extract(ITEM)

        assert obs.error_kind == "no_results"

    @pytest.mark.asyncio
    async def test_no_price_on_product_page(self, store):
        page = FakePage({
            _search_url(store): {".result": [result_card("Bohemian Rhapsody", "/dp/B001"), *_filler(2)]},
            PRODUCT_URL: {".price": [FakeElement("Free with Unlimited")]},
        })
        obs = await PriceExtractor(page, storefront=store, on_event=None).extract(ITEM)

        assert obs.error_kind == "no_price"
        assert PRODUCT_URL in obs.error

    @pytest.mark.asyncio
    async def test_navigation_failure(self, store):
        page = FakePage({}, fail_urls=[_search_url(store)])
        obs = await PriceExtractor(page, storefront=store, on_event=None).extract(ITEM)

        assert not obs.available
        assert obs.error_kind == "navigation_failure"
        assert "ERR_CONNECTION_RESET" in obs.error

    @pytest.mark.asyncio
    async def test_unexpected_exception_becomes_task_fault(self, store):
        page = FakePage({}, raise_on_navigate=RuntimeError("browser crashed"))
        extractor = PriceExtractor(page, storefront=store, on_event=None)

        obs = await extractor.extract(ITEM)

        assert not obs.available
        assert obs.error_kind == "task_fault"
        assert obs.error == "Search failed: browser crashed"
        assert extractor.last_trace[-1] is ExtractionState.FAILURE

    @pytest.mark.asyncio
    async def test_failing_event_sink_does_not_fail_item(self, store):
        def broken_sink(event):
            raise RuntimeError("sink down")

        page = FakePage({
            _search_url(store): {".result": [result_card("Bohemian Rhapsody", "/dp/B001"), *_filler(2)]},
            PRODUCT_URL: _product_page(),
        })
        obs = await PriceExtractor(page, storefront=store, on_event=broken_sink).extract(ITEM)

        assert obs.available
