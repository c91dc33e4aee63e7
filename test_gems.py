"""Tests for gem link resolution."""

import pytest

from conftest import CHAR_URL, ITEM_URL, gem_page, network_error
from roster_api.config import CACHE_DISABLED, FetchPolicy
from roster_api.exceptions import ExtractionError, FetchError
from roster_api.fetcher import Fetcher
from roster_api.gems import GemResolver

RUBY = "/wow/en/item/52207"
AMBER = "/wow/en/item/52236"


@pytest.fixture
def resolver(fetcher):
    return GemResolver(fetcher, CHAR_URL)


@pytest.fixture
def gem_pages(transport):
    transport.responses[ITEM_URL + "52207"] = gem_page("Brilliant Inferno Ruby")
    transport.responses[ITEM_URL + "52236"] = gem_page("Fractured Amberjewel")
    return transport


def test_resolves_names_in_order(resolver, gem_pages):
    assert resolver.resolve_gems([AMBER, RUBY]) == ["Fractured Amberjewel", "Brilliant Inferno Ruby"]
    assert gem_pages.requested == [ITEM_URL + "52236", ITEM_URL + "52207"]


def test_resolver_is_callable(resolver, gem_pages):
    assert resolver([RUBY]) == ["Brilliant Inferno Ruby"]


def test_cached_under_gem_id(resolver, gem_pages, cache):
    resolver.resolve_gem(RUBY)
    assert cache.exists("gem_52207")


def test_absolute_links(resolver, gem_pages):
    assert resolver.resolve_gem(ITEM_URL + "52207") == "Brilliant Inferno Ruby"


def test_repeat_resolution_uses_cache(resolver, gem_pages, fetcher, clock):
    resolver.resolve_gems([RUBY, AMBER])
    calls = fetcher.network_calls

    clock.advance(365 * 24 * 3600)
    assert resolver.resolve_gems([RUBY, AMBER]) == ["Brilliant Inferno Ruby", "Fractured Amberjewel"]
    assert fetcher.network_calls == calls


def test_existing_entry_is_fresh_even_with_caching_disabled(cache, gem_pages, sleeps):
    fetcher = Fetcher(cache, policy=FetchPolicy(max_age=CACHE_DISABLED),
                      transport=gem_pages, sleep=sleeps.append)
    resolver = GemResolver(fetcher, CHAR_URL)

    resolver.resolve_gem(RUBY)
    resolver.resolve_gem(RUBY)
    assert gem_pages.calls_to(ITEM_URL + "52207") == 1


def test_same_gem_twice_in_one_item(resolver, gem_pages):
    assert resolver.resolve_gems([RUBY, RUBY]) == ["Brilliant Inferno Ruby"] * 2
    assert gem_pages.calls_to(ITEM_URL + "52207") == 1


def test_unreachable_gem_fails_the_list(resolver, gem_pages):
    gem_pages.responses[ITEM_URL + "52236"] = network_error(ITEM_URL + "52236")

    with pytest.raises(ExtractionError) as excinfo:
        resolver.resolve_gems([RUBY, AMBER])
    assert isinstance(excinfo.value.__cause__, FetchError)


def test_gem_page_without_title(resolver, transport):
    transport.responses[ITEM_URL + "1"] = b"<html><body>nothing</body></html>"
    with pytest.raises(ExtractionError):
        resolver.resolve_gem("/wow/en/item/1")


def test_blank_gem_page_is_fetched_again(resolver, transport, cache, sleeps):
    transport.responses[ITEM_URL + "52207"] = [b""] * 6 + [gem_page("Brilliant Inferno Ruby")]

    with pytest.raises(ExtractionError):
        resolver.resolve_gem(RUBY)
    assert cache.read("gem_52207") == b""

    assert resolver.resolve_gem(RUBY) == "Brilliant Inferno Ruby"
    assert transport.calls_to(ITEM_URL + "52207") == 7


def test_link_without_id(resolver, transport):
    with pytest.raises(ExtractionError):
        resolver.resolve_gem("/")
    assert transport.requested == []
