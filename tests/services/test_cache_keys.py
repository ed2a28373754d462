import pytest

from apiservice.services.cache_keys import (
    DefaultCacheKeyStrategy,
    HeaderAwareCacheKeyStrategy,
    get_key_strategy,
)


def test_query_order_does_not_change_key() -> None:
    strategy = DefaultCacheKeyStrategy()

    first = strategy.build_key("https://api/x", {"b": 2, "a": 1}, method="GET")
    second = strategy.build_key("https://api/x", {"a": 1, "b": 2}, method="GET")

    assert first == second == "GET https://api/x?a=1&b=2"


def test_method_is_uppercased() -> None:
    strategy = DefaultCacheKeyStrategy()

    assert strategy.build_key("https://api/x", method="get") == "GET https://api/x"


@pytest.mark.parametrize("query", [None, {}])
def test_empty_query_adds_no_separator(query) -> None:
    assert DefaultCacheKeyStrategy().build_key("https://api/x", query) == "GET https://api/x"


def test_different_methods_and_queries_do_not_collide() -> None:
    strategy = DefaultCacheKeyStrategy()
    keys = {
        strategy.build_key("https://api/x", {"page": 1}, method="GET"),
        strategy.build_key("https://api/x", {"page": 2}, method="GET"),
        strategy.build_key("https://api/x", {"page": 1}, method="POST"),
        strategy.build_key("https://api/y", {"page": 1}, method="GET"),
    }
    assert len(keys) == 4


def test_default_strategy_ignores_headers() -> None:
    strategy = DefaultCacheKeyStrategy()

    plain = strategy.build_key("https://api/x")
    with_headers = strategy.build_key(
        "https://api/x", headers={"Accept-Language": "fr", "Authorization": "Bearer t"}
    )

    assert plain == with_headers


def test_header_aware_strategy_partitions_by_locale_and_session() -> None:
    strategy = HeaderAwareCacheKeyStrategy()

    english = strategy.build_key("https://api/x", headers={"Accept-Language": "en"})
    french = strategy.build_key("https://api/x", headers={"accept-language": "fr"})
    signed_in = strategy.build_key(
        "https://api/x",
        headers={"Accept-Language": "en", "Authorization": "Bearer t"},
    )

    assert len({english, french, signed_in}) == 3
    assert signed_in == "GET https://api/x |lang=en|auth=1"


def test_header_aware_key_ignores_token_value() -> None:
    strategy = HeaderAwareCacheKeyStrategy()

    first = strategy.build_key("https://api/x", headers={"Authorization": "Bearer one"})
    second = strategy.build_key("https://api/x", headers={"Authorization": "Bearer two"})

    assert first == second


def test_get_key_strategy_by_name() -> None:
    assert isinstance(get_key_strategy("default"), DefaultCacheKeyStrategy)
    assert isinstance(get_key_strategy("header_aware"), HeaderAwareCacheKeyStrategy)
    with pytest.raises(ValueError):
        get_key_strategy("nope")
