"""load_settings(): required values are fatal, optional values have defaults."""

import pytest

from ownerrez_cache.core.config import (
    DEFAULT_REFRESH_INTERVAL_S,
    OWNERREZ_BASE,
    load_settings,
)
from ownerrez_cache.core.errors import ConfigurationError
from ownerrez_cache.core.resources import (
    GUESTS,
    RESOURCE_NAMES,
    SHAPE_BODY,
    SHAPE_ITEMS,
    ResourceDescriptor,
    build_descriptors,
)

BASE_ENV = {
    "OWNERREZ_USERNAME": "owner@example.com",
    "OWNERREZ_PASSWORD": "secret",
    "API_TOKENS": "a, b ,,c",
}


def _env(**overrides):
    env = dict(BASE_ENV)
    for key, value in overrides.items():
        if value is None:
            env.pop(key, None)
        else:
            env[key] = value
    return env


def test_defaults():
    s = load_settings(_env())
    assert s.api_tokens == frozenset({"a", "b", "c"})
    assert s.base_url == OWNERREZ_BASE
    assert s.refresh_interval_s == DEFAULT_REFRESH_INTERVAL_S
    assert s.refresh_backoff == "none"
    assert s.port == 3000
    assert s.allowed_origins == ()
    assert s.uses_bearer is False


def test_missing_upstream_credentials_is_fatal():
    with pytest.raises(ConfigurationError):
        load_settings(_env(OWNERREZ_PASSWORD=None))
    with pytest.raises(ConfigurationError):
        load_settings(_env(OWNERREZ_USERNAME=None, OWNERREZ_PASSWORD=None))


def test_bearer_token_alone_is_enough():
    s = load_settings(_env(OWNERREZ_USERNAME=None, OWNERREZ_PASSWORD=None, OWNERREZ_TOKEN="pt_123"))
    assert s.uses_bearer
    assert s.token == "pt_123"


@pytest.mark.parametrize("tokens", [None, "", " , ,"])
def test_empty_allow_list_is_fatal(tokens):
    with pytest.raises(ConfigurationError):
        load_settings(_env(API_TOKENS=tokens))


@pytest.mark.parametrize("key,value", [
    ("REFRESH_INTERVAL_S", "soon"),
    ("REFRESH_INTERVAL_S", "0"),
    ("UPSTREAM_TIMEOUT_S", "-5"),
    ("PORT", "http"),
    ("REFRESH_BACKOFF", "fibonacci"),
])
def test_bad_values_are_fatal(key, value):
    with pytest.raises(ConfigurationError):
        load_settings(_env(**{key: value}))


def test_optional_values_are_parsed():
    s = load_settings(_env(
        ALLOWED_ORIGINS="https://a.example, https://b.example",
        PORT="8080",
        REFRESH_INTERVAL_S="60",
        REFRESH_BACKOFF="Exponential",
        BOOKINGS_PROPERTY_IDS="101,202",
        OWNERREZ_BASE_URL="https://sandbox.example/v2/",
        LOG_LEVEL="debug",
    ))
    assert s.allowed_origins == ("https://a.example", "https://b.example")
    assert s.port == 8080
    assert s.refresh_interval_s == 60.0
    assert s.refresh_backoff == "exponential"
    assert s.bookings_property_ids == ("101", "202")
    assert s.base_url == "https://sandbox.example/v2"
    assert s.log_level == "DEBUG"


def test_descriptors_cover_every_resource():
    s = load_settings(_env(BOOKINGS_PROPERTY_IDS="7,8", GUESTS_CREATED_SINCE_UTC="2025-06-01T00:00:00Z"))
    descriptors = build_descriptors(s)

    assert tuple(descriptors) == RESOURCE_NAMES
    assert descriptors["bookings"].params["property_ids"] == "7,8"
    assert descriptors["bookings"].params["since_utc"] == s.bookings_since_utc
    assert descriptors["listings"].params["include_amenities"] == "true"
    assert descriptors[GUESTS].params["created_since_utc"] == "2025-06-01T00:00:00Z"
    assert descriptors[GUESTS].result_shape == SHAPE_ITEMS
    assert descriptors["properties"].result_shape == SHAPE_BODY


def test_descriptor_params_are_read_only():
    d = ResourceDescriptor("properties", "/properties", {"a": "1"})
    with pytest.raises(TypeError):
        d.params["a"] = "2"


def test_descriptor_rejects_unknown_shape():
    with pytest.raises(ValueError):
        ResourceDescriptor("properties", "/properties", result_shape="csv")
