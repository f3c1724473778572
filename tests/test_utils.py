import pytest

from moddypy.exceptions import InvalidResponseError, NotFoundError, RateLimitError, ServerError, map_http_status
from moddypy.utils import is_newer_version, parse_numeric_version, safe_json, sanitize_cache_key


@pytest.mark.parametrize("latest, installed, expected", [
    ("v1.10.0", "v1.2.0", True),
    ("1.2.0", "1.10.0", False),
    ("1.0", "1.0.0.0", False),
    ("v2.0", "1.9.9", True),
    ("1.2-beta", "1.0", False),
    ("latest", "1.0", False),
    ("2.0", "", False),
    (None, "1.0", False),
])
def test_is_newer_version(latest, installed, expected):
    assert is_newer_version(latest, installed) is expected


def test_trailing_zero_components_are_equal():
    assert parse_numeric_version("1.0") == parse_numeric_version("V1.0.0.0")


def test_parse_numeric_version_rejects_suffixes():
    assert parse_numeric_version("1.2.3-rc1") is None
    assert parse_numeric_version("  ") is None


def test_safe_json_handles_bom_and_empty():
    assert safe_json(b"\xef\xbb\xbf[1, 2]") == [1, 2]
    assert safe_json(b"   ") is None
    assert safe_json(b"", default=[]) == []
    with pytest.raises(InvalidResponseError):
        safe_json("{not json")


def test_sanitize_cache_key():
    assert sanitize_cache_key("Pathoschild/SMAPI") == "Pathoschild_SMAPI"
    assert "/" not in sanitize_cache_key("../../etc/passwd")


def test_map_http_status():
    assert isinstance(map_http_status(404), NotFoundError)
    assert isinstance(map_http_status(429), RateLimitError)
    assert isinstance(map_http_status(503), ServerError)
