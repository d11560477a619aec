import pytest

from app.errors import INVALID_URL, MISSING_FIELDS, ValidationError
from app.services.common import (
    BookmarkDraft,
    favicon_url,
    get_domain,
    is_valid_url,
    normalize_draft,
    safe_url,
)


@pytest.mark.parametrize(
    "raw, expected",
    [
        ("google.com", "https://google.com"),
        ("http://x.com", "http://x.com"),
        ("https://x.com/path?q=1", "https://x.com/path?q=1"),
        ("  docs.com/a  ", "https://docs.com/a"),
        ("  ", ""),
        ("", ""),
        (None, ""),
    ],
)
def test_safe_url(raw, expected):
    assert safe_url(raw) == expected


@pytest.mark.parametrize(
    "value, expected",
    [
        ("https://a.b", True),
        ("http://localhost:8080/x", True),
        ("https://[::1]/", True),
        ("https://docs.com/with space", True),
        ("not a url", False),
        ("https://not a url", False),
        ("https://", False),
        ("https://x.com:port", False),
        ("", False),
    ],
)
def test_is_valid_url(value, expected):
    assert is_valid_url(value) is expected


def test_get_domain_strips_www_prefix():
    assert get_domain("https://www.example.com/x") == "example.com"
    assert get_domain("https://Docs.Google.com") == "docs.google.com"


def test_get_domain_returns_empty_string_on_garbage():
    assert get_domain("not a url") == ""
    assert get_domain("") == ""
    assert get_domain(None) == ""


def test_favicon_url_only_for_known_domain():
    assert favicon_url("") == ""
    assert "domain=example.com" in favicon_url("example.com")


def test_normalize_draft_trims_and_prefixes_scheme():
    draft = normalize_draft("  Docs ", " docs.com ")

    assert draft == BookmarkDraft(title="Docs", url="https://docs.com")


def test_normalize_draft_keeps_url_otherwise_untouched():
    draft = normalize_draft("Mixed", "https://Example.COM/Path/")

    assert draft.url == "https://Example.COM/Path/"


@pytest.mark.parametrize(
    "title, url",
    [
        ("", "docs.com"),
        ("   ", "docs.com"),
        ("Docs", ""),
        ("Docs", "   "),
        (None, None),
    ],
)
def test_normalize_draft_rejects_missing_fields(title, url):
    with pytest.raises(ValidationError) as excinfo:
        normalize_draft(title, url)

    assert excinfo.value.reason == MISSING_FIELDS
    assert excinfo.value.message == "Please enter both Title and URL."


def test_normalize_draft_rejects_invalid_url():
    with pytest.raises(ValidationError) as excinfo:
        normalize_draft("Broken", "not a url")

    assert excinfo.value.reason == INVALID_URL
    assert "https://google.com" in excinfo.value.message


@pytest.mark.parametrize(
    "title, url",
    [
        ("Docs", "docs.com"),
        ("  GitHub  ", "http://github.com"),
        ("Search", "https://www.google.com/search?q=python"),
    ],
)
def test_normalize_draft_is_idempotent(title, url):
    draft = normalize_draft(title, url)

    assert normalize_draft(*draft) == draft
