from __future__ import annotations

from dataclasses import dataclass
from urllib.parse import quote, urlsplit

from app.errors import INVALID_URL, MISSING_FIELDS, ValidationError

DEFAULT_SCHEME = "https://"
FAVICON_SERVICE = "https://www.google.com/s2/favicons?domain={domain}&sz=64"

_FORBIDDEN_HOST_CHARS = set(" \t\n\r#%/:<>?@[\\]^|")


@dataclass(frozen=True)
class BookmarkDraft:
    title: str
    url: str

    def __iter__(self):
        yield self.title
        yield self.url


def safe_url(raw: str | None) -> str:
    value = (raw or "").strip()
    if not value:
        return ""
    if value.startswith("http://") or value.startswith("https://"):
        return value
    return f"{DEFAULT_SCHEME}{value}"


def is_valid_url(value: str | None) -> bool:
    if not value:
        return False
    try:
        parsed = urlsplit(value)
        # raises ValueError for a non-numeric or out-of-range port
        parsed.port
    except ValueError:
        return False
    if not parsed.scheme or not parsed.netloc:
        return False

    host = parsed.hostname or ""
    if parsed.netloc.startswith("[") and host:
        return True
    if not host or any(char in _FORBIDDEN_HOST_CHARS for char in host):
        return False
    return not any(char.isspace() for char in parsed.netloc)


def get_domain(value: str | None) -> str:
    try:
        host = urlsplit((value or "").strip()).hostname or ""
    except ValueError:
        return ""
    return host.removeprefix("www.")


def favicon_url(domain: str) -> str:
    if not domain:
        return ""
    return FAVICON_SERVICE.format(domain=quote(domain, safe=".-"))


def normalize_draft(title: str | None, url: str | None) -> BookmarkDraft:
    """Turn raw title/URL input into a validated draft.

    Raises ``ValidationError`` with reason ``missing_fields`` when either value
    is blank and ``invalid_url`` when the prefixed URL does not parse as an
    absolute URL. The URL is otherwise kept exactly as entered.
    """
    clean_title = (title or "").strip()
    fixed_url = safe_url(url)
    if not clean_title or not fixed_url:
        raise ValidationError(MISSING_FIELDS)
    if not is_valid_url(fixed_url):
        raise ValidationError(INVALID_URL)
    return BookmarkDraft(title=clean_title, url=fixed_url)
