"""String cleanup shared by the preprocessor, the asset scraper and the kneader."""

from __future__ import annotations

import html
import re
from urllib.parse import quote, unquote, urlsplit, urlunsplit

from book_bundler.contents import force_ascii, slugify


_INVALID_XML_CHARS = re.compile(r"[\x00-\x08\x0b\x0c\x0e-\x1f\ufffe\uffff]")
_FILENAME_SPECIAL_CHARS = set("?[]/\\=<>:;,'\"&$#*()|~`!{}%+’«»”“")
_WHITESPACE_RUN = re.compile(r"[\s-]+")
_SCHEME_PREFIX = re.compile(r"^([A-Za-z][A-Za-z0-9+.\-]*)://")
_OPAQUE_SCHEMES = ("mailto:", "tel:", "sms:", "data:", "javascript:")
# RFC 3986 reserved + unreserved characters, plus "%" for existing escapes.
_URL_SAFE_CHARS = "-._~:/?#[]@!$&'()*+,;=%"


def sanitize_xml_attribute(value: str) -> str:
    """Make a title safe to drop into an XML attribute value."""
    decoded = html.unescape(value or "")
    decoded = _INVALID_XML_CHARS.sub("", decoded)
    return html.escape(decoded.strip(), quote=True)


def sanitize_slug(value: str) -> str:
    return slugify(value or "")


def sanitize_file_name(name: str) -> str:
    cleaned = "".join(char for char in name if char not in _FILENAME_SPECIAL_CHARS)
    cleaned = cleaned.replace("\x00", "")
    cleaned = _WHITESPACE_RUN.sub("-", cleaned)
    cleaned = force_ascii(cleaned)
    return cleaned.strip(".-_")


def filename_from_url(url: str) -> str:
    """Basename of a URL without its query string, decoded and sanitized."""
    path = url.split("?", 1)[0].split("#", 1)[0]
    basename = path.rstrip("/").rsplit("/", 1)[-1]
    return sanitize_file_name(unquote(basename))


def is_opaque_reference(url: str) -> bool:
    lowered = url.lower()
    return lowered.startswith(_OPAQUE_SCHEMES)


def is_relative_reference(url: str) -> bool:
    parts = urlsplit(url)
    return not parts.scheme and not parts.netloc and not url.lower().startswith("www.")


def canonicalize_url(url: str) -> str:
    """Normalize an external link: scheme, host case and stray characters.

    Relative references and opaque schemes (mailto:, tel:, ...) are
    returned trimmed but otherwise as given.
    """
    url = url.strip()
    if not url or is_opaque_reference(url) or (
        is_relative_reference(url) and not url.startswith("//")
    ):
        return url
    url = url.rstrip("/")
    if url.startswith("//"):
        url = f"http:{url}"
    match = _SCHEME_PREFIX.match(url)
    if match:
        if match.group(1).lower() not in {"http", "https"}:
            url = "http://" + url[match.end():]
    else:
        url = f"http://{url}"
    parts = urlsplit(url)
    canonical = urlunsplit(
        (
            parts.scheme.lower(),
            parts.netloc.lower(),
            parts.path,
            parts.query,
            parts.fragment,
        )
    )
    return quote(canonical, safe=_URL_SAFE_CHARS)
