from __future__ import annotations

import re
import warnings
from pathlib import Path
from typing import Mapping, Optional
from urllib.parse import urlsplit

from bs4 import BeautifulSoup, Tag
from bs4.builder import ParserRejectedMarkup

from book_bundler.assets import ImageFetcher
from book_bundler.contents import SectionKind
from book_bundler.filenames import section_filename
from book_bundler.sanitize import canonicalize_url


VOID_ELEMENTS = frozenset(
    {
        "br",
        "hr",
        "input",
        "frame",
        "img",
        "area",
        "link",
        "col",
        "base",
        "basefont",
        "param",
        "meta",
    }
)
SELF_CLOSING_PATTERN = re.compile(r"<(\w+)([^>]*)\s*/>", re.DOTALL)
DOCTYPE_PATTERN = re.compile(r"^<!DOCTYPE.+?>", re.IGNORECASE | re.DOTALL)
WRAPPER_TAGS = ("<html>", "</html>", "<body>", "</body>")
IMAGES_DIRNAME = "images"


def _basename(url: str) -> str:
    return url.strip().rstrip("/").rsplit("/", 1)[-1]


def fuzzy_image_name_match(first: str, second: str) -> bool:
    """Loose filename comparison for editor-generated image links.

    ``Some_Image-original.png`` and ``some_image-300x200.PNG`` match: the
    extensions agree and so does the name up to the first hyphen.
    """
    name1 = _basename(first)
    name2 = _basename(second)
    if name1.rsplit(".", 1)[-1].lower() != name2.rsplit(".", 1)[-1].lower():
        return False
    prefix1 = name1.split(".", 1)[0].split("-", 1)[0].lower()
    prefix2 = name2.split(".", 1)[0].split("-", 1)[0].lower()
    return prefix1 == prefix2


def resolve_internal_href(
    url: str,
    position: int,
    lookup: Mapping[str, SectionKind],
    site_host: Optional[str],
) -> Optional[str]:
    """Map a link to another section of the book onto its output filename."""
    if not position:
        return None
    url = url.strip().rstrip("/")
    last_part = url.rsplit("/", 1)[-1].strip()
    if not last_part:
        return None
    kind = lookup.get(last_part)
    if kind is None:
        return None
    host = urlsplit(url).hostname
    if host and host != (site_host or "").lower():
        return None
    ordinal = 0
    for slug, slug_kind in lookup.items():
        if slug_kind == kind:
            ordinal += 1
        if slug == last_part:
            break
    return section_filename(kind, ordinal, last_part)


def normalize_self_closing(html: str) -> str:
    def replace(match: re.Match) -> str:
        tag, attributes = match.group(1), match.group(2)
        if tag in VOID_ELEMENTS:
            return f"<{tag}{attributes} />"
        return f"<{tag}{attributes}></{tag}>"

    return SELF_CLOSING_PATTERN.sub(replace, html)


def strip_document_wrappers(html: str) -> str:
    for wrapper in WRAPPER_TAGS:
        html = html.replace(wrapper, "")
    return DOCTYPE_PATTERN.sub("", html)


def _image_children(anchor: Tag) -> list[Tag]:
    return [
        child for child in anchor.children if isinstance(child, Tag) and child.name == "img"
    ]


class HtmlKneader:
    """Rework section HTML so it only points at files inside the bundle."""

    def __init__(
        self,
        images_dir: Path,
        fetcher: ImageFetcher,
        lookup: Optional[Mapping[str, SectionKind]] = None,
        site_url: str = "",
    ) -> None:
        self.images_dir = images_dir
        self.fetcher = fetcher
        self.lookup = dict(lookup or {})
        self.site_host = urlsplit(site_url).hostname if site_url else None
        self.errors: list[str] = []

    def knead(self, html: str, section_type: str, position: int = 0) -> str:
        if not html or not html.strip():
            return ""
        soup = self._parse(html, section_type)
        if soup is None:
            return html
        self.scrape_and_knead_images(soup)
        self.knead_hrefs(soup, position)
        output = strip_document_wrappers(str(soup))
        return normalize_self_closing(output)

    def _parse(self, html: str, section_type: str) -> Optional[BeautifulSoup]:
        with warnings.catch_warnings(record=True) as caught:
            warnings.simplefilter("always")
            try:
                soup = BeautifulSoup(html, "html.parser")
            except ParserRejectedMarkup as exc:
                self.errors.append(f"{section_type}: {exc}")
                return None
        self.errors.extend(f"{section_type}: {warning.message}" for warning in caught)
        return soup

    def scrape_and_knead_images(self, soup: BeautifulSoup) -> None:
        for image in soup.find_all("img"):
            src = image.get("src")
            if not src:
                continue
            filename = self.fetcher.fetch_and_save_unique_image(src, self.images_dir)
            if filename:
                image["src"] = f"{IMAGES_DIRNAME}/{filename}"

    def knead_hrefs(self, soup: BeautifulSoup, position: int) -> None:
        for anchor in soup.find_all("a"):
            current_url = str(anchor.get("href") or "")
            if not current_url.strip():
                continue
            if any(
                fuzzy_image_name_match(current_url, str(image.get("src") or ""))
                for image in _image_children(anchor)
            ):
                del anchor["href"]
                continue
            internal_url = resolve_internal_href(
                current_url, position, self.lookup, self.site_host
            )
            if internal_url:
                anchor["href"] = internal_url
                continue
            if not current_url.startswith("#"):
                anchor["href"] = canonicalize_url(current_url)
