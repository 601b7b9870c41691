from __future__ import annotations

import json
from pathlib import Path
from typing import Mapping, Optional

from book_bundler.manifest import Manifest


INDEX_FILENAME = "book.json"
BOOK_URL_SCHEME = "book://"


class ManifestEmptyError(RuntimeError):
    """Raised when the index is requested before any page was rendered."""


def book_url(url: str) -> str:
    """Swap whatever transport scheme the site uses for ``book://``."""
    url = (url or "").strip()
    if "://" in url:
        _, url = url.split("://", 1)
    return f"{BOOK_URL_SCHEME}{url}"


def build_index(
    manifest: Manifest,
    metadata: Mapping[str, str],
    cover_image: Optional[str] = None,
) -> dict[str, object]:
    if not manifest:
        raise ManifestEmptyError(
            "The manifest is empty; render the book content before building the index."
        )
    index: dict[str, object] = {
        "title": metadata.get("title") or "",
        "author": metadata.get("author") or "",
        "url": book_url(metadata.get("url") or ""),
    }
    if cover_image:
        index["cover"] = f"images/{cover_image}"
    index["contents"] = manifest.filenames()
    return index


def write_index(
    work_dir: Path,
    manifest: Manifest,
    metadata: Mapping[str, str],
    cover_image: Optional[str] = None,
) -> Path:
    index = build_index(manifest, metadata, cover_image)
    index_path = work_dir / INDEX_FILENAME
    index_path.write_text(
        json.dumps(index, indent=2, ensure_ascii=False) + "\n", encoding="utf-8"
    )
    return index_path
