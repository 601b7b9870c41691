from __future__ import annotations

import re
import time
from typing import Optional

from book_bundler.contents import SectionKind


_TITLE_WORD_RE = re.compile(r"[A-Za-z0-9]+")
ORDINAL_WIDTH = 3


def title_to_filename(title: str, fallback: str = "Untitled") -> str:
    words = _TITLE_WORD_RE.findall(title or "")
    if not words:
        return fallback
    return "".join(word.capitalize() for word in words) or fallback


def section_file_id(kind: SectionKind, position: int) -> str:
    return f"{kind.value}-{position:0{ORDINAL_WIDTH}d}"


def section_filename(kind: SectionKind, position: int, slug: str) -> str:
    return f"{section_file_id(kind, position)}-{slug}.html"


def page_filename(file_id: str) -> str:
    return f"{file_id}.html"


def archive_filename(
    title: str,
    extension: str = ".hpub",
    timestamp: Optional[float] = None,
    fallback: str = "Untitled",
) -> str:
    stamp = int(time.time() if timestamp is None else timestamp)
    return f"{title_to_filename(title, fallback)}-{stamp}{extension}"
