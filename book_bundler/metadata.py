from __future__ import annotations

import json
from pathlib import Path
from typing import Iterable, Mapping, Optional, Protocol

from book_bundler.contents import BookContents, PartRecord, SectionRecord


class BookContentProvider(Protocol):
    def get_book_contents(self) -> BookContents: ...

    def get_metadata(self) -> dict[str, str]: ...


class BookSourceError(ValueError):
    """Raised when a book source file cannot be understood."""


def _coerce_text(value: object) -> str:
    if value is None:
        return ""
    if isinstance(value, bool):
        return "1" if value else ""
    return str(value)


def _coerce_bool(value: object, default: bool) -> bool:
    if value is None:
        return default
    if isinstance(value, str):
        return value.strip().lower() not in {"", "0", "false", "no", "off"}
    return bool(value)


def _coerce_records(data: object, key: str) -> list[Mapping[str, object]]:
    if data is None:
        return []
    if not isinstance(data, list) or not all(isinstance(item, dict) for item in data):
        raise BookSourceError(f"'{key}' must be a list of objects.")
    return data


def parse_metadata(data: object, base_dir: Optional[Path] = None) -> dict[str, str]:
    if data is None:
        return {}
    if not isinstance(data, dict):
        raise BookSourceError("'metadata' must be an object.")
    metadata = {key: _coerce_text(value) for key, value in data.items()}
    cover = metadata.get("cover_image", "").strip()
    if cover and base_dir is not None and not Path(cover).is_absolute():
        metadata["cover_image"] = str((base_dir / cover).resolve())
    return metadata


def parse_section(
    data: Mapping[str, object], fallback_id: int, base_dir: Optional[Path] = None
) -> SectionRecord:
    content = _coerce_text(data.get("content"))
    content_file = data.get("content_file")
    if not content and content_file and base_dir is not None:
        content = (base_dir / str(content_file)).read_text(encoding="utf-8")
    raw_id = data.get("id")
    try:
        section_id = int(raw_id) if raw_id is not None else fallback_id
    except (TypeError, ValueError) as exc:
        raise BookSourceError(f"Section id {raw_id!r} is not a number.") from exc
    return SectionRecord(
        id=section_id,
        title=_coerce_text(data.get("title")),
        slug=_coerce_text(data.get("slug")),
        content=content,
        export=_coerce_bool(data.get("export"), True),
        type_tag=_coerce_text(data.get("type")),
        show_title=_coerce_bool(data.get("show_title"), True),
        short_title=_coerce_text(data.get("short_title")),
        subtitle=_coerce_text(data.get("subtitle")),
        author=_coerce_text(data.get("author")),
    )


def parse_book_contents(data: Mapping[str, object], base_dir: Optional[Path] = None) -> BookContents:
    next_id = 1

    def parse_all(items: Iterable[Mapping[str, object]]) -> list[SectionRecord]:
        nonlocal next_id
        records = []
        for item in items:
            records.append(parse_section(item, next_id, base_dir))
            next_id = max(next_id, records[-1].id) + 1
        return records

    front_matter = parse_all(_coerce_records(data.get("front-matter"), "front-matter"))
    parts: list[PartRecord] = []
    for item in _coerce_records(data.get("part"), "part"):
        record = parse_section(item, next_id, base_dir)
        next_id = max(next_id, record.id) + 1
        chapters = parse_all(_coerce_records(item.get("chapters"), "chapters"))
        parts.append(PartRecord(**vars(record), chapters=chapters))
    back_matter = parse_all(_coerce_records(data.get("back-matter"), "back-matter"))
    return BookContents(front_matter=front_matter, parts=parts, back_matter=back_matter)


def read_book_source(path: Path) -> dict[str, object]:
    try:
        data = json.loads(path.read_text(encoding="utf-8"))
    except json.JSONDecodeError as exc:
        raise BookSourceError(f"{path.name} is not valid JSON: {exc}") from exc
    if not isinstance(data, dict):
        raise BookSourceError(f"{path.name} must contain a JSON object.")
    return data


class JsonBookProvider:
    """Book contents and metadata read from a JSON source file."""

    def __init__(self, path: Path) -> None:
        self.path = path
        self._data: Optional[dict[str, object]] = None

    @property
    def data(self) -> dict[str, object]:
        if self._data is None:
            self._data = read_book_source(self.path)
        return self._data

    def get_book_contents(self) -> BookContents:
        return parse_book_contents(self.data, self.path.parent)

    def get_metadata(self) -> dict[str, str]:
        return parse_metadata(self.data.get("metadata"), self.path.parent)
