from __future__ import annotations

from dataclasses import dataclass
from typing import Iterator, List, Optional, Tuple

from book_bundler.contents import SectionKind
from book_bundler.filenames import section_file_id


@dataclass(frozen=True)
class ManifestEntry:
    source_id: int
    title: str
    filename: str
    kind: Optional[SectionKind] = None
    subtype: str = ""


class Manifest:
    """Reading order of every generated page.

    Entries are never moved once added. New entries either go to the end
    or are inserted at an explicit position.
    """

    def __init__(self) -> None:
        self._keys: List[str] = []
        self._entries: dict[str, ManifestEntry] = {}

    def __len__(self) -> int:
        return len(self._keys)

    def __bool__(self) -> bool:
        return bool(self._keys)

    def __contains__(self, file_id: object) -> bool:
        return file_id in self._entries

    def __iter__(self) -> Iterator[str]:
        return iter(list(self._keys))

    def __getitem__(self, file_id: str) -> ManifestEntry:
        return self._entries[file_id]

    def keys(self) -> List[str]:
        return list(self._keys)

    def items(self) -> List[Tuple[str, ManifestEntry]]:
        return [(key, self._entries[key]) for key in self._keys]

    def filenames(self) -> List[str]:
        return [self._entries[key].filename for key in self._keys]

    def position(self, file_id: str) -> Optional[int]:
        try:
            return self._keys.index(file_id)
        except ValueError:
            return None

    def append(self, file_id: str, entry: ManifestEntry) -> None:
        self.insert(len(self._keys), file_id, entry)

    def insert(self, index: int, file_id: str, entry: ManifestEntry) -> None:
        if file_id in self._entries:
            raise ValueError(f"Manifest already contains {file_id!r}.")
        index = max(0, min(index, len(self._keys)))
        self._keys.insert(index, file_id)
        self._entries[file_id] = entry

    def insert_after(
        self, anchor: Optional[str], file_id: str, entry: ManifestEntry
    ) -> None:
        """Insert right after ``anchor``; at the front when it is missing."""
        anchor_index = self.position(anchor) if anchor else None
        index = 0 if anchor_index is None else anchor_index + 1
        self.insert(index, file_id, entry)


def toc_anchor(manifest: Manifest, front_matter_last_pos: Optional[int]) -> Optional[str]:
    """Manifest key the table of contents follows (Chicago Manual of Style).

    Without a dedication or epigraph the contents follow the copyright
    page; otherwise they follow the last dedication/epigraph page.
    Returns ``None`` when the contents belong at the very front.
    """
    if not front_matter_last_pos:
        return "copyright" if "copyright" in manifest else None
    key = section_file_id(SectionKind.FRONT_MATTER, front_matter_last_pos)
    return key if key in manifest else None
