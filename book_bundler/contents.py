from __future__ import annotations

import unicodedata
from dataclasses import dataclass, field
from enum import Enum
from typing import Iterator, List, Optional, Tuple


class SectionKind(str, Enum):
    FRONT_MATTER = "front-matter"
    PART = "part"
    CHAPTER = "chapter"
    BACK_MATTER = "back-matter"


class FrontMatterType(str, Enum):
    BEFORE_TITLE = "before-title"
    TITLE_PAGE = "title-page"
    DEDICATION = "dedication"
    EPIGRAPH = "epigraph"
    FOREWORD = "foreword"
    PREFACE = "preface"
    ACKNOWLEDGEMENTS = "acknowledgements"
    INTRODUCTION = "introduction"
    PROLOGUE = "prologue"
    ABSTRACT = "abstract"
    CHRONOLOGY = "chronology"
    DISCLAIMER = "disclaimer"
    LIST_OF_ABBREVIATIONS = "list-of-abbreviations"
    LIST_OF_ILLUSTRATIONS = "list-of-illustrations"
    LIST_OF_TABLES = "list-of-tables"
    MISCELLANEOUS = "miscellaneous"

    @classmethod
    def from_tag(cls, tag: Optional[str]) -> "FrontMatterType":
        try:
            return cls((tag or "").strip().lower())
        except ValueError:
            return cls.MISCELLANEOUS

    @property
    def css_class(self) -> str:
        return self.value

    @property
    def renders_first(self) -> bool:
        """Dedication and epigraph open the book, ahead of other front matter."""
        return self in (FrontMatterType.DEDICATION, FrontMatterType.EPIGRAPH)

    @property
    def is_handled_separately(self) -> bool:
        return self.renders_first or self is FrontMatterType.TITLE_PAGE

    @property
    def is_introduction(self) -> bool:
        return self is FrontMatterType.INTRODUCTION


class BackMatterType(str, Enum):
    APPENDIX = "appendix"
    AFTERWORD = "afterword"
    EPILOGUE = "epilogue"
    CONCLUSION = "conclusion"
    GLOSSARY = "glossary"
    BIBLIOGRAPHY = "bibliography"
    NOTES = "notes"
    INDEX = "index"
    ABOUT_THE_AUTHOR = "about-the-author"
    ABOUT_THE_PUBLISHER = "about-the-publisher"
    ACKNOWLEDGEMENTS = "acknowledgements"
    CREDITS = "credits"
    OTHER_BOOKS = "other-books"
    RESOURCES = "resources"
    MISCELLANEOUS = "miscellaneous"

    @classmethod
    def from_tag(cls, tag: Optional[str]) -> "BackMatterType":
        try:
            return cls((tag or "").strip().lower())
        except ValueError:
            return cls.MISCELLANEOUS

    @property
    def css_class(self) -> str:
        return self.value


@dataclass
class SectionRecord:
    id: int
    title: str = ""
    slug: str = ""
    content: str = ""
    export: bool = True
    type_tag: str = ""
    show_title: bool = True
    short_title: str = ""
    subtitle: str = ""
    author: str = ""

    @property
    def front_matter_type(self) -> FrontMatterType:
        return FrontMatterType.from_tag(self.type_tag)

    @property
    def back_matter_type(self) -> BackMatterType:
        return BackMatterType.from_tag(self.type_tag)

    @property
    def display_title(self) -> str:
        return self.title if self.show_title else ""


@dataclass
class PartRecord(SectionRecord):
    chapters: List[SectionRecord] = field(default_factory=list)

    @property
    def exported_chapters(self) -> List[SectionRecord]:
        return [chapter for chapter in self.chapters if chapter.export]


@dataclass
class BookContents:
    front_matter: List[SectionRecord] = field(default_factory=list)
    parts: List[PartRecord] = field(default_factory=list)
    back_matter: List[SectionRecord] = field(default_factory=list)

    def iter_records(self) -> Iterator[SectionRecord]:
        yield from self.front_matter
        for part in self.parts:
            yield part
            yield from part.chapters
        yield from self.back_matter

    def find(self, section_id: int) -> Optional[SectionRecord]:
        for record in self.iter_records():
            if record.id == section_id:
                return record
        return None

    def rendered_sections(self) -> Iterator[Tuple[SectionRecord, SectionKind]]:
        """Records that get a page of their own, in the order pages are numbered.

        Dedications come first, then epigraphs, then the remaining front
        matter; title pages have no numbered page. Parts only get a page in
        books with more than one part, and only when they hold an exported
        chapter.
        """
        front_matter = [record for record in self.front_matter if record.export]
        for subtype in (FrontMatterType.DEDICATION, FrontMatterType.EPIGRAPH):
            for record in front_matter:
                if record.front_matter_type is subtype:
                    yield record, SectionKind.FRONT_MATTER
        for record in front_matter:
            if not record.front_matter_type.is_handled_separately:
                yield record, SectionKind.FRONT_MATTER
        multiple_parts = len(self.parts) > 1
        for part in self.parts:
            chapters = part.exported_chapters
            if chapters and multiple_parts:
                yield part, SectionKind.PART
            for chapter in chapters:
                yield chapter, SectionKind.CHAPTER
        for record in self.back_matter:
            if record.export:
                yield record, SectionKind.BACK_MATTER

    def export_lookup(self) -> dict[str, SectionKind]:
        """Ordered slug index of every page that can be linked to.

        The first record claiming a slug keeps it; later duplicates are
        ignored.
        """
        lookup: dict[str, SectionKind] = {}
        for record, kind in self.rendered_sections():
            if record.slug and record.slug not in lookup:
                lookup[record.slug] = kind
        return lookup

    def duplicate_slugs(self) -> list[str]:
        """Slugs claimed by more than one rendered record, in reading order."""
        seen: set[str] = set()
        duplicates: list[str] = []
        for record, _ in self.rendered_sections():
            if not record.slug:
                continue
            if record.slug in seen and record.slug not in duplicates:
                duplicates.append(record.slug)
            seen.add(record.slug)
        return duplicates


def force_ascii(text: str) -> str:
    normalized = unicodedata.normalize("NFKD", text)
    return normalized.encode("ascii", "ignore").decode("ascii")


def slugify(text: str) -> str:
    cleaned = []
    for char in force_ascii(text).lower():
        if char.isalnum():
            cleaned.append(char)
        elif char in {" ", "-", "_"}:
            cleaned.append("-")
    slug = "".join(cleaned)
    while "--" in slug:
        slug = slug.replace("--", "-")
    return slug.strip("-") or "untitled"
