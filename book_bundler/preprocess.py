from __future__ import annotations

from contextlib import contextmanager
from dataclasses import dataclass
from typing import Callable, Iterator, Optional

from book_bundler.contents import BookContents, SectionKind, SectionRecord
from book_bundler.kneader import HtmlKneader
from book_bundler.sanitize import sanitize_slug, sanitize_xml_attribute


@dataclass
class SectionContext:
    """What the content filter may ask about the section being processed."""

    section_id: Optional[int] = None
    kind: Optional[SectionKind] = None


ContentFilter = Callable[[str, SectionContext], str]


def passthrough_filter(content: str, context: SectionContext) -> str:
    return content


@contextmanager
def current_section(
    context: SectionContext, section_id: int, kind: SectionKind
) -> Iterator[SectionContext]:
    previous = (context.section_id, context.kind)
    context.section_id = section_id
    context.kind = kind
    try:
        yield context
    finally:
        context.section_id, context.kind = previous


class ContentPreprocessor:
    def __init__(
        self,
        kneader: HtmlKneader,
        content_filter: Optional[ContentFilter] = None,
        context: Optional[SectionContext] = None,
    ) -> None:
        self.kneader = kneader
        self.content_filter = content_filter or passthrough_filter
        self.context = context if context is not None else SectionContext()

    def preprocess_book_contents(self, contents: BookContents) -> BookContents:
        """Clean every record in place and return the same tree."""
        for record in contents.front_matter:
            self.preprocess_record(record, SectionKind.FRONT_MATTER)
        for part in contents.parts:
            self.preprocess_record(part, SectionKind.PART)
            for chapter in part.chapters:
                self.preprocess_record(chapter, SectionKind.CHAPTER)
        for record in contents.back_matter:
            self.preprocess_record(record, SectionKind.BACK_MATTER)
        return contents

    def preprocess_record(self, record: SectionRecord, kind: SectionKind) -> None:
        if record.content:
            with current_section(self.context, record.id, kind) as context:
                record.content = self.preprocess_post_content(
                    record.content, kind, context
                )
        # Every rendered page needs a slug for its filename and link index.
        record.slug = sanitize_slug(record.slug or record.title)
        if record.title:
            record.title = sanitize_xml_attribute(record.title)

    def preprocess_post_content(
        self, content: str, kind: SectionKind, context: SectionContext
    ) -> str:
        content = self.content_filter(content, context)
        return self.kneader.knead(content, kind.value)
