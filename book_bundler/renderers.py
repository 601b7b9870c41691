from __future__ import annotations

import datetime
import re
from dataclasses import dataclass, field
from html import escape as html_escape
from pathlib import Path
from typing import Callable, Mapping, Optional

from book_bundler.assets import ImageResizer, resize_image
from book_bundler.contents import (
    BookContents,
    FrontMatterType,
    SectionKind,
    SectionRecord,
)
from book_bundler.filenames import page_filename, section_file_id, section_filename
from book_bundler.kneader import HtmlKneader
from book_bundler.manifest import Manifest, ManifestEntry, toc_anchor


TemplateRenderer = Callable[[Mapping[str, str]], str]

PACKAGE_DIR = Path(__file__).resolve().parent
DEFAULT_COVER_PATH = PACKAGE_DIR / "templates" / "images" / "default-book-cover.png"
DEFAULT_COVER_PATTERN = re.compile(r"assets/images/default-book-cover\.png$")
COVER_MAX_WIDTH = 1563
COVER_MAX_HEIGHT = 2500
ATTRIBUTION_NOTICE = "This book was produced using Book Bundler."
NO_SOURCE_ID = -1

COVER_FILE_ID = "front-cover"
TITLE_PAGE_FILE_ID = "title-page"
COPYRIGHT_FILE_ID = "copyright"
TOC_FILE_ID = "table-of-contents"


def render_html_template(variables: Mapping[str, str]) -> str:
    lines = [
        "<!DOCTYPE html>",
        f'<html lang="{html_escape(variables.get("lang") or "en")}">',
        "<head>",
        '  <meta charset="utf-8" />',
        f"  <title>{variables.get('post_title', '')}</title>",
        '  <link rel="stylesheet" '
        f'href="css/{html_escape(variables.get("stylesheet", ""))}" '
        'type="text/css" />',
        "</head>",
        "<body>",
        variables.get("post_content", ""),
        "</body>",
        "</html>",
    ]
    return "\n".join(lines) + "\n"


@dataclass
class RenderContext:
    """State shared by the renderers of one build.

    ``manifest`` grows as renderers run; the table of contents reads it
    last.
    """

    work_dir: Path
    stylesheet: str
    kneader: HtmlKneader
    template: TemplateRenderer = render_html_template
    resize: ImageResizer = resize_image
    cover_max_width: int = COVER_MAX_WIDTH
    cover_max_height: int = COVER_MAX_HEIGHT
    language: str = "en"
    verbose: bool = False
    manifest: Manifest = field(default_factory=Manifest)
    front_matter_pos: int = 1
    front_matter_last_pos: Optional[int] = None
    has_introduction: bool = False
    cover_image: Optional[str] = None

    @property
    def images_dir(self) -> Path:
        return self.work_dir / "images"


def _meta(metadata: Mapping[str, str], key: str) -> str:
    value = metadata.get(key)
    return str(value).strip() if value else ""


def _write_page(ctx: RenderContext, filename: str, post_title: str, post_content: str) -> None:
    variables = {
        "post_title": post_title,
        "stylesheet": ctx.stylesheet,
        "post_content": post_content,
        "lang": ctx.language,
    }
    (ctx.work_dir / filename).write_text(ctx.template(variables), encoding="utf-8")
    if ctx.verbose:
        print(f"[hpub] Wrote {filename}.")


def _prefix_section_headers(record: SectionRecord, content: str) -> str:
    author = record.author.strip()
    subtitle = record.subtitle.strip()
    short_title = record.short_title.strip()
    # Each header is prepended, so the author ends up first.
    if short_title:
        content = f'<h6 class="short-title">{html_escape(short_title)}</h6>' + content
    if subtitle:
        content = f'<h2 class="chapter-subtitle">{html_escape(subtitle)}</h2>' + content
    if author:
        content = f'<h2 class="chapter-author">{html_escape(author)}</h2>' + content
    return content


def _render_matter_block(
    kind: SectionKind, subclass: str, slug: str, number: int, title: str, content: str
) -> str:
    prefix = kind.value
    return (
        f'<div class="{prefix} {subclass}" id="{slug}">'
        f'<div class="{prefix}-title-wrap">'
        f'<h3 class="{prefix}-number">{number}</h3>'
        f'<h1 class="{prefix}-title">{title}</h1></div>'
        f'<div class="ugc {prefix}-ugc">{content}</div>'
        "</div>"
    )


def _render_chapter_block(
    slug: str, number: int, title: str, content: str, introduction: bool
) -> str:
    css_class = "chapter introduction" if introduction else "chapter"
    return (
        f'<div class="{css_class}" id="{slug}">'
        '<div class="chapter-title-wrap">'
        f'<h3 class="chapter-number">{number}</h3>'
        f'<h2 class="chapter-title">{title}</h2></div>'
        f'<div class="ugc chapter-ugc">{content}</div>'
        "</div>"
    )


def _render_part_block(slug: str, number: int, title: str, introduction: bool) -> str:
    css_class = "part introduction" if introduction else "part"
    return (
        f'<div class="{css_class}" id="{slug}">'
        '<div class="part-title-wrap">'
        f'<h3 class="part-number">{number}</h3>'
        f'<h1 class="part-title">{title}</h1></div>'
        "</div>"
    )


def _cover_source(metadata: Mapping[str, str]) -> Path:
    configured = _meta(metadata, "cover_image")
    if configured and not DEFAULT_COVER_PATTERN.search(configured):
        return Path(configured)
    return DEFAULT_COVER_PATH


def create_cover(ctx: RenderContext, contents: BookContents, metadata: Mapping[str, str]) -> None:
    source_path = _cover_source(metadata)
    dest_image = source_path.name
    try:
        resized = ctx.resize(source_path, ctx.cover_max_width, ctx.cover_max_height)
    except (OSError, ValueError) as exc:
        if ctx.verbose:
            print(f"[hpub] Skipped cover image {source_path}: {exc}")
    else:
        ctx.images_dir.mkdir(parents=True, exist_ok=True)
        ctx.cover_image = ctx.kneader.fetcher.save_unique(
            ctx.images_dir, dest_image, resized
        )

    html = '<div id="cover-image">'
    if ctx.cover_image:
        alt = html_escape(_meta(metadata, "title"))
        html += f'<img src="images/{ctx.cover_image}" alt="{alt}" />'
    html += "</div>\n"

    post_title = "Cover"
    filename = page_filename(COVER_FILE_ID)
    _write_page(ctx, filename, post_title, html)
    ctx.manifest.append(
        COVER_FILE_ID, ManifestEntry(NO_SOURCE_ID, post_title, filename)
    )


def create_title(ctx: RenderContext, contents: BookContents, metadata: Mapping[str, str]) -> None:
    content = ""
    for record in contents.front_matter:
        if not record.export:
            continue
        if record.front_matter_type is not FrontMatterType.TITLE_PAGE:
            continue
        content = ctx.kneader.knead(record.content, SectionKind.FRONT_MATTER.value)
        break

    html = '<div id="title-page">'
    if content:
        html += content
    else:
        html += f'<h1 class="title">{html_escape(_meta(metadata, "title"))}</h1>'
        html += f'<h2 class="subtitle">{html_escape(_meta(metadata, "subtitle"))}</h2>'
        html += '<div class="logo"></div>'
        html += f'<h3 class="author">{html_escape(_meta(metadata, "author"))}</h3>'
        html += f'<h4 class="publisher">{html_escape(_meta(metadata, "publisher"))}</h4>'
        html += (
            '<h5 class="publisher-city">'
            f'{html_escape(_meta(metadata, "publisher_city"))}</h5>'
        )
    html += "</div>\n"

    post_title = "Title Page"
    filename = page_filename(TITLE_PAGE_FILE_ID)
    _write_page(ctx, filename, post_title, html)
    ctx.manifest.append(
        TITLE_PAGE_FILE_ID, ManifestEntry(NO_SOURCE_ID, post_title, filename)
    )


def create_copyright(ctx: RenderContext, contents: BookContents, metadata: Mapping[str, str]) -> None:
    html = '<div id="copyright-page"><div class="ugc">'
    custom_copyright = _meta(metadata, "custom_copyright")
    if custom_copyright:
        html += ctx.kneader.knead(custom_copyright, "custom")
    else:
        year = _meta(metadata, "copyright_year") or str(datetime.date.today().year)
        html += "<p>"
        html += f"{html_escape(_meta(metadata, 'title'))} Copyright &#169; {html_escape(year)}"
        holder = _meta(metadata, "copyright_holder")
        if holder:
            html += f" by {html_escape(holder)}. "
        html += "</p>"
    html += f"<p>{ATTRIBUTION_NOTICE}</p>"
    html += "</div></div>\n"

    post_title = "Copyright"
    filename = page_filename(COPYRIGHT_FILE_ID)
    _write_page(ctx, filename, post_title, html)
    ctx.manifest.append(
        COPYRIGHT_FILE_ID, ManifestEntry(NO_SOURCE_ID, post_title, filename)
    )


def _write_front_matter(
    ctx: RenderContext, record: SectionRecord, position: int, with_headers: bool
) -> None:
    subclass = record.front_matter_type.css_class
    content = ctx.kneader.knead(record.content, SectionKind.FRONT_MATTER.value, position)
    if with_headers:
        content = _prefix_section_headers(record, content)
    html = _render_matter_block(
        SectionKind.FRONT_MATTER,
        subclass,
        record.slug,
        position,
        record.display_title,
        content,
    )
    file_id = section_file_id(SectionKind.FRONT_MATTER, position)
    filename = section_filename(SectionKind.FRONT_MATTER, position, record.slug)
    _write_page(ctx, filename, record.title, html)
    ctx.manifest.append(
        file_id,
        ManifestEntry(
            record.id, record.title, filename, SectionKind.FRONT_MATTER, subclass
        ),
    )


def create_dedication_and_epigraph(
    ctx: RenderContext, contents: BookContents, metadata: Mapping[str, str]
) -> None:
    position = 1
    last_pos: Optional[int] = None
    for subtype in (FrontMatterType.DEDICATION, FrontMatterType.EPIGRAPH):
        for record in contents.front_matter:
            if not record.export or record.front_matter_type is not subtype:
                continue
            _write_front_matter(ctx, record, position, with_headers=False)
            last_pos = position
            position += 1
    ctx.front_matter_pos = position
    if last_pos:
        ctx.front_matter_last_pos = last_pos


def create_front_matter(
    ctx: RenderContext, contents: BookContents, metadata: Mapping[str, str]
) -> None:
    position = ctx.front_matter_pos
    for record in contents.front_matter:
        if not record.export:
            continue
        subtype = record.front_matter_type
        if subtype.is_handled_separately:
            continue
        if subtype.is_introduction:
            ctx.has_introduction = True
        _write_front_matter(ctx, record, position, with_headers=True)
        position += 1
    ctx.front_matter_pos = position


def create_parts_and_chapters(
    ctx: RenderContext, contents: BookContents, metadata: Mapping[str, str]
) -> None:
    multiple_parts = len(contents.parts) > 1
    part_pos = chapter_pos = 1
    for part in contents.parts:
        array_pos = len(ctx.manifest)
        has_chapters = False
        part_is_introduction = False
        if not ctx.has_introduction and multiple_parts:
            part_is_introduction = True
            ctx.has_introduction = True

        for chapter in part.chapters:
            if not chapter.export:
                continue
            content = ctx.kneader.knead(
                chapter.content, SectionKind.CHAPTER.value, chapter_pos
            )
            content = _prefix_section_headers(chapter, content)
            chapter_is_introduction = not ctx.has_introduction
            if chapter_is_introduction:
                ctx.has_introduction = True
            html = _render_chapter_block(
                chapter.slug,
                chapter_pos,
                chapter.display_title,
                content,
                chapter_is_introduction,
            )
            file_id = section_file_id(SectionKind.CHAPTER, chapter_pos)
            filename = section_filename(SectionKind.CHAPTER, chapter_pos, chapter.slug)
            _write_page(ctx, filename, chapter.title, html)
            ctx.manifest.append(
                file_id,
                ManifestEntry(chapter.id, chapter.title, filename, SectionKind.CHAPTER),
            )
            has_chapters = True
            chapter_pos += 1

        if has_chapters and multiple_parts:
            html = _render_part_block(
                part.slug, part_pos, part.title, part_is_introduction
            )
            file_id = section_file_id(SectionKind.PART, part_pos)
            filename = section_filename(SectionKind.PART, part_pos, part.slug)
            _write_page(ctx, filename, part.title, html)
            # Parts go ahead of the chapters they contain.
            ctx.manifest.insert(
                array_pos,
                file_id,
                ManifestEntry(part.id, part.title, filename, SectionKind.PART),
            )
            part_pos += 1

        if part_is_introduction and not has_chapters:
            ctx.has_introduction = False


def create_back_matter(
    ctx: RenderContext, contents: BookContents, metadata: Mapping[str, str]
) -> None:
    position = 1
    for record in contents.back_matter:
        if not record.export:
            continue
        subclass = record.back_matter_type.css_class
        content = ctx.kneader.knead(record.content, SectionKind.BACK_MATTER.value, position)
        html = _render_matter_block(
            SectionKind.BACK_MATTER,
            subclass,
            record.slug,
            position,
            record.display_title,
            content,
        )
        file_id = section_file_id(SectionKind.BACK_MATTER, position)
        filename = section_filename(SectionKind.BACK_MATTER, position, record.slug)
        _write_page(ctx, filename, record.title, html)
        ctx.manifest.append(
            file_id,
            ManifestEntry(
                record.id, record.title, filename, SectionKind.BACK_MATTER, subclass
            ),
        )
        position += 1


def _render_toc_item(entry: ManifestEntry, record: Optional[SectionRecord]) -> Optional[str]:
    subtitle = ""
    author = ""
    if entry.kind is SectionKind.FRONT_MATTER:
        css_class = f"front-matter {entry.subtype}"
        if record is not None:
            subtitle, author = record.subtitle.strip(), record.author.strip()
    elif entry.kind is SectionKind.PART:
        css_class = "part"
    elif entry.kind is SectionKind.CHAPTER:
        css_class = "chapter"
        if record is not None:
            subtitle, author = record.subtitle.strip(), record.author.strip()
    elif entry.kind is SectionKind.BACK_MATTER:
        css_class = f"back-matter {entry.subtype}"
    else:
        return None
    item = f'<li class="{css_class}"><a href="{entry.filename}">{entry.title}'
    if subtitle:
        item += f' <span class="chapter-subtitle">{html_escape(subtitle)}</span>'
    if author:
        item += f' <span class="chapter-author">{html_escape(author)}</span>'
    return item + "</a></li>\n"


def create_toc(ctx: RenderContext, contents: BookContents, metadata: Mapping[str, str]) -> None:
    """Insert the contents page and list the manifest. Must run last."""
    post_title = "Table Of Contents"
    filename = page_filename(TOC_FILE_ID)
    anchor = toc_anchor(ctx.manifest, ctx.front_matter_last_pos)
    ctx.manifest.insert_after(
        anchor, TOC_FILE_ID, ManifestEntry(NO_SOURCE_ID, post_title, filename)
    )

    records = {record.id: record for record in contents.iter_records()}
    html = '<div id="toc"><h1>Contents</h1><ul>'
    for _, entry in ctx.manifest.items():
        item = _render_toc_item(entry, records.get(entry.source_id))
        if item:
            html += item
    html += "</ul></div>\n"
    _write_page(ctx, filename, post_title, html)


def create_content(
    ctx: RenderContext, contents: BookContents, metadata: Mapping[str, str]
) -> Manifest:
    ctx.manifest = Manifest()
    # Order matters: each step appends to the manifest.
    create_cover(ctx, contents, metadata)
    create_title(ctx, contents, metadata)
    create_copyright(ctx, contents, metadata)
    create_dedication_and_epigraph(ctx, contents, metadata)
    create_front_matter(ctx, contents, metadata)
    create_parts_and_chapters(ctx, contents, metadata)
    create_back_matter(ctx, contents, metadata)
    create_toc(ctx, contents, metadata)
    return ctx.manifest
