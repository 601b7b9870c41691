import unittest
from pathlib import Path
from tempfile import TemporaryDirectory
from unittest.mock import Mock

from book_bundler.assets import AssetFetchError, ImageFetcher
from book_bundler.contents import BookContents, PartRecord, SectionRecord
from book_bundler.kneader import HtmlKneader
from book_bundler.renderers import (
    ATTRIBUTION_NOTICE,
    RenderContext,
    create_content,
    create_copyright,
    create_cover,
    create_title,
    render_html_template,
)

METADATA = {
    "title": "The Long Road",
    "author": "Ada Lane",
    "copyright_holder": "Ada Lane",
    "copyright_year": "2021",
}


def _context(work_dir: Path, **kwargs) -> RenderContext:
    kneader = HtmlKneader(
        work_dir / "images", ImageFetcher(fetch=Mock(side_effect=AssetFetchError("offline")))
    )
    kwargs.setdefault("resize", Mock(return_value=b"cover-bytes"))
    return RenderContext(work_dir=work_dir, stylesheet="book.css", kneader=kneader, **kwargs)


def _chapter(record_id: int, slug: str, **kwargs) -> SectionRecord:
    return SectionRecord(
        id=record_id, title=slug.title(), slug=slug, content=f"<p>{slug}</p>", **kwargs
    )


class TestRenderHtmlTemplate(unittest.TestCase):
    def test_links_stylesheet_and_sets_language(self) -> None:
        html = render_html_template(
            {"lang": "fr", "post_title": "Cover", "stylesheet": "book.css", "post_content": "<p/>"}
        )

        self.assertIn('<html lang="fr">', html)
        self.assertIn('href="css/book.css"', html)
        self.assertIn("<title>Cover</title>", html)


class TestSinglePages(unittest.TestCase):
    def test_cover_uses_resized_default_image(self) -> None:
        with TemporaryDirectory() as tmpdir:
            work_dir = Path(tmpdir)
            ctx = _context(work_dir)

            create_cover(ctx, BookContents(), METADATA)

            self.assertEqual(ctx.cover_image, "default-book-cover.png")
            self.assertEqual(
                (work_dir / "images" / "default-book-cover.png").read_bytes(), b"cover-bytes"
            )
            page = (work_dir / "front-cover.html").read_text(encoding="utf-8")
        self.assertIn('<img src="images/default-book-cover.png" alt="The Long Road" />', page)
        ctx.resize.assert_called_once()
        self.assertEqual(ctx.resize.call_args.args[1:], (1563, 2500))

    def test_cover_keeps_content_image_with_same_name(self) -> None:
        with TemporaryDirectory() as tmpdir:
            work_dir = Path(tmpdir)
            ctx = _context(work_dir)
            (work_dir / "images").mkdir()
            ctx.kneader.fetcher.save_unique(
                work_dir / "images", "default-book-cover.png", b"content-image"
            )

            create_cover(ctx, BookContents(), METADATA)

            images = work_dir / "images"
            self.assertEqual((images / "default-book-cover.png").read_bytes(), b"content-image")
            self.assertEqual((images / "default-book-cover-1.png").read_bytes(), b"cover-bytes")
            page = (work_dir / "front-cover.html").read_text(encoding="utf-8")
        self.assertEqual(ctx.cover_image, "default-book-cover-1.png")
        self.assertIn('src="images/default-book-cover-1.png"', page)

    def test_cover_without_usable_image_has_no_img(self) -> None:
        with TemporaryDirectory() as tmpdir:
            work_dir = Path(tmpdir)
            ctx = _context(work_dir, resize=Mock(side_effect=OSError("unreadable")))

            create_cover(ctx, BookContents(), {"cover_image": "/missing/cover.jpg"})

            page = (work_dir / "front-cover.html").read_text(encoding="utf-8")
        self.assertIsNone(ctx.cover_image)
        self.assertNotIn("<img", page)
        self.assertEqual(ctx.manifest.keys(), ["front-cover"])

    def test_title_page_prefers_exported_title_page_record(self) -> None:
        contents = BookContents(
            front_matter=[
                SectionRecord(id=1, type_tag="title-page", content="<h1>Custom</h1>")
            ]
        )
        with TemporaryDirectory() as tmpdir:
            work_dir = Path(tmpdir)
            create_title(_context(work_dir), contents, METADATA)

            page = (work_dir / "title-page.html").read_text(encoding="utf-8")
        self.assertIn('<div id="title-page"><h1>Custom</h1></div>', page)

    def test_title_page_falls_back_to_metadata(self) -> None:
        with TemporaryDirectory() as tmpdir:
            work_dir = Path(tmpdir)
            create_title(_context(work_dir), BookContents(), METADATA)

            page = (work_dir / "title-page.html").read_text(encoding="utf-8")
        self.assertIn('<h1 class="title">The Long Road</h1>', page)
        self.assertIn('<h3 class="author">Ada Lane</h3>', page)

    def test_copyright_page_lists_holder_and_notice(self) -> None:
        with TemporaryDirectory() as tmpdir:
            work_dir = Path(tmpdir)
            create_copyright(_context(work_dir), BookContents(), METADATA)

            page = (work_dir / "copyright.html").read_text(encoding="utf-8")
        self.assertIn("The Long Road Copyright &#169; 2021 by Ada Lane.", page)
        self.assertIn(ATTRIBUTION_NOTICE, page)

    def test_custom_copyright_replaces_default_text(self) -> None:
        metadata = dict(METADATA, custom_copyright="<p>All rights reserved.</p>")
        with TemporaryDirectory() as tmpdir:
            work_dir = Path(tmpdir)
            create_copyright(_context(work_dir), BookContents(), metadata)

            page = (work_dir / "copyright.html").read_text(encoding="utf-8")
        self.assertIn("<p>All rights reserved.</p>", page)
        self.assertNotIn("&#169;", page)


class TestCreateContent(unittest.TestCase):
    def test_single_part_book_has_no_part_page(self) -> None:
        contents = BookContents(
            front_matter=[
                SectionRecord(id=1, title="Preface", slug="preface", type_tag="preface")
            ],
            parts=[
                PartRecord(
                    id=2,
                    title="Main Body",
                    slug="main-body",
                    chapters=[
                        _chapter(3, "arrival", subtitle="A beginning"),
                        _chapter(4, "departure"),
                    ],
                )
            ],
            back_matter=[
                SectionRecord(id=5, title="Notes", slug="notes", type_tag="notes")
            ],
        )
        with TemporaryDirectory() as tmpdir:
            work_dir = Path(tmpdir)
            manifest = create_content(_context(work_dir), contents, METADATA)

            first = (work_dir / "chapter-001-arrival.html").read_text(encoding="utf-8")
            second = (work_dir / "chapter-002-departure.html").read_text(encoding="utf-8")
            toc = (work_dir / "table-of-contents.html").read_text(encoding="utf-8")

        self.assertEqual(
            manifest.keys(),
            [
                "front-cover",
                "title-page",
                "copyright",
                "table-of-contents",
                "front-matter-001",
                "chapter-001",
                "chapter-002",
                "back-matter-001",
            ],
        )
        self.assertIn('class="chapter introduction"', first)
        self.assertIn('<h2 class="chapter-subtitle">A beginning</h2>', first)
        self.assertNotIn("introduction", second)
        self.assertIn(
            '<li class="front-matter preface"><a href="front-matter-001-preface.html">Preface</a></li>',
            toc,
        )
        self.assertIn(
            '<li class="chapter"><a href="chapter-001-arrival.html">Arrival '
            '<span class="chapter-subtitle">A beginning</span></a></li>',
            toc,
        )
        self.assertIn('<li class="back-matter notes">', toc)
        self.assertNotIn("front-cover.html", toc)

    def test_dedication_and_epigraph_open_the_book(self) -> None:
        contents = BookContents(
            front_matter=[
                SectionRecord(id=1, title="Preface", slug="preface", type_tag="preface"),
                SectionRecord(id=2, title="Epigraph", slug="epigraph", type_tag="epigraph"),
                SectionRecord(id=3, title="For Sam", slug="for-sam", type_tag="dedication"),
            ],
            parts=[PartRecord(id=4, slug="main", chapters=[_chapter(5, "arrival")])],
        )
        with TemporaryDirectory() as tmpdir:
            work_dir = Path(tmpdir)
            ctx = _context(work_dir)
            manifest = create_content(ctx, contents, METADATA)

            files = {path.name for path in work_dir.iterdir()}

        self.assertEqual(
            manifest.keys(),
            [
                "front-cover",
                "title-page",
                "copyright",
                "front-matter-001",
                "front-matter-002",
                "table-of-contents",
                "front-matter-003",
                "chapter-001",
            ],
        )
        self.assertEqual(ctx.front_matter_last_pos, 2)
        self.assertIn("front-matter-001-for-sam.html", files)
        self.assertIn("front-matter-002-epigraph.html", files)
        self.assertIn("front-matter-003-preface.html", files)

    def test_parts_precede_their_chapters(self) -> None:
        contents = BookContents(
            parts=[
                PartRecord(
                    id=1,
                    title="Part One",
                    slug="part-one",
                    chapters=[_chapter(2, "arrival"), _chapter(3, "journey")],
                ),
                PartRecord(
                    id=4, title="Part Two", slug="part-two", chapters=[_chapter(5, "home")]
                ),
            ]
        )
        with TemporaryDirectory() as tmpdir:
            work_dir = Path(tmpdir)
            manifest = create_content(_context(work_dir), contents, METADATA)

            part_one = (work_dir / "part-001-part-one.html").read_text(encoding="utf-8")
            chapter_one = (work_dir / "chapter-001-arrival.html").read_text(encoding="utf-8")

        self.assertEqual(
            manifest.keys()[4:],
            ["part-001", "chapter-001", "chapter-002", "part-002", "chapter-003"],
        )
        self.assertIn('class="part introduction"', part_one)
        self.assertNotIn("introduction", chapter_one)

    def test_empty_part_hands_introduction_to_next_part(self) -> None:
        contents = BookContents(
            parts=[
                PartRecord(
                    id=1,
                    title="Drafts",
                    slug="drafts",
                    chapters=[_chapter(2, "unused", export=False)],
                ),
                PartRecord(
                    id=3, title="Part Two", slug="part-two", chapters=[_chapter(4, "home")]
                ),
            ]
        )
        with TemporaryDirectory() as tmpdir:
            work_dir = Path(tmpdir)
            manifest = create_content(_context(work_dir), contents, METADATA)

            part = (work_dir / "part-001-part-two.html").read_text(encoding="utf-8")

        self.assertEqual(manifest.keys()[4:], ["part-001", "chapter-001"])
        self.assertIn('class="part introduction"', part)

    def test_introduction_front_matter_takes_the_introduction(self) -> None:
        contents = BookContents(
            front_matter=[
                SectionRecord(
                    id=1, title="Introduction", slug="intro", type_tag="introduction"
                )
            ],
            parts=[PartRecord(id=2, slug="main", chapters=[_chapter(3, "arrival")])],
        )
        with TemporaryDirectory() as tmpdir:
            work_dir = Path(tmpdir)
            create_content(_context(work_dir), contents, METADATA)

            chapter = (work_dir / "chapter-001-arrival.html").read_text(encoding="utf-8")

        self.assertNotIn("introduction", chapter)

    def test_section_headers_put_author_first(self) -> None:
        headers = dict(short_title="Short", subtitle="Sub", author="Ada Lane")
        contents = BookContents(
            front_matter=[
                SectionRecord(
                    id=1,
                    title="Preface",
                    slug="preface",
                    type_tag="preface",
                    content="<p>Body</p>",
                    **headers,
                )
            ],
            parts=[PartRecord(id=2, slug="main", chapters=[_chapter(3, "arrival", **headers)])],
        )
        expected = (
            '<h2 class="chapter-author">Ada Lane</h2>'
            '<h2 class="chapter-subtitle">Sub</h2>'
            '<h6 class="short-title">Short</h6>'
        )
        with TemporaryDirectory() as tmpdir:
            work_dir = Path(tmpdir)
            create_content(_context(work_dir), contents, METADATA)

            preface = (work_dir / "front-matter-001-preface.html").read_text(encoding="utf-8")
            chapter = (work_dir / "chapter-001-arrival.html").read_text(encoding="utf-8")

        self.assertIn(f'<div class="ugc front-matter-ugc">{expected}<p>Body</p></div>', preface)
        self.assertIn(f'<div class="ugc chapter-ugc">{expected}<p>arrival</p></div>', chapter)

    def test_toc_lists_subtitle_and_author(self) -> None:
        contents = BookContents(
            front_matter=[
                SectionRecord(
                    id=1,
                    title="Foreword",
                    slug="foreword",
                    type_tag="foreword",
                    subtitle="Why now",
                    author="Sam Reed",
                )
            ],
            parts=[
                PartRecord(
                    id=2, slug="main", chapters=[_chapter(3, "arrival", author="Ada Lane")]
                )
            ],
        )
        with TemporaryDirectory() as tmpdir:
            work_dir = Path(tmpdir)
            create_content(_context(work_dir), contents, METADATA)

            toc = (work_dir / "table-of-contents.html").read_text(encoding="utf-8")

        self.assertIn(
            '<li class="front-matter foreword"><a href="front-matter-001-foreword.html">Foreword '
            '<span class="chapter-subtitle">Why now</span> '
            '<span class="chapter-author">Sam Reed</span></a></li>',
            toc,
        )
        self.assertIn(
            '<li class="chapter"><a href="chapter-001-arrival.html">Arrival '
            '<span class="chapter-author">Ada Lane</span></a></li>',
            toc,
        )
