import unittest

from book_bundler.sanitize import (
    canonicalize_url,
    filename_from_url,
    sanitize_file_name,
    sanitize_slug,
    sanitize_xml_attribute,
)


class TestSanitizeText(unittest.TestCase):
    def test_sanitize_xml_attribute_escapes_markup_once(self) -> None:
        self.assertEqual(
            sanitize_xml_attribute("Tom &amp; Jerry <b>\x01"),
            "Tom &amp; Jerry &lt;b&gt;",
        )

    def test_sanitize_xml_attribute_escapes_quotes(self) -> None:
        self.assertEqual(sanitize_xml_attribute('Say "hi"'), "Say &quot;hi&quot;")

    def test_sanitize_slug_matches_slugify(self) -> None:
        self.assertEqual(sanitize_slug("Chapter One: Début"), "chapter-one-debut")

    def test_sanitize_file_name_removes_special_characters(self) -> None:
        self.assertEqual(sanitize_file_name("My Photo (1).JPG"), "My-Photo-1.JPG")
        self.assertEqual(sanitize_file_name("café #2.png"), "cafe-2.png")

    def test_filename_from_url_drops_query_and_decodes(self) -> None:
        self.assertEqual(
            filename_from_url("http://x.example/img/My%20Pic.png?w=300#top"),
            "My-Pic.png",
        )


class TestCanonicalizeUrl(unittest.TestCase):
    def test_lowercases_scheme_and_host(self) -> None:
        self.assertEqual(
            canonicalize_url("HTTP://Example.COM/Path/"), "http://example.com/Path"
        )

    def test_scheme_relative_url_gets_http(self) -> None:
        self.assertEqual(
            canonicalize_url("//cdn.example.com/a b.png"),
            "http://cdn.example.com/a%20b.png",
        )

    def test_non_http_scheme_is_replaced(self) -> None:
        self.assertEqual(
            canonicalize_url("ftp://files.example.com/x"), "http://files.example.com/x"
        )

    def test_bare_host_gets_http(self) -> None:
        self.assertEqual(canonicalize_url("www.example.com"), "http://www.example.com")

    def test_relative_and_opaque_references_are_untouched(self) -> None:
        self.assertEqual(
            canonicalize_url(" chapter-003-arrival.html "), "chapter-003-arrival.html"
        )
        self.assertEqual(canonicalize_url("mailto:ed@example.com"), "mailto:ed@example.com")
        self.assertEqual(canonicalize_url("#note-1"), "#note-1")

    def test_is_idempotent(self) -> None:
        once = canonicalize_url("www.Example.com/a path/")
        self.assertEqual(once, "http://www.example.com/a%20path")
        self.assertEqual(canonicalize_url(once), once)
