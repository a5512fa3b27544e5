"""Tests for metadata extraction."""

import pytest

from metadata_audit.extractor import (
    RegexMetadataExtractor,
    SoupMetadataExtractor,
    extract,
    get_extractor,
)
from metadata_audit.models import HreflangLink


FULL_PAGE = """
<!DOCTYPE html>
<html lang="en">
<head>
    <meta charset="utf-8">
    <title>
        Word Counter Tool | Text Case Converter
    </title>
    <meta name="description" content="Count words &amp; characters instantly.">
    <meta name="description" content="Second description is ignored">
    <meta name="robots" content="index, follow">
    <link rel="canonical" href="https://example.com/tools/word-counter">
    <meta property="og:title" content="Word Counter">
    <meta property="og:description" content="Count words online">
    <link rel="alternate" hreflang="en" href="https://example.com/tools/word-counter">
    <link rel="alternate" hreflang="ru" href="https://example.com/ru/tools/word-counter">
    <link rel="alternate" href="https://example.com/feed.xml">
</head>
<body>
    <h1>Word <span>Counter</span></h1>
    <h1>Second heading</h1>
</body>
</html>
"""


@pytest.fixture(params=["regex", "soup"])
def extractor(request):
    """Run each test against both extractors."""
    return get_extractor(request.param)


class TestMetadataExtractor:
    """Behaviour shared by every extractor."""

    def test_extracts_all_fields(self, extractor):
        """Test a fully populated page."""
        metadata = extractor.extract(FULL_PAGE, "https://example.com/tools/word-counter")

        assert metadata.url == "https://example.com/tools/word-counter"
        assert metadata.title == "Word Counter Tool | Text Case Converter"
        assert metadata.meta_description == "Count words & characters instantly."
        assert metadata.robots_meta == "index, follow"
        assert metadata.canonical_url == "https://example.com/tools/word-counter"
        assert metadata.og_title == "Word Counter"
        assert metadata.og_description == "Count words online"
        assert metadata.h1 == "Word Counter"
        assert metadata.detected_language == "en"

    def test_first_match_wins(self, extractor):
        """Test singular fields keep the first occurrence."""
        metadata = extractor.extract(FULL_PAGE, "https://example.com/tools/word-counter")

        assert metadata.meta_description == "Count words & characters instantly."
        assert metadata.h1 == "Word Counter"

    def test_hreflang_requires_both_attributes(self, extractor):
        """Test alternates without hreflang are skipped."""
        metadata = extractor.extract(FULL_PAGE, "https://example.com/tools/word-counter")

        assert metadata.hreflang == [
            HreflangLink(lang="en", href="https://example.com/tools/word-counter"),
            HreflangLink(lang="ru", href="https://example.com/ru/tools/word-counter"),
        ]

    def test_missing_fields_are_none(self, extractor):
        """Test absence is None, never an empty string."""
        metadata = extractor.extract("<html><body><p>nothing</p></body></html>", "https://example.com/x")

        assert metadata.title is None
        assert metadata.meta_description is None
        assert metadata.h1 is None
        assert metadata.canonical_url is None
        assert metadata.robots_meta is None
        assert metadata.og_title is None
        assert metadata.og_description is None
        assert metadata.detected_language is None
        assert metadata.hreflang == []
        assert metadata.title_pixel_width is None
        assert metadata.description_character_count is None

    def test_empty_body(self, extractor):
        """Test an empty body yields an empty record."""
        metadata = extractor.extract("", "https://example.com/x")

        assert metadata.url == "https://example.com/x"
        assert metadata.title is None

    def test_none_arguments_rejected(self, extractor):
        """Test None body or URL is a programming error."""
        with pytest.raises(TypeError):
            extractor.extract(None, "https://example.com/x")
        with pytest.raises(TypeError):
            extractor.extract("<html></html>", None)

    def test_derived_fields(self, extractor):
        """Test pixel width and description length."""
        html = '<title>abcdefghij</title><meta name="description" content="twelve chars">'
        metadata = extractor.extract(html, "https://example.com/x")

        assert metadata.title_pixel_width == 60
        assert metadata.description_character_count == 12

    def test_attribute_order_does_not_matter(self, extractor):
        """Test content before name is still recognised."""
        html = (
            '<meta content="Described" name="description">'
            "<link href='/tools/x' rel='canonical'>"
            '<meta content="noindex" name="ROBOTS">'
        )
        metadata = extractor.extract(html, "https://example.com/tools/x")

        assert metadata.meta_description == "Described"
        assert metadata.canonical_url == "/tools/x"
        assert metadata.robots_meta == "noindex"

    def test_empty_title_is_kept(self, extractor):
        """Test a present but empty title is an empty string."""
        metadata = extractor.extract("<title></title>", "https://example.com/x")

        assert metadata.title == ""
        assert metadata.title_pixel_width == 0

    def test_russian_page(self, extractor):
        """Test non-ASCII content survives extraction."""
        html = (
            '<html lang="ru"><head><title>Счётчик слов | Text Case Converter</title>'
            '<meta name="description" content="Подсчёт слов онлайн"></head></html>'
        )
        metadata = extractor.extract(html, "https://example.com/ru/tools/word-counter")

        assert metadata.title == "Счётчик слов | Text Case Converter"
        assert metadata.meta_description == "Подсчёт слов онлайн"
        assert metadata.detected_language == "ru"


class TestExtractorSelection:
    """Tests for extractor lookup."""

    def test_get_extractor_by_name(self):
        """Test both names resolve."""
        assert isinstance(get_extractor("regex"), RegexMetadataExtractor)
        assert isinstance(get_extractor("soup"), SoupMetadataExtractor)

    def test_unknown_extractor(self):
        """Test unknown names are rejected."""
        with pytest.raises(ValueError):
            get_extractor("lxml-magic")

    def test_custom_glyph_width(self):
        """Test glyph width is configurable."""
        extractor = get_extractor("regex", average_glyph_width_px=10)
        metadata = extractor.extract("<title>abc</title>", "https://example.com/x")

        assert metadata.title_pixel_width == 30

    def test_module_level_extract(self):
        """Test the default extractor shortcut."""
        metadata = extract("<title>Hello</title>", "https://example.com/x")

        assert metadata.title == "Hello"
