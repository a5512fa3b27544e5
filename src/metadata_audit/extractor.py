"""Metadata extraction from server-delivered HTML.

Two interchangeable extractors share one interface:

- RegexMetadataExtractor: structural pattern matching on tags and attributes,
  no DOM. This is the default; it is fast and tolerant of broken markup.
- SoupMetadataExtractor: the same fields read through BeautifulSoup.

Both keep the first match for singular fields and leave a field as None when
nothing matches. Missing tags are a normal outcome, not an error.
"""

import html
import re
from abc import ABC, abstractmethod
from typing import Optional

from bs4 import BeautifulSoup

from metadata_audit.constants import DEFAULT_AVERAGE_GLYPH_WIDTH_PX
from metadata_audit.models import HreflangLink, PageMetadata


TITLE_RE = re.compile(r"<title\b[^>]*>(.*?)</title\s*>", re.IGNORECASE | re.DOTALL)
H1_RE = re.compile(r"<h1\b[^>]*>(.*?)</h1\s*>", re.IGNORECASE | re.DOTALL)
TAG_RE = re.compile(r"<\s*(meta|link|html)\b([^>]*)>", re.IGNORECASE)
ATTR_RE = re.compile(
    r"""([^\s=/"'<>]+)\s*=\s*(?:"([^"]*)"|'([^']*)'|([^\s"'>]+))"""
)
INNER_TAG_RE = re.compile(r"<[^>]+>")


def _clean(value: Optional[str]) -> Optional[str]:
    if value is None:
        return None
    return html.unescape(value).strip()


class _FieldCollector:
    """Accumulates first-match fields from <meta>, <link> and <html> tags."""

    def __init__(self):
        self.meta_description: Optional[str] = None
        self.robots_meta: Optional[str] = None
        self.og_title: Optional[str] = None
        self.og_description: Optional[str] = None
        self.canonical_url: Optional[str] = None
        self.detected_language: Optional[str] = None
        self.hreflang: list[HreflangLink] = []

    def add(self, tag: str, attrs: dict[str, str]) -> None:
        """Feed one tag; attribute names must already be lowercased."""
        tag = tag.lower()
        if tag == "meta":
            self._add_meta(attrs)
        elif tag == "link":
            self._add_link(attrs)
        elif tag == "html" and self.detected_language is None and "lang" in attrs:
            self.detected_language = _clean(attrs["lang"])

    def _add_meta(self, attrs: dict[str, str]) -> None:
        if "content" not in attrs:
            return
        content = _clean(attrs["content"])
        name = attrs.get("name", "").strip().lower()
        prop = attrs.get("property", "").strip().lower()

        if name == "description" and self.meta_description is None:
            self.meta_description = content
        elif name == "robots" and self.robots_meta is None:
            self.robots_meta = content
        elif prop == "og:title" and self.og_title is None:
            self.og_title = content
        elif prop == "og:description" and self.og_description is None:
            self.og_description = content

    def _add_link(self, attrs: dict[str, str]) -> None:
        rel = attrs.get("rel", "").lower().split()
        if "href" not in attrs:
            return
        if "canonical" in rel and self.canonical_url is None:
            self.canonical_url = _clean(attrs["href"])
        elif "alternate" in rel and "hreflang" in attrs:
            self.hreflang.append(HreflangLink(
                lang=_clean(attrs["hreflang"]),
                href=_clean(attrs["href"]),
            ))


class MetadataExtractor(ABC):
    """Turns a raw HTML body into a PageMetadata record. Pure, no I/O."""

    def __init__(self, average_glyph_width_px: int = DEFAULT_AVERAGE_GLYPH_WIDTH_PX):
        """Initialize the extractor.

        Args:
            average_glyph_width_px: Width assumed for every title character
                when estimating the rendered title width
        """
        self.average_glyph_width_px = average_glyph_width_px

    def extract(self, body: str, url: str) -> PageMetadata:
        """Extract metadata from an HTML body.

        Args:
            body: Raw response body
            url: Final URL of the page

        Returns:
            PageMetadata with derived fields filled in
        """
        if body is None or url is None:
            raise TypeError("extract() requires a body and a URL")

        metadata = self._parse(body, url)

        # Character count times a fixed glyph width,
        # not a text-shaping measurement.
        if metadata.title is not None:
            metadata.title_pixel_width = self.pixel_width(metadata.title)
        if metadata.meta_description is not None:
            metadata.description_character_count = len(metadata.meta_description)

        return metadata

    def pixel_width(self, text: str) -> int:
        return len(text) * self.average_glyph_width_px

    @abstractmethod
    def _parse(self, body: str, url: str) -> PageMetadata:
        """Return metadata without derived fields."""


class RegexMetadataExtractor(MetadataExtractor):
    """Extracts metadata with regular expressions over the raw markup."""

    def _parse(self, body: str, url: str) -> PageMetadata:
        collector = _FieldCollector()
        for match in TAG_RE.finditer(body):
            collector.add(match.group(1), self._parse_attributes(match.group(2)))

        return PageMetadata(
            url=url,
            title=self._first_text(TITLE_RE, body),
            meta_description=collector.meta_description,
            h1=self._first_text(H1_RE, body),
            canonical_url=collector.canonical_url,
            robots_meta=collector.robots_meta,
            og_title=collector.og_title,
            og_description=collector.og_description,
            hreflang=collector.hreflang,
            detected_language=collector.detected_language,
        )

    @staticmethod
    def _parse_attributes(raw: str) -> dict[str, str]:
        attrs = {}
        for match in ATTR_RE.finditer(raw):
            name = match.group(1).lower()
            if name in attrs:
                continue
            value = next(
                (group for group in match.group(2, 3, 4) if group is not None), ""
            )
            attrs[name] = value
        return attrs

    @staticmethod
    def _first_text(pattern: re.Pattern, body: str) -> Optional[str]:
        match = pattern.search(body)
        if not match:
            return None
        return _clean(INNER_TAG_RE.sub("", match.group(1)))


class SoupMetadataExtractor(MetadataExtractor):
    """Extracts metadata through a BeautifulSoup DOM."""

    def __init__(
        self,
        average_glyph_width_px: int = DEFAULT_AVERAGE_GLYPH_WIDTH_PX,
        parser: str = "html.parser",
    ):
        super().__init__(average_glyph_width_px)
        self.parser = parser

    def _parse(self, body: str, url: str) -> PageMetadata:
        soup = BeautifulSoup(body, self.parser)
        collector = _FieldCollector()

        for tag in soup.find_all(["html", "meta", "link"]):
            attrs = {}
            for name, value in tag.attrs.items():
                # bs4 returns multi-valued attributes such as rel as lists
                attrs[name.lower()] = " ".join(value) if isinstance(value, list) else value
            collector.add(tag.name, attrs)

        title_tag = soup.find("title")
        h1_tag = soup.find("h1")

        return PageMetadata(
            url=url,
            title=title_tag.get_text().strip() if title_tag else None,
            meta_description=collector.meta_description,
            h1=h1_tag.get_text().strip() if h1_tag else None,
            canonical_url=collector.canonical_url,
            robots_meta=collector.robots_meta,
            og_title=collector.og_title,
            og_description=collector.og_description,
            hreflang=collector.hreflang,
            detected_language=collector.detected_language,
        )


EXTRACTORS = {
    "regex": RegexMetadataExtractor,
    "soup": SoupMetadataExtractor,
}


def get_extractor(name: str = "regex", **kwargs) -> MetadataExtractor:
    """Build an extractor by name ('regex' or 'soup')."""
    extractor_class = EXTRACTORS.get(name)
    if extractor_class is None:
        raise ValueError(f"Unknown extractor {name!r}; choose from {sorted(EXTRACTORS)}")
    return extractor_class(**kwargs)


def extract(body: str, url: str) -> PageMetadata:
    """Extract metadata with the default regex extractor."""
    return RegexMetadataExtractor().extract(body, url)
