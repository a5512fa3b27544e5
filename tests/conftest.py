"""Shared fixtures for metadata audit tests."""

from typing import Optional

import pytest

from metadata_audit.locales import LocaleLayout
from metadata_audit.models import PageAuditRecord, PageMetadata
from metadata_audit.rules import RuleContext, evaluate, is_indexable

BASE_URL = "https://example.com"


def build_page(
    title: Optional[str] = "Text Counter Online Free Tool | Text Case Converter",
    description: Optional[str] = None,
    canonical: Optional[str] = None,
    robots: Optional[str] = None,
    og_title: Optional[str] = None,
    og_description: Optional[str] = None,
    lang: str = "en",
    h1: Optional[str] = None,
    hreflang: tuple = (),
) -> str:
    """Render a minimal server-side HTML page."""
    head = []
    if title is not None:
        head.append(f"<title>{title}</title>")
    if description is not None:
        head.append(f'<meta name="description" content="{description}">')
    if robots is not None:
        head.append(f'<meta name="robots" content="{robots}">')
    if canonical is not None:
        head.append(f'<link rel="canonical" href="{canonical}">')
    if og_title is not None:
        head.append(f'<meta property="og:title" content="{og_title}">')
    if og_description is not None:
        head.append(f'<meta property="og:description" content="{og_description}">')
    for code, href in hreflang:
        head.append(f'<link rel="alternate" hreflang="{code}" href="{href}">')

    body = f"<h1>{h1}</h1>" if h1 is not None else ""
    return (
        f'<!DOCTYPE html><html lang="{lang}"><head>{"".join(head)}</head>'
        f"<body>{body}</body></html>"
    )


@pytest.fixture
def layout():
    """English at /tools/, Russian at /ru/tools/."""
    return LocaleLayout(base_url=BASE_URL, locales=("en", "ru"), default_locale="en")


@pytest.fixture
def make_record(layout):
    """Build a PageAuditRecord evaluated with the default thresholds."""

    def _make(slug, locale="en", override=None, **fields):
        url = layout.url_for(slug, locale)
        fields.setdefault("http_status", 200)
        metadata = PageMetadata(url=url, **fields)
        context = RuleContext(layout=layout, locale=locale)
        return PageAuditRecord(
            locale=locale,
            slug=slug,
            metadata=metadata,
            rules=evaluate(metadata, context, override),
            indexable=is_indexable(metadata),
            registry=override,
        )

    return _make
