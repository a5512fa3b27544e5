"""Per-page rule evaluation.

Rules are an explicit, ordered list of (name, check) pairs. Each check looks
at one page only and returns True for PASS; anything it cannot prove resolves
to FAIL. The two duplicate rules have no per-page check: they are emitted as
PENDING and resolved by the corpus analyzer once every page is in.
"""

import re
from dataclasses import dataclass, field
from typing import Callable, Optional
from urllib.parse import urljoin, urlsplit, urlunsplit

from metadata_audit.config import RuleThresholds
from metadata_audit.locales import LocaleLayout
from metadata_audit.models import PageMetadata, RegistryOverride, RuleResult, RuleStatus


@dataclass(frozen=True)
class RuleContext:
    """Everything a rule may know besides the page itself."""

    layout: LocaleLayout
    locale: str
    thresholds: RuleThresholds = field(default_factory=RuleThresholds)

    @property
    def base_url(self) -> str:
        return self.layout.base_url


@dataclass(frozen=True)
class PageFacts:
    """Effective values a rule sees: registry override first, scraped second."""

    url: str
    title: Optional[str]
    description: Optional[str]
    og_title: Optional[str]
    og_description: Optional[str]
    canonical_url: Optional[str]
    robots_meta: Optional[str]
    title_pixel_width: Optional[int]

    @classmethod
    def build(
        cls,
        metadata: PageMetadata,
        override: Optional[RegistryOverride],
        thresholds: RuleThresholds,
    ) -> "PageFacts":
        override = override or RegistryOverride()
        title = override.title or metadata.title
        return cls(
            url=metadata.url,
            title=title,
            description=override.description or metadata.meta_description,
            og_title=override.og_title or metadata.og_title,
            og_description=override.og_description or metadata.og_description,
            canonical_url=metadata.canonical_url,
            robots_meta=metadata.robots_meta,
            title_pixel_width=(
                len(title) * thresholds.average_glyph_width_px if title is not None else None
            ),
        )


Check = Callable[[PageFacts, RuleContext], bool]


def has_noindex(robots_meta: Optional[str]) -> bool:
    return bool(robots_meta) and "noindex" in robots_meta.lower()


def is_indexable(metadata: PageMetadata) -> bool:
    """200 response and no noindex robots directive."""
    return metadata.http_status == 200 and not has_noindex(metadata.robots_meta)


def _normalize_url(url: str) -> str:
    parts = urlsplit(url)
    return urlunsplit((
        parts.scheme.lower(),
        parts.netloc.lower(),
        parts.path or "/",
        parts.query,
        parts.fragment,
    ))


def _resolve_canonical(page: PageFacts, ctx: RuleContext) -> Optional[str]:
    if not page.canonical_url:
        return None
    return urljoin(ctx.base_url.rstrip("/") + "/", page.canonical_url)


def _fits_pixel_budget(page: PageFacts, ctx: RuleContext) -> bool:
    return (
        page.title_pixel_width is not None
        and page.title_pixel_width <= ctx.thresholds.title_max_pixel_width
    )


def check_title_length(page: PageFacts, ctx: RuleContext) -> bool:
    if not page.title:
        return False
    t = ctx.thresholds
    return t.title_min_length <= len(page.title) <= t.title_max_length or _fits_pixel_budget(page, ctx)


def check_title_contains_tool_concept(page: PageFacts, ctx: RuleContext) -> bool:
    if not page.title:
        return False
    title = page.title.lower()
    return any(keyword.lower() in title for keyword in ctx.thresholds.tool_keywords)


def check_title_avoids_boilerplate(page: PageFacts, ctx: RuleContext) -> bool:
    if not page.title:
        return False
    return not any(phrase in page.title for phrase in ctx.thresholds.boilerplate_phrases)


def check_title_brand_consistent(page: PageFacts, ctx: RuleContext) -> bool:
    if not page.title:
        return False
    return any(page.title.endswith(suffix) for suffix in ctx.thresholds.brand_suffixes)


def check_title_no_truncation(page: PageFacts, ctx: RuleContext) -> bool:
    return bool(page.title) and _fits_pixel_budget(page, ctx)


def check_description_length(page: PageFacts, ctx: RuleContext) -> bool:
    if not page.description:
        return False
    t = ctx.thresholds
    return t.description_min_length <= len(page.description) <= t.description_max_length


def check_description_specific(page: PageFacts, ctx: RuleContext) -> bool:
    if not page.description:
        return False
    description = page.description.lower()
    return not any(phrase.lower() in description for phrase in ctx.thresholds.generic_phrases)


def check_description_no_language_mismatch(page: PageFacts, ctx: RuleContext) -> bool:
    locale = ctx.layout.locale_of(page.url)
    pattern = ctx.thresholds.script_patterns.get(locale) if locale else None
    if not pattern or not page.title or not page.description:
        return False
    return bool(
        re.search(pattern, page.title, re.IGNORECASE)
        and re.search(pattern, page.description, re.IGNORECASE)
    )


def check_canonical_self_referential(page: PageFacts, ctx: RuleContext) -> bool:
    canonical = _resolve_canonical(page, ctx)
    if canonical is None:
        return False
    return _normalize_url(canonical) == _normalize_url(page.url)


def check_canonical_not_cross_language(page: PageFacts, ctx: RuleContext) -> bool:
    canonical = _resolve_canonical(page, ctx)
    if canonical is None:
        return False
    page_locale = ctx.layout.locale_of(page.url)
    canonical_locale = ctx.layout.locale_of(canonical)
    if page_locale is None or canonical_locale is None:
        return True
    return page_locale == canonical_locale


def check_noindex_absent(page: PageFacts, ctx: RuleContext) -> bool:
    return not has_noindex(page.robots_meta)


def check_og_title_present(page: PageFacts, ctx: RuleContext) -> bool:
    return bool(page.og_title and page.og_title.strip())


def check_og_description_present(page: PageFacts, ctx: RuleContext) -> bool:
    return bool(page.og_description and page.og_description.strip())


TITLE_NO_DUPLICATES = "title_no_duplicates"
DESCRIPTION_NO_DUPLICATES = "description_no_duplicates"

# Evaluation and column order. None marks a rule resolved by corpus analysis.
RULES: list[tuple[str, Optional[Check]]] = [
    ("title_length", check_title_length),
    ("title_contains_tool_concept", check_title_contains_tool_concept),
    ("title_avoids_boilerplate", check_title_avoids_boilerplate),
    (TITLE_NO_DUPLICATES, None),
    ("title_brand_consistent", check_title_brand_consistent),
    ("title_no_truncation", check_title_no_truncation),
    ("description_length", check_description_length),
    ("description_specific", check_description_specific),
    (DESCRIPTION_NO_DUPLICATES, None),
    ("description_no_language_mismatch", check_description_no_language_mismatch),
    ("canonical_self_referential", check_canonical_self_referential),
    ("canonical_not_cross_language", check_canonical_not_cross_language),
    ("noindex_absent", check_noindex_absent),
    ("og_title_present", check_og_title_present),
    ("og_description_present", check_og_description_present),
]

RULE_NAMES: list[str] = [name for name, _ in RULES]

DUPLICATE_RULES: dict[str, str] = {
    "title": TITLE_NO_DUPLICATES,
    "description": DESCRIPTION_NO_DUPLICATES,
}


def evaluate(
    metadata: PageMetadata,
    context: RuleContext,
    override: Optional[RegistryOverride] = None,
) -> RuleResult:
    """Evaluate every rule against one page.

    Args:
        metadata: Extracted page metadata
        context: Layout, locale and thresholds for this page
        override: Curated registry values, preferred over scraped ones

    Returns:
        Ordered mapping of rule name to status; duplicate rules are PENDING
    """
    if metadata is None or context is None:
        raise TypeError("evaluate() requires metadata and a context")

    page = PageFacts.build(metadata, override, context.thresholds)
    result: RuleResult = {}
    for name, check in RULES:
        if check is None:
            result[name] = RuleStatus.PENDING
        else:
            result[name] = RuleStatus.PASS if check(page, context) else RuleStatus.FAIL
    return result
