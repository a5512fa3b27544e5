"""Data models for the metadata audit."""

from dataclasses import dataclass, field
from enum import Enum
from typing import Optional


class RuleStatus(str, Enum):
    """Outcome of one rule on one page.

    PENDING only ever appears on the duplicate rules between per-page
    evaluation and corpus analysis.
    """

    PENDING = "PENDING"
    PASS = "PASS"
    FAIL = "FAIL"


# Ordered mapping of rule name to status
RuleResult = dict[str, RuleStatus]


class FetchErrorKind(str, Enum):
    """Reasons a page could not be fetched."""

    TIMEOUT = "timeout"
    NETWORK = "network"
    REDIRECT_LOOP = "redirect_loop"
    PROCESSING = "processing"  # fetched, but extraction or evaluation failed


@dataclass
class HreflangLink:
    """One <link rel="alternate" hreflang=...> entry."""

    lang: str
    href: str

    def to_dict(self) -> dict:
        return {"lang": self.lang, "href": self.href}


@dataclass
class PageMetadata:
    """Metadata extracted from one fetched page."""

    url: str
    http_status: Optional[int] = None
    title: Optional[str] = None
    meta_description: Optional[str] = None
    h1: Optional[str] = None
    canonical_url: Optional[str] = None
    robots_meta: Optional[str] = None
    x_robots_tag: Optional[str] = None
    og_title: Optional[str] = None
    og_description: Optional[str] = None
    hreflang: list[HreflangLink] = field(default_factory=list)
    detected_language: Optional[str] = None

    # Derived
    title_pixel_width: Optional[int] = None  # heuristic, see extractor
    description_character_count: Optional[int] = None

    def to_dict(self) -> dict:
        return {
            "url": self.url,
            "http_status": self.http_status,
            "title": self.title,
            "title_pixel_width": self.title_pixel_width,
            "meta_description": self.meta_description,
            "description_character_count": self.description_character_count,
            "h1": self.h1,
            "canonical": self.canonical_url,
            "robots_meta": self.robots_meta,
            "x_robots_tag": self.x_robots_tag,
            "og_title": self.og_title,
            "og_description": self.og_description,
            "hreflang": [link.to_dict() for link in self.hreflang],
            "detected_language": self.detected_language,
        }

    @classmethod
    def from_dict(cls, data: dict) -> "PageMetadata":
        return cls(
            url=data["url"],
            http_status=data.get("http_status"),
            title=data.get("title"),
            meta_description=data.get("meta_description"),
            h1=data.get("h1"),
            canonical_url=data.get("canonical"),
            robots_meta=data.get("robots_meta"),
            x_robots_tag=data.get("x_robots_tag"),
            og_title=data.get("og_title"),
            og_description=data.get("og_description"),
            hreflang=[
                HreflangLink(lang=item["lang"], href=item["href"])
                for item in data.get("hreflang") or []
            ],
            detected_language=data.get("detected_language"),
            title_pixel_width=data.get("title_pixel_width"),
            description_character_count=data.get("description_character_count"),
        )


@dataclass(frozen=True)
class RegistryOverride:
    """Curated metadata that takes precedence over scraped values."""

    title: Optional[str] = None
    description: Optional[str] = None
    og_title: Optional[str] = None
    og_description: Optional[str] = None


@dataclass
class FetchResult:
    """Successful HTTP exchange, after following redirects."""

    final_url: str
    status_code: int
    headers: dict[str, str]  # keys lowercased
    body: str
    redirect_chain: list[str] = field(default_factory=list)

    def header(self, name: str) -> Optional[str]:
        """Case-insensitive header lookup."""
        return self.headers.get(name.lower())


@dataclass
class FetchError:
    """A fetch that produced no usable response."""

    url: str
    kind: FetchErrorKind
    message: str


@dataclass(frozen=True)
class PageAuditRecord:
    """Audit outcome for one (slug, locale) page."""

    locale: str
    slug: str
    metadata: PageMetadata
    rules: RuleResult
    indexable: bool
    registry: Optional[RegistryOverride] = None

    @property
    def url(self) -> str:
        return self.metadata.url

    @property
    def effective_title(self) -> Optional[str]:
        return (self.registry and self.registry.title) or self.metadata.title

    @property
    def effective_description(self) -> Optional[str]:
        return (self.registry and self.registry.description) or self.metadata.meta_description

    @property
    def effective_og_title(self) -> Optional[str]:
        return (self.registry and self.registry.og_title) or self.metadata.og_title

    @property
    def effective_og_description(self) -> Optional[str]:
        return (self.registry and self.registry.og_description) or self.metadata.og_description

    def to_dict(self) -> dict:
        registry = self.registry or RegistryOverride()
        data = {"locale": self.locale, "slug": self.slug}
        data.update(self.metadata.to_dict())
        data.update({
            "indexable": self.indexable,
            "registry_title": registry.title,
            "registry_description": registry.description,
            "registry_og_title": registry.og_title,
            "registry_og_description": registry.og_description,
            "rules": {name: status.value for name, status in self.rules.items()},
        })
        return data

    @classmethod
    def from_dict(cls, data: dict) -> "PageAuditRecord":
        registry_values = {
            "title": data.get("registry_title"),
            "description": data.get("registry_description"),
            "og_title": data.get("registry_og_title"),
            "og_description": data.get("registry_og_description"),
        }
        registry = None
        if any(value is not None for value in registry_values.values()):
            registry = RegistryOverride(**registry_values)

        return cls(
            locale=data["locale"],
            slug=data["slug"],
            metadata=PageMetadata.from_dict(data),
            rules={name: RuleStatus(value) for name, value in (data.get("rules") or {}).items()},
            indexable=bool(data.get("indexable")),
            registry=registry,
        )


@dataclass
class FetchErrorRecord:
    """Corpus-level record of a page that could not be audited."""

    url: str
    error: str
    kind: str = FetchErrorKind.NETWORK.value
    slug: Optional[str] = None
    locale: Optional[str] = None

    def to_dict(self) -> dict:
        return {
            "url": self.url,
            "error": self.error,
            "kind": self.kind,
            "slug": self.slug,
            "locale": self.locale,
        }

    @classmethod
    def from_dict(cls, data: dict) -> "FetchErrorRecord":
        return cls(
            url=data["url"],
            error=data["error"],
            kind=data.get("kind", FetchErrorKind.NETWORK.value),
            slug=data.get("slug"),
            locale=data.get("locale"),
        )


@dataclass
class CorpusResult:
    """All records of one audit run, keyed by locale."""

    records: dict[str, list[PageAuditRecord]] = field(default_factory=dict)
    fetch_errors: list[FetchErrorRecord] = field(default_factory=list)

    @property
    def locales(self) -> list[str]:
        return list(self.records.keys())

    @property
    def total_records(self) -> int:
        return sum(len(records) for records in self.records.values())


@dataclass
class DuplicateGroup:
    """Pages of one locale sharing an identical field value."""

    field_name: str
    value: str
    count: int
    urls: list[str] = field(default_factory=list)

    def to_dict(self) -> dict:
        return {
            "field_name": self.field_name,
            "value": self.value,
            "count": self.count,
            "urls": self.urls,
        }


@dataclass
class RuleStats:
    """Pass/fail tally for one rule in one locale."""

    passed: int = 0
    failed: int = 0

    @property
    def evaluated(self) -> int:
        return self.passed + self.failed


@dataclass
class SummaryMetrics:
    """Locale-keyed aggregate numbers for one run."""

    total_pages_scanned: dict[str, int] = field(default_factory=dict)
    rule_pass_rates: dict[str, dict[str, int]] = field(default_factory=dict)
    title_rules_pass_rate: dict[str, int] = field(default_factory=dict)
    description_rules_pass_rate: dict[str, int] = field(default_factory=dict)
    duplicate_counts: dict[str, dict[str, int]] = field(default_factory=dict)
    canonical_errors: dict[str, int] = field(default_factory=dict)
    hreflang_errors: dict[str, int] = field(default_factory=dict)
    fetch_errors: int = 0

    def to_dict(self) -> dict:
        return {
            "total_pages_scanned": self.total_pages_scanned,
            "rule_pass_rates": self.rule_pass_rates,
            "title_rules_pass_rate": self.title_rules_pass_rate,
            "description_rules_pass_rate": self.description_rules_pass_rate,
            "duplicate_counts": self.duplicate_counts,
            "canonical_errors": self.canonical_errors,
            "hreflang_errors": self.hreflang_errors,
            "fetch_errors": self.fetch_errors,
        }


@dataclass
class EnrichedCorpus:
    """Corpus with duplicate rules resolved and aggregates computed."""

    corpus: CorpusResult
    duplicate_groups: dict[str, dict[str, list[DuplicateGroup]]] = field(default_factory=dict)
    rule_stats: dict[str, dict[str, RuleStats]] = field(default_factory=dict)
    summary: SummaryMetrics = field(default_factory=SummaryMetrics)

    @property
    def records(self) -> dict[str, list[PageAuditRecord]]:
        return self.corpus.records

    @property
    def fetch_errors(self) -> list[FetchErrorRecord]:
        return self.corpus.fetch_errors


@dataclass
class Issue:
    """One entry of the issue catalog."""

    issue_id: int
    rule: str
    evidence_example: str
    affected_urls_count: int
    sample_urls: list[str] = field(default_factory=list)

    def to_dict(self) -> dict:
        return {
            "issue_id": self.issue_id,
            "rule": self.rule,
            "evidence_example": self.evidence_example,
            "affected_urls_count": self.affected_urls_count,
            "sample_urls": self.sample_urls,
        }


@dataclass
class AuditReport:
    """Everything the report generator produces for one run."""

    csv: dict[str, str]
    issue_catalog: list[Issue]
    summary_metrics: SummaryMetrics
    text_summary: str = ""
