"""Metadata crawl-and-audit pipeline for multilingual tool pages."""

__version__ = "0.1.0"

from metadata_audit.config import (
    AuditConfig,
    RuleThresholds,
    ValidationInputError,
)
from metadata_audit.locales import AuditTarget, LocaleLayout
from metadata_audit.fetcher import PageFetcher
from metadata_audit.extractor import (
    MetadataExtractor,
    RegexMetadataExtractor,
    SoupMetadataExtractor,
    get_extractor,
)
from metadata_audit.rules import RULE_NAMES, RuleContext, evaluate
from metadata_audit.registry import Registry
from metadata_audit.crawler import AuditCrawler
from metadata_audit.corpus_analyzer import CorpusAnalyzer, analyze
from metadata_audit.report_generator import ReportGenerator
from metadata_audit.output_manager import OutputManager
from metadata_audit.models import (
    PageMetadata,
    HreflangLink,
    RegistryOverride,
    RuleStatus,
    FetchResult,
    FetchError,
    FetchErrorKind,
    PageAuditRecord,
    FetchErrorRecord,
    CorpusResult,
    DuplicateGroup,
    SummaryMetrics,
    EnrichedCorpus,
    Issue,
    AuditReport,
)

__all__ = [
    # Configuration
    "AuditConfig",
    "RuleThresholds",
    "ValidationInputError",
    # Pipeline
    "AuditTarget",
    "LocaleLayout",
    "PageFetcher",
    "MetadataExtractor",
    "RegexMetadataExtractor",
    "SoupMetadataExtractor",
    "get_extractor",
    "RULE_NAMES",
    "RuleContext",
    "evaluate",
    "Registry",
    "AuditCrawler",
    "CorpusAnalyzer",
    "analyze",
    "ReportGenerator",
    "OutputManager",
    # Models
    "PageMetadata",
    "HreflangLink",
    "RegistryOverride",
    "RuleStatus",
    "FetchResult",
    "FetchError",
    "FetchErrorKind",
    "PageAuditRecord",
    "FetchErrorRecord",
    "CorpusResult",
    "DuplicateGroup",
    "SummaryMetrics",
    "EnrichedCorpus",
    "Issue",
    "AuditReport",
]
