"""Turns an enriched corpus into CSV tables, an issue catalog and summaries."""

import csv
import io
import logging
from datetime import datetime
from pathlib import Path
from typing import Optional

from jinja2 import Environment, FileSystemLoader

from metadata_audit.config import RuleThresholds
from metadata_audit.models import (
    AuditReport,
    EnrichedCorpus,
    Issue,
    PageAuditRecord,
    RuleStatus,
)
from metadata_audit.rules import DUPLICATE_RULES, RULE_NAMES
from metadata_audit.constants import (
    DEFAULT_ISSUE_LOCALE,
    MAX_DUPLICATE_EVIDENCE_LENGTH,
    MAX_ISSUE_SAMPLE_URLS,
    MISSING_RULE_PLACEHOLDER,
    TEXT_SUMMARY_SAMPLE_URLS,
)

logger = logging.getLogger(__name__)

BASE_COLUMNS = [
    "url", "http_status", "title", "title_pixel_width", "meta_description",
    "description_character_count", "h1", "canonical", "robots_meta", "x_robots_tag",
    "og_title", "og_description", "hreflang", "detected_language", "indexable",
    "registry_title", "registry_description", "registry_og_title", "registry_og_description",
]

CSV_COLUMNS = BASE_COLUMNS + RULE_NAMES


def _cell(value) -> str:
    if value is None:
        return ""
    if isinstance(value, bool):
        return "true" if value else "false"
    if isinstance(value, RuleStatus):
        return value.value
    return str(value)


class ReportGenerator:
    """Generates the per-locale CSVs, issue catalog and text summary."""

    # Evidence text per rule; formatted with the active thresholds
    RULE_EVIDENCE = {
        "title_length": "Titles outside {title_min_length}-{title_max_length} character range or >{title_max_pixel_width}px width",
        "title_contains_tool_concept": "Title does not name what the tool does (no tool keyword)",
        "title_avoids_boilerplate": "Title contains boilerplate phrases",
        "title_brand_consistent": "Missing brand suffix ({brand_suffixes})",
        "title_no_truncation": "Title wider than {title_max_pixel_width}px is truncated in search results",
        "description_length": "Descriptions outside {description_min_length}-{description_max_length} character range",
        "description_specific": "Description uses generic phrases",
        "description_no_language_mismatch": "Title or description not written in the page locale's script",
        "canonical_self_referential": "Canonical URL not self-referential",
        "canonical_not_cross_language": "Canonical URL points to another locale",
        "noindex_absent": "Page carries a noindex robots directive",
        "og_title_present": "Missing or empty og:title",
        "og_description_present": "Missing or empty og:description",
    }

    def __init__(
        self,
        thresholds: Optional[RuleThresholds] = None,
        issue_locale: str = DEFAULT_ISSUE_LOCALE,
        template_dir: Optional[str] = None,
    ):
        """Initialize report generator.

        Args:
            thresholds: Thresholds quoted in issue evidence
            issue_locale: Locale whose rule failures and duplicates feed the
                issue catalog
            template_dir: Directory containing Jinja2 templates
        """
        self.thresholds = thresholds or RuleThresholds()
        self.issue_locale = issue_locale

        template_path = Path(template_dir) if template_dir else Path(__file__).parent / "templates"
        self.env = Environment(
            loader=FileSystemLoader(str(template_path)),
            keep_trailing_newline=True,
            trim_blocks=True,
            lstrip_blocks=True,
        )

    def generate(self, enriched: EnrichedCorpus, run_info: Optional[dict] = None) -> AuditReport:
        """Build every report artifact in memory.

        Args:
            enriched: Output of the corpus analyzer
            run_info: Optional run details for the text summary (base_url,
                user_agent, files)

        Returns:
            AuditReport with CSV text per locale, issues and metrics
        """
        csv_by_locale = {
            locale: self.render_csv(records)
            for locale, records in enriched.records.items()
        }
        issues = self.build_issue_catalog(enriched)
        text_summary = self.render_text_summary(enriched, issues, run_info or {})

        logger.info(f"Generated report: {len(issues)} issues across {len(csv_by_locale)} locales")

        return AuditReport(
            csv=csv_by_locale,
            issue_catalog=issues,
            summary_metrics=enriched.summary,
            text_summary=text_summary,
        )

    def render_csv(self, records: list[PageAuditRecord]) -> str:
        """Render one locale's records; every field quoted, quotes doubled."""
        buffer = io.StringIO()
        writer = csv.writer(buffer, quoting=csv.QUOTE_ALL, lineterminator="\n")
        writer.writerow(CSV_COLUMNS)
        for record in records:
            writer.writerow(self.csv_row(record))
        return buffer.getvalue()

    def csv_row(self, record: PageAuditRecord) -> list[str]:
        metadata = record.metadata
        registry = record.registry
        title = record.effective_title
        description = record.effective_description

        values = [
            metadata.url,
            metadata.http_status,
            title,
            len(title) * self.thresholds.average_glyph_width_px if title is not None else None,
            description,
            len(description) if description is not None else None,
            metadata.h1,
            metadata.canonical_url,
            metadata.robots_meta,
            metadata.x_robots_tag,
            record.effective_og_title,
            record.effective_og_description,
            ";".join(f"{link.lang}:{link.href}" for link in metadata.hreflang),
            metadata.detected_language,
            record.indexable,
            registry.title if registry else None,
            registry.description if registry else None,
            registry.og_title if registry else None,
            registry.og_description if registry else None,
        ]
        values.extend(record.rules.get(name, MISSING_RULE_PLACEHOLDER) for name in RULE_NAMES)
        return [_cell(value) for value in values]

    def build_issue_catalog(self, enriched: EnrichedCorpus) -> list[Issue]:
        """One issue per failing rule, then one per duplicate group.

        Only the issue locale is inspected (English by default); other
        locales appear in the CSVs and summary metrics but not here.
        """
        records = enriched.records.get(self.issue_locale)
        if records is None:
            logger.warning(f"Issue locale {self.issue_locale!r} not in corpus; issue catalog is empty")
            return []

        issues: list[Issue] = []
        duplicate_rule_names = set(DUPLICATE_RULES.values())

        for rule in RULE_NAMES:
            if rule in duplicate_rule_names:
                continue
            failing = [r.url for r in records if r.rules.get(rule) == RuleStatus.FAIL]
            if not failing:
                continue
            issues.append(Issue(
                issue_id=len(issues) + 1,
                rule=rule,
                evidence_example=self._rule_evidence(rule),
                affected_urls_count=len(failing),
                sample_urls=failing[:MAX_ISSUE_SAMPLE_URLS],
            ))

        groups = enriched.duplicate_groups.get(self.issue_locale, {})
        for group in groups.get("title", []):
            issues.append(Issue(
                issue_id=len(issues) + 1,
                rule=DUPLICATE_RULES["title"],
                evidence_example=f'Duplicate title: "{group.value}"',
                affected_urls_count=group.count,
                sample_urls=group.urls[:MAX_ISSUE_SAMPLE_URLS],
            ))
        for group in groups.get("description", []):
            snippet = group.value[:MAX_DUPLICATE_EVIDENCE_LENGTH]
            issues.append(Issue(
                issue_id=len(issues) + 1,
                rule=DUPLICATE_RULES["description"],
                evidence_example=f'Duplicate description: "{snippet}..."',
                affected_urls_count=group.count,
                sample_urls=group.urls[:MAX_ISSUE_SAMPLE_URLS],
            ))

        return issues

    def _rule_evidence(self, rule: str) -> str:
        template = self.RULE_EVIDENCE.get(rule, rule)
        values = self.thresholds.to_dict()
        values["brand_suffixes"] = " or ".join(f'"{s}"' for s in self.thresholds.brand_suffixes)
        return template.format(**values)

    def render_text_summary(
        self, enriched: EnrichedCorpus, issues: list[Issue], run_info: dict
    ) -> str:
        template = self.env.get_template("audit_summary.txt.j2")
        return template.render(
            generated_at=run_info.get("generated_at") or datetime.now().isoformat(timespec="seconds"),
            base_url=run_info.get("base_url", ""),
            user_agent=run_info.get("user_agent", ""),
            files=run_info.get("files", []),
            locales=list(enriched.records.keys()),
            summary=enriched.summary,
            issues=issues,
            issue_locale=self.issue_locale,
            fetch_errors=enriched.fetch_errors,
            sample_limit=TEXT_SUMMARY_SAMPLE_URLS,
        )
