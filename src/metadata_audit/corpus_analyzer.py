"""Cross-page analysis over a frozen corpus."""

import logging
from dataclasses import replace
from typing import Optional

from metadata_audit.models import (
    CorpusResult,
    DuplicateGroup,
    EnrichedCorpus,
    PageAuditRecord,
    RuleStats,
    RuleStatus,
    SummaryMetrics,
)
from metadata_audit.rules import DUPLICATE_RULES, RULE_NAMES

logger = logging.getLogger(__name__)


def percent(part: int, total: int) -> int:
    """100 * part / total rounded half up; 0 when nothing was evaluated."""
    if total <= 0:
        return 0
    return (200 * part + total) // (2 * total)


def _field_value(record: PageAuditRecord, field_name: str) -> Optional[str]:
    if field_name == "title":
        return record.effective_title
    if field_name == "description":
        return record.effective_description
    raise ValueError(f"Unsupported duplicate field {field_name!r}")


def find_duplicates(
    records: list[PageAuditRecord], field_name: str
) -> tuple[list[DuplicateGroup], set[int]]:
    """Group records by the exact post-override value of a field.

    No trimming or case folding: values differing only in whitespace or case
    are different values. Empty and missing values are never grouped.

    Returns:
        Tuple of (groups in first-seen order, positions of grouped records)
    """
    positions_by_value: dict[str, list[int]] = {}
    for position, record in enumerate(records):
        value = _field_value(record, field_name)
        if value:
            positions_by_value.setdefault(value, []).append(position)

    groups = []
    duplicated: set[int] = set()
    for value, positions in positions_by_value.items():
        if len(positions) > 1:
            groups.append(DuplicateGroup(
                field_name=field_name,
                value=value,
                count=len(positions),
                urls=[records[p].url for p in positions],
            ))
            duplicated.update(positions)
    return groups, duplicated


class CorpusAnalyzer:
    """Resolves duplicate rules and computes per-locale aggregates."""

    def analyze(self, corpus: CorpusResult) -> EnrichedCorpus:
        """Analyze a complete corpus.

        Args:
            corpus: Frozen corpus from the crawler

        Returns:
            EnrichedCorpus holding new records with duplicate rules resolved,
            the duplicate groups and summary metrics
        """
        resolved = CorpusResult(records={}, fetch_errors=list(corpus.fetch_errors))
        duplicate_groups: dict[str, dict[str, list[DuplicateGroup]]] = {}

        for locale, records in corpus.records.items():
            duplicate_groups[locale] = {}
            duplicated_positions: dict[str, set[int]] = {}
            for field_name in DUPLICATE_RULES:
                groups, positions = find_duplicates(records, field_name)
                duplicate_groups[locale][field_name] = groups
                duplicated_positions[field_name] = positions
                if groups:
                    logger.info(
                        f"{locale}: {len(groups)} duplicate {field_name} groups "
                        f"covering {len(positions)} pages"
                    )

            resolved.records[locale] = [
                self._resolve_duplicate_rules(record, position, duplicated_positions)
                for position, record in enumerate(records)
            ]

        rule_stats = {
            locale: self.rule_stats(records)
            for locale, records in resolved.records.items()
        }
        summary = self._summarize(resolved, duplicate_groups, rule_stats)

        return EnrichedCorpus(
            corpus=resolved,
            duplicate_groups=duplicate_groups,
            rule_stats=rule_stats,
            summary=summary,
        )

    @staticmethod
    def _resolve_duplicate_rules(
        record: PageAuditRecord,
        position: int,
        duplicated_positions: dict[str, set[int]],
    ) -> PageAuditRecord:
        rules = dict(record.rules)
        for field_name, rule_name in DUPLICATE_RULES.items():
            in_group = position in duplicated_positions[field_name]
            rules[rule_name] = RuleStatus.FAIL if in_group else RuleStatus.PASS
        return replace(record, rules=rules)

    @staticmethod
    def rule_stats(records: list[PageAuditRecord]) -> dict[str, RuleStats]:
        """Tally PASS/FAIL per rule; pending or missing rules are not counted."""
        stats = {name: RuleStats() for name in RULE_NAMES}
        for record in records:
            for name in RULE_NAMES:
                status = record.rules.get(name)
                if status == RuleStatus.PASS:
                    stats[name].passed += 1
                elif status == RuleStatus.FAIL:
                    stats[name].failed += 1
        return stats

    @staticmethod
    def _summarize(
        corpus: CorpusResult,
        duplicate_groups: dict[str, dict[str, list[DuplicateGroup]]],
        rule_stats: dict[str, dict[str, RuleStats]],
    ) -> SummaryMetrics:
        summary = SummaryMetrics(fetch_errors=len(corpus.fetch_errors))

        for locale, records in corpus.records.items():
            stats = rule_stats[locale]
            summary.total_pages_scanned[locale] = len(records)
            summary.rule_pass_rates[locale] = {
                name: percent(s.passed, s.evaluated) for name, s in stats.items()
            }
            summary.title_rules_pass_rate[locale] = summary.rule_pass_rates[locale]["title_length"]
            summary.description_rules_pass_rate[locale] = summary.rule_pass_rates[locale]["description_length"]
            summary.duplicate_counts[locale] = {
                "titles": sum(g.count for g in duplicate_groups[locale]["title"]),
                "descriptions": sum(g.count for g in duplicate_groups[locale]["description"]),
            }
            summary.canonical_errors[locale] = stats["canonical_self_referential"].failed
            summary.hreflang_errors[locale] = stats["canonical_not_cross_language"].failed

        return summary


def analyze(corpus: CorpusResult) -> EnrichedCorpus:
    """Analyze a corpus with the default analyzer."""
    return CorpusAnalyzer().analyze(corpus)
