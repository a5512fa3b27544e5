"""Command-line interface for the metadata audit."""

import logging
import sys
from datetime import datetime
from pathlib import Path
from typing import Optional
from urllib.parse import urlparse

import httpx

from metadata_audit.config import AuditConfig, RuleThresholds, ValidationInputError
from metadata_audit.constants import DEFAULT_TOOL_SLUGS
from metadata_audit.corpus_analyzer import CorpusAnalyzer
from metadata_audit.crawler import AuditCrawler
from metadata_audit.extractor import EXTRACTORS, MetadataExtractor, get_extractor
from metadata_audit.locales import LocaleLayout
from metadata_audit.logging_config import setup_logging
from metadata_audit.models import SummaryMetrics
from metadata_audit.output_manager import OutputManager, artifact_descriptions
from metadata_audit.registry import Registry
from metadata_audit.report_generator import ReportGenerator

logger = logging.getLogger(__name__)


def load_slugs(path: str) -> list[str]:
    """Read a slugs file: one slug per line, blank lines and # comments ignored.

    Raises:
        ValidationInputError: If the file is unreadable, empty or holds a
            slug that is not a single path segment
    """
    try:
        with open(path, encoding="utf-8") as f:
            lines = f.read().splitlines()
    except OSError as e:
        raise ValidationInputError(f"Cannot read slugs file {path}: {e}") from e

    slugs = []
    for number, line in enumerate(lines, 1):
        slug = line.strip()
        if not slug or slug.startswith("#"):
            continue
        if "/" in slug or any(c.isspace() for c in slug):
            raise ValidationInputError(f"{path}:{number}: invalid slug {slug!r}")
        slugs.append(slug)

    if not slugs:
        raise ValidationInputError(f"Slugs file {path} contains no slugs")
    return slugs


def resolve_slugs(slugs_file: Optional[str], registry: Optional[Registry]) -> list[str]:
    """Slugs file first, then registry slugs, then the built-in catalogue."""
    if slugs_file:
        return load_slugs(slugs_file)
    if registry is not None and len(registry):
        return registry.slugs
    return list(DEFAULT_TOOL_SLUGS)


def build_layout(config: AuditConfig) -> LocaleLayout:
    try:
        return LocaleLayout(
            base_url=config.base_url,
            locales=tuple(config.locales),
            default_locale=config.default_locale,
        )
    except ValueError as e:
        raise ValidationInputError(str(e)) from e


def run_audit(
    config: AuditConfig,
    slugs: list[str],
    thresholds: RuleThresholds,
    registry: Optional[Registry] = None,
    extractor: Optional[MetadataExtractor] = None,
    transport: Optional[httpx.AsyncBaseTransport] = None,
    timestamp: Optional[datetime] = None,
) -> tuple[Path, SummaryMetrics]:
    """Crawl, analyze, report and write every artifact of one run.

    Returns:
        Tuple of (run directory, summary metrics)
    """
    crawler = AuditCrawler.from_config(
        config,
        slugs,
        thresholds=thresholds,
        registry=registry,
        extractor=extractor,
        transport=transport,
    )
    corpus = crawler.run()
    enriched = CorpusAnalyzer().analyze(corpus)

    output_manager = OutputManager(config.output_dir)
    run_dir = output_manager.create_run_directory(config.base_url, timestamp)

    run_info = {
        "base_url": config.base_url,
        "user_agent": config.user_agent,
        "generated_at": (timestamp or datetime.now()).isoformat(timespec="seconds"),
        "files": artifact_descriptions(enriched.corpus.locales),
    }
    generator = ReportGenerator(thresholds=thresholds, issue_locale=config.issue_locale)
    report = generator.generate(enriched, run_info)
    output_manager.save_run(run_dir, enriched.corpus, report)

    return run_dir, enriched.summary


def regenerate_report(
    run_dir: str,
    thresholds: RuleThresholds,
    issue_locale: str,
) -> SummaryMetrics:
    """Rebuild CSVs, issue catalog and summaries from a run's raw JSON."""
    output_manager = OutputManager()
    corpus = output_manager.load_corpus(Path(run_dir))
    enriched = CorpusAnalyzer().analyze(corpus)

    base_url = ""
    for records in corpus.records.values():
        if records:
            parsed = urlparse(records[0].url)
            base_url = f"{parsed.scheme}://{parsed.netloc}"
            break

    run_info = {
        "base_url": base_url,
        "files": artifact_descriptions(corpus.locales),
    }
    generator = ReportGenerator(thresholds=thresholds, issue_locale=issue_locale)
    report = generator.generate(enriched, run_info)
    output_manager.save_report(Path(run_dir), report)
    logger.info(f"Reports regenerated in {run_dir}")
    return enriched.summary


def _load_thresholds(path: Optional[str]) -> RuleThresholds:
    if path:
        return RuleThresholds.from_file(path)
    return RuleThresholds.from_env()


def print_summary(run_dir, summary: SummaryMetrics):
    """Print the headline numbers of a run."""
    print(f"\n{'=' * 60}")
    print("Metadata Audit")
    print(f"{'=' * 60}")
    for locale, total in summary.total_pages_scanned.items():
        print(f"\n[{locale.upper()}] {total} pages")
        print(f"  • Title rules pass rate: {summary.title_rules_pass_rate[locale]}%")
        print(f"  • Description rules pass rate: {summary.description_rules_pass_rate[locale]}%")
        print(f"  • Duplicate titles: {summary.duplicate_counts[locale]['titles']}")
        print(f"  • Duplicate descriptions: {summary.duplicate_counts[locale]['descriptions']}")
        print(f"  • Canonical errors: {summary.canonical_errors[locale]}")
    print(f"\nFetch errors: {summary.fetch_errors}")
    print(f"Results saved to: {run_dir}")
    print(f"{'=' * 60}\n")


def run_command(args):
    """Run a full audit."""
    config = AuditConfig.from_env()
    if args.base_url:
        config.base_url = args.base_url.rstrip("/")
    if args.locales:
        config.locales = tuple(locale.strip() for locale in args.locales.split(",") if locale.strip())
    if args.default_locale:
        config.default_locale = args.default_locale
    if args.output_dir:
        config.output_dir = args.output_dir
    if args.concurrency is not None:
        config.max_concurrent = args.concurrency
    if args.timeout is not None:
        config.timeout = args.timeout
    if args.max_redirects is not None:
        config.max_redirects = args.max_redirects
    if args.retries is not None:
        config.max_retries = args.retries
    if args.delay is not None:
        config.request_delay = args.delay
    if args.issue_locale:
        config.issue_locale = args.issue_locale

    try:
        config.validate()
        thresholds = _load_thresholds(args.thresholds)
        layout = build_layout(config)
        registry = Registry.from_file(args.registry, layout) if args.registry else None
        slugs = resolve_slugs(args.slugs_file, registry)
        extractor = get_extractor(args.extractor, average_glyph_width_px=thresholds.average_glyph_width_px)

        logger.info(f"Auditing {len(slugs)} slugs on {config.base_url} ({', '.join(config.locales)})")
        run_dir, summary = run_audit(config, slugs, thresholds, registry=registry, extractor=extractor)
    except (ValidationInputError, OSError) as e:
        logger.error(f"Audit aborted: {e}")
        sys.exit(1)

    print_summary(run_dir, summary)


def report_command(args):
    """Regenerate reports from a previous run."""
    try:
        thresholds = _load_thresholds(args.thresholds)
        summary = regenerate_report(args.run_dir, thresholds, args.issue_locale)
    except (ValidationInputError, OSError) as e:
        logger.error(f"Report generation failed: {e}")
        sys.exit(1)

    print_summary(args.run_dir, summary)


def main(argv=None):
    """Main CLI entry point."""
    import argparse

    parser = argparse.ArgumentParser(
        description="Metadata Audit - Crawl tool pages and audit their SEO metadata"
    )

    # Global flags (before subcommands)
    parser.add_argument(
        "--log-level",
        choices=["DEBUG", "INFO", "WARNING", "ERROR"],
        default="INFO",
        help="Set logging verbosity (default: INFO)",
    )
    parser.add_argument(
        "--log-file",
        help="Write logs to file in addition to console",
    )

    subparsers = parser.add_subparsers(dest="command", help="Available commands")

    # Run command parser
    run_parser = subparsers.add_parser(
        "run", help="Crawl every tool page and write a full audit."
    )
    run_parser.add_argument(
        "--base-url",
        help="Origin to audit (default: METADATA_AUDIT_BASE_URL or https://textcaseconverter.net)",
    )
    run_parser.add_argument(
        "--locales",
        help="Comma-separated locales to audit (default: en,ru)",
    )
    run_parser.add_argument(
        "--default-locale",
        help="Locale served without a path prefix (default: en)",
    )
    run_parser.add_argument(
        "--registry",
        help="YAML or JSON registry of curated metadata overrides",
    )
    run_parser.add_argument(
        "--slugs-file",
        help="File with one tool slug per line (default: registry slugs, then built-in list)",
    )
    run_parser.add_argument(
        "--thresholds",
        help="JSON file with rule thresholds and phrase lists",
    )
    run_parser.add_argument(
        "--output-dir",
        help="Base directory for audit runs (default: audits)",
    )
    run_parser.add_argument(
        "--concurrency",
        type=int,
        help="Maximum concurrent requests (default: 4)",
    )
    run_parser.add_argument(
        "--timeout",
        type=float,
        help="Per-request timeout in seconds (default: 10)",
    )
    run_parser.add_argument(
        "--max-redirects",
        type=int,
        help="Maximum redirects followed per page (default: 10)",
    )
    run_parser.add_argument(
        "--retries",
        type=int,
        help="Retries for timeouts and network errors (default: 0)",
    )
    run_parser.add_argument(
        "--delay",
        type=float,
        help="Seconds between request starts (default: 0.1)",
    )
    run_parser.add_argument(
        "--extractor",
        choices=sorted(EXTRACTORS),
        default="regex",
        help="Metadata extractor (default: regex)",
    )
    run_parser.add_argument(
        "--issue-locale",
        help="Locale covered by the issue catalog (default: en)",
    )
    run_parser.set_defaults(func=run_command)

    # Report command parser
    report_parser = subparsers.add_parser(
        "report", help="Regenerate reports from a previous run's raw results."
    )
    report_parser.add_argument(
        "run_dir", help="Run directory containing audit-results-<locale>.json files"
    )
    report_parser.add_argument(
        "--thresholds",
        help="JSON file with rule thresholds (used for issue evidence text)",
    )
    report_parser.add_argument(
        "--issue-locale",
        default="en",
        help="Locale covered by the issue catalog (default: en)",
    )
    report_parser.set_defaults(func=report_command)

    args = parser.parse_args(argv)

    # Configure logging based on flags
    setup_logging(
        level=args.log_level,
        log_file=getattr(args, 'log_file', None),
    )

    if hasattr(args, "func"):
        args.func(args)
    else:
        parser.print_help()


if __name__ == "__main__":
    main()
