"""Output manager for organizing audit runs with timestamps."""

import json
import logging
import re
from datetime import datetime
from pathlib import Path
from typing import Optional
from urllib.parse import urlparse

from metadata_audit.config import ValidationInputError
from metadata_audit.models import (
    AuditReport,
    CorpusResult,
    FetchErrorRecord,
    PageAuditRecord,
)

logger = logging.getLogger(__name__)

RESULTS_FILE_RE = re.compile(r"^audit-results-(?P<locale>[A-Za-z0-9_-]+)\.json$")
ERRORS_FILE = "audit-errors.json"
ISSUE_CATALOG_FILE = "issue-catalog.json"
SUMMARY_METRICS_FILE = "summary-metrics.json"
TEXT_SUMMARY_FILE = "audit-summary.txt"


def csv_file_name(locale: str) -> str:
    return f"audit-{locale}.csv"


def results_file_name(locale: str) -> str:
    return f"audit-results-{locale}.json"


def artifact_descriptions(locales: list[str]) -> list[tuple[str, str]]:
    """(file name, description) for every artifact a run writes."""
    files = [(csv_file_name(locale), f"Complete {locale.upper()} audit data") for locale in locales]
    files.append((ISSUE_CATALOG_FILE, "Detailed issue catalog"))
    files.append((SUMMARY_METRICS_FILE, "Summary statistics"))
    files.extend(
        (results_file_name(locale), f"Raw {locale.upper()} results") for locale in locales
    )
    files.append((ERRORS_FILE, "Pages that could not be audited"))
    files.append((TEXT_SUMMARY_FILE, "This summary"))
    return files


class OutputManager:
    """Writes every artifact of an audit run into a timestamped directory."""

    def __init__(self, base_output_dir: str = "audits"):
        """Initialize output manager.

        Args:
            base_output_dir: Base directory for all audit runs
        """
        self.base_output_dir = Path(base_output_dir)

    def create_run_directory(self, base_url: str, timestamp: Optional[datetime] = None) -> Path:
        """Create a timestamped directory for this run.

        Args:
            base_url: Origin that was audited
            timestamp: Optional timestamp (defaults to now)

        Returns:
            Path to the created directory

        Example structure:
            audits/
            └── textcaseconverter.net/
                └── 2025-11-23_143022/
                    ├── audit-en.csv
                    ├── audit-ru.csv
                    ├── issue-catalog.json
                    ├── summary-metrics.json
                    ├── audit-results-en.json
                    ├── audit-results-ru.json
                    ├── audit-errors.json
                    └── audit-summary.txt
        """
        if timestamp is None:
            timestamp = datetime.now()

        host = urlparse(base_url).netloc or "unknown-host"
        host = host.replace(":", "_").replace("/", "_")

        run_dir = self.base_output_dir / host / timestamp.strftime("%Y-%m-%d_%H%M%S")
        run_dir.mkdir(parents=True, exist_ok=True)
        return run_dir

    def save_corpus(self, run_dir: Path, corpus: CorpusResult) -> None:
        """Save raw per-locale results and the fetch error list."""
        for locale, records in corpus.records.items():
            self._save_json(run_dir / results_file_name(locale), [r.to_dict() for r in records])
        self._save_json(run_dir / ERRORS_FILE, [e.to_dict() for e in corpus.fetch_errors])

    def save_report(self, run_dir: Path, report: AuditReport) -> None:
        """Save CSVs, the issue catalog, summary metrics and the text summary."""
        for locale, text in report.csv.items():
            self._save_text(run_dir / csv_file_name(locale), text)
        self._save_json(run_dir / ISSUE_CATALOG_FILE, [issue.to_dict() for issue in report.issue_catalog])
        self._save_json(run_dir / SUMMARY_METRICS_FILE, report.summary_metrics.to_dict())
        self._save_text(run_dir / TEXT_SUMMARY_FILE, report.text_summary)

    def save_run(self, run_dir: Path, corpus: CorpusResult, report: AuditReport) -> None:
        """Save all artifacts of one run.

        Args:
            run_dir: Directory to save to
            corpus: Analyzed corpus; reloading it and analyzing again gives
                the same report
            report: Generated report
        """
        self.save_corpus(run_dir, corpus)
        self.save_report(run_dir, report)
        logger.info(f"Audit artifacts saved to {run_dir}")

    def load_corpus(self, run_dir: Path) -> CorpusResult:
        """Reload the raw results of a previous run.

        Raises:
            ValidationInputError: If the directory holds no results or a
                results file is malformed
        """
        run_dir = Path(run_dir)
        if not run_dir.is_dir():
            raise ValidationInputError(f"Run directory not found: {run_dir}")

        corpus = CorpusResult()
        for path in sorted(run_dir.iterdir()):
            match = RESULTS_FILE_RE.match(path.name)
            if not match:
                continue
            data = self._load_json(path)
            if not isinstance(data, list):
                raise ValidationInputError(f"{path.name}: expected a list of records")
            try:
                corpus.records[match.group("locale")] = [PageAuditRecord.from_dict(item) for item in data]
            except (KeyError, TypeError, ValueError) as e:
                raise ValidationInputError(f"{path.name}: malformed record: {e}") from e

        if not corpus.records:
            raise ValidationInputError(f"No audit-results-<locale>.json files in {run_dir}")

        errors_path = run_dir / ERRORS_FILE
        if errors_path.exists():
            data = self._load_json(errors_path)
            try:
                corpus.fetch_errors = [FetchErrorRecord.from_dict(item) for item in data]
            except (KeyError, TypeError) as e:
                raise ValidationInputError(f"{ERRORS_FILE}: malformed record: {e}") from e

        logger.info(f"Loaded {corpus.total_records} records from {run_dir}")
        return corpus

    def _save_json(self, filepath: Path, data) -> None:
        with open(filepath, "w", encoding="utf-8") as f:
            json.dump(data, f, indent=2, ensure_ascii=False)

    def _save_text(self, filepath: Path, text: str) -> None:
        # newline="" keeps the CSV line endings exactly as rendered
        with open(filepath, "w", encoding="utf-8", newline="") as f:
            f.write(text)

    def _load_json(self, filepath: Path):
        try:
            with open(filepath, "r", encoding="utf-8") as f:
                return json.load(f)
        except json.JSONDecodeError as e:
            raise ValidationInputError(f"{filepath.name}: invalid JSON: {e}") from e
