"""Tests for run directory output."""

import json
from datetime import datetime

import pytest

from metadata_audit.config import ValidationInputError
from metadata_audit.corpus_analyzer import CorpusAnalyzer
from metadata_audit.models import CorpusResult, FetchErrorRecord, RegistryOverride
from metadata_audit.output_manager import OutputManager, artifact_descriptions
from metadata_audit.report_generator import ReportGenerator


@pytest.fixture
def manager(tmp_path):
    return OutputManager(str(tmp_path / "audits"))


@pytest.fixture
def enriched(make_record):
    corpus = CorpusResult(
        records={
            "en": [
                make_record("a", title="Same Tool", meta_description="Описание",
                            override=RegistryOverride(og_title="Curated")),
                make_record("b", title="Same Tool"),
            ],
            "ru": [make_record("a", locale="ru", title="Инструмент")],
        },
        fetch_errors=[FetchErrorRecord(url="https://example.com/tools/c", error="Request timeout",
                                       kind="timeout", slug="c", locale="en")],
    )
    return CorpusAnalyzer().analyze(corpus)


class TestOutputManager:
    """Tests for OutputManager."""

    def test_create_run_directory(self, manager, tmp_path):
        run_dir = manager.create_run_directory("https://example.com:8443", datetime(2025, 11, 23, 14, 30, 22))

        assert run_dir == tmp_path / "audits" / "example.com_8443" / "2025-11-23_143022"
        assert run_dir.is_dir()

    def test_save_run_writes_every_artifact(self, manager, enriched):
        run_dir = manager.create_run_directory("https://example.com")
        report = ReportGenerator().generate(enriched)
        manager.save_run(run_dir, enriched.corpus, report)

        names = {path.name for path in run_dir.iterdir()}
        assert names == {name for name, _ in artifact_descriptions(["en", "ru"])}

    def test_json_keeps_unicode(self, manager, enriched):
        run_dir = manager.create_run_directory("https://example.com")
        manager.save_corpus(run_dir, enriched.corpus)

        text = (run_dir / "audit-results-ru.json").read_text(encoding="utf-8")
        assert "Инструмент" in text

    def test_round_trip(self, manager, enriched):
        """Test reloaded results analyze to the same summary."""
        run_dir = manager.create_run_directory("https://example.com")
        manager.save_corpus(run_dir, enriched.corpus)

        loaded = manager.load_corpus(run_dir)

        assert loaded.locales == ["en", "ru"]
        assert loaded.records["en"][0].registry == RegistryOverride(og_title="Curated")
        assert loaded.records["en"][0].rules == enriched.records["en"][0].rules
        assert loaded.fetch_errors == enriched.fetch_errors
        assert CorpusAnalyzer().analyze(loaded).summary == enriched.summary

    def test_saved_summary_metrics(self, manager, enriched):
        run_dir = manager.create_run_directory("https://example.com")
        manager.save_report(run_dir, ReportGenerator().generate(enriched))

        metrics = json.loads((run_dir / "summary-metrics.json").read_text(encoding="utf-8"))
        catalog = json.loads((run_dir / "issue-catalog.json").read_text(encoding="utf-8"))

        assert metrics["total_pages_scanned"] == {"en": 2, "ru": 1}
        assert metrics["duplicate_counts"]["en"]["titles"] == 2
        assert catalog[0]["issue_id"] == 1
        assert set(catalog[0]) == {"issue_id", "rule", "evidence_example", "affected_urls_count", "sample_urls"}

    def test_load_missing_directory(self, manager, tmp_path):
        with pytest.raises(ValidationInputError):
            manager.load_corpus(tmp_path / "nowhere")

    def test_load_directory_without_results(self, manager, tmp_path):
        with pytest.raises(ValidationInputError):
            manager.load_corpus(tmp_path)

    def test_load_malformed_results(self, manager, tmp_path):
        (tmp_path / "audit-results-en.json").write_text('{"not": "a list"}', encoding="utf-8")

        with pytest.raises(ValidationInputError):
            manager.load_corpus(tmp_path)
