"""Tests for crawl orchestration."""

import asyncio
import logging
from collections import Counter

import httpx
import pytest

from conftest import build_page
from metadata_audit.crawler import AuditCrawler, CorpusBuilder, TargetOutcome
from metadata_audit.extractor import SoupMetadataExtractor
from metadata_audit.fetcher import PageFetcher
from metadata_audit.locales import AuditTarget
from metadata_audit.models import FetchErrorKind, RegistryOverride, RuleStatus
from metadata_audit.registry import Registry

pytest_plugins = ('pytest_asyncio',)


def site_handler(calls, slow=(), broken=(), robots_header=None):
    """Mock site: every tool page self-canonical, some paths failing."""
    def handler(request):
        path = request.url.path
        calls[path] += 1
        if path in slow:
            raise httpx.ReadTimeout("timed out", request=request)
        if path in broken:
            raise httpx.ConnectError("refused", request=request)
        lang = "ru" if path.startswith("/ru/") else "en"
        slug = path.rsplit("/", 1)[-1]
        headers = {"X-Robots-Tag": robots_header} if robots_header else {}
        return httpx.Response(200, headers=headers, text=build_page(
            title=f"{slug.title()} Tool | Text Case Converter",
            description=f"Description for {slug}",
            canonical=f"https://example.com{path}",
            lang=lang,
        ))
    return handler


class TestCorpusBuilder:
    """Tests for the collector-owned builder."""

    def test_freeze_orders_by_target(self, make_record):
        builder = CorpusBuilder(["en", "ru"])
        first = make_record("a")
        second = make_record("b")
        builder.add(TargetOutcome(target=AuditTarget(1, "b", "en", second.url), record=second))
        builder.add(TargetOutcome(target=AuditTarget(0, "a", "en", first.url), record=first))

        corpus = builder.freeze()

        assert [r.slug for r in corpus.records["en"]] == ["a", "b"]
        assert corpus.records["ru"] == []

    def test_frozen_builder_rejects_adds(self, make_record):
        builder = CorpusBuilder(["en"])
        builder.freeze()
        record = make_record("a")

        with pytest.raises(RuntimeError):
            builder.add(TargetOutcome(target=AuditTarget(0, "a", "en", record.url), record=record))


class TestAuditCrawler:
    """Tests for AuditCrawler."""

    def test_initialization(self, layout):
        crawler = AuditCrawler(layout, ["a", "b", "a"])

        assert crawler.slugs == ["a", "b"]
        assert crawler.user_agent == "Metadata-Audit-Bot/1.0"
        assert crawler.max_concurrent == 4

    def test_rejects_zero_concurrency(self, layout):
        with pytest.raises(ValueError):
            AuditCrawler(layout, ["a"], max_concurrent=0)

    def test_rejects_negative_retries(self, layout):
        with pytest.raises(ValueError):
            AuditCrawler(layout, ["a"], max_retries=-1)

    @pytest.mark.asyncio
    async def test_crawl_all_targets_once(self, layout):
        """Test every (slug, locale) is fetched exactly once."""
        calls = Counter()
        crawler = AuditCrawler(
            layout, ["alpha", "beta", "gamma"],
            request_delay=0,
            transport=httpx.MockTransport(site_handler(calls)),
        )

        corpus = await crawler.crawl()

        assert corpus.total_records == 6
        assert corpus.fetch_errors == []
        assert set(calls.values()) == {1}
        assert set(calls) == {
            "/tools/alpha", "/tools/beta", "/tools/gamma",
            "/ru/tools/alpha", "/ru/tools/beta", "/ru/tools/gamma",
        }
        assert [r.slug for r in corpus.records["en"]] == ["alpha", "beta", "gamma"]
        assert [r.slug for r in corpus.records["ru"]] == ["alpha", "beta", "gamma"]

    @pytest.mark.asyncio
    async def test_records_are_evaluated(self, layout):
        calls = Counter()
        crawler = AuditCrawler(layout, ["alpha"], request_delay=0,
                               transport=httpx.MockTransport(site_handler(calls)))

        corpus = await crawler.crawl()
        record = corpus.records["en"][0]

        assert record.metadata.http_status == 200
        assert record.metadata.title == "Alpha Tool | Text Case Converter"
        assert record.indexable is True
        assert record.rules["canonical_self_referential"] == RuleStatus.PASS
        assert record.rules["title_no_duplicates"] == RuleStatus.PENDING
        assert corpus.records["ru"][0].metadata.detected_language == "ru"

    @pytest.mark.asyncio
    async def test_timeout_becomes_fetch_error(self, layout):
        """Test a timed-out page yields an error record and the run goes on."""
        calls = Counter()
        crawler = AuditCrawler(
            layout, ["alpha", "beta"],
            request_delay=0,
            transport=httpx.MockTransport(site_handler(calls, slow={"/tools/beta"})),
        )

        corpus = await crawler.crawl()

        assert corpus.total_records == 3
        assert [r.slug for r in corpus.records["en"]] == ["alpha"]
        assert len(corpus.fetch_errors) == 1
        error = corpus.fetch_errors[0]
        assert error.url == "https://example.com/tools/beta"
        assert error.kind == FetchErrorKind.TIMEOUT.value
        assert error.error == "Request timeout"
        assert error.slug == "beta"
        assert error.locale == "en"

    @pytest.mark.asyncio
    async def test_network_errors_collected(self, layout):
        calls = Counter()
        crawler = AuditCrawler(
            layout, ["alpha"],
            request_delay=0,
            transport=httpx.MockTransport(site_handler(calls, broken={"/ru/tools/alpha"})),
        )

        corpus = await crawler.crawl()

        assert len(corpus.records["en"]) == 1
        assert corpus.records["ru"] == []
        assert corpus.fetch_errors[0].kind == FetchErrorKind.NETWORK.value

    @pytest.mark.asyncio
    async def test_x_robots_tag_captured(self, layout):
        calls = Counter()
        crawler = AuditCrawler(layout, ["alpha"], request_delay=0,
                               transport=httpx.MockTransport(site_handler(calls, robots_header="noindex")))

        corpus = await crawler.crawl()

        assert corpus.records["en"][0].metadata.x_robots_tag == "noindex"

    @pytest.mark.asyncio
    async def test_registry_overrides_applied(self, layout):
        """Test rules see registry values looked up by target URL."""
        override = RegistryOverride(og_title="Curated OG", og_description="Curated OG description")
        registry = Registry(layout, {("alpha", "en"): override})
        calls = Counter()
        crawler = AuditCrawler(layout, ["alpha"], registry=registry, request_delay=0,
                               transport=httpx.MockTransport(site_handler(calls)))

        corpus = await crawler.crawl()
        en, ru = corpus.records["en"][0], corpus.records["ru"][0]

        assert en.registry == override
        assert en.rules["og_title_present"] == RuleStatus.PASS
        assert ru.registry is None
        assert ru.rules["og_title_present"] == RuleStatus.FAIL

    @pytest.mark.asyncio
    async def test_processing_error_isolated(self, layout):
        """Test an extractor crash on one page does not abort the run."""
        class FlakyExtractor(SoupMetadataExtractor):
            def _parse(self, body, url):
                if "/ru/" in url:
                    raise RuntimeError("parser exploded")
                return super()._parse(body, url)

        calls = Counter()
        crawler = AuditCrawler(layout, ["alpha"], extractor=FlakyExtractor(), request_delay=0,
                               transport=httpx.MockTransport(site_handler(calls)))

        corpus = await crawler.crawl()

        assert len(corpus.records["en"]) == 1
        assert corpus.fetch_errors[0].kind == FetchErrorKind.PROCESSING.value
        assert corpus.fetch_errors[0].error == "parser exploded"

    @pytest.mark.asyncio
    async def test_malformed_redirect_isolated(self, layout):
        """Test a broken Location header on one page leaves the rest of the run intact."""
        calls = Counter()
        page = site_handler(calls)

        def handler(request):
            if request.url.path.startswith("/ru/"):
                return httpx.Response(301, headers={"Location": "http://[broken/"})
            return page(request)

        crawler = AuditCrawler(layout, ["alpha", "beta"], request_delay=0,
                               transport=httpx.MockTransport(handler))

        corpus = await crawler.crawl()

        assert [r.slug for r in corpus.records["en"]] == ["alpha", "beta"]
        assert corpus.records["ru"] == []
        assert [(e.slug, e.kind) for e in corpus.fetch_errors] == [
            ("alpha", FetchErrorKind.NETWORK.value),
            ("beta", FetchErrorKind.NETWORK.value),
        ]

    @pytest.mark.asyncio
    async def test_fetch_exception_isolated(self, layout, monkeypatch):
        """Test an exception escaping the fetch stage is recorded for that target only."""
        original_fetch = PageFetcher.fetch

        async def fetch(self, url):
            if "/ru/" in url:
                raise RuntimeError("fetch exploded")
            return await original_fetch(self, url)

        monkeypatch.setattr(PageFetcher, "fetch", fetch)
        calls = Counter()
        crawler = AuditCrawler(layout, ["alpha"], request_delay=0,
                               transport=httpx.MockTransport(site_handler(calls)))

        corpus = await crawler.crawl()

        assert len(corpus.records["en"]) == 1
        assert len(corpus.fetch_errors) == 1
        assert corpus.fetch_errors[0].locale == "ru"
        assert corpus.fetch_errors[0].kind == FetchErrorKind.PROCESSING.value
        assert corpus.fetch_errors[0].error == "fetch exploded"
        assert crawler.rate_limiter.get_metrics().total_errors == 1

    @pytest.mark.asyncio
    async def test_redirect_chain_logged(self, layout, caplog):
        calls = Counter()
        page = site_handler(calls)

        def handler(request):
            if request.url.path == "/tools/old":
                return httpx.Response(301, headers={"Location": "/tools/alpha"})
            return page(request)

        crawler = AuditCrawler(layout, ["old"], request_delay=0,
                               transport=httpx.MockTransport(handler))

        with caplog.at_level(logging.INFO, logger="metadata_audit.crawler"):
            corpus = await crawler.crawl()

        assert corpus.records["en"][0].metadata.url == "https://example.com/tools/alpha"
        assert "Redirected: https://example.com/tools/old -> https://example.com/tools/alpha" in caplog.text

    @pytest.mark.asyncio
    async def test_concurrency_bounded(self, layout):
        """Test no more than max_concurrent requests are in flight."""
        in_flight = 0
        peak = 0

        async def handler(request):
            nonlocal in_flight, peak
            in_flight += 1
            peak = max(peak, in_flight)
            await asyncio.sleep(0.01)
            in_flight -= 1
            return httpx.Response(200, text=build_page())

        crawler = AuditCrawler(layout, [f"s{i}" for i in range(6)], max_concurrent=2,
                               request_delay=0, transport=httpx.MockTransport(handler))

        corpus = await crawler.crawl()

        assert corpus.total_records == 12
        assert peak <= 2

    def test_run_sync(self, layout):
        calls = Counter()
        crawler = AuditCrawler(layout, ["alpha"], request_delay=0,
                               transport=httpx.MockTransport(site_handler(calls)))

        corpus = crawler.run()

        assert corpus.total_records == 2
