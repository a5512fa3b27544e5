"""Crawl orchestration for one audit run.

Every (slug, locale) target is fetched exactly once. Workers run under a
semaphore (at most N requests in flight) and never touch the corpus: each one
puts a single outcome on a queue, and one collector task owns the corpus
builder. crawl() returns only after all workers have finished and the
collector has drained the queue.
"""

import asyncio
import logging
import time
from dataclasses import dataclass
from typing import Iterable, Optional

import httpx

from metadata_audit.config import AuditConfig, RuleThresholds
from metadata_audit.extractor import MetadataExtractor, RegexMetadataExtractor
from metadata_audit.fetcher import PageFetcher
from metadata_audit.infrastructure import RateLimiter, RateLimitConfig
from metadata_audit.locales import AuditTarget, LocaleLayout
from metadata_audit.models import (
    CorpusResult,
    FetchError,
    FetchErrorKind,
    FetchErrorRecord,
    FetchResult,
    PageAuditRecord,
)
from metadata_audit.registry import Registry
from metadata_audit.rules import RuleContext, evaluate, is_indexable
from metadata_audit.constants import (
    DEFAULT_REQUEST_TIMEOUT_SECONDS,
    DEFAULT_MAX_REDIRECTS,
    DEFAULT_MAX_RETRIES,
    DEFAULT_MAX_CONCURRENT_REQUESTS,
    DEFAULT_REQUEST_DELAY_SECONDS,
    DEFAULT_USER_AGENT,
)

logger = logging.getLogger(__name__)


@dataclass
class TargetOutcome:
    """What one worker hands to the collector: a record or an error."""
    target: AuditTarget
    record: Optional[PageAuditRecord] = None
    error: Optional[FetchErrorRecord] = None


class CorpusBuilder:
    """Append-only accumulator owned by the collector task."""

    def __init__(self, locales: Iterable[str]):
        self._locales = list(locales)
        self._outcomes: list[TargetOutcome] = []
        self._frozen = False

    def add(self, outcome: TargetOutcome) -> None:
        if self._frozen:
            raise RuntimeError("Corpus is frozen")
        self._outcomes.append(outcome)

    def freeze(self) -> CorpusResult:
        """Build the corpus in target order, whatever order outcomes arrived in."""
        self._frozen = True
        corpus = CorpusResult(records={locale: [] for locale in self._locales})
        for outcome in sorted(self._outcomes, key=lambda o: o.target.index):
            if outcome.record is not None:
                corpus.records.setdefault(outcome.record.locale, []).append(outcome.record)
            elif outcome.error is not None:
                corpus.fetch_errors.append(outcome.error)
        return corpus


class AuditCrawler:
    """Fetches, extracts and evaluates every target of the catalogue."""

    def __init__(
        self,
        layout: LocaleLayout,
        slugs: Iterable[str],
        thresholds: Optional[RuleThresholds] = None,
        registry: Optional[Registry] = None,
        extractor: Optional[MetadataExtractor] = None,
        timeout: float = DEFAULT_REQUEST_TIMEOUT_SECONDS,
        max_redirects: int = DEFAULT_MAX_REDIRECTS,
        max_retries: int = DEFAULT_MAX_RETRIES,
        max_concurrent: int = DEFAULT_MAX_CONCURRENT_REQUESTS,
        request_delay: float = DEFAULT_REQUEST_DELAY_SECONDS,
        user_agent: str = DEFAULT_USER_AGENT,
        transport: Optional[httpx.AsyncBaseTransport] = None,
    ):
        """Initialize the crawler.

        Args:
            layout: Base URL and locale layout
            slugs: Tool slugs to audit, in order
            thresholds: Rule thresholds (defaults if None)
            registry: Optional curated overrides
            extractor: Metadata extractor (regex extractor if None)
            timeout: Per-request timeout in seconds
            max_redirects: Redirect hop limit per page
            max_retries: Retries for timeouts/network errors (0 = none)
            max_concurrent: Maximum requests in flight
            request_delay: Minimum seconds between request starts
            user_agent: User-Agent header
            transport: Optional httpx transport (used by tests)
        """
        if max_concurrent < 1:
            raise ValueError("max_concurrent must be at least 1")
        if max_retries < 0:
            raise ValueError("max_retries must not be negative")

        self.layout = layout
        self.slugs = list(dict.fromkeys(slugs))
        self.thresholds = thresholds or RuleThresholds()
        self.registry = registry
        self.extractor = extractor or RegexMetadataExtractor(self.thresholds.average_glyph_width_px)
        self.timeout = timeout
        self.max_redirects = max_redirects
        self.max_retries = max_retries
        self.max_concurrent = max_concurrent
        self.user_agent = user_agent
        self.transport = transport
        self.rate_limiter = RateLimiter(RateLimitConfig(delay=request_delay))

    @classmethod
    def from_config(
        cls,
        config: AuditConfig,
        slugs: Iterable[str],
        **kwargs,
    ) -> "AuditCrawler":
        layout = LocaleLayout(
            base_url=config.base_url,
            locales=tuple(config.locales),
            default_locale=config.default_locale,
        )
        return cls(
            layout=layout,
            slugs=slugs,
            timeout=config.timeout,
            max_redirects=config.max_redirects,
            max_retries=config.max_retries,
            max_concurrent=config.max_concurrent,
            request_delay=config.request_delay,
            user_agent=config.user_agent,
            **kwargs,
        )

    def run(self) -> CorpusResult:
        """Synchronous wrapper around crawl()."""
        return asyncio.run(self.crawl())

    async def crawl(self) -> CorpusResult:
        """Audit every target and return the frozen corpus."""
        targets = self.layout.targets(self.slugs)
        logger.info(
            f"Total pages to audit: {len(targets)} "
            f"({len(self.slugs)} slugs x {len(self.layout.locales)} locales)"
        )
        started = time.monotonic()

        queue: asyncio.Queue = asyncio.Queue()
        builder = CorpusBuilder(self.layout.locales)
        collector = asyncio.create_task(self._collect(queue, builder))
        semaphore = asyncio.Semaphore(self.max_concurrent)

        async with PageFetcher.create_client(self.transport) as client:
            fetcher = PageFetcher(
                client,
                timeout=self.timeout,
                max_redirects=self.max_redirects,
                max_retries=self.max_retries,
                user_agent=self.user_agent,
            )
            try:
                await asyncio.gather(*(
                    self._audit_target(target, fetcher, semaphore, queue)
                    for target in targets
                ))
            finally:
                await queue.put(None)
                await collector

        corpus = builder.freeze()
        metrics = self.rate_limiter.get_metrics()
        logger.info(
            f"Crawl finished in {time.monotonic() - started:.1f}s: "
            + ", ".join(f"{locale}={len(records)}" for locale, records in corpus.records.items())
            + f", errors={len(corpus.fetch_errors)}, "
            f"avg response {metrics.avg_response_time:.2f}s"
        )
        return corpus

    @staticmethod
    async def _collect(queue: asyncio.Queue, builder: CorpusBuilder) -> None:
        while True:
            outcome = await queue.get()
            if outcome is None:
                return
            builder.add(outcome)

    async def _audit_target(
        self,
        target: AuditTarget,
        fetcher: PageFetcher,
        semaphore: asyncio.Semaphore,
        queue: asyncio.Queue,
    ) -> None:
        async with semaphore:
            await self.rate_limiter.wait()
            logger.info(f"Crawling {target.locale.upper()}: {target.url}")
            outcome = await self._process(target, fetcher)
        await queue.put(outcome)

    async def _process(self, target: AuditTarget, fetcher: PageFetcher) -> TargetOutcome:
        started = time.monotonic()
        try:
            fetched = await fetcher.fetch(target.url)
        except Exception as e:  # isolated to this target
            logger.exception(f"Failed to fetch {target.url}")
            self.rate_limiter.record_request(time.monotonic() - started, success=False)
            return self._error_outcome(target, str(e) or type(e).__name__, FetchErrorKind.PROCESSING)

        self.rate_limiter.record_request(
            time.monotonic() - started, success=isinstance(fetched, FetchResult)
        )

        if isinstance(fetched, FetchError):
            logger.error(f"Error crawling {target.locale.upper()} {target.url}: {fetched.message}")
            return self._error_outcome(target, fetched.message, fetched.kind)

        if fetched.redirect_chain:
            logger.info(f"Redirected: {' -> '.join(fetched.redirect_chain)}")

        try:
            record = self.build_record(target, fetched)
        except Exception as e:  # isolated to this target
            logger.exception(f"Failed to audit {target.url}")
            return self._error_outcome(target, str(e) or type(e).__name__, FetchErrorKind.PROCESSING)
        return TargetOutcome(target=target, record=record)

    @staticmethod
    def _error_outcome(target: AuditTarget, message: str, kind: FetchErrorKind) -> TargetOutcome:
        return TargetOutcome(target=target, error=FetchErrorRecord(
            url=target.url,
            error=message,
            kind=kind.value,
            slug=target.slug,
            locale=target.locale,
        ))

    def build_record(self, target: AuditTarget, fetched: FetchResult) -> PageAuditRecord:
        """Extract and evaluate one fetched page."""
        metadata = self.extractor.extract(fetched.body, fetched.final_url)
        metadata.http_status = fetched.status_code
        metadata.x_robots_tag = fetched.header("x-robots-tag")

        override = self.registry.lookup(target.url) if self.registry else None
        context = RuleContext(layout=self.layout, locale=target.locale, thresholds=self.thresholds)

        return PageAuditRecord(
            locale=target.locale,
            slug=target.slug,
            metadata=metadata,
            rules=evaluate(metadata, context, override),
            indexable=is_indexable(metadata),
            registry=override,
        )
