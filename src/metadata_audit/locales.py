"""URL layout of the audited locales."""

from dataclasses import dataclass
from typing import Optional
from urllib.parse import urljoin, urlparse

from metadata_audit.constants import DEFAULT_LOCALE, DEFAULT_LOCALES, TOOLS_PATH_SEGMENT


@dataclass(frozen=True)
class AuditTarget:
    """One (slug, locale) page to audit."""

    index: int
    slug: str
    locale: str
    url: str


@dataclass(frozen=True)
class LocaleLayout:
    """Maps (slug, locale) to URLs and URLs back to locales.

    The default locale lives at /tools/<slug>; every other locale at
    /<locale>/tools/<slug>.
    """

    base_url: str
    locales: tuple[str, ...] = DEFAULT_LOCALES
    default_locale: str = DEFAULT_LOCALE
    segment: str = TOOLS_PATH_SEGMENT

    def __post_init__(self):
        if self.default_locale not in self.locales:
            raise ValueError(
                f"Default locale {self.default_locale!r} not in {list(self.locales)}"
            )

    def url_for(self, slug: str, locale: str) -> str:
        if locale == self.default_locale:
            path = f"/{self.segment}/{slug}"
        else:
            path = f"/{locale}/{self.segment}/{slug}"
        return self.base_url.rstrip("/") + path

    def locale_of(self, url: str) -> Optional[str]:
        """Infer the locale from the URL path shape.

        Returns None when the path is not under any locale's tools namespace.
        """
        path = urlparse(urljoin(self.base_url + "/", url)).path
        parts = [part for part in path.split("/") if part]

        if len(parts) >= 2 and parts[0] in self.locales and parts[1] == self.segment:
            return parts[0]
        if parts and parts[0] == self.segment:
            return self.default_locale
        return None

    def targets(self, slugs) -> list[AuditTarget]:
        """Expand slugs into targets, slug by slug, locale by locale."""
        targets = []
        for slug in slugs:
            for locale in self.locales:
                targets.append(AuditTarget(
                    index=len(targets),
                    slug=slug,
                    locale=locale,
                    url=self.url_for(slug, locale),
                ))
        return targets
