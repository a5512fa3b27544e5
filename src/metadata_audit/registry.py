"""Curated metadata registry.

The registry holds hand-written title/description/OG values per tool and
locale. When present they take precedence over what was scraped from the page.
Files are YAML or JSON (JSON is valid YAML) shaped like::

    entries:
      - slug: random-number
        i18n:
          en:
            title: Random Number Generator | Text Case Converter
            description: Generate secure random numbers in a custom range.
            alternateTitle: Random Number Generator
            shortDescription: Secure random numbers in any range.
          ru:
            title: ...

``alternateTitle``/``shortDescription`` may also be spelled ``og_title``/
``og_description``.
"""

import logging
from pathlib import Path
from typing import Optional

import yaml

from metadata_audit.config import ValidationInputError
from metadata_audit.constants import REGISTRY_FIELD_LIMITS
from metadata_audit.locales import LocaleLayout
from metadata_audit.models import RegistryOverride

logger = logging.getLogger(__name__)

FIELD_ALIASES = {
    "title": "title",
    "description": "description",
    "og_title": "og_title",
    "alternateTitle": "og_title",
    "og_description": "og_description",
    "shortDescription": "og_description",
}


class Registry:
    """Lookup of RegistryOverride values by page URL."""

    def __init__(self, layout: LocaleLayout, entries: Optional[dict[tuple[str, str], RegistryOverride]] = None):
        self.layout = layout
        self._entries: dict[tuple[str, str], RegistryOverride] = dict(entries or {})
        self._by_url = {
            layout.url_for(slug, locale): override
            for (slug, locale), override in self._entries.items()
        }

    def __len__(self) -> int:
        return len(self._entries)

    @property
    def slugs(self) -> list[str]:
        """Slugs in registry order, without repeats."""
        return list(dict.fromkeys(slug for slug, _ in self._entries))

    def get(self, slug: str, locale: str) -> Optional[RegistryOverride]:
        return self._entries.get((slug, locale))

    def lookup(self, url: str) -> Optional[RegistryOverride]:
        return self._by_url.get(url)

    def length_warnings(self) -> list[str]:
        """Curated values outside the recommended length ranges."""
        warnings = []
        for (slug, locale), override in self._entries.items():
            for field_name, (low, high) in REGISTRY_FIELD_LIMITS.items():
                value = getattr(override, field_name)
                if value is None:
                    continue
                length = len(value.strip())
                if length < low or length > high:
                    warnings.append(
                        f"{slug} [{locale}] {field_name} length {length} out of range [{low}, {high}]"
                    )
        return warnings

    @classmethod
    def from_file(cls, path: str, layout: LocaleLayout) -> "Registry":
        """Load and validate a registry file.

        Args:
            path: YAML or JSON registry file
            layout: Locale layout used to map entries to URLs

        Returns:
            Registry instance

        Raises:
            ValidationInputError: If the file cannot be parsed or is malformed
        """
        file_path = Path(path)
        try:
            with open(file_path, encoding='utf-8') as f:
                data = yaml.safe_load(f)
        except OSError as e:
            raise ValidationInputError(f"Cannot read registry {path}: {e}") from e
        except yaml.YAMLError as e:
            raise ValidationInputError(f"Invalid registry {path}: {e}") from e

        registry = cls(layout, parse_entries(data, layout.locales))
        logger.info(f"Loaded {len(registry)} registry overrides from {path}")

        for warning in registry.length_warnings():
            logger.warning(f"Registry: {warning}")

        return registry


def parse_entries(data, locales) -> dict[tuple[str, str], RegistryOverride]:
    """Turn parsed registry data into overrides keyed by (slug, locale).

    Raises:
        ValidationInputError: On any structural problem
    """
    if isinstance(data, dict):
        data = data.get("entries")
    if not isinstance(data, list):
        raise ValidationInputError("Registry must be a list of entries or have an 'entries' list")

    entries: dict[tuple[str, str], RegistryOverride] = {}
    for position, entry in enumerate(data):
        if not isinstance(entry, dict):
            raise ValidationInputError(f"Registry entry #{position} is not a mapping")

        slug = entry.get("slug")
        if not isinstance(slug, str) or not slug.strip():
            raise ValidationInputError(f"Registry entry #{position} has no slug")

        i18n = entry.get("i18n") or {}
        if not isinstance(i18n, dict):
            raise ValidationInputError(f"Registry entry {slug!r}: i18n must be a mapping")

        for locale, fields in i18n.items():
            if locale not in locales:
                logger.debug(f"Registry entry {slug!r}: skipping unaudited locale {locale!r}")
                continue
            entries[(slug, locale)] = _parse_fields(slug, locale, fields)

    return entries


def _parse_fields(slug: str, locale: str, fields) -> RegistryOverride:
    if not isinstance(fields, dict):
        raise ValidationInputError(f"Registry entry {slug!r} [{locale}] must be a mapping")

    values = {}
    for key, value in fields.items():
        target = FIELD_ALIASES.get(key)
        if target is None or value is None:
            continue
        if not isinstance(value, str):
            raise ValidationInputError(f"Registry entry {slug!r} [{locale}] {key} must be a string")
        values[target] = value

    return RegistryOverride(**values)
