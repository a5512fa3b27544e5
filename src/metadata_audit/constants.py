# src/metadata_audit/constants.py
"""Centralized constants for the metadata audit.

This module contains magic numbers and default catalogue values that are used
across multiple modules. For user-configurable thresholds, see config.py
and RuleThresholds.
"""

# =============================================================================
# Site Layout Constants
# =============================================================================

# Default origin that is audited when no base URL is configured
DEFAULT_BASE_URL = "https://textcaseconverter.net"

# Locale served without a path prefix (e.g. /tools/<slug>)
DEFAULT_LOCALE = "en"

# Locales audited by default, default locale first
DEFAULT_LOCALES = ("en", "ru")

# Path segment under which every audited page lives
TOOLS_PATH_SEGMENT = "tools"

# Tool slugs audited when neither a slugs file nor a registry is given
DEFAULT_TOOL_SLUGS = (
    "webp-to-png", "png-to-webp", "random-month", "remove-line-breaks",
    "text-replace", "text-counter", "uuid-generator", "slugify-url",
    "roman-numeral-date", "rot13", "random-number", "url-converter",
    "utm-builder", "subscript-text", "sentence-case", "repeat-text",
    "pig-latin", "title-case", "sentence-counter", "remove-text-formatting",
    "webp-to-jpg", "utf8-converter", "random-letter", "plain-text",
    "random-choice", "word-frequency", "sort-words", "uppercase",
    "png-to-jpg", "random-ip", "random-date", "jpg-to-png", "invisible-text",
    "csv-to-json", "alternating-case", "instagram-fonts", "lowercase",
    "image-cropper", "nato-phonetic", "image-to-text", "image-resizer",
    "italic-text", "ascii-art-generator", "jpg-to-webp", "mirror-text",
    "cursed-text", "online-notepad", "facebook-font", "password-generator",
    "discord-font", "big-text", "number-sorter", "json-stringify",
    "morse-code", "binary-code-translator", "md5-hash",
    "base64-encoder-decoder", "bubble-text", "duplicate-line-remover",
    "hex-to-text", "bold-text", "phonetic-spelling",
)


# =============================================================================
# Fetcher Constants
# =============================================================================

# Default request timeout in seconds
DEFAULT_REQUEST_TIMEOUT_SECONDS = 10.0

# Maximum redirect hops followed before giving up
DEFAULT_MAX_REDIRECTS = 10

# Retries are off unless explicitly enabled
DEFAULT_MAX_RETRIES = 0

# Base for exponential backoff calculation
EXPONENTIAL_BACKOFF_BASE = 2

# Initial backoff delay in seconds
INITIAL_BACKOFF_DELAY_SECONDS = 1.0

# Maximum backoff delay in seconds (cap for exponential growth)
MAX_BACKOFF_DELAY_SECONDS = 30.0

# User agent sent with every audit request
DEFAULT_USER_AGENT = "Metadata-Audit-Bot/1.0"

# Default concurrent in-flight fetches
DEFAULT_MAX_CONCURRENT_REQUESTS = 4

# Courtesy delay between request starts (seconds)
DEFAULT_REQUEST_DELAY_SECONDS = 0.1


# =============================================================================
# Extraction Constants
# =============================================================================

# Average glyph width used for the title pixel width heuristic
DEFAULT_AVERAGE_GLYPH_WIDTH_PX = 6


# =============================================================================
# Reporting Constants
# =============================================================================

# Maximum sample URLs stored per issue
MAX_ISSUE_SAMPLE_URLS = 10

# Sample URLs shown per issue in the text summary
TEXT_SUMMARY_SAMPLE_URLS = 3

# Truncation length for duplicate description evidence
MAX_DUPLICATE_EVIDENCE_LENGTH = 100

# Rendering for a rule that has no status on a record
MISSING_RULE_PLACEHOLDER = "N/A"

# Locale whose rule failures feed the issue catalog
DEFAULT_ISSUE_LOCALE = "en"


# =============================================================================
# Registry Constants
# =============================================================================

# Recommended length ranges for curated registry values (warnings only)
REGISTRY_FIELD_LIMITS = {
    "title": (30, 60),
    "description": (80, 160),
    "og_description": (40, 140),
}
