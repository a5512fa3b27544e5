from dotenv import load_dotenv
from dataclasses import dataclass, field
from pathlib import Path
import json
import logging
import os

from metadata_audit.constants import (
    DEFAULT_BASE_URL,
    DEFAULT_LOCALE,
    DEFAULT_LOCALES,
    DEFAULT_REQUEST_TIMEOUT_SECONDS,
    DEFAULT_MAX_REDIRECTS,
    DEFAULT_MAX_RETRIES,
    DEFAULT_MAX_CONCURRENT_REQUESTS,
    DEFAULT_REQUEST_DELAY_SECONDS,
    DEFAULT_USER_AGENT,
    DEFAULT_AVERAGE_GLYPH_WIDTH_PX,
    DEFAULT_ISSUE_LOCALE,
)

load_dotenv()  # Loads variables from .env file

logger = logging.getLogger(__name__)

ENV_PREFIX = "METADATA_AUDIT_"


class ValidationInputError(ValueError):
    """Raised when an input file (registry, slugs, thresholds) is malformed."""


def _split_list(value: str) -> tuple[str, ...]:
    return tuple(item.strip() for item in value.split(",") if item.strip())


@dataclass
class AuditConfig:
    """Run settings for one audit."""
    base_url: str = DEFAULT_BASE_URL
    locales: tuple[str, ...] = DEFAULT_LOCALES
    default_locale: str = DEFAULT_LOCALE
    timeout: float = DEFAULT_REQUEST_TIMEOUT_SECONDS
    max_redirects: int = DEFAULT_MAX_REDIRECTS
    max_retries: int = DEFAULT_MAX_RETRIES
    max_concurrent: int = DEFAULT_MAX_CONCURRENT_REQUESTS
    request_delay: float = DEFAULT_REQUEST_DELAY_SECONDS
    user_agent: str = DEFAULT_USER_AGENT
    output_dir: str = "audits"
    issue_locale: str = DEFAULT_ISSUE_LOCALE
    log_level: str = "INFO"

    @classmethod
    def from_env(cls) -> "AuditConfig":
        """Load configuration from environment variables.

        Returns:
            AuditConfig: Configuration instance with values from environment
        """
        return cls(
            base_url=os.getenv(f"{ENV_PREFIX}BASE_URL", DEFAULT_BASE_URL).rstrip("/"),
            locales=_split_list(os.getenv(f"{ENV_PREFIX}LOCALES", ",".join(DEFAULT_LOCALES))),
            default_locale=os.getenv(f"{ENV_PREFIX}DEFAULT_LOCALE", DEFAULT_LOCALE),
            timeout=float(os.getenv(f"{ENV_PREFIX}TIMEOUT", str(DEFAULT_REQUEST_TIMEOUT_SECONDS))),
            max_redirects=int(os.getenv(f"{ENV_PREFIX}MAX_REDIRECTS", str(DEFAULT_MAX_REDIRECTS))),
            max_retries=int(os.getenv(f"{ENV_PREFIX}MAX_RETRIES", str(DEFAULT_MAX_RETRIES))),
            max_concurrent=int(os.getenv(f"{ENV_PREFIX}MAX_CONCURRENT", str(DEFAULT_MAX_CONCURRENT_REQUESTS))),
            request_delay=float(os.getenv(f"{ENV_PREFIX}REQUEST_DELAY", str(DEFAULT_REQUEST_DELAY_SECONDS))),
            user_agent=os.getenv(f"{ENV_PREFIX}USER_AGENT", DEFAULT_USER_AGENT),
            output_dir=os.getenv(f"{ENV_PREFIX}OUTPUT_DIR", "audits"),
            issue_locale=os.getenv(f"{ENV_PREFIX}ISSUE_LOCALE", DEFAULT_ISSUE_LOCALE),
            log_level=os.getenv("LOG_LEVEL", "INFO"),
        )

    def validate(self) -> None:
        """Check numeric run settings.

        Raises:
            ValidationInputError: If a limit is out of range
        """
        if self.max_concurrent < 1:
            raise ValidationInputError(f"Concurrency must be at least 1, got {self.max_concurrent}")
        if self.max_retries < 0:
            raise ValidationInputError(f"Retries must not be negative, got {self.max_retries}")
        if self.max_redirects < 0:
            raise ValidationInputError(f"Max redirects must not be negative, got {self.max_redirects}")
        if self.timeout <= 0:
            raise ValidationInputError(f"Timeout must be positive, got {self.timeout}")
        if self.request_delay < 0:
            raise ValidationInputError(f"Delay must not be negative, got {self.request_delay}")


@dataclass
class RuleThresholds:
    """Business thresholds and phrase lists used by the rule evaluator."""

    # Title
    title_min_length: int = 45
    title_max_length: int = 65
    title_max_pixel_width: int = 600
    average_glyph_width_px: int = DEFAULT_AVERAGE_GLYPH_WIDTH_PX

    # Description
    description_min_length: int = 120
    description_max_length: int = 160

    # Keywords that mark a title as describing a tool
    tool_keywords: tuple[str, ...] = (
        "generator", "converter", "tool", "online", "free", "create", "make",
        "build", "transform", "convert", "counter", "analyzer", "translator",
        "encoder", "decoder",
    )

    # Phrases that make a description generic (matched lowercase)
    generic_phrases: tuple[str, ...] = (
        "use this free online tool",
        "fast and reliable",
        "no limits",
        "no signup",
        "professional text transformation tools",
    )

    # Phrases that make a title boilerplate (matched case-sensitively)
    boilerplate_phrases: tuple[str, ...] = (
        "Free Online Tool",
        "Professional Text Tools",
        "Professional Text Transformation Tools",
    )

    # Accepted brand suffixes at the end of a title
    brand_suffixes: tuple[str, ...] = (
        " | Text Case Converter",
        " — Text Case Converter",
    )

    # Script each locale's title and description must be written in
    script_patterns: dict[str, str] = field(default_factory=lambda: {
        "en": r"^[a-z\s\-—|.,!?]+$",
        "ru": r"[а-яё]",
    })

    @classmethod
    def from_env(cls) -> "RuleThresholds":
        """Load numeric thresholds from environment variables.

        Environment variables should be prefixed with METADATA_AUDIT_THRESHOLD_
        e.g., METADATA_AUDIT_THRESHOLD_TITLE_MAX_PIXEL_WIDTH=580

        Returns:
            RuleThresholds with values from environment
        """
        thresholds = cls()
        prefix = f"{ENV_PREFIX}THRESHOLD_"

        for field_name in thresholds.__dataclass_fields__:
            env_key = f"{prefix}{field_name.upper()}"
            env_value = os.getenv(env_key)

            if env_value is not None:
                field_type = thresholds.__dataclass_fields__[field_name].type
                try:
                    if field_type == int:
                        setattr(thresholds, field_name, int(env_value))
                    elif field_type == float:
                        setattr(thresholds, field_name, float(env_value))
                except ValueError:
                    logger.warning(f"Ignoring non-numeric {env_key}={env_value!r}")

        return thresholds

    @classmethod
    def from_file(cls, path: str) -> "RuleThresholds":
        """Load thresholds from a JSON configuration file.

        Args:
            path: Path to JSON configuration file

        Returns:
            RuleThresholds with values from file

        Raises:
            ValidationInputError: If the file is not valid JSON or a value has
                the wrong shape
        """
        thresholds = cls()
        file_path = Path(path)

        if not file_path.exists():
            logger.warning(f"Thresholds file {path} not found, using defaults")
            return thresholds

        try:
            with open(file_path, 'r', encoding='utf-8') as f:
                config = json.load(f)
        except json.JSONDecodeError as e:
            raise ValidationInputError(f"Invalid thresholds file {path}: {e}") from e

        if not isinstance(config, dict):
            raise ValidationInputError(f"Invalid thresholds file {path}: expected an object")
        threshold_config = config.get('thresholds', config)

        for field_name in thresholds.__dataclass_fields__:
            if field_name not in threshold_config:
                continue
            value = threshold_config[field_name]
            current = getattr(thresholds, field_name)
            if isinstance(current, tuple):
                if not isinstance(value, list) or not all(isinstance(v, str) for v in value):
                    raise ValidationInputError(f"{field_name} must be a list of strings")
                value = tuple(value)
            elif isinstance(current, dict):
                if not isinstance(value, dict):
                    raise ValidationInputError(f"{field_name} must be an object")
            elif isinstance(value, bool) or not isinstance(value, (int, float)):
                raise ValidationInputError(f"{field_name} must be a number")
            setattr(thresholds, field_name, value)

        return thresholds

    def to_dict(self) -> dict:
        """Convert thresholds to dictionary.

        Returns:
            Dictionary of all threshold values
        """
        result = {}
        for field_name in self.__dataclass_fields__:
            value = getattr(self, field_name)
            result[field_name] = list(value) if isinstance(value, tuple) else value
        return result
