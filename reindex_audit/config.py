"""
Configuration for Re-index Auditing

Comparison settings resolved from defaults, an optional YAML file,
environment variables and explicit overrides, in that order of precedence.
"""

import logging
import os
from dataclasses import dataclass, field, fields
from enum import Enum
from pathlib import Path
from typing import Any, Dict, List, Mapping, Optional, Tuple

import yaml

from reindex_audit.reconciliation.records import KEY_FIELD, ArchiveScope
from reindex_audit.reconciliation.stats import WINDOW_SIZES

logger = logging.getLogger(__name__)


class ConfigurationError(Exception):
    """Raised when comparison settings are invalid."""
    pass


class CompareMode(Enum):
    """Comparison modes."""
    FULL = "full"
    FAST = "fast"
    TEXT = "text"


# Every field of an index document; text is handled separately
NON_TEXT_FIELDS: Tuple[str, ...] = (
    "uri", "archive", "date_label", "genre", "source", "image", "thumbnail", "title",
    "alternative", "url", "role_ART", "role_AUT", "role_EDT", "role_PBL", "role_TRL",
    "role_EGR", "role_ETR", "role_CRE", "freeculture", "is_ocr", "federation",
    "has_full_text", "source_xml", "typewright", "publisher", "agent", "agent_facet",
    "author", "batch", "editor", "text_url", "year", "type", "date_updated", "title_sort",
    "author_sort", "year_sort", "source_html", "source_sgml", "person", "format",
    "language", "geospacial",
)

TEXT_MODE_FIELDS: Tuple[str, ...] = ("uri", "is_ocr", "has_full_text", "text")

# Archives whose text bodies are large enough to require one record per page
LARGE_TEXT_ARCHIVES: Tuple[str, ...] = ("PQCh-EAF", "amdeveryday", "amdecj", "oldBailey")

ENV_VARS = {
    "INDEX_BASE_URL": "base_url",
    "INDEX_USERNAME": "username",
    "INDEX_PASSWORD": "password",
    "COMPARE_PAGE_SIZE": "page_size",
    "COMPARE_LOG_ROOT": "log_root",
}


def archive_to_core(archive: str) -> str:
    """Core name holding a freshly indexed archive."""
    return "archive_" + archive.replace(":", "_").replace(" ", "_").replace(",", "_")


def _split_list(value: Any) -> List[str]:
    if value is None:
        return []
    if isinstance(value, str):
        return [item.strip() for item in value.split(",") if item.strip()]
    return [str(item).strip() for item in value if str(item).strip()]


@dataclass
class CompareConfig:
    """
    Settings for one archive comparison.

    Attributes:
        archive: Archive to compare
        base_url: Index service root URL
        mode: Comparison mode
        include_fields: Explicit field list (overrides mode)
        ignore_fields: Fields dropped from the full catalogue
        page_size: Default records per page
        page_size_overrides: Page size per archive
        large_text_archives: Archives fetched one record per page when text is compared
        baseline_core: Core holding the previously indexed documents
        max_attempts: Fetch attempts per page
        retry_interval: Seconds between fetch attempts
        request_timeout: Per-request timeout in seconds
        window_sizes: Text burst windows to track
        drain_baseline: Keep fetching baseline pages after the candidate is exhausted
        log_root: Directory for per-archive log files
        username: Basic auth user for the index service
        password: Basic auth password for the index service
        vault_secret_path: Vault path holding index credentials
    """

    archive: str = ""
    base_url: str = "http://localhost:8983/solr"
    mode: CompareMode = CompareMode.FULL
    include_fields: List[str] = field(default_factory=list)
    ignore_fields: List[str] = field(default_factory=list)
    page_size: int = 500
    page_size_overrides: Dict[str, int] = field(default_factory=dict)
    large_text_archives: List[str] = field(default_factory=lambda: list(LARGE_TEXT_ARCHIVES))
    baseline_core: str = "resources"
    max_attempts: int = 5
    retry_interval: float = 30.0
    request_timeout: float = 120.0
    window_sizes: List[int] = field(default_factory=lambda: list(WINDOW_SIZES))
    drain_baseline: bool = True
    log_root: Optional[str] = None
    username: Optional[str] = None
    password: Optional[str] = None
    vault_secret_path: Optional[str] = None

    def __post_init__(self):
        if isinstance(self.mode, str):
            try:
                self.mode = CompareMode(self.mode.lower())
            except ValueError:
                raise ConfigurationError(
                    f"Invalid mode: {self.mode}. Must be one of {[m.value for m in CompareMode]}"
                )

        self.include_fields = _split_list(self.include_fields)
        self.ignore_fields = _split_list(self.ignore_fields)

        try:
            self.page_size = int(self.page_size)
            self.max_attempts = int(self.max_attempts)
            self.retry_interval = float(self.retry_interval)
            self.request_timeout = float(self.request_timeout)
            self.window_sizes = [int(size) for size in self.window_sizes]
            self.page_size_overrides = {
                str(name): int(size) for name, size in (self.page_size_overrides or {}).items()
            }
        except (TypeError, ValueError) as e:
            raise ConfigurationError(f"Invalid numeric setting: {e}") from e

    def validate(self) -> None:
        """
        Check settings needed to run a comparison.

        Raises:
            ConfigurationError: If a setting is missing or out of range
        """
        if not self.archive:
            raise ConfigurationError("Archive name is required")
        if not self.base_url:
            raise ConfigurationError("Index base URL is required")
        if self.include_fields and self.ignore_fields:
            raise ConfigurationError("Include and ignore field lists are mutually exclusive")
        if self.page_size < 1:
            raise ConfigurationError(f"Page size must be positive, got {self.page_size}")
        if self.max_attempts < 1:
            raise ConfigurationError(f"max_attempts must be at least 1, got {self.max_attempts}")
        if self.retry_interval < 0:
            raise ConfigurationError(f"retry_interval cannot be negative, got {self.retry_interval}")

        for name, size in self.page_size_overrides.items():
            if size < 1:
                raise ConfigurationError(f"Page size override for {name} must be positive, got {size}")

        unsupported = sorted(set(self.window_sizes) - set(WINDOW_SIZES))
        if unsupported:
            raise ConfigurationError(
                f"Unsupported window sizes {unsupported}. Must be among {list(WINDOW_SIZES)}"
            )

    def field_list(self) -> Tuple[str, ...]:
        """
        Fields requested from the service.

        An ignore list selects the whole catalogue (text included) minus the
        ignored fields; an include list selects exactly those fields plus the
        key; otherwise the mode decides.
        """
        if self.ignore_fields:
            catalogue = NON_TEXT_FIELDS + ("text",)
            return tuple(f for f in catalogue if f not in self.ignore_fields)

        if self.include_fields:
            included = list(self.include_fields)
            if KEY_FIELD not in included:
                included.append(KEY_FIELD)
            return tuple(included)

        if self.mode is CompareMode.FAST:
            return NON_TEXT_FIELDS
        if self.mode is CompareMode.TEXT:
            return TEXT_MODE_FIELDS
        return ("*",)

    @property
    def includes_text(self) -> bool:
        fl = self.field_list()
        return "*" in fl or "text" in fl

    @property
    def validate_required(self) -> bool:
        """Required fields are only checked on full, unfiltered comparisons."""
        return not self.ignore_fields and self.field_list() == ("*",)

    @property
    def candidate_core(self) -> str:
        return archive_to_core(self.archive)

    def page_size_for_archive(self) -> int:
        if self.archive in self.page_size_overrides:
            return self.page_size_overrides[self.archive]
        if self.includes_text and self.archive in self.large_text_archives:
            return 1
        return self.page_size

    def baseline_scope(self) -> ArchiveScope:
        return ArchiveScope(
            target=self.baseline_core,
            archive=self.archive,
            fields=self.field_list(),
            page_size=self.page_size_for_archive()
        )

    def candidate_scope(self) -> ArchiveScope:
        return ArchiveScope(
            target=self.candidate_core,
            archive=self.archive,
            fields=self.field_list(),
            page_size=self.page_size_for_archive()
        )

    @property
    def auth(self) -> Optional[Tuple[str, str]]:
        if self.username and self.password:
            return self.username, self.password
        return None

    def to_dict(self) -> Dict[str, Any]:
        data = {f.name: getattr(self, f.name) for f in fields(self)}
        data["mode"] = self.mode.value
        data["password"] = "***" if self.password else None
        return data


def read_yaml_config(path: str) -> Dict[str, Any]:
    """
    Read settings from a YAML file.

    Raises:
        ConfigurationError: If the file is missing or not a mapping
    """
    config_path = Path(path)
    if not config_path.exists():
        raise ConfigurationError(f"Config file not found: {config_path}")

    with open(config_path, "r") as f:
        try:
            data = yaml.safe_load(f) or {}
        except yaml.YAMLError as e:
            raise ConfigurationError(f"Invalid YAML in {config_path}: {e}") from e

    if not isinstance(data, dict):
        raise ConfigurationError(f"Config file {config_path} must contain a mapping")

    logger.info(f"Loaded config from {config_path}")
    return data


def load_config(
    path: Optional[str] = None,
    env: Optional[Mapping[str, str]] = None,
    **overrides: Any
) -> CompareConfig:
    """
    Resolve comparison settings.

    Args:
        path: Optional YAML config file
        env: Environment mapping (defaults to os.environ)
        **overrides: Explicit settings; None values are ignored

    Returns:
        Resolved CompareConfig

    Raises:
        ConfigurationError: If any source holds an unknown or invalid setting
    """
    env = os.environ if env is None else env
    known = {f.name for f in fields(CompareConfig)}
    settings: Dict[str, Any] = {}

    if path:
        settings.update(read_yaml_config(path))

    for var, name in ENV_VARS.items():
        if env.get(var):
            settings[name] = env[var]

    settings.update({k: v for k, v in overrides.items() if v is not None})

    unknown = sorted(set(settings) - known)
    if unknown:
        raise ConfigurationError(f"Unknown settings: {unknown}")

    return CompareConfig(**settings)
