# src/lint_pr_reviewer/plugin_config.py
import json
import logging
import os
from dataclasses import dataclass, field
from typing import Any, Dict, Mapping, Optional, Tuple

import yaml

from .errors import ConfigError
from .review_decision import DEFAULT_NO_ISSUES_TEXT, DEFAULT_NO_RELEVANT_CHANGES_TEXT, ReviewPolicy

logger = logging.getLogger(__name__)

# Default values for optional parameters
DEFAULT_API_BASE_URL = "https://api.github.com"
DEFAULT_HOST_ADDR = "0.0.0.0:8080"
DEFAULT_QUEUE_SIZE = 10
DEFAULT_RUN_TIMEOUT = 600 # seconds
DEFAULT_LINTER_TIMEOUT = "10m"
DEFAULT_LINTERS = (
    "errcheck", "gosimple", "govet", "ineffassign", "misspell",
    "staticcheck", "typecheck", "unused",
)
DEFAULT_RELEVANT_PATTERNS = ("*.go",)
DEFAULT_ANALYZER_BINARY = "golangci-lint"
DEFAULT_LOG_LEVEL = "INFO"
VALID_LOG_LEVELS = ("DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL")

# Repository files that may override the default linter options, in lookup order
REPO_CONFIG_FILES = (".golangci.yml", ".golangci.yaml", ".golangci.json")

_TRUE_VALUES = {"1", "true", "yes", "on"}
_FALSE_VALUES = {"0", "false", "no", "off"}


@dataclass(frozen=True)
class LinterOptions:
    """
    Options handed to golangci-lint. A None field means "not set", which matters
    when the options are used as an override in merge_linter_options().
    """
    linters: Optional[Tuple[str, ...]] = None
    timeout: Optional[str] = None
    settings: Dict[str, Any] = field(default_factory=dict) # "linters-settings" section

    def to_golangci_config(self) -> Dict[str, Any]:
        config: Dict[str, Any] = {
            "linters": {
                "disable-all": True,
                "enable": list(self.linters or ()),
            },
        }
        if self.settings:
            config["linters-settings"] = self.settings
        if self.timeout:
            config["run"] = {"timeout": self.timeout}
        return config


def _merge_dicts(base: Mapping[str, Any], override: Mapping[str, Any]) -> Dict[str, Any]:
    merged = dict(base)
    for key, value in override.items():
        if isinstance(value, Mapping) and isinstance(merged.get(key), Mapping):
            merged[key] = _merge_dicts(merged[key], value)
        else:
            merged[key] = value
    return merged


def merge_linter_options(base: LinterOptions, override: Optional[LinterOptions]) -> LinterOptions:
    """
    Combines default options with a repository's own. The override wins on every
    field it sets; linter settings are merged key by key.
    """
    if override is None:
        return base
    return LinterOptions(
        linters=override.linters if override.linters is not None else base.linters,
        timeout=override.timeout if override.timeout is not None else base.timeout,
        settings=_merge_dicts(base.settings, override.settings),
    )


def parse_linter_options(data: Mapping[str, Any]) -> LinterOptions:
    """Reads the parts of a golangci-lint config file the reviewer understands."""
    if not isinstance(data, Mapping):
        raise ConfigError("linter config must be a mapping")

    linters_section = data.get("linters") or {}
    enable = linters_section.get("enable") if isinstance(linters_section, Mapping) else None
    if enable is not None and not isinstance(enable, list):
        raise ConfigError("linters.enable must be a list")

    run_section = data.get("run") or {}
    timeout = run_section.get("timeout") if isinstance(run_section, Mapping) else None

    settings = data.get("linters-settings") or {}
    if not isinstance(settings, Mapping):
        raise ConfigError("linters-settings must be a mapping")

    return LinterOptions(
        linters=tuple(str(name) for name in enable) if enable is not None else None,
        timeout=str(timeout) if timeout is not None else None,
        settings=dict(settings),
    )


def read_repo_linter_options(repo_dir: str) -> Optional[LinterOptions]:
    """
    Loads the linter config a repository ships, if any. Returns None when the
    repository has none.
    """
    for name in REPO_CONFIG_FILES:
        path = os.path.join(repo_dir, name)
        if not os.path.isfile(path):
            continue
        logger.info(f"Using repository linter config {name}")
        with open(path, "r", encoding="utf-8") as f:
            try:
                data = json.load(f) if name.endswith(".json") else yaml.safe_load(f)
            except (ValueError, yaml.YAMLError) as e:
                raise ConfigError(f"unable to parse {name}: {e}") from e
        return parse_linter_options(data or {})
    return None


def write_analyzer_config(options: LinterOptions, path: str) -> str:
    with open(path, "w", encoding="utf-8") as f:
        json.dump(options.to_golangci_config(), f, indent=2)
    return path


@dataclass(frozen=True)
class ReviewerConfig:
    """
    Holds all configuration for the reviewer. Built once at startup and passed
    down; nothing mutates it afterwards.
    """

    # --- GitHub ---
    scm_token: Optional[str] = None # Token mode
    app_id: Optional[int] = None # App mode
    private_key_path: Optional[str] = None
    webhook_secret: Optional[str] = None
    api_base_url: str = DEFAULT_API_BASE_URL

    # --- Server / queue ---
    host_addr: str = DEFAULT_HOST_ADDR
    queue_size: int = DEFAULT_QUEUE_SIZE
    run_timeout: float = DEFAULT_RUN_TIMEOUT

    # --- Review behaviour ---
    policy: ReviewPolicy = field(default_factory=ReviewPolicy)
    relevant_patterns: Tuple[str, ...] = DEFAULT_RELEVANT_PATTERNS
    exclude_patterns: Tuple[str, ...] = ()

    # --- Analyzer ---
    linter_options: LinterOptions = field(
        default_factory=lambda: LinterOptions(linters=DEFAULT_LINTERS, timeout=DEFAULT_LINTER_TIMEOUT)
    )
    analyzer_binary: str = DEFAULT_ANALYZER_BINARY

    log_level: str = DEFAULT_LOG_LEVEL

    @property
    def app_mode(self) -> bool:
        return self.app_id is not None

    @property
    def host_and_port(self) -> Tuple[str, int]:
        host, _, port = self.host_addr.rpartition(":")
        try:
            return host or "0.0.0.0", int(port)
        except ValueError:
            raise ConfigError(f"invalid HOST_ADDR '{self.host_addr}'") from None


def _get(env: Mapping[str, str], name: str) -> Optional[str]:
    value = env.get(name)
    if value is None or not value.strip():
        return None
    return value.strip()


def _get_bool(env: Mapping[str, str], name: str, default: bool) -> bool:
    value = _get(env, name)
    if value is None:
        return default
    lowered = value.lower()
    if lowered in _TRUE_VALUES:
        return True
    if lowered in _FALSE_VALUES:
        return False
    raise ConfigError(f"{name} must be a boolean, got '{value}'")


def _get_number(env: Mapping[str, str], name: str, default, cast=int):
    value = _get(env, name)
    if value is None:
        return default
    try:
        number = cast(value)
    except ValueError:
        raise ConfigError(f"{name} must be a number, got '{value}'") from None
    if number <= 0:
        raise ConfigError(f"{name} must be positive, got '{value}'")
    return number


def _get_list(env: Mapping[str, str], name: str, default: Tuple[str, ...]) -> Tuple[str, ...]:
    value = env.get(name)
    if value is None:
        return default
    return tuple(p.strip() for p in value.split(",") if p.strip())


def load_config(environ: Optional[Mapping[str, str]] = None, require_credentials: bool = True) -> ReviewerConfig:
    """
    Builds the configuration from environment variables.

    Raises:
        ConfigError: on malformed values, or when neither a token nor a
            GitHub App id and private key are configured.
    """
    env = os.environ if environ is None else environ

    log_level = (_get(env, "LOG_LEVEL") or DEFAULT_LOG_LEVEL).upper()
    if log_level not in VALID_LOG_LEVELS:
        logger.warning(f"Invalid LOG_LEVEL '{log_level}'. Defaulting to '{DEFAULT_LOG_LEVEL}'.")
        log_level = DEFAULT_LOG_LEVEL

    policy = ReviewPolicy(
        auto_approve=_get_bool(env, "REVIEWER_AUTO_APPROVE", True),
        auto_request_changes=_get_bool(env, "REVIEWER_AUTO_REQUEST_CHANGES", True),
        include_linter_name=_get_bool(env, "REVIEWER_INCLUDE_LINTER_NAME", True),
        no_issues_text=env.get("REVIEWER_NO_ISSUES_TEXT", DEFAULT_NO_ISSUES_TEXT),
        no_relevant_changes_text=env.get("REVIEWER_NO_RELEVANT_CHANGES_TEXT", DEFAULT_NO_RELEVANT_CHANGES_TEXT),
    )

    linter_options = LinterOptions(
        linters=_get_list(env, "REVIEWER_LINTERS", DEFAULT_LINTERS),
        timeout=_get(env, "REVIEWER_LINTER_TIMEOUT") or DEFAULT_LINTER_TIMEOUT,
    )

    config = ReviewerConfig(
        scm_token=_get(env, "GITHUB_TOKEN"),
        app_id=_get_number(env, "GITHUB_APP_ID", None),
        private_key_path=_get(env, "GITHUB_PRIVATE_KEY"),
        webhook_secret=_get(env, "GITHUB_WEBHOOK_SECRET"),
        api_base_url=(_get(env, "GITHUB_API_URL") or DEFAULT_API_BASE_URL).rstrip("/"),
        host_addr=_get(env, "HOST_ADDR") or DEFAULT_HOST_ADDR,
        queue_size=_get_number(env, "REVIEWER_QUEUE_SIZE", DEFAULT_QUEUE_SIZE),
        run_timeout=_get_number(env, "REVIEWER_RUN_TIMEOUT", DEFAULT_RUN_TIMEOUT, cast=float),
        policy=policy,
        relevant_patterns=_get_list(env, "REVIEWER_RELEVANT_PATTERNS", DEFAULT_RELEVANT_PATTERNS),
        exclude_patterns=_get_list(env, "REVIEWER_EXCLUDE_PATTERNS", ()),
        linter_options=linter_options,
        analyzer_binary=_get(env, "REVIEWER_ANALYZER_BINARY") or DEFAULT_ANALYZER_BINARY,
        log_level=log_level,
    )

    if require_credentials:
        validate_credentials(config)
    return config


def validate_credentials(config: ReviewerConfig) -> None:
    if config.app_mode:
        if not config.private_key_path:
            raise ConfigError("GITHUB_PRIVATE_KEY must be set when GITHUB_APP_ID is set")
        if not os.path.isfile(config.private_key_path):
            raise ConfigError(f"GITHUB_PRIVATE_KEY '{config.private_key_path}' does not exist")
    elif not config.scm_token:
        raise ConfigError("either GITHUB_TOKEN or GITHUB_APP_ID and GITHUB_PRIVATE_KEY must be set")
