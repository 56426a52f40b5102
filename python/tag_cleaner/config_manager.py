#!/usr/bin/env python3
"""
Configuration Manager for the Docker Hub tag cleaner

This module loads configuration from a YAML file and environment variables
and turns it into an immutable CleanerSettings object. The settings are built
once at startup and handed to the cleanup run; nothing reads the environment
after that.

Priority for each option: command line override -> environment variable ->
config file -> default.
"""

import logging
import os
from dataclasses import dataclass, field
from typing import Any, Dict, List, Optional, Tuple

import yaml

from tag_cleaner.auth import get_credentials_from_k8s_secret
from tag_cleaner.error_utils import ConfigError, ErrorCategory, create_config_error
from tag_cleaner.models import Repository
from tag_cleaner.registry_client import DEFAULT_API_URL
from tag_cleaner.retention import MB, RetentionPolicy

DEFAULT_CONFIG_FILE = "config.yaml"

_TRUE_VALUES = ("true", "1", "yes", "on")


@dataclass(frozen=True)
class RetryConfig:
    max_retries: int = 3
    initial_delay: float = 1.0
    max_delay: float = 30.0
    exponential_base: float = 2.0
    jitter: bool = True
    timeout: float = 30.0


@dataclass(frozen=True)
class CleanerSettings:
    """Everything one cleanup run needs, validated"""

    username: str
    password: str = field(repr=False)
    repository: Repository
    policy: RetentionPolicy
    api_url: str = DEFAULT_API_URL
    protection_file: Optional[str] = None
    protected_tags: Tuple[str, ...] = ()
    dry_run: bool = False
    report_path: Optional[str] = None
    retry: RetryConfig = field(default_factory=RetryConfig)


def _is_unset(value: Any) -> bool:
    return value is None or (isinstance(value, str) and not value.strip())


def parse_keep_count(value: Any) -> Optional[int]:
    """KEEP_COUNT: unset means unbounded, otherwise an integer >= 0.

    Raises:
        ValueError: If the value is not a non-negative integer
    """
    if _is_unset(value):
        return None
    if isinstance(value, bool):
        raise ValueError(f"expected an integer, got {value!r}")
    try:
        count = int(str(value).strip())
    except ValueError:
        raise ValueError(f"expected an integer, got {value!r}")
    if count < 0:
        raise ValueError(f"must be >= 0, got {count}")
    return count


def parse_max_size_mb(value: Any) -> Optional[int]:
    """MAX_SIZE_MB: unset or <= 0 means unbounded; returns the limit in bytes.

    Raises:
        ValueError: If the value is not an integer
    """
    if _is_unset(value):
        return None
    if isinstance(value, bool):
        raise ValueError(f"expected an integer number of megabytes, got {value!r}")
    try:
        megabytes = int(str(value).strip())
    except ValueError:
        raise ValueError(f"expected an integer number of megabytes, got {value!r}")
    if megabytes <= 0:
        return None
    return megabytes * MB


def parse_bool(value: Any) -> bool:
    if isinstance(value, bool):
        return value
    return str(value).strip().lower() in _TRUE_VALUES


class ConfigManager:
    """Manages configuration for the tag cleaner"""

    def __init__(self, config_file: Optional[str] = None, environ: Optional[Dict[str, str]] = None):
        """Initialize ConfigManager

        Args:
            config_file: Path to configuration YAML file (defaults to CONFIG_FILE env var or config.yaml).
                An explicitly named file must exist; the default one is optional.
            environ: Environment mapping to read (defaults to os.environ)
        """
        self.environ = os.environ if environ is None else environ
        explicit = config_file is not None or "CONFIG_FILE" in self.environ
        self.config_file = config_file or self.environ.get("CONFIG_FILE", DEFAULT_CONFIG_FILE)
        self.config = self._load_config(explicit)

    def _load_config(self, explicit: bool) -> Dict[str, Any]:
        """Load configuration from YAML file with defaults"""
        default_config = {
            "registry": {
                "api_url": DEFAULT_API_URL,
                "username": None,
                "password": None,
                "repository": None,
                "auth_secret": None,
            },
            "kubernetes": {"namespace": "default"},
            "retention": {"keep_count": None, "max_size_mb": None},
            "protection": {"file": None, "tags": []},
            "retry": {
                "max_retries": 3,
                "initial_delay": 1.0,
                "max_delay": 30.0,
                "exponential_base": 2.0,
                "jitter": True,
                "timeout": 30,  # Per-request timeout in seconds
            },
            "security": {"dry_run": False},
            "reports": {"output": None},
        }

        if not os.path.exists(self.config_file):
            if explicit:
                raise create_config_error("config_file", self.config_file, "file not found")
            logging.debug(f"Config file {self.config_file} not found, using defaults")
            return default_config

        try:
            with open(self.config_file, "r") as f:
                user_config = yaml.safe_load(f) or {}
        except (OSError, yaml.YAMLError) as e:
            raise create_config_error("config_file", self.config_file, str(e)) from e

        if not isinstance(user_config, dict):
            raise create_config_error("config_file", self.config_file, "top level must be a mapping")

        logging.debug(f"Loaded configuration from {self.config_file}")
        return self._merge_config(default_config, user_config)

    def _merge_config(self, default: Dict[str, Any], user: Dict[str, Any]) -> Dict[str, Any]:
        """Recursively merge user config with defaults"""
        result = default.copy()
        for key, value in user.items():
            if key in result and isinstance(result[key], dict) and isinstance(value, dict):
                result[key] = self._merge_config(result[key], value)
            else:
                result[key] = value
        return result

    def _section(self, name: str) -> Dict[str, Any]:
        return self.config.get(name) or {}

    def _env(self, name: str) -> Optional[str]:
        value = self.environ.get(name)
        return value if value else None

    # Registry configuration
    def get_api_url(self) -> str:
        """Get Docker Hub API URL from environment or config"""
        return self._env("DOCKER_HUB_API") or self._section("registry").get("api_url") or DEFAULT_API_URL

    def get_username(self) -> Optional[str]:
        return self._env("DOCKER_USERNAME") or self._section("registry").get("username")

    def get_password(self) -> Optional[str]:
        return self._env("DOCKER_PASSWORD") or self._section("registry").get("password")

    def get_repository(self) -> Optional[str]:
        """Get repository ("name" or "namespace/name") from environment or config"""
        return self._env("DOCKER_REPOSITORY") or self._section("registry").get("repository")

    def get_auth_secret(self) -> Optional[str]:
        """Name of a Kubernetes dockerconfigjson secret holding Docker Hub credentials"""
        return self._env("REGISTRY_AUTH_SECRET") or self._section("registry").get("auth_secret")

    def get_kubernetes_namespace(self) -> str:
        return self._env("POD_NAMESPACE") or self._section("kubernetes").get("namespace") or "default"

    def get_registry_credentials(self) -> Tuple[Optional[str], Optional[str]]:
        """Get (username, password).

        Priority order:
        1. DOCKER_USERNAME / DOCKER_PASSWORD environment variables
        2. registry.username / registry.password in the config file
        3. Kubernetes secret named by REGISTRY_AUTH_SECRET (fills whatever is still missing)
        """
        username = self.get_username()
        password = self.get_password()

        secret_name = self.get_auth_secret()
        if (not username or not password) and secret_name:
            secret_user, secret_password = get_credentials_from_k8s_secret(
                secret_name, self.get_kubernetes_namespace()
            )
            username = username or secret_user
            password = password or secret_password

        return username, password

    # Retention configuration
    def get_keep_count(self) -> Any:
        """Raw keep count (validated in build_settings)"""
        env_value = self.environ.get("KEEP_COUNT")
        if env_value is not None and env_value.strip():
            return env_value
        return self._section("retention").get("keep_count")

    def get_max_size_mb(self) -> Any:
        """Raw max size in MB (validated in build_settings)"""
        env_value = self.environ.get("MAX_SIZE_MB")
        if env_value is not None and env_value.strip():
            return env_value
        return self._section("retention").get("max_size_mb")

    # Protection configuration
    def get_protection_file(self) -> Optional[str]:
        return self._env("SKIP_TAGS_FILE") or self._section("protection").get("file")

    def get_protected_tags(self) -> List[str]:
        tags = self._section("protection").get("tags") or []
        if isinstance(tags, str):
            tags = [tags]
        return [str(t) for t in tags]

    # Security configuration
    def is_dry_run(self) -> bool:
        env_value = self._env("DRY_RUN")
        if env_value is not None:
            return parse_bool(env_value)
        return parse_bool(self._section("security").get("dry_run", False))

    # Report configuration
    def get_report_path(self) -> Optional[str]:
        return self._env("REPORT_FILE") or self._section("reports").get("output")

    # Retry configuration
    def get_max_retries(self) -> int:
        """Get max retries from config, with type coercion"""
        retries = self._section("retry").get("max_retries", 3)
        try:
            return int(retries)
        except (ValueError, TypeError):
            raise create_config_error("retry.max_retries", retries, "must be an integer")

    def get_retry_initial_delay(self) -> float:
        """Get initial retry delay from config, with type coercion"""
        delay = self._section("retry").get("initial_delay", 1.0)
        try:
            return float(delay)
        except (ValueError, TypeError):
            raise create_config_error("retry.initial_delay", delay, "must be a number")

    def get_retry_max_delay(self) -> float:
        """Get max retry delay from config, with type coercion"""
        delay = self._section("retry").get("max_delay", 30.0)
        try:
            return float(delay)
        except (ValueError, TypeError):
            raise create_config_error("retry.max_delay", delay, "must be a number")

    def get_retry_exponential_base(self) -> float:
        """Get exponential base for retry backoff from config, with type coercion"""
        base = self._section("retry").get("exponential_base", 2.0)
        try:
            return float(base)
        except (ValueError, TypeError):
            raise create_config_error("retry.exponential_base", base, "must be a number")

    def get_retry_jitter(self) -> bool:
        """Get whether to use jitter in retry delays from config"""
        return parse_bool(self._section("retry").get("jitter", True))

    def get_retry_timeout(self) -> float:
        """Get per-request timeout from config, with type coercion"""
        timeout = self._section("retry").get("timeout", 30)
        try:
            return float(timeout)
        except (ValueError, TypeError):
            raise create_config_error("retry.timeout", timeout, "must be a number of seconds")

    def get_retry_config(self) -> RetryConfig:
        retry = RetryConfig(
            max_retries=self.get_max_retries(),
            initial_delay=self.get_retry_initial_delay(),
            max_delay=self.get_retry_max_delay(),
            exponential_base=self.get_retry_exponential_base(),
            jitter=self.get_retry_jitter(),
            timeout=self.get_retry_timeout(),
        )

        errors = []
        if retry.max_retries < 0:
            errors.append(("retry.max_retries", retry.max_retries, "must be a non-negative integer"))
        elif retry.max_retries > 10:
            logging.warning(f"Configuration warning: max_retries is very high ({retry.max_retries})")
        if retry.initial_delay < 0:
            errors.append(("retry.initial_delay", retry.initial_delay, "must be a non-negative number"))
        if retry.max_delay < retry.initial_delay:
            errors.append(("retry.max_delay", retry.max_delay, "must be >= retry.initial_delay"))
        if retry.exponential_base < 1.0:
            errors.append(("retry.exponential_base", retry.exponential_base, "must be >= 1.0"))
        if retry.timeout <= 0:
            errors.append(("retry.timeout", retry.timeout, "must be a positive number of seconds"))
        if errors:
            raise _validation_error(errors)
        return retry

    def build_settings(self, overrides: Optional[Dict[str, Any]] = None) -> CleanerSettings:
        """Validate configuration and build the settings for one run

        Args:
            overrides: Values from the command line; None entries are ignored.
                Recognized keys: username, repository, keep_count, max_size_mb,
                protection_file, dry_run, report_path, api_url

        Raises:
            ConfigError: If configuration is invalid; all problems are reported together
        """
        overrides = {k: v for k, v in (overrides or {}).items() if v is not None}
        errors: List[Tuple[str, Any, str]] = []

        username, password = self.get_registry_credentials()
        username = overrides.get("username") or username
        if not username:
            errors.append(("DOCKER_USERNAME", username, "is required"))
        if not password:
            errors.append(("DOCKER_PASSWORD", None, "is required"))

        repository = None
        repository_value = overrides.get("repository") or self.get_repository()
        if not repository_value:
            errors.append(("DOCKER_REPOSITORY", repository_value, "is required"))
        else:
            try:
                repository = Repository.parse(repository_value, default_namespace=username)
            except ValueError as e:
                errors.append(("DOCKER_REPOSITORY", repository_value, str(e)))

        keep_count_value = overrides.get("keep_count", self.get_keep_count())
        max_count = None
        try:
            max_count = parse_keep_count(keep_count_value)
        except ValueError as e:
            errors.append(("KEEP_COUNT", keep_count_value, str(e)))

        max_size_value = overrides.get("max_size_mb", self.get_max_size_mb())
        max_size = None
        try:
            max_size = parse_max_size_mb(max_size_value)
        except ValueError as e:
            errors.append(("MAX_SIZE_MB", max_size_value, str(e)))

        retry = None
        try:
            retry = self.get_retry_config()
        except ConfigError as e:
            errors.extend((field_name, value, reason) for field_name, value, reason in _errors_of(e))

        if errors:
            raise _validation_error(errors)

        if max_count is None and max_size is None:
            logging.warning("Configuration warning: neither KEEP_COUNT nor MAX_SIZE_MB is set, nothing will be deleted")

        return CleanerSettings(
            username=username,
            password=password,
            repository=repository,
            policy=RetentionPolicy(max_count=max_count, max_total_size_bytes=max_size),
            api_url=overrides.get("api_url") or self.get_api_url(),
            protection_file=overrides.get("protection_file") or self.get_protection_file(),
            protected_tags=tuple(self.get_protected_tags()),
            dry_run=bool(overrides.get("dry_run")) or self.is_dry_run(),
            report_path=overrides.get("report_path") or self.get_report_path(),
            retry=retry,
        )


def _errors_of(error: ConfigError) -> List[Tuple[str, Any, str]]:
    problems = error.details.get("problems")
    if problems:
        return [(p["field"], p["value"], p["reason"]) for p in problems]
    return [(error.details.get("field"), error.details.get("value"), error.details.get("reason"))]


def _validation_error(errors: List[Tuple[str, Any, str]]) -> ConfigError:
    """One ConfigError describing every problem found"""
    if len(errors) == 1:
        return create_config_error(*errors[0])

    lines = [f"{field_name} {reason} (got: {value!r})" for field_name, value, reason in errors]
    return ConfigError(
        message="Configuration validation failed:\n  " + "\n  ".join(lines),
        category=ErrorCategory.CONFIGURATION,
        suggestions=["Check config.yaml and the environment variables listed above"],
        details={"problems": [{"field": f, "value": v, "reason": r} for f, v, r in errors]},
    )


def describe_settings(settings: CleanerSettings) -> List[str]:
    """Human-readable configuration lines; the password is masked"""
    return [
        "Current Configuration:",
        f"  API URL: {settings.api_url}",
        f"  Repository: {settings.repository}",
        f"  Username: {settings.username}",
        f"  Password: {'*' * len(settings.password)}",
        f"  Retention: {settings.policy.describe()}",
        f"  Protection File: {settings.protection_file or 'Not configured'}",
        f"  Inline Protected Tags: {len(settings.protected_tags)}",
        f"  Dry Run: {settings.dry_run}",
        f"  Report File: {settings.report_path or 'Not configured'}",
        f"  Retries: {settings.retry.max_retries} (timeout {settings.retry.timeout}s)",
    ]
