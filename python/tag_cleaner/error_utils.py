"""
Error types and message utilities for providing actionable guidance to users.

Every failure the cleaner can hit is an ActionableError subclass. Fatal ones
(ConfigError, AuthError, FetchError, ProtectionLoadError) stop the run;
DeleteError is collected per tag and reported at the end.
"""

from enum import Enum
from typing import Any, Dict, List, Optional


class ErrorCategory(Enum):
    """Categories of errors for better error handling"""
    CONNECTION = "connection"
    AUTHENTICATION = "authentication"
    CONFIGURATION = "configuration"
    PERMISSION = "permission"
    RESOURCE = "resource"
    NETWORK = "network"
    TIMEOUT = "timeout"
    UNKNOWN = "unknown"


class ActionableError(Exception):
    """Exception with actionable guidance for users"""

    def __init__(self, message: str, category: ErrorCategory = ErrorCategory.UNKNOWN,
                 suggestions: Optional[List[str]] = None, details: Optional[Dict[str, Any]] = None):
        """Initialize actionable error

        Args:
            message: Primary error message
            category: Error category for classification
            suggestions: List of suggested fixes
            details: Additional context information
        """
        self.message = message
        self.category = category
        self.suggestions = suggestions or []
        self.details = details or {}
        super().__init__(self.format_message())

    def format_message(self) -> str:
        """Format the complete error message with suggestions"""
        lines = [f"❌ {self.message}"]

        if self.suggestions:
            lines.append("\n💡 Suggested fixes:")
            for i, suggestion in enumerate(self.suggestions, 1):
                lines.append(f"   {i}. {suggestion}")

        if self.details:
            lines.append("\n📋 Additional details:")
            for key, value in self.details.items():
                lines.append(f"   {key}: {value}")

        return "\n".join(lines)


class ConfigError(ActionableError):
    """Invalid or missing configuration; raised before any network call"""


class AuthError(ActionableError):
    """Credential exchange with the registry was rejected"""


class FetchError(ActionableError):
    """A page of the tag listing could not be retrieved"""


class ProtectionLoadError(ActionableError):
    """A protection list was configured but could not be read"""


class DeleteError(ActionableError):
    """A single tag deletion was rejected. Recoverable."""

    def __init__(self, tag: str, status_code: Optional[int], reason: str):
        self.tag = tag
        self.status_code = status_code
        self.reason = reason

        if status_code == 404:
            category = ErrorCategory.RESOURCE
            suggestions = ["The tag may already have been deleted by another process"]
        elif status_code in (401, 403):
            category = ErrorCategory.PERMISSION
            suggestions = [
                "Verify the account has delete (admin) rights on the repository",
                "Personal access tokens need the 'Read, Write, Delete' scope",
            ]
        else:
            category = ErrorCategory.RESOURCE if status_code else ErrorCategory.NETWORK
            suggestions = []

        super().__init__(
            message=f"Failed to delete tag '{tag}': {reason}",
            category=category,
            suggestions=suggestions,
            details={"tag": tag, "status_code": status_code},
        )


def create_config_error(field: str, value: Any, reason: str) -> ConfigError:
    """Create actionable error for a single configuration validation failure"""
    suggestions = [
        f"Check the '{field}' value in config.yaml or the matching environment variable",
        "Check config-example.yaml for the expected format",
    ]

    if "count" in field.lower():
        suggestions.insert(1, "KEEP_COUNT must be a non-negative integer, or unset for no limit")
    elif "size" in field.lower():
        suggestions.insert(1, "MAX_SIZE_MB must be an integer number of megabytes, or unset/0 for no limit")
    elif "timeout" in field.lower() or "delay" in field.lower():
        suggestions.insert(1, "Time values must be positive numbers")

    return ConfigError(
        message=f"Configuration error: Invalid value for '{field}'",
        category=ErrorCategory.CONFIGURATION,
        suggestions=suggestions,
        details={
            "field": field,
            "value": value,
            "reason": reason
        }
    )


def create_registry_auth_error(api_url: str, status_code: Optional[int], reason: str) -> AuthError:
    """Create actionable error for registry authentication failures"""
    suggestions = [
        "Verify DOCKER_USERNAME and DOCKER_PASSWORD are set correctly",
        "If two-factor authentication is enabled, use a personal access token as the password",
        "Verify the token hasn't expired or been revoked",
    ]

    if status_code == 429:
        suggestions.insert(0, "Docker Hub is rate limiting logins, wait before retrying")
    elif status_code is None:
        suggestions.insert(0, f"Check network connectivity to {api_url}")

    return AuthError(
        message=f"Failed to authenticate with Docker Hub at {api_url}",
        category=ErrorCategory.AUTHENTICATION,
        suggestions=suggestions,
        details={
            "api_url": api_url,
            "status_code": status_code,
            "error_message": reason
        }
    )


def create_fetch_error(repository: str, page: int, status_code: Optional[int], reason: str) -> FetchError:
    """Create actionable error for a failed page of the tag listing"""
    suggestions = [
        f"Verify the repository '{repository}' exists and the account can read it",
        "Re-run the cleanup; no tags were deleted",
    ]

    if status_code is None:
        category = ErrorCategory.NETWORK
        suggestions.insert(0, "Check network connectivity to Docker Hub")
    elif status_code == 404:
        category = ErrorCategory.RESOURCE
        suggestions.insert(0, "Check DOCKER_REPOSITORY (format: name or namespace/name)")
    elif status_code in (401, 403):
        category = ErrorCategory.PERMISSION
    else:
        category = ErrorCategory.RESOURCE

    return FetchError(
        message=f"Failed to fetch tags for {repository} (page {page})",
        category=category,
        suggestions=suggestions,
        details={
            "repository": repository,
            "page": page,
            "status_code": status_code,
            "error_message": reason
        }
    )


def create_protection_load_error(source: str, error: Exception) -> ProtectionLoadError:
    """Create actionable error for an unreadable protection list"""
    return ProtectionLoadError(
        message=f"Failed to load skip list file: {source}",
        category=ErrorCategory.CONFIGURATION,
        suggestions=[
            f"Verify the file '{source}' exists and is readable",
            "Unset SKIP_TAGS_FILE to run without protected tags",
        ],
        details={
            "source": source,
            "error_type": type(error).__name__,
            "error_message": str(error)
        }
    )
