"""Application-level exception types for gchat."""

from __future__ import annotations


class GchatError(Exception):
    """Base exception for gchat."""


class ConfigurationError(GchatError):
    """Base exception for configuration and startup validation errors."""


class WorkspaceNotFoundError(ConfigurationError):
    """Raised when the configured workspace path does not exist."""


class ApiKeyNotConfiguredError(ConfigurationError):
    """Raised when an API key is required but missing."""


class DocumentError(GchatError):
    """Raised when the chat document cannot be updated."""


class PathResolutionError(GchatError):
    """Raised when a path expression cannot be resolved."""


class PathNotFoundError(PathResolutionError):
    """Raised when a path expression matches nothing."""


class PathSecurityError(PathResolutionError):
    """Raised when a path expression escapes the project root."""


class TransportError(GchatError):
    """Raised when the chat API call fails (network, auth, status or timeout)."""
