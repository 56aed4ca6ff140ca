from __future__ import annotations


class ConfigError(ValueError):
    """Raised when a manuproof configuration file cannot be used."""


class ManifestError(ValueError):
    """Raised when a chunk manifest is missing, unreadable or malformed."""


class InvalidTransitionError(ValueError):
    """Raised when a chunk or mistake is moved to a status it cannot reach."""


__all__ = ["ConfigError", "InvalidTransitionError", "ManifestError"]
