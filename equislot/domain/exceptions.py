"""
Exception hierarchy for infrastructure failures.

Expected business failures are returned as ``Result`` values (see
``equislot.domain.result``); only unexpected problems are raised.
"""


class EquislotError(Exception):
    """Base class for all application-level errors."""


class RepositoryError(EquislotError):
    """Raised when the backing store cannot be read or written."""


class GeocodingError(EquislotError):
    """Raised when an address cannot be resolved due to a remote failure."""


class ConfigError(EquislotError, ValueError):
    """Raised when the configuration file is present but unusable."""
