"""Exception types raised across the localizer."""


class LocalizerError(Exception):
    """Base class for localizer errors."""


class ConfigError(LocalizerError):
    """A setup problem that must abort the run before any task executes."""


class ReferenceLoadError(LocalizerError):
    """The reference file could not be read or did not contain a key/value table."""


class ProviderError(LocalizerError):
    """A translation provider call failed without a rate-limit signal."""


class RateLimitSignal(LocalizerError):
    """The provider asked us to back off for ``backoff_ms`` milliseconds."""

    def __init__(self, backoff_ms: int, reason: str = 'rate limited'):
        super().__init__(f"{reason}; retry in {backoff_ms}ms")
        self.backoff_ms = backoff_ms
        self.reason = reason
