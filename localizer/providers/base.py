"""Base interface for AI translation providers."""
from abc import ABC, abstractmethod
from dataclasses import dataclass, field
from typing import Any, Dict, List, Mapping, Optional

import httpx


@dataclass
class RequestDetails:
    """Outbound HTTP request for one translation call."""
    url: str
    params: Dict[str, Any]
    headers: Dict[str, str] = field(default_factory=dict)


def get_header(headers: Mapping[str, str], name: str) -> Optional[str]:
    """Case-insensitive header lookup that works on plain dicts and httpx.Headers."""
    if isinstance(headers, httpx.Headers):
        return headers.get(name)
    lowered = name.lower()
    for header_name, value in headers.items():
        if header_name.lower() == lowered:
            return value
    return None


def parse_retry_after_seconds(value: Optional[str]) -> Optional[float]:
    """Parse a Retry-After value given in seconds ('12') or milliseconds ('500ms')."""
    if not value:
        return None
    value = value.strip()
    try:
        if value.endswith('ms'):
            return float(value[:-2]) / 1000
        return float(value)
    except ValueError:
        return None


class TranslationProvider(ABC):
    """
    One chat/completion-style AI API.

    Providers only shape requests and read responses; the executor owns the
    HTTP call, retries and backoff.
    """

    #: Registry key, also used to derive the ``<KEY>_API_KEY`` variable
    key: str = ''
    default_model: str = ''

    @abstractmethod
    def name(self) -> str:
        """Display name."""

    @abstractmethod
    def get_translation_request_details(self, model: str, messages: List[str], api_key: str) -> RequestDetails:
        """
        Build the request for ``messages``.

        Args:
            model: The model identifier.
            messages: Ordered prompt parts: instructions, optional app context,
                optional per-key context, then the text to translate.
            api_key: The provider API key.
        """

    @abstractmethod
    def get_result(self, body: Dict[str, Any]) -> str:
        """Extract the trimmed translated text from a successful response body."""

    @abstractmethod
    def get_sleep_interval(self, headers: Mapping[str, str]) -> int:
        """Milliseconds to wait after an HTTP 429; 0 means retrying is not warranted."""

    @abstractmethod
    async def list_models(self, api_key: str, client: httpx.AsyncClient) -> List[Dict[str, Any]]:
        """Enumerate the models available to ``api_key``."""
