"""Translation provider registry."""
import logging
import os
from typing import Dict, Optional, Tuple, Type

from localizer.errors import ConfigError
from localizer.messages import Messages
from localizer.providers.anthropic import AnthropicProvider
from localizer.providers.base import RequestDetails, TranslationProvider
from localizer.providers.google import GoogleProvider
from localizer.providers.openai import OpenAIProvider

logger = logging.getLogger(__name__)

PROVIDERS: Dict[str, Type[TranslationProvider]] = {
    AnthropicProvider.key: AnthropicProvider,
    GoogleProvider.key: GoogleProvider,
    OpenAIProvider.key: OpenAIProvider,
}

VALID_TRANSLATION_PROVIDERS = tuple(PROVIDERS)


def api_key_name(provider_name: str) -> str:
    return f"{provider_name.upper()}_API_KEY"


def validate_provider_name(provider_name: Optional[str], messages: Messages) -> str:
    """
    Normalize and check a provider name.

    Raises:
        ConfigError: If the name is missing or not a known provider.
    """
    normalized = (provider_name or '').lower()
    if normalized in PROVIDERS:
        return normalized
    if normalized:
        error = messages.format('error-unknown-provider', providerName=provider_name)
    else:
        error = messages.get('error-no-provider-specified')
    raise ConfigError(error + messages.format('supported-providers', providers=', '.join(VALID_TRANSLATION_PROVIDERS)))


def load_translation_provider(provider_name: str, messages: Messages) -> Tuple[TranslationProvider, str]:
    """
    Instantiate a provider and read its API key from ``<PROVIDER>_API_KEY``.

    Returns:
        The provider and its API key.

    Raises:
        ConfigError: If the provider is unknown or its API key is not set.
    """
    provider_name = validate_provider_name(provider_name, messages)
    key_name = api_key_name(provider_name)
    api_key = os.environ.get(key_name)
    if not api_key:
        raise ConfigError(messages.format('error-missing-api-key', apiKeyName=key_name))
    return PROVIDERS[provider_name](), api_key


__all__ = [
    'PROVIDERS',
    'VALID_TRANSLATION_PROVIDERS',
    'RequestDetails',
    'TranslationProvider',
    'api_key_name',
    'load_translation_provider',
    'validate_provider_name',
]
