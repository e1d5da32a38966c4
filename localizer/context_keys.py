"""Context keys: reference entries that only describe a sibling key."""
from typing import Optional


def is_context_key(key: str, context_prefix: Optional[str] = None, context_suffix: Optional[str] = None) -> bool:
    """
    Check whether ``key`` is a context key under the configured convention.

    The prefix takes precedence when both are configured.

    Raises:
        ValueError: If neither a prefix nor a suffix is configured.
    """
    if context_prefix:
        return key.startswith(context_prefix)
    if context_suffix:
        return key.endswith(context_suffix)
    raise ValueError("Either the context prefix or context suffix must be defined")


def format_context_key(key: str, prefix: Optional[str] = None, suffix: Optional[str] = None) -> str:
    """Return the name of the context key that annotates ``key``."""
    return f"{prefix or ''}{key}{suffix or ''}"
