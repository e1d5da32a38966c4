"""Content fingerprints used for change detection."""
import hashlib
from typing import Optional

# Joins a reference value and its context value before hashing.
CONTEXT_SEPARATOR = "_"


def calculate_hash(content) -> str:
    """
    Compute the SHA-256 fingerprint of a string or raw bytes.

    Args:
        content: The text (UTF-8 encoded before hashing) or bytes to fingerprint.

    Returns:
        str: The hex-encoded digest.
    """
    if isinstance(content, str):
        content = content.encode('utf-8')
    return hashlib.sha256(content).hexdigest()


def reference_value_hash(ref_value: str, context_value: Optional[str] = None) -> str:
    """
    Fingerprint a reference value together with its optional context value,
    so that editing either one changes the result.
    """
    if context_value:
        return calculate_hash(f"{ref_value}{CONTEXT_SEPARATOR}{context_value}")
    return calculate_hash(ref_value)


def output_value_hash(value: Optional[str]) -> Optional[str]:
    """Fingerprint an on-disk translated value; None when it is missing or empty."""
    if not value or not isinstance(value, str):
        return None
    return calculate_hash(value)
