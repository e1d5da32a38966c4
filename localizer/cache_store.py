"""Durable change-detection cache kept next to the output files."""
import copy
import logging
from dataclasses import dataclass, field
from typing import Any, Dict, Optional

import jsonschema

from localizer.json_io import read_json_file, write_json_file

logger = logging.getLogger(__name__)

DEFAULT_CACHE_FILENAME = '.localization.cache.json'

# Shape of the on-disk cache. Anything that does not match is treated as a
# first run rather than trusted.
CACHE_SCHEMA = {
    "type": "object",
    "properties": {
        "referenceHash": {"type": "string"},
        "referenceKeyHashes": {
            "type": "object",
            "additionalProperties": {
                "type": "object",
                "additionalProperties": {"type": "string"}
            }
        },
        "state": {
            "type": "object",
            "additionalProperties": {
                "type": "object",
                "properties": {
                    "keyHashes": {
                        "type": "object",
                        "additionalProperties": {"type": "string"}
                    }
                }
            }
        },
        "lastRun": {"type": ["string", "null"]}
    }
}


@dataclass
class CacheRecord:
    """In-memory form of the cache file."""
    reference_hash: str = ''
    # target language -> key -> hash of (reference value [+ context]) when last translated
    reference_key_hashes: Dict[str, Dict[str, str]] = field(default_factory=dict)
    # target language -> {'keyHashes': key -> hash of the translated value as written}
    state: Dict[str, Dict[str, Dict[str, str]]] = field(default_factory=dict)
    last_run: Optional[str] = None

    def stored_reference_hash(self, lang: str, key: str) -> Optional[str]:
        return self.reference_key_hashes.get(lang, {}).get(key)

    def stored_value_hash(self, lang: str, key: str) -> Optional[str]:
        return self.state.get(lang, {}).get('keyHashes', {}).get(key)

    def ensure_language(self, lang: str) -> None:
        """Create the empty per-language state for ``lang`` if it is not tracked yet."""
        self.state.setdefault(lang, {}).setdefault('keyHashes', {})

    def record_translation(self, lang: str, key: str, value_hash: str, ref_hash: str) -> None:
        """Record that ``key`` was translated for ``lang``, from reference content ``ref_hash``."""
        self.ensure_language(lang)
        self.state[lang]['keyHashes'][key] = value_hash
        self.reference_key_hashes.setdefault(lang, {})[key] = ref_hash

    def to_dict(self) -> Dict[str, Any]:
        return {
            'referenceHash': self.reference_hash,
            'referenceKeyHashes': self.reference_key_hashes,
            'state': self.state,
            'lastRun': self.last_run,
        }

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> 'CacheRecord':
        return cls(
            reference_hash=data.get('referenceHash') or '',
            reference_key_hashes=data.get('referenceKeyHashes') or {},
            state=data.get('state') or {},
            last_run=data.get('lastRun'),
        )


def load(path: str) -> CacheRecord:
    """
    Load the cache file at ``path``.

    A missing, unparsable or malformed file yields an empty record; that is
    the normal first-run state, not an error.

    Args:
        path: The cache file path.

    Returns:
        CacheRecord: The loaded (or default) record.
    """
    stored = read_json_file(path)
    if stored is None:
        return CacheRecord()
    try:
        jsonschema.validate(instance=stored, schema=CACHE_SCHEMA)
    except jsonschema.ValidationError as schema_exc:
        logger.warning(f"Ignoring malformed cache file '{path}': {schema_exc.message}")
        return CacheRecord()
    return CacheRecord.from_dict(stored)


def clone(record: CacheRecord) -> CacheRecord:
    """Deep copy, so the writable working copy never aliases the read-only snapshot."""
    return copy.deepcopy(record)


def persist(path: str, record: CacheRecord) -> bool:
    """Write ``record`` to ``path``; failures are logged and reported as False."""
    return write_json_file(path, record.to_dict())
