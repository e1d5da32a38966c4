"""JSON file helpers shared by the cache store, the reference loader and the writer."""
import contextlib
import json
import logging
import os
import stat
import tempfile
import unicodedata
from typing import Any, Dict, Optional

from localizer.logging_config import VERBOSE

logger = logging.getLogger(__name__)


def normalize_key(key: Any) -> Any:
    """Normalize a map key to Unicode Normalization Form C; non-string keys pass through."""
    if not isinstance(key, str):
        return key
    return unicodedata.normalize('NFC', key)


def normalize_data(data: Optional[Dict[str, Any]]) -> Optional[Dict[str, Any]]:
    """
    Return a copy of ``data`` with every key normalized to NFC, descending
    into nested mappings.

    Args:
        data: A key/value mapping, or None.

    Returns:
        The normalized mapping, or None if ``data`` was None.
    """
    if data is None:
        return None
    return {
        normalize_key(key): normalize_data(value) if isinstance(value, dict) else value
        for key, value in data.items()
    }


def read_text_file(file_path: str) -> Optional[str]:
    """Read a UTF-8 text file, returning None if it does not exist."""
    try:
        with open(file_path, 'r', encoding='utf-8') as f:
            return f.read()
    except FileNotFoundError:
        return None


def read_json_file(file_path: str) -> Optional[Any]:
    """
    Read and parse a JSON document.

    A missing file or a parse failure is not an error here; both return None
    so callers can fall back to their "first run" defaults.
    """
    content = read_text_file(file_path)
    if content is None:
        logger.debug(f"'{file_path}' does not exist.")
        return None
    try:
        return json.loads(content)
    except json.JSONDecodeError as json_exc:
        logger.warning(f"Could not parse JSON file '{file_path}': {json_exc}")
        return None


def _target_file_mode(file_path: str) -> int:
    # mkstemp creates 0600 files; keep the existing mode or follow the umask
    try:
        return stat.S_IMODE(os.stat(file_path).st_mode)
    except FileNotFoundError:
        umask = os.umask(0)
        os.umask(umask)
        return 0o666 & ~umask


def write_json_file(file_path: str, data: Dict[str, Any]) -> bool:
    """
    Write ``data`` as pretty-printed UTF-8 JSON, normalizing keys to NFC.

    The parent directory is created if needed. The document goes to a temp
    file in the same directory which then replaces ``file_path``, so readers
    only ever see the old or the new content. Writing is synchronous so it can
    run from a termination handler. Failures are logged, never raised.

    Args:
        file_path: Destination path.
        data: The mapping to serialize.

    Returns:
        bool: True if the file was written.
    """
    logger.log(VERBOSE, f"Writing {file_path}...")
    try:
        directory = os.path.dirname(file_path)
        if directory:
            os.makedirs(directory, exist_ok=True)
        fd, tmp_path = tempfile.mkstemp(prefix=f".{os.path.basename(file_path)}.", suffix='.tmp',
                                        dir=directory or '.')
        try:
            with os.fdopen(fd, 'w', encoding='utf-8') as f:
                json.dump(normalize_data(data), f, ensure_ascii=False, indent=2)
            os.chmod(tmp_path, _target_file_mode(file_path))
            os.replace(tmp_path, file_path)
        except BaseException:
            with contextlib.suppress(FileNotFoundError):
                os.unlink(tmp_path)
            raise
        return True
    except (OSError, TypeError, ValueError):
        logger.exception("Failed to write '%s'", file_path)
        return False


def normalize_output_path(directory: str, filename: str, normalize: bool = False) -> str:
    """Build an output file path, lower-casing the file name when ``normalize`` is set."""
    if normalize:
        filename = filename.lower()
    return os.path.join(directory, filename)
