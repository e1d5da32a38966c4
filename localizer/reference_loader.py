"""Loading the reference (source-language) key/value table."""
import json
import logging
import os
import shutil
from dataclasses import dataclass
from typing import Any, Callable, Dict, Optional

import json5
import yaml

from localizer.errors import ConfigError, ReferenceLoadError
from localizer.hashing import calculate_hash
from localizer.json_io import normalize_data
from localizer.messages import Messages

logger = logging.getLogger(__name__)

# Executable-module references (.js/.mjs) cannot be evaluated here.
UNSUPPORTED_MODULE_EXTENSIONS = ('js', 'mjs')


def _parse_json(text: str) -> Any:
    return json.loads(text)


def _parse_jsonc(text: str) -> Any:
    # JSON5 is a superset of JSON-with-comments.
    return json5.loads(text)


def _parse_yaml(text: str) -> Any:
    return yaml.safe_load(text)


PARSERS: Dict[str, Callable[[str], Any]] = {
    'json': _parse_json,
    'jsonc': _parse_jsonc,
    'yaml': _parse_yaml,
    'yml': _parse_yaml,
}

SUPPORTED_REFERENCE_FILE_EXTENSIONS = tuple(PARSERS)


@dataclass
class ReferenceData:
    table: Dict[str, Any]
    # Fingerprint of the raw bytes the table was parsed from
    file_hash: str
    snapshot_path: str


def get_file_extension(file_path: str) -> Optional[str]:
    """Return the lower-cased extension without the dot, or None."""
    ext = os.path.splitext(file_path)[1]
    return ext[1:].lower() if ext else None


def snapshot_reference_file(reference_file: str, tmp_dir: str) -> str:
    """Copy the reference file into the run's temp dir so it is read exactly once."""
    snapshot_path = os.path.join(tmp_dir, os.path.basename(reference_file))
    shutil.copyfile(reference_file, snapshot_path)
    logger.debug(f"Copied reference file '{reference_file}' to '{snapshot_path}'")
    return snapshot_path


def load_reference_file(
        reference_file: str,
        tmp_dir: str,
        messages: Messages,
        exported_var_name: Optional[str] = None
) -> ReferenceData:
    """
    Load the reference table from ``reference_file``.

    The file is snapshotted into ``tmp_dir`` first; both the table and the
    whole-file hash come from the snapshot's bytes, so an edit made while the
    run is in progress cannot split them.

    Args:
        reference_file: Path to a .json, .jsonc, .yaml or .yml file.
        tmp_dir: The run's temporary directory.
        messages: Message catalog used for error text.
        exported_var_name: Optional top-level member holding the table.

    Returns:
        ReferenceData: The table, its file hash and the snapshot path.

    Raises:
        ConfigError: If the file is missing or has an unsupported extension.
        ReferenceLoadError: If the file cannot be read or parsed into a key/value table
            with string keys.
    """
    if not os.path.isfile(reference_file):
        raise ConfigError(messages.format('error-reference-file-not-found', referenceFile=reference_file))

    ext = get_file_extension(reference_file)
    if ext not in PARSERS:
        if ext in UNSUPPORTED_MODULE_EXTENSIONS:
            logger.error("JavaScript module references are not supported; export the table to .json or .jsonc")
        raise ConfigError(messages.format(
            'error-bad-reference-file-ext',
            ext=ext or '',
            supported=', '.join(SUPPORTED_REFERENCE_FILE_EXTENSIONS)
        ))

    try:
        snapshot_path = snapshot_reference_file(reference_file, tmp_dir)
        with open(snapshot_path, 'rb') as f:
            raw = f.read()
    except OSError as read_exc:
        logger.debug(f"Reference read failure: {read_exc}")
        raise ReferenceLoadError(messages.format('error-reference-file-load-failed',
                                                 referenceFile=reference_file)) from read_exc

    logger.debug(f"Reading {ext.upper()} file \"{reference_file}\"...")
    try:
        content = PARSERS[ext](raw.decode('utf-8'))
    except (ValueError, yaml.YAMLError) as parse_exc:
        logger.debug(f"Reference parse failure: {parse_exc}")
        raise ReferenceLoadError(messages.format('error-reference-file-load-failed',
                                                 referenceFile=reference_file)) from parse_exc

    if not isinstance(content, dict) or not content:
        raise ReferenceLoadError(messages.format('error-reference-file-load-failed', referenceFile=reference_file))

    if exported_var_name:
        if exported_var_name not in content:
            raise ReferenceLoadError(messages.format(
                'error-reference-var-not-found-in-data',
                referenceExportedVarName=exported_var_name,
                referenceFile=reference_file,
                possibleKeys=', '.join(str(k) for k in content)
            ))
        content = content[exported_var_name]
        if not isinstance(content, dict):
            raise ReferenceLoadError(messages.format('error-reference-file-load-failed',
                                                     referenceFile=reference_file))

    non_string_keys = [key for key in content if not isinstance(key, str)]
    if non_string_keys:
        # YAML reads unquoted yes/no/on/off as booleans and digits as integers
        raise ReferenceLoadError(messages.format(
            'error-reference-key-not-a-string',
            referenceFile=reference_file,
            keys=', '.join(repr(k) for k in non_string_keys)
        ))

    return ReferenceData(table=normalize_data(content), file_hash=calculate_hash(raw), snapshot_path=snapshot_path)
