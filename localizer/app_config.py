"""Application configuration: config file, .env and CLI overrides."""
import json
import logging
import os
import re
from dataclasses import dataclass, field
from typing import Any, Dict, List, Optional

import jsonschema
import yaml
from dotenv import load_dotenv

from localizer.errors import ConfigError
from localizer.messages import Messages
from localizer.providers import PROVIDERS, validate_provider_name

logger = logging.getLogger(__name__)

DEFAULT_CONFIG_FILENAMES = ('config.json', 'config.yaml', 'config.yml')
DEFAULT_MAX_RETRIES = 3

# Loose BCP 47 shape check: language, optional script/region/variants
_LANGUAGE_TAG_PATTERN = re.compile(r'^[A-Za-z]{2,3}(-[A-Za-z]{4})?(-([A-Za-z]{2}|[0-9]{3}))?(-[A-Za-z0-9]{5,8})*$')

CONFIG_SCHEMA = {
    "type": "object",
    "properties": {
        "provider": {"type": ["string", "null"]},
        "model": {"type": ["string", "null"]},
        "referenceFile": {"type": ["string", "null"]},
        "referenceLanguage": {"type": ["string", "null"]},
        "referenceExportedVarName": {"type": ["string", "null"]},
        "targetLanguages": {"type": "array", "items": {"type": "string"}},
        "outputDir": {"type": ["string", "null"]},
        "lookForContextData": {"type": "boolean"},
        "contextPrefix": {"type": ["string", "null"]},
        "contextSuffix": {"type": ["string", "null"]},
        "appContextMessage": {"type": ["string", "null"]},
        "normalizeOutputFilenames": {"type": "boolean"},
        "maxRetries": {"type": "integer", "minimum": 0},
        "realtimeWrites": {"type": "boolean"},
        "maxRequestsPerMinute": {"type": ["number", "null"], "exclusiveMinimum": 0},
        "logging": {
            "type": "object",
            "properties": {
                "log_level": {"type": "string"},
                "log_file_path": {"type": ["string", "null"]},
                "log_to_console": {"type": "boolean"},
            },
        },
    },
}

# CLI option name -> config file key
_CLI_TO_CONFIG_KEYS = {
    'provider': 'provider',
    'model': 'model',
    'reference_file': 'referenceFile',
    'reference_language': 'referenceLanguage',
    'reference_var_name': 'referenceExportedVarName',
    'target_languages': 'targetLanguages',
    'output_dir': 'outputDir',
    'look_for_context_data': 'lookForContextData',
    'context_prefix': 'contextPrefix',
    'context_suffix': 'contextSuffix',
    'app_context_message': 'appContextMessage',
    'normalize_output_filenames': 'normalizeOutputFilenames',
    'max_retries': 'maxRetries',
    'realtime_writes': 'realtimeWrites',
    'max_requests_per_minute': 'maxRequestsPerMinute',
}


@dataclass
class AppConfig:
    """Resolved settings for one translation run."""
    # Reference
    reference_file: str
    reference_language: str
    reference_exported_var_name: Optional[str]

    # Targets
    target_languages: List[str]
    output_dir: str
    normalize_output_filenames: bool

    # Provider
    provider: str
    model: str

    # Processing settings
    keys: Optional[List[str]] = None
    force: bool = False
    realtime_writes: bool = False
    max_retries: int = DEFAULT_MAX_RETRIES
    max_requests_per_minute: Optional[float] = None

    # Context
    look_for_context_data: bool = False
    context_prefix: Optional[str] = None
    context_suffix: Optional[str] = None
    app_context_message: Optional[str] = None

    # Logging block from the config file
    logging: Dict[str, Any] = field(default_factory=dict)


def is_language_tag_valid(tag: str) -> bool:
    return bool(tag) and bool(_LANGUAGE_TAG_PATTERN.match(tag))


def parse_language_list(value: str) -> List[str]:
    """
    Parse a comma-separated language list, dropping duplicates.

    Raises:
        ValueError: If any tag is not a plausible BCP 47 language tag.
    """
    languages = list(dict.fromkeys(item.strip() for item in value.split(',') if item.strip()))
    invalid = [tag for tag in languages if not is_language_tag_valid(tag)]
    if invalid:
        raise ValueError(f"Found invalid language(s): {', '.join(invalid)}")
    return languages


def parse_key_list(value: str) -> List[str]:
    return [item.strip() for item in value.split(',') if item.strip()]


def load_dotenv_file(cwd: Optional[str] = None) -> bool:
    """Load ``.env`` from the working directory; existing variables win."""
    dotenv_path = os.path.join(cwd or os.getcwd(), '.env')
    if os.path.exists(dotenv_path):
        load_dotenv(dotenv_path)
        logger.debug(f"Loaded environment variables from: {dotenv_path}")
        return True
    logger.debug(f"No .env file found at '{dotenv_path}'. Relying on system environment variables if any.")
    return False


def find_config_file(config_file: Optional[str] = None, cwd: Optional[str] = None) -> Optional[str]:
    """Return the explicit config file, or the first default config file in ``cwd``."""
    if config_file:
        logger.debug(f"Using config file specified by --config-file \"{config_file}\"...")
        return config_file
    cwd = cwd or os.getcwd()
    for filename in DEFAULT_CONFIG_FILENAMES:
        candidate = os.path.join(cwd, filename)
        if os.path.isfile(candidate):
            logger.debug(f"Using config file in current working dir, \"{cwd}\"...")
            return candidate
    logger.debug(f"No config file found in the current working directory \"{cwd}\"")
    return None


def load_config_file(config_file: Optional[str], messages: Messages) -> Dict[str, Any]:
    """
    Load and validate a JSON or YAML config file.

    Args:
        config_file: Path to the file, or None.
        messages: Message catalog for error text.

    Returns:
        Dict[str, Any]: The config mapping; empty when there is no file.

    Raises:
        ConfigError: If the file cannot be parsed or fails schema validation.
    """
    if not config_file:
        return {}
    if not os.path.isfile(config_file):
        logger.warning(f"Configuration file '{config_file}' not found. Using default configuration.")
        return {}

    try:
        with open(config_file, 'r', encoding='utf-8') as config_file_stream:
            if config_file.lower().endswith(('.yaml', '.yml')):
                loaded_config = yaml.safe_load(config_file_stream)
            else:
                loaded_config = json.load(config_file_stream)
    except (yaml.YAMLError, ValueError) as parse_exc:
        raise ConfigError(messages.format('error-invalid-config', configFile=config_file,
                                          reason=str(parse_exc))) from parse_exc
    except OSError as read_exc:
        raise ConfigError(messages.format('error-invalid-config', configFile=config_file,
                                          reason=str(read_exc))) from read_exc

    if loaded_config is None:
        logger.warning(f"Configuration file '{config_file}' is empty. Using default configuration.")
        return {}

    try:
        jsonschema.validate(instance=loaded_config, schema=CONFIG_SCHEMA)
    except jsonschema.ValidationError as schema_exc:
        raise ConfigError(messages.format('error-invalid-config', configFile=config_file,
                                          reason=schema_exc.message)) from schema_exc

    logger.debug(f"Loaded configuration from: {config_file}")
    return loaded_config


def merge_options(file_config: Dict[str, Any], cli_options: Dict[str, Any]) -> Dict[str, Any]:
    """Overlay CLI options (snake_case, None means unset) onto config file values (camelCase)."""
    merged = dict(file_config)
    for cli_name, config_key in _CLI_TO_CONFIG_KEYS.items():
        value = cli_options.get(cli_name)
        # Store-true flags default to False and only override when given
        if value is None or value is False:
            continue
        merged[config_key] = value
    return merged


def ensure_output_dir(output_dir: str, messages: Messages) -> str:
    try:
        os.makedirs(output_dir, exist_ok=True)
    except OSError as dir_exc:
        raise ConfigError(messages.format('error-dir-create-failed', dir=output_dir)) from dir_exc
    return output_dir


def resolve_app_config(cli_options: Dict[str, Any], messages: Messages, cwd: Optional[str] = None) -> AppConfig:
    """
    Build the run's ``AppConfig`` from the config file, ``.env`` and CLI options.

    CLI options win over config file values. All setup validation happens
    here, before any translation work starts.

    Args:
        cli_options: Parsed CLI options keyed by option dest name.
        messages: Message catalog for error text.
        cwd: Directory to look for ``.env`` and default config files in.

    Returns:
        AppConfig: The validated configuration.

    Raises:
        ConfigError: On any setup error.
    """
    load_dotenv_file(cwd)
    config_file = find_config_file(cli_options.get('config_file'), cwd)
    merged = merge_options(load_config_file(config_file, messages), cli_options)

    reference_file = merged.get('referenceFile')
    if not reference_file:
        raise ConfigError(messages.get('error-no-reference-file-specified'))

    provider = validate_provider_name(merged.get('provider'), messages)

    reference_language = merged.get('referenceLanguage')
    if not reference_language:
        raise ConfigError(messages.get('error-no-reference-language'))

    target_languages = list(dict.fromkeys(merged.get('targetLanguages') or []))
    if not target_languages:
        raise ConfigError(messages.get('error-no-target-languages'))

    model = merged.get('model') or PROVIDERS[provider].default_model
    if not isinstance(model, str) or not model.strip():
        raise ConfigError(messages.format('error-invalid-llm-model', model=model))

    look_for_context_data = bool(merged.get('lookForContextData', False))
    context_prefix = merged.get('contextPrefix') or None
    context_suffix = merged.get('contextSuffix') or None
    if look_for_context_data and not (context_prefix or context_suffix):
        raise ConfigError(messages.get('error-context-affix-required'))

    output_dir = merged.get('outputDir') or os.path.dirname(os.path.abspath(reference_file))
    ensure_output_dir(output_dir, messages)

    max_retries = merged.get('maxRetries', DEFAULT_MAX_RETRIES)
    if max_retries is None:
        max_retries = DEFAULT_MAX_RETRIES

    return AppConfig(
        reference_file=reference_file,
        reference_language=reference_language,
        reference_exported_var_name=merged.get('referenceExportedVarName') or None,
        target_languages=target_languages,
        output_dir=output_dir,
        normalize_output_filenames=bool(merged.get('normalizeOutputFilenames', False)),
        provider=provider,
        model=model,
        keys=cli_options.get('keys') or None,
        force=bool(cli_options.get('force', False)),
        realtime_writes=bool(merged.get('realtimeWrites', False)),
        max_retries=int(max_retries),
        max_requests_per_minute=merged.get('maxRequestsPerMinute'),
        look_for_context_data=look_for_context_data,
        context_prefix=context_prefix,
        context_suffix=context_suffix,
        app_context_message=merged.get('appContextMessage') or None,
        logging=merged.get('logging') or {},
    )
