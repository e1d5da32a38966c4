"""Command line entry point: ``translate`` (default) and ``list-models``."""
import argparse
import asyncio
import json
import logging
import os
import sys
from typing import Any, Dict, List, Optional

import httpx
from openai import APIError

from localizer import __version__
from localizer.app_config import load_dotenv_file, parse_key_list, parse_language_list, resolve_app_config
from localizer.errors import LocalizerError
from localizer.logging_config import VERBOSE, level_from_flags, setup_logger
from localizer.messages import Messages, resolve_display_language
from localizer.persistence import AppState, register_signal_handlers, restore_signal_handlers
from localizer.providers import load_translation_provider
from localizer.translate import EXIT_OK, EXIT_SETUP_ERROR, run_translation

logger = logging.getLogger(__name__)

ENV_VARS = (
    ('ANTHROPIC_API_KEY', 'API key for the anthropic provider'),
    ('GOOGLE_API_KEY', 'API key for the google provider'),
    ('OPENAI_API_KEY', 'API key for the openai provider'),
    ('ALT_LANGUAGE', 'Display language for CLI output (e.g. de, de_DE.UTF-8)'),
    ('CI', 'When set, emits ::notice:: progress lines'),
)

COMMANDS = ('translate', 'list-models')


def _language_list(value: str) -> List[str]:
    try:
        return parse_language_list(value)
    except ValueError as exc:
        raise argparse.ArgumentTypeError(str(exc))


def _non_negative_int(value: str) -> int:
    try:
        number = int(value)
    except ValueError:
        raise argparse.ArgumentTypeError(f"invalid int value: '{value}'")
    if number < 0:
        raise argparse.ArgumentTypeError(f"must be 0 or greater: {number}")
    return number


def _add_verbosity_flags(parser: argparse.ArgumentParser) -> None:
    parser.add_argument('-v', '--verbose', action='store_true', help='Enables verbose spew')
    parser.add_argument('-d', '--debug', action='store_true', help='Enables debug spew')
    parser.add_argument('-t', '--trace', action='store_true', help='Enables trace spew')


def build_parser() -> argparse.ArgumentParser:
    epilog = 'Environment variables:\n' + '\n'.join(f"  {name:<20} {desc}" for name, desc in ENV_VARS)
    parser = argparse.ArgumentParser(
        prog='localizer',
        description='AI-assisted incremental localization of key/value string tables.',
        epilog=epilog,
        formatter_class=argparse.RawDescriptionHelpFormatter,
    )
    parser.add_argument('--version', action='version', version=f"%(prog)s {__version__}")
    subparsers = parser.add_subparsers(dest='command')

    translate = subparsers.add_parser('translate', help='Translate missing or outdated keys (default)')
    translate.add_argument('-r', '--reference-file', help='Path to the reference file (.json, .jsonc, .yaml, .yml)')
    translate.add_argument('-rl', '--reference-language',
                           help="The reference file's language; overrides any 'referenceLanguage' config setting")
    translate.add_argument('-p', '--provider',
                           help="AI provider to use for translations; overrides any 'provider' config setting")
    translate.add_argument('--model', help='Model to use; defaults per provider')
    translate.add_argument('-o', '--output-dir', help='Output directory for localized files')
    translate.add_argument('-l', '--target-languages', type=_language_list,
                           help="Comma-separated list of language codes; overrides any 'targetLanguages' config setting")
    translate.add_argument('-k', '--keys', type=parse_key_list, help='Comma-separated list of keys to process')
    translate.add_argument('-j', '--reference-var-name',
                           help='Top-level member of the reference file holding the key/value table')
    translate.add_argument('-f', '--force', action='store_true', help='Force regeneration of all translations')
    translate.add_argument('-rtw', '--realtime-writes', action='store_true',
                           help='Write updates to disk immediately, rather than on shutdown')
    translate.add_argument('-m', '--app-context-message',
                           help='Description of your app, passed with each translation request')
    translate.add_argument('-c', '--config-file', help='Path to a JSON or YAML config file')
    translate.add_argument('-x', '--max-retries', type=_non_negative_int, help='Maximum retries on failure (default: 3)')
    translate.add_argument('--max-requests-per-minute', type=float,
                           help='Client-side cap on provider requests per minute')
    translate.add_argument('-n', '--normalize-output-filenames', action='store_true',
                           help='Lower-case output filenames')
    translate.add_argument('--context-prefix', help='Prefix identifying context keys in the reference file')
    translate.add_argument('--context-suffix', help='Suffix identifying context keys in the reference file')
    translate.add_argument('--look-for-context-data', action='store_true',
                           help='Pass context values to the provider; needs --context-prefix or --context-suffix')
    _add_verbosity_flags(translate)

    list_models = subparsers.add_parser('list-models', help="List the provider's available models")
    list_models.add_argument('-p', '--provider', required=True, help='AI provider to query')
    _add_verbosity_flags(list_models)

    return parser


def parse_args(argv: Optional[List[str]] = None) -> argparse.Namespace:
    argv = list(sys.argv[1:] if argv is None else argv)
    # translate is the default command
    if not argv or (argv[0] not in COMMANDS and argv[0] not in ('-h', '--help', '--version')):
        argv.insert(0, 'translate')
    return build_parser().parse_args(argv)


def configure_logging(options: Dict[str, Any], logging_block: Optional[Dict[str, Any]] = None) -> logging.Logger:
    """Set up logging; a verbosity flag beats the config file's log_level."""
    logging_block = logging_block or {}
    if options.get('verbose') or options.get('debug') or options.get('trace'):
        log_level = level_from_flags(options.get('verbose'), options.get('debug'), options.get('trace'))
    else:
        log_level = logging_block.get('log_level', 'INFO')
    return setup_logger(log_level, logging_block.get('log_file_path'), logging_block.get('log_to_console', True))


async def list_models(provider_name: str, messages: Messages,
                      transport: Optional[httpx.AsyncBaseTransport] = None) -> List[Dict[str, Any]]:
    provider, api_key = load_translation_provider(provider_name, messages)
    async with httpx.AsyncClient(transport=transport) as client:
        return await provider.list_models(api_key, client)


def run_list_models(options: Dict[str, Any], messages: Messages) -> int:
    load_dotenv_file()
    try:
        models = asyncio.run(list_models(options['provider'], messages))
    except LocalizerError as exc:
        logger.error(str(exc))
        return EXIT_SETUP_ERROR
    except (httpx.HTTPError, APIError) as exc:
        logger.error(f"Failed to list models: {exc}")
        return EXIT_SETUP_ERROR
    logger.log(VERBOSE, messages.get('msg-available-models'))
    print(json.dumps(models, indent=2, ensure_ascii=False, default=str))
    return EXIT_OK


def run_translate(options: Dict[str, Any], messages: Messages) -> int:
    try:
        config = resolve_app_config(options, messages)
    except LocalizerError as exc:
        logger.error(str(exc))
        return EXIT_SETUP_ERROR
    if config.logging:
        configure_logging(options, config.logging)

    app_state = AppState(messages=messages)
    previous_handlers = register_signal_handlers(app_state)
    try:
        return asyncio.run(run_translation(config, app_state))
    finally:
        restore_signal_handlers(previous_handlers)


def main(argv: Optional[List[str]] = None) -> int:
    options = vars(parse_args(argv))
    configure_logging(options)
    messages = Messages(resolve_display_language(os.environ.get('ALT_LANGUAGE')))

    if options['command'] == 'list-models':
        return run_list_models(options, messages)
    return run_translate(options, messages)
