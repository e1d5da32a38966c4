"""Orchestration of one translation run."""
import asyncio
import logging
import os
import tempfile
from datetime import datetime, timezone
from typing import Awaitable, Callable, Dict, Optional

import httpx
from aiolimiter import AsyncLimiter

from localizer import cache_store
from localizer.app_config import AppConfig
from localizer.errors import LocalizerError
from localizer.executor import TaskExecutor
from localizer.json_io import normalize_output_path
from localizer.logging_config import VERBOSE
from localizer.persistence import AppState, shutdown
from localizer.providers import load_translation_provider
from localizer.reference_loader import load_reference_file
from localizer.work_queue import OutputTable, build_work_queue, load_output_table

logger = logging.getLogger(__name__)

EXIT_OK = 0
EXIT_TASK_FAILURES = 1
EXIT_SETUP_ERROR = 2


def output_file_path(config: AppConfig, lang: str) -> str:
    return normalize_output_path(config.output_dir, f"{lang}.json", config.normalize_output_filenames)


def build_rate_limiter(max_requests_per_minute: Optional[float]) -> Optional[AsyncLimiter]:
    if not max_requests_per_minute:
        return None
    return AsyncLimiter(max_requests_per_minute, 60)


async def run_translation(
        config: AppConfig,
        app_state: AppState,
        transport: Optional[httpx.AsyncBaseTransport] = None,
        sleep: Callable[[float], Awaitable[None]] = asyncio.sleep
) -> int:
    """
    Run the full pipeline for ``config`` and return the process exit status.

    Setup (provider, cache, reference) happens before any task runs; a setup
    error aborts the run with ``EXIT_SETUP_ERROR``. The cache file is always
    registered for writing, and ``shutdown`` flushes it at the end.

    Args:
        config: The resolved configuration.
        app_state: The run's shared state, also seen by the signal handlers.
        transport: Optional httpx transport, used to stub the network in tests.
        sleep: Coroutine used for backoff waits.

    Returns:
        int: 0 on success, 1 if any task failed, 2 on a setup error.
    """
    messages = app_state.messages
    try:
        try:
            provider, api_key = load_translation_provider(config.provider, messages)

            cache_file_path = os.path.join(config.output_dir, cache_store.DEFAULT_CACHE_FILENAME)
            logger.debug(f"Loading cache file \"{cache_file_path}\"...")
            read_only_cache = cache_store.load(cache_file_path)
            writable_cache = cache_store.clone(read_only_cache)

            app_state.tmp_dir = tempfile.mkdtemp(prefix='localizer-')
            logger.debug(f"Created temporary directory '{app_state.tmp_dir}'")
            reference = load_reference_file(config.reference_file, app_state.tmp_dir, messages,
                                            config.reference_exported_var_name)
        except LocalizerError as setup_exc:
            logger.error(str(setup_exc))
            return EXIT_SETUP_ERROR

        if read_only_cache.reference_hash != reference.file_hash:
            logger.log(VERBOSE, "Reference file hash changed since the last run")
        writable_cache.reference_hash = reference.file_hash
        writable_cache.last_run = datetime.now(timezone.utc).isoformat()
        app_state.files_to_write[cache_file_path] = writable_cache

        output_tables: Dict[str, OutputTable] = {}
        for target_lang in config.target_languages:
            writable_cache.ensure_language(target_lang)
            output_tables[target_lang] = load_output_table(output_file_path(config, target_lang))

        work_queue = build_work_queue(
            reference_table=reference.table,
            target_languages=config.target_languages,
            output_tables=output_tables,
            read_only_cache=read_only_cache,
            writable_cache=writable_cache,
            source_lang=config.reference_language,
            errors=app_state.errors,
            messages=messages,
            keys=config.keys,
            force=config.force,
            look_for_context_data=config.look_for_context_data,
            context_prefix=config.context_prefix,
            context_suffix=config.context_suffix,
        )

        if not work_queue:
            logger.info(messages.get('msg-nothing-to-do'))
            return EXIT_OK

        logger.log(VERBOSE, f"Translating {len(work_queue)} key(s) with {provider.name()} ({config.model})")
        async with httpx.AsyncClient(transport=transport) as http_client:
            executor = TaskExecutor(
                provider=provider,
                api_key=api_key,
                model=config.model,
                app_state=app_state,
                http_client=http_client,
                cache_file_path=cache_file_path,
                max_retries=config.max_retries,
                realtime_writes=config.realtime_writes,
                app_context_message=config.app_context_message,
                rate_limiter=build_rate_limiter(config.max_requests_per_minute),
                sleep=sleep,
            )
            errors_encountered = await executor.run(work_queue)

        if errors_encountered:
            logger.info(messages.format('msg-finished-with-errors', errorsEncountered=errors_encountered,
                                        s='s' if errors_encountered > 1 else ''))
            return EXIT_TASK_FAILURES
        logger.info(messages.get('msg-done'))
        return EXIT_OK
    finally:
        shutdown(app_state)
