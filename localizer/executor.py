"""Sequential task execution with a shared rate-limit backoff."""
import asyncio
import contextlib
import enum
import logging
import os
from dataclasses import dataclass
from typing import Awaitable, Callable, List, Optional, Sequence

import httpx
from aiolimiter import AsyncLimiter
from tqdm import tqdm

from localizer import cache_store
from localizer.errors import ProviderError, RateLimitSignal
from localizer.hashing import calculate_hash
from localizer.json_io import write_json_file
from localizer.logging_config import TRACE, VERBOSE
from localizer.persistence import AppState
from localizer.providers.base import TranslationProvider
from localizer.work_queue import TranslationTask

logger = logging.getLogger(__name__)

HTTP_TOO_MANY_REQUESTS = 429
# Unofficial "overloaded" status; not covered by provider headers
HTTP_OVERLOADED = 529
OVERLOADED_BACKOFF_INTERVAL_MS = 30 * 1000

DEFAULT_MAX_RETRIES = 3
REQUEST_TIMEOUT_SECONDS = 60.0


class TaskState(enum.Enum):
    PENDING = 'pending'
    TRANSLATING = 'translating'
    RATE_LIMITED = 'rate_limited'
    SUCCEEDED = 'succeeded'
    FAILED = 'failed'


@dataclass
class TaskResult:
    task: TranslationTask
    state: TaskState = TaskState.PENDING
    new_value: Optional[str] = None
    attempts: int = 0
    error: Optional[str] = None


def build_prompt_messages(
        text: str,
        source_lang: str,
        target_lang: str,
        context: Optional[str] = None,
        app_context_message: Optional[str] = None
) -> List[str]:
    """Assemble the ordered prompt parts sent to every provider."""
    messages = [
        f"You are a professional translator for an application's text from {source_lang} to {target_lang}. "
        f"Translate the text accurately without adding explanations or additional content. Only return the text. "
    ]
    if app_context_message:
        messages.append(
            f"Here is some high-level information about the application you are translating text for: {app_context_message}"
        )
    if context:
        messages.append(f"Here is some additional context for the string you are going to translate: {context}")
    messages.append(f"Here we go. Translate the following text from {source_lang} to {target_lang}:\n\n{text}")
    return messages


class TaskExecutor:
    """
    Drains a work queue strictly in order, one task at a time.

    Backoff is coordinated through ``next_delay_ms``: a rate-limit signal on
    any task raises it, and every following attempt (of this task or the next
    ones) sleeps that long before calling the provider. A task that finishes
    without seeing a rate-limit signal of its own clears it.
    """

    def __init__(
            self,
            provider: TranslationProvider,
            api_key: str,
            model: str,
            app_state: AppState,
            http_client: httpx.AsyncClient,
            cache_file_path: str,
            max_retries: int = DEFAULT_MAX_RETRIES,
            realtime_writes: bool = False,
            app_context_message: Optional[str] = None,
            rate_limiter: Optional[AsyncLimiter] = None,
            sleep: Callable[[float], Awaitable[None]] = asyncio.sleep
    ):
        self.provider = provider
        self.api_key = api_key
        self.model = model
        self.app_state = app_state
        self.messages = app_state.messages
        self.http_client = http_client
        self.cache_file_path = cache_file_path
        self.max_retries = max_retries
        self.realtime_writes = realtime_writes
        self.app_context_message = app_context_message
        self.rate_limiter = rate_limiter
        self._sleep = sleep
        self.next_delay_ms = 0

    async def request_translation(self, task: TranslationTask, attempt_str: str = '') -> str:
        """
        Make one provider call for ``task``.

        Returns:
            str: The non-empty translated text.

        Raises:
            RateLimitSignal: On HTTP 429 (provider-computed wait) or 529 (fixed wait).
            ProviderError: On any other failure, including an empty result.
        """
        provider_name = self.provider.name()
        prompt = build_prompt_messages(task.ref_value, task.source_lang, task.target_lang,
                                       task.context_value, self.app_context_message)
        logger.debug(f"prompt: {prompt}")
        details = self.provider.get_translation_request_details(self.model, prompt, self.api_key)
        logger.log(TRACE, f"url: {details.url} params: {details.params}")
        logger.debug(self.messages.format('msg-hitting-provider-endpoint',
                                          providerName=provider_name, attemptStr=attempt_str))

        limiter = self.rate_limiter if self.rate_limiter is not None else contextlib.nullcontext()
        try:
            async with limiter:
                response = await self.http_client.post(details.url, json=details.params, headers=details.headers,
                                                       timeout=REQUEST_TIMEOUT_SECONDS)
        except httpx.HTTPError as http_exc:
            raise ProviderError(f"{provider_name} request failed: {http_exc}") from http_exc

        logger.log(TRACE, f"response headers: {dict(response.headers)}")
        if response.status_code == HTTP_TOO_MANY_REQUESTS:
            raise RateLimitSignal(self.provider.get_sleep_interval(response.headers))
        if response.status_code == HTTP_OVERLOADED:
            raise RateLimitSignal(OVERLOADED_BACKOFF_INTERVAL_MS, reason='overloaded')
        if response.is_error:
            raise ProviderError(f"{provider_name} API returned HTTP {response.status_code}")

        try:
            body = response.json()
        except ValueError as json_exc:
            raise ProviderError(f"{provider_name} returned a non-JSON response") from json_exc

        translated = self.provider.get_result(body)
        if not translated:
            raise ProviderError(f"{provider_name} translated text to empty string. You may need to top up your credits.")
        return translated

    async def translate(self, task: TranslationTask, attempt_str: str = '') -> str:
        if task.source_lang == task.target_lang:
            logger.debug("Using reference value since source & target language are the same")
            return task.ref_value
        return await self.request_translation(task, attempt_str)

    async def translate_task(self, task: TranslationTask) -> TaskResult:
        """
        Run the attempt loop for one task.

        At most ``max_retries + 1`` attempts are made. Generic provider failures
        are logged and retried with whatever shared delay is pending, which may
        be zero.
        """
        result = TaskResult(task=task)
        delay_ms = self.next_delay_ms
        rate_limited = False

        for attempt in range(self.max_retries + 1):
            attempt_str = f" [Attempt: {attempt + 1}]" if attempt > 0 else ''
            logger.debug(f"[translate] attempt={attempt} next task delay={delay_ms}")
            if delay_ms > 0:
                logger.debug(self.messages.format('msg-rate-limited-sleeping',
                                                  interval=delay_ms // 1000, attemptStr=attempt_str))
                await self._sleep(delay_ms / 1000)

            result.state = TaskState.TRANSLATING
            result.attempts = attempt + 1
            try:
                new_value = await self.translate(task, attempt_str)
            except RateLimitSignal as rate_limit:
                rate_limited = True
                result.state = TaskState.RATE_LIMITED
                delay_ms = max(delay_ms, rate_limit.backoff_ms)
                if rate_limit.reason == 'overloaded':
                    logger.debug(self.messages.format('msg-provider-overloaded', providerName=self.provider.name(),
                                                      interval=rate_limit.backoff_ms // 1000))
                else:
                    logger.debug(f"Rate limited; retrying in {rate_limit.backoff_ms}ms")
                continue
            except ProviderError as provider_exc:
                logger.warning(f"{self.provider.name()} API failed. {provider_exc}")
                continue

            if new_value:
                result.state = TaskState.SUCCEEDED
                result.new_value = new_value
                break

        self.next_delay_ms = delay_ms if rate_limited else 0

        if result.state != TaskState.SUCCEEDED:
            result.state = TaskState.FAILED
            result.error = self.messages.format('error-translation-failed', targetLang=task.target_lang,
                                                key=task.key, refValue=task.ref_value)
        return result

    def apply_result(self, result: TaskResult) -> None:
        """Write a successful translation into the output table and the writable cache."""
        task = result.task
        table = task.output_table
        table.data[task.key] = result.new_value
        if self.realtime_writes:
            write_json_file(table.path, table.data)

        value_hash = calculate_hash(result.new_value)
        logger.debug(f"Updating hash for translated {task.target_lang}.{task.key}: {value_hash}")
        task.cache.record_translation(task.target_lang, task.key, value_hash, task.snapshot.reference_value_hash)

        if self.realtime_writes:
            # Keep the cache in step with the output file in case the process is killed
            cache_store.persist(self.cache_file_path, task.cache)
        else:
            self.app_state.mark_dirty(table.path, table.data)

    async def run_task(self, task: TranslationTask) -> TaskResult:
        reasons = ', '.join(self.messages.get(f'msg-translation-reason-{r}') for r in task.reasons.active())
        logger.log(VERBOSE, f"[{task.target_lang}] {task.key}: {reasons}")
        logger.debug(self.messages.format('msg-translating-key', key=task.key))

        result = await self.translate_task(task)
        if result.state == TaskState.SUCCEEDED:
            self.apply_result(result)
            logger.log(VERBOSE, self.messages.format('msg-show-translation-result', key=task.key,
                                                     newValue=result.new_value))
        else:
            logger.error(result.error)
            self.app_state.errors.append(result.error)
        return result

    async def run(self, tasks: Sequence[TranslationTask]) -> int:
        """
        Execute every task in order.

        Returns:
            int: The number of tasks that failed after exhausting their retries.
        """
        errors_encountered = 0
        total = len(tasks)
        with tqdm(total=total, unit="key", disable=total == 0) as progress_bar:
            for index, task in enumerate(tasks):
                progress = int(10000 * index / total) / 100
                progress_bar.set_description(f"{task.target_lang}/{task.key}")
                logger.debug(self.messages.format('msg-processing-lang-and-key', progress=progress,
                                                  targetLang=task.target_lang, key=task.key))
                if os.environ.get('CI'):
                    tqdm.write(f"::notice::{progress}% - {task.target_lang}/{task.key}")

                result = await self.run_task(task)
                if result.state == TaskState.FAILED:
                    errors_encountered += 1
                progress_bar.update(1)
        return errors_encountered
