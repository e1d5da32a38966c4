import logging
from typing import Any, Dict, List, Mapping

import httpx
from openai import AsyncOpenAI

from localizer.providers.base import RequestDetails, TranslationProvider, get_header, parse_retry_after_seconds

logger = logging.getLogger(__name__)

API_BASE_URL = 'https://api.openai.com/v1'


class OpenAIProvider(TranslationProvider):
    key = 'openai'
    default_model = 'gpt-4-turbo'

    def name(self) -> str:
        return 'OpenAI'

    def get_translation_request_details(self, model: str, messages: List[str], api_key: str) -> RequestDetails:
        # Everything but the text to translate goes in as system instructions
        last = len(messages) - 1
        return RequestDetails(
            url=f'{API_BASE_URL}/chat/completions',
            params={
                'model': model,
                'messages': [
                    {'role': 'user' if idx == last else 'system', 'content': m}
                    for idx, m in enumerate(messages)
                ],
                'temperature': 0.3,
                'max_tokens': 1024,
            },
            headers={
                'Content-Type': 'application/json',
                'Authorization': f'Bearer {api_key}',
            },
        )

    def get_result(self, body: Dict[str, Any]) -> str:
        try:
            return (body['choices'][0]['message']['content'] or '').strip()
        except (KeyError, IndexError, TypeError):
            return ''

    def get_sleep_interval(self, headers: Mapping[str, str]) -> int:
        retry_after_ms = get_header(headers, 'retry-after-ms')
        if retry_after_ms:
            retry_after = parse_retry_after_seconds(f'{retry_after_ms}ms')
        else:
            retry_after = parse_retry_after_seconds(get_header(headers, 'retry-after'))
        logger.debug(f"retryAfter={retry_after}")
        if retry_after is None:
            return 0
        return int(1000 * retry_after) + 200

    async def list_models(self, api_key: str, client: httpx.AsyncClient) -> List[Dict[str, Any]]:
        openai_client = AsyncOpenAI(api_key=api_key, base_url=API_BASE_URL, http_client=client)
        return [model.model_dump() async for model in openai_client.models.list()]
