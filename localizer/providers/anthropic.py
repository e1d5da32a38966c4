import logging
from typing import Any, Dict, List, Mapping

import httpx

from localizer.providers.base import RequestDetails, TranslationProvider, get_header, parse_retry_after_seconds

logger = logging.getLogger(__name__)

API_BASE_URL = 'https://api.anthropic.com/v1'
ANTHROPIC_VERSION = '2023-06-01'


class AnthropicProvider(TranslationProvider):
    key = 'anthropic'
    default_model = 'claude-3-7-sonnet-20250219'

    def name(self) -> str:
        return 'Anthropic'

    def _headers(self, api_key: str) -> Dict[str, str]:
        return {
            'Content-Type': 'application/json',
            'x-api-key': api_key,
            'anthropic-version': ANTHROPIC_VERSION,
        }

    def get_translation_request_details(self, model: str, messages: List[str], api_key: str) -> RequestDetails:
        return RequestDetails(
            url=f'{API_BASE_URL}/messages',
            params={
                'model': model,
                'max_tokens': 1024,
                'messages': [{'role': 'user', 'content': m} for m in messages],
            },
            headers=self._headers(api_key),
        )

    def get_result(self, body: Dict[str, Any]) -> str:
        content = body.get('content') or []
        if not content:
            return ''
        return (content[0].get('text') or '').strip()

    def get_sleep_interval(self, headers: Mapping[str, str]) -> int:
        # Anthropic says explicitly whether a retry makes sense
        if get_header(headers, 'x-should-retry') != 'true':
            return 0
        retry_after = parse_retry_after_seconds(get_header(headers, 'retry-after'))
        logger.debug(f"retryAfter={retry_after}")
        if retry_after is None:
            return 0
        return int(1000 * retry_after) + 200

    async def list_models(self, api_key: str, client: httpx.AsyncClient) -> List[Dict[str, Any]]:
        all_models: List[Dict[str, Any]] = []
        last_id = None
        while True:
            params = {'after_id': last_id} if last_id else {}
            response = await client.get(f'{API_BASE_URL}/models', params=params, headers=self._headers(api_key))
            response.raise_for_status()
            result = response.json()
            data = result.get('data') or []
            if not data:
                break
            all_models.extend(data)
            if not result.get('has_more'):
                break
            last_id = result.get('last_id')
        return all_models
