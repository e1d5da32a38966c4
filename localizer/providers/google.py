import logging
from typing import Any, Dict, List, Mapping

import httpx

from localizer.providers.base import RequestDetails, TranslationProvider, get_header, parse_retry_after_seconds

logger = logging.getLogger(__name__)

API_BASE_URL = 'https://generativelanguage.googleapis.com'


class GoogleProvider(TranslationProvider):
    key = 'google'
    default_model = 'gemini-2.0-flash'

    def name(self) -> str:
        return 'Google'

    def get_translation_request_details(self, model: str, messages: List[str], api_key: str) -> RequestDetails:
        return RequestDetails(
            url=f'{API_BASE_URL}/v1beta/models/{model}:generateContent?key={api_key}',
            params={
                'contents': [{'role': 'user', 'parts': [{'text': m}]} for m in messages],
            },
            headers={'Content-Type': 'application/json'},
        )

    def get_result(self, body: Dict[str, Any]) -> str:
        try:
            return (body['candidates'][0]['content']['parts'][0]['text'] or '').strip()
        except (KeyError, IndexError, TypeError):
            return ''

    def get_sleep_interval(self, headers: Mapping[str, str]) -> int:
        retry_after = parse_retry_after_seconds(get_header(headers, 'retry-after'))
        logger.debug(f"retryAfter={retry_after}")
        if retry_after is None:
            return 0
        return int(1000 * retry_after) + 200

    async def list_models(self, api_key: str, client: httpx.AsyncClient) -> List[Dict[str, Any]]:
        all_models: List[Dict[str, Any]] = []
        page_token = None
        while True:
            params = {'key': api_key}
            if page_token:
                params['pageToken'] = page_token
            response = await client.get(f'{API_BASE_URL}/v1/models', params=params)
            response.raise_for_status()
            result = response.json()
            models = result.get('models') or []
            if not models:
                break
            all_models.extend(models)
            page_token = result.get('nextPageToken')
            if not page_token:
                break
        return all_models
