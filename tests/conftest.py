import os
from unittest.mock import AsyncMock

import pytest

from localizer.app_config import AppConfig
from localizer.messages import Messages
from localizer.persistence import AppState
from tests.fakes import write_json


@pytest.fixture
def messages():
    return Messages()


@pytest.fixture
def app_state():
    return AppState(messages=Messages())


@pytest.fixture
def fake_sleep():
    return AsyncMock()


@pytest.fixture
def api_keys(monkeypatch):
    """Provide provider API keys without touching the real environment."""
    for name in ('ANTHROPIC_API_KEY', 'GOOGLE_API_KEY', 'OPENAI_API_KEY'):
        monkeypatch.setenv(name, f'test-{name.lower()}')


@pytest.fixture
def project_dir(tmp_path):
    """A reference file in ``locales/`` with a few keys."""
    locales = tmp_path / 'locales'
    locales.mkdir()
    reference = {
        "greeting": "Hello",
        "farewell": "Goodbye",
        "cart": "Your cart is empty",
    }
    write_json(locales / 'en.json', reference)
    return tmp_path


@pytest.fixture
def make_config(project_dir):
    def _make_config(**overrides) -> AppConfig:
        locales = str(project_dir / 'locales')
        settings = dict(
            reference_file=os.path.join(locales, 'en.json'),
            reference_language='en',
            reference_exported_var_name=None,
            target_languages=['fr', 'de'],
            output_dir=locales,
            normalize_output_filenames=False,
            provider='openai',
            model='gpt-4-turbo',
        )
        settings.update(overrides)
        return AppConfig(**settings)
    return _make_config
