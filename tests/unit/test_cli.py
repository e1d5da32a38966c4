"""Unit tests for the command line entry point."""
import json
import logging
from unittest.mock import AsyncMock, patch

import pytest

from localizer import cli
from localizer.logging_config import LOGGER_NAME, TRACE, VERBOSE, level_from_flags, setup_logger


@pytest.fixture(autouse=True)
def reset_logger():
    yield
    logging.getLogger(LOGGER_NAME).handlers.clear()


class TestParseArgs:

    def test_translate_is_the_default_command(self):
        args = cli.parse_args(['-r', 'en.json', '-l', 'fr,de', '-p', 'openai', '-f'])
        assert args.command == 'translate'
        assert args.reference_file == 'en.json'
        assert args.target_languages == ['fr', 'de']
        assert args.force is True
        assert args.max_retries is None

    def test_short_multi_letter_options(self):
        args = cli.parse_args(['translate', '-r', 'en.json', '-rl', 'en', '-rtw', '-x', '5'])
        assert args.reference_language == 'en'
        assert args.realtime_writes is True
        assert args.max_retries == 5

    def test_list_models_requires_provider(self):
        assert cli.parse_args(['list-models', '-p', 'google']).provider == 'google'
        with pytest.raises(SystemExit):
            cli.parse_args(['list-models'])

    def test_invalid_language_is_rejected(self):
        with pytest.raises(SystemExit):
            cli.parse_args(['-r', 'en.json', '-l', 'fr,??'])

    @pytest.mark.parametrize("value", ["-1", "many"])
    def test_max_retries_must_be_a_non_negative_int(self, value):
        with pytest.raises(SystemExit):
            cli.parse_args(['-r', 'en.json', '-x', value])

    def test_zero_max_retries_is_allowed(self):
        assert cli.parse_args(['-r', 'en.json', '-x', '0']).max_retries == 0


class TestMain:

    def test_setup_error_exits_with_2(self, tmp_path):
        assert cli.main(['-r', str(tmp_path / 'missing.json'), '-p', 'openai', '-l', 'fr']) == 2

    def test_translate_runs_pipeline(self, project_dir, api_keys):
        reference = str(project_dir / 'locales' / 'en.json')
        with patch('localizer.cli.run_translation', new_callable=AsyncMock, return_value=0) as mock_run:
            exit_code = cli.main(['-r', reference, '-rl', 'en', '-p', 'openai', '-l', 'fr', '-k', 'greeting'])

        assert exit_code == 0
        config, app_state = mock_run.await_args.args
        assert config.target_languages == ['fr']
        assert config.keys == ['greeting']
        assert app_state.files_to_write == {}

    def test_list_models_prints_json(self, api_keys, capsys):
        models = [{"id": "gpt-4o"}]
        with patch('localizer.cli.list_models', new_callable=AsyncMock, return_value=models):
            assert cli.main(['list-models', '-p', 'openai']) == 0
        assert json.loads(capsys.readouterr().out) == models

    def test_list_models_unknown_provider(self):
        assert cli.main(['list-models', '-p', 'acme']) == 2


class TestLoggingConfig:

    def test_level_from_flags(self):
        assert level_from_flags() == logging.INFO
        assert level_from_flags(verbose=True) == VERBOSE
        assert level_from_flags(verbose=True, debug=True) == logging.DEBUG
        assert level_from_flags(debug=True, trace=True) == TRACE

    def test_setup_logger_with_file(self, tmp_path):
        log_file = tmp_path / 'logs' / 'localizer.log'
        logger = setup_logger('DEBUG', str(log_file), log_to_console=False)
        logger.debug('hello from the test')
        for handler in logger.handlers:
            handler.flush()
        assert logger.level == logging.DEBUG
        assert 'DEBUG - hello from the test' in log_file.read_text()

    def test_configure_logging_flags_beat_config(self):
        logger = cli.configure_logging({'verbose': True}, {'log_level': 'ERROR'})
        assert logger.level == VERBOSE
        logger = cli.configure_logging({}, {'log_level': 'ERROR'})
        assert logger.level == logging.ERROR
