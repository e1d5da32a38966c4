"""User-facing CLI messages and the ``%%var%%`` template renderer."""
import enum
import logging
import re
from typing import Dict, List, NamedTuple, Optional, Tuple

logger = logging.getLogger(__name__)

DEFAULT_LANGUAGE = 'en'

_TEMPLATE_VAR_PATTERN = re.compile(r'%%([^%]+)%%')

MESSAGES: Dict[str, Dict[str, str]] = {
    'en': {
        'msg-nothing-to-do': 'Nothing to do',
        'msg-done': 'Done',
        'msg-finished-with-errors': 'Finished with %%errorsEncountered%% error%%s%%',
        'msg-translating-key': 'Translating %%key%%',
        'msg-hitting-provider-endpoint': 'Hitting %%providerName%% endpoint%%attemptStr%%...',
        'msg-no-update-needed-for-key': 'No update needed for %%key%%',
        'msg-rate-limited-sleeping': 'Rate limited; sleeping for %%interval%%s...%%attemptStr%%',
        'msg-provider-overloaded': '%%providerName%% overloaded; retrying in %%interval%%s',
        'msg-show-translation-result': 'Translated %%key%%: "%%newValue%%"',
        'msg-processing-lang-and-key': '[%%progress%%%] Processing %%targetLang%% - %%key%%...',
        'msg-available-models': 'Available models:',
        'msg-encountered-errors': 'Encountered some errors:\n%%errors%%',
        'msg-forcing-shutdown': 'Forcing shutdown...',

        'msg-translation-reason-forced': 'Forced update',
        'msg-translation-reason-outputFileDidNotExist': 'Output file did not exist',
        'msg-translation-reason-userMissingReferenceValueHash': 'No reference hash found',
        'msg-translation-reason-userModifiedReferenceValue': 'User modified reference string',
        'msg-translation-reason-missingOutputKey': 'No existing translation found',
        'msg-translation-reason-missingOutputValueHash': 'No hash found in cache file',

        'error-value-not-a-string': 'Value for reference key "%%key%%" was "%%type%%". Expected a string! Skipping...',
        'error-value-not-in-reference-data': 'Key "%%key%%" did not exist in reference file',
        'error-translation-failed': 'Translation was empty; target language=%%targetLang%%; key=%%key%%; text=%%refValue%%',
        'error-no-reference-file-specified': 'No reference file specified. Use --reference-file or add "referenceFile" to your config file',
        'error-reference-file-not-found': 'Reference file "%%referenceFile%%" does not exist',
        'error-bad-reference-file-ext': 'Unsupported reference file extension ".%%ext%%"; supported: %%supported%%',
        'error-reference-file-load-failed': 'Failed to load reference file "%%referenceFile%%"',
        'error-reference-var-not-found-in-data': 'No "%%referenceExportedVarName%%" member in "%%referenceFile%%"; found: %%possibleKeys%%',
        'error-reference-key-not-a-string': 'Reference file "%%referenceFile%%" has non-string keys: %%keys%%. Quote them so they are read as strings',
        'error-no-provider-specified': 'No provider specified. ',
        'error-unknown-provider': 'Unknown provider "%%providerName%%". ',
        'supported-providers': 'Supported providers: %%providers%%',
        'error-no-reference-language': 'No reference language specified. Use --reference-language or add "referenceLanguage" to your config file',
        'error-no-target-languages': 'No target languages specified. Use --target-languages or add "targetLanguages" to your config file',
        'error-missing-api-key': '%%apiKeyName%% environment variable is not set',
        'error-invalid-llm-model': 'Invalid model "%%model%%"',
        'error-dir-create-failed': 'Failed to create directory "%%dir%%"',
        'error-context-affix-required': '--look-for-context-data requires a non-empty --context-prefix or --context-suffix',
        'error-invalid-config': 'Invalid config file "%%configFile%%": %%reason%%',
    },
    'de': {
        'msg-nothing-to-do': 'Nichts zu tun',
        'msg-done': 'Fertig',
        'msg-finished-with-errors': 'Beendet mit %%errorsEncountered%% Fehler%%s%%',
        'msg-translating-key': 'Übersetze %%key%%',
        'msg-no-update-needed-for-key': 'Keine Aktualisierung nötig für %%key%%',
        'msg-rate-limited-sleeping': 'Ratenbegrenzt; warte %%interval%%s...%%attemptStr%%',
        'msg-show-translation-result': '%%key%% übersetzt: "%%newValue%%"',
        'msg-processing-lang-and-key': '[%%progress%%%] Verarbeite %%targetLang%% - %%key%%...',
        'msg-available-models': 'Verfügbare Modelle:',

        'msg-translation-reason-forced': 'Erzwungene Aktualisierung',
        'msg-translation-reason-outputFileDidNotExist': 'Ausgabedatei existierte nicht',
        'msg-translation-reason-userMissingReferenceValueHash': 'Kein Referenz-Hash gefunden',
        'msg-translation-reason-userModifiedReferenceValue': 'Referenztext wurde geändert',
        'msg-translation-reason-missingOutputKey': 'Keine vorhandene Übersetzung gefunden',
        'msg-translation-reason-missingOutputValueHash': 'Kein Hash in der Cache-Datei gefunden',

        'error-value-not-a-string': 'Wert für Referenzschlüssel "%%key%%" war "%%type%%". Erwartet wurde ein String! Überspringe...',
        'error-value-not-in-reference-data': 'Schlüssel "%%key%%" existiert nicht in der Referenzdatei',
    },
}


class TemplateWarningCode(enum.Enum):
    MISSING_VAR = 'missing variable'
    UNKNOWN_VAR_SPECIFIED = 'unknown var specified'


class TemplateWarning(NamedTuple):
    code: TemplateWarningCode
    message: str


def render_template(fmt: str, data: Dict[str, object]) -> Tuple[str, List[TemplateWarning]]:
    """
    Substitute every ``%%name%%`` in ``fmt`` with ``data[name]``.

    Unknown variables are left in place. Neither problem raises; both are
    returned as warnings.

    Args:
        fmt: The format string.
        data: Values for the variables referenced by ``fmt``.

    Returns:
        The rendered string and a list of warnings: one per variable the
        format referenced but ``data`` lacked, and one per ``data`` entry the
        format never used.
    """
    warnings: List[TemplateWarning] = []
    unused = set(data)

    def replace(match):
        name = match.group(1)
        if name in data:
            unused.discard(name)
            return str(data[name])
        warnings.append(TemplateWarning(TemplateWarningCode.MISSING_VAR,
                                        f"'format' string missing data for var \"{name}\""))
        return match.group(0)

    result = _TEMPLATE_VAR_PATTERN.sub(replace, fmt)
    for name in sorted(unused):
        warnings.append(TemplateWarning(TemplateWarningCode.UNKNOWN_VAR_SPECIFIED,
                                        f"unknown var \"{name}\" specified in data obj"))
    return result, warnings


def resolve_display_language(requested: Optional[str]) -> str:
    """
    Pick the CLI display language from a POSIX locale or language tag
    (e.g. ``de_DE.UTF-8`` or ``de-DE``), falling back to English.
    """
    if not requested:
        return DEFAULT_LANGUAGE
    base = re.split(r'[._@-]', requested.strip(), maxsplit=1)[0].lower()
    if base in MESSAGES:
        return base
    logger.warning(f"No localization data found for language \"{requested}\"; falling back to \"{DEFAULT_LANGUAGE}\"...")
    return DEFAULT_LANGUAGE


class Messages:
    """Looks up message tokens for one display language, falling back to English."""

    def __init__(self, lang: str = DEFAULT_LANGUAGE):
        self.lang = lang if lang in MESSAGES else DEFAULT_LANGUAGE

    def get(self, token: str) -> str:
        catalog = MESSAGES[self.lang]
        if token in catalog:
            return catalog[token]
        if token in MESSAGES[DEFAULT_LANGUAGE]:
            return MESSAGES[DEFAULT_LANGUAGE][token]
        logger.warning(f"Failed to find localization string for language=\"{self.lang}\", token=\"{token}\"")
        return ''

    def format(self, token: str, **data) -> str:
        result, warnings = render_template(self.get(token), data)
        for warning in warnings:
            logger.warning(f"[messages] {token}: {warning.message} ({warning.code.value})")
        return result
