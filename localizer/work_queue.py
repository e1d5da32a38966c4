"""Deciding which (language, key) pairs need translation."""
import logging
from dataclasses import dataclass, field, fields
from typing import Any, Dict, List, Optional, Sequence

from localizer.cache_store import CacheRecord
from localizer.context_keys import format_context_key, is_context_key
from localizer.hashing import output_value_hash, reference_value_hash
from localizer.json_io import normalize_data, read_json_file
from localizer.logging_config import TRACE, VERBOSE
from localizer.messages import Messages

logger = logging.getLogger(__name__)


@dataclass
class OutputTable:
    """One target language's output file, held in memory for the run."""
    path: str
    data: Dict[str, Any] = field(default_factory=dict)
    existed: bool = False


def load_output_table(path: str) -> OutputTable:
    """Load an output file; a missing or unreadable file gives an empty table."""
    data = read_json_file(path)
    if not isinstance(data, dict):
        return OutputTable(path=path, data={}, existed=False)
    return OutputTable(path=path, data=normalize_data(data), existed=True)


@dataclass(frozen=True)
class TranslationReasons:
    """Why a key is (re)translated. Field names match the reason message tokens."""
    forced: bool = False
    outputFileDidNotExist: bool = False
    userMissingReferenceValueHash: bool = False
    userModifiedReferenceValue: bool = False
    missingOutputKey: bool = False
    missingOutputValueHash: bool = False

    def active(self) -> List[str]:
        return [f.name for f in fields(self) if getattr(self, f.name)]

    def __bool__(self):
        return bool(self.active())


@dataclass(frozen=True)
class HashSnapshot:
    """Hash state for one (language, key) at enqueue time."""
    reference_value_hash: str
    stored_reference_hash: Optional[str]
    current_value_hash: Optional[str]
    stored_value_hash: Optional[str]

    @property
    def user_modified_target_value(self) -> bool:
        """True when a human edited the output value after we last wrote it."""
        return bool(self.stored_value_hash) and bool(self.current_value_hash) \
            and self.current_value_hash != self.stored_value_hash


@dataclass
class TranslationTask:
    key: str
    source_lang: str
    target_lang: str
    reasons: TranslationReasons
    ref_value: str
    context_value: Optional[str]
    output_table: OutputTable
    cache: CacheRecord
    snapshot: HashSnapshot


@dataclass
class KeyDecision:
    reasons: TranslationReasons
    snapshot: HashSnapshot

    @property
    def needs_translation(self) -> bool:
        # A manual edit of the output always wins, even over --force.
        return bool(self.reasons) and not self.snapshot.user_modified_target_value


def evaluate_key(
        lang: str,
        key: str,
        ref_value: str,
        context_value: Optional[str],
        output_table: OutputTable,
        read_only_cache: CacheRecord,
        force: bool = False
) -> KeyDecision:
    """
    Compute the reason set and hash snapshot for one (language, key).

    Args:
        lang: Target language tag.
        key: Reference key.
        ref_value: The key's reference string.
        context_value: The sibling context string, if any.
        output_table: The language's current output table.
        read_only_cache: The cache as loaded at the start of the run.
        force: Whether the run forces retranslation.

    Returns:
        KeyDecision: The reasons and the hashes they were derived from.
    """
    current_value = output_table.data.get(key)
    snapshot = HashSnapshot(
        reference_value_hash=reference_value_hash(ref_value, context_value),
        stored_reference_hash=read_only_cache.stored_reference_hash(lang, key),
        current_value_hash=output_value_hash(current_value),
        stored_value_hash=read_only_cache.stored_value_hash(lang, key),
    )
    reasons = TranslationReasons(
        forced=bool(force),
        outputFileDidNotExist=not output_table.existed,
        userMissingReferenceValueHash=not snapshot.stored_reference_hash,
        userModifiedReferenceValue=bool(snapshot.stored_reference_hash)
        and snapshot.reference_value_hash != snapshot.stored_reference_hash,
        missingOutputKey=key not in output_table.data,
        missingOutputValueHash=not snapshot.stored_value_hash,
    )
    return KeyDecision(reasons=reasons, snapshot=snapshot)


def select_keys(
        reference_table: Dict[str, Any],
        keys: Optional[Sequence[str]] = None,
        look_for_context_data: bool = False,
        context_prefix: Optional[str] = None,
        context_suffix: Optional[str] = None
) -> List[str]:
    """Keys to process, in explicit or reference order, without context keys."""
    selected = list(dict.fromkeys(keys)) if keys else list(reference_table.keys())
    if look_for_context_data:
        selected = [k for k in selected if not is_context_key(k, context_prefix, context_suffix)]
    return selected


def _reject_non_string_keys(
        keys: List[str],
        reference_table: Dict[str, Any],
        errors: List[str],
        messages: Messages
) -> List[str]:
    valid = []
    for key in keys:
        if key not in reference_table:
            # Only possible when a key was requested explicitly
            errors.append(messages.format('error-value-not-in-reference-data', key=key))
        elif not isinstance(reference_table[key], str):
            errors.append(messages.format('error-value-not-a-string', key=key,
                                          type=type(reference_table[key]).__name__))
        else:
            valid.append(key)
    return valid


def build_work_queue(
        reference_table: Dict[str, Any],
        target_languages: Sequence[str],
        output_tables: Dict[str, OutputTable],
        read_only_cache: CacheRecord,
        writable_cache: CacheRecord,
        source_lang: str,
        errors: List[str],
        messages: Messages,
        keys: Optional[Sequence[str]] = None,
        force: bool = False,
        look_for_context_data: bool = False,
        context_prefix: Optional[str] = None,
        context_suffix: Optional[str] = None
) -> List[TranslationTask]:
    """
    Enumerate the translation tasks for this run.

    Tasks are ordered by target language (in configured order), then by key
    (explicit order if given, else reference order). Keys whose reference
    value is missing or not a string are recorded in ``errors`` once and skipped.

    Args:
        reference_table: The reference key/value table.
        target_languages: Target language tags.
        output_tables: Output table per target language.
        read_only_cache: The cache snapshot taken at load time; all decisions read this.
        writable_cache: The working copy tasks will record results into.
        source_lang: The reference language tag.
        errors: Run-level error list to append per-key data errors to.
        messages: Message catalog for error text.
        keys: Optional explicit subset of keys.
        force: Force retranslation (never overrides a manual output edit).
        look_for_context_data: Pass sibling context values along and skip context keys.
        context_prefix: Context key prefix.
        context_suffix: Context key suffix.

    Returns:
        List[TranslationTask]: The ordered work queue.
    """
    selected = select_keys(reference_table, keys, look_for_context_data, context_prefix, context_suffix)
    logger.log(TRACE, f"keys to process: {','.join(selected)}")
    translatable = _reject_non_string_keys(selected, reference_table, errors, messages)

    work_queue: List[TranslationTask] = []
    for target_lang in target_languages:
        logger.debug(f"Processing language {target_lang}...")
        output_table = output_tables[target_lang]
        for key in translatable:
            ref_value = reference_table[key]
            context_value = None
            if look_for_context_data:
                context_key = format_context_key(key, context_prefix, context_suffix)
                candidate = reference_table.get(context_key)
                context_value = candidate if isinstance(candidate, str) else None

            decision = evaluate_key(target_lang, key, ref_value, context_value,
                                    output_table, read_only_cache, force)
            logger.debug(f"[{target_lang}] {key}: reasons={decision.reasons.active()} snapshot={decision.snapshot}")

            if decision.needs_translation:
                work_queue.append(TranslationTask(
                    key=key,
                    source_lang=source_lang,
                    target_lang=target_lang,
                    reasons=decision.reasons,
                    ref_value=ref_value,
                    context_value=context_value,
                    output_table=output_table,
                    cache=writable_cache,
                    snapshot=decision.snapshot,
                ))
            else:
                if decision.snapshot.user_modified_target_value:
                    logger.debug(f"User modified target value: hashes differ "
                                 f"({decision.snapshot.current_value_hash} / {decision.snapshot.stored_value_hash})...")
                logger.log(VERBOSE, f"[{target_lang}] {key} no translation needed.")
    return work_queue
