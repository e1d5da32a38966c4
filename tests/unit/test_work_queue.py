"""Unit tests for the translation decision rule and the work queue builder."""
import pytest

from localizer.cache_store import CacheRecord
from localizer.hashing import calculate_hash, reference_value_hash
from localizer.work_queue import (
    OutputTable,
    TranslationReasons,
    build_work_queue,
    evaluate_key,
    load_output_table,
    select_keys,
)


def _translated_cache(lang, key, ref_value, out_value, context=None):
    cache = CacheRecord()
    cache.record_translation(lang, key, calculate_hash(out_value), reference_value_hash(ref_value, context))
    return cache


class TestEvaluateKey:

    def test_first_run_reasons(self):
        decision = evaluate_key("fr", "greeting", "Hello", None, OutputTable("fr.json"), CacheRecord())
        assert decision.needs_translation
        assert decision.reasons.active() == [
            "outputFileDidNotExist",
            "userMissingReferenceValueHash",
            "missingOutputKey",
            "missingOutputValueHash",
        ]

    def test_up_to_date_key_needs_nothing(self):
        table = OutputTable("fr.json", {"greeting": "Bonjour"}, existed=True)
        cache = _translated_cache("fr", "greeting", "Hello", "Bonjour")
        decision = evaluate_key("fr", "greeting", "Hello", None, table, cache)
        assert not decision.reasons
        assert not decision.needs_translation

    def test_reference_edit_sets_only_modified_reason(self):
        table = OutputTable("fr.json", {"greeting": "Bonjour"}, existed=True)
        cache = _translated_cache("fr", "greeting", "Hello", "Bonjour")
        decision = evaluate_key("fr", "greeting", "Hello there", None, table, cache)
        assert decision.reasons.active() == ["userModifiedReferenceValue"]
        assert decision.needs_translation

    def test_manual_edit_blocks_translation(self):
        table = OutputTable("fr.json", {"greeting": "Salut"}, existed=True)
        cache = _translated_cache("fr", "greeting", "Hello", "Bonjour")
        decision = evaluate_key("fr", "greeting", "Hello there", None, table, cache)
        assert decision.snapshot.user_modified_target_value
        assert not decision.needs_translation

    def test_manual_edit_wins_over_force(self):
        table = OutputTable("fr.json", {"greeting": "Salut"}, existed=True)
        cache = _translated_cache("fr", "greeting", "Hello", "Bonjour")
        decision = evaluate_key("fr", "greeting", "Hello", None, table, cache, force=True)
        assert decision.reasons.forced
        assert not decision.needs_translation

    def test_force_retranslates_unedited_key(self):
        table = OutputTable("fr.json", {"greeting": "Bonjour"}, existed=True)
        cache = _translated_cache("fr", "greeting", "Hello", "Bonjour")
        decision = evaluate_key("fr", "greeting", "Hello", None, table, cache, force=True)
        assert decision.reasons.active() == ["forced"]
        assert decision.needs_translation

    def test_deleted_output_value_is_not_a_manual_edit(self):
        table = OutputTable("fr.json", {}, existed=True)
        cache = _translated_cache("fr", "greeting", "Hello", "Bonjour")
        decision = evaluate_key("fr", "greeting", "Hello", None, table, cache)
        assert decision.reasons.active() == ["missingOutputKey"]
        assert decision.needs_translation

    def test_context_change_is_a_reference_edit(self):
        table = OutputTable("fr.json", {"save": "Enregistrer"}, existed=True)
        cache = _translated_cache("fr", "save", "Save", "Enregistrer", context="Button")
        decision = evaluate_key("fr", "save", "Save", "Menu entry", table, cache)
        assert decision.reasons.userModifiedReferenceValue


class TestSelectKeys:

    def test_reference_order_without_context_keys(self):
        table = {"b": "B", "b_context": "ctx", "a": "A"}
        assert select_keys(table, look_for_context_data=True, context_suffix="_context") == ["b", "a"]

    def test_explicit_keys_deduplicated_in_given_order(self):
        assert select_keys({"a": "A", "b": "B"}, keys=["b", "a", "b"]) == ["b", "a"]


class TestBuildWorkQueue:

    def _build(self, reference, messages, errors, langs=("fr", "de"), cache=None, tables=None, **kwargs):
        cache = cache or CacheRecord()
        tables = tables or {lang: OutputTable(f"{lang}.json") for lang in langs}
        writable = CacheRecord()
        queue = build_work_queue(reference, list(langs), tables, cache, writable, "en", errors, messages, **kwargs)
        return queue, writable

    def test_ordered_by_language_then_key(self, messages):
        errors = []
        queue, writable = self._build({"a": "A", "b": "B"}, messages, errors)
        assert [(t.target_lang, t.key) for t in queue] == [("fr", "a"), ("fr", "b"), ("de", "a"), ("de", "b")]
        assert all(t.cache is writable for t in queue)
        assert errors == []

    def test_non_string_values_recorded_once_and_skipped(self, messages):
        errors = []
        queue, _ = self._build({"a": "A", "items": ["x", "y"]}, messages, errors)
        assert [t.key for t in queue] == ["a", "a"]
        assert len(errors) == 1
        assert '"items"' in errors[0] and 'list' in errors[0]

    def test_unknown_explicit_key(self, messages):
        errors = []
        queue, _ = self._build({"a": "A"}, messages, errors, keys=["a", "zzz"])
        assert [t.key for t in queue] == ["a", "a"]
        assert errors == ['Key "zzz" did not exist in reference file']

    def test_context_value_attached_and_context_key_skipped(self, messages):
        errors = []
        reference = {"save": "Save", "save_context": "Button that stores the form"}
        queue, _ = self._build(reference, messages, errors, langs=("fr",), look_for_context_data=True,
                               context_suffix="_context")
        assert len(queue) == 1
        assert queue[0].context_value == "Button that stores the form"
        assert queue[0].snapshot.reference_value_hash == reference_value_hash("Save", "Button that stores the form")

    def test_context_ignored_unless_enabled(self, messages):
        errors = []
        reference = {"save": "Save", "save_context": "Button"}
        queue, _ = self._build(reference, messages, errors, langs=("fr",))
        assert {t.key for t in queue} == {"save", "save_context"}
        assert all(t.context_value is None for t in queue)

    def test_manual_edit_skipped_even_when_forced(self, messages):
        errors = []
        cache = CacheRecord()
        for key, value in (("a", "A"), ("b", "B")):
            cache.record_translation("fr", key, calculate_hash(f"fr-{value}"), reference_value_hash(value))
        tables = {"fr": OutputTable("fr.json", {"a": "fr-A", "b": "hand edited"}, existed=True)}
        queue, _ = self._build({"a": "A", "b": "B"}, messages, errors, langs=("fr",), cache=cache,
                               tables=tables, force=True)
        assert [t.key for t in queue] == ["a"]


def test_load_output_table(tmp_path):
    missing = load_output_table(str(tmp_path / "fr.json"))
    assert missing.data == {} and missing.existed is False

    (tmp_path / "de.json").write_text('{"a": "A"}', encoding='utf-8')
    present = load_output_table(str(tmp_path / "de.json"))
    assert present.data == {"a": "A"} and present.existed is True


@pytest.mark.parametrize("flags, expected", [
    ({}, False),
    ({"missingOutputKey": True}, True),
])
def test_reasons_truthiness(flags, expected):
    assert bool(TranslationReasons(**flags)) is expected
