import pytest

from conftest import DIM, base_records, write_jsonl
from persona.errors import LoadError
from persona.loader import KnowledgeBase, load_knowledge, make_entry
from persona.rules import RuleMatcher


def test_load_keeps_file_order_and_normalizes_patterns(knowledge):
    entries = knowledge.all_entries()
    assert [e.id for e in entries] == ["greeting", "mortality", "control"]
    assert entries[0].patterns == ("hello",)
    assert entries[2].patterns == ("what can i control",)
    assert knowledge.dimension == DIM
    assert len(knowledge) == 3


def test_entries_are_read_only(knowledge):
    entry = knowledge.get("greeting")
    with pytest.raises(ValueError):
        entry.embedding[0] = 5.0
    with pytest.raises(AttributeError):
        entry.answer = "changed"


def test_blank_lines_are_skipped(tmp_path):
    records = base_records()
    path = write_jsonl(tmp_path / "kb.jsonl", [records[0], "", records[1]])
    assert len(load_knowledge(str(path), DIM)) == 2


def test_missing_file(tmp_path):
    with pytest.raises(LoadError):
        load_knowledge(str(tmp_path / "nope.jsonl"), DIM)


def test_duplicate_ids_rejected(tmp_path):
    records = base_records()
    records[2]["id"] = "greeting"
    path = write_jsonl(tmp_path / "kb.jsonl", records)
    with pytest.raises(LoadError, match="Duplicate"):
        load_knowledge(str(path), DIM)


def test_empty_answer_rejected(tmp_path):
    records = base_records()
    records[1]["answer"] = "   "
    path = write_jsonl(tmp_path / "kb.jsonl", records)
    with pytest.raises(LoadError, match="kb.jsonl:2"):
        load_knowledge(str(path), DIM)


@pytest.mark.parametrize(
    "embedding",
    [[1.0, 0.0], [], "1,0,0", [1.0, "x", 0.0], [1.0, float("nan"), 0.0], None],
)
def test_malformed_embeddings_rejected(tmp_path, embedding):
    records = base_records()
    records[0]["embedding"] = embedding
    path = write_jsonl(tmp_path / "kb.jsonl", records)
    with pytest.raises(LoadError):
        load_knowledge(str(path), DIM)


def test_dimension_must_match_configured_model(knowledge_path):
    with pytest.raises(LoadError, match="expected 4"):
        load_knowledge(str(knowledge_path), 4)


def test_invalid_json_rejected(tmp_path):
    path = write_jsonl(tmp_path / "kb.jsonl", [base_records()[0], "{not json"])
    with pytest.raises(LoadError, match="kb.jsonl:2"):
        load_knowledge(str(path), DIM)


def test_entry_without_patterns_rejected(tmp_path):
    records = base_records()
    records[0]["patterns"] = ["  ", "?!"]
    path = write_jsonl(tmp_path / "kb.jsonl", records)
    with pytest.raises(LoadError, match="no usable pattern"):
        load_knowledge(str(path), DIM)


@pytest.mark.parametrize("patterns", [["hello", 5, None], ["hello", ["nested"]]])
def test_non_string_pattern_rejected(tmp_path, patterns):
    records = base_records()
    records[0]["patterns"] = patterns
    path = write_jsonl(tmp_path / "kb.jsonl", records)
    with pytest.raises(LoadError, match=r"kb.jsonl:1.*pattern must be a string"):
        load_knowledge(str(path), DIM)


def test_make_entry_rejects_non_string_pattern():
    with pytest.raises(LoadError, match="'a': pattern must be a string, got 5"):
        make_entry("a", ["hi", 5], "Hello.", [1.0, 0.0, 0.0])


def test_record_without_any_pattern_field_rejected(tmp_path):
    records = base_records()
    del records[0]["patterns"]
    path = write_jsonl(tmp_path / "kb.jsonl", records)
    with pytest.raises(LoadError, match="no usable pattern"):
        load_knowledge(str(path), DIM)


def test_programmatic_construction_validates():
    entry = make_entry("a", ["hi"], "Hello.", [1.0, 0.0, 0.0])
    with pytest.raises(LoadError):
        KnowledgeBase([entry, entry], DIM)
    with pytest.raises(LoadError):
        KnowledgeBase([entry], 2)


def test_loading_twice_matches_identically(knowledge_path):
    first = RuleMatcher(load_knowledge(str(knowledge_path), DIM))
    second = RuleMatcher(load_knowledge(str(knowledge_path), DIM))
    for message in ["hello", "I fear of death", "what can I control", "nothing here"]:
        a, b = first.match(message), second.match(message)
        assert type(a) is type(b)
        assert getattr(a, "entry", None) is None or a.entry.id == b.entry.id
