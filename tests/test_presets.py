"""Tests for PresetMatcher and user message extraction."""
import pytest

from preset_gateway.errors import NotFoundError, ValidationError
from preset_gateway.messages import ChatRequest, PartsContent, TextContent, decode_content
from preset_gateway.persistence import JsonFileStore, MemoryStore
from preset_gateway.presets import SEED_PRESETS, PresetMatcher


def make_matcher(rules):
    matcher = PresetMatcher(MemoryStore(rules))
    matcher.load()
    return matcher


def test_no_text_no_match():
    matcher = make_matcher([{"keywords": ["a"], "matchCount": 1, "response": "A"}])
    assert matcher.match(None) is None


def test_threshold_boundary():
    matcher = make_matcher([{"keywords": ["a", "b", "c", "d"], "matchCount": 3, "response": "hit"}])
    assert matcher.match("a b") is None
    assert matcher.match("a b c") == "hit"
    assert matcher.match("a b c d") == "hit"


def test_first_rule_wins():
    matcher = make_matcher([
        {"keywords": ["python"], "matchCount": 1, "response": "first"},
        {"keywords": ["python", "snake"], "matchCount": 2, "response": "second"},
    ])
    # Both rules are satisfied; order decides, not match quality
    assert matcher.match("python is a snake") == "first"


def test_match_is_case_insensitive_substring():
    matcher = make_matcher([{"keywords": ["Tokyo", "WEATHER"], "matchCount": 2, "response": "ok"}])
    assert matcher.match("what's the weather in TOKYO?") == "ok"
    assert matcher.match("weathered tokyoites") == "ok"


def test_keyword_counted_once():
    matcher = make_matcher([{"keywords": ["ha", "x"], "matchCount": 2, "response": "ok"}])
    assert matcher.match("ha ha ha ha") is None


def test_missing_match_count_defaults_to_one():
    matcher = make_matcher([{"keywords": ["foo", "bar"], "response": "ok"}])
    assert matcher.list()[0].match_count == 1
    assert matcher.match("foo") == "ok"


def test_match_is_deterministic():
    matcher = make_matcher([{"keywords": ["a", "b"], "matchCount": 2, "response": "ok"}])
    results = {matcher.match("a and b") for _ in range(10)}
    assert results == {"ok"}


def test_first_run_writes_seed_rule():
    store = MemoryStore()
    matcher = PresetMatcher(store)
    matcher.load()
    assert len(matcher) == len(SEED_PRESETS)
    assert store.load() == SEED_PRESETS


def test_add_and_remove():
    matcher = make_matcher([])
    assert matcher.add(["x", "y"], "reply", 2) == 1
    assert matcher.store.load() == [{"keywords": ["x", "y"], "matchCount": 2, "response": "reply"}]
    assert matcher.match("x y") == "reply"
    assert matcher.remove(0) == 0
    assert matcher.match("x y") is None


def test_add_requires_keywords_and_response():
    matcher = make_matcher([])
    with pytest.raises(ValidationError):
        matcher.add([], "reply")
    with pytest.raises(ValidationError):
        matcher.add(["x"], "")


def test_remove_out_of_range():
    matcher = make_matcher([{"keywords": ["a"], "response": "A"}])
    with pytest.raises(NotFoundError):
        matcher.remove(1)
    with pytest.raises(NotFoundError):
        matcher.remove(-1)


# Message extraction

def test_latest_user_text_plain():
    chat = ChatRequest.from_body({"messages": [
        {"role": "user", "content": "first"},
        {"role": "assistant", "content": "answer"},
        {"role": "user", "content": "second"},
    ]})
    assert chat.latest_user_text() == "second"


def test_latest_user_text_skips_trailing_assistant():
    chat = ChatRequest.from_body({"messages": [
        {"role": "user", "content": "question"},
        {"role": "assistant", "content": "answer"},
    ]})
    assert chat.latest_user_text() == "question"


def test_latest_user_text_first_text_part():
    chat = ChatRequest.from_body({"messages": [{
        "role": "user",
        "content": [
            {"type": "image", "source": {"type": "base64", "data": "abc"}},
            {"type": "text", "text": "describe this"},
            {"type": "text", "text": "ignored"},
        ],
    }]})
    assert chat.latest_user_text() == "describe this"


def test_latest_user_without_text_part():
    chat = ChatRequest.from_body({"messages": [
        {"role": "user", "content": "older"},
        {"role": "user", "content": [{"type": "image"}]},
    ]})
    # Only the most recent user message is considered
    assert chat.latest_user_text() is None


@pytest.mark.parametrize("body", [
    None,
    "text",
    [],
    {},
    {"messages": "hello"},
    {"messages": [None, 3, "x"]},
    {"messages": [{"role": "user", "content": 42}]},
    {"messages": [{"role": "user", "content": [{"type": "text", "text": None}]}]},
])
def test_malformed_bodies_yield_no_text(body):
    assert ChatRequest.from_body(body).latest_user_text() is None


def test_stream_flag_only_literal_true():
    assert ChatRequest.from_body({"stream": True}).stream is True
    assert ChatRequest.from_body({"stream": "true"}).stream is False
    assert ChatRequest.from_body({}).stream is False


def test_decode_content_variants():
    assert decode_content("hi") == TextContent("hi")
    assert decode_content([{"type": "text", "text": "a"}, "junk"]) == PartsContent([{"type": "text", "text": "a"}])
    assert decode_content({"text": "x"}) is None


def test_corrupt_presets_file_loads_empty_and_is_kept(tmp_path, caplog):
    path = tmp_path / "presets.json"
    path.write_text("{not json")
    matcher = PresetMatcher(JsonFileStore(path))
    matcher.load()
    assert len(matcher) == 0
    assert matcher.match("anything") is None
    assert path.read_text() == "{not json"
    assert "Failed to load presets" in caplog.text


def test_presets_file_with_wrong_shape_loads_empty():
    store = MemoryStore({"keywords": ["a"]})
    matcher = PresetMatcher(store)
    matcher.load()
    assert len(matcher) == 0
    assert store.saves == 0
