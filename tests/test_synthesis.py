import orjson
import pytest

from conftest import FakeProvider, RecordingSleep, make_factory, run
from dbforge.errors import NoAvailableModelError, ValidationError
from dbforge.synthesis import prompts
from dbforge.synthesis.engine import SchemaSynthesisEngine, keyword_suggestion
from dbforge.synthesis.extract import extract_individual, extract_multi_source
from dbforge.synthesis.retry import RetryPolicy, exponential_backoff

SCHEMA = {
    "title": "Shop",
    "description": "Online store",
    "dataSources": [
        {
            "name": "Products",
            "properties": {
                "Name": {"title": {}},
                "Price": {"number": {"format": "dollar"}},
                "Category": {"select": {"options": [{"name": "A", "color": "blue"}, {"name": "B", "color": "green"}]}},
            },
        },
        {"name": "Orders", "properties": {"Order": {"title": {}}, "Shipped": {"checkbox": {}}}},
    ],
}


def _fenced(obj, prose="Here is the design."):
    return f"{prose}\n```json\n{orjson.dumps(obj).decode()}\n```\nHope it helps."


def _engine(providers, *, sleep=None, attempts=3):
    factory = make_factory({p.model_id: p for p in providers})
    return SchemaSynthesisEngine(
        factory,
        [p.model_id for p in providers],
        retry=RetryPolicy(max_attempts=attempts, sleep=sleep or RecordingSleep()),
    )


# ─────────────────────────────────────────────────────────────
# Extraction
# ─────────────────────────────────────────────────────────────
def test_fenced_block_extracts_and_validates():
    result = extract_multi_source(_fenced(SCHEMA))
    assert result.explanation == "Here is the design."
    assert result.schema.title == "Shop"
    assert [ds.name for ds in result.schema.dataSources] == ["Products", "Orders"]


def test_bare_object_is_used_when_no_fence():
    text = "Design follows " + orjson.dumps(SCHEMA).decode()
    result = extract_multi_source(text)
    assert result.schema is not None
    assert result.explanation == "Design follows"


def test_unparseable_payload_keeps_whole_text():
    text = "```json\n{not json}\n```"
    result = extract_multi_source(text)
    assert result.schema is None
    assert result.explanation == text


def test_validation_failure_yields_null_schema_with_prose():
    bad = {"title": "Shop", "dataSources": [{"name": "P", "properties": {"X": {"title": {}, "number": {}}}}]}
    text = _fenced(bad)
    result = extract_multi_source(text)
    assert result.schema is None
    assert result.explanation == text


def test_missing_data_source_name_is_invalid():
    bad = {"title": "Shop", "dataSources": [{"name": "", "properties": {}}]}
    assert extract_multi_source(_fenced(bad)).schema is None


def test_individual_schemas_parse_as_array():
    arr = [{"title": "Products", "properties": {"Name": {"title": {}}}}]
    result = extract_individual("Two databases:\n" + orjson.dumps(arr).decode())
    assert [s.title for s in result.schema] == ["Products"]


# ─────────────────────────────────────────────────────────────
# Retry / model selection
# ─────────────────────────────────────────────────────────────
def test_backoff_doubles():
    assert [exponential_backoff(a) for a in (1, 2, 3)] == [2, 4, 8]


def test_retry_exhaustion_sleeps_two_then_four_and_raises():
    sleep = RecordingSleep()
    provider = FakeProvider("gemini-2.0-flash", [RuntimeError("boom")])
    engine = _engine([provider], sleep=sleep)

    with pytest.raises(RuntimeError, match="boom"):
        run(engine.generate("hi"))
    assert sleep.delays == [2, 4]
    assert len(provider.prompts) == 3


def test_retry_recovers_after_transient_failure():
    sleep = RecordingSleep()
    provider = FakeProvider("m", [RuntimeError("flaky"), "ok"])
    assert run(_engine([provider], sleep=sleep).generate("hi")) == "ok"
    assert sleep.delays == [2]


def test_select_model_skips_unavailable():
    down = FakeProvider("gemini-2.0-flash", ["x"], available=False)
    up = FakeProvider("gemini-1.5-pro", ["reply"])
    engine = _engine([down, up])

    assert run(engine.select_model()) is up
    assert run(engine.generate("p")) == "reply"
    assert down.prompts == []


def test_no_available_model():
    engine = _engine([FakeProvider("a", ["x"], available=False), FakeProvider("b", ["x"], available=False)])
    with pytest.raises(NoAvailableModelError) as exc:
        run(engine.select_model())
    assert exc.value.status_code == 503
    assert exc.value.details["tried"] == ["a", "b"]


# ─────────────────────────────────────────────────────────────
# Entry points
# ─────────────────────────────────────────────────────────────
def test_chat_returns_explanation_and_schema():
    provider = FakeProvider("m", [_fenced(SCHEMA)])
    out = run(_engine([provider]).chat("an online shop", "es"))

    assert out["content"] == "Here is the design."
    assert out["schema"]["dataSources"][0]["properties"]["Price"] == {"number": {"format": "dollar"}}
    assert "Spanish" in provider.prompts[0]
    assert "an online shop" in provider.prompts[0]


def test_chat_without_schema_returns_prose():
    provider = FakeProvider("m", ["Could you tell me more about your data?"])
    out = run(_engine([provider]).chat("hello"))
    assert out == {"content": "Could you tell me more about your data?", "schema": None}


def test_chat_requires_localized_message():
    with pytest.raises(ValidationError) as exc:
        run(_engine([FakeProvider("m", ["x"])]).chat("  ", "fr"))
    assert exc.value.message == "Le message est requis"


def test_multi_source_individual_mode():
    arr = [{"title": "Products", "properties": {"Name": {"title": {}}}}]
    provider = FakeProvider("m", [_fenced(arr)])
    out = run(_engine([provider]).generate_multi_source("shop", individual_schemas=True))

    assert out["type"] == "individual-schemas"
    assert out["individual_schemas"] is True
    assert out["schema"][0]["title"] == "Products"


def test_multi_source_prompt_embeds_templates_and_context():
    provider = FakeProvider("m", [_fenced(SCHEMA)])
    templates = [{"id": "crm", "title": "CRM", "description": "Customers", "properties": {"Name": {"title": {}}}}]
    out = run(_engine([provider]).generate_multi_source(
        "shop",
        context={"industry": "retail"},
        existing_databases=[{"title": "Legacy"}],
        available_templates=templates,
    ))

    prompt = provider.prompts[0]
    assert "AVAILABLE TEMPLATES" in prompt
    assert '"asDataSource"' in prompt
    assert "EXISTING DATABASES CONTEXT" in prompt
    assert "retail" in prompt
    assert out["type"] == "multi-source"
    assert out["schema"]["title"] == "Shop"


# ─────────────────────────────────────────────────────────────
# Suggestions
# ─────────────────────────────────────────────────────────────
TEMPLATES = [
    {"id": "project_management", "title": "Projects"},
    {"id": "customer_crm", "title": "CRM"},
    {"id": "content_library", "title": "Content"},
    {"id": "event_planning", "title": "Events"},
]


@pytest.mark.parametrize(
    "text,expected",
    [
        ("track my customers", "customer_crm"),
        ("a CRM for sales", "customer_crm"),
        ("article pipeline", "content_library"),
        ("team meeting notes", "event_planning"),
        ("something else", "project_management"),
    ],
)
def test_keyword_suggestion(text, expected):
    out = keyword_suggestion(text)
    assert out["suggestedTemplate"] == expected
    assert out["confidence"] == 0.7
    assert out["customizations"] == {"title": text}


def test_suggest_uses_model_answer():
    reply = '{"suggestedTemplate": "event_planning", "confidence": 0.92, "reasoning": "events", "customizations": {}}'
    out = run(_engine([FakeProvider("m", [reply])]).suggest_template("conference", TEMPLATES))
    assert out["suggestedTemplate"] == "event_planning"
    assert out["confidence"] == 0.92


def test_suggest_falls_back_on_garbage_or_unknown_template():
    garbage = run(_engine([FakeProvider("m", ["no idea"])]).suggest_template("customer list", TEMPLATES))
    assert garbage["suggestedTemplate"] == "customer_crm"
    assert garbage["reasoning"] == "Based on keyword matching"

    unknown = '{"suggestedTemplate": "spaceship", "confidence": 0.99}'
    out = run(_engine([FakeProvider("m", [unknown])]).suggest_template("an article hub", TEMPLATES))
    assert out["suggestedTemplate"] == "content_library"


def test_language_table_defaults_to_english():
    assert prompts.language_name("bn") == "Bengali"
    assert prompts.language_name("xx") == "English"
    assert prompts.message_required(None) == "Message is required"
