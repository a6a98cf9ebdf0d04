import copy

import pytest

from dbforge.codec.properties import (
    build_container_payload,
    decode,
    decode_properties,
    encode,
    encode_properties,
    encode_record,
    encode_value,
    ensure_color_variation,
    ensure_title,
    protocol_for_version,
)
from dbforge.codec.schema import parse_multi_source, parse_schema
from dbforge.errors import ValidationError
from dbforge.models.properties import COLOR_PALETTE, PropertyDescriptor, PropertyKind


def _uniform(color="blue", n=3, key="select"):
    return {key: {"options": [{"name": f"opt{i}", "color": color} for i in range(n)]}}


# ─────────────────────────────────────────────────────────────
# Decode / encode
# ─────────────────────────────────────────────────────────────
def test_decode_accepts_native_tagged_and_api_shapes():
    native = decode({"select": {"options": [{"name": "A", "color": "red"}]}}, name="Status")
    tagged = decode({"kind": "singleChoice", "options": [{"label": "A", "color": "red"}]}, name="Status")
    api = decode({"id": "x", "name": "Status", "type": "select", "select": {"options": [{"name": "A", "color": "red"}]}})

    for d in (native, tagged, api):
        assert d.name == "Status"
        assert d.kind == PropertyKind.SINGLE_CHOICE
        assert d.config.options[0].label == "A"
        assert d.config.options[0].color == "red"


def test_unknown_kind_falls_back_to_text():
    d = decode({"type": "hologram"}, name="Weird")
    assert d.kind == PropertyKind.TEXT
    assert encode(d) == {"rich_text": {}}


def test_untyped_property_is_text():
    assert decode({}, name="Notes").kind == PropertyKind.TEXT


def test_non_mapping_property_is_rejected():
    with pytest.raises(ValidationError):
        decode("select", name="Status")


def test_invalid_number_format_and_color_are_dropped():
    num = decode({"number": {"format": "bitcoin"}}, name="Price")
    assert encode(num) == {"number": {"format": "number"}}

    sel = decode({"select": {"options": [{"name": "A", "color": "neon"}]}}, name="S")
    assert encode(sel) == {"select": {"options": [{"name": "A"}]}}


def test_relation_target_key_depends_on_protocol():
    d = PropertyDescriptor(name="Owner", kind=PropertyKind.RELATION, config={"target_id": "t-1"})
    assert encode(d, "B")["relation"]["data_source_id"] == "t-1"
    assert encode(d, "A")["relation"]["database_id"] == "t-1"
    assert "data_source_id" not in encode(d, "A")["relation"]


def test_encode_properties_round_trips_wire_input():
    wire = {
        "Name": {"title": {}},
        "Tags": {"multi_select": {"options": [{"name": "x", "color": "red"}, {"name": "y", "color": "blue"}]}},
        "Done": {"checkbox": {}},
        "Price": {"number": {"format": "dollar"}},
    }
    assert encode_properties(wire) == wire


def test_protocol_for_version():
    assert protocol_for_version("2022-06-28") == "A"
    assert protocol_for_version("2025-09-03") == "B"
    assert protocol_for_version("2026-01-15") == "B"


# ─────────────────────────────────────────────────────────────
# Colour repair
# ─────────────────────────────────────────────────────────────
def test_color_repair_restores_variation_in_place():
    props = {"Status": _uniform("blue", 4), "Tags": _uniform("green", 3, key="multi_select")}
    out = ensure_color_variation(props)

    assert out is props
    for key, name in (("select", "Status"), ("multi_select", "Tags")):
        colors = [o["color"] for o in props[name][key]["options"]]
        assert len(set(colors)) > 1
        assert all(c in COLOR_PALETTE for c in colors)
    assert [o["color"] for o in props["Status"]["select"]["options"]] == COLOR_PALETTE[:4]


def test_color_repair_is_idempotent_on_varied_input():
    props = {"Status": {"select": {"options": [{"name": "a", "color": "red"}, {"name": "b", "color": "red"}, {"name": "c", "color": "blue"}]}}}
    before = copy.deepcopy(props)
    ensure_color_variation(props)
    assert props == before

    repaired = ensure_color_variation({"S": _uniform("gray", 3)})
    again = ensure_color_variation(copy.deepcopy(repaired))
    assert again == repaired


def test_color_repair_skips_single_option_and_cycles_palette():
    single = {"S": _uniform("red", 1)}
    ensure_color_variation(single)
    assert single["S"]["select"]["options"][0]["color"] == "red"

    many = {"S": _uniform("red", 11)}
    ensure_color_variation(many)
    colors = [o["color"] for o in many["S"]["select"]["options"]]
    assert colors[9] == COLOR_PALETTE[0]
    assert colors[10] == COLOR_PALETTE[1]


def test_color_repair_on_descriptors():
    props = decode_properties({"S": _uniform("pink", 3)})
    ensure_color_variation(props)
    assert [o.color for o in props[0].config.options] == COLOR_PALETTE[:3]


# ─────────────────────────────────────────────────────────────
# Schema helpers
# ─────────────────────────────────────────────────────────────
def test_ensure_title_prepends_name():
    props = ensure_title(decode_properties({"Notes": {"rich_text": {}}}))
    assert props[0].name == "Name"
    assert props[0].kind == PropertyKind.TITLE


def test_ensure_title_numbers_name_on_collision():
    props = ensure_title(decode_properties({"Name": {"rich_text": {}}, "Name 2": {"number": {}}}))
    assert props[0].name == "Name 3"
    assert props[0].kind == PropertyKind.TITLE
    assert [p.name for p in props[1:]] == ["Name", "Name 2"]


def test_container_payload_per_protocol():
    schema = parse_schema({"title": "Tasks", "properties": {"Status": _uniform("blue", 2)}})

    b = build_container_payload(schema, "parent-1", "B")
    assert "properties" not in b
    props_b = b["initial_data_source"]["properties"]
    assert set(props_b) == {"Name", "Status"}
    assert props_b["Status"]["select"]["options"][0]["color"] != props_b["Status"]["select"]["options"][1]["color"]

    a = build_container_payload(schema, "parent-1", "A")
    assert "initial_data_source" not in a
    assert a["properties"] == props_b
    assert a["parent"] == {"type": "page_id", "page_id": "parent-1"}
    assert a["title"][0]["text"]["content"] == "Tasks"


def test_parse_schema_defaults_title_and_rejects_two_titles():
    assert parse_schema({"properties": {}}).title == "New Database"
    with pytest.raises(ValidationError) as exc:
        parse_schema({"title": "x", "properties": {"A": {"title": {}}, "B": {"title": {}}}})
    assert exc.value.status_code == 400


def test_parse_multi_source_requires_named_sources():
    with pytest.raises(ValidationError):
        parse_multi_source({"title": "Shop", "dataSources": []})
    with pytest.raises(ValidationError):
        parse_multi_source({"title": "Shop", "dataSources": [{"properties": {}}]})

    ms = parse_multi_source({"title": "Shop", "dataSources": [{"name": "Products", "properties": {"Price": {"number": {}}}}]})
    assert ms.data_sources[0].properties[0].kind == PropertyKind.NUMBER


# ─────────────────────────────────────────────────────────────
# Record values
# ─────────────────────────────────────────────────────────────
def test_encode_value_by_kind():
    props = {p.name: p for p in decode_properties({
        "Name": {"title": {}},
        "Status": {"select": {}},
        "Tags": {"multi_select": {}},
        "Done": {"checkbox": {}},
        "When": {"date": {}},
    })}
    assert encode_value(props["Name"], "Launch") == {"title": [{"text": {"content": "Launch"}}]}
    assert encode_value(props["Status"], "Open") == {"select": {"name": "Open"}}
    assert encode_value(props["Tags"], ["a", "b"]) == {"multi_select": [{"name": "a"}, {"name": "b"}]}
    assert encode_value(props["Done"], 1) == {"checkbox": True}
    assert encode_value(props["When"], "2025-01-01") == {"date": {"start": "2025-01-01"}}
    # already wire shaped
    assert encode_value(props["Status"], {"select": {"name": "X"}}) == {"select": {"name": "X"}}


def test_encode_value_rejects_computed_and_unknown():
    formula = decode({"formula": {"expression": "1+1"}}, name="F")
    with pytest.raises(ValidationError):
        encode_value(formula, 3)
    with pytest.raises(ValidationError):
        encode_record(decode_properties({"Name": {"title": {}}}), {"Missing": "x"})
