import copy

from dbforge.services.masking import (
    MASKED_CONTENT,
    MASKED_EMAIL,
    MASKED_PHONE,
    MASKED_URL,
    mask_private_fields,
)


def _record():
    return {
        "object": "page",
        "properties": {
            "Name": {"type": "title", "title": [{"text": {"content": "Ada"}}]},
            "Email (Private)": {"type": "email", "email": "ada@example.com"},
            "Phone (Private)": {"type": "phone_number", "phone_number": "+44 1234"},
            "Salary (Private)": {"type": "number", "number": 120000},
            "Notes (Private)": {"type": "rich_text", "rich_text": [{"text": {"content": "secret"}}]},
            "Site (Private)": {"type": "url", "url": "https://ada.dev"},
            "Flag (Private)": {"type": "checkbox", "checkbox": True},
            "Raw (Private)": "plain",
        },
    }


def test_private_values_are_redacted_by_type():
    masked = mask_private_fields(_record())["properties"]

    assert masked["Name"]["title"][0]["text"]["content"] == "Ada"
    assert masked["Email (Private)"]["email"] == MASKED_EMAIL
    assert masked["Phone (Private)"]["phone_number"] == MASKED_PHONE
    assert masked["Salary (Private)"]["number"] == MASKED_PHONE
    assert masked["Notes (Private)"]["rich_text"] == [{"text": {"content": MASKED_CONTENT}}]
    assert masked["Site (Private)"]["url"] == MASKED_URL
    assert masked["Flag (Private)"]["content"] == MASKED_CONTENT
    assert masked["Raw (Private)"] == MASKED_CONTENT


def test_masking_never_mutates_input():
    original = _record()
    snapshot = copy.deepcopy(original)
    masked = mask_private_fields(original)

    assert original == snapshot
    assert masked is not original
    assert masked["properties"] is not original["properties"]
    assert masked["properties"]["Name"] is not original["properties"]["Name"]


def test_masking_applies_at_any_depth():
    payload = {"success": True, "results": [_record(), _record()], "database": {"properties": {"Key (Private)": "x"}}}
    masked = mask_private_fields(payload)

    for r in masked["results"]:
        assert r["properties"]["Email (Private)"]["email"] == MASKED_EMAIL
    assert masked["database"]["properties"]["Key (Private)"] == MASKED_CONTENT
    assert masked["success"] is True


def test_marker_outside_properties_is_left_alone():
    payload = {"Email (Private)": "visible@example.com", "count": 3}
    assert mask_private_fields(payload) == payload
