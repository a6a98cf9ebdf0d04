# dbforge/services/masking.py
from __future__ import annotations

from typing import Any, Dict

PRIVATE_MARKER = "(Private)"

MASKED_EMAIL = "******@****.***"
MASKED_PHONE = "+**-****-******"
MASKED_URL = "https://***"
MASKED_CONTENT = "***"


def _mask_value(value: Any) -> Any:
    if not isinstance(value, dict):
        return MASKED_CONTENT

    out = mask_private_fields(value)
    kind = value.get("type")
    if kind == "email" and value.get("email"):
        out["email"] = MASKED_EMAIL
    elif kind == "phone_number" and value.get("phone_number"):
        out["phone_number"] = MASKED_PHONE
    elif kind == "number" and value.get("number") is not None:
        out["number"] = MASKED_PHONE
    elif kind in ("rich_text", "title") and value.get(kind):
        out[kind] = [{"text": {"content": MASKED_CONTENT}}]
    elif kind == "url" and value.get("url"):
        out["url"] = MASKED_URL
    else:
        out["content"] = MASKED_CONTENT
    return out


def _mask_properties(props: Dict[str, Any]) -> Dict[str, Any]:
    masked: Dict[str, Any] = {}
    for name, value in props.items():
        if PRIVATE_MARKER in name:
            masked[name] = _mask_value(value)
        else:
            masked[name] = mask_private_fields(value)
    return masked


def mask_private_fields(data: Any) -> Any:
    """
    Return a redacted copy of *data*: every ``properties`` mapping found at any
    depth has the values of ``(Private)`` properties replaced. The input is never
    mutated; every dict and list in the output is a fresh object.
    """
    if isinstance(data, list):
        return [mask_private_fields(item) for item in data]
    if not isinstance(data, dict):
        return data

    out: Dict[str, Any] = {}
    for key, value in data.items():
        if key == "properties" and isinstance(value, dict):
            out[key] = _mask_properties(value)
        else:
            out[key] = mask_private_fields(value)
    return out
