# dbforge/codec/properties.py
"""
Bidirectional translation between canonical PropertyDescriptors and the
workspace API's property JSON.

Three input shapes are accepted at the boundary and decoded once:
  - tagged:  {"type": "select", "select": {...}}  or  {"kind": "singleChoice", "options": [...]}
  - native:  {"select": {...}}                     (already wire formatted)
  - API:     {"id": "...", "name": "...", "type": "select", "select": {...}}
Anything with an unknown kind decodes to a text property.
"""
from __future__ import annotations

import logging
from datetime import date, datetime
from typing import Any, Dict, Iterable, List, Mapping, MutableMapping, Optional, Union, get_args

from dbforge.errors import ValidationError
from dbforge.logging import safe_extra
from dbforge.models.properties import (
    COLOR_PALETTE,
    KIND_TO_WIRE,
    NumberFormat,
    WIRE_TO_KIND,
    WIRE_TYPES,
    ChoiceConfig,
    ChoiceOption,
    EmptyConfig,
    FormulaConfig,
    NumberConfig,
    PropertyDescriptor,
    PropertyKind,
    Protocol,
    RelationConfig,
    RollupConfig,
)
from dbforge.models.schema import SchemaDefinition

log = logging.getLogger(__name__)

PropertyLike = Union[PropertyDescriptor, Mapping[str, Any]]

_VALID_COLORS = set(COLOR_PALETTE) | {"default"}
_NUMBER_FORMATS = set(get_args(NumberFormat))
_READ_ONLY_KINDS = {
    PropertyKind.FORMULA,
    PropertyKind.ROLLUP,
    PropertyKind.CREATED_TIME,
    PropertyKind.CREATED_BY,
    PropertyKind.EDITED_TIME,
    PropertyKind.EDITED_BY,
}
DEFAULT_TITLE_NAME = "Name"


def protocol_for_version(version: str) -> Protocol:
    """Versions from 2025-09-03 on expose data sources (protocol B)."""
    return "B" if version >= "2025-09-03" else "A"


# ─────────────────────────────────────────────────────────────
# Rich text helpers
# ─────────────────────────────────────────────────────────────
def rich_text(content: Optional[str]) -> List[Dict[str, Any]]:
    if not content:
        return []
    return [{"type": "text", "text": {"content": content}}]


def plain_text(blocks: Any) -> str:
    if isinstance(blocks, str):
        return blocks
    if not isinstance(blocks, list):
        return ""
    out = []
    for b in blocks:
        if not isinstance(b, dict):
            continue
        out.append(b.get("plain_text") or (b.get("text") or {}).get("content") or "")
    return "".join(out)


# ─────────────────────────────────────────────────────────────
# Decode
# ─────────────────────────────────────────────────────────────
def _kind_from_tag(tag: Any) -> PropertyKind:
    if isinstance(tag, PropertyKind):
        return tag
    if isinstance(tag, str):
        if tag in WIRE_TO_KIND:
            return WIRE_TO_KIND[tag]
        try:
            return PropertyKind(tag)
        except ValueError:
            pass
    log.info("codec.unknown_kind", extra=safe_extra({"kind": tag}))
    return PropertyKind.TEXT


def _choice_config(cfg: Mapping[str, Any]) -> ChoiceConfig:
    options = []
    for opt in cfg.get("options") or []:
        if isinstance(opt, str):
            options.append(ChoiceOption(label=opt))
            continue
        if not isinstance(opt, Mapping):
            continue
        label = opt.get("name", opt.get("label"))
        if label is None:
            continue
        color = opt.get("color")
        options.append(ChoiceOption(label=str(label), color=color if color in _VALID_COLORS else None))
    return ChoiceConfig(options=options)


def _config_for(kind: PropertyKind, cfg: Mapping[str, Any]):
    if kind in (PropertyKind.SINGLE_CHOICE, PropertyKind.MULTI_CHOICE):
        return _choice_config(cfg)
    if kind == PropertyKind.NUMBER:
        fmt = cfg.get("format")
        return NumberConfig(format=fmt if fmt in _NUMBER_FORMATS else "number")
    if kind == PropertyKind.FORMULA:
        return FormulaConfig(expression=str(cfg.get("expression") or "1"))
    if kind == PropertyKind.RELATION:
        return RelationConfig(
            target_id=cfg.get("target_id") or cfg.get("data_source_id") or cfg.get("database_id") or "",
            relation_type=cfg.get("relation_type") or cfg.get("type") or "single_property",
        )
    if kind == PropertyKind.ROLLUP:
        return RollupConfig(
            relation_property_name=cfg.get("relation_property_name") or "",
            rollup_property_name=cfg.get("rollup_property_name") or "",
            function=cfg.get("function") or "count",
        )
    return EmptyConfig()


def decode(raw: PropertyLike, name: Optional[str] = None) -> PropertyDescriptor:
    """Normalize any accepted property shape into a PropertyDescriptor."""
    if isinstance(raw, PropertyDescriptor):
        return raw if name is None or name == raw.name else raw.model_copy(update={"name": name})
    if not isinstance(raw, Mapping):
        raise ValidationError(
            f"Property '{name}' must be an object",
            hint="Use e.g. {\"rich_text\": {}} or {\"type\": \"rich_text\"}",
        )

    prop_name = name if name is not None else raw.get("name")
    if not prop_name:
        raise ValidationError("Property is missing a name")

    tag = raw.get("kind", raw.get("type"))
    if tag is not None:
        kind = _kind_from_tag(tag)
        nested = raw.get(KIND_TO_WIRE[kind]) if isinstance(tag, str) else None
        if not isinstance(nested, Mapping):
            nested = raw.get("config") if isinstance(raw.get("config"), Mapping) else raw
        return PropertyDescriptor(name=prop_name, kind=kind, config=_config_for(kind, nested))

    keys = [k for k in WIRE_TYPES if k in raw]
    if len(keys) >= 1:
        kind = WIRE_TO_KIND[keys[0]]
        cfg = raw.get(keys[0])
        return PropertyDescriptor(
            name=prop_name,
            kind=kind,
            config=_config_for(kind, cfg if isinstance(cfg, Mapping) else {}),
        )

    log.info("codec.untyped_property", extra=safe_extra({"property": prop_name}))
    return PropertyDescriptor(name=prop_name, kind=PropertyKind.TEXT)


def decode_properties(props: Union[Mapping[str, Any], Iterable[PropertyLike]]) -> List[PropertyDescriptor]:
    if isinstance(props, Mapping):
        return [decode(v, name=k) for k, v in props.items()]
    return [decode(p) for p in props]


# ─────────────────────────────────────────────────────────────
# Encode
# ─────────────────────────────────────────────────────────────
def encode(prop: PropertyLike, protocol: Protocol = "B", name: Optional[str] = None) -> Dict[str, Any]:
    """Produce the wire JSON for one property under the given protocol."""
    d = decode(prop, name=name) if not isinstance(prop, PropertyDescriptor) else prop
    key = d.wire_type
    cfg = d.config

    if isinstance(cfg, ChoiceConfig):
        options = []
        for o in cfg.options:
            opt: Dict[str, Any] = {"name": o.label}
            if o.color:
                opt["color"] = o.color
            options.append(opt)
        return {key: {"options": options}}
    if isinstance(cfg, NumberConfig):
        return {key: {"format": cfg.format}}
    if isinstance(cfg, FormulaConfig):
        return {key: {"expression": cfg.expression}}
    if isinstance(cfg, RelationConfig):
        target_key = "data_source_id" if protocol == "B" else "database_id"
        return {
            key: {
                target_key: cfg.target_id,
                "type": cfg.relation_type,
                cfg.relation_type: {},
            }
        }
    if isinstance(cfg, RollupConfig):
        return {
            key: {
                "relation_property_name": cfg.relation_property_name,
                "rollup_property_name": cfg.rollup_property_name,
                "function": cfg.function,
            }
        }
    return {key: {}}


def encode_properties(
    props: Union[Mapping[str, Any], Iterable[PropertyLike]],
    protocol: Protocol = "B",
) -> Dict[str, Dict[str, Any]]:
    return {d.name: encode(d, protocol) for d in decode_properties(props)}


# ─────────────────────────────────────────────────────────────
# Colour repair
# ─────────────────────────────────────────────────────────────
def _wire_options(value: Any) -> Optional[list]:
    if not isinstance(value, MutableMapping):
        return None
    tag = value.get("type")
    for key in ("select", "multi_select"):
        if key in value and (tag is None or tag == key) and isinstance(value[key], Mapping):
            opts = value[key].get("options")
            return opts if isinstance(opts, list) else None
    return None


def _recolor(options: list, get, put, prop_name: str) -> None:
    if len(options) < 2:
        return
    first = get(options[0])
    if any(get(o) != first for o in options[1:]):
        return
    log.info("codec.color_repair", extra=safe_extra({"property": prop_name, "color": first}))
    for i, o in enumerate(options):
        put(o, COLOR_PALETTE[i % len(COLOR_PALETTE)])


def ensure_color_variation(properties):
    """
    Restore colour variation in choice properties whose options all share one
    colour. Operates in place on a {name: wire-property} mapping or a list of
    PropertyDescriptors and returns the same object.
    """
    items = properties.items() if isinstance(properties, Mapping) else ((None, p) for p in properties)
    for name, value in items:
        if isinstance(value, PropertyDescriptor):
            if value.is_choice and isinstance(value.config, ChoiceConfig):
                _recolor(
                    value.config.options,
                    lambda o: o.color,
                    lambda o, c: setattr(o, "color", c),
                    value.name,
                )
            continue
        options = _wire_options(value)
        if options is None:
            continue
        dict_options = [o for o in options if isinstance(o, MutableMapping)]
        if len(dict_options) != len(options):
            continue
        _recolor(options, lambda o: o.get("color"), lambda o, c: o.__setitem__("color", c), str(name))
    return properties


# ─────────────────────────────────────────────────────────────
# Schema-level helpers
# ─────────────────────────────────────────────────────────────
def ensure_title(props: List[PropertyDescriptor]) -> List[PropertyDescriptor]:
    if any(p.kind == PropertyKind.TITLE for p in props):
        return props
    taken = {p.name for p in props}
    name, n = DEFAULT_TITLE_NAME, 2
    while name in taken:
        name, n = f"{DEFAULT_TITLE_NAME} {n}", n + 1
    return [PropertyDescriptor(name=name, kind=PropertyKind.TITLE), *props]


def build_container_payload(
    schema: SchemaDefinition,
    parent_page_id: str,
    protocol: Protocol = "B",
) -> Dict[str, Any]:
    """Database-creation body; protocol B nests the property set under initial_data_source."""
    wire = encode_properties(ensure_title(list(schema.properties)), protocol)
    ensure_color_variation(wire)
    body: Dict[str, Any] = {
        "parent": {"type": "page_id", "page_id": parent_page_id},
        "title": rich_text(schema.title or "New Database"),
        "description": rich_text(schema.description),
    }
    if protocol == "B":
        body["initial_data_source"] = {"properties": wire}
    else:
        body["properties"] = wire
    return body


# ─────────────────────────────────────────────────────────────
# Record values
# ─────────────────────────────────────────────────────────────
def encode_value(d: PropertyDescriptor, value: Any) -> Dict[str, Any]:
    """Turn a plain Python value into the wire value for property *d*."""
    key = d.wire_type
    if isinstance(value, Mapping) and key in value:
        return dict(value)
    if d.kind in _READ_ONLY_KINDS:
        raise ValidationError(f"Property '{d.name}' ({d.kind.value}) is computed and cannot be written")

    if d.kind in (PropertyKind.TITLE, PropertyKind.TEXT):
        return {key: [{"text": {"content": "" if value is None else str(value)}}]}
    if d.kind == PropertyKind.NUMBER:
        return {key: value}
    if d.kind == PropertyKind.SINGLE_CHOICE:
        return {key: {"name": str(value)} if value is not None else None}
    if d.kind == PropertyKind.MULTI_CHOICE:
        values = value if isinstance(value, (list, tuple)) else [value]
        return {key: [{"name": str(v)} for v in values if v is not None]}
    if d.kind == PropertyKind.DATE:
        if isinstance(value, (date, datetime)):
            value = value.isoformat()
        return {key: {"start": value} if value else None}
    if d.kind == PropertyKind.BOOLEAN:
        return {key: bool(value)}
    if d.kind in (PropertyKind.URL, PropertyKind.EMAIL, PropertyKind.PHONE):
        return {key: value or None}
    if d.kind == PropertyKind.PERSON:
        ids = value if isinstance(value, (list, tuple)) else [value]
        return {key: [{"id": i} for i in ids if i]}
    if d.kind == PropertyKind.RELATION:
        ids = value if isinstance(value, (list, tuple)) else [value]
        return {key: [{"id": i} for i in ids if i]}
    if d.kind == PropertyKind.FILE:
        urls = value if isinstance(value, (list, tuple)) else [value]
        return {key: [{"name": u, "type": "external", "external": {"url": u}} for u in urls if u]}
    return {key: value}


def encode_record(props: List[PropertyDescriptor], values: Mapping[str, Any]) -> Dict[str, Any]:
    """Encode a {name: value} record against its schema; unknown names are rejected."""
    by_name = {p.name: p for p in props}
    out: Dict[str, Any] = {}
    for name, value in values.items():
        d = by_name.get(name)
        if d is None:
            raise ValidationError(f"Unknown property '{name}'", hint=f"Known properties: {', '.join(by_name)}")
        out[name] = encode_value(d, value)
    return out
