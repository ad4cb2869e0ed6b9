"""Property type registry: wire type tags and filter operator catalogs."""

from __future__ import annotations

import copy
import re
from types import MappingProxyType
from typing import Any, Dict, List, Mapping


PROPERTY_TYPES = (
    "TEXT",
    "TEXTAREA",
    "NUMBER",
    "DATE",
    "DATE_RANGE",
    "SELECT",
    "MULTI_SELECT",
    "CHECKBOX",
    "RELATION",
    "PERSON",
    "URL",
    "EMAIL",
    "PHONE",
    "FILE",
    "FORMULA",
    "ROLLUP",
    "CREATED_TIME",
    "LAST_EDITED_TIME",
    "CREATED_BY",
    "LAST_EDITED_BY",
    "ICON",
    "IMAGE",
)

VIEW_TYPES = ("TABLE", "BOARD", "KANBAN", "CALENDAR", "GALLERY", "LIST", "TIMELINE")

DEFAULT_OPTION_COLOR = "#6b7280"

_SERVER_TYPES: Mapping[str, str] = MappingProxyType(
    {
        "TEXT": "text",
        "TEXTAREA": "text",
        "NUMBER": "number",
        "DATE": "date",
        "DATE_RANGE": "dateRange",
        "CHECKBOX": "checkbox",
        "SELECT": "select",
        "MULTI_SELECT": "multiSelect",
        "PERSON": "relation",
        "RELATION": "relation",
        "URL": "url",
        "EMAIL": "email",
        "PHONE": "phone",
        "FILE": "file",
        # computed and system types are stored as plain text on the server
        "FORMULA": "text",
        "ROLLUP": "text",
        "CREATED_BY": "text",
        "LAST_EDITED_BY": "text",
        "ICON": "text",
        "CREATED_TIME": "date",
        "LAST_EDITED_TIME": "date",
        "IMAGE": "url",
    }
)

VALUELESS_OPERATORS = frozenset({"is_empty", "is_not_empty", "checked", "unchecked"})


def _op(value: str, label: str) -> dict:
    return {"value": value, "label": label, "needsValue": value not in VALUELESS_OPERATORS}


_OPERATOR_CATALOGS: Mapping[str, tuple] = MappingProxyType(
    {
        "TEXT": (
            _op("contains", "Contains"),
            _op("not_contains", "Does not contain"),
            _op("equals", "Equals"),
            _op("not_equals", "Does not equal"),
            _op("starts_with", "Starts with"),
            _op("ends_with", "Ends with"),
            _op("is_empty", "Is empty"),
            _op("is_not_empty", "Is not empty"),
        ),
        "NUMBER": (
            _op("equals", "Equals"),
            _op("not_equals", "Does not equal"),
            _op("greater_than", "Greater than"),
            _op("less_than", "Less than"),
            _op("greater_than_or_equal", "Greater than or equal"),
            _op("less_than_or_equal", "Less than or equal"),
            _op("is_empty", "Is empty"),
            _op("is_not_empty", "Is not empty"),
        ),
        "DATE": (
            _op("equals", "Is"),
            _op("not_equals", "Is not"),
            _op("before", "Before"),
            _op("after", "After"),
            _op("on_or_before", "On or before"),
            _op("on_or_after", "On or after"),
            _op("is_empty", "Is empty"),
            _op("is_not_empty", "Is not empty"),
        ),
        "CHECKBOX": (
            _op("checked", "Is checked"),
            _op("unchecked", "Is unchecked"),
        ),
        "SELECT": (
            _op("equals", "Is"),
            _op("not_equals", "Is not"),
            _op("is_empty", "Is empty"),
            _op("is_not_empty", "Is not empty"),
        ),
        "MULTI_SELECT": (
            _op("contains", "Contains"),
            _op("not_contains", "Does not contain"),
            _op("in", "Is any of"),
            _op("not_in", "Is none of"),
            _op("contains_all", "Contains all"),
            _op("is_empty", "Is empty"),
            _op("is_not_empty", "Is not empty"),
        ),
    }
)


def to_server_type(client_type: str | None) -> str:
    if not client_type:
        return ""
    mapped = _SERVER_TYPES.get(client_type)
    if mapped is not None:
        return mapped
    return client_type.lower()


def catalog_key(property_type: str | None) -> str:
    if property_type in _OPERATOR_CATALOGS:
        return property_type
    return "TEXT"


def operators_for(property_type: str | None) -> list[dict]:
    return [dict(op) for op in _OPERATOR_CATALOGS[catalog_key(property_type)]]


def operator_values(property_type: str | None) -> list[str]:
    return [op["value"] for op in _OPERATOR_CATALOGS[catalog_key(property_type)]]


def default_operator(property_type: str | None) -> str:
    return _OPERATOR_CATALOGS[catalog_key(property_type)][0]["value"]


def operator_needs_value(operator: str) -> bool:
    return operator not in VALUELESS_OPERATORS


def _slug(label: str) -> str:
    return re.sub(r"\s+", "-", label.strip().lower())


def normalize_option(option: Any, index: int = 0) -> dict | None:
    """Return ``{id, label, color}`` for any option shape the backend or forms emit."""
    if option is None or option == "":
        return None
    if isinstance(option, str):
        return {"id": option, "label": option, "color": DEFAULT_OPTION_COLOR}
    if not isinstance(option, dict):
        return None
    label = option.get("label") or option.get("name")
    option_id = option.get("id") or option.get("_id") or option.get("value")
    if not option_id and isinstance(label, str) and label.strip():
        option_id = _slug(label)
    if not option_id:
        option_id = f"option-{index}"
    if not label:
        label = str(option_id)
    return {"id": str(option_id), "label": label, "color": option.get("color") or DEFAULT_OPTION_COLOR}


def normalize_options(options: Any) -> list[dict]:
    if not isinstance(options, list):
        return []
    normalized = []
    for idx, option in enumerate(options):
        item = normalize_option(option, idx)
        if item is not None:
            normalized.append(item)
    return normalized


def property_options(prop: dict) -> list[dict]:
    if not isinstance(prop, dict):
        return []
    raw = prop.get("options")
    if raw is None:
        raw = prop.get("selectOptions")
    if raw is None and isinstance(prop.get("config"), dict):
        raw = prop["config"].get("options")
    return normalize_options(raw)


def option_ids(prop: dict) -> list[str]:
    return [opt["id"] for opt in property_options(prop)]


def property_to_server(payload: Dict[str, Any]) -> Dict[str, Any]:
    """Copy a client property payload into the server shape.

    ``type`` goes through :func:`to_server_type`; ``selectOptions`` coming
    from forms are folded into ``options``.
    """
    data = copy.deepcopy(payload) if isinstance(payload, dict) else {}
    if data.get("type"):
        data["type"] = to_server_type(data["type"])
    if "selectOptions" in data:
        data["options"] = normalize_options(data.pop("selectOptions"))
    elif "options" in data:
        data["options"] = normalize_options(data["options"])
    return data


def properties_by_id(properties: List[dict] | None) -> Dict[str, dict]:
    return {p["id"]: p for p in properties or [] if isinstance(p, dict) and p.get("id")}
