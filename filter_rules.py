"""Filter rule model: build, mutate, validate, serialize and evaluate.

Rules form a flat list. Rule 0 carries no combinator; every later rule's
combinator joins it to the result accumulated so far, strictly left to right.
There is no grouping.

Serializing or evaluating rules that only reference unknown properties raises
NotFoundError; any other invalid rule raises ValidationError.
"""

from __future__ import annotations

import copy
import math
from datetime import date, datetime
from typing import Any, Dict, List

from docview.errors import NotFoundError, ValidationError, issue, raise_for_issues
from docview.property_types import (
    catalog_key,
    default_operator,
    operator_needs_value,
    operator_values,
    option_ids,
    properties_by_id,
)


Rule = Dict[str, Any]

COMBINATORS = ("and", "or")
DEFAULT_COMBINATOR = "and"

_SELECT_VALUE_OPS = {"equals", "not_equals"}
_MULTI_LIST_OPS = {"in", "not_in", "contains_all"}
_MULTI_SINGLE_OPS = {"contains", "not_contains"}


def _find_property(properties: List[dict] | None, property_id: str) -> dict:
    prop = properties_by_id(properties).get(property_id)
    if prop is None:
        raise NotFoundError("PROPERTY_NOT_FOUND", f"Unknown property: {property_id}", "propertyId")
    return prop


def normalize_combinator(value: Any) -> str | None:
    if not isinstance(value, str):
        return None
    lowered = value.strip().lower()
    return lowered if lowered in COMBINATORS else None


def build_filter(properties: List[dict] | None) -> Rule:
    if not properties:
        raise NotFoundError("NO_PROPERTIES", "No properties loaded to filter on", "properties")
    first = properties[0]
    return {"propertyId": first.get("id"), "operator": default_operator(first.get("type")), "value": ""}


def add_filter(rules: List[Rule], properties: List[dict] | None) -> List[Rule]:
    rule = build_filter(properties)
    if rules:
        rule["combinator"] = DEFAULT_COMBINATOR
    return [copy.deepcopy(r) for r in rules] + [rule]


def set_filter_property(rule: Rule, property_id: str, properties: List[dict] | None) -> Rule:
    prop = _find_property(properties, property_id)
    updated = copy.deepcopy(rule)
    updated["propertyId"] = property_id
    # operator and value are only meaningful for the type they were picked for
    updated["operator"] = default_operator(prop.get("type"))
    updated["value"] = ""
    return updated


def set_filter_operator(rule: Rule, operator: str, properties: List[dict] | None) -> Rule:
    prop = _find_property(properties, rule.get("propertyId"))
    allowed = operator_values(prop.get("type"))
    if operator not in allowed:
        raise ValidationError(
            "OPERATOR_INVALID",
            f"{operator} is not valid for {prop.get('type')}",
            "operator",
            [issue("OPERATOR_INVALID", f"{operator} is not valid for {prop.get('type')}", "operator", {"allowed": allowed})],
        )
    updated = copy.deepcopy(rule)
    updated["operator"] = operator
    if not operator_needs_value(operator):
        updated.pop("value", None)
    elif "value" not in updated:
        updated["value"] = ""
    return updated


def set_filter_value(rule: Rule, value: Any) -> Rule:
    updated = copy.deepcopy(rule)
    updated["value"] = copy.deepcopy(value)
    return updated


def set_filter_combinator(rules: List[Rule], index: int, combinator: str) -> List[Rule]:
    normalized = normalize_combinator(combinator)
    if normalized is None:
        raise ValidationError(
            "COMBINATOR_INVALID",
            "combinator must be and/or",
            f"filters[{index}].combinator",
            [issue("COMBINATOR_INVALID", "combinator must be and/or", f"filters[{index}].combinator")],
        )
    updated = [copy.deepcopy(r) for r in rules]
    if index <= 0 or index >= len(updated):
        return updated
    updated[index]["combinator"] = normalized
    return updated


def remove_filter(rules: List[Rule], index: int) -> List[Rule]:
    updated = [copy.deepcopy(r) for idx, r in enumerate(rules) if idx != index]
    if updated:
        updated[0].pop("combinator", None)
    return updated


def _is_blank(value: Any) -> bool:
    return value is None or value == "" or value == []


def _dedupe(values: list) -> list:
    seen = set()
    out = []
    for value in values:
        key = value if isinstance(value, (str, int, float, bool)) else repr(value)
        if key in seen:
            continue
        seen.add(key)
        out.append(value)
    return out


def validate_filter(rule: Any, properties: List[dict] | None, index: int = 0) -> list[dict]:
    path = f"filters[{index}]"
    if not isinstance(rule, dict):
        return [issue("FILTER_INVALID", "filter rule must be an object", path)]
    errors: list[dict] = []
    prop = properties_by_id(properties).get(rule.get("propertyId"))
    if prop is None:
        return [issue("PROPERTY_NOT_FOUND", f"Unknown property: {rule.get('propertyId')}", f"{path}.propertyId")]

    ptype = catalog_key(prop.get("type"))
    operator = rule.get("operator")
    allowed = operator_values(prop.get("type"))
    if operator not in allowed:
        errors.append(
            issue("OPERATOR_INVALID", f"{operator} is not valid for {prop.get('type')}", f"{path}.operator", {"allowed": allowed})
        )
        return errors

    if index > 0 and "combinator" in rule and normalize_combinator(rule.get("combinator")) is None:
        errors.append(issue("COMBINATOR_INVALID", "combinator must be and/or", f"{path}.combinator"))

    if not operator_needs_value(operator):
        return errors

    value = rule.get("value")
    if ptype == "SELECT" and operator in _SELECT_VALUE_OPS:
        if value not in option_ids(prop):
            errors.append(issue("OPTION_INVALID", f"{value!r} is not an option of {prop.get('id')}", f"{path}.value"))
    elif ptype == "MULTI_SELECT" and operator in _MULTI_LIST_OPS:
        ids = option_ids(prop)
        if not isinstance(value, list) or not value:
            errors.append(issue("OPTION_LIST_INVALID", f"{operator} requires a list of option ids", f"{path}.value"))
        elif any(v not in ids for v in value):
            bad = [v for v in value if v not in ids]
            errors.append(issue("OPTION_INVALID", f"Unknown options for {prop.get('id')}", f"{path}.value", {"invalid": bad}))
    elif ptype == "MULTI_SELECT" and operator in _MULTI_SINGLE_OPS:
        if value not in option_ids(prop):
            errors.append(issue("OPTION_INVALID", f"{value!r} is not an option of {prop.get('id')}", f"{path}.value"))
    elif ptype == "NUMBER":
        if isinstance(value, bool) or not isinstance(value, (int, float)):
            errors.append(issue("VALUE_TYPE_INVALID", "value must be a number", f"{path}.value"))
        elif isinstance(value, float) and not math.isfinite(value):
            errors.append(issue("VALUE_TYPE_INVALID", "value must be finite", f"{path}.value"))
    elif ptype == "DATE":
        if _parse_date(value) is None:
            errors.append(issue("VALUE_TYPE_INVALID", "value must be an ISO date", f"{path}.value"))
    return errors


def validate_filters(rules: Any, properties: List[dict] | None) -> list[dict]:
    if not isinstance(rules, list):
        return [issue("FILTERS_INVALID", "filters must be a list", "filters")]
    errors: list[dict] = []
    for idx, rule in enumerate(rules):
        errors.extend(validate_filter(rule, properties, idx))
    return errors


def serialize_filters(rules: List[Rule] | None, properties: List[dict] | None) -> List[Rule]:
    rules = rules or []
    raise_for_issues(validate_filters(rules, properties))
    out: List[Rule] = []
    for idx, rule in enumerate(rules):
        item: Rule = {"propertyId": rule["propertyId"], "operator": rule["operator"]}
        if operator_needs_value(rule["operator"]):
            value = copy.deepcopy(rule.get("value"))
            if isinstance(value, list):
                value = _dedupe(value)
            item["value"] = value
        if idx > 0:
            item["combinator"] = normalize_combinator(rule.get("combinator")) or DEFAULT_COMBINATOR
        out.append(item)
    return out


def _parse_date(value: Any) -> date | None:
    if isinstance(value, datetime):
        return value.date()
    if isinstance(value, date):
        return value
    if not isinstance(value, str) or not value:
        return None
    try:
        return datetime.fromisoformat(value.replace("Z", "+00:00")).date()
    except ValueError:
        return None


def _record_value(record: dict, property_id: str) -> Any:
    props = record.get("properties") if isinstance(record, dict) else None
    if isinstance(props, dict) and property_id in props:
        return props[property_id]
    if isinstance(record, dict):
        return record.get(property_id)
    return None


def _as_ids(value: Any) -> list:
    if value is None:
        return []
    items = value if isinstance(value, list) else [value]
    out = []
    for item in items:
        if isinstance(item, dict):
            item = item.get("id") or item.get("value") or item.get("_id")
        out.append(item)
    return out


def _compare(left: Any, right: Any, operator: str) -> bool:
    if operator in ("greater_than", "after"):
        return left > right
    if operator in ("greater_than_or_equal", "on_or_after"):
        return left >= right
    if operator in ("less_than", "before"):
        return left < right
    if operator in ("less_than_or_equal", "on_or_before"):
        return left <= right
    if operator == "equals":
        return left == right
    if operator == "not_equals":
        return left != right
    return False


def _eval_rule(rule: Rule, record: dict, prop: dict) -> bool:
    operator = rule.get("operator")
    actual = _record_value(record, prop.get("id"))
    expected = rule.get("value")
    ptype = catalog_key(prop.get("type"))

    if operator == "is_empty":
        return _is_blank(actual)
    if operator == "is_not_empty":
        return not _is_blank(actual)
    if operator == "checked":
        return actual is True
    if operator == "unchecked":
        return actual is not True

    if ptype == "MULTI_SELECT":
        have = _as_ids(actual)
        if operator == "contains":
            return expected in have
        if operator == "not_contains":
            return expected not in have
        wanted = expected if isinstance(expected, list) else [expected]
        if operator == "in":
            return any(v in have for v in wanted)
        if operator == "not_in":
            return not any(v in have for v in wanted)
        if operator == "contains_all":
            return all(v in have for v in wanted)
        return False

    if ptype == "SELECT":
        current = _as_ids(actual)
        current_id = current[0] if current else None
        return _compare(current_id, expected, operator)

    if ptype == "NUMBER":
        if actual is None or isinstance(actual, bool) or not isinstance(actual, (int, float)):
            return operator == "not_equals"
        return _compare(actual, expected, operator)

    if ptype == "DATE":
        left = _parse_date(actual)
        right = _parse_date(expected)
        if left is None or right is None:
            return operator == "not_equals"
        return _compare(left, right, operator)

    text = "" if actual is None else str(actual).lower()
    needle = "" if expected is None else str(expected).lower()
    if operator == "contains":
        return needle in text
    if operator == "not_contains":
        return needle not in text
    if operator == "starts_with":
        return text.startswith(needle)
    if operator == "ends_with":
        return text.endswith(needle)
    return _compare(text, needle, operator)


def match_record(record: dict, rules: List[Rule] | None, properties: List[dict] | None) -> bool:
    rules = rules or []
    raise_for_issues(validate_filters(rules, properties))
    by_id = properties_by_id(properties)
    result = True
    for idx, rule in enumerate(rules):
        value = _eval_rule(rule, record, by_id[rule["propertyId"]])
        if idx == 0:
            result = value
        elif normalize_combinator(rule.get("combinator")) == "or":
            result = result or value
        else:
            result = result and value
    return result
