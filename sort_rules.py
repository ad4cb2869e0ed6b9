"""Sort rule list operations. List position is the only priority."""

from __future__ import annotations

import copy
from datetime import date, datetime
from typing import Any, Dict, List

from docview.errors import ValidationError, issue, raise_for_issues
from docview.property_types import properties_by_id


SortRule = Dict[str, Any]

DIRECTIONS = ("asc", "desc")


def add_sort(sorts: List[SortRule], properties: List[dict] | None) -> List[SortRule]:
    current = [copy.deepcopy(s) for s in sorts]
    used = {s.get("propertyId") for s in current}
    for prop in properties or []:
        if prop.get("id") and prop["id"] not in used:
            current.append({"propertyId": prop["id"], "direction": "asc"})
            break
    return current


def update_sort(sorts: List[SortRule], index: int, field: str, value: str) -> List[SortRule]:
    if field not in ("propertyId", "direction"):
        raise ValidationError("SORT_FIELD_INVALID", f"Unknown sort field: {field}", f"sorts[{index}]")
    if field == "direction" and value not in DIRECTIONS:
        raise ValidationError("SORT_DIRECTION_INVALID", "direction must be asc or desc", f"sorts[{index}].direction")
    current = [copy.deepcopy(s) for s in sorts]
    if 0 <= index < len(current):
        current[index][field] = value
    return current


def remove_sort(sorts: List[SortRule], index: int) -> List[SortRule]:
    return [copy.deepcopy(s) for idx, s in enumerate(sorts) if idx != index]


def move_sort(sorts: List[SortRule], index: int, direction: str) -> List[SortRule]:
    if direction not in ("up", "down"):
        raise ValidationError("MOVE_DIRECTION_INVALID", "direction must be up or down", "direction")
    current = [copy.deepcopy(s) for s in sorts]
    target = index - 1 if direction == "up" else index + 1
    if 0 <= index < len(current) and 0 <= target < len(current):
        current[index], current[target] = current[target], current[index]
    return current


def prioritized(sorts: List[SortRule]) -> List[SortRule]:
    return [{**copy.deepcopy(s), "priority": idx} for idx, s in enumerate(sorts)]


def validate_sorts(sorts: Any, properties: List[dict] | None) -> list[dict]:
    if not isinstance(sorts, list):
        return [issue("SORTS_INVALID", "sorts must be a list", "sorts")]
    by_id = properties_by_id(properties)
    errors: list[dict] = []
    seen: set = set()
    for idx, sort in enumerate(sorts):
        path = f"sorts[{idx}]"
        if not isinstance(sort, dict):
            errors.append(issue("SORT_INVALID", "sort rule must be an object", path))
            continue
        property_id = sort.get("propertyId")
        if property_id not in by_id:
            errors.append(issue("PROPERTY_NOT_FOUND", f"Unknown property: {property_id}", f"{path}.propertyId"))
        elif property_id in seen:
            errors.append(issue("SORT_DUPLICATE", f"{property_id} is already sorted", f"{path}.propertyId"))
        seen.add(property_id)
        if sort.get("direction") not in DIRECTIONS:
            errors.append(issue("SORT_DIRECTION_INVALID", "direction must be asc or desc", f"{path}.direction"))
    return errors


def serialize_sorts(sorts: List[SortRule] | None, properties: List[dict] | None) -> List[SortRule]:
    sorts = sorts or []
    raise_for_issues(validate_sorts(sorts, properties))
    return [{"propertyId": s["propertyId"], "direction": s["direction"]} for s in sorts]


def _sort_key(value: Any) -> tuple:
    if isinstance(value, dict):
        value = value.get("label") or value.get("name") or value.get("id")
    if isinstance(value, list):
        value = len(value)
    if isinstance(value, bool):
        return (0, int(value))
    if isinstance(value, (int, float)):
        return (0, value)
    if isinstance(value, (date, datetime)):
        return (1, value.isoformat())
    return (1, str(value).lower())


def _value(record: dict, property_id: str) -> Any:
    props = record.get("properties")
    if isinstance(props, dict) and property_id in props:
        return props[property_id]
    return record.get(property_id)


def sort_records(records: List[dict], sorts: List[SortRule] | None) -> List[dict]:
    items = list(records)
    # stable sorts applied from lowest to highest priority
    for sort in reversed(sorts or []):
        property_id = sort.get("propertyId")
        reverse = sort.get("direction") == "desc"
        present = [r for r in items if _value(r, property_id) not in (None, "")]
        missing = [r for r in items if _value(r, property_id) in (None, "")]
        present.sort(key=lambda r: _sort_key(_value(r, property_id)), reverse=reverse)
        items = present + missing
    return items
