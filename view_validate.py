"""View definition checks against loaded properties and module policy."""

from __future__ import annotations

from typing import Any, List

import filter_rules
import frozen_policy
import sort_rules
from docview.errors import ValidationError, issue
from docview.property_types import VIEW_TYPES, properties_by_id


def _visible_ids(view: dict) -> list:
    visible = view.get("visibleProperties")
    if isinstance(visible, (list, tuple, set, frozenset)):
        return list(visible)
    return []


def validate_property_orders(properties: List[dict] | None) -> list[dict]:
    errors: list[dict] = []
    seen: dict = {}
    for idx, prop in enumerate(properties or []):
        if not isinstance(prop, dict) or "order" not in prop:
            continue
        order = prop.get("order")
        if order in seen:
            errors.append(
                issue(
                    "ORDER_DUPLICATE",
                    f"{prop.get('id')} shares order {order} with {seen[order]}",
                    f"properties[{idx}].order",
                )
            )
        else:
            seen[order] = prop.get("id")
    return errors


def validate_property_batch(updates: Any) -> list[dict]:
    """Shape checks for a view-property batch: objects with an id and integer orders."""
    if not isinstance(updates, list):
        return [issue("PROPERTIES_INVALID", "properties must be a list", "properties")]
    errors: list[dict] = []
    seen: dict = {}
    for idx, update in enumerate(updates):
        path = f"properties[{idx}]"
        if not isinstance(update, dict):
            errors.append(issue("PROPERTY_UPDATE_INVALID", "property update must be an object", path))
            continue
        property_id = update.get("propertyId") or update.get("id")
        if not isinstance(property_id, str) or not property_id:
            errors.append(issue("PROPERTY_ID_REQUIRED", "propertyId must be a non-empty string", f"{path}.propertyId"))
        if "order" not in update:
            continue
        order = update.get("order")
        if isinstance(order, bool) or not isinstance(order, int):
            errors.append(issue("ORDER_INVALID", "order must be an integer", f"{path}.order"))
        elif order in seen:
            errors.append(issue("ORDER_DUPLICATE", "Two properties cannot share an order", f"{path}.order"))
        else:
            seen[order] = property_id
    return errors


def validate_view(view: Any, properties: List[dict] | None, config: dict | None = None) -> list[dict]:
    if not isinstance(view, dict):
        return [issue("VIEW_INVALID", "view must be an object", None)]
    errors: list[dict] = []
    name = view.get("name")
    if not isinstance(name, str) or not name.strip():
        errors.append(issue("VIEW_NAME_REQUIRED", "view name is required", "name"))
    view_type = view.get("type")
    if isinstance(view_type, str) and view_type.upper() not in VIEW_TYPES:
        errors.append(issue("VIEW_TYPE_INVALID", f"view type must be one of {list(VIEW_TYPES)}", "type"))

    if "visibleProperties" in view:
        visible = set(_visible_ids(view))
        known = properties_by_id(properties)
        for property_id in sorted((config or {}).get("requiredProperties") or ()):
            if property_id not in visible:
                errors.append(issue("REQUIRED_HIDDEN", f"{property_id} is required and must stay visible", "visibleProperties"))
        for property_id in sorted((config or {}).get("frozenProperties") or {}):
            if property_id in known and property_id not in visible and not frozen_policy.is_hideable(property_id, config):
                errors.append(issue("FROZEN_HIDDEN", f"{property_id} cannot be hidden", "visibleProperties"))

    if "filters" in view:
        errors.extend(filter_rules.validate_filters(view.get("filters"), properties))
    if "sorts" in view:
        errors.extend(sort_rules.validate_sorts(view.get("sorts"), properties))

    group_by = view.get("groupBy")
    if group_by and group_by not in properties_by_id(properties):
        errors.append(issue("PROPERTY_NOT_FOUND", f"Unknown groupBy property: {group_by}", "groupBy"))
    return errors


def assert_view_valid(view: Any, properties: List[dict] | None, config: dict | None = None) -> None:
    errors = validate_view(view, properties, config)
    if errors:
        raise ValidationError.from_issues(errors)


def can_delete_view(view: dict | None) -> bool:
    return not (isinstance(view, dict) and view.get("isDefault"))


def default_view(views: List[dict] | None) -> dict | None:
    views = [v for v in views or [] if isinstance(v, dict)]
    for view in views:
        if view.get("isDefault"):
            return view
    return views[0] if views else None
