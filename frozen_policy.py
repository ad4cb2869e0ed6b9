"""Frozen and required property policy.

A client-side guard derived from the backend's module config. The backend
stays authoritative; these checks only stop requests that are known to
violate declared policy before they are sent.
"""

from __future__ import annotations

import copy
from typing import Any, Dict, List

from docview.errors import ValidationError, issue


FrozenConfig = Dict[str, Any]


def empty_config() -> FrozenConfig:
    return {"requiredProperties": set(), "frozenProperties": {}}


def _frozen_entry(raw: dict) -> dict | None:
    property_id = raw.get("propertyId") or raw.get("id")
    if not isinstance(property_id, str) or not property_id:
        return None
    return {
        "propertyId": property_id,
        "reason": raw.get("reason"),
        "allowEdit": raw.get("allowEdit") is not False,
        "allowHide": raw.get("allowHide") is not False,
        "allowDelete": raw.get("allowDelete") is not False,
    }


def normalize_frozen_config(raw: Any) -> FrozenConfig:
    """Build a policy config from a module ``/config`` payload.

    Accepts either the full module config (``requiredProperties`` plus
    ``frozenConfig.frozenProperties``) or an already flattened config.
    """
    config = empty_config()
    if not isinstance(raw, dict):
        return config
    required = raw.get("requiredProperties") or []
    if isinstance(required, (list, set, tuple, frozenset)):
        config["requiredProperties"] = {r for r in required if isinstance(r, str)}

    frozen = raw.get("frozenProperties")
    if frozen is None and isinstance(raw.get("frozenConfig"), dict):
        frozen = raw["frozenConfig"].get("frozenProperties")
    if isinstance(frozen, dict):
        frozen = [{"propertyId": k, **v} for k, v in frozen.items() if isinstance(v, dict)]
    for item in frozen or []:
        if not isinstance(item, dict):
            continue
        entry = _frozen_entry(item)
        if entry:
            config["frozenProperties"][entry["propertyId"]] = entry
    return config


def frozen_entry(property_id: str, config: FrozenConfig | None) -> dict | None:
    if not config:
        return None
    return (config.get("frozenProperties") or {}).get(property_id)


def is_required(property_id: str, config: FrozenConfig | None) -> bool:
    return bool(config) and property_id in (config.get("requiredProperties") or ())


def is_removable(property_id: str, config: FrozenConfig | None) -> bool:
    if is_required(property_id, config):
        return False
    entry = frozen_entry(property_id, config)
    return entry is None or entry.get("allowDelete") is not False


def is_hideable(property_id: str, config: FrozenConfig | None) -> bool:
    if is_required(property_id, config):
        return False
    entry = frozen_entry(property_id, config)
    return entry is None or entry.get("allowHide") is not False


def is_editable(property_id: str, config: FrozenConfig | None) -> bool:
    entry = frozen_entry(property_id, config)
    return entry is None or entry.get("allowEdit") is not False


def frozen_reason(property_id: str, config: FrozenConfig | None) -> str | None:
    entry = frozen_entry(property_id, config)
    return entry.get("reason") if entry else None


def _blocked(code: str, message: str, property_id: str, config: FrozenConfig | None) -> ValidationError:
    detail = {"reason": frozen_reason(property_id, config)}
    return ValidationError(code, message, property_id, [issue(code, message, property_id, detail)])


def _code_for(property_id: str, config: FrozenConfig | None) -> str:
    return "PROPERTY_REQUIRED" if is_required(property_id, config) else "PROPERTY_FROZEN"


def assert_removable(property_id: str, config: FrozenConfig | None) -> None:
    if not is_removable(property_id, config):
        raise _blocked(_code_for(property_id, config), f"{property_id} cannot be deleted", property_id, config)


def assert_hideable(property_id: str, config: FrozenConfig | None) -> None:
    if not is_hideable(property_id, config):
        raise _blocked(_code_for(property_id, config), f"{property_id} cannot be hidden", property_id, config)


def assert_editable(property_id: str, config: FrozenConfig | None) -> None:
    if not is_editable(property_id, config):
        raise _blocked("PROPERTY_FROZEN", f"{property_id} cannot be edited", property_id, config)


def coerce_batch(updates: List[dict], config: FrozenConfig | None) -> List[dict]:
    coerced: List[dict] = []
    for update in updates or []:
        item = copy.deepcopy(update)
        property_id = item.get("propertyId") or item.get("id")
        if is_required(property_id, config):
            item["visible"] = True
        entry = frozen_entry(property_id, config)
        if entry is not None:
            item["frozen"] = not entry.get("allowHide", True)
        coerced.append(item)
    return coerced


def ensure_required_visible(visible_ids: List[str] | None, config: FrozenConfig | None) -> List[str]:
    visible = list(dict.fromkeys(visible_ids or []))
    for property_id in sorted((config or {}).get("requiredProperties") or ()):
        if property_id not in visible:
            visible.append(property_id)
    return visible


def show_all_updates(properties: List[dict]) -> List[dict]:
    return [{"propertyId": p["id"], "visible": True} for p in properties or [] if p.get("id")]


def hide_all_updates(properties: List[dict], config: FrozenConfig | None) -> List[dict]:
    updates = []
    for prop in properties or []:
        property_id = prop.get("id")
        if not property_id:
            continue
        updates.append({"propertyId": property_id, "visible": not is_hideable(property_id, config)})
    return updates
