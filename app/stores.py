"""In-memory document view stores backing the reference API."""

from __future__ import annotations

import copy
import re
import uuid
from datetime import datetime, timezone
from typing import Any, Dict, List

import frozen_policy
from docview.endpoints import normalize_module, route_for
from docview.errors import NotFoundError, ValidationError, issue
from docview.property_types import normalize_options, to_server_type


def _now() -> str:
    return datetime.now(timezone.utc).strftime("%Y-%m-%dT%H:%M:%SZ")


def wire_type(server_type: str | None) -> str:
    """Present a stored camelCase type tag as an UPPER_SNAKE tag."""
    if not server_type:
        return "TEXT"
    return re.sub(r"(?<!^)(?=[A-Z])", "_", server_type).upper()


def stored_type(property_type: str | None) -> str:
    if not property_type:
        return "text"
    if property_type.upper() == property_type:
        return to_server_type(property_type)
    return property_type


def default_view_id(module: str) -> str:
    route = route_for(module)
    return route.property_view_id or f"all-{normalize_module(module)}"


def _seed_properties() -> Dict[str, dict]:
    return {
        "title": {"id": "title", "name": "Title", "type": "text", "order": 0, "visible": True, "frozen": True, "required": True, "width": 240, "options": []},
        "status": {
            "id": "status",
            "name": "Status",
            "type": "select",
            "order": 1,
            "visible": True,
            "frozen": False,
            "required": False,
            "width": 160,
            "options": [
                {"id": "todo", "label": "To do", "color": "#6b7280"},
                {"id": "in-progress", "label": "In progress", "color": "#3b82f6"},
                {"id": "done", "label": "Done", "color": "#22c55e"},
            ],
        },
    }


def _seed_config(module: str) -> dict:
    return {
        "moduleType": module,
        "documentType": module,
        "requiredProperties": ["title"],
        "frozenConfig": {
            "viewType": "TABLE",
            "moduleType": module,
            "description": "Primary property is always shown",
            "frozenProperties": [
                {"propertyId": "title", "reason": "Primary property", "allowEdit": True, "allowHide": False, "allowDelete": False}
            ],
        },
        "supportedViewTypes": ["TABLE", "BOARD", "KANBAN", "CALENDAR", "GALLERY", "LIST", "TIMELINE"],
    }


class MemoryDocumentStore:
    def __init__(self) -> None:
        self._modules: Dict[str, dict] = {}

    def reset(self) -> None:
        self._modules.clear()

    def _module(self, module: str) -> dict:
        key = normalize_module(module)
        state = self._modules.get(key)
        if state is None:
            view_id = default_view_id(key)
            now = _now()
            state = {
                "config": _seed_config(key),
                "properties": _seed_properties(),
                "views": {
                    view_id: {
                        "id": view_id,
                        "moduleType": key,
                        "name": "All",
                        "type": "TABLE",
                        "isDefault": True,
                        "isSystemView": True,
                        "filters": [],
                        "sorts": [],
                        "visibleProperties": ["title", "status"],
                        "groupBy": None,
                        "config": {},
                        "createdAt": now,
                        "updatedAt": now,
                    }
                },
                "records": {},
            }
            self._modules[key] = state
        return state

    def policy(self, module: str) -> dict:
        return frozen_policy.normalize_frozen_config(self._module(module)["config"])

    # config

    def get_config(self, module: str) -> dict:
        return copy.deepcopy(self._module(module)["config"])

    # views

    def _view(self, module: str, view_id: str) -> dict:
        view = self._module(module)["views"].get(view_id)
        if view is None:
            raise NotFoundError("VIEW_NOT_FOUND", f"View not found: {view_id}", "viewId")
        return view

    def list_views(self, module: str) -> list[dict]:
        return [copy.deepcopy(v) for v in self._module(module)["views"].values()]

    def get_view(self, module: str, view_id: str) -> dict:
        return copy.deepcopy(self._view(module, view_id))

    def create_view(self, module: str, data: dict) -> dict:
        state = self._module(module)
        now = _now()
        view = {
            "id": data.get("id") or str(uuid.uuid4()),
            "moduleType": normalize_module(module),
            "name": data.get("name") or "Untitled",
            "type": (data.get("type") or "TABLE").upper(),
            "isDefault": False,
            "isSystemView": False,
            "filters": copy.deepcopy(data.get("filters") or []),
            "sorts": copy.deepcopy(data.get("sorts") or []),
            "visibleProperties": frozen_policy.ensure_required_visible(
                data.get("visibleProperties") or list(state["properties"].keys()), self.policy(module)
            ),
            "groupBy": data.get("groupBy"),
            "config": copy.deepcopy(data.get("config") or {}),
            "createdAt": now,
            "updatedAt": now,
        }
        state["views"][view["id"]] = view
        return copy.deepcopy(view)

    def replace_view(self, module: str, view_id: str, data: dict) -> dict:
        view = self._view(module, view_id)
        for key in ("name", "type", "filters", "sorts", "groupBy", "config", "description"):
            if key in data:
                view[key] = copy.deepcopy(data[key])
        if "visibleProperties" in data:
            self._check_visible(module, data["visibleProperties"])
            view["visibleProperties"] = list(dict.fromkeys(data["visibleProperties"]))
        view["updatedAt"] = _now()
        return copy.deepcopy(view)

    def delete_view(self, module: str, view_id: str) -> None:
        view = self._view(module, view_id)
        if view.get("isDefault"):
            raise ValidationError("VIEW_IS_DEFAULT", "The default view cannot be deleted", "viewId")
        del self._module(module)["views"][view_id]

    def duplicate_view(self, module: str, view_id: str, name: str | None = None) -> dict:
        source = self._view(module, view_id)
        data = copy.deepcopy(source)
        data.pop("id", None)
        data["name"] = name or f"{source.get('name')} (copy)"
        return self.create_view(module, data)

    def _check_visible(self, module: str, visible: List[str]) -> None:
        policy = self.policy(module)
        visible_set = set(visible or [])
        for property_id in self._module(module)["properties"]:
            if property_id not in visible_set:
                frozen_policy.assert_hideable(property_id, policy)

    def set_view_filters(self, module: str, view_id: str, filters: list) -> dict:
        view = self._view(module, view_id)
        view["filters"] = copy.deepcopy(filters)
        view["updatedAt"] = _now()
        return copy.deepcopy(view)

    def set_view_sorts(self, module: str, view_id: str, sorts: list) -> dict:
        view = self._view(module, view_id)
        view["sorts"] = copy.deepcopy(sorts)
        view["updatedAt"] = _now()
        return copy.deepcopy(view)

    def set_visibility(self, module: str, view_id: str, property_id: str, visible: bool) -> dict:
        view = self._view(module, view_id)
        self._property(module, property_id)
        if not visible:
            frozen_policy.assert_hideable(property_id, self.policy(module))
            view["visibleProperties"] = [p for p in view["visibleProperties"] if p != property_id]
        elif property_id not in view["visibleProperties"]:
            view["visibleProperties"].append(property_id)
        view["updatedAt"] = _now()
        return copy.deepcopy(view)

    def apply_property_batch(self, module: str, view_id: str, updates: list) -> dict:
        view = self._view(module, view_id)
        props = self._module(module)["properties"]
        policy = self.policy(module)
        for update in updates:
            property_id = update.get("propertyId") or update.get("id")
            if property_id not in props:
                raise NotFoundError("PROPERTY_NOT_FOUND", f"Property not found: {property_id}", "propertyId")
            if update.get("visible") is False:
                frozen_policy.assert_hideable(property_id, policy)
        orders = [u["order"] for u in updates if "order" in u]
        if len(orders) != len(set(orders)):
            raise ValidationError("ORDER_DUPLICATE", "Two properties cannot share an order", "properties")
        visible = list(view["visibleProperties"])
        for update in updates:
            property_id = update.get("propertyId") or update.get("id")
            prop = props[property_id]
            for key in ("order", "width", "frozen"):
                if key in update:
                    prop[key] = update[key]
            if update.get("visible") is True and property_id not in visible:
                visible.append(property_id)
            elif update.get("visible") is False:
                visible = [p for p in visible if p != property_id]
        view["visibleProperties"] = visible
        view["updatedAt"] = _now()
        return copy.deepcopy(view)

    # properties

    def _property(self, module: str, property_id: str) -> dict:
        prop = self._module(module)["properties"].get(property_id)
        if prop is None:
            raise NotFoundError("PROPERTY_NOT_FOUND", f"Property not found: {property_id}", "propertyId")
        return prop

    @staticmethod
    def _present(prop: dict) -> dict:
        item = copy.deepcopy(prop)
        item["type"] = wire_type(prop.get("type"))
        return item

    def list_properties(self, module: str) -> list[dict]:
        props = self._module(module)["properties"].values()
        return [self._present(p) for p in sorted(props, key=lambda p: p.get("order", 0))]

    def _next_order(self, module: str) -> int:
        orders = [p.get("order", 0) for p in self._module(module)["properties"].values()]
        return max(orders) + 1 if orders else 0

    def create_property(self, module: str, data: dict, view_id: str | None = None) -> dict:
        state = self._module(module)
        name = (data.get("name") or "").strip()
        if not name:
            raise ValidationError("PROPERTY_NAME_REQUIRED", "Property name is required", "name", [issue("PROPERTY_NAME_REQUIRED", "Property name is required", "name")])
        property_id = data.get("id") or re.sub(r"[^a-z0-9]+", "-", name.lower()).strip("-") or str(uuid.uuid4())
        if property_id in state["properties"]:
            property_id = f"{property_id}-{uuid.uuid4().hex[:6]}"
        prop = {
            "id": property_id,
            "name": name,
            "type": stored_type(data.get("type")),
            "order": data.get("order") if isinstance(data.get("order"), int) else self._next_order(module),
            "visible": data.get("visible", True) is not False,
            "frozen": bool(data.get("frozen")),
            "required": bool(data.get("required")),
            "width": data.get("width") or 160,
            "options": normalize_options(data.get("options")),
        }
        if any(p.get("order") == prop["order"] for p in state["properties"].values()):
            self._shift_orders(module, prop["order"])
        state["properties"][property_id] = prop
        targets = [self._view(module, view_id)] if view_id else list(state["views"].values())
        if prop["visible"]:
            for view in targets:
                if property_id not in view["visibleProperties"]:
                    view["visibleProperties"].append(property_id)
        return self._present(prop)

    def _shift_orders(self, module: str, from_order: int) -> None:
        for prop in self._module(module)["properties"].values():
            if prop.get("order", 0) >= from_order:
                prop["order"] = prop.get("order", 0) + 1

    def update_property(self, module: str, property_id: str, data: dict) -> dict:
        prop = self._property(module, property_id)
        policy = self.policy(module)
        frozen_policy.assert_editable(property_id, policy)
        if data.get("visible") is False:
            frozen_policy.assert_hideable(property_id, policy)
        for key in ("name", "width", "visible", "required", "description"):
            if key in data:
                prop[key] = data[key]
        if "type" in data:
            prop["type"] = stored_type(data["type"])
        if "options" in data:
            prop["options"] = normalize_options(data["options"])
        return self._present(prop)

    def change_property_type(self, module: str, property_id: str, property_type: str) -> dict:
        prop = self._property(module, property_id)
        frozen_policy.assert_editable(property_id, self.policy(module))
        prop["type"] = stored_type(property_type)
        if prop["type"] not in ("select", "multiSelect"):
            prop["options"] = []
        return self._present(prop)

    def delete_property(self, module: str, property_id: str) -> None:
        state = self._module(module)
        self._property(module, property_id)
        frozen_policy.assert_removable(property_id, self.policy(module))
        del state["properties"][property_id]
        for view in state["views"].values():
            view["visibleProperties"] = [p for p in view["visibleProperties"] if p != property_id]
            view["filters"] = [f for f in view.get("filters") or [] if f.get("propertyId") != property_id]
            view["sorts"] = [s for s in view.get("sorts") or [] if s.get("propertyId") != property_id]
            if view.get("groupBy") == property_id:
                view["groupBy"] = None
        for record in state["records"].values():
            record["properties"].pop(property_id, None)

    def remove_from_view(self, module: str, view_id: str, property_id: str) -> dict:
        return self.set_visibility(module, view_id, property_id, False)

    def insert_property(self, module: str, property_id: str, position: str, name: str, property_type: str) -> dict:
        anchor = self._property(module, property_id)
        order = anchor.get("order", 0) + (1 if position == "right" else 0)
        self._shift_orders(module, order)
        return self.create_property(module, {"name": name, "type": property_type, "order": order})

    def duplicate_property(self, module: str, property_id: str, name: str | None = None) -> dict:
        source = self._property(module, property_id)
        data = copy.deepcopy(source)
        data.pop("id", None)
        data["name"] = name or f"{source.get('name')} (copy)"
        data["order"] = source.get("order", 0) + 1
        data["required"] = False
        data["frozen"] = False
        self._shift_orders(module, data["order"])
        return self.create_property(module, data)

    def freeze_property(self, module: str, property_id: str, frozen: bool) -> dict:
        prop = self._property(module, property_id)
        entry = frozen_policy.frozen_entry(property_id, self.policy(module))
        if entry is not None and entry.get("allowHide") is False and not frozen:
            raise ValidationError("PROPERTY_FROZEN", f"{property_id} cannot be unfrozen", property_id)
        prop["frozen"] = bool(frozen)
        return self._present(prop)

    # records

    @staticmethod
    def _record_values(data: Any) -> dict:
        if not isinstance(data, dict):
            return {}
        values = data.get("properties")
        if isinstance(values, dict):
            return copy.deepcopy(values)
        return {k: copy.deepcopy(v) for k, v in data.items() if k not in ("id", "createdAt", "updatedAt")}

    def list_records(self, module: str) -> list[dict]:
        return [copy.deepcopy(r) for r in self._module(module)["records"].values()]

    def get_record(self, module: str, record_id: str) -> dict:
        record = self._module(module)["records"].get(record_id)
        if record is None:
            raise NotFoundError("RECORD_NOT_FOUND", f"Record not found: {record_id}", "recordId")
        return copy.deepcopy(record)

    def create_record(self, module: str, data: dict) -> dict:
        now = _now()
        record = {"id": str(uuid.uuid4()), "properties": self._record_values(data), "createdAt": now, "updatedAt": now}
        self._module(module)["records"][record["id"]] = record
        return copy.deepcopy(record)

    def update_record(self, module: str, record_id: str, data: dict) -> dict:
        self.get_record(module, record_id)
        record = self._module(module)["records"][record_id]
        record["properties"].update(self._record_values(data))
        record["updatedAt"] = _now()
        return copy.deepcopy(record)

    def delete_record(self, module: str, record_id: str) -> None:
        self.get_record(module, record_id)
        del self._module(module)["records"][record_id]

    def bulk_update(self, module: str, record_ids: List[str], updates: dict) -> dict:
        for record_id in record_ids:
            self.get_record(module, record_id)
        for record_id in record_ids:
            self.update_record(module, record_id, updates)
        return {"updated": len(record_ids)}

    def bulk_delete(self, module: str, record_ids: List[str]) -> dict:
        for record_id in record_ids:
            self.get_record(module, record_id)
        for record_id in record_ids:
            del self._module(module)["records"][record_id]
        return {"deleted": len(record_ids)}
