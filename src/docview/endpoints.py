"""Per-module endpoint resolution for the document view API.

Every module shares the same set of operations; what differs is where its
base and records endpoints live and whether property management is scoped
to a view. Both facts live in ``ROUTES``. Adding a module means adding a
row (or nothing at all, the generic route covers unknown modules).
"""

from __future__ import annotations

from dataclasses import dataclass
from types import MappingProxyType
from typing import Mapping
from urllib.parse import quote

from .errors import ValidationError, issue


MODULE_PLACEHOLDER = "{module}"
BASE_PLACEHOLDER = "{base}"


@dataclass(frozen=True)
class ModuleRoute:
    base_pattern: str = "/document-views/{module}"
    records_pattern: str = "/{module}"
    base_endpoint: str | None = None
    records_endpoint: str | None = None
    property_scope: str = "module"
    property_view_id: str | None = None


@dataclass(frozen=True)
class Endpoint:
    path: str
    method: str


GENERIC_ROUTE = ModuleRoute()

ROUTES: Mapping[str, ModuleRoute] = MappingProxyType(
    {
        "tasks": ModuleRoute(records_pattern="/second-brain/{module}"),
        "projects": ModuleRoute(records_pattern="/second-brain/{module}"),
        "books": ModuleRoute(
            base_pattern="/second-brain/{module}/document-view",
            records_pattern="/second-brain/{module}",
        ),
        "people": ModuleRoute(
            records_pattern="{base}/records",
            property_scope="view",
            property_view_id="all-people",
        ),
        "content": ModuleRoute(records_pattern="/{module}"),
        "databases": ModuleRoute(base_endpoint="/databases", records_endpoint="/databases"),
    }
)

# (scope, operation) -> (verb, template). "*" rows apply to both scopes.
_PROPERTY_OPERATIONS = {
    "addProperty": ("POST", ""),
    "updateProperty": ("PATCH", "/{propertyId}"),
    "deleteProperty": ("DELETE", "/{propertyId}"),
    "insertProperty": ("POST", "/{propertyId}/insert"),
    "duplicateProperty": ("POST", "/{propertyId}/duplicate"),
    "freezeProperty": ("PATCH", "/{propertyId}/freeze"),
}

_operations = {
    ("*", "getConfig"): ("GET", "{base}/config"),
    ("*", "listViews"): ("GET", "{base}/views"),
    ("*", "getView"): ("GET", "{base}/views/{viewId}"),
    ("*", "createView"): ("POST", "{base}/views"),
    ("*", "updateView"): ("PUT", "{base}/views/{viewId}"),
    ("*", "deleteView"): ("DELETE", "{base}/views/{viewId}"),
    ("*", "duplicateView"): ("POST", "{base}/views/{viewId}/duplicate"),
    ("*", "updateViewProperties"): ("PATCH", "{base}/views/{viewId}/properties"),
    ("*", "updatePropertyVisibility"): ("PATCH", "{base}/views/{viewId}/properties/{propertyId}/visibility"),
    ("*", "removeViewProperty"): ("DELETE", "{base}/views/{viewId}/properties/{propertyId}"),
    ("*", "updateViewFilters"): ("PATCH", "{base}/views/{viewId}/filters"),
    ("*", "updateViewSorts"): ("PATCH", "{base}/views/{viewId}/sorts"),
    ("*", "listProperties"): ("GET", "{base}/properties"),
    ("*", "createProperty"): ("POST", "{base}/properties"),
    ("*", "listRecords"): ("GET", "{records}"),
    ("*", "getRecord"): ("GET", "{records}/{recordId}"),
    ("*", "createRecord"): ("POST", "{records}"),
    ("*", "updateRecord"): ("PUT", "{records}/{recordId}"),
    ("*", "deleteRecord"): ("DELETE", "{records}/{recordId}"),
    ("*", "bulkUpdateRecords"): ("PATCH", "{records}/bulk-update"),
    ("*", "bulkDeleteRecords"): ("DELETE", "{records}/bulk-delete"),
    ("module", "changePropertyType"): ("PATCH", "{base}/properties/{propertyId}/change-type"),
    ("view", "changePropertyType"): ("PATCH", "{base}/views/{viewId}/properties/{propertyId}"),
}
for _name, (_verb, _suffix) in _PROPERTY_OPERATIONS.items():
    _operations[("module", _name)] = (_verb, "{base}/properties" + _suffix)
    _operations[("view", _name)] = (_verb, "{base}/views/{viewId}/properties" + _suffix)

OPERATIONS: Mapping[tuple, tuple] = MappingProxyType(_operations)

VIEW_SCOPED_OPERATIONS = frozenset(_PROPERTY_OPERATIONS) | {"changePropertyType"}


def normalize_module(module: str | None) -> str:
    return (module or "").strip().lower()


def route_for(module: str | None) -> ModuleRoute:
    return ROUTES.get(normalize_module(module), GENERIC_ROUTE)


def known_modules() -> list[str]:
    return sorted(ROUTES.keys())


def is_module_supported(module: str | None) -> bool:
    return isinstance(module, str) and bool(module.strip())


def operation_names() -> list[str]:
    return sorted({name for _, name in OPERATIONS.keys()})


def base_path(module: str | None, custom_endpoints: dict | None = None) -> str:
    if custom_endpoints and custom_endpoints.get("base"):
        return custom_endpoints["base"]
    route = route_for(module)
    if route.base_endpoint:
        return route.base_endpoint
    return route.base_pattern.replace(MODULE_PLACEHOLDER, normalize_module(module))


def records_path(module: str | None, custom_endpoints: dict | None = None) -> str:
    if custom_endpoints and custom_endpoints.get("records"):
        return custom_endpoints["records"]
    route = route_for(module)
    if route.records_endpoint:
        return route.records_endpoint
    pattern = route.records_pattern.replace(MODULE_PLACEHOLDER, normalize_module(module))
    if BASE_PLACEHOLDER in pattern:
        pattern = pattern.replace(BASE_PLACEHOLDER, base_path(module, custom_endpoints))
    return pattern


def _lookup(scope: str, operation: str) -> tuple:
    entry = OPERATIONS.get((scope, operation)) or OPERATIONS.get(("*", operation))
    if entry is None:
        raise ValidationError(
            "UNKNOWN_OPERATION",
            f"Unknown operation: {operation}",
            "operation",
            [issue("UNKNOWN_OPERATION", f"Unknown operation: {operation}", "operation")],
        )
    return entry


def resolve(
    module: str | None,
    operation: str,
    ids: dict | None = None,
    custom_endpoints: dict | None = None,
) -> Endpoint:
    if not is_module_supported(module):
        raise ValidationError(
            "MODULE_REQUIRED",
            "module is required",
            "module",
            [issue("MODULE_REQUIRED", "module is required", "module")],
        )
    route = route_for(module)
    method, template = _lookup(route.property_scope, operation)
    values = {k: v for k, v in (ids or {}).items() if v not in (None, "")}
    if route.property_scope == "view" and operation in VIEW_SCOPED_OPERATIONS:
        values.setdefault("viewId", route.property_view_id)

    path = template
    if "{base}" in path:
        path = path.replace("{base}", base_path(module, custom_endpoints))
    if "{records}" in path:
        path = path.replace("{records}", records_path(module, custom_endpoints))
    for key in ("viewId", "propertyId", "recordId"):
        placeholder = "{" + key + "}"
        if placeholder not in path:
            continue
        value = values.get(key)
        if value is None:
            raise ValidationError(
                "MISSING_PATH_PARAM",
                f"{operation} requires {key}",
                key,
                [issue("MISSING_PATH_PARAM", f"{operation} requires {key}", key)],
            )
        path = path.replace(placeholder, quote(str(value), safe=""))
    return Endpoint(path=path, method=method)
