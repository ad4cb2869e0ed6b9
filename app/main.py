"""FastAPI reference backend for the document view API (in-memory)."""

from __future__ import annotations

import json
import logging
import sys
from pathlib import Path
from typing import Any, Callable

from fastapi import FastAPI, Request
from fastapi.encoders import jsonable_encoder
from fastapi.responses import JSONResponse

ROOT = Path(__file__).resolve().parents[1]
SRC = ROOT / "src"
if str(SRC) not in sys.path:
    sys.path.insert(0, str(SRC))
if str(ROOT) not in sys.path:
    sys.path.insert(0, str(ROOT))

import filter_rules
import sort_rules
import view_validate
from app.records_validation import validate_record_values
from app.stores import MemoryDocumentStore
from docview.endpoints import route_for
from docview.errors import DocViewError, NotFoundError, ValidationError, issue


logger = logging.getLogger("docview.server")

POLICY_CODES = {"PROPERTY_FROZEN", "PROPERTY_REQUIRED", "VIEW_IS_DEFAULT"}

# module-scoped prefixes; "/databases" is flat and always means the databases module
BASE_PREFIXES = ("/document-views/{module}", "/second-brain/{module}/document-view", "/databases")
RECORD_PREFIXES = ("/second-brain/{module}", "/document-views/{module}/records", "/databases", "/{module}")

store = MemoryDocumentStore()

app = FastAPI(title="Document View API")


def _ok_response(data: Any, message: str | None = None, status: int = 200) -> JSONResponse:
    body = {"success": True, "data": data, "message": message}
    return JSONResponse(jsonable_encoder(body), status_code=status)


def _error_response(code: str, message: str, status: int = 400, errors: list | None = None) -> JSONResponse:
    body = {"success": False, "data": None, "message": message, "code": code, "errors": errors or []}
    return JSONResponse(jsonable_encoder(body), status_code=status)


@app.exception_handler(DocViewError)
async def _docview_error_handler(request: Request, exc: DocViewError) -> JSONResponse:
    if isinstance(exc, NotFoundError):
        status = 404
    elif exc.code in POLICY_CODES:
        status = 403
    else:
        status = 400
    issues = getattr(exc, "issues", None) or [issue(exc.code, exc.message, exc.path)]
    logger.info("request_rejected method=%s path=%s code=%s status=%s", request.method, request.url.path, exc.code, status)
    return _error_response(exc.code, exc.message, status=status, errors=issues)


async def _safe_json(request: Request) -> dict:
    try:
        body = await request.json()
    except ValueError:
        return {}
    return body if isinstance(body, dict) else {}


def _module(request: Request) -> str:
    return request.path_params.get("module") or "databases"


def _param(request: Request, name: str) -> str:
    return request.path_params[name]


def _raise_issues(errors: list[dict]) -> None:
    if errors:
        raise ValidationError.from_issues(errors)


def _json_param(request: Request, name: str) -> list:
    raw = request.query_params.get(name)
    if not raw:
        return []
    try:
        value = json.loads(raw)
    except ValueError:
        raise ValidationError(f"{name.upper()}_INVALID", f"{name} must be JSON", name)
    if not isinstance(value, list):
        raise ValidationError(f"{name.upper()}_INVALID", f"{name} must be a list", name)
    return value


# config and views


async def get_config(request: Request) -> JSONResponse:
    return _ok_response(store.get_config(_module(request)))


async def list_views(request: Request) -> JSONResponse:
    return _ok_response(store.list_views(_module(request)))


async def create_view(request: Request) -> JSONResponse:
    module = _module(request)
    body = await _safe_json(request)
    properties = store.list_properties(module)
    _raise_issues(filter_rules.validate_filters(body.get("filters") or [], properties))
    _raise_issues(sort_rules.validate_sorts(body.get("sorts") or [], properties))
    return _ok_response(store.create_view(module, body), status=201)


async def get_view(request: Request) -> JSONResponse:
    return _ok_response(store.get_view(_module(request), _param(request, "view_id")))


async def replace_view(request: Request) -> JSONResponse:
    module = _module(request)
    body = await _safe_json(request)
    properties = store.list_properties(module)
    if "filters" in body:
        _raise_issues(filter_rules.validate_filters(body.get("filters"), properties))
    if "sorts" in body:
        _raise_issues(sort_rules.validate_sorts(body.get("sorts"), properties))
    return _ok_response(store.replace_view(module, _param(request, "view_id"), body))


async def delete_view(request: Request) -> JSONResponse:
    store.delete_view(_module(request), _param(request, "view_id"))
    return _ok_response(None, message="View deleted")


async def duplicate_view(request: Request) -> JSONResponse:
    body = await _safe_json(request)
    return _ok_response(store.duplicate_view(_module(request), _param(request, "view_id"), body.get("name")), status=201)


async def patch_view_properties(request: Request) -> JSONResponse:
    body = await _safe_json(request)
    updates = body.get("properties")
    _raise_issues(view_validate.validate_property_batch(updates))
    return _ok_response(store.apply_property_batch(_module(request), _param(request, "view_id"), updates))


async def patch_visibility(request: Request) -> JSONResponse:
    body = await _safe_json(request)
    view = store.set_visibility(
        _module(request), _param(request, "view_id"), _param(request, "property_id"), body.get("visible") is not False
    )
    return _ok_response(view)


async def patch_filters(request: Request) -> JSONResponse:
    module = _module(request)
    body = await _safe_json(request)
    filters = body.get("filters")
    _raise_issues(filter_rules.validate_filters(filters, store.list_properties(module)))
    return _ok_response(store.set_view_filters(module, _param(request, "view_id"), filters))


async def patch_sorts(request: Request) -> JSONResponse:
    module = _module(request)
    body = await _safe_json(request)
    sorts = body.get("sorts")
    _raise_issues(sort_rules.validate_sorts(sorts, store.list_properties(module)))
    return _ok_response(store.set_view_sorts(module, _param(request, "view_id"), sorts))


# properties


async def list_properties(request: Request) -> JSONResponse:
    return _ok_response(store.list_properties(_module(request)))


async def create_property(request: Request) -> JSONResponse:
    body = await _safe_json(request)
    data = body.get("property") if isinstance(body.get("property"), dict) else body
    view_id = request.path_params.get("view_id")
    return _ok_response(store.create_property(_module(request), data, view_id=view_id), status=201)


async def update_property(request: Request) -> JSONResponse:
    body = await _safe_json(request)
    return _ok_response(store.update_property(_module(request), _param(request, "property_id"), body))


async def change_property_type(request: Request) -> JSONResponse:
    body = await _safe_json(request)
    property_type = body.get("type")
    if not isinstance(property_type, str) or not property_type:
        raise ValidationError("PROPERTY_TYPE_INVALID", "type is required", "type")
    return _ok_response(store.change_property_type(_module(request), _param(request, "property_id"), property_type))


async def delete_property(request: Request) -> JSONResponse:
    store.delete_property(_module(request), _param(request, "property_id"))
    return _ok_response(None, message="Property deleted")


async def delete_view_property(request: Request) -> JSONResponse:
    module = _module(request)
    if route_for(module).property_scope == "view":
        return await delete_property(request)
    view = store.remove_from_view(module, _param(request, "view_id"), _param(request, "property_id"))
    return _ok_response(view)


async def insert_property(request: Request) -> JSONResponse:
    body = await _safe_json(request)
    position = body.get("position")
    if position not in ("left", "right"):
        raise ValidationError("POSITION_INVALID", "position must be left or right", "position")
    prop = store.insert_property(
        _module(request), _param(request, "property_id"), position, body.get("name") or "", body.get("type") or "text"
    )
    return _ok_response(prop, status=201)


async def duplicate_property(request: Request) -> JSONResponse:
    body = await _safe_json(request)
    prop = store.duplicate_property(_module(request), _param(request, "property_id"), body.get("name"))
    return _ok_response(prop, status=201)


async def freeze_property(request: Request) -> JSONResponse:
    body = await _safe_json(request)
    return _ok_response(store.freeze_property(_module(request), _param(request, "property_id"), bool(body.get("frozen"))))


# records


async def list_records(request: Request) -> JSONResponse:
    module = _module(request)
    properties = store.list_properties(module)
    filters = _json_param(request, "filters")
    sorts = _json_param(request, "sorts")
    _raise_issues(filter_rules.validate_filters(filters, properties))
    _raise_issues(sort_rules.validate_sorts(sorts, properties))
    records = [r for r in store.list_records(module) if filter_rules.match_record(r, filters, properties)]
    return _ok_response(sort_rules.sort_records(records, sorts))


async def get_record(request: Request) -> JSONResponse:
    return _ok_response(store.get_record(_module(request), _param(request, "record_id")))


async def create_record(request: Request) -> JSONResponse:
    module = _module(request)
    body = await _safe_json(request)
    _raise_issues(validate_record_values(store.list_properties(module), body, for_create=True))
    return _ok_response(store.create_record(module, body), status=201)


async def update_record(request: Request) -> JSONResponse:
    module = _module(request)
    body = await _safe_json(request)
    _raise_issues(validate_record_values(store.list_properties(module), body, for_create=False))
    return _ok_response(store.update_record(module, _param(request, "record_id"), body))


async def delete_record(request: Request) -> JSONResponse:
    store.delete_record(_module(request), _param(request, "record_id"))
    return _ok_response(None, message="Record deleted")


def _record_ids(body: dict) -> list:
    ids = body.get("recordIds")
    if not isinstance(ids, list) or not ids or not all(isinstance(i, str) for i in ids):
        raise ValidationError("RECORD_IDS_INVALID", "recordIds must be a non-empty list of strings", "recordIds")
    return list(dict.fromkeys(ids))


async def bulk_update_records(request: Request) -> JSONResponse:
    module = _module(request)
    body = await _safe_json(request)
    ids = _record_ids(body)
    updates = body.get("updates") if isinstance(body.get("updates"), dict) else {}
    _raise_issues(validate_record_values(store.list_properties(module), updates, for_create=False))
    return _ok_response(store.bulk_update(module, ids, updates))


async def bulk_delete_records(request: Request) -> JSONResponse:
    body = await _safe_json(request)
    return _ok_response(store.bulk_delete(_module(request), _record_ids(body)))


BASE_ROUTES: list[tuple[str, str, Callable]] = [
    ("GET", "/config", get_config),
    ("GET", "/views", list_views),
    ("POST", "/views", create_view),
    ("GET", "/views/{view_id}", get_view),
    ("PUT", "/views/{view_id}", replace_view),
    ("DELETE", "/views/{view_id}", delete_view),
    ("POST", "/views/{view_id}/duplicate", duplicate_view),
    ("PATCH", "/views/{view_id}/properties", patch_view_properties),
    ("POST", "/views/{view_id}/properties", create_property),
    ("PATCH", "/views/{view_id}/properties/{property_id}/visibility", patch_visibility),
    ("PATCH", "/views/{view_id}/properties/{property_id}/freeze", freeze_property),
    ("POST", "/views/{view_id}/properties/{property_id}/insert", insert_property),
    ("POST", "/views/{view_id}/properties/{property_id}/duplicate", duplicate_property),
    ("PATCH", "/views/{view_id}/properties/{property_id}", update_property),
    ("DELETE", "/views/{view_id}/properties/{property_id}", delete_view_property),
    ("PATCH", "/views/{view_id}/filters", patch_filters),
    ("PATCH", "/views/{view_id}/sorts", patch_sorts),
    ("GET", "/properties", list_properties),
    ("POST", "/properties", create_property),
    ("PATCH", "/properties/{property_id}/change-type", change_property_type),
    ("PATCH", "/properties/{property_id}/freeze", freeze_property),
    ("POST", "/properties/{property_id}/insert", insert_property),
    ("POST", "/properties/{property_id}/duplicate", duplicate_property),
    ("PATCH", "/properties/{property_id}", update_property),
    ("DELETE", "/properties/{property_id}", delete_property),
]

RECORD_ROUTES: list[tuple[str, str, Callable]] = [
    ("GET", "", list_records),
    ("POST", "", create_record),
    ("PATCH", "/bulk-update", bulk_update_records),
    ("DELETE", "/bulk-delete", bulk_delete_records),
    ("GET", "/{record_id}", get_record),
    ("PUT", "/{record_id}", update_record),
    ("DELETE", "/{record_id}", delete_record),
]


def _register(prefixes: tuple, routes: list) -> None:
    for prefix in prefixes:
        for method, suffix, handler in routes:
            app.add_api_route(prefix + suffix, handler, methods=[method], include_in_schema=False)


# base routes first so /databases/views is not read as a record id
_register(BASE_PREFIXES, BASE_ROUTES)
_register(RECORD_PREFIXES, RECORD_ROUTES)
