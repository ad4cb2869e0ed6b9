"""Type-directed validation of record property values."""

from __future__ import annotations

import re
from datetime import date, datetime
from typing import Any

from docview.errors import issue
from docview.property_types import option_ids, properties_by_id


_EMAIL_RE = re.compile(r"^[^@\s]+@[^@\s]+\.[^@\s]+$")
_URL_RE = re.compile(r"^[a-zA-Z][a-zA-Z0-9+.-]*://\S+$")

# system-managed values the client never writes
READ_ONLY_TYPES = {"FORMULA", "ROLLUP", "CREATED_TIME", "LAST_EDITED_TIME", "CREATED_BY", "LAST_EDITED_BY"}


def record_properties(data: Any) -> dict:
    if not isinstance(data, dict):
        return {}
    props = data.get("properties")
    return props if isinstance(props, dict) else data


def _is_date(value: Any) -> bool:
    if not isinstance(value, str):
        return False
    try:
        date.fromisoformat(value)
        return True
    except ValueError:
        pass
    try:
        datetime.fromisoformat(value.replace("Z", "+00:00"))
        return True
    except ValueError:
        return False


def _option_id(value: Any) -> Any:
    if isinstance(value, dict):
        return value.get("id") or value.get("value") or value.get("_id")
    return value


def validate_record_values(properties: list[dict] | None, data: Any, for_create: bool) -> list[dict]:
    if not isinstance(data, dict):
        return [issue("INVALID_PAYLOAD", "Record data must be an object")]
    values = record_properties(data)
    by_id = properties_by_id(properties)
    errors: list[dict] = []

    if for_create:
        for property_id, prop in by_id.items():
            if prop.get("required") and values.get(property_id) in (None, "", []):
                errors.append(issue("REQUIRED_FIELD", f"Missing required property: {property_id}", property_id))

    for property_id, val in values.items():
        if property_id == "id":
            continue
        prop = by_id.get(property_id)
        if prop is None:
            errors.append(issue("UNKNOWN_PROPERTY", f"Unknown property: {property_id}", property_id))
            continue
        ptype = prop.get("type")
        if ptype in READ_ONLY_TYPES:
            errors.append(issue("READ_ONLY_PROPERTY", f"{property_id} is computed by the server", property_id))
            continue
        if val is None:
            continue
        if ptype in ("TEXT", "TEXTAREA", "PHONE", "ICON"):
            if not isinstance(val, str):
                errors.append(issue("TYPE_MISMATCH", f"{property_id} must be a string", property_id))
        elif ptype == "NUMBER":
            if not isinstance(val, (int, float)) or isinstance(val, bool):
                errors.append(issue("TYPE_MISMATCH", f"{property_id} must be a number", property_id))
        elif ptype == "CHECKBOX":
            if not isinstance(val, bool):
                errors.append(issue("TYPE_MISMATCH", f"{property_id} must be a boolean", property_id))
        elif ptype == "DATE":
            if not _is_date(val):
                errors.append(issue("INVALID_DATE", f"{property_id} must be an ISO date", property_id))
        elif ptype == "DATE_RANGE":
            if not isinstance(val, dict) or not _is_date(val.get("start")):
                errors.append(issue("INVALID_DATE", f"{property_id} must be {{start, end}}", property_id))
            elif val.get("end") is not None and not _is_date(val.get("end")):
                errors.append(issue("INVALID_DATE", f"{property_id}.end must be an ISO date", property_id))
        elif ptype == "SELECT":
            if _option_id(val) not in option_ids(prop):
                errors.append(issue("INVALID_OPTION", f"{property_id} must be one of {option_ids(prop)}", property_id))
        elif ptype == "MULTI_SELECT":
            if not isinstance(val, list):
                errors.append(issue("TYPE_MISMATCH", f"{property_id} must be a list", property_id))
            else:
                allowed = option_ids(prop)
                bad = [_option_id(v) for v in val if _option_id(v) not in allowed]
                if bad:
                    errors.append(issue("INVALID_OPTION", f"{property_id} has unknown options", property_id, {"invalid": bad}))
        elif ptype == "EMAIL":
            if not isinstance(val, str) or not _EMAIL_RE.match(val):
                errors.append(issue("INVALID_EMAIL", f"{property_id} must be an email address", property_id))
        elif ptype in ("URL", "IMAGE"):
            if not isinstance(val, str) or not _URL_RE.match(val):
                errors.append(issue("INVALID_URL", f"{property_id} must be a URL", property_id))
        elif ptype in ("RELATION", "PERSON", "FILE"):
            if not isinstance(val, (str, list, dict)):
                errors.append(issue("TYPE_MISMATCH", f"{property_id} must be an id, object or list", property_id))
        # other types are passed through to the server as-is

    return errors
