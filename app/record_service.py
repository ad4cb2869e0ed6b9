"""Generic record CRUD for any module, composed from the resolver and rule engine."""

from __future__ import annotations

import json
import logging
from typing import Any, List

import filter_rules
import sort_rules
from app.api_client import ApiClient
from app.records_validation import validate_record_values
from docview.endpoints import resolve
from docview.errors import ValidationError, issue


logger = logging.getLogger("docview.records")


class RecordService:
    def __init__(
        self,
        module: str,
        client: ApiClient,
        custom_endpoints: dict | None = None,
        properties: List[dict] | None = None,
    ) -> None:
        self.module = module
        self._client = client
        self._custom_endpoints = custom_endpoints
        self._properties = properties

    def _endpoint(self, operation: str, **ids: Any):
        return resolve(self.module, operation, ids, self._custom_endpoints)

    def _check_values(self, data: Any, for_create: bool) -> None:
        if self._properties is None:
            if not isinstance(data, dict):
                raise ValidationError("INVALID_PAYLOAD", "Record data must be an object", None, [issue("INVALID_PAYLOAD", "Record data must be an object")])
            return
        errors = validate_record_values(self._properties, data, for_create)
        if errors:
            logger.info("record_validation_failed module=%s codes=%s", self.module, [e["code"] for e in errors])
            raise ValidationError.from_issues(errors)

    @staticmethod
    def _check_ids(record_ids: Any) -> list:
        if not isinstance(record_ids, (list, tuple)) or not record_ids:
            raise ValidationError("RECORD_IDS_REQUIRED", "recordIds must be a non-empty list", "recordIds")
        ids = list(dict.fromkeys(record_ids))
        if not all(isinstance(r, str) and r for r in ids):
            raise ValidationError("RECORD_IDS_INVALID", "recordIds must be strings", "recordIds")
        return ids

    async def list(
        self,
        filters: List[dict] | None = None,
        sorts: List[dict] | None = None,
        params: dict | None = None,
    ) -> Any:
        query = dict(params or {})
        if filters:
            query["filters"] = json.dumps(filter_rules.serialize_filters(filters, self._properties), separators=(",", ":"))
        if sorts:
            query["sorts"] = json.dumps(sort_rules.serialize_sorts(sorts, self._properties), separators=(",", ":"))
        return await self._client.call(self._endpoint("listRecords"), params=query or None)

    async def get(self, record_id: str) -> Any:
        return await self._client.call(self._endpoint("getRecord", recordId=record_id))

    async def create(self, data: dict) -> Any:
        self._check_values(data, for_create=True)
        return await self._client.call(self._endpoint("createRecord"), json=data)

    async def update(self, record_id: str, partial: dict) -> Any:
        self._check_values(partial, for_create=False)
        return await self._client.call(self._endpoint("updateRecord", recordId=record_id), json=partial)

    async def delete(self, record_id: str) -> Any:
        return await self._client.call(self._endpoint("deleteRecord", recordId=record_id))

    async def bulk_update(self, record_ids: List[str], partial: dict) -> Any:
        ids = self._check_ids(record_ids)
        self._check_values(partial, for_create=False)
        payload = {"recordIds": ids, "updates": partial}
        return await self._client.call(self._endpoint("bulkUpdateRecords"), json=payload)

    async def bulk_delete(self, record_ids: List[str]) -> Any:
        ids = self._check_ids(record_ids)
        return await self._client.call(self._endpoint("bulkDeleteRecords"), json={"recordIds": ids})
