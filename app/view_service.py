"""View, property and module-config operations for a document view module."""

from __future__ import annotations

import logging
from typing import Any, List

import filter_rules
import frozen_policy
import sort_rules
import view_validate
from app.api_client import ApiClient
from docview.endpoints import resolve, route_for
from docview.errors import NotFoundError, ValidationError, issue
from docview.property_types import PROPERTY_TYPES, property_to_server


logger = logging.getLogger("docview.views")

INSERT_POSITIONS = ("left", "right")


class DocumentViewService:
    def __init__(
        self,
        module: str,
        client: ApiClient,
        custom_endpoints: dict | None = None,
        frozen_config: dict | None = None,
    ) -> None:
        self.module = module
        self._client = client
        self._custom_endpoints = custom_endpoints
        self._frozen_config = frozen_config

    def _endpoint(self, operation: str, **ids: Any):
        return resolve(self.module, operation, ids, self._custom_endpoints)

    def _policy(self, frozen_config: dict | None) -> dict | None:
        return frozen_config if frozen_config is not None else self._frozen_config

    @staticmethod
    def _check_type(property_type: Any) -> None:
        if property_type not in PROPERTY_TYPES:
            raise ValidationError(
                "PROPERTY_TYPE_INVALID",
                f"Unknown property type: {property_type}",
                "type",
                [issue("PROPERTY_TYPE_INVALID", f"Unknown property type: {property_type}", "type")],
            )

    # config

    async def get_config(self) -> Any:
        return await self._client.call(self._endpoint("getConfig"))

    async def load_frozen_config(self) -> dict:
        return frozen_policy.normalize_frozen_config(await self.get_config())

    # views

    async def list_views(self) -> Any:
        return await self._client.call(self._endpoint("listViews"))

    async def get_view(self, view_id: str) -> Any:
        return await self._client.call(self._endpoint("getView", viewId=view_id))

    async def default_view(self) -> dict:
        # the API has no /views/default; pick it from the list
        view = view_validate.default_view(await self.list_views())
        if view is None:
            raise NotFoundError("VIEW_NOT_FOUND", f"{self.module} has no views", "views")
        return view

    async def create_view(
        self,
        data: dict,
        properties: List[dict] | None = None,
        frozen_config: dict | None = None,
    ) -> Any:
        payload = dict(data)
        policy = self._policy(frozen_config)
        if "visibleProperties" in payload:
            payload["visibleProperties"] = frozen_policy.ensure_required_visible(payload["visibleProperties"], policy)
        if properties is not None:
            view_validate.assert_view_valid(payload, properties, policy)
        return await self._client.call(self._endpoint("createView"), json=payload)

    async def update_view(
        self,
        view_id: str,
        data: dict,
        properties: List[dict] | None = None,
        frozen_config: dict | None = None,
    ) -> Any:
        payload = dict(data)
        policy = self._policy(frozen_config)
        if "visibleProperties" in payload:
            payload["visibleProperties"] = frozen_policy.ensure_required_visible(payload["visibleProperties"], policy)
        if properties is not None:
            view_validate.assert_view_valid({"name": payload.get("name", view_id), **payload}, properties, policy)
        return await self._client.call(self._endpoint("updateView", viewId=view_id), json=payload)

    async def delete_view(self, view_id: str, view: dict | None = None) -> Any:
        """Delete a view.

        The local default-view guard needs the loaded ``view``; without it the
        request is sent and the backend's VIEW_IS_DEFAULT rejection surfaces
        as ``HTTPError``.
        """
        if not view_validate.can_delete_view(view):
            raise ValidationError(
                "VIEW_IS_DEFAULT",
                "The default view cannot be deleted",
                "viewId",
                [issue("VIEW_IS_DEFAULT", "The default view cannot be deleted", "viewId")],
            )
        return await self._client.call(self._endpoint("deleteView", viewId=view_id))

    async def duplicate_view(self, view_id: str, name: str | None = None) -> Any:
        return await self._client.call(self._endpoint("duplicateView", viewId=view_id), json={"name": name})

    async def update_view_properties(
        self,
        view_id: str,
        updates: List[dict],
        frozen_config: dict | None = None,
    ) -> Any:
        errors = view_validate.validate_property_batch(updates)
        if errors:
            raise ValidationError.from_issues(errors)
        # must stay the last step before the call
        properties = frozen_policy.coerce_batch(updates, self._policy(frozen_config))
        return await self._client.call(
            self._endpoint("updateViewProperties", viewId=view_id),
            json={"properties": properties},
        )

    async def reorder_properties(self, view_id: str, property_ids: List[str], frozen_config: dict | None = None) -> Any:
        updates = [{"propertyId": pid, "order": idx} for idx, pid in enumerate(dict.fromkeys(property_ids))]
        return await self.update_view_properties(view_id, updates, frozen_config)

    async def update_property_visibility(
        self,
        view_id: str,
        property_id: str,
        visible: bool,
        frozen_config: dict | None = None,
    ) -> Any:
        if not visible:
            frozen_policy.assert_hideable(property_id, self._policy(frozen_config))
        return await self._client.call(
            self._endpoint("updatePropertyVisibility", viewId=view_id, propertyId=property_id),
            json={"visible": bool(visible)},
        )

    async def remove_view_property(self, view_id: str, property_id: str, frozen_config: dict | None = None) -> Any:
        frozen_policy.assert_hideable(property_id, self._policy(frozen_config))
        if route_for(self.module).property_scope == "view":
            # the view-scoped DELETE deletes the property itself; hide it instead
            return await self._client.call(
                self._endpoint("updatePropertyVisibility", viewId=view_id, propertyId=property_id),
                json={"visible": False},
            )
        return await self._client.call(self._endpoint("removeViewProperty", viewId=view_id, propertyId=property_id))

    async def update_view_filters(self, view_id: str, filters: List[dict], properties: List[dict]) -> Any:
        payload = filter_rules.serialize_filters(filters, properties)
        return await self._client.call(self._endpoint("updateViewFilters", viewId=view_id), json={"filters": payload})

    async def update_view_sorts(self, view_id: str, sorts: List[dict], properties: List[dict]) -> Any:
        payload = sort_rules.serialize_sorts(sorts, properties)
        return await self._client.call(self._endpoint("updateViewSorts", viewId=view_id), json={"sorts": payload})

    # properties

    async def list_properties(self) -> Any:
        return await self._client.call(self._endpoint("listProperties"))

    async def create_property(self, data: dict) -> Any:
        self._check_type(data.get("type"))
        return await self._client.call(self._endpoint("createProperty"), json=property_to_server(data))

    async def add_property(self, view_id: str | None, data: dict) -> Any:
        self._check_type(data.get("type"))
        endpoint = self._endpoint("addProperty", viewId=view_id)
        payload = property_to_server(data)
        if route_for(self.module).property_scope == "view":
            payload = {"property": payload}
        return await self._client.call(endpoint, json=payload)

    async def update_property(
        self,
        property_id: str,
        data: dict,
        view_id: str | None = None,
        frozen_config: dict | None = None,
    ) -> Any:
        policy = self._policy(frozen_config)
        frozen_policy.assert_editable(property_id, policy)
        if data.get("visible") is False:
            frozen_policy.assert_hideable(property_id, policy)
        if "type" in data:
            self._check_type(data.get("type"))
        return await self._client.call(
            self._endpoint("updateProperty", viewId=view_id, propertyId=property_id),
            json=property_to_server(data),
        )

    async def delete_property(self, property_id: str, view_id: str | None = None, frozen_config: dict | None = None) -> Any:
        frozen_policy.assert_removable(property_id, self._policy(frozen_config))
        return await self._client.call(self._endpoint("deleteProperty", viewId=view_id, propertyId=property_id))

    async def insert_property(
        self,
        property_id: str,
        position: str,
        name: str,
        property_type: str,
        view_id: str | None = None,
    ) -> Any:
        if position not in INSERT_POSITIONS:
            raise ValidationError("POSITION_INVALID", "position must be left or right", "position")
        self._check_type(property_type)
        payload = {"position": position, "name": name, "type": property_type}
        return await self._client.call(
            self._endpoint("insertProperty", viewId=view_id, propertyId=property_id),
            json=property_to_server(payload),
        )

    async def duplicate_property(self, property_id: str, view_id: str | None = None, name: str | None = None) -> Any:
        payload = {"name": name} if name else {}
        return await self._client.call(
            self._endpoint("duplicateProperty", viewId=view_id, propertyId=property_id),
            json=payload,
        )

    async def change_property_type(
        self,
        property_id: str,
        property_type: str,
        view_id: str | None = None,
        frozen_config: dict | None = None,
    ) -> Any:
        frozen_policy.assert_editable(property_id, self._policy(frozen_config))
        self._check_type(property_type)
        return await self._client.call(
            self._endpoint("changePropertyType", viewId=view_id, propertyId=property_id),
            json=property_to_server({"type": property_type}),
        )

    async def freeze_property(
        self,
        property_id: str,
        frozen: bool,
        reason: str | None = None,
        view_id: str | None = None,
        frozen_config: dict | None = None,
    ) -> Any:
        update = frozen_policy.coerce_batch([{"propertyId": property_id, "frozen": bool(frozen)}], self._policy(frozen_config))[0]
        if update["frozen"] != bool(frozen):
            logger.info("freeze_coerced module=%s property=%s requested=%s sent=%s", self.module, property_id, frozen, update["frozen"])
        payload = {"frozen": update["frozen"]}
        if reason:
            payload["reason"] = reason
        return await self._client.call(
            self._endpoint("freezeProperty", viewId=view_id, propertyId=property_id),
            json=payload,
        )
