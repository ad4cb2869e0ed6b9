import os
import sys
import unittest


ROOT = os.path.abspath(os.path.join(os.path.dirname(__file__), ".."))
SRC = os.path.join(ROOT, "src")
if ROOT not in sys.path:
    sys.path.insert(0, ROOT)
if SRC not in sys.path:
    sys.path.insert(0, SRC)

import httpx

import app.main as main
import frozen_policy
from app.api_client import ApiClient
from app.view_service import DocumentViewService
from docview.errors import HTTPError, NotFoundError, ValidationError


class ServiceTestCase(unittest.IsolatedAsyncioTestCase):
    module = "tasks"

    async def asyncSetUp(self) -> None:
        main.store.reset()
        self.client = ApiClient(base_url="http://testserver", transport=httpx.ASGITransport(app=main.app))
        self.views = DocumentViewService(self.module, self.client)

    async def asyncTearDown(self) -> None:
        await self.client.aclose()


class TestViews(ServiceTestCase):
    async def test_config_and_policy(self) -> None:
        config = await self.views.get_config()
        self.assertEqual(config["requiredProperties"], ["title"])
        policy = await self.views.load_frozen_config()
        self.assertEqual(policy["requiredProperties"], {"title"})
        self.assertFalse(policy["frozenProperties"]["title"]["allowDelete"])

    async def test_default_view(self) -> None:
        view = await self.views.default_view()
        self.assertEqual(view["id"], "all-tasks")
        self.assertTrue(view["isDefault"])

    async def test_create_view_keeps_required_visible(self) -> None:
        properties = await self.views.list_properties()
        policy = await self.views.load_frozen_config()
        view = await self.views.create_view(
            {"name": "Board", "type": "BOARD", "visibleProperties": ["status"], "groupBy": "status"},
            properties=properties,
            frozen_config=policy,
        )
        self.assertEqual(view["visibleProperties"], ["status", "title"])
        self.assertEqual(view["groupBy"], "status")
        fetched = await self.views.get_view(view["id"])
        self.assertEqual(fetched["name"], "Board")

    async def test_invalid_view_is_rejected_before_sending(self) -> None:
        properties = await self.views.list_properties()
        with self.assertRaises(ValidationError) as ctx:
            await self.views.create_view(
                {"name": "Bad", "filters": [{"propertyId": "status", "operator": "equals", "value": "later"}]},
                properties=properties,
            )
        self.assertEqual(ctx.exception.code, "OPTION_INVALID")
        self.assertEqual(len(await self.views.list_views()), 1)

    async def test_server_rejects_invalid_filters(self) -> None:
        view = await self.views.default_view()
        with self.assertRaises(HTTPError) as ctx:
            await self.client.request(
                "PATCH",
                f"/document-views/tasks/views/{view['id']}/filters",
                json={"filters": [{"propertyId": "ghost", "operator": "contains", "value": "x"}]},
            )
        self.assertEqual(ctx.exception.status_code, 400)
        self.assertEqual(ctx.exception.code, "PROPERTY_NOT_FOUND")

    async def test_update_and_duplicate_view(self) -> None:
        view = await self.views.update_view("all-tasks", {"name": "Everything"})
        self.assertEqual(view["name"], "Everything")
        copy = await self.views.duplicate_view("all-tasks", name="Mine")
        self.assertEqual(copy["name"], "Mine")
        self.assertFalse(copy["isDefault"])
        await self.views.delete_view(copy["id"], view=copy)
        self.assertEqual([v["id"] for v in await self.views.list_views()], ["all-tasks"])

    async def test_default_view_cannot_be_deleted(self) -> None:
        view = await self.views.default_view()
        with self.assertRaises(ValidationError) as ctx:
            await self.views.delete_view(view["id"], view=view)
        self.assertEqual(ctx.exception.code, "VIEW_IS_DEFAULT")
        with self.assertRaises(HTTPError) as ctx:
            await self.views.delete_view(view["id"])
        self.assertEqual(ctx.exception.status_code, 403)
        self.assertEqual(ctx.exception.code, "VIEW_IS_DEFAULT")

    async def test_missing_view(self) -> None:
        with self.assertRaises(HTTPError) as ctx:
            await self.views.get_view("nope")
        self.assertEqual(ctx.exception.status_code, 404)
        self.assertEqual(ctx.exception.code, "VIEW_NOT_FOUND")

    async def test_filters_and_sorts_are_stored(self) -> None:
        properties = await self.views.list_properties()
        filters = [
            {"propertyId": "status", "operator": "equals", "value": "todo"},
            {"propertyId": "title", "operator": "is_not_empty", "value": "", "combinator": "OR"},
        ]
        view = await self.views.update_view_filters("all-tasks", filters, properties)
        self.assertEqual(
            view["filters"],
            [
                {"propertyId": "status", "operator": "equals", "value": "todo"},
                {"propertyId": "title", "operator": "is_not_empty", "combinator": "or"},
            ],
        )
        view = await self.views.update_view_sorts("all-tasks", [{"propertyId": "title", "direction": "desc"}], properties)
        self.assertEqual(view["sorts"], [{"propertyId": "title", "direction": "desc"}])


class TestViewProperties(ServiceTestCase):
    async def test_batch_update_is_coerced(self) -> None:
        policy = await self.views.load_frozen_config()
        view = await self.views.update_view_properties(
            "all-tasks",
            [{"propertyId": "title", "visible": False}, {"propertyId": "status", "visible": False}],
            frozen_config=policy,
        )
        self.assertEqual(view["visibleProperties"], ["title"])

    async def test_duplicate_orders_are_rejected(self) -> None:
        with self.assertRaises(ValidationError) as ctx:
            await self.views.update_view_properties(
                "all-tasks", [{"propertyId": "title", "order": 1}, {"propertyId": "status", "order": 1}]
            )
        self.assertEqual(ctx.exception.code, "ORDER_DUPLICATE")

    async def test_malformed_batches_are_rejected_before_sending(self) -> None:
        with self.assertRaises(ValidationError) as ctx:
            await self.views.update_view_properties("all-tasks", [1])
        self.assertEqual(ctx.exception.code, "PROPERTY_UPDATE_INVALID")
        with self.assertRaises(ValidationError) as ctx:
            await self.views.update_view_properties("all-tasks", [{"propertyId": "status", "order": [1]}])
        self.assertEqual(ctx.exception.code, "ORDER_INVALID")
        with self.assertRaises(ValidationError) as ctx:
            await self.views.update_view_properties("all-tasks", "status")
        self.assertEqual(ctx.exception.code, "PROPERTIES_INVALID")

    async def test_reorder(self) -> None:
        await self.views.reorder_properties("all-tasks", ["status", "title"])
        properties = await self.views.list_properties()
        self.assertEqual([p["id"] for p in properties], ["status", "title"])

    async def test_visibility(self) -> None:
        policy = await self.views.load_frozen_config()
        with self.assertRaises(ValidationError) as ctx:
            await self.views.update_property_visibility("all-tasks", "title", False, frozen_config=policy)
        self.assertEqual(ctx.exception.code, "PROPERTY_REQUIRED")
        view = await self.views.update_property_visibility("all-tasks", "status", False, frozen_config=policy)
        self.assertNotIn("status", view["visibleProperties"])
        view = await self.views.update_property_visibility("all-tasks", "status", True)
        self.assertIn("status", view["visibleProperties"])

    async def test_remove_view_property_keeps_property(self) -> None:
        view = await self.views.remove_view_property("all-tasks", "status")
        self.assertNotIn("status", view["visibleProperties"])
        self.assertIn("status", [p["id"] for p in await self.views.list_properties()])

    async def test_server_blocks_hiding_required(self) -> None:
        with self.assertRaises(HTTPError) as ctx:
            await self.views.remove_view_property("all-tasks", "title")
        self.assertEqual(ctx.exception.status_code, 403)
        self.assertEqual(ctx.exception.code, "PROPERTY_REQUIRED")


class TestProperties(ServiceTestCase):
    async def test_create_select_property(self) -> None:
        prop = await self.views.create_property(
            {"name": "Tags", "type": "MULTI_SELECT", "selectOptions": [{"label": "Red"}, "blue"]}
        )
        self.assertEqual(prop["type"], "MULTI_SELECT")
        self.assertEqual([o["id"] for o in prop["options"]], ["red", "blue"])
        view = await self.views.get_view("all-tasks")
        self.assertIn(prop["id"], view["visibleProperties"])

    async def test_unknown_type_is_rejected(self) -> None:
        with self.assertRaises(ValidationError) as ctx:
            await self.views.create_property({"name": "X", "type": "HOLOGRAM"})
        self.assertEqual(ctx.exception.code, "PROPERTY_TYPE_INVALID")

    async def test_update_property(self) -> None:
        prop = await self.views.update_property("status", {"name": "Stage", "options": ["a", "b"]})
        self.assertEqual(prop["name"], "Stage")
        self.assertEqual([o["id"] for o in prop["options"]], ["a", "b"])

    async def test_delete_required_property(self) -> None:
        policy = await self.views.load_frozen_config()
        with self.assertRaises(ValidationError) as ctx:
            await self.views.delete_property("title", frozen_config=policy)
        self.assertEqual(ctx.exception.code, "PROPERTY_REQUIRED")
        with self.assertRaises(HTTPError) as ctx:
            await self.views.delete_property("title")
        self.assertEqual(ctx.exception.status_code, 403)

    async def test_delete_property_cleans_views(self) -> None:
        properties = await self.views.list_properties()
        await self.views.update_view_sorts("all-tasks", [{"propertyId": "status", "direction": "asc"}], properties)
        self.assertIsNone(await self.views.delete_property("status"))
        view = await self.views.get_view("all-tasks")
        self.assertEqual(view["sorts"], [])
        self.assertNotIn("status", view["visibleProperties"])

    async def test_insert_property(self) -> None:
        prop = await self.views.insert_property("title", "right", "Points", "NUMBER")
        self.assertEqual(prop["type"], "NUMBER")
        properties = await self.views.list_properties()
        self.assertEqual([p["id"] for p in properties], ["title", prop["id"], "status"])
        with self.assertRaises(ValidationError):
            await self.views.insert_property("title", "above", "Nope", "TEXT")

    async def test_duplicate_property(self) -> None:
        prop = await self.views.duplicate_property("status")
        self.assertEqual(prop["name"], "Status (copy)")
        self.assertEqual(prop["type"], "SELECT")
        self.assertEqual(len(prop["options"]), 3)
        self.assertFalse(prop["required"])

    async def test_change_property_type(self) -> None:
        prop = await self.views.change_property_type("status", "TEXT")
        self.assertEqual(prop["type"], "TEXT")
        self.assertEqual(prop["options"], [])

    async def test_freeze_is_coerced_by_policy(self) -> None:
        policy = await self.views.load_frozen_config()
        with self.assertLogs("docview.views", level="INFO"):
            prop = await self.views.freeze_property("title", False, frozen_config=policy)
        self.assertTrue(prop["frozen"])
        prop = await self.views.freeze_property("status", True, reason="Pinned", frozen_config=policy)
        self.assertTrue(prop["frozen"])


class TestPeopleProperties(ServiceTestCase):
    module = "people"

    async def test_add_property_goes_through_default_view(self) -> None:
        prop = await self.views.add_property(None, {"name": "Phone", "type": "PHONE"})
        self.assertEqual(prop["type"], "PHONE")
        view = await self.views.get_view("all-people")
        self.assertIn(prop["id"], view["visibleProperties"])

    async def test_change_type_uses_view_route(self) -> None:
        prop = await self.views.change_property_type("status", "TEXT")
        self.assertEqual(prop["type"], "TEXT")

    async def test_delete_through_view_route_deletes_property(self) -> None:
        await self.views.delete_property("status")
        self.assertEqual([p["id"] for p in await self.views.list_properties()], ["title"])

    async def test_remove_from_view_only_hides(self) -> None:
        record = main.store.create_record("people", {"title": "Ada", "status": "todo"})
        view = await self.views.remove_view_property("all-people", "status")
        self.assertNotIn("status", view["visibleProperties"])
        self.assertEqual([p["id"] for p in await self.views.list_properties()], ["title", "status"])
        self.assertEqual(main.store.get_record("people", record["id"])["properties"]["status"], "todo")

    async def test_remove_from_view_when_delete_is_not_allowed(self) -> None:
        policy = frozen_policy.normalize_frozen_config(
            {"frozenProperties": [{"propertyId": "status", "allowHide": True, "allowDelete": False}]}
        )
        view = await self.views.remove_view_property("all-people", "status", frozen_config=policy)
        self.assertNotIn("status", view["visibleProperties"])
        self.assertIn("status", [p["id"] for p in await self.views.list_properties()])
        with self.assertRaises(ValidationError):
            await self.views.delete_property("status", frozen_config=policy)


class TestBooksAndDatabases(ServiceTestCase):
    async def test_books_base_path(self) -> None:
        books = DocumentViewService("books", self.client)
        view = await books.default_view()
        self.assertEqual(view["id"], "all-books")

    async def test_databases_flat_routes(self) -> None:
        databases = DocumentViewService("databases", self.client)
        view = await databases.default_view()
        self.assertEqual(view["id"], "all-databases")
        properties = await databases.list_properties()
        self.assertEqual([p["id"] for p in properties], ["title", "status"])

    async def test_no_views_means_no_default(self) -> None:
        def handler(request: httpx.Request) -> httpx.Response:
            return httpx.Response(200, json={"success": True, "data": []})

        async with ApiClient(base_url="http://api.test", transport=httpx.MockTransport(handler)) as client:
            with self.assertRaises(NotFoundError) as ctx:
                await DocumentViewService("goals", client).default_view()
        self.assertEqual(ctx.exception.code, "VIEW_NOT_FOUND")


if __name__ == "__main__":
    unittest.main()
