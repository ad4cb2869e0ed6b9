import os
import sys
import unittest


ROOT = os.path.abspath(os.path.join(os.path.dirname(__file__), ".."))
SRC = os.path.join(ROOT, "src")
if ROOT not in sys.path:
    sys.path.insert(0, ROOT)
if SRC not in sys.path:
    sys.path.insert(0, SRC)

import frozen_policy
from docview.errors import ValidationError
from view_validate import (
    assert_view_valid,
    can_delete_view,
    default_view,
    validate_property_batch,
    validate_property_orders,
    validate_view,
)


PROPERTIES = [
    {"id": "title", "type": "TEXT", "order": 0},
    {"id": "status", "type": "SELECT", "order": 1, "options": ["todo", "done"]},
    {"id": "owner", "type": "PERSON", "order": 2},
]

CONFIG = frozen_policy.normalize_frozen_config(
    {
        "requiredProperties": ["title"],
        "frozenProperties": [{"propertyId": "owner", "allowHide": False}],
    }
)


class TestViewValidate(unittest.TestCase):
    def codes(self, view: dict) -> list:
        return [e["code"] for e in validate_view(view, PROPERTIES, CONFIG)]

    def test_valid_view(self) -> None:
        view = {
            "name": "Open",
            "type": "board",
            "visibleProperties": ["title", "owner"],
            "filters": [{"propertyId": "status", "operator": "equals", "value": "todo"}],
            "sorts": [{"propertyId": "title", "direction": "asc"}],
            "groupBy": "status",
        }
        self.assertEqual(self.codes(view), [])

    def test_name_and_type(self) -> None:
        self.assertEqual(self.codes({"name": " ", "type": "PIVOT"}), ["VIEW_NAME_REQUIRED", "VIEW_TYPE_INVALID"])

    def test_hidden_required_and_frozen(self) -> None:
        self.assertEqual(self.codes({"name": "x", "visibleProperties": ["status"]}), ["REQUIRED_HIDDEN", "FROZEN_HIDDEN"])

    def test_nested_rule_errors(self) -> None:
        view = {
            "name": "x",
            "filters": [{"propertyId": "status", "operator": "equals", "value": "later"}],
            "sorts": [{"propertyId": "ghost", "direction": "asc"}],
            "groupBy": "ghost",
        }
        self.assertEqual(self.codes(view), ["OPTION_INVALID", "PROPERTY_NOT_FOUND", "PROPERTY_NOT_FOUND"])

    def test_assert_raises_with_all_issues(self) -> None:
        with self.assertRaises(ValidationError) as ctx:
            assert_view_valid({"name": "", "type": "PIVOT"}, PROPERTIES, CONFIG)
        self.assertEqual(ctx.exception.code, "VIEW_NAME_REQUIRED")
        self.assertEqual(len(ctx.exception.issues), 2)

    def test_property_orders(self) -> None:
        self.assertEqual(validate_property_orders(PROPERTIES), [])
        errors = validate_property_orders(PROPERTIES + [{"id": "dup", "order": 1}])
        self.assertEqual([e["code"] for e in errors], ["ORDER_DUPLICATE"])

    def test_property_batch_shape(self) -> None:
        self.assertEqual(validate_property_batch([{"propertyId": "title", "order": 0}, {"id": "status", "visible": False}]), [])
        self.assertEqual([e["code"] for e in validate_property_batch(None)], ["PROPERTIES_INVALID"])
        errors = validate_property_batch(
            [
                1,
                {"propertyId": "", "order": 0},
                {"propertyId": "status", "order": True},
                {"propertyId": "title", "order": "2"},
                {"propertyId": "title", "order": 0},
            ]
        )
        self.assertEqual(
            [(e["code"], e["path"]) for e in errors],
            [
                ("PROPERTY_UPDATE_INVALID", "properties[0]"),
                ("PROPERTY_ID_REQUIRED", "properties[1].propertyId"),
                ("ORDER_INVALID", "properties[2].order"),
                ("ORDER_INVALID", "properties[3].order"),
                ("ORDER_DUPLICATE", "properties[4].order"),
            ],
        )

    def test_default_view_helpers(self) -> None:
        views = [{"id": "a"}, {"id": "b", "isDefault": True}]
        self.assertEqual(default_view(views)["id"], "b")
        self.assertEqual(default_view([{"id": "a"}])["id"], "a")
        self.assertIsNone(default_view([]))
        self.assertFalse(can_delete_view(views[1]))
        self.assertTrue(can_delete_view(views[0]))
        self.assertTrue(can_delete_view(None))


if __name__ == "__main__":
    unittest.main()
