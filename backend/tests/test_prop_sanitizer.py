from __future__ import annotations

import unittest

from backend.app.component_catalog import infer_components, sanitize_props
from backend.app.prop_sanitizer import clean_string_list, clean_table_rows


class PropSanitizerTests(unittest.TestCase):
    def test_unknown_keys_are_dropped(self) -> None:
        props = sanitize_props("Card", {"title": " Hello ", "body": "World", "style": {"color": "red"}})
        self.assertEqual(props, {"title": "Hello", "body": "World"})

    def test_button_variant_is_restricted(self) -> None:
        self.assertEqual(sanitize_props("Button", {"label": "Go", "variant": "Danger"}), {"label": "Go"})
        self.assertEqual(sanitize_props("Button", {"label": 7, "variant": "SECONDARY"}), {"label": "7", "variant": "secondary"})

    def test_string_lists_accept_csv_and_labelled_objects(self) -> None:
        self.assertEqual(clean_string_list("Home, Reports ,"), ["Home", "Reports"])
        self.assertEqual(clean_string_list([{"label": "A"}, {"name": "B"}, {"other": "C"}, 3]), ["A", "B", "3"])

    def test_table_rows_from_objects_derive_columns(self) -> None:
        props = sanitize_props("Table", {"rows": [{"Name": "Ana", "Role": "Dev"}, {"name": "Ben"}]})
        self.assertEqual(props["columns"], ["Name", "Role"])
        self.assertEqual(props["rows"], [["Ana", "Dev"], ["Ben", ""]])

    def test_table_rows_use_existing_columns(self) -> None:
        props = sanitize_props("Table", {"rows": [["a", "b", "c"], [1, True]]}, {"columns": ["X", "Y"]})
        self.assertEqual(props, {"rows": [["a", "b"], ["1", "true"]]})

    def test_clean_table_rows_rejects_non_list(self) -> None:
        self.assertEqual(clean_table_rows("nope", ["A"]), (None, None))

    def test_chart_pairs_are_split_into_points_and_labels(self) -> None:
        props = sanitize_props("Chart", {"points": [{"label": "Q1", "value": "10"}, {"value": 5}, {"value": "x"}]})
        self.assertEqual(props, {"points": [10, 5], "labels": ["Q1", "2"]})

    def test_chart_lengths_are_truncated_together(self) -> None:
        props = sanitize_props("Chart", {"points": [1, 2, 3], "labels": ["a", "b"]})
        self.assertEqual(props, {"points": [1, 2], "labels": ["a", "b"]})

    def test_chart_points_reuse_existing_labels(self) -> None:
        props = sanitize_props("Chart", {"points": [4, 5, 6]}, {"labels": ["a", "b"], "points": [1, 2]})
        self.assertEqual(props, {"points": [4, 5], "labels": ["a", "b"]})

    def test_modal_open_accepts_string_booleans(self) -> None:
        self.assertEqual(sanitize_props("Modal", {"open": "no"}), {"open": False})

    def test_non_dict_payload_yields_nothing(self) -> None:
        self.assertEqual(sanitize_props("Card", ["title"]), {})
        self.assertEqual(sanitize_props("Carousel", {"title": "x"}), {})

    def test_component_inference_follows_priority(self) -> None:
        self.assertEqual(infer_components("a chart, a modal and a form"), ["Modal", "Input", "Chart"])
        self.assertEqual(infer_components("something vague"), ["Card"])
        self.assertEqual(infer_components("something vague", allow_fallback=False), [])


if __name__ == "__main__":
    unittest.main()
