from __future__ import annotations

import unittest

from backend.app.models import PropIssue, TreeValidationResult
from backend.app.validation_feedback import build_validation_feedback, normalize_errors


class ValidationFeedbackTests(unittest.TestCase):
    def test_prop_issue_is_formatted(self) -> None:
        feedback = build_validation_feedback([PropIssue(component="Card", prop="title", issue="Missing required prop")])
        self.assertEqual(feedback.what_went_wrong, "Card: title - Missing required prop")
        self.assertEqual(feedback.rule_violated, "All required component props must be present.")
        self.assertTrue(feedback.how_to_fix.startswith("Specify valid component props clearly"))

    def test_code_errors_map_to_rules(self) -> None:
        feedback = build_validation_feedback(["External import is not allowed: antd", "Inline styles are not allowed."])
        self.assertEqual(feedback.rule_violated, "External UI libraries are not allowed.")
        self.assertEqual(len(feedback.details), 2)

    def test_syntax_error_fix(self) -> None:
        feedback = build_validation_feedback("Syntax validation failed: Missing return statement")
        self.assertEqual(feedback.rule_violated, "Generated React code must be syntactically valid.")
        self.assertIn("renderGeneratedUI", feedback.how_to_fix)

    def test_unknown_errors_use_defaults(self) -> None:
        feedback = build_validation_feedback([])
        self.assertEqual(feedback.what_went_wrong, "Unknown validation error.")
        self.assertEqual(feedback.rule_violated, "Validation rules for deterministic generation were violated.")

    def test_result_objects_are_unwrapped(self) -> None:
        result = TreeValidationResult(
            valid=False, errors=[PropIssue(component="Chart", prop="component", issue="Component is not in registry")]
        )
        self.assertEqual(normalize_errors(result), ["Chart: component - Component is not in registry"])
        self.assertEqual(
            build_validation_feedback(result).rule_violated, "Only approved components can be used."
        )


if __name__ == "__main__":
    unittest.main()
