from __future__ import annotations

import unittest

from backend.app.code_generator import INVALID_TREE_CODE, generate_react_code
from backend.app.code_validator import check_syntax, validate_generated_code
from backend.app.tree_codec import default_tree

VALID_CODE = """function renderGeneratedUI(React, components) {
  const { Card } = components;
  return React.createElement(Card, { title: "Hi", body: "There" });
}"""


class CodeGeneratorTests(unittest.TestCase):
    def test_generated_code_passes_validation(self) -> None:
        code = generate_react_code(default_tree())
        self.assertTrue(code.startswith("function renderGeneratedUI(React, components) {"))
        self.assertIn('React.createElement("div", { className: "generated-page" }', code)
        self.assertIn("React.createElement(Navbar, {", code)
        result = validate_generated_code(code)
        self.assertTrue(result.valid, result.errors)

    def test_generation_is_deterministic(self) -> None:
        self.assertEqual(generate_react_code(default_tree()), generate_react_code(default_tree()))

    def test_missing_tree_renders_placeholder(self) -> None:
        self.assertEqual(generate_react_code(None), INVALID_TREE_CODE)


class CodeValidatorTests(unittest.TestCase):
    def test_accepts_minimal_valid_code(self) -> None:
        result = validate_generated_code(VALID_CODE)
        self.assertTrue(result.valid)
        self.assertEqual(result.error, "")

    def test_rejects_non_string(self) -> None:
        result = validate_generated_code(None)
        self.assertEqual(result.errors, ["Generated code must be a string."])

    def test_external_imports_and_ui_libraries(self) -> None:
        code = 'import { Button } from "@mui/material";\n' + VALID_CODE
        result = validate_generated_code(code)
        self.assertFalse(result.valid)
        self.assertIn("External UI libraries are not allowed.", result.errors)
        self.assertIn("External import is not allowed: @mui/material", result.errors)

    def test_blocked_tokens_styles_and_tailwind(self) -> None:
        code = VALID_CODE.replace(
            '{ title: "Hi", body: "There" }', '{ title: "Hi", body: "There", style: {}, className: "p-4 flex" }'
        ).replace("const { Card }", "fetch(url); const { Card }")
        result = validate_generated_code(code)
        self.assertIn("Blocked token in generated code: fetch(", result.errors)
        self.assertIn("Inline styles are not allowed.", result.errors)
        self.assertIn("Tailwind-like utility classes are not allowed.", result.errors)

    def test_unknown_component_usage(self) -> None:
        code = VALID_CODE.replace("React.createElement(Card", "React.createElement(Carousel")
        result = validate_generated_code(code)
        self.assertIn("Component not allowed: Carousel", result.errors)

    def test_missing_entry_point(self) -> None:
        result = validate_generated_code(VALID_CODE.replace("renderGeneratedUI", "render"))
        self.assertEqual(result.error, "Code must define renderGeneratedUI(React, components).")

    def test_syntax_errors_are_reported_with_line(self) -> None:
        self.assertEqual(check_syntax("function f() {\n  return (1;\n}"), "Unexpected '}' at line 3")
        self.assertEqual(check_syntax("function f() {\n  return 1;"), "Unclosed '{' at line 1")
        self.assertEqual(check_syntax('function f() { return "oops; }'), "Unterminated string literal at line 1")
        self.assertEqual(check_syntax("function f() { /* return 1; }"), "Unterminated comment at line 1")
        self.assertEqual(check_syntax("function f() { // return\n}"), "Missing return statement")
        self.assertIsNone(check_syntax("function f() { return \"}\"; }"))

    def test_regex_literals_are_not_strings(self) -> None:
        self.assertIsNone(check_syntax("function f(s) { return s.replace(/'/g, \"\").split(/[}\\/]/); }"))
        self.assertIsNone(check_syntax("function f(a) { const half = a / 2; return half / (a || 1); }"))
        self.assertEqual(
            check_syntax("function f(s) {\n  return s.match(/abc\n  );\n}"), "Unterminated regular expression at line 2"
        )

    def test_syntax_failure_is_prefixed(self) -> None:
        result = validate_generated_code(VALID_CODE[:-1])
        self.assertIn("Syntax validation failed: Unclosed '{' at line 1", result.errors)


if __name__ == "__main__":
    unittest.main()
