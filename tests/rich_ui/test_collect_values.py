"""
Tests for the interactive variable form.
"""

import allure

from teleprompter.rich_ui import collect_values
from teleprompter.template import VariableDeclaration, VariableKind


DECLARATIONS = [
    VariableDeclaration("formal", VariableKind.BOOLEAN),
    VariableDeclaration("tags", VariableKind.ARRAY),
    VariableDeclaration("name", VariableKind.STRING),
]


@allure.feature("Variable Form")
@allure.story("Interactive collection")
@allure.severity(allure.severity_level.NORMAL)
def test_asks_only_for_missing_values():
    """Known values are kept; missing ones are asked for and coerced by kind."""
    answers = {"formal": "y", "tags": "a, b"}
    asked = []

    def ask(label, default=""):
        name = next(n for n in answers if n in label.value)
        asked.append((name, default))
        return answers[name]

    values = collect_values(DECLARATIONS, {"name": "Ada"}, ask=ask)

    assert values == {"name": "Ada", "formal": True, "tags": ["a", "b"]}
    assert asked == [("formal", "no"), ("tags", "")]


@allure.feature("Variable Form")
@allure.story("Interactive collection")
@allure.severity(allure.severity_level.MINOR)
def test_nothing_to_ask():
    """With every value known the prompt is never shown."""
    def ask(label, default=""):
        raise AssertionError("should not ask")

    known = {"formal": False, "tags": [], "name": ""}

    assert collect_values(DECLARATIONS, known, ask=ask) == known
