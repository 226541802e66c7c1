"""
Variable form helpers.

Turns what a user types into values the compiler understands, according to
the kind inferred for each variable: free text for strings, a yes/no toggle
for booleans and a comma-separated list for arrays.
"""
from typing import Any, Iterable, Mapping, Optional

from .extractor import VariableDeclaration, VariableKind


TRUE_INPUTS = frozenset({"y", "yes", "true", "1", "x", "on"})


def default_value(declaration: VariableDeclaration) -> Any:
    """Empty value for a declaration's kind."""
    if declaration.kind is VariableKind.BOOLEAN:
        return False
    if declaration.kind is VariableKind.ARRAY:
        return []
    return ""


def parse_array_input(text: str) -> list[str]:
    """
    Split comma-separated input into list items.

    Items are stripped and empty items are dropped, so ``"a, b,,c "`` gives
    ``["a", "b", "c"]``.
    """
    return [item.strip() for item in text.split(",") if item.strip()]


def parse_boolean_input(text: str) -> bool:
    """Interpret a typed answer as a boolean toggle."""
    return text.strip().lower() in TRUE_INPUTS


def coerce_input(declaration: VariableDeclaration, raw: str) -> Any:
    """
    Convert raw typed input into a value for the given declaration.

    Args:
        declaration: The variable being filled in
        raw: Text typed by the user

    Returns:
        A bool, a list of strings or the text itself
    """
    if declaration.kind is VariableKind.BOOLEAN:
        return parse_boolean_input(raw)
    if declaration.kind is VariableKind.ARRAY:
        return parse_array_input(raw)
    return raw


def format_value(declaration: VariableDeclaration, value: Any) -> str:
    """Render a current value back into editable text."""
    if declaration.kind is VariableKind.BOOLEAN:
        return "yes" if value else "no"
    if declaration.kind is VariableKind.ARRAY:
        if isinstance(value, (list, tuple)):
            return ", ".join(str(item) for item in value)
        return str(value or "")
    return str(value or "")


def build_values(
    declarations: Iterable[VariableDeclaration],
    previous: Optional[Mapping[str, Any]] = None
) -> dict[str, Any]:
    """
    Build the starting values for a form.

    Args:
        declarations: Variables the template needs
        previous: Values from an earlier run, reused where the name still
            exists in the template

    Returns:
        One value per declaration, keyed by variable name
    """
    previous = previous or {}
    return {
        decl.name: previous[decl.name] if decl.name in previous else default_value(decl)
        for decl in declarations
    }


def parse_assignments(
    assignments: Iterable[str],
    declarations: Iterable[VariableDeclaration]
) -> dict[str, Any]:
    """
    Parse ``name=value`` pairs given on the command line.

    Values for declared variables are coerced by kind; names the template
    does not declare are kept as plain text.

    Args:
        assignments: Strings of the form ``name=value``
        declarations: Variables the template needs

    Returns:
        Parsed values keyed by name

    Raises:
        ValueError: If an assignment has no ``=`` or an empty name
    """
    by_name = {decl.name: decl for decl in declarations}
    values: dict[str, Any] = {}

    for assignment in assignments:
        name, sep, raw = assignment.partition("=")
        name = name.strip()
        if not sep or not name:
            raise ValueError(f"Invalid assignment '{assignment}', expected name=value")

        declaration = by_name.get(name)
        values[name] = coerce_input(declaration, raw) if declaration else raw

    return values
