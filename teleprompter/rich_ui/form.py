"""Interactive variable form using prompt_toolkit."""
from typing import Any, Callable, Iterable, Mapping, Optional

from prompt_toolkit import prompt
from prompt_toolkit.formatted_text import HTML

from ..template import VariableDeclaration, VariableKind, coerce_input
from ..template.form import format_value


def _label(declaration: VariableDeclaration) -> HTML:
    if declaration.kind is VariableKind.BOOLEAN:
        hint = "y/n"
    elif declaration.kind is VariableKind.ARRAY:
        hint = "comma-separated"
    else:
        hint = "text"
    return HTML(f"<ansicyan><b>{declaration.name}</b></ansicyan> <i>({hint})</i>: ")


def collect_values(
    declarations: Iterable[VariableDeclaration],
    values: Optional[Mapping[str, Any]] = None,
    ask: Callable[..., str] = prompt
) -> dict[str, Any]:
    """
    Ask the user for every variable that has no value yet.

    Args:
        declarations: Variables the template needs
        values: Values already known (from ``--set`` or a previous run)
        ask: Prompt function, called with a label and ``default=``

    Returns:
        The known values plus the ones collected
    """
    collected = dict(values or {})
    for declaration in declarations:
        if declaration.name in collected:
            continue
        raw = ask(_label(declaration), default=format_value(declaration, None))
        collected[declaration.name] = coerce_input(declaration, raw)
    return collected
