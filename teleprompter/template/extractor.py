"""
Variable extraction for teleprompter templates.

Works out which variables a template needs and what kind of input each one
takes, so a form can be built before the template is compiled.
"""
import logging
from dataclasses import dataclass
from enum import Enum
from typing import Optional

from ..constants import ELSE_KEYWORD, ITEM_ALIAS
from .lexer import Token, TokenKind, balance_tokens, tokenize


logger = logging.getLogger(__name__)


class VariableKind(Enum):
    """Input kind inferred for a template variable."""
    STRING = "string"
    BOOLEAN = "boolean"
    ARRAY = "array"


@dataclass(frozen=True)
class VariableDeclaration:
    """A distinct variable referenced by a template."""
    name: str
    kind: VariableKind

    def to_dict(self) -> dict:
        """Convert to a JSON-friendly dictionary."""
        return {"name": self.name, "kind": self.kind.value}


# Registration passes, in priority order. The first pass to claim a name
# decides its kind.
_PASSES = (
    (TokenKind.OPEN, "if", VariableKind.BOOLEAN),
    (TokenKind.OPEN, "unless", VariableKind.BOOLEAN),
    (TokenKind.OPEN, "each", VariableKind.ARRAY),
    (TokenKind.REFERENCE, None, VariableKind.STRING),
)


def _item_scopes(tokens: list[Token]) -> list[bool]:
    """
    Mark which tokens sit inside the body of an ``#each`` block.

    Only paired blocks count. An ``#each`` opener is outside its own body
    and the ``{{else}}`` branch of an ``#each`` is rendered without an item.
    """
    scopes: list[bool] = []
    # One [keyword, in_else] entry per open block
    blocks: list[list] = []

    for token in balance_tokens(tokens):
        scopes.append(any(keyword == "each" and not in_else for keyword, in_else in blocks))

        if token.kind is TokenKind.OPEN:
            blocks.append([token.keyword, False])
        elif token.kind is TokenKind.CLOSE:
            blocks.pop()
        elif token.kind is TokenKind.ELSE and blocks and not blocks[-1][1]:
            blocks[-1][1] = True

    return scopes


def _variable_name(path: str, in_item_scope: bool) -> Optional[str]:
    if path.startswith("@") or path == ELSE_KEYWORD:
        return None

    root, _, rest = path.partition(".")
    if root != ITEM_ALIAS:
        return path
    if in_item_scope or not rest:
        return None
    return rest


def _matches(token: Token, kind: TokenKind, keyword) -> bool:
    return token.kind is kind and token.keyword == keyword


def extract_variables(template: str) -> list[VariableDeclaration]:
    """
    Extract the variables a template requires.

    Names are claimed pass by pass: ``#if`` targets, then ``#unless`` targets
    (both boolean), then ``#each`` targets (arrays), then plain references
    (strings). A name keeps the kind of the first pass that claimed it, and
    the result lists names in the order they were claimed.

    ``this`` and ``this.field`` inside an ``#each`` body refer to the current
    item and are not variables. Outside one, ``this.field`` reads the root
    value map and declares ``field``.

    Args:
        template: Template source text

    Returns:
        One declaration per distinct variable name
    """
    tokens = tokenize(template)
    scopes = _item_scopes(tokens)
    registry: dict[str, VariableDeclaration] = {}

    for token_kind, keyword, var_kind in _PASSES:
        for token, in_item_scope in zip(tokens, scopes):
            if not _matches(token, token_kind, keyword):
                continue
            name = _variable_name(token.path, in_item_scope)
            if name is None:
                continue

            existing = registry.get(name)
            if existing is None:
                registry[name] = VariableDeclaration(name, var_kind)
            elif existing.kind is VariableKind.BOOLEAN and var_kind is VariableKind.ARRAY:
                logger.warning(
                    f"Variable '{name}' is used both as a condition and as "
                    f"an #each target; it is treated as boolean and will not iterate"
                )

    return list(registry.values())
