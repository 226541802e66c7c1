"""
Template compiler for teleprompter.

Renders template text against a value map. Supported constructs:

- ``{{name}}`` / ``{{{name}}}``: substitution, dot-paths allowed
- ``{{#if name}}...{{else}}...{{/if}}``: conditional
- ``{{#unless name}}...{{else}}...{{/unless}}``: negated conditional
- ``{{#each name}}...{{else}}...{{/each}}``: iteration, with ``{{this}}``,
  ``{{this.field}}``, ``{{@index}}``, ``{{@first}}`` and ``{{@last}}``
  available inside the body
- ``{{! comment }}`` / ``{{!-- comment --}}``: dropped

Rendering never fails. Missing values render as empty text, are falsy in
conditionals and iterate zero times. Tags that cannot be paired or are not
recognized are emitted as literal text.
"""
from dataclasses import dataclass, field
from typing import Any, Iterator, Mapping, Optional, Union

from ..constants import ITEM_ALIAS
from .lexer import TokenKind, balance_tokens, tokenize
from .values import (
    MISSING,
    BoolValue,
    NumberValue,
    Value,
    is_truthy,
    iterate,
    resolve_path,
    to_text,
    walk,
)


@dataclass
class TextNode:
    """Literal output."""
    text: str


@dataclass
class ReferenceNode:
    """A value substitution."""
    path: str


@dataclass
class BlockNode:
    """An ``if``/``unless``/``each`` block with an optional else branch."""
    keyword: str
    path: str
    body: list = field(default_factory=list)
    alternative: list = field(default_factory=list)


Node = Union[TextNode, ReferenceNode, BlockNode]


@dataclass(frozen=True)
class _Frame:
    """Iteration state of the innermost ``#each`` block."""
    item: Value
    index: int
    first: bool
    last: bool


def parse_template(template: str) -> list[Node]:
    """
    Parse template text into a node tree.

    Args:
        template: Template source text

    Returns:
        Top-level nodes
    """
    root: list[Node] = []
    branches: list[list] = [root]
    blocks: list[BlockNode] = []

    for token in balance_tokens(tokenize(template)):
        current = branches[-1]

        if token.kind is TokenKind.TEXT:
            current.append(TextNode(token.raw))
        elif token.kind is TokenKind.REFERENCE:
            current.append(ReferenceNode(token.path))
        elif token.kind is TokenKind.OPEN:
            block = BlockNode(token.keyword, token.path)
            current.append(block)
            blocks.append(block)
            branches.append(block.body)
        elif token.kind is TokenKind.ELSE:
            if blocks and current is blocks[-1].body:
                branches[-1] = blocks[-1].alternative
            else:
                current.append(TextNode(token.raw))
        elif token.kind is TokenKind.CLOSE:
            blocks.pop()
            branches.pop()

    return root


class CompiledTemplate:
    """
    A parsed template that can be rendered many times.

    Useful for live previews, where the same template is rendered again on
    every change to the values.
    """

    def __init__(self, source: str) -> None:
        """
        Parse a template.

        Args:
            source: Template source text
        """
        self._source = source
        self._nodes = parse_template(source)

    @property
    def source(self) -> str:
        """The template source text."""
        return self._source

    def render(self, values: Optional[Mapping[str, Any]] = None) -> str:
        """
        Render the template.

        Blocks are rendered from an explicit stack of node iterators, so
        nesting depth is not limited by the interpreter's recursion limit.

        Args:
            values: Variable values, keyed by name or nested by path

        Returns:
            The rendered text
        """
        values = values or {}
        parts: list[str] = []
        stack: list[tuple[Iterator[Node], Optional[_Frame]]] = [(iter(self._nodes), None)]

        while stack:
            nodes, frame = stack[-1]
            node = next(nodes, None)

            if node is None:
                stack.pop()
            elif isinstance(node, TextNode):
                parts.append(node.text)
            elif isinstance(node, ReferenceNode):
                parts.append(to_text(self._lookup(node.path, values, frame)))
            else:
                for branch, branch_frame in reversed(self._select(node, values, frame)):
                    stack.append((iter(branch), branch_frame))

        return "".join(parts)

    def _lookup(
        self,
        path: str,
        values: Mapping[str, Any],
        frame: Optional[_Frame]
    ) -> Value:
        if path.startswith("@"):
            if frame is None:
                return MISSING
            if path == "@index":
                return NumberValue(frame.index)
            if path == "@first":
                return BoolValue(frame.first)
            return BoolValue(frame.last)

        root, _, rest = path.partition(".")
        if root == ITEM_ALIAS:
            if frame is not None:
                return walk(frame.item, rest.split(".") if rest else [])
            # Outside #each, this.name reads the root value map
            return resolve_path(values, rest) if rest else MISSING

        return resolve_path(values, path)

    def _select(
        self,
        block: BlockNode,
        values: Mapping[str, Any],
        frame: Optional[_Frame]
    ) -> list[tuple[list, Optional[_Frame]]]:
        """Return the branches a block renders, in output order."""
        value = self._lookup(block.path, values, frame)

        if block.keyword == "each":
            items = iterate(value)
            if not items:
                return [(block.alternative, frame)]
            last = len(items) - 1
            return [
                (block.body, _Frame(item, index, index == 0, index == last))
                for index, item in enumerate(items)
            ]

        selected = is_truthy(value)
        if block.keyword == "unless":
            selected = not selected

        return [(block.body if selected else block.alternative, frame)]


def compile_template(template: str, values: Optional[Mapping[str, Any]] = None) -> str:
    """
    Compile a template with the given values.

    Args:
        template: Template source text
        values: Variable values

    Returns:
        The rendered text
    """
    return CompiledTemplate(template).render(values)
