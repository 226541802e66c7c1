"""
Template lexer for teleprompter.

Splits template text into a flat token stream in a single pass. Everything
between tags is literal text; each ``{{...}}`` tag is classified as a block
opener, a block closer, an ``else`` marker, a value reference, a comment, or
(when it is none of those) literal text that passes through unchanged.
"""
import re
from dataclasses import dataclass
from enum import Enum
from typing import Optional

from ..constants import ELSE_KEYWORD


PATH_PATTERN = r"[A-Za-z_][A-Za-z0-9_]*(?:\.[A-Za-z_][A-Za-z0-9_]*)*"

BLOCK_KEYWORDS = ("if", "unless", "each")

_TAG_RE = re.compile(
    r"\{\{!--.*?--\}\}"
    r"|\{\{\{(?P<triple>[^{}]*)\}\}\}"
    r"|\{\{(?P<double>[^{}]*)\}\}",
    re.DOTALL,
)
_OPEN_RE = re.compile(rf"#(if|unless|each)\s+({PATH_PATTERN}|@(?:index|first|last))")
_CLOSE_RE = re.compile(r"/(if|unless|each)")
_PATH_RE = re.compile(PATH_PATTERN)
_DATA_RE = re.compile(r"@(index|first|last)")


class TokenKind(Enum):
    """Kinds of template tokens."""
    TEXT = "text"
    OPEN = "open"
    CLOSE = "close"
    ELSE = "else"
    REFERENCE = "reference"
    COMMENT = "comment"


@dataclass(frozen=True)
class Token:
    """A single lexed template fragment.

    Attributes:
        kind: What the fragment is.
        raw: The exact source text of the fragment.
        start: Offset of the fragment in the template.
        keyword: Block keyword (``if``, ``unless``, ``each``) for openers
            and closers.
        path: Referenced name for openers and references. Data references
            keep their ``@`` prefix (``@index``).
    """
    kind: TokenKind
    raw: str
    start: int = 0
    keyword: Optional[str] = None
    path: Optional[str] = None

    def as_text(self) -> 'Token':
        """Return this fragment demoted to literal text."""
        return Token(kind=TokenKind.TEXT, raw=self.raw, start=self.start)


def _classify(raw: str, inner: str, start: int, triple: bool) -> Token:
    body = inner.strip()

    if triple:
        if _PATH_RE.fullmatch(body):
            return Token(TokenKind.REFERENCE, raw, start, path=body)
        return Token(TokenKind.TEXT, raw, start)

    if body.startswith("!"):
        return Token(TokenKind.COMMENT, raw, start)

    match = _OPEN_RE.fullmatch(body)
    if match:
        return Token(
            TokenKind.OPEN, raw, start,
            keyword=match.group(1), path=match.group(2)
        )

    match = _CLOSE_RE.fullmatch(body)
    if match:
        return Token(TokenKind.CLOSE, raw, start, keyword=match.group(1))

    if body == ELSE_KEYWORD:
        return Token(TokenKind.ELSE, raw, start)

    if _PATH_RE.fullmatch(body) or _DATA_RE.fullmatch(body):
        return Token(TokenKind.REFERENCE, raw, start, path=body)

    return Token(TokenKind.TEXT, raw, start)


def tokenize(template: str) -> list[Token]:
    """
    Split a template into tokens.

    Never raises: fragments that are not recognized tags come back as
    ``TEXT`` tokens carrying their source text verbatim, so joining the
    ``raw`` of every token reproduces the template exactly.

    Args:
        template: Template source text

    Returns:
        Tokens in document order
    """
    tokens: list[Token] = []
    position = 0

    for match in _TAG_RE.finditer(template):
        if match.start() > position:
            tokens.append(Token(
                TokenKind.TEXT, template[position:match.start()], position
            ))

        raw = match.group(0)
        if match.group("triple") is not None:
            tokens.append(_classify(raw, match.group("triple"), match.start(), True))
        elif match.group("double") is not None:
            tokens.append(_classify(raw, match.group("double"), match.start(), False))
        else:
            tokens.append(Token(TokenKind.COMMENT, raw, match.start()))

        position = match.end()

    if position < len(template):
        tokens.append(Token(TokenKind.TEXT, template[position:], position))

    return tokens


def balance_tokens(tokens: list[Token]) -> list[Token]:
    """
    Pair block openers with closers.

    A closer pairs with the nearest open block of the same keyword; openers
    left open in between, closers with no partner and openers never closed
    are demoted to literal text. The result has one token per input token.

    Args:
        tokens: Tokens from ``tokenize``

    Returns:
        Tokens in document order with unpaired block tags demoted
    """
    balanced = list(tokens)
    open_blocks: list[int] = []

    for index, token in enumerate(balanced):
        if token.kind is TokenKind.OPEN:
            open_blocks.append(index)
        elif token.kind is TokenKind.CLOSE:
            depth = None
            for position in range(len(open_blocks) - 1, -1, -1):
                if balanced[open_blocks[position]].keyword == token.keyword:
                    depth = position
                    break

            if depth is None:
                balanced[index] = token.as_text()
                continue

            for unclosed in open_blocks[depth + 1:]:
                balanced[unclosed] = balanced[unclosed].as_text()
            del open_blocks[depth:]

    for unclosed in open_blocks:
        balanced[unclosed] = balanced[unclosed].as_text()

    return balanced
