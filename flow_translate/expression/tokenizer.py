"""
Lexing of expression bodies and splitting of parameter strings into blocks.

Block boundaries are found by scanning, not by regular expressions, so that
quoted strings containing ``}}`` and several blocks in one string are
handled correctly.
"""

from dataclasses import dataclass

from flow_translate.exceptions import ExpressionParseError
from flow_translate.expression.dialects import FLOW_GRAPH, NODE_GRAPH

# Token kinds
STRING = "STRING"
NUMBER = "NUMBER"
IDENT = "IDENT"
DOT = "DOT"
COMMA = "COMMA"
PLUS = "PLUS"
MINUS = "MINUS"
LPAREN = "LPAREN"
RPAREN = "RPAREN"
LBRACKET = "LBRACKET"
RBRACKET = "RBRACKET"
EOF = "EOF"

_PUNCTUATION = {
    ".": DOT,
    ",": COMMA,
    "+": PLUS,
    "-": MINUS,
    "(": LPAREN,
    ")": RPAREN,
    "[": LBRACKET,
    "]": RBRACKET,
}

_ESCAPES = {
    "n": "\n",
    "t": "\t",
    "r": "\r",
    "b": "\b",
    "f": "\f",
    "/": "/",
    "\\": "\\",
    '"': '"',
    "'": "'",
    "`": "`",
}

QUOTES = "\"'`"


@dataclass(frozen=True)
class Token:
    """A lexical token with its source offset."""

    kind: str
    text: str
    position: int
    value: object = None


def _is_ident_start(ch: str) -> bool:
    return ch.isalpha() or ch in "_$"


def _is_ident_part(ch: str) -> bool:
    return ch.isalnum() or ch in "_$"


def tokenize(source: str) -> list[Token]:
    """
    Split an expression body into tokens.

    Args:
        source: Text between the ``{{`` and ``}}`` delimiters

    Returns:
        Token list terminated by an EOF token

    Raises:
        ExpressionParseError: On characters outside the supported grammar or
            unterminated string literals
    """
    tokens: list[Token] = []
    i = 0
    length = len(source)

    while i < length:
        ch = source[i]

        if ch.isspace():
            i += 1
            continue

        if ch in QUOTES:
            value, i_next = _read_string(source, i)
            tokens.append(Token(STRING, source[i:i_next], i, value))
            i = i_next
            continue

        if ch.isdigit():
            start = i
            while i < length and source[i].isdigit():
                i += 1
            # "1.5" is a float, "1.name" is a positional root followed by a field
            if i + 1 < length and source[i] == "." and source[i + 1].isdigit():
                i += 1
                while i < length and source[i].isdigit():
                    i += 1
                text = source[start:i]
                tokens.append(Token(NUMBER, text, start, float(text)))
            else:
                text = source[start:i]
                tokens.append(Token(NUMBER, text, start, int(text)))
            continue

        if _is_ident_start(ch):
            start = i
            while i < length and _is_ident_part(source[i]):
                i += 1
            tokens.append(Token(IDENT, source[start:i], start))
            continue

        kind = _PUNCTUATION.get(ch)
        if kind is None:
            raise ExpressionParseError(f"Unexpected character '{ch}'", i)
        tokens.append(Token(kind, ch, i))
        i += 1

    tokens.append(Token(EOF, "", length))
    return tokens


def _read_string(source: str, start: int) -> tuple[str, int]:
    """Read a quoted string literal starting at ``start``; return (value, end)."""
    quote = source[start]
    chars = []
    i = start + 1
    while i < len(source):
        ch = source[i]
        if ch == "\\":
            if i + 1 >= len(source):
                break
            nxt = source[i + 1]
            if nxt == "u" and _is_hex(source[i + 2 : i + 6]):
                chars.append(chr(int(source[i + 2 : i + 6], 16)))
                i += 6
                continue
            chars.append(_ESCAPES.get(nxt, nxt))
            i += 2
            continue
        if ch == quote:
            return "".join(chars), i + 1
        chars.append(ch)
        i += 1
    raise ExpressionParseError("Unterminated string literal", start)


def _is_hex(text: str) -> bool:
    return len(text) == 4 and all(c in "0123456789abcdefABCDEF" for c in text)


def find_block_end(text: str, start: int) -> int | None:
    """
    Find the ``}}`` that closes a block whose body begins at ``start``.

    Braces inside quoted strings do not count. Returns None when the block is
    never closed.
    """
    quote = None
    i = start
    while i < len(text):
        ch = text[i]
        if quote:
            if ch == "\\":
                i += 2
                continue
            if ch == quote:
                quote = None
        elif ch in QUOTES:
            quote = ch
        elif ch == "}" and text.startswith("}}", i):
            return i
        i += 1
    return None


def split_blocks(text: str, opener: str) -> list[tuple[str, str]]:
    """
    Split text into ("literal", text) and ("expression", body) pieces.

    Args:
        text: String to split
        opener: Block opening marker ("{{" or "={{")

    Returns:
        Ordered pieces; joining literal texts and re-wrapped bodies gives
        back the input. An unterminated opener stays literal text.
    """
    pieces: list[tuple[str, str]] = []
    literal_start = 0
    pos = 0

    while True:
        start = text.find(opener, pos)
        if start == -1:
            break
        body_start = start + len(opener)
        end = find_block_end(text, body_start)
        if end is None:
            break
        if start > literal_start:
            pieces.append(("literal", text[literal_start:start]))
        pieces.append(("expression", text[body_start:end]))
        pos = literal_start = end + 2

    if literal_start < len(text):
        pieces.append(("literal", text[literal_start:]))

    return pieces


def carries_node_graph_sentinel(text: str) -> bool:
    """True when a string opens with the node-graph sentinel and holds a block."""
    return text.startswith("=") and "{{" in text


def split_parameter_string(text: str, dialect: str) -> tuple[list[tuple[str, str]], bool]:
    """
    Split a parameter string according to the dialect's markers.

    Returns:
        (pieces, prefixed) where ``prefixed`` is True for node-graph strings
        introduced by a leading ``=`` sentinel.
    """
    if dialect == NODE_GRAPH:
        if text.startswith("="):
            return split_blocks(text[1:], "{{"), True
        return split_blocks(text, "={{"), False

    if dialect == FLOW_GRAPH:
        if carries_node_graph_sentinel(text):
            return [("literal", text)], False
        return split_blocks(text, "{{"), False

    raise ValueError(f"Unknown dialect: {dialect}")
