"""
Recursive-descent parser for the shared expression grammar.

    concat  := postfix ('+' postfix)*
    postfix := primary ('.' NAME | '[' concat ']' | '(' args ')')*
    primary := STRING | NUMBER | '-' NUMBER | true | false | null
             | IDENT | '(' concat ')'

Anything outside the grammar (ternaries, comparison operators, arrow
functions, ...) produces an Unparsed node so the caller can keep the
original text and flag it. Parsing never raises.
"""

import logging

from flow_translate.exceptions import ExpressionParseError
from flow_translate.expression.ast import (
    Concatenation,
    ExpressionSegment,
    Field,
    FunctionCall,
    Index,
    Literal,
    LiteralSegment,
    PropertyAccess,
    Template,
    Unparsed,
    VariableRoot,
)
from flow_translate.expression.tokenizer import (
    COMMA,
    DOT,
    EOF,
    IDENT,
    LBRACKET,
    LPAREN,
    MINUS,
    NUMBER,
    PLUS,
    RBRACKET,
    RPAREN,
    STRING,
    Token,
    split_parameter_string,
    tokenize,
)

logger = logging.getLogger(__name__)

MAX_NESTING = 100

_KEYWORDS = {"true": True, "false": False, "null": None}


class ExpressionParser:
    """Parser over a token list produced by ``tokenize``."""

    def __init__(self, tokens: list[Token]):
        self.tokens = tokens
        self.pos = 0
        self.nesting = 0

    @property
    def current(self) -> Token:
        return self.tokens[self.pos]

    def peek(self, offset: int = 1) -> Token:
        index = min(self.pos + offset, len(self.tokens) - 1)
        return self.tokens[index]

    def advance(self) -> Token:
        token = self.tokens[self.pos]
        if token.kind != EOF:
            self.pos += 1
        return token

    def match(self, kind: str) -> bool:
        if self.current.kind == kind:
            self.advance()
            return True
        return False

    def expect(self, kind: str) -> Token:
        token = self.current
        if token.kind != kind:
            found = token.text or "end of expression"
            raise ExpressionParseError(f"Expected {kind}, found '{found}'", token.position)
        return self.advance()

    def parse(self):
        if self.current.kind == EOF:
            raise ExpressionParseError("Empty expression", 0)
        expression = self.concatenation()
        if self.current.kind != EOF:
            token = self.current
            raise ExpressionParseError(f"Unsupported syntax near '{token.text}'", token.position)
        return expression

    def concatenation(self):
        self.nesting += 1
        if self.nesting > MAX_NESTING:
            raise ExpressionParseError("Expression nested too deeply", self.current.position)

        operands = [self.postfix()]
        while self.match(PLUS):
            operands.append(self.postfix())

        self.nesting -= 1
        if len(operands) == 1:
            return operands[0]
        return Concatenation(tuple(operands))

    def postfix(self):
        expression = self.primary()

        while True:
            if self.match(DOT):
                token = self.current
                if token.kind not in (IDENT, NUMBER):
                    raise ExpressionParseError("Expected field name after '.'", token.position)
                self.advance()
                expression = _extend(expression, Field(token.text))
            elif self.match(LBRACKET):
                key = self.concatenation()
                self.expect(RBRACKET)
                expression = _extend(expression, Index(key))
            elif self.current.kind == LPAREN:
                position = self.current.position
                self.advance()
                args = self.arguments()
                expression = FunctionCall(_callee_name(expression, position), tuple(args))
            else:
                return expression

    def arguments(self) -> list:
        args = []
        if self.match(RPAREN):
            return args
        while True:
            args.append(self.concatenation())
            if self.match(COMMA):
                continue
            self.expect(RPAREN)
            return args

    def primary(self):
        token = self.current

        if token.kind == STRING:
            self.advance()
            return Literal(token.value)

        if token.kind == NUMBER:
            self.advance()
            # "1.name" or "1['name']": reference to the output of module 1
            if isinstance(token.value, int) and self.current.kind in (DOT, LBRACKET):
                return VariableRoot(token.text, positional=True)
            return Literal(token.value)

        if token.kind == MINUS and self.peek().kind == NUMBER:
            self.advance()
            number = self.advance()
            return Literal(-number.value)

        if token.kind == IDENT:
            self.advance()
            if token.text in _KEYWORDS:
                return Literal(_KEYWORDS[token.text])
            return VariableRoot(token.text)

        if token.kind == LPAREN:
            self.advance()
            expression = self.concatenation()
            self.expect(RPAREN)
            return expression

        found = token.text or "end of expression"
        raise ExpressionParseError(f"Unexpected '{found}'", token.position)


def _extend(expression, accessor):
    """Append an accessor, flattening nested property chains."""
    if isinstance(expression, PropertyAccess):
        return PropertyAccess(expression.base, expression.path + (accessor,))
    return PropertyAccess(expression, (accessor,))


def _callee_name(expression, position: int) -> str:
    """Turn ``$str.upper`` style call targets into a dotted function name."""
    if isinstance(expression, VariableRoot) and not expression.positional:
        return expression.name
    if (
        isinstance(expression, PropertyAccess)
        and isinstance(expression.base, VariableRoot)
        and not expression.base.positional
        and all(isinstance(accessor, Field) for accessor in expression.path)
    ):
        return ".".join([expression.base.name] + [accessor.name for accessor in expression.path])
    raise ExpressionParseError("Call target must be a function name", position)


def parse_expression(source: str):
    """
    Parse one expression body.

    Args:
        source: Text between block delimiters

    Returns:
        Expression tree, or Unparsed when the text is outside the grammar
    """
    try:
        return ExpressionParser(tokenize(source)).parse()
    except ExpressionParseError as e:
        logger.debug(f"Unparsed expression '{source}': {e.message}")
        return Unparsed(source, e.message)


def parse_template(text: str, dialect: str) -> Template:
    """
    Split a parameter string into literal and expression segments.

    Args:
        text: Parameter string
        dialect: Dialect the string is written in

    Returns:
        Template whose segments re-create the input

    Example:
        >>> template = parse_template("=Hello {{ $json.name }}", "node-graph")
        >>> template.prefixed
        True
    """
    pieces, prefixed = split_parameter_string(text, dialect)
    segments = []
    for kind, piece in pieces:
        if kind == "literal":
            segments.append(LiteralSegment(piece))
        else:
            segments.append(ExpressionSegment(piece, parse_expression(piece)))
    return Template(dialect=dialect, segments=segments, prefixed=prefixed)
