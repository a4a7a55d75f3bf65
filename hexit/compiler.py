"""
Hexit Compiler: source text to expression tree

Turns a Hexit program into a ProgramNode, the ordered list of top-level
expressions the evaluator walks.

Compilation phases:
1. Lexical Analysis → Token stream (line by line; labels and comments dropped)
2. Parsing → Abstract Syntax Tree (function names resolved to typed nodes)

Example Hexit program:
    # IPv4 header, no options
    Version / IHL:   45
    DSCP / ECN:      00
    Total length:    be16[84]
    Identification:  1C 46
    TTL:             40
    Protocol:        IP_ICMP
    Source:          [192.168.0.1]
    Timestamp:       be32[2020-06-07T13:14:17Z]
    Padding:         x4(00)

Usage:
    program = compile_hexit("12 34 be32[29]")
    program.expressions   # [ByteLiteral(0x12), ByteLiteral(0x34), SizeWrap(...)]
"""

from __future__ import annotations

import ipaddress
import logging
import re
from dataclasses import dataclass, field
from datetime import datetime, timedelta, timezone
from enum import Enum, auto
from typing import Optional

log = logging.getLogger(__name__)


# ============================================================================
# Errors
# ============================================================================

class CoreError(Exception):
    """Base class for everything the lex → parse → evaluate pipeline raises."""

    stage = "core"

    def __init__(self, kind: Enum, message: str, line: int, col: int):
        super().__init__(f"Line {line}, Col {col}: {message}")
        self.kind = kind
        self.message = message
        self.line = line
        self.col = col


class LexErrorKind(str, Enum):
    UNPAIRED_HEX_DIGIT = "unpaired_hex_digit"
    MALFORMED_LITERAL = "malformed_literal"
    UNTERMINATED_STRING = "unterminated_string"
    STRAY_CHARACTER = "stray_character"


class ParseErrorKind(str, Enum):
    UNKNOWN_FUNCTION = "unknown_function"
    ARITY_MISMATCH = "arity_mismatch"
    INVALID_REPEAT_AMOUNT = "invalid_repeat_amount"
    UNBALANCED_GROUPING = "unbalanced_grouping"
    UNEXPECTED_TOKEN = "unexpected_token"
    NESTED_TOO_DEEPLY = "nested_too_deeply"


class LexError(CoreError):
    stage = "syntax"

    def __init__(self, kind: LexErrorKind, message: str, line: int, col: int):
        super().__init__(kind, message, line, col)


class ParseError(CoreError):
    stage = "syntax"

    def __init__(self, kind: ParseErrorKind, message: str, token: Token):
        super().__init__(kind, message, token.line, token.col)
        self.token = token


# ============================================================================
# Token Types
# ============================================================================

class TokenType(Enum):
    HEX = auto()          # one hex pair: "AB"
    DECIMAL = auto()      # [180]
    BINARY = auto()       # [b0101_1010]
    IP = auto()           # [10.0.0.1] or [::1]
    TIMESTAMP = auto()    # [2020-06-07T13:14:17Z]
    FLOAT = auto()        # [f1.5]
    STRING = auto()       # "quoted"
    IDENTIFIER = auto()   # constant or function name
    LPAREN = auto()       # (
    RPAREN = auto()       # )
    LABEL = auto()        # free text before a line's last top-level colon
    COLON = auto()        # the label separator
    EOF = auto()


BRACKET_TYPES = frozenset({
    TokenType.DECIMAL,
    TokenType.BINARY,
    TokenType.IP,
    TokenType.TIMESTAMP,
    TokenType.FLOAT,
})


@dataclass(frozen=True)
class Token:
    type: TokenType
    value: str
    line: int
    col: int

    def __repr__(self) -> str:
        return f"<{self.type.name}:{self.value!r}>"


# ============================================================================
# Function names
# ============================================================================

SIZE_FUNCTION = re.compile(r"(be|le)(8|16|32|64)")
REPEAT_FUNCTION = re.compile(r"x([0-9]+)")
MAX_REPEAT = 2**32 - 1

# How deeply calls may nest before the parser gives up
MAX_NESTING = 64


class BitwiseOp(Enum):
    OR = "or"
    XOR = "xor"

    def apply(self, left: int, right: int) -> int:
        if self is BitwiseOp.OR:
            return left | right
        return left ^ right


COMBINE_FUNCTIONS = {
    "and": BitwiseOp.OR,
    "or": BitwiseOp.OR,
    "xor": BitwiseOp.XOR,
}


def is_function_name(word: str) -> bool:
    """True if the word names one of the built-in functions."""
    return bool(
        SIZE_FUNCTION.fullmatch(word)
        or REPEAT_FUNCTION.fullmatch(word)
        or word in COMBINE_FUNCTIONS
        or word == "not"
    )


# ============================================================================
# Lexer
# ============================================================================

_HEX_DIGITS = frozenset("0123456789abcdefABCDEF")
_DECIMAL = re.compile(r"[0-9]+")
_BINARY = re.compile(r"b[01_]*[01][01_]*")
_ESCAPES = {"n": "\n", "r": "\r", "t": "\t"}
_EPOCH = datetime(1970, 1, 1, tzinfo=timezone.utc)


def _is_word_char(c: str) -> bool:
    return c.isascii() and (c.isalnum() or c == "_")


def parse_timestamp(text: str) -> Optional[int]:
    """Seconds since the Unix epoch for an ISO-8601 date-time, or None.

    A trailing Z means UTC, and so does a missing offset.
    """
    candidate = text
    if candidate[-1:] in ("Z", "z"):
        candidate = candidate[:-1] + "+00:00"
    try:
        moment = datetime.fromisoformat(candidate)
    except ValueError:
        return None
    if moment.tzinfo is None:
        moment = moment.replace(tzinfo=timezone.utc)
    return (moment - _EPOCH) // timedelta(seconds=1)


def _is_ip_address(text: str) -> bool:
    if "." not in text and ":" not in text:
        return False
    try:
        ipaddress.ip_address(text)
    except ValueError:
        return False
    return True


def _classify_form(content: str) -> Optional[TokenType]:
    """Decide what a bracketed literal holds; None if it is nothing we know."""
    if not content:
        return None
    if _DECIMAL.fullmatch(content):
        return TokenType.DECIMAL
    if _BINARY.fullmatch(content):
        bits = len(content) - 1 - content.count("_")
        return TokenType.BINARY if bits <= 64 else None
    if content.startswith("f"):
        try:
            float(content[1:])
        except ValueError:
            pass
        else:
            return TokenType.FLOAT
    if "-" in content and ":" in content and parse_timestamp(content) is not None:
        return TokenType.TIMESTAMP
    if _is_ip_address(content):
        return TokenType.IP
    return None


def _unescape(raw: str) -> str:
    if "\\" not in raw:
        return raw
    out: list[str] = []
    chars = iter(raw)
    for c in chars:
        if c == "\\":
            # The scanner never ends a string on a lone backslash
            escaped = next(chars)
            out.append(_ESCAPES.get(escaped, escaped))
        else:
            out.append(c)
    return "".join(out)


@dataclass
class _Span:
    """A raw piece of one line, before classification."""
    kind: str   # word, bracket, quote, open, close, colon, stray
    text: str
    col: int

    @property
    def end(self) -> int:
        return self.col + len(self.text)


class _LineLexer:
    """Tokenizes a single line of source."""

    def __init__(self, text: str, line: int):
        self._text = text
        self._line = line

    def tokens(self) -> list[Token]:
        spans = self._scan()

        tokens: list[Token] = []
        colons = [i for i, span in enumerate(spans) if span.kind == "colon"]
        if colons:
            separator = spans[colons[-1]]
            label = self._text[:separator.col].strip()
            tokens.append(Token(TokenType.LABEL, label, self._line, 0))
            tokens.append(Token(TokenType.COLON, ":", self._line, separator.col))
            spans = spans[colons[-1] + 1:]

        for i, span in enumerate(spans):
            following = spans[i + 1] if i + 1 < len(spans) else None
            tokens.extend(self._classify(span, following))
        return tokens

    def _scan(self) -> list[_Span]:
        """Split the line into spans, tracking bracket and quote depth.

        A colon only separates a label when depth is zero.
        """
        text = self._text
        spans: list[_Span] = []
        depth = 0
        opener = 0
        closer = ""
        escaped = False
        word_start: Optional[int] = None

        for col, c in enumerate(text):
            if depth:
                if escaped:
                    escaped = False
                elif closer == '"' and c == "\\":
                    escaped = True
                elif c == closer:
                    depth -= 1
                    kind = "bracket" if closer == "]" else "quote"
                    spans.append(_Span(kind, text[opener + 1:col], opener))
                continue

            if word_start is not None and not _is_word_char(c):
                spans.append(_Span("word", text[word_start:col], word_start))
                word_start = None

            if c == "#":
                break
            elif c == "[" or c == '"':
                depth += 1
                opener = col
                closer = "]" if c == "[" else '"'
            elif _is_word_char(c):
                if word_start is None:
                    word_start = col
            elif c.isspace():
                continue
            elif c == ":":
                spans.append(_Span("colon", c, col))
            elif c == "(":
                spans.append(_Span("open", c, col))
            elif c == ")":
                spans.append(_Span("close", c, col))
            else:
                spans.append(_Span("stray", c, col))

        if depth:
            if closer == "]":
                raise LexError(
                    LexErrorKind.MALFORMED_LITERAL,
                    f"Unclosed form {text[opener:]!r}",
                    self._line, opener,
                )
            raise LexError(
                LexErrorKind.UNTERMINATED_STRING,
                "Missing closing quote",
                self._line, opener,
            )
        if word_start is not None:
            spans.append(_Span("word", text[word_start:], word_start))
        return spans

    def _classify(self, span: _Span, following: Optional[_Span]) -> list[Token]:
        line = self._line

        if span.kind == "word":
            return self._classify_word(span, following)
        if span.kind == "bracket":
            ttype = _classify_form(span.text)
            if ttype is None:
                raise LexError(
                    LexErrorKind.MALFORMED_LITERAL,
                    f"Invalid form [{span.text}]",
                    line, span.col,
                )
            return [Token(ttype, span.text, line, span.col)]
        if span.kind == "quote":
            return [Token(TokenType.STRING, _unescape(span.text), line, span.col)]
        if span.kind == "open":
            return [Token(TokenType.LPAREN, "(", line, span.col)]
        if span.kind == "close":
            return [Token(TokenType.RPAREN, ")", line, span.col)]
        raise LexError(
            LexErrorKind.STRAY_CHARACTER,
            f"Unexpected character {span.text!r}",
            line, span.col,
        )

    def _classify_word(self, span: _Span, following: Optional[_Span]) -> list[Token]:
        word = span.text
        line = self._line

        called = (
            following is not None
            and following.col == span.end
            and following.kind in ("open", "bracket")
        )
        if called or is_function_name(word):
            return [Token(TokenType.IDENTIFIER, word, line, span.col)]

        if all(c in _HEX_DIGITS for c in word):
            if len(word) % 2:
                raise LexError(
                    LexErrorKind.UNPAIRED_HEX_DIGIT,
                    f"Unpaired hex digit {word[-1]!r}",
                    line, span.end - 1,
                )
            return [
                Token(TokenType.HEX, word[i:i + 2], line, span.col + i)
                for i in range(0, len(word), 2)
            ]

        if word[0].isdigit():
            offset = next(i for i, c in enumerate(word) if c not in _HEX_DIGITS)
            raise LexError(
                LexErrorKind.STRAY_CHARACTER,
                f"Unexpected character {word[offset]!r} in hex sequence",
                line, span.col + offset,
            )

        return [Token(TokenType.IDENTIFIER, word, line, span.col)]


def tokenize(source: str) -> list[Token]:
    """Tokenize Hexit source into a token stream."""
    tokens: list[Token] = []
    lines = source.split("\n")

    for line_num, line_text in enumerate(lines, 1):
        if line_text.endswith("\r"):
            line_text = line_text[:-1]
        tokens.extend(_LineLexer(line_text, line_num).tokens())

    tokens.append(Token(TokenType.EOF, "", len(lines), 0))
    log.debug("Tokenized %d lines into %d tokens", len(lines), len(tokens) - 1)
    return tokens


# ============================================================================
# AST Nodes
# ============================================================================

class Endianness(Enum):
    BIG = "big"
    LITTLE = "little"


@dataclass(frozen=True)
class ASTNode:
    """Base class for all AST nodes. Positions do not take part in equality."""
    line: int = field(default=0, kw_only=True, compare=False)
    col: int = field(default=0, kw_only=True, compare=False)


@dataclass(frozen=True)
class ByteLiteral(ASTNode):
    value: int

@dataclass(frozen=True)
class DecimalLiteral(ASTNode):
    digits: str  # too wide for one byte; needs a size wrapper

@dataclass(frozen=True)
class BinaryLiteral(ASTNode):
    value: int
    bits: int

@dataclass(frozen=True)
class StringLiteral(ASTNode):
    data: bytes

@dataclass(frozen=True)
class IpLiteral(ASTNode):
    octets: bytes

@dataclass(frozen=True)
class TimestampLiteral(ASTNode):
    seconds: int

@dataclass(frozen=True)
class FloatLiteral(ASTNode):
    text: str

@dataclass(frozen=True)
class ConstantRef(ASTNode):
    name: str

@dataclass(frozen=True)
class Repeat(ASTNode):
    count: int
    inner: ASTNode

@dataclass(frozen=True)
class Combine(ASTNode):
    op: BitwiseOp
    operands: tuple[ASTNode, ...]

@dataclass(frozen=True)
class Invert(ASTNode):
    inner: ASTNode

@dataclass(frozen=True)
class SizeWrap(ASTNode):
    width: int  # bytes: 1, 2, 4 or 8
    endian: Endianness
    inner: ASTNode

@dataclass(frozen=True)
class ProgramNode(ASTNode):
    """A complete Hexit program: top-level expressions in output order."""
    expressions: tuple[ASTNode, ...]


# ============================================================================
# Parser
# ============================================================================

class Parser:
    """Parses a Hexit token stream into an AST."""

    def __init__(self, tokens: list[Token]):
        self._tokens = tokens
        self._pos = 0
        self._depth = 0

    def _peek(self) -> Token:
        return self._tokens[self._pos]

    def _advance(self) -> Token:
        tok = self._tokens[self._pos]
        self._pos += 1
        return tok

    def _expect(self, ttype: TokenType) -> Token:
        tok = self._advance()
        if tok.type != ttype:
            raise ParseError(ParseErrorKind.UNEXPECTED_TOKEN, f"Expected {ttype.name}", tok)
        return tok

    def _at(self, ttype: TokenType) -> bool:
        return self._peek().type == ttype

    def _skip_label(self) -> bool:
        """Drop a LABEL/COLON pair if one is next."""
        if not self._at(TokenType.LABEL):
            return False
        self._advance()
        self._expect(TokenType.COLON)
        return True

    def parse(self) -> ProgramNode:
        """Parse a complete Hexit program."""
        expressions: list[ASTNode] = []

        while not self._at(TokenType.EOF):
            if self._skip_label():
                continue
            expressions.append(self._parse_term())

        return ProgramNode(expressions=tuple(expressions), line=1, col=0)

    def _parse_term(self) -> ASTNode:
        tok = self._peek()

        if tok.type == TokenType.HEX:
            self._advance()
            return ByteLiteral(int(tok.value, 16), line=tok.line, col=tok.col)
        if tok.type in BRACKET_TYPES:
            self._advance()
            return self._literal(tok)
        if tok.type == TokenType.STRING:
            self._advance()
            return StringLiteral(tok.value.encode("utf-8"), line=tok.line, col=tok.col)
        if tok.type == TokenType.IDENTIFIER:
            return self._parse_identifier()
        if tok.type == TokenType.LPAREN:
            raise ParseError(
                ParseErrorKind.UNBALANCED_GROUPING,
                "Parenthesis not preceded by a function name",
                tok,
            )
        if tok.type == TokenType.RPAREN:
            raise ParseError(
                ParseErrorKind.UNBALANCED_GROUPING,
                "Closing parenthesis without a matching opening one",
                tok,
            )
        raise ParseError(ParseErrorKind.UNEXPECTED_TOKEN, f"Unexpected {tok.type.name}", tok)

    def _literal(self, tok: Token) -> ASTNode:
        """Build the node for a bracketed literal token."""
        text = tok.value
        pos = {"line": tok.line, "col": tok.col}

        if tok.type == TokenType.DECIMAL:
            digits = text.lstrip("0") or "0"
            if len(digits) <= 3 and int(digits) <= 0xFF:
                return ByteLiteral(int(digits), **pos)
            return DecimalLiteral(digits, **pos)
        if tok.type == TokenType.BINARY:
            bits = text[1:].replace("_", "")
            return BinaryLiteral(int(bits, 2), len(bits), **pos)
        if tok.type == TokenType.FLOAT:
            return FloatLiteral(text[1:], **pos)
        if tok.type == TokenType.TIMESTAMP:
            seconds = parse_timestamp(text)
            if seconds is None:
                raise LexError(
                    LexErrorKind.MALFORMED_LITERAL,
                    f"Invalid timestamp [{text}]",
                    tok.line, tok.col,
                )
            return TimestampLiteral(seconds, **pos)
        return IpLiteral(ipaddress.ip_address(text).packed, **pos)

    def _parse_identifier(self) -> ASTNode:
        name_tok = self._advance()
        name = name_tok.value
        nxt = self._peek()
        adjacent = nxt.line == name_tok.line and nxt.col == name_tok.col + len(name)

        if adjacent and nxt.type == TokenType.LPAREN:
            self._check_function(name_tok)
            self._advance()
            args = self._parse_arguments(nxt)
        elif adjacent and nxt.type in BRACKET_TYPES:
            self._check_function(name_tok)
            self._advance()
            args = [self._literal(nxt)]
        elif is_function_name(name):
            raise ParseError(
                ParseErrorKind.ARITY_MISMATCH,
                f"Function {name!r} is not followed by arguments",
                name_tok,
            )
        else:
            return ConstantRef(name, line=name_tok.line, col=name_tok.col)

        return self._build_call(name_tok, args)

    def _check_function(self, name_tok: Token) -> None:
        """Reject unknown names and impossible repeat counts before the arguments."""
        name = name_tok.value
        if not is_function_name(name):
            raise ParseError(ParseErrorKind.UNKNOWN_FUNCTION, f"Unknown function {name!r}", name_tok)

        m = REPEAT_FUNCTION.fullmatch(name)
        if m:
            digits = m.group(1).lstrip("0")
            if len(digits) > len(str(MAX_REPEAT)) or int(digits or "0") > MAX_REPEAT:
                raise ParseError(
                    ParseErrorKind.INVALID_REPEAT_AMOUNT,
                    f"Repeat amount {m.group(1)} is too large",
                    name_tok,
                )

    def _parse_arguments(self, open_tok: Token) -> list[ASTNode]:
        """Parse terms up to the ')' matching open_tok."""
        self._depth += 1
        if self._depth > MAX_NESTING:
            raise ParseError(
                ParseErrorKind.NESTED_TOO_DEEPLY,
                f"Function calls nested more than {MAX_NESTING} deep",
                open_tok,
            )

        args: list[ASTNode] = []
        while True:
            if self._at(TokenType.EOF):
                raise ParseError(ParseErrorKind.UNBALANCED_GROUPING, "Unclosed function call", open_tok)
            if self._at(TokenType.RPAREN):
                self._advance()
                self._depth -= 1
                return args
            if self._skip_label():
                continue
            args.append(self._parse_term())

    def _build_call(self, name_tok: Token, args: list[ASTNode]) -> ASTNode:
        name = name_tok.value
        pos = {"line": name_tok.line, "col": name_tok.col}

        m = SIZE_FUNCTION.fullmatch(name)
        if m:
            inner = self._only_argument(name_tok, args)
            endian = Endianness.BIG if m.group(1) == "be" else Endianness.LITTLE
            return SizeWrap(int(m.group(2)) // 8, endian, inner, **pos)

        m = REPEAT_FUNCTION.fullmatch(name)
        if m:
            inner = self._only_argument(name_tok, args)
            return Repeat(int(m.group(1).lstrip("0") or "0"), inner, **pos)

        if name in COMBINE_FUNCTIONS:
            if len(args) < 2:
                raise ParseError(
                    ParseErrorKind.ARITY_MISMATCH,
                    f"Function {name!r} takes at least 2 arguments, got {len(args)}",
                    name_tok,
                )
            return Combine(COMBINE_FUNCTIONS[name], tuple(args), **pos)

        return Invert(self._only_argument(name_tok, args), **pos)

    def _only_argument(self, name_tok: Token, args: list[ASTNode]) -> ASTNode:
        if len(args) != 1:
            raise ParseError(
                ParseErrorKind.ARITY_MISMATCH,
                f"Function {name_tok.value!r} takes exactly 1 argument, got {len(args)}",
                name_tok,
            )
        return args[0]


# ============================================================================
# Public API
# ============================================================================

def compile_hexit(source: str) -> ProgramNode:
    """Compile Hexit source code into an AST.

    Args:
        source: Hexit program text

    Returns:
        ProgramNode containing the top-level expressions in order

    Raises:
        LexError, ParseError
    """
    tokens = tokenize(source)
    parser = Parser(tokens)
    return parser.parse()
