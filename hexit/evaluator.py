"""
Hexit Evaluator

Walks a compiled ProgramNode and produces the output bytes.

The Evaluator:
1. Takes a ProgramNode and a ConstantsTable
2. Evaluates each top-level expression in program order
3. Appends the bytes of each to an OutputBuffer, which enforces the size limit

Values in flight are integers (IntValue), floats (FloatValue) or byte
strings. Integers only turn into bytes when they are emitted: a size
wrapper fixes their width and byte order, otherwise they have to fit in
one byte.
"""

from __future__ import annotations

import logging
import struct
from dataclasses import dataclass
from enum import Enum
from functools import reduce
from typing import Optional, Union

from hexit.compiler import (
    ASTNode,
    BinaryLiteral,
    ByteLiteral,
    Combine,
    ConstantRef,
    CoreError,
    DecimalLiteral,
    Endianness,
    FloatLiteral,
    Invert,
    IpLiteral,
    ProgramNode,
    Repeat,
    SizeWrap,
    StringLiteral,
    TimestampLiteral,
)
from hexit.constants import ConstantsTable

log = logging.getLogger(__name__)


class EvalErrorKind(str, Enum):
    UNKNOWN_CONSTANT = "unknown_constant"
    INTEGER_OVERFLOW = "integer_overflow"
    TIMESTAMP_REQUIRES_SIZE = "timestamp_requires_size"
    FLOAT_REQUIRES_SIZE = "float_requires_size"
    INVALID_ARGUMENT = "invalid_argument"
    OUTPUT_TOO_LARGE = "output_too_large"


class EvalError(CoreError):
    """Hexit evaluation error, positioned at the node that failed."""

    stage = "runtime"

    def __init__(self, kind: EvalErrorKind, message: str, node: ASTNode):
        super().__init__(kind, message, node.line, node.col)
        self.node = node


# ============================================================================
# Values
# ============================================================================

@dataclass(frozen=True)
class IntValue:
    value: int
    width: Optional[int] = None           # natural width in bytes, if it has one
    endian: Optional[Endianness] = None   # set once a size wrapper applied
    timestamp: bool = False

    @property
    def sized(self) -> bool:
        return self.endian is not None


@dataclass(frozen=True)
class FloatValue:
    value: float


Value = Union[IntValue, FloatValue, bytes]

# Digits in the largest number a size wrapper can hold (2**64 - 1)
_MAX_DECIMAL_DIGITS = 20

_FLOAT_FORMATS = {4: "f", 8: "d"}


def _natural_width(bits: int) -> Optional[int]:
    for width in (1, 2, 4, 8):
        if bits <= width * 8:
            return width
    return None


# ============================================================================
# Output
# ============================================================================

class OutputBuffer:
    """Accumulates output bytes and refuses to grow past the limit.

    Usage:
        buffer = OutputBuffer(limit=4)
        buffer.append(b"\\x12\\x34", node)
        buffer.append(b"\\x00" * 3, node)   # EvalError(OUTPUT_TOO_LARGE)
    """

    def __init__(self, limit: Optional[int] = None) -> None:
        self.limit = limit
        self._data = bytearray()

    def _check(self, growth: int, node: ASTNode) -> None:
        if self.limit is None:
            return
        total = len(self._data) + growth
        if total > self.limit:
            raise EvalError(
                EvalErrorKind.OUTPUT_TOO_LARGE,
                f"Output of {total} bytes exceeds the limit of {self.limit}",
                node,
            )

    def append(self, chunk: bytes, node: ASTNode) -> None:
        self._check(len(chunk), node)
        self._data += chunk

    def append_repeated(self, chunk: bytes, count: int, node: ASTNode) -> None:
        """Append chunk count times, checking the limit before building anything."""
        self._check(len(chunk) * count, node)
        self._data += chunk * count

    def getvalue(self) -> bytes:
        return bytes(self._data)

    def __len__(self) -> int:
        return len(self._data)


# ============================================================================
# Evaluator
# ============================================================================

class Evaluator:
    """Hexit program evaluator.

    Usage:
        evaluator = Evaluator(ConstantsTable.builtin_set(), limit=1500)
        data = evaluator.execute(compile_hexit(source))
    """

    def __init__(self, constants: Optional[ConstantsTable] = None, limit: Optional[int] = None) -> None:
        if limit is not None and limit < 0:
            raise ValueError(f"limit must not be negative, got {limit}")
        self._constants = constants if constants is not None else ConstantsTable.builtin_set()
        self._limit = limit
        self._handlers = {
            ByteLiteral: self._eval_byte,
            DecimalLiteral: self._eval_decimal,
            BinaryLiteral: self._eval_binary,
            StringLiteral: self._eval_string,
            IpLiteral: self._eval_ip,
            TimestampLiteral: self._eval_timestamp,
            FloatLiteral: self._eval_float,
            ConstantRef: self._eval_constant,
            Repeat: self._eval_repeat,
            Combine: self._eval_combine,
            Invert: self._eval_invert,
            SizeWrap: self._eval_size_wrap,
        }

    def execute(self, program: ProgramNode) -> bytes:
        """Evaluate a compiled program and return its bytes."""
        buffer = OutputBuffer(self._limit)

        for node in program.expressions:
            if isinstance(node, Repeat):
                piece = self._emit(self._evaluate(node.inner), node.inner)
                buffer.append_repeated(piece, node.count, node)
            else:
                buffer.append(self._emit(self._evaluate(node), node), node)
            log.debug("%s at %d:%d -> %d bytes so far", type(node).__name__, node.line, node.col, len(buffer))

        return buffer.getvalue()

    def _evaluate(self, node: ASTNode) -> Value:
        """Dispatch to the appropriate handler."""
        handler = self._handlers.get(type(node))
        if handler is None:
            raise EvalError(EvalErrorKind.INVALID_ARGUMENT, f"No handler for {type(node).__name__}", node)
        return handler(node)

    def _emit(self, value: Value, node: ASTNode) -> bytes:
        """Turn a value into the bytes it contributes to the output."""
        if isinstance(value, bytes):
            return value
        if isinstance(value, FloatValue):
            raise EvalError(
                EvalErrorKind.FLOAT_REQUIRES_SIZE,
                "Floating point number needs a size: be32, le32, be64 or le64",
                node,
            )
        if value.sized:
            return value.value.to_bytes(value.width, value.endian.value)
        if value.timestamp:
            raise EvalError(
                EvalErrorKind.TIMESTAMP_REQUIRES_SIZE,
                "Timestamp needs a size, e.g. be32",
                node,
            )
        if not 0 <= value.value <= 0xFF:
            raise EvalError(
                EvalErrorKind.INTEGER_OVERFLOW,
                f"Number {value.value} does not fit in one byte; wrap it in a size function",
                node,
            )
        return bytes([value.value])

    def _check_size(self, size: int, node: ASTNode) -> None:
        if self._limit is not None and size > self._limit:
            raise EvalError(
                EvalErrorKind.OUTPUT_TOO_LARGE,
                f"Intermediate value of {size} bytes exceeds the limit of {self._limit}",
                node,
            )

    # ------------------------------------------------------------------
    # Literals
    # ------------------------------------------------------------------

    def _eval_byte(self, node: ByteLiteral) -> Value:
        return IntValue(node.value, 1)

    def _eval_decimal(self, node: DecimalLiteral) -> Value:
        if len(node.digits) > _MAX_DECIMAL_DIGITS:
            raise EvalError(
                EvalErrorKind.INTEGER_OVERFLOW,
                f"Decimal number {node.digits[:10]}... is too big for any size",
                node,
            )
        return IntValue(int(node.digits))

    def _eval_binary(self, node: BinaryLiteral) -> Value:
        return IntValue(node.value, _natural_width(node.bits))

    def _eval_string(self, node: StringLiteral) -> Value:
        return node.data

    def _eval_ip(self, node: IpLiteral) -> Value:
        return node.octets

    def _eval_timestamp(self, node: TimestampLiteral) -> Value:
        return IntValue(node.seconds, timestamp=True)

    def _eval_float(self, node: FloatLiteral) -> Value:
        return FloatValue(float(node.text))

    def _eval_constant(self, node: ConstantRef) -> Value:
        constant = self._constants.lookup(node.name)
        if constant is None:
            raise EvalError(EvalErrorKind.UNKNOWN_CONSTANT, f"Unknown constant {node.name!r}", node)
        return IntValue(constant.value, constant.width)

    # ------------------------------------------------------------------
    # Functions
    # ------------------------------------------------------------------

    def _eval_repeat(self, node: Repeat) -> Value:
        piece = self._emit(self._evaluate(node.inner), node.inner)
        self._check_size(len(piece) * node.count, node)
        return piece * node.count

    def _eval_combine(self, node: Combine) -> Value:
        operands = [self._integer(self._evaluate(op), op, node) for op in node.operands]
        result = reduce(node.op.apply, (v.value for v in operands))
        timestamp = any(v.timestamp for v in operands)

        # Sized operands must agree; unsized ones take on their shape
        shapes = {(v.width, v.endian) for v in operands if v.sized}
        if len(shapes) > 1:
            raise EvalError(
                EvalErrorKind.INVALID_ARGUMENT,
                f"Function {node.op.value!r} cannot mix sizes or byte orders",
                node,
            )
        if shapes:
            width, endian = shapes.pop()
            if not 0 <= result < 1 << (width * 8):
                raise EvalError(
                    EvalErrorKind.INTEGER_OVERFLOW,
                    f"Number {result} does not fit in {width * 8} bits",
                    node,
                )
            return IntValue(result, width, endian, timestamp)

        widths = [v.width for v in operands if v.width is not None]
        return IntValue(result, max(widths) if widths else None, timestamp=timestamp)

    def _eval_invert(self, node: Invert) -> Value:
        value = self._evaluate(node.inner)
        if isinstance(value, bytes):
            return bytes(~b & 0xFF for b in value)
        if isinstance(value, FloatValue):
            raise EvalError(EvalErrorKind.INVALID_ARGUMENT, "Cannot invert a floating point number", node)
        if value.width is None:
            raise EvalError(
                EvalErrorKind.INVALID_ARGUMENT,
                f"Cannot invert {value.value} without a size; wrap it first, e.g. not(be16[...])",
                node,
            )
        mask = (1 << (value.width * 8)) - 1
        return IntValue(~value.value & mask, value.width, value.endian)

    def _eval_size_wrap(self, node: SizeWrap) -> Value:
        value = self._evaluate(node.inner)
        bits = node.width * 8

        if isinstance(value, bytes):
            raise EvalError(
                EvalErrorKind.INVALID_ARGUMENT,
                f"Cannot give a size to a sequence of {len(value)} bytes",
                node,
            )

        if isinstance(value, FloatValue):
            fmt = _FLOAT_FORMATS.get(node.width)
            if fmt is None:
                raise EvalError(
                    EvalErrorKind.INVALID_ARGUMENT,
                    f"Floating point numbers are 32 or 64 bits, not {bits}",
                    node,
                )
            order = ">" if node.endian is Endianness.BIG else "<"
            try:
                return struct.pack(order + fmt, value.value)
            except (OverflowError, struct.error):
                raise EvalError(
                    EvalErrorKind.INTEGER_OVERFLOW,
                    f"Number {value.value} is too big for a {bits}-bit float",
                    node,
                )

        if not 0 <= value.value < 1 << bits:
            raise EvalError(
                EvalErrorKind.INTEGER_OVERFLOW,
                f"Number {value.value} does not fit in {bits} bits",
                node,
            )
        return IntValue(value.value, node.width, node.endian)

    def _integer(self, value: Value, operand: ASTNode, node: Combine) -> IntValue:
        if isinstance(value, IntValue):
            return value
        what = "a floating point number" if isinstance(value, FloatValue) else f"{len(value)} bytes"
        raise EvalError(
            EvalErrorKind.INVALID_ARGUMENT,
            f"Function {node.op.value!r} needs numbers, got {what}",
            operand,
        )
