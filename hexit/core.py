"""
Hexit Core: the public entry points

Ties the compiler, the constant table and the evaluator together.

Usage:
    evaluate("12 34 be32[29]")                 # b'\\x12\\x34\\x00\\x00\\x00\\x1d'
    evaluate("x2000(FF)", limit=1500)          # EvalError(OUTPUT_TOO_LARGE)
    check_syntax("le16(")                      # ParseError(UNBALANCED_GROUPING)

    program = Program.read(source)
    data = program.run(limit=1500)
"""

from __future__ import annotations

import logging
from typing import Optional

from hexit.compiler import ProgramNode, compile_hexit
from hexit.constants import ConstantsTable
from hexit.evaluator import Evaluator

log = logging.getLogger(__name__)


def evaluate(
    source: str,
    limit: Optional[int] = None,
    constants: Optional[ConstantsTable] = None,
) -> bytes:
    """Compile and evaluate a Hexit program.

    Args:
        source: Hexit program text
        limit: maximum output size in bytes; None for no limit
        constants: constant table; the built-in set by default

    Raises:
        LexError, ParseError, EvalError (all CoreError)
    """
    return Program.read(source).run(constants, limit)


def check_syntax(source: str) -> ProgramNode:
    """Lex and parse only; raises on the first syntax error."""
    return compile_hexit(source)


class Program:
    """A compiled Hexit program, ready to run any number of times."""

    def __init__(self, ast: ProgramNode) -> None:
        self.ast = ast

    @classmethod
    def read(cls, source: str) -> Program:
        log.debug("Compiling %d characters of source", len(source))
        return cls(compile_hexit(source))

    def run(self, constants: Optional[ConstantsTable] = None, limit: Optional[int] = None) -> bytes:
        data = Evaluator(constants, limit).execute(self.ast)
        log.debug("Program produced %d bytes", len(data))
        return data

    def __len__(self) -> int:
        return len(self.ast.expressions)

    def __repr__(self) -> str:
        return f"<Program: {len(self)} expressions>"
