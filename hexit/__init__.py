"""
Hexit - a language for turning text into bytes
Hand-craft binary payloads with byte-exact control and no hex-editor bookkeeping.

Compiler: lexing and parsing into an expression tree
Evaluator: expressions to bytes, with an output limit
Verifier: exact-length and block-size checks on the result
"""

__version__ = "0.1.0"

from hexit.constants import Constant, ConstantsTable
from hexit.compiler import (
    CoreError,
    LexError,
    LexErrorKind,
    ParseError,
    ParseErrorKind,
    ProgramNode,
    compile_hexit,
)
from hexit.evaluator import EvalError, EvalErrorKind, Evaluator
from hexit.verify import LengthMismatch, NotAMultiple, Verification, VerifyError, verify
from hexit.core import Program, check_syntax, evaluate

__all__ = [
    "Constant",
    "ConstantsTable",
    "CoreError",
    "LexError",
    "LexErrorKind",
    "ParseError",
    "ParseErrorKind",
    "ProgramNode",
    "compile_hexit",
    "EvalError",
    "EvalErrorKind",
    "Evaluator",
    "LengthMismatch",
    "NotAMultiple",
    "Verification",
    "VerifyError",
    "verify",
    "Program",
    "check_syntax",
    "evaluate",
]
