#!/usr/bin/env python3
"""
Hexit: a language for turning text into bytes

Command-line interface.

Usage:
    hexit <file>                      Run a program and print its bytes as hex
    hexit -                           Run a program read from standard input
    hexit -e '<expression>'           Run the expression given on the command line
    hexit -c <file>                   Only check that the program's syntax is valid
    hexit --list-constants [filter]   Print the built-in constants

Exit codes:
    0  success
    1  input could not be read, or output could not be written
    2  the program contains an error
    3  the command-line options are invalid
    4  length verification failed, or no constants matched the filter
"""

from __future__ import annotations

import argparse
import logging
import os
import sys
import textwrap
from typing import Optional, Sequence

from hexit import __version__
from hexit.compiler import CoreError
from hexit.constants import ConstantsTable
from hexit.core import Program, check_syntax
from hexit.style import LetterCase, Style
from hexit.verify import Verification, VerifyError

log = logging.getLogger(__name__)

SUCCESS = 0
IO_ERROR = 1
PROGRAM_ERROR = 2
OPTIONS_ERROR = 3
LENGTH_VERIFICATION_ERROR = 4
NO_CONSTANTS_FOUND = 4


# ============================================================================
# Formatting helpers
# ============================================================================

class C:
    """ANSI colors."""
    BOLD = "\033[1m"
    RED = "\033[31m"
    GREEN = "\033[32m"
    YELLOW = "\033[33m"
    RESET = "\033[0m"

    @staticmethod
    def off():
        C.BOLD = C.RED = C.GREEN = C.YELLOW = C.RESET = ""

    @staticmethod
    def on():
        C.BOLD = "\033[1m"
        C.RED = "\033[31m"
        C.GREEN = "\033[32m"
        C.YELLOW = "\033[33m"
        C.RESET = "\033[0m"


def error(text: str) -> str:
    return f"{C.BOLD}{C.RED}{text}{C.RESET}"


def ok(text: str) -> str:
    return f"{C.GREEN}{text}{C.RESET}"


def use_colours(setting: Optional[str]) -> bool:
    """Decide on colours from --color/--colour, looking at stderr when automatic."""
    value = (setting or "").lower()
    if value in ("always", "yes"):
        return True
    if value in ("never", "no"):
        return False
    if value not in ("", "auto", "automatic"):
        log.warning("Unknown colour setting %r", setting)
    return sys.stderr.isatty()


def configure_logging(setting: Optional[str]) -> None:
    """Turn on logging from the HEXIT_DEBUG environment variable."""
    if not setting:
        return
    level = logging.DEBUG if setting.lower() in ("trace", "debug") else logging.INFO
    logging.basicConfig(level=level, format="%(levelname)s %(name)s: %(message)s")


# ============================================================================
# Options
# ============================================================================

class OptionsError(Exception):
    """The command line does not describe a valid run."""


class _ArgumentParser(argparse.ArgumentParser):
    def error(self, message):
        raise OptionsError(message)


def build_parser() -> argparse.ArgumentParser:
    parser = _ArgumentParser(
        prog="hexit",
        description="Hexit — a language for turning text into bytes",
        formatter_class=argparse.RawDescriptionHelpFormatter,
        epilog=textwrap.dedent("""
        examples:
          hexit packet.hexit
          hexit -e 'be32[29] x4(00)' -s ' '
          hexit -e '"GIF89a"' -r -o header.bin
          hexit --verify-boundary 16 block.hexit
          hexit --list-constants TCP
        """),
    )
    parser.add_argument("args", nargs="*", metavar="FILE",
                        help="Program to run ('-' for stdin), or the --list-constants filter")
    parser.add_argument("-v", "--version", action="store_true", help="Show the version of hexit")
    parser.add_argument("--color", "--colour", dest="color", metavar="WHEN",
                        help="When to use terminal colours: always, auto or never")
    parser.add_argument("--list-constants", action="store_true", help="Print the list of available constants")

    parser.add_argument("-c", "--check-syntax", action="store_true",
                        help="Instead of running, check that the syntax is valid")
    parser.add_argument("-e", "--expression", metavar="EXPR",
                        help="Evaluate this expression instead of reading from a file")
    parser.add_argument("-o", "--output", metavar="PATH",
                        help="Write to this file instead of printing the results")
    parser.add_argument("--limit", type=int, metavar="NUM",
                        help="Fail if the program produces more than this many bytes")

    fmt = parser.add_argument_group("formatting")
    fmt.add_argument("-r", "--raw", action="store_true", help="Write raw bytes without formatting")
    fmt.add_argument("-P", "--prefix", default="", metavar="STR",
                     help="String to print before each pair of hex characters")
    fmt.add_argument("-S", "--suffix", default="", metavar="STR",
                     help="String to print after each pair of hex characters")
    fmt.add_argument("-s", "--separator", default="", metavar="STR",
                     help="String to print between successive pairs of hex characters")
    fmt.add_argument("-l", "--lowercase", action="store_true", help="Print hex characters in lowercase")

    check = parser.add_argument_group("verification").add_mutually_exclusive_group()
    check.add_argument("--verify-length", type=int, metavar="NUM",
                       help="Ensure that the output has this exact length")
    check.add_argument("--verify-boundary", type=int, metavar="NUM",
                       help="Ensure that the output length is a multiple of this")
    return parser


def style_from_args(args: argparse.Namespace) -> Style:
    case = LetterCase.LOWER if args.lowercase else LetterCase.UPPER
    return Style(prefix=args.prefix, suffix=args.suffix, separator=args.separator, case=case)


def verification_from_args(args: argparse.Namespace) -> Verification:
    if args.verify_boundary is not None and args.verify_boundary <= 0:
        raise OptionsError(f"--verify-boundary must be positive, got {args.verify_boundary}")
    return Verification(exact=args.verify_length, multiple_of=args.verify_boundary)


def input_name(args: argparse.Namespace) -> str:
    if args.expression is not None:
        return "<expression>"
    if len(args.args) != 1:
        raise OptionsError("expected exactly one input file" if args.args else "no input file given")
    return "<stdin>" if args.args[0] == "-" else args.args[0]


def read_source(args: argparse.Namespace) -> str:
    if args.expression is not None:
        log.info("Reading from expression")
        return args.expression
    path = args.args[0]
    if path == "-":
        log.info("Reading from standard input")
        return sys.stdin.read()
    log.info("Reading from file %s", path)
    with open(path, encoding="utf-8") as f:
        return f.read()


def report(name: str, e: CoreError) -> None:
    print(error(f"{name}:{e.line}:{e.col}: {e.stage} error: {e.message}"), file=sys.stderr)


# ============================================================================
# Commands
# ============================================================================

def cmd_list_constants(args: argparse.Namespace) -> int:
    if len(args.args) > 1:
        raise OptionsError("only one constant filter may be given")
    search = args.args[0] if args.args else None

    found_any = False
    for name, constant in ConstantsTable.builtin_set().all():
        if search is not None and search not in name:
            continue
        print(f"{name} => {constant.value} ({constant.width * 8}-bit)")
        found_any = True

    if not found_any:
        print(error(f"hexit: No constants found containing {search!r}"), file=sys.stderr)
        return NO_CONSTANTS_FOUND
    return SUCCESS


def cmd_check_syntax(args: argparse.Namespace) -> int:
    name = input_name(args)
    try:
        source = read_source(args)
    except (OSError, UnicodeDecodeError) as e:
        print(error(f"{name}: {e}"), file=sys.stderr)
        return IO_ERROR

    try:
        check_syntax(source)
    except CoreError as e:
        report(name, e)
        return PROGRAM_ERROR

    print(ok(f"{name}: Syntax OK"))
    return SUCCESS


def cmd_run(args: argparse.Namespace) -> int:
    name = input_name(args)
    verification = verification_from_args(args)
    if args.limit is not None and args.limit < 0:
        raise OptionsError(f"--limit must not be negative, got {args.limit}")

    try:
        source = read_source(args)
    except (OSError, UnicodeDecodeError) as e:
        print(error(f"{name}: {e}"), file=sys.stderr)
        return IO_ERROR

    try:
        data = Program.read(source).run(ConstantsTable.builtin_set(), args.limit)
    except CoreError as e:
        report(name, e)
        return PROGRAM_ERROR

    try:
        write_output(data, args)
    except OSError as e:
        print(error(f"{args.output or name}: error writing output: {e}"), file=sys.stderr)
        return IO_ERROR

    try:
        verification.check(len(data))
    except VerifyError as e:
        print(error(f"{name}: validation failed: {e}"), file=sys.stderr)
        return LENGTH_VERIFICATION_ERROR
    return SUCCESS


def write_output(data: bytes, args: argparse.Namespace) -> None:
    if args.raw:
        if args.output:
            with open(args.output, "wb") as f:
                f.write(data)
        else:
            sys.stdout.buffer.write(data)
            sys.stdout.flush()
        return

    style = style_from_args(args)
    if args.output:
        with open(args.output, "w", encoding="utf-8", newline="") as f:
            style.write(data, f)
    else:
        style.write(data, sys.stdout)


# ============================================================================
# CLI setup
# ============================================================================

def main(argv: Optional[Sequence[str]] = None) -> int:
    configure_logging(os.environ.get("HEXIT_DEBUG"))
    parser = build_parser()

    try:
        args = parser.parse_args(argv)
    except OptionsError as e:
        print(f"Invalid options: {e}", file=sys.stderr)
        return OPTIONS_ERROR

    if use_colours(args.color):
        C.on()
    else:
        C.off()
    log.info("Running with options %s", args)

    if args.version:
        print(f"hexit v{__version__}")
        return SUCCESS

    if not args.list_constants and args.expression is None and not args.args:
        parser.print_help()
        return OPTIONS_ERROR

    if args.list_constants:
        handler = cmd_list_constants
    elif args.check_syntax:
        handler = cmd_check_syntax
    else:
        handler = cmd_run

    try:
        return handler(args)
    except OptionsError as e:
        print(f"Invalid options: {e}", file=sys.stderr)
        return OPTIONS_ERROR


if __name__ == "__main__":
    sys.exit(main())
