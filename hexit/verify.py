"""
Hexit Length Verification

Checks an evaluated output length against an exact size or a block size.
Nothing here runs during evaluation; the caller decides when to verify.

Usage:
    verify(len(data), exact=20)          # LengthMismatch unless 20 bytes
    verify(len(data), multiple_of=16)    # NotAMultiple unless 0, 16, 32, ...

    check = Verification(multiple_of=4)
    check.check(len(data))
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import Optional


class VerifyError(Exception):
    """Output length does not satisfy a verification constraint."""

    def __init__(self, message: str, expected: int, actual: int):
        super().__init__(message)
        self.expected = expected
        self.actual = actual


class LengthMismatch(VerifyError):
    def __init__(self, expected: int, actual: int):
        super().__init__(f"Expected {expected} bytes, got {actual}", expected, actual)


class NotAMultiple(VerifyError):
    def __init__(self, expected: int, actual: int):
        super().__init__(f"Expected a multiple of {expected} bytes, got {actual}", expected, actual)


def verify(byte_length: int, exact: Optional[int] = None, multiple_of: Optional[int] = None) -> None:
    """Raise a VerifyError if byte_length breaks either constraint.

    Args:
        byte_length: length of the evaluated output
        exact: required length, if any
        multiple_of: required block size, if any; must be positive
    """
    if multiple_of is not None and multiple_of <= 0:
        raise ValueError(f"multiple_of must be positive, got {multiple_of}")

    if exact is not None and byte_length != exact:
        raise LengthMismatch(exact, byte_length)
    if multiple_of is not None and byte_length % multiple_of:
        raise NotAMultiple(multiple_of, byte_length)


@dataclass(frozen=True)
class Verification:
    """The length constraints chosen for one run."""
    exact: Optional[int] = None
    multiple_of: Optional[int] = None

    @property
    def enabled(self) -> bool:
        return self.exact is not None or self.multiple_of is not None

    def check(self, byte_length: int) -> None:
        verify(byte_length, self.exact, self.multiple_of)

    def describe(self) -> str:
        if self.exact is not None:
            return f"{self.exact} bytes"
        if self.multiple_of is not None:
            return f"a multiple of {self.multiple_of} bytes"
        return "any length"
