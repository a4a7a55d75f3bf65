"""
Hexit output styles

How evaluated bytes are shown as text: each byte as two hex digits,
wrapped in an optional prefix and suffix, joined by a separator, and
followed by a newline.

Usage:
    Style().format(b"\\x12\\xab")                          # "12AB\\n"
    Style(prefix="0x", separator=", ").format(b"\\x12\\xab")  # "0x12, 0xAB\\n"
    Style(case=LetterCase.LOWER).format(b"\\xab")            # "ab\\n"
"""

from __future__ import annotations

from dataclasses import dataclass
from enum import Enum
from typing import TextIO


class LetterCase(Enum):
    UPPER = "X"
    LOWER = "x"


@dataclass(frozen=True)
class Style:
    prefix: str = ""
    suffix: str = ""
    separator: str = ""
    case: LetterCase = LetterCase.UPPER
    newline: bool = True

    def format(self, data: bytes) -> str:
        spec = "02" + self.case.value
        text = self.separator.join(f"{self.prefix}{b:{spec}}{self.suffix}" for b in data)
        return text + "\n" if self.newline else text

    def write(self, data: bytes, stream: TextIO) -> None:
        stream.write(self.format(data))
