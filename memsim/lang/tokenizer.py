"""
memsim Tokenizer

Turns C-like source text into a flat token stream.

Comments (`//`, `/* */`) and preprocessor lines (`#include ...`) are stripped
first, then the text is split on whitespace and single-character punctuators.
Every punctuator is its own token, even when glued to an identifier or number.

No error is raised here; malformed input surfaces later in the parser.

Key classes:
- Token: token text plus the source line it came from
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import List
import re

PUNCTUATORS = "(){}[];,*&=+-<>!/"

_LINE_COMMENT = re.compile(r"//.*$", re.MULTILINE)
_BLOCK_COMMENT = re.compile(r"/\*.*?\*/", re.DOTALL)
_PREPROCESSOR = re.compile(r"^[ \t]*#.*$", re.MULTILINE)


@dataclass(frozen=True)
class Token:
    """A lexical token and the 1-based line it starts on."""
    text: str
    line: int

    def __str__(self) -> str:
        return self.text


def strip_comments(code: str) -> str:
    """
    Remove comments and preprocessor lines.

    Block comments are replaced by as many newlines as they spanned so that
    line numbers of the remaining tokens are unchanged.
    """
    code = _LINE_COMMENT.sub("", code)
    code = _BLOCK_COMMENT.sub(lambda m: "\n" * m.group(0).count("\n"), code)
    return _PREPROCESSOR.sub("", code)


def tokenize(code: str) -> List[Token]:
    """Split source text into tokens."""
    code = strip_comments(code)
    tokens: List[Token] = []
    current = ""
    line = 1

    def flush() -> None:
        nonlocal current
        if current:
            tokens.append(Token(current, line))
        current = ""

    for char in code:
        if char == "\n":
            flush()
            line += 1
        elif char.isspace():
            flush()
        elif char in PUNCTUATORS:
            flush()
            tokens.append(Token(char, line))
        else:
            current += char

    flush()
    return tokens
