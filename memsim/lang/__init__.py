"""
memsim front end

- tokenizer: source text -> tokens (comments stripped)
- ast: node kinds and their payloads
- parser: tokens -> statement nodes
"""

from memsim.lang.tokenizer import Token, tokenize
from memsim.lang.ast import ASTNode, NodeKind
from memsim.lang.parser import Parser, ParseError, parse

__all__ = [
    "Token",
    "tokenize",
    "ASTNode",
    "NodeKind",
    "Parser",
    "ParseError",
    "parse",
]
