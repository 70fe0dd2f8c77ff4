"""
memsim Parser

Recursive-descent parser for the restricted C subset, single left-to-right
pass over the token stream, one AST node per top-level statement.

Statements:
- declarations: `int x;` `char c = 1;` `int *p = malloc(8);` `int a[4];`
- assignments:  `x = e;` `*p = e;` `a[i] = e;`
- calls:        `free(p);` (other names parse but are inert at runtime)
- blocks, if/else, while, C-style for, return, one function definition

Expressions are parsed right-recursively with no precedence climbing, so
`a - b - c` parses as `a - (b - c)`. Binary operators: + - * / < > =
(`==` is accepted as `=`, both meaning equality).

Key classes:
- ParseError: malformed input, carries the offending line
- Parser: the recursive-descent parser
"""

from __future__ import annotations

from typing import List, Optional
import logging
import re

from memsim.lang.tokenizer import Token, tokenize
from memsim.lang.ast import (
    ASTNode,
    NodeKind,
    DeclarationPayload,
    NamePayload,
    NumberPayload,
    SizeofPayload,
    OperatorPayload,
    FunctionPayload,
    node,
)

logger = logging.getLogger(__name__)

TYPE_KEYWORDS = ("int", "char", "void")
DECLARABLE_TYPES = ("int", "char")
KEYWORDS = frozenset(TYPE_KEYWORDS + ("if", "else", "while", "for", "return", "sizeof"))
BINARY_OPERATORS = ("+", "-", "*", "/", "<", ">", "=")

_IDENTIFIER = re.compile(r"^[A-Za-z_][A-Za-z0-9_]*$")
_NUMBER = re.compile(r"^\d+$")


class ParseError(Exception):
    """Raised when the token stream does not form a supported program."""

    def __init__(self, message: str, line: int = 1):
        super().__init__(message)
        self.message = message
        self.line = line

    def __str__(self) -> str:
        return f"line {self.line}: {self.message}"


def is_identifier(text: str) -> bool:
    return bool(_IDENTIFIER.match(text)) and text not in KEYWORDS


class Parser:
    """Recursive-descent parser producing a list of statement nodes."""

    def __init__(self):
        self.tokens: List[Token] = []
        self.position = 0

    def parse(self, code: str) -> List[ASTNode]:
        """Parse source text into top-level statements."""
        self.tokens = tokenize(code)
        self.position = 0

        statements: List[ASTNode] = []
        while not self._at_end():
            stmt = self.parse_statement()
            if stmt is not None:
                statements.append(stmt)

        logger.debug("Parsed %d top-level statements from %d tokens",
                     len(statements), len(self.tokens))
        return statements

    # ------------------------------------------------------------------
    # Statements
    # ------------------------------------------------------------------

    def parse_statement(self) -> Optional[ASTNode]:
        token = self._current()
        text = token.text

        if text in TYPE_KEYWORDS and self._peek(2) == "(":
            return self._parse_function_definition()
        if text in DECLARABLE_TYPES:
            return self._parse_declaration()
        if text == "if":
            return self._parse_if()
        if text == "while":
            return self._parse_while()
        if text == "for":
            return self._parse_for()
        if text == "return":
            return self._parse_return()
        if text == "{":
            return self._parse_block()
        if text == ";":
            self._consume()
            return None
        if text == "*" or is_identifier(text):
            return self._parse_assignment_or_call(";")

        raise ParseError(f"unexpected token '{text}'", token.line)

    def _parse_function_definition(self) -> ASTNode:
        start = self._consume()
        name = self._expect_identifier()
        self._expect("(")
        # Parameters are not modelled; skip to the closing parenthesis.
        while self._current().text != ")":
            if self._at_end():
                raise ParseError("unterminated parameter list", start.line)
            self._consume()
        self._expect(")")
        body = self._parse_block()
        return node(
            NodeKind.FUNCTION_DEFINITION,
            FunctionPayload(return_type=start.text, name=name),
            [body],
            start.line,
        )

    def _parse_declaration(self) -> ASTNode:
        start = self._consume()
        is_pointer = False
        is_array = False
        array_size = 0

        if self._current().text == "*":
            self._consume()
            is_pointer = True

        name = self._expect_identifier()

        if self._current().text == "[":
            if is_pointer:
                raise ParseError("arrays of pointers are not supported", start.line)
            self._consume()
            size_token = self._consume()
            if not _NUMBER.match(size_token.text):
                raise ParseError(f"array '{name}' needs a constant size", size_token.line)
            array_size = int(size_token.text)
            if array_size <= 0:
                raise ParseError(f"array '{name}' must have a positive size", size_token.line)
            self._expect("]")
            is_array = True

        children = []
        if self._current().text == "=":
            self._consume()
            children.append(self.parse_expression())

        self._expect(";")
        return node(
            NodeKind.DECLARATION,
            DeclarationPayload(
                base_type=start.text,
                name=name,
                is_pointer=is_pointer,
                is_array=is_array,
                array_size=array_size,
            ),
            children,
            start.line,
        )

    def _parse_assignment_or_call(self, terminator: str) -> ASTNode:
        """
        Parse `*p = e`, `a[i] = e`, `f(args)` or `x = e`, followed by
        `terminator` (`;` for statements, `)` for a for-loop update clause).
        """
        start = self._current()

        if start.text == "*":
            self._consume()
            name = self._expect_identifier()
            self._expect("=")
            value = self.parse_expression()
            self._expect(terminator)
            return node(NodeKind.POINTER_ASSIGNMENT, NamePayload(name), [value], start.line)

        name = self._expect_identifier()
        following = self._current().text

        if following == "[":
            self._consume()
            index = self.parse_expression()
            self._expect("]")
            self._expect("=")
            value = self.parse_expression()
            self._expect(terminator)
            return node(NodeKind.ARRAY_ASSIGNMENT, NamePayload(name), [index, value], start.line)

        if following == "(":
            self._consume()
            args: List[ASTNode] = []
            while self._current().text != ")":
                if self._at_end():
                    raise ParseError(f"unterminated call to '{name}'", start.line)
                args.append(self.parse_expression())
                if self._current().text == ",":
                    self._consume()
            self._expect(")")
            self._expect(terminator)
            return node(NodeKind.FUNCTION_CALL, NamePayload(name), args, start.line)

        if following == "=":
            self._consume()
            value = self.parse_expression()
            self._expect(terminator)
            return node(NodeKind.ASSIGNMENT, NamePayload(name), [value], start.line)

        if following in ("+", "-") and self._peek(1) == following:
            raise ParseError(
                f"increment operators are not supported, write '{name} = {name} {following} 1'",
                start.line,
            )

        raise ParseError(f"expected assignment or call after '{name}'", start.line)

    def _parse_block(self) -> ASTNode:
        start = self._expect("{")
        statements: List[ASTNode] = []
        while self._current().text != "}":
            if self._at_end():
                raise ParseError("unterminated block", start.line)
            stmt = self.parse_statement()
            if stmt is not None:
                statements.append(stmt)
        self._expect("}")
        return node(NodeKind.BLOCK, children=statements, line=start.line)

    def _parse_body(self, line: int) -> ASTNode:
        """Parse a branch or loop body; a lone `;` becomes an empty block."""
        stmt = self.parse_statement()
        return stmt if stmt is not None else node(NodeKind.BLOCK, line=line)

    def _parse_if(self) -> ASTNode:
        start = self._consume()
        self._expect("(")
        condition = self.parse_expression()
        self._expect(")")
        children = [condition, self._parse_body(start.line)]

        if self._current().text == "else":
            self._consume()
            children.append(self._parse_body(start.line))

        return node(NodeKind.IF, children=children, line=start.line)

    def _parse_while(self) -> ASTNode:
        start = self._consume()
        self._expect("(")
        condition = self.parse_expression()
        self._expect(")")
        body = self._parse_body(start.line)
        return node(NodeKind.WHILE, children=[condition, body], line=start.line)

    def _parse_for(self) -> ASTNode:
        start = self._consume()
        self._expect("(")

        init = self.parse_statement()
        if init is None:
            init = node(NodeKind.BLOCK, line=start.line)

        if self._current().text == ";":
            condition = node(NodeKind.NUMBER_LITERAL, NumberPayload(1), line=start.line)
        else:
            condition = self.parse_expression()
        self._expect(";")

        if self._current().text == ")":
            self._consume()
            update = node(NodeKind.BLOCK, line=start.line)
        else:
            update = self._parse_assignment_or_call(")")

        body = self._parse_body(start.line)
        return node(NodeKind.FOR, children=[init, condition, update, body], line=start.line)

    def _parse_return(self) -> ASTNode:
        start = self._consume()
        children = []
        if self._current().text != ";":
            children.append(self.parse_expression())
        self._expect(";")
        return node(NodeKind.RETURN, children=children, line=start.line)

    # ------------------------------------------------------------------
    # Expressions
    # ------------------------------------------------------------------

    def parse_expression(self) -> ASTNode:
        left = self._parse_operand()

        if self._current().text in BINARY_OPERATORS:
            op_token = self._consume()
            if op_token.text == "=" and self._current().text == "=":
                self._consume()
            right = self.parse_expression()
            return node(
                NodeKind.BINARY_OP,
                OperatorPayload(op_token.text),
                [left, right],
                left.line,
            )

        return left

    def _parse_operand(self) -> ASTNode:
        token = self._current()
        text = token.text

        if text == "malloc":
            self._consume()
            self._expect("(")
            size = self.parse_expression()
            self._expect(")")
            return node(NodeKind.MALLOC, children=[size], line=token.line)

        if text == "sizeof":
            self._consume()
            self._expect("(")
            type_name = self._consume().text
            while self._current().text == "*":
                self._consume()
                type_name += "*"
            self._expect(")")
            return node(NodeKind.SIZEOF, SizeofPayload(type_name), line=token.line)

        if text == "&":
            self._consume()
            name = self._expect_identifier()
            return node(NodeKind.ADDRESS_OF, NamePayload(name), line=token.line)

        if text == "*":
            self._consume()
            if self._current().text == "(":
                self._consume()
                operand = self.parse_expression()
                self._expect(")")
            else:
                name_token = self._current()
                name = self._expect_identifier()
                operand = node(NodeKind.IDENTIFIER, NamePayload(name), line=name_token.line)
            return node(NodeKind.DEREFERENCE, children=[operand], line=token.line)

        if is_identifier(text) and self._peek(1) == "[":
            self._consume()
            self._consume()
            index = self.parse_expression()
            self._expect("]")
            return node(NodeKind.ARRAY_ACCESS, NamePayload(text), [index], token.line)

        return self._parse_primary()

    def _parse_primary(self) -> ASTNode:
        token = self._consume()
        text = token.text

        if _NUMBER.match(text):
            return node(NodeKind.NUMBER_LITERAL, NumberPayload(int(text)), line=token.line)

        if text == "-" and _NUMBER.match(self._current().text):
            number = self._consume()
            return node(NodeKind.NUMBER_LITERAL, NumberPayload(-int(number.text)), line=token.line)

        if is_identifier(text):
            if self._current().text == "(":
                raise ParseError(f"the result of '{text}()' cannot be used as a value", token.line)
            return node(NodeKind.IDENTIFIER, NamePayload(text), line=token.line)

        if text == "(":
            if self._current().text in TYPE_KEYWORDS:
                # Cast: the target type is dropped, the operand is kept.
                self._consume()
                while self._current().text == "*":
                    self._consume()
                self._expect(")")
                return self._parse_operand()
            expr = self.parse_expression()
            self._expect(")")
            return expr

        if not text:
            raise ParseError("unexpected end of input", token.line)
        raise ParseError(f"unexpected token '{text}' in expression", token.line)

    # ------------------------------------------------------------------
    # Token helpers
    # ------------------------------------------------------------------

    def _at_end(self) -> bool:
        return self.position >= len(self.tokens)

    def _eof(self) -> Token:
        last_line = self.tokens[-1].line if self.tokens else 1
        return Token("", last_line)

    def _current(self) -> Token:
        if self._at_end():
            return self._eof()
        return self.tokens[self.position]

    def _peek(self, offset: int = 1) -> str:
        index = self.position + offset
        if index < len(self.tokens):
            return self.tokens[index].text
        return ""

    def _consume(self) -> Token:
        token = self._current()
        self.position += 1
        return token

    def _expect(self, text: str) -> Token:
        token = self._current()
        if token.text != text:
            found = f"'{token.text}'" if token.text else "end of input"
            raise ParseError(f"expected '{text}' but found {found}", token.line)
        self.position += 1
        return token

    def _expect_identifier(self) -> str:
        token = self._current()
        if not is_identifier(token.text):
            found = f"'{token.text}'" if token.text else "end of input"
            raise ParseError(f"expected identifier but found {found}", token.line)
        self.position += 1
        return token.text


def parse(code: str) -> List[ASTNode]:
    """Convenience wrapper: parse source text with a fresh parser."""
    return Parser().parse(code)
