"""Tests for the recursive-descent parser."""
import pytest

from memsim.lang.ast import (
    ASTNode,
    DeclarationPayload,
    EmptyPayload,
    NamePayload,
    NodeKind,
    NumberPayload,
    node,
)
from memsim.lang.parser import Parser, ParseError, is_identifier, parse


def single(code: str) -> ASTNode:
    statements = parse(code)
    assert len(statements) == 1
    return statements[0]


def expr(code: str) -> ASTNode:
    """Parse `x = <code>;` and return the right-hand side."""
    return single(f"x = {code};").children[0]


class TestDeclarations:
    """Tests for declaration statements."""

    def test_plain_int(self):
        """Test `int x;` has no initializer."""
        stmt = single("int x;")
        assert stmt.kind == NodeKind.DECLARATION
        assert stmt.payload == DeclarationPayload("int", "x")
        assert stmt.children == []

    def test_initialized_pointer(self):
        """Test `int *p = &x;` keeps the address-of initializer."""
        stmt = single("int *p = &x;")
        assert stmt.payload.is_pointer
        assert stmt.payload.name == "p"
        assert stmt.children[0].kind == NodeKind.ADDRESS_OF
        assert stmt.children[0].payload.name == "x"

    def test_array(self):
        """Test `char buf[8];` records array size."""
        stmt = single("char buf[8];")
        assert stmt.payload == DeclarationPayload("char", "buf", is_array=True, array_size=8)

    def test_array_needs_constant_size(self):
        """Test a non-literal array size is rejected."""
        with pytest.raises(ParseError):
            parse("int a[n];")

    def test_zero_sized_array_rejected(self):
        """Test `int a[0];` is rejected."""
        with pytest.raises(ParseError):
            parse("int a[0];")

    def test_pointer_array_rejected(self):
        """Test arrays of pointers are not supported."""
        with pytest.raises(ParseError):
            parse("int *a[3];")

    def test_malloc_sizeof_initializer(self):
        """Test `malloc(sizeof(int))` nests a sizeof node."""
        stmt = single("int *p = malloc(sizeof(int));")
        init = stmt.children[0]
        assert init.kind == NodeKind.MALLOC
        assert init.children[0].kind == NodeKind.SIZEOF
        assert init.children[0].payload.type_name == "int"

    def test_sizeof_pointer_type(self):
        """Test `sizeof(int*)` keeps the star in the type name."""
        assert expr("sizeof(int *)").payload.type_name == "int*"


class TestAssignments:
    """Tests for assignment and call statements."""

    def test_assignment(self):
        """Test `x = 5;`."""
        stmt = single("x = 5;")
        assert stmt.kind == NodeKind.ASSIGNMENT
        assert stmt.payload == NamePayload("x")
        assert stmt.children[0].payload == NumberPayload(5)

    def test_pointer_assignment(self):
        """Test `*p = 21;` is a pointer assignment."""
        stmt = single("*p = 21;")
        assert stmt.kind == NodeKind.POINTER_ASSIGNMENT
        assert stmt.payload.name == "p"

    def test_array_assignment(self):
        """Test `a[i] = 1;` has index then value."""
        stmt = single("a[i] = 1;")
        assert stmt.kind == NodeKind.ARRAY_ASSIGNMENT
        index, value = stmt.children
        assert index.kind == NodeKind.IDENTIFIER
        assert value.payload.value == 1

    def test_function_call(self):
        """Test `free(p);` is a call with one argument."""
        stmt = single("free(p);")
        assert stmt.kind == NodeKind.FUNCTION_CALL
        assert stmt.payload.name == "free"
        assert len(stmt.children) == 1

    def test_call_with_several_arguments(self):
        """Test commas separate call arguments."""
        stmt = single("printf(1, x, 3);")
        assert len(stmt.children) == 3

    def test_increment_is_rejected_with_hint(self):
        """Test `i++` suggests the supported spelling."""
        with pytest.raises(ParseError) as exc_info:
            parse("i++;")
        assert "i = i + 1" in exc_info.value.message

    def test_missing_semicolon(self):
        """Test a missing `;` reports the line of the next token."""
        with pytest.raises(ParseError) as exc_info:
            parse("x = 1\ny = 2;")
        assert exc_info.value.line == 2


class TestControlFlow:
    """Tests for blocks, branches and loops."""

    def test_if_else(self):
        """Test `if` with `else` has three children."""
        stmt = single("if (x < 3) { x = 1; } else x = 2;")
        assert stmt.kind == NodeKind.IF
        assert len(stmt.children) == 3
        assert stmt.children[1].kind == NodeKind.BLOCK
        assert stmt.children[2].kind == NodeKind.ASSIGNMENT

    def test_while(self):
        """Test `while` has condition and body."""
        stmt = single("while (x) { x = x - 1; }")
        assert stmt.kind == NodeKind.WHILE
        assert len(stmt.children) == 2

    def test_empty_loop_body(self):
        """Test `while (x);` gets an empty block body."""
        stmt = single("while (x);")
        assert stmt.children[1].kind == NodeKind.BLOCK
        assert stmt.children[1].children == []

    def test_for(self):
        """Test `for` has init, condition, update and body."""
        stmt = single("for (int i = 0; i < 3; i = i + 1) { x = i; }")
        assert stmt.kind == NodeKind.FOR
        init, condition, update, body = stmt.children
        assert init.kind == NodeKind.DECLARATION
        assert condition.payload.operator == "<"
        assert update.kind == NodeKind.ASSIGNMENT
        assert body.kind == NodeKind.BLOCK

    def test_for_with_empty_clauses(self):
        """Test `for (;;)` defaults to an always-true condition."""
        init, condition, update, body = single("for (;;) { }").children
        assert init.kind == NodeKind.BLOCK
        assert condition.payload == NumberPayload(1)
        assert update.kind == NodeKind.BLOCK

    def test_for_with_increment_is_rejected(self):
        """Test `i++` in a for update is rejected."""
        with pytest.raises(ParseError):
            parse("for (i = 0; i < 3; i++) { }")

    def test_return(self):
        """Test `return 0;` and bare `return;`."""
        assert single("return 0;").children[0].payload.value == 0
        assert single("return;").children == []

    def test_function_definition(self):
        """Test `int main() {...}` keeps its body and skips parameters."""
        stmt = single("int main(int argc, char **argv) {\n  int x;\n}")
        assert stmt.kind == NodeKind.FUNCTION_DEFINITION
        assert stmt.payload.name == "main"
        body = stmt.children[0]
        assert body.children[0].kind == NodeKind.DECLARATION
        assert body.children[0].line == 2

    def test_unterminated_block(self):
        """Test a missing `}` is a parse error."""
        with pytest.raises(ParseError):
            parse("int main() { int x;")

    def test_stray_semicolons_ignored(self):
        """Test empty statements produce no nodes."""
        assert len(parse(";; int x; ;")) == 1


class TestExpressions:
    """Tests for expression parsing."""

    def test_binary_operators_are_right_recursive(self):
        """Test `10 - 2 - 3` groups as `10 - (2 - 3)`."""
        tree = expr("10 - 2 - 3")
        assert tree.payload.operator == "-"
        assert tree.children[0].payload.value == 10
        assert tree.children[1].kind == NodeKind.BINARY_OP
        assert tree.children[1].children[0].payload.value == 2

    def test_no_precedence(self):
        """Test `2 * 3 + 4` groups as `2 * (3 + 4)`."""
        tree = expr("2 * 3 + 4")
        assert tree.payload.operator == "*"
        assert tree.children[1].payload.operator == "+"

    def test_parentheses_group(self):
        """Test parentheses override the default grouping."""
        tree = expr("(2 * 3) + 4")
        assert tree.payload.operator == "+"
        assert tree.children[0].payload.operator == "*"

    def test_double_equals_is_equality(self):
        """Test `a == b` parses as the `=` comparison."""
        tree = expr("a == b")
        assert tree.payload.operator == "="
        assert tree.children[1].kind == NodeKind.IDENTIFIER

    def test_negative_literal(self):
        """Test `-5` is a single literal."""
        assert expr("-5").payload == NumberPayload(-5)

    def test_dereference_of_name(self):
        """Test `*p` wraps an identifier operand."""
        tree = expr("*p")
        assert tree.kind == NodeKind.DEREFERENCE
        assert tree.children[0].payload.name == "p"

    def test_dereference_of_expression(self):
        """Test `*(p + 1)` wraps a binary operand."""
        tree = expr("*(p + 1)")
        assert tree.kind == NodeKind.DEREFERENCE
        assert tree.children[0].kind == NodeKind.BINARY_OP

    def test_array_access(self):
        """Test `a[2]` reads through ARRAY_ACCESS."""
        tree = expr("a[2]")
        assert tree.kind == NodeKind.ARRAY_ACCESS
        assert tree.payload.name == "a"

    def test_cast_is_dropped(self):
        """Test `(int*) malloc(4)` keeps only the malloc."""
        assert expr("(int*) malloc(4)").kind == NodeKind.MALLOC

    def test_call_result_not_a_value(self):
        """Test using a non-malloc call as a value is rejected."""
        with pytest.raises(ParseError):
            parse("x = f(1);")

    def test_unexpected_token(self):
        """Test `int x = ;` is rejected."""
        with pytest.raises(ParseError) as exc_info:
            parse("int x = ;")
        assert "';'" in exc_info.value.message

    def test_error_message_includes_line(self):
        """Test ParseError renders its line."""
        error = ParseError("boom", 7)
        assert str(error) == "line 7: boom"


class TestAST:
    """Tests for AST node invariants."""

    def test_payload_must_match_kind(self):
        """Test a mismatched payload is refused."""
        with pytest.raises(TypeError):
            ASTNode(NodeKind.IDENTIFIER, NumberPayload(1))

    def test_default_payload(self):
        """Test node() fills in the empty payload for structural kinds."""
        assert isinstance(node(NodeKind.BLOCK).payload, EmptyPayload)

    def test_to_dict(self):
        """Test nodes serialize with kind, payload and children."""
        data = single("int x = 1;").to_dict()
        assert data["kind"] == "declaration"
        assert data["payload"]["name"] == "x"
        assert data["children"][0]["kind"] == "number_literal"

    def test_is_identifier(self):
        """Test keywords are not identifiers."""
        assert is_identifier("main")
        assert not is_identifier("while")
        assert not is_identifier("3x")

    def test_parser_is_reusable(self):
        """Test one Parser can parse several programs."""
        parser = Parser()
        assert len(parser.parse("int x;")) == 1
        assert len(parser.parse("int y; y = 2;")) == 2
