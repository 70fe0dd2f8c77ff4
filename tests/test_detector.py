"""Tests for memory-safety error detection through complete programs."""
import pytest

from memsim.runtime.detector import MemoryViolation, check_free, check_index, find_leaks
from memsim.runtime.state import BlockStatus, ErrorKind, ExecutionState
from memsim.runtime.values import NULL


def only_error(driver):
    errors = driver.state.errors
    assert len(errors) == 1, [e.to_dict() for e in errors]
    return errors[0]


class TestOutOfBounds:
    """Tests for OOB detection."""

    def test_stack_array_write_past_end(self, run_program):
        """Test writing a[3] on a 3-element array."""
        driver = run_program("int a[3];\na[3] = 1;")
        error = only_error(driver)
        assert error.kind == ErrorKind.OOB
        assert error.line == 2
        assert driver.state.current_frame().variables["a"].value.cells == [0, 0, 0]

    def test_negative_index(self, run_program):
        """Test a[-1] is out of bounds."""
        error = only_error(run_program("int a[3];\na[-1] = 2;"))
        assert error.kind == ErrorKind.OOB

    def test_array_read_past_end(self, run_program):
        """Test reading a[5] on a 3-element array."""
        error = only_error(run_program("int a[3];\nint x = a[5];"))
        assert error.kind == ErrorKind.OOB
        assert "out of bounds" in error.message

    def test_heap_overflow(self, run_program):
        """Test p[2] on an 8-byte block."""
        driver = run_program("int *p = malloc(8);\np[1] = 1;\np[2] = 1;")
        error = only_error(driver)
        assert error.kind == ErrorKind.OOB
        assert error.line == 3
        assert next(iter(driver.state.heap.values())).data == [0, 1]

    def test_pointer_past_scalar(self, run_program):
        """Test writing one int past a scalar variable."""
        error = only_error(run_program("int x;\nint *p = &x;\np = p + 1;\n*p = 3;"))
        assert error.kind == ErrorKind.OOB
        assert error.line == 4

    def test_check_index_bounds(self):
        """Test check_index accepts [0, length)."""
        check_index(0, 1, "a", 1)
        with pytest.raises(MemoryViolation):
            check_index(1, 1, "a", 1)


class TestUseAfterFree:
    """Tests for UAF detection."""

    def test_write_after_free(self, run_program, uaf_program):
        """Test the canonical write-after-free program."""
        driver = run_program(uaf_program)
        error = only_error(driver)
        assert error.kind == ErrorKind.UAF
        assert error.line == 5
        assert "allocated at line 2" in error.details
        assert "freed at line 4" in error.details
        block = next(iter(driver.state.heap.values()))
        assert block.status == BlockStatus.FREED
        assert block.data == [42]

    def test_read_after_free(self, run_program):
        """Test reading through a dangling pointer."""
        error = only_error(run_program("int *p = malloc(4);\nfree(p);\nint x = *p;"))
        assert error.kind == ErrorKind.UAF
        assert error.line == 3

    def test_index_after_free(self, run_program):
        """Test p[0] after free."""
        error = only_error(run_program("int *p = malloc(8);\nfree(p);\np[0] = 1;"))
        assert error.kind == ErrorKind.UAF


class TestNullDereference:
    """Tests for NULL_DEREF detection."""

    def test_write_through_uninitialized_pointer(self, run_program):
        """Test an uninitialized pointer is NULL."""
        error = only_error(run_program("int *p;\n*p = 5;"))
        assert error.kind == ErrorKind.NULL_DEREF
        assert error.line == 2

    def test_read_through_null(self, run_program):
        """Test reading *p where p = NULL."""
        error = only_error(run_program("int *p = NULL;\nint x = *p;"))
        assert error.kind == ErrorKind.NULL_DEREF

    def test_free_null(self, run_program):
        """Test free(NULL) is reported."""
        error = only_error(run_program("free(NULL);"))
        assert error.kind == ErrorKind.NULL_DEREF
        assert error.message == "Attempting to free NULL pointer"

    def test_free_zero(self, run_program):
        """Test free(0) is treated as free(NULL)."""
        error = only_error(run_program("free(0);"))
        assert error.kind == ErrorKind.NULL_DEREF


class TestDoubleFree:
    """Tests for DOUBLE_FREE detection."""

    def test_double_free(self, run_program):
        """Test the second free of the same block."""
        driver = run_program("int *p = malloc(4);\nfree(p);\nfree(p);")
        error = only_error(driver)
        assert error.kind == ErrorKind.DOUBLE_FREE
        assert error.line == 3
        assert error.message == "Double free detected at 0x00400000"
        assert next(iter(driver.state.heap.values())).freed_at == 2


class TestInvalidFree:
    """Tests for free() of pointers malloc did not return."""

    def test_free_stack_address(self, run_program):
        """Test free(&x) is invalid."""
        error = only_error(run_program("int x;\nfree(&x);"))
        assert error.kind == ErrorKind.SYNTAX
        assert error.message == "Invalid pointer passed to free()"

    def test_free_interior_pointer(self, run_program):
        """Test free(p + 1) is invalid."""
        error = only_error(run_program("int *p = malloc(8);\nfree(p + 1);"))
        assert error.kind == ErrorKind.SYNTAX

    def test_check_free_null(self):
        """Test check_free refuses NULL directly."""
        with pytest.raises(MemoryViolation) as exc_info:
            check_free(ExecutionState(), NULL, 1)
        assert exc_info.value.kind == ErrorKind.NULL_DEREF


class TestLeaks:
    """Tests for LEAK detection."""

    def test_single_leak(self, run_program, leak_program):
        """Test one unfreed block gives one LEAK error."""
        driver = run_program(leak_program)
        error = only_error(driver)
        assert error.kind == ErrorKind.LEAK
        assert error.message == "1 memory leak(s) detected"
        assert "0x00400018" in error.details

    def test_many_leaks_are_one_error(self, run_program):
        """Test leaks are aggregated."""
        error = only_error(run_program("int *a = malloc(4);\nint *b = malloc(4);\nint *c = malloc(4);"))
        assert error.message == "3 memory leak(s) detected"

    def test_no_leak_check_after_other_error(self, run_program):
        """Test a halted-by-error run is not also reported as leaking."""
        driver = run_program("int *p = malloc(4);\nint a[1];\na[1] = 0;")
        assert only_error(driver).kind == ErrorKind.OOB

    def test_no_leaks_when_everything_freed(self, run_program):
        """Test balanced malloc/free is clean."""
        driver = run_program("int *p = malloc(4);\nfree(p);")
        assert driver.state.errors == []
        assert find_leaks(driver.state) == []


class TestOtherFaults:
    """Tests for evaluation failures reported as SYNTAX."""

    def test_infinite_loop(self, run_program):
        """Test the default loop limit."""
        driver = run_program("int x = 0;\nwhile (1) { x = x + 1; }")
        error = only_error(driver)
        assert error.kind == ErrorKind.SYNTAX
        assert error.message == "Infinite loop detected"
        assert driver.state.current_frame().variables["x"].value.value == 1000

    def test_division_by_zero(self, run_program):
        """Test x / 0."""
        error = only_error(run_program("int x = 1;\nint y = x / 0;"))
        assert error.kind == ErrorKind.SYNTAX
        assert error.line == 2

    def test_undeclared_variable(self, run_program):
        """Test assigning an undeclared name."""
        error = only_error(run_program("y = 5;"))
        assert error.kind == ErrorKind.SYNTAX
        assert error.message == "Variable y not declared"

    def test_error_is_logged(self, run_program):
        """Test every error appears in the event log."""
        driver = run_program("int *p;\n*p = 1;")
        assert driver.state.log[-1].message.startswith("NULL_DEREF: ")
