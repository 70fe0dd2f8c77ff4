"""Test fixtures for the memsim test suite."""
import pytest
import sys
from pathlib import Path
from typing import Callable, List

# Add project root to path
project_root = Path(__file__).parent.parent
sys.path.insert(0, str(project_root))

from memsim.runtime.config import ExecutionConfig
from memsim.runtime.driver import ExecutionDriver


SAFE_POINTER_PROGRAM = """int main() {
    int x = 42;
    int *p = &x;
    *p = 21;
    return 0;
}
"""

USE_AFTER_FREE_PROGRAM = """int main() {
    int *p = malloc(sizeof(int));
    *p = 42;
    free(p);
    *p = 21;
    return 0;
}
"""

LEAK_PROGRAM = """int main() {
    int *a = malloc(8);
    int *b = malloc(16);
    free(a);
    return 0;
}
"""


class FakeHandle:
    """Timer handle returned by FakeScheduler.call_later."""

    def __init__(self, delay: float, callback: Callable[[], None]):
        self.delay = delay
        self.callback = callback
        self.cancelled = False

    def cancel(self):
        self.cancelled = True


class FakeScheduler:
    """Manually driven stand-in for an event loop's call_later."""

    def __init__(self):
        self.handles: List[FakeHandle] = []

    def call_later(self, delay, callback):
        handle = FakeHandle(delay, callback)
        self.handles.append(handle)
        return handle

    @property
    def pending(self) -> List[FakeHandle]:
        return [h for h in self.handles if not h.cancelled]

    def fire(self) -> bool:
        """Run the oldest pending callback. Returns False if none is pending."""
        pending = self.pending
        if not pending:
            return False
        handle = pending[0]
        self.handles.remove(handle)
        handle.callback()
        return True

    def fire_all(self, limit: int = 10000) -> int:
        fired = 0
        while fired < limit and self.fire():
            fired += 1
        return fired


@pytest.fixture
def safe_program() -> str:
    """Stack pointer written through correctly; no errors expected."""
    return SAFE_POINTER_PROGRAM


@pytest.fixture
def uaf_program() -> str:
    """Write through a pointer after its block was freed on line 4."""
    return USE_AFTER_FREE_PROGRAM


@pytest.fixture
def leak_program() -> str:
    """Two allocations, one free; one block leaks."""
    return LEAK_PROGRAM


@pytest.fixture
def scheduler() -> FakeScheduler:
    """Manually fired scheduler for auto-run tests."""
    return FakeScheduler()


@pytest.fixture
def driver() -> ExecutionDriver:
    """Driver with default configuration and no scheduler."""
    return ExecutionDriver()


@pytest.fixture
def scheduled_driver(scheduler: FakeScheduler) -> ExecutionDriver:
    """Driver whose auto-run loop is driven by the fake scheduler."""
    return ExecutionDriver(ExecutionConfig(), scheduler=scheduler)


@pytest.fixture
def run_program() -> Callable[[str], ExecutionDriver]:
    """Load a program into a fresh driver and step it until it halts."""
    def _run(code: str, **config) -> ExecutionDriver:
        driver = ExecutionDriver(ExecutionConfig(**config))
        driver.set_code(code)
        driver.run_to_end()
        return driver
    return _run
