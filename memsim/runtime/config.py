"""
memsim Execution Configuration

Constants of the simulated address space and limits of the execution driver.
"""

from __future__ import annotations

from dataclasses import dataclass


@dataclass
class ExecutionConfig:
    """Configuration for the interpreter and execution driver."""
    stack_base: int = 0x7FFF_F000
    frame_reservation: int = 0x1000
    heap_base: int = 0x0040_0000
    heap_padding: int = 16
    cell_size: int = 4
    max_allocation: int = 64 * 1024
    max_heap_size: int = 256 * 1024
    max_loop_iterations: int = 1000
    history_capacity: int = 100
    speed_ms: int = 500
    min_speed_ms: int = 100
    max_speed_ms: int = 2000

    def validate(self) -> "ExecutionConfig":
        """Raise ValueError if any field is out of range; return self."""
        if self.stack_base <= self.heap_base:
            raise ValueError("stack_base must lie above heap_base")
        for name in ("frame_reservation", "cell_size", "max_loop_iterations",
                     "history_capacity", "max_allocation", "max_heap_size"):
            if getattr(self, name) <= 0:
                raise ValueError(f"{name} must be positive")
        if self.heap_padding < 0:
            raise ValueError("heap_padding must not be negative")
        if self.min_speed_ms > self.max_speed_ms:
            raise ValueError("min_speed_ms must not exceed max_speed_ms")
        self.check_speed(self.speed_ms)
        return self

    def check_speed(self, speed_ms: int) -> int:
        if not self.min_speed_ms <= speed_ms <= self.max_speed_ms:
            raise ValueError(
                f"speed must be between {self.min_speed_ms} and "
                f"{self.max_speed_ms} ms, got {speed_ms}"
            )
        return speed_ms
