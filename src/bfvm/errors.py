"""
Exception types raised by the loader and the interpreter.
"""

from typing import Iterable, Tuple


class BFError(Exception):
    """Base class for every failure surfaced by bfvm."""


class LoadError(BFError):
    """The source could not be turned into a runnable program."""


class UnmatchedBracket(LoadError):
    """
    A loop bracket without a partner.

    Args:
        kind: "open" for a '[' that is never closed, "close" for a ']'
            with nothing to close
        positions: Instruction positions of the offending brackets, ascending
    """

    def __init__(self, kind: str, positions: Iterable[int]):
        self.kind = kind
        self.positions: Tuple[int, ...] = tuple(positions)
        symbol = "[" if kind == "open" else "]"
        message = f"unmatched '{symbol}' at position {self.positions[0]}"
        if len(self.positions) > 1:
            others = ", ".join(str(p) for p in self.positions[1:])
            message += f" (also at {others})"
        super().__init__(message)

    @property
    def position(self) -> int:
        return self.positions[0]


class ExecutionError(BFError):
    """A run aborted while executing the instruction at `position`."""

    def __init__(self, message: str, position: int):
        self.position = position
        super().__init__(message)


class PointerUnderflow(ExecutionError):
    def __init__(self, position: int):
        super().__init__(f"pointer underflow at instruction {position} ('<')", position)


class OutputFailure(ExecutionError):
    """The output sink refused a write; the original error is chained as __cause__."""

    def __init__(self, position: int, reason: str):
        self.reason = reason
        super().__init__(f"output failed at instruction {position}: {reason}", position)
