"""
Execution engine for loaded programs.

This module provides the tape model, the per-run execution state and the
fetch-execute loop that drives a program to completion or failure.
"""

import io
import logging
from typing import BinaryIO, List, Optional, Union

import structlog

from .errors import OutputFailure, PointerUnderflow
from .opcodes import Instruction, Program, load_program

# Follows the stdlib logging configuration; silent until it is set up
logger = structlog.wrap_logger(logging.getLogger(__name__), wrapper_class=structlog.stdlib.BoundLogger)

# Configuration constants
CELL_MODULUS = 256
DEBUG_DUMP_CELLS = 10


class Tape:
    """Byte cells growing to the right, all starting at zero."""

    def __init__(self, cells: Optional[List[int]] = None):
        self.cells: List[int] = [c % CELL_MODULUS for c in cells] if cells else [0]

    def __len__(self) -> int:
        return len(self.cells)

    def __getitem__(self, index: int) -> int:
        # Cells past the current extent have never been written
        if index < len(self.cells):
            return self.cells[index]
        return 0

    def __setitem__(self, index: int, value: int) -> None:
        self.ensure(index)
        self.cells[index] = value % CELL_MODULUS

    def __repr__(self) -> str:
        return f"Tape({self.cells!r})"

    def ensure(self, index: int) -> None:
        """Grow the tape with zero cells until `index` is addressable."""
        while len(self.cells) <= index:
            self.cells.append(0)

    def increment(self, index: int) -> None:
        self.cells[index] = (self.cells[index] + 1) % CELL_MODULUS

    def decrement(self, index: int) -> None:
        self.cells[index] = (self.cells[index] - 1) % CELL_MODULUS

    def window(self, count: int) -> List[int]:
        """The first `count` cells, zero-padded past the extent."""
        return [self[i] for i in range(count)]


def format_debug_dump(tape: Tape) -> bytes:
    """Render the '#' line: the first ten cells, space separated."""
    return (" ".join(str(v) for v in tape.window(DEBUG_DUMP_CELLS)) + "\n").encode("ascii")


class ExecutionState:
    """Represents the mutable state of a single run."""

    def __init__(self, tape: Optional[Tape] = None):
        self.tape = tape if tape is not None else Tape()
        self.dp = 0
        self.ip = 0
        self.steps = 0

    @property
    def cell(self) -> int:
        return self.tape[self.dp]

    def __repr__(self) -> str:
        return f"ExecutionState(ip={self.ip}, dp={self.dp}, steps={self.steps}, tape_extent={len(self.tape)})"


class Interpreter:
    """Runs a loaded program against an input and an output byte stream."""

    def __init__(
        self,
        program: Program,
        input_stream: Optional[BinaryIO] = None,
        output_stream: Optional[BinaryIO] = None,
        tape: Optional[Tape] = None,
    ):
        """
        Args:
            program: Output of load_program
            input_stream: Binary stream read one byte at a time by ','
                (empty input if omitted)
            output_stream: Binary stream written by '.' and '#'
                (an in-memory buffer if omitted)
            tape: Initial tape contents, a fresh zero tape if omitted
        """
        self.program = program
        self.input = input_stream if input_stream is not None else io.BytesIO()
        self.output = output_stream if output_stream is not None else io.BytesIO()
        self.state = ExecutionState(tape)

    @property
    def finished(self) -> bool:
        return self.state.ip >= len(self.program)

    def run(self) -> ExecutionState:
        """Execute until the instruction pointer runs off the end of the program."""
        logger.debug("Starting run", program_length=len(self.program))
        while self.step():
            pass
        logger.debug(
            "Run complete",
            steps=self.state.steps,
            tape_extent=len(self.state.tape),
        )
        return self.state

    def step(self) -> bool:
        """
        Execute the instruction at the instruction pointer.

        Returns:
            False once the program has completed, True otherwise

        Raises:
            PointerUnderflow: On '<' with the data pointer at 0
            OutputFailure: If the output stream rejects a write
        """
        state = self.state
        if state.ip >= len(self.program):
            return False

        op = self.program.instructions[state.ip]
        tape = state.tape

        if op == Instruction.INC:
            tape.increment(state.dp)
        elif op == Instruction.DEC:
            tape.decrement(state.dp)
        elif op == Instruction.RIGHT:
            state.dp += 1
            tape.ensure(state.dp)
        elif op == Instruction.LEFT:
            if state.dp == 0:
                logger.debug("Pointer underflow", position=state.ip, steps=state.steps)
                raise PointerUnderflow(state.ip)
            state.dp -= 1
        elif op == Instruction.OUTPUT:
            self._emit(bytes((state.cell,)))
        elif op == Instruction.INPUT:
            data = self.input.read(1)
            tape[state.dp] = data[0] if data else 0
        elif op == Instruction.LOOP_OPEN:
            if state.cell == 0:
                state.ip = self.program.jump_table[state.ip]
        elif op == Instruction.LOOP_CLOSE:
            if state.cell != 0:
                state.ip = self.program.jump_table[state.ip]
        elif op == Instruction.DEBUG_DUMP:
            self._emit(format_debug_dump(tape))

        state.ip += 1
        state.steps += 1
        return state.ip < len(self.program)

    def _emit(self, data: bytes) -> None:
        try:
            self.output.write(data)
            self.output.flush()
        except (OSError, ValueError) as e:
            logger.debug("Output sink failed", position=self.state.ip, error=str(e))
            raise OutputFailure(self.state.ip, str(e)) from e


def run_source(source: Union[str, bytes], input_data: bytes = b"") -> bytes:
    """
    Load and run a program with in-memory streams.

    Args:
        source: Raw program text
        input_data: Bytes served to ',' in order

    Returns:
        Everything the program wrote
    """
    output = io.BytesIO()
    Interpreter(load_program(source), io.BytesIO(input_data), output).run()
    return output.getvalue()
