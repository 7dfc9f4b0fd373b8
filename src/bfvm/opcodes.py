"""
Instruction definitions and the program loader.

The loader filters raw source down to the nine instruction symbols and
matches loop brackets into a jump table before anything runs.
"""

import logging
from dataclasses import dataclass
from enum import IntEnum
from types import MappingProxyType
from typing import Dict, List, Mapping, Optional, Tuple, Union

import structlog

from .errors import UnmatchedBracket

logger = structlog.wrap_logger(logging.getLogger(__name__), wrapper_class=structlog.stdlib.BoundLogger)


class Instruction(IntEnum):
    """Instruction set, valued by the byte code of each symbol"""

    OUTPUT = 0x2E  # .
    INPUT = 0x2C  # ,
    INC = 0x2B  # +
    DEC = 0x2D  # -
    RIGHT = 0x3E  # >
    LEFT = 0x3C  # <
    LOOP_OPEN = 0x5B  # [
    LOOP_CLOSE = 0x5D  # ]
    DEBUG_DUMP = 0x23  # #

    @property
    def symbol(self) -> str:
        return chr(self.value)


# Map from source character to instruction
SYMBOLS: Dict[str, Instruction] = {op.symbol: op for op in Instruction}

# Map from raw byte value to instruction, used when scanning bytes
BYTE_CODES: Dict[int, Instruction] = {int(op): op for op in Instruction}


@dataclass(frozen=True)
class Program:
    """
    A loaded program: the filtered instruction sequence and its jump table.

    The jump table maps every '[' position to its ']' position and back.
    """

    instructions: Tuple[Instruction, ...]
    jump_table: Mapping[int, int]

    def __len__(self) -> int:
        return len(self.instructions)

    def __getitem__(self, position: int) -> Instruction:
        return self.instructions[position]

    def disassemble(self) -> List[Tuple[int, str, Optional[int]]]:
        """
        List the program one instruction per row.

        Returns:
            List of tuples (position, symbol, jump_target); jump_target is
            None for anything but a bracket
        """
        return [
            (position, op.symbol, self.jump_table.get(position))
            for position, op in enumerate(self.instructions)
        ]


def filter_instructions(source: Union[str, bytes]) -> Tuple[Instruction, ...]:
    """
    Drop every character that is not an instruction.

    Args:
        source: Raw program text; bytes are scanned byte by byte

    Returns:
        The instructions in source order
    """
    if isinstance(source, (bytes, bytearray)):
        return tuple(BYTE_CODES[b] for b in source if b in BYTE_CODES)
    return tuple(SYMBOLS[c] for c in source if c in SYMBOLS)


def build_jump_table(instructions: Tuple[Instruction, ...]) -> Mapping[int, int]:
    """
    Match loop brackets in a single pass.

    Args:
        instructions: Filtered instruction sequence

    Returns:
        Read-only mapping of each bracket position to its partner

    Raises:
        UnmatchedBracket: On a ']' with no open loop, or on '[' left open at
            the end of the program
    """
    jump_table: Dict[int, int] = {}
    stack: List[int] = []

    for position, op in enumerate(instructions):
        if op == Instruction.LOOP_OPEN:
            stack.append(position)
        elif op == Instruction.LOOP_CLOSE:
            if not stack:
                raise UnmatchedBracket("close", [position])
            start = stack.pop()
            jump_table[start] = position
            jump_table[position] = start

    if stack:
        raise UnmatchedBracket("open", stack)

    return MappingProxyType(jump_table)


def load_program(source: Union[str, bytes]) -> Program:
    """
    Turn raw source into a validated program.

    Raises:
        UnmatchedBracket: If the brackets are not balanced
    """
    instructions = filter_instructions(source)
    try:
        jump_table = build_jump_table(instructions)
    except UnmatchedBracket as e:
        logger.debug("Rejected program", kind=e.kind, positions=list(e.positions))
        raise

    logger.debug(
        "Loaded program",
        source_length=len(source),
        instructions=len(instructions),
        loops=len(jump_table) // 2,
    )
    return Program(instructions=instructions, jump_table=jump_table)
