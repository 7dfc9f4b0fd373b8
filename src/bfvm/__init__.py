"""
bfvm: an interpreter for the eight-instruction byte-tape language plus the
'#' debug dump.
"""

__version__ = "0.1.0"

# Loader
from .opcodes import (
    Instruction,
    Program,
    build_jump_table,
    filter_instructions,
    load_program,
)

# Engine
from .engine import ExecutionState, Interpreter, Tape, format_debug_dump, run_source

# Errors
from .errors import (
    BFError,
    ExecutionError,
    LoadError,
    OutputFailure,
    PointerUnderflow,
    UnmatchedBracket,
)


__all__ = [
    # Loader
    "Instruction",
    "Program",
    "build_jump_table",
    "filter_instructions",
    "load_program",
    # Engine
    "ExecutionState",
    "Interpreter",
    "Tape",
    "format_debug_dump",
    "run_source",
    # Errors
    "BFError",
    "ExecutionError",
    "LoadError",
    "OutputFailure",
    "PointerUnderflow",
    "UnmatchedBracket",
]
