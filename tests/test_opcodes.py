import pytest
from hypothesis import given, settings
from hypothesis.strategies import composite
from hypothesis import strategies as st

from bfvm.errors import UnmatchedBracket
from bfvm.opcodes import (
    Instruction,
    SYMBOLS,
    build_jump_table,
    filter_instructions,
    load_program,
)

INSTRUCTION_ALPHABET = "+-<>.,[]#"

# Arbitrary text mixing instruction symbols with comment characters
source_strategy = st.text(alphabet=INSTRUCTION_ALPHABET + "ab \n\tx0", max_size=200)


def is_balanced(source: str) -> bool:
    """Reference check: brackets balanced when only instructions count."""
    depth = 0
    for c in source:
        if c == "[":
            depth += 1
        elif c == "]":
            depth -= 1
            if depth < 0:
                return False
    return depth == 0



def as_text(program) -> str:
    return "".join(op.symbol for op in program.instructions)

# Strategy for generating well-nested programs with comments in between
@composite
def balanced_source(draw, depth=0):
    parts = []
    length = draw(st.integers(min_value=0, max_value=8))
    for _ in range(length):
        if depth < 4 and draw(st.booleans()):
            parts.append("[" + draw(balanced_source(depth=depth + 1)) + "]")
        else:
            parts.append(draw(st.text(alphabet="+-<>.,#xyz ", max_size=5)))
    return "".join(parts)


@settings(max_examples=300, deadline=None)
@given(source=source_strategy)
def test_load_succeeds_iff_balanced(source: str):
    """The loader accepts a source exactly when its brackets are balanced."""
    if is_balanced(source):
        program = load_program(source)
        assert len(program) == sum(1 for c in source if c in INSTRUCTION_ALPHABET)
    else:
        with pytest.raises(UnmatchedBracket):
            load_program(source)


@settings(max_examples=200, deadline=None)
@given(source=balanced_source())
def test_jump_table_is_symmetric_and_nested(source: str):
    """Every bracket maps to its partner and back, with the partner of the right kind."""
    program = load_program(source)
    for position, target in program.jump_table.items():
        assert program.jump_table[target] == position
        if program[position] == Instruction.LOOP_OPEN:
            assert target > position
            assert program[target] == Instruction.LOOP_CLOSE
            # Everything strictly between is itself balanced
            assert is_balanced(as_text(program)[position + 1:target])
        else:
            assert program[position] == Instruction.LOOP_CLOSE
            assert target < position

    brackets = [i for i, op in enumerate(program.instructions) if op in (Instruction.LOOP_OPEN, Instruction.LOOP_CLOSE)]
    assert sorted(program.jump_table) == brackets


@settings(max_examples=200, deadline=None)
@given(source=source_strategy)
def test_filter_matches_bytes_and_text(source: str):
    """Scanning bytes or text gives the same instructions."""
    assert filter_instructions(source) == filter_instructions(source.encode("ascii"))


# --- Tests for Edge Cases ---

def test_empty_source():
    """Empty source loads to an empty program."""
    program = load_program("")
    assert len(program) == 0
    assert dict(program.jump_table) == {}


def test_simple_loop_loads():
    program = load_program("[]")
    assert program.instructions == (Instruction.LOOP_OPEN, Instruction.LOOP_CLOSE)
    assert dict(program.jump_table) == {0: 1, 1: 0}


@pytest.mark.parametrize(
    "source, kind, positions",
    [
        ("][", "close", (0,)),
        ("[", "open", (0,)),
        ("]", "close", (0,)),
        ("+[[-]", "open", (1,)),
        ("[[", "open", (0, 1)),
        ("[]]", "close", (2,)),
        ("ab ] cd", "close", (0,)),
    ],
)
def test_unmatched_brackets(source, kind, positions):
    """Unbalanced sources report the kind and the offending instruction positions."""
    with pytest.raises(UnmatchedBracket) as excinfo:
        load_program(source)
    assert excinfo.value.kind == kind
    assert excinfo.value.positions == positions
    assert excinfo.value.position == positions[0]


def test_unmatched_message_names_first_position():
    with pytest.raises(UnmatchedBracket, match=r"unmatched '\[' at position 2 \(also at 3\)"):
        load_program("++[[")


def test_comments_are_dropped():
    """Non-instruction characters take no position at all."""
    assert load_program("+a+b+") == load_program("+++")
    program = load_program("x[y+z]w")
    assert as_text(program) == "[+]"
    assert dict(program.jump_table) == {0: 2, 2: 0}


def test_all_nine_symbols_recognised():
    program = load_program("+-<>.,[]#")
    assert program.instructions == (
        Instruction.INC,
        Instruction.DEC,
        Instruction.LEFT,
        Instruction.RIGHT,
        Instruction.OUTPUT,
        Instruction.INPUT,
        Instruction.LOOP_OPEN,
        Instruction.LOOP_CLOSE,
        Instruction.DEBUG_DUMP,
    )
    assert len(SYMBOLS) == 9


def test_symbol_round_trip():
    for op in Instruction:
        assert SYMBOLS[op.symbol] is op
        assert op == ord(op.symbol)


def test_build_jump_table_nested():
    instructions = filter_instructions("[[][]]")
    table = build_jump_table(instructions)
    assert dict(table) == {0: 5, 5: 0, 1: 2, 2: 1, 3: 4, 4: 3}


def test_jump_table_is_read_only():
    table = load_program("[]").jump_table
    with pytest.raises(TypeError):
        table[0] = 5


def test_disassemble_lists_targets():
    program = load_program("+[->+<]")
    assert program.disassemble() == [
        (0, "+", None),
        (1, "[", 6),
        (2, "-", None),
        (3, ">", None),
        (4, "+", None),
        (5, "<", None),
        (6, "]", 1),
    ]
