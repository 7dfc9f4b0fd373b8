#!/usr/bin/env python3
"""
Command-line entry point for bfvm.

Runs a program given either as a file path or inline with -c, using stdin
and stdout as the program's byte streams.
"""

import argparse
import logging
import os
import sys
from typing import List, Optional

import structlog
from structlog.stdlib import LoggerFactory

from . import __version__
from .engine import Interpreter
from .errors import ExecutionError, LoadError
from .opcodes import Program, load_program

logger = structlog.get_logger()

# Configuration constants
DEFAULT_LOG_LEVEL = "WARNING"
LOG_LEVEL_ENV = "BFVM_LOG_LEVEL"
LOG_LEVELS = ["DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL"]

EXIT_OK = 0
EXIT_FAILURE = 1
EXIT_INTERRUPTED = 130


def configure_logging(log_level: str = DEFAULT_LOG_LEVEL) -> None:
    """Configure structured logging on stderr, leaving stdout to the program."""
    logging.basicConfig(
        format="%(message)s",
        level=getattr(logging, log_level.upper(), logging.WARNING),
        stream=sys.stderr,
        force=True,  # Override any root logger config
    )
    # Processors and the cached loggers only need setting up once per process
    if structlog.is_configured():
        return

    structlog.configure(
        processors=[
            structlog.stdlib.filter_by_level,
            structlog.stdlib.add_logger_name,
            structlog.stdlib.add_log_level,
            structlog.stdlib.PositionalArgumentsFormatter(),
            structlog.processors.TimeStamper(fmt="iso"),
            structlog.processors.StackInfoRenderer(),
            structlog.processors.format_exc_info,
            structlog.processors.UnicodeDecoder(),
            structlog.dev.ConsoleRenderer(colors=False),
        ],
        context_class=dict,
        logger_factory=LoggerFactory(),
        wrapper_class=structlog.stdlib.BoundLogger,
        cache_logger_on_first_use=True,
    )


def attach_inline_code(argv: List[str]) -> List[str]:
    """
    Join "-c CODE" into "-cCODE".

    argparse reads a separate value starting with '-' as an option, and
    programs commonly open with '-'.
    """
    joined = []
    args = iter(argv)
    for arg in args:
        if arg == "-c":
            code = next(args, None)
            if code:
                joined.append("-c" + code)
                continue
            if code is not None:
                joined.extend([arg, code])
                continue
        joined.append(arg)
    return joined


def parse_args(argv: Optional[List[str]] = None) -> argparse.Namespace:
    """Parse command line arguments"""
    parser = argparse.ArgumentParser(
        prog="bfvm",
        description="Run a byte-tape program from a file or from the command line",
    )
    source = parser.add_mutually_exclusive_group(required=True)
    source.add_argument("file", nargs="?", metavar="FILE", help="Path to the program source")
    source.add_argument("-c", dest="code", metavar="CODE", help="Program source given inline")

    parser.add_argument(
        "--disassemble",
        action="store_true",
        help="Print the loaded instructions and bracket targets instead of running",
    )
    parser.add_argument(
        "--log-level",
        default=os.environ.get(LOG_LEVEL_ENV, DEFAULT_LOG_LEVEL).upper(),
        choices=LOG_LEVELS,
        metavar="LEVEL",
        help=f"Logging level (default: ${LOG_LEVEL_ENV} or {DEFAULT_LOG_LEVEL})",
    )
    parser.add_argument("--verbose", "-v", action="store_true", help="Enable debug logging")
    parser.add_argument("--version", action="version", version=f"bfvm {__version__}")
    return parser.parse_args(attach_inline_code(sys.argv[1:] if argv is None else argv))


def read_source(path: str) -> bytes:
    with open(path, "rb") as f:
        return f.read()


def print_disassembly(program: Program) -> None:
    for position, symbol, target in program.disassemble():
        if target is None:
            print(f"{position:6d}  {symbol}")
        else:
            print(f"{position:6d}  {symbol}  -> {target}")


def main(argv: Optional[List[str]] = None) -> int:
    args = parse_args(argv)
    configure_logging("DEBUG" if args.verbose else args.log_level)

    if args.code is not None:
        source = args.code
        origin = "<-c>"
    else:
        try:
            source = read_source(args.file)
        except OSError as e:
            logger.debug("Could not read source", path=args.file, error=e.strerror or str(e))
            print(f"error: cannot read {args.file!r}: {e.strerror or e}", file=sys.stderr)
            return EXIT_FAILURE
        origin = args.file

    try:
        program = load_program(source)
    except LoadError as e:
        logger.debug("Program rejected", source=origin, error=str(e))
        print(f"error: {e}", file=sys.stderr)
        return EXIT_FAILURE

    if args.disassemble:
        print_disassembly(program)
        return EXIT_OK

    logger.info("Running program", source=origin, instructions=len(program))
    interpreter = Interpreter(program, sys.stdin.buffer, sys.stdout.buffer)
    try:
        interpreter.run()
    except ExecutionError as e:
        print(f"error: {e}", file=sys.stderr)
        return EXIT_FAILURE
    except KeyboardInterrupt:
        logger.info("Interrupted by user", state=repr(interpreter.state))
        return EXIT_INTERRUPTED

    logger.info("Program finished", steps=interpreter.state.steps)
    return EXIT_OK


if __name__ == "__main__":
    sys.exit(main())
