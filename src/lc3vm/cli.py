"""LC-3 VM command line interface.

Usage:
    lc3vm program.obj
    lc3vm os.obj program.obj --max-cycles 1000000
    lc3vm 2048.obj --trace --verbose

Images are loaded in argument order; later images overwrite earlier
ones where they overlap. Execution starts at x3000.
"""

import argparse
import logging
import signal
import sys
import threading
from typing import List, Optional

from .console import Console, get_console
from .cpu import LC3CPU
from .errors import (
    CycleLimitExceeded,
    ExecutionInterrupted,
    IllegalOpcodeError,
    ImageLoadError,
    UnknownTrapError,
)


logger = logging.getLogger(__name__)

EXIT_OK = 0
EXIT_LOAD_FAILURE = 1
EXIT_USAGE = 2
EXIT_CYCLE_LIMIT = 3
# abort() / SIGABRT
EXIT_FAULT = 134
# exit(-2) as seen by the shell
EXIT_INTERRUPTED = 254

TRACE_TAIL = 200


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="lc3vm",
        description="LC-3 virtual machine",
        formatter_class=argparse.RawDescriptionHelpFormatter,
        epilog="""
Examples:
    # Run a program image
    lc3vm rogue.obj

    # Stop after one million instructions
    lc3vm 2048.obj --max-cycles 1000000

    # Print the last instructions executed when the program stops
    lc3vm hello.obj --trace
        """
    )
    parser.add_argument(
        "images",
        nargs="+",
        metavar="image-file",
        help="Program image(s): big-endian origin word followed by big-endian words"
    )
    parser.add_argument(
        "--max-cycles",
        type=int,
        default=None,
        help="Maximum instructions to execute. Default: unlimited"
    )
    parser.add_argument(
        "--strict-traps",
        action="store_true",
        help="Treat unknown trap vectors as a fatal fault instead of a no-op"
    )
    parser.add_argument(
        "--strict-load",
        action="store_true",
        help="Reject images that run past the end of memory instead of truncating"
    )
    parser.add_argument(
        "--trace", "-t",
        action="store_true",
        help=f"Record execution and print the last {TRACE_TAIL} instructions to stderr"
    )
    parser.add_argument(
        "--verbose", "-v",
        action="store_true",
        help="Debug logging on stderr"
    )
    return parser


def main(argv: Optional[List[str]] = None, console: Optional[Console] = None) -> int:
    parser = build_parser()
    args = parser.parse_args(argv)

    logging.basicConfig(
        level=logging.DEBUG if args.verbose else logging.WARNING,
        format="%(levelname)s %(name)s: %(message)s",
        stream=sys.stderr,
    )

    if console is None:
        interrupt = threading.Event()
        console = get_console(interrupt=interrupt)
    elif console.interrupt is None:
        interrupt = console.interrupt = threading.Event()
    else:
        interrupt = console.interrupt

    cpu = LC3CPU(
        console=console,
        max_cycles=args.max_cycles,
        strict_traps=args.strict_traps,
        trace=args.trace,
        interrupt=interrupt,
        trace_limit=TRACE_TAIL,
    )

    for path in args.images:
        try:
            origin, count = cpu.load_image(path, strict=args.strict_load)
        except ImageLoadError as e:
            print(f"failed to load image: {path}")
            logger.debug("%s", e)
            return EXIT_LOAD_FAILURE
        logger.debug("%s: %d words at x%04X", path, count, origin)

    def handle_interrupt(signum, frame):
        interrupt.set()

    previous_handler = None
    if threading.current_thread() is threading.main_thread():
        previous_handler = signal.signal(signal.SIGINT, handle_interrupt)

    try:
        with console.raw_mode():
            try:
                cpu.run()
            except ExecutionInterrupted:
                console.write_text("\n")
                console.flush()
                return EXIT_INTERRUPTED
            except (IllegalOpcodeError, UnknownTrapError) as e:
                console.flush()
                print(f"\nfatal: {e}", file=sys.stderr)
                return EXIT_FAULT
            except CycleLimitExceeded as e:
                console.flush()
                print(f"\n{e}", file=sys.stderr)
                return EXIT_CYCLE_LIMIT
            finally:
                if args.trace:
                    cpu.print_trace(limit=TRACE_TAIL, file=sys.stderr)
    finally:
        if previous_handler is not None:
            signal.signal(signal.SIGINT, previous_handler)

    logger.debug("halted after %d instructions", cpu.get_cycle_count())
    return EXIT_OK


if __name__ == "__main__":
    sys.exit(main())
