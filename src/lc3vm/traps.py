"""TrapDispatcher: console service routines invoked by TRAP.

R0 carries the parameter or result for every routine. Each routine runs
to completion before the CPU fetches the next instruction.

Vectors:
    GETC  (x20): read one character, no echo, into R0
    OUT   (x21): write the low byte of R0
    PUTS  (x22): write the zero-terminated one-char-per-word string at R0
    IN    (x23): prompt, read one character with echo, into R0
    PUTSP (x24): write the zero-terminated two-chars-per-word string at R0
    HALT  (x25): print "HALT" and stop the CPU
"""

import logging
from typing import TYPE_CHECKING, Callable, Dict

from .errors import UnknownTrapError
from .state import WORD_MASK

if TYPE_CHECKING:
    from .cpu import LC3CPU


logger = logging.getLogger(__name__)

TRAP_GETC = 0x20
TRAP_OUT = 0x21
TRAP_PUTS = 0x22
TRAP_IN = 0x23
TRAP_PUTSP = 0x24
TRAP_HALT = 0x25

TRAP_NAMES = {
    TRAP_GETC: "GETC",
    TRAP_OUT: "OUT",
    TRAP_PUTS: "PUTS",
    TRAP_IN: "IN",
    TRAP_PUTSP: "PUTSP",
    TRAP_HALT: "HALT",
}

IN_PROMPT = "Enter a character: "
HALT_NOTICE = "HALT"

TrapHandler = Callable[["LC3CPU"], None]


class TrapDispatcher:
    """Maps trap vectors to service routines.

    Attributes:
        strict: Raise UnknownTrapError for unrecognised vectors instead
            of treating them as a no-op
    """

    def __init__(self, strict: bool = False):
        self.strict = strict
        self._routines: Dict[int, TrapHandler] = {
            TRAP_GETC: self._trap_getc,
            TRAP_OUT: self._trap_out,
            TRAP_PUTS: self._trap_puts,
            TRAP_IN: self._trap_in,
            TRAP_PUTSP: self._trap_putsp,
            TRAP_HALT: self._trap_halt,
        }

    def dispatch(self, cpu: "LC3CPU", vector: int) -> None:
        """Run the service routine for `vector`.

        Raises:
            UnknownTrapError: If the vector is unknown and strict is set
        """
        routine = self._routines.get(vector)
        if routine is None:
            if self.strict:
                raise UnknownTrapError(vector)
            logger.warning("ignoring unknown trap vector x%02X at x%04X",
                           vector, (cpu.state.pc - 1) & WORD_MASK)
            return
        routine(cpu)

    def _trap_getc(self, cpu: "LC3CPU") -> None:
        state = cpu.state
        state.set_register(0, cpu.console.read_char())
        state.update_flags(0)

    def _trap_out(self, cpu: "LC3CPU") -> None:
        cpu.console.write_byte(cpu.state.registers[0])
        cpu.console.flush()

    def _trap_puts(self, cpu: "LC3CPU") -> None:
        console = cpu.console
        addr = cpu.state.registers[0]
        word = cpu.memory.peek(addr)
        while word:
            console.write_byte(word)
            addr = (addr + 1) & WORD_MASK
            word = cpu.memory.peek(addr)
        console.flush()

    def _trap_in(self, cpu: "LC3CPU") -> None:
        console = cpu.console
        state = cpu.state
        console.write_text(IN_PROMPT)
        console.flush()
        char = console.read_char()
        console.write_byte(char)
        console.flush()
        state.set_register(0, char)
        state.update_flags(0)

    def _trap_putsp(self, cpu: "LC3CPU") -> None:
        console = cpu.console
        addr = cpu.state.registers[0]
        word = cpu.memory.peek(addr)
        while word:
            console.write_byte(word)
            high = word >> 8
            if high:
                console.write_byte(high)
            addr = (addr + 1) & WORD_MASK
            word = cpu.memory.peek(addr)
        console.flush()

    def _trap_halt(self, cpu: "LC3CPU") -> None:
        cpu.console.write_text(HALT_NOTICE)
        cpu.console.flush()
        cpu.state.halted = True
