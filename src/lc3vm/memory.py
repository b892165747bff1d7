"""Memory: the LC-3 address space with its memory-mapped keyboard.

Two addresses are intercepted on read:
    MR_KBSR (xFE00): status poll, bit 15 set while a key is pending
    MR_KBDR (xFE02): data register, low byte holds the pending key

Every other address is plain storage, and nothing is write-protected.
"""

from typing import Iterable, Optional

from .console import BufferedConsole, Console
from .state import MEMORY_SIZE, WORD_MASK


MR_KBSR = 0xFE00
MR_KBDR = 0xFE02

KBSR_READY = 1 << 15


class Memory:
    """65536 sixteen-bit cells.

    Attributes:
        cells: Backing storage, indexed by address
        console: Source of keyboard input for the device registers
    """

    def __init__(self, console: Optional[Console] = None):
        self.cells = [0] * MEMORY_SIZE
        self.console = console if console is not None else BufferedConsole()

    def __len__(self) -> int:
        return MEMORY_SIZE

    def read(self, addr: int) -> int:
        """Read a cell, running the keyboard device hooks first."""
        addr &= WORD_MASK
        if addr == MR_KBSR:
            char = self.console.peek_char()
            if char is not None:
                self.cells[MR_KBSR] = KBSR_READY
                self.cells[MR_KBDR] = char & WORD_MASK
            else:
                self.cells[MR_KBSR] = 0
        elif addr == MR_KBDR:
            # Reading the data register acknowledges the key
            self.console.consume_pending()
        return self.cells[addr]

    def write(self, addr: int, value: int) -> None:
        self.cells[addr & WORD_MASK] = value & WORD_MASK

    def peek(self, addr: int) -> int:
        """Read a cell with no device side effects."""
        return self.cells[addr & WORD_MASK]

    def load_words(self, origin: int, words: Iterable[int]) -> int:
        """Store words contiguously from `origin`, stopping at the top of memory.

        Returns:
            Number of words stored
        """
        addr = origin & WORD_MASK
        count = 0
        for word in words:
            if addr >= MEMORY_SIZE:
                break
            self.cells[addr] = word & WORD_MASK
            addr += 1
            count += 1
        return count
