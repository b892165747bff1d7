"""Exception hierarchy for the LC-3 virtual machine.

Library code raises these; only the command line front end turns them
into user messages and exit codes.
"""


class LC3Error(RuntimeError):
    """Base class for all virtual machine errors."""


class ImageLoadError(LC3Error):
    """A program image could not be opened or is malformed."""


class IllegalOpcodeError(LC3Error):
    """RTI or the reserved opcode was fetched.

    Attributes:
        instruction: Raw 16-bit instruction word
        address: Address the instruction was fetched from
    """

    def __init__(self, instruction: int, address: int):
        self.instruction = instruction
        self.address = address
        super().__init__(
            f"illegal opcode {instruction >> 12:#x} "
            f"(instruction x{instruction:04X} at x{address:04X})"
        )


class UnknownTrapError(LC3Error):
    """TRAP executed with a vector that has no service routine."""

    def __init__(self, vector: int):
        self.vector = vector
        super().__init__(f"unknown trap vector x{vector:02X}")


class ExecutionInterrupted(LC3Error):
    """Execution was cancelled from outside (Ctrl-C)."""


class CycleLimitExceeded(LC3Error):
    """The run loop hit its cycle limit before HALT."""
