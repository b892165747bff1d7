"""CPUState: register file and bit-level helpers for the LC-3.

State Components:
    - Registers: R0-R7 (8 general-purpose 16-bit unsigned values)
    - PC: Program counter, always the address of the *next* fetch
    - COND: Condition flag register, exactly one of POS/ZRO/NEG
    - Halted: Execution termination flag
    - Cycle count: Total executed instructions

Values are stored unsigned and interpreted as two's complement only
where an instruction calls for it.
"""

from dataclasses import dataclass, field
from typing import Dict, List, Union


MEMORY_SIZE = 1 << 16
WORD_MASK = 0xFFFF
SIGN_BIT = 0x8000

# Default load/start address for user programs
PC_START = 0x3000

NUM_REGISTERS = 8
R_R7 = 7

# Condition flags
FL_POS = 1 << 0
FL_ZRO = 1 << 1
FL_NEG = 1 << 2

FLAG_NAMES = {FL_NEG: "N", FL_ZRO: "Z", FL_POS: "P"}


def sign_extend(value: int, bit_count: int) -> int:
    """Widen a `bit_count`-bit two's-complement field to 16 bits.

    Args:
        value: Raw field value (only the low `bit_count` bits are used)
        bit_count: Width of the field

    Returns:
        16-bit unsigned result with the high bits filled when negative
    """
    value &= (1 << bit_count) - 1
    if (value >> (bit_count - 1)) & 1:
        value |= (WORD_MASK << bit_count) & WORD_MASK
    return value


def to_signed(value: int) -> int:
    """Interpret a 16-bit word as a signed integer."""
    value &= WORD_MASK
    return value - MEMORY_SIZE if value & SIGN_BIT else value


def flag_for(value: int) -> int:
    """Condition flag describing a 16-bit result."""
    value &= WORD_MASK
    if value == 0:
        return FL_ZRO
    if value & SIGN_BIT:
        return FL_NEG
    return FL_POS


RegisterRef = Union[int, str]


@dataclass
class CPUState:
    """Mutable LC-3 register file.

    Owned by a single LC3CPU; opcode primitives mutate it in place.

    Attributes:
        registers: R0-R7 as 16-bit unsigned values
        pc: Program counter
        cond: Condition flag (FL_POS, FL_ZRO or FL_NEG)
        halted: Whether the HALT trap has executed
        cycle_count: Number of executed instructions
    """
    registers: List[int] = field(default_factory=lambda: [0] * NUM_REGISTERS)
    pc: int = PC_START
    cond: int = FL_ZRO
    halted: bool = False
    cycle_count: int = 0

    @staticmethod
    def _index(reg: RegisterRef) -> int:
        if isinstance(reg, str):
            name = reg.upper()
            if len(name) == 2 and name[0] == "R" and name[1] in "01234567":
                return int(name[1])
            raise KeyError(f"Invalid register: {reg}")
        if not 0 <= reg < NUM_REGISTERS:
            raise KeyError(f"Invalid register: R{reg}")
        return reg

    def get_register(self, reg: RegisterRef) -> int:
        """Get value of a register.

        Args:
            reg: Register index (0-7) or name (R0-R7, case insensitive)

        Raises:
            KeyError: If register doesn't exist
        """
        return self.registers[self._index(reg)]

    def set_register(self, reg: RegisterRef, value: int) -> None:
        """Store a value (masked to 16 bits). Flags are left alone."""
        self.registers[self._index(reg)] = value & WORD_MASK

    def update_flags(self, reg: RegisterRef) -> None:
        """Recompute COND from the current value of `reg`."""
        self.cond = flag_for(self.get_register(reg))

    def set_pc(self, new_pc: int) -> None:
        self.pc = new_pc & WORD_MASK

    @property
    def flag_name(self) -> str:
        return FLAG_NAMES.get(self.cond, "?")

    def snapshot(self) -> dict:
        """Copy of the register file for tracing.

        Returns:
            Dictionary with registers, pc, cond, halted and cycle_count
        """
        return {
            "registers": list(self.registers),
            "pc": self.pc,
            "cond": self.cond,
            "halted": self.halted,
            "cycle_count": self.cycle_count,
        }

    def validate(self) -> bool:
        """Validate state integrity.

        Checks:
            - Exactly eight registers, each a 16-bit unsigned int
            - PC within the address space
            - COND holds exactly one flag
            - Cycle count non-negative
        """
        if len(self.registers) != NUM_REGISTERS:
            return False
        for value in self.registers:
            if not isinstance(value, int) or not 0 <= value <= WORD_MASK:
                return False
        if not 0 <= self.pc <= WORD_MASK:
            return False
        if self.cond not in FLAG_NAMES:
            return False
        return self.cycle_count >= 0

    def dump_registers(self) -> Dict[str, int]:
        """Get a copy of all register values keyed by name."""
        return {f"R{i}": value for i, value in enumerate(self.registers)}

    def __str__(self) -> str:
        regs = " ".join(f"R{i}=x{v:04X}" for i, v in enumerate(self.registers))
        return (
            f"[Cycle {self.cycle_count}] PC=x{self.pc:04X} {regs} "
            f"COND={self.flag_name} {'HALTED' if self.halted else ''}"
        ).rstrip()


def create_initial_state(start: int = PC_START) -> CPUState:
    """Fresh register file: zeroed registers, COND=Z, PC at `start`."""
    return CPUState(pc=start & WORD_MASK)
