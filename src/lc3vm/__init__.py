"""LC3VM: an interpreter for the LC-3 educational computer.

Runs pre-assembled LC-3 program images (games, test binaries) by
interpreting their 16-bit instruction stream in a simulated 64K-word
address space.

Architecture:
    MEMORY -> FETCH -> DECODE -> KEY -> REGISTRY -> EXECUTE -> STATE
                                           |
                                      TRAP DISPATCHER -> CONSOLE

Modules:
    state: Register file, condition flags and bit helpers
    memory: Address space with the memory-mapped keyboard
    console: Terminal capability interface and implementations
    decode: Instruction decoder and disassembler
    registry: Opcode primitives
    traps: Console service routines
    loader: Program image loading
    cpu: Main LC3CPU orchestrator
    cli: Command line front end
"""

__version__ = "0.1.0"

from .state import CPUState, sign_extend
from .memory import Memory
from .console import BufferedConsole, Console, get_console
from .decode import DecodeResult, decode, format_instruction
from .registry import OpcodeRegistry
from .traps import TrapDispatcher
from .cpu import LC3CPU
from .errors import (
    CycleLimitExceeded,
    ExecutionInterrupted,
    IllegalOpcodeError,
    ImageLoadError,
    LC3Error,
    UnknownTrapError,
)

__all__ = [
    "CPUState", "sign_extend", "Memory", "BufferedConsole", "Console",
    "get_console", "DecodeResult", "decode", "format_instruction",
    "OpcodeRegistry", "TrapDispatcher", "LC3CPU", "LC3Error",
    "ImageLoadError", "IllegalOpcodeError", "UnknownTrapError",
    "ExecutionInterrupted", "CycleLimitExceeded",
]
