"""LC3CPU: fetch-decode-execute orchestrator for the LC-3.

Pipeline for every cycle:
    MEMORY -> FETCH (PC += 1) -> DECODE -> KEY -> REGISTRY -> EXECUTE

The CPU owns its register file, address space, console and trap
dispatcher; nothing else mutates them. Cancellation is cooperative: the
run loop checks an interrupt event before each fetch.
"""

import threading
from collections import deque
from dataclasses import dataclass
from pathlib import Path
from typing import Deque, Dict, Iterable, List, Optional, Tuple, Union

from .console import BufferedConsole, Console
from .decode import DecodeResult, decode, format_instruction
from .errors import CycleLimitExceeded, ExecutionInterrupted, IllegalOpcodeError
from .loader import load_image_bytes, read_image
from .memory import Memory
from .registry import OpcodeRegistry, get_registry
from .state import FL_NEG, FL_POS, FL_ZRO, PC_START, CPUState, create_initial_state
from .traps import TrapDispatcher


@dataclass
class ExecutionTraceEntry:
    """Single entry in the execution trace.

    Attributes:
        cycle: Cycle number (0-indexed)
        address: Address the instruction was fetched from
        instruction: Raw instruction word
        decode_result: Result from the decoder
        pre_state: State before execution
        post_state: State after execution
        error: Error message if execution failed
    """
    cycle: int
    address: int
    instruction: int
    decode_result: DecodeResult
    pre_state: dict
    post_state: dict
    error: Optional[str] = None

    @property
    def text(self) -> str:
        return format_instruction(self.decode_result)


class LC3CPU:
    """LC-3 virtual machine.

    Attributes:
        console: Terminal used by traps and the keyboard registers
        memory: 64K-word address space
        state: Register file
        registry: Opcode primitives
        traps: Trap service routines
        interrupt: Event that aborts run() when set
        max_cycles: Cycle limit for run(), None for unlimited
        tracing: Whether step() records ExecutionTraceEntry objects
        trace: Most recent trace entries, at most trace_limit of them
    """

    DEFAULT_MAX_CYCLES: Optional[int] = None
    DEFAULT_TRACE_LIMIT: Optional[int] = 10000

    def __init__(
        self,
        console: Optional[Console] = None,
        max_cycles: Optional[int] = DEFAULT_MAX_CYCLES,
        strict_traps: bool = False,
        trace: bool = False,
        interrupt: Optional[threading.Event] = None,
        start: int = PC_START,
        trace_limit: Optional[int] = DEFAULT_TRACE_LIMIT,
    ):
        """Initialize the CPU.

        Args:
            console: Terminal to use; defaults to an empty BufferedConsole
            max_cycles: Cycle limit for run() (None = run until HALT)
            strict_traps: Fault on unknown trap vectors instead of ignoring them
            trace: Record an ExecutionTraceEntry for every step
            interrupt: Cancellation event shared with the console
            start: Initial program counter
            trace_limit: Keep only the newest entries (None = keep all)
        """
        self.console = console if console is not None else BufferedConsole()
        self.interrupt = interrupt if interrupt is not None else threading.Event()
        if self.console.interrupt is None:
            self.console.interrupt = self.interrupt
        self.memory = Memory(self.console)
        self.registry: OpcodeRegistry = get_registry()
        self.traps = TrapDispatcher(strict=strict_traps)
        self.max_cycles = max_cycles
        self.tracing = trace
        self.start = start
        self.trace_limit = trace_limit
        self.state: CPUState = create_initial_state(start)
        self.trace: Deque[ExecutionTraceEntry] = deque(maxlen=trace_limit)

    def reset(self) -> None:
        """Reset registers, trace and any pending keystroke; memory is left as loaded."""
        self.state = create_initial_state(self.start)
        self.trace = deque(maxlen=self.trace_limit)
        self.console.consume_pending()

    # =========================================================================
    # Program loading
    # =========================================================================

    def load_image(self, path: Union[str, Path], strict: bool = False) -> Tuple[int, int]:
        """Load an image file; returns (origin, words_loaded)."""
        return read_image(self.memory, path, strict=strict)

    def load_image_bytes(self, data: bytes, strict: bool = False) -> Tuple[int, int]:
        return load_image_bytes(self.memory, data, strict=strict)

    def load_words(self, origin: int, words: Iterable[int]) -> int:
        """Place words directly into memory from `origin`."""
        return self.memory.load_words(origin, words)

    # =========================================================================
    # Execution
    # =========================================================================

    def step(self) -> DecodeResult:
        """Execute a single instruction cycle.

        Performs: FETCH -> DECODE -> EXECUTE

        Returns:
            DecodeResult of the executed instruction

        Raises:
            RuntimeError: If the CPU is halted
            IllegalOpcodeError: For RTI or the reserved opcode
            UnknownTrapError: For unknown trap vectors in strict mode
        """
        state = self.state
        if state.halted:
            raise RuntimeError("CPU is halted")

        # FETCH
        address = state.pc
        pre_state = state.snapshot() if self.tracing else None
        instruction = self.memory.read(address)
        state.set_pc(address + 1)

        # DECODE
        result = decode(instruction)

        # EXECUTE
        error = None
        try:
            if not result.valid:
                raise IllegalOpcodeError(instruction, address)
            self.registry.execute(self, result.key, result.params)
        except Exception as e:
            error = str(e)
            raise
        finally:
            if self.tracing:
                self.trace.append(ExecutionTraceEntry(
                    cycle=pre_state["cycle_count"],
                    address=address,
                    instruction=instruction,
                    decode_result=result,
                    pre_state=pre_state,
                    post_state=state.snapshot(),
                    error=error,
                ))

        return result

    def run(self, max_cycles: Optional[int] = None) -> List[ExecutionTraceEntry]:
        """Run the CPU until HALT.

        Args:
            max_cycles: Override the instance cycle limit

        Returns:
            Execution trace, newest trace_limit entries (empty unless tracing is enabled)

        Raises:
            ExecutionInterrupted: If the interrupt event is set
            CycleLimitExceeded: If the cycle limit is reached before HALT
            IllegalOpcodeError: For RTI or the reserved opcode
        """
        limit = max_cycles if max_cycles is not None else self.max_cycles
        state = self.state
        interrupt = self.interrupt

        while not state.halted:
            if interrupt.is_set():
                raise ExecutionInterrupted("execution interrupted")
            if limit is not None and state.cycle_count >= limit:
                raise CycleLimitExceeded(f"Max cycles ({limit}) exceeded")
            self.step()

        return list(self.trace)

    # =========================================================================
    # Inspection
    # =========================================================================

    def get_register(self, reg: Union[int, str]) -> int:
        return self.state.get_register(reg)

    def dump_registers(self) -> Dict[str, int]:
        return self.state.dump_registers()

    def get_flags(self) -> Dict[str, bool]:
        """Condition flags as {"N": ..., "Z": ..., "P": ...}."""
        cond = self.state.cond
        return {"N": cond == FL_NEG, "Z": cond == FL_ZRO, "P": cond == FL_POS}

    def get_pc(self) -> int:
        return self.state.pc

    def get_cycle_count(self) -> int:
        return self.state.cycle_count

    def is_halted(self) -> bool:
        return self.state.halted

    def get_trace(self) -> List[ExecutionTraceEntry]:
        return list(self.trace)

    def print_trace(self, limit: Optional[int] = None, file=None) -> None:
        """Print execution trace in human-readable format.

        Args:
            limit: Only print the last `limit` entries
            file: Stream to print to (default stdout)
        """
        entries = list(self.trace)
        if limit is not None:
            entries = entries[-limit:]
        print("=" * 70, file=file)
        print("LC-3 EXECUTION TRACE", file=file)
        print("=" * 70, file=file)

        for entry in entries:
            status = "" if not entry.error else f"  ERROR: {entry.error}"
            print(f"[{entry.cycle:>8}] x{entry.address:04X}  x{entry.instruction:04X}  "
                  f"{entry.text:<24}{status}", file=file)

            pre_regs = entry.pre_state["registers"]
            post_regs = entry.post_state["registers"]
            changes = [
                f"R{i}: x{before:04X} -> x{after:04X}"
                for i, (before, after) in enumerate(zip(pre_regs, post_regs))
                if before != after
            ]
            if changes:
                print(f"           {', '.join(changes)}", file=file)

        print("=" * 70, file=file)
        print("FINAL STATE", file=file)
        print("=" * 70, file=file)
        print(f"  {self.state}", file=file)

    def get_summary(self) -> Dict:
        """Execution statistics and final register state."""
        return {
            "cycles": self.get_cycle_count(),
            "halted": self.is_halted(),
            "registers": self.dump_registers(),
            "flags": self.get_flags(),
            "pc": self.get_pc(),
            "trace_length": len(self.trace),
            "errors": [e.error for e in self.trace if e.error],
        }
