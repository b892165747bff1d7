"""OpcodeRegistry: LC-3 instruction primitives.

Each decoded operation key maps to one handler. Handlers mutate the
CPU's register file and memory in place:

    handler(cpu, params) -> None

PC-relative forms add their offset to the already-incremented PC, the
address of the instruction after the one being executed. All register
and address arithmetic wraps at 16 bits.

Registry Keys:
    OP_ADD_REG / OP_ADD_IMM: DR = SR1 + (SR2 | imm5)
    OP_AND_REG / OP_AND_IMM: DR = SR1 & (SR2 | imm5)
    OP_NOT: DR = ~SR
    OP_BR: conditional PC-relative branch
    OP_JMP: PC = base register (RET when base is R7)
    OP_JSR / OP_JSRR: R7 = PC, then PC-relative or register jump
    OP_LD / OP_LDI / OP_LDR / OP_LEA: loads and address computation
    OP_ST / OP_STI / OP_STR: stores
    OP_TRAP: R7 = PC, then run the trap service routine
"""

from typing import TYPE_CHECKING, Any, Callable, Dict, Optional

from .state import R_R7, WORD_MASK

if TYPE_CHECKING:
    from .cpu import LC3CPU

Handler = Callable[["LC3CPU", Dict[str, Any]], None]


class OpcodeRegistry:
    """Registry of instruction primitives, frozen after construction.

    Attributes:
        _primitives: Dictionary mapping operation keys to handler functions
        _frozen: Whether the registry is locked against modifications
    """

    def __init__(self):
        self._primitives: Dict[str, Handler] = {}
        self._frozen = False
        self._register_all_primitives()
        self.freeze()

    def _register_all_primitives(self) -> None:
        # Operate
        self.register("OP_ADD_REG", self._op_add_reg)
        self.register("OP_ADD_IMM", self._op_add_imm)
        self.register("OP_AND_REG", self._op_and_reg)
        self.register("OP_AND_IMM", self._op_and_imm)
        self.register("OP_NOT", self._op_not)

        # Control flow
        self.register("OP_BR", self._op_br)
        self.register("OP_JMP", self._op_jmp)
        self.register("OP_JSR", self._op_jsr)
        self.register("OP_JSRR", self._op_jsrr)
        self.register("OP_TRAP", self._op_trap)

        # Data movement
        self.register("OP_LD", self._op_ld)
        self.register("OP_LDI", self._op_ldi)
        self.register("OP_LDR", self._op_ldr)
        self.register("OP_LEA", self._op_lea)
        self.register("OP_ST", self._op_st)
        self.register("OP_STI", self._op_sti)
        self.register("OP_STR", self._op_str)

    def register(self, key: str, handler: Handler) -> None:
        """Register a primitive operation.

        Raises:
            RuntimeError: If registry is frozen
            ValueError: If key already registered
        """
        if self._frozen:
            raise RuntimeError("Cannot register primitives: registry is frozen")
        if key in self._primitives:
            raise ValueError(f"Primitive already registered: {key}")
        self._primitives[key] = handler

    def freeze(self) -> None:
        self._frozen = True

    def is_frozen(self) -> bool:
        return self._frozen

    def get_valid_keys(self) -> set:
        return set(self._primitives.keys())

    def execute(self, cpu: "LC3CPU", key: str, params: Dict[str, Any]) -> None:
        """Execute a registered primitive and count the cycle.

        Raises:
            KeyError: If key not in registry
        """
        if key not in self._primitives:
            raise KeyError(f"Unknown operation key: {key}")
        self._primitives[key](cpu, params)
        cpu.state.cycle_count += 1

    # =========================================================================
    # Operate
    # =========================================================================

    def _op_add_reg(self, cpu: "LC3CPU", params: Dict[str, Any]) -> None:
        state = cpu.state
        dr = params["dr"]
        state.set_register(dr, state.registers[params["sr1"]] + state.registers[params["sr2"]])
        state.update_flags(dr)

    def _op_add_imm(self, cpu: "LC3CPU", params: Dict[str, Any]) -> None:
        state = cpu.state
        dr = params["dr"]
        state.set_register(dr, state.registers[params["sr1"]] + params["imm5"])
        state.update_flags(dr)

    def _op_and_reg(self, cpu: "LC3CPU", params: Dict[str, Any]) -> None:
        state = cpu.state
        dr = params["dr"]
        state.set_register(dr, state.registers[params["sr1"]] & state.registers[params["sr2"]])
        state.update_flags(dr)

    def _op_and_imm(self, cpu: "LC3CPU", params: Dict[str, Any]) -> None:
        state = cpu.state
        dr = params["dr"]
        state.set_register(dr, state.registers[params["sr1"]] & params["imm5"])
        state.update_flags(dr)

    def _op_not(self, cpu: "LC3CPU", params: Dict[str, Any]) -> None:
        state = cpu.state
        dr = params["dr"]
        state.set_register(dr, ~state.registers[params["sr"]])
        state.update_flags(dr)

    # =========================================================================
    # Control Flow
    # =========================================================================

    def _op_br(self, cpu: "LC3CPU", params: Dict[str, Any]) -> None:
        """BR[n][z][p] - Branch when any requested flag matches COND."""
        state = cpu.state
        if params["cond"] & state.cond:
            state.set_pc(state.pc + params["offset"])

    def _op_jmp(self, cpu: "LC3CPU", params: Dict[str, Any]) -> None:
        state = cpu.state
        state.set_pc(state.registers[params["base"]])

    def _op_jsr(self, cpu: "LC3CPU", params: Dict[str, Any]) -> None:
        state = cpu.state
        state.registers[R_R7] = state.pc
        state.set_pc(state.pc + params["offset"])

    def _op_jsrr(self, cpu: "LC3CPU", params: Dict[str, Any]) -> None:
        state = cpu.state
        state.registers[R_R7] = state.pc
        state.set_pc(state.registers[params["base"]])

    def _op_trap(self, cpu: "LC3CPU", params: Dict[str, Any]) -> None:
        state = cpu.state
        state.registers[R_R7] = state.pc
        cpu.traps.dispatch(cpu, params["vector"])

    # =========================================================================
    # Data Movement
    # =========================================================================

    def _op_ld(self, cpu: "LC3CPU", params: Dict[str, Any]) -> None:
        state = cpu.state
        dr = params["dr"]
        state.set_register(dr, cpu.memory.read((state.pc + params["offset"]) & WORD_MASK))
        state.update_flags(dr)

    def _op_ldi(self, cpu: "LC3CPU", params: Dict[str, Any]) -> None:
        """LDI DR, offset9 - DR = mem[mem[PC + offset]]."""
        state = cpu.state
        dr = params["dr"]
        pointer = cpu.memory.read((state.pc + params["offset"]) & WORD_MASK)
        state.set_register(dr, cpu.memory.read(pointer))
        state.update_flags(dr)

    def _op_ldr(self, cpu: "LC3CPU", params: Dict[str, Any]) -> None:
        state = cpu.state
        dr = params["dr"]
        addr = (state.registers[params["base"]] + params["offset"]) & WORD_MASK
        state.set_register(dr, cpu.memory.read(addr))
        state.update_flags(dr)

    def _op_lea(self, cpu: "LC3CPU", params: Dict[str, Any]) -> None:
        """LEA DR, offset9 - DR = PC + offset, no memory access."""
        state = cpu.state
        dr = params["dr"]
        state.set_register(dr, state.pc + params["offset"])
        state.update_flags(dr)

    def _op_st(self, cpu: "LC3CPU", params: Dict[str, Any]) -> None:
        state = cpu.state
        cpu.memory.write(state.pc + params["offset"], state.registers[params["sr"]])

    def _op_sti(self, cpu: "LC3CPU", params: Dict[str, Any]) -> None:
        state = cpu.state
        pointer = cpu.memory.read((state.pc + params["offset"]) & WORD_MASK)
        cpu.memory.write(pointer, state.registers[params["sr"]])

    def _op_str(self, cpu: "LC3CPU", params: Dict[str, Any]) -> None:
        state = cpu.state
        cpu.memory.write(
            state.registers[params["base"]] + params["offset"],
            state.registers[params["sr"]],
        )


# Shared registry instance
_registry: Optional[OpcodeRegistry] = None


def get_registry() -> OpcodeRegistry:
    """Get the shared opcode registry."""
    global _registry
    if _registry is None:
        _registry = OpcodeRegistry()
    return _registry
