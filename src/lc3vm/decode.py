"""Instruction decoder for the LC-3.

Turns a raw 16-bit instruction word into an operation key plus a
parameter dictionary that the opcode registry can execute:

    Raw word -> decode() -> (operation_key, params) -> Registry -> Execute

Keys distinguish addressing modes (OP_ADD_REG vs OP_ADD_IMM, OP_JSR vs
OP_JSRR). Offsets and immediates are already sign-extended to 16 bits.
RTI and the reserved opcode decode as invalid.
"""

from dataclasses import dataclass
from typing import Callable, Dict, Optional

from .state import sign_extend, to_signed
from .traps import TRAP_NAMES


# Opcodes (top 4 bits)
OP_BR = 0b0000
OP_ADD = 0b0001
OP_LD = 0b0010
OP_ST = 0b0011
OP_JSR = 0b0100
OP_AND = 0b0101
OP_LDR = 0b0110
OP_STR = 0b0111
OP_RTI = 0b1000
OP_NOT = 0b1001
OP_LDI = 0b1010
OP_STI = 0b1011
OP_JMP = 0b1100
OP_RES = 0b1101
OP_LEA = 0b1110
OP_TRAP = 0b1111


@dataclass
class DecodeResult:
    """Result of instruction decode operation.

    Attributes:
        key: Operation key (e.g., "OP_ADD_IMM")
        params: Operation parameters dictionary
        valid: Whether the instruction may execute
        error: Error message if decode failed
        raw_instruction: Original instruction word
    """
    key: str
    params: Dict
    valid: bool
    error: Optional[str] = None
    raw_instruction: int = 0


def _dr(instr: int) -> int:
    return (instr >> 9) & 0x7


def _sr1(instr: int) -> int:
    return (instr >> 6) & 0x7


def _decode_arith(name: str) -> Callable[[int], DecodeResult]:
    def decode_op(instr: int) -> DecodeResult:
        params = {"dr": _dr(instr), "sr1": _sr1(instr)}
        if (instr >> 5) & 0x1:
            params["imm5"] = sign_extend(instr, 5)
            return DecodeResult(f"OP_{name}_IMM", params, True)
        params["sr2"] = instr & 0x7
        return DecodeResult(f"OP_{name}_REG", params, True)
    return decode_op


def _decode_br(instr: int) -> DecodeResult:
    return DecodeResult("OP_BR", {
        "cond": (instr >> 9) & 0x7,
        "offset": sign_extend(instr, 9),
    }, True)


def _decode_jsr(instr: int) -> DecodeResult:
    if (instr >> 11) & 0x1:
        return DecodeResult("OP_JSR", {"offset": sign_extend(instr, 11)}, True)
    return DecodeResult("OP_JSRR", {"base": _sr1(instr)}, True)


def _pc_relative(key: str, reg_field: str) -> Callable[[int], DecodeResult]:
    def decode_op(instr: int) -> DecodeResult:
        return DecodeResult(key, {
            reg_field: _dr(instr),
            "offset": sign_extend(instr, 9),
        }, True)
    return decode_op


def _base_offset(key: str, reg_field: str) -> Callable[[int], DecodeResult]:
    def decode_op(instr: int) -> DecodeResult:
        return DecodeResult(key, {
            reg_field: _dr(instr),
            "base": _sr1(instr),
            "offset": sign_extend(instr, 6),
        }, True)
    return decode_op


def _decode_illegal(name: str) -> Callable[[int], DecodeResult]:
    def decode_op(instr: int) -> DecodeResult:
        return DecodeResult(
            f"OP_{name}", {}, False,
            error=f"{name} is not supported in this environment",
        )
    return decode_op


_DECODERS: Dict[int, Callable[[int], DecodeResult]] = {
    OP_BR: _decode_br,
    OP_ADD: _decode_arith("ADD"),
    OP_LD: _pc_relative("OP_LD", "dr"),
    OP_ST: _pc_relative("OP_ST", "sr"),
    OP_JSR: _decode_jsr,
    OP_AND: _decode_arith("AND"),
    OP_LDR: _base_offset("OP_LDR", "dr"),
    OP_STR: _base_offset("OP_STR", "sr"),
    OP_RTI: _decode_illegal("RTI"),
    OP_NOT: lambda instr: DecodeResult("OP_NOT", {"dr": _dr(instr), "sr": _sr1(instr)}, True),
    OP_LDI: _pc_relative("OP_LDI", "dr"),
    OP_STI: _pc_relative("OP_STI", "sr"),
    OP_JMP: lambda instr: DecodeResult("OP_JMP", {"base": _sr1(instr)}, True),
    OP_RES: _decode_illegal("RES"),
    OP_LEA: _pc_relative("OP_LEA", "dr"),
    OP_TRAP: lambda instr: DecodeResult("OP_TRAP", {"vector": instr & 0xFF}, True),
}

# Every key decode() can emit for an executable instruction
VALID_KEYS = frozenset({
    "OP_ADD_REG", "OP_ADD_IMM", "OP_AND_REG", "OP_AND_IMM", "OP_NOT",
    "OP_BR", "OP_JMP", "OP_JSR", "OP_JSRR",
    "OP_LD", "OP_LDI", "OP_LDR", "OP_LEA",
    "OP_ST", "OP_STI", "OP_STR", "OP_TRAP",
})


def decode(instr: int) -> DecodeResult:
    """Decode one 16-bit instruction word."""
    instr &= 0xFFFF
    result = _DECODERS[instr >> 12](instr)
    result.raw_instruction = instr
    return result


# =============================================================================
# Disassembly (for traces)
# =============================================================================

def _imm(value: int) -> str:
    return f"#{to_signed(value)}"


def format_instruction(result: DecodeResult) -> str:
    """Assembly-style text for a decoded instruction."""
    p = result.params
    key = result.key

    if not result.valid:
        return f"{key[3:]} (x{result.raw_instruction:04X})"
    if key in ("OP_ADD_REG", "OP_AND_REG"):
        return f"{key[3:6]} R{p['dr']}, R{p['sr1']}, R{p['sr2']}"
    if key in ("OP_ADD_IMM", "OP_AND_IMM"):
        return f"{key[3:6]} R{p['dr']}, R{p['sr1']}, {_imm(p['imm5'])}"
    if key == "OP_NOT":
        return f"NOT R{p['dr']}, R{p['sr']}"
    if key == "OP_BR":
        cond = p["cond"]
        suffix = "".join(c for c, bit in (("n", 4), ("z", 2), ("p", 1)) if cond & bit)
        if cond == 0:
            return "NOP"
        return f"BR{suffix} {_imm(p['offset'])}"
    if key == "OP_JMP":
        return "RET" if p["base"] == 7 else f"JMP R{p['base']}"
    if key == "OP_JSR":
        return f"JSR {_imm(p['offset'])}"
    if key == "OP_JSRR":
        return f"JSRR R{p['base']}"
    if key in ("OP_LD", "OP_LDI", "OP_LEA"):
        return f"{key[3:]} R{p['dr']}, {_imm(p['offset'])}"
    if key in ("OP_ST", "OP_STI"):
        return f"{key[3:]} R{p['sr']}, {_imm(p['offset'])}"
    if key == "OP_LDR":
        return f"LDR R{p['dr']}, R{p['base']}, {_imm(p['offset'])}"
    if key == "OP_STR":
        return f"STR R{p['sr']}, R{p['base']}, {_imm(p['offset'])}"
    if key == "OP_TRAP":
        vector = p["vector"]
        return TRAP_NAMES.get(vector, f"TRAP x{vector:02X}")
    return key
