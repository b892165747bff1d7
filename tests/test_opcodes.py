"""Per-instruction semantics through LC3CPU.step()."""

import sys
from pathlib import Path

sys.path.insert(0, str(Path(__file__).parent.parent / "src"))

import pytest
from lc3vm import LC3CPU
from lc3vm.errors import IllegalOpcodeError
from lc3vm.registry import OpcodeRegistry, get_registry
from lc3vm.state import FL_NEG, FL_POS, FL_ZRO

import lc3_words as w


@pytest.fixture
def cpu():
    return LC3CPU()


def run_one(cpu, word, at=0x3000):
    cpu.memory.write(at, word)
    cpu.state.set_pc(at)
    return cpu.step()


class TestOperate:
    """ADD, AND and NOT."""

    def test_add_immediate_minus_one(self, cpu):
        cpu.state.set_register(0, 5)
        run_one(cpu, 0x123F)
        assert cpu.get_register("R1") == 4
        assert cpu.state.cond == FL_POS

    def test_add_register(self, cpu):
        cpu.state.set_register(1, 3)
        cpu.state.set_register(2, 4)
        run_one(cpu, w.add(0, 1, sr2=2))
        assert cpu.get_register(0) == 7

    def test_add_wraps_to_zero(self, cpu):
        cpu.state.set_register(1, 0xFFFF)
        run_one(cpu, w.add(1, 1, imm=1))
        assert cpu.get_register(1) == 0
        assert cpu.state.cond == FL_ZRO

    def test_add_overflow_goes_negative(self, cpu):
        cpu.state.set_register(1, 0x7FFF)
        run_one(cpu, w.add(1, 1, imm=1))
        assert cpu.get_register(1) == 0x8000
        assert cpu.state.cond == FL_NEG

    def test_and_immediate_clears(self, cpu):
        cpu.state.set_register(3, 0x1234)
        run_one(cpu, w.and_(3, 3, imm=0))
        assert cpu.get_register(3) == 0
        assert cpu.state.cond == FL_ZRO

    def test_and_immediate_sign_extended(self, cpu):
        cpu.state.set_register(3, 0xABCD)
        run_one(cpu, w.and_(4, 3, imm=-2))
        assert cpu.get_register(4) == 0xABCC
        assert cpu.state.cond == FL_NEG

    def test_and_register(self, cpu):
        cpu.state.set_register(1, 0x0F0F)
        cpu.state.set_register(2, 0x00FF)
        run_one(cpu, w.and_(0, 1, sr2=2))
        assert cpu.get_register(0) == 0x000F

    def test_not(self, cpu):
        cpu.state.set_register(2, 0x00FF)
        run_one(cpu, w.not_(5, 2))
        assert cpu.get_register(5) == 0xFF00
        assert cpu.state.cond == FL_NEG

    def test_not_of_all_ones(self, cpu):
        cpu.state.set_register(2, 0xFFFF)
        run_one(cpu, w.not_(2, 2))
        assert cpu.get_register(2) == 0
        assert cpu.state.cond == FL_ZRO


class TestControlFlow:
    """BR, JMP, JSR and JSRR."""

    def test_branch_taken_relative_to_next_pc(self, cpu):
        cpu.state.cond = FL_POS
        run_one(cpu, w.br(5, p=True))
        assert cpu.get_pc() == 0x3001 + 5

    def test_branch_backwards(self, cpu):
        cpu.state.cond = FL_NEG
        run_one(cpu, w.br(-1, n=True), at=0x3010)
        assert cpu.get_pc() == 0x3010

    def test_branch_not_taken(self, cpu):
        cpu.state.cond = FL_ZRO
        run_one(cpu, w.br(5, n=True, p=True))
        assert cpu.get_pc() == 0x3001

    def test_branch_never_without_condition_bits(self, cpu):
        run_one(cpu, w.br(5))
        assert cpu.get_pc() == 0x3001

    def test_branch_does_not_touch_flags(self, cpu):
        cpu.state.cond = FL_NEG
        run_one(cpu, w.br(2, n=True, z=True, p=True))
        assert cpu.state.cond == FL_NEG

    def test_branch_wraps_around_memory(self, cpu):
        cpu.state.cond = FL_ZRO
        run_one(cpu, w.br(-3, z=True), at=0x0000)
        assert cpu.get_pc() == 0xFFFE

    def test_jmp(self, cpu):
        cpu.state.set_register(3, 0x4000)
        run_one(cpu, w.jmp(3))
        assert cpu.get_pc() == 0x4000

    def test_ret(self, cpu):
        cpu.state.set_register(7, 0x3456)
        run_one(cpu, w.ret())
        assert cpu.get_pc() == 0x3456

    def test_jsr_offset(self, cpu):
        run_one(cpu, w.jsr(0x10))
        assert cpu.get_register(7) == 0x3001
        assert cpu.get_pc() == 0x3011

    def test_jsr_negative_offset(self, cpu):
        run_one(cpu, w.jsr(-0x11), at=0x3100)
        assert cpu.get_pc() == 0x3101 - 0x11

    def test_jsrr(self, cpu):
        cpu.state.set_register(4, 0x5000)
        run_one(cpu, w.jsrr(4))
        assert cpu.get_register(7) == 0x3001
        assert cpu.get_pc() == 0x5000

    def test_jsrr_through_r7(self, cpu):
        cpu.state.set_register(7, 0x5000)
        run_one(cpu, w.jsrr(7))
        assert cpu.get_pc() == 0x3001
        assert cpu.get_register(7) == 0x3001


class TestLoads:
    """LD, LDI, LDR and LEA."""

    def test_ld(self, cpu):
        cpu.memory.write(0x3001 + 4, 0x8001)
        run_one(cpu, w.ld(2, 4))
        assert cpu.get_register(2) == 0x8001
        assert cpu.state.cond == FL_NEG

    def test_ldi(self, cpu):
        cpu.memory.write(0x3001 + 2, 0x4000)
        cpu.memory.write(0x4000, 42)
        run_one(cpu, w.ldi(3, 2))
        assert cpu.get_register(3) == 42
        assert cpu.state.cond == FL_POS

    def test_ldr(self, cpu):
        cpu.state.set_register(6, 0x4010)
        cpu.memory.write(0x400E, 0)
        cpu.state.cond = FL_POS
        run_one(cpu, w.ldr(1, 6, -2))
        assert cpu.get_register(1) == 0
        assert cpu.state.cond == FL_ZRO

    def test_lea(self, cpu):
        cpu.memory.write(0x3001 - 1, 0xDEAD)
        run_one(cpu, w.lea(0, -1))
        assert cpu.get_register(0) == 0x3000
        assert cpu.state.cond == FL_POS

    def test_lea_does_not_read_memory(self, cpu):
        """LEA of the keyboard status address leaves the device untouched."""
        cpu.console.feed("k")
        run_one(cpu, w.lea(0, 1), at=0xFDFE)
        assert cpu.get_register(0) == 0xFE00
        assert cpu.state.cond == FL_NEG
        assert cpu.memory.peek(0xFE00) == 0


class TestStores:
    """ST, STI and STR."""

    def test_st(self, cpu):
        cpu.state.set_register(1, 0x1234)
        run_one(cpu, w.st(1, 3))
        assert cpu.memory.peek(0x3004) == 0x1234

    def test_sti(self, cpu):
        cpu.state.set_register(1, 0x55)
        cpu.memory.write(0x3001 + 1, 0x6000)
        run_one(cpu, w.sti(1, 1))
        assert cpu.memory.peek(0x6000) == 0x55

    def test_str(self, cpu):
        cpu.state.set_register(2, 0x77)
        cpu.state.set_register(5, 0x5000)
        run_one(cpu, w.str_(2, 5, 31))
        assert cpu.memory.peek(0x501F) == 0x77

    def test_stores_leave_flags(self, cpu):
        cpu.state.cond = FL_NEG
        run_one(cpu, w.st(0, 3))
        assert cpu.state.cond == FL_NEG


class TestFetch:

    def test_pc_increment_wraps(self, cpu):
        run_one(cpu, w.br(0), at=0xFFFF)
        assert cpu.get_pc() == 0x0000

    def test_cycle_count(self, cpu):
        run_one(cpu, w.br(0))
        run_one(cpu, w.br(0))
        assert cpu.get_cycle_count() == 2

    @pytest.mark.parametrize("word", [w.RTI, w.RES])
    def test_illegal_opcode(self, cpu, word):
        with pytest.raises(IllegalOpcodeError) as excinfo:
            run_one(cpu, word)
        assert excinfo.value.address == 0x3000
        assert excinfo.value.instruction == word
        assert cpu.get_cycle_count() == 0

    def test_step_when_halted(self, cpu):
        cpu.state.halted = True
        with pytest.raises(RuntimeError, match="halted"):
            cpu.step()


class TestRegistry:

    def test_frozen(self):
        registry = get_registry()
        assert registry.is_frozen() is True
        with pytest.raises(RuntimeError):
            registry.register("OP_EXTRA", lambda cpu, params: None)

    def test_unknown_key(self, cpu):
        with pytest.raises(KeyError):
            OpcodeRegistry().execute(cpu, "OP_RTI", {})

    def test_shared_instance(self):
        assert get_registry() is get_registry()
