"""Tests for CPUState and the bit helpers."""

import sys
from pathlib import Path

# Add src to path
sys.path.insert(0, str(Path(__file__).parent.parent / "src"))

import pytest
from lc3vm.state import (
    FL_NEG, FL_POS, FL_ZRO, PC_START,
    CPUState, create_initial_state, flag_for, sign_extend, to_signed,
)


class TestSignExtend:
    """Test widening of signed instruction fields."""

    @pytest.mark.parametrize("bits", [5, 6, 9, 11])
    def test_truncating_back_reproduces_field(self, bits):
        """Extending then truncating to the field width is lossless."""
        mask = (1 << bits) - 1
        for value in range(1 << bits):
            assert sign_extend(value, bits) & mask == value

    @pytest.mark.parametrize("bits", [5, 6, 9, 11])
    def test_negative_fields_land_in_upper_half(self, bits):
        """A set top bit always yields a word >= x8000."""
        for value in range(1 << (bits - 1), 1 << bits):
            assert sign_extend(value, bits) >= 0x8000

    def test_positive_field_unchanged(self):
        assert sign_extend(0b01111, 5) == 15
        assert sign_extend(0xFF, 9) == 0xFF

    def test_minus_one(self):
        assert sign_extend(0b11111, 5) == 0xFFFF
        assert sign_extend(0x7FF, 11) == 0xFFFF

    def test_most_negative(self):
        assert sign_extend(0x100, 9) == 0xFF00
        assert to_signed(sign_extend(0x100, 9)) == -256

    def test_ignores_bits_above_field(self):
        """Only the low bits of an instruction word are used."""
        assert sign_extend(0x123F, 5) == 0xFFFF

    def test_full_width_is_identity(self):
        assert sign_extend(0x8001, 16) == 0x8001


class TestFlags:
    """Test condition flag derivation."""

    def test_zero(self):
        assert flag_for(0) == FL_ZRO

    def test_positive(self):
        assert flag_for(1) == FL_POS
        assert flag_for(0x7FFF) == FL_POS

    def test_negative(self):
        assert flag_for(0x8000) == FL_NEG
        assert flag_for(0xFFFF) == FL_NEG

    def test_exactly_one_flag(self):
        for value in (0, 1, 0x7FFF, 0x8000, 0xFFFF):
            flag = flag_for(value)
            assert flag in (FL_POS, FL_ZRO, FL_NEG)
            assert bin(flag).count("1") == 1

    def test_update_flags_reads_register(self):
        state = CPUState()
        state.set_register(3, 0xFFFE)
        state.update_flags(3)
        assert state.cond == FL_NEG
        assert state.flag_name == "N"


class TestCPUStateCreation:
    """Test CPUState initialization and defaults."""

    def test_default_state(self):
        """Registers zeroed, PC at x3000, COND=Z."""
        state = CPUState()
        assert state.pc == PC_START == 0x3000
        assert state.cond == FL_ZRO
        assert state.cycle_count == 0
        assert state.halted is False
        assert state.registers == [0] * 8

    def test_create_initial_state(self):
        state = create_initial_state(0x4000)
        assert state.pc == 0x4000
        assert state.cond == FL_ZRO

    def test_states_do_not_share_registers(self):
        a, b = CPUState(), CPUState()
        a.set_register(0, 5)
        assert b.registers[0] == 0


class TestCPUStateValidation:
    """Test state validation."""

    def test_valid_state(self):
        assert CPUState().validate() is True

    def test_register_out_of_range(self):
        state = CPUState()
        state.registers[0] = 0x10000
        assert state.validate() is False

    def test_combined_flags_invalid(self):
        state = CPUState(cond=FL_POS | FL_NEG)
        assert state.validate() is False

    def test_negative_pc(self):
        assert CPUState(pc=-1).validate() is False


class TestCPUStateAccessors:
    """Test register accessors."""

    def test_set_register_wraps(self):
        state = CPUState()
        state.set_register("R1", 0x10005)
        assert state.get_register(1) == 5
        state.set_register(2, -1)
        assert state.get_register("r2") == 0xFFFF

    def test_set_register_leaves_flags(self):
        state = CPUState()
        state.set_register(0, 0x8000)
        assert state.cond == FL_ZRO

    def test_set_pc_wraps(self):
        state = CPUState()
        state.set_pc(0x10001)
        assert state.pc == 1

    def test_get_register_invalid(self):
        state = CPUState()
        with pytest.raises(KeyError):
            state.get_register("R9")
        with pytest.raises(KeyError):
            state.get_register(8)

    def test_dump_registers(self):
        state = CPUState()
        state.set_register(7, 2)
        regs = state.dump_registers()
        assert regs["R7"] == 2
        regs["R7"] = 999
        assert state.registers[7] == 2

    def test_snapshot_is_copy(self):
        state = CPUState()
        state.set_register(0, 42)
        snapshot = state.snapshot()
        assert snapshot["registers"][0] == 42
        assert snapshot["pc"] == 0x3000
        snapshot["registers"][0] = 999
        assert state.registers[0] == 42

    def test_str(self):
        text = str(CPUState(halted=True))
        assert "PC=x3000" in text
        assert "COND=Z" in text
        assert "HALTED" in text
