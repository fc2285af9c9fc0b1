"""
Tests for the CHIP-8 CPU.

Each test loads a short program at 0x200 into a fresh system and steps
through it, checking the registers, program counter and flags afterwards.
"""
import unittest

from chip8_emulator.systems.chip8 import Chip8System
from chip8_emulator.common.exceptions import (
    UnimplementedOpcodeError, StackOverflowFault, StackUnderflowFault,
    MemoryBoundsFault, KeyIndexFault
)
from chip8_emulator.constants import FONTSET


def program(*words):
    """Assemble instruction words into big-endian bytes."""
    return b"".join(word.to_bytes(2, "big") for word in words)


class FixedRandom:
    """Random source that always returns the same byte."""

    def __init__(self, value):
        self.value = value

    def integers(self, low, high):
        return self.value


class CPUTestCase(unittest.TestCase):
    """Shared helpers for CPU tests."""

    def make_system(self, *words, **kwargs):
        system = Chip8System(**kwargs)
        system.load(program(*words))
        return system

    def run_steps(self, system, count):
        for _ in range(count):
            system.step()


class TestLoadsAndArithmetic(CPUTestCase):

    def test_ld_byte_changes_only_target_register(self):
        system = self.make_system(0x6A2B)
        system.step()

        self.assertEqual(system.cpu.V[0xA], 0x2B)
        self.assertEqual(system.cpu.PC, 0x202)
        for i in range(16):
            if i != 0xA:
                self.assertEqual(system.cpu.V[i], 0)
        self.assertEqual(system.cpu.I, 0)
        self.assertEqual(system.cpu.SP, 0)

    def test_add_byte_wraps_without_touching_flag(self):
        system = self.make_system(0x60FF, 0x6F05, 0x7001)
        self.run_steps(system, 3)

        self.assertEqual(system.cpu.V[0], 0x00)
        self.assertEqual(system.cpu.V[0xF], 0x05)

    def test_ld_i(self):
        system = self.make_system(0xA123)
        system.step()

        self.assertEqual(system.cpu.I, 0x123)
        self.assertEqual(system.cpu.PC, 0x202)

    def test_rnd_masks_random_byte(self):
        system = self.make_system(0xC00F, 0xC1F0, rng=FixedRandom(0xAB))
        self.run_steps(system, 2)

        self.assertEqual(system.cpu.V[0], 0x0B)
        self.assertEqual(system.cpu.V[1], 0xA0)

    def test_nop_only_advances_pc(self):
        system = self.make_system(0x0000)
        before = system.cpu.get_state()
        system.step()
        after = system.cpu.get_state()

        self.assertEqual(after["PC"], 0x202)
        before.pop("PC")
        after.pop("PC")
        before.pop("cycles")
        after.pop("cycles")
        self.assertEqual(before, after)


class TestRegisterOperations(CPUTestCase):

    def alu(self, opcode, vx, vy, x=0, y=1):
        system = self.make_system(opcode)
        system.cpu.V[x] = vx
        system.cpu.V[y] = vy
        system.step()
        return system.cpu.V[x], system.cpu.V[0xF]

    def test_copy_or_and_xor(self):
        self.assertEqual(self.alu(0x8010, 0x12, 0x34)[0], 0x34)
        self.assertEqual(self.alu(0x8011, 0x0F, 0xF0)[0], 0xFF)
        self.assertEqual(self.alu(0x8012, 0x3C, 0x0F)[0], 0x0C)
        self.assertEqual(self.alu(0x8013, 0xFF, 0x0F)[0], 0xF0)

    def test_add_sets_carry(self):
        self.assertEqual(self.alu(0x8014, 0xFF, 0x01), (0x00, 1))
        self.assertEqual(self.alu(0x8014, 0x10, 0x01), (0x11, 0))

    def test_sub_flag_is_not_borrow(self):
        self.assertEqual(self.alu(0x8015, 0x05, 0x03), (0x02, 1))
        self.assertEqual(self.alu(0x8015, 0x03, 0x05), (0xFE, 0))
        self.assertEqual(self.alu(0x8015, 0x07, 0x07), (0x00, 1))

    def test_reverse_sub_flag_is_not_borrow(self):
        self.assertEqual(self.alu(0x8017, 0x03, 0x05), (0x02, 1))
        self.assertEqual(self.alu(0x8017, 0x05, 0x03), (0xFE, 0))

    def test_shift_right_moves_lsb_to_flag(self):
        self.assertEqual(self.alu(0x8016, 0x05, 0x00), (0x02, 1))
        self.assertEqual(self.alu(0x8016, 0x04, 0x00), (0x02, 0))

    def test_shift_left_moves_msb_to_flag(self):
        self.assertEqual(self.alu(0x801E, 0x81, 0x00), (0x02, 1))
        self.assertEqual(self.alu(0x801E, 0x41, 0x00), (0x82, 0))

    def test_flag_wins_when_target_is_flag_register(self):
        system = self.make_system(0x6FFF, 0x6101, 0x8F14)
        self.run_steps(system, 3)

        self.assertEqual(system.cpu.V[0xF], 1)

    def test_undefined_alu_operation_is_unimplemented(self):
        system = self.make_system(0x8018)
        with self.assertRaises(UnimplementedOpcodeError) as ctx:
            system.step()

        self.assertEqual(ctx.exception.opcode, 0x8018)


class TestFlowControl(CPUTestCase):

    def test_jump(self):
        system = self.make_system(0x1ABC)
        system.step()

        self.assertEqual(system.cpu.PC, 0xABC)

    def test_jump_with_offset(self):
        system = self.make_system(0x6004, 0xB300)
        self.run_steps(system, 2)

        self.assertEqual(system.cpu.PC, 0x304)

    def test_call_and_return_round_trip(self):
        # 0x200: CALL 0x206 ... 0x206: RET
        system = self.make_system(0x2206, 0x0000, 0x0000, 0x00EE)

        system.step()
        self.assertEqual(system.cpu.PC, 0x206)
        self.assertEqual(system.cpu.SP, 1)
        self.assertEqual(system.cpu.stack[0], 0x202)

        system.step()
        self.assertEqual(system.cpu.PC, 0x202)
        self.assertEqual(system.cpu.SP, 0)

    def test_stack_overflow_is_a_fault(self):
        # CALL 0x200 calls itself forever
        system = self.make_system(0x2200)
        self.run_steps(system, 16)
        self.assertEqual(system.cpu.SP, 16)

        with self.assertRaises(StackOverflowFault):
            system.step()

    def test_return_on_empty_stack_is_a_fault(self):
        system = self.make_system(0x00EE)
        with self.assertRaises(StackUnderflowFault):
            system.step()

    def test_unknown_system_call_is_unimplemented(self):
        system = self.make_system(0x0123)
        with self.assertRaises(UnimplementedOpcodeError) as ctx:
            system.step()

        self.assertEqual(ctx.exception.opcode, 0x0123)
        self.assertEqual(ctx.exception.address, 0x200)


class TestSkips(CPUTestCase):

    def assert_skip(self, words, taken, setup=None):
        system = self.make_system(*words)
        if setup:
            setup(system)
        self.run_steps(system, len(words))
        expected = 0x200 + 2 * len(words) + (2 if taken else 0)
        self.assertEqual(system.cpu.PC, expected)

    def test_skip_if_equal_byte(self):
        self.assert_skip([0x6005, 0x3005], True)
        self.assert_skip([0x6005, 0x3006], False)

    def test_skip_if_not_equal_byte(self):
        self.assert_skip([0x6005, 0x4006], True)
        self.assert_skip([0x6005, 0x4005], False)

    def test_skip_if_registers_equal(self):
        self.assert_skip([0x6007, 0x6107, 0x5010], True)
        self.assert_skip([0x6007, 0x6108, 0x5010], False)

    def test_skip_if_registers_differ(self):
        self.assert_skip([0x6007, 0x6108, 0x9010], True)
        self.assert_skip([0x6007, 0x6107, 0x9010], False)

    def test_skip_if_key_pressed(self):
        press = lambda system: system.set_key(0x5, True)
        self.assert_skip([0x6005, 0xE09E], True, press)
        self.assert_skip([0x6005, 0xE09E], False)

    def test_skip_if_key_not_pressed(self):
        press = lambda system: system.set_key(0x5, True)
        self.assert_skip([0x6005, 0xE0A1], True)
        self.assert_skip([0x6005, 0xE0A1], False, press)

    def test_key_skip_with_register_out_of_range_is_a_fault(self):
        system = self.make_system(0x6010, 0xE09E)
        system.step()
        with self.assertRaises(KeyIndexFault):
            system.step()

    def test_register_compare_with_nonzero_low_nibble_is_unimplemented(self):
        system = self.make_system(0x5121)
        with self.assertRaises(UnimplementedOpcodeError):
            system.step()


class TestDrawing(CPUTestCase):

    def test_clear_screen(self):
        system = self.make_system(0xD011, 0x00E0)
        system.memory.write(0x300, 0xFF)
        system.cpu.I = 0x300
        system.step()
        self.assertTrue(system.framebuffer().any())

        system.step()
        self.assertFalse(system.framebuffer().any())

    def test_draw_twice_erases_and_reports_collision(self):
        system = self.make_system(0xD011, 0xD011)
        system.memory.write(0x300, 0b10100000)
        system.cpu.I = 0x300
        system.cpu.V[0] = 10
        system.cpu.V[1] = 4

        system.step()
        frame = system.framebuffer()
        self.assertTrue(frame[10 + 64 * 4])
        self.assertFalse(frame[11 + 64 * 4])
        self.assertTrue(frame[12 + 64 * 4])
        self.assertEqual(system.cpu.V[0xF], 0)

        system.step()
        self.assertFalse(system.framebuffer().any())
        self.assertEqual(system.cpu.V[0xF], 1)

    def test_draw_wraps_around_both_edges(self):
        system = self.make_system(0xD012)
        system.memory.write(0x300, 0xC0)
        system.memory.write(0x301, 0xC0)
        system.cpu.I = 0x300
        system.cpu.V[0] = 63
        system.cpu.V[1] = 31
        system.step()

        frame = system.framebuffer()
        lit = set(int(i) for i in frame.nonzero()[0])
        self.assertEqual(lit, {63 + 64 * 31, 0 + 64 * 31, 63, 0})
        self.assertEqual(system.cpu.V[0xF], 0)

    def test_draw_font_glyph(self):
        # LD F, V0 then DRW V1, V1, 5 with V0 = 0 draws the "0" glyph
        system = self.make_system(0xF029, 0xD115)
        self.run_steps(system, 2)

        rows = system.display.as_2d()
        self.assertEqual(list(rows[0][:4]), [True] * 4)
        self.assertEqual(list(rows[1][:4]), [True, False, False, True])


class TestKeyWait(CPUTestCase):

    def test_wait_rewinds_until_key_pressed(self):
        system = self.make_system(0xF30A)
        system.cpu.V[3] = 0x77

        for _ in range(5):
            system.step()
            self.assertEqual(system.cpu.PC, 0x200)
            self.assertEqual(system.cpu.V[3], 0x77)
            self.assertTrue(system.cpu.waiting_for_key)

        system.set_key(0xB, True)
        system.set_key(0x4, True)
        system.step()

        self.assertEqual(system.cpu.PC, 0x202)
        self.assertEqual(system.cpu.V[3], 0x4)
        self.assertFalse(system.cpu.waiting_for_key)


class TestTimerAndMemoryInstructions(CPUTestCase):

    def test_timer_loads_and_reads(self):
        system = self.make_system(0x6030, 0xF015, 0xF018, 0xF107)
        self.run_steps(system, 4)

        self.assertEqual(system.timers.delay, 0x30)
        self.assertEqual(system.timers.sound, 0x30)
        self.assertEqual(system.cpu.V[1], 0x30)

    def test_add_index_single_add(self):
        system = self.make_system(0xA100, 0x6210, 0xF21E)
        self.run_steps(system, 3)

        self.assertEqual(system.cpu.I, 0x110)

    def test_add_index_legacy_double_add(self):
        system = self.make_system(0xA100, 0x6210, 0xF21E,
                                  config={"quirks": {"legacy_index_add": True}})
        self.run_steps(system, 3)

        self.assertEqual(system.cpu.I, 0x210)

    def test_font_address(self):
        system = self.make_system(0x600A, 0xF029)
        self.run_steps(system, 2)

        self.assertEqual(system.cpu.I, 50)

    def test_bcd(self):
        system = self.make_system(0x60EA, 0xA300, 0xF033)
        self.run_steps(system, 3)

        self.assertEqual([system.memory.read(0x300 + i) for i in range(3)], [2, 3, 4])

    def test_store_and_load_registers(self):
        system = self.make_system(0xA300, 0xF355, 0xF365)
        for i in range(4):
            system.cpu.V[i] = i + 1
        system.cpu.V[4] = 0x99
        self.run_steps(system, 2)

        self.assertEqual([system.memory.read(0x300 + i) for i in range(5)], [1, 2, 3, 4, 0])

        for i in range(16):
            system.cpu.V[i] = 0
        system.step()

        self.assertEqual(list(system.cpu.V[:5]), [1, 2, 3, 4, 0])
        self.assertEqual(system.cpu.I, 0x300)

    def test_store_into_font_region_is_a_fault(self):
        system = self.make_system(0xA010, 0xF055)
        system.step()
        with self.assertRaises(MemoryBoundsFault):
            system.step()

    def test_store_wrapping_into_font_region_writes_nothing(self):
        system = self.make_system(0xF255)
        system.cpu.V[0:3] = bytes([11, 22, 33])
        system.cpu.I = 0xFFE
        with self.assertRaises(MemoryBoundsFault):
            system.step()

        self.assertEqual(system.memory.read(0xFFE), 0)
        self.assertEqual(system.memory.read(0xFFF), 0)

    def test_bcd_wrapping_into_font_region_writes_nothing(self):
        system = self.make_system(0x60EA, 0xF033)
        system.step()
        system.cpu.I = 0xFFF
        with self.assertRaises(MemoryBoundsFault):
            system.step()

        self.assertEqual(system.memory.read(0xFFF), 0)
        self.assertEqual(bytes(system.memory.ram[:80]), bytes(FONTSET))

    def test_unknown_misc_operation_is_unimplemented(self):
        system = self.make_system(0xF0FF)
        with self.assertRaises(UnimplementedOpcodeError):
            system.step()


if __name__ == '__main__':
    unittest.main()
