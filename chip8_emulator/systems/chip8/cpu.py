"""
CHIP-8 CPU emulation.

The CHIP-8 "CPU" is a virtual machine with sixteen 8-bit data registers
(V0-VF, with VF doubling as the flag register), a 16-bit index register I,
a program counter and a sixteen-entry call stack. Every instruction is a
big-endian 16-bit word; the top nibble selects the instruction group and
the remaining nibbles carry register indices and immediates.

This module implements the fetch/decode/execute cycle for the 35
instructions of the base instruction set.
"""

from ...common.interfaces import CPU, Memory
from ...common.exceptions import (
    UnimplementedOpcodeError, StackOverflowFault, StackUnderflowFault
)
from ...constants import (
    START_ADDRESS, NUM_REGISTERS, FLAG_REGISTER, STACK_SIZE
)
from ...utils.event_manager import EventManager, EventType
from .disassembler import disassemble
import typing as t
import logging

import numpy as np

logger = logging.getLogger("Chip8Emulator.CPU")

class Chip8CPU(CPU):
    """
    Emulates the CHIP-8 interpreter core.

    The CPU owns the register file and stack. Memory, display, timers and
    keypad are attached by the system before the first step. Randomness for
    the RND instruction comes from an injected numpy ``Generator`` (anything
    with an ``integers(low, high)`` method works), so runs can be made
    reproducible by seeding it.
    """

    def __init__(self, rng: t.Optional[t.Any] = None,
                 legacy_index_add: bool = False,
                 event_manager: t.Optional[EventManager] = None):
        """
        Initialize the CPU.

        Args:
            rng: Random byte source (default: unseeded numpy Generator)
            legacy_index_add: Reproduce the double-add bug in ADD I, Vx
            event_manager: Optional event bus
        """
        # CPU registers
        self.V = bytearray(NUM_REGISTERS)  # Data registers V0-VF
        self.I = 0x0000  # Index register
        self.PC = START_ADDRESS  # Program counter
        self.SP = 0  # Next free stack slot
        self.stack = [0] * STACK_SIZE

        # Address the current instruction was fetched from
        self.opcode_address = START_ADDRESS
        self.waiting_for_key = False

        self.cycles = 0
        self.rng = rng if rng is not None else np.random.default_rng()
        self.legacy_index_add = legacy_index_add
        self.event_manager = event_manager

        # Connected components
        self.memory = None
        self.display = None
        self.timers = None
        self.keypad = None

        self._build_instruction_table()

        logger.info("CHIP-8 CPU initialized")

    def _build_instruction_table(self):
        """Build the instruction lookup tables."""
        # Top nibble dispatch
        self.instructions = {
            0x0: self._op_system,
            0x1: self._jp,
            0x2: self._call,
            0x3: self._se_byte,
            0x4: self._sne_byte,
            0x5: self._se_reg,
            0x6: self._ld_byte,
            0x7: self._add_byte,
            0x8: self._op_alu,
            0x9: self._sne_reg,
            0xA: self._ld_i,
            0xB: self._jp_v0,
            0xC: self._rnd,
            0xD: self._drw,
            0xE: self._op_keys,
            0xF: self._op_misc,
        }

        # 8xyN register-register operations, keyed by N
        self.alu_instructions = {
            0x0: self._alu_ld,
            0x1: self._alu_or,
            0x2: self._alu_and,
            0x3: self._alu_xor,
            0x4: self._alu_add,
            0x5: self._alu_sub,
            0x6: self._alu_shr,
            0x7: self._alu_subn,
            0xE: self._alu_shl,
        }

        # FxNN operations, keyed by the low byte
        self.misc_instructions = {
            0x07: self._ld_vx_dt,
            0x0A: self._ld_vx_k,
            0x15: self._ld_dt_vx,
            0x18: self._ld_st_vx,
            0x1E: self._add_i_vx,
            0x29: self._ld_f_vx,
            0x33: self._ld_b_vx,
            0x55: self._ld_mem_vx,
            0x65: self._ld_vx_mem,
        }

    def set_memory(self, memory: Memory) -> None:
        """
        Connect the CPU to a memory system.

        Args:
            memory: Memory implementation
        """
        self.memory = memory

    def connect_display(self, display) -> None:
        self.display = display

    def connect_timers(self, timers) -> None:
        self.timers = timers

    def connect_keypad(self, keypad) -> None:
        self.keypad = keypad

    def reset(self) -> None:
        """Reset the CPU to its initial state."""
        self.V = bytearray(NUM_REGISTERS)
        self.I = 0x0000
        self.PC = START_ADDRESS
        self.SP = 0
        self.stack = [0] * STACK_SIZE
        self.opcode_address = START_ADDRESS
        self.waiting_for_key = False
        self.cycles = 0

        logger.info(f"CPU reset. PC set to 0x{self.PC:03X}")

    def fetch(self) -> int:
        """
        Read the instruction word at PC and advance PC by 2.

        Returns:
            16-bit opcode
        """
        self.opcode_address = self.PC
        opcode = self.memory.read_word(self.PC)
        self.PC = (self.PC + 2) & 0xFFFF
        return opcode

    def step(self) -> int:
        """
        Fetch, decode and execute one instruction.

        Returns:
            The opcode that was executed

        Raises:
            UnimplementedOpcodeError: If the opcode matches no instruction
            MachineFault: If the instruction breaks a machine contract
        """
        if not self.memory:
            raise RuntimeError("CPU has no memory attached")

        opcode = self.fetch()

        if logger.isEnabledFor(logging.DEBUG):
            logger.debug(f"0x{self.opcode_address:03X}: {opcode:04X}  {disassemble(opcode)}")

        self.instructions[opcode >> 12](opcode)
        self.cycles += 1

        self._emit(EventType.CPU_INSTRUCTION, {
            "address": self.opcode_address,
            "opcode": opcode,
            "cycle": self.cycles,
        })

        return opcode

    def get_state(self) -> dict:
        """
        Get the current CPU state.

        Returns:
            Dictionary with CPU state
        """
        state = {f"V{i:X}": self.V[i] for i in range(NUM_REGISTERS)}
        state.update({
            "I": self.I,
            "PC": self.PC,
            "SP": self.SP,
            "stack": self.stack[:self.SP],
            "cycles": self.cycles,
            "waiting_for_key": self.waiting_for_key,
        })
        return state

    def stack_push(self, value: int) -> None:
        """
        Push a return address onto the stack.

        Raises:
            StackOverflowFault: If all 16 slots are in use
        """
        if self.SP >= STACK_SIZE:
            raise StackOverflowFault(
                f"Call stack overflow at 0x{self.opcode_address:03X} (depth {self.SP})"
            )
        self.stack[self.SP] = value & 0xFFFF
        self.SP += 1

    def stack_pull(self) -> int:
        """
        Pop a return address from the stack.

        Raises:
            StackUnderflowFault: If the stack is empty
        """
        if self.SP == 0:
            raise StackUnderflowFault(
                f"Return with empty call stack at 0x{self.opcode_address:03X}"
            )
        self.SP -= 1
        return self.stack[self.SP]

    def _emit(self, event_type: EventType, payload: dict) -> None:
        if self.event_manager and self.event_manager.has_handlers(event_type):
            self.event_manager.create_event(event_type, "cpu", payload)

    def _unimplemented(self, opcode: int) -> None:
        raise UnimplementedOpcodeError(opcode, self.opcode_address)

    def _skip_if(self, condition: bool) -> None:
        if condition:
            self.PC = (self.PC + 2) & 0xFFFF

    # Instruction groups

    def _op_system(self, opcode: int) -> None:
        """0nnn group: NOP, CLS, RET."""
        if opcode == 0x0000:
            # Zeroed memory decodes to this, execute it as a no-op
            return
        elif opcode == 0x00E0:
            self.display.clear()
            self._emit(EventType.DISPLAY_CLEAR, {"address": self.opcode_address})
        elif opcode == 0x00EE:
            self.PC = self.stack_pull()
        else:
            self._unimplemented(opcode)

    def _op_alu(self, opcode: int) -> None:
        """8xyN group: register-register arithmetic and logic."""
        operation = self.alu_instructions.get(opcode & 0x000F)
        if operation is None:
            self._unimplemented(opcode)
        operation((opcode & 0x0F00) >> 8, (opcode & 0x00F0) >> 4)

    def _op_keys(self, opcode: int) -> None:
        """ExNN group: keypad skips."""
        x = (opcode & 0x0F00) >> 8
        low = opcode & 0x00FF

        if low == 0x9E:
            self._skip_if(self.keypad.is_pressed(self.V[x]))
        elif low == 0xA1:
            self._skip_if(not self.keypad.is_pressed(self.V[x]))
        else:
            self._unimplemented(opcode)

    def _op_misc(self, opcode: int) -> None:
        """FxNN group: timers, index register, memory transfers."""
        operation = self.misc_instructions.get(opcode & 0x00FF)
        if operation is None:
            self._unimplemented(opcode)
        operation((opcode & 0x0F00) >> 8)

    # Flow control

    def _jp(self, opcode: int) -> None:
        self.PC = opcode & 0x0FFF

    def _call(self, opcode: int) -> None:
        self.stack_push(self.PC)
        self.PC = opcode & 0x0FFF

    def _jp_v0(self, opcode: int) -> None:
        self.PC = (self.V[0] + (opcode & 0x0FFF)) & 0xFFFF

    # Conditional skips

    def _se_byte(self, opcode: int) -> None:
        self._skip_if(self.V[(opcode & 0x0F00) >> 8] == opcode & 0x00FF)

    def _sne_byte(self, opcode: int) -> None:
        self._skip_if(self.V[(opcode & 0x0F00) >> 8] != opcode & 0x00FF)

    def _se_reg(self, opcode: int) -> None:
        if opcode & 0x000F:
            self._unimplemented(opcode)
        self._skip_if(self.V[(opcode & 0x0F00) >> 8] == self.V[(opcode & 0x00F0) >> 4])

    def _sne_reg(self, opcode: int) -> None:
        if opcode & 0x000F:
            self._unimplemented(opcode)
        self._skip_if(self.V[(opcode & 0x0F00) >> 8] != self.V[(opcode & 0x00F0) >> 4])

    # Immediate loads and arithmetic

    def _ld_byte(self, opcode: int) -> None:
        self.V[(opcode & 0x0F00) >> 8] = opcode & 0x00FF

    def _add_byte(self, opcode: int) -> None:
        # No carry flag for this form
        x = (opcode & 0x0F00) >> 8
        self.V[x] = (self.V[x] + (opcode & 0x00FF)) & 0xFF

    def _ld_i(self, opcode: int) -> None:
        self.I = opcode & 0x0FFF

    def _rnd(self, opcode: int) -> None:
        value = int(self.rng.integers(0, 256))
        self.V[(opcode & 0x0F00) >> 8] = value & opcode & 0x00FF

    # 8xyN operations. The result is written before VF so that the flag
    # wins when x is F.

    def _alu_ld(self, x: int, y: int) -> None:
        self.V[x] = self.V[y]

    def _alu_or(self, x: int, y: int) -> None:
        self.V[x] |= self.V[y]

    def _alu_and(self, x: int, y: int) -> None:
        self.V[x] &= self.V[y]

    def _alu_xor(self, x: int, y: int) -> None:
        self.V[x] ^= self.V[y]

    def _alu_add(self, x: int, y: int) -> None:
        total = self.V[x] + self.V[y]
        self.V[x] = total & 0xFF
        self.V[FLAG_REGISTER] = 1 if total > 0xFF else 0

    def _alu_sub(self, x: int, y: int) -> None:
        # VF is NOT borrow
        no_borrow = self.V[x] >= self.V[y]
        self.V[x] = (self.V[x] - self.V[y]) & 0xFF
        self.V[FLAG_REGISTER] = 1 if no_borrow else 0

    def _alu_shr(self, x: int, y: int) -> None:
        lsb = self.V[x] & 0x01
        self.V[x] >>= 1
        self.V[FLAG_REGISTER] = lsb

    def _alu_subn(self, x: int, y: int) -> None:
        no_borrow = self.V[y] >= self.V[x]
        self.V[x] = (self.V[y] - self.V[x]) & 0xFF
        self.V[FLAG_REGISTER] = 1 if no_borrow else 0

    def _alu_shl(self, x: int, y: int) -> None:
        msb = (self.V[x] >> 7) & 0x01
        self.V[x] = (self.V[x] << 1) & 0xFF
        self.V[FLAG_REGISTER] = msb

    # Graphics

    def _drw(self, opcode: int) -> None:
        """
        DRW Vx, Vy, n - draw an n-row sprite from memory at I.

        VF is set to 1 if any lit pixel was turned off, else 0.
        """
        x = self.V[(opcode & 0x0F00) >> 8]
        y = self.V[(opcode & 0x00F0) >> 4]
        height = opcode & 0x000F

        rows = [self.memory.read(self.I + row) for row in range(height)]
        collision = self.display.draw_sprite(x, y, rows)
        self.V[FLAG_REGISTER] = 1 if collision else 0

        self._emit(EventType.DISPLAY_DRAW, {
            "x": x, "y": y, "height": height, "collision": collision
        })

    # FxNN operations

    def _ld_vx_dt(self, x: int) -> None:
        self.V[x] = self.timers.delay

    def _ld_vx_k(self, x: int) -> None:
        """
        LD Vx, K - wait for a key press.

        When no key is down the PC is rewound so this instruction is
        fetched again on the next step.
        """
        key = self.keypad.first_pressed()
        if key is None:
            self.PC = (self.PC - 2) & 0xFFFF
            self.waiting_for_key = True
            return

        self.V[x] = key
        self.waiting_for_key = False

    def _ld_dt_vx(self, x: int) -> None:
        self.timers.set_delay(self.V[x])

    def _ld_st_vx(self, x: int) -> None:
        self.timers.set_sound(self.V[x])

    def _add_i_vx(self, x: int) -> None:
        if self.legacy_index_add:
            # I += I + Vx, as the original interpreter computed it
            self.I = (self.I + ((self.I + self.V[x]) & 0xFFFF)) & 0xFFFF
        else:
            self.I = (self.I + self.V[x]) & 0xFFFF

    def _ld_f_vx(self, x: int) -> None:
        self.I = self.memory.font_address(self.V[x])

    def _ld_b_vx(self, x: int) -> None:
        value = self.V[x]
        self.memory.write_block(self.I, [value // 100, (value // 10) % 10, value % 10])

    def _ld_mem_vx(self, x: int) -> None:
        self.memory.write_block(self.I, self.V[:x + 1])

    def _ld_vx_mem(self, x: int) -> None:
        for i in range(x + 1):
            self.V[i] = self.memory.read(self.I + i)
