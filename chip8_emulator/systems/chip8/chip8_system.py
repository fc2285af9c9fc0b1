"""
CHIP-8 system implementation.

This module provides the complete interpreter for the CHIP-8 virtual
machine, integrating the CPU, memory, display, timers and keypad. It exposes
the narrow API a host needs: load a program, feed key state, step
instructions, tick the timers and read the frame buffer. It also carries the
conventional frame pacing loop (N instructions then one timer tick per
frame) for headless and interactive hosts.
"""

import logging
import os
from typing import Dict, Optional, Any

import numpy as np

from ...common.interfaces import System
from ...common.exceptions import Chip8Error, MachineFault
from ...constants import DEFAULT_CYCLES_PER_FRAME
from ...utils.event_manager import EventManager, EventType
from ...utils.input_script import InputScript
from .cpu import Chip8CPU
from .memory import Chip8Memory
from .display import Chip8Display
from .timers import Chip8Timers
from .keypad import Chip8Keypad

logger = logging.getLogger("Chip8Emulator.System")

class Chip8System(System):
    """
    Complete CHIP-8 interpreter.

    Owns all machine state. Construction and ``reset()`` produce the same
    initial state: zeroed memory with the font loaded, zeroed registers,
    stack, keys and timers, a blank screen and PC at 0x200.
    """

    def __init__(self, config: Optional[Dict[str, Any]] = None,
                 rng: Optional[Any] = None,
                 event_manager: Optional[EventManager] = None):
        """
        Initialize the CHIP-8 system.

        Args:
            config: Configuration dictionary (ConfigManager layout)
            rng: Random byte source for RND (default: numpy Generator seeded
                from ``machine.seed``)
            event_manager: Event bus (a private one is created if omitted)
        """
        self.config = config or {}
        machine_config = self.config.get("machine", {})
        quirks = self.config.get("quirks", {})

        self.cycles_per_frame = machine_config.get("cycles_per_frame", DEFAULT_CYCLES_PER_FRAME)

        # A generator built here is re-seeded on reset; an injected one is not
        self.seed = machine_config.get("seed")
        self._owns_rng = rng is None
        if rng is None:
            rng = np.random.default_rng(self.seed)

        self.event_manager = event_manager or EventManager()

        # Create and connect components
        self.memory = Chip8Memory(self.config)
        self.cpu = Chip8CPU(
            rng=rng,
            legacy_index_add=quirks.get("legacy_index_add", False),
            event_manager=self.event_manager
        )
        self.display = Chip8Display()
        self.timers = Chip8Timers(self.event_manager)
        self.keypad = Chip8Keypad()

        self.cpu.set_memory(self.memory)
        self.cpu.connect_display(self.display)
        self.cpu.connect_timers(self.timers)
        self.cpu.connect_keypad(self.keypad)

        # System state
        self.cycle_count = 0
        self.frame_count = 0
        self.halted = False
        self.last_error: Optional[Chip8Error] = None

        # Program information
        self.rom_loaded = False
        self.rom_name = ""

        # Host attachments
        self.state_recorder = None
        self.input_script: Optional[InputScript] = None

        logger.info("CHIP-8 system initialized")

    def reset(self) -> None:
        """Reset the system to initial state."""
        self.cpu.reset()
        self.memory.reset()
        self.display.reset()
        self.timers.reset()
        self.keypad.reset()
        if self._owns_rng:
            self.cpu.rng = np.random.default_rng(self.seed)

        self.cycle_count = 0
        self.frame_count = 0
        self.halted = False
        self.last_error = None
        self.rom_loaded = False
        self.rom_name = ""

        if self.state_recorder is not None:
            self.state_recorder.clear()

        self.event_manager.create_event(EventType.SYSTEM_RESET, "system")
        logger.info("System reset")

    def load(self, data: bytes) -> None:
        """
        Copy a raw program image into memory at 0x200.

        Args:
            data: Program bytes, no header

        Raises:
            MemoryBoundsFault: If the image is larger than the program area
        """
        self.memory.load_rom(bytes(data))
        self.rom_loaded = True

    def load_rom(self, rom_path: str) -> None:
        """
        Load a program image from a file.

        Args:
            rom_path: Path to ROM file

        Raises:
            OSError: If the file cannot be read
            MemoryBoundsFault: If the image is too large
        """
        with open(rom_path, 'rb') as f:
            rom_data = f.read()

        self.load(rom_data)
        self.rom_name = os.path.basename(rom_path)

        self.event_manager.create_event(
            EventType.ROM_LOADED, "system", {"name": self.rom_name, "size": len(rom_data)}
        )
        logger.info(f"Loaded ROM: {self.rom_name} ({len(rom_data)} bytes)")

    def set_key(self, index: int, pressed: bool) -> None:
        """
        Record the state of keypad key ``index`` (0-15).

        Raises:
            KeyIndexFault: If index is out of range
        """
        if self.keypad.set_key(index, pressed):
            self.event_manager.create_event(
                EventType.KEY_CHANGE, "keypad", {"key": index, "pressed": bool(pressed)}
            )

    def step(self) -> int:
        """
        Execute one fetch/decode/execute cycle.

        On an error the system is halted until ``reset()``; the error is
        re-raised for the host to handle.

        Returns:
            The opcode that was executed

        Raises:
            UnimplementedOpcodeError: On an unknown opcode
            MachineFault: On a contract violation, or if already halted
        """
        if self.halted:
            raise MachineFault("Machine is halted; reset() is required") from self.last_error

        try:
            opcode = self.cpu.step()
        except Chip8Error as e:
            self.halted = True
            self.last_error = e
            logger.error(f"Execution halted: {e}")
            self.event_manager.create_event(
                EventType.MACHINE_ERROR, "system",
                {"error": str(e), "type": e.__class__.__name__, "pc": self.cpu.opcode_address}
            )
            raise

        self.cycle_count += 1
        return opcode

    def tick_timers(self) -> bool:
        """
        Advance the delay and sound timers by one tick.

        Returns:
            True exactly when the sound timer ran out on this tick
        """
        return self.timers.tick()

    @property
    def sound_active(self) -> bool:
        return self.timers.sound_active

    def framebuffer(self) -> np.ndarray:
        """
        Read-only view of the 64x32 frame buffer, row-major, True = lit.
        """
        return self.display.get_frame_buffer()

    def register_state_recorder(self, recorder) -> None:
        """Record a state snapshot after every frame."""
        self.state_recorder = recorder

    def schedule_input(self, script: InputScript) -> None:
        """Apply the script's key events at the start of matching frames."""
        self.input_script = script

    def run_frame(self) -> Dict[str, Any]:
        """
        Run the system for one frame.

        Applies scheduled input, executes ``cycles_per_frame`` instructions
        and ticks the timers once.

        Returns:
            System state at the end of the frame
        """
        if self.input_script is not None:
            for event in self.input_script.events_for_frame(self.frame_count):
                self.set_key(event.key, event.pressed)

        for _ in range(self.cycles_per_frame):
            self.step()

        self.tick_timers()
        self.frame_count += 1

        self.event_manager.create_event(
            EventType.FRAME_COMPLETE, "system", {"frame": self.frame_count, "cycle": self.cycle_count}
        )

        if self.state_recorder is not None:
            self._record_state()

        logger.debug(f"Frame {self.frame_count} completed at cycle {self.cycle_count}")

        return self.get_system_state()

    def get_system_state(self) -> Dict[str, Any]:
        """
        Get the current system state.

        Returns:
            Dictionary with system state
        """
        return {
            "cycle_count": self.cycle_count,
            "frame_count": self.frame_count,
            "rom_name": self.rom_name,
            "halted": self.halted,
            "cpu_state": self.cpu.get_state(),
            "timer_state": self.timers.get_state(),
            "keypad_state": self.keypad.get_state(),
            "display_state": self.display.get_state(),
            "frame_buffer": self.framebuffer()
        }

    def _record_state(self) -> None:
        """Record the current machine state for analysis."""
        cpu_state = self.cpu.get_state()
        registers = {f"V{i:X}": cpu_state[f"V{i:X}"] for i in range(16)}
        registers.update({
            "I": cpu_state["I"],
            "PC": cpu_state["PC"],
            "SP": cpu_state["SP"],
            "DT": self.timers.delay,
            "ST": self.timers.sound,
        })

        self.state_recorder.record_state({
            "cycle": self.cycle_count,
            "frame": self.frame_count,
            "registers": registers,
            "lit_pixels": int(np.count_nonzero(self.display.frame_buffer)),
        })
