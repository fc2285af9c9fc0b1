"""
Abstract component interfaces.

``Chip8System`` wires concrete components together through these
contracts, so a component can be swapped (for example a display that
renders straight to a terminal) without touching the CPU.
"""
from abc import ABC, abstractmethod
import typing as t

class CPU(ABC):
    @abstractmethod
    def reset(self) -> None:
        """Zero the registers and stack and point PC at the program start."""
        pass

    @abstractmethod
    def step(self) -> int:
        """Fetch, decode and execute one instruction; return its opcode."""
        pass

    @abstractmethod
    def get_state(self) -> dict:
        """Registers, PC, I, SP and the live part of the stack."""
        pass

    @abstractmethod
    def set_memory(self, memory: 'Memory') -> None:
        """Attach the memory the CPU fetches from."""
        pass

class Memory(ABC):
    @abstractmethod
    def read(self, address: int) -> int:
        """Byte at ``address``; addresses wrap at the memory size."""
        pass

    @abstractmethod
    def read_word(self, address: int) -> int:
        """Big-endian 16-bit word starting at ``address``."""
        pass

    @abstractmethod
    def write(self, address: int, value: int) -> None:
        """Store the low 8 bits of ``value``; faults on protected regions."""
        pass

    @abstractmethod
    def write_block(self, address: int, values: t.Sequence[int]) -> None:
        """Store consecutive bytes; nothing is stored if any target faults."""
        pass

    @abstractmethod
    def load_rom(self, rom_data: bytes) -> None:
        """Copy a program image to the program start address."""
        pass

    @abstractmethod
    def font_address(self, digit: int) -> int:
        """Address of the built-in glyph for a hex digit."""
        pass

class VideoProcessor(ABC):
    @abstractmethod
    def clear(self) -> None:
        """Turn every pixel off."""
        pass

    @abstractmethod
    def draw_sprite(self, x: int, y: int, rows: t.Sequence[int]) -> bool:
        """XOR 8-pixel rows onto the screen; True if a lit pixel went dark."""
        pass

    @abstractmethod
    def get_frame_buffer(self) -> t.Any:
        """Read-only, row-major view of the pixels."""
        pass

    @abstractmethod
    def get_state(self) -> dict:
        """Geometry and draw statistics."""
        pass

class System(ABC):
    @abstractmethod
    def __init__(self, config: t.Optional[dict] = None):
        """Build and connect all components from a configuration mapping."""
        pass

    @abstractmethod
    def load_rom(self, rom_path: str) -> None:
        """Read a program image from disk and load it."""
        pass

    @abstractmethod
    def reset(self) -> None:
        """Return every component to its power-on state."""
        pass

    @abstractmethod
    def run_frame(self) -> dict:
        """Run one frame of instructions and a timer tick; return the state."""
        pass

    @abstractmethod
    def get_system_state(self) -> dict:
        """Snapshot of every component."""
        pass
