"""
CHIP-8 memory system implementation.

The CHIP-8 memory map is a flat 4KB address space:
- 0x000-0x04F: built-in hex font (16 glyphs, 5 bytes each)
- 0x050-0x1FF: reserved for the interpreter, zero filled
- 0x200-0xFFF: program image and program data

Addresses wrap at 4KB. The font region is written only on reset; any
later write into it is a machine fault.
"""

from ...common.interfaces import Memory
from ...common.exceptions import MemoryBoundsFault
from ...constants import (
    RAM_SIZE, ADDRESS_MASK, START_ADDRESS, MAX_PROGRAM_SIZE,
    FONTSET, FONTSET_SIZE, FONT_GLYPH_SIZE
)
import logging
from typing import Dict, Any, Optional, Sequence

logger = logging.getLogger("Chip8Emulator.Memory")

class Chip8Memory(Memory):
    """
    Emulates the 4KB CHIP-8 RAM.

    Holds the font and the loaded program. All reads and writes mask the
    address to 12 bits, so the address space wraps around.
    """

    def __init__(self, config: Optional[Dict[str, Any]] = None):
        """
        Initialize the memory system.

        Args:
            config: Configuration dictionary
        """
        self.config = config or {}

        self.ram = bytearray(RAM_SIZE)
        self.program_size = 0
        self._load_font()

        logger.info("CHIP-8 memory system initialized")

    def _load_font(self) -> None:
        self.ram[:FONTSET_SIZE] = FONTSET

    def read(self, address: int) -> int:
        """
        Read a byte from the specified address.

        Args:
            address: Memory address

        Returns:
            Byte value at address
        """
        return self.ram[address & ADDRESS_MASK]

    def read_word(self, address: int) -> int:
        """
        Read a big-endian 16-bit word.

        Args:
            address: Address of the high byte

        Returns:
            16-bit value
        """
        return (self.read(address) << 8) | self.read(address + 1)

    def write(self, address: int, value: int) -> None:
        """
        Write a byte to the specified address.

        Args:
            address: Memory address
            value: Byte value to write

        Raises:
            MemoryBoundsFault: If the address is inside the font region
        """
        address &= ADDRESS_MASK
        if address < FONTSET_SIZE:
            raise MemoryBoundsFault(f"Write to reserved font region at 0x{address:03X}")

        self.ram[address] = value & 0xFF

    def write_block(self, address: int, values: Sequence[int]) -> None:
        """
        Write consecutive bytes starting at ``address``, wrapping at 4KB.

        Every target address is checked before the first byte is stored,
        so a fault leaves memory unchanged.

        Raises:
            MemoryBoundsFault: If any target address is inside the font region
        """
        targets = [(address + offset) & ADDRESS_MASK for offset in range(len(values))]
        for target in targets:
            if target < FONTSET_SIZE:
                raise MemoryBoundsFault(f"Write to reserved font region at 0x{target:03X}")

        for target, value in zip(targets, values):
            self.ram[target] = value & 0xFF

    def load_rom(self, rom_data: bytes) -> None:
        """
        Copy a program image into memory at the program start address.

        Args:
            rom_data: Raw program bytes

        Raises:
            MemoryBoundsFault: If the image does not fit in memory
        """
        size = len(rom_data)
        if size > MAX_PROGRAM_SIZE:
            raise MemoryBoundsFault(
                f"Program of {size} bytes exceeds the {MAX_PROGRAM_SIZE} bytes available "
                f"at 0x{START_ADDRESS:03X}"
            )

        if not size:
            logger.warning("Loaded an empty program image")

        self.ram[START_ADDRESS:START_ADDRESS + size] = rom_data
        self.program_size = size

        logger.info(f"Program loaded: {size} bytes at 0x{START_ADDRESS:03X}")

    def font_address(self, digit: int) -> int:
        """Address of the font glyph for a hex digit."""
        return (digit * FONT_GLYPH_SIZE) & 0xFFFF

    def get_state(self) -> Dict[str, Any]:
        """Return memory usage information."""
        return {
            "size": len(self.ram),
            "program_size": self.program_size,
        }

    def reset(self) -> None:
        """Reset the memory to initial state."""
        self.ram = bytearray(RAM_SIZE)
        self.program_size = 0
        self._load_font()

        logger.info("Memory system reset")
