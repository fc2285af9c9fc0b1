"""
CHIP-8 display emulation.

The display is a 64x32 monochrome grid. Sprites are drawn by XORing their
bits onto the screen, and coordinates wrap around both edges. A draw that
turns a lit pixel off reports a collision, which programs use for hit
detection.
"""

import logging
from typing import Dict, Any, Sequence

import numpy as np

from ...common.interfaces import VideoProcessor
from ...constants import SCREEN_WIDTH, SCREEN_HEIGHT, SCREEN_SIZE

logger = logging.getLogger("Chip8Emulator.Display")

class Chip8Display(VideoProcessor):
    """
    Emulates the CHIP-8 monochrome display.

    Pixels live in a flat, row-major numpy boolean array of 2048 entries.
    Hosts receive read-only views so only the interpreter mutates them.
    """

    DISPLAY_WIDTH = SCREEN_WIDTH
    DISPLAY_HEIGHT = SCREEN_HEIGHT

    def __init__(self):
        """Initialize the display with every pixel off."""
        self.frame_buffer = np.zeros(SCREEN_SIZE, dtype=bool)

        # Statistics
        self.draw_count = 0
        self.collision_count = 0

        logger.info("Display initialized")

    def clear(self) -> None:
        """Turn every pixel off."""
        self.frame_buffer[:] = False

    def draw_sprite(self, x: int, y: int, rows: Sequence[int]) -> bool:
        """
        XOR a sprite onto the frame buffer.

        Each entry of ``rows`` is one 8-pixel row, most significant bit
        leftmost. Target coordinates wrap modulo the screen size.

        Args:
            x: Column of the sprite's left edge
            y: Row of the sprite's top edge
            rows: Sprite bytes, top row first

        Returns:
            True if any lit pixel was turned off
        """
        collision = False

        for row, bits in enumerate(rows):
            py = (y + row) % self.DISPLAY_HEIGHT
            for col in range(8):
                if bits & (0x80 >> col):
                    px = (x + col) % self.DISPLAY_WIDTH
                    idx = px + self.DISPLAY_WIDTH * py
                    if self.frame_buffer[idx]:
                        collision = True
                    self.frame_buffer[idx] = not self.frame_buffer[idx]

        self.draw_count += 1
        if collision:
            self.collision_count += 1

        return collision

    def get_pixel(self, x: int, y: int) -> bool:
        """Return whether the pixel at (x, y) is lit."""
        return bool(self.frame_buffer[(x % self.DISPLAY_WIDTH) + self.DISPLAY_WIDTH * (y % self.DISPLAY_HEIGHT)])

    def get_frame_buffer(self) -> np.ndarray:
        """
        Get the current frame buffer.

        Returns:
            Read-only flat view of 2048 booleans, row-major
        """
        view = self.frame_buffer.view()
        view.flags.writeable = False
        return view

    def as_2d(self) -> np.ndarray:
        """Read-only (32, 64) view of the frame buffer."""
        return self.get_frame_buffer().reshape(self.DISPLAY_HEIGHT, self.DISPLAY_WIDTH)

    def to_ascii(self, on: str = '#', off: str = '.') -> str:
        """Render the frame buffer as lines of text."""
        return "\n".join(
            "".join(on if pixel else off for pixel in row)
            for row in self.as_2d()
        )

    def get_state(self) -> Dict[str, Any]:
        """
        Get the current display state.

        Returns:
            Dictionary with display state
        """
        return {
            "width": self.DISPLAY_WIDTH,
            "height": self.DISPLAY_HEIGHT,
            "lit_pixels": int(np.count_nonzero(self.frame_buffer)),
            "draw_count": self.draw_count,
            "collision_count": self.collision_count,
        }

    def reset(self) -> None:
        """Reset the display to initial state."""
        # Cleared in place so views handed out earlier stay live
        self.frame_buffer[:] = False
        self.draw_count = 0
        self.collision_count = 0
