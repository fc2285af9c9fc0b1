"""
CHIP-8 hex keypad.

Sixteen keys labelled 0-F. The host maps physical input onto key indices
and records presses here; instructions poll the current state.
"""

import logging
from typing import Dict, Any, List, Optional

from ...common.exceptions import KeyIndexFault
from ...constants import NUM_KEYS

logger = logging.getLogger("Chip8Emulator.Keypad")

class Chip8Keypad:
    """Emulates the 16-key hex keypad."""

    def __init__(self):
        self.keys: List[bool] = [False] * NUM_KEYS

    def _check_index(self, index: int) -> None:
        if not 0 <= index < NUM_KEYS:
            raise KeyIndexFault(f"Key index {index} is outside 0x0-0xF")

    def set_key(self, index: int, pressed: bool) -> bool:
        """
        Record the state of a key.

        Args:
            index: Key index (0-15)
            pressed: True if the key is held down

        Returns:
            True if the stored state changed

        Raises:
            KeyIndexFault: If index is out of range
        """
        self._check_index(index)
        pressed = bool(pressed)
        changed = self.keys[index] != pressed
        self.keys[index] = pressed
        return changed

    def is_pressed(self, index: int) -> bool:
        """
        Check whether a key is held down.

        Raises:
            KeyIndexFault: If index is out of range
        """
        self._check_index(index)
        return self.keys[index]

    def first_pressed(self) -> Optional[int]:
        """Lowest-numbered key currently pressed, or None."""
        for index, pressed in enumerate(self.keys):
            if pressed:
                return index
        return None

    def get_state(self) -> Dict[str, Any]:
        return {
            "keys": list(self.keys),
            "pressed": [i for i, pressed in enumerate(self.keys) if pressed],
        }

    def reset(self) -> None:
        """Release every key."""
        self.keys = [False] * NUM_KEYS
