"""
CHIP-8 delay and sound timers.

Both timers are 8-bit counters that count down to zero at a fixed rate
(conventionally 60 Hz) driven by the host, independent of how many
instructions run per second. The buzzer sounds while the sound timer is
nonzero; the tick that takes it from 1 to 0 is the signal to stop the tone.
"""

import logging
from typing import Dict, Any, Optional

from ...utils.event_manager import EventManager, EventType

logger = logging.getLogger("Chip8Emulator.Timers")

class Chip8Timers:
    """
    Emulates the delay timer and sound timer.
    """

    def __init__(self, event_manager: Optional[EventManager] = None):
        """
        Initialize the timers.

        Args:
            event_manager: Optional event bus for SOUND_START/SOUND_STOP
        """
        self.delay = 0
        self.sound = 0
        self.event_manager = event_manager

        # Number of ticks since reset
        self.tick_count = 0

        logger.info("Timers initialized")

    @property
    def sound_active(self) -> bool:
        """Whether the buzzer should currently be sounding."""
        return self.sound > 0

    def set_delay(self, value: int) -> None:
        self.delay = value & 0xFF

    def set_sound(self, value: int) -> None:
        """
        Load the sound timer.

        Emits SOUND_START when the buzzer goes from silent to sounding.
        """
        was_active = self.sound_active
        self.sound = value & 0xFF

        if not was_active and self.sound_active and self.event_manager:
            self.event_manager.create_event(
                EventType.SOUND_START, "timers", {"duration_ticks": self.sound}
            )

    def tick(self) -> bool:
        """
        Advance both timers by one tick.

        Returns:
            True exactly when the sound timer went from 1 to 0 on this tick
        """
        self.tick_count += 1

        if self.delay > 0:
            self.delay -= 1

        stopped = False
        if self.sound > 0:
            self.sound -= 1
            if self.sound == 0:
                stopped = True
                logger.debug("Sound timer expired")
                if self.event_manager:
                    self.event_manager.create_event(
                        EventType.SOUND_STOP, "timers", {"tick": self.tick_count}
                    )

        return stopped

    def get_state(self) -> Dict[str, Any]:
        """
        Get the current timer state.

        Returns:
            Dictionary with timer state
        """
        return {
            "delay": self.delay,
            "sound": self.sound,
            "sound_active": self.sound_active,
            "tick_count": self.tick_count,
        }

    def reset(self) -> None:
        """Reset both timers to zero."""
        self.delay = 0
        self.sound = 0
        self.tick_count = 0
