"""
CHIP-8 Emulator

A deterministic interpreter for the CHIP-8 virtual machine: the 35
instructions of the base instruction set, a 64x32 XOR-drawn display,
delay and sound timers and the 16-key hex keypad, with headless and
interactive hosts, state tracing and timed input replay.
"""

__version__ = "0.1.0"

from .common.exceptions import (
    Chip8Error, UnimplementedOpcodeError, MachineFault
)
from .systems.chip8 import Chip8System
