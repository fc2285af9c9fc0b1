"""
Common functionality shared across the emulator.
"""
from .interfaces import CPU, Memory, VideoProcessor, System
from .exceptions import (
    Chip8Error, UnimplementedOpcodeError, MachineFault,
    StackOverflowFault, StackUnderflowFault, MemoryBoundsFault, KeyIndexFault
)
