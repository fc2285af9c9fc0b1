"""
System implementations for the emulated hardware.
"""
from .chip8 import Chip8System
