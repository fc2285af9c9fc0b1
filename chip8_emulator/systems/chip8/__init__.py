"""
CHIP-8 interpreter components.
"""
from .cpu import Chip8CPU
from .memory import Chip8Memory
from .display import Chip8Display
from .timers import Chip8Timers
from .keypad import Chip8Keypad
from .disassembler import disassemble, disassemble_program
from .chip8_system import Chip8System
