"""
Exception types raised by the CHIP-8 interpreter.

Two kinds of failure stop execution: an opcode that matches no instruction
pattern, and a machine fault where a program breaks a hardware contract
(stack overflow, reading a key that does not exist, writing over the font).
Both are fatal to the running program but never to the host process.
"""

from typing import Optional


class Chip8Error(Exception):
    """Base class for all interpreter errors."""
    pass


class UnimplementedOpcodeError(Chip8Error):
    """
    Raised when a fetched opcode matches no known instruction pattern.

    Attributes:
        opcode: The 16-bit instruction word
        address: Address the opcode was fetched from (None if unknown)
    """

    def __init__(self, opcode: int, address: Optional[int] = None):
        self.opcode = opcode
        self.address = address
        if address is None:
            message = f"Unimplemented opcode 0x{opcode:04X}"
        else:
            message = f"Unimplemented opcode 0x{opcode:04X} at 0x{address:03X}"
        super().__init__(message)


class MachineFault(Chip8Error):
    """A program or host broke a contract of the virtual machine."""
    pass


class StackOverflowFault(MachineFault):
    pass


class StackUnderflowFault(MachineFault):
    pass


class MemoryBoundsFault(MachineFault):
    pass


class KeyIndexFault(MachineFault):
    pass
