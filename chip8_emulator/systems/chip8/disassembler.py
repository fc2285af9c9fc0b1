"""
CHIP-8 disassembler.

Turns 16-bit instruction words into the conventional mnemonics used by
CHIP-8 assemblers. Used for debug logging and instruction traces.
"""

from typing import List, Tuple

from ...constants import START_ADDRESS

_ALU_MNEMONICS = {
    0x0: "LD",
    0x1: "OR",
    0x2: "AND",
    0x3: "XOR",
    0x4: "ADD",
    0x5: "SUB",
    0x6: "SHR",
    0x7: "SUBN",
    0xE: "SHL",
}

_FX_FORMATS = {
    0x07: "LD V{x:X}, DT",
    0x0A: "LD V{x:X}, K",
    0x15: "LD DT, V{x:X}",
    0x18: "LD ST, V{x:X}",
    0x1E: "ADD I, V{x:X}",
    0x29: "LD F, V{x:X}",
    0x33: "LD B, V{x:X}",
    0x55: "LD [I], V{x:X}",
    0x65: "LD V{x:X}, [I]",
}


def disassemble(opcode: int) -> str:
    """
    Return the mnemonic for a single instruction word.

    Unknown words render as ``UNKNOWN 0xNNNN``.
    """
    opcode &= 0xFFFF
    d1 = (opcode & 0xF000) >> 12
    x = (opcode & 0x0F00) >> 8
    y = (opcode & 0x00F0) >> 4
    n = opcode & 0x000F
    nn = opcode & 0x00FF
    nnn = opcode & 0x0FFF

    if opcode == 0x0000:
        return "NOP"
    if opcode == 0x00E0:
        return "CLS"
    if opcode == 0x00EE:
        return "RET"
    if d1 == 0x1:
        return f"JP 0x{nnn:03X}"
    if d1 == 0x2:
        return f"CALL 0x{nnn:03X}"
    if d1 == 0x3:
        return f"SE V{x:X}, 0x{nn:02X}"
    if d1 == 0x4:
        return f"SNE V{x:X}, 0x{nn:02X}"
    if d1 == 0x5 and n == 0:
        return f"SE V{x:X}, V{y:X}"
    if d1 == 0x6:
        return f"LD V{x:X}, 0x{nn:02X}"
    if d1 == 0x7:
        return f"ADD V{x:X}, 0x{nn:02X}"
    if d1 == 0x8 and n in _ALU_MNEMONICS:
        if n in (0x6, 0xE):
            return f"{_ALU_MNEMONICS[n]} V{x:X}"
        return f"{_ALU_MNEMONICS[n]} V{x:X}, V{y:X}"
    if d1 == 0x9 and n == 0:
        return f"SNE V{x:X}, V{y:X}"
    if d1 == 0xA:
        return f"LD I, 0x{nnn:03X}"
    if d1 == 0xB:
        return f"JP V0, 0x{nnn:03X}"
    if d1 == 0xC:
        return f"RND V{x:X}, 0x{nn:02X}"
    if d1 == 0xD:
        return f"DRW V{x:X}, V{y:X}, {n}"
    if d1 == 0xE and nn == 0x9E:
        return f"SKP V{x:X}"
    if d1 == 0xE and nn == 0xA1:
        return f"SKNP V{x:X}"
    if d1 == 0xF and nn in _FX_FORMATS:
        return _FX_FORMATS[nn].format(x=x)

    return f"UNKNOWN 0x{opcode:04X}"


def disassemble_program(data: bytes, base: int = START_ADDRESS) -> List[Tuple[int, int, str]]:
    """
    Disassemble a program image two bytes at a time.

    Args:
        data: Raw program bytes
        base: Address of the first byte

    Returns:
        List of (address, opcode, mnemonic) tuples. A trailing odd byte is
        padded with zero.
    """
    listing = []
    for offset in range(0, len(data), 2):
        high = data[offset]
        low = data[offset + 1] if offset + 1 < len(data) else 0
        opcode = (high << 8) | low
        listing.append((base + offset, opcode, disassemble(opcode)))
    return listing
