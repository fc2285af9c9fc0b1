#!/usr/bin/env python3
"""
Trace analysis example for the CHIP-8 emulator.

This example runs a program headless with a state recorder attached, prints
a disassembly of its first instructions, and saves the final frame and a
plot of register activity as images.

Usage:
    python trace_analysis.py --rom <path_to_rom> [--frames 120] [--output-dir out]
"""
import argparse
import logging
import sys
import os

import matplotlib
matplotlib.use("Agg")
import matplotlib.pyplot as plt

# Add parent directory to path to allow running from examples directory
sys.path.insert(0, os.path.abspath(os.path.join(os.path.dirname(__file__), '..')))

from chip8_emulator.systems.chip8 import Chip8System, disassemble_program
from chip8_emulator.analysis.state_recorder import StateRecorder
from chip8_emulator.common.visualizer import FrameVisualizer
from chip8_emulator.common.exceptions import Chip8Error

# Configure logging
logging.basicConfig(level=logging.INFO, format='%(asctime)s - %(name)s - %(levelname)s - %(message)s')
logger = logging.getLogger("TraceAnalysisExample")

def main():
    """Run the trace analysis example."""
    parser = argparse.ArgumentParser(description="Trace analysis example for the CHIP-8 emulator")
    parser.add_argument('--rom', type=str, required=True, help='Path to ROM file')
    parser.add_argument('--frames', type=int, default=120, help='Number of frames to run')
    parser.add_argument('--seed', type=int, default=0, help='Seed for the RND instruction')
    parser.add_argument('--output-dir', type=str, default='trace_output', help='Directory for images and traces')

    args = parser.parse_args()

    system = Chip8System(config={"machine": {"seed": args.seed}})
    recorder = StateRecorder(compression_ratio=1)
    system.register_state_recorder(recorder)

    try:
        system.load_rom(args.rom)
    except (OSError, Chip8Error) as e:
        logger.error(f"Error loading ROM: {e}")
        return 1

    with open(args.rom, 'rb') as f:
        image = f.read()

    print("First instructions:")
    for address, opcode, text in disassemble_program(image[:32]):
        print(f"  0x{address:03X}: {opcode:04X}  {text}")

    logger.info(f"Running {args.frames} frames")
    for _ in range(args.frames):
        try:
            system.run_frame()
        except Chip8Error as e:
            logger.error(f"Program halted at frame {system.frame_count}: {e}")
            break

    os.makedirs(args.output_dir, exist_ok=True)

    visualizer = FrameVisualizer(scale=8)
    visualizer.save_frame(system.framebuffer(), os.path.join(args.output_dir, "final_frame.png"))

    fig = visualizer.plot_register_history(recorder, ["V0", "V1", "I", "DT"])
    if fig is not None:
        fig.savefig(os.path.join(args.output_dir, "registers.png"))
        plt.close(fig)

    recorder.save_history(os.path.join(args.output_dir, "trace.csv"), format='csv')

    for change in recorder.find_register_value_changes("PC")[:10]:
        print(f"  frame {change['frame']}: PC 0x{change['old_value']:03X} -> 0x{change['new_value']:03X}")

    stats = recorder.get_statistics()
    print(f"\nRecorded {stats['total_records']} frames over {stats['total_cycles']} cycles")
    print(f"Outputs written to {args.output_dir}")

    return 0

if __name__ == "__main__":
    sys.exit(main())
