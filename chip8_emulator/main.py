"""
Main entry point for the CHIP-8 emulator.

This module provides the main entry point, including argument parsing and
execution flow control for headless and interactive runs.
"""

import argparse
import logging
import time
import sys
from typing import List, Optional

from tqdm import tqdm

from .systems.chip8 import Chip8System
from .analysis.state_recorder import StateRecorder
from .common.exceptions import Chip8Error
from .utils.config_manager import ConfigManager
from .utils.error_handler import error_handler, error_boundary, ErrorCategory
from .utils.input_script import InputScript
from .utils.event_manager import EventType
from .constants import TRACE_FORMATS

logger = logging.getLogger("Chip8Emulator")

def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(description="CHIP-8 virtual machine interpreter")
    parser.add_argument('--rom', type=str, required=True, help='Path to program image')
    parser.add_argument('--frames', type=int, default=60, help='Number of frames to run headless')
    parser.add_argument('--cycles-per-frame', type=int, help='Instructions executed per frame')
    parser.add_argument('--seed', type=int, help='Seed for the RND instruction')
    parser.add_argument('--legacy-index-add', action='store_true',
                        help='Reproduce the double add in ADD I, Vx')
    parser.add_argument('--input-script', type=str, help='JSON/YAML file of timed key events')
    parser.add_argument('--config', type=str, help='Path to JSON/YAML configuration file')
    parser.add_argument('--save-trace', type=str, help='Path to save the per-frame state trace')
    parser.add_argument('--trace-format', type=str, choices=TRACE_FORMATS,
                        help='Format of the saved trace')
    parser.add_argument('--ascii', action='store_true', help='Print the final frame as text')
    parser.add_argument('--save-frame', type=str, help='Save the final frame as an image')
    parser.add_argument('--show', action='store_true', help='Show the final frame in a window')
    parser.add_argument('--interactive', action='store_true',
                        help='Run in a window with keyboard input instead of headless')
    parser.add_argument('--quiet', action='store_true', help='Disable the progress bar')
    parser.add_argument('--debug', action='store_true', help='Enable debug mode')
    parser.add_argument('--log-level', type=str, choices=['DEBUG', 'INFO', 'WARNING', 'ERROR'],
                       help='Logging level (default: logging.level from config)')
    return parser

def _build_config(args: argparse.Namespace) -> Optional[ConfigManager]:
    config = ConfigManager()
    if args.config and not config.load_config(args.config):
        return None

    if args.cycles_per_frame is not None:
        config.set("machine.cycles_per_frame", args.cycles_per_frame)
    if args.seed is not None:
        config.set("machine.seed", args.seed)
    if args.legacy_index_add:
        config.set("quirks.legacy_index_add", True)
    if args.save_trace:
        config.set("trace.enabled", True)
    if args.trace_format:
        config.set("trace.format", args.trace_format)

    errors = config.validate_config(config.as_dict())
    if errors:
        for error in errors:
            logger.error(f"Configuration validation error: {error}")
        return None

    return config

@error_boundary(ErrorCategory.IO)
def _render_final_frame(system: Chip8System, config: ConfigManager,
                        save_path: Optional[str], show: bool) -> bool:
    from .common.visualizer import FrameVisualizer
    visualizer = FrameVisualizer(scale=config.get("display.scale"),
                                 dark_mode=config.get("display.dark_mode"))
    if save_path:
        visualizer.save_frame(system.framebuffer(), save_path)
    if show:
        visualizer.show_frame(system.framebuffer(), title=system.rom_name)
    return True

def main(argv: Optional[List[str]] = None) -> int:
    """
    Parse arguments and run the program.

    Returns:
        Process exit status
    """
    args = build_parser().parse_args(argv)

    config = _build_config(args)
    if config is None:
        return 1

    log_level = getattr(logging, args.log_level or config.get("logging.level"))
    if args.debug:
        log_level = logging.DEBUG
    error_handler.set_log_levels(log_level)
    if config.get("logging.file"):
        error_handler.set_log_file(config.get("logging.file"))

    system = Chip8System(config.as_dict())
    system.event_manager.register_logger(
        [EventType.ROM_LOADED, EventType.SOUND_START, EventType.SOUND_STOP, EventType.MACHINE_ERROR]
    )

    state_recorder = None
    if config.get("trace.enabled"):
        state_recorder = StateRecorder(max_history=config.get("trace.max_history"), compression_ratio=1)
        system.register_state_recorder(state_recorder)

    try:
        system.load_rom(args.rom)
    except (OSError, Chip8Error) as e:
        error_handler.log_exception(e, f"Error loading ROM: {e}")
        return 1

    if args.input_script:
        try:
            system.schedule_input(InputScript.load(args.input_script))
        except (OSError, ValueError) as e:
            error_handler.log_exception(e, f"Error loading input script: {e}", ErrorCategory.INPUT)
            return 1

    if args.interactive:
        from .common.visualizer import FrameVisualizer
        visualizer = FrameVisualizer(scale=config.get("display.scale"),
                                     dark_mode=config.get("display.dark_mode"))
        visualizer.run_interactive(system, timer_hz=config.get("machine.timer_hz"))
        return 1 if system.halted else 0

    status = 0
    start_time = time.time()

    for _ in tqdm(range(args.frames), desc="Running frames", unit="frame", disable=args.quiet):
        try:
            system.run_frame()
        except Chip8Error as e:
            error_handler.log_exception(e, f"Program halted at frame {system.frame_count}: {e}")
            status = 1
            break

    execution_time = time.time() - start_time

    if state_recorder is not None and args.save_trace:
        if not state_recorder.save_history(args.save_trace, format=config.get("trace.format")):
            status = 1

    if args.ascii:
        print(system.display.to_ascii())

    if args.save_frame or args.show:
        if not _render_final_frame(system, config, args.save_frame, args.show):
            status = 1

    cycles_per_second = system.cycle_count / execution_time if execution_time > 0 else 0

    print("\nRun Summary:")
    print(f"Program: {system.rom_name}")
    print(f"Frames run: {system.frame_count}")
    print(f"Instructions executed: {system.cycle_count}")
    print(f"Execution time: {execution_time:.2f} seconds")
    print(f"Performance: {cycles_per_second:.2f} instructions/second")
    if system.halted:
        print(f"Halted: {system.last_error}")

    return status

if __name__ == "__main__":
    sys.exit(main())
