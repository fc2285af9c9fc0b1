"""
Visualization tools for the interpreter's frame buffer and state traces.
"""
import numpy as np
import matplotlib.pyplot as plt
from matplotlib.animation import FuncAnimation
import logging
from typing import List, Tuple, Optional, Any

from ..constants import SCREEN_WIDTH, SCREEN_HEIGHT, KEYMAP, DEFAULT_TIMER_HZ, DEFAULT_SCALE
from .exceptions import Chip8Error

logger = logging.getLogger("Chip8Emulator.Visualizer")

class FrameVisualizer:
    """
    Renders the monochrome frame buffer and register traces with matplotlib.
    """

    def __init__(self, scale: int = DEFAULT_SCALE, dark_mode: bool = True):
        """
        Initialize the visualizer.

        Args:
            scale: Screen pixels per emulated pixel in interactive windows
            dark_mode: Lit pixels white on black (False: black on white)
        """
        self.scale = scale
        self.dark_mode = dark_mode
        self.color_map = 'gray' if dark_mode else 'gray_r'

        logger.info("Initialized frame visualizer")

    def _figsize(self) -> Tuple[float, float]:
        dpi = plt.rcParams['figure.dpi']
        return (SCREEN_WIDTH * self.scale / dpi, SCREEN_HEIGHT * self.scale / dpi)

    @staticmethod
    def _as_image(frame_buffer: np.ndarray) -> np.ndarray:
        return np.asarray(frame_buffer, dtype=np.uint8).reshape(SCREEN_HEIGHT, SCREEN_WIDTH)

    def plot_frame(self, frame_buffer: np.ndarray, title: Optional[str] = None) -> Any:
        """
        Draw a frame buffer into a new figure.

        Args:
            frame_buffer: Flat array of 2048 booleans, row-major
            title: Optional figure title

        Returns:
            The matplotlib figure
        """
        fig, ax = plt.subplots(figsize=self._figsize())
        ax.imshow(self._as_image(frame_buffer), cmap=self.color_map,
                  vmin=0, vmax=1, interpolation='nearest')
        ax.set_axis_off()
        if title:
            ax.set_title(title)
        return fig

    def show_frame(self, frame_buffer: np.ndarray, title: Optional[str] = None) -> None:
        self.plot_frame(frame_buffer, title)
        plt.show()

    def save_frame(self, frame_buffer: np.ndarray, filename: str) -> None:
        """
        Save a frame buffer as an image file.

        Args:
            frame_buffer: Flat array of 2048 booleans
            filename: Output path; the format follows the extension
        """
        image = self._as_image(frame_buffer)
        # Upscale so each emulated pixel is a visible block
        image = np.kron(image, np.ones((self.scale, self.scale), dtype=np.uint8))
        plt.imsave(filename, image, cmap=self.color_map, vmin=0, vmax=1)
        logger.info(f"Saved frame to {filename}")

    def plot_register_history(self, recorder, register_names: List[str],
                              figsize: Tuple[int, int] = (12, 6)) -> Any:
        """
        Plot register values over time from a state recorder.

        Args:
            recorder: StateRecorder with recorded snapshots
            register_names: Registers to plot (e.g. ["V0", "I"])
            figsize: Figure size (width, height) in inches

        Returns:
            The matplotlib figure, or None if nothing was recorded
        """
        fig, ax = plt.subplots(figsize=figsize)
        plotted = 0

        for name in register_names:
            history = recorder.get_register_history(name)
            if not history["values"]:
                logger.warning(f"No history recorded for register {name}")
                continue
            ax.step(history["cycles"], history["values"], where='post', label=name)
            plotted += 1

        if not plotted:
            plt.close(fig)
            return None

        ax.set_xlabel("Cycle")
        ax.set_ylabel("Value")
        ax.set_title("Register History")
        ax.legend()
        ax.grid(True, alpha=0.3)
        return fig

    def run_interactive(self, system, timer_hz: int = DEFAULT_TIMER_HZ) -> None:
        """
        Run a system in a window, one frame per timer tick.

        Keys 1234/QWER/ASDF/ZXCV drive the keypad. The window title shows
        the error if the program halts.

        Args:
            system: A loaded Chip8System
            timer_hz: Frames (and timer ticks) per second
        """
        fig, ax = plt.subplots(figsize=self._figsize())
        image = ax.imshow(self._as_image(system.framebuffer()), cmap=self.color_map,
                          vmin=0, vmax=1, interpolation='nearest')
        ax.set_axis_off()
        fig.canvas.manager.set_window_title(system.rom_name or "CHIP-8")

        def on_key(event, pressed: bool) -> None:
            key = KEYMAP.get((event.key or "").lower())
            if key is not None:
                system.set_key(key, pressed)

        fig.canvas.mpl_connect('key_press_event', lambda event: on_key(event, True))
        fig.canvas.mpl_connect('key_release_event', lambda event: on_key(event, False))

        def update(_frame):
            if system.halted:
                return (image,)
            try:
                system.run_frame()
            except Chip8Error as e:
                ax.set_title(str(e), fontsize=8)
                logger.error(f"Program halted: {e}")
            image.set_data(self._as_image(system.framebuffer()))
            return (image,)

        interval_ms = max(1, int(1000 / timer_hz))
        # Keep a reference so the animation is not garbage collected
        self._animation = FuncAnimation(fig, update, interval=interval_ms,
                                        blit=False, cache_frame_data=False)
        plt.show()
