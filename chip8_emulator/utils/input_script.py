"""
Timed keypad input for headless runs.

An input script is a list of key presses and releases, each stamped with
the frame on which it takes effect. Replaying the same script against the
same program with a seeded random source reproduces a run exactly.

Script files are JSON or YAML lists of mappings::

    - {frame: 0, key: 5, pressed: true}
    - {frame: 12, key: "A", pressed: false}
"""

import os
import json
import logging
from typing import Any, Dict, Iterable, List, Union

import yaml

from ..constants import NUM_KEYS

logger = logging.getLogger("Chip8Emulator.InputScript")


class InputEvent:
    """A key state change applied at the start of a frame."""

    def __init__(self, frame: int, key: int, pressed: bool):
        self.frame = frame
        self.key = key
        self.pressed = pressed

    def __eq__(self, other) -> bool:
        if not isinstance(other, InputEvent):
            return NotImplemented
        return (self.frame, self.key, self.pressed) == (other.frame, other.key, other.pressed)

    def __repr__(self) -> str:
        return f"InputEvent(frame={self.frame}, key=0x{self.key:X}, pressed={self.pressed})"


def _parse_key(value: Union[int, str]) -> int:
    if isinstance(value, bool):
        raise ValueError(f"Invalid key: {value!r}")
    if isinstance(value, str):
        text = value.strip().lower()
        if text.startswith("0x"):
            text = text[2:]
        try:
            key = int(text, 16)
        except ValueError:
            raise ValueError(f"Invalid key: {value!r}") from None
    elif isinstance(value, int):
        key = value
    else:
        raise ValueError(f"Invalid key: {value!r}")

    if not 0 <= key < NUM_KEYS:
        raise ValueError(f"Key {value!r} is outside 0x0-0xF")
    return key


class InputScript:
    """
    Ordered collection of timed key events.
    """

    def __init__(self, events: Iterable[InputEvent] = ()):
        # Stable sort keeps same-frame events in the order given
        self.events: List[InputEvent] = sorted(events, key=lambda e: e.frame)

    def __len__(self) -> int:
        return len(self.events)

    def __iter__(self):
        return iter(self.events)

    def add(self, frame: int, key: Union[int, str], pressed: bool = True) -> None:
        """Add an event, keeping the script ordered by frame."""
        self.events.append(InputEvent(int(frame), _parse_key(key), bool(pressed)))
        self.events.sort(key=lambda e: e.frame)

    def tap(self, frame: int, key: Union[int, str], hold_frames: int = 1) -> None:
        """Press a key on ``frame`` and release it ``hold_frames`` later."""
        self.add(frame, key, True)
        self.add(frame + max(1, hold_frames), key, False)

    def events_for_frame(self, frame: int) -> List[InputEvent]:
        return [event for event in self.events if event.frame == frame]

    @property
    def last_frame(self) -> int:
        return self.events[-1].frame if self.events else -1

    @classmethod
    def from_list(cls, entries: List[Dict[str, Any]]) -> "InputScript":
        """
        Build a script from a list of mappings.

        Raises:
            ValueError: If an entry is malformed
        """
        if not isinstance(entries, list):
            raise ValueError("Input script must be a list of events")

        events = []
        for index, entry in enumerate(entries):
            if not isinstance(entry, dict) or "frame" not in entry or "key" not in entry:
                raise ValueError(f"Input event {index} needs 'frame' and 'key': {entry!r}")

            frame = entry["frame"]
            if not isinstance(frame, int) or isinstance(frame, bool) or frame < 0:
                raise ValueError(f"Input event {index} has invalid frame: {frame!r}")

            events.append(InputEvent(frame, _parse_key(entry["key"]), bool(entry.get("pressed", True))))

        return cls(events)

    @classmethod
    def load(cls, path: str) -> "InputScript":
        """
        Load a script from a JSON or YAML file.

        Raises:
            OSError: If the file cannot be read
            ValueError: If the format or contents are invalid
        """
        _, ext = os.path.splitext(path)
        ext = ext.lower()

        with open(path, 'r') as f:
            if ext == '.json':
                entries = json.load(f)
            elif ext in ['.yaml', '.yml']:
                entries = yaml.safe_load(f)
            else:
                raise ValueError(f"Unsupported input script format: {ext}")

        script = cls.from_list(entries or [])
        logger.info(f"Loaded {len(script)} input events from {path}")
        return script

    def to_list(self) -> List[Dict[str, Any]]:
        return [{"frame": e.frame, "key": e.key, "pressed": e.pressed} for e in self.events]
