"""
Interpreter event bus.

The interpreter core never calls host code directly. Components publish
events (the buzzer starting or stopping, a sprite drawn, a frame finished,
the machine halting) and host collaborators such as audio output, renderers
and tracers subscribe to the types they care about.

Delivery is synchronous: handlers run inside the ``step()`` or
``run_frame()`` call that produced the event, highest priority first.
"""

import logging
import time
from collections import Counter, deque
from enum import Enum
from typing import Any, Callable, Dict, Iterable, List, Optional, Set, Tuple

logger = logging.getLogger("Chip8Emulator.EventManager")

class EventPriority(Enum):
    """Handler priority; higher values are called first."""
    LOW = 0
    NORMAL = 1
    HIGH = 2
    CRITICAL = 3

class EventType(Enum):
    """Events published by the interpreter."""
    # Machine lifecycle
    SYSTEM_RESET = "system_reset"
    ROM_LOADED = "rom_loaded"
    MACHINE_ERROR = "machine_error"

    # Published per instruction, only while someone listens
    CPU_INSTRUCTION = "cpu_instruction"

    # Screen
    DISPLAY_CLEAR = "display_clear"
    DISPLAY_DRAW = "display_draw"
    FRAME_COMPLETE = "frame_complete"

    # Buzzer
    SOUND_START = "sound_start"
    SOUND_STOP = "sound_stop"

    # Keypad
    KEY_CHANGE = "key_change"

class Event:
    """
    A published event.

    Attributes:
        type: The EventType
        source: Name of the publishing component ("cpu", "timers", ...)
        payload: Event specific data
        timestamp: Wall clock time of publication
        handled: Set by a handler to stop delivery to lower priorities
    """

    def __init__(self, event_type: EventType, source: str,
                 payload: Optional[Dict[str, Any]] = None,
                 timestamp: Optional[float] = None):
        self.type = event_type
        self.source = source
        self.payload = payload or {}
        self.timestamp = timestamp if timestamp is not None else time.time()
        self.handled = False

    def __str__(self) -> str:
        return f"{self.type.name} from {self.source}: {self.payload}"

EventHandler = Callable[[Event], None]

class EventManager:
    """
    Synchronous publish/subscribe bus with a bounded event history.
    """

    def __init__(self, max_history: int = 100):
        """
        Args:
            max_history: Number of most recent events kept for inspection
        """
        # Per type, (priority, handler) pairs kept in call order
        self._handlers: Dict[EventType, List[Tuple[EventPriority, EventHandler]]] = {}

        self.max_history = max_history
        self._history = deque(maxlen=max_history)
        self._tracked_types: Set[EventType] = set()

        self._counts = Counter()
        self._stats = {
            "events_triggered": 0,
            "events_handled": 0,
            "handlers_called": 0,
            "handler_errors": 0,
        }

    def register_handler(self, event_type: EventType, handler: EventHandler,
                         priority: EventPriority = EventPriority.NORMAL) -> None:
        """
        Subscribe a handler to one event type.

        Handlers of equal priority are called in registration order.
        """
        entries = self._handlers.setdefault(event_type, [])
        entries.append((priority, handler))
        # Stable sort keeps registration order within a priority
        entries.sort(key=lambda entry: -entry[0].value)
        logger.debug(f"Handler subscribed to {event_type.name} at {priority.name}")

    def unregister_handler(self, event_type: EventType, handler: EventHandler) -> bool:
        """
        Remove a handler.

        Returns:
            True if the handler was subscribed
        """
        entries = self._handlers.get(event_type, [])
        for index, (_, registered) in enumerate(entries):
            if registered == handler:
                del entries[index]
                logger.debug(f"Handler unsubscribed from {event_type.name}")
                return True
        return False

    def has_handlers(self, event_type: EventType) -> bool:
        return bool(self._handlers.get(event_type))

    def trigger_event(self, event: Event) -> bool:
        """
        Deliver an event to its subscribers.

        A handler that raises is logged and skipped; delivery continues
        with the next handler.

        Returns:
            True if at least one handler ran to completion
        """
        self._stats["events_triggered"] += 1
        self._counts[event.type] += 1

        if not self._tracked_types or event.type in self._tracked_types:
            self._history.append(event)

        handled = False
        for _, handler in list(self._handlers.get(event.type, [])):
            try:
                handler(event)
            except Exception as e:
                self._stats["handler_errors"] += 1
                logger.error(f"Handler for {event.type.name} failed: {e}")
            else:
                self._stats["handlers_called"] += 1
                handled = True

            if event.handled:
                break

        if handled:
            self._stats["events_handled"] += 1
        return handled

    def create_event(self, event_type: EventType, source: str,
                     payload: Optional[Dict[str, Any]] = None) -> Event:
        """Build an event, deliver it and return it."""
        event = Event(event_type, source, payload)
        self.trigger_event(event)
        return event

    def get_stats(self) -> Dict[str, Any]:
        stats = dict(self._stats)
        stats["by_type"] = {event_type.name: count for event_type, count in self._counts.items()}
        return stats

    def get_event_history(self, event_type: Optional[EventType] = None) -> List[Event]:
        """Recent events, oldest first, optionally of one type."""
        if event_type is None:
            return list(self._history)
        return [event for event in self._history if event.type == event_type]

    def set_history_filter(self, event_types: Iterable[EventType]) -> None:
        """Only keep these event types in the history (empty for all)."""
        self._tracked_types = set(event_types)

    def clear_history(self) -> None:
        self._history.clear()

    def register_logger(self, event_types: Iterable[EventType],
                        log_level: int = logging.INFO) -> None:
        """Log every event of the given types at ``log_level``."""
        def log_event(event: Event) -> None:
            logger.log(log_level, f"Event {event}")

        for event_type in event_types:
            self.register_handler(event_type, log_event, EventPriority.LOW)
