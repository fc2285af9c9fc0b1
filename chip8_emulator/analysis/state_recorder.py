"""
Per-frame state traces.

A ``StateRecorder`` attached to a ``Chip8System`` receives one snapshot at
the end of every frame: the cycle and frame counters, a ``registers``
mapping (V0-VF, I, PC, SP, DT, ST) and the number of lit pixels. Traces are
exported as JSON or CSV for offline analysis and plotting. They cannot be
loaded back into a machine.
"""

import csv
import json
import logging
import os
import time
from collections import deque
from typing import Dict, List, Optional, Any

import numpy as np

from ..constants import MAX_HISTORY_SIZE

logger = logging.getLogger("Chip8Emulator.StateRecorder")

Snapshot = Dict[str, Any]

class StateRecorder:
    """
    Bounded in-memory trace of state snapshots.

    The newest ``max_history`` snapshots are kept. Every Nth snapshot
    (N = ``compression_ratio``) is also kept in a sparse history that is not
    bounded, for long runs where only the overall shape matters.
    """

    def __init__(self, max_history: int = MAX_HISTORY_SIZE,
                 compression_ratio: int = 10,
                 record_filter: Optional[List[str]] = None):
        """
        Args:
            max_history: Snapshots kept in the full history
            compression_ratio: Keep 1 in N snapshots in the sparse history
            record_filter: Register names to keep (None keeps all)
        """
        self.max_history = max_history
        self.compression_ratio = max(1, compression_ratio)
        self.record_filter = set(record_filter) if record_filter is not None else None

        self.state_history = deque(maxlen=max_history)
        self.compressed_history: List[Snapshot] = []
        self._reset_counters()

    def _reset_counters(self) -> None:
        self.total_records = 0
        self.started_at = time.time()
        self.first_cycle = None
        self.last_cycle = None
        self.register_names = set()

    def record_state(self, state: Snapshot) -> None:
        """Store a snapshot. The caller's dictionary is not modified."""
        if self.record_filter is not None and "registers" in state:
            state = dict(state)
            state["registers"] = {
                name: value for name, value in state["registers"].items()
                if name in self.record_filter
            }

        self.total_records += 1

        cycle = state.get("cycle")
        if cycle is not None:
            if self.first_cycle is None:
                self.first_cycle = cycle
            self.last_cycle = cycle

        self.register_names.update(state.get("registers", {}))

        self.state_history.append(state)
        if self.total_records % self.compression_ratio == 0:
            self.compressed_history.append(state)

    def get_state_history(self, start_idx: Optional[int] = None,
                          end_idx: Optional[int] = None) -> List[Snapshot]:
        """Snapshots in recording order, optionally sliced."""
        return list(self.state_history)[start_idx:end_idx]

    def get_state_by_cycle(self, cycle: int) -> Optional[Snapshot]:
        """
        Snapshot recorded at ``cycle``, or the nearest one.

        Ties go to the snapshot recorded first. Returns None if no snapshot
        carries a cycle number.
        """
        candidates = [state for state in self.state_history if "cycle" in state]
        if not candidates:
            return None

        # min() keeps the first of equally near snapshots
        nearest = min(candidates, key=lambda state: abs(state["cycle"] - cycle))
        if nearest["cycle"] != cycle:
            logger.debug(f"No snapshot at cycle {cycle}, using cycle {nearest['cycle']}")
        return nearest

    def get_register_history(self, register_name: str) -> Dict[str, List[Any]]:
        """
        Values of one register across the history.

        Returns:
            ``{"cycles": [...], "values": [...]}``; snapshots without a cycle
            number are indexed by position
        """
        cycles = []
        values = []
        for position, state in enumerate(self.state_history):
            registers = state.get("registers", {})
            if register_name in registers:
                cycles.append(state.get("cycle", position))
                values.append(registers[register_name])

        return {"cycles": cycles, "values": values}

    def find_register_value_changes(self, register_name: str,
                                    start_cycle: Optional[int] = None,
                                    end_cycle: Optional[int] = None) -> List[Dict[str, Any]]:
        """
        Snapshots where a register differs from the previous snapshot.

        Snapshots before ``start_cycle`` still set the baseline value.

        Returns:
            Dicts with cycle, frame, old_value and new_value
        """
        changes = []
        previous = None

        for state in self.state_history:
            registers = state.get("registers", {})
            if register_name not in registers:
                continue

            value = registers[register_name]
            cycle = state.get("cycle")

            if cycle is not None and end_cycle is not None and cycle > end_cycle:
                break

            in_range = cycle is None or start_cycle is None or cycle >= start_cycle
            if in_range and previous is not None and value != previous:
                changes.append({
                    "cycle": cycle,
                    "frame": state.get("frame"),
                    "old_value": previous,
                    "new_value": value,
                })

            previous = value

        return changes

    def get_statistics(self) -> Dict[str, Any]:
        elapsed = time.time() - self.started_at
        if self.first_cycle is not None:
            total_cycles = self.last_cycle - self.first_cycle
        else:
            total_cycles = 0

        return {
            "total_records": self.total_records,
            "elapsed_time": elapsed,
            "total_cycles": total_cycles,
            "cycles_per_second": total_cycles / elapsed if elapsed > 0 else 0,
            "current_history_size": len(self.state_history),
            "max_history_size": self.max_history,
            "compression_ratio": self.compression_ratio,
            "compressed_history_size": len(self.compressed_history),
            "unique_registers": sorted(self.register_names),
        }

    def clear(self) -> None:
        """Drop all snapshots and counters."""
        self.state_history.clear()
        self.compressed_history = []
        self._reset_counters()

    def save_history(self, filename: str, format: str = 'json') -> bool:
        """
        Export the trace.

        JSON holds the full and sparse histories plus statistics. CSV holds
        one row per snapshot with a ``reg_<name>`` column per register.

        Returns:
            True if the file was written
        """
        writers = {'json': self._write_json, 'csv': self._write_csv}
        writer = writers.get(format)
        if writer is None:
            logger.error(f"Unsupported trace format: {format}")
            return False

        try:
            directory = os.path.dirname(filename)
            if directory:
                os.makedirs(directory, exist_ok=True)
            writer(filename)
        except (OSError, TypeError, ValueError) as e:
            logger.error(f"Error saving trace: {e}")
            return False

        logger.info(f"Saved {len(self.state_history)} snapshots to {filename}")
        return True

    def _write_json(self, filename: str) -> None:
        data = {
            "history": list(self.state_history),
            "compressed": self.compressed_history,
            "statistics": self.get_statistics(),
        }
        with open(filename, 'w') as f:
            json.dump(_to_builtin(data), f, indent=2)

    def _write_csv(self, filename: str) -> None:
        register_names = sorted(self.register_names)
        with open(filename, 'w', newline='') as f:
            writer = csv.writer(f, lineterminator='\n')
            writer.writerow(["record_idx", "cycle", "frame"] +
                            [f"reg_{name}" for name in register_names])
            for index, state in enumerate(self.state_history):
                registers = state.get("registers", {})
                writer.writerow([index, state.get("cycle", ""), state.get("frame", "")] +
                                [registers.get(name, "") for name in register_names])

def _to_builtin(data: Any) -> Any:
    """Copy of ``data`` with numpy arrays and scalars replaced for JSON."""
    if isinstance(data, dict):
        return {key: _to_builtin(value) for key, value in data.items()}
    if isinstance(data, (list, tuple)):
        return [_to_builtin(item) for item in data]
    if isinstance(data, np.ndarray):
        return data.tolist()
    if isinstance(data, np.generic):
        return data.item()
    return data
