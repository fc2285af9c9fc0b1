"""
Tests for the StateRecorder module.

This module contains unit tests for the StateRecorder class, which is responsible
for recording per-frame interpreter state and exporting it as a trace.
"""
import unittest
import os
import json
import tempfile

import numpy as np

from chip8_emulator.analysis.state_recorder import StateRecorder

class TestStateRecorder(unittest.TestCase):
    """
    Test cases for the StateRecorder class.
    """

    def setUp(self):
        """Set up test fixtures."""
        # Create recorder with smaller history size for testing
        self.recorder = StateRecorder(max_history=10, compression_ratio=2)

        # Sample state dictionaries
        self.states = [
            {
                "cycle": i * 3,
                "frame": i,
                "registers": {
                    "V0": i,
                    "I": i * 2,
                    "PC": 0x200 + i * 2
                }
            }
            for i in range(15)  # Create 15 sample states
        ]

    def test_record_state(self):
        """Test recording states."""
        for state in self.states[:5]:
            self.recorder.record_state(state)

        history = self.recorder.get_state_history()
        self.assertEqual(len(history), 5)

        stats = self.recorder.get_statistics()
        self.assertEqual(stats["total_records"], 5)
        self.assertEqual(stats["unique_registers"], ["I", "PC", "V0"])
        self.assertEqual(stats["total_cycles"], 12)

    def test_max_history_limit(self):
        """Test that max history limit is enforced."""
        for state in self.states:
            self.recorder.record_state(state)

        # Should only keep the latest max_history states
        history = self.recorder.get_state_history()
        self.assertEqual(len(history), 10)
        self.assertEqual(history[-1]["cycle"], 42)
        self.assertEqual(history[0]["cycle"], 15)

    def test_compression(self):
        """Test compression of state history."""
        for state in self.states[:6]:
            self.recorder.record_state(state)

        # With compression_ratio=2, should have 3 compressed states
        stats = self.recorder.get_statistics()
        self.assertEqual(stats["compressed_history_size"], 3)

    def test_get_state_by_cycle(self):
        """Test retrieving state by cycle."""
        for state in self.states[:5]:
            self.recorder.record_state(state)

        state = self.recorder.get_state_by_cycle(6)
        self.assertEqual(state["cycle"], 6)
        self.assertEqual(state["registers"]["V0"], 2)

        # Non-existent cycle returns the nearest
        state = self.recorder.get_state_by_cycle(7)
        self.assertEqual(state["cycle"], 6)

    def test_get_state_by_cycle_tie_prefers_earlier(self):
        self.recorder.record_state({"cycle": 10, "registers": {}})
        self.recorder.record_state({"cycle": 20, "registers": {}})

        self.assertEqual(self.recorder.get_state_by_cycle(15)["cycle"], 10)

    def test_get_state_by_cycle_empty(self):
        self.assertIsNone(self.recorder.get_state_by_cycle(0))

    def test_get_register_history(self):
        """Test retrieving register history."""
        for state in self.states[:5]:
            self.recorder.record_state(state)

        reg_history = self.recorder.get_register_history("V0")

        self.assertEqual(reg_history["cycles"], [0, 3, 6, 9, 12])
        self.assertEqual(reg_history["values"], [0, 1, 2, 3, 4])
        self.assertEqual(self.recorder.get_register_history("VF")["values"], [])

    def test_save_json_trace(self):
        """Test saving the history as JSON."""
        for state in self.states[:3]:
            state = dict(state, lit_pixels=np.int64(4))
            self.recorder.record_state(state)

        with tempfile.TemporaryDirectory() as temp_dir:
            filename = os.path.join(temp_dir, "trace", "run.json")
            self.assertTrue(self.recorder.save_history(filename, format='json'))

            with open(filename) as f:
                data = json.load(f)

        self.assertEqual([s["cycle"] for s in data["history"]], [0, 3, 6])
        self.assertEqual(data["history"][0]["lit_pixels"], 4)
        self.assertEqual(data["statistics"]["total_records"], 3)

    def test_save_csv_trace(self):
        """Test saving the history as CSV."""
        for state in self.states[:2]:
            self.recorder.record_state(state)

        with tempfile.TemporaryDirectory() as temp_dir:
            filename = os.path.join(temp_dir, "run.csv")
            self.assertTrue(self.recorder.save_history(filename, format='csv'))

            with open(filename) as f:
                lines = f.read().splitlines()

        self.assertEqual(lines[0], "record_idx,cycle,frame,reg_I,reg_PC,reg_V0")
        self.assertEqual(lines[2], "1,3,1,2,514,1")

    def test_save_unknown_format(self):
        with tempfile.TemporaryDirectory() as temp_dir:
            filename = os.path.join(temp_dir, "run.bin")
            self.assertFalse(self.recorder.save_history(filename, format='pickle'))

    def test_record_filter(self):
        """Test filtering of registers during recording."""
        filtered_recorder = StateRecorder(record_filter=["V0", "PC"])

        state = {
            "cycle": 0,
            "registers": {
                "V0": 10,
                "V1": 20,
                "I": 30,
                "PC": 0x200
            }
        }

        filtered_recorder.record_state(state)

        recorded_registers = filtered_recorder.get_state_history()[0]["registers"]
        self.assertEqual(set(recorded_registers), {"V0", "PC"})
        # The caller's snapshot is left untouched
        self.assertIn("V1", state["registers"])

    def test_find_register_value_changes(self):
        """Test finding register value changes."""
        for state in self.states[:5]:
            self.recorder.record_state(state)

        changes = self.recorder.find_register_value_changes("V0")
        self.assertEqual(len(changes), 4)

        first_change = changes[0]
        self.assertEqual(first_change["old_value"], 0)
        self.assertEqual(first_change["new_value"], 1)
        self.assertEqual(first_change["frame"], 1)

        changes = self.recorder.find_register_value_changes("V0", start_cycle=6, end_cycle=9)
        self.assertEqual([c["cycle"] for c in changes], [6, 9])

    def test_clear(self):
        for state in self.states[:3]:
            self.recorder.record_state(state)
        self.recorder.clear()

        self.assertEqual(self.recorder.get_state_history(), [])
        self.assertEqual(self.recorder.get_statistics()["total_records"], 0)

if __name__ == '__main__':
    unittest.main()
