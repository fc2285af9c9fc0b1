"""
Tests for the command line entry point.
"""
import unittest
import os
import io
import json
import tempfile
from contextlib import redirect_stdout

from chip8_emulator.main import main, build_parser

class TestMain(unittest.TestCase):

    def setUp(self):
        self.temp_dir = tempfile.TemporaryDirectory()

    def tearDown(self):
        self.temp_dir.cleanup()

    def write_rom(self, name, data):
        path = os.path.join(self.temp_dir.name, name)
        with open(path, 'wb') as f:
            f.write(data)
        return path

    def run_main(self, argv):
        output = io.StringIO()
        with redirect_stdout(output):
            status = main(argv + ["--quiet", "--log-level", "ERROR"])
        return status, output.getvalue()

    def test_headless_run_with_trace(self):
        # Draw the "0" glyph at (0, 0) and spin
        rom = self.write_rom("glyph.ch8", bytes([0xD0, 0x05, 0x12, 0x02]))
        trace = os.path.join(self.temp_dir.name, "trace.json")

        status, output = self.run_main(["--rom", rom, "--frames", "3", "--ascii",
                                        "--save-trace", trace])

        self.assertEqual(status, 0)
        self.assertIn("####" + "." * 60, output)
        self.assertIn("Frames run: 3", output)
        with open(trace) as f:
            self.assertEqual(len(json.load(f)["history"]), 3)

    def test_missing_rom(self):
        status, _ = self.run_main(["--rom", os.path.join(self.temp_dir.name, "absent.ch8")])
        self.assertEqual(status, 1)

    def test_halting_program(self):
        rom = self.write_rom("bad.ch8", bytes([0x51, 0x21]))

        status, output = self.run_main(["--rom", rom, "--frames", "5"])

        self.assertEqual(status, 1)
        self.assertIn("Halted: Unimplemented opcode 0x5121 at 0x200", output)

    def test_input_script(self):
        # Wait for a key into V0, draw its glyph, spin
        rom = self.write_rom("key.ch8", bytes([0xF0, 0x0A, 0xF0, 0x29, 0xD1, 0x15, 0x12, 0x06]))
        script = os.path.join(self.temp_dir.name, "keys.yaml")
        with open(script, 'w') as f:
            f.write("- {frame: 1, key: 1}\n")

        status, output = self.run_main(["--rom", rom, "--frames", "3", "--ascii",
                                        "--input-script", script])

        self.assertEqual(status, 0)
        # Glyph "1" is a single column at x = 2
        self.assertIn("..#" + "." * 61, output)

    def test_invalid_config_override(self):
        rom = self.write_rom("glyph.ch8", bytes([0x12, 0x00]))
        status, _ = self.run_main(["--rom", rom, "--cycles-per-frame", "0"])
        self.assertEqual(status, 1)

    def test_parser_defaults(self):
        args = build_parser().parse_args(["--rom", "game.ch8"])
        self.assertEqual(args.frames, 60)
        self.assertIsNone(args.log_level)
        self.assertFalse(args.interactive)

if __name__ == '__main__':
    unittest.main()
