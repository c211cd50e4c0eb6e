"""Tests for the CSV export reader."""

from io import StringIO

from twiddler_tools.buttons import parse_notation
from twiddler_tools.commands import KeyboardCommand
from twiddler_tools.csv_parser import parse_output, read_csv


class TestParseOutput:
    """Tests for output string parsing."""

    def test_plain_character(self):
        """A lowercase letter."""
        assert parse_output('a') == [(0, 0x04)]

    def test_shifted_character(self):
        """Uppercase letters add Left Shift."""
        assert parse_output('A') == [(0x02, 0x04)]
        assert parse_output('+') == [(0x02, 0x2E)]

    def test_modifier_tags(self):
        """Modifier tags wrap the keys they apply to."""
        assert parse_output('<L-Ctrl>c</L-Ctrl>x') == [(0x01, 0x06), (0, 0x1B)]

    def test_modifier_tags_without_dash(self):
        """Both tag spellings are accepted."""
        assert parse_output('[KB]<RShift>=</RShift>') == [(0x20, 0x2E)]

    def test_explicit_shift_not_doubled(self):
        """A shifted character inside a shift tag keeps only that shift."""
        assert parse_output('<R-Shift>A</R-Shift>') == [(0x20, 0x04)]

    def test_named_keys(self):
        """Named keys and raw HID codes."""
        assert parse_output('<Enter>') == [(0, 0x28)]
        assert parse_output('<HIDCode 0x4F>') == [(0, 0x4F)]

    def test_unknown_key(self):
        """Unknown names are skipped."""
        assert parse_output('<Bogus>a') == [(0, 0x04)]

    def test_string(self):
        """Multi-character output gives one keystroke each."""
        assert parse_output('hi there') == [(0, 0x0B), (0, 0x0C), (0, 0x2C),
                                            (0, 0x17), (0, 0x0B), (0, 0x08),
                                            (0, 0x15), (0, 0x08)]


class TestReadCsv:
    """Tests for read_csv."""

    def test_read_file(self, csv_file):
        """Single keys become chords, longer output becomes a macro."""
        config = read_csv(csv_file)
        assert config.version == 7
        assert [c.buttons for c in config.chords] == [
            parse_notation('', '1L'),
            parse_notation('', '1M'),
            parse_notation('1', '2M'),
        ]
        assert config.chords[1].command == KeyboardCommand(0x02, 0x05)
        assert config.command_lists == [[KeyboardCommand(0, 0x17),
                                         KeyboardCommand(0, 0x0B),
                                         KeyboardCommand(0, 0x08)]]

    def test_non_keyboard_actions_skipped(self, csv_file):
        """Mouse actions and rows without buttons are left out."""
        config = read_csv(csv_file)
        assert parse_notation('', '3R') not in [c.buttons for c in config.chords]

    def test_legacy_notation_and_actions_column(self):
        """Older exports use letters and an Actions column."""
        source = StringIO("Thumbs,Fingers,Actions\nN   ,L000,[KB]q\n")
        config = read_csv(source)
        assert config.chords[0].buttons == parse_notation('1', '1L')
        assert config.chords[0].command == KeyboardCommand(0, 0x14)
