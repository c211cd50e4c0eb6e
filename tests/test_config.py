"""Tests for config data structures."""

import pytest

from twiddler_tools.buttons import parse_notation
from twiddler_tools.commands import CommandType, KeyboardCommand, ListCommand, RawCommand, is_macro
from twiddler_tools.config import Chord, ConfigFlags, TwiddlerConfig
from twiddler_tools.errors import TagMismatch


class TestConfigFlags:
    """Tests for ConfigFlags bit packing."""

    def test_from_int(self):
        """Named bits map to flags."""
        flags = ConfigFlags.from_int(0x0105)
        assert flags.repeat_delay_enable
        assert flags.haptic
        assert flags.left_mouse_pos
        assert not flags.sticky_shift
        assert flags.unknown == 0

    def test_unknown_bits(self):
        """Unnamed bits are kept aside."""
        flags = ConfigFlags.from_int(0x0202)
        assert flags.unknown == 0x0202
        assert flags.to_int() == 0x0202

    def test_to_int(self):
        """Flags pack back to their bits."""
        assert ConfigFlags(sticky_shift=True, direct=True).to_int() == 0x88


class TestCommands:
    """Tests for command values."""

    def test_keyboard_str(self):
        """Keystrokes render with their modifiers."""
        assert str(KeyboardCommand(0x02, 0x04)) == 'A'
        assert str(KeyboardCommand(0x01, 0x06)) == 'L-Ctrl+c'

    def test_with_modifier(self):
        """with_modifier ORs bits in."""
        assert KeyboardCommand(0x01, 4).with_modifier(0x02).modifier == 0x03

    def test_raw_rejects_other_types(self):
        """Raw payloads are only for system, mouse and delay."""
        with pytest.raises(TagMismatch):
            RawCommand(CommandType.KEYBOARD)

    def test_is_macro(self):
        """Only list commands are macros."""
        assert is_macro(ListCommand(4))
        assert not is_macro(KeyboardCommand())
        assert not is_macro(RawCommand(CommandType.DELAY))


class TestTwiddlerConfig:
    """Tests for TwiddlerConfig helpers."""

    def test_add_chord(self):
        """add_chord appends a keystroke chord."""
        config = TwiddlerConfig()
        chord = config.add_chord(parse_notation('', '1L'), 0x04, 0x02)
        assert config.chords == [chord]
        assert chord.command == KeyboardCommand(0x02, 0x04)

    def test_add_macro(self):
        """add_macro keeps chords and lists in step."""
        config = TwiddlerConfig()
        config.add_chord(parse_notation('', '1L'), 0x04)
        config.add_macro(parse_notation('', '1M'), [KeyboardCommand(0, 5)])
        assert config.macro_chords() == [1]
        assert config.command_lists == [[KeyboardCommand(0, 5)]]

    def test_macros_pairs(self):
        """macros() pairs list chords with their lists."""
        config = TwiddlerConfig()
        first = config.add_macro(parse_notation('', '1L'), [KeyboardCommand(0, 4)])
        second = config.add_macro(parse_notation('', '1M'), [])
        assert list(config.macros()) == [(first, [KeyboardCommand(0, 4)]), (second, [])]

    def test_comment_ignored_in_equality(self):
        """Comments do not change chord identity."""
        buttons = parse_notation('', '1L')
        assert Chord(buttons, KeyboardCommand(), 'x') == Chord(buttons, KeyboardCommand())

    def test_repr(self):
        """Test repr of TwiddlerConfig."""
        config = TwiddlerConfig()
        config.add_chord(parse_notation('', '1L'), 0x04)
        r = repr(config)
        assert "v7" in r
        assert "1 chords" in r
