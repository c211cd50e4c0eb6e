"""Tests for the sectioned text config format."""

import logging
from io import StringIO

import pytest

from twiddler_tools.buttons import parse_notation
from twiddler_tools.commands import CommandType, KeyboardCommand, ListCommand, RawCommand
from twiddler_tools.config import Chord, TwiddlerConfig
from twiddler_tools.errors import FormatError
from twiddler_tools.textconf import (
    dump_text_config,
    format_chord_line,
    format_modifiers,
    parse_chord_line,
    parse_modifiers,
    read_text_config,
)


class TestModifiers:
    """Tests for two-letter modifier codes."""

    def test_parse(self):
        """Codes are read in pairs."""
        assert parse_modifiers('LSRA') == 0x42
        assert parse_modifiers('ls') == 0x02

    def test_parse_unknown_and_empty(self):
        """Unknown pairs and missing codes give no bits."""
        assert parse_modifiers('XX') == 0
        assert parse_modifiers(None) == 0

    def test_parse_unaligned(self):
        """A code is found at any offset, not only at even ones."""
        assert parse_modifiers('XLS') == 0x02
        assert parse_modifiers('+LSRA') == 0x42

    def test_format(self):
        """Bits render in modifier order."""
        assert format_modifiers(0x22) == 'LSRS'
        assert format_modifiers(0) == ''


class TestChordLines:
    """Tests for single chord lines."""

    def test_keyboard_line(self):
        """Key code, modifiers and comment."""
        chord, string = parse_chord_line('   S LL00:045+LS              :# dash')
        assert string is None
        assert chord.buttons == parse_notation('   S', 'LL00')
        assert chord.command == KeyboardCommand(0x02, 45)
        assert chord.comment == '# dash'

    def test_string_line(self):
        """String chords return their index."""
        chord, string = parse_chord_line('N    L000:String[3]:')
        assert string == 3
        assert chord.buttons == parse_notation('1', '1L')

    def test_bad_line(self):
        """Lines outside the grammar raise."""
        with pytest.raises(FormatError):
            parse_chord_line('not a chord')

    def test_format_line(self):
        """Lines render in legacy notation with a padded target."""
        chord = Chord(parse_notation('', 'M000'), KeyboardCommand(0, 0x22), '# five')
        assert format_chord_line(chord) == f"     M000:{'034':<20}:# five"
        assert format_chord_line(chord, 2).startswith("     M000:String[2]")


class TestReadTextConfig:
    """Tests for read_text_config."""

    def test_read_file(self, text_file):
        """Chords and strings are read; bad lines are skipped."""
        config = read_text_config(text_file)
        assert len(config.chords) == 3
        assert config.chords[0].command == KeyboardCommand(0, 34)
        assert config.chords[0].comment == '# Keyboard 5 and %'
        assert config.chords[1].buttons == parse_notation('4', '1L 2L')
        assert config.chords[2].command == ListCommand()
        assert config.command_lists == [[KeyboardCommand(0x02, 11), KeyboardCommand(0, 12)]]

    def test_buttonless_chord_skipped(self, caplog):
        """A chord line with no buttons pressed is skipped with a warning."""
        text = ("# --- end of options\n# --- end of settings\n# --- end of header\n"
                "     0000:004:\n     M000:005:\n# --- end of chords\n# --- end of strings\n")
        with caplog.at_level(logging.WARNING):
            config = read_text_config(StringIO(text))
        assert [c.command for c in config.chords] == [KeyboardCommand(0, 5)]
        assert 'no buttons' in caplog.text

    def test_missing_string(self):
        """A chord naming an undefined string raises."""
        text = ("# --- end of options\n# --- end of settings\n# --- end of header\n"
                "N    L000:String[7]:\n# --- end of chords\n# --- end of strings\n")
        with pytest.raises(FormatError, match=r"String\[7\]"):
            read_text_config(StringIO(text))

    def test_truncated_string(self):
        """A string block shorter than its text raises."""
        text = ("# --- end of options\n# --- end of settings\n# --- end of header\n"
                "N    L000:String[0]:\n# --- end of chords\n"
                '# String[0]="abc"\n004\n')
        with pytest.raises(FormatError):
            read_text_config(StringIO(text))


class TestDumpTextConfig:
    """Tests for dump_text_config."""

    def test_roundtrip(self, text_file):
        """Dumped text reads back to the same chords and strings."""
        config = read_text_config(text_file)
        out = StringIO()
        assert dump_text_config(config, out) == 3
        again = read_text_config(StringIO(out.getvalue()))
        assert again.chords == config.chords
        assert again.command_lists == config.command_lists

    def test_string_text(self):
        """The string header spells the keystrokes."""
        config = TwiddlerConfig()
        config.add_macro(parse_notation('', '1L'),
                         [KeyboardCommand(0x02, 0x0B), KeyboardCommand(0, 0x0C),
                          KeyboardCommand(0, 0x28)])
        out = StringIO()
        dump_text_config(config, out)
        assert '# String[0]="Hi?"\n011+LS\n012\n040\n' in out.getvalue()

    def test_raw_commands_left_out(self):
        """Commands with no text form are not written."""
        config = TwiddlerConfig()
        config.chords.append(Chord(parse_notation('', '1L'), RawCommand(CommandType.MOUSE)))
        config.add_chord(parse_notation('', '1M'), 0x04)
        out = StringIO()
        assert dump_text_config(config, out) == 1

    def test_unshowable_buttons_dropped(self, caplog):
        """Row 0 and extra contacts in a row are dropped with a warning."""
        config = TwiddlerConfig()
        config.add_chord(parse_notation('', '0M'), 0x04)
        config.add_chord(parse_notation('', '1L 1R'), 0x05)
        config.add_chord(parse_notation('', '0M 2L'), 0x06)
        config.add_macro(parse_notation('', '0R'), [KeyboardCommand(0, 0x07)])
        config.add_macro(parse_notation('', '3M'), [KeyboardCommand(0, 0x08)])
        out = StringIO()
        with caplog.at_level(logging.WARNING):
            assert dump_text_config(config, out) == 3

        again = read_text_config(StringIO(out.getvalue()))
        assert [c.buttons for c in again.chords] == [
            parse_notation('', '1L'), parse_notation('', '2L'), parse_notation('', '3M')]
        assert [c.command.key_code for c in again.chords[:2]] == [0x05, 0x06]
        assert again.command_lists == [[KeyboardCommand(0, 0x08)]]
        assert 'f1r' in caplog.text
        assert caplog.text.count('no buttons left') == 2
