"""Tests for the caps layer synthesizer."""

import pytest

from twiddler_tools.buttons import parse_notation
from twiddler_tools.caps import synthesize_caps
from twiddler_tools.commands import KeyboardCommand
from twiddler_tools.config import TwiddlerConfig
from twiddler_tools.hid import MOD_LCTRL, MOD_LSHIFT


@pytest.fixture
def config():
    config = TwiddlerConfig()
    config.add_chord(parse_notation('', '1L'), 0x04)                   # a
    config.add_chord(parse_notation('', '1M'), 0x06, MOD_LCTRL)        # ctrl-c
    config.add_chord(parse_notation('', '1R'), 0x22)                   # 5
    config.add_chord(parse_notation('2', '2L'), 0x05)                  # thumb already
    config.add_macro(parse_notation('', '2M'), [KeyboardCommand(0, 0x04)])
    return config


class TestSynthesizeCaps:
    """Tests for synthesize_caps."""

    def test_adds_shifted_letters(self, config):
        """Thumbless letter chords get a shifted twin on the thumb."""
        added = synthesize_caps(config, 1)
        assert [c.buttons for c in added] == [parse_notation('1', '1L'),
                                              parse_notation('1', '1M')]
        assert added[0].command == KeyboardCommand(MOD_LSHIFT, 0x04)

    def test_keeps_other_modifiers(self, config):
        """Shift is ORed into existing modifiers."""
        added = synthesize_caps(config, 1)
        assert added[1].command == KeyboardCommand(MOD_LCTRL | MOD_LSHIFT, 0x06)

    def test_appends_to_config(self, config):
        """New chords are appended after the originals."""
        before = list(config.chords)
        added = synthesize_caps(config, 4)
        assert config.chords == before + added

    def test_skips_digits_thumbs_and_macros(self, config):
        """Only plain letter chords qualify."""
        added = synthesize_caps(config, 3)
        assert len(added) == 2

    def test_none_is_noop(self, config):
        """No thumb, no change."""
        count = len(config.chords)
        assert synthesize_caps(config, None) == []
        assert len(config.chords) == count

    @pytest.mark.parametrize('thumb', [0, 5, -1])
    def test_bad_thumb(self, config, thumb):
        """Thumb numbers outside 1-4 raise."""
        with pytest.raises(ValueError):
            synthesize_caps(config, thumb)
