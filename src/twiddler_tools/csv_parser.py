"""Parse Twiddler CSV exports from the Tuner."""

import csv
import logging
import re
from pathlib import Path
from typing import Union, TextIO

from .buttons import parse_notation
from .commands import KeyboardCommand
from .config import TwiddlerConfig
from .hid import MOD_LSHIFT, MOD_RSHIFT, MODIFIER_NAMES, char_to_hid, key_code

logger = logging.getLogger(__name__)

# <L-Shift>, </R-Ctrl>, <LShift>, <Enter>, <HIDCode 0x04>, or any single character
_TOKEN = re.compile(r'<(/?)([^<>]+)>|(.)', re.DOTALL)

_MODIFIER_TAGS = {name.replace('-', '').lower(): bit
                  for name, bit in MODIFIER_NAMES.items()}

OUTPUT_COLUMNS = ('Keyboard Output', 'Actions')
KEYBOARD_PREFIX = '[KB]'
_ACTION_PREFIX = re.compile(r'^\[([A-Z]{2,})\]')


def parse_output(text: str) -> list[tuple[int, int]]:
    """
    Parse an output string like 'a', '<L-Ctrl>c</L-Ctrl>' or '[KB]<RShift>=</RShift>'.
    Returns a list of (modifier, hid_code) keystrokes.
    """
    if text.startswith(KEYBOARD_PREFIX):
        text = text[len(KEYBOARD_PREFIX):]

    keys = []
    modifiers = 0
    for match in _TOKEN.finditer(text):
        closing, tag, char = match.groups()
        if tag is not None:
            name = tag.replace('-', '').lower()
            if name in _MODIFIER_TAGS:
                if closing:
                    modifiers &= ~_MODIFIER_TAGS[name]
                else:
                    modifiers |= _MODIFIER_TAGS[name]
                continue
            if closing:
                continue
            code = key_code(tag)
            if code is None:
                logger.warning("Unknown key name <%s> in %r", tag, text)
                continue
            keys.append((modifiers, code))
        else:
            result = char_to_hid(char)
            if result is None:
                logger.warning("No HID code for %r in %r", char, text)
                continue
            code, shifted = result
            modifier = modifiers
            if shifted and not modifier & (MOD_LSHIFT | MOD_RSHIFT):
                modifier |= MOD_LSHIFT
            keys.append((modifier, code))
    return keys


def read_csv(source: Union[str, Path, TextIO]) -> TwiddlerConfig:
    """Read Twiddler CSV export and convert to config."""
    config = TwiddlerConfig(version=7)

    if isinstance(source, (str, Path)):
        with open(source, 'r', encoding='utf-8-sig', newline='') as f:
            return _parse_csv(f, config)
    return _parse_csv(source, config)


def _parse_csv(f: TextIO, config: TwiddlerConfig) -> TwiddlerConfig:
    """Parse CSV file handle."""
    reader = csv.DictReader(f)

    for line_no, raw_row in enumerate(reader, start=2):
        # The Tuner writes ' Fingers' with a leading space
        row = {(k or '').strip(): (v or '') for k, v in raw_row.items()}

        buttons = parse_notation(row.get('Thumbs', ''), row.get('Fingers', ''))
        if not buttons.pressed():
            continue

        output = next((row[c] for c in OUTPUT_COLUMNS if row.get(c)), '')
        action = _ACTION_PREFIX.match(output)
        if action and action.group(1) != 'KB':
            logger.debug("Line %d: skipping non-keyboard action %r", line_no, output)
            continue

        keys = parse_output(output)
        if not keys:
            continue  # Skip unmapped or invalid

        if len(keys) == 1:
            modifier, code = keys[0]
            config.add_chord(buttons, code, modifier)
        else:
            config.add_macro(buttons, [KeyboardCommand(m, k) for m, k in keys])

    logger.info("Read %d chords (%d macros) from CSV",
                len(config.chords), len(config.command_lists))
    return config
