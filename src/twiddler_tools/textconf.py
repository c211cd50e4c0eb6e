"""Line-oriented text config format.

The file is split into sections, each closed by a marker line such as
``# --- end of chords``. Chord lines look like::

    N    M000:034                 :# Keyboard 5 and %
       S LL00:045+RS              :# Keyboard - and _
         LMMM:String[4]:

Thumbs and fingers use the legacy notation, the key is a decimal HID code
and modifiers are two-letter codes (LC LS LA LG RC RS RA RG). Macro strings
follow the chords as a ``# String[n]="text"`` line and one ``hid[+MODS]``
line per keystroke.
"""

import logging
import re
from dataclasses import replace
from pathlib import Path
from typing import Iterable, Optional, TextIO, Union

from .buttons import parse_notation
from .commands import KeyboardCommand, is_macro
from .config import Chord, TwiddlerConfig
from .errors import FormatError
from .hid import MODIFIER_CODES, hid_to_char, is_shifted

logger = logging.getLogger(__name__)

SECTIONS = ('options', 'settings', 'header', 'chords', 'strings')

_SECTION_END = re.compile(r'^# --- end of (\w+)\s*$')
_CHORD_LINE = re.compile(
    r'^(?P<thumbs>.{4})\s+(?P<fingers>\S{4}):'
    r'(?:String\[(?P<string>\d+)\]|(?P<hid>\d*))'
    r'(?:\+(?P<mods>[A-Za-z0-9]*))?\s*:(?P<comment>.*)$')
_STRING_HEADER = re.compile(r'^#\s*String\[(?P<index>\d+)\]="(?P<text>[^"]*)"')
_STRING_KEY = re.compile(r'^\s*(?P<hid>\d+)(?:\+(?P<mods>[A-Za-z0-9]*))?\s*$')


def parse_modifiers(codes: Optional[str]) -> int:
    """'LSRA' -> Left Shift | Right Alt.

    Every adjacent pair is checked, so codes need not be aligned; unknown
    pairs are ignored.
    """
    modifier = 0
    codes = codes or ''
    for i in range(len(codes) - 1):
        modifier |= MODIFIER_CODES.get(codes[i:i + 2].upper(), 0)
    return modifier


def format_modifiers(modifier: int) -> str:
    return ''.join(code for code, bit in MODIFIER_CODES.items() if modifier & bit)


def parse_chord_line(line: str) -> tuple[Chord, Optional[int]]:
    """Parse one chord line.

    Returns the chord and, for ``String[n]`` chords, the string index n.
    Raises FormatError if the line does not match the chord grammar.
    """
    match = _CHORD_LINE.match(line)
    if not match:
        raise FormatError(f"Invalid chord line: {line!r}")

    buttons = parse_notation(match['thumbs'], match['fingers'])
    comment = match['comment'].strip()
    if match['string'] is not None:
        return Chord(buttons, KeyboardCommand(), comment), int(match['string'])

    command = KeyboardCommand(parse_modifiers(match['mods']), int(match['hid'] or 0) & 0xFF)
    return Chord(buttons, command, comment), None


def read_text_config(source: Union[str, Path, TextIO]) -> TwiddlerConfig:
    """Read a sectioned text config into chords and macro lists."""
    if isinstance(source, (str, Path)):
        with open(source, 'r', encoding='utf-8') as f:
            return _parse_lines(f)
    return _parse_lines(source)


def _parse_lines(lines: Iterable[str]) -> TwiddlerConfig:
    section = 0
    chords: list[tuple[Chord, Optional[int]]] = []
    strings: dict[int, list] = {}
    lines = iter(lines)

    for line in lines:
        line = line.rstrip('\r\n')
        end = _SECTION_END.match(line)
        if end:
            if end.group(1) in SECTIONS:
                section = SECTIONS.index(end.group(1)) + 1
            continue

        name = SECTIONS[section] if section < len(SECTIONS) else 'done'

        # Comments are only meaningful in the strings section
        if line.startswith('#') and name != 'strings':
            continue
        if not line.strip():
            continue

        if name in ('options', 'settings', 'header'):
            key, sep, value = line.partition('=')
            if sep:
                logger.debug("%s: %s = %s", name, key.strip(), value.strip())
        elif name == 'chords':
            try:
                chord, string_index = parse_chord_line(line)
            except FormatError as e:
                logger.warning("Skipping line: %s", e)
                continue
            if not chord.buttons.pressed():
                logger.warning("Skipping chord with no buttons: %r", line)
                continue
            chords.append((chord, string_index))
        elif name == 'strings':
            header = _STRING_HEADER.match(line)
            if not header:
                continue
            strings[int(header['index'])] = _read_string_keys(lines, len(header['text']))

    config = TwiddlerConfig()
    for chord, string_index in chords:
        if string_index is None:
            config.chords.append(chord)
            continue
        if string_index not in strings:
            raise FormatError(f"Chord {chord.buttons} refers to a missing string",
                              field=f'String[{string_index}]')
        config.add_macro(chord.buttons, strings[string_index], chord.comment)

    logger.info("Read %d chords (%d macros) from text config",
                len(config.chords), len(config.command_lists))
    return config


def _read_string_keys(lines, count: int) -> list:
    commands = []
    for _ in range(count):
        line = next(lines, None)
        if line is None:
            raise FormatError("Text config ends inside a string block")
        match = _STRING_KEY.match(line)
        if not match:
            logger.warning("Skipping string key line %r", line.rstrip())
            continue
        commands.append(KeyboardCommand(parse_modifiers(match['mods']),
                                        int(match['hid']) & 0xFF))
    return commands


def format_chord_line(chord: Chord, string_index: Optional[int] = None) -> str:
    """Render a chord in the text grammar (legacy button notation)."""
    thumbs, fingers = chord.buttons.to_legacy()
    if string_index is not None:
        target = f"String[{string_index}]"
    else:
        command = chord.command
        target = f"{command.key_code:03d}"
        if command.modifier:
            target += '+' + format_modifiers(command.modifier)
    return f"{thumbs} {fingers}:{target:<20}:{chord.comment}"


def _string_text(commands) -> str:
    # One character per keystroke; the reader counts key lines by it
    chars = []
    for command in commands:
        char = hid_to_char(command.key_code, is_shifted(command.modifier))
        chars.append(char if len(char) == 1 and char != '"' else '?')
    return ''.join(chars)


def dump_text_config(config: TwiddlerConfig, out: TextIO) -> int:
    """Write `config` in the text grammar. Returns the number of chords written.

    Commands with no text spelling (system, mouse, delay) are left out.
    Row 0 contacts and all but the first contact of a row are dropped with
    a warning, and a chord with nothing left is skipped.
    """
    out.write(f"# Twiddler config v{config.version}\n")
    for name in SECTIONS[:3]:
        out.write(f"# --- end of {name}\n")

    written = 0
    macro_lists = iter(config.command_lists)
    strings = []
    for chord in config.chords:
        commands = next(macro_lists, []) if is_macro(chord.command) else None
        if commands is None and not isinstance(chord.command, KeyboardCommand):
            logger.debug("No text form for %r", chord)
            continue

        dropped = chord.buttons.legacy_dropped()
        if dropped:
            logger.warning("Chord %s: no text form for %s, dropped",
                           chord.buttons, ', '.join(dropped))
            chord = replace(chord, buttons=chord.buttons.without(*dropped))
            if not chord.buttons.pressed():
                logger.warning("Skipping chord %r: no buttons left", chord)
                continue

        if commands is None:
            out.write(format_chord_line(chord) + '\n')
        else:
            strings.append(commands)
            out.write(format_chord_line(chord, len(strings) - 1) + '\n')
        written += 1
    out.write("# --- end of chords\n")

    for index, commands in enumerate(strings):
        keys = [c for c in commands if isinstance(c, KeyboardCommand)]
        out.write(f'# String[{index}]="{_string_text(keys)}"\n')
        for command in keys:
            line = f"{command.key_code:03d}"
            if command.modifier:
                line += '+' + format_modifiers(command.modifier)
            out.write(line + '\n')
    out.write("# --- end of strings\n")
    return written
