"""Core Twiddler configuration data structures."""

from dataclasses import dataclass, field
from typing import Iterator

from .buttons import ButtonState
from .commands import Command, KeyboardCommand, ListCommand, is_macro


@dataclass
class Chord:
    """A single chord mapping."""
    buttons: ButtonState
    command: Command
    comment: str = field(default='', compare=False)  # text formats only

    def __repr__(self):
        return f"Chord({self.buttons} -> {self.command})"


# v7 bit positions of the named behaviour flags
FLAG_BITS = {
    'repeat_delay_enable': 0,
    'haptic': 2,
    'direct': 3,
    'sticky_num': 4,
    'sticky_alt': 5,
    'sticky_ctrl': 6,
    'sticky_shift': 7,
    'left_mouse_pos': 8,
}


@dataclass
class ConfigFlags:
    """Behaviour switches from the config header."""
    repeat_delay_enable: bool = False
    haptic: bool = False
    direct: bool = False
    sticky_num: bool = False
    sticky_alt: bool = False
    sticky_ctrl: bool = False
    sticky_shift: bool = False
    left_mouse_pos: bool = False

    # Bits with no known meaning, in v7 positions
    unknown: int = 0

    @classmethod
    def from_int(cls, value: int) -> "ConfigFlags":
        known = 0
        values = {}
        for name, bit in FLAG_BITS.items():
            values[name] = bool(value >> bit & 1)
            known |= 1 << bit
        return cls(unknown=value & ~known, **values)

    def to_int(self) -> int:
        value = self.unknown
        for name, bit in FLAG_BITS.items():
            if getattr(self, name):
                value |= 1 << bit
        return value


@dataclass
class TwiddlerConfig:
    """Complete Twiddler configuration."""
    version: int = 7

    flags: ConfigFlags = field(default_factory=ConfigFlags)

    # Device settings
    sleep_timeout: int = 600
    key_repeat_delay: int = 100
    mouse_accel: int = 0x7F

    # Mouse button actions (left, middle, right), v5 only
    mouse_actions: tuple[int, int, int] = (0, 3, 1)

    # Chord mappings
    chords: list[Chord] = field(default_factory=list)

    # Macro lists, one per ListCommand chord, in chord table order
    command_lists: list[list[Command]] = field(default_factory=list)

    # Opaque header bytes by absolute offset, written back verbatim
    reserved: dict[int, bytes] = field(default_factory=dict, compare=False)

    def add_chord(self, buttons: ButtonState, key_code: int, modifier: int = 0,
                  comment: str = '') -> Chord:
        """Add a simple single-key chord."""
        chord = Chord(buttons, KeyboardCommand(modifier, key_code), comment)
        self.chords.append(chord)
        return chord

    def add_macro(self, buttons: ButtonState, commands: list[Command],
                  comment: str = '') -> Chord:
        """Add a chord that plays a list of commands.

        The list is appended to `command_lists`; since the chord is also
        appended, both stay in table order.
        """
        chord = Chord(buttons, ListCommand(), comment)
        self.chords.append(chord)
        self.command_lists.append(list(commands))
        return chord

    def macro_chords(self) -> list[int]:
        """Indices of the chords whose command is a macro reference."""
        return [i for i, chord in enumerate(self.chords) if is_macro(chord.command)]

    def macros(self) -> Iterator[tuple[Chord, list[Command]]]:
        """Pair each macro chord with its command list."""
        for index, commands in zip(self.macro_chords(), self.command_lists):
            yield self.chords[index], commands

    def __repr__(self):
        return (f"TwiddlerConfig(v{self.version}, {len(self.chords)} chords, "
                f"{len(self.command_lists)} macros)")
