"""Button combinations: the canonical ButtonState and per-generation packed bits."""

import re
from dataclasses import dataclass, fields, replace
from typing import ClassVar, Iterable

THUMBS = ('t1', 't2', 't3', 't4')
FINGERS = tuple(f'f{row}{col}' for row in range(5) for col in 'lmr')

# Legacy notation letters for the thumb buttons: Num, Alt, Ctrl, Shift
LEGACY_THUMBS = {'N': 't1', 'A': 't2', 'C': 't3', 'S': 't4'}
LEGACY_COLUMNS = {'L': 'l', 'O': 'm', 'M': 'm', 'R': 'r'}

_FINGER_TOKEN = re.compile(r'^([0-4])([LMR])$')


@dataclass(frozen=True)
class ButtonState:
    """Which of the 19 physical contacts are pressed together.

    Thumb buttons t1-t4, then finger rows 0-4 with Left/Middle/Right
    contacts. Row 0 is the short top row.
    """
    t1: bool = False
    t2: bool = False
    t3: bool = False
    t4: bool = False
    f0l: bool = False
    f0m: bool = False
    f0r: bool = False
    f1l: bool = False
    f1m: bool = False
    f1r: bool = False
    f2l: bool = False
    f2m: bool = False
    f2r: bool = False
    f3l: bool = False
    f3m: bool = False
    f3r: bool = False
    f4l: bool = False
    f4m: bool = False
    f4r: bool = False

    @classmethod
    def from_names(cls, names: Iterable[str]) -> "ButtonState":
        return cls(**{name: True for name in names})

    def pressed(self) -> list[str]:
        """Flag names that are set, thumbs first then rows top to bottom."""
        return [f.name for f in fields(self) if getattr(self, f.name)]

    def thumbs(self) -> list[int]:
        return [i + 1 for i, name in enumerate(THUMBS) if getattr(self, name)]

    @property
    def has_thumb(self) -> bool:
        return any(getattr(self, name) for name in THUMBS)

    def with_thumb(self, thumb: int) -> "ButtonState":
        if thumb not in (1, 2, 3, 4):
            raise ValueError(f"Thumb button must be 1-4, got {thumb}")
        return replace(self, **{f't{thumb}': True})

    def without(self, *names: str) -> "ButtonState":
        return replace(self, **{name: False for name in names})

    def to_notation(self) -> tuple[str, str]:
        """Render as the newer notation, e.g. ('1', '1L 2M')."""
        thumbs = ''.join(str(t) for t in self.thumbs())
        fingers = ' '.join(name[1] + name[2].upper()
                           for name in FINGERS if getattr(self, name))
        return thumbs, fingers

    def to_legacy(self) -> tuple[str, str]:
        """Render as the legacy notation, e.g. ('N   ', 'LM00').

        Row 0 has no legacy spelling and only the first pressed contact of
        each row is shown.
        """
        thumbs = ''.join(letter if getattr(self, name) else ' '
                         for letter, name in LEGACY_THUMBS.items())
        rows = []
        for row in range(1, 5):
            for col in 'LMR':
                if getattr(self, f'f{row}{col.lower()}'):
                    rows.append(col)
                    break
            else:
                rows.append('0')
        return thumbs, ''.join(rows)

    def legacy_dropped(self) -> list[str]:
        """Pressed flags that `to_legacy` cannot show: row 0 and extra columns."""
        dropped = []
        for row in range(5):
            pressed = [f'f{row}{col}' for col in 'lmr' if getattr(self, f'f{row}{col}')]
            dropped += pressed if row == 0 else pressed[1:]
        return dropped

    def __str__(self):
        thumbs, fingers = self.to_notation()
        names = [f'T{t}' for t in thumbs] + fingers.split()
        return '+'.join(names) or 'NONE'


def _is_newer_notation(thumbs: str, fingers: str) -> bool:
    if any(c in '01234' for c in thumbs):
        return True
    if any(c in LEGACY_THUMBS for c in thumbs):
        return False
    return any(_FINGER_TOKEN.match(token) for token in fingers.split())


def parse_notation(thumbs: str, fingers: str) -> ButtonState:
    """Build a ButtonState from either notation.

    Newer: thumbs '12', fingers '1L 2M 0R'.
    Legacy: thumbs 'N  S', fingers 'LM0R' (one character per row 1-4).
    Characters and tokens that mean nothing are skipped.
    """
    thumbs = thumbs or ''
    fingers = fingers or ''
    names = []

    if _is_newer_notation(thumbs, fingers):
        for char in thumbs:
            # '0' is the fifth thumb contact, which ButtonState does not carry
            if char in '1234':
                names.append(f't{char}')
        for token in fingers.split():
            match = _FINGER_TOKEN.match(token)
            if match:
                names.append(f'f{match.group(1)}{match.group(2).lower()}')
    else:
        for char in thumbs:
            if char in LEGACY_THUMBS:
                names.append(LEGACY_THUMBS[char])
        for row, char in enumerate(fingers[:4], start=1):
            if char in LEGACY_COLUMNS:
                names.append(f'f{row}{LEGACY_COLUMNS[char]}')

    return ButtonState.from_names(names)


_STATE_FLAGS = frozenset(THUMBS + FINGERS)


@dataclass
class PackedButtons:
    """Button flags packed into a fixed-width little-endian integer."""
    value: int = 0

    WIDTH: ClassVar[int] = 2
    BITS: ClassVar[dict] = {}

    def __post_init__(self):
        if not 0 <= self.value < 1 << (8 * self.WIDTH):
            raise ValueError(f"{type(self).__name__} value 0x{self.value:X} "
                             f"does not fit in {self.WIDTH} bytes")

    def get(self, name: str) -> bool:
        return bool(self.value >> self.BITS[name] & 1)

    def set(self, name: str, on: bool = True) -> None:
        bit = 1 << self.BITS[name]
        self.value = self.value | bit if on else self.value & ~bit

    @classmethod
    def from_state(cls, state: ButtonState) -> "PackedButtons":
        data = cls()
        for name in cls.BITS:
            if name in _STATE_FLAGS:
                data.set(name, getattr(state, name))
        return data

    def to_state(self) -> ButtonState:
        return ButtonState(**{name: self.get(name)
                              for name in self.BITS if name in _STATE_FLAGS})

    @classmethod
    def unrepresentable(cls, state: ButtonState) -> list[str]:
        """Pressed flags in `state` that this layout has no bit for."""
        return [name for name in state.pressed() if name not in cls.BITS]

    def extra_bits(self) -> int:
        """Set bits that do not map to a ButtonState flag."""
        known = 0
        for name, bit in self.BITS.items():
            if name in _STATE_FLAGS:
                known |= 1 << bit
        return self.value & ~known


def _nibble_bits(rows: Iterable[int]) -> dict:
    bits = {}
    for row in rows:
        base = (row - 1) * 4
        bits[f't{row}'] = base
        bits[f'f{row}r'] = base + 1
        bits[f'f{row}m'] = base + 2
        bits[f'f{row}l'] = base + 3
    return bits


@dataclass
class ButtonData5(PackedButtons):
    """v5 (Twiddler 3) layout: 16 bits, no top row."""
    WIDTH: ClassVar[int] = 2
    BITS: ClassVar[dict] = _nibble_bits(range(1, 5))


@dataclass
class ButtonData6(PackedButtons):
    """v6 layout: 24 bits, v5 nibbles plus t0 and the top row, 4 reserved bits."""
    WIDTH: ClassVar[int] = 3
    BITS: ClassVar[dict] = {
        **_nibble_bits(range(1, 5)),
        't0': 16, 'f0r': 17, 'f0m': 18, 'f0l': 19,
    }


@dataclass
class ButtonData7(ButtonData6):
    """v7 layout, bit for bit the same as v6."""
