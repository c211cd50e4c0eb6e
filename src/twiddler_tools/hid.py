"""USB HID keycode and modifier mappings."""

import re
from functools import lru_cache
from typing import Optional, Tuple

# HID Usage Table for Keyboard/Keypad Page (0x07)
# Format: hid_code: (unshifted, shifted)
HID_MAP = {
    # Letters a-z
    0x04: ('a', 'A'), 0x05: ('b', 'B'), 0x06: ('c', 'C'), 0x07: ('d', 'D'),
    0x08: ('e', 'E'), 0x09: ('f', 'F'), 0x0A: ('g', 'G'), 0x0B: ('h', 'H'),
    0x0C: ('i', 'I'), 0x0D: ('j', 'J'), 0x0E: ('k', 'K'), 0x0F: ('l', 'L'),
    0x10: ('m', 'M'), 0x11: ('n', 'N'), 0x12: ('o', 'O'), 0x13: ('p', 'P'),
    0x14: ('q', 'Q'), 0x15: ('r', 'R'), 0x16: ('s', 'S'), 0x17: ('t', 'T'),
    0x18: ('u', 'U'), 0x19: ('v', 'V'), 0x1A: ('w', 'W'), 0x1B: ('x', 'X'),
    0x1C: ('y', 'Y'), 0x1D: ('z', 'Z'),

    # Numbers 1-0
    0x1E: ('1', '!'), 0x1F: ('2', '@'), 0x20: ('3', '#'), 0x21: ('4', '$'),
    0x22: ('5', '%'), 0x23: ('6', '^'), 0x24: ('7', '&'), 0x25: ('8', '*'),
    0x26: ('9', '('), 0x27: ('0', ')'),

    # Special keys
    0x28: ('<Return>', '<Return>'),
    0x29: ('<Escape>', '<Escape>'),
    0x2A: ('<Backspace>', '<Backspace>'),
    0x2B: ('<Tab>', '<Tab>'),
    0x2C: ('<Space>', '<Space>'),

    # Punctuation
    0x2D: ('-', '_'), 0x2E: ('=', '+'), 0x2F: ('[', '{'), 0x30: (']', '}'),
    0x31: ('\\', '|'), 0x32: ('#', '~'),  # Non-US
    0x33: (';', ':'), 0x34: ("'", '"'), 0x35: ('`', '~'),
    0x36: (',', '<'), 0x37: ('.', '>'), 0x38: ('/', '?'),

    # Caps Lock
    0x39: ('<CapsLock>', '<CapsLock>'),

    # Function keys F1-F12
    0x3A: ('<F1>', '<F1>'), 0x3B: ('<F2>', '<F2>'), 0x3C: ('<F3>', '<F3>'),
    0x3D: ('<F4>', '<F4>'), 0x3E: ('<F5>', '<F5>'), 0x3F: ('<F6>', '<F6>'),
    0x40: ('<F7>', '<F7>'), 0x41: ('<F8>', '<F8>'), 0x42: ('<F9>', '<F9>'),
    0x43: ('<F10>', '<F10>'), 0x44: ('<F11>', '<F11>'), 0x45: ('<F12>', '<F12>'),

    # Navigation
    0x46: ('<PrintScreen>', '<PrintScreen>'),
    0x47: ('<ScrollLock>', '<ScrollLock>'),
    0x48: ('<Pause>', '<Pause>'),
    0x49: ('<Insert>', '<Insert>'),
    0x4A: ('<Home>', '<Home>'),
    0x4B: ('<PageUp>', '<PageUp>'),
    0x4C: ('<Delete>', '<Delete>'),
    0x4D: ('<End>', '<End>'),
    0x4E: ('<PageDown>', '<PageDown>'),
    0x4F: ('<Right>', '<Right>'),
    0x50: ('<Left>', '<Left>'),
    0x51: ('<Down>', '<Down>'),
    0x52: ('<Up>', '<Up>'),
    0x53: ('<NumLock>', '<NumLock>'),

    # Numpad
    0x54: ('<KP/>', '<KP/>'),
    0x55: ('<KP*>', '<KP*>'),
    0x56: ('<KP->', '<KP->'),
    0x57: ('<KP+>', '<KP+>'),
    0x58: ('<KPEnter>', '<KPEnter>'),
    0x59: ('<KP1>', '<KP1>'), 0x5A: ('<KP2>', '<KP2>'), 0x5B: ('<KP3>', '<KP3>'),
    0x5C: ('<KP4>', '<KP4>'), 0x5D: ('<KP5>', '<KP5>'), 0x5E: ('<KP6>', '<KP6>'),
    0x5F: ('<KP7>', '<KP7>'), 0x60: ('<KP8>', '<KP8>'), 0x61: ('<KP9>', '<KP9>'),
    0x62: ('<KP0>', '<KP0>'), 0x63: ('<KP.>', '<KP.>'),
    0x64: ('<KP=>', '<KP=>'),
    0x65: ('<Application>', '<Application>'),

    # Function keys F13-F24
    0x68: ('<F13>', '<F13>'), 0x69: ('<F14>', '<F14>'), 0x6A: ('<F15>', '<F15>'),
    0x6B: ('<F16>', '<F16>'), 0x6C: ('<F17>', '<F17>'), 0x6D: ('<F18>', '<F18>'),
    0x6E: ('<F19>', '<F19>'), 0x6F: ('<F20>', '<F20>'), 0x70: ('<F21>', '<F21>'),
    0x71: ('<F22>', '<F22>'), 0x72: ('<F23>', '<F23>'), 0x73: ('<F24>', '<F24>'),
}

# Letters a-z, the keys that get an uppercase twin on the caps layer
ALPHA_HID_CODES = frozenset(range(0x04, 0x1E))

# Modifier bit flags (8-bit HID modifier byte)
MOD_LCTRL = 0x01
MOD_LSHIFT = 0x02
MOD_LALT = 0x04
MOD_LGUI = 0x08
MOD_RCTRL = 0x10
MOD_RSHIFT = 0x20
MOD_RALT = 0x40
MOD_RGUI = 0x80

MODIFIER_NAMES = {
    'L-Ctrl': MOD_LCTRL,
    'L-Shift': MOD_LSHIFT,
    'L-Alt': MOD_LALT,
    'L-Gui': MOD_LGUI,
    'R-Ctrl': MOD_RCTRL,
    'R-Shift': MOD_RSHIFT,
    'R-Alt': MOD_RALT,
    'R-Gui': MOD_RGUI,
}

# Two-letter codes used by the text config format (LC, LS, ... RG)
MODIFIER_CODES = {
    name[0] + name[2]: bit for name, bit in MODIFIER_NAMES.items()
}

# Alternate spellings accepted in key tags
_KEY_ALIASES = {
    'enter': 0x28, 'esc': 0x29, 'bs': 0x2A, 'del': 0x4C,
    'rightarrow': 0x4F, 'leftarrow': 0x50, 'downarrow': 0x51, 'uparrow': 0x52,
    'pgup': 0x4B, 'pgdn': 0x4E, 'ins': 0x49, 'menu': 0x65,
}

_HID_CODE_TAG = re.compile(r'^hidcode\s*(0x[0-9a-f]+|\d+)$', re.IGNORECASE)


def hid_to_char(hid_code: int, shifted: bool = False) -> str:
    """Convert HID keycode to character string."""
    if hid_code in HID_MAP:
        return HID_MAP[hid_code][1 if shifted else 0]
    return f'<0x{hid_code:02X}>'


@lru_cache(maxsize=None)
def _char_table() -> dict:
    table = {' ': (0x2C, False)}
    for hid_code in sorted(HID_MAP):
        # Non-US '#' and the keypad duplicate characters found elsewhere
        if hid_code == 0x32:
            continue
        unshifted, shifted = HID_MAP[hid_code]
        if unshifted.startswith('<'):
            continue
        table.setdefault(unshifted, (hid_code, False))
        table.setdefault(shifted, (hid_code, True))
    return table


def char_to_hid(char: str) -> Optional[Tuple[int, bool]]:
    """Convert character to (HID code, shifted) tuple."""
    return _char_table().get(char)


@lru_cache(maxsize=None)
def _name_table() -> dict:
    table = dict(_KEY_ALIASES)
    for hid_code, (unshifted, _) in HID_MAP.items():
        if unshifted.startswith('<'):
            table.setdefault(unshifted[1:-1].lower(), hid_code)
    return table


def key_code(name: str) -> Optional[int]:
    """Look up a named key such as 'Enter', 'F5' or 'HIDCode 0x04'."""
    name = name.strip()
    match = _HID_CODE_TAG.match(name)
    if match:
        return int(match.group(1), 0) & 0xFF
    return _name_table().get(name.lower())


def is_alpha(hid_code: int) -> bool:
    """True for the letter keys a-z."""
    return hid_code in ALPHA_HID_CODES


def modifier_names(modifier: int) -> list[str]:
    """Names of the modifier bits set in `modifier`, low bit first."""
    return [name for name, bit in MODIFIER_NAMES.items() if modifier & bit]


def is_shifted(modifier: int) -> bool:
    """True if either Shift bit is set."""
    return bool(modifier & (MOD_LSHIFT | MOD_RSHIFT))


def describe_key(modifier: int, hid_code: int) -> str:
    """Human readable keystroke, e.g. 'A' or 'L-Ctrl+c'."""
    shifted = is_shifted(modifier)
    char = hid_to_char(hid_code, shifted)
    other = modifier & ~(MOD_LSHIFT | MOD_RSHIFT) if hid_code in HID_MAP else modifier
    names = modifier_names(other)
    return '+'.join(names + [char])
