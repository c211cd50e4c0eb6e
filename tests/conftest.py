"""Pytest fixtures for Twiddler tools tests.

Config images are built in memory so every byte under test is visible here.
"""

import struct

import pytest

# Button bits shared by every generation (v5 nibble layout)
T1 = 0x0001
F1R, F1M, F1L = 0x0002, 0x0004, 0x0008
F2M = 0x0040
# v6/v7 top row
F0L = 1 << 19

KEYBOARD, LIST, SYSTEM = 2, 7, 1


def v7_chord(buttons: int, tag: int, payload: bytes) -> bytes:
    return buttons.to_bytes(3, 'little') + b'\x00' + bytes([tag]) + payload


def key(modifier: int, code: int) -> bytes:
    """v6/v7 keyboard command record."""
    return bytes([KEYBOARD, modifier, code, 0])


@pytest.fixture
def v7_image() -> bytes:
    """v7 config: 1M -> '5', N+1L -> macro 'Hi', 2M -> system command."""
    header = bytearray(0x80)
    header[4] = 7
    struct.pack_into('<H', header, 5, 0x0005)
    struct.pack_into('<HHBB', header, 8, 3, 600, 0x7F, 100)

    chords = (v7_chord(F1M, KEYBOARD, b'\x00\x22\x00')
              + v7_chord(T1 | F1L, LIST, struct.pack('<Hx', 0))
              + v7_chord(F2M, SYSTEM, b'\x01\x02\x03'))
    macros = key(0x02, 0x0B) + key(0x00, 0x0C) + bytes(4)
    return bytes(header) + chords + macros


@pytest.fixture
def v6_image() -> bytes:
    """v6 config: two macros, the second at offset 12."""
    header = bytearray(0x28)
    header[4] = 6
    struct.pack_into('<BH', header, 5, 0x01, 3)

    chords = (v7_chord(F1M, KEYBOARD, b'\x00\x22\x00')
              + v7_chord(T1 | F1L, LIST, struct.pack('<xH', 0))
              + v7_chord(F1R, LIST, struct.pack('<xH', 12)))
    macros = (key(0x02, 0x0B) + key(0x00, 0x0C) + bytes(4)
              + key(0x00, 0x2C) + bytes(4))
    return bytes(header) + chords + macros


@pytest.fixture
def v5_image() -> bytes:
    """v5 config: 1M -> '5', N+1L -> macro 'Hi'."""
    header = struct.pack('<BBHHHHHBBBB', 5, 0x01, 2, 3720, 0, 3, 1, 10, 100, 0, 0x01)
    chords = (struct.pack('<HBB', F1M, 0x00, 0x22)
              + struct.pack('<HBB', T1 | F1L, 0xFF, 0))
    region_start = len(header) + len(chords) + 4
    locations = struct.pack('<I', region_start)
    macro = struct.pack('<HBBBB', 6, 0x02, 0x0B, 0x00, 0x0C)
    return header + chords + locations + macro


@pytest.fixture
def v7_file(tmp_path, v7_image):
    path = tmp_path / 'layout.cfg'
    path.write_bytes(v7_image)
    return path


@pytest.fixture
def v5_file(tmp_path, v5_image):
    path = tmp_path / 'old.cfg'
    path.write_bytes(v5_image)
    return path


CSV_TEXT = """Thumbs, Fingers,Keyboard Output
,1L,a
,1M,[KB]<L-Shift>b</L-Shift>
1,2M,the
,3R,[MS]LeftClick
,,x
"""

TEXT_CONFIG = """# Twiddler config
Sleep=600
# --- end of options
# --- end of settings
# --- end of header
     M000:034                 :# Keyboard 5 and %
   S LL00:045+LS              :# Keyboard - and _
N    L000:String[0]:
this line is not a chord
# --- end of chords
# String[0]="Hi"
011+LS
012
# --- end of strings
"""


@pytest.fixture
def csv_file(tmp_path):
    path = tmp_path / 'layout.csv'
    path.write_text(CSV_TEXT, encoding='utf-8')
    return path


@pytest.fixture
def text_file(tmp_path):
    path = tmp_path / 'layout.txt'
    path.write_text(TEXT_CONFIG, encoding='utf-8')
    return path
