"""Twiddler Tools - Chord config conversion for the Twiddler keyboard."""

__version__ = "0.1.0"

from .buttons import ButtonState, parse_notation
from .commands import CommandType, KeyboardCommand, ListCommand, RawCommand
from .config import Chord, ConfigFlags, TwiddlerConfig
from .convert import ConversionResult, convert
from .csv_parser import read_csv
from .errors import ConversionError, FormatError
from .formats import ConfigV5, ConfigV6, ConfigV7, detect_version, read_config, write_config
from .hid import HID_MAP, char_to_hid, hid_to_char
from .textconf import dump_text_config, read_text_config
