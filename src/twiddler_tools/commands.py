"""Chord output actions shared by every config generation."""

from dataclasses import dataclass, replace
from enum import IntEnum
from typing import ClassVar, Union

from .errors import TagMismatch
from .hid import describe_key


class CommandType(IntEnum):
    """Command discriminant as stored in the first byte of a record"""
    NONE = 0
    SYSTEM = 1
    KEYBOARD = 2
    MOUSE = 3
    DELAY = 5
    LIST_OF_COMMANDS = 7


# Commands whose payload is carried as raw bytes
RAW_TYPES = frozenset({CommandType.SYSTEM, CommandType.MOUSE, CommandType.DELAY})


@dataclass(frozen=True)
class KeyboardCommand:
    """A single keystroke: HID modifier mask plus key code."""
    modifier: int = 0
    key_code: int = 0

    type: ClassVar[CommandType] = CommandType.KEYBOARD

    def with_modifier(self, bits: int) -> "KeyboardCommand":
        return replace(self, modifier=self.modifier | bits)

    def __str__(self):
        return describe_key(self.modifier, self.key_code)


@dataclass(frozen=True)
class ListCommand:
    """Reference to a macro list, by byte offset into the macro region."""
    offset: int = 0

    type: ClassVar[CommandType] = CommandType.LIST_OF_COMMANDS

    def __str__(self):
        return f"[macro @{self.offset}]"


@dataclass(frozen=True)
class RawCommand:
    """System, mouse or delay command kept as its raw payload bytes."""
    type: CommandType
    data: bytes = bytes(3)

    def __post_init__(self):
        if self.type not in RAW_TYPES:
            raise TagMismatch(f"{CommandType(self.type).name} command cannot carry a raw payload")

    def __str__(self):
        return f"[{self.type.name.lower()} {self.data.hex()}]"


Command = Union[KeyboardCommand, ListCommand, RawCommand]


def is_macro(command: Command) -> bool:
    return command.type == CommandType.LIST_OF_COMMANDS
