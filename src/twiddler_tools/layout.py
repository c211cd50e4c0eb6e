"""Macro region layout: assigns each macro list its byte offset.

The macro region starts right after the chord table (after the location
table on v5). Lists are stored back to back in the order their chords
appear in the table, so list *i* belongs to the *i*-th macro chord.
"""

import logging
from dataclasses import replace

from .commands import ListCommand
from .config import TwiddlerConfig
from .errors import FormatError, LayoutInvariantViolation

logger = logging.getLogger(__name__)


def list_size(commands, fmt) -> int:
    """Serialized size of one macro list including its terminator."""
    return len(commands) * fmt.MACRO_RECORD_WIDTH + fmt.TERMINATOR_WIDTH


def plan_layout(config: TwiddlerConfig, fmt) -> list[int]:
    """Rewrite every ListCommand offset so the lists pack without gaps.

    Returns the planned offsets, relative to the start of the macro region.
    """
    macro_chords = config.macro_chords()
    if len(macro_chords) != len(config.command_lists):
        raise LayoutInvariantViolation(
            f"{len(macro_chords)} ListOfCommands chords but "
            f"{len(config.command_lists)} command lists")

    offsets = []
    offset = 0
    for index, commands in zip(macro_chords, config.command_lists):
        if offset > fmt.MAX_MACRO_OFFSET:
            raise FormatError(f"Macro region too large for v{fmt.VERSION} "
                              f"({offset} byte offset)", field='macro offset')
        chord = config.chords[index]
        config.chords[index] = replace(chord, command=ListCommand(offset))
        offsets.append(offset)
        offset += list_size(commands, fmt)

    logger.debug("Planned %d macro lists, %d bytes", len(offsets), offset)
    return offsets


def macro_region_size(config: TwiddlerConfig, fmt) -> int:
    return sum(list_size(commands, fmt) for commands in config.command_lists)
