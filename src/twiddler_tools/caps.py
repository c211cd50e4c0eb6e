"""Caps layer: uppercase twins of letter chords on a spare thumb button."""

import logging
from typing import Optional

from .commands import KeyboardCommand
from .config import Chord, TwiddlerConfig
from .hid import MOD_LSHIFT, is_alpha

logger = logging.getLogger(__name__)


def synthesize_caps(config: TwiddlerConfig, thumb: Optional[int]) -> list[Chord]:
    """Append a shifted copy of every thumbless letter chord.

    The copy presses `thumb` (1-4) in addition to the original fingers and
    ORs Left Shift into the modifier. Existing chords are left alone.
    Returns the chords that were added.
    """
    if thumb is None:
        return []
    if thumb not in (1, 2, 3, 4):
        raise ValueError(f"Caps thumb must be 1-4, got {thumb}")

    new_chords = []
    for chord in config.chords:
        command = chord.command
        if not isinstance(command, KeyboardCommand):
            continue
        if chord.buttons.has_thumb or not is_alpha(command.key_code):
            continue
        new_chords.append(Chord(chord.buttons.with_thumb(thumb),
                                command.with_modifier(MOD_LSHIFT),
                                chord.comment))

    if new_chords:
        logger.info("Adding %d uppercase chords on thumb %d", len(new_chords), thumb)
    config.chords.extend(new_chords)
    return new_chords
