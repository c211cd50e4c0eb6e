"""Convert chord configs between generations and from the text formats."""

import logging
import struct
from dataclasses import dataclass, field
from pathlib import Path
from typing import BinaryIO, Optional, Union

from .caps import synthesize_caps
from .commands import is_macro
from .config import Chord, TwiddlerConfig
from .csv_parser import read_csv
from .errors import ConversionError, LayoutInvariantViolation, UnknownFormat
from .formats import ConfigFormat, detect_version, get_format
from .layout import plan_layout
from .textconf import read_text_config

logger = logging.getLogger(__name__)

INPUT_FORMATS = ('auto', 'binary', 'csv', 'text')


@dataclass
class ConversionResult:
    """Summary of a finished conversion."""
    source_format: str
    target_version: int
    chords: int
    macros: int
    synthesized: int = 0
    warnings: list[str] = field(default_factory=list)


def input_kind(path: Path, input_format: str = 'auto') -> str:
    """Resolve 'auto' to 'csv', 'text' or 'binary' from the file suffix."""
    if input_format not in INPUT_FORMATS:
        raise ValueError(f"Unknown input format: {input_format}")
    if input_format != 'auto':
        return input_format
    suffix = path.suffix.lower()
    if suffix == '.csv':
        return 'csv'
    if suffix == '.txt':
        return 'text'
    return 'binary'


def read_source(path: Union[str, Path], input_format: str = 'auto'
                ) -> tuple[TwiddlerConfig, Optional[type]]:
    """Read any supported input.

    Returns the config and, for binary inputs, the format class it was read
    with (None for the text formats).
    """
    path = Path(path)
    kind = input_kind(path, input_format)
    if kind == 'csv':
        return read_csv(path), None
    if kind == 'text':
        return read_text_config(path), None

    data = path.read_bytes()
    fmt = get_format(detect_version(data))
    return fmt._parse(data), fmt


def describe_source(fmt: Optional[type], kind: str) -> str:
    return f"v{fmt.VERSION}" if fmt is not None else kind


def rebuild(source: TwiddlerConfig, target_fmt: type,
            source_fmt: Optional[type] = None) -> tuple[TwiddlerConfig, list[str]]:
    """Build a fresh `target_fmt` config holding the chords of `source`.

    Settings and flags carry over when both generations store them. Button
    flags and commands the target cannot store are dropped; each loss is
    logged and returned as a warning.
    """
    macro_chords = source.macro_chords()
    if len(macro_chords) != len(source.command_lists):
        raise LayoutInvariantViolation(
            f"Source has {len(macro_chords)} macro chords but "
            f"{len(source.command_lists)} command lists")

    target = target_fmt.new_config()
    warnings = []

    if source_fmt is not None:
        for name in source_fmt.SETTINGS:
            if name in target_fmt.SETTINGS:
                setattr(target, name, getattr(source, name))
        for name in source_fmt.FLAGS:
            if name in target_fmt.FLAGS:
                setattr(target.flags, name, getattr(source.flags, name))

    lists = iter(source.command_lists)
    for index, chord in enumerate(source.chords):
        commands = next(lists) if is_macro(chord.command) else None

        buttons = chord.buttons
        dropped = target_fmt.BUTTON_DATA.unrepresentable(buttons)
        if dropped:
            buttons = buttons.without(*dropped)
            _warn(warnings, f"chord {index} ({chord.buttons}): "
                            f"v{target_fmt.VERSION} has no {', '.join(dropped)} button")
            if not buttons.pressed():
                _warn(warnings, f"chord {index} skipped: no buttons left")
                continue

        if not target_fmt.supports(chord.command):
            _warn(warnings, f"chord {index} ({chord.buttons}) skipped: "
                            f"v{target_fmt.VERSION} cannot store {chord.command}")
            continue

        if commands is None:
            target.chords.append(Chord(buttons, chord.command, chord.comment))
            continue

        kept = [c for c in commands if target_fmt.supports(c) and not is_macro(c)]
        if len(kept) != len(commands):
            _warn(warnings, f"chord {index} ({chord.buttons}): "
                            f"{len(commands) - len(kept)} macro entries dropped")
        target.add_macro(buttons, kept, chord.comment)

    return target, warnings


def _warn(warnings: list, message: str) -> None:
    logger.warning(message)
    warnings.append(message)


def convert(source: Union[str, Path], dest: Union[str, Path, BinaryIO],
            target_version: int = 7, caps_thumb: Optional[int] = None,
            input_format: str = 'auto', firmware_blob: bool = True) -> ConversionResult:
    """Read `source`, rebuild it for `target_version` and write it to `dest`.

    Any failure is raised as ConversionError naming the failed stage;
    `dest` is only written once the whole image has been built.
    """
    stage = 'read'
    try:
        config, source_fmt = read_source(source, input_format)
        source_name = describe_source(source_fmt, input_kind(Path(source), input_format))

        stage = 'rebuild'
        target_fmt: type[ConfigFormat] = get_format(target_version)
        target, warnings = rebuild(config, target_fmt, source_fmt)

        stage = 'caps'
        added = synthesize_caps(target, caps_thumb)
        unstorable = {id(c) for c in added if not target_fmt.supports(c.command)}
        if unstorable:
            for chord in added:
                if id(chord) in unstorable:
                    _warn(warnings, f"caps chord {chord.buttons} skipped: "
                                    f"v{target_fmt.VERSION} cannot store {chord.command}")
            target.chords = [c for c in target.chords if id(c) not in unstorable]
            added = [c for c in added if id(c) not in unstorable]

        stage = 'layout'
        plan_layout(target, target_fmt)

        stage = 'write'
        target_fmt.write(target, dest, firmware_blob)
    except UnknownFormat as e:
        raise ConversionError('detect', e) from e
    except (ValueError, AssertionError, OSError, struct.error) as e:
        raise ConversionError(stage, e) from e

    logger.info("Converted %s (%s) to v%d: %d chords, %d macros",
                source, source_name, target_version, len(target.chords),
                len(target.command_lists))
    return ConversionResult(
        source_format=source_name,
        target_version=target_version,
        chords=len(target.chords),
        macros=len(target.command_lists),
        synthesized=len(added),
        warnings=warnings,
    )
