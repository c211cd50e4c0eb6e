#!/usr/bin/env python3
"""Command-line interface for Twiddler tools."""

import argparse
import logging
import sys
from pathlib import Path

from .commands import KeyboardCommand, is_macro
from .convert import INPUT_FORMATS, convert, describe_source, input_kind, read_source
from .errors import ConversionError
from .formats import FORMATS
from .textconf import dump_text_config


def _read(path: Path, input_format: str = 'auto'):
    """read_source that reports failures instead of raising."""
    try:
        return read_source(path, input_format)
    except (ValueError, OSError) as e:
        print(f"Error: cannot read {path}: {e}", file=sys.stderr)
        return None, None


def cmd_info(args):
    """Show config file information."""
    config, fmt = _read(args.file, args.input_format)
    if config is None:
        return 1

    print(f"File: {args.file}")
    print(f"Size: {args.file.stat().st_size} bytes")
    print(f"Format: {describe_source(fmt, input_kind(args.file, args.input_format))}")
    print(f"Chords: {len(config.chords)}")
    print(f"Macros: {len(config.command_lists)}")
    print()

    if fmt is not None:
        print("Settings:")
        for name in fmt.SETTINGS:
            print(f"  {name.replace('_', ' ').capitalize()}: {getattr(config, name)}")
        for name in fmt.FLAGS:
            print(f"  {name.replace('_', ' ').capitalize()}: {getattr(config.flags, name)}")
        print()

    if args.verbose:
        print("Chord mappings:")
        macro_lists = {id(chord): commands for chord, commands in config.macros()}
        for i, chord in enumerate(config.chords):
            if id(chord) in macro_lists:
                commands = macro_lists[id(chord)]
                output = ' '.join(str(c) for c in commands)
                output = f"[macro:{len(commands)}] {output}"
            else:
                output = str(chord.command)
            print(f"  {i:3d}: {str(chord.buttons):20s} -> {output}")

    return 0


def cmd_convert(args):
    """Convert config between formats."""
    try:
        result = convert(args.input, args.output,
                         target_version=args.format,
                         caps_thumb=args.caps,
                         input_format=args.input_format,
                         firmware_blob=not args.no_firmware_blob)
    except ConversionError as e:
        print(f"Error: {e}", file=sys.stderr)
        return 1

    print(f"Read: {args.input} ({result.source_format})")
    if result.synthesized:
        print(f"Added {result.synthesized} uppercase chords on thumb {args.caps}")
    print(f"Wrote: {args.output} (v{result.target_version}, "
          f"{result.chords} chords, {result.macros} macros)")
    if result.warnings:
        print(f"WARNING: {len(result.warnings)} items could not be represented "
              f"in v{result.target_version}", file=sys.stderr)
    return 0


def cmd_dump(args):
    """Dump config as text."""
    config, _ = _read(args.file, args.input_format)
    if config is None:
        return 1

    dump_text_config(config, sys.stdout)
    skipped = sum(1 for c in config.chords
                  if not is_macro(c.command) and not isinstance(c.command, KeyboardCommand))
    if skipped:
        print(f"Note: {skipped} chords have no text form", file=sys.stderr)
    return 0


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        description='Twiddler configuration tools',
        prog='twiddler'
    )
    parser.add_argument('-v', '--verbose', dest='log_level', action='store_const',
                        const=logging.DEBUG, default=logging.WARNING,
                        help='Log debug output')
    parser.add_argument('-q', '--quiet', dest='log_level', action='store_const',
                        const=logging.ERROR, help='Only log errors')
    subparsers = parser.add_subparsers(dest='command', help='Commands')

    # info command
    info_parser = subparsers.add_parser('info', help='Show config file information')
    info_parser.add_argument('file', type=Path, help='Config file to analyze')
    info_parser.add_argument('-v', '--verbose', action='store_true',
                             help='Show all chord mappings')

    # convert command
    convert_parser = subparsers.add_parser('convert', help='Convert between formats')
    convert_parser.add_argument('input', type=Path, help='Input config file')
    convert_parser.add_argument('output', type=Path, help='Output config file')
    convert_parser.add_argument('-f', '--format', type=int, choices=sorted(FORMATS),
                                default=7, help='Output format version (default: 7)')
    convert_parser.add_argument('--caps', type=int, choices=[1, 2, 3, 4],
                                help='Add uppercase letter chords on this thumb button')
    convert_parser.add_argument('--no-firmware-blob', action='store_true',
                                help='Do not stamp the firmware constant blocks')

    # dump command
    dump_parser = subparsers.add_parser('dump', help='Dump config as text')
    dump_parser.add_argument('file', type=Path, help='Config file to dump')

    for sub in (info_parser, convert_parser, dump_parser):
        sub.add_argument('--input-format', choices=INPUT_FORMATS, default='auto',
                         help='Input file format (default: by file suffix)')

    return parser


def main(argv=None):
    parser = build_parser()
    args = parser.parse_args(argv)

    logging.basicConfig(level=args.log_level,
                        format='%(levelname)s %(name)s: %(message)s')

    if args.command is None:
        parser.print_help()
        return 1

    if args.command == 'info':
        return cmd_info(args)
    elif args.command == 'convert':
        return cmd_convert(args)
    elif args.command == 'dump':
        return cmd_dump(args)

    return 0


if __name__ == '__main__':
    sys.exit(main())
