"""Exceptions raised while reading, planning and writing Twiddler configs."""

from typing import Optional


class FormatError(ValueError):
    """A config image or text file does not match its expected layout."""

    def __init__(self, message: str, offset: Optional[int] = None, field: Optional[str] = None):
        self.offset = offset
        self.field = field
        context = []
        if field:
            context.append(f"field {field}")
        if offset is not None:
            context.append(f"offset 0x{offset:X}")
        if context:
            message = f"{message} ({', '.join(context)})"
        super().__init__(message)


class UnknownFormat(FormatError):
    """Leading bytes do not identify any known generation."""


class WrongGeneration(FormatError):
    """Version byte does not match the codec used to read the file."""


class TruncatedStream(FormatError):
    """Input ended before a field or terminator could be read."""


class UnknownCommandType(FormatError):
    """Command discriminant is outside the known enumeration."""


class TagMismatch(FormatError):
    """Command payload is inconsistent with its discriminant or position."""


class LayoutInvariantViolation(AssertionError):
    """Macro lists and ListOfCommands chords are out of step."""


class ConversionError(Exception):
    """A conversion failed; `stage` names the step and `cause` the error."""

    def __init__(self, stage: str, cause: Exception):
        self.stage = stage
        self.cause = cause
        super().__init__(f"{stage} failed: {cause}")
