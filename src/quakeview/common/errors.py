from __future__ import annotations

from enum import Enum


class ErrorKind(str, Enum):
    UNEXPECTED_TOKEN = "UnexpectedToken"
    UNEXPECTED_END_OF_INPUT = "UnexpectedEndOfInput"
    INVALID_BSP_VERSION = "InvalidBspVersion"
    LUMP_SIZE_MISMATCH = "LumpSizeMismatch"
    INDEX_OUT_OF_RANGE = "IndexOutOfRange"
    MISSING_TEXTURE = "MissingTexture"
    UNKNOWN_WAD_ENTRY_TYPE = "UnknownWadEntryType"
    INVALID_WAD_HEADER = "InvalidWadHeader"
    DEGENERATE_BRUSH = "DegenerateBrush"
    READ_FAILED = "ReadFailed"


class LevelLoadError(RuntimeError):
    """Base class for every failure raised while loading a level."""

    kind: ErrorKind = ErrorKind.READ_FAILED


class UnexpectedTokenError(LevelLoadError):
    kind = ErrorKind.UNEXPECTED_TOKEN

    def __init__(self, *, expected: str, found: str, line: int, column: int) -> None:
        super().__init__(f"line {line}, column {column}: expected {expected}, found {found!r}")
        self.expected = expected
        self.found = found
        self.line = line
        self.column = column


class UnexpectedEndOfInputError(LevelLoadError):
    kind = ErrorKind.UNEXPECTED_END_OF_INPUT

    def __init__(self, *, inside: str, line: int) -> None:
        super().__init__(f"unexpected end of input inside {inside} (line {line})")
        self.inside = inside
        self.line = line


class InvalidBspVersionError(LevelLoadError):
    kind = ErrorKind.INVALID_BSP_VERSION

    def __init__(self, version: int, *, expected: int) -> None:
        super().__init__(f"unsupported BSP version {version}, expected {expected}")
        self.version = version


class LumpSizeMismatchError(LevelLoadError):
    kind = ErrorKind.LUMP_SIZE_MISMATCH

    def __init__(self, *, lump: str, size: int, record_size: int) -> None:
        super().__init__(f"lump {lump}: {size} bytes is not a multiple of the {record_size}-byte record")
        self.lump = lump
        self.size = size
        self.record_size = record_size


class IndexOutOfRangeError(LevelLoadError):
    kind = ErrorKind.INDEX_OUT_OF_RANGE

    def __init__(self, *, lump: str, index: int, count: int) -> None:
        super().__init__(f"lump {lump}: index {index} out of range [0, {count})")
        self.lump = lump
        self.index = index
        self.count = count


class MissingTextureError(LevelLoadError):
    kind = ErrorKind.MISSING_TEXTURE

    def __init__(self, name: str) -> None:
        super().__init__(f"texture not found: {name}")
        self.name = name


class WadError(LevelLoadError):
    """Base class for WAD2 archive failures."""

    kind = ErrorKind.INVALID_WAD_HEADER


class InvalidWadHeaderError(WadError):
    kind = ErrorKind.INVALID_WAD_HEADER


class UnknownWadEntryTypeError(WadError):
    kind = ErrorKind.UNKNOWN_WAD_ENTRY_TYPE

    def __init__(self, *, name: str, lump_type: int) -> None:
        super().__init__(f"WAD entry {name!r} has unknown type 0x{lump_type:02x}")
        self.name = name
        self.lump_type = lump_type


class DegenerateBrushError(LevelLoadError):
    kind = ErrorKind.DEGENERATE_BRUSH


class ReadFailedError(LevelLoadError):
    kind = ErrorKind.READ_FAILED
