"""Transport framing modes: how message sizes are announced on a raw stream."""

from __future__ import annotations

import abc
import enum
import struct
import zlib
from typing import Any, ClassVar

from mtwire.tl_types import WORD_LEN

ABRIDGED_ANNOUNCEMENT = b"\xef"
INTERMEDIATE_ANNOUNCEMENT = b"\xee\xee\xee\xee"

_ABRIDGED_LONG_SIZE = 0x7F
_FULL_MAX_SIZE = 16 * 1024 * 1024
_INTERMEDIATE_MAX_SIZE = 1 << 30


class ModeError(Exception):
    """Framing error."""


class NotMultipleError(ModeError):
    """Message size is not a multiple of four."""

    def __init__(self, length: int = 0) -> None:
        self.length = length
        message = "size of message not multiple of 4"
        if length:
            message += f" (got {length})"
        super().__init__(message)


class ChecksumMismatchError(ModeError):
    """CRC32 of a full-mode frame does not match."""

    def __init__(self) -> None:
        super().__init__("checksum mismatch")


class Variant(enum.IntEnum):
    ABRIDGED = 0
    INTERMEDIATE = 1
    PADDED_INTERMEDIATE = 2
    FULL = 3


def _read_exact(conn: Any, size: int) -> bytes:
    """Read up to ``size`` bytes; fewer only if the stream ends. EOFError if none."""
    chunks = []
    remaining = size
    while remaining > 0:
        chunk = conn.read(remaining)
        if not chunk:
            break
        chunks.append(chunk)
        remaining -= len(chunk)
    data = b"".join(chunks)
    if size > 0 and not data:
        raise EOFError("connection closed")
    return data


class Mode(abc.ABC):
    """Frames whole messages over a byte stream with ``read``/``write``."""

    announcement: ClassVar[bytes] = b""

    def __init__(self, conn: Any) -> None:
        self.conn = conn

    @abc.abstractmethod
    def write_msg(self, msg: bytes) -> None:
        """Write one framed message."""

    @abc.abstractmethod
    def read_msg(self) -> bytes:
        """Read one framed message and return its payload."""


class Abridged(Mode):
    """One-byte word count, or 0x7f plus a three-byte count."""

    announcement: ClassVar[bytes] = ABRIDGED_ANNOUNCEMENT

    def write_msg(self, msg: bytes) -> None:
        if len(msg) % 4:
            raise NotMultipleError(len(msg))
        words = len(msg) // WORD_LEN
        if words < _ABRIDGED_LONG_SIZE:
            header = bytes([words])
        else:
            header = struct.pack(
                "<I", ((words << 8) | _ABRIDGED_LONG_SIZE) & 0xFFFFFFFF
            )
        self.conn.write(header)
        self.conn.write(bytes(msg))

    def read_msg(self) -> bytes:
        first = _read_exact(self.conn, 1)
        size = first[0]
        if size == _ABRIDGED_LONG_SIZE:
            rest = _read_exact(self.conn, 3)
            if len(rest) != 3:
                raise ModeError(f"need to read 3 bytes, got {len(rest)}")
            size = int.from_bytes(rest, "little")
        size *= WORD_LEN
        msg = _read_exact(self.conn, size) if size else b""
        if len(msg) != size:
            raise ModeError(f"expected to read {size} bytes, got {len(msg)}")
        return msg


class Intermediate(Mode):
    """Four-byte little-endian byte length before each message."""

    announcement: ClassVar[bytes] = INTERMEDIATE_ANNOUNCEMENT

    def write_msg(self, msg: bytes) -> None:
        self.conn.write(struct.pack("<I", len(msg)))
        self.conn.write(bytes(msg))

    def read_msg(self) -> bytes:
        header = _read_exact(self.conn, WORD_LEN)
        if len(header) != WORD_LEN:
            raise ModeError(
                "size is not length of int32, expected 4 bytes, "
                f"got {len(header)}"
            )
        size = struct.unpack("<I", header)[0]
        if size > _INTERMEDIATE_MAX_SIZE:
            raise ModeError(f"invalid message size: {size}")
        msg = _read_exact(self.conn, size) if size else b""
        if len(msg) != size:
            raise ModeError(f"expected to read {size} bytes, got {len(msg)}")
        return msg


class Full(Mode):
    """Length, sequence number, payload and CRC32 per frame."""

    announcement: ClassVar[bytes] = b""

    def __init__(self, conn: Any) -> None:
        super().__init__(conn)
        self.seq_no = 0

    def write_msg(self, msg: bytes) -> None:
        msg = bytes(msg)
        body = struct.pack("<II", len(msg) + 12, self.seq_no & 0xFFFFFFFF) + msg
        checksum = zlib.crc32(body) & 0xFFFFFFFF
        self.conn.write(body + struct.pack("<I", checksum))
        self.seq_no += 1

    def read_msg(self) -> bytes:
        header = _read_exact(self.conn, 4)
        if len(header) != 4:
            raise ModeError(f"expected to read 4 bytes, got {len(header)}")
        size = struct.unpack("<I", header)[0]
        if size > _FULL_MAX_SIZE or size < 8:
            raise ModeError(f"invalid message size: {size}")
        rest = _read_exact(self.conn, size - 4)
        if len(rest) != size - 4:
            raise ModeError(f"expected to read {size - 4} bytes, got {len(rest)}")
        frame = header + rest
        checksum = struct.unpack("<I", frame[size - 4 :])[0]
        if zlib.crc32(frame[: size - 4]) & 0xFFFFFFFF != checksum:
            raise ChecksumMismatchError()
        return frame[8 : size - 4]


def _init_mode(variant: Variant, conn: Any) -> Mode:
    if variant == Variant.PADDED_INTERMEDIATE:
        raise ModeError("padded intermediate mode is not supported yet")
    if variant == Variant.ABRIDGED:
        return Abridged(conn)
    if variant == Variant.INTERMEDIATE:
        return Intermediate(conn)
    if variant == Variant.FULL:
        return Full(conn)
    raise ModeError("mode is not supported")


def new_mode(variant: Variant, conn: Any) -> Mode:
    """Create a mode and announce it to the other side."""
    if conn is None:
        raise ModeError("interface is nil")
    mode = _init_mode(variant, conn)
    try:
        conn.write(mode.announcement)
    except OSError as exc:
        raise ModeError(f"can't setup connection: {exc}") from exc
    return mode


def detect(conn: Any) -> Mode:
    """Pick a mode from the announcement the other side sent first."""
    if conn is None:
        raise ModeError("interface is nil")
    first = _read_exact(conn, 1)
    if first == ABRIDGED_ANNOUNCEMENT:
        return _init_mode(Variant.ABRIDGED, conn)
    if first[0] == INTERMEDIATE_ANNOUNCEMENT[0]:
        announce = first + _read_exact(conn, 3)
        if announce != INTERMEDIATE_ANNOUNCEMENT:
            raise ModeError("ambiguous mode announce, expected other byte sequence")
        return _init_mode(Variant.INTERMEDIATE, conn)
    raise ModeError("mode is not supported")


def get_variant(mode: Mode) -> Variant:
    """The variant of a built-in mode."""
    if isinstance(mode, Abridged):
        return Variant.ABRIDGED
    if isinstance(mode, Intermediate):
        return Variant.INTERMEDIATE
    if isinstance(mode, Full):
        return Variant.FULL
    raise ModeError("using custom mode, cant't detect")