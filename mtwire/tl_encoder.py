"""Serialisation of TL values and objects into a byte stream."""

from __future__ import annotations

import io
import struct
from typing import Any, BinaryIO, Iterable, Optional

from mtwire.tl_types import (
    CRC_FALSE,
    CRC_TRUE,
    CRC_VECTOR,
    MAGIC_NUMBER,
    Kind,
    PartialWriteError,
    TLError,
    TLObject,
    VectorOf,
    padding4,
)

MAX_MESSAGE_LEN = 1 << 24

_FLAGS_SLOT = object()


def _pack(fmt: str, value: Any, what: str) -> bytes:
    try:
        return struct.pack(fmt, value)
    except struct.error as exc:
        raise TLError(f"{what} out of range: {value!r}") from exc


def _is_zero(value: Any) -> bool:
    if value is None or value is False:
        return True
    if isinstance(value, (int, float)) and not isinstance(value, bool):
        return value == 0
    return isinstance(value, str) and value == ""


def _infer_kind(value: Any) -> Any:
    if isinstance(value, bool):
        return Kind.BOOL
    if isinstance(value, int):
        raise TLError(
            "int kind: int (must be converted to int32, int64 or uint32 explicitly)"
        )
    if isinstance(value, float):
        return Kind.DOUBLE
    if isinstance(value, str):
        return Kind.STRING
    if isinstance(value, (bytes, bytearray, memoryview)):
        return Kind.BYTES
    if isinstance(value, TLObject):
        return Kind.OBJECT
    if isinstance(value, (list, tuple)):
        return VectorOf(None)
    raise TLError(f"unsupported type: {type(value).__name__}")


class Encoder:
    """Writes TL values to a binary stream."""

    def __init__(self, stream: BinaryIO) -> None:
        self.stream = stream

    def _write(self, data: bytes) -> None:
        written = self.stream.write(data)
        if written is not None and written != len(data):
            raise PartialWriteError(written, len(data))

    def put_bool(self, value: bool) -> None:
        self.put_uint(CRC_TRUE if value else CRC_FALSE)

    def put_uint(self, value: int) -> None:
        self._write(_pack("<I", value, "uint32"))

    def put_crc(self, value: int) -> None:
        self.put_uint(value)

    def put_int(self, value: int) -> None:
        self._write(_pack("<i", value, "int32"))

    def put_long(self, value: int) -> None:
        self._write(_pack("<q", value, "int64"))

    def put_double(self, value: float) -> None:
        self._write(_pack("<d", value, "double"))

    def put_message(self, data: bytes) -> None:
        """Write a length-prefixed, zero-padded byte string."""
        data = bytes(data)
        size = len(data)
        if size > MAX_MESSAGE_LEN:
            raise TLError(
                f"message entity too large: expect less than {MAX_MESSAGE_LEN}, "
                f"got {size}"
            )
        if size == 0:
            self.put_uint(0)
            return
        if size < MAGIC_NUMBER:
            pad = padding4(size + 1)
            self._write(bytes([size]))
        else:
            pad = padding4(size)
            self.put_uint((size << 8) | MAGIC_NUMBER)
        self._write(data)
        if pad:
            self._write(bytes(pad))

    def put_string(self, text: str) -> None:
        self.put_message(text.encode("utf-8"))

    def put_raw_bytes(self, data: bytes) -> None:
        self._write(bytes(data))

    def put_vector(self, items: Optional[Iterable[Any]], kind: Any = None) -> None:
        """Write a boxed vector whose elements are of ``kind`` (inferred if None)."""
        elements = list(items) if items is not None else []
        self.put_crc(CRC_VECTOR)
        self.put_uint(len(elements))
        for index, item in enumerate(elements):
            try:
                self.encode_value(item, kind)
            except TLError as exc:
                raise TLError(f"[{index}]: {exc}") from exc

    def encode_value(self, value: Any, kind: Any = None) -> None:
        """Write ``value`` as TL kind ``kind``; the kind is inferred when None."""
        if value is None:
            raise TLError("value can't be nil")
        marshal_tl = getattr(value, "marshal_tl", None)
        if callable(marshal_tl):
            marshal_tl(self)
            return
        if kind is None:
            kind = _infer_kind(value)
        if isinstance(kind, VectorOf):
            if isinstance(value, (str, bytes, bytearray)):
                raise TLError(f"vector expected, got {type(value).__name__}")
            self.put_vector(value, kind.elem)
            return
        if isinstance(kind, type) or kind is Kind.OBJECT:
            if isinstance(value, TLObject):
                self.encode_object(value)
                return
            raise TLError(f"unsupported type: {type(value).__name__}")
        if kind is Kind.INT32:
            self.put_int(value)
        elif kind is Kind.UINT32:
            self.put_uint(value)
        elif kind is Kind.INT64:
            self.put_long(value)
        elif kind is Kind.DOUBLE:
            self.put_double(value)
        elif kind is Kind.BOOL:
            self.put_bool(bool(value))
        elif kind is Kind.STRING:
            if isinstance(value, (bytes, bytearray)):
                self.put_message(value)
            else:
                self.put_string(value)
        elif kind is Kind.BYTES:
            self.put_message(value)
        else:
            raise TLError(f"unsupported kind: {kind!r}")

    def encode_object(self, obj: Any) -> None:
        """Write a boxed TL object: its crc, then its fields and flags word."""
        if not isinstance(obj, TLObject):
            raise TLError(f"{type(obj).__name__} doesn't implement tl.Object interface")
        marshal_tl = getattr(obj, "marshal_tl", None)
        if callable(marshal_tl):
            marshal_tl(self)
            return

        cls = type(obj)
        flag_index = cls.flag_index
        flags = 0
        pending: list[Any] = []

        for position, spec in enumerate(cls.tl_fields()):
            if flag_index is not None and flag_index == position:
                pending.append(_FLAGS_SLOT)
            value = getattr(obj, spec.name)
            tag = spec.tag
            if tag is None:
                pending.append((value, spec.kind))
                continue
            if tag.ignore:
                continue
            if tag.encoded_in_bitflag and spec.kind is not Kind.BOOL:
                raise TLError(
                    f"field '{spec.name}': only bool values can be encoded in bitflag"
                )
            if not _is_zero(value):
                flags |= 1 << tag.index
                if not tag.encoded_in_bitflag:
                    pending.append((value, spec.kind))

        self.put_crc(cls.crc)
        for entry in pending:
            if entry is _FLAGS_SLOT:
                self.put_uint(flags)
                continue
            value, kind = entry
            self.encode_value(value, kind)


def marshal(obj: Any) -> bytes:
    """Serialise ``obj`` into TL bytes."""
    buffer = io.BytesIO()
    Encoder(buffer).encode_value(obj)
    return buffer.getvalue()