"""Deserialisation of TL values and objects from a byte buffer."""

from __future__ import annotations

import dataclasses
import struct
from typing import Any, Optional

from mtwire.tl_types import (
    CRC_FALSE,
    CRC_NULL,
    CRC_TRUE,
    CRC_VECTOR,
    DOUBLE_LEN,
    LONG_LEN,
    MAGIC_NUMBER,
    TAG_KIND_KEY,
    WORD_LEN,
    Kind,
    PseudoFalse,
    PseudoNil,
    PseudoTrue,
    RegisteredObjectNotFoundError,
    TLError,
    TLObject,
    VectorOf,
    WrappedSlice,
    is_enum,
    lookup_object,
)


class _EndOfData(TLError):
    """No bytes were left to read."""

    def __init__(self) -> None:
        super().__init__("EOF")


def _zero(kind: Any) -> Any:
    if kind is Kind.BOOL:
        return False
    if kind in (Kind.INT32, Kind.UINT32, Kind.INT64):
        return 0
    if kind is Kind.DOUBLE:
        return 0.0
    if kind is Kind.STRING:
        return ""
    if kind is Kind.BYTES:
        return b""
    return None


def _build(cls: type, values: dict[str, Any]) -> Any:
    """Instantiate ``cls`` from decoded values, zero-filling the rest."""
    if not dataclasses.is_dataclass(cls):
        obj = cls()
        for name, value in values.items():
            setattr(obj, name, value)
        return obj
    kwargs: dict[str, Any] = {}
    for field in dataclasses.fields(cls):
        if not field.init:
            continue
        if field.name in values:
            kwargs[field.name] = values[field.name]
        elif (
            field.default is dataclasses.MISSING
            and field.default_factory is dataclasses.MISSING
        ):
            kwargs[field.name] = _zero(field.metadata.get(TAG_KIND_KEY))
    return cls(**kwargs)


class Decoder:
    """Reads TL values from a complete in-memory message."""

    def __init__(self, data: Any) -> None:
        if hasattr(data, "read"):
            data = data.read()
        self._data = bytes(data)
        self._pos = 0
        self._expected_types: list[Any] = []

    def expect_types_in_interface(self, *args: Any) -> None:
        """Hint the kinds (``VectorOf``) of bare vectors met where an object is expected."""
        self._expected_types = list(args)

    def _read(self, size: int) -> bytes:
        remaining = len(self._data) - self._pos
        if remaining <= 0:
            raise _EndOfData()
        if remaining < size:
            raise TLError(
                f"buffer weren't fully read: want {size} bytes, got {remaining}"
            )
        chunk = self._data[self._pos : self._pos + size]
        self._pos += size
        return chunk

    def _unread(self, count: int) -> None:
        self._pos = max(0, self._pos - count)

    def pop_long(self) -> int:
        return struct.unpack("<q", self._read(LONG_LEN))[0]

    def pop_double(self) -> float:
        return struct.unpack("<d", self._read(DOUBLE_LEN))[0]

    def pop_uint(self) -> int:
        return struct.unpack("<I", self._read(WORD_LEN))[0]

    def pop_int(self) -> int:
        return struct.unpack("<i", self._read(WORD_LEN))[0]

    def pop_crc(self) -> int:
        return self.pop_uint()

    def pop_raw_bytes(self, size: int) -> bytes:
        if size < 0:
            return b""
        return self._read(size)

    def pop_bool(self) -> bool:
        crc = self.pop_uint()
        if crc == CRC_TRUE:
            return True
        if crc == CRC_FALSE:
            return False
        raise TLError(f"not a bool value, actually: 0x{crc:x}")

    def pop_null(self) -> None:
        crc = self.pop_uint()
        if crc != CRC_NULL:
            raise TLError(f"not a null value, actually: 0x{crc:x}")

    def pop_message(self) -> bytes:
        """Read a length-prefixed, zero-padded byte string."""
        first = self._read(1)[0]
        if first != MAGIC_NUMBER:
            size = first
            prefix_len = 1
        else:
            try:
                rest = self._read(WORD_LEN - 1)
            except TLError as exc:
                raise TLError(
                    f"reading last {WORD_LEN - 1} bytes of message size: {exc}"
                ) from exc
            size = int.from_bytes(rest, "little")
            prefix_len = WORD_LEN

        try:
            payload = self._read(size)
        except TLError as exc:
            raise TLError(f"reading message data with len of {size}: {exc}") from exc

        read_len = prefix_len + size
        if read_len % WORD_LEN:
            pad = WORD_LEN - read_len % WORD_LEN
            try:
                void = self._read(pad)
            except TLError as exc:
                raise TLError(f"reading {pad} last void bytes: {exc}") from exc
            if any(void):
                raise TLError(
                    f"some of void bytes doesn't equal zero: {void!r}"
                )
        return payload

    def pop_vector(self, kind: Any) -> list:
        """Read a boxed vector whose elements are of ``kind``."""
        return self._pop_vector(kind, ignore_crc=False)

    def _pop_vector(self, kind: Any, ignore_crc: bool) -> list:
        if kind is None:
            raise TLError("vector element kind must be given for decoding")
        if not ignore_crc:
            try:
                crc = self.pop_crc()
            except TLError as exc:
                raise TLError(f"read crc: {exc}") from exc
            if crc != CRC_VECTOR:
                raise TLError(
                    f"not a vector: 0x{crc:08x}, want: 0x{CRC_VECTOR:08x}"
                )
        try:
            size = self.pop_uint()
        except TLError as exc:
            raise TLError(f"read vector size: {exc}") from exc
        return [self.decode_value(kind) for _ in range(size)]

    def get_rest_of_message(self) -> bytes:
        rest = self._data[self._pos :]
        self._pos = len(self._data)
        return rest

    def dump_without_read(self) -> bytes:
        return self._data[self._pos :]

    def decode_value(self, kind: Any) -> Any:
        """Read one value of TL kind ``kind``."""
        if isinstance(kind, type):
            if callable(getattr(kind, "unmarshal_tl", None)):
                obj = _build(kind, {})
                obj.unmarshal_tl(self)
                return obj
            if issubclass(kind, TLObject):
                return self.decode_object(kind, False)
            raise TLError(
                f"{kind.__name__} must implement tl.Object for decoding"
            )
        if isinstance(kind, VectorOf):
            return self.pop_vector(kind.elem)
        if kind is Kind.OBJECT:
            try:
                return self.decode_registered_object()
            except RegisteredObjectNotFoundError:
                raise
            except TLError as exc:
                raise TLError(f"decode interface: {exc}") from exc
        if kind is Kind.DOUBLE:
            return self.pop_double()
        if kind is Kind.INT64:
            return self.pop_long()
        if kind is Kind.UINT32:
            return self.pop_uint()
        if kind is Kind.INT32:
            return self.pop_int()
        if kind is Kind.BOOL:
            return self.pop_bool()
        if kind is Kind.STRING:
            return self.pop_message().decode("utf-8", "surrogateescape")
        if kind is Kind.BYTES:
            return self.pop_message()
        raise TLError(f"unsupported kind: {kind!r}")

    def _pop_bitset(self, what: str) -> int:
        try:
            return self.pop_uint()
        except TLError as exc:
            raise TLError(f"{what}: {exc}") from exc

    def decode_object(self, cls: type, ignore_crc: bool = False) -> Any:
        """Read the fields of ``cls`` (after its crc unless ``ignore_crc``)."""
        if not ignore_crc:
            try:
                crc = self.pop_crc()
            except TLError as exc:
                raise TLError(f"read crc: {exc}") from exc
            if crc != cls.crc:
                raise TLError(
                    f"invalid crc code: 0x{crc:08x}, want: 0x{cls.crc:08x}"
                )

        fields = cls.tl_fields()
        flag_index: Optional[int] = cls.flag_index
        if cls.has_flag_fields() and (flag_index is None or flag_index < 0):
            raise TLError(
                f"type {cls.__name__} has bit flag tags but no flag index"
            )

        flags_a = flags_b = 0
        a_parsed = b_parsed = False
        if cls.__name__ == "UserFull":
            flags_a = self._pop_bitset(f"reading bitset({cls.__name__})")
            flags_b = self._pop_bitset("read bitset")
            a_parsed = b_parsed = True

        values: dict[str, Any] = {}
        for position, spec in enumerate(fields):
            if position == flag_index and not a_parsed:
                flags_a = self._pop_bitset(f"reading bitset({cls.__name__})")
                a_parsed = True

            tag = spec.tag
            if tag is not None:
                if tag.ignore:
                    continue
                if tag.version == 1 and not flags_a & (1 << tag.index):
                    continue
                if tag.version == 2:
                    if a_parsed and not b_parsed:
                        flags_b = self._pop_bitset("read bitset")
                        b_parsed = True
                    if not flags_b & (1 << tag.index):
                        continue
                if tag.encoded_in_bitflag:
                    values[spec.name] = True
                    continue

            try:
                values[spec.name] = self.decode_value(spec.kind)
            except RegisteredObjectNotFoundError:
                raise
            except TLError as exc:
                raise TLError(
                    f"decode object: {cls.__name__}.{spec.name}: {exc}"
                ) from exc

        if flag_index is not None and flag_index == len(fields) and not a_parsed:
            self._pop_bitset(f"reading bitset({cls.__name__})")

        return _build(cls, values)

    def decode_registered_object(self) -> Any:
        """Read a boxed object of any registered type, or a pseudo object."""
        try:
            crc = self.pop_crc()
        except TLError as exc:
            raise TLError(f"reading crc: {exc}") from exc

        if crc == CRC_VECTOR:
            if not self._expected_types:
                length = 0
                try:
                    length = self.pop_uint()
                    vec_crc = self.pop_crc()
                except _EndOfData:
                    if length == 0:
                        return PseudoNil()
                    raise
                if length == 0:
                    return PseudoNil()
                if vec_crc in (CRC_TRUE, CRC_FALSE):
                    self._expected_types.append(VectorOf(Kind.BOOL))
                else:
                    self._expected_types.append(VectorOf(Kind.OBJECT))
                    crc = vec_crc
                self._unread(2 * WORD_LEN)

            expected = self._expected_types.pop(0)
            if not isinstance(expected, VectorOf):
                raise TLError(f"expected type is not a vector: {expected!r}")
            items = self._pop_vector(expected.elem, ignore_crc=True)

            if expected.elem is Kind.BOOL:
                if items:
                    return PseudoTrue() if items[0] else PseudoFalse()
            elif expected.elem is Kind.OBJECT:
                if not items:
                    return PseudoNil()
                if lookup_object(crc) is not None:
                    return WrappedSlice(list(items))
            else:
                return WrappedSlice(items)
        elif crc == CRC_FALSE:
            return PseudoFalse()
        elif crc == CRC_TRUE:
            return PseudoTrue()
        elif crc == CRC_NULL:
            return PseudoNil()

        cls = lookup_object(crc)
        if cls is None:
            raise RegisteredObjectNotFoundError(crc, self.dump_without_read())

        if callable(getattr(cls, "unmarshal_tl", None)):
            obj = _build(cls, {})
            obj.unmarshal_tl(self)
            return obj

        if is_enum(crc):
            return _build(cls, {})

        try:
            return self.decode_object(cls, True)
        except RegisteredObjectNotFoundError:
            raise
        except TLError as exc:
            raise TLError(f"decode registered object {cls.__name__}: {exc}") from exc


def decode(data: bytes, cls: Any) -> Any:
    """Decode ``data`` as a value of kind ``cls`` (usually a TL object class)."""
    if cls is None:
        raise TLError("can't unmarshal to nil value")
    decoder = Decoder(data)
    try:
        return decoder.decode_value(cls)
    except RegisteredObjectNotFoundError:
        raise
    except TLError as exc:
        name = getattr(cls, "__name__", repr(cls))
        raise TLError(f"decode {name}: {exc}") from exc


def decode_unknown_object(data: bytes, *args: Any) -> Any:
    """Decode a boxed object whose type is known only from its crc."""
    decoder = Decoder(data)
    if args:
        decoder.expect_types_in_interface(*args)
    try:
        return decoder.decode_registered_object()
    except RegisteredObjectNotFoundError:
        raise
    except TLError as exc:
        raise TLError(f"decoding predicted object: {exc}") from exc