"""Core TL building blocks: constants, errors, field tags, object base and registry."""

from __future__ import annotations

import dataclasses
import enum
import hashlib
import os
from typing import Any, ClassVar, NamedTuple, Optional, Union

WORD_LEN = 4
LONG_LEN = WORD_LEN * 2
DOUBLE_LEN = WORD_LEN * 2
INT128_LEN = WORD_LEN * 4
INT256_LEN = WORD_LEN * 8

MAX_ARRAY_ELEMENTS = 0xFE
MAGIC_NUMBER = 0xFE

CRC_VECTOR = 0x1CB5C415
CRC_FALSE = 0xBC799737
CRC_TRUE = 0x997275B5
CRC_NULL = 0x56730BCC

BITS_IN_BYTE = 8

_BIT_LENGTHS = tuple(1 << n for n in range(3, 12))  # 8 .. 2048

TAG_KIND_KEY = "tl_kind"
TAG_INFO_KEY = "tl_tag"


class TLError(Exception):
    """Base error for TL encoding and decoding."""


class RegisteredObjectNotFoundError(TLError):
    """Raised when a constructor id has no registered object."""

    def __init__(self, crc: int, data: bytes = b"") -> None:
        self.crc = crc
        self.data = data
        super().__init__(f"object with provided crc not registered: 0x{crc:08x}")


class PartialWriteError(TLError):
    """Raised when a stream accepted fewer bytes than were written."""

    def __init__(self, has: int, want: int) -> None:
        self.has = has
        self.want = want
        super().__init__(
            f"write failed: only {has} bytes were written, expected {want}"
        )


class Kind(enum.Enum):
    """Wire kinds of TL values."""

    INT32 = "int32"
    UINT32 = "uint32"
    INT64 = "int64"
    DOUBLE = "double"
    BOOL = "bool"
    STRING = "string"
    BYTES = "bytes"
    OBJECT = "object"


@dataclasses.dataclass(frozen=True)
class VectorOf:
    """Kind of a TL vector whose elements are of kind ``elem``."""

    elem: Any


@dataclasses.dataclass(frozen=True)
class FieldTag:
    """Parsed ``tl`` tag of an object field."""

    index: int = 0
    encoded_in_bitflag: bool = False
    ignore: bool = False
    optional: bool = False
    version: int = 0


def _parse_flag_index(text: str) -> int:
    if text.isdigit():
        value = int(text)
        if value < 32:
            return value
    raise TLError(f"parsing index number '{text}': invalid uint32 value: {text}")


def parse_tag(tag: Optional[str]) -> Optional[FieldTag]:
    """Parse a tag value such as ``"flag:3,encoded_in_bitflags"``.

    Returns None when there is no tag.
    """
    if tag is None:
        return None
    name, *options = tag.split(",")
    if name == "-":
        return FieldTag(ignore=True)

    index = 0
    version = 0
    optional = False
    flag_index_set = False
    if name.startswith("flag2:"):
        index = _parse_flag_index(name[len("flag2:"):])
        optional = True
        flag_index_set = True
        version = 2
    elif name.startswith("flag:"):
        index = _parse_flag_index(name[len("flag:"):])
        optional = True
        flag_index_set = True
        version = 1

    encoded = False
    if "encoded_in_bitflags" in options:
        if not flag_index_set:
            raise TLError("have 'encoded_in_bitflag' option without flag index")
        encoded = True
    if "omitempty" in options:
        optional = True

    return FieldTag(
        index=index,
        encoded_in_bitflag=encoded,
        optional=optional,
        version=version,
    )


KindSpec = Union[Kind, VectorOf, type]


def _check_kind(kind: Any) -> None:
    if isinstance(kind, (Kind, type)):
        return
    if isinstance(kind, VectorOf):
        _check_kind(kind.elem)
        return
    raise TypeError(f"unsupported TL kind: {kind!r}")


def tl_field(
    kind: KindSpec,
    tag: Optional[str] = None,
    default: Any = dataclasses.MISSING,
    default_factory: Any = dataclasses.MISSING,
) -> Any:
    """Declare a dataclass field carrying its TL kind and parsed tag."""
    _check_kind(kind)
    info = parse_tag(tag)
    if info is not None and info.encoded_in_bitflag and kind is not Kind.BOOL:
        raise TLError("only bool values can be encoded in bitflag")
    metadata = {TAG_KIND_KEY: kind, TAG_INFO_KEY: info}
    return dataclasses.field(
        default=default, default_factory=default_factory, metadata=metadata
    )


class FieldSpec(NamedTuple):
    """Name, kind and tag of one TL field."""

    name: str
    kind: Any
    tag: Optional[FieldTag]


class TLObject:
    """Base of every TL constructor.

    Subclasses set ``crc`` and, when they carry optional fields, the
    position of the flags word in ``flag_index``.
    """

    crc: ClassVar[int] = 0
    flag_index: ClassVar[Optional[int]] = None

    @classmethod
    def tl_fields(cls) -> list[FieldSpec]:
        """Fields declared with :func:`tl_field`, in declaration order."""
        if not dataclasses.is_dataclass(cls):
            return []
        return [
            FieldSpec(f.name, f.metadata[TAG_KIND_KEY], f.metadata.get(TAG_INFO_KEY))
            for f in dataclasses.fields(cls)
            if TAG_KIND_KEY in f.metadata
        ]

    @classmethod
    def has_flag_fields(cls) -> bool:
        """True if any field has a tag that is not ignored."""
        return any(
            spec.tag is not None and not spec.tag.ignore for spec in cls.tl_fields()
        )


@dataclasses.dataclass(frozen=True)
class PseudoTrue(TLObject):
    """Stand-in object for a bare ``true``."""

    crc: ClassVar[int] = CRC_TRUE


@dataclasses.dataclass(frozen=True)
class PseudoFalse(TLObject):
    """Stand-in object for a bare ``false``."""

    crc: ClassVar[int] = CRC_FALSE


@dataclasses.dataclass(frozen=True)
class PseudoNil(TLObject):
    """Stand-in object for ``null``."""

    crc: ClassVar[int] = CRC_NULL

    def unwrap(self) -> None:
        return None


@dataclasses.dataclass
class WrappedSlice(TLObject):
    """A decoded vector held where an object was expected."""

    crc: ClassVar[int] = CRC_VECTOR
    data: Any = None

    def unwrap(self) -> Any:
        return self.data


def unwrap_native_types(obj: Any) -> Any:
    """Turn pseudo objects into native Python values."""
    if isinstance(obj, PseudoTrue):
        return True
    if isinstance(obj, PseudoFalse):
        return False
    if isinstance(obj, PseudoNil):
        return None
    if isinstance(obj, WrappedSlice):
        return obj.unwrap()
    return obj


_object_by_crc: dict[int, type] = {}
_enum_crcs: set[int] = set()


def _as_class(obj: Any) -> type:
    if obj is None:
        raise TLError("object is nil")
    return obj if isinstance(obj, type) else type(obj)


def register_objects(*args: Any) -> None:
    """Register TL object classes (or instances) by their crc."""
    for obj in args:
        cls = _as_class(obj)
        existing = _object_by_crc.get(cls.crc)
        if existing is not None:
            raise TLError(
                f"object with that crc already registered as "
                f"{existing.__name__}: 0x{cls.crc:08x}"
            )
        _object_by_crc[cls.crc] = cls


def register_enums(*args: Any) -> None:
    """Register field-less enum constructors."""
    for obj in args:
        cls = _as_class(obj)
        if cls.crc in _enum_crcs:
            raise TLError("enum with that crc already registered")
        _object_by_crc[cls.crc] = cls
        _enum_crcs.add(cls.crc)


def lookup_object(crc: int) -> Optional[type]:
    """Class registered for ``crc``, or None."""
    return _object_by_crc.get(crc)


def is_enum(crc: int) -> bool:
    return crc in _enum_crcs


def padding4(size: int) -> int:
    """Bytes needed to pad ``size`` up to a multiple of four."""
    return (-size) & 3


def big_int_bytes(value: int, bitsize: int) -> bytes:
    """Big-endian bytes of ``abs(value)`` left-padded to ``bitsize`` bits."""
    if bitsize not in _BIT_LENGTHS:
        raise TLError(f"bitsize not squaring by 2: bitsize {bitsize}")
    magnitude = abs(value)
    raw = magnitude.to_bytes((magnitude.bit_length() + 7) // 8, "big")
    width = bitsize // 8
    if len(raw) > width:
        raise TLError(
            f"bitsize too small: have {bitsize}, want at least {len(raw) * 8}"
        )
    return raw.rjust(width, b"\x00")


def sha1_bytes(data: bytes) -> bytes:
    return hashlib.sha1(data).digest()


def random_bytes(size: int) -> bytes:
    return os.urandom(size)


@dataclasses.dataclass
class Int128:
    """A 128-bit big-endian integer on the wire."""

    value: int = 0

    def marshal_tl(self, encoder: Any) -> None:
        encoder.put_raw_bytes(big_int_bytes(self.value, INT128_LEN * BITS_IN_BYTE))

    def unmarshal_tl(self, decoder: Any) -> None:
        self.value = int.from_bytes(decoder.pop_raw_bytes(INT128_LEN), "big")

    def __int__(self) -> int:
        return self.value


@dataclasses.dataclass
class Int256:
    """A 256-bit big-endian integer on the wire."""

    value: int = 0

    def marshal_tl(self, encoder: Any) -> None:
        encoder.put_raw_bytes(big_int_bytes(self.value, INT256_LEN * BITS_IN_BYTE))

    def unmarshal_tl(self, decoder: Any) -> None:
        self.value = int.from_bytes(decoder.pop_raw_bytes(INT256_LEN), "big")

    def __int__(self) -> int:
        return self.value


def random_int128() -> Int128:
    return Int128(int.from_bytes(random_bytes(INT128_LEN), "big"))


def random_int256() -> Int256:
    return Int256(int.from_bytes(random_bytes(INT256_LEN), "big"))