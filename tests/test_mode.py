import io

import pytest

from mtwire.mode import (
    Abridged,
    ChecksumMismatchError,
    Full,
    Intermediate,
    Mode,
    ModeError,
    NotMultipleError,
    Variant,
    detect,
    get_variant,
    new_mode,
)


class FakeConn:
    def __init__(self, incoming=b""):
        self.incoming = io.BytesIO(incoming)
        self.out = bytearray()

    def read(self, size):
        return self.incoming.read(size)

    def write(self, data):
        self.out.extend(data)
        return len(data)


def test_abridged_short_frame_bytes():
    conn = FakeConn()
    Abridged(conn).write_msg(b"abcdefgh")
    assert bytes(conn.out) == b"\x02abcdefgh"


@pytest.mark.parametrize("length", [0, 4, 124, 508, 2048])
def test_abridged_round_trip(length):
    payload = bytes(i % 256 for i in range(length))
    out_conn = FakeConn()
    Abridged(out_conn).write_msg(payload)
    assert Abridged(FakeConn(bytes(out_conn.out))).read_msg() == payload


def test_abridged_long_frame_uses_marker():
    conn = FakeConn()
    Abridged(conn).write_msg(bytes(508))
    assert conn.out[0] == 0x7F
    assert len(conn.out) == 4 + 508


def test_abridged_rejects_unaligned():
    with pytest.raises(NotMultipleError) as info:
        Abridged(FakeConn()).write_msg(b"abc")
    assert info.value.length == 3
    assert "(got 3)" in str(info.value)


def test_abridged_truncated_body():
    with pytest.raises(ModeError):
        Abridged(FakeConn(b"\x02abcd")).read_msg()


def test_read_on_closed_stream_raises_eof():
    with pytest.raises(EOFError):
        Abridged(FakeConn()).read_msg()
    with pytest.raises(EOFError):
        Intermediate(FakeConn()).read_msg()


@pytest.mark.parametrize("payload", [b"", b"x", b"hello world", bytes(1000)])
def test_intermediate_round_trip(payload):
    out_conn = FakeConn()
    Intermediate(out_conn).write_msg(payload)
    assert Intermediate(FakeConn(bytes(out_conn.out))).read_msg() == payload


def test_intermediate_header_is_length():
    conn = FakeConn()
    Intermediate(conn).write_msg(b"hello")
    assert int.from_bytes(conn.out[:4], "little") == 5
    assert bytes(conn.out[4:]) == b"hello"


def test_intermediate_rejects_huge_size():
    header = ((1 << 30) + 1).to_bytes(4, "little")
    with pytest.raises(ModeError):
        Intermediate(FakeConn(header)).read_msg()


def test_full_round_trip_and_sequence():
    conn = FakeConn()
    full = Full(conn)
    full.write_msg(b"first")
    first_len = len(conn.out)
    full.write_msg(b"second")
    data = bytes(conn.out)
    assert int.from_bytes(data[4:8], "little") == 0
    assert int.from_bytes(data[first_len + 4 : first_len + 8], "little") == 1
    reader = Full(FakeConn(data))
    assert reader.read_msg() == b"first"
    assert reader.read_msg() == b"second"


def test_full_frame_length_field():
    conn = FakeConn()
    Full(conn).write_msg(b"abcd")
    assert int.from_bytes(conn.out[:4], "little") == len(conn.out)


def test_full_checksum_mismatch():
    conn = FakeConn()
    Full(conn).write_msg(b"payload")
    tampered = bytearray(conn.out)
    tampered[9] ^= 0xFF
    with pytest.raises(ChecksumMismatchError):
        Full(FakeConn(bytes(tampered))).read_msg()


def test_full_rejects_tiny_size():
    with pytest.raises(ModeError):
        Full(FakeConn((4).to_bytes(4, "little"))).read_msg()


@pytest.mark.parametrize(
    "variant, announcement, cls",
    [
        (Variant.ABRIDGED, b"\xef", Abridged),
        (Variant.INTERMEDIATE, b"\xee\xee\xee\xee", Intermediate),
        (Variant.FULL, b"", Full),
    ],
)
def test_new_mode_announces(variant, announcement, cls):
    conn = FakeConn()
    mode = new_mode(variant, conn)
    assert isinstance(mode, cls)
    assert bytes(conn.out) == announcement
    assert get_variant(mode) == variant


def test_new_mode_errors():
    with pytest.raises(ModeError):
        new_mode(Variant.ABRIDGED, None)
    with pytest.raises(ModeError):
        new_mode(Variant.PADDED_INTERMEDIATE, FakeConn())
    with pytest.raises(ModeError):
        new_mode(99, FakeConn())


def test_detect_modes():
    abridged = detect(FakeConn(b"\xef\x01abcd"))
    assert get_variant(abridged) == Variant.ABRIDGED
    assert abridged.read_msg() == b"abcd"
    intermediate = detect(
        FakeConn(b"\xee\xee\xee\xee" + (2).to_bytes(4, "little") + b"hi")
    )
    assert get_variant(intermediate) == Variant.INTERMEDIATE
    assert intermediate.read_msg() == b"hi"


def test_detect_errors():
    with pytest.raises(ModeError):
        detect(FakeConn(b"\xee\xee\x00\xee"))
    with pytest.raises(ModeError):
        detect(FakeConn(b"\x01"))
    with pytest.raises(ModeError):
        detect(None)


def test_detect_then_read_message():
    sender = new_mode(Variant.INTERMEDIATE, FakeConn())
    sender.write_msg(b"ping")
    receiver = detect(FakeConn(bytes(sender.conn.out)))
    assert receiver.read_msg() == b"ping"


class CustomMode(Mode):
    def write_msg(self, msg):
        self.conn.write(msg)

    def read_msg(self):
        return self.conn.read(4)


def test_get_variant_rejects_custom_mode():
    with pytest.raises(ModeError):
        get_variant(CustomMode(FakeConn()))