import dataclasses
import struct

import pytest

from mtwire.messages import (
    MessageError,
    Unencrypted,
    deserialize_unencrypted,
    serialize_packet,
)


@dataclasses.dataclass
class FakeClient:
    session_id: int = 0
    seq_no: int = 0
    server_salt: int = 0
    auth_key: bytes = b""


GOOD_ID = (1 << 32) | 1


def test_unencrypted_layout():
    body = b"\x01\x02\x03\x04"
    data = Unencrypted(msg=body, msg_id=GOOD_ID).serialize()
    assert data[:8] == bytes(8)
    assert struct.unpack("<q", data[8:16])[0] == GOOD_ID
    assert struct.unpack("<i", data[16:20])[0] == len(body)
    assert data[20:] == body


def test_unencrypted_round_trip():
    original = Unencrypted(msg=b"payload!", msg_id=GOOD_ID + 2)
    parsed = deserialize_unencrypted(original.serialize())
    assert parsed == original
    assert parsed.seq_no == original.seq_no


def test_unencrypted_empty_body_round_trip():
    original = Unencrypted(msg=b"", msg_id=GOOD_ID)
    assert deserialize_unencrypted(original.serialize()).msg == b""


def test_deserialize_rejects_bad_msg_id_bits():
    data = Unencrypted(msg=b"abcd", msg_id=1 << 32).serialize()
    with pytest.raises(MessageError, match="wrong bits"):
        deserialize_unencrypted(data)


def test_deserialize_rejects_length_mismatch():
    data = Unencrypted(msg=b"abcd", msg_id=GOOD_ID).serialize() + b"\x00"
    with pytest.raises(MessageError, match="defined size"):
        deserialize_unencrypted(data)


def test_deserialize_rejects_short_data():
    with pytest.raises(MessageError):
        deserialize_unencrypted(b"\x00" * 10)


def test_serialize_packet_fields():
    client = FakeClient(session_id=77, server_salt=-5)
    body = b"\xaa\xbb\xcc\xdd"
    packet = serialize_packet(client, body, GOOD_ID, 3)
    assert len(packet) == 32 + len(body)
    salt, session, msg_id, seq, length = struct.unpack("<qqqii", packet[:32])
    assert (salt, session, msg_id, seq, length) == (-5, 77, GOOD_ID, 3, len(body))
    assert packet[32:] == body


def test_serialize_packet_unsigned_salt_matches_signed():
    body = b""
    signed = serialize_packet(FakeClient(server_salt=-1), body, GOOD_ID, 0)
    unsigned = serialize_packet(FakeClient(server_salt=2**64 - 1), body, GOOD_ID, 0)
    assert signed == unsigned
    assert signed[:8] == b"\xff" * 8