"""Plain and encrypted message envelopes and their serialisation."""

from __future__ import annotations

import dataclasses
import io
from typing import Protocol

from mtwire.tl_decoder import Decoder
from mtwire.tl_encoder import Encoder
from mtwire.tl_types import LONG_LEN, WORD_LEN, TLError

_UNENCRYPTED_HEADER = LONG_LEN + LONG_LEN + WORD_LEN


class MessageError(Exception):
    """A message envelope could not be built or parsed."""


class MessageInformator(Protocol):
    """Session details needed to serialise a message."""

    session_id: int
    seq_no: int
    server_salt: int
    auth_key: bytes


@dataclasses.dataclass
class Encrypted:
    """A message that travels inside an encrypted envelope."""

    msg: bytes = b""
    msg_id: int = 0
    auth_key_hash: bytes = b""
    salt: int = 0
    session_id: int = 0
    seq_no: int = 0
    msg_key: bytes = b""


@dataclasses.dataclass
class Unencrypted:
    """A message sent in the clear, used before an auth key exists."""

    msg: bytes = b""
    msg_id: int = 0

    @property
    def seq_no(self) -> int:
        return 0

    def serialize(self) -> bytes:
        """Zero auth-key id, message id, length and body."""
        buffer = io.BytesIO()
        encoder = Encoder(buffer)
        encoder.put_long(0)
        encoder.put_long(self.msg_id)
        encoder.put_int(len(self.msg))
        encoder.put_raw_bytes(self.msg)
        return buffer.getvalue()


def _check_msg_id(msg_id: int) -> None:
    mod = msg_id & 3
    if mod not in (1, 3):
        raise MessageError(f"wrong bits of message_id: 0x{mod:x}")


def deserialize_unencrypted(data: bytes) -> Unencrypted:
    """Parse a plain message, checking its id bits and declared length."""
    decoder = Decoder(data)
    try:
        decoder.pop_raw_bytes(LONG_LEN)
        msg_id = decoder.pop_long()
    except TLError as exc:
        raise MessageError(f"reading message header: {exc}") from exc
    _check_msg_id(msg_id)

    try:
        message_len = decoder.pop_uint()
    except TLError as exc:
        raise MessageError(f"reading message length: {exc}") from exc
    if len(data) - _UNENCRYPTED_HEADER != message_len:
        raise MessageError(
            f"message not equal defined size: have {len(data)}, want {message_len}"
        )
    return Unencrypted(msg=decoder.get_rest_of_message(), msg_id=msg_id)


def serialize_packet(
    client: MessageInformator, msg: bytes, message_id: int, seq_no: int
) -> bytes:
    """Inner plaintext of an encrypted message: salt, session, id, seqno, body."""
    buffer = io.BytesIO()
    encoder = Encoder(buffer)
    salt = client.server_salt & 0xFFFFFFFFFFFFFFFF
    encoder.put_raw_bytes(salt.to_bytes(LONG_LEN, "little"))
    encoder.put_long(client.session_id)
    encoder.put_long(message_id)
    encoder.put_int(seq_no)
    encoder.put_int(len(msg))
    encoder.put_raw_bytes(msg)
    return buffer.getvalue()