"""TCP connections and the transport that frames protocol messages over them."""

from __future__ import annotations

import dataclasses
import socket
import time
from typing import Any, Optional, Protocol

from mtwire.messages import (
    Encrypted,
    MessageError,
    MessageInformator,
    Unencrypted,
    deserialize_unencrypted,
)
from mtwire.mode import ModeError, Variant, new_mode
from mtwire.tl_types import DOUBLE_LEN, WORD_LEN

_DIAL_RETRY_DELAY = 2.0


class TransportError(Exception):
    """The connection or the transport failed."""


class ErrCode(TransportError):
    """The server answered with a bare four-byte error code."""

    def __init__(self, code: int) -> None:
        self.code = code
        super().__init__(f"code {code}")


class Cipher(Protocol):
    """Turns encrypted messages into wire bytes and back."""

    def serialize(self, msg: Encrypted, informator: Any, seq_no: int) -> bytes: ...

    def deserialize(self, data: bytes, auth_key: bytes) -> Encrypted: ...


@dataclasses.dataclass
class TCPConnConfig:
    """Where and how to connect; ``host`` is ``ip:port`` or ``[ipv6]:port``."""

    host: str
    ipv6: bool = False
    timeout: float = 60.0


def _split_host_port(address: str) -> tuple[str, int]:
    host, sep, port = address.rpartition(":")
    if not sep:
        raise TransportError(f"resolving tcp: missing port in address {address!r}")
    host = host.strip("[]")
    try:
        return host, int(port)
    except ValueError as exc:
        raise TransportError(f"resolving tcp: invalid port {port!r}") from exc


def _dial(info: tuple, timeout: float) -> socket.socket:
    family, kind, proto, _, addr = info
    sock = socket.socket(family, kind, proto)
    sock.settimeout(timeout if timeout > 0 else None)
    try:
        sock.connect(addr)
    except OSError:
        sock.close()
        raise
    sock.setsockopt(socket.SOL_SOCKET, socket.SO_KEEPALIVE, 1)
    return sock


class TCPConnection:
    """A TCP stream whose reads return exactly the number of bytes asked for."""

    def __init__(self, config: TCPConnConfig) -> None:
        self.timeout = config.timeout
        self._closed = False
        host, port = _split_host_port(config.host)
        family = socket.AF_UNSPEC
        if config.ipv6 and "." not in config.host:
            family = socket.AF_INET6
        try:
            infos = socket.getaddrinfo(host, port, family, socket.SOCK_STREAM)
        except socket.gaierror as exc:
            raise TransportError(f"resolving tcp: {exc}") from exc
        try:
            try:
                self._sock = _dial(infos[0], self.timeout)
            except socket.timeout:
                time.sleep(_DIAL_RETRY_DELAY)
                self._sock = _dial(infos[0], self.timeout)
        except OSError as exc:
            raise TransportError(f"dialing tcp: {exc}") from exc

    def read(self, size: int) -> bytes:
        """Read ``size`` bytes; EOFError if the peer closed before sending any."""
        if self._closed:
            raise TransportError("read/write on closed pipe: required to reconnect!")
        self._sock.settimeout(self.timeout if self.timeout > 0 else None)
        buffer = bytearray()
        try:
            while len(buffer) < size:
                chunk = self._sock.recv(size - len(buffer))
                if not chunk:
                    break
                buffer += chunk
        except socket.timeout as exc:
            raise TransportError(f"i/o timeout: required to reconnect!") from exc
        except OSError as exc:
            raise TransportError(f"unexpected error: {exc}") from exc
        if size and not buffer:
            raise EOFError("EOF")
        if len(buffer) < size:
            raise TransportError("unexpected error: unexpected EOF")
        return bytes(buffer)

    def write(self, data: bytes) -> int:
        self._sock.sendall(bytes(data))
        return len(data)

    def close(self) -> None:
        self._closed = True
        self._sock.close()

    def __enter__(self) -> "TCPConnection":
        return self

    def __exit__(self, *exc_info: Any) -> None:
        self.close()


def is_packet_encrypted(data: bytes) -> bool:
    """Whether the packet starts with a non-zero auth key id."""
    if len(data) < DOUBLE_LEN:
        return False
    return int.from_bytes(data[:DOUBLE_LEN], "little") != 0


class Transport:
    """Sends and receives protocol messages over a framed connection."""

    def __init__(
        self,
        informator: MessageInformator,
        conn: Any,
        variant: Variant = Variant.ABRIDGED,
        cipher: Optional[Cipher] = None,
    ) -> None:
        self.informator = informator
        self.conn = conn
        self.cipher = cipher
        try:
            self.mode = new_mode(variant, conn)
        except ModeError as exc:
            raise TransportError(f"setup mode: {exc}") from exc

    def close(self) -> None:
        self.conn.close()

    def __enter__(self) -> "Transport":
        return self

    def __exit__(self, *exc_info: Any) -> None:
        self.close()

    def write_msg(self, msg: Any, seq_no: int = 0) -> None:
        """Serialise and send one message."""
        if isinstance(msg, Unencrypted):
            data = msg.serialize()
        elif isinstance(msg, Encrypted):
            if self.cipher is None:
                raise TransportError("serializing message: no cipher for encrypted messages")
            data = self.cipher.serialize(msg, self.informator, seq_no)
        else:
            raise TransportError(
                f"supported only mtproto predefined messages, got {type(msg).__name__}"
            )
        try:
            self.mode.write_msg(data)
        except (ModeError, OSError, TransportError) as exc:
            raise TransportError(f"sending request: {exc}") from exc

    def read_msg(self) -> Any:
        """Receive one message; raises ``ErrCode`` for bare server error codes."""
        try:
            data = self.mode.read_msg()
        except EOFError:
            raise
        except (ModeError, OSError, TransportError) as exc:
            raise TransportError(f"reading message: {exc}") from exc

        if len(data) == WORD_LEN:
            raise ErrCode(int.from_bytes(data, "little"))

        if is_packet_encrypted(data):
            if self.cipher is None:
                raise TransportError("parsing message: no cipher for encrypted messages")
            msg = self.cipher.deserialize(data, self.informator.auth_key)
        else:
            try:
                msg = deserialize_unencrypted(data)
            except MessageError as exc:
                raise TransportError(f"parsing message: {exc}") from exc

        mod = msg.msg_id & 3
        if mod not in (1, 3):
            raise TransportError(f"wrong bits of message_id: {mod}")
        return msg


def open_transport(
    informator: MessageInformator,
    config: TCPConnConfig,
    variant: Variant = Variant.ABRIDGED,
    cipher: Optional[Cipher] = None,
) -> Transport:
    """Connect over TCP and set up a transport on the new connection."""
    try:
        conn = TCPConnection(config)
    except TransportError as exc:
        raise TransportError(f"setup connection: {exc}") from exc
    try:
        return Transport(informator, conn, variant, cipher)
    except TransportError:
        conn.close()
        raise