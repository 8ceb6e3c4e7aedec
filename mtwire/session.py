"""Session records, their storage and their string and token encodings."""

from __future__ import annotations

import abc
import base64
import binascii
import dataclasses
import re
from typing import Any, Mapping, Optional

STRING_SESSION_PREFIX = "1BvX"

_B64_URL_RAW = re.compile(r"[A-Za-z0-9_-]*")
_DECIMAL = re.compile(r"[+-]?[0-9]+")
_INT32_MIN = -(1 << 31)
_INT32_MAX = (1 << 31) - 1
_UINT64_MASK = (1 << 64) - 1


class SessionError(Exception):
    """A session could not be stored, loaded or parsed."""


class InvalidSessionError(SessionError):
    """A session string is malformed."""

    def __init__(
        self, message: str = "the session string is invalid/has been tampered with"
    ) -> None:
        super().__init__(message)


@dataclasses.dataclass
class Session:
    """Auth key, its hash, server salt and home server of one account."""

    key: bytes = b""
    key_hash: bytes = b""
    salt: int = 0
    hostname: str = ""
    app_id: int = 0


class SessionLoader(abc.ABC):
    """Storage a session can be loaded from and stored to."""

    @property
    @abc.abstractmethod
    def path(self) -> str:
        """Where the session lives."""

    @property
    @abc.abstractmethod
    def key(self) -> str:
        """Key the storage is protected with."""

    @abc.abstractmethod
    def load(self) -> Optional[Session]:
        """The stored session, or None if nothing is stored."""

    @abc.abstractmethod
    def store(self, session: Session) -> None:
        """Replace the stored session."""

    @abc.abstractmethod
    def delete(self) -> None:
        """Forget the stored session."""


class InMemorySessionLoader(SessionLoader):
    """Keeps the session in memory only."""

    def __init__(self) -> None:
        self._session: Optional[Session] = None

    @property
    def path(self) -> str:
        return ":memory:"

    @property
    def key(self) -> str:
        return "in-memory"

    def load(self) -> Optional[Session]:
        return self._session

    def store(self, session: Session) -> None:
        self._session = session

    def delete(self) -> None:
        self._session = None


@dataclasses.dataclass
class StringSession:
    """A session packed into a single portable string."""

    auth_key: bytes = b""
    auth_key_hash: bytes = b""
    dc_id: int = 0
    ip_addr: str = ""
    app_id: int = 0

    def encode(self) -> str:
        parts = [
            bytes(self.auth_key),
            bytes(self.auth_key_hash),
            self.ip_addr.encode("utf-8", "surrogateescape"),
            str(self.dc_id).encode("ascii"),
            str(self.app_id).encode("ascii"),
        ]
        raw = base64.urlsafe_b64encode(b"::".join(parts)).rstrip(b"=")
        return STRING_SESSION_PREFIX + raw.decode("ascii")


def _parse_int(raw: bytes, what: str) -> int:
    text = raw.decode("utf-8", "replace")
    if not _DECIMAL.fullmatch(text):
        raise SessionError(f"invalid {what}: {text!r}")
    return int(text)


def decode_string_session(encoded: str) -> StringSession:
    """Parse a string produced by ``StringSession.encode``."""
    if len(encoded) < len(STRING_SESSION_PREFIX):
        raise InvalidSessionError()
    body = encoded[len(STRING_SESSION_PREFIX) :]
    if not _B64_URL_RAW.fullmatch(body) or len(body) % 4 == 1:
        raise InvalidSessionError("illegal base64 data in session string")
    decoded = base64.urlsafe_b64decode(body + "=" * (-len(body) % 4))

    parts = decoded.split(b"::")
    if len(parts) != 5:
        raise InvalidSessionError()
    auth_key, auth_key_hash, ip_addr, dc_raw, app_raw = parts
    dc_id = _parse_int(dc_raw, "dc id")
    app_id = _parse_int(app_raw, "app id")
    if not _INT32_MIN <= app_id <= _INT32_MAX:
        raise SessionError(f"app id out of range: {app_id}")
    return StringSession(
        auth_key=auth_key,
        auth_key_hash=auth_key_hash,
        dc_id=dc_id,
        ip_addr=ip_addr.decode("utf-8", "surrogateescape"),
        app_id=app_id,
    )


def encode_int64_base64(value: int) -> str:
    """Base64 of the little-endian 64-bit form of ``value``."""
    raw = (value & _UINT64_MASK).to_bytes(8, "little")
    return base64.b64encode(raw).decode("ascii")


def decode_int64_base64(text: str) -> int:
    """Inverse of ``encode_int64_base64``."""
    try:
        raw = base64.b64decode(text, validate=True)
    except (binascii.Error, ValueError) as exc:
        raise SessionError(f"illegal base64 data: {exc}") from exc
    if len(raw) < 8:
        raise SessionError(f"need 8 bytes for an int64, got {len(raw)}")
    return int.from_bytes(raw[:8], "little", signed=True)


def session_to_token(session: Session) -> dict[str, Any]:
    """The JSON-ready storage form of a session."""
    return {
        "key": base64.b64encode(session.key).decode("ascii"),
        "hash": base64.b64encode(session.key_hash).decode("ascii"),
        "salt": encode_int64_base64(session.salt),
        "hostname": session.hostname,
        "app_id": session.app_id,
    }


def _b64_field(token: Mapping[str, Any], name: str) -> bytes:
    try:
        return base64.b64decode(token.get(name, ""), validate=True)
    except (binascii.Error, ValueError, TypeError) as exc:
        raise SessionError(f"invalid binary data of '{name}'") from exc


def session_from_token(token: Mapping[str, Any]) -> Session:
    """Rebuild a session from its storage form."""
    key = _b64_field(token, "key")
    key_hash = _b64_field(token, "hash")
    try:
        salt = decode_int64_base64(token.get("salt", ""))
    except SessionError as exc:
        raise SessionError(f"invalid binary data of 'salt': {exc}") from exc
    return Session(
        key=key,
        key_hash=key_hash,
        salt=salt,
        hostname=token.get("hostname", ""),
        app_id=int(token.get("app_id", 0)),
    )