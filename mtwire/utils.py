"""Data-centre addresses, message ids and small hashing helpers."""

from __future__ import annotations

import dataclasses
import hashlib
import os
import secrets
import threading
import time
from typing import Optional

_NANOS = 1_000_000_000


@dataclasses.dataclass(frozen=True)
class DC:
    """One address of a data centre; ``ipv6`` marks an IPv6 address."""

    addr: str
    ipv6: bool = False


@dataclasses.dataclass
class DCOptions:
    """Known production, test and CDN data-centre addresses."""

    dcs: dict[int, list[DC]] = dataclasses.field(default_factory=dict)
    test_dcs: dict[int, str] = dataclasses.field(default_factory=dict)
    cdn_dcs: dict[int, list[DC]] = dataclasses.field(default_factory=dict)


DC_LIST = DCOptions(
    dcs={
        1: [DC("149.154.175.58:443")],
        2: [DC("149.154.167.50:443")],
        3: [DC("149.154.175.100:443")],
        4: [
            DC("149.154.167.91:443"),
            DC("[2001:067c:04e8:f002::a]:443", True),
        ],
        5: [DC("91.108.56.151:443")],
    },
    test_dcs={
        1: "149.154.175.10:443",
        2: "149.154.167.40:443",
        3: "149.154.175.117:443",
    },
    cdn_dcs={
        201: [DC("91.108.23.100:443")],
        203: [
            DC("91.105.192.100:443"),
            DC("[2a0a:f280:0203:000a:5000:0000:0000:0100]:443", True),
        ],
    },
)


def _merge_unique(existing: list[DC], new: list[DC]) -> list[DC]:
    return list(dict.fromkeys([*existing, *new]))


def set_dcs(
    dcs: dict[int, list[DC]], cdn_dcs: Optional[dict[int, list[DC]]] = None
) -> None:
    """Merge extra addresses into the known data centres, dropping duplicates."""
    for key, new in dcs.items():
        DC_LIST.dcs[key] = _merge_unique(DC_LIST.dcs.get(key, []), new)
    for key, new in (cdn_dcs or {}).items():
        DC_LIST.cdn_dcs[key] = _merge_unique(DC_LIST.cdn_dcs.get(key, []), new)


def get_addr(dc: int) -> tuple[str, bool]:
    """First address of data centre ``dc`` and whether it is IPv6."""
    addrs = DC_LIST.dcs.get(dc)
    if addrs:
        return addrs[0].addr, addrs[0].ipv6
    return "", False


def get_cdn_addr(dc: int) -> tuple[str, bool]:
    """First address of CDN data centre ``dc`` and whether it is IPv6."""
    addrs = DC_LIST.cdn_dcs.get(dc)
    if addrs:
        return addrs[0].addr, addrs[0].ipv6
    return "", False


def get_host_ip(dc: int, test: bool = False, ipv6: bool = False) -> str:
    """Address to connect to for data centre ``dc``; empty if unknown."""
    addrs = DC_LIST.dcs.get(dc)
    if addrs is None:
        return ""
    if test and dc in DC_LIST.test_dcs:
        return DC_LIST.test_dcs[dc]
    if ipv6:
        for entry in addrs:
            if entry.ipv6:
                return entry.addr
    for entry in addrs:
        if not entry.ipv6:
            return fmt_ip(entry.addr)
    return addrs[0].addr


def search_addr(addr: str) -> int:
    """Data-centre number an address belongs to (4 when nothing matches)."""
    for dc, addrs in DC_LIST.dcs.items():
        if any(entry.addr == addr for entry in addrs):
            return dc
    if "91.108.56" in addr:
        return 5
    if "149.154.175" in addr:
        return 1
    if "149.154.167" in addr:
        return 2
    return 4


def fmt_ip(address: str) -> str:
    """Bracket and shorten a bare ``ipv6:port`` address; others pass through."""
    if address.startswith("[") or "." in address:
        return address
    last_colon = address.rfind(":")
    if last_colon == -1:
        return address
    host = address[:last_colon]
    port = address[last_colon + 1 :]
    host = host.replace("0000:0000:0000:000", ":", 1)
    host = host.replace(":0", ":")
    return f"[{host}]:{port}"


def vtcp(is_v6: bool) -> str:
    return "Tcp6" if is_v6 else "Tcp"


class MsgIDGenerator:
    """Produces strictly increasing message ids derived from the clock."""

    def __init__(self) -> None:
        self._lock = threading.Lock()
        self._last = 0

    def __call__(self, time_offset: int = 0) -> int:
        with self._lock:
            now = time.time_ns() + time_offset * _NANOS
            seconds, nanos = divmod(now, _NANOS)
            msg_id = (seconds << 32) | (nanos & -4)
            if msg_id <= self._last:
                msg_id = self._last + 4
            self._last = msg_id
            return msg_id


def sha1_bytes(data: bytes) -> bytes:
    return hashlib.sha1(bytes(data)).digest()


def sha1(text: str) -> bytes:
    return hashlib.sha1(text.encode("utf-8")).digest()


def auth_key_hash(key: bytes) -> bytes:
    """The eight bytes of the key's SHA-1 that identify an auth key."""
    return sha1_bytes(key)[12:20]


def generate_session_id() -> int:
    """A random non-negative 63-bit session id."""
    return secrets.randbits(63)


def random_bytes(size: int) -> bytes:
    return os.urandom(size)


def xor(dst: bytes, src: bytes) -> bytes:
    """Byte-wise XOR of ``dst`` with the leading bytes of ``src``."""
    if len(src) < len(dst):
        raise ValueError(
            f"source too short: have {len(src)} bytes, need {len(dst)}"
        )
    return bytes(a ^ b for a, b in zip(dst, src))