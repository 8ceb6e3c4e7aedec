import time

import pytest

from mtwire import utils
from mtwire.utils import (
    DC,
    DC_LIST,
    MsgIDGenerator,
    auth_key_hash,
    fmt_ip,
    generate_session_id,
    get_addr,
    get_cdn_addr,
    get_host_ip,
    random_bytes,
    search_addr,
    set_dcs,
    sha1,
    sha1_bytes,
    vtcp,
    xor,
)


def test_get_host_ip_ipv4():
    assert get_host_ip(2, False, False) == "149.154.167.50:443"


def test_get_host_ip_ipv6_preferred():
    assert get_host_ip(4, False, True) == "[2001:067c:04e8:f002::a]:443"


def test_get_host_ip_ipv6_falls_back_to_ipv4():
    assert get_host_ip(1, False, True) == "149.154.175.58:443"


def test_get_host_ip_test_dc():
    assert get_host_ip(1, True, False) == "149.154.175.10:443"


def test_get_host_ip_unknown():
    assert get_host_ip(99) == ""


def test_get_addr_and_cdn_addr():
    assert get_addr(5) == ("91.108.56.151:443", False)
    assert get_addr(77) == ("", False)
    assert get_cdn_addr(203) == ("91.105.192.100:443", False)
    assert get_cdn_addr(2) == ("", False)


def test_search_addr():
    assert search_addr("149.154.175.58:443") == 1
    assert search_addr("[2001:067c:04e8:f002::a]:443") == 4
    assert search_addr("91.108.56.200:443") == 5
    assert search_addr("149.154.167.99:443") == 2
    assert search_addr("10.0.0.1:443") == 4


def test_fmt_ip_passes_through_ipv4_and_bracketed():
    assert fmt_ip("149.154.175.58:443") == "149.154.175.58:443"
    assert fmt_ip("[2001:067c::a]:443") == "[2001:067c::a]:443"
    assert fmt_ip("localhost") == "localhost"


def test_fmt_ip_brackets_ipv6():
    result = fmt_ip("2001:0b28:f23f:f005:0000:0000:0000:000a:443")
    assert result == "[2001:b28:f23f:f005::a]:443"


def test_fmt_ip_keeps_port():
    result = fmt_ip("2001:0db8:0000:0000:0000:0000:0000:0001:8443")
    assert result.startswith("[") and result.endswith("]:8443")


def test_vtcp():
    assert vtcp(True) == "Tcp6"
    assert vtcp(False) == "Tcp"


def test_set_dcs_merges_unique():
    original = list(DC_LIST.dcs[1])
    original_cdn = DC_LIST.cdn_dcs.get(42)
    extra = DC("10.1.2.3:443")
    try:
        set_dcs({1: [DC("149.154.175.58:443"), extra]}, {42: [extra]})
        assert DC_LIST.dcs[1][0] == original[0]
        assert extra in DC_LIST.dcs[1]
        assert len(DC_LIST.dcs[1]) == len(original) + 1
        assert get_cdn_addr(42) == ("10.1.2.3:443", False)
    finally:
        DC_LIST.dcs[1] = original
        if original_cdn is None:
            DC_LIST.cdn_dcs.pop(42, None)


def test_msg_id_generator_monotonic_and_aligned():
    gen = MsgIDGenerator()
    ids = [gen(0) for _ in range(200)]
    assert all(b > a for a, b in zip(ids, ids[1:]))
    assert all(i % 4 == 0 for i in ids)


def test_msg_id_generator_seconds_in_high_bits():
    gen = MsgIDGenerator()
    before = int(time.time())
    msg_id = gen(0)
    after = int(time.time())
    assert before <= msg_id >> 32 <= after


def test_msg_id_generator_offset():
    gen = MsgIDGenerator()
    now = int(time.time())
    msg_id = gen(3600)
    assert 3600 <= (msg_id >> 32) - now <= 3602


def test_sha1_known_digest():
    assert sha1("").hex() == "da39a3ee5e6b4b0d3255bfef95601890afd80709"
    assert sha1_bytes(b"abc") == sha1("abc")


def test_auth_key_hash_known_value():
    assert auth_key_hash(b"") == bytes.fromhex("95601890afd80709")


def test_auth_key_hash_is_slice_of_sha1():
    key = random_bytes(256)
    digest = sha1_bytes(key)
    assert auth_key_hash(key) == digest[12:20]
    assert len(auth_key_hash(key)) == 8


def test_generate_session_id_range():
    values = {generate_session_id() for _ in range(20)}
    assert all(0 <= v < 2**63 for v in values)
    assert len(values) > 1


def test_random_bytes_length():
    assert len(random_bytes(33)) == 33


def test_xor_round_trip():
    a = random_bytes(16)
    b = random_bytes(16)
    assert xor(xor(a, b), b) == a
    assert xor(a, a) == bytes(16)


def test_xor_uses_prefix_of_longer_source():
    a = b"\x01\x02"
    assert xor(a, b"\x01\x02\xff") == b"\x00\x00"


def test_xor_short_source_raises():
    with pytest.raises(ValueError):
        xor(b"\x00\x00\x00", b"\x00")


def test_module_lookup_uses_shared_list():
    assert utils.DC_LIST is DC_LIST
    assert utils.get_addr(4) == ("149.154.167.91:443", False)