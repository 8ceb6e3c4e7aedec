"""Number theory used by the key exchange: RSA block, factorisation and DH."""

from __future__ import annotations

import math
import random
import secrets

__all__ = ["do_rsa_encrypt", "split_pq", "fac", "make_gab", "xor"]

RSA_BLOCK_SIZE = 255
_RSA_OUTPUT_SIZE = 256
_DH_RANDOM_BITS = 2048


def do_rsa_encrypt(block: bytes, modulus: int, exponent: int) -> bytes:
    """Raw RSA of one 255-byte block; the result is left-aligned in 256 bytes."""
    if len(block) != RSA_BLOCK_SIZE:
        raise ValueError("block size isn't equal 255 bytes")
    cipher = pow(int.from_bytes(block, "big"), exponent, modulus)
    raw = cipher.to_bytes((cipher.bit_length() + 7) // 8, "big")
    return (raw + bytes(_RSA_OUTPUT_SIZE))[:_RSA_OUTPUT_SIZE]


def split_pq(pq: int) -> tuple[int, int]:
    """Split a product of two primes into its factors, smaller first."""
    if pq < 4:
        raise ValueError(f"cannot split {pq}")
    what = pq
    rng = random.Random()
    g = 0
    i = 0
    while not 1 < g < what:
        q = ((rng.getrandbits(64) & 15) + 17) % what
        x = rng.getrandbits(64) % (what - 1) + 1
        y = x
        limit = 1 << (i + 18)
        j = 1
        while j < limit:
            x = (x * x + q) % what
            g = math.gcd((x - y) % what, what)
            if j & (j - 1) == 0:
                y = x
            j += 1
            if g != 1:
                break
        i += 1
    p1, p2 = g, what // g
    return (p1, p2) if p1 <= p2 else (p2, p1)


def fac(pq: int) -> tuple[int, int]:
    """Pollard's rho factorisation; returns the two factors, smaller first."""
    if pq < 2:
        raise ValueError(f"cannot factorise {pq}")

    def step(value: int) -> int:
        return (value * value + 1) % pq

    x = y = 2
    d = 1
    while d == 1:
        x = step(x)
        y = step(step(y))
        d = math.gcd(abs(x - y), pq)
    p, q = d, pq // d
    return (p, q) if p <= q else (q, p)


def make_gab(g: int, g_a: int, dh_prime: int) -> tuple[int, int, int]:
    """Pick a random secret ``b`` and return ``(b, g^b, g_a^b)`` modulo the prime."""
    b = secrets.randbits(_DH_RANDOM_BITS)
    return b, pow(g, b, dh_prime), pow(g_a, b, dh_prime)


def xor(dst: bytes, src: bytes) -> bytes:
    """XOR ``dst`` with the first ``len(dst)`` bytes of ``src``."""
    if len(src) < len(dst):
        raise ValueError(
            f"source too short: have {len(src)} bytes, need {len(dst)}"
        )
    return bytes(a ^ b for a, b in zip(dst, src))