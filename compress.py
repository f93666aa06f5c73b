"""Forward SM3 compression (GB/T 32905-2016).

This implements the SM3 message expansion and the 64-round compression loop
for a single 512-bit block.

Given the current working state words `(a, b, c, d, e, f, g, h)`, the round
index `j`, and the expanded message words `w[j]` and `w'[j]`, one round is:

    SS1 = ((a <<< 12) + e + (T_j <<< (j mod 32))) <<< 7
    SS2 = SS1 ^ (a <<< 12)
    TT1 = FF_j(a, b, c) + d + SS2 + w'[j]
    TT2 = GG_j(e, f, g) + h + SS1 + w[j]

    d' = c
    c' = b <<< 9
    b' = a
    a' = TT1
    h' = g
    g' = f <<< 19
    f' = e
    e' = P0(TT2)

After 64 rounds the registers are XORed into the chaining value (SM3 uses XOR
here where SHA-256 uses addition).

All additions are performed modulo 2**32.
"""

from __future__ import annotations

from typing import List, Sequence, Tuple


MASK32 = 0xFFFFFFFF

# Round constants: T0 for rounds 0..15, T1 for rounds 16..63.
T0 = 0x79CC4519
T1 = 0x7A879D8A


def _rotl(x: int, n: int) -> int:
    """Left-rotate a 32-bit word `x` by `n` bits."""
    x &= MASK32
    n %= 32
    return ((x << n) | (x >> (32 - n))) & MASK32


# rotl(T_j, j mod 32) for every round, so the loop does not recompute it.
T_VALUES: Tuple[int, ...] = tuple(
    _rotl(T0 if j < 16 else T1, j % 32) for j in range(64)
)


def _ff(x: int, y: int, z: int, j: int) -> int:
    """Boolean function FF_j."""
    if j < 16:
        return x ^ y ^ z
    return (x & y) | (x & z) | (y & z)


def _gg(x: int, y: int, z: int, j: int) -> int:
    """Boolean function GG_j."""
    if j < 16:
        return x ^ y ^ z
    return (x & y) | ((~x) & z)


def _p0(x: int) -> int:
    """Permutation P0 used in the compression rounds."""
    return (x ^ _rotl(x, 9) ^ _rotl(x, 17)) & MASK32


def _p1(x: int) -> int:
    """Permutation P1 used in the message expansion."""
    return (x ^ _rotl(x, 15) ^ _rotl(x, 23)) & MASK32


def expand_message_schedule(block) -> Tuple[List[int], List[int]]:
    """Expand a 512-bit block into the schedules W[0..67] and W'[0..63].

    Parameters
    ----------
    block : bytes-like
        Exactly 64 bytes. ``bytes``, ``bytearray`` and ``memoryview`` are all
        accepted.

    Returns
    -------
    (w, w_prime) : tuple[list[int], list[int]]
        The 68-word schedule and the 64 derived words ``w[j] ^ w[j + 4]``.
    """
    if len(block) != 64:
        raise ValueError(f"Expected 64-byte block, got {len(block)}")

    w: List[int] = [0] * 68

    # First 16 words come directly from the block (big-endian).
    for i in range(16):
        w[i] = int.from_bytes(block[4 * i : 4 * (i + 1)], byteorder="big")

    for j in range(16, 68):
        x = w[j - 16] ^ w[j - 9] ^ _rotl(w[j - 3], 15)
        w[j] = _p1(x) ^ _rotl(w[j - 13], 7) ^ w[j - 6]

    w_prime = [w[j] ^ w[j + 4] for j in range(64)]
    return w, w_prime


def compression(
    a: int,
    b: int,
    c: int,
    d: int,
    e: int,
    f: int,
    g: int,
    h: int,
    w: int,
    w_prime: int,
    j: int,
) -> Tuple[int, int, int, int, int, int, int, int]:
    """Perform SM3 compression round `j`.

    Parameters
    ----------
    a, b, c, d, e, f, g, h : int
        32-bit words representing the current working state.
    w : int
        Expanded message word `w[j]`.
    w_prime : int
        Derived message word `w'[j] = w[j] ^ w[j + 4]`.
    j : int
        Round index in 0..63; selects the round constant and the boolean
        functions.

    Returns
    -------
    (a_new, b_new, c_new, d_new, e_new, f_new, g_new, h_new) : tuple[int, ...]
        Updated working state after one round, all reduced modulo 2**32.
    """
    if not 0 <= j < 64:
        raise ValueError(f"Round index must be in 0..63, got {j}")

    a_rot = _rotl(a, 12)
    ss1 = _rotl((a_rot + e + T_VALUES[j]) & MASK32, 7)
    ss2 = ss1 ^ a_rot
    tt1 = (_ff(a, b, c, j) + d + ss2 + w_prime) & MASK32
    tt2 = (_gg(e, f, g, j) + h + ss1 + w) & MASK32

    return (
        tt1,
        a & MASK32,
        _rotl(b, 9),
        c & MASK32,
        _p0(tt2),
        e & MASK32,
        _rotl(f, 19),
        g & MASK32,
    )


def compress64(
    a: int,
    b: int,
    c: int,
    d: int,
    e: int,
    f: int,
    g: int,
    h: int,
    ws: Sequence[int],
    ws_prime: Sequence[int],
    track: bool = False,
):
    """Run the full 64-round SM3 compression loop for one block.

    Parameters
    ----------
    a, b, c, d, e, f, g, h : int
        Initial working state words (typically the current hash value).
    ws : Sequence[int]
        The expanded schedule `w[0..67]` (only `w[0..63]` feed the rounds).
    ws_prime : Sequence[int]
        The derived schedule `w'[0..63]`.
    track : bool
        When true, also return the working state after every round.

    Returns
    -------
    (a, b, c, d, e, f, g, h) : tuple[int, ...]
        Final working state words after 64 rounds. With ``track=True`` the
        result is ``(state, rounds)`` where ``rounds`` holds 64 state tuples.
    """
    if len(ws) < 64:
        raise ValueError(f"compress64 expects at least 64 message words, got {len(ws)}")
    if len(ws_prime) != 64:
        raise ValueError(f"compress64 expects 64 derived message words, got {len(ws_prime)}")

    regs = (a, b, c, d, e, f, g, h)
    rounds: List[Tuple[int, ...]] = []
    for j in range(64):
        regs = compression(*regs, ws[j], ws_prime[j], j)
        if track:
            rounds.append(regs)

    if track:
        return regs, rounds
    return regs


def compress(state: Sequence[int], block) -> Tuple[int, int, int, int, int, int, int, int]:
    """Compress one 64-byte block into the chaining value `state`.

    Pure function: the input state is never modified and a new 8-tuple is
    returned.
    """
    if len(state) != 8:
        raise ValueError(f"SM3 state must have 8 words, got {len(state)}")

    ws, ws_prime = expand_message_schedule(block)
    out = compress64(*state, ws, ws_prime)
    return tuple((v ^ r) & MASK32 for v, r in zip(state, out))
