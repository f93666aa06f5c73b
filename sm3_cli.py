"""SM3 implementation using the `compress` function from `compress.py`.

This module provides:

- `SM3`: incremental hasher (`update` any number of times, then `finalize`).
- `compute_hash(data: bytes) -> bytes`: compute the SM3 digest of arbitrary
  data.
- `compute_hash_hex(text: str) -> str`: lowercase hex digest of a string.
- CLI usage: `python sm3_cli.py "message"` prints the hex digest of the
  UTF-8 encoding of `"message"`.
"""

from __future__ import annotations

import sys
from typing import Iterable, List, Tuple

from compress import MASK32, compress, compress64, expand_message_schedule


BLOCK_SIZE = 64
DIGEST_SIZE = 32

# The length suffix is a 64-bit field.
MAX_MESSAGE_BITS = (1 << 64) - 1

# Initial hash value IV0..IV7, as per GB/T 32905-2016.
_IV = (
    0x7380166F,
    0x4914B2B9,
    0x172442D7,
    0xDA8A0600,
    0xA96F30BC,
    0x163138AA,
    0xE38DEE4D,
    0xB0FB0E4E,
)

_FILE_CHUNK = 64 * 1024


class SM3:
    """Incremental SM3 hasher.

    An instance hashes exactly one message: feed it with `update` and read the
    digest once with `finalize`. Instances are not thread-safe; share one
    between threads only under external locking.
    """

    name = "sm3"
    digest_size = DIGEST_SIZE
    block_size = BLOCK_SIZE

    __slots__ = ("_state", "_buffer", "_buffered", "_total_bits", "_finalized")

    def __init__(self, data=None):
        self._state: Tuple[int, ...] = _IV
        self._buffer = bytearray(BLOCK_SIZE)
        self._buffered = 0
        self._total_bits = 0
        self._finalized = False
        if data is not None:
            self.update(data)

    def _check_open(self) -> None:
        if self._finalized:
            raise RuntimeError("SM3 instance already finalized; create a new one")

    def update(self, data) -> "SM3":
        """Absorb `data` (any bytes-like object) into the running hash."""
        self._check_open()
        view = memoryview(data).cast("B")
        count = len(view)

        total_bits = self._total_bits + count * 8
        if total_bits > MAX_MESSAGE_BITS:
            raise OverflowError("SM3 input longer than 2**64 - 1 bits is not supported")
        self._total_bits = total_bits

        offset = 0
        if self._buffered:
            free = BLOCK_SIZE - self._buffered
            if count < free:
                self._buffer[self._buffered : self._buffered + count] = view
                self._buffered += count
                return self

            self._buffer[self._buffered :] = view[:free]
            self._state = compress(self._state, self._buffer)
            self._buffered = 0
            offset = free

        # Whole blocks go straight from the caller's data.
        while count - offset >= BLOCK_SIZE:
            self._state = compress(self._state, view[offset : offset + BLOCK_SIZE])
            offset += BLOCK_SIZE

        rest = count - offset
        if rest:
            self._buffer[:rest] = view[offset:]
            self._buffered = rest
        return self

    def finalize(self) -> bytes:
        """Pad, process the final block(s) and return the 32-byte digest.

        The instance cannot be used afterwards.
        """
        self._check_open()
        self._finalized = True

        buf = self._buffer
        used = self._buffered
        buf[used] = 0x80
        used += 1
        buf[used:] = bytes(BLOCK_SIZE - used)

        # No room left for the 8-byte length in this block.
        if used > BLOCK_SIZE - 8:
            self._state = compress(self._state, buf)
            buf[:] = bytes(BLOCK_SIZE)

        buf[BLOCK_SIZE - 8 :] = self._total_bits.to_bytes(8, byteorder="big")
        self._state = compress(self._state, buf)
        self._buffered = 0

        return finalize_digest(self._state)

    def copy(self) -> "SM3":
        """Return an independent snapshot of this (unfinalized) hasher."""
        self._check_open()
        other = SM3()
        other._state = self._state
        other._buffer = bytearray(self._buffer)
        other._buffered = self._buffered
        other._total_bits = self._total_bits
        return other


def new(data=b"") -> SM3:
    """Return a fresh incremental hasher, optionally primed with `data`."""
    return SM3(data)


def digest_size() -> int:
    return DIGEST_SIZE


def compute_hash(data) -> bytes:
    """Compute the SM3 digest of `data` in one call."""
    return SM3(data).finalize()


def compute_hash_hex(text: str, encoding: str = "utf-8") -> str:
    """Encode `text`, hash it and return the 64-character lowercase hex digest."""
    return compute_hash(text.encode(encoding)).hex()


#
# Whole-message helpers (one-shot path used for analysis and cross-checks)
#

def _pad_message(message: bytes) -> bytes:
    """Pad the input message as defined by GB/T 32905-2016.

    The result length is a multiple of 64 bytes (512 bits).
    """
    ml_bits = len(message) * 8
    if ml_bits > MAX_MESSAGE_BITS:
        raise OverflowError("SM3 input longer than 2**64 - 1 bits is not supported")

    # Append the '1' bit (0x80), then k zero bytes so that length ≡ 56 mod 64.
    padded = bytearray(message)
    padded.append(0x80)

    while (len(padded) % BLOCK_SIZE) != 56:
        padded.append(0x00)

    # Append 64-bit big-endian length in bits.
    padded.extend(ml_bits.to_bytes(8, byteorder="big"))
    return bytes(padded)


def pad_message(message) -> bytes:
    """Pad a raw message to a multiple of 64 bytes (512 bits).

    Accepts ``bytes``, ``bytearray`` or a list/iterable of byte values (0–255).
    """
    return _pad_message(bytes(message))


def split_into_blocks(padded) -> List[bytes]:
    """Split a padded message into 512-bit (64-byte) blocks."""
    data = bytes(padded)
    if len(data) % BLOCK_SIZE != 0:
        raise ValueError(
            f"Padded message length must be a multiple of 64 bytes, got {len(data)}"
        )
    return [data[i : i + BLOCK_SIZE] for i in range(0, len(data), BLOCK_SIZE)]


def finalize_digest(state: Iterable[int]) -> bytes:
    """Convert a final chaining value into the 32-byte SM3 digest."""
    return b"".join((word & MASK32).to_bytes(4, byteorder="big") for word in state)


def sm3_with_tracking(data: bytes) -> Tuple[bytes, List[List[Tuple[int, ...]]]]:
    """Compute SM3 while tracking the working registers at each round.

    Returns:
        (digest, rounds_per_block)
        where rounds_per_block[block_idx] is a list of 64 (a, ..., h) tuples,
        the working state after each round of that block
    """
    state: Tuple[int, ...] = _IV
    all_rounds: List[List[Tuple[int, ...]]] = []

    for block in split_into_blocks(pad_message(data)):
        ws, ws_prime = expand_message_schedule(block)
        work_out, rounds = compress64(*state, ws, ws_prime, track=True)
        all_rounds.append(rounds)
        state = tuple(v ^ r for v, r in zip(state, work_out))

    return finalize_digest(state), all_rounds


def _hash_file(filename: str) -> str:
    """Stream a file through `SM3` and return its hex digest."""
    hasher = SM3()
    with open(filename, "rb") as f:
        while True:
            chunk = f.read(_FILE_CHUNK)
            if not chunk:
                break
            hasher.update(chunk)
    return hasher.finalize().hex()


_USAGE = (
    "Usage:\n"
    "  python sm3_cli.py \"message\"\n"
    "  python sm3_cli.py -f path/to/file\n"
)


def main(argv: list[str] | None = None) -> int:
    """CLI entry point.

    Usage:
        python sm3_cli.py "message"
        python sm3_cli.py -f path/to/file

    Without flags, the single argument is interpreted as a UTF-8 string and
    hashed. With `-f`, the following argument is treated as a filename whose
    raw bytes are hashed. The resulting hex digest is printed to stdout.
    """
    if argv is None:
        argv = sys.argv[1:]

    if not argv:
        sys.stderr.write(_USAGE)
        return 1

    # File mode: `-f <filename>`
    if argv[0] == "-f":
        if len(argv) != 2:
            sys.stderr.write("Usage: python sm3_cli.py -f path/to/file\n")
            return 1
        filename = argv[1]
        try:
            digest_hex = _hash_file(filename)
        except OSError as e:
            sys.stderr.write(f"Error reading file '{filename}': {e}\n")
            return 1
        print(digest_hex)
        return 0

    if len(argv) != 1:
        sys.stderr.write(_USAGE)
        return 1

    print(compute_hash_hex(argv[0]))
    return 0


if __name__ == "__main__":
    raise SystemExit(main())
