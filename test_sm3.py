import hashlib
from pathlib import Path

import pytest
import yaml

import sm3_cli
from compress import compress
from sm3_cli import (
    DIGEST_SIZE,
    MAX_MESSAGE_BITS,
    SM3,
    _IV,
    compute_hash,
    compute_hash_hex,
    digest_size,
    finalize_digest,
    new,
    pad_message,
    sm3_with_tracking,
    split_into_blocks,
)


VECTORS = yaml.safe_load((Path(__file__).parent / "sm3_vectors.yaml").read_text())["vectors"]

BOUNDARY_LENGTHS = [0, 1, 55, 56, 57, 63, 64, 65, 119, 120, 127, 128, 129]


def _reference_digest(message: bytes) -> bytes:
    """Whole-message SM3: pad everything up front, then compress block by block."""
    state = _IV
    for block in split_into_blocks(pad_message(message)):
        state = compress(state, block)
    return finalize_digest(state)


def _message(length: int) -> bytes:
    return bytes((i * 7 + 3) & 0xFF for i in range(length))


@pytest.mark.parametrize("vector", VECTORS, ids=[v["name"] for v in VECTORS])
def test_known_vectors(vector):
    assert compute_hash_hex(vector["text"]) == vector["digest_hex"]
    assert compute_hash(vector["text"].encode()) == bytes.fromhex(vector["digest_hex"])


@pytest.mark.parametrize("length", BOUNDARY_LENGTHS)
def test_block_boundaries_match_whole_message_padding(length):
    message = _message(length)
    assert compute_hash(message) == _reference_digest(message)


@pytest.mark.parametrize("length", [55, 56, 63, 64, 65])
def test_block_boundaries_match_openssl(length):
    try:
        reference = hashlib.new("sm3")
    except ValueError:
        pytest.skip("hashlib has no SM3 support on this platform")
    message = _message(length)
    reference.update(message)
    assert compute_hash(message) == reference.digest()


@pytest.mark.parametrize("chunk_size", [1, 3, 55, 63, 64, 65, 200])
def test_chunking_does_not_change_digest(chunk_size):
    data = b"abc" * 150
    hasher = SM3()
    for i in range(0, len(data), chunk_size):
        hasher.update(data[i : i + chunk_size])
    assert hasher.finalize() == compute_hash(data)


def test_irregular_chunks_and_empty_updates():
    data = _message(300)
    cuts = [0, 0, 1, 1, 10, 63, 64, 64, 130, 299, 300, 300]
    hasher = SM3()
    for start, end in zip(cuts, cuts[1:]):
        hasher.update(data[start:end])
    assert hasher.finalize() == compute_hash(data)


def test_update_accepts_bytes_like_objects():
    data = _message(100)
    expected = compute_hash(data)
    assert SM3().update(bytearray(data)).finalize() == expected
    assert SM3().update(memoryview(data)).finalize() == expected


def test_update_rejects_text():
    with pytest.raises(TypeError):
        SM3().update("abc")


def test_determinism_and_size():
    data = _message(1000)
    first = compute_hash(data)
    assert compute_hash(data) == first
    assert len(first) == DIGEST_SIZE == digest_size() == 32


def test_single_bit_flip_changes_digest():
    data = bytearray(b"The quick brown fox jumps over the lazy dog")
    original = compute_hash(data)
    data[10] ^= 0x01
    assert compute_hash(data) != original


def test_hex_is_lowercase_rendering_of_digest():
    text = "SM3 密码杂凑算法"
    digest_hex = compute_hash_hex(text)
    assert len(digest_hex) == 64
    assert digest_hex == digest_hex.lower()
    assert digest_hex == compute_hash(text.encode("utf-8")).hex()


def test_hex_honours_encoding():
    text = "café"
    assert compute_hash_hex(text, encoding="latin-1") == compute_hash(text.encode("latin-1")).hex()
    assert compute_hash_hex(text, encoding="latin-1") != compute_hash_hex(text)


def test_new_and_constructor_prime_the_hasher():
    assert new(b"abc").finalize() == compute_hash(b"abc")
    assert new().update(b"a").update(b"bc").finalize() == compute_hash(b"abc")
    assert SM3(b"").finalize() == compute_hash(b"")


def test_hasher_attributes():
    hasher = SM3()
    assert hasher.name == "sm3"
    assert hasher.digest_size == 32
    assert hasher.block_size == 64


def test_finalize_twice_is_an_error():
    hasher = SM3(b"abc")
    hasher.finalize()
    with pytest.raises(RuntimeError):
        hasher.finalize()
    with pytest.raises(RuntimeError):
        hasher.update(b"more")
    with pytest.raises(RuntimeError):
        hasher.copy()


def test_copy_gives_independent_snapshot():
    hasher = SM3(b"a" * 70)
    snapshot = hasher.copy()
    hasher.update(b"tail")

    assert snapshot.finalize() == compute_hash(b"a" * 70)
    assert hasher.finalize() == compute_hash(b"a" * 70 + b"tail")


def test_length_counter_does_not_wrap():
    hasher = SM3()
    hasher._total_bits = MAX_MESSAGE_BITS - 7
    hasher.update(b"")
    with pytest.raises(OverflowError):
        hasher.update(b"x")
    # The rejected update leaves the counter untouched.
    assert hasher._total_bits == MAX_MESSAGE_BITS - 7


def test_tracking_matches_plain_digest():
    message = _message(100)
    digest, rounds_per_block = sm3_with_tracking(message)

    assert digest == compute_hash(message)
    assert len(rounds_per_block) == 2
    assert all(len(rounds) == 64 for rounds in rounds_per_block)


def test_cli_hashes_message(capsys):
    assert sm3_cli.main(["abc"]) == 0
    assert capsys.readouterr().out.strip() == VECTORS[1]["digest_hex"]


def test_cli_hashes_file(tmp_path, capsys, monkeypatch):
    # Small read size so the file is streamed through several updates.
    monkeypatch.setattr(sm3_cli, "_FILE_CHUNK", 37)
    data = _message(1000)
    path = tmp_path / "input.bin"
    path.write_bytes(data)

    assert sm3_cli.main(["-f", str(path)]) == 0
    assert capsys.readouterr().out.strip() == compute_hash(data).hex()


def test_cli_reports_missing_file(tmp_path, capsys):
    missing = tmp_path / "missing.bin"
    assert sm3_cli.main(["-f", str(missing)]) == 1
    assert "Error reading file" in capsys.readouterr().err


@pytest.mark.parametrize("argv", [[], ["-f"], ["a", "b"], ["-f", "x", "y"]])
def test_cli_usage_errors(argv, capsys):
    assert sm3_cli.main(argv) == 1
    assert "Usage" in capsys.readouterr().err
