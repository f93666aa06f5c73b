"""Record SM3 digests (and optionally round traces) for a range of message lengths.

For every length n in [start, end] this script:
1. Builds the message: the pattern (default "abc") repeated and cut to n bytes
2. Computes SM3, optionally tracking the working registers at every round
3. Saves results to <output-dir>/vectors_<start>_<end>.yaml or .db (SQLite)

Usage:
    python dump_vectors.py <start> <end>
    python dump_vectors.py 55 65                 # the padding boundary lengths
    python dump_vectors.py 0 3 --trace           # include a..h after each round
    python dump_vectors.py 0 128 --pattern xyz --format sqlite

SQLite Schema:
    - metadata: start_length, end_length, pattern_hex, traced
    - messages: id, length_bytes, message_hex, digest_hex, blocks
    - rounds: message_id, block_index, round_index, a, b, c, d, e, f, g, h
"""

from __future__ import annotations

import argparse
import os
import sqlite3
import sys
from typing import Dict, List

import yaml

from sm3_cli import BLOCK_SIZE, compute_hash, pad_message, sm3_with_tracking

_REGISTERS = ("a", "b", "c", "d", "e", "f", "g", "h")


def make_message(length: int, pattern: bytes) -> bytes:
    """Repeat `pattern` and cut it to exactly `length` bytes."""
    if length == 0:
        return b""
    if not pattern:
        raise ValueError("pattern must not be empty")
    repeats = -(-length // len(pattern))
    return (pattern * repeats)[:length]


def build_vectors(start: int, end: int, pattern: bytes = b"abc", trace: bool = False) -> List[Dict]:
    """Return one entry per message length in [start, end] (inclusive)."""
    entries: List[Dict] = []
    for length in range(start, end + 1):
        message = make_message(length, pattern)
        entry: Dict = {
            "length_bytes": length,
            "message_hex": message.hex(),
            "blocks": len(pad_message(message)) // BLOCK_SIZE,
        }
        if trace:
            digest, rounds_per_block = sm3_with_tracking(message)
            entry["digest_hex"] = digest.hex()
            entry["rounds"] = [
                {
                    "block_index": block_idx,
                    "registers": [
                        " ".join(f"{word:08x}" for word in regs) for regs in rounds
                    ],
                }
                for block_idx, rounds in enumerate(rounds_per_block)
            ]
        else:
            entry["digest_hex"] = compute_hash(message).hex()
        entries.append(entry)
    return entries


def main():
    parser = argparse.ArgumentParser(
        description="Record SM3 digests for a range of message lengths"
    )
    parser.add_argument(
        "start",
        type=int,
        help="Start message length in bytes (inclusive)",
    )
    parser.add_argument(
        "end",
        type=int,
        help="End message length in bytes (inclusive)",
    )
    parser.add_argument(
        "--pattern",
        type=str,
        default="abc",
        help="Text repeated to build each message, UTF-8 encoded (default: abc)",
    )
    parser.add_argument(
        "--trace",
        action="store_true",
        help="Also record the working registers after every round",
    )
    parser.add_argument(
        "--output-dir",
        type=str,
        default="data/vectors",
        help="Output directory (default: data/vectors)",
    )
    parser.add_argument(
        "--format",
        type=str,
        choices=["yaml", "sqlite"],
        default="yaml",
        help="Output format: yaml or sqlite (default: yaml)",
    )
    args = parser.parse_args()

    if args.start < 0:
        print(f"ERROR: Start value must be non-negative (got {args.start})")
        sys.exit(1)

    if args.end < args.start:
        print(f"ERROR: End value must be >= start (got end={args.end}, start={args.start})")
        sys.exit(1)

    if not args.pattern:
        print("ERROR: Pattern must not be empty")
        sys.exit(1)

    pattern = args.pattern.encode("utf-8")
    print(f"Recording SM3 vectors for lengths {args.start} to {args.end} (inclusive)")
    print(f"Total messages: {args.end - args.start + 1}\n")

    entries = build_vectors(args.start, args.end, pattern, args.trace)

    os.makedirs(args.output_dir, exist_ok=True)

    if args.format == "sqlite":
        output_path = _write_sqlite(args, pattern, entries)
    else:
        output_path = _write_yaml(args, pattern, entries)

    print(f"Done! Saved {len(entries):,} entries to {output_path}")
    _print_samples(entries[:4])


def _write_yaml(args, pattern: bytes, entries: List[Dict]) -> str:
    """Save entries to a YAML file and return its path."""
    results: Dict = {
        "start_length": args.start,
        "end_length": args.end,
        "pattern_hex": pattern.hex(),
        "traced": args.trace,
        "vectors": entries,
    }

    output_path = os.path.join(args.output_dir, f"vectors_{args.start}_{args.end}.yaml")
    print(f"Writing results to {output_path}...")

    with open(output_path, "w") as f:
        yaml.safe_dump(results, f, default_flow_style=False, sort_keys=False)

    return output_path


def _write_sqlite(args, pattern: bytes, entries: List[Dict]) -> str:
    """Save entries to a SQLite database and return its path."""
    output_path = os.path.join(args.output_dir, f"vectors_{args.start}_{args.end}.db")
    print(f"Writing results to {output_path}...")

    # Remove existing database if present
    if os.path.exists(output_path):
        os.remove(output_path)

    conn = sqlite3.connect(output_path)
    try:
        cursor = conn.cursor()
        cursor.executescript("""
            CREATE TABLE metadata (
                start_length INTEGER NOT NULL,
                end_length INTEGER NOT NULL,
                pattern_hex TEXT NOT NULL,
                traced INTEGER NOT NULL
            );

            CREATE TABLE messages (
                id INTEGER PRIMARY KEY,
                length_bytes INTEGER NOT NULL,
                message_hex TEXT NOT NULL,
                digest_hex TEXT NOT NULL,
                blocks INTEGER NOT NULL
            );

            CREATE TABLE rounds (
                message_id INTEGER NOT NULL,
                block_index INTEGER NOT NULL,
                round_index INTEGER NOT NULL,
                a TEXT NOT NULL, b TEXT NOT NULL, c TEXT NOT NULL, d TEXT NOT NULL,
                e TEXT NOT NULL, f TEXT NOT NULL, g TEXT NOT NULL, h TEXT NOT NULL,
                FOREIGN KEY (message_id) REFERENCES messages(id)
            );

            CREATE INDEX idx_rounds_message ON rounds(message_id, block_index);
        """)

        cursor.execute(
            "INSERT INTO metadata VALUES (?, ?, ?, ?)",
            (args.start, args.end, pattern.hex(), int(args.trace)),
        )

        for idx, entry in enumerate(entries):
            cursor.execute(
                "INSERT INTO messages VALUES (?, ?, ?, ?, ?)",
                (idx, entry["length_bytes"], entry["message_hex"], entry["digest_hex"], entry["blocks"]),
            )
            round_rows = []
            for block in entry.get("rounds", []):
                for round_idx, regs in enumerate(block["registers"]):
                    round_rows.append((idx, block["block_index"], round_idx, *regs.split()))
            if round_rows:
                cursor.executemany(
                    f"INSERT INTO rounds VALUES (?, ?, ?, {', '.join('?' * len(_REGISTERS))})",
                    round_rows,
                )
        conn.commit()
    finally:
        conn.close()

    return output_path


def _print_samples(sample_entries: List[Dict]) -> None:
    """Print sample entries from the results."""
    print("\nSample entries:")
    for i, sample in enumerate(sample_entries):
        print(f"  [{i}] len={sample['length_bytes']:<4} blocks={sample['blocks']} digest={sample['digest_hex'][:16]}...")


if __name__ == "__main__":
    main()
