"""Bounded CPU search worker speaking the accelerated miner's CLI protocol.

Tries names `<prefix><nonce>` for nonce in `[0, max_nonce)`. Only targets whose
preimage falls in that range are found, which is enough for demos and tests.

    python -m pixel_selectors.mining.backend.local_miner f "()" 0x12345678
    python -m pixel_selectors.mining.backend.local_miner --batch selectors.txt
"""

from __future__ import annotations

import argparse
import sys
from collections.abc import Iterator
from pathlib import Path

from pixel_selectors.mining.parsing import RESULTS_END_MARKER, RESULTS_START_MARKER
from pixel_selectors.selectors import function_selector, normalize_selector_hex


def search(
    *,
    prefix: str,
    placeholder: str,
    targets: set[bytes],
    max_nonce: int,
) -> Iterator[tuple[bytes, str, int]]:
    """Yield `(target, name, nonce)` for each target reached within the nonce range."""

    remaining = set(targets)
    for nonce in range(max_nonce):
        if not remaining:
            return
        name = f"{prefix}{nonce}"
        selector = function_selector(f"{name}{placeholder}")
        if selector in remaining:
            remaining.discard(selector)
            yield selector, name, nonce


def run_single(*, prefix: str, placeholder: str, target_hex: str, max_nonce: int) -> int:
    target = bytes.fromhex(normalize_selector_hex(target_hex))
    print(f"Searching 0x{target.hex()} with prefix {prefix!r} over {max_nonce} nonces")
    for _, name, _ in search(
        prefix=prefix,
        placeholder=placeholder,
        targets={target},
        max_nonce=max_nonce,
    ):
        print(f"Function found: {name}{placeholder}")
        return 0
    print(f"Error: no match for 0x{target.hex()} within {max_nonce} nonces")
    return 1


def run_batch(*, request_path: Path, prefix: str, max_nonce: int) -> int:
    lines = request_path.read_text("utf-8").splitlines()
    targets = {bytes.fromhex(normalize_selector_hex(line)) for line in lines if line.strip()}
    print(f"Loaded {len(targets)} selectors from {request_path}")

    results = list(search(prefix=prefix, placeholder="()", targets=targets, max_nonce=max_nonce))
    print(f"Searched {max_nonce} nonces, found {len(results)}/{len(targets)}")
    print(RESULTS_START_MARKER)
    for selector, name, nonce in results:
        print(f"0x{selector.hex()}|{name}()|{nonce}")
    print(RESULTS_END_MARKER)
    sys.stdout.flush()
    return 0


def main(argv: list[str] | None = None) -> int:
    parser = argparse.ArgumentParser(prog="local_miner")
    parser.add_argument("--batch", type=Path, default=None, help="File with one 0x selector per line.")
    parser.add_argument("--max-nonce", type=int, default=1_000_000)
    parser.add_argument("--batch-prefix", default="f")
    parser.add_argument("prefix", nargs="?")
    parser.add_argument("placeholder", nargs="?")
    parser.add_argument("target", nargs="?")
    args = parser.parse_args(argv)

    if args.batch is not None:
        return run_batch(
            request_path=args.batch,
            prefix=args.batch_prefix,
            max_nonce=args.max_nonce,
        )
    if args.prefix is None or args.placeholder is None or args.target is None:
        parser.error("prefix, placeholder and target are required outside --batch mode")
    return run_single(
        prefix=args.prefix,
        placeholder=args.placeholder,
        target_hex=args.target,
        max_nonce=args.max_nonce,
    )


if __name__ == "__main__":  # pragma: no cover
    sys.exit(main())
