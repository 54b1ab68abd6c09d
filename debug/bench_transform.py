#!/usr/bin/env python3
"""Quick XOR transform benchmark - scalar loop vs numpy path"""
import os
import sys
import time
from pathlib import Path

sys.path.insert(0, str(Path(__file__).resolve().parent.parent))

from savecrypt import CipherOptions, XorCipher  # noqa: E402

SIZE = 4 * 1024 * 1024
ROUNDS = 5
DATA = os.urandom(SIZE)


def bench(cipher: XorCipher, rounds: int):
    start = time.perf_counter()
    for _ in range(rounds):
        result = cipher.transform(DATA)
    elapsed = time.perf_counter() - start
    return elapsed, result


def main():
    print(f"Benchmarking XOR transform ({ROUNDS} rounds of {SIZE // 1024} KiB)...\n")

    print("Vectorized ...")
    vec_time, vec_result = bench(XorCipher(CipherOptions(use_vectorized=True)), ROUNDS)
    print(f"  Time: {vec_time:.3f}s ({vec_time / ROUNDS * 1000:.2f} ms/op)")

    print("Scalar ...")
    # The scalar loop is far slower; one round is enough for a comparison.
    sca_time, sca_result = bench(XorCipher(CipherOptions(use_vectorized=False)), 1)
    print(f"  Time: {sca_time:.3f}s ({sca_time * 1000:.2f} ms/op)")

    if vec_result != sca_result:
        print("\n❌ Outputs differ between paths")
        return 1
    print(f"\n✅ Outputs identical, vectorized speedup x{(sca_time / (vec_time / ROUNDS)):.1f}")
    return 0


if __name__ == '__main__':
    raise SystemExit(main())
