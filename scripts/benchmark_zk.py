#!/usr/bin/env python3
"""
ZK-SNARK Benchmark Script
=========================

Benchmarks threshold proof generation and verification.
Target: <5 seconds verification time.

Usage:
    python scripts/benchmark_zk.py [--iterations N] [--depth N] [--output FILE]

Requirements:
    - Keys for the chosen depth (run: python scripts/generate_dev_keys.py),
      or --dev-keys to generate them in memory first
"""

import argparse
import asyncio
import json
import random
import secrets
import statistics
import sys
import time
from dataclasses import asdict, dataclass
from pathlib import Path

# Add parent to path for imports
sys.path.insert(0, str(Path(__file__).parent.parent))

from cpoe.errors import ProofSystemError
from cpoe.merkle import SPONGE, MerkleAccumulator
from cpoe.zk import (
    InMemoryNullifierStore,
    PrivateWitness,
    ProofGenerator,
    ProofVerifier,
    ThresholdCircuit,
    ThresholdProof,
    ThresholdStatement,
    generate_dev_keys,
)
from cpoe.zk.keys import load_proving_key, load_verification_key


# Configuration
TARGET_TIME_MS = 5000
DEFAULT_ITERATIONS = 5


@dataclass
class BenchmarkResult:
    """Result of a benchmark run."""
    operation: str
    iterations: int
    min_ms: int
    max_ms: int
    mean_ms: float
    median_ms: float
    p95_ms: int
    success_rate: float
    pass_target: bool


def percentile(data: list[int], p: int) -> int:
    """Calculate percentile."""
    sorted_data = sorted(data)
    index = int(len(sorted_data) * p / 100)
    return sorted_data[min(index, len(sorted_data) - 1)]


def summarize(operation: str, times: list[int], iterations: int, target: bool) -> BenchmarkResult:
    if not times:
        return BenchmarkResult(operation, iterations, 0, 0, 0, 0, 0, 0, False)
    return BenchmarkResult(
        operation=operation,
        iterations=iterations,
        min_ms=min(times),
        max_ms=max(times),
        mean_ms=statistics.mean(times),
        median_ms=statistics.median(times),
        p95_ms=percentile(times, 95),
        success_rate=len(times) / iterations,
        pass_target=percentile(times, 95) < TARGET_TIME_MS if target else True,
    )


async def benchmark(
    generator: ProofGenerator,
    verifier: ProofVerifier,
    iterations: int,
    export_dir: Path | None = None,
) -> list[BenchmarkResult]:
    """
    Prove and verify `iterations` fresh statements.

    With `export_dir`, the first accepted proof is written there as snarkjs
    proof.json and public.json for cross-checking with `snarkjs groth16 verify`.
    """
    depth = generator.circuit.depth
    prove_times: list[int] = []
    verify_times: list[int] = []

    print(f"\n{'='*60}")
    print(f"Benchmarking: threshold (depth={depth})")
    print(f"Iterations: {iterations}")
    print(f"{'='*60}")

    for i in range(iterations):
        amounts = [random.randint(1, 10**19) for _ in range(min(8, 1 << depth))]
        index = random.randrange(len(amounts))
        actual = amounts[index]
        minimum = random.randint(1, actual)
        tree = MerkleAccumulator(amounts, hasher=SPONGE, depth=depth)
        elements, indices = tree.path(index)

        try:
            start = time.perf_counter()
            with PrivateWitness(actual, secrets.randbelow(2**128), elements, indices) as witness:
                proof = await generator.generate_proof(
                    witness,
                    ThresholdStatement(min_amount=minimum, merkle_root=tree.root),
                )
            prove_ms = int((time.perf_counter() - start) * 1000)

            start = time.perf_counter()
            result = await verifier.verify(proof)
            verify_ms = int((time.perf_counter() - start) * 1000)
        except ProofSystemError as e:
            print(f"  [{i+1}/{iterations}] ✗ FAILED: {e}")
            continue

        prove_times.append(prove_ms)
        if result.valid:
            verify_times.append(verify_ms)
            if export_dir is not None:
                export_snarkjs(proof, export_dir)
                export_dir = None
        status = "✓" if result.valid and verify_ms < TARGET_TIME_MS else "✗"
        print(f"  [{i+1}/{iterations}] {status} prove={prove_ms}ms verify={verify_ms}ms")

    return [
        summarize("prove", prove_times, iterations, target=False),
        summarize("verify", verify_times, iterations, target=True),
    ]


def export_snarkjs(proof: ThresholdProof, export_dir: Path) -> None:
    proof_json, public = proof.to_snarkjs()
    export_dir.mkdir(parents=True, exist_ok=True)
    with open(export_dir / "proof.json", "w") as f:
        json.dump(proof_json, f, indent=2)
    with open(export_dir / "public.json", "w") as f:
        json.dump(public, f, indent=2)
    print(f"  snarkjs proof written to: {export_dir}")


def print_results(results: list[BenchmarkResult]) -> bool:
    """Print benchmark results summary."""
    print(f"\n{'='*70}")
    print("BENCHMARK SUMMARY")
    print(f"{'='*70}")

    print(f"\n{'Operation':<25} | {'P95':>8} | {'Mean':>8} | Status")
    print("-" * 70)

    all_pass = True
    for r in results:
        status = "✅ PASS" if r.pass_target else "❌ FAIL"
        if not r.pass_target:
            all_pass = False
        print(f"{r.operation:<25} | {r.p95_ms:>6}ms | {r.mean_ms:>6.0f}ms | {status}")

    print()
    return all_pass


async def main() -> None:
    parser = argparse.ArgumentParser(description="Benchmark threshold proofs")
    parser.add_argument("--iterations", "-n", type=int, default=DEFAULT_ITERATIONS,
                        help=f"Number of iterations (default: {DEFAULT_ITERATIONS})")
    parser.add_argument("--depth", "-d", type=int, default=None,
                        help="Value tree depth (default from settings)")
    parser.add_argument("--dev-keys", action="store_true",
                        help="Generate insecure keys in memory instead of loading them")
    parser.add_argument("--output", "-o", type=str, help="Output JSON file for results")
    parser.add_argument("--export", type=Path, default=None,
                        help="Directory for the first proof in snarkjs format")

    args = parser.parse_args()

    print("╔" + "═"*58 + "╗")
    print("║  CPoE THRESHOLD PROOF BENCHMARK                          ║")
    print(f"║  Target: <{TARGET_TIME_MS}ms verification time                       ║")
    print("╚" + "═"*58 + "╝")

    circuit = ThresholdCircuit(depth=args.depth)
    try:
        if args.dev_keys:
            pk, vk = generate_dev_keys(circuit)
        else:
            pk = load_proving_key(circuit=circuit)
            vk = load_verification_key(circuit=circuit)
    except ProofSystemError as e:
        print(f"\n❌ Failed to load keys: {e}")
        print("   Generate them first: python scripts/generate_dev_keys.py")
        sys.exit(1)

    generator = ProofGenerator(proving_key=pk, circuit=circuit)
    verifier = ProofVerifier(vk, store=InMemoryNullifierStore(), circuit=circuit)

    results = await benchmark(generator, verifier, args.iterations, args.export)
    all_pass = print_results(results)

    if args.output:
        output_data = {
            "timestamp": time.strftime("%Y-%m-%dT%H:%M:%SZ"),
            "target_ms": TARGET_TIME_MS,
            "circuit": circuit.info().model_dump(),
            "results": [asdict(r) for r in results],
            "all_pass": all_pass,
        }

        with open(args.output, "w") as f:
            json.dump(output_data, f, indent=2)

        print(f"Results saved to: {args.output}")

    sys.exit(0 if all_pass else 1)


if __name__ == "__main__":
    asyncio.run(main())
