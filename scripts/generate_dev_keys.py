#!/usr/bin/env python3
"""
Development Key Generation
==========================

Runs a single-party Groth16 setup for the threshold circuit and writes
proving_key.json and verification_key.json.

The party running this script knows the setup secrets and can forge
proofs. Never deploy keys produced here.

Usage:
    python scripts/generate_dev_keys.py [--depth N] [--amount-bits N] [--out DIR]
"""

import argparse
import sys
import time
from pathlib import Path

# Add parent to path for imports
sys.path.insert(0, str(Path(__file__).parent.parent))

from cpoe.config import settings
from cpoe.logging import setup_logging
from cpoe.zk.circuit import ThresholdCircuit
from cpoe.zk.keys import generate_dev_keys, save_keys


def main() -> None:
    parser = argparse.ArgumentParser(description="Generate INSECURE development keys")
    parser.add_argument("--depth", "-d", type=int, default=settings.zk.merkle_depth,
                        help=f"Value tree depth (default: {settings.zk.merkle_depth})")
    parser.add_argument("--amount-bits", "-b", type=int, default=settings.zk.amount_bits,
                        help=f"Amount bit width (default: {settings.zk.amount_bits})")
    parser.add_argument("--out", "-o", type=str, default=str(settings.zk.key_dir),
                        help="Output directory")

    args = parser.parse_args()
    setup_logging(log_level=settings.log_level.value)

    circuit = ThresholdCircuit(depth=args.depth, amount_bits=args.amount_bits)
    info = circuit.info()
    print(f"Circuit: depth={info.depth} amount_bits={info.amount_bits}")
    print(f"  constraints: {info.num_constraints}")
    print(f"  wires:       {info.num_wires}")
    print(f"  digest:      {info.circuit_digest}")

    start = time.perf_counter()
    pk, vk = generate_dev_keys(circuit)
    pk_path, vk_path = save_keys(pk, vk, args.out)
    print(f"\nSetup took {time.perf_counter() - start:.1f}s")
    print(f"  proving key:      {pk_path}")
    print(f"  verification key: {vk_path}")
    print("\nWARNING: development keys only. Do not deploy.")


if __name__ == "__main__":
    main()
